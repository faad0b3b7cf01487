import factory
from factory.django import DjangoModelFactory

from dripmap.billing.constants import ShopTier
from dripmap.billing.constants import SubscriptionStatus
from dripmap.shops.models import Shop
from dripmap.users.tests.factories import UserFactory


class ShopFactory(DjangoModelFactory[Shop]):
    class Meta:
        model = Shop

    name = factory.Sequence(lambda n: f"Test Coffee Shop {n}")
    claimed_by = factory.SubFactory(UserFactory)
    tier = ShopTier.FREE
    subscription_status = SubscriptionStatus.INACTIVE

    class Params:
        pro = factory.Trait(
            tier=ShopTier.PRO,
            subscription_status=SubscriptionStatus.ACTIVE,
            stripe_customer_id=factory.Sequence(lambda n: f"cus_shop{n}"),
            stripe_subscription_id=factory.Sequence(lambda n: f"sub_shop{n}"),
        )
        pro_plus = factory.Trait(
            tier=ShopTier.PRO_PLUS,
            subscription_status=SubscriptionStatus.ACTIVE,
            stripe_customer_id=factory.Sequence(lambda n: f"cus_shop{n}"),
            stripe_subscription_id=factory.Sequence(lambda n: f"sub_shop{n}"),
        )
