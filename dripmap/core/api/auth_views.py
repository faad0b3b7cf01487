"""Token check endpoint for API clients."""

from drf_spectacular.utils import extend_schema
from drf_spectacular.utils import inline_serializer
from rest_framework import serializers
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

AUTH_ME_RESPONSE = inline_serializer(
    name="AuthMeResponse",
    fields={
        "id": serializers.IntegerField(),
        "email": serializers.EmailField(),
        "name": serializers.CharField(allow_blank=True),
    },
)


class AuthMeView(APIView):
    """
    Identify the holder of a Bearer token.

    The returned ``id`` is what the app sends as ``userId`` when starting a
    DripClub checkout.
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="Who am I",
        responses={200: AUTH_ME_RESPONSE},
        tags=["Authentication"],
    )
    def get(self, request):
        user = request.user
        return Response({"id": user.pk, "email": user.email, "name": user.name or ""})
