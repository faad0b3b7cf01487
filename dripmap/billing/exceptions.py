"""
Exceptions raised by the billing services.

Every exception carries the HTTP status the API layer should answer with, so
views can translate them without knowing each case. None of them are raised
after a local write: services check and call Stripe first, then persist.
"""

from http import HTTPStatus


class BillingError(Exception):
    """Base exception for billing errors."""

    status_code = HTTPStatus.BAD_REQUEST
    default_message = "Billing request failed."

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class BillingValidationError(BillingError):
    """Raised when request fields are missing or inconsistent."""

    status_code = HTTPStatus.BAD_REQUEST
    default_message = "Invalid billing request."


class BillingAuthenticationError(BillingError):
    """Raised when the caller's identity cannot be established."""

    status_code = HTTPStatus.UNAUTHORIZED
    default_message = "Authentication required."


class AuthorizationError(BillingError):
    """Raised when the caller does not own the shop, membership or customer."""

    status_code = HTTPStatus.FORBIDDEN
    default_message = "You are not allowed to manage this subscription."


class NotFoundError(BillingError):
    status_code = HTTPStatus.NOT_FOUND
    default_message = "Not found."


class ConflictError(BillingError):
    """Raised when the entity already has the subscription being requested."""

    status_code = HTTPStatus.CONFLICT
    default_message = "Already subscribed."


class UpstreamDependencyError(BillingError):
    """Raised when a Stripe API call fails."""

    status_code = HTTPStatus.BAD_GATEWAY
    default_message = "Payment provider request failed."


class WebhookSignatureError(BillingError):
    """Raised when a webhook payload fails Stripe signature verification."""

    status_code = HTTPStatus.BAD_REQUEST
    default_message = "Invalid webhook signature."
