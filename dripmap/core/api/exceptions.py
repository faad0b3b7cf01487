"""
API error rendering.

Every API error is rendered as ``{"error": "<message>", "status": <code>}``
so clients can show one human-readable message without knowing DRF's
per-field error structure. Billing service exceptions carry their own HTTP
status; everything else goes through DRF's default handler first.
"""

from __future__ import annotations

import logging

from rest_framework.response import Response
from rest_framework.views import exception_handler

from dripmap.billing.exceptions import BillingError

logger = logging.getLogger(__name__)


def flatten_errors(detail) -> str:
    """Collapse DRF error details (dicts, lists, strings) into one message."""
    if isinstance(detail, dict):
        parts = []
        for field, value in detail.items():
            message = flatten_errors(value)
            if field in ("detail", "non_field_errors"):
                parts.append(message)
            else:
                parts.append(f"{field}: {message}")
        return "; ".join(parts)
    if isinstance(detail, list):
        return " ".join(flatten_errors(item) for item in detail)
    return str(detail)


def error_response(message: str, status_code: int) -> Response:
    return Response({"error": message, "status": int(status_code)}, status=status_code)


def api_exception_handler(exc, context):
    """REST_FRAMEWORK EXCEPTION_HANDLER producing ``{error, status}`` bodies."""
    if isinstance(exc, BillingError):
        logger.info("Billing request rejected (%s): %s", exc.status_code, exc.message)
        return error_response(exc.message, exc.status_code)

    response = exception_handler(exc, context)
    if response is None:
        return None

    response.data = {
        "error": flatten_errors(response.data),
        "status": response.status_code,
    }
    return response
