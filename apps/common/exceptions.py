import logging

from rest_framework import status
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)

FALLBACK_CODES = {
    status.HTTP_401_UNAUTHORIZED: "authentication_required",
    status.HTTP_403_FORBIDDEN: "permission_denied",
    status.HTTP_404_NOT_FOUND: "not_found",
}


def _error_code(exc, response):
    code = getattr(exc, "default_code", None)
    if code == "not_authenticated":
        return "authentication_required"
    if code:
        return code
    return FALLBACK_CODES.get(response.status_code, "error")


def api_exception_handler(exc, context):
    response = exception_handler(exc, context)
    if response is None:
        view = context.get("view")
        logger.exception("Unhandled error in %s", view.__class__.__name__ if view else "unknown view")
        return response

    if isinstance(response.data, dict):
        detail = response.data.get("detail", "Request failed")
        fields = {k: v for k, v in response.data.items() if k != "detail"}
    elif isinstance(response.data, list):
        detail = response.data[0] if response.data else "Request failed"
        fields = {}
    else:
        detail = "Request failed"
        fields = {}

    if fields and detail == "Request failed":
        detail = "Validation failed"

    if response.status_code >= 500:
        logger.error("API error %s: %s", response.status_code, detail)

    response.data = {
        "code": _error_code(exc, response),
        "detail": detail,
        "fields": fields,
    }
    return response
