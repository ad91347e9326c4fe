"""DRF exception handler producing the standardized error envelope.

Every framework-level error (validation, authentication, permission,
throttling, parse errors) is rendered as::

    {
        "type": "validation_error" | "client_error" | "server_error",
        "errors": [{"code": "...", "detail": "...", "attr": "field" | null}]
    }

Domain exceptions are translated by the views themselves and never
reach this handler.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

import structlog
from rest_framework import exceptions, status
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = structlog.get_logger(__name__)


def _flatten(detail: Any, attr: Optional[str] = None) -> List[Dict[str, Any]]:
    if isinstance(detail, dict):
        errors: List[Dict[str, Any]] = []
        for key, value in detail.items():
            nested = key if attr is None else f"{attr}.{key}"
            if key == "non_field_errors":
                nested = attr
            errors.extend(_flatten(value, nested))
        return errors
    if isinstance(detail, list):
        errors = []
        for index, value in enumerate(detail):
            nested = attr
            if isinstance(value, (dict, list)) and attr is not None:
                nested = f"{attr}.{index}"
            errors.extend(_flatten(value, nested))
        return errors
    return [
        {
            "code": getattr(detail, "code", "error"),
            "detail": str(detail),
            "attr": attr,
        }
    ]


def api_exception_handler(exc: Exception, context: Dict[str, Any]) -> Optional[Response]:
    """Wrap DRF's default handler and normalise the payload."""
    response = exception_handler(exc, context)
    if response is None:
        return None

    if isinstance(exc, exceptions.ValidationError):
        error_type = "validation_error"
    elif response.status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
        error_type = "server_error"
    else:
        error_type = "client_error"

    if isinstance(exc, exceptions.APIException):
        errors = _flatten(exc.detail)
    else:
        errors = [{"code": "error", "detail": str(exc), "attr": None}]

    logger.info(
        "api.error_response",
        status_code=response.status_code,
        error_type=error_type,
        view=context.get("view").__class__.__name__ if context.get("view") else None,
    )
    response.data = {"type": error_type, "errors": errors}
    return response
