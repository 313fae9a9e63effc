"""
core.domain.exception_handler — DRF-compatible global exception handler.

Every error body leaving the API has the same shape::

    {"error": "<short code>", "detail": "<message>"}

Domain exceptions carry their own ``status_code`` and ``code``.  DRF's own
exceptions (authentication, throttling, 404 from routing ...) keep their
status and gain an ``error`` key derived from DRF's default code.
Serializer validation errors are left untouched so clients still get the
per-field messages.

Register in ``settings.py``::

    REST_FRAMEWORK = {
        ...
        'EXCEPTION_HANDLER': 'core.domain.exception_handler.domain_exception_handler',
    }
"""

from __future__ import annotations

import logging

from rest_framework.exceptions import APIException, ValidationError
from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_default_handler

from core.domain.exceptions import DomainError

logger = logging.getLogger(__name__)


def _view_name(context: dict) -> str:
    view = context.get("view")
    return type(view).__name__ if view is not None else "unknown"


def domain_exception_handler(exc: Exception, context: dict) -> Response | None:
    """
    Render ``DomainError`` subclasses, then defer to DRF for the rest.

    Returns ``None`` for anything neither side recognises so Django turns
    it into a 500.
    """
    if isinstance(exc, DomainError):
        logger.warning(
            "Domain exception [%s/%s] in %s: %s",
            type(exc).__name__,
            exc.code,
            _view_name(context),
            exc,
        )
        return Response(
            {"error": exc.code, "detail": str(exc)},
            status=exc.status_code,
        )

    response = drf_default_handler(exc, context)
    if response is None:
        return None

    if (
        isinstance(exc, APIException)
        and not isinstance(exc, ValidationError)
        and isinstance(response.data, dict)
        and "detail" in response.data
    ):
        response.data.setdefault("error", str(exc.default_code).replace("_", "-"))
    return response
