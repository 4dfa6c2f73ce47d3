"""Response envelope shared by the API.

Every response body has the shape ``{"data": ..., "meta": ..., "error": ...}``.
Lists carry pagination in ``meta``; failures carry ``{"code", "message"}`` in
``error`` and ``data`` is null.
"""

import logging
import re

from django.db import OperationalError
from django.http import Http404
from inventory.exceptions import InventoryError
from rest_framework import exceptions, status
from rest_framework.pagination import PageNumberPagination
from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_exception_handler

logger = logging.getLogger("aurea.api")


def envelope(data=None, *, meta=None, error=None) -> dict:
    return {"data": data, "meta": meta, "error": error}


def error_body(code: str, message: str, details=None) -> dict:
    body = {"code": code, "message": message}
    if details is not None:
        body["details"] = details
    return body


def error_response(code: str, message: str, http_status: int, details=None) -> Response:
    return Response(envelope(error=error_body(code, message, details)), status=http_status)


def _camel(code: str) -> str:
    head, *rest = str(code).split("_")
    return head + "".join(part.title() for part in rest)


def _is_lock_timeout(exc: OperationalError) -> bool:
    text = str(exc).lower()
    return bool(re.search(r"lock|timeout|timed out", text))


def envelope_exception_handler(exc, context):
    """DRF ``EXCEPTION_HANDLER``: turn domain and framework errors into enveloped responses."""
    if isinstance(exc, InventoryError):
        return error_response(exc.code, exc.message, exc.status_code)

    if isinstance(exc, OperationalError) and _is_lock_timeout(exc):
        view = context.get("view")
        logger.warning(
            "api.lock_timeout",
            extra={"event": "api.lock_timeout", "view": type(view).__name__ if view else None},
        )
        return error_response("timeout", "The ledger is busy, retry the request.", status.HTTP_503_SERVICE_UNAVAILABLE)

    response = drf_exception_handler(exc, context)
    if response is None:
        return None

    details = None
    if isinstance(exc, Http404):
        code = "notFound"
    elif isinstance(exc, exceptions.ValidationError):
        code = "validationError"
        details = response.data
    elif isinstance(exc, exceptions.APIException):
        code = _camel(exc.default_code)
    else:  # pragma: no cover
        code = "error"

    if isinstance(response.data, dict) and "detail" in response.data:
        message = str(response.data["detail"])
    elif code == "validationError":
        message = "Invalid request payload."
    else:
        message = str(exc)
    response.data = envelope(error=error_body(code, message, details))
    return response


class EnvelopePagination(PageNumberPagination):
    """Zero-based ``page`` / ``size`` pagination rendered into the envelope."""

    page_size = 20
    page_query_param = "page"
    page_size_query_param = "size"
    max_page_size = 100

    def get_page_number(self, request, paginator):
        raw = request.query_params.get(self.page_query_param, 0)
        try:
            page = int(raw)
        except (TypeError, ValueError):
            raise exceptions.NotFound("Invalid page.")
        if page < 0:
            raise exceptions.NotFound("Invalid page.")
        return page + 1

    def get_paginated_response(self, data):
        return Response(
            envelope(
                list(data),
                meta={
                    "page": self.page.number - 1,
                    "size": self.page.paginator.per_page,
                    "totalElements": self.page.paginator.count,
                    "totalPages": self.page.paginator.num_pages,
                },
            )
        )

    def get_paginated_response_schema(self, schema):
        return {
            "type": "object",
            "properties": {
                "data": schema,
                "meta": {
                    "type": "object",
                    "properties": {
                        "page": {"type": "integer", "example": 0},
                        "size": {"type": "integer", "example": 20},
                        "totalElements": {"type": "integer", "example": 42},
                        "totalPages": {"type": "integer", "example": 3},
                    },
                },
                "error": {"type": "object", "nullable": True},
            },
        }
