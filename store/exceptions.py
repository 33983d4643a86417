# store/exceptions.py: typed API errors + DRF exception handler
import logging

from django.http import Http404
from rest_framework import exceptions, status
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class OrderNotFound(exceptions.NotFound):
    default_detail = "Order not found"
    default_code = "order_not_found"


class IllegalStatusTransition(exceptions.APIException):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Status transition not allowed"
    default_code = "illegal_status_transition"

    def __init__(self, previous, new):
        self.previous = previous
        self.new = new
        super().__init__(f"Cannot move order from '{previous}' to '{new}'")


class CategoryInUse(exceptions.APIException):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Cannot delete category with existing products"
    default_code = "category_in_use"


class PrimarySuperadminProtected(exceptions.PermissionDenied):
    default_detail = "Cannot delete a primary superadmin"
    default_code = "primary_superadmin"


def api_exception_handler(exc, context):
    """
    DRF handler with one response shape: {"detail": ..., "code": ...}
    (validation errors keep their field map under "detail").
    """
    response = exception_handler(exc, context)
    view = context.get("view")
    where = view.__class__.__name__ if view is not None else "?"

    if response is None:
        logger.exception(f"Unhandled error in {where}: {exc}")
        return Response(
            {"detail": "Internal server error", "code": "error"},
            status=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    if isinstance(exc, Http404):
        code = "not_found"
    elif isinstance(exc, exceptions.APIException):
        codes = exc.get_codes()
        code = codes if isinstance(codes, str) else "invalid"
    else:
        code = "error"

    detail = response.data.get("detail", response.data) if isinstance(response.data, dict) else response.data
    logger.warning(f"{where}: {response.status_code} {code} {detail}")
    response.data = {"detail": detail, "code": code}
    return response
