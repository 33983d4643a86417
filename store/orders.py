"""
store.orders
Order reader and status updater.

Reading never raises for a missing order (returns None). Writing a new
status is one transaction: the order row and its history row land together
or not at all. E-mails go out after commit and cannot undo the change.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field

from django.conf import settings
from django.db import transaction
from django.db.models import Prefetch
from django.utils import timezone
from rest_framework import exceptions

from .exceptions import IllegalStatusTransition, OrderNotFound
from .models import Invoice, Order, OrderHistory, OrderItem, OrderStatus
from .notifications import send_order_status_update_emails

logger = logging.getLogger(__name__)

STATUSES = tuple(OrderStatus.values)

# Legal (from, to) pairs when ORDER_STATUS_STRICT_TRANSITIONS is on.
# Re-applying the current status is always accepted.
ALLOWED_TRANSITIONS = {
    "draft": {"pending", "cancelled"},
    "pending": {"confirmed", "processing", "cancelled", "failed"},
    "confirmed": {"processing", "cancelled", "failed"},
    "processing": {"shipped", "cancelled", "failed"},
    "shipped": {"delivered", "returned", "failed"},
    "delivered": {"returned", "refunded"},
    "cancelled": {"refunded"},
    "failed": {"pending", "cancelled", "refunded"},
    "refunded": set(),
    "returned": {"refunded"},
}

EDITABLE_FIELDS = ("admin_note", "user_note", "payment_method", "subtotal", "shipping", "discount", "total_price")


@dataclass
class StatusChange:
    order: Order
    previous_status: str
    new_status: str
    notification: dict | None = field(default=None)


def is_transition_allowed(previous: str, new: str) -> bool:
    if previous == new:
        return True
    return new in ALLOWED_TRANSITIONS.get(previous, set())


def check_transition(previous: str, new: str):
    """The one place transition legality is decided."""
    if not getattr(settings, "ORDER_STATUS_STRICT_TRANSITIONS", False):
        return
    if not is_transition_allowed(previous, new):
        raise IllegalStatusTransition(previous, new)


def _find(queryset, identifier):
    """An id wins over a code; a numeric code is only tried when no id matches."""
    if isinstance(identifier, int):
        return queryset.filter(pk=identifier).first()
    ident = str(identifier).strip()
    if ident.isdigit():
        order = queryset.filter(pk=int(ident)).first()
        if order is not None:
            return order
    return queryset.filter(code=ident).first()


def get_order_details(identifier) -> Order | None:
    """
    Order by id or code, merged with customer, address, live items (with
    product), history newest-first and the live invoice carrying its code.
    None when missing or soft-deleted.
    """
    if identifier is None or str(identifier).strip() == "":
        return None
    order = _find(
        Order.objects.select_related("user", "address").prefetch_related(
            Prefetch("items", queryset=OrderItem.objects.select_related("product").order_by("id")),
            Prefetch("history", queryset=OrderHistory.objects.order_by("-changed_at", "-id")),
        ),
        identifier,
    )
    if order is None:
        return None

    order.customer = order.user if order.user_id and not order.user.is_deleted else None
    order.shipping_address = order.address if order.address_id and not order.address.is_deleted else None
    order.invoice = Invoice.objects.filter(order_code=order.code).order_by("-created_at").first()
    return order


def update_order_status(order_id, new_status, note=None, changed_by=None, notify=True) -> StatusChange:
    if new_status not in STATUSES:
        raise exceptions.ValidationError({"new_status": [f"'{new_status}' is not a valid order status."]})

    with transaction.atomic():
        order = Order.objects.select_for_update().filter(pk=order_id).first()
        if order is None:
            raise OrderNotFound()

        previous_status = order.status or OrderStatus.PENDING
        check_transition(previous_status, new_status)

        order.status = new_status
        update_fields = ["status", "updated_at"]
        if note is not None:
            order.admin_note = note
            update_fields.append("admin_note")
        if changed_by is not None:
            order.updated_by = str(changed_by)
            update_fields.append("updated_by")
        order.save(update_fields=update_fields)

        OrderHistory.objects.create(
            order=order,
            status=new_status,
            note=note,
            changed_by=str(changed_by) if changed_by is not None else None,
            changed_at=timezone.now(),
        )

    logger.info(f"Order {order.code}: {previous_status} -> {new_status} by {changed_by or '-'}")

    change = StatusChange(order=order, previous_status=previous_status, new_status=new_status)
    if notify:
        def send():
            change.notification = notify_status_change(order.pk, previous_status, new_status, note, changed_by)

        # runs at once in autocommit; inside an outer atomic it waits for the commit
        transaction.on_commit(send)
    return change


def notify_status_change(order_id, previous_status, new_status, note=None, changed_by=None) -> dict | None:
    """Dispatch status e-mails; None when the order has no customer e-mail."""
    try:
        order = get_order_details(order_id)
        customer = getattr(order, "customer", None)
        if order is None or customer is None or not customer.email:
            return None
        return send_order_status_update_emails(
            order=order,
            previous_status=previous_status,
            new_status=new_status,
            customer_name=customer.full_name or "Customer",
            customer_email=customer.email,
            admin_note=note,
            changed_by=str(changed_by) if changed_by is not None else None,
        )
    except Exception as e:
        logger.error(f"Error sending status update emails for order {order_id}: {e}")
        return {"success": False, "error": "Failed to send status update emails."}


def update_order(order_id, changed_by=None, **fields) -> Order:
    """Edit notes/payment/money fields. Status only moves through update_order_status."""
    order = Order.objects.filter(pk=order_id).first()
    if order is None:
        raise OrderNotFound()
    update_fields = ["updated_at"]
    for name in EDITABLE_FIELDS:
        if name in fields:
            setattr(order, name, fields[name])
            update_fields.append(name)
    if changed_by is not None:
        order.updated_by = str(changed_by)
        update_fields.append("updated_by")
    order.save(update_fields=update_fields)
    return order


def delete_order(order_id, by=None) -> Order:
    order = Order.objects.filter(pk=order_id).first()
    if order is None:
        raise OrderNotFound()
    order.soft_delete(by=by)
    logger.info(f"Order {order.code} soft-deleted by {by or '-'}")
    return order
