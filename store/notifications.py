# store/notifications.py: order status e-mails (customer + support inbox)
from __future__ import annotations

import logging

from django.conf import settings
from django.core.mail import EmailMultiAlternatives, get_connection
from django.template.loader import render_to_string
from django.utils.html import strip_tags

from .utils import format_price, title_status

logger = logging.getLogger(__name__)

# statuses that also notify the support inbox
ADMIN_NOTIFY_STATUSES = frozenset({"shipped", "delivered", "cancelled", "failed", "refunded"})

STATUS_MESSAGES = {
    "draft": {
        "title": "Order Saved",
        "message": "Your order has been saved and is not yet submitted.",
        "color": "#6c757d",
    },
    "pending": {
        "title": "Order Confirmed",
        "message": "Your order has been confirmed and is now being processed.",
        "color": "#28a745",
    },
    "confirmed": {
        "title": "Order Confirmed",
        "message": "Your order has been confirmed and is ready for processing.",
        "color": "#28a745",
    },
    "processing": {
        "title": "Order Processing",
        "message": "Your order is now being processed and prepared for shipping.",
        "color": "#17a2b8",
    },
    "shipped": {
        "title": "Order Shipped",
        "message": "Great news! Your order has been shipped and is on its way to you.",
        "color": "#007bff",
    },
    "delivered": {
        "title": "Order Delivered",
        "message": "Your order has been successfully delivered! Thank you for your purchase.",
        "color": "#28a745",
    },
    "cancelled": {
        "title": "Order Cancelled",
        "message": "Your order has been cancelled. If you have any questions, please contact us.",
        "color": "#dc3545",
    },
    "failed": {
        "title": "Order Failed",
        "message": "There was an issue processing your order. Please contact us for assistance.",
        "color": "#dc3545",
    },
    "refunded": {
        "title": "Order Refunded",
        "message": "Your order has been refunded. The refund will be processed according to your payment method.",
        "color": "#6f42c1",
    },
    "returned": {
        "title": "Order Returned",
        "message": "Your order has been returned and processed. Thank you for your patience.",
        "color": "#fd7e14",
    },
}


def status_message(new_status: str) -> dict:
    return STATUS_MESSAGES.get(new_status) or {
        "title": "Order Status Updated",
        "message": f"Your order status has been updated to {new_status}.",
        "color": "#6c757d",
    }


def should_notify_admin(new_status: str) -> bool:
    return new_status in ADMIN_NOTIFY_STATUSES


def _email_context(order, previous_status, new_status, **extra) -> dict:
    currency = order.currency_code
    items = [
        {
            "name": it.product.name_en if it.product_id else "Product",
            "sku": (it.product.sku if it.product_id else "") or "N/A",
            "quantity": it.quantity,
            "price": format_price(it.price, currency),
        }
        for it in order.items.all()
    ]
    subtotal = order.items_subtotal
    # stored shipping wins; otherwise whatever the total leaves over
    shipping = order.shipping if order.shipping is not None else (order.total_price or 0) - subtotal
    ctx = {
        "order": order,
        "items": items,
        "subtotal": format_price(subtotal, currency),
        "shipping": format_price(shipping, currency),
        "total": format_price(order.total_price, currency),
        "previous_status": previous_status,
        "new_status": new_status,
        "previous_status_label": title_status(previous_status),
        "new_status_label": title_status(new_status),
        "status_info": status_message(new_status),
        "store_name": getattr(settings, "STORE_NAME", "Store"),
        "support_email": getattr(settings, "SUPPORT_EMAIL", ""),
    }
    ctx.update(extra)
    return ctx


def _build_message(subject, html, to, connection) -> EmailMultiAlternatives:
    from_email = getattr(settings, "DEFAULT_FROM_EMAIL", None)
    msg = EmailMultiAlternatives(subject, strip_tags(html), from_email, to, connection=connection)
    msg.attach_alternative(html, "text/html")
    return msg


def send_order_status_update_emails(
    order,
    previous_status: str,
    new_status: str,
    customer_name: str,
    customer_email: str,
    admin_note: str | None = None,
    changed_by: str | None = None,
) -> dict:
    """
    Send the customer copy and, for ADMIN_NOTIFY_STATUSES, the support copy.
    Never raises: the status change is already committed when this runs, so
    every failure comes back as {"success": False, ...} and is logged.
    """
    notify_admin = should_notify_admin(new_status)
    details = {
        "customer_email": "not sent",
        "admin_email": "not sent",
    }
    try:
        ctx = _email_context(
            order,
            previous_status,
            new_status,
            customer_name=customer_name,
            customer_email=customer_email,
            admin_note=admin_note,
            changed_by=changed_by,
        )
        customer_html = render_to_string("emails/order_status_customer.html", ctx)
        admin_html = render_to_string("emails/order_status_admin.html", ctx) if notify_admin else ""
    except Exception as e:
        logger.error(f"Could not render status e-mails for order {order.code}: {e}")
        return {"success": False, "error": "Failed to render status update emails.", "details": details}

    label = title_status(new_status)
    try:
        # one connection per call: no pooling, no retry
        with get_connection() as conn:
            if notify_admin:
                details["admin_email"] = "failed"
                sent = _build_message(
                    f"Order Status Changed - {order.code} - {label}",
                    admin_html,
                    [settings.SUPPORT_EMAIL],
                    conn,
                ).send(fail_silently=False)
                details["admin_email"] = "sent" if sent else "failed"

            details["customer_email"] = "failed"
            sent = _build_message(
                f"Order Status Update - {order.code} - {label}",
                customer_html,
                [customer_email],
                conn,
            ).send(fail_silently=False)
            details["customer_email"] = "sent" if sent else "failed"
    except Exception as e:
        logger.error(f"Error sending order status update emails for {order.code}: {e}")
        return {
            "success": False,
            "error": "Failed to send status update emails. Please try again later.",
            "details": details,
        }

    customer_ok = details["customer_email"] == "sent"
    admin_ok = not notify_admin or details["admin_email"] == "sent"
    if customer_ok and admin_ok:
        logger.info(f"Status e-mails sent for {order.code} ({previous_status} -> {new_status})")
        return {"success": True, "message": "Order status update emails sent successfully", "details": details}

    logger.error(f"Email sending results for {order.code}: {details}")
    return {"success": False, "error": "Some emails failed to send", "details": details}
