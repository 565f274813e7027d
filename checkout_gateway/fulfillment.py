"""Balance crediting for completed checkout sessions."""

import logging
from datetime import datetime, timezone

from sqlalchemy import update
from sqlalchemy.orm import Session

from checkout_gateway.errors import (
    MissingPaymentIntentError,
    MissingPaymentMethodError,
    OrderMismatchError,
    OrderNotFoundError,
)
from checkout_gateway.models import ORDER_PAID, ORDER_PENDING, Order, User
from checkout_gateway.stripe_service import retrieve_payment_intent, retrieve_payment_method

logger = logging.getLogger(__name__)


def _field(obj, key):
    """Read a key from a Stripe object or a plain dict, None when absent."""
    if obj is None:
        return None
    try:
        return obj[key]
    except KeyError:
        return None


def mark_paid(db: Session, trade_no: str) -> bool:
    """Move the order from pending to paid and credit the owner's balance.

    The status change is a conditional update, so only one caller can win it;
    the balance is credited in the same transaction.

    Returns:
        True if this call credited the order, False if it was already paid.
    """
    result = db.execute(
        update(Order)
        .where(Order.trade_no == trade_no, Order.status == ORDER_PENDING)
        .values(status=ORDER_PAID, paid_at=datetime.now(timezone.utc))
    )
    if result.rowcount != 1:
        db.rollback()
        return False

    order = db.get(Order, trade_no)
    db.execute(
        update(User)
        .where(User.id == order.user_id)
        .values(balance=User.balance + order.amount)
    )
    db.commit()
    return True


def fulfill_checkout(db: Session, checkout: dict) -> bool:
    """Validate a completed checkout session with Stripe and credit its order.

    Args:
        db: Database session
        checkout: Stripe Checkout Session object from the event

    Returns:
        True if the order was credited, False for a repeated delivery.
    """
    session_id = _field(checkout, "id")

    payment_intent_id = _field(checkout, "payment_intent")
    payment_intent = retrieve_payment_intent(payment_intent_id) if payment_intent_id else None
    if payment_intent is None:
        raise MissingPaymentIntentError()

    payment_method_id = payment_intent.payment_method
    payment_method = retrieve_payment_method(payment_method_id) if payment_method_id else None
    if payment_method is None:
        raise MissingPaymentMethodError()

    trade_no = _field(_field(checkout, "metadata"), "trade_no")
    order = db.get(Order, trade_no) if trade_no else None
    if order is None:
        raise OrderNotFoundError()

    client_reference_id = _field(checkout, "client_reference_id")
    if client_reference_id is not None and str(order.user_id) != str(client_reference_id):
        logger.warning(
            f"Checkout {session_id} references user {client_reference_id} "
            f"but order {trade_no} belongs to user {order.user_id}"
        )
        raise OrderMismatchError()

    if not mark_paid(db, trade_no):
        logger.warning(f"Order {trade_no} already paid, ignoring checkout {session_id}")
        return False

    logger.info(f"Order {trade_no} paid via checkout {session_id}, credited user {order.user_id}")
    return True
