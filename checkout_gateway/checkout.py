"""Stripe Checkout session creation for balance top-ups."""

import logging
import uuid
from decimal import Decimal

from sqlalchemy.orm import Session

from checkout_gateway.config import Settings
from checkout_gateway.errors import GatewayDisabledError, OutOfRangeError
from checkout_gateway.exchange import get_rate
from checkout_gateway.models import ORDER_PENDING, Order, User
from checkout_gateway.stripe_service import create_checkout_session, resolve_customer

logger = logging.getLogger(__name__)


def to_unit_amount(amount: Decimal, rate: Decimal) -> int:
    """Convert a local-currency amount into settlement-currency minor units."""
    return int(amount / rate * 100)


def validate_purchase(amount: Decimal, config: Settings):
    """Reject a purchase before anything is sent to Stripe."""
    if not config.stripe_checkout_enabled:
        raise GatewayDisabledError()

    if not (config.stripe_checkout_min_recharge <= amount <= config.stripe_checkout_max_recharge):
        raise OutOfRangeError()


def create_checkout(db: Session, user: User, amount: Decimal, config: Settings) -> str:
    """Create a pending order and a Stripe Checkout Session for it.

    The order is only committed once Stripe has accepted the session, so a
    failed request leaves no pending order behind.

    Args:
        db: Database session
        user: Authenticated user paying
        amount: Recharge amount in local currency
        config: Gateway configuration

    Returns:
        Stripe Checkout Session URL

    Raises:
        GatewayDisabledError: If Stripe Checkout is switched off
        OutOfRangeError: If amount is outside the configured bounds
        UpstreamUnavailableError: If Stripe or the rate service is unreachable
    """
    validate_purchase(amount, config)

    customer = resolve_customer(user.email, user.user_name, config.stripe_checkout_currency)

    trade_no = uuid.uuid4().hex
    order = Order(trade_no=trade_no, user_id=user.id, amount=amount, status=ORDER_PENDING)
    db.add(order)

    try:
        db.flush()
        rate = get_rate(config.stripe_checkout_currency, config)
        unit_amount = to_unit_amount(amount, rate)

        session = create_checkout_session(
            customer=customer.id,
            metadata={"trade_no": trade_no},
            line_items=[
                {
                    "price_data": {
                        "currency": config.stripe_checkout_currency.lower(),
                        "product_data": {
                            "name": f"{config.app_name} balance top-up",
                            "description": (
                                f"Adds {amount} {config.local_currency} to your account balance. "
                                "Contact the site administrator if anything goes wrong."
                            ),
                        },
                        "unit_amount": unit_amount,
                    },
                    "quantity": 1,
                }
            ],
            payment_intent_data={"capture_method": "automatic"},
            mode="payment",
            locale=config.stripe_checkout_locale,
            submit_type="pay",
            allow_promotion_codes=True,
            client_reference_id=str(user.id),
            success_url=config.return_url,
            cancel_url=config.return_url,
        )
    except Exception:
        db.rollback()
        raise

    db.commit()

    logger.info(
        f"Created checkout session {session.id} for order {trade_no} "
        f"(user {user.id}, {amount} {config.local_currency} -> {unit_amount})"
    )

    return session.url
