"""Stripe webhook verification and event dispatch."""

import logging

import stripe
from sqlalchemy.orm import Session

from checkout_gateway.errors import (
    InvalidPayloadError,
    InvalidSignatureError,
    UnsupportedEventError,
)
from checkout_gateway.fulfillment import fulfill_checkout
from checkout_gateway.models import STRIPE_WEBHOOK_ENDPOINT_SECRET, Setting

logger = logging.getLogger(__name__)


def get_webhook_secret(db: Session) -> str:
    setting = db.get(Setting, STRIPE_WEBHOOK_ENDPOINT_SECRET)
    secret = setting.value if setting else ""
    if not secret:
        logger.warning("No webhook signing secret stored, is the Stripe endpoint registered?")
    return secret


def construct_event(payload: bytes, sig_header: str, secret: str):
    """Verify the Stripe signature and parse the event."""
    if not sig_header or not secret:
        raise InvalidSignatureError()

    try:
        return stripe.Webhook.construct_event(payload, sig_header, secret)
    except ValueError:
        raise InvalidPayloadError()
    except stripe.SignatureVerificationError:
        raise InvalidSignatureError()


def handle_webhook(db: Session, payload: bytes, sig_header: str) -> bool:
    """Verify an inbound Stripe event and route it to its handler.

    Only checkout.session.completed is handled; every other type is rejected.

    Returns:
        True if the event credited an order, False for a repeated delivery.
    """
    try:
        event = construct_event(payload, sig_header, get_webhook_secret(db))
    except (InvalidPayloadError, InvalidSignatureError) as e:
        logger.warning(f"Rejected webhook: {e.reason}")
        raise

    event_type = event["type"]
    logger.info(f"Received webhook: {event_type}")

    if event_type == "checkout.session.completed":
        return fulfill_checkout(db, event["data"]["object"])

    logger.warning(f"Unsupported webhook event type: {event_type}")
    raise UnsupportedEventError()
