import logging
from contextlib import contextmanager

import stripe

from checkout_gateway.config import Settings
from checkout_gateway.errors import UpstreamUnavailableError

logger = logging.getLogger(__name__)

CHECKOUT_ENABLED_EVENTS = ["checkout.session.completed"]


def configure_stripe(config: Settings):
    stripe.api_key = config.stripe_checkout_sk.get_secret_value()
    stripe.max_network_retries = config.stripe_max_network_retries
    stripe.default_http_client = stripe.RequestsClient(timeout=config.stripe_timeout)


@contextmanager
def upstream(operation: str):
    """Surface Stripe network failures as UpstreamUnavailableError."""
    try:
        yield
    except stripe.APIConnectionError as e:
        logger.error(f"Stripe {operation} failed: {e}")
        raise UpstreamUnavailableError()


def resolve_customer(email: str, name: str, currency: str):
    """Find the Stripe customer for ``email`` or create one.

    Stripe lists newest first, so the newest customer with the email is used
    when several exist.
    """
    with upstream("customer lookup"):
        customers = stripe.Customer.list(email=email, limit=10).data

    if not customers:
        with upstream("customer create"):
            customer = stripe.Customer.create(
                email=email,
                name=name,
                metadata={"currency": currency.upper()},
            )
        logger.info(f"Created Stripe customer {customer.id} for {email}")
        return customer

    if len(customers) > 1:
        logger.warning(
            f"{len(customers)} Stripe customers share {email}, using newest {customers[0].id}"
        )

    customer = customers[0]
    if not customer.name:
        with upstream("customer update"):
            stripe.Customer.modify(customer.id, name=name)
    return customer


def create_checkout_session(**params):
    with upstream("checkout session create"):
        return stripe.checkout.Session.create(**params)


def list_webhook_endpoints():
    with upstream("webhook endpoint list"):
        return list(stripe.WebhookEndpoint.list(limit=100).auto_paging_iter())


def create_webhook_endpoint(url: str, enabled_events):
    with upstream("webhook endpoint create"):
        return stripe.WebhookEndpoint.create(url=url, enabled_events=list(enabled_events))


def retrieve_payment_intent(payment_intent_id: str):
    """Return the payment intent, or None when Stripe does not know it."""
    with upstream("payment intent retrieve"):
        try:
            return stripe.PaymentIntent.retrieve(payment_intent_id)
        except stripe.InvalidRequestError:
            return None


def retrieve_payment_method(payment_method_id: str):
    """Return the payment method, or None when Stripe does not know it."""
    with upstream("payment method retrieve"):
        try:
            return stripe.PaymentMethod.retrieve(payment_method_id)
        except stripe.InvalidRequestError:
            return None


def delete_webhook_endpoint(endpoint_id: str):
    with upstream("webhook endpoint delete"):
        return stripe.WebhookEndpoint.delete(endpoint_id)
