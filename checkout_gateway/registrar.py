"""Webhook endpoint registration with Stripe."""

import logging
import threading

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from checkout_gateway.config import Settings
from checkout_gateway.models import STRIPE_WEBHOOK_ENDPOINT_SECRET, Setting
from checkout_gateway.stripe_service import (
    CHECKOUT_ENABLED_EVENTS,
    create_webhook_endpoint,
    delete_webhook_endpoint,
    list_webhook_endpoints,
)

logger = logging.getLogger(__name__)


def is_valid_endpoint(endpoint, url: str, required_events=CHECKOUT_ENABLED_EVENTS) -> bool:
    return (
        endpoint.status == "enabled"
        and endpoint.url == url
        and set(required_events) <= set(endpoint.enabled_events or [])
    )


def ensure_webhook_endpoint(db: Session, config: Settings) -> bool:
    """Make sure an enabled Stripe webhook endpoint points at this service.

    An existing endpoint is only reused while its signing secret is stored
    locally; Stripe never returns the secret again after creation. Without a
    stored secret, endpoints at our URL are replaced by a new one whose secret
    is saved in the settings table.

    Returns:
        False if the signing secret cannot be persisted, True otherwise.

    Raises:
        UpstreamUnavailableError: If Stripe is unreachable
    """
    url = config.notify_url

    setting = db.get(Setting, STRIPE_WEBHOOK_ENDPOINT_SECRET)
    if setting is None:
        logger.error(f"Setting {STRIPE_WEBHOOK_ENDPOINT_SECRET} is missing, cannot register webhook")
        return False

    endpoints = list_webhook_endpoints()

    if setting.value:
        for endpoint in endpoints:
            if is_valid_endpoint(endpoint, url):
                logger.info(f"Using existing webhook endpoint {endpoint.id} for {url}")
                return True
    else:
        for endpoint in endpoints:
            if endpoint.url == url:
                logger.warning(f"Replacing webhook endpoint {endpoint.id}, its signing secret is unknown")
                delete_webhook_endpoint(endpoint.id)

    new_endpoint = create_webhook_endpoint(url, CHECKOUT_ENABLED_EVENTS)
    logger.info(f"Registered webhook endpoint {new_endpoint.id} for {url}")

    setting.value = new_endpoint.secret
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to save webhook signing secret, removing endpoint {new_endpoint.id}: {e}")
        delete_webhook_endpoint(new_endpoint.id)
        return False

    return True


class WebhookRegistrar:
    """Single writer for the webhook registration.

    Only one thread talks to Stripe at a time, and once an endpoint is known
    to be in place later calls return without any remote request.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._ready = False

    @property
    def ready(self) -> bool:
        return self._ready

    def ensure(self, db: Session, config: Settings) -> bool:
        with self._lock:
            if not self._ready:
                self._ready = ensure_webhook_endpoint(db, config)
            return self._ready

    def reset(self):
        with self._lock:
            self._ready = False


registrar = WebhookRegistrar()
