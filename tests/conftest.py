import hashlib
import hmac
import json
import os
import time

os.environ["DATABASE_URL"] = "sqlite:///./test_checkout.db"
os.environ["JWT_SECRET"] = "test-jwt-secret-0123456789abcdef"
os.environ["BASE_URL"] = "http://testserver"
os.environ["STRIPE_CHECKOUT_SK"] = "sk_test_dummy"
os.environ["STRIPE_CHECKOUT_PK"] = "pk_test_dummy"
os.environ["STRIPE_CHECKOUT_CURRENCY"] = "cny"
os.environ["LOCAL_CURRENCY"] = "CNY"
os.environ["STRIPE_CHECKOUT_MIN_RECHARGE"] = "10"
os.environ["STRIPE_CHECKOUT_MAX_RECHARGE"] = "1000"
os.environ["REGISTER_WEBHOOK_ON_STARTUP"] = "false"

import pytest
from decimal import Decimal
from fastapi.testclient import TestClient

from checkout_gateway.auth import get_current_user
from checkout_gateway.config import get_config
from checkout_gateway.database import Base, SessionLocal, engine, init_db
from checkout_gateway.main import app as fastapi_app
from checkout_gateway.models import STRIPE_WEBHOOK_ENDPOINT_SECRET, Setting, User
from checkout_gateway.registrar import registrar

WEBHOOK_SECRET = "whsec_test"


@pytest.fixture(autouse=True)
def setup_db():
    init_db()
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def reset_registrar():
    registrar.reset()
    yield
    registrar.reset()


@pytest.fixture
def config():
    return get_config()


@pytest.fixture
def db():
    session = SessionLocal()
    yield session
    session.close()


@pytest.fixture
def user(db):
    u = User(id=1, email="alice@example.com", user_name="alice", balance=Decimal("0"))
    db.add(u)
    db.commit()
    db.refresh(u)
    db.expunge(u)
    return u


@pytest.fixture
def webhook_secret(db):
    setting = db.get(Setting, STRIPE_WEBHOOK_ENDPOINT_SECRET)
    setting.value = WEBHOOK_SECRET
    db.commit()
    return WEBHOOK_SECRET


@pytest.fixture
def valid_endpoint(mocker, config, webhook_secret):
    """A Stripe webhook endpoint list that already holds our endpoint, secret stored."""
    endpoint = mocker.Mock(
        id="we_existing",
        status="enabled",
        url=config.notify_url,
        enabled_events=["checkout.session.completed"],
    )
    listing = mocker.Mock()
    listing.auto_paging_iter.return_value = [endpoint]
    return mocker.patch("stripe.WebhookEndpoint.list", return_value=listing)


@pytest.fixture
def client(user):
    # Bypass auth verification for tests
    fastapi_app.dependency_overrides[get_current_user] = lambda: user
    with TestClient(fastapi_app) as c:
        yield c
    fastapi_app.dependency_overrides.clear()


def sign_payload(payload: str, secret: str, timestamp: int = None) -> str:
    """Build a Stripe-Signature header the way Stripe signs webhook deliveries."""
    timestamp = int(time.time()) if timestamp is None else timestamp
    signature = hmac.new(
        secret.encode("utf-8"),
        f"{timestamp}.{payload}".encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()
    return f"t={timestamp},v1={signature}"


def checkout_completed_payload(trade_no: str, client_reference_id: str = "1", payment_intent: str = "pi_123") -> str:
    return json.dumps(
        {
            "id": "evt_test_completed",
            "object": "event",
            "type": "checkout.session.completed",
            "livemode": False,
            "data": {
                "object": {
                    "id": "cs_test_completed",
                    "object": "checkout.session",
                    "client_reference_id": client_reference_id,
                    "currency": "cny",
                    "livemode": False,
                    "metadata": {"trade_no": trade_no},
                    "mode": "payment",
                    "payment_intent": payment_intent,
                    "payment_status": "paid",
                }
            },
        }
    )


@pytest.fixture
def signed_checkout_event():
    """Return (payload, signature header) for a checkout.session.completed event."""

    def build(trade_no, secret=WEBHOOK_SECRET, **fields):
        payload = checkout_completed_payload(trade_no, **fields)
        return payload, sign_payload(payload, secret)

    return build
