from decimal import Decimal

from fastapi import APIRouter, Depends, Header, HTTPException, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import RedirectResponse
from pydantic import BaseModel

from checkout_gateway.auth import get_current_user
from checkout_gateway.checkout import create_checkout, validate_purchase
from checkout_gateway.config import get_config
from checkout_gateway.database import SessionLocal
from checkout_gateway.errors import PaymentError, WebhookRegistrationError
from checkout_gateway.models import Order, User
from checkout_gateway.registrar import registrar
from checkout_gateway.webhooks import handle_webhook

GATEWAY = "stripe_checkout"
READABLE_NAME = "Stripe Checkout"

router = APIRouter(prefix="/payment")


class PurchaseRequest(BaseModel):
    price: Decimal


@router.post(f"/purchase/{GATEWAY}")
def purchase(request: PurchaseRequest, user: User = Depends(get_current_user)):
    config = get_config()
    db = SessionLocal()
    try:
        validate_purchase(request.price, config)
        if not registrar.ensure(db, config):
            raise WebhookRegistrationError()
        url = create_checkout(db, user, request.price, config)
    except PaymentError as e:
        raise HTTPException(status_code=e.status_code, detail=e.reason)
    finally:
        db.close()

    return RedirectResponse(url, status_code=303)


def _process_webhook(payload: bytes, sig_header: str) -> bool:
    db = SessionLocal()
    try:
        return handle_webhook(db, payload, sig_header)
    finally:
        db.close()


@router.post(f"/notify/{GATEWAY}")
async def notify(request: Request, stripe_signature: str = Header(None)):
    payload = await request.body()

    try:
        credited = await run_in_threadpool(_process_webhook, payload, stripe_signature)
    except PaymentError as e:
        raise HTTPException(status_code=e.status_code, detail=e.reason)

    return {"ok": True, "credited": credited}


@router.get(f"/return/{GATEWAY}")
def return_page():
    return RedirectResponse(f"{get_config().base_url.rstrip('/')}/user/code", status_code=303)


@router.get(f"/config/{GATEWAY}")
def gateway_config():
    config = get_config()
    return {
        "name": GATEWAY,
        "readable_name": READABLE_NAME,
        "enabled": config.stripe_checkout_enabled,
        "publishable_key": config.stripe_checkout_pk,
        "currency": config.stripe_checkout_currency,
        "min_recharge": str(config.stripe_checkout_min_recharge),
        "max_recharge": str(config.stripe_checkout_max_recharge),
    }


@router.get("/status/{trade_no}")
def order_status(trade_no: str, user: User = Depends(get_current_user)):
    db = SessionLocal()
    try:
        order = db.get(Order, trade_no)
    finally:
        db.close()

    if order is None or order.user_id != user.id:
        raise HTTPException(status_code=404, detail="Order not found")

    return {"trade_no": order.trade_no, "amount": str(order.amount), "status": order.status}
