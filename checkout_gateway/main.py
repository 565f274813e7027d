import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from checkout_gateway.config import get_config
from checkout_gateway.database import SessionLocal, init_db
from checkout_gateway.errors import UpstreamUnavailableError
from checkout_gateway.registrar import registrar
from checkout_gateway.routes import router
from checkout_gateway.stripe_service import configure_stripe

logging.basicConfig(
    level=get_config().log_level.upper(),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    config = get_config()
    init_db()
    configure_stripe(config)

    if config.register_webhook_on_startup:
        db = SessionLocal()
        try:
            if not registrar.ensure(db, config):
                logger.error("Webhook endpoint registration failed, checkout will retry it")
        except UpstreamUnavailableError:
            logger.warning("Stripe unreachable at startup, checkout will retry webhook registration")
        finally:
            db.close()

    yield


app = FastAPI(title="Stripe Checkout Gateway", lifespan=lifespan)

app.include_router(router)
