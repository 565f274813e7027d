from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base

from checkout_gateway.config import get_config

DATABASE_URL = get_config().database_url
if not DATABASE_URL:
    raise RuntimeError("DATABASE_URL is not set. Check your .env file.")

engine = create_engine(
    DATABASE_URL,
    connect_args={"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}
)

SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
Base = declarative_base()


def init_db():
    """Create tables and seed the webhook secret row the registrar writes to."""
    from checkout_gateway.models import Setting, STRIPE_WEBHOOK_ENDPOINT_SECRET

    Base.metadata.create_all(bind=engine)

    db = SessionLocal()
    try:
        if db.get(Setting, STRIPE_WEBHOOK_ENDPOINT_SECRET) is None:
            db.add(Setting(item=STRIPE_WEBHOOK_ENDPOINT_SECRET, value=""))
            db.commit()
    finally:
        db.close()
