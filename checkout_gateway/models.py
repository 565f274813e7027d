from sqlalchemy import Column, DateTime, ForeignKey, Integer, Numeric, String, func
from checkout_gateway.database import Base

STRIPE_WEBHOOK_ENDPOINT_SECRET = "stripe_webhook_endpoint_secret"

ORDER_PENDING = "pending"
ORDER_PAID = "paid"


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True)
    email = Column(String, unique=True, index=True, nullable=False)
    user_name = Column(String)
    balance = Column(Numeric(12, 2), nullable=False, default=0)


class Order(Base):
    __tablename__ = "orders"

    trade_no = Column(String, primary_key=True)    # metadata.trade_no on the checkout session
    user_id = Column(Integer, ForeignKey("users.id"), index=True, nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)  # local currency
    status = Column(String, nullable=False, default=ORDER_PENDING)  # pending | paid
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    paid_at = Column(DateTime(timezone=True))


class Setting(Base):
    __tablename__ = "settings"

    item = Column(String, primary_key=True)
    value = Column(String, nullable=False, default="")
