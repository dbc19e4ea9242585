from sqlalchemy import (
    Column,
    BigInteger,
    Integer,
    Text,
    Numeric,
    DateTime,
    ForeignKey,
)
from sqlalchemy.sql import func
from sqlalchemy.orm import declarative_base

Base = declarative_base()

# BIGINT does not autoincrement on SQLite
PK = BigInteger().with_variant(Integer, "sqlite")


class PendingOrder(Base):
    __tablename__ = "pending_orders"

    id = Column(PK, primary_key=True, autoincrement=True)
    external_reference = Column(Text, nullable=False, unique=True, index=True)
    preference_id = Column(Text, nullable=True)
    first_name = Column(Text, nullable=False, server_default="")
    last_name = Column(Text, nullable=False, server_default="")
    email = Column(Text, nullable=False, server_default="")
    document = Column(Text, nullable=False, server_default="")
    address = Column(Text, nullable=False, server_default="")
    province = Column(Text, nullable=False, server_default="")
    city = Column(Text, nullable=False, server_default="")
    postal_code = Column(Text, nullable=False, server_default="")
    country = Column(Text, nullable=False, server_default="")
    phone = Column(Text, nullable=False, server_default="")
    shipping_method = Column(Text, nullable=False, server_default="")
    shipping_carrier = Column(Text, nullable=False, server_default="")
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class PendingOrderItem(Base):
    __tablename__ = "pending_order_items"

    id = Column(PK, primary_key=True, autoincrement=True)
    external_reference = Column(Text, nullable=False, index=True)
    product_name = Column(Text, nullable=False, server_default="")
    unit_price = Column(Numeric(12, 2), nullable=False, server_default="0")
    image = Column(Text, nullable=True)
    quantity = Column(Integer, nullable=False, server_default="1")
    size = Column(Text, nullable=True)
    color = Column(Text, nullable=True)


class ConfirmedOrder(Base):
    __tablename__ = "confirmed_orders"

    id = Column(PK, primary_key=True, autoincrement=True)
    external_reference = Column(Text, nullable=False, unique=True)
    payment_id = Column(Text, nullable=True)
    first_name = Column(Text, nullable=False, server_default="")
    last_name = Column(Text, nullable=False, server_default="")
    email = Column(Text, nullable=False, server_default="")
    document = Column(Text, nullable=False, server_default="")
    address = Column(Text, nullable=False, server_default="")
    province = Column(Text, nullable=False, server_default="")
    city = Column(Text, nullable=False, server_default="")
    postal_code = Column(Text, nullable=False, server_default="")
    country = Column(Text, nullable=False, server_default="")
    phone = Column(Text, nullable=False, server_default="")
    shipping_method = Column(Text, nullable=False, server_default="")
    shipping_carrier = Column(Text, nullable=False, server_default="")
    total_amount = Column(Numeric(12, 2), nullable=False, server_default="0")
    payment_status = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class ConfirmedOrderItem(Base):
    __tablename__ = "confirmed_order_items"

    id = Column(PK, primary_key=True, autoincrement=True)
    order_id = Column(PK, ForeignKey("confirmed_orders.id", ondelete="CASCADE"), nullable=False, index=True)
    product_name = Column(Text, nullable=False, server_default="")
    unit_price = Column(Numeric(12, 2), nullable=False, server_default="0")
    image = Column(Text, nullable=True)
    quantity = Column(Integer, nullable=False, server_default="1")
    size = Column(Text, nullable=True)
    color = Column(Text, nullable=True)
