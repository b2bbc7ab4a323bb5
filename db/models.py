from sqlalchemy import Column, Integer, BigInteger, String, Text, Float, Boolean, DateTime, JSON
from sqlalchemy.orm import declarative_base
from datetime import datetime, timezone

Base = declarative_base()

TICKET_OPEN = "open"
TICKET_CLOSED = "closed"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SupportTicket(Base):
    __tablename__ = "support_tickets"

    id = Column(Integer, primary_key=True)
    user_id = Column(BigInteger, nullable=False, index=True)
    username = Column(String)  # display handle at creation time
    issue = Column(Text, nullable=False)
    reply = Column(Text)  # set once, on close
    status = Column(String, nullable=False, default=TICKET_OPEN)  # open / closed
    created_at = Column(DateTime, default=_utcnow)
    updated_at = Column(DateTime, default=_utcnow)

    def __repr__(self) -> str:
        return f"<SupportTicket #{self.id} user={self.user_id} status={self.status}>"


class Faq(Base):
    __tablename__ = "faqs"

    id = Column(Integer, primary_key=True)
    question = Column(Text, nullable=False)
    answer = Column(Text, nullable=False)


# The tables below are normally owned by the shop backend. They are declared
# so a fresh database (and the test suite) gets the same shape; lookups go
# through schema-agnostic Core queries and do not depend on these classes.

class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True)
    order_number = Column(String, unique=True)
    customer = Column(String)
    status = Column(String)
    paymentmethod = Column(String)
    total = Column(Float)
    date = Column(String)
    created_at = Column(DateTime, default=_utcnow)


class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    price = Column(Float)
    originalPrice = Column(Float)
    stock = Column(Integer)
    category = Column(String)
    tags = Column(JSON)
    description = Column(Text)
    image = Column(String)


class ExclusiveProduct(Base):
    __tablename__ = "exclusive_products"

    id = Column(Integer, primary_key=True)
    uuid = Column(String)
    name = Column(String, nullable=False)
    price = Column(Float)
    plan = Column(String)
    tags = Column(JSON)
    description = Column(Text)
    image_url = Column(String)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=_utcnow)


class Profile(Base):
    __tablename__ = "profiles"

    id = Column(Integer, primary_key=True)
    email = Column(String)
    full_name = Column(String)
    created_at = Column(DateTime, default=_utcnow)
