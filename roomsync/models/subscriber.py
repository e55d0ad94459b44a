"""Subscriber table mirrored from the billing provider."""
from sqlalchemy import Column, String, Integer
from roomsync.core.database import Base


class Subscriber(Base):
    """One row per active billing subscription, rebuilt on every changed sync."""

    __tablename__ = "subscriber"

    id = Column(Integer, primary_key=True, autoincrement=True)
    customer_id = Column("customerId", String, nullable=False, index=True)
    email = Column(String, nullable=True)
    status = Column(String, nullable=False)
    uid = Column(String, nullable=True, index=True)
