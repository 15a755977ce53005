from datetime import datetime, timezone

from sqlalchemy import (
    Column,
    String,
    DateTime,
    ForeignKey,
    Integer,
    Text,
    Float,
    Index,
)
from sqlalchemy.orm import relationship

from .database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Request(Base):
    """Vehicle purchase request written by the intake form.

    Rows are created upstream; this service only reads them.
    """

    __tablename__ = "requests"
    id = Column(String, primary_key=True)
    created_at = Column(DateTime, nullable=False, default=_utcnow)
    license_plate = Column(String)
    km = Column(Integer)
    make = Column(String)
    model = Column(String)
    registration_year = Column(Integer)
    engine_size = Column(Integer)
    fuel_type = Column(Integer, default=0)
    transmission_type = Column(Integer, default=0)
    car_condition = Column(Integer, default=0)
    engine_condition = Column(Integer, default=0)
    interior_conditions = Column(Text)
    exterior_conditions = Column(Text)
    mechanical_conditions = Column(Text)
    cap = Column(String)
    city = Column(String)
    first_name = Column(String)
    last_name = Column(String)
    email = Column(String)
    phone = Column(String)
    desired_price = Column(Float)

    statuses = relationship("RequestStatus", back_populates="request", order_by="RequestStatus.change_date")
    offers = relationship("RequestOffer", back_populates="request")
    images = relationship("RequestImage", back_populates="request", order_by="RequestImage.id")


class RequestStatus(Base):
    __tablename__ = "request_statuses"
    id = Column(Integer, primary_key=True, autoincrement=True)
    request_id = Column(String, ForeignKey("requests.id"), nullable=False, index=True)
    status = Column(Integer, nullable=False)
    change_date = Column(DateTime, nullable=False, default=_utcnow)
    final_outcome = Column(Integer, nullable=True)
    close_reason = Column(Integer, nullable=True)
    notes = Column(Text, nullable=True)

    request = relationship("Request", back_populates="statuses")

    __table_args__ = (
        Index("ix_request_statuses_request_change", "request_id", "change_date"),
    )


class RequestManagement(Base):
    # One row per request; there is deliberately no final_outcome column,
    # the outcome is only recorded on the status history.
    __tablename__ = "request_managements"
    request_id = Column(String, ForeignKey("requests.id"), primary_key=True)
    notes = Column(Text, nullable=False, default="")
    range_min = Column(Float, nullable=False, default=0)
    range_max = Column(Float, nullable=False, default=0)
    registration_cost = Column(Float, nullable=False, default=0)
    transport_cost = Column(Float, nullable=False, default=0)
    purchase_price = Column(Float, nullable=False, default=0)
    sale_price = Column(Float, nullable=False, default=0)
    close_reason = Column(Integer, nullable=False, default=0)


class RequestOffer(Base):
    __tablename__ = "request_offers"
    id = Column(Integer, primary_key=True, autoincrement=True)
    request_id = Column(String, ForeignKey("requests.id"), nullable=False, index=True)
    description = Column(Text, nullable=False)
    price = Column(Float, nullable=False)
    offer_date = Column(DateTime, nullable=False, default=_utcnow)

    request = relationship("Request", back_populates="offers")


class RequestImage(Base):
    __tablename__ = "request_images"
    id = Column(Integer, primary_key=True, autoincrement=True)
    request_id = Column(String, ForeignKey("requests.id"), nullable=False, index=True)
    name = Column(String, nullable=False, unique=True)

    request = relationship("Request", back_populates="images")
