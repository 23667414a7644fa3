"""
Database models -- SQLAlchemy ORM definitions for the catalog.
Properties host Retreats and Programs; Retreats and Programs are booked
through dated instances. Images and price modifiers attach to any of the
three listing entities. Compatible with both PostgreSQL and SQLite.
"""

from datetime import datetime

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


class Property(Base):
    """A venue. Verified when an admin has stamped `verified`."""
    __tablename__ = "properties"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(200), nullable=False, index=True)
    desc_short = Column(Text)
    type = Column(String(50), index=True)
    rating = Column(String(20))
    city = Column(String(120), index=True)
    country = Column(String(2), index=True)  # ISO 3166-1 alpha-2
    address = Column(Text)
    lat = Column(Float)
    lng = Column(Float)
    status = Column(String(20), nullable=False, default="published", index=True)
    verified = Column(DateTime, nullable=True)
    host_id = Column(Integer, index=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)

    retreats = relationship("Retreat", back_populates="property")
    programs = relationship("Program", back_populates="property")


class Retreat(Base):
    """A retreat offered at a property."""
    __tablename__ = "retreats"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(200), nullable=False, index=True)
    category = Column(String(50), index=True)
    desc = Column(Text)
    duration = Column(String(50))
    booking_type = Column(String(30), default="fixed_range")
    min_guests = Column(Integer, nullable=False, default=1)
    max_guests = Column(Integer, nullable=False, default=-1)  # -1 = no upper limit
    status = Column(String(20), nullable=False, default="published", index=True)
    verified = Column(DateTime, nullable=True)
    property_id = Column(Integer, ForeignKey("properties.id"), index=True)
    host_id = Column(Integer, index=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)

    property = relationship("Property", back_populates="retreats")
    instances = relationship("RetreatInstance", back_populates="retreat")


class Program(Base):
    """A program offered at a property."""
    __tablename__ = "programs"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(200), nullable=False, index=True)
    category = Column(String(50), index=True)
    desc = Column(Text)
    duration = Column(String(50))
    booking_type = Column(String(30), default="open")
    min_guests = Column(Integer, nullable=False, default=1)
    max_guests = Column(Integer, nullable=False, default=-1)
    status = Column(String(20), nullable=False, default="published", index=True)
    verified = Column(DateTime, nullable=True)
    property_id = Column(Integer, ForeignKey("properties.id"), index=True)
    host_id = Column(Integer, index=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)

    property = relationship("Property", back_populates="programs")
    instances = relationship("ProgramInstance", back_populates="program")


class RetreatInstance(Base):
    """A bookable, dated occurrence of a retreat."""
    __tablename__ = "retreat_instances"

    id = Column(Integer, primary_key=True, index=True)
    retreat_id = Column(Integer, ForeignKey("retreats.id"), nullable=False, index=True)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    available_slots = Column(Integer, nullable=False, default=0)
    is_full = Column(Boolean, nullable=False, default=False)

    retreat = relationship("Retreat", back_populates="instances")

    __table_args__ = (
        Index("ix_retreat_instances_dates", "retreat_id", "start_date", "end_date"),
    )


class ProgramInstance(Base):
    """A bookable, dated occurrence of a program."""
    __tablename__ = "program_instances"

    id = Column(Integer, primary_key=True, index=True)
    program_id = Column(Integer, ForeignKey("programs.id"), nullable=False, index=True)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    available_slots = Column(Integer, nullable=False, default=0)
    is_full = Column(Boolean, nullable=False, default=False)

    program = relationship("Program", back_populates="instances")

    __table_args__ = (
        Index("ix_program_instances_dates", "program_id", "start_date", "end_date"),
    )


class Image(Base):
    """
    An image stored in object storage. `file_path` is the storage key or URL
    and is treated as an opaque string. Lower `order` is shown first.
    """
    __tablename__ = "images"

    id = Column(Integer, primary_key=True, index=True)
    file_path = Column(Text, nullable=False)
    desc = Column(Text, default="")
    order = Column(Integer, nullable=False, default=0)
    property_id = Column(Integer, ForeignKey("properties.id"), index=True)
    retreat_id = Column(Integer, ForeignKey("retreats.id"), index=True)
    program_id = Column(Integer, ForeignKey("programs.id"), index=True)


class PriceMod(Base):
    """
    A time- and guest-scoped price adjustment.
    Null date or guest bounds mean the modifier is unbounded on that side.
    """
    __tablename__ = "price_mods"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(200), nullable=False, default="Price")
    desc = Column(Text, default="")
    type = Column(String(30), nullable=False, default="BASE_PRICE")  # BASE_PRICE / BASE_MOD / FEE / TAX / ADDON
    currency = Column(String(3), nullable=False, default="USD")
    value = Column(Integer, nullable=False, default=0)
    unit = Column(String(20), nullable=False, default="FIXED")  # FIXED / PERCENT
    date_start = Column(Date, nullable=True)
    date_end = Column(Date, nullable=True)
    guest_min = Column(Integer, nullable=True)
    guest_max = Column(Integer, nullable=True)
    room_type = Column(String(50), default="all")
    property_id = Column(Integer, ForeignKey("properties.id"), index=True)
    retreat_id = Column(Integer, ForeignKey("retreats.id"), index=True)
    program_id = Column(Integer, ForeignKey("programs.id"), index=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
