"""
Module: inventory_kernel.models.reference
Responsibility: ORM tables for reference (lookup) data: the client -> market
    -> sloc -> area hierarchy, crews, locations, statuses, the item catalogue
    and the action catalogue with its status adjacency.
Architecture position: Kernel > Models.  May import from db/base.py only.

The kernel only reads these tables (through LookupSelector); they are
maintained by administrative tooling outside the kernel.
"""

from sqlalchemy import Boolean, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from inventory_kernel.db.base import Base


class Client(Base):
    __tablename__ = "clients"

    name: Mapped[str] = mapped_column(String(200), nullable=False)


class Market(Base):
    __tablename__ = "markets"

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    client_id: Mapped[int | None] = mapped_column(ForeignKey("clients.id"), nullable=True)


class Sloc(Base):
    """Storage location (warehouse) within a market."""

    __tablename__ = "slocs"

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    market_id: Mapped[int | None] = mapped_column(ForeignKey("markets.id"), nullable=True)


class Crew(Base):
    __tablename__ = "crews"

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    market_id: Mapped[int | None] = mapped_column(ForeignKey("markets.id"), nullable=True)


class Area(Base):
    __tablename__ = "areas"

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    sloc_id: Mapped[int | None] = mapped_column(ForeignKey("slocs.id"), nullable=True)


class LocationType(Base):
    __tablename__ = "location_types"

    name: Mapped[str] = mapped_column(String(100), nullable=False)


class Location(Base):
    __tablename__ = "locations"

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    location_type_id: Mapped[int | None] = mapped_column(
        ForeignKey("location_types.id"), nullable=True
    )


class Status(Base):
    __tablename__ = "statuses"

    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)


class Category(Base):
    __tablename__ = "categories"

    name: Mapped[str] = mapped_column(String(100), nullable=False)


class UnitOfMeasure(Base):
    __tablename__ = "units_of_measure"

    name: Mapped[str] = mapped_column(String(50), nullable=False)


class Provider(Base):
    __tablename__ = "inventory_providers"

    name: Mapped[str] = mapped_column(String(200), nullable=False)


class InventoryType(Base):
    __tablename__ = "inventory_types"

    name: Mapped[str] = mapped_column(String(100), nullable=False)


class ItemType(Base):
    """Catalogue entry for an item."""

    __tablename__ = "item_types"

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    manufacturer: Mapped[str | None] = mapped_column(String(200), nullable=True)
    part_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    units_per_package: Mapped[int | None] = mapped_column(Integer, nullable=True)
    low_quantity_threshold: Mapped[int | None] = mapped_column(Integer, nullable=True)
    category_id: Mapped[int | None] = mapped_column(ForeignKey("categories.id"), nullable=True)
    unit_of_measure_id: Mapped[int | None] = mapped_column(
        ForeignKey("units_of_measure.id"), nullable=True
    )
    provider_id: Mapped[int | None] = mapped_column(
        ForeignKey("inventory_providers.id"), nullable=True
    )
    inventory_type_id: Mapped[int | None] = mapped_column(
        ForeignKey("inventory_types.id"), nullable=True
    )


class ActionType(Base):
    """Catalogue of inventory actions shown to users."""

    __tablename__ = "action_types"

    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    style: Mapped[str | None] = mapped_column(String(50), nullable=True)
    allow_signature: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)


class ActionStatus(Base):
    """Status -> action adjacency row."""

    __tablename__ = "action_statuses"

    __table_args__ = (
        UniqueConstraint("status_id", "action_id", name="uq_action_status"),
    )

    status_id: Mapped[int] = mapped_column(ForeignKey("statuses.id"), nullable=False)
    action_id: Mapped[int] = mapped_column(ForeignKey("action_types.id"), nullable=False)
