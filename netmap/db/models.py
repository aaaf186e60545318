"""SQLAlchemy ORM models for the network map service.

Two families of tables live here: the monitoring inventory the maps are
drawn from (groups, devices, sub-components and their links, discovery
tasks) and the stored map definitions with their generated nodes and
relations.
"""

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    JSON,
    Index,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .engine import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return uuid.uuid4().hex


# ── Inventory ─────────────────────────────────────────────────────────


class Group(Base):
    __tablename__ = "groups"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    parent_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("groups.id"), nullable=True, index=True
    )


class Device(Base):
    __tablename__ = "devices"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    alias: Mapped[str] = mapped_column(String(256), nullable=False, index=True)
    group_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("groups.id"), nullable=True
    )
    parent_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)  # parent device
    os_name: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    address: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    disabled: Mapped[bool] = mapped_column(Boolean, default=False)

    # relationships
    subcomponents: Mapped[list["SubComponent"]] = relationship(
        back_populates="device", lazy="noload", cascade="all, delete-orphan"
    )

    __table_args__ = (
        Index("ix_devices_group", "group_id"),
    )


class SubComponent(Base):
    """A measurement point owned by a device (interface, sensor, ...)."""
    __tablename__ = "subcomponents"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    device_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("devices.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(256), nullable=False)
    module_type: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    status: Mapped[str] = mapped_column(String(16), default="not_init")  # health state
    disabled: Mapped[bool] = mapped_column(Boolean, default=False)

    # relationships
    device: Mapped["Device"] = relationship(back_populates="subcomponents")

    __table_args__ = (
        Index("ix_subcomponents_device", "device_id"),
    )


class SubComponentLink(Base):
    """Undirected link between two sub-components (e.g. two switch ports)."""
    __tablename__ = "subcomponent_links"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    subcomponent_a: Mapped[int] = mapped_column(
        Integer, ForeignKey("subcomponents.id", ondelete="CASCADE"), nullable=False
    )
    subcomponent_b: Mapped[int] = mapped_column(
        Integer, ForeignKey("subcomponents.id", ondelete="CASCADE"), nullable=False
    )
    disabled: Mapped[bool] = mapped_column(Boolean, default=False)

    __table_args__ = (
        Index("ix_subcomponent_links_a", "subcomponent_a"),
        Index("ix_subcomponent_links_b", "subcomponent_b"),
    )


class DiscoveryTask(Base):
    __tablename__ = "discovery_tasks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    subnet: Mapped[str] = mapped_column(String(64), nullable=False)


# ── Network maps ──────────────────────────────────────────────────────


class NetworkMap(Base):
    __tablename__ = "network_maps"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String(256), nullable=False, index=True)
    group_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    source: Mapped[str] = mapped_column(String(16), default="group")  # group | task | network
    source_data: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    generation_method: Mapped[str] = mapped_column(String(16), default="spring1")
    filter: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)  # MapFilter fields
    options: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)  # remaining MapOptions
    width: Mapped[int] = mapped_column(Integer, default=0)
    height: Mapped[int] = mapped_column(Integer, default=0)
    center_x: Mapped[float] = mapped_column(Float, default=0.0)
    center_y: Mapped[float] = mapped_column(Float, default=0.0)
    source_period: Mapped[int] = mapped_column(Integer, default=60)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )

    # relationships
    nodes: Mapped[list["NetworkMapNode"]] = relationship(
        back_populates="network_map", lazy="noload", cascade="all, delete-orphan",
        passive_deletes=True,
    )
    relations: Mapped[list["NetworkMapRelation"]] = relationship(
        back_populates="network_map", lazy="noload", cascade="all, delete-orphan",
        passive_deletes=True,
    )


class NetworkMapNode(Base):
    __tablename__ = "network_map_nodes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    map_id: Mapped[str] = mapped_column(
        String(32), ForeignKey("network_maps.id", ondelete="CASCADE"), nullable=False
    )
    id_node: Mapped[int] = mapped_column(Integer, nullable=False)  # id within the map graph
    type: Mapped[str] = mapped_column(String(16), nullable=False)
    source_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    device_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    parent_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    label: Mapped[str] = mapped_column(String(256), default="")
    x: Mapped[float] = mapped_column(Float, default=0.0)
    y: Mapped[float] = mapped_column(Float, default=0.0)
    z: Mapped[int] = mapped_column(Integer, default=0)
    state: Mapped[str] = mapped_column(String(32), default="")  # "" | holding_area
    deleted: Mapped[bool] = mapped_column(Boolean, default=False)
    style: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)

    # relationships
    network_map: Mapped["NetworkMap"] = relationship(back_populates="nodes")

    __table_args__ = (
        Index("ix_network_map_nodes_map", "map_id"),
        Index("ix_network_map_nodes_map_node", "map_id", "id_node", unique=True),
    )


class NetworkMapRelation(Base):
    __tablename__ = "network_map_relations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    map_id: Mapped[str] = mapped_column(
        String(32), ForeignKey("network_maps.id", ondelete="CASCADE"), nullable=False
    )
    parent_node_id: Mapped[int] = mapped_column(Integer, nullable=False)
    child_node_id: Mapped[int] = mapped_column(Integer, nullable=False)
    parent_type: Mapped[str] = mapped_column(String(16), nullable=False)
    child_type: Mapped[str] = mapped_column(String(16), nullable=False)
    parent_source_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    child_source_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    parent_device_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    child_device_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    link_color: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    text_start: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    text_end: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    deleted: Mapped[bool] = mapped_column(Boolean, default=False)

    # relationships
    network_map: Mapped["NetworkMap"] = relationship(back_populates="relations")

    __table_args__ = (
        Index("ix_network_map_relations_map", "map_id"),
    )
