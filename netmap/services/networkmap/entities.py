"""Entity source - the monitored inventory a map is drawn from.

The pipeline only talks to the ``EntitySource`` interface.  Two pieces
live here:

- ``InMemoryEntitySource``: a snapshot over plain records.  Used directly
  by callers that already hold their entities, and by tests.
- ``load_entity_source``: reads the inventory tables (devices,
  sub-components, links, groups) into such a snapshot, so the synchronous
  pipeline never touches the database session.
"""

import ipaddress
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from netmap.db.models import (
    Device,
    DiscoveryTask,
    Group,
    SubComponent,
    SubComponentLink as SubComponentLinkRow,
)
from .errors import EntitySourceUnavailable
from .types import HealthState

logger = logging.getLogger(__name__)


# ── Records ───────────────────────────────────────────────────────────


@dataclass
class RawEntity:
    """One inventory record as handed to the graph builder.

    ``type`` is an explicit tag ("device", "subcomponent", "generic"); when
    it is missing the builder classifies by the ids present.  ``parent_id``
    is the parent device id for devices and the parent entity key for
    generic nodes.
    """
    key: str
    label: str = ""
    type: Optional[str] = None
    device_id: Optional[int] = None
    subcomponent_id: Optional[int] = None
    parent_id: Optional[str] = None
    status: Optional[str] = None
    os_name: Optional[str] = None
    module_type: Optional[str] = None
    address: Optional[str] = None
    group_id: Optional[int] = None
    image: Optional[str] = None
    shape: Optional[str] = None
    width: Optional[float] = None
    height: Optional[float] = None
    state: str = ""
    networkmap_id: Optional[str] = None


@dataclass(frozen=True)
class SubComponentLink:
    """A configured link between two sub-components and their devices."""
    subcomponent_a: int
    device_a: int
    subcomponent_b: int
    device_b: int


@dataclass(frozen=True)
class SubComponentInfo:
    id: int
    device_id: int
    name: str
    module_type: Optional[str] = None
    status: Optional[HealthState] = None


@dataclass
class EntityFilter:
    group_id: Optional[int] = None
    include_subgroups: bool = True
    network: Optional[str] = None  # CIDR
    task_id: Optional[int] = None
    text_filter: str = ""
    empty_map: bool = False


# ── Status helpers ────────────────────────────────────────────────────

# Highest first: the first state present decides the device status.
_DEVICE_STATUS_PRECEDENCE = (
    HealthState.ALERT_FIRED,
    HealthState.CRITICAL,
    HealthState.WARNING,
    HealthState.UNKNOWN,
    HealthState.NORMAL,
)


def device_status_from_counts(statuses: Iterable[Optional[HealthState]]) -> HealthState:
    """Summarise sub-component statuses into one device status."""
    present = {s for s in statuses if s is not None}
    for state in _DEVICE_STATUS_PRECEDENCE:
        if state in present:
            return state
    return HealthState.NOT_INIT


# ── Interface ─────────────────────────────────────────────────────────


class EntitySource(ABC):
    """Interface every inventory backend must implement."""

    @abstractmethod
    def list_entities(self, flt: EntityFilter) -> list[RawEntity]: ...

    @abstractmethod
    def get_relationship_links(
        self,
        device_id: Optional[int] = None,
        subcomponent_id: Optional[int] = None,
    ) -> list[SubComponentLink]: ...

    @abstractmethod
    def get_entity_status(self, entity: RawEntity) -> Optional[HealthState]: ...

    @abstractmethod
    def get_subcomponent(self, subcomponent_id: int) -> Optional[SubComponentInfo]: ...


class InMemoryEntitySource(EntitySource):
    """Entity source over records already held in memory."""

    def __init__(
        self,
        entities: Sequence[RawEntity] = (),
        links: Sequence[SubComponentLink] = (),
        subcomponents: Sequence[SubComponentInfo] = (),
        group_parents: Optional[dict[int, Optional[int]]] = None,
        task_subnets: Optional[dict[int, str]] = None,
    ):
        self._entities = list(entities)
        self._links = list(links)
        self._subcomponents = {s.id: s for s in subcomponents}
        self._group_parents = dict(group_parents or {})
        self._task_subnets = dict(task_subnets or {})

    # -- filtering ---------------------------------------------------------

    def _groups_for(self, group_id: int, include_subgroups: bool) -> set[int]:
        groups = {group_id}
        if not include_subgroups:
            return groups
        # Walk children until no new group shows up.
        changed = True
        while changed:
            changed = False
            for gid, parent in self._group_parents.items():
                if parent in groups and gid not in groups:
                    groups.add(gid)
                    changed = True
        return groups

    def list_entities(self, flt: EntityFilter) -> list[RawEntity]:
        if flt.empty_map:
            return []

        network = flt.network
        if flt.task_id is not None:
            network = self._task_subnets.get(flt.task_id)
            if network is None:
                logger.warning("Discovery task %s not found", flt.task_id)
                return []

        selected = self._entities
        if network:
            net = ipaddress.ip_network(network, strict=False)
            selected = [e for e in selected if _address_in(e.address, net)]
        elif flt.group_id is not None:
            groups = self._groups_for(flt.group_id, flt.include_subgroups)
            selected = [e for e in selected if e.group_id in groups]

        if flt.text_filter:
            needle = flt.text_filter.lower()
            selected = [e for e in selected if needle in (e.label or "").lower()]

        return list(selected)

    # -- lookups -----------------------------------------------------------

    def get_relationship_links(
        self,
        device_id: Optional[int] = None,
        subcomponent_id: Optional[int] = None,
    ) -> list[SubComponentLink]:
        found = []
        for link in self._links:
            if subcomponent_id is not None:
                if subcomponent_id in (link.subcomponent_a, link.subcomponent_b):
                    found.append(link)
            elif device_id is not None:
                if device_id in (link.device_a, link.device_b):
                    found.append(link)
        return found

    def get_entity_status(self, entity: RawEntity) -> Optional[HealthState]:
        if entity.status is not None:
            return HealthState.coerce(entity.status)
        if entity.subcomponent_id is not None:
            info = self._subcomponents.get(entity.subcomponent_id)
            return info.status if info else None
        if entity.device_id is not None:
            return device_status_from_counts(
                s.status for s in self._subcomponents.values()
                if s.device_id == entity.device_id
            )
        return None

    def get_subcomponent(self, subcomponent_id: int) -> Optional[SubComponentInfo]:
        return self._subcomponents.get(subcomponent_id)


def _address_in(address: Optional[str], net) -> bool:
    if not address:
        return False
    try:
        return ipaddress.ip_address(address.strip()) in net
    except ValueError:
        return False


# ── Database snapshot ─────────────────────────────────────────────────


async def load_entity_source(db: AsyncSession, flt: EntityFilter) -> InMemoryEntitySource:
    """Read the inventory tables into an in-memory entity source.

    Raises EntitySourceUnavailable when the inventory cannot be queried.
    """
    try:
        group_rows = (await db.execute(select(Group.id, Group.parent_id))).all()
        task_rows = (await db.execute(select(DiscoveryTask.id, DiscoveryTask.subnet))).all()
        devices: Sequence[Device] = (
            await db.execute(
                select(Device).where(Device.disabled.is_(False)).order_by(Device.parent_id, Device.id)
            )
        ).scalars().all()
        subs: Sequence[SubComponent] = (
            await db.execute(select(SubComponent).where(SubComponent.disabled.is_(False)))
        ).scalars().all()
        link_rows: Sequence[SubComponentLinkRow] = (
            await db.execute(
                select(SubComponentLinkRow).where(SubComponentLinkRow.disabled.is_(False))
            )
        ).scalars().all()
    except SQLAlchemyError as e:
        logger.error(f"Inventory query failed: {e}")
        raise EntitySourceUnavailable(f"Inventory unavailable: {e}") from e

    subcomponents = [
        SubComponentInfo(
            id=s.id,
            device_id=s.device_id,
            name=s.name,
            module_type=s.module_type,
            status=HealthState.coerce(s.status),
        )
        for s in subs
    ]
    owner = {s.id: s.device_id for s in subcomponents}

    links = []
    for row in link_rows:
        dev_a = owner.get(row.subcomponent_a)
        dev_b = owner.get(row.subcomponent_b)
        if dev_a is None or dev_b is None:
            continue
        links.append(SubComponentLink(row.subcomponent_a, dev_a, row.subcomponent_b, dev_b))

    entities = [
        RawEntity(
            key=str(d.id),
            label=d.alias,
            type="device",
            device_id=d.id,
            parent_id=str(d.parent_id) if d.parent_id else None,
            os_name=d.os_name,
            address=d.address,
            group_id=d.group_id,
        )
        for d in devices
    ]

    logger.debug(
        "Loaded inventory snapshot: %d devices, %d sub-components, %d links",
        len(entities), len(subcomponents), len(links),
    )
    return InMemoryEntitySource(
        entities=entities,
        links=links,
        subcomponents=subcomponents,
        group_parents={gid: parent for gid, parent in group_rows},
        task_subnets={tid: subnet for tid, subnet in task_rows},
    )
