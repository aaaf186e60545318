"""Core graph value types: nodes, relations and the graph that owns them.

Every stage of the pipeline takes a ``Graph`` and hands back a new one;
nothing keeps builder state between calls.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Iterable, Iterator, Optional


ROOT_NODE_ID = 0


class NodeType(str, Enum):
    DEVICE = "device"
    SUBCOMPONENT = "subcomponent"
    ROOT = "root"
    GENERIC = "generic"


class HealthState(str, Enum):
    NORMAL = "normal"
    NOT_INIT = "not_init"
    UNKNOWN = "unknown"
    WARNING = "warning"
    CRITICAL = "critical"
    ALERT_FIRED = "alert_fired"

    @classmethod
    def coerce(cls, value: object) -> Optional["HealthState"]:
        """Map a stored status value to a member, or None if unrecognised."""
        if value is None:
            return None
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return None


@dataclass(frozen=True)
class Node:
    """A node placed on the map."""
    id_node: int
    type: NodeType
    source_id: str  # entity key: device id, sub-component id or generic key
    label: str
    status: Optional[HealthState] = None
    device_id: Optional[int] = None
    subcomponent_id: Optional[int] = None
    parent_id: Optional[str] = None  # parent device id (devices) or parent entity key (generic)
    x: float = 0.0
    y: float = 0.0
    z: int = 0
    state: str = ""  # "" | holding_area
    os_name: Optional[str] = None
    module_type: Optional[str] = None
    image: Optional[str] = None
    shape: str = "circle"
    width: Optional[float] = None
    height: Optional[float] = None
    networkmap_id: Optional[str] = None  # map a generic node links to
    id_db: Optional[int] = None

    @property
    def in_holding_area(self) -> bool:
        return self.state == "holding_area"

    def moved(self, x: float, y: float) -> "Node":
        return replace(self, x=x, y=y)


@dataclass(frozen=True)
class Relation:
    """A parent/child edge between two map nodes.

    For sub-component edges ``parent_source_id``/``child_source_id`` carry
    the sub-component ids and ``*_device_id`` the devices that own them.
    """
    parent_node_id: int
    child_node_id: int
    parent_type: NodeType
    child_type: NodeType
    parent_source_id: Optional[int] = None
    child_source_id: Optional[int] = None
    parent_device_id: Optional[int] = None
    child_device_id: Optional[int] = None
    link_color: Optional[str] = None
    text_start: Optional[str] = None
    text_end: Optional[str] = None
    id_db: Optional[int] = None

    @property
    def is_self_loop(self) -> bool:
        return self.parent_node_id == self.child_node_id

    @property
    def pair(self) -> frozenset[int]:
        return frozenset((self.parent_node_id, self.child_node_id))


@dataclass(frozen=True)
class Graph:
    nodes: tuple[Node, ...] = ()
    relations: tuple[Relation, ...] = ()

    def __post_init__(self):
        seen: set[int] = set()
        for node in self.nodes:
            if node.id_node in seen:
                raise ValueError(f"Duplicate node id {node.id_node}")
            seen.add(node.id_node)

    def node(self, id_node: int) -> Optional[Node]:
        for n in self.nodes:
            if n.id_node == id_node:
                return n
        return None

    def node_index(self) -> dict[int, Node]:
        return {n.id_node: n for n in self.nodes}

    def iter_type(self, node_type: NodeType) -> Iterator[Node]:
        return (n for n in self.nodes if n.type is node_type)

    @property
    def root(self) -> Optional[Node]:
        node = self.node(ROOT_NODE_ID)
        if node is not None and node.type is NodeType.ROOT:
            return node
        return None

    def with_nodes(self, nodes: Iterable[Node]) -> "Graph":
        return replace(self, nodes=tuple(nodes))

    def with_relations(self, relations: Iterable[Relation]) -> "Graph":
        return replace(self, relations=tuple(relations))

    @property
    def is_empty(self) -> bool:
        return not self.nodes and not self.relations


@dataclass(frozen=True)
class Canvas:
    """Canvas dimensions and view center for a laid-out map."""
    width: int
    height: int
    center_x: float = 0.0
    center_y: float = 0.0


@dataclass(frozen=True)
class BuiltGraph:
    """Output of the graph builder: the graph plus its layout-tool document."""
    graph: Graph
    dot: str
    orphans: tuple[Relation, ...] = field(default_factory=tuple)
