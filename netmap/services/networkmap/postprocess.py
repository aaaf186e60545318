"""Graph post-processor: positions, edge cleanup, status colors, holding area.

Every function takes values and returns new ones; a ``Graph`` is never
modified in place.
"""

import logging
from dataclasses import dataclass

from .errors import LayoutParseFailure
from .layout import Layout
from .options import MapOptions
from .relations import tidy_relations
from .types import Graph, HealthState, Node, NodeType

logger = logging.getLogger(__name__)

MAP_X_CORRECTION = 600
MAP_Y_CORRECTION = 150

HOLDING_AREA_COLUMNS = 11
HOLDING_AREA_ALIGN = 30

COL_NORMAL = "#82b92e"
COL_CRITICAL = "#e63c52"
COL_WARNING = "#f3b200"
COL_ALERTFIRED = "#ffa631"
COL_UNKNOWN = "#b2b2b2"
COL_NOTINIT = "#4a83f3"
COL_IGNORED = "#ddd"


# ── Positions ─────────────────────────────────────────────────────────


def apply_layout(graph: Graph, layout: Layout) -> Graph:
    """Copy layout positions onto the nodes.

    All or nothing: a node the layout did not place raises
    LayoutParseFailure instead of leaving stale coordinates behind.
    """
    missing = [n.id_node for n in graph.nodes if n.id_node not in layout.positions]
    if missing:
        raise LayoutParseFailure(
            f"Layout output has no coordinates for node(s) {', '.join(map(str, missing[:10]))}"
        )
    extra = set(layout.positions) - {n.id_node for n in graph.nodes}
    if extra:
        logger.debug(f"Ignoring {len(extra)} positions for unknown node ids")
    return graph.with_nodes(n.moved(*layout.positions[n.id_node]) for n in graph.nodes)


def map_center(graph: Graph) -> tuple[float, float]:
    """View center: the root node shifted by the map correction, else the first node."""
    anchor = graph.root
    if anchor is None and graph.nodes:
        anchor = graph.nodes[0]
    if anchor is None:
        return 0.0, 0.0
    return anchor.x - MAP_X_CORRECTION, anchor.y - MAP_Y_CORRECTION


# ── Status ────────────────────────────────────────────────────────────


_CRITICALITY = {
    HealthState.NORMAL: 0,
    HealthState.NOT_INIT: 1,
    HealthState.UNKNOWN: 2,
    HealthState.WARNING: 3,
    HealthState.CRITICAL: 4,
    HealthState.ALERT_FIRED: 5,
}

NO_CRITICALITY = -1

_STATUS_COLORS = {
    HealthState.NORMAL: COL_NORMAL,
    HealthState.NOT_INIT: COL_NOTINIT,
    HealthState.UNKNOWN: COL_UNKNOWN,
    HealthState.WARNING: COL_WARNING,
    HealthState.CRITICAL: COL_CRITICAL,
    HealthState.ALERT_FIRED: COL_ALERTFIRED,
}


def status_criticality(status) -> int:
    state = HealthState.coerce(status)
    if state is None:
        return NO_CRITICALITY
    return _CRITICALITY[state]


def worst_status(status_a, status_b):
    """Return whichever status is more critical (``status_b`` on a tie)."""
    if status_criticality(status_a) > status_criticality(status_b):
        return status_a
    return status_b


def color_by_status(status) -> str:
    if status is None:
        return COL_UNKNOWN
    state = HealthState.coerce(status)
    if state is None:
        return COL_IGNORED
    return _STATUS_COLORS[state]


def node_color(node: Node) -> str:
    if node.type is NodeType.ROOT:
        return COL_IGNORED
    if node.type in (NodeType.DEVICE, NodeType.SUBCOMPONENT, NodeType.GENERIC):
        return color_by_status(node.status)
    raise ValueError(f"Unhandled node type: {node.type!r}")


# ── Holding area ──────────────────────────────────────────────────────


@dataclass(frozen=True)
class HoldingSlot:
    row: int
    column: int
    x: float
    y: float


class HoldingArea:
    """Grid of slots below and right of the canvas for unplaced nodes.

    Slots are handed out in call order, eleven per row; rows past the
    last one pile up on it so nodes never drift further from the canvas.
    """

    def __init__(self, options: MapOptions):
        flt = options.map_filter
        self.radius = flt.node_radius
        self.origin_x = options.width + HOLDING_AREA_ALIGN + self.radius * 2 - flt.holding_area[0]
        self.origin_y = options.height + HOLDING_AREA_ALIGN + self.radius * 2 - flt.holding_area[1]
        self.max_y = self.origin_y + 10 * self.radius
        self.count = 0

    def next_slot(self) -> HoldingSlot:
        row, column = divmod(self.count, HOLDING_AREA_COLUMNS)
        x = self.origin_x + column * self.radius
        y = min(self.origin_y + row * self.radius, self.max_y)
        self.count += 1
        return HoldingSlot(row=row, column=column, x=x, y=y)


def place_holding_area_nodes(graph: Graph, options: MapOptions) -> Graph:
    area = HoldingArea(options)
    nodes = []
    for node in graph.nodes:
        if node.in_holding_area:
            slot = area.next_slot()
            node = node.moved(slot.x, slot.y)
        nodes.append(node)
    if area.count:
        logger.debug(f"Placed {area.count} nodes in the holding area")
    return graph.with_nodes(nodes)


def finalize_graph(graph: Graph, options: MapOptions) -> Graph:
    """Edge cleanup plus holding-area placement, ready for rendering.

    Freshly built graphs are already tidy; stored rows may not be.
    """
    graph = graph.with_relations(tidy_relations(graph.relations))
    return place_holding_area_nodes(graph, options)
