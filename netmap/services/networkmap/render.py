"""Renderer - turns a finished graph into the node/link payload the UI draws.

Persisted maps report database row ids (``id_db``); simulated maps reuse
the graph ids instead.
"""

import html
import re
from typing import Optional

from pydantic import BaseModel, Field

from netmap.config import settings
from .builder import truncate_label
from .entities import EntitySource
from .options import MapOptions
from .postprocess import (
    COL_ALERTFIRED,
    COL_CRITICAL,
    COL_NORMAL,
    COL_UNKNOWN,
    COL_WARNING,
    color_by_status,
    node_color,
    worst_status,
)
from .types import Canvas, Graph, HealthState, Node, NodeType, Relation

_IFACE_RE = re.compile(r"(.+)_ifOperStatus$")


# ── Payload models ────────────────────────────────────────────────────


class NodePayload(BaseModel):
    id: int
    id_db: int
    type: NodeType
    fixed: bool = True
    x: int
    y: int
    px: int
    py: int
    z: int = 0
    state: str = ""
    color: str
    device_id: Optional[int] = None
    subcomponent_id: Optional[int] = None
    image_url: str = ""
    image_width: int = 0
    image_height: int = 0
    raw_text: str = ""
    text: str = ""
    shape: str = "circle"
    width: float
    height: float
    map_id: Optional[str] = None
    networkmap_id: Optional[str] = None  # linked map, generic nodes only


class LinkPayload(BaseModel):
    id: int
    id_db: int
    source: int  # parent node
    target: int  # child node
    source_id_db: Optional[int] = None
    target_id_db: Optional[int] = None
    arrow_start: str = "device"
    arrow_end: str = "device"
    status_start: Optional[HealthState] = None
    status_end: Optional[HealthState] = None
    subcomponent_start: Optional[int] = None
    subcomponent_end: Optional[int] = None
    device_start: Optional[int] = None
    device_end: Optional[int] = None
    link_color: str
    text_start: Optional[str] = None
    text_end: Optional[str] = None


class StatusColor(BaseModel):
    status: HealthState
    color: str


class MapViewConfig(BaseModel):
    map_id: Optional[str] = None
    center: tuple[float, float] = (0.0, 0.0)
    dimensions: tuple[int, int] = (0, 0)
    node_radius: float
    holding_area_dimensions: tuple[int, int] = (0, 0)
    x_offs: Optional[float] = None
    y_offs: Optional[float] = None
    z_dash: Optional[float] = None
    refresh_time_ms: int
    root_label: str
    center_logo: str
    module_color_status: list[StatusColor] = Field(default_factory=list)
    module_color_status_unknown: str = COL_UNKNOWN


class MapPayload(BaseModel):
    config: MapViewConfig
    nodes: list[NodePayload] = Field(default_factory=list)
    links: list[LinkPayload] = Field(default_factory=list)
    error: Optional[str] = None


MODULE_COLOR_STATUS = [
    StatusColor(status=HealthState.NORMAL, color=COL_NORMAL),
    StatusColor(status=HealthState.CRITICAL, color=COL_CRITICAL),
    StatusColor(status=HealthState.WARNING, color=COL_WARNING),
    StatusColor(status=HealthState.ALERT_FIRED, color=COL_ALERTFIRED),
]


# ── Nodes ─────────────────────────────────────────────────────────────


def _slug(value: str) -> str:
    return re.sub(r"[^a-z0-9]+", "_", value.strip().lower()).strip("_")


def resolve_image(node: Node) -> str:
    """Image path for a node: explicit style first, then by type."""
    if node.type is NodeType.ROOT:
        return node.image or settings.CENTER_LOGO
    if node.image:
        return node.image
    if node.type is NodeType.DEVICE:
        return f"images/os_icons/{_slug(node.os_name or '') or 'unknown'}.png"
    if node.type is NodeType.SUBCOMPONENT:
        return f"images/module_types/{_slug(node.module_type or '') or 'generic'}.png"
    if node.type is NodeType.GENERIC:
        return ""
    raise ValueError(f"Unhandled node type: {node.type!r}")


def node_text(node: Node, options: MapOptions) -> tuple[str, str]:
    """``(raw_text, text)``: the label as stored and its escaped display form."""
    raw = node.label or ""
    shown = truncate_label(raw) if options.cut_names else raw
    return raw, html.escape(shown)


def node_payload(node: Node, options: MapOptions, map_id: Optional[str], simulated: bool) -> NodePayload:
    raw, text = node_text(node, options)
    image = resolve_image(node)
    size = settings.NODE_IMAGE_SIZE if image else 0
    radius = options.map_filter.node_radius
    x, y = int(node.x), int(node.y)
    id_db = node.id_node if simulated or node.id_db is None else node.id_db
    return NodePayload(
        id=node.id_node,
        id_db=id_db,
        type=node.type,
        x=x,
        y=y,
        px=x,
        py=y,
        z=node.z,
        state=node.state,
        color=node_color(node),
        device_id=node.device_id,
        subcomponent_id=node.subcomponent_id,
        image_url=image,
        image_width=size,
        image_height=size,
        raw_text=raw,
        text=text,
        shape=node.shape if node.type is NodeType.GENERIC else "circle",
        width=node.width if node.width is not None else radius,
        height=node.height if node.height is not None else radius,
        map_id=map_id,
        networkmap_id=node.networkmap_id,
    )


# ── Links ─────────────────────────────────────────────────────────────


def interface_label(name: Optional[str]) -> Optional[str]:
    """``eth0_ifOperStatus`` -> ``eth0``; None for any other name."""
    if not name:
        return None
    m = _IFACE_RE.match(name)
    return m.group(1) if m else None


def _link_end(
    node_type: NodeType,
    subcomponent_id: Optional[int],
    node: Optional[Node],
    source: Optional[EntitySource],
):
    """Arrow kind, status, sub-component id and interface text for one edge end."""
    if node_type is NodeType.SUBCOMPONENT and subcomponent_id is not None:
        info = source.get_subcomponent(subcomponent_id) if source is not None else None
        status = info.status if info is not None else None
        text = interface_label(info.name) if info is not None else None
        return "subcomponent", status, subcomponent_id, text
    status = node.status if node is not None else None
    return "device", status, None, None


def link_payload(
    index: int,
    rel: Relation,
    graph_nodes: dict[int, Node],
    source: Optional[EntitySource],
    simulated: bool,
) -> LinkPayload:
    parent = graph_nodes.get(rel.parent_node_id)
    child = graph_nodes.get(rel.child_node_id)
    arrow_start, status_start, sub_start, text_start = _link_end(
        rel.parent_type, rel.parent_source_id, parent, source
    )
    arrow_end, status_end, sub_end, text_end = _link_end(
        rel.child_type, rel.child_source_id, child, source
    )

    if rel.link_color:
        color = rel.link_color
    else:
        color = color_by_status(worst_status(status_start, status_end))

    persisted = not simulated and rel.id_db is not None
    return LinkPayload(
        id=index,
        id_db=rel.id_db if persisted else index,
        source=rel.parent_node_id,
        target=rel.child_node_id,
        source_id_db=parent.id_db if persisted and parent is not None else None,
        target_id_db=child.id_db if persisted and child is not None else None,
        arrow_start=arrow_start,
        arrow_end=arrow_end,
        status_start=status_start,
        status_end=status_end,
        subcomponent_start=sub_start,
        subcomponent_end=sub_end,
        device_start=rel.parent_device_id,
        device_end=rel.child_device_id,
        link_color=color,
        text_start=rel.text_start or text_start,
        text_end=rel.text_end or text_end,
    )


# ── Map ───────────────────────────────────────────────────────────────


def view_config(
    canvas: Canvas,
    options: MapOptions,
    map_id: Optional[str] = None,
    refresh_seconds: Optional[int] = None,
) -> MapViewConfig:
    flt = options.map_filter
    if refresh_seconds is None:
        refresh_seconds = settings.NETWORKMAP_REFRESH_SECONDS
    return MapViewConfig(
        map_id=map_id,
        center=(canvas.center_x, canvas.center_y),
        dimensions=(canvas.width, canvas.height),
        node_radius=flt.node_radius,
        holding_area_dimensions=flt.holding_area,
        x_offs=flt.x_offs or None,
        y_offs=flt.y_offs or None,
        z_dash=flt.z_dash or None,
        refresh_time_ms=1000 * refresh_seconds,
        root_label=settings.ROOT_NODE_LABEL,
        center_logo=settings.CENTER_LOGO,
        module_color_status=list(MODULE_COLOR_STATUS),
    )


def render_payload(
    graph: Graph,
    canvas: Canvas,
    options: MapOptions,
    source: Optional[EntitySource] = None,
    map_id: Optional[str] = None,
    simulated: bool = True,
    refresh_seconds: Optional[int] = None,
    error: Optional[str] = None,
) -> MapPayload:
    """Serialize a post-processed graph for the client."""
    nodes = graph.node_index()
    return MapPayload(
        config=view_config(canvas, options, map_id, refresh_seconds),
        nodes=[node_payload(n, options, map_id, simulated) for n in graph.nodes],
        links=[
            link_payload(i, rel, nodes, source, simulated)
            for i, rel in enumerate(graph.relations)
        ],
        error=error,
    )


def failed_payload(
    options: MapOptions,
    error: str,
    map_id: Optional[str] = None,
    refresh_seconds: Optional[int] = None,
) -> MapPayload:
    """Payload for a map whose layout failed: no nodes, no links, just the error."""
    canvas = Canvas(width=options.width, height=options.height)
    return MapPayload(
        config=view_config(canvas, options, map_id, refresh_seconds),
        error=error,
    )
