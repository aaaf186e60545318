"""Graph builder - raw entities in, numbered nodes plus a dot document out.

Node ids are handed out in input order: 0 for the root node (when it is
enabled), then 1..N.  The dot document only feeds Graphviz positioning,
so every node is declared with the same fixed shape and color; status
colors are applied later by the post-processor.
"""

import logging
from typing import Optional, Sequence

from netmap.config import settings
from .entities import EntitySource, RawEntity
from .options import LayoutAlgorithm, MapOptions
from .relations import derive_graph_relations
from .types import ROOT_NODE_ID, BuiltGraph, Graph, Node, NodeType, Relation

logger = logging.getLogger(__name__)

GRAPHVIZ_RADIUS_CONVERSION_FACTOR = 20
MAX_LABEL_LENGTH = 16

COL_DOT_NODE = "#82b92e"
COL_DOT_EDGE = "#BDBDBD"


# ── Labels ────────────────────────────────────────────────────────────


def truncate_label(label: Optional[str], length: int = MAX_LABEL_LENGTH) -> str:
    """Shorten ``label`` to ``length`` visible characters, eliding the middle.

    >>> truncate_label("core-switch-building-a")
    'core-sw...ding-a'
    """
    label = label or ""
    if len(label) <= length:
        return label
    ellipsis = "..."
    keep = length - len(ellipsis)
    head = (keep + 1) // 2
    tail = keep - head
    return label[:head] + ellipsis + (label[-tail:] if tail else "")


def _dot_escape(text: str) -> str:
    return text.replace("\\", "\\\\").replace('"', '\\"').replace("\n", " ")


def _num(value: float) -> str:
    return f"{value:g}"


# ── Dot document ──────────────────────────────────────────────────────


def open_dot(options: MapOptions) -> str:
    """Graph header: canvas size, spacing and per-layout parameters."""
    flt = options.map_filter
    layout = options.layout

    if options.size_canvas is not None:
        size_x = options.size_canvas[0] / 100
        size_y = options.size_canvas[1] / 100
    else:
        size_x = options.width / 100
        size_y = options.height / 100
        if options.zoom > 0:
            size_x *= options.zoom
            size_y *= options.zoom

    head = (
        'graph networkmap { dpi=100; bgcolor="transparent"; '
        'labeljust=l; margin=0; pad="0.75,0.75";'
    )
    if options.nooverlap:
        head += "overlap=scale;outputorder=first;"

    if layout in (LayoutAlgorithm.FLAT, LayoutAlgorithm.SPRING1, LayoutAlgorithm.SPRING2):
        if options.nooverlap:
            head += 'overlap="scalexy";'
        if layout is LayoutAlgorithm.FLAT:
            head += f'ranksep="{_num(flt.rank_sep)}";'
        if layout is LayoutAlgorithm.SPRING2:
            head += f'K="{_num(flt.kval)}";'
    elif layout is LayoutAlgorithm.RADIAL:
        head += f'ranksep="{_num(flt.rank_sep)}";'
    elif layout is LayoutAlgorithm.CIRCULAR:
        head += f'mindist="{_num(flt.mindist)}";'

    head += 'ratio="fill";root=0;'
    head += f'nodesep="{_num(flt.node_sep)}";'
    head += f'size="{_num(size_x)},{_num(size_y)}";'
    return head + "\n"


def dot_node(node: Node, options: MapOptions) -> str:
    radius = options.map_filter.node_radius / GRAPHVIZ_RADIUS_CONVERSION_FACTOR
    if radius <= 0:
        radius = 1
    label = _dot_escape(truncate_label(node.label))
    parent = _dot_escape(node.parent_id or "")
    return (
        f'{node.id_node} [ parent="{parent}", color="{COL_DOT_NODE}", '
        f'fontsize={options.font_size}, shape="doublecircle", style="filled", '
        f"fixedsize=true, width={_num(radius)}, height={_num(radius)}, "
        f'label="{label}"]\n'
    )


def dot_edge(tail: int, head: int, options: MapOptions) -> str:
    return (
        f"\n{tail} -- {head}[len={_num(options.map_filter.node_sep)}, "
        f'color="{COL_DOT_EDGE}", headclip=false, tailclip=false, edgeURL=""];\n'
    )


def close_dot() -> str:
    return "}"


# ── Nodes ─────────────────────────────────────────────────────────────


def classify(entity: RawEntity) -> NodeType:
    """Decide the node type of a raw entity.

    Explicit "device"/"subcomponent" tags win; untagged entities with a
    device id count as inventory, and among those a sub-component id
    makes a sub-component.  Anything else is a generic node.
    """
    tag = (entity.type or "").strip().lower() or None
    is_inventory = tag in (NodeType.DEVICE.value, NodeType.SUBCOMPONENT.value) or (
        tag is None and (entity.device_id or 0) > 0
    )
    if not is_inventory:
        return NodeType.GENERIC
    if tag == NodeType.SUBCOMPONENT.value or (
        tag is None and (entity.subcomponent_id or 0) > 0
    ):
        return NodeType.SUBCOMPONENT
    return NodeType.DEVICE


def root_node() -> Node:
    return Node(
        id_node=ROOT_NODE_ID,
        type=NodeType.ROOT,
        source_id=str(ROOT_NODE_ID),
        label=settings.ROOT_NODE_LABEL,
        image=settings.CENTER_LOGO,
    )


def entity_node(id_node: int, entity: RawEntity, source: EntitySource) -> Node:
    node_type = classify(entity)
    if node_type is NodeType.SUBCOMPONENT:
        source_id = str(entity.subcomponent_id if entity.subcomponent_id is not None else entity.key)
    elif node_type is NodeType.DEVICE:
        source_id = str(entity.device_id if entity.device_id is not None else entity.key)
    else:
        source_id = str(entity.key)

    return Node(
        id_node=id_node,
        type=node_type,
        source_id=source_id,
        label=entity.label or "",
        status=source.get_entity_status(entity),
        device_id=entity.device_id,
        subcomponent_id=entity.subcomponent_id,
        parent_id=entity.parent_id,
        state=entity.state or "",
        os_name=entity.os_name,
        module_type=entity.module_type,
        image=entity.image,
        shape=entity.shape or "circle",
        width=entity.width,
        height=entity.height,
        networkmap_id=entity.networkmap_id if node_type is NodeType.GENERIC else None,
    )


def _document(graph: Graph, relations: Sequence[Relation], orphans: Sequence[Relation], options: MapOptions) -> str:
    parts = [open_dot(options)]
    parts.extend(dot_node(node, options) for node in graph.nodes)
    parts.extend(dot_edge(rel.parent_node_id, rel.child_node_id, options) for rel in relations)
    # Orphans are declared child -> root.
    parts.extend(dot_edge(rel.child_node_id, rel.parent_node_id, options) for rel in orphans)
    parts.append(close_dot())
    return "".join(parts)


# ── Entry points ──────────────────────────────────────────────────────


def build_graph(
    entities: Sequence[RawEntity],
    options: MapOptions,
    source: EntitySource,
) -> BuiltGraph:
    """Number the entities, derive their relations and write the dot document."""
    nodes: list[Node] = []
    if options.include_root:
        nodes.append(root_node())

    next_id = ROOT_NODE_ID + 1 if options.include_root else ROOT_NODE_ID
    for entity in entities:
        nodes.append(entity_node(next_id, entity, source))
        next_id += 1

    graph = Graph(nodes=tuple(nodes))
    relations, orphans = derive_graph_relations(graph, source, include_root=options.include_root)
    dot = _document(graph, relations, orphans, options)

    logger.info(
        f"Built graph: {len(nodes)} nodes, {len(relations)} relations, "
        f"{len(orphans)} orphans ({options.layout.value})"
    )
    return BuiltGraph(
        graph=graph.with_relations(relations + orphans),
        dot=dot,
        orphans=tuple(orphans),
    )


def build_empty_graph(options: MapOptions) -> BuiltGraph:
    """A map holding only the root node (nothing at all without one)."""
    nodes = (root_node(),) if options.include_root else ()
    graph = Graph(nodes=nodes)
    return BuiltGraph(graph=graph, dot=_document(graph, (), (), options))
