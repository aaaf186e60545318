"""Stored network maps: load, generate-and-save, regenerate.

A stored map keeps its generated nodes and relations in
``network_map_nodes`` / ``network_map_relations``.  Regenerating deletes
the old rows and writes the new ones inside the caller's transaction, so
readers see either the old graph or the new one.
"""

import asyncio
import logging
from typing import Optional, Sequence

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from netmap.db.models import NetworkMap, NetworkMapNode, NetworkMapRelation
from .entities import EntityFilter, EntitySource, RawEntity, load_entity_source
from .errors import EntitySourceUnavailable, NetworkMapError
from .layout import LayoutEngine, LayoutOutputParser
from .options import MapOptions
from .pipeline import MapResult, generate_network_map, root_only_result
from .postprocess import finalize_graph
from .render import MapPayload, failed_payload, render_payload
from .types import Canvas, Graph, HealthState, Node, NodeType, Relation

logger = logging.getLogger(__name__)

PERSISTED_HOLDING_AREA = (500, 500)


# ── Definition helpers ────────────────────────────────────────────────


def map_options(row: NetworkMap) -> MapOptions:
    options = MapOptions.from_stored(row.generation_method, row.filter, row.options)
    return options.with_holding_area(PERSISTED_HOLDING_AREA)


def entity_filter_for(
    source: str,
    group_id: Optional[int],
    source_data: Optional[str],
    options: MapOptions,
) -> EntityFilter:
    """Which inventory slice a map draws: group, discovery task or network."""
    flt = EntityFilter(
        text_filter=options.text_filter,
        empty_map=options.map_filter.empty_map,
        include_subgroups=not options.map_filter.dont_show_subgroups,
    )
    if source == "task" and source_data:
        flt.task_id = int(source_data)
    elif source == "network" and source_data:
        flt.network = source_data.strip()
    else:
        flt.group_id = group_id
    return flt


# ── Row <-> graph ─────────────────────────────────────────────────────


def _int_or_none(value) -> Optional[int]:
    try:
        return int(value) if value is not None else None
    except (TypeError, ValueError):
        return None


def node_from_row(row: NetworkMapNode, source: Optional[EntitySource]) -> Node:
    style = row.style or {}
    node_type = NodeType(row.type)
    subcomponent_id = _int_or_none(row.source_id) if node_type is NodeType.SUBCOMPONENT else None

    status = None
    if node_type is NodeType.GENERIC:
        status = HealthState.coerce(style.get("status"))
    elif node_type is not NodeType.ROOT and source is not None:
        status = source.get_entity_status(
            RawEntity(
                key=row.source_id or "",
                device_id=row.device_id,
                subcomponent_id=subcomponent_id,
            )
        )

    return Node(
        id_node=row.id_node,
        type=node_type,
        source_id=row.source_id or "",
        label=row.label,
        status=status,
        device_id=row.device_id,
        subcomponent_id=subcomponent_id,
        parent_id=row.parent_id,
        x=row.x,
        y=row.y,
        z=row.z,
        state=row.state or "",
        os_name=style.get("os_name"),
        module_type=style.get("module_type"),
        image=style.get("image"),
        shape=style.get("shape") or "circle",
        width=style.get("width"),
        height=style.get("height"),
        networkmap_id=style.get("networkmap_id"),
        id_db=row.id,
    )


def relation_from_row(row: NetworkMapRelation) -> Relation:
    return Relation(
        parent_node_id=row.parent_node_id,
        child_node_id=row.child_node_id,
        parent_type=NodeType(row.parent_type),
        child_type=NodeType(row.child_type),
        parent_source_id=row.parent_source_id,
        child_source_id=row.child_source_id,
        parent_device_id=row.parent_device_id,
        child_device_id=row.child_device_id,
        link_color=row.link_color,
        text_start=row.text_start,
        text_end=row.text_end,
        id_db=row.id,
    )


def graph_from_rows(
    node_rows: Sequence[NetworkMapNode],
    relation_rows: Sequence[NetworkMapRelation],
    source: Optional[EntitySource] = None,
) -> Graph:
    """Rebuild a graph from stored rows, skipping deleted ones."""
    nodes = tuple(node_from_row(r, source) for r in node_rows if not r.deleted)
    relations = tuple(relation_from_row(r) for r in relation_rows if not r.deleted)
    return Graph(nodes=nodes, relations=relations)


def node_row(map_id: str, node: Node) -> NetworkMapNode:
    style = {
        "shape": node.shape,
        "image": node.image,
        "width": node.width,
        "height": node.height,
        "os_name": node.os_name,
        "module_type": node.module_type,
    }
    if node.type is NodeType.GENERIC and node.status is not None:
        style["status"] = node.status.value
    if node.networkmap_id:
        style["networkmap_id"] = node.networkmap_id
    return NetworkMapNode(
        map_id=map_id,
        id_node=node.id_node,
        type=node.type.value,
        source_id=node.source_id,
        device_id=node.device_id,
        parent_id=node.parent_id,
        label=node.label,
        x=node.x,
        y=node.y,
        z=node.z,
        state=node.state,
        deleted=False,
        style=style,
    )


def relation_row(map_id: str, rel: Relation) -> NetworkMapRelation:
    return NetworkMapRelation(
        map_id=map_id,
        parent_node_id=rel.parent_node_id,
        child_node_id=rel.child_node_id,
        parent_type=rel.parent_type.value,
        child_type=rel.child_type.value,
        parent_source_id=rel.parent_source_id,
        child_source_id=rel.child_source_id,
        parent_device_id=rel.parent_device_id,
        child_device_id=rel.child_device_id,
        link_color=rel.link_color,
        text_start=rel.text_start,
        text_end=rel.text_end,
        deleted=False,
    )


# ── Persistence ───────────────────────────────────────────────────────


async def load_graph_rows(
    db: AsyncSession, map_id: str
) -> tuple[list[NetworkMapNode], list[NetworkMapRelation]]:
    nodes = (
        await db.execute(
            select(NetworkMapNode)
            .where(NetworkMapNode.map_id == map_id)
            .order_by(NetworkMapNode.id_node)
        )
    ).scalars().all()
    relations = (
        await db.execute(
            select(NetworkMapRelation)
            .where(NetworkMapRelation.map_id == map_id)
            .order_by(NetworkMapRelation.id)
        )
    ).scalars().all()
    return list(nodes), list(relations)


async def save_generated(
    db: AsyncSession, row: NetworkMap, result: MapResult
) -> tuple[list[NetworkMapNode], list[NetworkMapRelation]]:
    """Replace the stored graph and canvas of ``row`` with ``result``.

    Flushes but does not commit; the request transaction does.
    """
    await db.execute(delete(NetworkMapRelation).where(NetworkMapRelation.map_id == row.id))
    await db.execute(delete(NetworkMapNode).where(NetworkMapNode.map_id == row.id))

    node_rows = [node_row(row.id, n) for n in result.graph.nodes]
    relation_rows = [relation_row(row.id, r) for r in result.graph.relations]
    db.add_all(node_rows)
    db.add_all(relation_rows)

    row.width = result.canvas.width
    row.height = result.canvas.height
    row.center_x = result.canvas.center_x
    row.center_y = result.canvas.center_y
    await db.flush()

    logger.info(
        f"Saved network map {row.id}: {len(node_rows)} nodes, {len(relation_rows)} relations"
    )
    return node_rows, relation_rows


def _stored_canvas(row: NetworkMap) -> Canvas:
    return Canvas(
        width=row.width,
        height=row.height,
        center_x=row.center_x,
        center_y=row.center_y,
    )


async def map_payload(
    db: AsyncSession,
    row: NetworkMap,
    engine: LayoutEngine,
    parser: Optional[LayoutOutputParser] = None,
    regenerate: bool = False,
) -> MapPayload:
    """Render a stored map, generating and saving it first when needed.

    The stored graph is used as-is unless it is missing or ``regenerate``
    is set.  Inventory and layout failures produce an error payload and
    leave the stored graph untouched.
    """
    options = map_options(row)
    flt = entity_filter_for(row.source, row.group_id, row.source_data, options)
    refresh = row.source_period

    try:
        source = await load_entity_source(db, flt)
    except EntitySourceUnavailable as e:
        fallback = root_only_result(options)
        return render_payload(
            fallback.graph, fallback.canvas, options,
            map_id=row.id, simulated=True, refresh_seconds=refresh, error=str(e),
        )

    node_rows, relation_rows = await load_graph_rows(db, row.id)
    if node_rows and not regenerate:
        graph = finalize_graph(graph_from_rows(node_rows, relation_rows, source), options)
        return render_payload(
            graph, _stored_canvas(row), options, source,
            map_id=row.id, simulated=False, refresh_seconds=refresh,
        )

    entities = source.list_entities(flt)
    try:
        result = await asyncio.to_thread(
            generate_network_map, entities, options, source, engine, parser
        )
    except NetworkMapError as e:
        logger.warning(f"Network map {row.id} generation failed: {e}")
        return failed_payload(options, str(e), map_id=row.id, refresh_seconds=refresh)

    node_rows, relation_rows = await save_generated(db, row, result)
    graph = finalize_graph(graph_from_rows(node_rows, relation_rows, source), options)
    return render_payload(
        graph, result.canvas, options, source,
        map_id=row.id, simulated=False, refresh_seconds=refresh,
    )
