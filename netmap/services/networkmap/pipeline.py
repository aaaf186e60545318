"""Network map pipeline: build -> layout -> post-process.

``generate_network_map`` is synchronous (it blocks on Graphviz); async
callers run it in a worker thread.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

from .builder import build_empty_graph, build_graph, root_node
from .entities import EntitySource, InMemoryEntitySource, RawEntity
from .errors import NetworkMapError
from .layout import LayoutEngine, LayoutOutputParser, invoke_layout, select_engine
from .options import MapOptions
from .postprocess import apply_layout, finalize_graph, map_center
from .render import MapPayload, failed_payload, render_payload
from .types import Canvas, Graph

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MapResult:
    graph: Graph
    canvas: Canvas


def generate_network_map(
    entities: Sequence[RawEntity],
    options: MapOptions,
    source: EntitySource,
    engine: LayoutEngine,
    parser: Optional[LayoutOutputParser] = None,
) -> MapResult:
    """Lay out a fresh map for ``entities``.

    Raises LayoutToolFailure / LayoutParseFailure; no partially placed
    graph is ever returned.
    """
    if options.map_filter.empty_map:
        built = build_empty_graph(options)
    else:
        built = build_graph(entities, options, source)

    layout = invoke_layout(built.dot, options, engine, parser)
    graph = apply_layout(built.graph, layout)
    graph = finalize_graph(graph, options)
    center_x, center_y = map_center(graph)

    logger.info(
        f"Generated network map: {len(graph.nodes)} nodes, {len(graph.relations)} links, "
        f"canvas {layout.width}x{layout.height}"
    )
    return MapResult(
        graph=graph,
        canvas=Canvas(width=layout.width, height=layout.height, center_x=center_x, center_y=center_y),
    )


def root_only_result(options: MapOptions) -> MapResult:
    """Map shown when the inventory is unreachable: the root node alone."""
    nodes = (root_node(),) if options.include_root else ()
    return MapResult(
        graph=Graph(nodes=nodes),
        canvas=Canvas(width=options.width, height=options.height),
    )


def simulate_network_map(
    entities: Sequence[RawEntity],
    options: MapOptions,
    source: Optional[EntitySource] = None,
    engine: Optional[LayoutEngine] = None,
    parser: Optional[LayoutOutputParser] = None,
) -> MapPayload:
    """Generate and render a map that is never stored.

    Layout failures come back as an empty payload carrying the error.
    """
    if source is None:
        source = InMemoryEntitySource(entities)
    if engine is None:
        engine = select_engine()

    options = options.with_holding_area((0, 0))
    try:
        result = generate_network_map(entities, options, source, engine, parser)
    except NetworkMapError as e:
        logger.warning(f"Simulated map failed: {e}")
        return failed_payload(options, str(e))
    return render_payload(result.graph, result.canvas, options, source, simulated=True)
