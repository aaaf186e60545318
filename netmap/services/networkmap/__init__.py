"""Network map generation: entities -> graph -> Graphviz layout -> payload.

Stages, leaf first:

- entities: where devices, sub-components and their links come from
- relations: which edges each node contributes
- builder: numbered nodes plus the dot document
- layout: Graphviz invocation and output parsing
- postprocess: positions, edge cleanup, status colors, holding area
- render: client payload
"""

from .builder import build_empty_graph, build_graph, truncate_label
from .entities import (
    EntityFilter,
    EntitySource,
    InMemoryEntitySource,
    RawEntity,
    SubComponentInfo,
    SubComponentLink,
    load_entity_source,
)
from .errors import (
    CustomParserFailure,
    EntitySourceUnavailable,
    LayoutParseFailure,
    LayoutToolFailure,
    NetworkMapError,
)
from .layout import (
    FallbackParser,
    GraphvizEngine,
    Layout,
    LayoutEngine,
    LayoutOutputParser,
    ParseResult,
    PlainOutputParser,
    WindowsGraphvizEngine,
    invoke_layout,
    select_engine,
)
from .options import LayoutAlgorithm, MapFilter, MapOptions
from .pipeline import MapResult, generate_network_map, simulate_network_map
from .postprocess import color_by_status, worst_status
from .relations import clean_graph_relations
from .render import MapPayload, render_payload
from .types import Graph, HealthState, Node, NodeType, Relation

__all__ = [
    "build_empty_graph",
    "build_graph",
    "truncate_label",
    "EntityFilter",
    "EntitySource",
    "InMemoryEntitySource",
    "RawEntity",
    "SubComponentInfo",
    "SubComponentLink",
    "load_entity_source",
    "CustomParserFailure",
    "EntitySourceUnavailable",
    "LayoutParseFailure",
    "LayoutToolFailure",
    "NetworkMapError",
    "FallbackParser",
    "GraphvizEngine",
    "Layout",
    "LayoutEngine",
    "LayoutOutputParser",
    "ParseResult",
    "PlainOutputParser",
    "WindowsGraphvizEngine",
    "invoke_layout",
    "select_engine",
    "LayoutAlgorithm",
    "MapFilter",
    "MapOptions",
    "MapResult",
    "generate_network_map",
    "simulate_network_map",
    "clean_graph_relations",
    "color_by_status",
    "worst_status",
    "MapPayload",
    "render_payload",
    "Graph",
    "HealthState",
    "Node",
    "NodeType",
    "Relation",
]
