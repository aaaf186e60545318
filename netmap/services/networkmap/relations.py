"""Relation deriver - works out the edges each map node contributes.

Rules per node type:

- device: one sub-component edge per configured link whose far end lives
  on a device present in the map, plus a device edge to its parent device
  when that parent is on the map too.
- subcomponent: the same link resolution, limited to links touching that
  sub-component.
- generic: a single edge to the entity named by ``parent_id``.
- root: nothing.

Any non-root node that ends up with no edge is adopted by the root node,
and so is the first node of any cluster that only links among itself, so
the map stays in one piece.
"""

import logging
from typing import Iterable, Optional

import networkx as nx

from .entities import EntitySource, SubComponentLink
from .types import ROOT_NODE_ID, Graph, Node, NodeType, Relation

logger = logging.getLogger(__name__)


class NodeIndex:
    """Lookups over the nodes of one graph under construction."""

    def __init__(self, nodes):
        self._devices: dict[int, Node] = {}
        self._keys: dict[str, Node] = {}
        for node in nodes:
            if node.type is NodeType.DEVICE and node.device_id is not None:
                self._devices.setdefault(node.device_id, node)
            if node.type is not NodeType.ROOT:
                self._keys.setdefault(node.source_id, node)

    def device(self, device_id: Optional[int]) -> Optional[Node]:
        if device_id is None:
            return None
        return self._devices.get(device_id)

    def by_key(self, key: Optional[str]) -> Optional[Node]:
        if key is None:
            return None
        return self._keys.get(str(key))


def _link_relation(node: Node, link: SubComponentLink, index: NodeIndex) -> Optional[Relation]:
    """Turn a sub-component link into an edge whose child side is ``node``."""
    # Links carry no direction: the side owned by this node's device is the child.
    to_sub, to_dev = link.subcomponent_a, link.device_a
    from_sub, from_dev = link.subcomponent_b, link.device_b
    if link.device_a == node.device_id:
        to_sub, to_dev = link.subcomponent_b, link.device_b
        from_sub, from_dev = link.subcomponent_a, link.device_a

    target = index.device(to_dev)
    if target is None:
        return None

    return Relation(
        parent_node_id=target.id_node,
        child_node_id=node.id_node,
        parent_type=NodeType.SUBCOMPONENT,
        child_type=NodeType.SUBCOMPONENT,
        parent_source_id=to_sub,
        child_source_id=from_sub,
        parent_device_id=to_dev,
        child_device_id=from_dev,
    )


def _device_relations(node: Node, index: NodeIndex, source: EntitySource) -> list[Relation]:
    relations = []
    for link in source.get_relationship_links(device_id=node.device_id):
        rel = _link_relation(node, link, index)
        if rel is not None:
            relations.append(rel)

    parent_device = _as_device_id(node.parent_id)
    parent = index.device(parent_device)
    if parent is not None:
        relations.append(
            Relation(
                parent_node_id=parent.id_node,
                child_node_id=node.id_node,
                parent_type=NodeType.DEVICE,
                child_type=NodeType.DEVICE,
                parent_source_id=parent_device,
                child_source_id=node.device_id,
                parent_device_id=parent_device,
                child_device_id=node.device_id,
            )
        )
    return relations


def _subcomponent_relations(node: Node, index: NodeIndex, source: EntitySource) -> list[Relation]:
    relations = []
    for link in source.get_relationship_links(subcomponent_id=node.subcomponent_id):
        rel = _link_relation(node, link, index)
        if rel is not None:
            relations.append(rel)
    return relations


def _generic_relations(node: Node, index: NodeIndex) -> list[Relation]:
    parent = index.by_key(node.parent_id)
    if parent is None or parent.id_node == node.id_node:
        return []
    return [
        Relation(
            parent_node_id=parent.id_node,
            child_node_id=node.id_node,
            parent_type=NodeType.GENERIC,
            child_type=NodeType.GENERIC,
        )
    ]


def _as_device_id(value: Optional[str]) -> Optional[int]:
    try:
        device_id = int(value) if value is not None else None
    except (TypeError, ValueError):
        return None
    if device_id is None or device_id <= 0:
        return None
    return device_id


def derive_relations(node: Node, index: NodeIndex, source: EntitySource) -> list[Relation]:
    """Edges contributed by a single node."""
    if node.type is NodeType.DEVICE:
        return _device_relations(node, index, source)
    if node.type is NodeType.SUBCOMPONENT:
        return _subcomponent_relations(node, index, source)
    if node.type is NodeType.GENERIC:
        return _generic_relations(node, index)
    if node.type is NodeType.ROOT:
        return []
    raise ValueError(f"Unhandled node type: {node.type!r}")


def orphan_relation(node: Node) -> Relation:
    """Edge adopting ``node`` under the root node."""
    if node.type is NodeType.SUBCOMPONENT:
        child_source = node.subcomponent_id
    elif node.type is NodeType.DEVICE:
        child_source = node.device_id
    else:
        child_source = None
    return Relation(
        parent_node_id=ROOT_NODE_ID,
        child_node_id=node.id_node,
        parent_type=NodeType.ROOT,
        child_type=node.type,
        child_source_id=child_source,
        child_device_id=node.device_id,
    )


# ── Edge cleanup ──────────────────────────────────────────────────────


def drop_mirrored_relations(relations: Iterable[Relation]) -> list[Relation]:
    """Drop a relation when its exact reverse was already kept.

    Two linked devices both derive the same sub-component link, once from
    each side; only the first one survives.  The reverse must join the
    same two nodes with the source ids swapped.
    """
    kept_keys: set[tuple] = set()
    kept = []
    for rel in relations:
        parent_key = (rel.parent_node_id, rel.parent_type, rel.parent_source_id)
        child_key = (rel.child_node_id, rel.child_type, rel.child_source_id)
        if rel.parent_source_id is not None and (child_key, parent_key) in kept_keys:
            continue
        kept_keys.add((parent_key, child_key))
        kept.append(rel)
    return kept


def relation_priority(rel: Relation) -> Optional[int]:
    """Dedup priority of an edge, or None when it is never deduplicated.

    sub-component/sub-component edges carry more information than a plain
    device/device edge between the same nodes, so they win.
    """
    types = (rel.parent_type, rel.child_type)
    if types == (NodeType.SUBCOMPONENT, NodeType.SUBCOMPONENT):
        return 1
    if types == (NodeType.DEVICE, NodeType.DEVICE):
        return 0
    # Mixed device/sub-component, generic and root edges are always kept.
    return None


def clean_graph_relations(relations: Iterable[Relation]) -> list[Relation]:
    """Keep one edge per node pair, preferring higher priority; drop self-loops.

    A later edge replaces an earlier one for the same unordered pair only
    when its priority is strictly higher.  Idempotent.
    """
    kept: list[Optional[Relation]] = []
    seen: dict[frozenset, tuple[int, int]] = {}  # pair -> (priority, index in kept)

    for rel in relations:
        if rel.is_self_loop:
            continue
        priority = relation_priority(rel)
        if priority is None:
            kept.append(rel)
            continue

        pair = rel.pair
        existing = seen.get(pair)
        if existing is not None:
            old_priority, old_index = existing
            if priority <= old_priority:
                continue
            kept[old_index] = None

        seen[pair] = (priority, len(kept))
        kept.append(rel)

    return [rel for rel in kept if rel is not None]


def tidy_relations(relations: Iterable[Relation]) -> list[Relation]:
    """Mirror suppression followed by per-pair dedup."""
    return clean_graph_relations(drop_mirrored_relations(relations))


# ── Connectivity ──────────────────────────────────────────────────────


def _adopt_detached(graph: Graph, relations: list[Relation]) -> list[Relation]:
    """Root edges for every component of the map that cannot reach the root.

    The first node (by id) of each such component is adopted, whether it
    is a lone node or a cluster that only links among itself.  Self-loops
    do not count as links.
    """
    topology = nx.Graph()
    topology.add_nodes_from(n.id_node for n in graph.nodes)
    topology.add_edges_from(
        (rel.parent_node_id, rel.child_node_id) for rel in relations if not rel.is_self_loop
    )

    adopted = []
    attached = nx.node_connected_component(topology, ROOT_NODE_ID)
    for node in graph.nodes:
        if node.id_node in attached:
            continue
        component = nx.node_connected_component(topology, node.id_node)
        adopted.append(orphan_relation(node))
        attached = attached | component
    return adopted


def derive_graph_relations(
    graph: Graph,
    source: EntitySource,
    include_root: bool = True,
) -> tuple[list[Relation], list[Relation]]:
    """Derive every node's edges.

    Mirrored and duplicate edges are removed before any node is adopted,
    so adoption sees the edge set that actually ends up on the map.
    Returns ``(relations, orphans)``; orphans is empty when the root node
    is disabled.
    """
    index = NodeIndex(graph.nodes)
    found: list[Relation] = []
    for node in graph.nodes:
        found.extend(derive_relations(node, index, source))
    relations = tidy_relations(found)

    orphans: list[Relation] = []
    if include_root and graph.root is not None:
        orphans = _adopt_detached(graph, relations)

    logger.debug(
        "Derived %d relations and %d orphan edges for %d nodes",
        len(relations), len(orphans), len(graph.nodes),
    )
    return relations, orphans
