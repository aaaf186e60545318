"""Tests for the graph builder: node numbering, classification and dot output."""

import re

import pytest

from netmap.services.networkmap.builder import (
    build_empty_graph,
    build_graph,
    classify,
    dot_edge,
    dot_node,
    open_dot,
    truncate_label,
)
from netmap.services.networkmap.entities import InMemoryEntitySource, RawEntity
from netmap.services.networkmap.options import LayoutAlgorithm, MapFilter, MapOptions
from netmap.services.networkmap.types import Graph, Node, NodeType


def _options(**kw) -> MapOptions:
    kw.setdefault("width", 900)
    kw.setdefault("height", 900)
    kw.setdefault("max_width", 900)
    return MapOptions(**kw)


def _devices(*specs) -> list[RawEntity]:
    return [
        RawEntity(key=str(i), label=label, type="device", device_id=i, parent_id=parent)
        for i, label, parent in specs
    ]


class TestTruncateLabel:
    def test_short_label_unchanged(self):
        assert truncate_label("router-one") == "router-one"

    def test_exactly_sixteen_unchanged(self):
        assert truncate_label("a" * 16) == "a" * 16

    def test_long_label_truncated_to_sixteen(self):
        out = truncate_label("abcdefghijklmnopqrst")
        assert out == "abcdefg...opqrst"
        assert len(out) == 16

    def test_none_label(self):
        assert truncate_label(None) == ""


class TestClassify:
    def test_explicit_tags(self):
        assert classify(RawEntity(key="1", type="device")) is NodeType.DEVICE
        assert classify(RawEntity(key="1", type="subcomponent")) is NodeType.SUBCOMPONENT
        assert classify(RawEntity(key="1", type="generic", device_id=4)) is NodeType.GENERIC

    def test_untagged_by_ids(self):
        assert classify(RawEntity(key="1", device_id=4)) is NodeType.DEVICE
        assert classify(RawEntity(key="1", device_id=4, subcomponent_id=9)) is NodeType.SUBCOMPONENT

    def test_unclassifiable_is_generic(self):
        assert classify(RawEntity(key="x")) is NodeType.GENERIC
        assert classify(RawEntity(key="x", device_id=0)) is NodeType.GENERIC
        assert classify(RawEntity(key="x", subcomponent_id=5)) is NodeType.GENERIC


class TestDotHeader:
    def test_default_spring1(self):
        head = open_dot(_options())
        assert head.startswith(
            'graph networkmap { dpi=100; bgcolor="transparent"; labeljust=l; margin=0; pad="0.75,0.75";'
        )
        assert "overlap=scale;outputorder=first;" in head
        assert 'overlap="scalexy";' in head
        assert 'ratio="fill";root=0;nodesep="5";size="9,9";' in head
        assert head.endswith("\n")

    def test_circular_uses_mindist(self):
        head = open_dot(_options(generation_method=LayoutAlgorithm.CIRCULAR))
        assert 'mindist="1";' in head
        assert 'overlap="scalexy"' not in head

    def test_flat_and_radial_use_ranksep(self):
        assert 'ranksep="5";' in open_dot(_options(generation_method="flat"))
        assert 'ranksep="5";' in open_dot(_options(generation_method="radial"))

    def test_spring2_uses_spring_constant(self):
        head = open_dot(_options(generation_method="spring2"))
        assert 'K="0.1";' in head

    def test_no_overlap_flags_when_disabled(self):
        head = open_dot(_options(nooverlap=False))
        assert "overlap" not in head

    def test_zoom_scales_size(self):
        assert 'size="18,18";' in open_dot(_options(zoom=2))

    def test_size_canvas_override(self):
        assert 'size="8,6";' in open_dot(_options(size_canvas=(800, 600), zoom=2))


class TestDotDeclarations:
    def test_node_radius_and_label(self):
        node = Node(id_node=3, type=NodeType.DEVICE, source_id="3", label="abcdefghijklmnopqrst")
        line = dot_node(node, _options())
        assert line.startswith('3 [ parent="", color="#82b92e", fontsize=12, shape="doublecircle"')
        assert "fixedsize=true, width=2, height=2" in line
        assert 'label="abcdefg...opqrst"]' in line

    def test_radius_floor(self):
        node = Node(id_node=1, type=NodeType.DEVICE, source_id="1", label="a")
        line = dot_node(node, _options(map_filter=MapFilter(node_radius=0)))
        assert "width=1, height=1" in line

    def test_quotes_escaped(self):
        node = Node(id_node=1, type=NodeType.GENERIC, source_id="x", label='say "hi"')
        assert 'label="say \\"hi\\""' in dot_node(node, _options())

    def test_edge(self):
        assert dot_edge(1, 2, _options()) == (
            '\n1 -- 2[len=5, color="#BDBDBD", headclip=false, tailclip=false, edgeURL=""];\n'
        )


class TestBuildGraph:
    def test_sequential_ids_with_root(self):
        entities = _devices((10, "a", None), (20, "b", None))
        built = build_graph(entities, _options(), InMemoryEntitySource(entities))
        ids = [n.id_node for n in built.graph.nodes]
        assert ids == [0, 1, 2]
        assert built.graph.root is not None
        assert [n.source_id for n in built.graph.nodes[1:]] == ["10", "20"]

    def test_ids_without_root(self):
        entities = _devices((10, "a", None), (20, "b", None))
        built = build_graph(entities, _options(no_root_node=True), InMemoryEntitySource(entities))
        assert [n.id_node for n in built.graph.nodes] == [0, 1]
        assert built.graph.root is None
        assert built.orphans == ()

    def test_orphans_adopted_and_declared_child_to_root(self):
        entities = _devices((1, "a", None), (2, "b", "1"))
        built = build_graph(entities, _options(), InMemoryEntitySource(entities))
        assert [(r.parent_node_id, r.child_node_id) for r in built.orphans] == [(0, 1)]
        assert "\n1 -- 2[" in built.dot  # device parent edge
        assert "\n1 -- 0[" in built.dot  # orphan edge
        assert built.dot.rstrip().endswith("}")

    def test_every_node_declared(self):
        entities = _devices((1, "a", None), (2, "b", None), (3, "c", None))
        built = build_graph(entities, _options(), InMemoryEntitySource(entities))
        for node in built.graph.nodes:
            assert re.search(rf"^{node.id_node} \[ parent=", built.dot, re.MULTILINE)

    def test_status_comes_from_source(self):
        entities = [RawEntity(key="1", type="device", device_id=1, status="warning")]
        built = build_graph(entities, _options(), InMemoryEntitySource(entities))
        assert built.graph.node(1).status.value == "warning"

    def test_linked_map_kept_on_generic_nodes_only(self):
        entities = [
            RawEntity(key="site-b", label="Site B", networkmap_id="5f2c"),
            RawEntity(key="1", type="device", device_id=1, networkmap_id="5f2c"),
        ]
        built = build_graph(entities, _options(), InMemoryEntitySource(entities))
        assert built.graph.node(1).networkmap_id == "5f2c"
        assert built.graph.node(2).networkmap_id is None

    def test_empty_graph(self):
        built = build_empty_graph(_options())
        assert [n.type for n in built.graph.nodes] == [NodeType.ROOT]
        assert "0 [ parent=" in built.dot
        assert " -- " not in built.dot

    def test_empty_graph_without_root(self):
        built = build_empty_graph(_options(no_root_node=True))
        assert built.graph.nodes == ()

    def test_duplicate_node_ids_rejected(self):
        with pytest.raises(ValueError):
            Graph(nodes=(
                Node(id_node=1, type=NodeType.DEVICE, source_id="1", label="a"),
                Node(id_node=1, type=NodeType.DEVICE, source_id="2", label="b"),
            ))


class TestStoredOptions:
    def test_round_trip(self):
        options = MapOptions(generation_method="radial", cut_names=True, map_filter=MapFilter(node_radius=30))
        stored = options.stored_options()
        assert "map_filter" not in stored and "generation_method" not in stored

        again = MapOptions.from_stored("radial", options.map_filter.model_dump(mode="json"), stored)
        assert again == options

    def test_retired_keys_ignored(self):
        options = MapOptions.from_stored(None, {}, {"simple": True, "font_size": 10})
        assert options.font_size == 10
        assert "simple" not in options.stored_options()
