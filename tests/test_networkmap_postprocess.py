"""Tests for the graph post-processor."""

import pytest

from netmap.services.networkmap.errors import LayoutParseFailure
from netmap.services.networkmap.layout import Layout
from netmap.services.networkmap.options import MapFilter, MapOptions
from netmap.services.networkmap.postprocess import (
    COL_CRITICAL,
    COL_IGNORED,
    COL_NORMAL,
    COL_UNKNOWN,
    HoldingArea,
    apply_layout,
    color_by_status,
    map_center,
    node_color,
    place_holding_area_nodes,
    status_criticality,
    worst_status,
)
from netmap.services.networkmap.types import Graph, HealthState, Node, NodeType


DEV, ROOT = NodeType.DEVICE, NodeType.ROOT


def _node(i, node_type=DEV, **kw) -> Node:
    return Node(id_node=i, type=node_type, source_id=str(i), label=f"n{i}", **kw)


class TestStatus:
    def test_criticality_order(self):
        ordered = [
            None,
            HealthState.NORMAL,
            HealthState.NOT_INIT,
            HealthState.UNKNOWN,
            HealthState.WARNING,
            HealthState.CRITICAL,
            HealthState.ALERT_FIRED,
        ]
        levels = [status_criticality(s) for s in ordered]
        assert levels == sorted(levels)
        assert levels == [-1, 0, 1, 2, 3, 4, 5]

    def test_unrecognised_status_is_lowest(self):
        assert status_criticality("bogus") == -1

    @pytest.mark.parametrize("a,b,expected", [
        (HealthState.CRITICAL, HealthState.NORMAL, HealthState.CRITICAL),
        (HealthState.NORMAL, HealthState.CRITICAL, HealthState.CRITICAL),
        (HealthState.WARNING, None, HealthState.WARNING),
        (None, HealthState.NORMAL, HealthState.NORMAL),
        ("alert_fired", "critical", "alert_fired"),
    ])
    def test_worst_status(self, a, b, expected):
        assert worst_status(a, b) == expected

    def test_worst_status_tie_returns_second(self):
        assert worst_status("critical", HealthState.CRITICAL) is HealthState.CRITICAL

    def test_colors(self):
        assert color_by_status(HealthState.NORMAL) == COL_NORMAL
        assert color_by_status("critical") == COL_CRITICAL
        assert color_by_status(None) == COL_UNKNOWN
        assert color_by_status("bogus") == COL_IGNORED

    def test_root_node_color(self):
        assert node_color(_node(0, ROOT, status=HealthState.CRITICAL)) == COL_IGNORED
        assert node_color(_node(1, DEV, status=HealthState.CRITICAL)) == COL_CRITICAL


class TestHoldingArea:
    def _options(self, holding_area=(500, 500)) -> MapOptions:
        return MapOptions(
            width=900, height=900, max_width=900,
            map_filter=MapFilter(node_radius=40, holding_area=holding_area),
        )

    def test_origin_and_limits(self):
        area = HoldingArea(self._options())
        assert (area.origin_x, area.origin_y) == (510, 510)
        assert area.max_y == 910

    def test_slots_wrap_after_eleven_columns(self):
        area = HoldingArea(self._options())
        slots = [area.next_slot() for _ in range(12)]
        assert (slots[0].x, slots[0].y) == (510, 510)
        assert (slots[10].row, slots[10].column) == (0, 10)
        last = slots[11]
        assert (last.row, last.column, last.x, last.y) == (1, 0, 510, 550)

    def test_rows_clamped_to_max_y(self):
        area = HoldingArea(self._options())
        slots = [area.next_slot() for _ in range(11 * 14)]
        assert max(s.y for s in slots) == area.max_y
        assert slots[-1].row == 13

    def test_first_110_slots_unique(self):
        area = HoldingArea(self._options())
        slots = [(s.x, s.y) for s in (area.next_slot() for _ in range(110))]
        assert len(set(slots)) == 110

    def test_only_holding_nodes_move(self):
        graph = Graph(nodes=(
            _node(1, x=5, y=5),
            _node(2, state="holding_area"),
            _node(3, state="holding_area"),
        ))
        placed = place_holding_area_nodes(graph, self._options(holding_area=(0, 0)))
        assert (placed.node(1).x, placed.node(1).y) == (5, 5)
        assert (placed.node(2).x, placed.node(2).y) == (1010, 1010)
        assert (placed.node(3).x, placed.node(3).y) == (1050, 1010)
        assert graph.node(2).x == 0  # input left alone


class TestApplyLayout:
    def test_positions_applied(self):
        graph = Graph(nodes=(_node(0, ROOT), _node(1)))
        layout = Layout(scale=1, width=800, height=600, positions={0: (10, 20), 1: (30, 40), 9: (0, 0)})
        out = apply_layout(graph, layout)
        assert [(n.x, n.y) for n in out.nodes] == [(10, 20), (30, 40)]

    def test_missing_position_fails_whole_graph(self):
        graph = Graph(nodes=(_node(0, ROOT), _node(1), _node(2)))
        layout = Layout(scale=1, width=800, height=600, positions={0: (1, 1), 1: (2, 2)})
        with pytest.raises(LayoutParseFailure, match="2"):
            apply_layout(graph, layout)


class TestMapCenter:
    def test_root_anchor(self):
        graph = Graph(nodes=(_node(1, x=50, y=50), _node(0, ROOT, x=700, y=200)))
        assert map_center(graph) == (100, 50)

    def test_first_node_without_root(self):
        graph = Graph(nodes=(_node(3, x=600, y=150), _node(4, x=0, y=0)))
        assert map_center(graph) == (0, 0)

    def test_empty_graph(self):
        assert map_center(Graph()) == (0.0, 0.0)
