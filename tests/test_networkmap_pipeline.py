"""End-to-end pipeline tests (fake layout engine) and payload rendering."""

from netmap.services.networkmap.entities import (
    InMemoryEntitySource,
    RawEntity,
    SubComponentInfo,
    SubComponentLink,
)
from netmap.services.networkmap.options import MapFilter, MapOptions
from netmap.services.networkmap.pipeline import (
    generate_network_map,
    root_only_result,
    simulate_network_map,
)
from netmap.services.networkmap.postprocess import COL_CRITICAL, COL_IGNORED, COL_WARNING
from netmap.services.networkmap.render import (
    failed_payload,
    interface_label,
    render_payload,
    resolve_image,
)
from netmap.services.networkmap.types import (
    Canvas,
    Graph,
    HealthState,
    Node,
    NodeType,
    Relation,
)

from tests.conftest import FailingLayoutEngine, FakeLayoutEngine


OPTIONS = MapOptions(width=900, height=900, max_width=900)


def _linked_inventory():
    entities = [
        RawEntity(key="1", label="A", type="device", device_id=1, os_name="Linux"),
        RawEntity(key="2", label="B", type="device", device_id=2, parent_id="1", os_name="Cisco IOS"),
        RawEntity(key="3", label="C", type="device", device_id=3, parent_id="2"),
    ]
    source = InMemoryEntitySource(
        entities,
        links=[SubComponentLink(11, 1, 21, 2)],
        subcomponents=[
            SubComponentInfo(id=11, device_id=1, name="eth0_ifOperStatus", status=HealthState.NORMAL),
            SubComponentInfo(id=21, device_id=2, name="eth1_ifOperStatus", status=HealthState.CRITICAL),
        ],
    )
    return entities, source


class TestGenerateNetworkMap:
    def test_positions_canvas_and_center(self, fake_engine):
        entities, source = _linked_inventory()
        result = generate_network_map(entities, OPTIONS, source, fake_engine)

        assert (result.canvas.width, result.canvas.height) == (800, 600)
        root = result.graph.root
        assert (root.x, root.y) == (-60, -60)
        assert (result.canvas.center_x, result.canvas.center_y) == (-660, -210)
        assert (result.graph.node(3).x, result.graph.node(3).y) == (60, -60)

    def test_program_and_edges(self, fake_engine):
        entities, source = _linked_inventory()
        result = generate_network_map(entities, OPTIONS, source, fake_engine)

        assert fake_engine.calls[0][1] == "neato"
        pairs = sorted(tuple(sorted(r.pair)) for r in result.graph.relations)
        assert pairs == [(0, 1), (1, 2), (2, 3)]

    def test_empty_map_has_root_only(self, fake_engine):
        entities, source = _linked_inventory()
        options = MapOptions(width=900, height=900, map_filter=MapFilter(empty_map=True))
        result = generate_network_map(entities, options, source, fake_engine)
        assert [n.type for n in result.graph.nodes] == [NodeType.ROOT]
        assert result.graph.relations == ()

    def test_root_only_result(self):
        result = root_only_result(OPTIONS)
        assert [n.id_node for n in result.graph.nodes] == [0]
        assert (result.canvas.width, result.canvas.height) == (900, 900)


class TestSimulateNetworkMap:
    def test_simulated_payload(self, fake_engine):
        entities, source = _linked_inventory()
        payload = simulate_network_map(entities, OPTIONS, source, fake_engine)

        assert payload.error is None
        assert len(payload.nodes) == 4
        assert len(payload.links) == 3
        assert payload.config.holding_area_dimensions == (0, 0)
        # simulated maps report graph ids as database ids
        assert [n.id_db for n in payload.nodes] == [0, 1, 2, 3]

    def test_linked_edge_color_and_interface_text(self, fake_engine):
        entities, source = _linked_inventory()
        payload = simulate_network_map(entities, OPTIONS, source, fake_engine)

        link = next(l for l in payload.links if l.arrow_start == "subcomponent")
        assert (link.source, link.target) == (2, 1)
        assert link.link_color == COL_CRITICAL
        assert (link.text_start, link.text_end) == ("eth1", "eth0")
        assert (link.subcomponent_start, link.subcomponent_end) == (21, 11)
        assert link.status_start is HealthState.CRITICAL

    def test_layout_failure_gives_empty_payload(self):
        entities, source = _linked_inventory()
        engine = FailingLayoutEngine()
        payload = simulate_network_map(entities, OPTIONS, source, engine)

        assert payload.nodes == []
        assert payload.links == []
        assert "exited with status 1" in payload.error
        assert engine.calls == 1

    def test_default_source_from_entities(self):
        entities = [RawEntity(key="hub", label="Hub"), RawEntity(key="leaf", label="Leaf", parent_id="hub")]
        payload = simulate_network_map(entities, OPTIONS, engine=FakeLayoutEngine())
        assert [n.type for n in payload.nodes] == [NodeType.ROOT, NodeType.GENERIC, NodeType.GENERIC]
        assert {(l.source, l.target) for l in payload.links} == {(0, 1), (1, 2)}


class TestRenderPayload:
    def _graph(self, **node_kw) -> Graph:
        root = Node(id_node=0, type=NodeType.ROOT, source_id="0", label="NetworkMap")
        dev = Node(
            id_node=1, type=NodeType.DEVICE, source_id="1", label="<core> & switch fabric",
            device_id=1, status=HealthState.WARNING, os_name="Linux", **node_kw,
        )
        rel = Relation(
            parent_node_id=0, child_node_id=1,
            parent_type=NodeType.ROOT, child_type=NodeType.DEVICE, child_device_id=1,
        )
        return Graph(nodes=(root, dev), relations=(rel,))

    def test_node_fields(self):
        payload = render_payload(self._graph(), Canvas(800, 600, -600, -150), OPTIONS)
        root, dev = payload.nodes
        assert root.color == COL_IGNORED
        assert dev.color == COL_WARNING
        assert dev.raw_text == "<core> & switch fabric"
        assert dev.text == "&lt;core&gt; &amp; switch fabric"
        assert dev.image_url == "images/os_icons/linux.png"
        assert (dev.width, dev.height) == (40, 40)
        assert payload.config.center == (-600, -150)
        assert payload.config.dimensions == (800, 600)

    def test_cut_names(self):
        options = MapOptions(width=900, height=900, cut_names=True)
        dev = render_payload(self._graph(), Canvas(800, 600), options).nodes[1]
        assert dev.raw_text == "<core> & switch fabric"
        assert dev.text == "&lt;core&gt; ...fabric"

    def test_link_color_from_worst_end(self):
        link = render_payload(self._graph(), Canvas(800, 600), OPTIONS).links[0]
        # root has no status, the device end is warning
        assert link.link_color == COL_WARNING
        assert (link.arrow_start, link.arrow_end) == ("device", "device")

    def test_explicit_link_style_wins(self):
        graph = self._graph()
        rel = graph.relations[0]
        styled = Relation(
            parent_node_id=rel.parent_node_id, child_node_id=rel.child_node_id,
            parent_type=rel.parent_type, child_type=rel.child_type,
            link_color="#123456", text_start="uplink",
        )
        link = render_payload(graph.with_relations([styled]), Canvas(1, 1), OPTIONS).links[0]
        assert link.link_color == "#123456"
        assert link.text_start == "uplink"

    def test_persisted_ids(self):
        graph = self._graph(id_db=41)
        payload = render_payload(graph, Canvas(1, 1), OPTIONS, map_id="m1", simulated=False)
        assert payload.nodes[1].id_db == 41
        assert payload.nodes[1].map_id == "m1"

    def test_failed_payload(self):
        payload = failed_payload(OPTIONS, "dot exited with status 1")
        assert payload.nodes == [] and payload.links == []
        assert payload.error == "dot exited with status 1"
        assert payload.config.refresh_time_ms > 0


class TestRenderHelpers:
    def test_interface_label(self):
        assert interface_label("Gi0/1_ifOperStatus") == "Gi0/1"
        assert interface_label("cpu_load") is None
        assert interface_label(None) is None

    def test_images(self):
        sub = Node(id_node=2, type=NodeType.SUBCOMPONENT, source_id="5", label="p", module_type="Remote Proc")
        assert resolve_image(sub) == "images/module_types/remote_proc.png"
        gen = Node(id_node=3, type=NodeType.GENERIC, source_id="g", label="g")
        assert resolve_image(gen) == ""
        custom = Node(id_node=4, type=NodeType.GENERIC, source_id="h", label="h", image="cloud.png")
        assert resolve_image(custom) == "cloud.png"
