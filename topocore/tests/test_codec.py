import json
import os
import tempfile
import unittest
from datetime import datetime, timezone
from itertools import count

from topocore import codec
from topocore.errors import MalformedDocumentError
from topocore.model import DeviceKind, OperatingSystem, Service
from topocore.store import TopologyStore

NOW = datetime(2024, 3, 9, 12, 30, tzinfo=timezone.utc)


def make_store():
    seq = count(1)
    return TopologyStore(id_factory=lambda: f"id{next(seq)}")


def sample_store():
    store = make_store()
    r = store.add_node(DeviceKind.ROUTER, 100, 120)
    s = store.add_node(DeviceKind.SERVER, 300, 80)
    p = store.add_node(DeviceKind.PC, 50, 400)
    cfg = s.config
    cfg.os = OperatingSystem.WINDOWS_SERVER
    cfg.services = [Service.DIRECTORY, Service.DNS]
    cfg.gateway = "192.168.1.254"
    store.add_link(r.id, s.id, "Gi0/0", "eth0")
    store.add_link(p.id, r.id, "eth0", "Gi0/1")
    return store


def doc(nodes, links):
    return json.dumps({"version": "1.0", "timestamp": "x", "nodes": nodes, "links": links})


def raw_node(node_id, kind="router", x=0, y=0, **config):
    config.setdefault("name", node_id)
    return {"id": node_id, "type": kind, "x": x, "y": y, "config": config}


def raw_link(link_id, a, b, pa="p1", pb="p2"):
    return {"id": link_id, "sourceId": a, "targetId": b, "sourcePort": pa, "targetPort": pb}


class TestEncode(unittest.TestCase):
    def test_document_shape(self):
        data = codec.encode(sample_store().nodes, sample_store().links, NOW)
        self.assertEqual(data["version"], "1.0")
        self.assertEqual(data["timestamp"], NOW.isoformat())
        self.assertEqual([n["type"] for n in data["nodes"]], ["router", "server", "personal-computer"])

        server = data["nodes"][1]["config"]
        self.assertEqual(server["os"], "windows-server")
        self.assertEqual(server["services"], ["directory-service", "dns"])
        self.assertEqual(server["gateway"], "192.168.1.254")
        self.assertNotIn("vlan", server)

        link = data["links"][0]
        self.assertEqual(
            set(link), {"id", "sourceId", "targetId", "sourcePort", "targetPort"}
        )

    def test_save_load_save_is_identical(self):
        first = codec.dumps(sample_store(), NOW)
        other = make_store()
        codec.load_into(other, first)
        self.assertEqual(codec.dumps(other, NOW), first)

    def test_default_filename(self):
        self.assertEqual(codec.default_filename(NOW), "network-topology-2024-03-09.json")


class TestDecode(unittest.TestCase):
    def test_non_list_nodes_leaves_store_unchanged(self):
        store = sample_store()
        before = codec.dumps(store, NOW)
        with self.assertRaises(MalformedDocumentError):
            codec.load_into(store, json.dumps({"nodes": "not-an-array", "links": []}))
        self.assertEqual(codec.dumps(store, NOW), before)

    def test_invalid_json_is_malformed(self):
        store = sample_store()
        with self.assertRaises(MalformedDocumentError):
            codec.load_into(store, "{not json")
        with self.assertRaises(MalformedDocumentError):
            codec.load_into(store, "[]")
        self.assertEqual(len(store.nodes), 3)

    def test_duplicate_node_id_is_malformed(self):
        text = doc([raw_node("a"), raw_node("a", x=5)], [])
        with self.assertRaises(MalformedDocumentError):
            codec.loads(text)

    def test_extra_fields_are_ignored(self):
        node = raw_node("a", color="red")
        node["zIndex"] = 3
        link = raw_link("l1", "a", "b")
        link["style"] = "dashed"
        nodes, links = codec.loads(doc([node, raw_node("b")], [link]))
        self.assertEqual([n.id for n in nodes], ["a", "b"])
        self.assertEqual(len(links), 1)

    def test_legacy_labels_are_accepted(self):
        text = doc(
            [
                raw_node("s", "Server", os="Linux", services=["Web (Apache)", "SSH", "bogus"]),
                raw_node("r", "ROUTER"),
                raw_node("m", "MLS"),
                raw_node("f", "SERVER", os="Nincs operációs rendszer", services=["Fájl Szerver", "DNS"]),
            ],
            [],
        )
        nodes, _ = codec.loads(text)
        self.assertEqual(
            [n.kind for n in nodes],
            [DeviceKind.SERVER, DeviceKind.ROUTER, DeviceKind.MULTILAYER_SWITCH, DeviceKind.SERVER],
        )
        self.assertEqual(nodes[0].config.os, OperatingSystem.LINUX)
        self.assertEqual(nodes[0].config.services, [Service.WEB_APACHE, Service.SSH])
        self.assertEqual(nodes[3].config.os, OperatingSystem.NONE)
        self.assertEqual(nodes[3].config.services, [Service.FILE_SERVER, Service.DNS])

    def test_unusable_entries_are_skipped(self):
        text = doc(
            [
                raw_node("a"),
                raw_node("b"),
                {"id": "c", "type": "toaster", "x": 0, "y": 0},
                {"id": "d", "type": "router", "x": "left", "y": 0},
                "garbage",
            ],
            [
                raw_link("l1", "a", "b"),
                raw_link("l2", "b", "a"),
                raw_link("l3", "a", "a"),
                raw_link("l4", "a", "ghost"),
                {"id": "l5", "sourceId": "a"},
            ],
        )
        nodes, links = codec.loads(text)
        self.assertEqual([n.id for n in nodes], ["a", "b"])
        self.assertEqual([l.id for l in links], ["l1"])

    def test_missing_config_gets_defaults(self):
        nodes, _ = codec.loads(doc([{"id": "a", "type": "switch", "x": 1, "y": 2}], []))
        c = nodes[0].config
        self.assertEqual(c.name, "a")
        self.assertEqual(c.services, [])
        self.assertIsNone(c.vlan)

    def test_empty_ports_become_port(self):
        link = raw_link("l1", "a", "b", "", None)
        _, links = codec.loads(doc([raw_node("a"), raw_node("b")], [link]))
        self.assertEqual((links[0].source_port, links[0].target_port), ("port", "port"))

    def test_load_replaces_existing_graph(self):
        store = sample_store()
        counts = codec.load_into(store, doc([raw_node("a")], []))
        self.assertEqual(counts, (1, 0))
        self.assertEqual([n.id for n in store.nodes], ["a"])
        self.assertEqual(store.links, [])


class TestFiles(unittest.TestCase):
    def test_write_and_read_path(self):
        store = sample_store()
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, codec.default_filename(NOW))
            codec.write_path(store, path, NOW)
            other = make_store()
            self.assertEqual(codec.read_path(other, path), (3, 2))
        self.assertEqual(codec.dumps(other, NOW), codec.dumps(store, NOW))


class TestProblems(unittest.TestCase):
    def test_clean_document_has_no_problems(self):
        data = codec.encode(sample_store().nodes, sample_store().links, NOW)
        self.assertEqual(codec.find_problems(data), [])

    def test_reports_each_problem(self):
        data = {
            "version": "0.9",
            "nodes": [raw_node("a"), raw_node("a", "toaster"), raw_node("b", os="beos")],
            "links": [raw_link("l1", "a", "a"), raw_link("l2", "a", "zz"), raw_link("l3", "a", "b"), raw_link("l4", "b", "a")],
        }
        problems = codec.find_problems(data)
        self.assertIn("version must be '1.0'.", problems)
        self.assertIn("Duplicate node id: a", problems)
        self.assertTrue(any("toaster" in p for p in problems))
        self.assertTrue(any("beos" in p for p in problems))
        self.assertTrue(any("itself" in p for p in problems))
        self.assertTrue(any("missing node 'zz'" in p for p in problems))
        self.assertIn("Duplicate link between a and b.", problems)

    def test_non_list_services_is_reported(self):
        for services in (5, "dns"):
            node = raw_node("a", services=services)
            problems = codec.find_problems({"version": "1.0", "nodes": [node], "links": []})
            self.assertEqual(problems, ["nodes[0].config.services must be a list."])

    def test_non_string_link_endpoints_are_reported(self):
        data = {
            "version": "1.0",
            "nodes": [raw_node("a"), raw_node("b")],
            "links": [raw_link("l1", ["a"], "b"), raw_link("l2", "a", {"id": "b"})],
        }
        problems = codec.find_problems(data)
        self.assertEqual(
            problems,
            [
                "links[0].sourceId and targetId must be strings.",
                "links[1].sourceId and targetId must be strings.",
            ],
        )

    def test_non_object(self):
        self.assertEqual(codec.find_problems([]), ["Top-level must be an object."])


class TestDescribe(unittest.TestCase):
    def test_describe_topology(self):
        store = sample_store()
        text = codec.describe_topology(store.nodes, store.links)
        self.assertTrue(text.startswith("Devices:\nROUTER-1 (Router)\n  - IP: 192.168.1.1/255.255.255.0"))
        self.assertIn("  - OS: Windows Server", text)
        self.assertIn("  - Services: Active Directory, DNS", text)
        self.assertIn("  - Link: ROUTER-1 <---> SERVER-2", text)
        self.assertIn("  - Link: PC-3 <---> ROUTER-1", text)

    def test_describe_empty(self):
        self.assertEqual(codec.describe_topology([], []), "Devices:\n  (none)\n\nLinks:\n  (none)")


if __name__ == "__main__":
    unittest.main()
