import json
import os
import tempfile
import unittest
from datetime import datetime, timezone

from session_log import SCHEMA, SessionLogger
from topocore.model import DeviceKind
from topocore.store import TopologyStore


class TestSessionLogger(unittest.TestCase):
    def test_records_store_events(self):
        log = SessionLogger()
        store = TopologyStore()
        store.subscribe(log.add)
        a = store.add_node(DeviceKind.PC, 1, 2)
        b = store.add_node(DeviceKind.ROUTER, 3, 4)
        store.add_link(a.id, b.id, "eth0", "Gi0/0")
        store.delete_node(a.id)

        self.assertEqual(log.kinds(), ["add_node", "add_node", "add_link", "delete_node"])
        last = log.tail(1)[0]
        self.assertEqual(last.data["id"], a.id)
        self.assertEqual(len(last.data["links"]), 1)

    def test_max_events_keeps_newest(self):
        log = SessionLogger(max_events=3)
        for i in range(5):
            log.add("tick", n=i)
        self.assertEqual([e.data["n"] for e in log.events], [2, 3, 4])

    def test_tail_filter(self):
        log = SessionLogger()
        log.add("a")
        log.add("b", x=1)
        log.add("a")
        self.assertEqual(len(log.tail(10, kind="a")), 2)
        self.assertEqual(log.tail(0), [])

    def test_save_json(self):
        log = SessionLogger()
        log.add("select", id="n1")
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "log.json")
            log.save_json(path)
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
        self.assertEqual(data["schema"], SCHEMA)
        self.assertEqual(data["eventCount"], 1)
        self.assertEqual(data["events"][0]["data"], {"id": "n1"})

    def test_default_filename(self):
        now = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
        self.assertEqual(SessionLogger.default_filename(now), "session_log_20240102T030405Z.session.json")


if __name__ == "__main__":
    unittest.main()
