import os
import unittest
from types import SimpleNamespace
from unittest import mock

from ai.analyst import (
    EMPTY_MESSAGE,
    FAILURE_MESSAGE,
    MISSING_KEY_MESSAGE,
    AnalysisReply,
    NetworkAnalyst,
    format_reply,
)
from topocore.model import DeviceKind
from topocore.store import TopologyStore


def small_topology():
    store = TopologyStore()
    r = store.add_node(DeviceKind.ROUTER, 0, 0)
    s = store.add_node(DeviceKind.SWITCH, 100, 0)
    store.add_link(r.id, s.id, "Gi0/0", "Fa0/1")
    return store.nodes, store.links


def fake_client(reply=None, error=None):
    client = mock.Mock()
    if error is not None:
        client.responses.parse.side_effect = error
    else:
        client.responses.parse.return_value = SimpleNamespace(output_parsed=reply)
    return client


class TestNetworkAnalyst(unittest.TestCase):
    def test_missing_key_returns_message_without_calling(self):
        client = fake_client(AnalysisReply(message="ok"))
        analyst = NetworkAnalyst(client=client)
        with mock.patch.dict(os.environ, {}, clear=True):
            out = analyst.analyze(*small_topology())
        self.assertEqual(out, MISSING_KEY_MESSAGE)
        client.responses.parse.assert_not_called()

    def test_request_failure_is_reported_as_text(self):
        analyst = NetworkAnalyst(client=fake_client(error=RuntimeError("boom")))
        with mock.patch.dict(os.environ, {"OPENAI_API_KEY": "sk-test"}):
            out = analyst.analyze(*small_topology())
        self.assertEqual(out, FAILURE_MESSAGE)
        self.assertEqual(analyst.last_error, "boom")

    def test_successful_reply_is_formatted(self):
        reply = AnalysisReply(message="Looks fine.", findings=["Add a gateway to PC-3"])
        client = fake_client(reply)
        analyst = NetworkAnalyst(model="test-model", client=client)
        with mock.patch.dict(os.environ, {"OPENAI_API_KEY": "sk-test"}):
            out = analyst.analyze(*small_topology())

        self.assertEqual(out, "Looks fine.\n\nFindings:\n- Add a gateway to PC-3")
        kwargs = client.responses.parse.call_args.kwargs
        self.assertEqual(kwargs["model"], "test-model")
        self.assertIs(kwargs["text_format"], AnalysisReply)

    def test_empty_reply(self):
        analyst = NetworkAnalyst(client=fake_client(None))
        with mock.patch.dict(os.environ, {"OPENAI_API_KEY": "sk-test"}):
            self.assertEqual(analyst.analyze(*small_topology()), EMPTY_MESSAGE)

    def test_build_input_carries_description(self):
        analyst = NetworkAnalyst(client=fake_client())
        messages = analyst.build_input(*small_topology())
        self.assertEqual([m["role"] for m in messages], ["system", "user"])
        text = messages[1]["content"][0]["text"]
        self.assertIn("ROUTER-1 (Router)", text)
        self.assertIn("Link: ROUTER-1 <---> SWITCH-2", text)

    def test_model_from_environment(self):
        with mock.patch.dict(os.environ, {"NET_PLANNER_AI_MODEL": "gpt-test"}):
            self.assertEqual(NetworkAnalyst(client=fake_client()).model, "gpt-test")


class TestReplySchema(unittest.TestCase):
    def test_extra_keys_rejected(self):
        with self.assertRaises(Exception):
            AnalysisReply(message="x", score=3)

    def test_format_without_findings(self):
        self.assertEqual(format_reply(AnalysisReply(message="  All good.  ")), "All good.")


if __name__ == "__main__":
    unittest.main()
