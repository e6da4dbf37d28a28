import os
from typing import Any, Dict, List, Optional, Sequence

from openai import OpenAI
from pydantic import BaseModel, ConfigDict, Field

from topocore.codec import describe_topology
from topocore.model import Link, Node


# OpenAI Structured Outputs requires "additionalProperties": false on every
# object schema, hence extra="forbid".


class AnalysisReply(BaseModel):
    model_config = ConfigDict(extra="forbid")

    message: str = Field(..., description="Markdown review of the topology to show the user.")
    findings: List[str] = Field(
        default_factory=list,
        description="Short list of concrete problems or suggested fixes (may be empty).",
    )


DEFAULT_MODEL = "gpt-4o-2024-08-06"

MISSING_KEY_MESSAGE = (
    "Error: OPENAI_API_KEY is not set. Set it as an environment variable and restart the app."
)
FAILURE_MESSAGE = "An error occurred during the analysis. Please try again later."
EMPTY_MESSAGE = "The model did not return an analysis."


SYSTEM_PROMPT = """\
You are a network engineer and instructor embedded in a topology design app.
A student designed the network described below.

Your job:
1) Evaluate the topology logic (isolated devices, links that make no sense).
2) Check the configuration (IP address / subnet consistency, server services
   compatible with the server operating system).
3) If you find mistakes or gaps, suggest a fix for each one in 'findings'.
4) If the design is good, say so and highlight one strength.

Answer in Markdown. Be brief and helpful.
Always return JSON matching the AnalysisReply schema (no extra keys).\
"""


class NetworkAnalyst:
    """Sends a textual description of the topology to OpenAI for review.

    This collaborator is unreliable by nature: a missing key or a failed
    request come back as an explanatory string, never as an exception.
    """

    def __init__(self, model: Optional[str] = None, client: Optional[Any] = None):
        # Set OPENAI_API_KEY as an environment variable (do NOT hardcode it).
        self.model = model or os.getenv("NET_PLANNER_AI_MODEL", DEFAULT_MODEL)
        self._client = client
        self.last_error: Optional[str] = None

    def _get_client(self):
        if self._client is None:
            self._client = OpenAI(api_key=os.getenv("OPENAI_API_KEY"))
        return self._client

    def build_input(self, nodes: Sequence[Node], links: Sequence[Link]) -> List[Dict[str, Any]]:
        description = describe_topology(nodes, links)
        # Responses API: content parts use type="input_text".
        return [
            {"role": "system", "content": [{"type": "input_text", "text": SYSTEM_PROMPT}]},
            {"role": "user", "content": [{"type": "input_text", "text": description}]},
        ]

    def request(self, nodes: Sequence[Node], links: Sequence[Link]) -> Optional[AnalysisReply]:
        resp = self._get_client().responses.parse(
            model=self.model,
            input=self.build_input(nodes, links),
            text_format=AnalysisReply,
        )
        return resp.output_parsed

    def analyze(self, nodes: Sequence[Node], links: Sequence[Link]) -> str:
        self.last_error = None
        if not os.getenv("OPENAI_API_KEY"):
            self.last_error = "Missing OPENAI_API_KEY"
            return MISSING_KEY_MESSAGE

        try:
            reply = self.request(nodes, links)
        except Exception as e:
            self.last_error = str(e)
            return FAILURE_MESSAGE

        if reply is None or not reply.message.strip():
            return EMPTY_MESSAGE
        return format_reply(reply)


def format_reply(reply: AnalysisReply) -> str:
    text = reply.message.strip()
    if reply.findings:
        text += "\n\nFindings:\n- " + "\n- ".join(reply.findings)
    return text
