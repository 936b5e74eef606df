import io
from typing import Any, List, Optional

import pytest
from PIL import Image
from pydantic import BaseModel, ConfigDict
from langchain_core.messages import AIMessage

from polyclinic.gemini import GeminiAdapter
from polyclinic.pipeline import AnalysisPipeline


class FakeChatModel(BaseModel):
    """Stands in for ChatGoogleGenerativeAI: canned replies, recorded calls."""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    temperature: float = 0.7
    thinking_budget: Optional[int] = None
    response_mime_type: Optional[str] = None
    replies: List[Any] = []
    error: Optional[Exception] = None
    calls: List[Any] = []
    seen: List[Any] = []  # (temperature, thinking_budget, response_mime_type) per call
    tools: List[Any] = []

    def bind_tools(self, tools):
        self.tools.extend(tools)
        return self

    def invoke(self, messages):
        self.calls.append(messages)
        self.seen.append((self.temperature, self.thinking_budget, self.response_mime_type))
        if self.error is not None:
            raise self.error
        reply = self.replies.pop(0)
        if isinstance(reply, AIMessage):
            return reply
        return AIMessage(content=reply)


def grounded_reply(text: str, *webs) -> AIMessage:
    chunks = [{"web": web} for web in webs]
    return AIMessage(content=text, response_metadata={"grounding_metadata": {"grounding_chunks": chunks}})


@pytest.fixture
def fake_model():
    return FakeChatModel()


@pytest.fixture
def pipeline(fake_model):
    return AnalysisPipeline(GeminiAdapter(fake_model))


@pytest.fixture
def png_bytes():
    image = Image.new("RGB", (2048, 1024), color=(200, 30, 30))
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()
