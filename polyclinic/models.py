"""
Data model shared by the prompt builder, the Gemini adapter and the pipeline.

Everything here is transient: a request lives for one analysis and is dropped
once the report has been rendered.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional, Tuple

from pydantic import BaseModel, Field


@dataclass(frozen=True)
class Attachment:
    """One uploaded media item (image, audio, video or document)."""
    data: bytes
    mime_type: str
    caption: str = ""

    @property
    def kind(self) -> str:
        """Top-level media type: image, audio, video or application."""
        return self.mime_type.split("/", 1)[0].lower()


@dataclass(frozen=True)
class AnalysisRequest:
    """Inputs collected by one screen for one analysis."""
    specialty: str
    mode: str
    attachments: Tuple[Attachment, ...] = ()
    context: str = ""
    fields: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        # Lists are accepted for convenience but stored as a tuple
        object.__setattr__(self, "attachments", tuple(self.attachments))

    def media_kinds(self) -> List[str]:
        return [attachment.kind for attachment in self.attachments]


@dataclass(frozen=True)
class Citation:
    """A grounding source returned alongside the model reply."""
    title: str
    uri: str

    def to_dict(self) -> Dict[str, str]:
        return {"title": self.title, "uri": self.uri}


@dataclass(frozen=True)
class ModelReply:
    """Raw text and raw grounding entries of one model call."""
    text: str
    citations: List[Dict[str, Any]] = field(default_factory=list)


class InvocationConfig(BaseModel):
    """Generation options for a single model call."""
    temperature: float = Field(default=0.2, ge=0.0, le=1.0, description="Sampling temperature")
    enable_search_augmentation: bool = Field(default=False, description="Ground the answer with Google Search")
    reasoning_budget: Optional[int] = Field(default=None, ge=0, description="Thinking token budget hint")
    structured_output_mode: Optional[Literal["strict-schema", "freeform"]] = Field(
        default=None, description="Ask the provider for JSON output directly"
    )
