"""
Gemini adapter.

Sends built messages to the chat model built at startup and returns the
reply text plus the grounding citations. Provider failures are mapped to
RemoteUnavailable (worth pressing the button again later) or RemoteRejected
(the provider refused this request). Nothing is retried here.
"""

from typing import Any, Dict, List, Optional, Tuple

from langsmith import traceable
from langchain_core.messages import AnyMessage
from polyclinic.config import Settings, create_chat_model, logger
from polyclinic.errors import RemoteRejected, RemoteUnavailable
from polyclinic.models import InvocationConfig, ModelReply

GOOGLE_SEARCH_TOOL = {"google_search": {}}
LOCAL_MEDIA = ("image",)  # data blocks ChatOllama can read
TRANSIENT_STATUS = {408, 429, 500, 502, 503, 504}
TRANSIENT_MARKERS = ("429", "503", "quota", "resource exhausted", "unavailable", "timed out", "timeout",
                     "fetch failed", "connection")


def _status_code(exc: Exception) -> Optional[int]:
    for attr in ("status_code", "code", "status"):
        value = getattr(exc, attr, None)
        if isinstance(value, int):
            return int(value)
    response = getattr(exc, "response", None)
    value = getattr(response, "status_code", None)
    return int(value) if isinstance(value, int) else None


def is_unavailable(exc: Exception) -> bool:
    """True for network, quota and provider-outage errors."""
    if isinstance(exc, (ConnectionError, TimeoutError)):
        return True
    if _status_code(exc) in TRANSIENT_STATUS:
        return True
    description = f"{type(exc).__name__} {exc}".lower()
    return any(marker in description for marker in TRANSIENT_MARKERS)


def message_text(message: Any) -> str:
    """Join the text parts of an AI message (thinking and media parts are skipped)."""
    content = getattr(message, "content", message)
    if content is None:
        return ""
    if isinstance(content, str):
        return content
    texts = []
    for part in content:
        if isinstance(part, str):
            texts.append(part)
        elif isinstance(part, dict) and part.get("type", "text") == "text":
            texts.append(part.get("text") or "")
    return "".join(texts)


def grounding_citations(message: Any) -> List[Dict[str, Any]]:
    """Raw {title, uri} entries from the grounding metadata, if search was used."""
    metadata = getattr(message, "response_metadata", None) or {}
    grounding = metadata.get("grounding_metadata") or metadata.get("groundingMetadata") or {}
    chunks = grounding.get("grounding_chunks") or grounding.get("groundingChunks") or []
    citations = []
    for chunk in chunks:
        if isinstance(chunk, dict) and isinstance(chunk.get("web"), dict):
            citations.append(dict(chunk["web"]))
    return citations


class GeminiAdapter:
    """Remote invocation of the injected chat model."""

    def __init__(self, model, accepted_media: Optional[Tuple[str, ...]] = None):
        self.model = model
        self.accepted_media = accepted_media  # None accepts every data block type

    @classmethod
    def from_settings(cls, settings: Settings) -> "GeminiAdapter":
        accepted = LOCAL_MEDIA if settings.local_llms else None
        return cls(create_chat_model(settings), accepted_media=accepted)

    def check_media(self, messages: List[AnyMessage]) -> None:
        """
        Refuse data blocks the model cannot read before anything is sent.

        Raises:
            RemoteRejected: a message carries an audio or file block the model does not accept
        """
        if self.accepted_media is None:
            return
        for message in messages:
            content = getattr(message, "content", None)
            if not isinstance(content, list):
                continue
            for part in content:
                kind = part.get("type") if isinstance(part, dict) else None
                if kind in (None, "text") or kind in self.accepted_media:
                    continue
                raise RemoteRejected(f"{type(self.model).__name__} cannot read {kind} attachments, "
                                     f"only {', '.join(self.accepted_media)}")

    def _configured_model(self, config: InvocationConfig):
        updates = {"temperature": config.temperature}
        if config.reasoning_budget is not None:
            updates["thinking_budget"] = config.reasoning_budget
        if config.structured_output_mode == "strict-schema":
            updates["response_mime_type"] = "application/json"
            updates["format"] = "json"  # Ollama equivalent

        # Only touch generation fields the model class actually has
        fields = getattr(type(self.model), "model_fields", None) or {}
        supported = {name: value for name, value in updates.items() if name in fields}
        if "response_mime_type" in supported:
            supported.pop("format", None)
        model = self.model.model_copy(update=supported) if supported else self.model

        if config.enable_search_augmentation:
            try:
                model = model.bind_tools([GOOGLE_SEARCH_TOOL])
            except (NotImplementedError, ValueError, TypeError) as e:
                logger.warning(f"Search augmentation not supported by {type(self.model).__name__}: {e}")
        return model

    @traceable(run_type="llm")
    def invoke(self, messages: List[AnyMessage], config: Optional[InvocationConfig] = None) -> ModelReply:
        """
        Send the messages and return the raw reply.

        Args:
            messages: System instruction and user content built for the request
            config: Generation options; defaults apply when omitted

        Returns:
            ModelReply with the reply text and raw citation entries

        Raises:
            RemoteUnavailable: network, quota or provider outage
            RemoteRejected: the provider returned an error for this request
        """
        config = config or InvocationConfig()
        self.check_media(messages)
        model = self._configured_model(config)
        try:
            response = model.invoke(messages)
        except Exception as e:
            if is_unavailable(e):
                raise RemoteUnavailable(f"Model unavailable: {e}") from e
            raise RemoteRejected(f"Model rejected the request: {e}") from e

        reply = ModelReply(text=message_text(response), citations=grounding_citations(response))
        logger.info(f"Model replied with {len(reply.text)} characters and {len(reply.citations)} citations")
        return reply
