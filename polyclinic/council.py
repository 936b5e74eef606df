"""
Free-text council operations.

These sit beside the JSON analyses and return markdown or plain text: the
board consensus between the two intake doctors, dictation transcription and
the trend report over a patient's visits.
"""

from typing import Any, Dict, List

from langchain_core.messages import AnyMessage, HumanMessage

from polyclinic.config import DEFAULT_LANGUAGE, DEFAULT_TEMPERATURE, logger
from polyclinic.errors import MalformedModelOutput, MissingInput
from polyclinic.gemini import GeminiAdapter
from polyclinic.media import to_media_part
from polyclinic.models import Attachment, InvocationConfig
from polyclinic.prompts import consensus_prompt, timeline_prompt, transcription_prompt


class MedicalCouncil:
    """Text-returning operations run through the same adapter as the analyses."""

    def __init__(self, adapter: GeminiAdapter, language: str = DEFAULT_LANGUAGE,
                 temperature: float = DEFAULT_TEMPERATURE):
        self.adapter = adapter
        self.language = language
        self.temperature = temperature

    def _ask(self, messages: List[AnyMessage], operation: str, temperature: float) -> str:
        reply = self.adapter.invoke(messages, InvocationConfig(temperature=temperature))
        text = reply.text.strip()
        if not text:
            raise MalformedModelOutput(f"Empty reply for {operation}")
        logger.info(f"{operation} finished ({len(text)} characters)")
        return text

    def consensus(self, modern: Dict[str, Any], traditional: Dict[str, Any]) -> str:
        """
        Merge the modern and traditional intake opinions into one plan.

        Args:
            modern: The "modern" section of an intake analysis
            traditional: The "traditional" section of the same analysis

        Returns:
            Markdown with conflicts, the unified plan and the doctors' closing dialogue
        """
        if not modern or not traditional:
            raise MissingInput("Both the modern and the traditional opinion are required")
        messages = [
            consensus_prompt(modern, traditional, self.language),
            HumanMessage(content="Write the board consensus for this patient."),
        ]
        return self._ask(messages, "Consensus", self.temperature)

    def transcribe(self, dictation: Attachment) -> str:
        """Transcribe an audio dictation word for word."""
        if dictation.kind != "audio":
            raise MissingInput(f"Transcription needs an audio file, got {dictation.mime_type}")
        messages = [
            transcription_prompt(self.language),
            HumanMessage(content=[to_media_part(dictation),
                                  {"type": "text", "text": "Medical dictation."}]),
        ]
        return self._ask(messages, "Transcription", 0.0)

    def timeline(self, current: Dict[str, Any], history: List[Dict[str, Any]]) -> str:
        """
        Trend report for the current visit against past visits.

        Args:
            current: Data and results of the current visit
            history: Past visits, oldest first

        Returns:
            Markdown trend report
        """
        if not current:
            raise MissingInput("The current visit is required for a timeline review")
        messages = [
            timeline_prompt(current, list(history or []), self.language),
            HumanMessage(content="Review the patient's timeline."),
        ]
        return self._ask(messages, "Timeline analysis", self.temperature)
