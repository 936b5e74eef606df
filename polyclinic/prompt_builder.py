"""
Build the model request for one analysis.

The user content is ordered: the context text block first, then every
attachment followed by its caption. The persona, safety rules and output
schema travel as the system instruction, which the model reads as the final
word on the output format.
"""

from typing import Any, Dict, List

from langchain_core.messages import AnyMessage, HumanMessage

from polyclinic.config import DEFAULT_LANGUAGE
from polyclinic.media import prepare_attachment, to_media_part
from polyclinic.models import AnalysisRequest
from polyclinic.prompts import analysis_prompt
from polyclinic.specialties import Specialty


def _format_value(value: Any) -> str:
    if isinstance(value, bool):
        return "yes" if value else "no"
    if isinstance(value, (list, tuple)):
        return ", ".join(str(item) for item in value)
    return str(value)


def context_text(request: AnalysisRequest, specialty: Specialty) -> str:
    lines = [
        f"Department: {specialty.department.replace('-', ' ').title()}",
        f"Test: {specialty.title}",
    ]

    fields = {k: v for k, v in request.fields.items() if v is not None and str(v).strip() != ""}
    if fields:
        lines.append("")
        lines.append("Patient data:")
        for name, value in fields.items():
            lines.append(f"- {name}: {_format_value(value)}")

    if request.context.strip():
        lines.append("")
        lines.append("Clinical context:")
        lines.append(request.context.strip())

    return "\n".join(lines)


def build_content(request: AnalysisRequest, specialty: Specialty) -> List[Dict[str, str]]:
    """
    Turn a request into ordered multimodal content parts.

    Args:
        request: Inputs collected by the screen
        specialty: Table row for the requested department/mode

    Returns:
        [context text, media, caption, media, caption, ...]
    """
    parts = [{"type": "text", "text": context_text(request, specialty)}]
    for attachment in request.attachments:
        prepared = prepare_attachment(attachment)
        parts.append(to_media_part(prepared))
        parts.append({"type": "text", "text": attachment.caption or specialty.caption})
    return parts


def build_messages(request: AnalysisRequest, specialty: Specialty, language: str = DEFAULT_LANGUAGE) -> List[AnyMessage]:
    instruction = analysis_prompt(
        persona=specialty.persona,
        task=specialty.task,
        schema=specialty.schema,
        language=language,
        kind=specialty.expected,
    )
    return [instruction, HumanMessage(content=build_content(request, specialty))]
