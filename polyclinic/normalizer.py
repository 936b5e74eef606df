"""
Turn a parsed model reply into the report a screen renders.

The normalizer only adds: a ``sources`` list built from the grounding
citations and empty lists for list fields the model left out. Fields the
model returned are passed through untouched, scores included.
"""

from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from polyclinic.config import PLACEHOLDER_SOURCE_TITLE, logger
from polyclinic.models import Citation

PLACEHOLDER_URIS = {"", "#", "about:blank"}


def _citation_from_entry(entry: Any) -> Optional[Citation]:
    if isinstance(entry, Citation):
        entry = entry.to_dict()
    if not isinstance(entry, Mapping):
        return None

    # Raw grounding chunks nest the source under "web"
    if isinstance(entry.get("web"), Mapping):
        entry = entry["web"]

    uri = entry.get("uri")
    if not isinstance(uri, str) or uri.strip() in PLACEHOLDER_URIS:
        return None

    title = entry.get("title")
    if not isinstance(title, str) or not title.strip():
        title = PLACEHOLDER_SOURCE_TITLE
    return Citation(title=title.strip(), uri=uri.strip())


def normalize_sources(citations: Optional[Iterable[Any]]) -> List[Dict[str, str]]:
    """Map raw citation entries to {title, uri}, dropping placeholders and duplicates."""
    sources = []
    seen = set()
    if not isinstance(citations, Iterable) or isinstance(citations, (str, bytes, Mapping)):
        return sources
    for entry in citations:
        citation = _citation_from_entry(entry)
        if citation is None or citation.uri in seen:
            continue
        seen.add(citation.uri)
        sources.append(citation.to_dict())
    return sources


def normalize_analysis(
    parsed: Union[dict, list],
    citations: Optional[Iterable[Any]] = None,
    list_fields: Iterable[str] = (),
) -> Union[dict, list]:
    """
    Build the report handed to rendering.

    Args:
        parsed: Value returned by parse_model_json
        citations: Raw citation entries from the model reply
        list_fields: Fields the screen renders as lists; missing ones become []

    Returns:
        A new dict with defaults and ``sources`` added (a list copy for
        array replies)
    """
    if isinstance(parsed, list):
        if citations:
            logger.debug("Array reply, grounding sources are not attached")
        return list(parsed)

    result = dict(parsed)
    for name in list_fields:
        if name not in result:
            result[name] = []

    sources = normalize_sources(citations)
    if "sources" in result:
        if sources:
            logger.debug("Model returned its own sources, keeping them")
    else:
        result["sources"] = sources
    return result
