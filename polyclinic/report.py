from typing import Any, Dict, List, Union

DISCLAIMER = ("***DISCLAIMER: This is an AI-generated analysis for informational purposes only. "
              "All clinical decisions must be made by a qualified healthcare provider.***")


def _label(key: str) -> str:
    # camelCase -> "Camel Case"
    words = []
    current = ""
    for char in key:
        if char.isupper() and current:
            words.append(current)
            current = char
        else:
            current += char
    words.append(current)
    return " ".join(word.capitalize() for word in words if word)


def _format_value(value: Any, indent: int = 0) -> List[str]:
    pad = "  " * indent
    if isinstance(value, dict):
        lines = []
        for key, item in value.items():
            if isinstance(item, (dict, list)):
                lines.append(f"{pad}- **{_label(str(key))}:**")
                lines.extend(_format_value(item, indent + 1))
            else:
                lines.append(f"{pad}- **{_label(str(key))}:** {item}")
        return lines
    if isinstance(value, list):
        if not value:
            return [f"{pad}- (none)"]
        lines = []
        for item in value:
            if isinstance(item, dict):
                lines.append(f"{pad}- " + ", ".join(f"{_label(str(k))}: {v}" for k, v in item.items()))
            else:
                lines.append(f"{pad}- {item}")
        return lines
    return [f"{pad}{value}"]


def format_sources(sources: List[Dict[str, str]]) -> str:
    """Format grounding sources into a references section."""
    if not sources:
        return """### References
No web sources were consulted during this analysis."""

    formatted = ["### References"]
    for source in sources:
        if isinstance(source, dict):
            formatted.append(f"- {source.get('title')}: {source.get('uri')}")
        else:
            formatted.append(f"- {source}")
    return "\n".join(formatted)


def format_report(analysis: Union[Dict[str, Any], List[Any]], title: str = "Analysis Report") -> str:
    """Render a normalized analysis as markdown text for the terminal."""
    parts = [DISCLAIMER, "", f"# **{title}**", ""]

    if isinstance(analysis, list):
        parts.extend(_format_value(analysis))
        return "\n".join(parts)

    for key, value in analysis.items():
        if key == "sources":
            continue
        parts.append(f"### {_label(key)}")
        parts.extend(_format_value(value))
        parts.append("")

    sources = analysis.get("sources")
    parts.append(format_sources(sources if isinstance(sources, list) else []))
    return "\n".join(parts)
