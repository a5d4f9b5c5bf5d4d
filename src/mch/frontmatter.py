"""Frontmatter building utilities for stored contexts.

This module serializes a Context to YAML frontmatter followed by its markdown
content. Parsing goes the other way in ``mch.storage.markdown``.
"""

import yaml

from .models import Context


def _yaml_quote_if_needed(value: str) -> str:
    """Quote a string value if it contains YAML special characters.

    Uses PyYAML to determine if quoting is needed by testing if the value
    roundtrips correctly through YAML parsing. Characters like `: `, `#`,
    and leading `*`, `&`, `%`, `@`, etc. require quoting.

    Args:
        value: The string value to potentially quote.

    Returns:
        The value, quoted if necessary for valid YAML.
    """
    test_yaml = f"key: {value}"
    try:
        parsed = yaml.safe_load(test_yaml)
        if isinstance(parsed, dict) and parsed.get("key") == value:
            return value  # Roundtrips safely, no quoting needed
    except yaml.YAMLError:
        pass
    # Need quoting - let PyYAML figure out proper escaping
    dumped = yaml.safe_dump({"key": value}, default_flow_style=False).strip()
    # Returns 'key: VALUE' or "key: 'VALUE'" - extract the value part
    return dumped[5:]


def _format_yaml_list(items: list[str]) -> str:
    """Format a list as YAML list items with indentation.

    Args:
        items: List of strings to format.

    Returns:
        Multi-line string with "  - item" format, no trailing newline.
    """
    return "\n".join(f"  - {_yaml_quote_if_needed(item)}" for item in items)


def _format_vector(values: list[float]) -> str:
    # PyYAML's float representer keeps exponents parseable (1.0e-05, not 1e-05)
    return yaml.safe_dump([float(v) for v in values], default_flow_style=True, width=float("inf")).strip()


def build_frontmatter(context: Context) -> str:
    """Build YAML frontmatter string from a context.

    Produces consistent, clean frontmatter by:
    - Always including required fields (id, type, created_at, updated_at)
    - Only including optional fields when they are set
    - Writing the embedding as a single flow-style list

    Args:
        context: The context to serialize.

    Returns:
        Complete frontmatter string including --- delimiters and trailing newlines.
    """
    parts = ["---"]

    parts.append(f"id: {context.id}")
    parts.append(f"type: {context.type}")

    if context.summary:
        parts.append(f"summary: {_yaml_quote_if_needed(context.summary)}")

    if context.tags:
        parts.append("tags:")
        parts.append(_format_yaml_list(context.tags))
    else:
        parts.append("tags: []")

    # Hierarchy placement (absent for legacy flat contexts)
    if context.project_id:
        parts.append(f"project_id: {context.project_id}")
    if context.sprint_id:
        parts.append(f"sprint_id: {context.sprint_id}")

    if context.source:
        parts.append(f"source: {_yaml_quote_if_needed(context.source)}")

    if context.related_links:
        parts.append("related_links:")
        for link in context.related_links:
            parts.append(f"  - target_id: {link.target_id}")
            parts.append(f"    score: {link.score!r}")

    if context.embedding:
        parts.append(f"embedding: {_format_vector(context.embedding)}")

    parts.append(f"created_at: {context.created_at.isoformat()}")
    parts.append(f"updated_at: {context.updated_at.isoformat()}")

    parts.append("---\n\n")

    return "\n".join(parts)


def render_context(context: Context) -> str:
    """Full markdown document: frontmatter followed by content."""
    return build_frontmatter(context) + context.content
