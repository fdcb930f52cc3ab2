"""
Model name normalization.

Maps raw model identifiers to canonical keys for aggregation and pricing,
and canonical keys to human-readable names.
"""

from typing import List


def normalize_model_name(model: str) -> str:
    """Normalize a model name to its canonical form.

    Dots become hyphens and a trailing ``-YYYYMMDD`` release date is removed,
    e.g. ``claude-opus-4.5-20251101`` -> ``claude-opus-4-5``.
    """
    normalized = model.replace(".", "-")

    head, sep, suffix = normalized.rpartition("-")
    if sep and len(suffix) == 8 and suffix.startswith("20") and suffix.isdigit():
        return head

    return normalized


def display_name(normalized: str) -> str:
    """Convert a normalized model name to a display name.

    ``claude-opus-4-5`` -> ``Opus 4.5``, ``gpt-4o-mini`` -> ``GPT-4o Mini``,
    ``gemini-2-5-pro`` -> ``Gemini 2.5 Pro``, ``o1-mini`` -> ``o1 Mini``.
    Unknown names are returned unchanged.
    """
    if not normalized:
        return ""

    if normalized.startswith("claude-"):
        return _claude_name(normalized[len("claude-"):])
    if normalized.startswith("gpt-"):
        return _gpt_name(normalized[len("gpt-"):])
    if normalized.startswith("gemini-"):
        return _gemini_name(normalized[len("gemini-"):])
    if normalized.startswith(("o1", "o3")):
        return _o_series_name(normalized)

    return normalized


def _claude_name(rest: str) -> str:
    family, sep, version = rest.partition("-")
    if not sep:
        return f"Claude {_capitalize(rest)}"
    return f"{_capitalize(family)} {version.replace('-', '.')}"


def _gpt_name(rest: str) -> str:
    variant, sep, suffix = rest.partition("-")
    if not sep:
        return f"GPT-{rest}"
    return f"GPT-{variant} {_capitalize(suffix)}"


def _gemini_name(rest: str) -> str:
    parts = rest.split("-")
    if len(parts) < 2:
        return f"Gemini {rest}"

    version_parts: List[str] = []
    tier_parts: List[str] = []
    for part in parts:
        # Version digits come first; everything after belongs to the tier
        if part.isdigit() and not tier_parts:
            version_parts.append(part)
        else:
            tier_parts.append(_capitalize(part))

    version = ".".join(version_parts)
    tier = " ".join(tier_parts)
    if not tier:
        return f"Gemini {version}"
    return f"Gemini {version} {tier}"


def _o_series_name(name: str) -> str:
    base, sep, suffix = name.partition("-")
    if not sep:
        return name
    return f"{base} {_capitalize(suffix)}"


def _capitalize(text: str) -> str:
    return text[:1].upper() + text[1:]
