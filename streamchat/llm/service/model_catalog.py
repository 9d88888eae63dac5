"""
Model catalog ordering.

Each provider gets a recency heuristic so the newest / most capable model sits at the head
of its catalog. Ollama catalogs are already ordered by modification time at discovery, so
they keep their order.
"""

import re
from typing import Callable, Dict, Iterable, List, Tuple

_OPENAI_VERSION = re.compile(r"gpt-(\d+(?:\.\d+)?)")
_GEMINI_VERSION = re.compile(r"gemini-(\d+(?:\.\d+)?)")
# family name followed directly by a version; "mixtral-8x7b" has none
_GENERIC_VERSION = re.compile(r"^[a-z]+-?(\d+(?:\.\d+)?)(?![\dx])")


def _version(pattern: re.Pattern, name: str) -> Tuple[int, ...]:
    match = pattern.search(name.lower())
    if not match:
        return (0, 0, 0)
    parts = [int(part) for part in match.group(1).split(".")][:3]
    return tuple(parts + [0] * (3 - len(parts)))


def _openai_key(name: str):
    lowered = name.lower()
    variant = 0
    if re.search(r"gpt-\d+(?:\.\d+)?o", lowered):
        variant = 2
    elif "turbo" in lowered:
        variant = 1
    if "mini" in lowered or "nano" in lowered:
        variant -= 3
    return (_negate(_version(_OPENAI_VERSION, name)), -variant, lowered)


def _gemini_key(name: str):
    lowered = name.lower()
    if "pro" in lowered:
        tier = 2
    elif "flash" in lowered:
        tier = 1
    else:
        tier = 0
    if "lite" in lowered or "8b" in lowered:
        tier -= 1
    return (_negate(_version(_GEMINI_VERSION, name)), -tier, lowered)


def _generic_key(name: str):
    return (_negate(_version(_GENERIC_VERSION, name)), name.lower())


def _negate(version: Tuple[int, ...]) -> Tuple[int, ...]:
    return tuple(-part for part in version)


_SORT_KEYS: Dict[str, Callable[[str], tuple]] = {
    "openai": _openai_key,
    "gemini": _gemini_key,
    "groq": _generic_key,
}


def dedupe(models: Iterable[str]) -> List[str]:
    seen = set()
    out = []
    for model in models:
        if model and model not in seen:
            seen.add(model)
            out.append(model)
    return out


def sort_models(provider_id: str, models: Iterable[str]) -> List[str]:
    """Order a catalog newest-first for the given provider (duplicates dropped)."""
    unique = dedupe(models)
    key = _SORT_KEYS.get(provider_id)
    if key is None:
        return unique
    return sorted(unique, key=key)
