"""Flatten nested Bugsnag event JSON into dotted-key rows."""
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger(__name__)

CollisionHandler = Callable[[str, str, str], None]


def stringify(value: Any) -> str:
    """Convert a JSON leaf to its CSV cell text.

    Booleans become ``"true"``/``"false"`` and ``None`` becomes an empty
    string. Numbers use Python's own ``str`` so floats keep their shortest
    round-trip form (``1.0`` stays ``"1.0"``).
    """

    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _children(value: Any):
    if isinstance(value, dict):
        return value.items()
    return enumerate(value)


def flatten(value: Any, on_collision: Optional[CollisionHandler] = None) -> Dict[str, str]:
    """Flatten ``value`` into a mapping of dotted paths to strings.

    List positions are used as keys. Empty mappings and lists contribute no
    entries. A scalar at the top level flattens to ``{"": value}``.

    When two paths end up with the same dotted key (``{"a.b": 1, "a": {"b": 2}}``)
    the later one wins; the collision is logged and passed to ``on_collision``.
    """

    if not isinstance(value, (dict, list)):
        return {"": stringify(value)}

    flat: Dict[str, str] = {}

    def _put(key: str, text: str) -> None:
        if key in flat:
            logger.warning("Flattened key %r collides; replacing %r with %r", key, flat[key], text)
            if on_collision is not None:
                on_collision(key, flat[key], text)
        flat[key] = text

    def _walk(node: Any, prefix: Optional[str]) -> None:
        for key, child in _children(node):
            path = str(key) if prefix is None else f"{prefix}.{key}"
            if isinstance(child, (dict, list)):
                _walk(child, path)
            else:
                _put(path, stringify(child))

    _walk(value, None)
    return flat
