"""Property-file loading for binding configuration.

Bindings are configured through a flat string mapping, assembled from one or
more ``.properties`` files (``-P``) and individual ``-p key=value`` overrides.
"""

from __future__ import annotations

import os
from pathlib import Path


def parse_properties(text: str) -> dict[str, str]:
    """Parse ``key=value`` / ``key: value`` lines; ``#`` and ``!`` start comments."""
    props: dict[str, str] = {}
    for raw in text.splitlines():
        line = raw.strip()
        if not line or line[0] in "#!":
            continue
        # Split on whichever separator comes first
        positions = [i for i in (line.find("="), line.find(":")) if i >= 0]
        if not positions:
            props[line] = ""
            continue
        sep = min(positions)
        props[line[:sep].strip()] = line[sep + 1:].strip()
    return props


def parse_override(item: str) -> tuple[str, str]:
    """Split a ``key=value`` command-line override."""
    key, sep, value = item.partition("=")
    if not sep or not key.strip():
        raise ValueError(f"Expected key=value, got {item!r}")
    return key.strip(), value.strip()


def load_properties(
    paths: list[str | os.PathLike] | None = None,
    overrides: list[str] | None = None,
) -> dict[str, str]:
    """Merge property files in order, then apply overrides on top."""
    props: dict[str, str] = {}
    for path in paths or []:
        props.update(parse_properties(Path(path).read_text()))
    for item in overrides or []:
        key, value = parse_override(item)
        props[key] = value
    return props
