"""Binding registry — lazy imports so missing optional deps don't crash the CLI."""

from __future__ import annotations

import sys
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .base import DB


def get_bindings() -> dict[str, type[DB]]:
    """Return available binding classes, skipping those with missing deps."""
    registry: dict[str, type[DB]] = {}

    def _try_register(name: str, module: str, cls_name: str) -> None:
        try:
            mod = __import__(module, fromlist=[cls_name])
            registry[name] = getattr(mod, cls_name)
        except ImportError as e:
            # Only a missing store client justifies skipping silently;
            # anything else is a broken binding and is reported.
            missing = getattr(e, "name", None)
            expected_missing = {"redis"}
            if missing and missing.split(".")[0] in expected_missing:
                pass
            else:
                print(f"Warning: failed to load {name} binding: {e}", file=sys.stderr)

    _try_register("kv", "bindings.kv.binding", "KvBinding")

    return registry
