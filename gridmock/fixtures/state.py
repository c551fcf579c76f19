"""
ServerState - mutable, resettable state behind the fixtures.

One instance per server, injected into the FixtureStore (never a module
global), so two servers on different ports never share data.

State layout:
- data: named collections and documents, deep-copied from the seed
- counters: id generators, restored to their seeded start values
- overrides: per-route scenario/scope/latency set by /_scenario or presets
- active_preset: name of the preset last applied, if any
- generation: bumped on every reset, never restored
"""

import copy
import json
import logging
from pathlib import Path
from typing import Any, Mapping, Optional

from gridmock.fixtures.models import RouteOverride

logger = logging.getLogger(__name__)


def load_seed(path: Path) -> dict[str, Any]:
    """Read seed data from a JSON object file."""
    with open(path, "r") as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError(f"Seed file {path} must contain a JSON object")
    logger.info(f"🌱 Loaded seed data from {path}: {sorted(data)}")
    return data


class ServerState:
    """Baseline snapshot plus the live overlay built on top of it."""

    def __init__(
        self,
        seed: Optional[Mapping[str, Any]] = None,
        counters: Optional[Mapping[str, int]] = None,
    ):
        self._baseline: dict[str, Any] = copy.deepcopy(dict(seed or {}))
        self._baseline_counters: dict[str, int] = dict(counters or {})
        self.generation = 0
        self._restore()

    def _restore(self) -> None:
        self.data: dict[str, Any] = copy.deepcopy(self._baseline)
        self.counters: dict[str, int] = dict(self._baseline_counters)
        self.overrides: dict[str, RouteOverride] = {}
        self.active_preset: Optional[str] = None

    def reset(self) -> int:
        """Drop every mutation and override; return the new generation."""
        self._restore()
        self.generation += 1
        return self.generation

    def checkpoint(self) -> tuple[dict[str, Any], dict[str, int]]:
        """Copy of data and counters for rollback() if a mutation fails."""
        return copy.deepcopy(self.data), dict(self.counters)

    def rollback(self, checkpoint: tuple[dict[str, Any], dict[str, int]]) -> None:
        data, counters = checkpoint
        self.data = data
        self.counters = counters

    # ------------------------------------------------------------------
    # Collections
    # ------------------------------------------------------------------

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self.data[key] = value

    def collection(self, name: str) -> list:
        """Live list for name; an absent collection reads as empty."""
        items = self.data.get(name)
        if items is None:
            return []
        if not isinstance(items, list):
            raise TypeError(f"State entry '{name}' is not a collection")
        return items

    def append(self, name: str, item: Any) -> Any:
        self.data.setdefault(name, []).append(item)
        return item

    def find(self, name: str, item_id: Any, id_field: str = "id") -> Optional[dict]:
        for item in self.collection(name):
            if isinstance(item, dict) and str(item.get(id_field)) == str(item_id):
                return item
        return None

    def replace(self, name: str, item: dict, id_field: str = "id") -> Optional[dict]:
        """Replace the item with the same id; None if there is none."""
        items = self.collection(name)
        for index, existing in enumerate(items):
            if isinstance(existing, dict) and str(existing.get(id_field)) == str(
                item.get(id_field)
            ):
                items[index] = item
                return item
        return None

    def remove(self, name: str, item_id: Any, id_field: str = "id") -> Optional[dict]:
        items = self.collection(name)
        for index, existing in enumerate(items):
            if isinstance(existing, dict) and str(existing.get(id_field)) == str(item_id):
                return items.pop(index)
        return None

    def next_id(self, name: str, id_field: str = "id") -> int:
        """
        Hand out the next id for name.

        Without a seeded counter, continues after the highest id in the
        collection of the same name.
        """
        if name not in self.counters:
            ids = [
                item[id_field]
                for item in self.collection(name)
                if isinstance(item, dict) and isinstance(item.get(id_field), int)
            ]
            self.counters[name] = max(ids, default=0) + 1
        value = self.counters[name]
        self.counters[name] = value + 1
        return value

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def snapshot(self) -> dict[str, Any]:
        """Deep copy of everything a reset restores (generation excluded)."""
        return {
            "data": copy.deepcopy(self.data),
            "counters": dict(self.counters),
            "overrides": {k: v.to_dict() for k, v in self.overrides.items()},
            "active_preset": self.active_preset,
        }

    def baseline_snapshot(self) -> dict[str, Any]:
        return {
            "data": copy.deepcopy(self._baseline),
            "counters": dict(self._baseline_counters),
            "overrides": {},
            "active_preset": None,
        }
