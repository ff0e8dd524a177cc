"""Discovery index: a snapshot of every transition across all units.

The index file is JSON::

    {"transitions": [{"from": "pending", "event": "ACCEPT", "to": "accepted",
                      "platforms": ["web"], "file": "tests/implications/..."}]}

It is loaded once per compilation run into an immutable
:class:`DiscoveryIndex`; lookups are pure functions over that snapshot.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from src.generator.graph import Transition
from src.generator.naming import state_matches

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IndexedTransition:
    """One ``from --event--> to`` triple of the index."""

    event: str
    from_state: str
    to_state: str
    platforms: tuple[str, ...] = ()
    source_file: str | None = None

    def to_transition(self) -> Transition:
        return Transition(
            event=self.event,
            from_state=self.from_state,
            to_state=self.to_state,
            platforms=self.platforms,
            source_path=self.source_file,
        )


@dataclass(frozen=True)
class DiscoveryIndex:
    transitions: tuple[IndexedTransition, ...] = ()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DiscoveryIndex:
        entries = data.get("transitions") if isinstance(data, dict) else None
        if not isinstance(entries, list):
            return cls()
        parsed = []
        for entry in entries:
            if not isinstance(entry, dict):
                continue
            event, from_state, to_state = entry.get("event"), entry.get("from"), entry.get("to")
            if not all(isinstance(v, str) and v for v in (event, from_state, to_state)):
                logger.debug(f"Skipping incomplete discovery entry: {entry}")
                continue
            platforms = entry.get("platforms") or ()
            parsed.append(
                IndexedTransition(
                    event=event,
                    from_state=from_state,
                    to_state=to_state,
                    platforms=tuple(p for p in platforms if isinstance(p, str)),
                    source_file=entry.get("file") or entry.get("sourceFile"),
                )
            )
        return cls(tuple(parsed))

    def __len__(self) -> int:
        return len(self.transitions)


def load_discovery_index(path: str | Path) -> DiscoveryIndex | None:
    """Load the index snapshot; None when the file is absent or unreadable."""
    path = Path(path)
    if not path.is_file():
        logger.debug(f"No discovery index at {path}")
        return None
    try:
        index = DiscoveryIndex.from_dict(json.loads(path.read_text()))
    except (OSError, json.JSONDecodeError) as e:
        logger.warning(f"Ignoring unreadable discovery index {path}: {e}")
        return None
    logger.info(f"Loaded discovery index with {len(index)} transitions")
    return index


def find_incoming(
    target: str, index: DiscoveryIndex, platform: str | None = None
) -> list[IndexedTransition]:
    """Index entries landing on ``target``, deduplicated by (from, event).

    Target matching is case, prefix and underscore insensitive. With a
    platform, entries restricted to other platforms are dropped.
    """
    found: list[IndexedTransition] = []
    seen: set[tuple[str, str]] = set()
    for entry in index.transitions:
        if not state_matches(entry.to_state, target):
            continue
        if platform and entry.platforms and platform not in entry.platforms:
            continue
        key = (entry.from_state, entry.event)
        if key in seen:
            continue
        seen.add(key)
        found.append(entry)
    return found
