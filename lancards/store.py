"""
Content Store — File-Backed Destination Collection
===================================================
The only owner and the only writer of the destinations file.

    load()      — read the file; seed sample data when it doesn't exist,
                  migrate legacy cards, persist if anything changed
    save()      — atomic write: temp file in the same directory, fsync,
                  decode-verify, os.replace
    mutators    — change memory, then persist immediately; a failed
                  write restores the previous in-memory state
    validate()  — advisory duplicate-id check, never raises

All access goes through one re-entrant lock, so writes never interleave.
"""

from __future__ import annotations

import copy
import json
import logging
import os
import tempfile
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional, Union

from lancards.errors import PersistenceFailure
from lancards.migration import migrate_destinations
from lancards.models import CulturalCard, Destination, sample_destinations, utc_now

logger = logging.getLogger(__name__)


@dataclass
class ValidationReport:
    ok: bool
    problems: list[str] = field(default_factory=list)

    def __bool__(self) -> bool:
        return self.ok


def _missing_ids(raw: list) -> bool:
    for destination in raw:
        if not isinstance(destination, dict) or not destination.get("id"):
            return True
        for card in destination.get("culturalCards") or []:
            if not isinstance(card, dict) or not card.get("id"):
                return True
    return False


class ContentStore:
    """Destinations persisted as one UTF-8 JSON array."""

    def __init__(self, path: Union[str, Path],
                 seed: Callable[[], list[Destination]] = sample_destinations):
        self.path = Path(path).expanduser()
        self.seed = seed
        self._lock = threading.RLock()
        self._destinations: list[Destination] = []
        self._loaded = False

    @property
    def destinations(self) -> list[Destination]:
        """A snapshot; mutate through the store's methods."""
        with self._lock:
            self._ensure_loaded()
            return list(self._destinations)

    def _ensure_loaded(self):
        if not self._loaded:
            self.load()

    # ── Load / Save ─────────────────────────────────────────

    def load(self) -> list[Destination]:
        """Read the destinations file.

        A missing file is seeded, and the seed stays in memory even if
        it can't be written.

        Raises:
            PersistenceFailure: the file exists but can't be read or decoded.
        """
        with self._lock:
            if not self.path.exists():
                logger.info("No saved data at %s; seeding sample destinations", self.path)
                self._destinations = self.seed()
                self._loaded = True
                try:
                    self.save()
                except PersistenceFailure as e:
                    logger.error("Could not write seeded destinations: %s", e)
                return list(self._destinations)

            try:
                raw = json.loads(self.path.read_text(encoding="utf-8"))
                if not isinstance(raw, list):
                    raise ValueError("expected a JSON array of destinations")
                destinations = [Destination.from_dict(item) for item in raw]
            except (OSError, ValueError, TypeError, AttributeError) as e:
                raise PersistenceFailure(f"Failed to load destinations from {self.path}: {e}") from e

            self._destinations = destinations
            self._loaded = True
            changed = migrate_destinations(self._destinations, raw)
            if changed or _missing_ids(raw):
                self.save()

            logger.info("Loaded %d destinations from %s", len(self._destinations), self.path)
            return list(self._destinations)

    def save(self):
        """Write the whole collection atomically.

        Raises:
            PersistenceFailure: the write failed; the old file is untouched.
        """
        with self._lock:
            payload = json.dumps([d.to_dict() for d in self._destinations],
                                 ensure_ascii=False, indent=2)
            tmp_path = None
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.",
                                                suffix=".tmp")
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(payload)
                    f.flush()
                    os.fsync(f.fileno())
                with open(tmp_path, encoding="utf-8") as f:
                    json.load(f)
                os.replace(tmp_path, self.path)
                tmp_path = None
            except (OSError, ValueError) as e:
                raise PersistenceFailure(f"Failed to save destinations to {self.path}: {e}") from e
            finally:
                if tmp_path is not None and os.path.exists(tmp_path):
                    os.unlink(tmp_path)
            logger.debug("Saved %d destinations to %s", len(self._destinations), self.path)

    def _commit(self, mutate: Callable[[], object]):
        """Apply `mutate` then save; on a failed save put memory back as it was."""
        with self._lock:
            self._ensure_loaded()
            snapshot = copy.deepcopy(self._destinations)
            result = mutate()
            try:
                self.save()
            except PersistenceFailure:
                self._destinations = snapshot
                raise
            return result

    # ── Queries ─────────────────────────────────────────────

    def get_destination(self, destination_id: str) -> Optional[Destination]:
        with self._lock:
            self._ensure_loaded()
            for destination in self._destinations:
                if destination.id == destination_id:
                    return destination
            return None

    def find_destination(self, name: str) -> Optional[Destination]:
        """Case-insensitive lookup by name or country."""
        key = (name or "").strip().lower()
        with self._lock:
            self._ensure_loaded()
            for destination in self._destinations:
                if key in (destination.name.lower(), destination.country.lower()):
                    return destination
            return None

    def _require(self, destination_id: str) -> Destination:
        destination = self.get_destination(destination_id)
        if destination is None:
            raise KeyError(f"Unknown destination: {destination_id}")
        return destination

    # ── Mutations ───────────────────────────────────────────

    def add_destination(self, destination: Destination) -> Destination:
        def mutate():
            self._destinations.append(destination)
            return destination
        self._commit(mutate)
        logger.info("Added destination %s", destination.name)
        return destination

    def remove_destination(self, destination_id: str) -> Optional[Destination]:
        def mutate():
            for index, destination in enumerate(self._destinations):
                if destination.id == destination_id:
                    return self._destinations.pop(index)
            return None
        removed = self._commit(mutate)
        if removed:
            logger.info("Removed destination %s", removed.name)
        return removed

    def update_destination(self, destination: Destination) -> bool:
        """Replace a destination (matched by id) with an edited copy."""
        def mutate():
            for index, existing in enumerate(self._destinations):
                if existing.id == destination.id:
                    destination.last_updated = utc_now()
                    self._destinations[index] = destination
                    return True
            return False
        return self._commit(mutate)

    def add_card(self, destination_id: str, card: CulturalCard) -> CulturalCard:
        """Append a card to a destination and persist.

        Raises:
            KeyError: no destination has that id.
        """
        def mutate():
            self._require(destination_id).add_card(card)
            return card
        self._commit(mutate)
        logger.info("Added card %r to destination %s", card.title, destination_id)
        return card

    def remove_card(self, destination_id: str, card_id: str) -> Optional[CulturalCard]:
        return self._commit(lambda: self._require(destination_id).remove_card(card_id))

    def replace_card(self, destination_id: str, card: CulturalCard) -> bool:
        """Swap in a regenerated card with the same id."""
        return self._commit(lambda: self._require(destination_id).replace_card(card))

    # ── Validation ──────────────────────────────────────────

    def validate(self) -> ValidationReport:
        """Check for duplicate destination ids and duplicate card ids per destination."""
        problems = []
        with self._lock:
            self._ensure_loaded()
            seen = set()
            for destination in self._destinations:
                if destination.id in seen:
                    problems.append(f"duplicate destination id {destination.id} ({destination.name})")
                seen.add(destination.id)

                card_ids = set()
                for card in destination.cultural_cards:
                    if card.id in card_ids:
                        problems.append(f"duplicate card id {card.id} in {destination.name}")
                    card_ids.add(card.id)
                    problems.extend(card.problems())
        for problem in problems:
            logger.warning("Validation: %s", problem)
        return ValidationReport(ok=not problems, problems=problems)
