"""
Saved filter presets, persisted as a JSON list.

Every preset on disk holds a normalized filter (the output of
FilterSpec.to_dict), so a preset that loads is always one that applies.
Names are unique, compared case-insensitively.
"""

import json
import logging
import threading
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from .models import FilterSpec


logger = logging.getLogger(__name__)


class DuplicatePresetError(ValueError):
    """Raised when a preset name is already in use."""


class PresetStorage:
    """Named filter presets backed by a JSON file.

    The file is created on first write. Reads and writes share an RLock
    so the CLI and the API can use one store from several threads.
    """

    def __init__(self, storage_path: str | Path = "webhook_search/presets.json"):
        self.storage_path = Path(storage_path)
        self._lock = threading.RLock()

    def _load(self) -> List[Dict[str, Any]]:
        if not self.storage_path.exists():
            return []
        text = self.storage_path.read_text().strip()
        if not text:
            return []
        try:
            presets = json.loads(text)
        except json.JSONDecodeError as e:
            logger.warning(f"Ignoring unreadable presets file {self.storage_path}: {e}")
            return []
        if not isinstance(presets, list):
            logger.warning(f"Ignoring presets file {self.storage_path}: expected a list")
            return []
        return presets

    def _save(self, presets: List[Dict[str, Any]]) -> None:
        self.storage_path.parent.mkdir(parents=True, exist_ok=True)
        self.storage_path.write_text(json.dumps(presets, indent=2))

    @staticmethod
    def _clean_name(name: str, presets: List[Dict[str, Any]], skip_id: Optional[str] = None) -> str:
        name = (name or "").strip()
        if not name:
            raise ValueError("Preset name must not be empty")
        for preset in presets:
            if preset.get("id") != skip_id and str(preset.get("name", "")).lower() == name.lower():
                raise DuplicatePresetError(f"A preset named '{name}' already exists")
        return name

    def get_all(self) -> List[Dict[str, Any]]:
        """Get all presets in creation order."""
        with self._lock:
            return self._load()

    def get_by_id(self, preset_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            return next((p for p in self._load() if p.get("id") == preset_id), None)

    def find_by_name(self, name: str) -> Optional[Dict[str, Any]]:
        """Look up a preset by name, ignoring case."""
        wanted = name.strip().lower()
        with self._lock:
            return next(
                (p for p in self._load() if str(p.get("name", "")).lower() == wanted),
                None,
            )

    def load_spec(self, preset_id: str) -> Optional[FilterSpec]:
        """Build the FilterSpec saved under a preset id.

        Returns:
            The filter, or None if no preset has that id

        Raises:
            ValueError: If the stored filters were edited into an invalid state
        """
        preset = self.get_by_id(preset_id)
        if preset is None:
            return None
        return FilterSpec.from_dict(preset.get("filters"))

    def create(self, name: str, filters: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Save a new preset under a fresh id.

        Args:
            name: Display name, unique ignoring case
            filters: Filter fields in snake_case or camelCase

        Returns:
            The stored preset

        Raises:
            DuplicatePresetError: If the name is taken
            ValueError: If the name is empty or the filters are invalid
        """
        spec = FilterSpec.from_dict(filters)
        with self._lock:
            presets = self._load()
            now = datetime.now(timezone.utc).isoformat()
            preset = {
                "id": str(uuid.uuid4()),
                "name": self._clean_name(name, presets),
                "filters": spec.to_dict(),
                "created_at": now,
                "updated_at": now,
            }
            presets.append(preset)
            self._save(presets)

        logger.info(f"Saved filter preset '{preset['name']}' ({preset['id']})")
        return preset

    def update(
        self,
        preset_id: str,
        name: Optional[str] = None,
        filters: Optional[Dict[str, Any]] = None,
    ) -> Optional[Dict[str, Any]]:
        """Rename a preset and/or replace its filters.

        Returns:
            The updated preset, or None if no preset has that id

        Raises:
            DuplicatePresetError: If the new name belongs to another preset
            ValueError: If the name is empty or the filters are invalid
        """
        spec = FilterSpec.from_dict(filters) if filters is not None else None
        with self._lock:
            presets = self._load()
            preset = next((p for p in presets if p.get("id") == preset_id), None)
            if preset is None:
                return None

            if name is not None:
                preset["name"] = self._clean_name(name, presets, skip_id=preset_id)
            if spec is not None:
                preset["filters"] = spec.to_dict()
            preset["updated_at"] = datetime.now(timezone.utc).isoformat()
            self._save(presets)
            return preset

    def delete(self, preset_id: str) -> bool:
        """Remove a preset; False if no preset has that id."""
        with self._lock:
            presets = self._load()
            remaining = [p for p in presets if p.get("id") != preset_id]
            if len(remaining) == len(presets):
                return False
            self._save(remaining)

        logger.info(f"Deleted filter preset {preset_id}")
        return True
