"""
Append-only entry store.

Source of truth for entry ids: an entry's id is its position in arrival
order, starting at 0. Entries are never removed or replaced.
"""

import logging
from typing import Any, Dict, Iterator, List, Sequence, Union

from .models import WebhookEntry


logger = logging.getLogger(__name__)

EntryInput = Union[WebhookEntry, Dict[str, Any]]


class EntryStore:
    """Ordered, grow-only collection of webhook entries."""

    def __init__(self):
        self._entries: List[WebhookEntry] = []

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[WebhookEntry]:
        return iter(self._entries)

    @property
    def entries(self) -> List[WebhookEntry]:
        """Backing list; callers must treat it as read-only."""
        return self._entries

    def append(self, entry: EntryInput) -> WebhookEntry:
        """Normalize and append an entry, returning the stored entry.

        Missing method, path or client_ip are stored as empty strings.
        """
        if not isinstance(entry, WebhookEntry):
            if not isinstance(entry, dict):
                logger.warning(f"Entry of type {type(entry).__name__} is not a mapping, storing empty entry")
                entry = {}
            entry = WebhookEntry.from_dict(entry)

        missing = entry.missing_fields
        if missing:
            logger.warning(
                f"Entry {len(self._entries)} is missing required fields: {', '.join(missing)}"
            )

        self._entries.append(entry)
        return entry

    def get(self, entry_id: int) -> WebhookEntry:
        """Get an entry by id.

        Raises:
            KeyError: If no entry has that id
        """
        if entry_id < 0 or entry_id >= len(self._entries):
            raise KeyError(entry_id)
        return self._entries[entry_id]

    def snapshot(self) -> Sequence[WebhookEntry]:
        return tuple(self._entries)
