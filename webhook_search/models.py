"""
Data models for the webhook search engine.

Defines dataclasses for captured webhook entries, filter specifications,
per-entry index tokens and search results, plus the timestamp helpers
shared by entries and filters.
"""

import json
import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, FrozenSet, List, Optional, Tuple, Union


TimeValue = Union[datetime, str, int, float]

# Epoch numbers above this are treated as milliseconds rather than seconds.
_MILLIS_THRESHOLD = 1e11

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse a timestamp value into an aware UTC datetime.

    Args:
        value: A datetime, ISO-8601 string or epoch number (seconds or millis)

    Returns:
        Parsed datetime or None if the value cannot be interpreted
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    if isinstance(value, (int, float)):
        seconds = value / 1000.0 if abs(value) > _MILLIS_THRESHOLD else float(value)
        try:
            return datetime.fromtimestamp(seconds, tz=timezone.utc)
        except (ValueError, OSError, OverflowError):
            return None

    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            parsed = datetime.fromisoformat(text.replace('Z', '+00:00'))
        except ValueError:
            return None
        return parse_timestamp(parsed)

    return None


def to_millis(moment: datetime) -> int:
    """Convert an aware datetime to integer epoch milliseconds."""
    return int(round(moment.timestamp() * 1000))


def _time_bound(value: Optional[TimeValue], name: str) -> Optional[int]:
    """Normalize a filter time bound to epoch milliseconds.

    Numbers are already milliseconds here, which is what the inspector UI
    sends for its datetime pickers. Sub-millisecond bounds round inward
    (up for time_from, down for time_to) so the inclusive range never
    admits an entry outside it.
    """
    if value is None or value == '':
        return None
    lower = name == 'time_from'
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        if not math.isfinite(value):
            raise ValueError(f"Invalid {name}: {value!r}")
        return math.ceil(value) if lower else math.floor(value)
    parsed = parse_timestamp(value)
    if parsed is None:
        raise ValueError(f"Invalid {name}: {value!r}")
    micros = (parsed - _EPOCH) // timedelta(microseconds=1)
    return -(-micros // 1000) if lower else micros // 1000


@dataclass(frozen=True)
class WebhookEntry:
    """A single captured HTTP request.

    Attributes:
        method: HTTP method as received (e.g., 'POST')
        path: Request path (e.g., '/hooks/github')
        client_ip: Source address of the request
        headers: Request headers
        payload: Decoded request body (any JSON value)
        timestamp: Capture time as an aware UTC datetime
    """
    method: str
    path: str
    client_ip: str
    headers: Dict[str, str] = field(default_factory=dict)
    payload: Any = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def timestamp_millis(self) -> int:
        return to_millis(self.timestamp)

    @property
    def missing_fields(self) -> List[str]:
        """Names of required fields that were empty at capture time."""
        return [
            name for name in ('method', 'path', 'client_ip')
            if not getattr(self, name)
        ]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'WebhookEntry':
        """Build an entry from a raw mapping, tolerating absent fields.

        Args:
            data: Raw entry as delivered by a transport

        Returns:
            WebhookEntry with empty defaults for anything missing
        """
        client_ip = data.get('client_ip')
        if client_ip is None:
            client_ip = data.get('clientIp', data.get('ip'))

        headers = data.get('headers')
        if not isinstance(headers, dict):
            headers = {}

        timestamp = parse_timestamp(data.get('timestamp'))
        if timestamp is None:
            timestamp = datetime.now(timezone.utc)

        return cls(
            method=str(data.get('method') or ''),
            path=str(data.get('path') or ''),
            client_ip=str(client_ip or ''),
            headers={str(k): str(v) for k, v in headers.items()},
            payload=data.get('payload'),
            timestamp=timestamp,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert entry to a JSON-serializable dictionary."""
        return {
            'method': self.method,
            'path': self.path,
            'client_ip': self.client_ip,
            'headers': dict(self.headers),
            'payload': self.payload,
            'timestamp': self.timestamp.isoformat(),
        }


@dataclass(frozen=True)
class EntryTokens:
    """Index tokens extracted from one entry, per dimension."""
    method: str
    path_segments: FrozenSet[str]
    ip: str
    terms: FrozenSet[str]
    timestamp_millis: int


@dataclass(frozen=True)
class FilterSpec:
    """The complete set of query constraints for one evaluation.

    Empty strings and None mean "no constraint on this dimension".

    Attributes:
        search_text: Whitespace-separated free-text words (OR within the field)
        method: HTTP method, case-insensitive; 'all' disables the filter
        path_substring: Substring matched against individual path segments
        ip_substring: Substring matched against client addresses
        time_from: Inclusive lower bound, epoch millis after normalization
        time_to: Inclusive upper bound, epoch millis after normalization
        json_path_expr: Restricted JSONPath evaluated against the payload
    """
    search_text: str = ''
    method: str = ''
    path_substring: str = ''
    ip_substring: str = ''
    time_from: Optional[TimeValue] = None
    time_to: Optional[TimeValue] = None
    json_path_expr: str = ''

    def __post_init__(self):
        # Frozen, so normalized values go through object.__setattr__
        object.__setattr__(self, 'search_text', (self.search_text or '').strip())
        object.__setattr__(self, 'method', (self.method or '').strip())
        object.__setattr__(self, 'path_substring', (self.path_substring or '').strip())
        object.__setattr__(self, 'ip_substring', (self.ip_substring or '').strip())
        object.__setattr__(self, 'json_path_expr', (self.json_path_expr or '').strip())
        object.__setattr__(self, 'time_from', _time_bound(self.time_from, 'time_from'))
        object.__setattr__(self, 'time_to', _time_bound(self.time_to, 'time_to'))

    @property
    def method_filter(self) -> Optional[str]:
        if not self.method or self.method.lower() == 'all':
            return None
        return self.method.upper()

    @property
    def is_empty(self) -> bool:
        return not (
            self.search_text
            or self.method_filter
            or self.path_substring
            or self.ip_substring
            or self.time_from is not None
            or self.time_to is not None
            or self.json_path_expr
        )

    def cache_key(self) -> str:
        """Serialize the normalized filter into a stable cache key.

        Fields are JSON-encoded as a list, so separators inside a value
        cannot make two different filters share a key.
        """
        return json.dumps([
            self.search_text.lower(),
            self.method_filter,
            self.path_substring.lower(),
            self.ip_substring.lower(),
            self.time_from,
            self.time_to,
            self.json_path_expr,
        ])

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'FilterSpec':
        """Build a filter from snake_case or camelCase keys.

        Raises:
            ValueError: If a time bound cannot be parsed
        """
        data = data or {}

        def pick(*names: str) -> Any:
            for name in names:
                if data.get(name) not in (None, ''):
                    return data[name]
            return None

        return cls(
            search_text=pick('search_text', 'searchText') or '',
            method=pick('method') or '',
            path_substring=pick('path_substring', 'pathSubstring', 'path') or '',
            ip_substring=pick('ip_substring', 'ipSubstring', 'ip') or '',
            time_from=pick('time_from', 'timeFrom'),
            time_to=pick('time_to', 'timeTo'),
            json_path_expr=pick('json_path_expr', 'jsonPathExpr', 'jsonPath') or '',
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'search_text': self.search_text,
            'method': self.method,
            'path_substring': self.path_substring,
            'ip_substring': self.ip_substring,
            'time_from': self.time_from,
            'time_to': self.time_to,
            'json_path_expr': self.json_path_expr,
        }


@dataclass
class SearchResult:
    """Result of applying a filter to the entry set.

    Attributes:
        ids: Matching entry ids (no ordering guarantee)
        total_matches: Number of matching entries
        total_entries: Number of entries known when the query ran
        execution_time_ms: Evaluation time in milliseconds
        cached: Whether the ids came from the result cache
    """
    ids: FrozenSet[int]
    total_matches: int
    total_entries: int
    execution_time_ms: float
    cached: bool = False

    def sorted_ids(self) -> List[int]:
        return sorted(self.ids)


TimeIndexItem = Tuple[int, int]
