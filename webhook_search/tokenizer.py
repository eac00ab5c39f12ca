"""
Entry tokenizer.

Turns a webhook entry into the tokens stored by each inverted index
dimension. Tokenization is pure: the same entry always yields the same
tokens, and nested or non-string payload content never raises.
"""

import json
import re
from typing import Any, FrozenSet

from .models import EntryTokens, WebhookEntry


# Separators for the free-text dimension. Quotes are included so that
# serialized JSON strings do not leave quote characters on the tokens.
TERM_SEPARATORS = re.compile(r'''[\s,.:;\-_/\\\[\]{}()"'=&?!<>|+*@#]+''')

MIN_TERM_LENGTH = 3


def serialize(value: Any) -> str:
    """Serialize a value to canonical JSON text.

    Values JSON cannot represent natively are rendered with str().
    """
    return json.dumps(value, sort_keys=True, default=str, ensure_ascii=False)


def path_segments(path: str) -> FrozenSet[str]:
    """Split a request path into lowercase, non-empty segments."""
    return frozenset(segment for segment in path.lower().split('/') if segment)


def text_terms(text: str) -> FrozenSet[str]:
    """Split text into lowercase terms longer than two characters."""
    return frozenset(
        term for term in TERM_SEPARATORS.split(text.lower())
        if len(term) >= MIN_TERM_LENGTH
    )


def entry_text(entry: WebhookEntry) -> str:
    """Full searchable text of an entry: its serialized JSON form."""
    try:
        return serialize(entry.to_dict())
    except (TypeError, ValueError):
        # Circular payloads; fall back to the plain representation
        return repr(entry.to_dict())


def tokenize(entry: WebhookEntry) -> EntryTokens:
    """Extract index tokens for every dimension of an entry.

    Args:
        entry: The entry to tokenize

    Returns:
        EntryTokens with method, path segments, ip, terms and timestamp
    """
    return EntryTokens(
        method=entry.method.upper(),
        path_segments=path_segments(entry.path),
        ip=entry.client_ip.lower(),
        terms=text_terms(entry_text(entry)),
        timestamp_millis=entry.timestamp_millis,
    )
