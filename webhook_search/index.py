"""
Inverted index over webhook entries.

Maintains four token -> entry-id-set mappings (method, path segment,
client ip, free-text term) plus a timestamp-ordered list used for range
queries. Entries are indexed once, at ingestion time, in time linear in
the number of tokens they produce; the index is never rebuilt.
"""

import bisect
from typing import Dict, Iterable, List, Optional, Set

from .models import EntryTokens, TimeIndexItem, WebhookEntry
from .tokenizer import tokenize


Postings = Dict[str, Set[int]]


class InvertedIndex:
    """Per-dimension inverted index.

    index_entry() must be called at most once per entry id. Indexing the
    same id twice is not guarded against and leaves the time index with a
    duplicate item.
    """

    def __init__(self):
        self.method_index: Postings = {}
        self.path_index: Postings = {}
        self.ip_index: Postings = {}
        self.term_index: Postings = {}
        # (timestamp_millis, entry_id), ascending
        self.time_index: List[TimeIndexItem] = []

    def index_entry(self, entry_id: int, entry: WebhookEntry) -> EntryTokens:
        """Add an entry to every dimension.

        Args:
            entry_id: The id assigned by the entry store
            entry: The entry to index

        Returns:
            The tokens that were indexed
        """
        tokens = tokenize(entry)

        self._add(self.method_index, tokens.method, entry_id)
        for segment in tokens.path_segments:
            self._add(self.path_index, segment, entry_id)
        self._add(self.ip_index, tokens.ip, entry_id)
        for term in tokens.terms:
            self._add(self.term_index, term, entry_id)

        # Insert at the sorted position; equal timestamps keep arrival order
        bisect.insort(self.time_index, (tokens.timestamp_millis, entry_id))

        return tokens

    @staticmethod
    def _add(postings: Postings, token: str, entry_id: int) -> None:
        bucket = postings.get(token)
        if bucket is None:
            bucket = postings[token] = set()
        bucket.add(entry_id)

    def lookup_method(self, method: str) -> Set[int]:
        """Exact lookup of an uppercased method name."""
        return set(self.method_index.get(method.upper(), ()))

    def match_paths(self, substring: str) -> Set[int]:
        """Entries with any path segment containing the substring."""
        return self._match_substring(self.path_index, [substring])

    def match_ips(self, substring: str) -> Set[int]:
        """Entries whose client ip contains the substring."""
        return self._match_substring(self.ip_index, [substring])

    def match_terms(self, words: Iterable[str]) -> Set[int]:
        """Entries with any indexed term containing any of the words."""
        return self._match_substring(self.term_index, words)

    @staticmethod
    def _match_substring(postings: Postings, needles: Iterable[str]) -> Set[int]:
        """Union of buckets whose token contains any needle (case-insensitive).

        Scans every distinct token of the dimension.
        """
        lowered = [n.lower() for n in needles if n]
        matches: Set[int] = set()
        if not lowered:
            return matches
        for token, ids in postings.items():
            if any(needle in token for needle in lowered):
                matches.update(ids)
        return matches

    def time_range(
        self,
        time_from: Optional[int] = None,
        time_to: Optional[int] = None,
    ) -> Set[int]:
        """Entries whose timestamp lies in [time_from, time_to].

        Either bound may be None for an open range.
        """
        lo = 0
        hi = len(self.time_index)
        if time_from is not None:
            lo = bisect.bisect_left(self.time_index, (time_from, -1))
        if time_to is not None:
            # Entry ids are non-negative, so (time_to + 1, -1) sorts after
            # every item stamped time_to
            hi = bisect.bisect_left(self.time_index, (time_to + 1, -1))
        return {entry_id for _, entry_id in self.time_index[lo:hi]}

    def term_count(self, dimension: str) -> int:
        """Number of distinct tokens in a dimension."""
        postings = {
            'method': self.method_index,
            'path': self.path_index,
            'ip': self.ip_index,
            'term': self.term_index,
        }.get(dimension)
        if postings is None:
            raise ValueError(f"Unknown index dimension: {dimension}")
        return len(postings)

    def method_counts(self) -> Dict[str, int]:
        """Number of entries per method token."""
        return {method: len(ids) for method, ids in self.method_index.items()}
