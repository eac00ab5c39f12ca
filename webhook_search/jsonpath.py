"""
Restricted JSONPath evaluation.

Supports only the root expression ``$`` and dot-chained field access
``$.field1.field2``. List steps accept a decimal index (``$.items.0``).
Anything else evaluates to None. Evaluation never raises.
"""

import hashlib
import logging
from typing import Any, Hashable, List, Optional

from .cache import FifoCache
from .tokenizer import serialize


logger = logging.getLogger(__name__)

_MISSING = object()


def parse_expression(expression: str) -> Optional[List[str]]:
    """Split an expression into field steps.

    Args:
        expression: JSONPath expression

    Returns:
        List of field names ([] for the root), or None if unsupported
    """
    if expression == '$':
        return []
    if expression.startswith('$.'):
        return expression[2:].split('.')
    return None


def is_supported(expression: str) -> bool:
    return bool(expression) and parse_expression(expression.strip()) is not None


def _step(current: Any, part: str) -> Any:
    if isinstance(current, dict):
        return current.get(part, _MISSING)
    if isinstance(current, (list, tuple)) and part.isdigit():
        index = int(part)
        return current[index] if index < len(current) else _MISSING
    return _MISSING


def evaluate_json_path(value: Any, expression: str) -> Any:
    """Evaluate an expression against a value without caching.

    Args:
        value: The JSON value to project
        expression: Restricted JSONPath expression

    Returns:
        The projected value, or None when the path is missing or unsupported
    """
    if not expression:
        return None
    parts = parse_expression(expression.strip())
    if parts is None:
        return None

    current = value
    try:
        for part in parts:
            current = _step(current, part)
            if current is _MISSING or current is None:
                return None
    except Exception as e:
        logger.debug(f"JSONPath traversal failed for {expression!r}: {e}")
        return None
    return current


class JsonPathEvaluator:
    """JSONPath evaluator with a bounded FIFO memoization cache.

    Cache keys pair the expression with a key derived from the serialized
    target. By default that is a SHA-256 digest of the whole serialization.
    When key_length is set, the first key_length characters of the
    serialization are used instead; distinct values sharing that prefix then
    share a cache slot and may return each other's result.
    """

    def __init__(self, cache_size: int = 500, key_length: Optional[int] = None):
        self.key_length = key_length
        self._cache: FifoCache[Any] = FifoCache(cache_size)

    def __len__(self) -> int:
        return len(self._cache)

    @property
    def hits(self) -> int:
        return self._cache.hits

    @property
    def misses(self) -> int:
        return self._cache.misses

    def _target_key(self, value: Any) -> Hashable:
        text = serialize(value)
        if self.key_length is not None:
            return text[:self.key_length]
        return hashlib.sha256(text.encode('utf-8')).hexdigest()

    def evaluate(self, value: Any, expression: str) -> Any:
        """Evaluate an expression, consulting the cache first.

        Args:
            value: The JSON value to project
            expression: Restricted JSONPath expression

        Returns:
            The projected value or None; failures are cached as None
        """
        if not expression:
            return None

        try:
            key = (expression, self._target_key(value))
        except Exception as e:
            logger.debug(f"JSONPath target not serializable: {e}")
            return None

        found, result = self._cache.lookup(key)
        if found:
            return result

        result = evaluate_json_path(value, expression)
        self._cache.put(key, result)
        return result

    def clear(self) -> None:
        self._cache.clear()

    def stats(self) -> dict:
        return self._cache.stats()
