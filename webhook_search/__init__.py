"""
Webhook Search Engine Package.

An in-memory multi-field index and query engine for captured webhook
requests, with memoized JSONPath predicates and debounced filtering.
"""

from .cache import FifoCache, ResultCache
from .config import ConfigError, SearchConfig, load_config
from .engine import WebhookSearchEngine
from .index import InvertedIndex
from .jsonpath import JsonPathEvaluator, evaluate_json_path
from .models import (
    EntryTokens,
    FilterSpec,
    SearchResult,
    WebhookEntry,
)
from .query import QueryEvaluator
from .scheduler import DebounceScheduler
from .tokenizer import tokenize

__all__ = [
    'ConfigError',
    'DebounceScheduler',
    'EntryTokens',
    'FifoCache',
    'FilterSpec',
    'InvertedIndex',
    'JsonPathEvaluator',
    'QueryEvaluator',
    'ResultCache',
    'SearchConfig',
    'SearchResult',
    'WebhookEntry',
    'WebhookSearchEngine',
    'evaluate_json_path',
    'load_config',
    'tokenize',
]
