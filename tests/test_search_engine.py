"""
Unit tests for the webhook search engine.

Tests tokenization, incremental indexing, restricted JSONPath evaluation,
FIFO caches, compound filter evaluation, debouncing and configuration.
"""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from webhook_search import (
    ConfigError,
    DebounceScheduler,
    FifoCache,
    FilterSpec,
    InvertedIndex,
    JsonPathEvaluator,
    SearchConfig,
    WebhookEntry,
    WebhookSearchEngine,
    evaluate_json_path,
    load_config,
    tokenize,
)
from webhook_search.models import parse_timestamp, to_millis


BASE_TIME = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


def make_entry(method="GET", path="/", client_ip="10.0.0.1", payload=None, offset_s=0, **extra):
    """Build a raw entry dictionary with a deterministic timestamp."""
    entry = {
        "method": method,
        "path": path,
        "client_ip": client_ip,
        "headers": {"content-type": "application/json"},
        "payload": payload,
        "timestamp": (BASE_TIME + timedelta(seconds=offset_s)).isoformat(),
    }
    entry.update(extra)
    return entry


@pytest.fixture
def engine():
    """Create an empty engine."""
    return WebhookSearchEngine()


@pytest.fixture
def populated(engine):
    """Engine with a small mixed set of entries."""
    engine.submit_entries([
        make_entry("GET", "/api/users", "10.0.0.1", {"user": {"name": "alice", "active": True}}, 0),
        make_entry("POST", "/api/orders", "10.0.0.2", {"order": {"total": 42}, "event": "created"}, 10),
        make_entry("post", "/hooks/github", "192.168.1.5", {"action": "opened", "event": "pull_request"}, 20),
        make_entry("DELETE", "/api/users/7", "192.168.1.6", {"user": {"name": "bob", "active": False}}, 30),
    ])
    return engine


class TestModels:
    """Test cases for entry and filter models."""

    def test_parse_iso_timestamp_with_z(self):
        """Test parsing ISO timestamps with a trailing Z."""
        parsed = parse_timestamp("2024-01-01T12:00:00Z")
        assert parsed == BASE_TIME

    def test_parse_epoch_seconds_and_millis(self):
        """Test epoch numbers in seconds and milliseconds."""
        seconds = BASE_TIME.timestamp()
        assert parse_timestamp(seconds) == BASE_TIME
        assert parse_timestamp(seconds * 1000) == BASE_TIME

    def test_parse_naive_datetime_is_utc(self):
        """Test naive datetimes are treated as UTC."""
        parsed = parse_timestamp(datetime(2024, 1, 1, 12, 0, 0))
        assert parsed == BASE_TIME

    def test_parse_invalid_timestamp(self):
        """Test unparseable timestamps return None."""
        assert parse_timestamp("yesterday") is None
        assert parse_timestamp(None) is None
        assert parse_timestamp({"t": 1}) is None

    def test_entry_from_dict_defaults(self):
        """Test missing fields default to empty values."""
        entry = WebhookEntry.from_dict({"path": "/only-path"})
        assert entry.method == ""
        assert entry.client_ip == ""
        assert entry.headers == {}
        assert entry.payload is None
        assert entry.timestamp.tzinfo is not None
        assert entry.missing_fields == ["method", "client_ip"]

    def test_entry_from_dict_ip_aliases(self):
        """Test clientIp and ip are accepted for the client address."""
        assert WebhookEntry.from_dict({"clientIp": "1.2.3.4"}).client_ip == "1.2.3.4"
        assert WebhookEntry.from_dict({"ip": "5.6.7.8"}).client_ip == "5.6.7.8"

    def test_entry_to_dict_round_trips_timestamp(self):
        """Test to_dict renders the timestamp as ISO-8601."""
        entry = WebhookEntry.from_dict(make_entry())
        assert entry.to_dict()["timestamp"] == BASE_TIME.isoformat()

    def test_filter_spec_from_camel_case(self):
        """Test building a filter from camelCase keys."""
        spec = FilterSpec.from_dict({
            "searchText": "hello",
            "method": "post",
            "path": "api",
            "ip": "10.0",
            "timeFrom": "2024-01-01T12:00:00Z",
            "jsonPath": "$.a",
        })
        assert spec.search_text == "hello"
        assert spec.method_filter == "POST"
        assert spec.path_substring == "api"
        assert spec.ip_substring == "10.0"
        assert spec.time_from == to_millis(BASE_TIME)
        assert spec.time_to is None
        assert spec.json_path_expr == "$.a"

    def test_filter_spec_invalid_time(self):
        """Test an unparseable time bound is rejected."""
        with pytest.raises(ValueError):
            FilterSpec(time_from="not a time")

    def test_filter_spec_method_all_is_unconstrained(self):
        """Test the 'all' method value disables the method filter."""
        assert FilterSpec(method="all").method_filter is None
        assert FilterSpec(method="ALL").is_empty

    def test_filter_cache_key_normalizes_case(self):
        """Test equivalent filters share a cache key."""
        assert FilterSpec(method="get", path_substring="API").cache_key() == \
            FilterSpec(method="GET", path_substring="api").cache_key()
        assert FilterSpec(method="get").cache_key() != FilterSpec(method="post").cache_key()

    def test_filter_cache_key_separators_in_values(self):
        """Test separator characters inside values cannot merge two filters."""
        assert FilterSpec(path_substring="a|b").cache_key() != \
            FilterSpec(path_substring="a", ip_substring="b|").cache_key()
        assert FilterSpec(search_text='x", "y').cache_key() != \
            FilterSpec(search_text="x", method="y").cache_key()

    def test_filter_time_bounds_round_inward(self):
        """Test fractional millisecond bounds never widen the range."""
        spec = FilterSpec(time_from=1700000000000.5, time_to=1700000000009.5)
        assert spec.time_from == 1700000000001
        assert spec.time_to == 1700000000009

        spec = FilterSpec(
            time_from="2024-01-01T12:00:00.000500Z",
            time_to="2024-01-01T12:00:00.001500Z",
        )
        assert spec.time_from == to_millis(BASE_TIME) + 1
        assert spec.time_to == to_millis(BASE_TIME) + 1

    def test_filter_non_finite_time_rejected(self):
        with pytest.raises(ValueError):
            FilterSpec(time_to=float("inf"))


class TestTokenizer:
    """Test cases for entry tokenization."""

    def test_tokenize_dimensions(self):
        """Test tokens are produced for every dimension."""
        entry = WebhookEntry.from_dict(make_entry("post", "/Hooks/GitHub", "10.0.0.1"))
        tokens = tokenize(entry)

        assert tokens.method == "POST"
        assert tokens.path_segments == frozenset({"hooks", "github"})
        assert tokens.ip == "10.0.0.1"
        assert tokens.timestamp_millis == to_millis(BASE_TIME)

    def test_short_terms_dropped_but_short_path_segments_kept(self):
        """Test terms of two characters or fewer are not indexed as text."""
        entry = WebhookEntry.from_dict(make_entry(path="/ab/cd"))
        tokens = tokenize(entry)

        assert "ab" not in tokens.terms
        assert "cd" not in tokens.terms
        assert tokens.path_segments == frozenset({"ab", "cd"})
        assert all(len(term) > 2 for term in tokens.terms)

    def test_terms_cover_headers_and_nested_payload(self):
        """Test free-text terms include header and nested payload content."""
        entry = WebhookEntry.from_dict(make_entry(payload={"deep": {"list": ["Alpha", 12345]}}))
        tokens = tokenize(entry)

        assert "alpha" in tokens.terms
        assert "12345" in tokens.terms
        assert "application" in tokens.terms
        assert "json" in tokens.terms

    def test_tokenize_is_deterministic(self):
        """Test the same entry always yields the same tokens."""
        entry = WebhookEntry.from_dict(make_entry(payload={"b": 1, "a": [1, 2, {"c": "word"}]}))
        assert tokenize(entry) == tokenize(entry)

    def test_tokenize_non_json_payload(self):
        """Test payloads JSON cannot encode do not raise."""
        entry = WebhookEntry.from_dict(make_entry(payload={"when": BASE_TIME, "raw": b"bytes"}))
        tokens = tokenize(entry)
        assert "2024" in tokens.terms


class TestInvertedIndex:
    """Test cases for the inverted index."""

    def test_each_entry_in_one_method_and_ip_bucket(self, populated):
        """Test every entry lands in exactly one method and ip bucket."""
        index = populated.index
        for entry_id in range(populated.entry_count):
            method_buckets = [m for m, ids in index.method_index.items() if entry_id in ids]
            ip_buckets = [ip for ip, ids in index.ip_index.items() if entry_id in ids]
            assert len(method_buckets) == 1
            assert len(ip_buckets) == 1
        assert sorted(entry_id for _, entry_id in index.time_index) == [0, 1, 2, 3]

    def test_time_index_sorted_for_out_of_order_arrival(self):
        """Test the time index stays sorted when entries arrive out of order."""
        index = InvertedIndex()
        offsets = [30, 10, 20, 0, 10]
        for entry_id, offset in enumerate(offsets):
            index.index_entry(entry_id, WebhookEntry.from_dict(make_entry(offset_s=offset)))

        timestamps = [ts for ts, _ in index.time_index]
        assert timestamps == sorted(timestamps)
        assert [entry_id for _, entry_id in index.time_index] == [3, 1, 4, 2, 0]

    def test_incremental_indexing_matches_batch(self):
        """Test indexing one at a time equals indexing in batches."""
        raw = [make_entry(m, p, ip, {"n": i}, i)
               for i, (m, p, ip) in enumerate([
                   ("GET", "/a/b", "1.1.1.1"),
                   ("POST", "/a/c", "2.2.2.2"),
                   ("PUT", "/x", "1.1.1.1"),
               ])]

        one_by_one = WebhookSearchEngine()
        for entry in raw:
            one_by_one.submit_entry(entry)

        batched = WebhookSearchEngine()
        batched.submit_entries(raw[:2])
        batched.submit_entries(raw[2:])

        for name in ("method_index", "path_index", "ip_index", "term_index", "time_index"):
            assert getattr(one_by_one.index, name) == getattr(batched.index, name)

    def test_time_range_inclusive(self):
        """Test time range bounds are inclusive."""
        index = InvertedIndex()
        for entry_id, offset in enumerate([0, 10, 20]):
            index.index_entry(entry_id, WebhookEntry.from_dict(make_entry(offset_s=offset)))

        t10 = to_millis(BASE_TIME + timedelta(seconds=10))
        t20 = to_millis(BASE_TIME + timedelta(seconds=20))
        assert index.time_range(t10, t20) == {1, 2}
        assert index.time_range(t10, t10) == {1}
        assert index.time_range(None, t10) == {0, 1}
        assert index.time_range(t20 + 1, None) == set()

    def test_term_count_unknown_dimension(self):
        """Test asking for an unknown dimension raises."""
        with pytest.raises(ValueError):
            InvertedIndex().term_count("headers")


class TestJsonPath:
    """Test cases for restricted JSONPath evaluation."""

    def test_nested_field(self):
        """Test dot-chained field projection."""
        evaluator = JsonPathEvaluator()
        assert evaluator.evaluate({"a": {"b": 5}}, "$.a.b") == 5

    def test_missing_intermediate_returns_none(self):
        """Test traversal stops with None on a missing field."""
        evaluator = JsonPathEvaluator()
        assert evaluator.evaluate({"a": {}}, "$.a.b") is None
        assert evaluator.evaluate({}, "$.a.b.c") is None

    def test_root_returns_value(self):
        """Test $ returns the whole value unchanged."""
        value = {"a": [1, 2], "b": {"c": None}}
        assert JsonPathEvaluator().evaluate(value, "$") == value

    def test_unsupported_expressions(self):
        """Test anything outside the restricted grammar yields None."""
        evaluator = JsonPathEvaluator()
        value = {"a": {"b": 5}}
        assert evaluator.evaluate(value, "a.b") is None
        assert evaluator.evaluate(value, "$['a']") is None
        assert evaluator.evaluate(value, "") is None

    def test_non_traversable_value(self):
        """Test stepping into a scalar yields None."""
        assert evaluate_json_path({"a": 5}, "$.a.b") is None
        assert evaluate_json_path("text", "$.a") is None

    def test_list_index_step(self):
        """Test decimal steps index into lists."""
        value = {"items": [{"id": "x"}, {"id": "y"}]}
        assert evaluate_json_path(value, "$.items.1.id") == "y"
        assert evaluate_json_path(value, "$.items.5.id") is None

    def test_results_are_cached(self):
        """Test repeated evaluations hit the cache, including None results."""
        evaluator = JsonPathEvaluator()
        evaluator.evaluate({"a": 1}, "$.a")
        evaluator.evaluate({"a": 1}, "$.a")
        evaluator.evaluate({"a": 1}, "$.missing")
        evaluator.evaluate({"a": 1}, "$.missing")
        assert evaluator.hits == 2
        assert evaluator.misses == 2
        assert len(evaluator) == 2

    def test_full_digest_key_distinguishes_shared_prefix(self):
        """Test the default key separates values with a common prefix."""
        evaluator = JsonPathEvaluator()
        assert evaluator.evaluate({"a": 1, "b": 2}, "$.b") == 2
        assert evaluator.evaluate({"a": 1, "b": 3}, "$.b") == 3

    def test_truncated_key_may_collide(self):
        """Test prefix keys share a slot for values with a common prefix."""
        evaluator = JsonPathEvaluator(key_length=10)
        assert evaluator.evaluate({"a": 1, "b": 2}, "$.b") == 2
        assert evaluator.evaluate({"a": 1, "b": 3}, "$.b") == 2

    def test_unserializable_value_returns_none(self):
        """Test circular values return None instead of raising."""
        circular = {}
        circular["self"] = circular
        assert JsonPathEvaluator().evaluate(circular, "$.self") is None

    def test_cache_evicts_oldest(self):
        """Test the JSONPath cache stays within its bound."""
        evaluator = JsonPathEvaluator(cache_size=3)
        for i in range(5):
            evaluator.evaluate({"n": i}, "$.n")
        assert len(evaluator) == 3


class TestFifoCache:
    """Test cases for the bounded FIFO cache."""

    def test_evicts_oldest_inserted_not_least_recent(self):
        """Test eviction ignores reads."""
        cache = FifoCache(2)
        cache.put("a", 1)
        cache.put("b", 2)
        assert cache.get("a") == 1
        cache.put("c", 3)

        assert "a" not in cache
        assert cache.get("b") == 2
        assert cache.get("c") == 3
        assert cache.evictions == 1

    def test_reput_keeps_position(self):
        """Test replacing a value does not refresh its insertion slot."""
        cache = FifoCache(2)
        cache.put("a", 1)
        cache.put("b", 2)
        cache.put("a", 10)
        cache.put("c", 3)
        assert "a" not in cache
        assert "b" in cache

    def test_lookup_distinguishes_cached_none(self):
        """Test a cached None is reported as found."""
        cache = FifoCache(2)
        cache.put("k", None)
        assert cache.lookup("k") == (True, None)
        assert cache.lookup("other") == (False, None)

    def test_invalid_size(self):
        """Test a non-positive size is rejected."""
        with pytest.raises(ValueError):
            FifoCache(0)


class TestQueryEvaluation:
    """Test cases for compound filter evaluation."""

    def test_scenario(self, engine):
        """Test the basic two-entry scenario."""
        engine.submit_entry({"method": "GET", "path": "/a/b", "client_ip": "1.1.1.1"})
        engine.submit_entry({"method": "POST", "path": "/a/c", "client_ip": "1.1.1.2"})

        assert engine.evaluate(FilterSpec(path_substring="a")) == {0, 1}
        assert engine.evaluate(FilterSpec(method="post")) == {1}
        assert engine.evaluate(FilterSpec(method="POST", path_substring="b")) == set()

    def test_no_filters_match_all(self, populated):
        """Test an empty filter returns every entry id."""
        assert populated.evaluate(FilterSpec()) == {0, 1, 2, 3}
        assert populated.evaluate() == {0, 1, 2, 3}

    def test_method_case_insensitive(self, populated):
        """Test method filtering ignores case on both sides."""
        assert populated.evaluate(FilterSpec(method="post")) == {1, 2}
        assert populated.evaluate(FilterSpec(method="get")) == \
            populated.evaluate(FilterSpec(method="GET"))

    def test_unknown_method_empty(self, populated):
        """Test an unknown method yields no matches rather than an error."""
        assert populated.evaluate(FilterSpec(method="BREW")) == set()

    def test_path_substring_matches_segments(self, populated):
        """Test path substrings match within individual segments."""
        assert populated.evaluate(FilterSpec(path_substring="user")) == {0, 3}
        assert populated.evaluate(FilterSpec(path_substring="HUB")) == {2}
        assert populated.evaluate(FilterSpec(path_substring="nothing")) == set()

    def test_ip_substring(self, populated):
        """Test client IP substring filtering."""
        assert populated.evaluate(FilterSpec(ip_substring="192.168")) == {2, 3}
        assert populated.evaluate(FilterSpec(ip_substring="10.0.0.2")) == {1}

    def test_search_text_words_are_ored(self, populated):
        """Test each search word broadens the text match."""
        assert populated.evaluate(FilterSpec(search_text="alice")) == {0}
        assert populated.evaluate(FilterSpec(search_text="alice bob")) == {0, 3}
        assert populated.evaluate(FilterSpec(search_text="OPENED")) == {2}

    def test_search_text_substring_of_term(self, populated):
        """Test words match as substrings of indexed terms."""
        assert populated.evaluate(FilterSpec(search_text="ali")) == {0}

    def test_search_text_ignores_short_terms(self, engine):
        """Test text search cannot find path segments too short to index."""
        engine.submit_entry(make_entry(path="/ab/cd"))
        assert engine.evaluate(FilterSpec(search_text="ab")) == set()
        assert engine.evaluate(FilterSpec(path_substring="ab")) == {0}

    def test_time_range_inclusive_bounds(self, populated):
        """Test entries stamped exactly on a bound are included."""
        t10 = BASE_TIME + timedelta(seconds=10)
        t20 = BASE_TIME + timedelta(seconds=20)
        assert populated.evaluate(FilterSpec(time_from=t10, time_to=t20)) == {1, 2}
        assert populated.evaluate(FilterSpec(time_from=t20)) == {2, 3}
        assert populated.evaluate(FilterSpec(time_to=t10)) == {0, 1}
        assert populated.evaluate(FilterSpec(time_from=to_millis(t10), time_to=to_millis(t10))) == {1}

    def test_json_path_truthiness(self, engine):
        """Test JSONPath matches keep only truthy projections."""
        for value in [True, False, 0, "", [], "yes", 7]:
            engine.submit_entry(make_entry(payload={"ok": value}))
        engine.submit_entry(make_entry(payload={}))
        engine.submit_entry(make_entry(payload=None))

        assert engine.evaluate(FilterSpec(json_path_expr="$.ok")) == {0, 5, 6}

    def test_json_path_only_evaluates_survivors(self, populated):
        """Test JSONPath runs only on candidates left by other dimensions."""
        evaluator = populated._json_path
        populated.evaluate(FilterSpec(method="DELETE", json_path_expr="$.user.name"))
        assert evaluator.misses == 1

    def test_json_path_combined(self, populated):
        """Test JSONPath combines with other dimensions."""
        assert populated.evaluate(FilterSpec(json_path_expr="$.user.active")) == {0}
        assert populated.evaluate(FilterSpec(json_path_expr="$.event")) == {1, 2}
        assert populated.evaluate(FilterSpec(json_path_expr="$.event", ip_substring="192")) == {2}
        assert populated.evaluate(FilterSpec(json_path_expr="not-a-path")) == set()

    def test_monotonic_narrowing(self, populated):
        """Test combining disjoint dimensions never widens the result."""
        a = FilterSpec(method="post")
        b = FilterSpec(search_text="pull")
        combined = FilterSpec(method="post", search_text="pull")

        assert populated.evaluate(combined) <= populated.evaluate(a) & populated.evaluate(b)

    def test_evaluation_covers_entries_added_later(self, engine):
        """Test queries see every entry known at call time."""
        engine.submit_entry(make_entry("GET"))
        assert engine.evaluate(FilterSpec(method="GET")) == {0}
        engine.submit_entry(make_entry("GET"))
        assert engine.evaluate(FilterSpec(method="GET")) == {0, 1}


class TestEngine:
    """Test cases for ingestion, caching and notifications."""

    def test_ids_dense_from_zero(self, engine):
        """Test ids are assigned densely in call order."""
        ids = [engine.submit_entry(make_entry(offset_s=i)) for i in range(5)]
        assert ids == [0, 1, 2, 3, 4]
        assert len(engine.get_entries()) == 5

    def test_malformed_entries_are_indexed(self, engine):
        """Test entries missing required fields are still ingested."""
        assert engine.submit_entry({"path": "/only/path"}) == 0
        assert engine.submit_entry("not a mapping") == 1
        assert engine.submit_entry({"method": "GET", "headers": "bad"}) == 2

        assert engine.index.method_index[""] == {0, 1}
        assert engine.index.ip_index[""] == {0, 1, 2}
        assert engine.evaluate(FilterSpec(path_substring="only")) == {0}
        assert engine.get_entry(2).headers == {}

    def test_get_entry_unknown(self, engine):
        """Test unknown ids raise KeyError."""
        with pytest.raises(KeyError):
            engine.get_entry(0)

    def test_result_cache_reuses_set(self, populated):
        """Test repeated identical filters skip evaluation."""
        spec = FilterSpec(method="post")
        first = populated.evaluate(spec)
        second = populated.evaluate(FilterSpec(method="POST"))

        assert first is second
        assert populated.query_evaluator.evaluations == 1

    def test_result_cache_keeps_distinct_filters_apart(self, engine):
        """Test filters with separators in their values get their own results."""
        engine.submit_entry(make_entry(path="/a|b", client_ip="10.0.0.1"))

        assert engine.evaluate(FilterSpec(path_substring="a|b")) == {0}
        assert engine.evaluate(FilterSpec(path_substring="a", ip_substring="b|")) == set()
        assert engine.query_evaluator.evaluations == 2

    def test_fractional_lower_bound_excludes_boundary_entry(self, engine):
        """Test a lower bound just past an entry's millisecond excludes it."""
        engine.submit_entry(make_entry(timestamp=1700000000000))
        assert engine.evaluate(FilterSpec(time_from=1700000000000.5)) == set()
        assert engine.evaluate(FilterSpec(time_to=1700000000000.5)) == {0}

    def test_result_cache_invalidated_by_new_entries(self, populated):
        """Test a new entry forces re-evaluation."""
        spec = FilterSpec(method="post")
        populated.evaluate(spec)
        populated.submit_entry(make_entry("POST"))

        assert populated.evaluate(spec) == {1, 2, 4}
        assert populated.query_evaluator.evaluations == 2

    def test_result_cache_fifo_eviction(self):
        """Test an evicted filter is evaluated again."""
        engine = WebhookSearchEngine(SearchConfig(result_cache_size=1))
        engine.submit_entry(make_entry())

        engine.evaluate(FilterSpec(method="GET"))
        engine.evaluate(FilterSpec(method="POST"))
        engine.evaluate(FilterSpec(method="GET"))
        assert engine.query_evaluator.evaluations == 3

    def test_apply_filters_result(self, populated):
        """Test apply_filters reports counts and cache use."""
        first = populated.apply_filters(FilterSpec(ip_substring="10.0"))
        second = populated.apply_filters(FilterSpec(ip_substring="10.0"))

        assert first.sorted_ids() == [0, 1]
        assert first.total_matches == 2
        assert first.total_entries == 4
        assert not first.cached
        assert second.cached
        assert populated.last_result is second

    def test_listeners(self, engine):
        """Test entry and result listeners are notified."""
        seen_entries = []
        seen_results = []
        engine.add_entry_listener(lambda entry_id, entry: seen_entries.append((entry_id, entry.method)))
        engine.add_result_listener(seen_results.append)

        engine.submit_entry(make_entry("PATCH"))
        engine.apply_filters(FilterSpec(method="patch"))

        assert seen_entries == [(0, "PATCH")]
        assert len(seen_results) == 1
        assert seen_results[0].ids == {0}

    def test_failing_listener_does_not_break_ingestion(self, engine):
        """Test listener errors are contained."""
        def broken(entry_id, entry):
            raise RuntimeError("renderer down")

        engine.add_entry_listener(broken)
        assert engine.submit_entry(make_entry()) == 0
        assert engine.entry_count == 1

    def test_evaluate_json_path_exposed(self, engine):
        """Test ad-hoc JSONPath evaluation through the engine."""
        assert engine.evaluate_json_path({"a": {"b": "x"}}, "$.a.b") == "x"

    def test_stats(self, populated):
        """Test statistics summarize traffic and caches."""
        populated.evaluate(FilterSpec(method="get"))
        stats = populated.stats()

        assert stats["total_entries"] == 4
        assert stats["method_counts"] == {"GET": 1, "POST": 2, "DELETE": 1}
        assert stats["average_payload_size"] > 0
        assert stats["distinct_tokens"]["ip"] == 4
        assert stats["query_evaluations"] == 1
        assert stats["result_cache"]["size"] == 1


class TestDebounce:
    """Test cases for the debounce scheduler."""

    def test_burst_coalesces_to_last_call(self):
        """Test a burst of signals runs only the last call."""
        calls = []

        async def scenario():
            scheduler = DebounceScheduler(window_ms=20)
            for i in range(5):
                scheduler.schedule(calls.append, i)
            await asyncio.sleep(0.2)
            return scheduler

        scheduler = asyncio.run(scenario())
        assert calls == [4]
        assert scheduler.fired == 1
        assert scheduler.superseded == 4
        assert not scheduler.pending

    def test_window_restarts_on_each_signal(self):
        """Test the quiescence window is measured from the latest signal."""
        calls = []

        async def scenario():
            scheduler = DebounceScheduler(window_ms=100)
            scheduler.schedule(calls.append, "first")
            await asyncio.sleep(0.05)
            scheduler.schedule(calls.append, "second")
            await asyncio.sleep(0.05)
            before = list(calls)
            await asyncio.sleep(0.2)
            return before

        before = asyncio.run(scenario())
        assert before == []
        assert calls == ["second"]

    def test_cancel_and_flush(self):
        """Test cancelling drops the call and flushing runs it now."""
        calls = []

        async def scenario():
            scheduler = DebounceScheduler(window_ms=1000)
            scheduler.schedule(calls.append, "dropped")
            assert scheduler.cancel()
            scheduler.schedule(calls.append, "flushed")
            assert scheduler.flush()
            assert not scheduler.flush()

        asyncio.run(scenario())
        assert calls == ["flushed"]

    def test_negative_window_rejected(self):
        """Test a negative window is rejected."""
        with pytest.raises(ValueError):
            DebounceScheduler(window_ms=-1)

    def test_engine_debounced_apply_filters(self, populated):
        """Test debounced filtering evaluates once with the latest filter."""
        results = []
        populated.add_result_listener(results.append)
        populated.scheduler.window_ms = 20

        async def scenario():
            populated.debounced_apply_filters(FilterSpec(method="get"))
            populated.debounced_apply_filters(FilterSpec(method="delete"))
            populated.debounced_apply_filters(FilterSpec(method="post"))
            await asyncio.sleep(0.2)

        asyncio.run(scenario())
        assert len(results) == 1
        assert results[0].ids == {1, 2}
        assert populated.query_evaluator.evaluations == 1


class TestConfig:
    """Test cases for configuration loading."""

    def test_defaults(self):
        """Test defaults when no file is given."""
        config = load_config(None)
        assert config.result_cache_size == 100
        assert config.jsonpath_cache_size == 500
        assert config.jsonpath_key_length is None
        assert config.debounce_window_ms == 250

    def test_missing_file_uses_defaults(self, tmp_path):
        """Test a missing file falls back to defaults."""
        assert load_config(str(tmp_path / "absent.yaml")) == SearchConfig()

    def test_load_yaml(self, tmp_path):
        """Test values are read from YAML and unknown keys ignored."""
        path = tmp_path / "config.yaml"
        path.write_text(
            "result_cache_size: 5\n"
            "jsonpath_key_length: 100\n"
            "log_level: debug\n"
            "colour: blue\n"
        )
        config = load_config(str(path))
        assert config.result_cache_size == 5
        assert config.jsonpath_key_length == 100
        assert config.log_level == "DEBUG"

    def test_empty_yaml(self, tmp_path):
        """Test an empty file gives defaults."""
        path = tmp_path / "config.yaml"
        path.write_text("")
        assert load_config(str(path)) == SearchConfig()

    def test_invalid_values(self, tmp_path):
        """Test invalid values raise ConfigError."""
        path = tmp_path / "config.yaml"
        path.write_text("result_cache_size: 0\n")
        with pytest.raises(ConfigError):
            load_config(str(path))

        with pytest.raises(ConfigError):
            SearchConfig(log_level="LOUD")

    def test_non_mapping_yaml(self, tmp_path):
        """Test a YAML list is rejected."""
        path = tmp_path / "config.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ConfigError):
            load_config(str(path))

    def test_engine_uses_config(self):
        """Test the engine honors configured cache settings."""
        engine = WebhookSearchEngine(SearchConfig(jsonpath_key_length=10))
        engine.evaluate_json_path({"a": 1, "b": 2}, "$.b")
        assert engine.evaluate_json_path({"a": 1, "b": 3}, "$.b") == 2
