"""Tests for the in-memory TTL caches."""

from stock_advisor.data.cache import AnalysisCache, CacheOptimizer, SeasonalScoreCache


class TestSeasonalScoreCache:
    """Tests for the (ticker, month) seasonal score cache."""

    def test_hit_at_four_minutes_miss_at_six(self, seasonal_cache, fake_clock) -> None:
        seasonal_cache.set_score("NVDA", 11, 0.82)

        fake_clock.advance(4 * 60)
        assert seasonal_cache.get_score("NVDA", 11) == 0.82

        fake_clock.advance(2 * 60)
        assert seasonal_cache.get_score("NVDA", 11) is None

    def test_expires_at_ttl_boundary(self, seasonal_cache, fake_clock) -> None:
        seasonal_cache.set_score("NVDA", 0, 0.7)
        fake_clock.advance(299.9)
        assert seasonal_cache.get_score("NVDA", 0) == 0.7
        fake_clock.advance(0.2)
        assert seasonal_cache.get_score("NVDA", 0) is None

    def test_idempotent_reads(self, seasonal_cache, fake_clock) -> None:
        seasonal_cache.set_score("AAPL", 3, 0.61)
        fake_clock.advance(30)
        first = seasonal_cache.get_score("AAPL", 3)
        second = seasonal_cache.get_score("AAPL", 3)
        assert first == second == 0.61

    def test_overwrite_resets_timestamp(self, seasonal_cache, fake_clock) -> None:
        seasonal_cache.set_score("AAPL", 3, 0.61)
        fake_clock.advance(200)
        seasonal_cache.set_score("AAPL", 3, 0.55)
        fake_clock.advance(200)
        assert seasonal_cache.get_score("AAPL", 3) == 0.55

    def test_keys_are_per_month_and_case_insensitive(self, seasonal_cache) -> None:
        seasonal_cache.set_score("msft", 1, 0.6)
        assert seasonal_cache.get_score("MSFT", 1) == 0.6
        assert seasonal_cache.get_score("MSFT", 2) is None

    def test_absent_is_none_not_exception(self, seasonal_cache) -> None:
        assert seasonal_cache.get_score("NOPE", 5) is None
        assert seasonal_cache.get_entry("NOPE", 5) is None

    def test_detail_is_kept(self, seasonal_cache) -> None:
        seasonal_cache.set_score("AMD", 6, 0.5, detail={"insights": ["x"]})
        entry = seasonal_cache.get_entry("AMD", 6)
        assert entry is not None
        assert entry.detail == {"insights": ["x"]}

    def test_clear_and_clear_ticker(self, seasonal_cache) -> None:
        seasonal_cache.set_score("AMD", 1, 0.5)
        seasonal_cache.set_score("AMD", 2, 0.5)
        seasonal_cache.set_score("TSM", 1, 0.5)
        assert seasonal_cache.clear_ticker("amd") == 2
        assert len(seasonal_cache) == 1
        assert seasonal_cache.clear() == 1
        assert len(seasonal_cache) == 0

    def test_sweep_removes_only_expired(self, seasonal_cache, fake_clock) -> None:
        seasonal_cache.set_score("OLD", 1, 0.5)
        fake_clock.advance(400)
        seasonal_cache.set_score("NEW", 1, 0.5)
        assert seasonal_cache.sweep() == 1
        assert seasonal_cache.status()["keys"] == ["NEW_1"]

    def test_status(self, seasonal_cache, fake_clock) -> None:
        seasonal_cache.set_score("A", 1, 0.5)
        fake_clock.advance(400)
        seasonal_cache.set_score("B", 1, 0.5)
        status = seasonal_cache.status()
        assert status["size"] == 2
        assert status["valid"] == 1
        assert status["ttl_seconds"] == 300


class TestAnalysisCache:
    """Tests for the hour-bucketed analysis bundle cache."""

    def test_round_trip_within_ttl(self, fake_clock) -> None:
        cache = AnalysisCache(ttl=300, clock=fake_clock)
        cache.set("NVDA", {"total_score": 0.8})
        fake_clock.advance(60)
        assert cache.get("nvda") == {"total_score": 0.8}

    def test_expired(self, fake_clock) -> None:
        cache = AnalysisCache(ttl=300, clock=fake_clock)
        cache.set("NVDA", {"total_score": 0.8})
        fake_clock.advance(301)
        assert cache.get("NVDA") is None

    def test_new_hour_bucket_misses(self, fake_clock) -> None:
        cache = AnalysisCache(ttl=7200, clock=fake_clock)
        cache.set("NVDA", {"total_score": 0.8})
        fake_clock.advance(3600)
        assert cache.get("NVDA") is None

    def test_clean_expired_and_status(self, fake_clock) -> None:
        cache = AnalysisCache(ttl=300, clock=fake_clock)
        cache.set("A", {})
        fake_clock.advance(301)
        cache.set("B", {})
        status = cache.status()
        assert status["total"] == 2
        assert status["valid"] == 1
        assert status["expired"] == 1
        assert status["ttl_minutes"] == 5
        assert cache.clean_expired() == 1
        assert len(cache) == 1

    def test_clear_ticker(self, fake_clock) -> None:
        cache = AnalysisCache(clock=fake_clock)
        cache.set("AMD", {})
        cache.set("AMZN", {})
        assert cache.clear_ticker("AMD") == 1
        assert cache.get("AMZN") == {}


class TestCacheOptimizer:
    """Tests for the named-cache registry."""

    def test_set_requires_created_cache(self, fake_clock) -> None:
        optimizer = CacheOptimizer(clock=fake_clock)
        assert optimizer.set("missing", "k", 1) is False
        assert optimizer.get("missing", "k") is None

    def test_lazy_expiry(self, fake_clock) -> None:
        optimizer = CacheOptimizer(clock=fake_clock)
        optimizer.create_cache("quotes", ttl=10)
        optimizer.set("quotes", "NVDA", {"p": 1})
        fake_clock.advance(9)
        assert optimizer.get("quotes", "NVDA") == {"p": 1}
        fake_clock.advance(1)
        assert optimizer.get("quotes", "NVDA") is None
        assert optimizer.status()["quotes"]["size"] == 0

    def test_evicts_oldest_thirty_percent(self, fake_clock) -> None:
        optimizer = CacheOptimizer(max_size=100, clock=fake_clock)
        optimizer.create_cache("c", ttl=10_000)
        for i in range(100):
            optimizer.set("c", i, i)
            fake_clock.advance(1)

        optimizer.set("c", "new", "value")

        assert optimizer.status()["c"]["size"] == 71
        assert all(optimizer.get("c", i) is None for i in range(30))
        assert optimizer.get("c", 30) == 30
        assert optimizer.get("c", "new") == "value"

    def test_overwrite_at_capacity_does_not_evict(self, fake_clock) -> None:
        optimizer = CacheOptimizer(max_size=3, clock=fake_clock)
        optimizer.create_cache("c")
        for key in ("a", "b", "c"):
            optimizer.set("c", key, 1)
        optimizer.set("c", "a", 2)
        assert optimizer.status()["c"]["size"] == 3

    def test_create_cache_is_idempotent(self, fake_clock) -> None:
        optimizer = CacheOptimizer(default_ttl=60, clock=fake_clock)
        first = optimizer.create_cache("c")
        second = optimizer.create_cache("c", ttl=5)
        assert first is second
        assert second.ttl == 60

    def test_clear(self, fake_clock) -> None:
        optimizer = CacheOptimizer(clock=fake_clock)
        optimizer.create_cache("a")
        optimizer.create_cache("b")
        optimizer.set("a", 1, 1)
        optimizer.set("b", 1, 1)
        optimizer.set("b", 2, 2)
        assert optimizer.clear("b") == 2
        assert optimizer.clear("unknown") == 0
        assert optimizer.clear() == 1

    def test_delete_one_key(self, fake_clock) -> None:
        optimizer = CacheOptimizer(clock=fake_clock)
        optimizer.create_cache("quotes")
        optimizer.set("quotes", "AAPL", {"current_price": 1.0})
        optimizer.set("quotes", "MSFT", {"current_price": 2.0})

        assert optimizer.delete("quotes", "AAPL") is True
        assert optimizer.delete("quotes", "AAPL") is False
        assert optimizer.delete("unknown", "AAPL") is False
        assert optimizer.get("quotes", "AAPL") is None
        assert optimizer.get("quotes", "MSFT") == {"current_price": 2.0}
