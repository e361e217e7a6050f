"""Tests for cogen/memory/result_cache.py."""

from __future__ import annotations

import threading

import pytest

from cogen.core.models import Candidate, GenerationResult
from cogen.memory.result_cache import FingerprintCache


def _result(code: str, fingerprint: str = "fp", cycles: int = 1) -> GenerationResult:
    return GenerationResult.finalize(Candidate(content=code), fingerprint, cycles=cycles)


class TestFirstWriterWins:
    def test_get_missing(self):
        assert FingerprintCache().get("nope") is None

    def test_put_then_get(self):
        cache = FingerprintCache()
        stored = cache.put("fp", _result("const a = 1;"))
        assert cache.get("fp") is stored
        assert "fp" in cache
        assert len(cache) == 1

    def test_second_put_returns_existing(self):
        cache = FingerprintCache()
        first = cache.put("fp", _result("const a = 1;"))
        second = cache.put("fp", _result("const b = 2;"))
        assert second is first
        assert cache.get("fp").code == "const a = 1;"

    def test_concurrent_puts_agree_on_one_entry(self):
        cache = FingerprintCache()
        barrier = threading.Barrier(10)
        returned: list[GenerationResult] = []
        lock = threading.Lock()

        def writer(i: int):
            barrier.wait()
            stored = cache.put("fp", _result(f"const v{i} = {i};"))
            with lock:
                returned.append(stored)

        threads = [threading.Thread(target=writer, args=(i,)) for i in range(10)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        winner = cache.get("fp")
        assert len(cache) == 1
        assert all(r is winner for r in returned)


class TestEviction:
    def test_unbounded_by_default(self):
        cache = FingerprintCache()
        for i in range(100):
            cache.put(f"fp{i}", _result(f"const v = {i};"))
        assert len(cache) == 100

    def test_bound_evicts_oldest(self):
        evicted: list[str] = []
        cache = FingerprintCache(max_entries=2, on_evict=lambda fp, _r: evicted.append(fp))
        cache.put("a", _result("const a = 1;"))
        cache.put("b", _result("const b = 1;"))
        cache.put("c", _result("const c = 1;"))

        assert evicted == ["a"]
        assert cache.fingerprints() == ["b", "c"]
        assert cache.get("a") is None

    def test_explicit_evict_calls_hook(self):
        seen: list[tuple[str, str]] = []
        cache = FingerprintCache(on_evict=lambda fp, r: seen.append((fp, r.code)))
        cache.put("a", _result("const a = 1;"))

        removed = cache.evict("a")
        assert removed is not None
        assert seen == [("a", "const a = 1;")]
        assert cache.evict("a") is None
        assert seen == [("a", "const a = 1;")]

    def test_clear(self):
        cache = FingerprintCache()
        cache.put("a", _result("const a = 1;"))
        cache.clear()
        assert len(cache) == 0

    def test_rejects_bad_bound(self):
        with pytest.raises(ValueError):
            FingerprintCache(max_entries=0)
