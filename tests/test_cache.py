"""Tests for the memo caches and their invalidation by the classifier."""

from __future__ import annotations

from bigram_classifier import BigramClassifier
from bigram_classifier.cache import ClassifierCaches, MemoCache


class TestMemoCache:
    """Tests for MemoCache."""

    def test_computes_once(self) -> None:
        cache: MemoCache[str, int] = MemoCache("lengths")
        calls = []

        def factory() -> int:
            calls.append(1)
            return 5

        assert cache.get_or_compute("hello", factory) == 5
        assert cache.get_or_compute("hello", factory) == 5
        assert len(calls) == 1
        assert (cache.hits, cache.misses) == (1, 1)

    def test_clear(self) -> None:
        cache: MemoCache[str, int] = MemoCache("lengths")
        cache.get_or_compute("a", lambda: 1)
        cache.clear()
        assert len(cache) == 0
        assert "a" not in cache

    def test_repr(self) -> None:
        assert repr(MemoCache("tokens")) == "MemoCache('tokens', size=0, hits=0, misses=0)"

    def test_classifier_caches_sizes(self) -> None:
        caches = ClassifierCaches()
        caches.tokens.get_or_compute("hi", lambda: (0,))
        assert caches.sizes() == {"tokens": 1, "bigrams": 0, "diffs": 0}
        caches.clear()
        assert caches.sizes() == {"tokens": 0, "bigrams": 0, "diffs": 0}


class TestClassifierCaching:
    """Tests for cache use and invalidation inside BigramClassifier."""

    def test_predict_populates_caches(self, trained_classifier: BigramClassifier) -> None:
        trained_classifier.clear_cache()
        trained_classifier.predict("hello there")
        sizes = trained_classifier.caches.sizes()
        assert sizes["tokens"] == 1
        assert sizes["bigrams"] == 1
        assert sizes["diffs"] == 1

    def test_clear_cache_keeps_predictions(self, trained_classifier: BigramClassifier) -> None:
        before = trained_classifier.predict("hello there")
        trained_classifier.clear_cache()
        assert trained_classifier.caches.sizes() == {"tokens": 0, "bigrams": 0, "diffs": 0}
        after = trained_classifier.predict("hello there")
        assert after.output == before.output
        assert after.result == before.result

    def test_token_cache_refreshed_when_vocabulary_grows(
        self, trained_classifier: BigramClassifier, greetings_rows
    ) -> None:
        assert trained_classifier.predict("hello friend").output == -1
        assert trained_classifier.tokenize("hello friend") == (0,)

        trained_classifier.train(greetings_rows + [("hello friend", 0), ("bye friend", 1)])

        assert len(trained_classifier.tokenize("hello friend")) == 2
        assert trained_classifier.predict("hello friend").has_signal
