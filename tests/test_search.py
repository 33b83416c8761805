import threading

import pytest

from hexagony_search import (
    FIB_TARGET,
    SearchConfig,
    WorkerPool,
    format_duration,
    permutations,
    repeats_required,
    search,
    subsets,
    words,
)


class TestGenerators:
    def test_permutations(self):
        assert list(permutations("ab")) == [("a", "b"), ("b", "a")]
        assert list(permutations("")) == [()]

    def test_subsets(self):
        assert list(subsets([1, 2, 3], 2)) == [(1, 2), (1, 3), (2, 3)]
        assert list(subsets([1, 2], 0)) == [()]
        assert list(subsets([1], 2)) == []

    def test_words(self):
        assert list(words("ab", 2)) == [("a", "a"), ("a", "b"), ("b", "a"), ("b", "b")]
        assert list(words("ab", 0)) == [()]


class TestWorkerPool:
    def test_every_item_once(self):
        seen = []
        lock = threading.Lock()

        def work(index):
            with lock:
                seen.append(index)

        WorkerPool(4, 100, work).run()
        assert sorted(seen) == list(range(100))

    def test_error_is_raised(self):
        def work(index):
            if index == 3:
                raise KeyError(index)

        with pytest.raises(KeyError):
            WorkerPool(2, 10, work).run()

    def test_needs_a_thread(self):
        with pytest.raises(ValueError):
            WorkerPool(0, 10, lambda index: None)


def test_repeats_required():
    candidate = list(".;..")
    assert repeats_required(candidate, [1], [0, 2, 3], ("a", ";", "b"))
    assert not repeats_required(candidate, [1], [0, 2, 3], (";", "a", "b"))


def test_format_duration():
    assert format_duration(90061) == "1.01:01:01"
    assert format_duration(59.9) == "0.00:00:59"


class TestSearch:
    def _config(self, threads):
        return SearchConfig(
            template=")...",
            required="!@",
            available="(",
            target_output="1",
            prefix_ticks=1,
            threads=threads,
        )

    @pytest.mark.parametrize("threads", [1, 3])
    def test_finds_solutions(self, threads):
        lines = []
        solutions = search(self._config(threads), report=lines.append)
        assert sorted(solutions) == [")!(@", ")!@("]
        assert lines[0] == "Checking templates: )XX."
        assert "SOLUTION! )!@(" in lines
        assert "SOLUTION! )!(@" in lines
        assert sum(1 for line in lines if line.startswith("Checking templates:")) == 3

    def test_too_many_required_characters(self):
        config = self._config(1)
        config.required = "!@;;"
        with pytest.raises(ValueError):
            search(config, report=lambda line: None)

    def test_default_target(self):
        assert FIB_TARGET.startswith("0\n1\n1\n2\n3\n5")
        assert FIB_TARGET.endswith("832040")
