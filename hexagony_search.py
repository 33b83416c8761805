#!/usr/bin/env python3
"""Brute-force search for Hexagony programs that fit a template.

A template is a program with empty cells ('.' by default). Every required
character is placed in some empty cell, and the remaining empty cells are
filled with every word over the available characters. A candidate is a
solution when it produces exactly the target output before its tick budget
runs out.

All candidates share the template's first few ticks: the template is run
once for the fixed prefix, and each candidate continues from a copy of it.

Examples:
  python3 hexagony_search.py
  python3 hexagony_search.py --template '!)!........' --required ';@' --threads 4
"""

from __future__ import annotations

import argparse
import io
import itertools
import logging
import math
import os
import sys
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Iterator, List, Optional, Sequence, Tuple

from hex_grid import strip_source
from hexagony import HexagonyMachine


logger = logging.getLogger(__name__)

FIB_TARGET = "\n".join(
    str(n)
    for n in (
        0, 1, 1, 2, 3, 5, 8, 13, 21, 34, 55, 89, 144, 233, 377, 610, 987, 1597,
        2584, 4181, 6765, 10946, 17711, 28657, 46368, 75025, 121393, 196418,
        317811, 514229, 832040,
    )
)
FIB_TEMPLATE = "!)!............"
FIB_REQUIRED = ";@"
FIB_AVAILABLE = "\\/_|<>{}'\""

REQUIRED_MARK = "X"


# ---------- Candidate generators ----------


def permutations(items: Sequence[str]) -> Iterator[Tuple[str, ...]]:
    return itertools.permutations(items)


def subsets(items: Sequence[int], size: int) -> Iterator[Tuple[int, ...]]:
    return itertools.combinations(items, size)


def words(alphabet: Sequence[str], length: int) -> Iterator[Tuple[str, ...]]:
    """Every word of ``length`` letters; the last letter varies fastest."""
    return itertools.product(alphabet, repeat=length)


# ---------- Worker pool ----------


class WorkerPool:
    """Threads taking work item indices from a shared counter until it runs out."""

    def __init__(self, thread_count: int, item_count: int, func: Callable[[int], None]):
        if thread_count < 1:
            raise ValueError("thread count must be at least 1")
        self.func = func
        self.item_count = item_count
        self.errors: List[BaseException] = []
        self._next = 0
        self._lock = threading.Lock()
        self._threads = [
            threading.Thread(target=self._worker, name=f"worker-{i}") for i in range(thread_count)
        ]

    def _take(self) -> Optional[int]:
        with self._lock:
            if self._next >= self.item_count:
                return None
            index = self._next
            self._next += 1
            return index

    def _worker(self) -> None:
        while True:
            index = self._take()
            if index is None:
                return
            try:
                self.func(index)
            except Exception as exc:
                with self._lock:
                    self.errors.append(exc)
                    # Hand out nothing more.
                    self._next = self.item_count
                return

    def run(self) -> None:
        for thread in self._threads:
            thread.start()
        for thread in self._threads:
            thread.join()
        if self.errors:
            raise self.errors[0]


# ---------- Search ----------


@dataclass
class SearchConfig:
    template: str = FIB_TEMPLATE
    required: str = FIB_REQUIRED
    available: str = FIB_AVAILABLE
    target_output: str = FIB_TARGET
    empty: str = "."
    prefix_ticks: int = 3
    probe_ticks: int = 15
    max_ticks: int = 10000
    threads: int = field(default_factory=lambda: os.cpu_count() or 1)


def repeats_required(
    candidate: Sequence[str],
    required_slots: Sequence[int],
    free_slots: Sequence[int],
    word: Sequence[str],
) -> bool:
    """True if a free letter repeats a required character placed in an earlier cell."""
    for slot, ch in zip(free_slots, word):
        for i in required_slots:
            if i > slot:
                break
            if candidate[i] == ch:
                return True
    return False


def format_duration(seconds: float) -> str:
    seconds = int(seconds)
    days, seconds = divmod(seconds, 86400)
    hours, seconds = divmod(seconds, 3600)
    minutes, seconds = divmod(seconds, 60)
    return f"{days}.{hours:02}:{minutes:02}:{seconds:02}"


def search(config: SearchConfig, report: Callable[[str], object] = print) -> List[str]:
    source = strip_source(config.template)
    empty_slots = [i for i, ch in enumerate(source) if ch == config.empty]
    required = list(config.required)
    if len(required) > len(empty_slots):
        raise ValueError(
            f"{len(required)} required characters do not fit in {len(empty_slots)} empty cells"
        )
    if config.threads < 1:
        raise ValueError("thread count must be at least 1")

    required_permutations = list(permutations(required))
    free_count = len(empty_slots) - len(required)
    total_subsets = math.comb(len(empty_slots), len(required))

    base = HexagonyMachine(
        "".join(source),
        io.BytesIO(),
        max_ticks=config.prefix_ticks,
        target_output=config.target_output,
    )
    base.run()
    logger.debug("prefix ran %d ticks, state %s", base.tick, base.state)

    solutions: List[str] = []
    solutions_lock = threading.Lock()
    started = time.time()

    for checked, required_slots in enumerate(subsets(empty_slots, len(required))):
        template = source[:]
        for i in required_slots:
            template[i] = REQUIRED_MARK
        line = f"Checking templates: {''.join(template)}"
        if checked > 0:
            elapsed = time.time() - started
            estimated = elapsed * total_subsets / checked
            line += (
                f" ... {format_duration(elapsed)} / {format_duration(estimated)}"
                f" ({format_duration(estimated - elapsed)} remaining)"
            )
        report(line)

        free_slots = [i for i in empty_slots if i not in required_slots]

        def evaluate(index: int, required_slots=required_slots, free_slots=free_slots) -> None:
            candidate = source[:]
            for i, ch in zip(required_slots, required_permutations[index]):
                candidate[i] = ch
            for word in words(config.available, free_count):
                if repeats_required(candidate, required_slots, free_slots, word):
                    continue
                for slot, ch in zip(free_slots, word):
                    candidate[slot] = ch

                machine = HexagonyMachine.from_template(base, candidate, io.BytesIO())
                machine.max_ticks = config.probe_ticks
                machine.run()
                if not machine.success or machine.output_length < 1:
                    continue
                machine.max_ticks = config.max_ticks
                machine.run()
                if machine.success and not machine.timed_out:
                    text = "".join(candidate)
                    logger.debug("solution after %d ticks: %s", machine.tick, text)
                    with solutions_lock:
                        solutions.append(text)
                        report(f"SOLUTION! {text}")

        WorkerPool(config.threads, len(required_permutations), evaluate).run()

    return solutions


def main() -> None:
    defaults = SearchConfig()
    parser = argparse.ArgumentParser()
    parser.add_argument("--template", default=defaults.template)
    parser.add_argument("--required", default=defaults.required, help="characters every candidate must contain")
    parser.add_argument("--available", default=defaults.available, help="alphabet for the other empty cells")
    parser.add_argument(
        "--target",
        default=defaults.target_output,
        help="expected output; a literal \\n stands for a newline",
    )
    parser.add_argument("--empty", default=defaults.empty, help="character marking empty cells")
    parser.add_argument("--prefix-ticks", type=int, default=defaults.prefix_ticks)
    parser.add_argument("--probe-ticks", type=int, default=defaults.probe_ticks)
    parser.add_argument("--max-ticks", type=int, default=defaults.max_ticks)
    parser.add_argument("--threads", type=int, default=defaults.threads)
    parser.add_argument("--debug", action="store_true")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.WARNING,
        format="%(threadName)s %(message)s",
        stream=sys.stderr,
    )

    config = SearchConfig(
        template=args.template,
        required=args.required,
        available=args.available,
        target_output=args.target.replace("\\n", "\n"),
        empty=args.empty,
        prefix_ticks=args.prefix_ticks,
        probe_ticks=args.probe_ticks,
        max_ticks=args.max_ticks,
        threads=args.threads,
    )
    try:
        solutions = search(config, report=lambda line: print(line, flush=True))
    except ValueError as exc:
        raise SystemExit(str(exc))
    print(f"{len(solutions)} solutions", flush=True)


if __name__ == "__main__":
    main()
