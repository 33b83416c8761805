#!/usr/bin/env python3
"""Hexagon-shaped source grid addressed by axial coordinates."""

from __future__ import annotations

from typing import Iterable, Iterator, List, Optional, Tuple

from hex_geometry import Axial, in_bounds


IGNORED_CHARS = frozenset(" \t\n\v\f\r`")
FILLER = "."


def cell_count(size: int) -> int:
    return 3 * size * (size - 1) + 1


def size_for(count: int) -> int:
    size = 1
    while cell_count(size) < count:
        size += 1
    return size


def strip_source(text: str) -> List[str]:
    return [ch for ch in text if ch not in IGNORED_CHARS]


class Grid:
    def __init__(self, size: int, chars: Optional[Iterable[str]] = None):
        if size < 1:
            raise ValueError("grid size must be at least 1")
        self.size = size
        self.row_lengths = [2 * size - 1 - abs(size - 1 - y) for y in range(2 * size - 1)]
        self.row_offsets = []
        offset = 0
        for length in self.row_lengths:
            self.row_offsets.append(offset)
            offset += length
        self.cells = [FILLER] * offset
        if chars is not None:
            self.replace_characters(chars)

    @classmethod
    def parse(cls, text: str) -> "Grid":
        chars = strip_source(text)
        return cls(size_for(len(chars)), chars)

    def __len__(self) -> int:
        return len(self.cells)

    def index(self, point: Axial) -> int:
        if not in_bounds(point, self.size):
            raise IndexError(f"{point} is outside a hexagon of size {self.size}")
        row = point.r + self.size - 1
        return self.row_offsets[row] + point.q + min(row, self.size - 1)

    def lookup(self, point: Axial) -> str:
        return self.cells[self.index(point)]

    __getitem__ = lookup

    def replace_characters(self, chars: Iterable[str]) -> None:
        """Overwrite cells in row-major order; a short sequence leaves the rest untouched."""
        for i, ch in zip(range(len(self.cells)), chars):
            self.cells[i] = ch

    def copy(self) -> "Grid":
        other = Grid.__new__(Grid)
        other.size = self.size
        other.row_lengths = self.row_lengths
        other.row_offsets = self.row_offsets
        other.cells = self.cells[:]
        return other

    def rows(self) -> List[List[str]]:
        return [
            self.cells[start : start + length]
            for start, length in zip(self.row_offsets, self.row_lengths)
        ]

    def positions(self) -> Iterator[Axial]:
        """All cell coordinates in row-major (source) order."""
        for row, length in enumerate(self.row_lengths):
            q_start = max(1 - self.size, -row)
            for j in range(length):
                yield Axial(q_start + j, row - self.size + 1)

    def items(self) -> Iterator[Tuple[Axial, str]]:
        return zip(self.positions(), self.cells)

    def source(self) -> str:
        return "".join(self.cells)

    def __str__(self) -> str:
        return "\n".join(
            " " * (2 * self.size - len(row)) + " ".join(row) for row in self.rows()
        )

    def debug_string(self) -> str:
        lines = []
        for row, line in enumerate(self.rows()):
            padding = " " * (2 * self.size - len(line))
            q1 = max(1 - self.size, -row)
            q2 = q1 + len(line) - 1
            r = row - self.size + 1
            lines.append(f"{padding}{' '.join(line)}{padding}    Q: [{q1:3},{q2:3}], R: {r:2}")
        return "\n".join(lines)
