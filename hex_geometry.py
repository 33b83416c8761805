#!/usr/bin/env python3
"""Hex grid geometry: axial points, directions, mirrors, and edge wrapping."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Tuple


@dataclass(frozen=True)
class Axial:
    q: int
    r: int

    @property
    def y(self) -> int:
        return -self.q - self.r

    def __add__(self, other: "Axial") -> "Axial":
        return Axial(self.q + other.q, self.r + other.r)

    def __sub__(self, other: "Axial") -> "Axial":
        return Axial(self.q - other.q, self.r - other.r)

    def __str__(self) -> str:
        return f"({self.q},{self.r})"


ORIGIN = Axial(0, 0)

# Directions: 0=E,1=SE,2=SW,3=W,4=NW,5=NE
EAST, SOUTH_EAST, SOUTH_WEST, WEST, NORTH_WEST, NORTH_EAST = range(6)
DIRECTIONS = tuple(range(6))
DIR_NAMES = ("E", "SE", "SW", "W", "NW", "NE")

UNIT_VECTORS = (
    Axial(1, 0),
    Axial(0, 1),
    Axial(-1, 1),
    Axial(-1, 0),
    Axial(0, -1),
    Axial(1, -1),
)

E, SE, SW, W, NW, NE = DIRECTIONS
REFLECT_SLASH = (NW, W, SW, SE, E, NE)
REFLECT_BACKSLASH = (SW, SE, E, NE, NW, W)
REFLECT_UNDERSCORE = (E, NE, NW, W, SW, SE)
REFLECT_PIPE = (W, SW, SE, E, NE, NW)
# '<' and '>' only differ between the two tables on one incoming direction.
REFLECT_LESS_THAN_POSITIVE = (SE, NW, W, E, W, SW)
REFLECT_LESS_THAN_NON_POSITIVE = (NE, NW, W, E, W, SW)
REFLECT_GREATER_THAN_POSITIVE = (W, E, NE, NW, SE, E)
REFLECT_GREATER_THAN_NON_POSITIVE = (W, E, NE, SW, SE, E)

MIRROR_TABLES = {
    "/": REFLECT_SLASH,
    "\\": REFLECT_BACKSLASH,
    "_": REFLECT_UNDERSCORE,
    "|": REFLECT_PIPE,
}

# Incoming direction on which each branch character forks on the memory sign.
FORK_DIRECTIONS = {"<": EAST, ">": WEST}


def vector(direction: int) -> Axial:
    return UNIT_VECTORS[direction]


def reflect(direction: int, mirror: str) -> int:
    return MIRROR_TABLES[mirror][direction]


def reflect_slash(direction: int) -> int:
    return REFLECT_SLASH[direction]


def reflect_backslash(direction: int) -> int:
    return REFLECT_BACKSLASH[direction]


def reflect_underscore(direction: int) -> int:
    return REFLECT_UNDERSCORE[direction]


def reflect_pipe(direction: int) -> int:
    return REFLECT_PIPE[direction]


def reflect_less_than(direction: int, positive: bool) -> int:
    table = REFLECT_LESS_THAN_POSITIVE if positive else REFLECT_LESS_THAN_NON_POSITIVE
    return table[direction]


def reflect_greater_than(direction: int, positive: bool) -> int:
    table = REFLECT_GREATER_THAN_POSITIVE if positive else REFLECT_GREATER_THAN_NON_POSITIVE
    return table[direction]


def reflect_branch(direction: int, branch: str, positive: bool) -> int:
    if branch == "<":
        return reflect_less_than(direction, positive)
    return reflect_greater_than(direction, positive)


def in_bounds(point: Axial, size: int) -> bool:
    return max(abs(point.q), abs(point.r), abs(point.q + point.r)) < size


def corners(size: int) -> List[Tuple[Axial, int]]:
    """Initial instruction pointer states, one per corner, facing along the edge."""
    s = size - 1
    return [
        (Axial(0, -s), EAST),
        (Axial(s, -s), SOUTH_EAST),
        (Axial(s, 0), SOUTH_WEST),
        (Axial(0, s), WEST),
        (Axial(-s, s), NORTH_WEST),
        (Axial(-s, 0), NORTH_EAST),
    ]


# ---------- Edge wrapping ----------


def _wrap_r(p: Axial) -> Axial:
    return Axial(p.q + p.r, -p.r)


def _wrap_q(p: Axial) -> Axial:
    return Axial(-p.q, p.q + p.r)


def _wrap_y(p: Axial) -> Axial:
    return Axial(-p.r, -p.q)


def advance(point: Axial, direction: int, size: int) -> Tuple[Axial, Axial]:
    """Step one cell along ``direction`` and wrap around the hexagon's edges.

    Returns ``(if_positive, if_not_positive)``: the position reached when the
    current memory value is positive and when it is not. The two only differ
    when the pointer leaves through a corner, i.e. when two cube axes are out
    of range at once.
    """
    if size == 1:
        return ORIGIN, ORIGIN

    moved = point + UNIT_VECTORS[direction]
    q_out = abs(moved.q) >= size
    r_out = abs(moved.r) >= size
    y_out = abs(moved.y) >= size
    if not (q_out or r_out or y_out):
        return moved, moved

    # Transforms apply to the last cell inside the hexagon.
    back = point
    if not q_out and not y_out:
        target = _wrap_r(back)
        return target, target
    if not y_out and not r_out:
        target = _wrap_q(back)
        return target, target
    if not r_out and not q_out:
        target = _wrap_y(back)
        return target, target

    if not q_out:
        return _wrap_y(back), _wrap_r(back)
    if not y_out:
        return _wrap_r(back), _wrap_q(back)
    return _wrap_q(back), _wrap_y(back)


def wrap_step(point: Axial, direction: int, size: int, positive: bool) -> Axial:
    if_positive, if_not_positive = advance(point, direction, size)
    return if_positive if positive else if_not_positive
