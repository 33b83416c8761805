#!/usr/bin/env python3
"""Memory: values on the edges of an infinite hex lattice, plus the memory pointer.

Each hexagon owns its E, NE and SE edges; the other three edges of a
hexagon belong to its neighbours. The pointer sits on an edge, faces one of
its two ends, and is either clockwise or counterclockwise, which decides
where its left and right neighbours are.
"""

from __future__ import annotations

from typing import Dict, Tuple

from hex_geometry import DIR_NAMES, EAST, NORTH_EAST, SOUTH_EAST, Axial, ORIGIN


INT64_MIN = -(1 << 63)
INT64_SPAN = 1 << 64

EdgeKey = Tuple[Axial, int]
PointerState = Tuple[Axial, int, bool]


def wrap_int64(value: int) -> int:
    return (value - INT64_MIN) % INT64_SPAN + INT64_MIN


def left_of(point: Axial, direction: int, cw: bool) -> PointerState:
    if direction == NORTH_EAST:
        point = Axial(point.q + 1, point.r - 1) if cw else Axial(point.q, point.r - 1)
        return point, SOUTH_EAST, not cw
    if direction == EAST:
        if cw:
            point = Axial(point.q, point.r + 1)
        return point, NORTH_EAST, cw
    if direction == SOUTH_EAST:
        if cw:
            point = Axial(point.q - 1, point.r + 1)
        return point, EAST, cw
    raise ValueError(f"memory pointer cannot face {DIR_NAMES[direction]}")


def right_of(point: Axial, direction: int, cw: bool) -> PointerState:
    if direction == NORTH_EAST:
        if not cw:
            point = Axial(point.q, point.r - 1)
        return point, EAST, cw
    if direction == EAST:
        if not cw:
            point = Axial(point.q + 1, point.r - 1)
        return point, SOUTH_EAST, cw
    if direction == SOUTH_EAST:
        point = Axial(point.q - 1, point.r + 1) if cw else Axial(point.q, point.r + 1)
        return point, NORTH_EAST, not cw
    raise ValueError(f"memory pointer cannot face {DIR_NAMES[direction]}")


class Memory:
    def __init__(self):
        self.edges: Dict[EdgeKey, int] = {}
        self.mp = ORIGIN
        self.dir = EAST
        self.cw = False

    def copy(self) -> "Memory":
        other = Memory()
        other.edges = dict(self.edges)
        other.mp = self.mp
        other.dir = self.dir
        other.cw = self.cw
        return other

    @property
    def pointer(self) -> PointerState:
        return self.mp, self.dir, self.cw

    def get(self) -> int:
        return self.edges.get((self.mp, self.dir), 0)

    def set(self, value: int) -> None:
        self.edges[(self.mp, self.dir)] = wrap_int64(value)

    def get_left(self) -> int:
        point, direction, _ = left_of(self.mp, self.dir, self.cw)
        return self.edges.get((point, direction), 0)

    def get_right(self) -> int:
        point, direction, _ = right_of(self.mp, self.dir, self.cw)
        return self.edges.get((point, direction), 0)

    def move_left(self) -> None:
        self.mp, self.dir, self.cw = left_of(self.mp, self.dir, self.cw)

    def move_right(self) -> None:
        self.mp, self.dir, self.cw = right_of(self.mp, self.dir, self.cw)

    def reverse(self) -> None:
        self.cw = not self.cw

    def values(self) -> Dict[EdgeKey, int]:
        return dict(self.edges)

    def debug_string(self) -> str:
        lines = [
            "Memory (values are stored on the E, NE, and SE edges of the hexagons indicated by the coordinates):"
        ]
        order = {SOUTH_EAST: 0, EAST: 1, NORTH_EAST: 2}
        for (point, direction), value in sorted(
            self.edges.items(), key=lambda item: (item[0][0].q, item[0][0].r, order[item[0][1]])
        ):
            active = " (active)" if (point, direction) == (self.mp, self.dir) else ""
            lines.append(f"{_format_position(point, direction)}: {value:6}{active}")
        lines.append("Pointer:")
        lines.append(_format_position(self.mp, self.dir))
        lines.append(f"Clockwise: {self.cw}")
        return "\n".join(lines)


def _format_position(point: Axial, direction: int) -> str:
    return f"(Q: {point.q:3}, R: {point.r:3}, Dir: {DIR_NAMES[direction]:>2})"
