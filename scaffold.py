#!/usr/bin/env python3
"""Compile a Hexagony grid into a scaffold: a small control-flow graph of command slots.

Only the first instruction pointer is followed. Mirrors, no-ops and skips
are resolved at compile time; every other instruction becomes an opaque
command slot whose effect is unknown to the compiler. The memory value is
never tracked, only what is known about its sign, so that '<' and '>' (and
corner wraps) fork into a branch only while the sign is unknown.

Examples:
  python3 scaffold.py template.hxg
  python3 scaffold.py template.hxg --marker X --fill ')!' --max-steps 1000
"""

from __future__ import annotations

import argparse
from dataclasses import dataclass, field, replace
from typing import Dict, Iterable, List, NamedTuple, Optional, Sequence, Tuple

from hex_geometry import (
    FORK_DIRECTIONS,
    MIRROR_TABLES,
    Axial,
    advance,
    corners,
    reflect_branch,
)
from hex_grid import Grid
from hexagony import BRANCHES, MIRRORS, NOOPS, SKIP, TERMINATE


# Sign knowledge about the current memory value.
UNKNOWN = "?"
POSITIVE = "+"
NON_POSITIVE = "-"

# Node kinds.
SLOT = "slot"
JUMP = "jump"
BRANCH = "branch"
LOOP = "loop"
EXIT = "exit"

DEFAULT_MARKER = "?"


class ScaffoldError(ValueError):
    pass


class IPState(NamedTuple):
    point: Axial
    direction: int
    sign: str


@dataclass
class Node:
    kind: str
    slot: int = -1
    # Jump target, or the branch target taken when the memory value is positive.
    target: int = -1
    # Branch target taken when the memory value is not positive.
    alt: int = -1
    body: Tuple[int, ...] = ()
    # Position in ``body`` where execution starts.
    entry: int = 0

    def __str__(self) -> str:
        if self.kind == SLOT:
            return f"_{self.slot}"
        if self.kind == JUMP:
            return f">{self.target}"
        if self.kind == BRANCH:
            return f">?{self.target}:{self.alt}"
        if self.kind == LOOP:
            text = "*[" + ",".join(str(s) for s in self.body) + "]"
            return text + (f"+{self.entry}" if self.entry else "")
        return "@"


@dataclass
class Scaffold:
    nodes: List[Node]
    # Grid position of every command slot, in discovery order.
    slots: List[Axial]
    # Instruction found at each slot; placeholders hold the marker.
    opcodes: List[str]
    placeholders: List[int]
    size: int
    marker: str = DEFAULT_MARKER
    loops: List[int] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.nodes)

    def __getitem__(self, index: int) -> Node:
        return self.nodes[index]

    def __str__(self) -> str:
        return ",".join(str(node) for node in self.nodes)

    def fill_opcodes(self, fill: Sequence[str]) -> List[str]:
        """Slot instructions with the placeholders replaced by ``fill``, in placeholder order."""
        if len(fill) != len(self.placeholders):
            raise ScaffoldError(
                f"expected {len(self.placeholders)} fill characters, got {len(fill)}"
            )
        opcodes = self.opcodes[:]
        for slot, ch in zip(self.placeholders, fill):
            opcodes[slot] = ch
        return opcodes


def canonical_rotation(body: Sequence[int]) -> Tuple[Tuple[int, ...], int]:
    """Lexicographically smallest rotation of ``body`` and the shift that produces it."""
    body = tuple(body)
    best = 0
    for shift in range(1, len(body)):
        if body[shift:] + body[:shift] < body[best:] + body[:best]:
            best = shift
    return body[best:] + body[:best], best


class ScaffoldCompiler:
    def __init__(self, source: str, marker: str = DEFAULT_MARKER):
        self.grid = Grid.parse(source)
        self.marker = marker
        self.nodes: List[Node] = []
        # Discovery keys of jump and branch targets, resolved once discovery is done.
        self.pending: Dict[int, Tuple[IPState, ...]] = {}
        # Index of the first node emitted at or after each discovered state.
        self.memo: Dict[IPState, int] = {}
        # (first, last) node index of each linear run of nodes.
        self.segments: List[Tuple[int, int]] = []
        self.slot_ids: Dict[Axial, int] = {}
        self.slots: List[Axial] = []
        self._scaffold: Optional[Scaffold] = None

    def compile(self) -> Scaffold:
        if self._scaffold is not None:
            return self._scaffold

        point, direction = corners(self.grid.size)[0]
        # Memory starts out as zero.
        work = [IPState(point, direction, NON_POSITIVE)]
        while work:
            state = work.pop()
            if state in self.memo:
                continue
            self._compile_segment(state, work)

        self._resolve_targets()
        nodes = self._normalize_loops()
        opcodes = [self.grid.lookup(p) for p in self.slots]
        self._scaffold = Scaffold(
            nodes=nodes,
            slots=self.slots[:],
            opcodes=opcodes,
            placeholders=[i for i, op in enumerate(opcodes) if op == self.marker],
            size=self.grid.size,
            marker=self.marker,
            loops=[i for i, node in enumerate(nodes) if node.kind == LOOP],
        )
        return self._scaffold

    # ---------- Discovery ----------

    def _emit(self, node: Node, targets: Tuple[IPState, ...] = ()) -> int:
        index = len(self.nodes)
        self.nodes.append(node)
        if targets:
            self.pending[index] = targets
        return index

    def _slot_id(self, point: Axial) -> int:
        if point not in self.slot_ids:
            self.slot_ids[point] = len(self.slots)
            self.slots.append(point)
        return self.slot_ids[point]

    def _compile_segment(self, state: IPState, work: List[IPState]) -> None:
        start = len(self.nodes)
        while True:
            if state in self.memo:
                self._emit(Node(JUMP), (state,))
                break
            self.memo[state] = len(self.nodes)
            successors = self._execute(state)
            if successors is None:
                self._emit(Node(EXIT))
                break
            if len(successors) == 2:
                positive, non_positive = successors
                self._emit(Node(BRANCH), (positive, non_positive))
                # Positive arm is popped, and so compiled, first.
                work.append(non_positive)
                work.append(positive)
                break
            state = successors[0]
        self.segments.append((start, len(self.nodes) - 1))

    def _execute(self, state: IPState) -> Optional[List[IPState]]:
        """Run the instruction at ``state``; returns the next states, or None on '@'."""
        point, direction, sign = state
        opcode = self.grid.lookup(point)

        if opcode in NOOPS:
            return self._advance(point, direction, sign)
        if opcode == TERMINATE:
            return None
        if opcode in MIRRORS:
            return self._advance(point, MIRROR_TABLES[opcode][direction], sign)
        if opcode in BRANCHES:
            if FORK_DIRECTIONS[opcode] != direction:
                # Plain mirror on this edge; both tables agree.
                return self._advance(point, reflect_branch(direction, opcode, False), sign)
            arms: List[IPState] = []
            for positive, arm_sign in ((True, POSITIVE), (False, NON_POSITIVE)):
                if sign in (UNKNOWN, arm_sign):
                    new_direction = reflect_branch(direction, opcode, positive)
                    arms.extend(self._advance(point, new_direction, arm_sign))
            return arms
        if opcode == SKIP:
            arms = []
            for middle in self._advance(point, direction, sign):
                arms.extend(self._advance(middle.point, middle.direction, middle.sign))
            return arms

        self._emit(Node(SLOT, slot=self._slot_id(point)))
        return self._advance(point, direction, UNKNOWN)

    def _advance(self, point: Axial, direction: int, sign: str) -> List[IPState]:
        if_positive, if_not_positive = advance(point, direction, self.grid.size)
        if if_positive == if_not_positive:
            return [IPState(if_positive, direction, sign)]
        if sign == POSITIVE:
            return [IPState(if_positive, direction, POSITIVE)]
        if sign == NON_POSITIVE:
            return [IPState(if_not_positive, direction, NON_POSITIVE)]
        return [
            IPState(if_positive, direction, POSITIVE),
            IPState(if_not_positive, direction, NON_POSITIVE),
        ]

    def _resolve_targets(self) -> None:
        for index, targets in self.pending.items():
            node = self.nodes[index]
            node.target = self.memo[targets[0]]
            if node.kind == BRANCH:
                node.alt = self.memo[targets[1]]

    # ---------- Loops ----------

    def _normalize_loops(self) -> List[Node]:
        referenced = {0}
        for node in self.nodes:
            if node.kind in (JUMP, BRANCH):
                referenced.add(node.target)
            if node.kind == BRANCH:
                referenced.add(node.alt)

        new_nodes: List[Node] = []
        index_map: Dict[int, int] = {}
        extra: List[Tuple[int, Node]] = []

        for start, end in self.segments:
            last = self.nodes[end]
            if last.kind != JUMP or not start <= last.target <= end:
                for i in range(start, end + 1):
                    index_map[i] = len(new_nodes)
                    new_nodes.append(replace(self.nodes[i]))
                continue

            loop_start = last.target
            for i in range(start, loop_start):
                index_map[i] = len(new_nodes)
                new_nodes.append(replace(self.nodes[i]))

            body = tuple(self.nodes[i].slot for i in range(loop_start, end))
            canonical, shift = canonical_rotation(body)

            def loop_node(offset: int) -> Node:
                entry = (offset - shift) % len(body) if body else 0
                return Node(LOOP, body=canonical, entry=entry)

            # The closing jump disappears; whatever pointed at it now enters the loop.
            index_map[loop_start] = index_map[end] = len(new_nodes)
            new_nodes.append(loop_node(0))
            for i in range(loop_start + 1, end):
                if i in referenced:
                    extra.append((i, loop_node(i - loop_start)))

        for old_index, node in extra:
            index_map[old_index] = len(new_nodes)
            new_nodes.append(node)

        for node in new_nodes:
            if node.kind in (JUMP, BRANCH):
                node.target = index_map[node.target]
            if node.kind == BRANCH:
                node.alt = index_map[node.alt]
        return new_nodes


def compile_scaffold(source: str, marker: str = DEFAULT_MARKER) -> Scaffold:
    return ScaffoldCompiler(source, marker).compile()


def format_slots(scaffold: Scaffold) -> Iterable[str]:
    for index, (point, opcode) in enumerate(zip(scaffold.slots, scaffold.opcodes)):
        tag = " (placeholder)" if index in scaffold.placeholders else ""
        yield f"_{index}: {point} {opcode!r}{tag}"


def main() -> None:
    import sys

    from scaffold_runner import ScaffoldRunner

    parser = argparse.ArgumentParser()
    parser.add_argument("program", help="path to the program template")
    parser.add_argument("--marker", default=DEFAULT_MARKER, help="placeholder character")
    parser.add_argument("--fill", default=None, help="characters for the placeholders, in order")
    parser.add_argument("--input", help="input file used when replaying with --fill")
    parser.add_argument("--max-steps", type=int, default=100000)
    args = parser.parse_args()

    try:
        with open(args.program, "r", encoding="utf-8") as f:
            source = f.read()
    except FileNotFoundError:
        raise SystemExit(f"program {args.program} not found")

    scaffold = compile_scaffold(source, args.marker)
    print(scaffold)
    for line in format_slots(scaffold):
        print(line)

    if args.fill is None:
        return
    input_stream = open(args.input, "rb") if args.input else None
    try:
        runner = ScaffoldRunner(
            scaffold,
            args.fill,
            input_stream=input_stream,
            max_steps=args.max_steps,
        )
        runner.run()
    except ScaffoldError as exc:
        raise SystemExit(str(exc))
    finally:
        if input_stream is not None:
            input_stream.close()
    sys.stdout.flush()
    if runner.timed_out:
        print(f"\ntimed out after {runner.steps} steps")


if __name__ == "__main__":
    main()
