#!/usr/bin/env python3
"""Replay a compiled scaffold with concrete instructions in its command slots."""

from __future__ import annotations

from typing import BinaryIO, Callable, Optional, Sequence

from hex_memory import Memory
from hexagony import CONTROL_OPCODES, STOP, OutputChannel, Runtime
from scaffold import BRANCH, EXIT, JUMP, LOOP, SLOT, Scaffold, ScaffoldError


class ScaffoldRunner:
    def __init__(
        self,
        scaffold: Scaffold,
        fill: Sequence[str] = (),
        input_stream: Optional[BinaryIO] = None,
        max_steps: Optional[int] = None,
        target_output: Optional[str] = None,
        sink: Optional[Callable[[str], object]] = None,
        trace: Optional[Callable[[int, str], None]] = None,
    ):
        self.scaffold = scaffold
        self.opcodes = scaffold.fill_opcodes(fill)
        for slot, opcode in enumerate(self.opcodes):
            if opcode in CONTROL_OPCODES:
                raise ScaffoldError(
                    f"slot {slot} at {scaffold.slots[slot]} holds control flow {opcode!r}"
                )
        self.runtime = Runtime(input_stream, OutputChannel(target_output, sink))
        self.max_steps = max_steps
        self.steps = 0
        self.halted = False
        self.trace = trace

    @property
    def memory(self) -> Memory:
        return self.runtime.memory

    @property
    def success(self) -> bool:
        return self.runtime.output.success

    @property
    def output_length(self) -> int:
        return self.runtime.output.length

    @property
    def timed_out(self) -> bool:
        return not self.halted and self.max_steps is not None and self.steps >= self.max_steps

    def _count_step(self) -> bool:
        if self.max_steps is not None and self.steps >= self.max_steps:
            return False
        self.steps += 1
        return True

    def _execute_slot(self, slot: int) -> bool:
        """Run one slot; False when the program stops."""
        opcode = self.opcodes[slot]
        if self.trace is not None:
            self.trace(slot, opcode)
        if self.runtime.execute(opcode) == STOP:
            self.halted = True
            return False
        return True

    def run(self) -> bool:
        """Run from the first node; returns True if the program halted."""
        nodes = self.scaffold.nodes
        pc = 0
        while self._count_step():
            node = nodes[pc]
            if node.kind == SLOT:
                if not self._execute_slot(node.slot):
                    return True
                pc += 1
            elif node.kind == JUMP:
                pc = node.target
            elif node.kind == BRANCH:
                pc = node.target if self.memory.get() > 0 else node.alt
            elif node.kind == LOOP:
                # Loops never exit, so the remaining budget is spent here.
                self._run_loop(node.body, node.entry)
                return self.halted
            elif node.kind == EXIT:
                self.runtime.output.finish()
                self.halted = True
                return True
            else:
                raise ScaffoldError(f"unknown node kind {node.kind!r}")
        return False

    def _run_loop(self, body: Sequence[int], entry: int) -> None:
        if not body:
            if self.max_steps is None:
                raise ScaffoldError("empty loop never terminates without a step budget")
            self.steps = max(self.steps, self.max_steps)
            return
        position = entry
        while True:
            if not self._execute_slot(body[position]):
                return
            position = (position + 1) % len(body)
            if not self._count_step():
                return
