#!/usr/bin/env python3
"""Hexagony interpreter: six instruction pointers walking a hexagonal grid.

Examples:
  python3 hexagony.py hello.hxg
  python3 hexagony.py cat.hxg --input in.txt --max-ticks 100000
  python3 hexagony.py fib.hxg --target "0 1 1 2 3 5" --debug
"""

from __future__ import annotations

import argparse
import io
import logging
import sys
from typing import BinaryIO, Callable, Iterable, List, Optional, Tuple

from hex_geometry import (
    DIR_NAMES,
    MIRROR_TABLES,
    Axial,
    advance,
    corners,
    reflect_branch,
)
from hex_grid import Grid
from hex_memory import Memory


logger = logging.getLogger(__name__)

NOOPS = frozenset(".\0")
MIRRORS = frozenset(MIRROR_TABLES)
BRANCHES = frozenset("<>")
IP_SWITCHES = frozenset("[]#")
SKIP = "$"
TERMINATE = "@"
CONTROL_OPCODES = NOOPS | MIRRORS | BRANCHES | IP_SWITCHES | {SKIP, TERMINATE}

RUNNING = "running"
TERMINATED = "terminated"
TIMED_OUT = "timed out"

# Returned by Runtime.execute when the program has to stop.
STOP = "stop"


# ---------- Output ----------


class OutputChannel:
    """Collects program output, either printing it or checking it against a target."""

    def __init__(self, target: Optional[str] = None, sink: Optional[Callable[[str], object]] = None):
        self.target = target
        self.sink = sink if sink is not None else sys.stdout.write
        self.length = 0
        self.success = True

    def copy(self) -> "OutputChannel":
        other = OutputChannel(self.target, self.sink)
        other.length = self.length
        other.success = self.success
        return other

    def write_char(self, ch: str) -> None:
        if self.target is None:
            self.sink(ch)
            self.length += 1
            return

        if self.length >= len(self.target):
            if ch != "\n":
                self.success = False
            return

        expected = self.target[self.length]
        if expected != ch and not (expected == "\n" and ch == " "):
            self.success = False
            return
        self.length += 1

    def write_value(self, value: int) -> None:
        for ch in str(value):
            self.write_char(ch)

    def finish(self) -> None:
        if self.target is not None:
            self.success = self.success and self.length == len(self.target)


# ---------- Commands ----------


class Runtime:
    """Memory, input and output: everything a non-control opcode touches."""

    def __init__(
        self,
        input_stream: Optional[BinaryIO] = None,
        output: Optional[OutputChannel] = None,
        memory: Optional[Memory] = None,
    ):
        self.memory = memory if memory is not None else Memory()
        self.input_stream = input_stream
        self.output = output if output is not None else OutputChannel()
        self.next_byte: Optional[int] = None

    def copy(self, input_stream: Optional[BinaryIO] = None) -> "Runtime":
        other = Runtime(input_stream, self.output.copy(), self.memory.copy())
        other.next_byte = self.next_byte
        return other

    def read_byte(self) -> int:
        """Read one byte of input; -1 once the input is exhausted."""
        if self.next_byte is not None:
            value = self.next_byte
            self.next_byte = None
            return value
        if self.input_stream is None:
            return -1
        data = self.input_stream.read(1)
        return data[0] if data else -1

    def read_integer(self) -> int:
        value = 0
        positive = True
        while True:
            byte = self.read_byte()
            if byte == ord("+"):
                break
            if byte == ord("-"):
                positive = False
                break
            if byte == -1 or ord("0") <= byte <= ord("9"):
                self.next_byte = byte
                break

        while True:
            byte = self.read_byte()
            if ord("0") <= byte <= ord("9"):
                value = value * 10 + (byte - ord("0"))
            else:
                # Not part of the number; leave it for the next read.
                self.next_byte = byte
                break
        return value if positive else -value

    def execute(self, opcode: str) -> Optional[str]:
        mem = self.memory
        if opcode == ")":
            mem.set(mem.get() + 1)
        elif opcode == "(":
            mem.set(mem.get() - 1)
        elif opcode == "+":
            mem.set(mem.get_left() + mem.get_right())
        elif opcode == "-":
            mem.set(mem.get_left() - mem.get_right())
        elif opcode == "*":
            mem.set(mem.get_left() * mem.get_right())
        elif opcode == "~":
            mem.set(-mem.get())
        elif opcode in (":", "%"):
            dividend = mem.get_left()
            divisor = mem.get_right()
            if divisor == 0:
                self.output.finish()
                return STOP
            quotient, remainder = floor_divmod(dividend, divisor)
            mem.set(quotient if opcode == ":" else remainder)
        elif opcode == "{":
            mem.move_left()
        elif opcode == "}":
            mem.move_right()
        elif opcode == "=":
            mem.reverse()
        elif opcode == '"':
            mem.reverse()
            mem.move_right()
            mem.reverse()
        elif opcode == "'":
            mem.reverse()
            mem.move_left()
            mem.reverse()
        elif opcode == "^":
            if mem.get() > 0:
                mem.move_right()
            else:
                mem.move_left()
        elif opcode == "&":
            mem.set(mem.get_right() if mem.get() > 0 else mem.get_left())
        elif opcode == ",":
            mem.set(self.read_byte())
        elif opcode == ";":
            self.output.write_char(chr(mem.get() % 256))
            if not self.output.success:
                return STOP
        elif opcode == "?":
            mem.set(self.read_integer())
        elif opcode == "!":
            self.output.write_value(mem.get())
            if not self.output.success:
                return STOP
        elif "0" <= opcode <= "9":
            digit = ord(opcode) - ord("0")
            value = mem.get()
            mem.set(value * 10 + (-digit if value < 0 else digit))
        elif opcode in NOOPS:
            pass
        else:
            mem.set(ord(opcode))
        return None


def floor_divmod(dividend: int, divisor: int):
    """Quotient and remainder rounded towards negative infinity.

    Truncating division is corrected whenever the remainder is non-zero and
    the operands have different signs, which makes the remainder take the
    divisor's sign.
    """
    quotient = abs(dividend) // abs(divisor)
    if (dividend < 0) != (divisor < 0):
        quotient = -quotient
    remainder = dividend - quotient * divisor
    if remainder != 0 and (dividend < 0) != (divisor < 0):
        remainder += divisor
        quotient -= 1
    return quotient, remainder


# ---------- Machine ----------


class HexagonyMachine:
    def __init__(
        self,
        source: str,
        input_stream: Optional[BinaryIO] = None,
        max_ticks: Optional[int] = None,
        target_output: Optional[str] = None,
        sink: Optional[Callable[[str], object]] = None,
        trace: Optional[Callable[["HexagonyMachine", str], None]] = None,
    ):
        self.grid = Grid.parse(source)
        self.runtime = Runtime(input_stream, OutputChannel(target_output, sink))
        start = corners(self.grid.size)
        self.ips: List[Axial] = [point for point, _ in start]
        self.ip_dirs: List[int] = [direction for _, direction in start]
        self.active_ip = 0
        self.tick = 0
        self.max_ticks = max_ticks
        self.halted = False
        self.trace = trace

    @classmethod
    def from_template(
        cls,
        template: "HexagonyMachine",
        chars: Iterable[str],
        input_stream: Optional[BinaryIO] = None,
    ) -> "HexagonyMachine":
        """Copy a partly executed machine onto a grid with replaced characters.

        Memory, pointers and counters continue from the template. The input
        stream is not shared: the copy reads from ``input_stream`` (empty when
        omitted) after any byte the template had already pushed back.
        """
        machine = cls.__new__(cls)
        machine.grid = template.grid.copy()
        machine.grid.replace_characters(chars)
        machine.runtime = template.runtime.copy(input_stream)
        machine.ips = template.ips[:]
        machine.ip_dirs = template.ip_dirs[:]
        machine.active_ip = template.active_ip
        machine.tick = template.tick
        machine.max_ticks = template.max_ticks
        machine.halted = template.halted
        machine.trace = template.trace
        return machine

    @property
    def memory(self) -> Memory:
        return self.runtime.memory

    @property
    def target_output(self) -> Optional[str]:
        return self.runtime.output.target

    @target_output.setter
    def target_output(self, value: Optional[str]) -> None:
        self.runtime.output.target = value

    @property
    def success(self) -> bool:
        return self.runtime.output.success

    @property
    def output_length(self) -> int:
        return self.runtime.output.length

    @property
    def timed_out(self) -> bool:
        return not self.halted and self.max_ticks is not None and self.tick >= self.max_ticks

    @property
    def state(self) -> str:
        if self.halted:
            return TERMINATED
        if self.timed_out:
            return TIMED_OUT
        return RUNNING

    def _move(self, point: Axial, direction: int) -> Axial:
        if_positive, if_not_positive = advance(point, direction, self.grid.size)
        if if_positive == if_not_positive:
            return if_positive
        return if_positive if self.memory.get() > 0 else if_not_positive

    def step(self) -> str:
        """Execute one instruction of the active IP."""
        if self.halted or self.timed_out:
            return self.state

        ip = self.active_ip
        direction = self.ip_dirs[ip]
        opcode = self.grid.lookup(self.ips[ip])
        if self.trace is not None:
            self.trace(self, opcode)

        new_ip = ip
        if opcode in NOOPS:
            pass
        elif opcode == TERMINATE:
            self.runtime.output.finish()
            self.halted = True
            return TERMINATED
        elif opcode in MIRRORS:
            self.ip_dirs[ip] = MIRROR_TABLES[opcode][direction]
        elif opcode in BRANCHES:
            self.ip_dirs[ip] = reflect_branch(direction, opcode, self.memory.get() > 0)
        elif opcode == "]":
            new_ip = (ip + 1) % 6
        elif opcode == "[":
            new_ip = (ip + 5) % 6
        elif opcode == "#":
            new_ip = self.memory.get() % 6
        elif opcode == SKIP:
            self.ips[ip] = self._move(self.ips[ip], direction)
        elif self.runtime.execute(opcode) == STOP:
            self.halted = True
            return TERMINATED

        self.ips[ip] = self._move(self.ips[ip], self.ip_dirs[ip])
        self.active_ip = new_ip
        self.tick += 1
        return self.state

    def run(self) -> str:
        while self.step() == RUNNING:
            pass
        return self.state

    def debug_string(self, opcode: Optional[str] = None) -> str:
        lines = ["", f"Tick {self.tick}", self.grid.debug_string()]
        for i, (point, direction) in enumerate(zip(self.ips, self.ip_dirs)):
            active = " (active)" if i == self.active_ip else ""
            lines.append(
                f"IP #{i}: (Q: {point.q:3}, R: {point.r:3}, Dir: {DIR_NAMES[direction]:>2}){active}"
            )
        if opcode is not None:
            lines.append(f"Command: {opcode}")
        lines.append(self.memory.debug_string())
        return "\n".join(lines)


def run_source(
    source: str,
    input_data: bytes = b"",
    max_ticks: Optional[int] = None,
    target_output: Optional[str] = None,
) -> Tuple[HexagonyMachine, str]:
    """Run a program on in-memory input; returns the machine and its output."""
    out = io.StringIO()
    machine = HexagonyMachine(
        source,
        io.BytesIO(input_data),
        max_ticks=max_ticks,
        target_output=target_output,
        sink=out.write,
    )
    machine.run()
    return machine, out.getvalue()


def _log_tick(machine: HexagonyMachine, opcode: str) -> None:
    logger.debug(machine.debug_string(opcode))


def main() -> None:
    parser = argparse.ArgumentParser()
    parser.add_argument("program", help="path to the program source")
    parser.add_argument("--input", help="read program input from this file (default stdin)")
    parser.add_argument("--max-ticks", type=int, default=None)
    parser.add_argument("--target", default=None, help="expected output to validate against")
    parser.add_argument("--debug", action="store_true", help="log the machine state every tick")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.WARNING,
        format="%(message)s",
        stream=sys.stderr,
    )

    try:
        with open(args.program, "r", encoding="utf-8") as f:
            source = f.read()
    except FileNotFoundError:
        raise SystemExit(f"program {args.program} not found")

    input_stream = open(args.input, "rb") if args.input else sys.stdin.buffer
    try:
        machine = HexagonyMachine(
            source,
            input_stream,
            max_ticks=args.max_ticks,
            target_output=args.target,
            trace=_log_tick if args.debug else None,
        )
        state = machine.run()
    finally:
        if args.input:
            input_stream.close()
    sys.stdout.flush()

    if args.target is not None:
        print("success:", machine.success)
        print("output length:", machine.output_length)
    if state == TIMED_OUT:
        print(f"timed out after {machine.tick} ticks", file=sys.stderr)


if __name__ == "__main__":
    main()
