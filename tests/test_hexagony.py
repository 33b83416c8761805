import io

import pytest

from hex_geometry import EAST, NORTH_EAST, ORIGIN, SOUTH_EAST, Axial
from hexagony import (
    RUNNING,
    STOP,
    TERMINATED,
    TIMED_OUT,
    HexagonyMachine,
    OutputChannel,
    Runtime,
    floor_divmod,
    run_source,
)


def _runtime(left=0, right=0, current=0):
    runtime = Runtime(io.BytesIO(), OutputChannel(sink=lambda s: None))
    memory = runtime.memory
    memory.edges[(ORIGIN, NORTH_EAST)] = left
    memory.edges[(Axial(1, -1), SOUTH_EAST)] = right
    memory.set(current)
    return runtime


class TestFloorDivision:
    @pytest.mark.parametrize(
        "dividend,divisor,expected",
        [
            (7, 2, (3, 1)),
            (-7, 2, (-4, 1)),
            (7, -2, (-4, -1)),
            (-7, -2, (3, -1)),
            (6, -3, (-2, 0)),
            (0, 5, (0, 0)),
        ],
    )
    def test_examples(self, dividend, divisor, expected):
        assert floor_divmod(dividend, divisor) == expected

    def test_floor_properties(self):
        for dividend in range(-30, 31):
            for divisor in range(-7, 8):
                if divisor == 0:
                    continue
                quotient, remainder = floor_divmod(dividend, divisor)
                assert quotient * divisor + remainder == dividend
                assert abs(remainder) < abs(divisor)
                if remainder:
                    assert (remainder < 0) == (divisor < 0)


class TestRuntime:
    @pytest.mark.parametrize(
        "opcode,expected",
        [("+", 7), ("-", -1), ("*", 12), (":", 0), ("%", 3)],
    )
    def test_binary_opcodes(self, opcode, expected):
        runtime = _runtime(left=3, right=4)
        assert runtime.execute(opcode) is None
        assert runtime.memory.get() == expected

    def test_floored_division_opcodes(self):
        runtime = _runtime(left=-7, right=2)
        runtime.execute(":")
        assert runtime.memory.get() == -4
        runtime.execute("%")
        assert runtime.memory.get() == 1

    def test_zero_divisor_stops(self):
        runtime = _runtime(left=5, right=0)
        assert runtime.execute(":") == STOP
        assert runtime.execute("%") == STOP

    def test_increment_decrement_negate(self):
        runtime = _runtime(current=5)
        runtime.execute(")")
        assert runtime.memory.get() == 6
        runtime.execute("(")
        runtime.execute("(")
        assert runtime.memory.get() == 4
        runtime.execute("~")
        assert runtime.memory.get() == -4

    def test_digits_keep_sign(self):
        runtime = _runtime(current=-1)
        runtime.execute("2")
        assert runtime.memory.get() == -12
        runtime = _runtime(current=4)
        runtime.execute("0")
        assert runtime.memory.get() == 40

    def test_letters_set_code_point(self):
        runtime = _runtime(current=9)
        runtime.execute("a")
        assert runtime.memory.get() == 97

    def test_copy_neighbour(self):
        runtime = _runtime(left=3, right=4, current=0)
        runtime.execute("&")
        assert runtime.memory.get() == 3
        runtime.execute("&")
        assert runtime.memory.get() == 4

    def test_conditional_move(self):
        runtime = _runtime()
        runtime.execute("^")
        assert runtime.memory.pointer == (ORIGIN, NORTH_EAST, False)
        runtime = _runtime(current=1)
        runtime.execute("^")
        assert runtime.memory.pointer == (Axial(1, -1), SOUTH_EAST, False)

    def test_rotations(self):
        runtime = _runtime()
        runtime.execute('"')
        assert runtime.memory.pointer == (ORIGIN, SOUTH_EAST, False)
        runtime = _runtime()
        runtime.execute("'")
        assert runtime.memory.pointer == (Axial(0, 1), NORTH_EAST, False)
        runtime.execute("=")
        assert runtime.memory.pointer == (Axial(0, 1), NORTH_EAST, True)

    def test_read_integer_skips_noise(self):
        runtime = Runtime(io.BytesIO(b"ab-12x7"))
        assert runtime.read_integer() == -12
        assert runtime.read_byte() == ord("x")
        assert runtime.read_integer() == 7
        assert runtime.read_integer() == 0
        assert runtime.read_byte() == -1

    def test_read_without_input(self):
        assert Runtime().read_byte() == -1


class TestOutputChannel:
    def _write(self, target, text):
        channel = OutputChannel(target)
        for ch in text:
            channel.write_char(ch)
        channel.finish()
        return channel

    def test_space_matches_newline(self):
        assert self._write("5\n", "5 ").success

    def test_trailing_newline_tolerated(self):
        channel = self._write("5", "5\n")
        assert channel.success
        assert channel.length == 1

    def test_extra_character_fails(self):
        assert not self._write("5", "5X").success

    def test_mismatch_fails(self):
        assert not self._write("5", "6").success

    def test_short_output_fails(self):
        assert not self._write("5\n", "5").success

    def test_without_target_writes_to_sink(self):
        written = []
        channel = OutputChannel(sink=written.append)
        channel.write_value(-42)
        assert "".join(written) == "-42"
        assert channel.length == 3


class TestMachine:
    def test_prints_before_increment(self):
        machine, output = run_source("!)!@")
        assert output == "01"
        assert machine.state == TERMINATED

    def test_hello(self):
        machine, output = run_source("H;i;@")
        assert output == "Hi"
        assert machine.tick == 4

    def test_read_byte(self):
        assert run_source(",;@", b"A")[1] == "A"
        assert run_source(",;@", b"")[1] == chr(255)

    def test_read_integer(self):
        assert run_source("?!@", b"ab-12x")[1] == "-12"
        assert run_source("?!@", b"")[1] == "0"

    def test_digits(self):
        assert run_source("12!@")[1] == "12"
        assert run_source("(2!@")[1] == "-12"

    def test_zero_divisor_terminates(self):
        machine, output = run_source("1:!@")
        assert output == ""
        assert machine.halted
        assert not machine.timed_out

    def test_skip(self):
        machine, output = run_source("$!@")
        assert output == ""
        assert machine.halted
        assert machine.tick == 1

    def test_branch_on_positive(self):
        machine, output = run_source(")<!.@")
        assert output == ""
        assert machine.halted

    def test_branch_on_negative_and_corner_wrap(self):
        machine, output = run_source("(<!.@")
        assert output == "-1"
        assert machine.halted

    def test_timeout(self):
        machine, output = run_source(".", max_ticks=10)
        assert machine.state == TIMED_OUT
        assert machine.timed_out
        assert machine.tick == 10
        assert output == ""

    def test_target_success(self):
        machine, output = run_source("H;i;@", target_output="Hi")
        assert machine.success
        assert output == ""
        assert machine.output_length == 2

    def test_target_too_long(self):
        machine, _ = run_source("H;i;@", target_output="Hi\n")
        assert machine.halted
        assert not machine.success

    def test_output_mismatch_stops(self):
        machine, _ = run_source("H;i;@", target_output="X")
        assert machine.halted
        assert not machine.success
        assert machine.tick == 1

    def test_trace(self):
        seen = []
        machine = HexagonyMachine(
            "H;i;@", sink=lambda s: None, trace=lambda m, opcode: seen.append(opcode)
        )
        machine.run()
        assert seen == ["H", ";", "i", ";", "@"]

    def test_halted_machine_stays_halted(self):
        machine, _ = run_source("@")
        assert machine.step() == TERMINATED
        assert machine.tick == 0


class TestInstructionPointers:
    def _machine(self, source):
        return HexagonyMachine(source, io.BytesIO(), sink=lambda s: None)

    def test_next_ip(self):
        machine = self._machine("]")
        assert machine.step() == RUNNING
        assert machine.active_ip == 1

    def test_previous_ip(self):
        machine = self._machine("[")
        machine.step()
        assert machine.active_ip == 5

    @pytest.mark.parametrize("source,ip", [(")#", 1), ("(#", 5), ("7#", 1)])
    def test_ip_from_memory(self, source, ip):
        machine = self._machine(source)
        machine.step()
        machine.step()
        assert machine.active_ip == ip

    def test_switched_ip_runs_from_its_corner(self):
        machine, output = run_source("]!@", max_ticks=2)
        assert output == "0"
        assert machine.active_ip == 1
        assert machine.ips[0] == Axial(1, -1)
        assert machine.ip_dirs[1] == SOUTH_EAST
        assert machine.state == TIMED_OUT

    def test_debug_string(self):
        machine = self._machine("]")
        text = machine.debug_string("]")
        assert "IP #0" in text
        assert "IP #0: (Q:   0, R:   0, Dir:  E) (active)" in text
        assert "Command: ]" in text


class TestTemplateCopy:
    def test_copy_continues_from_template(self):
        out = io.StringIO()
        base = HexagonyMachine(")...", io.BytesIO(), max_ticks=1, sink=out.write)
        assert base.run() == TIMED_OUT
        assert base.memory.get() == 1

        machine = HexagonyMachine.from_template(base, ")!@")
        machine.max_ticks = None
        assert machine.run() == TERMINATED
        assert out.getvalue() == "1"

        assert base.memory.get() == 1
        assert base.ips[0] == Axial(1, -1)
        assert base.ip_dirs[0] == EAST
        assert base.grid.lookup(Axial(1, -1)) == "."
        assert base.tick == 1

    def test_copy_does_not_share_memory(self):
        base = HexagonyMachine(")", io.BytesIO(), max_ticks=1, sink=lambda s: None)
        base.run()
        machine = HexagonyMachine.from_template(base, ")")
        machine.memory.set(99)
        machine.ips[0] = Axial(0, 0)
        assert base.memory.get() == 1
        assert machine.memory is not base.memory
        assert machine.ips is not base.ips
