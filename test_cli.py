#!/usr/bin/env python3
"""
Tests for the command-line runner, the debug monitor and the benchmark
driver.  Output is captured with redirect_stdout / redirect_stderr.
"""
import io
import os
import tempfile
import unittest
from contextlib import redirect_stdout, redirect_stderr

import pytest

import bench
from cli import IntcodeCLI, disasm_one, disasm_range, main
from intcode import HALTED, Memory, load_program


# ---------------------------------------------------------------------------
#  Helpers
# ---------------------------------------------------------------------------

def write_program(text: str) -> str:
    fd, path = tempfile.mkstemp(suffix=".txt")
    with os.fdopen(fd, "w") as f:
        f.write(text)
    return path


def run_main(argv: list[str]) -> tuple[int, str, str]:
    out, err = io.StringIO(), io.StringIO()
    with redirect_stdout(out), redirect_stderr(err):
        rc = main(argv)
    return rc, out.getvalue(), err.getvalue()


def monitor(text: str, commands: list[str], inputs=()) -> tuple[IntcodeCLI, str]:
    cli = IntcodeCLI(load_program(text), inputs)
    out = io.StringIO()
    with redirect_stdout(out):
        for line in commands:
            cli.onecmd(line)
    return cli, out.getvalue()


ECHO = "3,0,4,0,99"


class TempProgramMixin:
    def program(self, text: str) -> str:
        path = write_program(text)
        self.addCleanup(os.remove, path)
        return path


# ---------------------------------------------------------------------------
#  Disassembler
# ---------------------------------------------------------------------------

class TestDisasm(unittest.TestCase):
    def test_one(self):
        mem = load_program("1002,4,3,4,33")
        self.assertEqual(disasm_one(mem, 0), ("MUL [4], #3, [4]", 4))

    def test_data_cell(self):
        mem = load_program("1,0,0,0,99,42")
        self.assertEqual(disasm_one(mem, 5), (".data 42", 1))

    def test_out_of_bounds(self):
        self.assertEqual(disasm_one(Memory([99]), 3), ("<out of bounds>", 1))

    def test_range_marks_ip(self):
        mem = load_program("1,0,0,0,99")
        lines = disasm_range(mem, 0, 10, ip=4)
        self.assertEqual(len(lines), 2)
        self.assertIn("ADD [0], [0], [0]", lines[0])
        self.assertTrue(lines[1].lstrip().startswith(">>>"))
        self.assertIn("HALT", lines[1])


# ---------------------------------------------------------------------------
#  Runner
# ---------------------------------------------------------------------------

class TestMain(TempProgramMixin, unittest.TestCase):
    def test_echo(self):
        rc, out, err = run_main([self.program(ECHO), "-i", "17"])
        self.assertEqual(rc, 0)
        self.assertEqual(out.split(), ["17"])
        self.assertEqual(err, "")

    def test_patch_and_dump(self):
        path = self.program("1,0,0,0,99")
        rc, out, _ = run_main([path, "--set", "1=4", "--set", "2=4", "--dump"])
        self.assertEqual(rc, 0)
        self.assertIn("HALTED", out)
        self.assertIn("198", out)

    def test_patch_out_of_range(self):
        rc, _, err = run_main([self.program("99"), "--set", "5=1"])
        self.assertEqual(rc, 1)
        self.assertIn("out of range", err)

    def test_memory_size(self):
        path = self.program("1101,1,1,5,99")
        rc, _, err = run_main([path])
        self.assertEqual(rc, 1)
        self.assertIn("OutOfBoundsAddress", err)
        rc, _, _ = run_main([path, "--memory-size", "6"])
        self.assertEqual(rc, 0)

    def test_fault_exit_code(self):
        rc, _, err = run_main([self.program("3,0,99")])
        self.assertEqual(rc, 1)
        self.assertIn("InputExhausted", err)
        self.assertIn("ip=0", err)

    def test_budget_exit_code(self):
        rc, _, err = run_main([self.program("1105,1,0"), "--max-steps", "50"])
        self.assertEqual(rc, 2)
        self.assertIn("50 steps", err)

    def test_parse_error(self):
        rc, _, err = run_main([self.program("1,2,oops")])
        self.assertEqual(rc, 1)
        self.assertIn("oops", err)

    def test_missing_file(self):
        rc, _, err = run_main([os.path.join(tempfile.gettempdir(), "no-such-intcode.txt")])
        self.assertEqual(rc, 1)
        self.assertIn("Error reading", err)

    def test_trace(self):
        rc, out, _ = run_main([self.program("1101,2,3,0,99"), "--trace"])
        self.assertEqual(rc, 0)
        self.assertIn("[tick 0] ip=0", out)
        self.assertIn("[tick 1] ip=4", out)
        self.assertIn("HALT", out)


# ---------------------------------------------------------------------------
#  Monitor
# ---------------------------------------------------------------------------

class TestMonitor(unittest.TestCase):
    def test_step_and_halt(self):
        cli, out = monitor(ECHO, ["step 5"], inputs=[9])
        self.assertIn("IN [0]", out)
        self.assertIn("OUT [0]", out)
        self.assertIn("Machine halted.", out)
        self.assertIs(cli.machine.state, HALTED)
        self.assertEqual(cli.machine.output, [9])

    def test_run_reports_fault(self):
        cli, out = monitor(ECHO, ["run"])
        self.assertIn("InputExhausted", out)

    def test_queued_input(self):
        cli, out = monitor(ECHO, ["input 3", "run"])
        self.assertIn("halted after 3 ticks", out)
        self.assertEqual(cli.machine.output, [3])

    def test_breakpoint(self):
        cli, out = monitor(ECHO, ["bp 2", "run"], inputs=[1])
        self.assertIn("Breakpoint hit at 2", out)
        self.assertEqual(cli.machine.ip, 2)
        with redirect_stdout(io.StringIO()):
            cli.onecmd("bpd all")
            cli.onecmd("run")
        self.assertIs(cli.machine.state, HALTED)

    def test_poke_and_reset(self):
        cli, out = monitor("1,0,0,0,99", ["poke 1 4 4", "run"])
        self.assertEqual(cli.machine.mem[0], 198)
        with redirect_stdout(io.StringIO()):
            cli.onecmd("reset")
        self.assertEqual(cli.machine.mem, [1, 0, 0, 0, 99])
        self.assertEqual(cli.machine.ip, 0)

    def test_reset_replays_inputs(self):
        cli, out = monitor(ECHO, ["run", "reset", "run"], inputs=[7])
        self.assertNotIn("InputExhausted", out)
        self.assertEqual(out.count("halted after 3 ticks"), 2)
        self.assertIs(cli.machine.state, HALTED)
        self.assertEqual(cli.machine.output, [7])

    def test_bad_number_keeps_monitor_alive(self):
        cli, out = monitor(ECHO, ["step abc", "bp xyz", "dump q", "step"], inputs=[4])
        self.assertEqual(out.count("Error:"), 3)
        self.assertEqual(cli.breakpoints, set())
        self.assertEqual(cli.machine.tick, 1)

    def test_dump_negative_address(self):
        _, out = monitor("1,0,0,0,99", ["dump -10 12"])
        self.assertEqual(out.split(), ["0:", "1", "0"])

    def test_poke_out_of_range(self):
        _, out = monitor("99", ["poke 5 1"])
        self.assertIn("Error", out)

    def test_step_after_halt(self):
        _, out = monitor("99", ["step", "step"])
        self.assertIn("Machine is halted.", out)

    def test_disasm_and_dump(self):
        _, out = monitor("1,0,0,0,99", ["disasm", "dump 0 5", "state"])
        self.assertIn(">>>", out)
        self.assertIn("ADD [0], [0], [0]", out)
        self.assertIn("RUNNING", out)

    def test_quit(self):
        cli = IntcodeCLI(load_program("99"))
        self.assertTrue(cli.onecmd("quit"))


# ---------------------------------------------------------------------------
#  Benchmark driver
# ---------------------------------------------------------------------------

@pytest.mark.slow
class TestBench(TempProgramMixin, unittest.TestCase):
    def test_builtin_kernel(self):
        out = io.StringIO()
        with redirect_stdout(out):
            rc = bench.main(["--iterations", "20"])
        self.assertEqual(rc, 0)
        self.assertIn("ticks/s", out.getvalue())

    def test_program_file_with_spare_input(self):
        out, err = io.StringIO(), io.StringIO()
        with redirect_stdout(out), redirect_stderr(err):
            rc = bench.main([self.program("3,0,99"), "-i", "1", "-i", "2",
                             "--iterations", "2"])
        self.assertEqual(rc, 0)
        self.assertEqual(err.getvalue(), "")

    def test_non_halting_program(self):
        out, err = io.StringIO(), io.StringIO()
        with redirect_stdout(out), redirect_stderr(err):
            rc = bench.main([self.program("3,0,3,0,99"), "-i", "1",
                             "--iterations", "2"])
        self.assertEqual(rc, 1)
        self.assertIn("did not halt", err.getvalue())


if __name__ == "__main__":
    unittest.main()
