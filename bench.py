#!/usr/bin/env python3
"""
bench.py — Time program loading and execution
==============================================

Loads a program repeatedly, then executes a fresh clone of it repeatedly
(execution mutates memory, so every iteration starts from the pristine
copy), and reports per-iteration time and ticks/second.

Usage:
    python bench.py PROGRAM -i 5
    python bench.py PROGRAM --iterations 1000
    python bench.py                       # built-in comparison kernel
"""

from __future__ import annotations
import argparse
import sys
import time

from intcode import Machine, Memory, load_program, HALTED

# Reads one value and prints 999 / 1000 / 1001 for below / equal / above 8.
BENCH_PROGRAM = (
    "3,21,1008,21,8,20,1005,20,22,107,8,21,20,1006,20,31,"
    "1106,0,36,98,0,0,1002,21,125,20,4,20,1105,1,46,104,"
    "999,1105,1,46,1101,1000,1,20,4,20,1105,1,46,98,99"
)


def time_load(text: str, iterations: int) -> float:
    """Parse *text* N times, return elapsed seconds."""
    t0 = time.perf_counter()
    for _ in range(iterations):
        load_program(text)
    return time.perf_counter() - t0


def time_execute(program: Memory, inputs: list[int],
                 iterations: int) -> tuple[float, int]:
    """Execute a clone of *program* N times; return (seconds, total ticks)."""
    ticks = 0
    t0 = time.perf_counter()
    for _ in range(iterations):
        m = Machine(program.clone(), inputs)
        state = m.run()
        if state is not HALTED:
            raise RuntimeError(f"benchmark run did not halt: {state!r}")
        ticks += m.tick
    return time.perf_counter() - t0, ticks


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Intcode benchmark")
    parser.add_argument("program", nargs="?", default=None,
                        help="Program file (default: built-in kernel)")
    parser.add_argument("-i", "--input", type=int, action="append", default=None,
                        metavar="N", help="Input value (can repeat)")
    parser.add_argument("--iterations", type=int, default=10_000,
                        help="Iterations per measurement (default: 10k)")
    args = parser.parse_args(argv)

    if args.program:
        with open(args.program, "r") as f:
            text = f.read()
        name = args.program
    else:
        text = BENCH_PROGRAM
        name = "built-in comparison kernel"
    inputs = args.input if args.input is not None else [5]
    n = args.iterations

    print(f"Benchmark: {name}, inputs={inputs}, {n:,} iterations")
    print()

    print("load ...", end=" ", flush=True)
    t_load = time_load(text, n)
    print(f"{t_load:.3f}s  ({t_load / n * 1e6:,.1f} us/iter)")

    program = load_program(text)
    print("execute ...", end=" ", flush=True)
    try:
        t_exec, ticks = time_execute(program, inputs, n)
    except RuntimeError as e:
        print(f"\nError: {e}", file=sys.stderr)
        return 1
    print(f"{t_exec:.3f}s  ({t_exec / n * 1e6:,.1f} us/iter, "
          f"{ticks / t_exec:,.0f} ticks/s)")
    return 0


if __name__ == "__main__":
    sys.exit(main())
