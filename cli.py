#!/usr/bin/env python3
"""
Intcode Runner / Monitor
========================
Command-line front end for the Intcode machine.

Provides:
  - Program loading from a comma-separated text file
  - Input values, memory patches and explicit memory growth
  - Run with an optional step budget and per-tick trace
  - Interactive debug monitor: step / run / breakpoints / dump / poke /
    disassembly

Usage:
  python cli.py PROGRAM [-i N ...] [--set ADDR=VALUE ...] [--memory-size N]
                [--max-steps N] [--trace] [--dump] [--monitor]
"""

from __future__ import annotations
import argparse
import cmd
import shlex
import sys
from collections import deque
from typing import Optional

from intcode import (Machine, Memory, IntcodeError, MachineFault,
                     MachineStopped, decode, load_file,
                     HALTED)

# ---------------------------------------------------------------------------
#  Disassembler
# ---------------------------------------------------------------------------

def disasm_one(mem: Memory, addr: int) -> tuple[str, int]:
    """Disassemble one instruction at `addr`. Returns (text, cell_count).

    Cells that do not decode are shown as `.data <value>` with width 1.
    """
    if addr not in mem:
        return "<out of bounds>", 1
    try:
        insn = decode(mem, addr)
    except MachineFault:
        return f".data {mem[addr]}", 1
    return str(insn), insn.width


def disasm_range(mem: Memory, addr: int, count: int,
                 ip: Optional[int] = None) -> list[str]:
    lines = []
    for _ in range(count):
        if addr not in mem:
            break
        text, width = disasm_one(mem, addr)
        raw = ",".join(str(mem[a]) for a in range(addr, addr + width) if a in mem)
        marker = ">>>" if addr == ip else "   "
        lines.append(f"  {marker} {addr:>6d}: {raw:<24s} {text}")
        addr += width
    return lines


class EchoOutput(list):
    """Output sink that prints each value as the machine produces it."""

    def append(self, value: int):
        super().append(value)
        print(value, flush=True)


def trace_tick(machine: Machine, insn):
    """on_trace hook: print ip, instruction and full memory every tick."""
    print(f"[tick {machine.tick}] ip={machine.ip:<6d} {insn}")
    print(machine.mem.dump())

# ---------------------------------------------------------------------------
#  Monitor
# ---------------------------------------------------------------------------

class IntcodeCLI(cmd.Cmd):
    """Interactive monitor for one Intcode run."""

    intro = (
        "\n"
        "Intcode Monitor\n"
        "  Type 'help' for commands.  'quit' to exit.\n"
    )
    prompt = "IC> "

    def __init__(self, memory: Memory, inputs=(), trace: bool = False):
        super().__init__()
        self.program = memory.clone()
        self.inputs = tuple(inputs)
        self.pending: deque[int] = deque(self.inputs)
        self.breakpoints: set[int] = set()
        self.trace = trace
        self._new_machine(memory)

    def _new_machine(self, memory: Memory):
        self.machine = Machine(memory, self._feed(), EchoOutput())
        if self.trace:
            self.machine.on_trace = trace_tick

    def _feed(self):
        while self.pending:
            yield self.pending.popleft()

    def _parse_int(self, s: str) -> int:
        return int(s.strip(), 0)

    def _report(self, e: IntcodeError):
        print(f"Fault: {type(e).__name__}: {e}")

    def onecmd(self, line):
        try:
            return super().onecmd(line)
        except ValueError as e:
            print(f"Error: {e}")

    # ================================================================
    #  Commands
    # ================================================================

    # -- Execution --

    def do_step(self, arg):
        """Step N instructions: step [count]"""
        count = self._parse_int(arg) if arg.strip() else 1
        for _ in range(count):
            ip = self.machine.ip
            try:
                insn = self.machine.step()
            except MachineStopped:
                print(f"Machine is {self.machine.state.name.lower()}.")
                break
            except MachineFault as e:
                self._report(e)
                break
            print(f"  {ip:>6d}: {insn}")
            if self.machine.halted:
                print("Machine halted.")
                break

    def do_run(self, arg):
        """Run until halt/fault/breakpoint: run [max_steps]"""
        max_steps = self._parse_int(arg) if arg.strip() else 10_000_000
        m = self.machine
        total = 0
        while total < max_steps:
            if m.state.terminal:
                break
            if total and m.ip in self.breakpoints:
                print(f"\nBreakpoint hit at {m.ip}")
                return
            try:
                m.step()
            except MachineFault as e:
                self._report(e)
                return
            total += 1
        else:
            print(f"\nStopped after {total} steps.")
            return
        print(f"\nMachine {m.state.name.lower()} after {m.tick} ticks.")

    def do_continue(self, arg):
        """Alias for 'run'."""
        self.do_run(arg)
    do_c = do_continue

    def do_reset(self, arg):
        """Reload the original program and inputs, clear outputs."""
        self.pending = deque(self.inputs)
        self._new_machine(self.program.clone())
        print("Machine reset.")

    def do_input(self, arg):
        """Queue input values: input <n> [n ...]"""
        parts = shlex.split(arg.replace(",", " "))
        if not parts:
            print(f"Pending input: {list(self.pending)}")
            return
        for tok in parts:
            self.pending.append(self._parse_int(tok))
        print(f"Pending input: {list(self.pending)}")

    # -- Breakpoints --

    def do_bp(self, arg):
        """Set breakpoint: bp <address>"""
        if not arg.strip():
            if self.breakpoints:
                print("Breakpoints:")
                for a in sorted(self.breakpoints):
                    print(f"  {a}")
            else:
                print("No breakpoints set.")
            return
        addr = self._parse_int(arg)
        self.breakpoints.add(addr)
        print(f"Breakpoint set at {addr}")

    def do_bpd(self, arg):
        """Delete breakpoint: bpd <address|all>"""
        if arg.strip().lower() == "all":
            self.breakpoints.clear()
            print("All breakpoints cleared.")
            return
        addr = self._parse_int(arg)
        self.breakpoints.discard(addr)
        print(f"Breakpoint at {addr} removed.")

    # -- Inspection --

    def do_state(self, arg):
        """Show machine state (ip, tick, output)."""
        print(self.machine.dump_state(memory=False))

    def do_dump(self, arg):
        """Dump memory: dump [address] [count]"""
        parts = shlex.split(arg)
        addr = self._parse_int(parts[0]) if parts else 0
        count = self._parse_int(parts[1]) if len(parts) > 1 else None
        print(self.machine.mem.dump(addr, count))

    def do_poke(self, arg):
        """Set memory cells: poke <address> <value> [value ...]"""
        parts = shlex.split(arg)
        if len(parts) < 2:
            print("Usage: poke <address> <value...>")
            return
        addr = self._parse_int(parts[0])
        try:
            for i, tok in enumerate(parts[1:]):
                self.machine.mem[addr + i] = self._parse_int(tok)
        except IndexError as e:
            print(f"Error: {e}")
            return
        print(f"  Wrote {len(parts) - 1} cells at {addr}")

    def do_disasm(self, arg):
        """Disassemble: disasm [address] [count]
        Defaults to current ip, 16 instructions."""
        parts = shlex.split(arg)
        addr = self._parse_int(parts[0]) if parts else self.machine.ip
        count = self._parse_int(parts[1]) if len(parts) > 1 else 16
        for line in disasm_range(self.machine.mem, addr, count, self.machine.ip):
            print(line)

    # -- Exit --

    def do_quit(self, arg):
        """Exit the monitor."""
        return True
    do_q = do_quit
    do_exit = do_quit

    def do_EOF(self, arg):
        print()
        return True

    def emptyline(self):
        pass

# ---------------------------------------------------------------------------
#  Entry point
# ---------------------------------------------------------------------------

def _parse_patch(spec: str) -> tuple[int, int]:
    addr_s, sep, val_s = spec.partition("=")
    if not sep:
        raise argparse.ArgumentTypeError(f"expected ADDR=VALUE, got {spec!r}")
    try:
        return int(addr_s, 0), int(val_s, 0)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected ADDR=VALUE, got {spec!r}") from None


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Intcode runner and debug monitor",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="Examples:\n"
               "  python cli.py prog.txt -i 1\n"
               "  python cli.py prog.txt --set 1=12 --set 2=2 --dump\n"
               "  python cli.py prog.txt -i 5 --monitor\n"
    )
    parser.add_argument("program", help="Program file (comma-separated integers)")
    parser.add_argument("-i", "--input", type=int, action="append", default=[],
                        metavar="N", help="Input value (can repeat, consumed in order)")
    parser.add_argument("--set", type=_parse_patch, action="append", default=[],
                        metavar="ADDR=VALUE",
                        help="Patch a memory cell before running (can repeat)")
    parser.add_argument("--memory-size", type=int, default=None, metavar="N",
                        help="Zero-extend memory to N cells before running")
    parser.add_argument("--max-steps", type=int, default=None, metavar="N",
                        help="Stop after N ticks if the program has not halted")
    parser.add_argument("--trace", action="store_true",
                        help="Print ip, instruction and memory every tick")
    parser.add_argument("--dump", action="store_true",
                        help="Print machine state and memory after the run")
    parser.add_argument("--monitor", action="store_true",
                        help="Enter the interactive debug monitor instead of running")
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        mem = load_file(args.program)
    except OSError as e:
        print(f"Error reading '{args.program}': {e}", file=sys.stderr)
        return 1
    except IntcodeError as e:
        print(f"Load error: {e}", file=sys.stderr)
        return 1

    if args.memory_size is not None:
        mem.grow(args.memory_size)
    for addr, val in args.set:
        try:
            mem[addr] = val
        except IndexError:
            print(f"Error: --set address {addr} out of range "
                  f"(memory has {len(mem)} cells)", file=sys.stderr)
            return 1

    if args.monitor:
        cli = IntcodeCLI(mem, args.input, trace=args.trace)
        try:
            cli.cmdloop()
        except KeyboardInterrupt:
            print("\nInterrupted. Goodbye.")
        return 0

    machine = Machine(mem, args.input, EchoOutput())
    if args.trace:
        machine.on_trace = trace_tick
    state = machine.run(max_steps=args.max_steps)

    if args.dump:
        print(machine.dump_state())

    if state is HALTED:
        return 0
    if state.terminal:
        print(f"Fault at ip={state.ip} after {state.tick} ticks: "
              f"{type(state.error).__name__}: {state.error}", file=sys.stderr)
        text, _ = disasm_one(Memory(state.memory), state.ip)
        print(f"  {state.ip:>6d}: {text}", file=sys.stderr)
        return 1
    print(f"Stopped after {machine.tick} steps without halting.", file=sys.stderr)
    return 2


if __name__ == "__main__":
    sys.exit(main())
