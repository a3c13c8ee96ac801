"""
Intcode Virtual Machine
=======================
A tick-step interpreter for Intcode programs: flat memory of signed
integers, decimal-encoded instruction words, position/immediate operand
addressing, and a consumable input / append-only output channel.

Every instruction is decoded from the integer at the instruction pointer at
the moment it is reached, so programs may rewrite their own code.  The
fetch/decode/execute loop works like this:

    word at ip  ->  split_word()  ->  decode()  ->  execute_instruction()
                ->  step result (Advance / Jump / HALT)  ->  next ip

Usage:
  from intcode import load_program, execute
  mem = load_program("1,0,0,0,99")
  state = execute(mem)
"""

from __future__ import annotations
import re
from typing import Iterable, Optional

# ---------------------------------------------------------------------------
#  Constants
# ---------------------------------------------------------------------------

# Opcodes (low two decimal digits of an instruction word)
OP_ADD    = 1
OP_MUL    = 2
OP_INPUT  = 3
OP_OUTPUT = 4
OP_JT     = 5   # jump-if-true
OP_JF     = 6   # jump-if-false
OP_LT     = 7   # less-than
OP_EQ     = 8   # equals
OP_HALT   = 99

# Parameter modes (one decimal digit per operand, hundreds place upward)
MODE_POSITION  = 0
MODE_IMMEDIATE = 1

# opcode -> (mnemonic, operand count, last operand is a destination)
OPCODES = {
    OP_ADD:    ("ADD", 3, True),
    OP_MUL:    ("MUL", 3, True),
    OP_INPUT:  ("IN",  1, True),
    OP_OUTPUT: ("OUT", 1, False),
    OP_JT:     ("JT",  2, False),
    OP_JF:     ("JF",  2, False),
    OP_LT:     ("LT",  3, True),
    OP_EQ:     ("EQ",  3, True),
    OP_HALT:   ("HALT", 0, False),
}

MAX_PARAMS = 3

_TOKEN_RE = re.compile(r"-?[0-9]+")

# ---------------------------------------------------------------------------
#  Errors
# ---------------------------------------------------------------------------

class IntcodeError(Exception):
    """Base for all loader and machine errors."""
    pass

class ParseError(IntcodeError):
    def __init__(self, token: str):
        self.token = token
        super().__init__(f"Failed to parse: {token!r}")

class MachineFault(IntcodeError):
    """Runtime error raised while executing; always terminal for the run."""

    def __init__(self, ip: int, message: str):
        self.ip = ip
        super().__init__(f"{message} (ip={ip})")

class UnknownOpcode(MachineFault):
    def __init__(self, code: int, ip: int):
        self.code = code
        super().__init__(ip, f"Unknown opcode in word {code}")

class OutOfBoundsAddress(MachineFault):
    def __init__(self, address: int, ip: int):
        self.address = address
        super().__init__(ip, f"Address {address} out of bounds")

class InvalidWriteTarget(MachineFault):
    def __init__(self, ip: int):
        super().__init__(ip, "Immediate-mode write destination")

class InputExhausted(MachineFault):
    def __init__(self, ip: int):
        super().__init__(ip, "Input sequence exhausted")

class MachineStopped(IntcodeError):
    """Raised when stepping a machine that already halted or faulted."""
    pass

# ---------------------------------------------------------------------------
#  Memory
# ---------------------------------------------------------------------------

class Memory:
    """Flat, zero-indexed buffer of signed integers.

    Indexing is bounds-checked: negative or past-the-end indices raise
    IndexError instead of wrapping the way Python lists do.  The machine
    turns those into OutOfBoundsAddress faults with the current ip.
    """

    __slots__ = ("cells",)

    def __init__(self, cells: Iterable[int] = ()):
        self.cells: list[int] = list(cells)

    def __len__(self) -> int:
        return len(self.cells)

    def __iter__(self):
        return iter(self.cells)

    def __contains__(self, addr) -> bool:
        return isinstance(addr, int) and 0 <= addr < len(self.cells)

    def __getitem__(self, addr: int) -> int:
        if addr not in self:
            raise IndexError(f"address {addr} out of range")
        return self.cells[addr]

    def __setitem__(self, addr: int, value: int):
        if addr not in self:
            raise IndexError(f"address {addr} out of range")
        self.cells[addr] = value

    def __eq__(self, other) -> bool:
        if isinstance(other, Memory):
            return self.cells == other.cells
        if isinstance(other, (list, tuple)):
            return self.cells == list(other)
        return NotImplemented

    def __repr__(self) -> str:
        return f"Memory({self.cells!r})"

    def clone(self) -> Memory:
        """Independent copy; use one per run when exploring variants."""
        return Memory(self.cells)

    def grow(self, size: int):
        """Zero-extend to at least *size* cells.  Never shrinks."""
        if size > len(self.cells):
            self.cells.extend([0] * (size - len(self.cells)))

    def to_list(self) -> list[int]:
        return list(self.cells)

    def dump(self, start: int = 0, count: Optional[int] = None,
             per_row: int = 8) -> str:
        """Format cells as rows of `addr: v v v ...`."""
        end = len(self.cells) if count is None else min(len(self.cells), start + count)
        start = max(start, 0)
        lines = []
        for row in range(start, end, per_row):
            vals = " ".join(f"{v:>6d}" for v in self.cells[row:min(row + per_row, end)])
            lines.append(f"  {row:>6d}: {vals}")
        return "\n".join(lines)

# ---------------------------------------------------------------------------
#  Loader
# ---------------------------------------------------------------------------

def load_program(text: str) -> Memory:
    """Parse comma-separated decimal integers into a fresh Memory."""
    text = text.strip()
    if not text:
        return Memory()
    cells = []
    for tok in text.split(","):
        t = tok.strip()
        if not _TOKEN_RE.fullmatch(t):
            raise ParseError(t)
        cells.append(int(t))
    return Memory(cells)

def load_file(path: str) -> Memory:
    with open(path, "r") as f:
        return load_program(f.read())

# ---------------------------------------------------------------------------
#  Parameters and instructions
# ---------------------------------------------------------------------------

class Position:
    """Operand read from memory at `address`."""
    __slots__ = ("address",)
    mode = MODE_POSITION

    def __init__(self, address: int):
        self.address = address

    def __eq__(self, other) -> bool:
        return isinstance(other, Position) and other.address == self.address

    def __repr__(self) -> str:
        return f"Position({self.address})"

class Immediate:
    """Operand whose value is the cell itself."""
    __slots__ = ("value",)
    mode = MODE_IMMEDIATE

    def __init__(self, value: int):
        self.value = value

    def __eq__(self, other) -> bool:
        return isinstance(other, Immediate) and other.value == self.value

    def __repr__(self) -> str:
        return f"Immediate({self.value})"

def make_param(mode: int, raw: int):
    if mode == MODE_IMMEDIATE:
        return Immediate(raw)
    return Position(raw)


class Instruction:
    """A decoded instruction.

    `params` holds the source operands.  Writing opcodes keep their
    destination in `dest` as a plain address, never as a parameter.
    """

    __slots__ = ("op", "params", "dest", "word")

    def __init__(self, op: int, params: tuple = (), dest: Optional[int] = None,
                 word: Optional[int] = None):
        self.op = op
        self.params = params
        self.dest = dest
        self.word = op if word is None else word

    @property
    def name(self) -> str:
        return OPCODES[self.op][0]

    @property
    def width(self) -> int:
        return 1 + OPCODES[self.op][1]

    def __eq__(self, other) -> bool:
        if not isinstance(other, Instruction):
            return NotImplemented
        return (self.op, self.params, self.dest) == (other.op, other.params, other.dest)

    def __repr__(self) -> str:
        return f"Instruction({self.name}, params={self.params!r}, dest={self.dest!r})"

    def __str__(self) -> str:
        ops = []
        for p in self.params:
            ops.append(f"#{p.value}" if isinstance(p, Immediate) else f"[{p.address}]")
        if self.dest is not None:
            ops.append(f"[{self.dest}]")
        return f"{self.name} {', '.join(ops)}".rstrip()

# ---------------------------------------------------------------------------
#  Decoder
# ---------------------------------------------------------------------------

def split_word(value: int) -> tuple[int, tuple[int, ...]]:
    """Split an instruction word into (opcode, modes for params 1..3).

    Mode digits are not validated here beyond being extracted; decode()
    checks them against the opcode's arity.
    """
    opcode = value % 100
    rest = value // 100
    modes = []
    for _ in range(MAX_PARAMS):
        modes.append(rest % 10)
        rest //= 10
    if rest:
        modes.append(rest)  # overflow digits, always rejected by decode()
    return opcode, tuple(modes)

def decode(mem: Memory, ip: int) -> Instruction:
    """Decode the instruction at *ip*, reading its operand cells."""
    if ip not in mem:
        raise OutOfBoundsAddress(ip, ip)
    word = mem[ip]
    if word < 0:
        raise UnknownOpcode(word, ip)
    opcode, modes = split_word(word)
    if opcode not in OPCODES:
        raise UnknownOpcode(word, ip)
    _, arity, writes = OPCODES[opcode]

    if any(m not in (MODE_POSITION, MODE_IMMEDIATE) for m in modes[:arity]):
        raise UnknownOpcode(word, ip)
    if any(modes[arity:]):
        raise UnknownOpcode(word, ip)

    raw = []
    for i in range(arity):
        addr = ip + 1 + i
        if addr not in mem:
            raise OutOfBoundsAddress(addr, ip)
        raw.append(mem[addr])

    dest = None
    n_src = arity
    if writes:
        n_src -= 1
        if modes[n_src] == MODE_IMMEDIATE:
            raise InvalidWriteTarget(ip)
        dest = raw[n_src]
    params = tuple(make_param(modes[i], raw[i]) for i in range(n_src))
    return Instruction(opcode, params, dest, word)

# ---------------------------------------------------------------------------
#  Step results and machine state
# ---------------------------------------------------------------------------

class Advance:
    """Continue at ip + count."""
    __slots__ = ("count",)

    def __init__(self, count: int):
        self.count = count

    def __eq__(self, other) -> bool:
        return isinstance(other, Advance) and other.count == self.count

    def __repr__(self) -> str:
        return f"Advance({self.count})"

class Jump:
    """Continue at an absolute address."""
    __slots__ = ("target",)

    def __init__(self, target: int):
        self.target = target

    def __eq__(self, other) -> bool:
        return isinstance(other, Jump) and other.target == self.target

    def __repr__(self) -> str:
        return f"Jump({self.target})"

class _Halt:
    def __repr__(self) -> str:
        return "HALT"

HALT = _Halt()


class State:
    terminal = False
    name = ""

    def __repr__(self) -> str:
        return self.name

class _Running(State):
    name = "RUNNING"

class _Halted(State):
    name = "HALTED"
    terminal = True

RUNNING = _Running()
HALTED = _Halted()

class Faulted(State):
    """Terminal state carrying the fault and a snapshot for debugging."""
    name = "FAULTED"
    terminal = True

    def __init__(self, error: MachineFault, ip: int, opcode: Optional[int],
                 tick: int, memory: list[int]):
        self.error = error
        self.ip = ip
        self.opcode = opcode
        self.tick = tick
        self.memory = memory

    @property
    def reason(self) -> str:
        return str(self.error)

    def __repr__(self) -> str:
        op = OPCODES[self.opcode][0] if self.opcode in OPCODES else "?"
        return (f"Faulted({type(self.error).__name__}: {self.error}, "
                f"op={op}, tick={self.tick})")

# ---------------------------------------------------------------------------
#  Machine
# ---------------------------------------------------------------------------

class Machine:
    """Intcode machine bound to one Memory for the duration of a run."""

    def __init__(self, memory: Memory, inputs: Iterable[int] = (),
                 output=None):
        self.mem = memory
        self.ip: int = 0
        self.tick: int = 0
        self.state: State = RUNNING
        self.inputs = iter(inputs)
        self.output = [] if output is None else output

        # Callbacks
        self.on_trace: Optional[callable] = None  # called with (machine, insn)
        self.on_halt: Optional[callable] = None

    @property
    def halted(self) -> bool:
        return self.state is HALTED

    # -- Operand access --

    def value_of(self, param) -> int:
        if isinstance(param, Immediate):
            return param.value
        if param.address not in self.mem:
            raise OutOfBoundsAddress(param.address, self.ip)
        return self.mem[param.address]

    def _write(self, addr: int, value: int):
        if addr not in self.mem:
            raise OutOfBoundsAddress(addr, self.ip)
        self.mem[addr] = value

    def _opcode_at(self, addr: int) -> Optional[int]:
        """Opcode of the word at *addr*, or None if it names no opcode."""
        if addr not in self.mem or self.mem[addr] < 0:
            return None
        op = split_word(self.mem[addr])[0]
        return op if op in OPCODES else None

    def _read_input(self) -> int:
        try:
            return next(self.inputs)
        except StopIteration:
            raise InputExhausted(self.ip) from None

    # =====================================================================
    #  Execute one decoded instruction, returning where to go next
    # =====================================================================

    def execute_instruction(self, insn: Instruction):
        op = insn.op
        if op == OP_ADD:
            a, b = insn.params
            self._write(insn.dest, self.value_of(a) + self.value_of(b))
        elif op == OP_MUL:
            a, b = insn.params
            self._write(insn.dest, self.value_of(a) * self.value_of(b))
        elif op == OP_INPUT:
            self._write(insn.dest, self._read_input())
        elif op == OP_OUTPUT:
            self.output.append(self.value_of(insn.params[0]))
        elif op == OP_JT or op == OP_JF:
            cond, target = insn.params
            taken = self.value_of(cond) != 0
            if op == OP_JF:
                taken = not taken
            if taken:
                return Jump(self.value_of(target))
        elif op == OP_LT:
            a, b = insn.params
            self._write(insn.dest, 1 if self.value_of(a) < self.value_of(b) else 0)
        elif op == OP_EQ:
            a, b = insn.params
            self._write(insn.dest, 1 if self.value_of(a) == self.value_of(b) else 0)
        elif op == OP_HALT:
            return HALT
        else:
            raise UnknownOpcode(insn.word, self.ip)
        return Advance(insn.width)

    # =====================================================================
    #  STEP — fetch, decode, execute, move ip
    # =====================================================================

    def step(self) -> Instruction:
        """Execute one instruction and return it.

        Raises MachineFault after moving the machine to Faulted, and
        MachineStopped if the machine is already in a terminal state.
        """
        if self.state.terminal:
            raise MachineStopped(f"Machine is {self.state.name.lower()}")

        insn = None
        try:
            insn = decode(self.mem, self.ip)
            if self.on_trace:
                self.on_trace(self, insn)
            result = self.execute_instruction(insn)
            if isinstance(result, Jump):
                if result.target not in self.mem:
                    raise OutOfBoundsAddress(result.target, self.ip)
                next_ip = result.target
            elif isinstance(result, Advance):
                next_ip = self.ip + result.count
            else:
                next_ip = self.ip
        except MachineFault as e:
            op = insn.op if insn else self._opcode_at(self.ip)
            self.state = Faulted(e, self.ip, op,
                                 self.tick, self.mem.to_list())
            raise

        self.ip = next_ip
        self.tick += 1
        if result is HALT:
            self.state = HALTED
            if self.on_halt:
                self.on_halt()
        return insn

    # -- Run loop --

    def run(self, max_steps: Optional[int] = None) -> State:
        """Run until Halted or Faulted, or until *max_steps* ticks pass.

        Faults are not raised; they are returned as the Faulted state.
        """
        steps = 0
        while not self.state.terminal:
            if max_steps is not None and steps >= max_steps:
                break
            try:
                self.step()
            except MachineFault:
                break
            steps += 1
        return self.state

    # -- Debug / introspection --

    def dump_state(self, memory: bool = True) -> str:
        lines = [f"  state = {self.state!r}",
                 f"  ip    = {self.ip}",
                 f"  tick  = {self.tick}",
                 f"  out   = {list(self.output)!r}"]
        if memory:
            lines.append(self.mem.dump())
        return "\n".join(lines)


def execute(memory: Memory, inputs: Iterable[int] = (), output=None,
            on_trace: Optional[callable] = None) -> State:
    """Run *memory* in place to a terminal state and return it."""
    m = Machine(memory, inputs, output)
    m.on_trace = on_trace
    return m.run()
