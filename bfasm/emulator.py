from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

from .assembly import OVERFLOW_LABEL, TAPE_SIZE

EOF_VALUE = -1


class StepLimitExceeded(RuntimeError):
    """Raised when emulation exceeds the configured step budget."""


class TapeBoundsExceeded(RuntimeError):
    """Raised when the data pointer leaves the tape in an observable way."""


class UnknownInstruction(ValueError):
    """Raised for instruction text the translator never emits."""


@dataclass
class ExecutionState:
    step: int
    pc: int
    instruction: Optional[str]
    pointer: int
    tape_start: int
    tape: List[int]
    output: bytes
    program_length: int


_LEA_PATTERN = re.compile(r"^lea rax, \[rip \+ tape(?: \+ (\d+))?\]$")
_JUMP_OPCODES = ("jz", "jnz", "jb", "jae")

# Fixed instruction text -> operation name.
_SIMPLE_INSTRUCTIONS: Dict[str, str] = {
    "add r12, 1": "right",
    "sub r12, 1": "left",
    "inc BYTE PTR [r12]": "inc",
    "dec BYTE PTR [r12]": "dec",
    "movzx edi, BYTE PTR [r12]": "load_edi",
    "call putchar": "putchar",
    "call getchar": "getchar",
    "mov BYTE PTR [r12], al": "store_al",
    "mov al, BYTE PTR [r12]": "load_al",
    "test al, al": "test",
    "cmp r12, rax": "cmp",
}

Instruction = Tuple[str, object, str]


def load_program(fragments: Iterable[str]) -> Tuple[List[Instruction], Dict[str, int]]:
    """Flatten translator fragments into instructions and a label table.

    Labels resolve to the index of the instruction that follows them.
    """
    program: List[Instruction] = []
    labels: Dict[str, int] = {}
    for fragment in fragments:
        for raw in fragment.splitlines():
            text = raw.strip()
            if not text:
                continue
            if text.endswith(":"):
                labels[text[:-1]] = len(program)
                continue
            program.append(_decode(text))
    return program, labels


def _decode(text: str) -> Instruction:
    operation = _SIMPLE_INSTRUCTIONS.get(text)
    if operation is not None:
        return operation, None, text
    opcode, _, operand = text.partition(" ")
    if opcode in _JUMP_OPCODES and operand:
        return opcode, operand.strip(), text
    match = _LEA_PATTERN.match(text)
    if match:
        return "lea", int(match.group(1) or 0), text
    raise UnknownInstruction(f"Unsupported instruction: {text!r}")


@dataclass
class InstructionEmulator:
    """Executes the translator's instruction stream against an in-memory tape.

    Pointer arithmetic is unchecked like the native code; only dereferencing
    a cell outside the tape (or reaching the bounds-check handler) faults.
    Input follows ``getchar``: once exhausted it yields EOF, whose low byte
    (0xFF) is what ``,`` stores.
    """

    tape_length: int = TAPE_SIZE

    tape: bytearray = field(init=False, repr=False)
    pointer: int = field(init=False, repr=False)
    output_buffer: bytearray = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self.reset()

    def reset(self) -> None:
        self.tape = bytearray(self.tape_length)
        self.pointer = 0
        self.output_buffer = bytearray()
        self._al = 0
        self._edi = 0
        self._rax = 0
        self._zero = False
        self._below = False

    def run(
        self,
        fragments: Iterable[str],
        input_data: Optional[Iterable[int]] = None,
        max_steps: Optional[int] = None,
    ) -> bytes:
        for _ in self.step(fragments, input_data=input_data, max_steps=max_steps):
            pass
        return bytes(self.output_buffer)

    def step(
        self,
        fragments: Iterable[str],
        input_data: Optional[Iterable[int]] = None,
        max_steps: Optional[int] = None,
        tape_window: int = 10,
    ) -> Iterator[ExecutionState]:
        self.reset()
        program, labels = load_program(fragments)
        input_iter = iter(list(input_data or []))
        pc = 0
        steps = 0
        program_length = len(program)

        while pc < program_length:
            if max_steps is not None and steps >= max_steps:
                raise StepLimitExceeded("Program exceeded allowed step count")

            instruction = program[pc]
            pc = self._execute_instruction(instruction, pc, labels, input_iter)
            steps += 1
            yield self._snapshot(pc, instruction[2], steps, program_length, tape_window)

        yield self._snapshot(pc, None, steps, program_length, tape_window)

    def _execute_instruction(
        self,
        instruction: Instruction,
        pc: int,
        labels: Dict[str, int],
        input_iter: Iterator[int],
    ) -> int:
        operation, operand, _ = instruction
        new_pc = pc + 1
        if operation == "right":
            self.pointer += 1
        elif operation == "left":
            self.pointer -= 1
        elif operation == "inc":
            self._write_cell((self._read_cell() + 1) % 256)
        elif operation == "dec":
            self._write_cell((self._read_cell() - 1) % 256)
        elif operation == "load_edi":
            self._edi = self._read_cell()
        elif operation == "putchar":
            self.output_buffer.append(self._edi & 0xFF)
        elif operation == "getchar":
            self._al = next(input_iter, EOF_VALUE) & 0xFF
        elif operation == "store_al":
            self._write_cell(self._al)
        elif operation == "load_al":
            self._al = self._read_cell()
        elif operation == "test":
            self._zero = self._al == 0
        elif operation == "lea":
            self._rax = operand
        elif operation == "cmp":
            self._below = self.pointer < self._rax
        elif self._jump_taken(operation):
            new_pc = self._resolve(operand, labels)
        return new_pc

    def _jump_taken(self, opcode: str) -> bool:
        if opcode == "jz":
            return self._zero
        if opcode == "jnz":
            return not self._zero
        if opcode == "jb":
            return self._below
        return not self._below

    def _resolve(self, label: str, labels: Dict[str, int]) -> int:
        if label == OVERFLOW_LABEL:
            raise TapeBoundsExceeded(
                f"Data pointer moved outside the tape (position {self.pointer})"
            )
        try:
            return labels[label]
        except KeyError as exc:
            raise UnknownInstruction(f"Jump to undefined label {label!r}") from exc

    def _check_pointer(self) -> None:
        if not 0 <= self.pointer < self.tape_length:
            raise TapeBoundsExceeded(
                f"Cell access outside the tape (position {self.pointer})"
            )

    def _read_cell(self) -> int:
        self._check_pointer()
        return self.tape[self.pointer]

    def _write_cell(self, value: int) -> None:
        self._check_pointer()
        self.tape[self.pointer] = value

    def _snapshot(
        self,
        pc: int,
        instruction: Optional[str],
        step: int,
        program_length: int,
        tape_window: int,
    ) -> ExecutionState:
        start = max(0, self.pointer - tape_window)
        end = max(start, min(self.tape_length, self.pointer + tape_window + 1))
        return ExecutionState(
            step=step,
            pc=pc,
            instruction=instruction,
            pointer=self.pointer,
            tape_start=start,
            tape=list(self.tape[start:end]),
            output=bytes(self.output_buffer),
            program_length=program_length,
        )


__all__ = [
    "ExecutionState",
    "InstructionEmulator",
    "StepLimitExceeded",
    "TapeBoundsExceeded",
    "UnknownInstruction",
    "load_program",
]
