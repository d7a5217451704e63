from __future__ import annotations

from typing import Iterable, List

TAPE_SIZE = 30000
TAPE_SYMBOL = "tape"
POINTER_REGISTER = "r12"
OVERFLOW_LABEL = ".Lbf_tape_overflow"
OVERFLOW_MESSAGE_LABEL = ".Lbf_tape_overflow_message"
OVERFLOW_MESSAGE = "bf: data pointer moved outside the tape\\n"
OVERFLOW_EXIT_STATUS = 2

_HEADER = (
    "\t.intel_syntax noprefix\n"
    "\t.section .text\n"
    "\t.global main\n"
    "\t.type main, @function\n"
    "main:\n"
)

_PROLOGUE = (
    "\tpush rbp\n"
    "\tmov rbp, rsp\n"
    f"\tlea {POINTER_REGISTER}, [rip + {TAPE_SYMBOL}]\n"
)

_EPILOGUE = (
    "\tmov eax, 0\n"
    "\tpop rbp\n"
    "\tret\n"
)

# Reached by a jump from inside main, so rsp is still 16-byte aligned for calls.
_OVERFLOW_HANDLER = (
    f"{OVERFLOW_LABEL}:\n"
    f"\tlea rdi, [rip + {OVERFLOW_MESSAGE_LABEL}]\n"
    "\tmov rsi, QWORD PTR [rip + stderr]\n"
    "\tcall fputs\n"
    f"\tmov edi, {OVERFLOW_EXIT_STATUS}\n"
    "\tcall exit\n"
    "\t.section .rodata\n"
    f"{OVERFLOW_MESSAGE_LABEL}:\n"
    f'\t.string "{OVERFLOW_MESSAGE}"\n'
)


# Non-executable stack.
_STACK_NOTE = '\t.section .note.GNU-stack,"",@progbits\n'


def tape_declaration(tape_size: int = TAPE_SIZE) -> str:
    return (
        "\t.section .bss\n"
        "\t.align 8\n"
        f"{TAPE_SYMBOL}:\n"
        f"\t.zero {tape_size}\n"
    )


def render_unit(
    fragments: Iterable[str],
    *,
    tape_size: int = TAPE_SIZE,
    bounds_check: bool = False,
) -> str:
    """Wrap translated fragments into a complete assembly unit.

    The unit defines ``main`` for the C runtime: the prologue points the data
    pointer register at the tape, the epilogue returns status 0, and the tape
    itself is reserved in ``.bss`` so it costs nothing to initialize.
    ``putchar``/``getchar`` (and ``fputs``/``exit``/``stderr`` for the
    overflow handler) are left for the linker to resolve against libc.
    """
    if tape_size <= 0:
        raise ValueError("tape_size must be positive")
    parts: List[str] = [_HEADER, _PROLOGUE]
    parts.extend(fragments)
    parts.append(_EPILOGUE)
    if bounds_check:
        parts.append(_OVERFLOW_HANDLER)
    parts.append(tape_declaration(tape_size))
    parts.append(_STACK_NOTE)
    return "".join(parts)


__all__ = [
    "OVERFLOW_LABEL",
    "POINTER_REGISTER",
    "TAPE_SIZE",
    "TAPE_SYMBOL",
    "render_unit",
    "tape_declaration",
]
