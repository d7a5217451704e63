from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Dict, List, Union

from .assembly import (
    OVERFLOW_LABEL,
    POINTER_REGISTER as PTR,
    TAPE_SIZE,
    TAPE_SYMBOL,
    render_unit,
)
from .exceptions import UnmatchedLoopClose, UnmatchedLoopOpen

_CELL = f"BYTE PTR [{PTR}]"

# Commands whose emission does not depend on translation state.
_FIXED_FRAGMENTS: Dict[int, str] = {
    ord(">"): f"\tadd {PTR}, 1\n",
    ord("<"): f"\tsub {PTR}, 1\n",
    ord("+"): f"\tinc {_CELL}\n",
    ord("-"): f"\tdec {_CELL}\n",
    ord("."): f"\tmovzx edi, {_CELL}\n\tcall putchar\n",
    ord(","): f"\tcall getchar\n\tmov {_CELL}, al\n",
}

_TEST_CELL = f"\tmov al, {_CELL}\n\ttest al, al\n"


def loop_label(loop_id: int, kind: str) -> str:
    return f".Lloop_{loop_id}_{kind}"


@dataclass(frozen=True)
class LoopFrame:
    loop_id: int
    offset: int

    @property
    def begin(self) -> str:
        return loop_label(self.loop_id, "begin")

    @property
    def end(self) -> str:
        return loop_label(self.loop_id, "end")


@dataclass
class TranslationContext:
    """Mutable state owned by a single translation call."""

    next_id: int = 0
    loop_stack: List[LoopFrame] = field(default_factory=list)
    fragments: List[str] = field(default_factory=list)

    def open_loop(self, offset: int) -> LoopFrame:
        frame = LoopFrame(self.next_id, offset)
        self.next_id += 1
        self.loop_stack.append(frame)
        return frame

    def close_loop(self, offset: int) -> LoopFrame:
        if not self.loop_stack:
            raise UnmatchedLoopClose(offset)
        return self.loop_stack.pop()

    def finish(self) -> List[str]:
        if self.loop_stack:
            innermost = self.loop_stack[-1]
            raise UnmatchedLoopOpen(innermost.loop_id, innermost.offset)
        return self.fragments


class BrainfuckTranslator:
    """Single-pass Brainfuck to x86-64 (GNU as, Intel syntax) translator.

    The data pointer lives in ``r12`` and is never range checked unless
    ``bounds_check`` is enabled, in which case every move is followed by a
    comparison against the tape limits and a jump to the overflow handler
    emitted by :func:`bfasm.assembly.render_unit`.
    """

    def __init__(self, *, tape_size: int = TAPE_SIZE, bounds_check: bool = False) -> None:
        if tape_size <= 0:
            raise ValueError("tape_size must be positive")
        self.tape_size = tape_size
        self.bounds_check = bounds_check
        self._loop_handlers: Dict[int, Callable[[TranslationContext, int], str]] = {
            ord("["): self._emit_loop_open,
            ord("]"): self._emit_loop_close,
        }

    def translate(self, source: Union[bytes, str]) -> List[str]:
        if isinstance(source, str):
            source = source.encode("utf-8")
        context = TranslationContext()
        for offset, byte in enumerate(source):
            fragment = _FIXED_FRAGMENTS.get(byte)
            if fragment is not None:
                context.fragments.append(fragment + self._bounds_guard(byte))
                continue
            handler = self._loop_handlers.get(byte)
            if handler is not None:
                context.fragments.append(handler(context, offset))
        return context.finish()

    def compile(self, source: Union[bytes, str]) -> str:
        fragments = self.translate(source)
        return render_unit(
            fragments,
            tape_size=self.tape_size,
            bounds_check=self.bounds_check,
        )

    def _emit_loop_open(self, context: TranslationContext, offset: int) -> str:
        frame = context.open_loop(offset)
        return f"{frame.begin}:\n{_TEST_CELL}\tjz {frame.end}\n"

    def _emit_loop_close(self, context: TranslationContext, offset: int) -> str:
        frame = context.close_loop(offset)
        return f"{_TEST_CELL}\tjnz {frame.begin}\n{frame.end}:\n"

    def _bounds_guard(self, byte: int) -> str:
        if not self.bounds_check:
            return ""
        if byte == ord(">"):
            return (
                f"\tlea rax, [rip + {TAPE_SYMBOL} + {self.tape_size}]\n"
                f"\tcmp {PTR}, rax\n"
                f"\tjae {OVERFLOW_LABEL}\n"
            )
        if byte == ord("<"):
            return (
                f"\tlea rax, [rip + {TAPE_SYMBOL}]\n"
                f"\tcmp {PTR}, rax\n"
                f"\tjb {OVERFLOW_LABEL}\n"
            )
        return ""


__all__ = [
    "BrainfuckTranslator",
    "LoopFrame",
    "TranslationContext",
    "loop_label",
]
