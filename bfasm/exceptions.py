from __future__ import annotations

from pathlib import Path
from typing import Optional, Sequence


class BfasmError(Exception):
    """Base class for every failure reported by the compiler."""

    category = "BfasmError"


class SourceUnreadable(BfasmError):
    category = "SourceUnreadable"

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        super().__init__(f"Cannot read source file {path}: {reason}")


class TranslationError(BfasmError):
    category = "TranslationError"


class UnmatchedLoopClose(TranslationError):
    category = "UnmatchedLoopClose"

    def __init__(self, offset: int) -> None:
        self.offset = offset
        super().__init__(f"Unmatched ']' at source offset {offset}")


class UnmatchedLoopOpen(TranslationError):
    category = "UnmatchedLoopOpen"

    def __init__(self, loop_id: int, offset: int) -> None:
        self.loop_id = loop_id
        self.offset = offset
        super().__init__(
            f"Unmatched '[' (loop {loop_id} opened at source offset {offset} is never closed)"
        )


class ToolchainFailure(BfasmError):
    category = "ToolchainFailure"

    def __init__(
        self,
        message: str,
        *,
        command: Sequence[str],
        assembly_path: Path,
        returncode: Optional[int] = None,
    ) -> None:
        self.command = list(command)
        self.assembly_path = assembly_path
        self.returncode = returncode
        super().__init__(f"{message} (assembly kept at {assembly_path})")


__all__ = [
    "BfasmError",
    "SourceUnreadable",
    "ToolchainFailure",
    "TranslationError",
    "UnmatchedLoopClose",
    "UnmatchedLoopOpen",
]
