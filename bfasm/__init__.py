from .assembly import TAPE_SIZE, render_unit
from .emulator import (
    ExecutionState,
    InstructionEmulator,
    StepLimitExceeded,
    TapeBoundsExceeded,
)
from .exceptions import (
    BfasmError,
    SourceUnreadable,
    ToolchainFailure,
    TranslationError,
    UnmatchedLoopClose,
    UnmatchedLoopOpen,
)
from .toolchain import Toolchain, build_executable
from .translator import BrainfuckTranslator

__all__ = [
    "BfasmError",
    "BrainfuckTranslator",
    "ExecutionState",
    "InstructionEmulator",
    "SourceUnreadable",
    "StepLimitExceeded",
    "TAPE_SIZE",
    "TapeBoundsExceeded",
    "Toolchain",
    "ToolchainFailure",
    "TranslationError",
    "UnmatchedLoopClose",
    "UnmatchedLoopOpen",
    "build_executable",
    "render_unit",
]
