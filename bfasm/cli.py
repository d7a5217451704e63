from __future__ import annotations

import argparse
import sys
from typing import Optional

from .assembly import TAPE_SIZE
from .exceptions import BfasmError
from .toolchain import DEFAULT_OUTPUT, Toolchain, build_executable, run_executable
from .translator import BrainfuckTranslator


def _positive_int(value: str) -> int:
    number = int(value)
    if number <= 0:
        raise argparse.ArgumentTypeError("must be a positive integer")
    return number


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="bfasm",
        description="Compile Brainfuck into a native x86-64 executable",
    )
    parser.add_argument("source", help="Path to Brainfuck source file")
    parser.add_argument(
        "output",
        nargs="?",
        default=DEFAULT_OUTPUT,
        help=f"Path of the produced executable (default: {DEFAULT_OUTPUT})",
    )
    parser.add_argument(
        "-S",
        "--assembly-only",
        action="store_true",
        help="Stop after writing <output>.s, do not assemble or link",
    )
    parser.add_argument(
        "--cc",
        default="gcc",
        help="C compiler driver used to assemble and link (default: gcc)",
    )
    parser.add_argument(
        "--tape-size",
        type=_positive_int,
        default=TAPE_SIZE,
        help=f"Size of the tape in bytes (default: {TAPE_SIZE})",
    )
    parser.add_argument(
        "--bounds-check",
        action="store_true",
        help="Abort at runtime when the data pointer leaves the tape",
    )
    parser.add_argument(
        "--run",
        action="store_true",
        help="Execute the program after building it (not allowed with -S)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Print toolchain commands as they run",
    )
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    if args.run and args.assembly_only:
        parser.error("--run cannot be combined with -S/--assembly-only")

    translator = BrainfuckTranslator(
        tape_size=args.tape_size,
        bounds_check=args.bounds_check,
    )
    toolchain = Toolchain(compiler=args.cc, verbose=args.verbose)
    try:
        produced = build_executable(
            args.source,
            args.output,
            translator=translator,
            toolchain=toolchain,
            assembly_only=args.assembly_only,
        )
    except BfasmError as exc:
        print(f"{exc.category}: {exc}", file=sys.stderr)
        return 1

    if args.assembly_only:
        print(f"Wrote assembly: {produced}")
        return 0

    print(f"Built executable: {produced}")
    if args.run:
        sys.stdout.flush()
        return run_executable(produced)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
