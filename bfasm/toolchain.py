"""Build driver: source file in, assembly file and native executable out."""

from __future__ import annotations

import sys
from dataclasses import dataclass
from pathlib import Path
from shutil import which
from subprocess import CalledProcessError, run
from typing import List, Sequence, Tuple, Union

from .exceptions import SourceUnreadable, ToolchainFailure
from .translator import BrainfuckTranslator

DEFAULT_OUTPUT = "bf_program"
ASSEMBLY_SUFFIX = ".s"

PathLike = Union[str, Path]


def read_source(path: PathLike) -> bytes:
    try:
        return Path(path).read_bytes()
    except OSError as exc:
        raise SourceUnreadable(str(path), exc.strerror or str(exc)) from exc


def assembly_path_for(output: PathLike) -> Path:
    # Appended rather than substituted so `prog.v2` becomes `prog.v2.s`.
    return Path(f"{output}{ASSEMBLY_SUFFIX}")


def write_assembly(path: PathLike, text: str) -> Path:
    assembly_path = Path(path)
    assembly_path.write_text(text, encoding="utf-8")
    return assembly_path


@dataclass
class Toolchain:
    """External assembler + linker, driven through the C compiler.

    Linking through the compiler driver pulls in the C runtime, which supplies
    ``main``'s caller along with ``putchar`` and ``getchar``. Position
    dependent output keeps the RIP-relative tape references simple.
    """

    compiler: str = "gcc"
    flags: Tuple[str, ...] = ("-no-pie",)
    verbose: bool = False

    def command_for(self, assembly_path: PathLike, output: PathLike) -> List[str]:
        return [self.compiler, *self.flags, str(assembly_path), "-o", str(output)]

    def is_available(self) -> bool:
        return which(self.compiler) is not None

    def link(self, assembly_path: PathLike, output: PathLike) -> Path:
        command = self.command_for(assembly_path, output)
        if self.verbose:
            print(f"Running assemble and link: `{' '.join(command)}`", file=sys.stderr)
        try:
            run(command, check=True)
        except FileNotFoundError as exc:
            raise ToolchainFailure(
                f"Compiler `{self.compiler}` was not found",
                command=command,
                assembly_path=Path(assembly_path),
            ) from exc
        except CalledProcessError as exc:
            raise ToolchainFailure(
                f"`{' '.join(command)}` failed with exit code {exc.returncode}",
                command=command,
                assembly_path=Path(assembly_path),
                returncode=exc.returncode,
            ) from exc
        return Path(output)


def build_executable(
    source_path: PathLike,
    output: PathLike = DEFAULT_OUTPUT,
    *,
    translator: BrainfuckTranslator,
    toolchain: Toolchain,
    assembly_only: bool = False,
) -> Path:
    """Translate ``source_path`` and produce ``output``.

    The assembly unit is always written next to the executable and is left in
    place afterwards, including when the toolchain fails. With
    ``assembly_only`` the build stops there and the assembly path is returned.
    """
    source = read_source(source_path)
    assembly = translator.compile(source)
    assembly_path = write_assembly(assembly_path_for(output), assembly)
    if toolchain.verbose:
        print(f"Wrote assembly: {assembly_path}", file=sys.stderr)
    if assembly_only:
        return assembly_path
    return toolchain.link(assembly_path, output)


def run_executable(path: PathLike, args: Sequence[str] = ()) -> int:
    executable = str(path)
    # A bare name would be looked up on PATH instead of in the current directory.
    if len(Path(executable).parts) == 1:
        executable = f"./{executable}"
    completed = run([executable, *args], check=False)
    return completed.returncode


__all__ = [
    "ASSEMBLY_SUFFIX",
    "DEFAULT_OUTPUT",
    "Toolchain",
    "assembly_path_for",
    "build_executable",
    "read_source",
    "run_executable",
    "write_assembly",
]
