import platform
import shutil
import subprocess
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from bfasm import (
    BrainfuckTranslator,
    SourceUnreadable,
    Toolchain,
    ToolchainFailure,
    UnmatchedLoopOpen,
    build_executable,
)
from bfasm.toolchain import assembly_path_for, read_source, run_executable

_HAS_NATIVE_TOOLCHAIN = (
    shutil.which("gcc") is not None
    and platform.system() == "Linux"
    and platform.machine() in {"x86_64", "AMD64"}
)


class SourceAndArtifactTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.tmp = Path(self._tmp.name)

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_read_source_returns_bytes(self) -> None:
        path = self.tmp / "prog.bf"
        path.write_bytes(b"+\xff.")
        self.assertEqual(read_source(path), b"+\xff.")

    def test_missing_source_is_unreadable(self) -> None:
        with self.assertRaises(SourceUnreadable) as ctx:
            read_source(self.tmp / "missing.bf")
        self.assertIn("missing.bf", str(ctx.exception))

    def test_directory_source_is_unreadable(self) -> None:
        with self.assertRaises(SourceUnreadable):
            read_source(self.tmp)

    def test_assembly_path_is_adjacent_to_output(self) -> None:
        self.assertEqual(assembly_path_for(self.tmp / "prog"), self.tmp / "prog.s")
        self.assertEqual(assembly_path_for("out/prog.v2"), Path("out/prog.v2.s"))


class ToolchainCommandTests(unittest.TestCase):
    def test_default_command(self) -> None:
        command = Toolchain().command_for("prog.s", "prog")
        self.assertEqual(command, ["gcc", "-no-pie", "prog.s", "-o", "prog"])

    def test_custom_compiler(self) -> None:
        command = Toolchain(compiler="cc", flags=("-no-pie", "-g")).command_for("a.s", "a")
        self.assertEqual(command, ["cc", "-no-pie", "-g", "a.s", "-o", "a"])

    def test_link_failure_raises(self) -> None:
        error = subprocess.CalledProcessError(1, ["gcc"])
        with mock.patch("bfasm.toolchain.run", side_effect=error):
            with self.assertRaises(ToolchainFailure) as ctx:
                Toolchain().link("prog.s", "prog")
        self.assertEqual(ctx.exception.returncode, 1)
        self.assertEqual(ctx.exception.assembly_path, Path("prog.s"))
        self.assertEqual(ctx.exception.category, "ToolchainFailure")

    def test_missing_compiler_raises(self) -> None:
        with mock.patch("bfasm.toolchain.run", side_effect=FileNotFoundError("gcc")):
            with self.assertRaises(ToolchainFailure) as ctx:
                Toolchain().link("prog.s", "prog")
        self.assertIsNone(ctx.exception.returncode)

    def test_is_available_uses_path_lookup(self) -> None:
        with mock.patch("bfasm.toolchain.which", return_value=None):
            self.assertFalse(Toolchain(compiler="nope").is_available())
        with mock.patch("bfasm.toolchain.which", return_value="/usr/bin/gcc"):
            self.assertTrue(Toolchain().is_available())


class BuildExecutableTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.tmp = Path(self._tmp.name)
        self.source = self.tmp / "prog.bf"
        self.output = self.tmp / "prog"

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_assembly_only_writes_unit(self) -> None:
        self.source.write_text("+[-].", encoding="utf-8")
        with mock.patch("bfasm.toolchain.run") as run:
            produced = build_executable(
                self.source,
                self.output,
                translator=BrainfuckTranslator(),
                toolchain=Toolchain(),
                assembly_only=True,
            )
        run.assert_not_called()
        self.assertEqual(produced, self.tmp / "prog.s")
        self.assertEqual(
            produced.read_text(encoding="utf-8"),
            BrainfuckTranslator().compile("+[-]."),
        )

    def test_links_written_assembly(self) -> None:
        self.source.write_text("+.", encoding="utf-8")
        with mock.patch("bfasm.toolchain.run") as run:
            produced = build_executable(
                self.source,
                self.output,
                translator=BrainfuckTranslator(),
                toolchain=Toolchain(),
            )
        self.assertEqual(produced, self.output)
        run.assert_called_once_with(
            ["gcc", "-no-pie", str(self.tmp / "prog.s"), "-o", str(self.output)],
            check=True,
        )

    def test_assembly_preserved_on_toolchain_failure(self) -> None:
        self.source.write_text("+.", encoding="utf-8")
        error = subprocess.CalledProcessError(1, ["gcc"])
        with mock.patch("bfasm.toolchain.run", side_effect=error):
            with self.assertRaises(ToolchainFailure):
                build_executable(
                    self.source,
                    self.output,
                    translator=BrainfuckTranslator(),
                    toolchain=Toolchain(),
                )
        self.assertTrue((self.tmp / "prog.s").exists())

    def test_structural_error_writes_nothing(self) -> None:
        self.source.write_text("[", encoding="utf-8")
        with mock.patch("bfasm.toolchain.run") as run:
            with self.assertRaises(UnmatchedLoopOpen):
                build_executable(
                    self.source,
                    self.output,
                    translator=BrainfuckTranslator(),
                    toolchain=Toolchain(),
                )
        run.assert_not_called()
        self.assertFalse((self.tmp / "prog.s").exists())

    def test_run_executable_prefixes_bare_names(self) -> None:
        completed = subprocess.CompletedProcess(["./prog"], 3)
        with mock.patch("bfasm.toolchain.run", return_value=completed) as run:
            self.assertEqual(run_executable("prog"), 3)
        run.assert_called_once_with(["./prog"], check=False)


@unittest.skipUnless(_HAS_NATIVE_TOOLCHAIN, "requires gcc on x86-64 Linux")
class NativeBuildTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.tmp = Path(self._tmp.name)

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def _build_and_run(self, source: str, stdin: bytes = b"", **options) -> subprocess.CompletedProcess:
        source_path = self.tmp / "prog.bf"
        source_path.write_text(source, encoding="utf-8")
        executable = build_executable(
            source_path,
            self.tmp / "prog",
            translator=BrainfuckTranslator(**options),
            toolchain=Toolchain(),
        )
        return subprocess.run([str(executable)], input=stdin, capture_output=True, timeout=30)

    def test_increment_and_output(self) -> None:
        completed = self._build_and_run("+++.")
        self.assertEqual(completed.returncode, 0)
        self.assertEqual(completed.stdout, b"\x03")

    def test_echo(self) -> None:
        completed = self._build_and_run(",.", stdin=b"q")
        self.assertEqual(completed.stdout, b"q")

    def test_hello_world(self) -> None:
        source = (
            "++++++++[>++++[>++>+++>+++>+<<<<-]>+>+>->>+[<]<-]"
            ">>.>---.+++++++..+++.>>.<-.<.+++.------.--------.>>+.>++."
        )
        completed = self._build_and_run(source)
        self.assertEqual(completed.stdout, b"Hello World!\n")

    def test_bounds_check_aborts(self) -> None:
        completed = self._build_and_run("<", bounds_check=True)
        self.assertEqual(completed.returncode, 2)
        self.assertIn(b"outside the tape", completed.stderr)


if __name__ == "__main__":
    unittest.main()
