"""
Test suite for the brace command line.

This module tests:
- Compiling code given with -c
- Compiling files, with and without the compile subcommand
- Output selection (-o, --emit, brace.it output)
- The check subcommand
- Exit codes and error reports
"""

import io
import logging
import os
import tempfile
import unittest
from contextlib import redirect_stderr, redirect_stdout

from brace.cli import _main, insert_default_subcommand
from brace.compiler import compile_source, parse

PROGRAM = "define start { x\n    print_number x\n}\nstart 1\n"


class CliTestCase(unittest.TestCase):
    def setUp(self):
        tmp = tempfile.TemporaryDirectory()
        self.addCleanup(tmp.cleanup)
        self.root = os.path.realpath(tmp.name)
        cwd = os.getcwd()
        os.chdir(self.root)
        self.addCleanup(os.chdir, cwd)

    def write(self, name, content):
        path = os.path.join(self.root, name)
        with open(path, "w", encoding="utf-8") as f:
            f.write(content)
        return path

    def run_cli(self, *argv):
        """Run the CLI, returning (exit code, stdout, stderr)."""
        stdout, stderr = io.StringIO(), io.StringIO()
        with redirect_stdout(stdout), redirect_stderr(stderr):
            code = _main(list(argv))
        return code, stdout.getvalue(), stderr.getvalue()


class TestCompile(CliTestCase):
    """Test producing IR."""

    def test_command(self):
        """Test compiling code given on the command line."""
        code, out, err = self.run_cli("-c", "define start { print_number }")
        self.assertEqual(code, 0)
        self.assertEqual(out.splitlines(), compile_source("define start { print_number }"))
        self.assertEqual(err, "")

    def test_command_error(self):
        """Test that a compile error is reported with its position."""
        code, out, err = self.run_cli("-c", "(hi there")
        self.assertEqual(code, 1)
        self.assertEqual(out, "")
        self.assertEqual(
            err,
            "<command>: compilation error at line 0, column 0\n"
            "hit end of file while reading an open paren\n",
        )

    def test_file_shorthand(self):
        """Test that a bare file argument means compile."""
        path = self.write("main.brace", PROGRAM)
        code, out, _ = self.run_cli(path)
        self.assertEqual(code, 0)
        self.assertEqual(out.splitlines(), compile_source(PROGRAM))

    def test_output_file(self):
        """Test writing IR to a file given with -o, before or after the subcommand."""
        path = self.write("main.brace", PROGRAM)
        for argv in (["compile", path, "-o", "a.ll"], ["-o", "b.ll", "compile", path]):
            with self.subTest(argv=argv):
                code, out, _ = self.run_cli(*argv)
                self.assertEqual(code, 0)
                self.assertEqual(out, "")
        for name in ("a.ll", "b.ll"):
            with open(os.path.join(self.root, name), encoding="utf-8") as f:
                self.assertEqual(f.read().splitlines(), compile_source(PROGRAM))

    def test_emit_tree(self):
        """Test printing the parsed tree instead of IR."""
        code, out, _ = self.run_cli("--emit", "tree", "-c", "print_number (add 1 2)")
        self.assertEqual(code, 0)
        self.assertEqual(out, "((print_number (add 1 2)))\n")

    def test_file_error(self):
        """Test that errors name the file they came from."""
        path = self.write("bad.brace", "define start 1\n")
        code, _, err = self.run_cli("compile", path)
        self.assertEqual(code, 1)
        self.assertEqual(
            err,
            f"{path}: compilation error at line 0, column 13\n"
            "define expects a block for its 2th argument\n",
        )

    def test_missing_file(self):
        """Test that an unreadable file is an error."""
        code, _, err = self.run_cli("compile", os.path.join(self.root, "nope.brace"))
        self.assertEqual(code, 1)
        self.assertTrue(err.startswith("Error: "))

    def test_manifest_output(self):
        """Test that brace.it sets the default output path."""
        self.write("brace.it", "output build.ll\nextern read_number 0\n")
        code, out, _ = self.run_cli("-c", "read_number")
        self.assertEqual(code, 0)
        self.assertEqual(out, "")
        with open(os.path.join(self.root, "build.ll"), encoding="utf-8") as f:
            lines = f.read().splitlines()
        self.assertIn("declare %object @read_number()", lines)
        self.assertEqual(lines[-1], "%ret1 = call %object @read_number()")

    def test_bad_manifest(self):
        """Test that an invalid brace.it stops compilation."""
        self.write("brace.it", "colour red\n")
        code, out, err = self.run_cli("-c", "foo")
        self.assertEqual(code, 1)
        self.assertEqual(out, "")
        self.assertIn("unknown setting colour", err)

    def test_missing_config(self):
        """Test that --config must name an existing file."""
        code, _, err = self.run_cli("--config", "missing.it", "-c", "foo")
        self.assertEqual(code, 1)
        self.assertIn("missing.it", err)


class TestCheck(CliTestCase):
    """Test the check subcommand."""

    def test_check_valid(self):
        """Test that a valid file reports its form count."""
        path = self.write("main.brace", PROGRAM)
        code, out, _ = self.run_cli("check", path)
        self.assertEqual(code, 0)
        self.assertEqual(out, f"✓ {path}: 2 top-level forms\n")

    def test_check_invalid(self):
        """Test that check runs the validator."""
        path = self.write("main.brace", "foo (define x { y })\n")
        code, _, err = self.run_cli("check", path)
        self.assertEqual(code, 1)
        self.assertIn("define was invoked without being on the top level", err)

    def test_check_does_not_lower(self):
        """Test that lowering errors are not reported by check."""
        path = self.write("main.brace", "1 2\n")
        code, _, _ = self.run_cli("check", path)
        self.assertEqual(code, 0)


class TestUsage(CliTestCase):
    """Test invocations without work to do."""

    def test_default_subcommand(self):
        """Test where compile is inserted for a bare file argument."""
        cases = [
            (["main.brace"], ["compile", "main.brace"]),
            (["-v", "main.brace"], ["-v", "compile", "main.brace"]),
            (["--emit", "tree", "main.brace"], ["--emit", "tree", "compile", "main.brace"]),
            (["--config", "brace.it", "-v", "a.brace"], ["--config", "brace.it", "-v", "compile", "a.brace"]),
            (["-v", "check", "main.brace"], ["-v", "check", "main.brace"]),
            (["-c", "main"], ["-c", "main"]),
            ([], []),
        ]
        for argv, expected in cases:
            with self.subTest(argv=argv):
                self.assertEqual(insert_default_subcommand(argv), expected)

    def test_options_before_file(self):
        """Test that options may precede a bare file argument."""
        path = self.write("main.brace", PROGRAM)
        code, out, _ = self.run_cli("--emit", "tree", path)
        self.assertEqual(code, 0)
        self.assertEqual(out, parse(PROGRAM).to_sexp() + "\n")

    def test_verbose_file(self):
        """Test that -v before a bare file compiles it."""
        root_logger = logging.getLogger()
        handlers, level = list(root_logger.handlers), root_logger.level

        def restore():
            root_logger.handlers[:] = handlers
            root_logger.setLevel(level)

        self.addCleanup(restore)
        path = self.write("main.brace", PROGRAM)
        code, out, _ = self.run_cli("-v", path)
        self.assertEqual(code, 0)
        self.assertEqual(out.splitlines(), compile_source(PROGRAM))

    def test_no_arguments(self):
        """Test that running with nothing prints help."""
        code, out, _ = self.run_cli()
        self.assertEqual(code, 2)
        self.assertIn("usage: brace", out)


if __name__ == "__main__":
    unittest.main()
