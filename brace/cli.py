"""
brace.cli - Brace Command Line Interface

This module provides the main CLI entry point for Brace with subcommand support:

- brace compile <file>   Compile a file and write its IR
- brace check <file>     Read and validate a file without generating IR
- brace <file>           Same as `brace compile <file>`

Shortcut flags:
- brace -c <code>        Compile code given on the command line

Compilation errors are reported on stderr as the position followed by the
description, and the process exits with status 1.
"""

import argparse
import logging
import sys
from typing import Optional

from brace.compiler import CompileError, compile_source, parse, validate
from brace.config import CompilerConfig

logger = logging.getLogger(__name__)

SUBCOMMANDS = {"compile", "check"}

# Top-level options that consume the following argument
OPTIONS_WITH_VALUE = {"-c", "--command", "--config", "-o", "--output", "--emit"}


def read_source(filepath: str) -> str:
    with open(filepath, encoding="utf-8") as f:
        return f.read()


def write_lines(lines: list[str], output: Optional[str]) -> None:
    """Write IR lines to output, or stdout when output is None."""
    if output is None:
        for line in lines:
            print(line)
        return
    with open(output, "w", encoding="utf-8") as f:
        for line in lines:
            f.write(line + "\n")
    logger.info("wrote %d lines to %s", len(lines), output)


def report_error(error: CompileError, source_name: str) -> None:
    print(f"{source_name}: {error.report()}", file=sys.stderr)


def load_config(path: Optional[str]) -> Optional[CompilerConfig]:
    try:
        return CompilerConfig.load(path)
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
    except ValueError as e:
        print(f"Error in config: {e}", file=sys.stderr)
    return None


def compile_text(
    source: str, source_name: str, args: argparse.Namespace
) -> int:
    """Compile source and write the result requested by args."""
    config = load_config(args.config)
    if config is None:
        return 1

    try:
        if args.emit == "tree":
            tree = parse(source)
            lines = [tree.to_sexp()] if tree is not None else []
        else:
            lines = compile_source(source, config)
    except CompileError as e:
        report_error(e, source_name)
        return 1

    write_lines(lines, args.output or config.output)
    return 0


def cmd_compile(args: argparse.Namespace) -> int:
    """Compile a Brace file."""
    try:
        source = read_source(args.file)
    except OSError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return compile_text(source, args.file, args)


def cmd_exec_code(args: argparse.Namespace) -> int:
    """Compile Brace code given directly."""
    return compile_text(args.command, "<command>", args)


def cmd_check(args: argparse.Namespace) -> int:
    """Read and validate a Brace file."""
    try:
        source = read_source(args.file)
    except OSError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    try:
        tree = parse(source)
        if tree is not None:
            validate(tree)
    except CompileError as e:
        report_error(e, args.file)
        return 1

    forms = len(tree.children) if tree is not None else 0
    print(f"✓ {args.file}: {forms} top-level forms")
    return 0


def add_output_arguments(parser: argparse.ArgumentParser, top_level: bool = True) -> None:
    """
    Options accepted both before and after the subcommand. Subcommands leave
    them unset unless given, so they never clobber the top-level values.
    """
    parser.add_argument(
        "-o",
        "--output",
        metavar="FILE",
        default=None if top_level else argparse.SUPPRESS,
        help="Write output to FILE (default: stdout, or `output` in brace.it)",
    )
    parser.add_argument(
        "--emit",
        choices=["ir", "tree"],
        default="ir" if top_level else argparse.SUPPRESS,
        help="What to write: the IR (default) or the parsed tree",
    )


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser with all subcommands."""
    parser = argparse.ArgumentParser(
        prog="brace",
        description="Brace - a small Lisp-like language compiled to LLVM IR",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
examples:
  brace main.brace                      Print the IR for main.brace
  brace compile main.brace -o main.ll   Write the IR to main.ll
  brace compile main.brace --emit tree  Print the parsed tree
  brace check main.brace                Only read and validate
  brace -c "define start { print_number 1 }"
        """,
    )

    parser.add_argument(
        "-c",
        "--command",
        metavar="CODE",
        help="Compile Brace code given on the command line",
    )
    parser.add_argument(
        "--config",
        metavar="PATH",
        help="Path to a brace.it file (default: search upward from the current directory)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Log compiler progress to stderr",
    )
    add_output_arguments(parser)

    subparsers = parser.add_subparsers(dest="subcommand", help="Available commands")

    compile_parser = subparsers.add_parser("compile", help="Compile a file to IR")
    compile_parser.add_argument("file", help="Brace source file")
    add_output_arguments(compile_parser, top_level=False)

    check_parser = subparsers.add_parser(
        "check", help="Read and validate a file without generating IR"
    )
    check_parser.add_argument("file", help="Brace source file")

    return parser


def insert_default_subcommand(argv: list[str]) -> list[str]:
    """
    `brace [options] main.brace` is shorthand for
    `brace [options] compile main.brace`: put `compile` in front of the first
    positional argument unless it already names a subcommand.
    """
    i = 0
    while i < len(argv):
        arg = argv[i]
        if arg in OPTIONS_WITH_VALUE:
            i += 2
        elif arg.startswith("-"):
            i += 1
        elif arg in SUBCOMMANDS:
            return argv
        else:
            return argv[:i] + ["compile"] + argv[i:]
    return argv


def main(argv: Optional[list[str]] = None) -> None:
    """Main entry point for the Brace CLI. Calls sys.exit with return code."""
    sys.exit(_main(argv))


def _main(argv: Optional[list[str]] = None) -> int:
    """Internal main that returns exit code."""
    if argv is None:
        argv = sys.argv[1:]

    argv = insert_default_subcommand(argv)

    parser = create_parser()
    args = parser.parse_args(argv)

    if args.verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(levelname)s %(name)s: %(message)s",
            stream=sys.stderr,
        )

    if args.subcommand == "compile":
        return cmd_compile(args)
    elif args.subcommand == "check":
        return cmd_check(args)

    if args.command is not None:
        return cmd_exec_code(args)

    parser.print_help()
    return 2


if __name__ == "__main__":
    main()
