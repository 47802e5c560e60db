"""
brace.config - Compiler configuration loader

This module handles finding and parsing brace.it manifest files. A manifest
sets the fixed declarations emitted at the top of every IR module and the
default output path.

The brace.it file uses Brace syntax, one setting per line:
    data-layout e-m:e-i64:64-f80:128-n8:16:32:64-S128
    extern print_number 1
    extern read_number 0
    output build/main.ll

`extern NAME ARITY` declares a runtime function; print_number is always
declared unless the manifest gives it another arity.
"""

import logging
import os
from dataclasses import dataclass, field
from typing import Optional

from brace.compiler.codegen import DEFAULT_DATA_LAYOUT, DEFAULT_EXTERNS, render_preamble
from brace.compiler.errors import CompileError
from brace.compiler.reader import parse
from brace.compiler.tree import Node, TokenKind

logger = logging.getLogger(__name__)

PROJECT_FILENAME = "brace.it"


def find_project_root(start_path: Optional[str] = None) -> Optional[str]:
    """The nearest directory at or above start_path (default: the working
    directory) that holds a brace.it, or None."""
    start = os.path.abspath(start_path or os.getcwd())
    directory = os.path.dirname(start) if os.path.isfile(start) else start
    while not os.path.isfile(os.path.join(directory, PROJECT_FILENAME)):
        parent = os.path.dirname(directory)
        if parent == directory:
            return None
        directory = parent
    return directory


@dataclass
class CompilerConfig:
    """
    Settings for one compilation.

    Fields:
        data_layout: LLVM data layout string for the module
        externs: runtime functions to declare, name -> arity
        output: where the CLI writes IR when no -o is given (None: stdout)
        project_root: directory of the brace.it file, if one was loaded
    """

    data_layout: str = DEFAULT_DATA_LAYOUT
    externs: dict[str, int] = field(default_factory=lambda: dict(DEFAULT_EXTERNS))
    output: Optional[str] = None
    project_root: Optional[str] = None

    def preamble(self) -> list[str]:
        """The declaration lines prepended to every compiled module."""
        return render_preamble(self.data_layout, self.externs)

    @classmethod
    def from_source(cls, content: str, filename: str = PROJECT_FILENAME) -> "CompilerConfig":
        """
        Build a config from manifest text.

        Raises:
            ValueError: If the text does not parse or holds an unknown or
                        malformed setting.
        """
        try:
            root = parse(content)
        except CompileError as e:
            raise ValueError(f"Failed to parse {filename}: {e.report()}") from e

        config = cls()
        if root is None:
            return config
        for line in root.children:
            if not isinstance(line, Node) or line.head() is None:
                raise ValueError(
                    f"{filename} {line.position}: settings must start with a name"
                )
            key = line.name
            values = []
            for item in line.arguments():
                if not item.is_token():
                    raise ValueError(
                        f"{filename} {item.position}: {key} takes plain values"
                    )
                values.append(item)

            if key == "data-layout" and len(values) == 1:
                config.data_layout = values[0].lexeme  # type: ignore[attr-defined]
            elif key == "extern" and len(values) == 2:
                name, arity = values
                if arity.kind is not TokenKind.INTEGER or int(arity.lexeme) < 0:  # type: ignore[attr-defined]
                    raise ValueError(
                        f"{filename} {arity.position}: extern arity must be a non-negative integer"
                    )
                config.externs[name.lexeme] = int(arity.lexeme)  # type: ignore[attr-defined]
            elif key == "output" and len(values) == 1:
                config.output = values[0].lexeme  # type: ignore[attr-defined]
            elif key in ("data-layout", "extern", "output"):
                raise ValueError(f"{filename} {line.position}: malformed {key} setting")
            else:
                raise ValueError(f"{filename} {line.position}: unknown setting {key}")
        return config

    @classmethod
    def load(cls, path: Optional[str] = None) -> "CompilerConfig":
        """
        Load a CompilerConfig from a brace.it file.

        Args:
            path: Path to a brace.it file, or None to search from the current
                  directory upward.

        Returns:
            The loaded config, or the defaults when path is None and no
            brace.it exists.

        Raises:
            FileNotFoundError: If path is given and does not exist.
            ValueError: If the file is invalid.
        """
        if path is None:
            project_root = find_project_root()
            if project_root is None:
                logger.debug("no %s found, using defaults", PROJECT_FILENAME)
                return cls()
            project_file = os.path.join(project_root, PROJECT_FILENAME)
        elif os.path.isfile(path):
            project_file = os.path.abspath(path)
            project_root = os.path.dirname(project_file)
        else:
            raise FileNotFoundError(f"Path does not exist: {path}")

        with open(project_file, encoding="utf-8") as f:
            content = f.read()

        config = cls.from_source(content, project_file)
        config.project_root = project_root
        if config.output is not None and not os.path.isabs(config.output):
            config.output = os.path.join(project_root, config.output)
        logger.debug("loaded %s", project_file)
        return config


__all__ = ["CompilerConfig", "find_project_root", "PROJECT_FILENAME"]
