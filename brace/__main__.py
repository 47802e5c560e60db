"""Module entry-point for ``python -m brace``."""

from brace.cli import main

if __name__ == "__main__":
    main()
