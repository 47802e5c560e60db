#!/usr/bin/env python3
"""Fuzzing harness for the Brace compiler.

A fuzzer grows one random case (a program, for the pipeline fuzzer) over a
number of steps and checks its invariants after every step. The runner
replays the same seed for every fuzzer, so a failure can be reproduced from
the seed it prints together with the failing case.

Usage:
    python -m tests.fuzzing.fuzz [--examples N] [--steps N] [--seed N] [pattern...]

Example:
    python -m tests.fuzzing.fuzz                    # Run every fuzzer
    python -m tests.fuzzing.fuzz program            # Run fuzzers matching 'program'
    python -m tests.fuzzing.fuzz --seed 1234 -n 50  # Replay a short seeded run
"""

import abc
import argparse
import importlib
import random
import sys
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional


class Fuzzer(abc.ABC):
    """Base class for fuzzers.

    Subclasses set `name` and implement reset(), do_random_operation() and
    check_invariants(), which raises AssertionError on a violation.
    current_case() should return the text of the case under test so that
    failures can be reproduced by hand.
    """

    name: str = "unnamed"

    def __init__(self):
        self.operations = 0
        self.op_counts: dict[str, int] = {}

    def record_op(self, name: str):
        self.operations += 1
        self.op_counts[name] = self.op_counts.get(name, 0) + 1

    @abc.abstractmethod
    def reset(self):
        """Start a new, empty case."""

    @abc.abstractmethod
    def do_random_operation(self):
        """Grow or mutate the current case by one step."""

    @abc.abstractmethod
    def check_invariants(self):
        """Raise AssertionError if the current case misbehaves."""

    def current_case(self) -> str:
        return ""

    def get_stats(self) -> dict[str, Any]:
        return {}


@dataclass
class FuzzResult:
    """Outcome of running one fuzzer."""

    name: str
    seed: int
    examples: int = 0
    operations: int = 0
    elapsed: float = 0.0
    failure: Optional[str] = None
    case: Optional[str] = None
    stats: dict[str, Any] = field(default_factory=dict)

    @property
    def passed(self) -> bool:
        return self.failure is None


class FuzzRunner:
    """Runs fuzzers for a fixed number of examples and steps."""

    def __init__(self, examples: int = 1000, steps: int = 50, seed: Optional[int] = None):
        self.examples = examples
        self.steps = steps
        self.seed = seed if seed is not None else random.randint(0, 2**32)

    def run(self, fuzzer: Fuzzer) -> FuzzResult:
        """Run fuzzer from the runner's seed and report what happened."""
        random.seed(self.seed)
        result = FuzzResult(fuzzer.name, self.seed)
        print(f"Fuzz: {fuzzer.name} ({self.examples:,} x {self.steps} steps, seed {self.seed})")

        start = last_print = time.time()
        for example in range(self.examples):
            fuzzer.reset()
            for step in range(self.steps):
                fuzzer.do_random_operation()
                try:
                    fuzzer.check_invariants()
                except AssertionError as e:
                    result.failure = (
                        f"example {example + 1}, step {step + 1}: {e}"
                    )
                    result.case = fuzzer.current_case()
                    break
            result.examples = example + 1
            if result.failure is not None:
                break

            now = time.time()
            if now - last_print >= 1.0:
                print(
                    f"[{now - start:6.1f}s] ex:{example + 1:>6,} | "
                    f"ops:{fuzzer.operations:>8,}"
                )
                last_print = now

        result.operations = fuzzer.operations
        result.elapsed = time.time() - start
        result.stats = {"Operations": dict(fuzzer.op_counts), **fuzzer.get_stats()}

        for key, value in result.stats.items():
            print(f"  {key}: {value}")
        if result.passed:
            print(f"  PASSED in {result.elapsed:.1f}s")
        else:
            print(f"  FAILED at {result.failure}")
            print("  Case:")
            for line in (result.case or "").splitlines():
                print(f"    {line}")
        return result


def discover_fuzzers() -> list[type[Fuzzer]]:
    """Every Fuzzer subclass defined in a fuzz_*.py module of this package."""
    fuzzers = []
    for path in sorted(Path(__file__).parent.glob("fuzz_*.py")):
        module = importlib.import_module(f"tests.fuzzing.{path.stem}")
        for attr in vars(module).values():
            if isinstance(attr, type) and issubclass(attr, Fuzzer) and attr is not Fuzzer:
                fuzzers.append(attr)
    return fuzzers


def run_suite(
    examples: int = 1000,
    steps: int = 50,
    seed: Optional[int] = None,
    patterns: Optional[list[str]] = None,
) -> int:
    """Run every fuzzer whose name matches one of patterns.

    Returns:
        Exit code (0 when every fuzzer passed)
    """
    fuzzers = discover_fuzzers()
    if patterns:
        fuzzers = [
            fuzzer_cls
            for fuzzer_cls in fuzzers
            if any(pattern.lower() in fuzzer_cls.name.lower() for pattern in patterns)
        ]
    if not fuzzers:
        print("No fuzzers found!")
        return 1

    runner = FuzzRunner(examples=examples, steps=steps, seed=seed)
    results = [runner.run(fuzzer_cls()) for fuzzer_cls in fuzzers]

    failed = [result for result in results if not result.passed]
    print()
    print(f"Passed: {len(results) - len(failed)}, Failed: {len(failed)}")
    return 1 if failed else 0


def main():
    parser = argparse.ArgumentParser(description="Run the Brace fuzzers")
    parser.add_argument(
        "--examples", "-n", type=int, default=1000,
        help="Number of examples per fuzzer (default: 1000)",
    )
    parser.add_argument(
        "--steps", "-s", type=int, default=50,
        help="Steps per example (default: 50)",
    )
    parser.add_argument(
        "--seed", type=int, default=None,
        help="Random seed for reproducibility",
    )
    parser.add_argument(
        "patterns", nargs="*",
        help="Optional patterns to filter fuzzers by name",
    )
    args = parser.parse_args()
    sys.exit(run_suite(args.examples, args.steps, args.seed, args.patterns or None))


if __name__ == "__main__":
    main()
