"""Fuzz testing suite for Brace."""

from .fuzz import Fuzzer, FuzzResult, FuzzRunner, run_suite

__all__ = ["Fuzzer", "FuzzResult", "FuzzRunner", "run_suite"]
