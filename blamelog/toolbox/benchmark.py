# -----------------------------------------------------------------------------
# Copyright (C) 2025 Iliyas Jorio.
# This file is part of BlameLog, distributed under the GNU GPL v3.
# For full terms, see the included LICENSE file.
# -----------------------------------------------------------------------------

import functools
import logging
import os
import threading
import time

import psutil

BENCHMARK_LOGGING_LEVEL = 5

logger = logging.getLogger(__name__)
logging.addLevelName(BENCHMARK_LOGGING_LEVEL, "BENCHMARK")

_threadState = threading.local()


def getRSS() -> int:
    return psutil.Process(os.getpid()).memory_info().rss


class Benchmark:
    """
    Context manager that reports how long a stage of the pipeline takes,
    how much resident memory it grew by, and optionally how many items
    (lines, diffs, queries...) it went through.

    Nested benchmarks are reported with slash-separated names, e.g.
    "Rebuild/Parse". Each thread has its own nesting.
    """

    @staticmethod
    def nesting() -> list[str]:
        try:
            return _threadState.nesting
        except AttributeError:
            _threadState.nesting = []
            return _threadState.nesting

    def __init__(self, name: str, unit: str = ""):
        self.name = name
        self.unit = unit
        self.count = 0
        self.startTime = 0.0
        self.startBytes = 0
        self.elapsed = 0.0

    def tick(self, n: int = 1):
        self.count += n

    def __enter__(self):
        Benchmark.nesting().append(self.name)
        self.count = 0
        self.startBytes = getRSS()
        self.startTime = time.perf_counter()
        return self

    def __exit__(self, exc_type=None, exc_value=None, traceback=None):
        self.elapsed = time.perf_counter() - self.startTime
        ms = 1000 * self.elapsed
        kb = (getRSS() - self.startBytes) // 1024

        description = "/".join(Benchmark.nesting())
        if self.unit:
            rate = self.count / self.elapsed if self.elapsed > 0 else 0.0
            description += f" ({self.count:,d} {self.unit}, {rate:,.0f}/s)"
        if exc_type:
            description += f" (EXCEPTION RAISED! {exc_type.__name__})"
        logger.log(BENCHMARK_LOGGING_LEVEL, f"{ms:8.1f} ms {kb:6,d}K {description}")

        Benchmark.nesting().pop()
        self.startTime = 0.0


def benchmark(func):
    """ Function decorator that reports how long the function takes to run. """
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        with Benchmark(func.__qualname__):
            return func(*args, **kwargs)
    return wrapper
