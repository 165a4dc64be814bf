#!/usr/bin/env python3
"""Harmonic series sum threshold

Solves ``Sum(1/x, 1, N) > M`` for an arbitrary non-negative ``M``.

The search starts from a closed-form guess.  Since ``H(N) ~ ln(N) + γ`` the
crossing point sits near ``e^(M - γ)``, so the guess is ``e^M`` times a
ratio slightly above ``e^(-γ) ≈ 0.5614594836``.  The ratio is tuned per
magnitude band of ``M`` so that the guess lands just above the answer.  The
series is summed once at that guess and then walked down one term at a time
until the sum no longer exceeds ``M``.

Precision is bounded by the working float type.  ``float64`` (or
``longdouble`` where the platform has an 80-bit type) is good up to about
``M = 22``, which already needs N > 2 billion terms.  Beyond that the guess
degrades silently and the summation becomes impractically long.

Example:
    python3 hseries.py 5
    python3 hseries.py 12.5 --verbose --progress
"""

from __future__ import annotations

import argparse
import bisect
import math
import re
import sys
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

import numpy as np
import sympy
from tqdm import tqdm


# ─────────────────────────────────────────────────────────────────────────────
# Constants
# ─────────────────────────────────────────────────────────────────────────────
# Arbitrarily small margin of error
DELTA = 1e-9

# Terms summed per numpy block
CHUNK_SIZE = 1 << 20

# Largest M for which native floats still give trustworthy answers.  Past it
# the full summation needs billions of terms: M = 30 takes hours.  From about
# M = 44.9 the guess saturates at MAX_GUESS and no summation is attempted.
PRACTICAL_CEILING = 22.0

# γ, for the asymptotic H(N) reported once the guess saturates
EULER_GAMMA = float(sympy.EulerGamma.evalf(20))

# Largest N accepted by the exact rational check
VERIFY_LIMIT = 10_000

# The guess is truncated to an unsigned 64-bit value
MAX_GUESS = int(np.iinfo(np.uint64).max)

# N/e^M lies between ~0.5604 and ~0.5741 for small M and approaches e^(-γ)
# as M grows.  Each ratio sits slightly above the observed values for its
# band so the guess approaches from above.  Ordered by lower bound.
RATIO_BANDS: List[Tuple[float, float]] = [
    (float("-inf"), 0.564),
    (9.0, 0.5618),
    (12.0, 0.56147),
    (16.0, 0.56146),
    (18.0, 0.5614596),
    (20.0, 0.5614595),
]
_BAND_BOUNDS = [lo for lo, _ in RATIO_BANDS]


# ─────────────────────────────────────────────────────────────────────────────
# Search configuration and records
# ─────────────────────────────────────────────────────────────────────────────
@dataclass(frozen=True)
class SearchConfig:
    delta: float = DELTA
    dtype: type = np.float64
    chunk_size: int = CHUNK_SIZE
    progress: bool = False

    def __post_init__(self) -> None:
        if self.delta < 0:
            raise ValueError("delta must be non-negative")
        if self.chunk_size <= 0:
            raise ValueError("chunk_size must be positive")


@dataclass(frozen=True)
class RefineStep:
    """One examined guess: ``total`` is ``H(guess)``.

    ``diff`` is ``|M - total|``, except on the record closing the downward
    walk, where it keeps the sign of ``M - total``.
    """
    guess: int
    total: float
    diff: float
    ratio: float


@dataclass(frozen=True)
class ThresholdResult:
    threshold: float
    n: int
    total: float
    initial_guess: int
    guesses: int
    saturated: bool = False


StepSink = Callable[[RefineStep], None]


# ─────────────────────────────────────────────────────────────────────────────
# Summation helpers
# ─────────────────────────────────────────────────────────────────────────────
def harmonic_series_ex(start: int, end: int, config: Optional[SearchConfig] = None):
    """Return ``sum(1/i for i in start..end)`` accumulated in ascending order.

    Empty or non-positive ranges sum to zero.  Each block is fed through
    ``np.cumsum`` with the running total prepended, which keeps the exact
    left-to-right rounding of a scalar loop while staying vectorised.
    """
    config = config or SearchConfig()
    dtype = config.dtype
    total = dtype(0)
    if start <= 0 or end <= 0 or start > end:
        return total

    blocks = range(start, end + 1, config.chunk_size)
    for lo in tqdm(blocks, desc="Processing harmonic series", unit="block",
                   leave=False, disable=not config.progress):
        hi = min(lo + config.chunk_size, end + 1)
        terms = np.empty(hi - lo + 1, dtype=dtype)
        terms[0] = total
        terms[1:] = dtype(1) / np.arange(lo, hi, dtype=dtype)
        total = np.cumsum(terms)[-1]
    return total


def harmonic_series(n: int, config: Optional[SearchConfig] = None):
    """Return ``H(n)``, the harmonic series from 1 to ``n``."""
    return harmonic_series_ex(1, n, config)


# ─────────────────────────────────────────────────────────────────────────────
# Initial guess
# ─────────────────────────────────────────────────────────────────────────────
def guess_ratio(m: float) -> float:
    """Return the tuned N/e^M ratio for the band containing ``m``."""
    return RATIO_BANDS[bisect.bisect_right(_BAND_BOUNDS, m) - 1][1]


def exp_threshold(m: float, dtype: type = np.float64):
    """``e^m`` in ``dtype``; overflow yields ``inf``."""
    with np.errstate(over="ignore"):
        return np.exp(dtype(m))


def initial_guess(m: float, config: Optional[SearchConfig] = None) -> int:
    """Return ``floor(e^m * ratio(m))``, clamped to ``MAX_GUESS``."""
    config = config or SearchConfig()
    with np.errstate(over="ignore"):
        estimate = exp_threshold(m, config.dtype) * config.dtype(guess_ratio(m))
    if not np.isfinite(estimate) or estimate >= float(MAX_GUESS):
        return MAX_GUESS
    return int(estimate)


def precision_limited(m: float) -> bool:
    """True when ``m`` is past the range native floats handle reliably."""
    return m > PRACTICAL_CEILING


# ─────────────────────────────────────────────────────────────────────────────
# Threshold search
# ─────────────────────────────────────────────────────────────────────────────
def hseries_threshold(
    m: float,
    config: Optional[SearchConfig] = None,
    on_step: Optional[StepSink] = None,
) -> ThresholdResult:
    """Return the least N with ``H(N) > m`` together with ``H(N)``.

    ``on_step`` receives a ``RefineStep`` for every guess examined.  When the
    guess saturates at ``MAX_GUESS`` nothing is summed: the result carries
    ``saturated=True`` and the asymptotic ``ln(N) + γ`` as its sum.
    """
    config = config or SearchConfig()
    dtype = config.dtype
    one = dtype(1)
    target = dtype(m)
    exp_m = exp_threshold(m, dtype)

    def emit(n: int, total, signed: bool = False) -> None:
        if on_step is not None:
            diff = target - total
            on_step(RefineStep(
                guess=n,
                total=total,
                diff=diff if signed else abs(diff),
                ratio=n / exp_m,
            ))

    n0 = initial_guess(m, config)
    if n0 == MAX_GUESS:
        return ThresholdResult(
            threshold=m,
            n=n0,
            total=np.log(dtype(n0)) + dtype(EULER_GAMMA),
            initial_guess=n0,
            guesses=0,
            saturated=True,
        )

    n = n0
    total = harmonic_series(n, config)
    last_sum = None
    guesses = 0

    # Subtracting the top term is far cheaper than summing 1..n-1 again
    while (total - target) > -config.delta and n > 0:
        guesses += 1
        emit(n, total)
        last_sum = total
        total -= one / dtype(n)
        n -= 1

    guesses += 1
    emit(n, total, signed=True)
    n += 1
    if last_sum is None:
        last_sum = total + one / dtype(n)

    # The tolerance lets ties and near-ties through; the crossing is strict.
    # This also recovers from a guess that landed below the answer.
    while last_sum <= target:
        n += 1
        last_sum = last_sum + one / dtype(n)
        guesses += 1
        emit(n, last_sum)

    return ThresholdResult(
        threshold=m,
        n=n,
        total=last_sum,
        initial_guess=n0,
        guesses=guesses,
    )


def verify_threshold(m: float, n: int) -> bool:
    """Check ``H(n) > m >= H(n-1)`` in exact rational arithmetic."""
    if n > VERIFY_LIMIT:
        raise ValueError(f"N = {n} exceeds the exact check limit of {VERIFY_LIMIT}")
    if n < 1:
        return False
    exact_m = sympy.Rational(m)
    return bool(sympy.harmonic(n) > exact_m) and bool(sympy.harmonic(n - 1) <= exact_m)


# ─────────────────────────────────────────────────────────────────────────────
# Input parsing
# ─────────────────────────────────────────────────────────────────────────────
class HSeriesInputError(ValueError):
    pass


class ParseError(HSeriesInputError):
    pass


class DomainError(HSeriesInputError):
    pass


_NUMBER_RE = re.compile(r"[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?")


def parse_threshold(s: str) -> float:
    """Parse a real literal such as ``5``, ``-0.5`` or ``1.2e1``."""
    if not _NUMBER_RE.fullmatch(s.strip()):
        raise ParseError(f"Invalid input: {s!r}")
    value = float(s)
    if not math.isfinite(value):
        raise ParseError(f"Invalid input: {s!r}")
    # Harmonic sums are never negative
    if value < 0:
        raise DomainError("Number must be greater than or equal to zero.")
    return value


# ─────────────────────────────────────────────────────────────────────────────
# Command-line interface
# ─────────────────────────────────────────────────────────────────────────────
def format_step(step: RefineStep) -> str:
    return (f" Guess {step.guess}, sum = {float(step.total):.8f}, "
            f"diff = {float(step.diff):.8g}, n/e^M = {float(step.ratio):.8g}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="hseries",
        description="Find the least N with Sum(1/n, 1, N) > NUMBER",
    )
    parser.add_argument("number", nargs="?", help="Threshold M, e.g. 5 or 1.2e1")
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="Print every refinement guess")
    parser.add_argument("--delta", type=float, default=DELTA,
                        help=f"Refinement tolerance (default {DELTA})")
    parser.add_argument("--long-double", action="store_true",
                        help="Sum in numpy.longdouble instead of float64")
    parser.add_argument("--progress", action="store_true",
                        help="Show a progress bar during the initial summation")
    parser.add_argument("--verify", action="store_true",
                        help=f"Check the result exactly with sympy (N <= {VERIFY_LIMIT}). "
                             "When M is the float nearest H(N-1) the float search "
                             "answers N and the exact answer is N-1")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args, extras = parser.parse_known_args(argv)

    # argparse reads "-2e3" as an unknown flag rather than a negative number
    if args.number is None and len(extras) == 1 and _NUMBER_RE.fullmatch(extras[0]):
        args.number = extras.pop()
    if args.number is None:
        parser.error("the following arguments are required: number")
    if extras:
        parser.error(f"unrecognized arguments: {' '.join(extras)}")

    try:
        m = parse_threshold(args.number)
        config = SearchConfig(
            delta=args.delta,
            dtype=np.longdouble if args.long_double else np.float64,
            progress=args.progress,
        )
    except ParseError:
        print("Invalid input.", file=sys.stderr)
        parser.print_usage(sys.stderr)
        return 1
    except ValueError as e:
        print(e, file=sys.stderr)
        return 1

    if precision_limited(m):
        print(f"WARNING: M = {m:.8g} is above {PRACTICAL_CEILING:g}. "
              f"Native floats lose accuracy here and N may be meaningless.")

    on_step = (lambda step: print(format_step(step))) if args.verbose else None
    result = hseries_threshold(m, config, on_step)
    if result.saturated:
        print(f"WARNING: the initial guess overflowed and was held at {MAX_GUESS}. "
              f"Nothing was summed; the sum shown is ln(N) + γ.")

    if args.verbose:
        print(f"    Total number of guesses: {result.guesses}\n")

    print(f"Sum(1/n, 1, N) > {m:.8f}, when N >= {result.n}\n")
    print(f"Sum(1/n, 1, {result.n}) ~ {float(result.total):.8f}")

    if args.verify:
        if result.n > VERIFY_LIMIT:
            print(f"Exact check skipped: N > {VERIFY_LIMIT}")
        elif verify_threshold(m, result.n):
            print("Exact check: ✔️ minimal")
        elif result.n > 1 and verify_threshold(m, result.n - 1):
            print(f"Exact check: ⚠️ exact answer is N = {result.n - 1}; "
                  f"M rounds to H({result.n - 1}) in floating point")
        else:
            print("Exact check: ❌ not minimal")
            return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
