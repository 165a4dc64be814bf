#!/usr/bin/env python3
"""Re-derive the N/e^M guess ratios used by ``hseries``.

For every sampled threshold M the exact crossing point N is found and the
ratio N/e^M recorded.  A band's calibrated ratio is the smallest value, at
the requested number of decimals, whose guesses ``floor(e^M * r)`` never fall
below N on the samples.  As M grows the ratio approaches ``e^(-γ)``.

Example:
    python3 ratio_calibration.py --start 2 --stop 14 --samples 40 --plot
"""

from __future__ import annotations

import argparse
import math
from typing import List, Optional, Sequence, Tuple

import matplotlib.pyplot as plt
import numpy as np
import sympy

from hseries import RATIO_BANDS, SearchConfig, guess_ratio, hseries_threshold


def asymptotic_ratio() -> float:
    """``e^(-γ)``, the limit of N/e^M."""
    return float(sympy.exp(-sympy.EulerGamma).evalf(20))


def sample_ratios(ms: Sequence[float],
                  config: Optional[SearchConfig] = None) -> Tuple[np.ndarray, np.ndarray]:
    ms = np.asarray(ms, dtype=float)
    ns = np.array([hseries_threshold(float(m), config).n for m in ms], dtype=np.int64)
    return ns, ns / np.exp(ms)


def calibrate_band(lo: float, hi: float, samples: int = 25, digits: int = 7,
                   config: Optional[SearchConfig] = None) -> float:
    ms = np.linspace(lo, hi, samples, endpoint=False)
    ns, ratios = sample_ratios(ms, config)
    scale = 10 ** digits
    ratio = math.ceil(ratios.max() * scale) / scale
    # rounding in e^M * r can still drop a guess just below N
    while np.any(np.floor(np.exp(ms) * ratio) < ns):
        ratio = (round(ratio * scale) + 1) / scale
    return ratio


def calibrate_table(start: float, stop: float, samples: int = 25, digits: int = 7,
                    config: Optional[SearchConfig] = None) -> List[Tuple[float, float, float, float]]:
    """Return ``(lo, hi, shipped, calibrated)`` for each band inside [start, stop)."""
    rows = []
    uppers = [lo for lo, _ in RATIO_BANDS[1:]] + [math.inf]
    for (band_lo, shipped), band_hi in zip(RATIO_BANDS, uppers):
        lo, hi = max(band_lo, start), min(band_hi, stop)
        if lo >= hi:
            continue
        rows.append((lo, hi, shipped, calibrate_band(lo, hi, samples, digits, config)))
    return rows


def plot_ratios(start: float, stop: float, points: int = 200,
                config: Optional[SearchConfig] = None, save: Optional[str] = None) -> None:
    ms = np.linspace(start, stop, points)
    _, ratios = sample_ratios(ms, config)
    shipped = [guess_ratio(m) for m in ms]

    plt.figure(figsize=(10, 5))
    plt.plot(ms, ratios, label="N / e^M", color="blue", marker=".", markersize=3, linewidth=1)
    plt.step(ms, shipped, where="post", label="Guess ratio", color="orange", linewidth=1)
    plt.axhline(asymptotic_ratio(), label="$e^{-\\gamma}$", color="red", linestyle="--")
    plt.title("Harmonic threshold ratio N/e^M")
    plt.xlabel("M")
    plt.ylabel("Ratio")
    plt.legend()
    plt.grid(True, linestyle=":", alpha=0.6)
    plt.tight_layout()
    if save:
        plt.savefig(save)
        plt.close()
    else:
        plt.show()


def main(argv: Optional[List[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Calibrate the N/e^M guess ratios")
    parser.add_argument("--start", type=float, default=2.0, help="Smallest M sampled")
    parser.add_argument("--stop", type=float, default=12.0, help="Largest M sampled (exclusive)")
    parser.add_argument("--samples", type=int, default=25, help="Samples per band")
    parser.add_argument("--digits", type=int, default=7, help="Decimals kept in each ratio")
    parser.add_argument("--plot", action="store_true", help="Plot N/e^M against M")
    parser.add_argument("--save", help="Write the plot to this file instead of showing it")
    args = parser.parse_args(argv)

    print(f"e^(-γ) = {asymptotic_ratio():.10f}\n")
    print(f"{'band':>16}  {'shipped':>10}  {'calibrated':>10}")
    for lo, hi, shipped, calibrated in calibrate_table(args.start, args.stop,
                                                       args.samples, args.digits):
        flag = "" if calibrated <= shipped else "  ⚠️ shipped ratio may guess low"
        print(f"[{lo:6.2f}, {hi:6.2f})  {shipped:10.7f}  {calibrated:10.7f}{flag}")

    if args.plot or args.save:
        print("Displaying plot... (Close the window to finish)" if not args.save
              else f"Writing plot to {args.save}")
        plot_ratios(args.start, args.stop, save=args.save)


if __name__ == "__main__":
    main()
