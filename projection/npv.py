"""Net present value over a bounded window.

    NPV = sum( amount_t / (1+r)^(t - window_start + 1) )  for t in window

The first year of the window is discounted one full period.
"""

from __future__ import annotations

from typing import Mapping

from projection.errors import CalcError, check_rate
from projection.formulas import discount_factor


def calculate_npv(amounts: Mapping[int, float], discount_rate: float,
                  window: range) -> float | CalcError:
    """Discounted sum of amounts over window. Empty window gives 0.0.

    Years in the window without an amount count as zero.
    """
    err = check_rate(discount_rate, "discount_rate")
    if err:
        return err
    if len(window) == 0:
        return 0.0
    start = window.start
    return sum(
        amounts.get(t, 0.0) / discount_factor(discount_rate, t - start + 1)
        for t in window
    )
