"""Turn (duration, stability bound) into a round step count.

Step counts are restricted to powers of ten and 5^i times a power of ten
(i = 1..5), so runs with slightly different stability bounds usually land on
the same plan and counts read cleanly in logs.
"""
from __future__ import annotations

import math

from .errors import InvalidArgument
from .types import StepPlan

MAX_FIVE_POWER = 5
MAX_RAW_STEPS = 1e18


def _ceil_log10(x: float) -> int:
    """Smallest integer k with 10**k >= x, robust to log10 rounding."""
    k = math.ceil(math.log10(x))
    if 10.0**k < x:
        k += 1
    elif 10.0 ** (k - 1) >= x:
        k -= 1
    return k


def _pow10_at_least_one(k: int) -> int:
    return 10**k if k > 0 else 1


def candidate_counts(raw_steps: float) -> list[int]:
    """Every round candidate for ``raw_steps``; the plan takes the minimum."""
    out = [_pow10_at_least_one(_ceil_log10(raw_steps))]
    for i in range(1, MAX_FIVE_POWER + 1):
        five = 5**i
        out.append(five * _pow10_at_least_one(_ceil_log10(raw_steps / five)))
    return out


def quantize(duration: float, max_stable_step: float) -> StepPlan:
    duration = float(duration)
    max_stable_step = float(max_stable_step)
    if not (math.isfinite(duration) and duration > 0.0):
        raise InvalidArgument(f"duration must be positive and finite, got {duration}")
    if not (math.isfinite(max_stable_step) and max_stable_step > 0.0):
        raise InvalidArgument(f"max_stable_step must be positive and finite, got {max_stable_step}")
    raw = duration / max_stable_step
    if raw > MAX_RAW_STEPS:
        raise InvalidArgument(f"duration / max_stable_step = {raw:g} exceeds {MAX_RAW_STEPS:g}")

    # raw underflows to 0 when the duration is negligible against the bound
    steps = 1 if raw == 0.0 else min(candidate_counts(raw))
    return StepPlan(
        step_count=steps,
        step_size=duration / steps,
        duration=duration,
        max_stable_step=max_stable_step,
    )
