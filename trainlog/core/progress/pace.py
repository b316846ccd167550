"""
Pace derivation.

Pace is minutes per kilometre. It is derived on write from the effective
distance and duration, unless the caller sent one. A caller-supplied pace
is stored as-is, even zero or one that disagrees with distance/duration.
"""

from typing import Optional


def calculate_pace(distance: float, duration: float) -> Optional[float]:
    """Return duration / distance, or None when either is not positive."""
    if distance > 0 and duration > 0:
        return duration / distance
    return None


def derive_pace(
    distance: float,
    duration: float,
    current_pace: Optional[float] = None,
    pace_supplied: bool = False,
) -> Optional[float]:
    """
    Decide the pace to store for an entry about to be written.

    Args:
        distance: Effective distance after the write (km)
        duration: Effective duration after the write (minutes)
        current_pace: Pace the entry carries now: the supplied value when
            `pace_supplied`, otherwise the stored value (None on create)
        pace_supplied: True when the request explicitly set pace

    Returns:
        The pace to persist.
    """
    if pace_supplied:
        return current_pace

    derived = calculate_pace(distance, duration)
    if derived is None:
        return current_pace
    return derived
