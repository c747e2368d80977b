"""Display formatting for bridge values.

Every function here is total: bad input renders as ``PLACEHOLDER`` instead of
raising.
"""
import math
from typing import Any, Optional

PLACEHOLDER = "--"
SWITCH_ON = "ON"
SWITCH_OFF = "OFF"


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_finite(value: Any) -> bool:
    # ints past float range are still finite; math.isfinite would overflow on them
    return _is_number(value) and (isinstance(value, int) or math.isfinite(value))


def format_number(value: Any) -> str:
    """Render a number the way the bridge sent it: 25.0 shows as "25"."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def format_duration(seconds) -> str:
    if seconds is None:
        seconds = 0
    if not _is_finite(seconds):
        return PLACEHOLDER
    seconds = int(seconds)
    if seconds < 60:
        return f"{seconds} s"
    minutes, remaining_seconds = divmod(seconds, 60)
    if minutes < 60:
        return f"{minutes} min {remaining_seconds} s"
    hours, remaining_minutes = divmod(minutes, 60)
    if hours < 24:
        return f"{hours} h {remaining_minutes} min"
    days, remaining_hours = divmod(hours, 24)
    return f"{days} d {remaining_hours} h"


def format_age(age_ms: Any) -> str:
    if not _is_finite(age_ms):
        return PLACEHOLDER
    if age_ms < 1000:
        return f"{format_number(age_ms)} ms"
    return f"{int(age_ms // 1000)} s ago"


def format_switch(value: Any) -> str:
    if value is True:
        return SWITCH_ON
    if value is False:
        return SWITCH_OFF
    if _is_number(value):
        # Covers 1 and 0 as well as other raw PWM-ish readings
        return SWITCH_ON if value > 0 else SWITCH_OFF
    return PLACEHOLDER


def format_measurement(value: Any, unit: str, decimals: Optional[int] = 1) -> str:
    if value is None:
        text = PLACEHOLDER
    elif _is_finite(value) and decimals is not None:
        try:
            text = f"{value:.{decimals}f}"
        except OverflowError:
            text = format_number(value)
    else:
        text = format_number(value)
    return f"{text} {unit}"


def format_cooldown(cooldown_ms: Any) -> str:
    if not _is_finite(cooldown_ms):
        return PLACEHOLDER
    # Half-up rounding to whole seconds
    return f"{int((cooldown_ms + 500) // 1000)} s"
