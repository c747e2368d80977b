"""Toolkit-independent view model.

Renderers produce lists of ``FieldUpdate``; ``ViewModel.apply`` folds them
into the current field state. A UI (the bundled WebSocket feed or anything
else) only ever reads ``ViewModel.snapshot()``.
"""
import logging
import time
from typing import Callable, Iterable, Optional

from pydantic import BaseModel

from bridge_console.config import BANNER_TTL

logger = logging.getLogger(__name__)

# Status card
WIFI_STATUS = "wifi_status"
BRIDGE_IP = "bridge_ip"
STM32_IP = "stm32_ip"
UPTIME = "uptime"

# Sensor card
SENSOR_HINT = "sensor_hint"
TEMP = "temp"
HUMI = "humi"
SOIL = "soil"
LUX = "lux"
WATER = "water"
LIGHT = "light"
FAN = "fan"
BUZZER = "buzzer"
DATA_AGE = "data_age"
SENSOR_FIELDS = (TEMP, HUMI, SOIL, LUX, WATER, LIGHT, FAN, BUZZER, DATA_AGE)

ACK_CARD = "ack_card"
MESSAGE_LOG = "message_log"

# Command form
COMMAND_HINT = "command_hint"
TIME_WRAPPER = "time_wrapper"

# Threshold form
THRESHOLD_TEMP = "threshold_temp"
THRESHOLD_HUMI = "threshold_humi"
THRESHOLD_SOIL = "threshold_soil"
THRESHOLD_LUX = "threshold_lux"
THRESHOLD_INPUTS = (THRESHOLD_TEMP, THRESHOLD_HUMI, THRESHOLD_SOIL, THRESHOLD_LUX)
THRESHOLD_HINT = "threshold_hint"
ALARM_STATUS = "alarm_status"

GLOBAL_ERROR = "global_error"

ALL_FIELDS = (
    WIFI_STATUS, BRIDGE_IP, STM32_IP, UPTIME,
    SENSOR_HINT, *SENSOR_FIELDS,
    ACK_CARD, MESSAGE_LOG,
    COMMAND_HINT, TIME_WRAPPER,
    *THRESHOLD_INPUTS, THRESHOLD_HINT, ALARM_STATUS,
    GLOBAL_ERROR,
)


class ViewField(BaseModel):
    text: str = ""
    hidden: bool = False
    success: bool = False


class FieldUpdate(BaseModel):
    """Assignment to one field; attributes left as None are not touched."""
    field: str
    text: Optional[str] = None
    hidden: Optional[bool] = None
    success: Optional[bool] = None


class ViewModel:
    def __init__(self, banner_ttl: float = BANNER_TTL, clock: Callable[[], float] = time.monotonic):
        self.banner_ttl = banner_ttl
        self._clock = clock
        self.fields: dict[str, ViewField] = {name: ViewField() for name in ALL_FIELDS}
        self.fields[GLOBAL_ERROR].hidden = True
        # field -> (deadline, update applied once the deadline passes)
        self._reverts: dict[str, tuple[float, FieldUpdate]] = {}
        self.version = 0

    def apply(self, updates: Iterable[FieldUpdate]):
        self._expire()
        changed = False
        for update in updates:
            field = self.fields.get(update.field)
            if field is None:
                logger.warning(f"Ignoring update for unknown view field {update.field!r}")
                continue
            # An explicit write supersedes any pending timed revert
            self._reverts.pop(update.field, None)
            changed = self._assign(field, update) or changed
        if changed:
            self.version += 1

    def flash(self, update: FieldUpdate, revert: FieldUpdate, ttl: float):
        """Apply ``update`` now and ``revert`` once ``ttl`` seconds have passed."""
        self.apply([update])
        self._reverts[update.field] = (self._clock() + ttl, revert)

    def show_error(self, message: str):
        logger.warning(message)
        self.flash(
            FieldUpdate(field=GLOBAL_ERROR, text=message, hidden=False),
            FieldUpdate(field=GLOBAL_ERROR, hidden=True),
            self.banner_ttl,
        )

    def field(self, name: str) -> ViewField:
        self._expire()
        return self.fields[name]

    def text(self, name: str) -> str:
        return self.field(name).text

    def snapshot(self) -> dict:
        self._expire()
        return {
            "version": self.version,
            "fields": {name: field.model_dump() for name, field in self.fields.items()},
        }

    def _assign(self, field: ViewField, update: FieldUpdate) -> bool:
        changed = False
        for attr in ("text", "hidden", "success"):
            value = getattr(update, attr)
            if value is not None and getattr(field, attr) != value:
                setattr(field, attr, value)
                changed = True
        return changed

    def _expire(self):
        now = self._clock()
        due = [name for name, (deadline, _) in self._reverts.items() if deadline <= now]
        for name in due:
            _, revert = self._reverts.pop(name)
            if self._assign(self.fields[name], revert):
                self.version += 1
