import logging
import math
from typing import Iterable, Optional

from bridge_console.bridge_client import BridgeClient
from bridge_console.config import THRESHOLD_NOTICE_TTL
from bridge_console.errors import TransportError, ValidationError
from bridge_console.models import DeviceSnapshot
from bridge_console.rendering import apply_section, render_alarm, render_threshold_inputs
from bridge_console.view import (
    THRESHOLD_HINT,
    THRESHOLD_HUMI,
    THRESHOLD_INPUTS,
    THRESHOLD_LUX,
    THRESHOLD_SOIL,
    THRESHOLD_TEMP,
    FieldUpdate,
    ViewModel,
)

logger = logging.getLogger(__name__)

DEFAULT_HINT = "Leave a field empty to disable it; exceeding a threshold sounds the buzzer alarm."
UNSAVED_HINT = "There are unsaved threshold changes."
SAVED_HINT = "Thresholds updated and sent to the device."

# input field -> (payload key, label shown in errors)
THRESHOLD_FIELDS = {
    THRESHOLD_TEMP: ("temp", "Temperature threshold"),
    THRESHOLD_HUMI: ("humi", "Humidity threshold"),
    THRESHOLD_SOIL: ("soil", "Soil threshold"),
    THRESHOLD_LUX: ("lux", "Light threshold"),
}

# Ranges the bridge accepts; anything outside is rejected with a 422
THRESHOLD_RANGES = {
    "temp": (-40.0, 125.0),
    "humi": (0.0, 100.0),
    "soil": (0.0, 100.0),
    "lux": (0.0, 200000.0),
}


def should_accept_server_thresholds(is_dirty: bool, focused_element, tracked_inputs: Iterable) -> bool:
    """False while the user is mid-edit in one of the tracked inputs."""
    return not (is_dirty and focused_element in tracked_inputs)


def read_threshold_input(raw_text: Optional[str], label: str) -> Optional[float]:
    """Parse one threshold input. Empty means disabled (None), never zero."""
    if raw_text is None:
        return None
    raw = raw_text.strip()
    if raw == "":
        return None
    try:
        value = float(raw)
    except ValueError:
        raise ValidationError(label, "please enter a number") from None
    if math.isnan(value):
        raise ValidationError(label, "please enter a number")
    return value


def check_threshold_range(key: str, value: Optional[float], label: str):
    if value is None:
        return
    low, high = THRESHOLD_RANGES[key]
    if not low <= value <= high:
        raise ValidationError(label, f"must be between {low:g} and {high:g}")


class ThresholdEditGuard:
    """Owns the threshold form's dirty flag and focus.

    Server values only reach the inputs through ``apply_server_thresholds``,
    which refuses while the user has unsaved edits in a focused input.
    """

    def __init__(self, view: ViewModel, tracked_inputs: tuple[str, ...] = THRESHOLD_INPUTS):
        self.view = view
        self.tracked_inputs = tracked_inputs
        self.dirty = False
        self.focused: Optional[str] = None
        self.reset_hint()

    def reset_hint(self):
        self.view.apply([FieldUpdate(field=THRESHOLD_HINT, text=DEFAULT_HINT)])

    def _check_tracked(self, field: str):
        if field not in self.tracked_inputs:
            raise ValidationError(field, "not a threshold input")

    def focus(self, field: Optional[str]):
        if field is not None:
            self._check_tracked(field)
        self.focused = field

    def blur(self):
        self.focused = None

    def mark_dirty(self, field: str, value: str):
        """Input event: the user typed into ``field``."""
        self._check_tracked(field)
        self.focused = field
        self.dirty = True
        self.view.apply([
            FieldUpdate(field=field, text=value),
            FieldUpdate(field=THRESHOLD_HINT, text=UNSAVED_HINT),
        ])

    def clear_dirty(self):
        self.dirty = False

    def accepts_server_values(self) -> bool:
        return should_accept_server_thresholds(self.dirty, self.focused, self.tracked_inputs)

    def apply_server_thresholds(self, thresholds) -> bool:
        if not self.accepts_server_values():
            logger.debug(f"Keeping unsaved threshold edits in {self.focused}")
            return False
        self.view.apply(render_threshold_inputs(thresholds))
        self.dirty = False
        self.reset_hint()
        return True

    def reconcile(self, snapshot: DeviceSnapshot):
        """Apply a snapshot's thresholds (guarded) and alarm summary (always)."""
        apply_section(snapshot, "thresholds", lambda: self.apply_server_thresholds(snapshot.thresholds))
        apply_section(snapshot, "alarm", lambda: self.view.apply(render_alarm(snapshot.alarm)))

    def read_form(self) -> dict:
        """Build the POST /api/thresholds payload from the current inputs."""
        payload = {}
        for field, (key, label) in THRESHOLD_FIELDS.items():
            value = read_threshold_input(self.view.text(field), label)
            check_threshold_range(key, value, label)
            payload[key] = value
        return payload


class ThresholdForm:
    def __init__(
        self,
        client: BridgeClient,
        guard: ThresholdEditGuard,
        view: ViewModel,
        notice_ttl: float = THRESHOLD_NOTICE_TTL,
    ):
        self.client = client
        self.guard = guard
        self.view = view
        self.notice_ttl = notice_ttl

    async def submit(self) -> DeviceSnapshot:
        """Send the form; the bridge's echo goes through the normal acceptance path.

        Raises ValidationError or TransportError after showing them in the
        error banner.
        """
        try:
            payload = self.guard.read_form()
            data = await self.client.update_thresholds(payload)
        except (ValidationError, TransportError) as e:
            self.view.show_error(f"Threshold update failed: {e}")
            raise

        logger.info(f"Thresholds updated: {payload}")
        self.guard.clear_dirty()
        snapshot = DeviceSnapshot.from_bridge(data)
        self.guard.reconcile(snapshot)
        self.view.flash(
            FieldUpdate(field=THRESHOLD_HINT, text=SAVED_HINT),
            FieldUpdate(field=THRESHOLD_HINT, text=DEFAULT_HINT),
            self.notice_ttl,
        )
        return snapshot

    async def reload(self) -> DeviceSnapshot:
        """Discard local edits and re-read the thresholds from the bridge."""
        try:
            data = await self.client.get_thresholds()
        except TransportError as e:
            self.view.show_error(f"Threshold reload failed: {e}")
            raise

        self.guard.clear_dirty()
        self.guard.blur()
        snapshot = DeviceSnapshot.from_bridge(data)
        self.guard.reconcile(snapshot)
        return snapshot
