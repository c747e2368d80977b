import logging
import math
from typing import Optional

from bridge_console.bridge_client import BridgeClient
from bridge_console.errors import TransportError, ValidationError
from bridge_console.models import CommandReceipt
from bridge_console.view import COMMAND_HINT, TIME_WRAPPER, FieldUpdate, ViewModel

logger = logging.getLogger(__name__)

TARGETS = ("water", "light", "fan", "buzzer")
ACTIONS = ("on", "off", "pulse")
DEFAULT_ACTION = "on"
MAX_PULSE_MS = 10000


def time_field_visible(action: str) -> bool:
    return action == "pulse"


def build_command_payload(target: str, action: str, time_ms=None) -> dict:
    """``time`` is only sent for pulses; a leftover value is dropped otherwise."""
    payload = {"target": target, "action": action}
    if action == "pulse":
        payload["time"] = time_ms
    return payload


def validate_command(payload: dict):
    if payload["target"] not in TARGETS:
        raise ValidationError("target", f"unknown target {payload['target']!r}")
    if payload["action"] not in ACTIONS:
        raise ValidationError("action", f"unknown action {payload['action']!r}")
    if payload["action"] != "pulse":
        return
    time_ms = payload.get("time")
    if time_ms is None or isinstance(time_ms, bool) or not isinstance(time_ms, (int, float)):
        raise ValidationError("time", "pulse needs a duration in ms")
    if math.isnan(time_ms) or not 1 <= time_ms <= MAX_PULSE_MS:
        raise ValidationError("time", f"must be between 1 and {MAX_PULSE_MS} ms")


class CommandDispatcher:
    def __init__(self, client: BridgeClient, view: ViewModel):
        self.client = client
        self.view = view

    def select_action(self, action: str):
        """Action selector changed; the pulse time field follows it."""
        self.view.apply([FieldUpdate(field=TIME_WRAPPER, hidden=not time_field_visible(action))])

    async def submit(self, target: str, action: str, pulse_time_ms: Optional[float] = None) -> CommandReceipt:
        """Queue a command on the bridge.

        Nothing in the sensor or ack views changes here; the outcome shows up
        in a later state poll.
        """
        payload = build_command_payload(target, action, pulse_time_ms)
        try:
            validate_command(payload)
            receipt = await self.client.send_command(payload)
        except (ValidationError, TransportError) as e:
            self.view.show_error(f"Command failed: {e}")
            raise

        queued = receipt.queued_id if receipt.queued_id is not None else "unknown"
        logger.info(f"Command {target}/{action} queued as message {queued}")
        self.view.apply([FieldUpdate(field=COMMAND_HINT, text=f"Command sent, message id {queued}")])
        return receipt
