from typing import Any

from bridge_console.bridge_client import BridgeClient
from bridge_console.errors import TransportError
from bridge_console.models import DeviceSnapshot
from bridge_console.rendering import apply_section, render_ack, render_sensors, render_status
from bridge_console.thresholds import ThresholdEditGuard
from bridge_console.view import ViewModel


class StateSynchronizer:
    """Pulls /api/state and reconciles every sub-view independently."""

    def __init__(self, client: BridgeClient, view: ViewModel, guard: ThresholdEditGuard):
        self.client = client
        self.view = view
        self.guard = guard

    async def poll(self):
        try:
            raw = await self.client.get_state()
        except TransportError as e:
            self.view.show_error(f"State refresh failed: {e.message}")
            return
        self.apply_snapshot(raw)

    def apply_snapshot(self, raw: Any) -> DeviceSnapshot:
        snapshot = DeviceSnapshot.from_bridge(raw)
        apply_section(snapshot, "status", lambda: self.view.apply(render_status(
            snapshot.wifi, snapshot.stm32_reported_ip, snapshot.uptime_seconds
        )))
        apply_section(snapshot, "sensors", lambda: self.view.apply(render_sensors(snapshot.latest_data)))
        apply_section(snapshot, "ack", lambda: self.view.apply(render_ack(snapshot.latest_ack)))
        self.guard.reconcile(snapshot)
        return snapshot
