"""Renderers from bridge models to view field updates."""
import logging
import math
from typing import Any, Callable, Optional

from bridge_console.errors import PartialDataError
from bridge_console.formatting import (
    format_age,
    format_cooldown,
    format_duration,
    format_measurement,
    format_number,
    format_switch,
)
from bridge_console.models import (
    AlarmSummary,
    CommandAck,
    DeviceSnapshot,
    SensorReading,
    ThresholdSet,
    WifiStatus,
)
from bridge_console import view

logger = logging.getLogger(__name__)

WAITING_FOR_DATA = "Waiting for the STM32 to upload data..."
NO_RECEIPT = "No receipt yet."
NO_ALARMS = "No alarms recorded."


def render_status(wifi: WifiStatus, stm32_ip: Optional[str], uptime_seconds: int) -> list[view.FieldUpdate]:
    return [
        view.FieldUpdate(field=view.WIFI_STATUS, text="Connected" if wifi.connected else "Disconnected"),
        view.FieldUpdate(field=view.BRIDGE_IP, text=wifi.ip or "unknown"),
        view.FieldUpdate(field=view.STM32_IP, text=stm32_ip or "not reported"),
        view.FieldUpdate(field=view.UPTIME, text=format_duration(uptime_seconds)),
    ]


def render_sensors(data: Optional[SensorReading]) -> list[view.FieldUpdate]:
    if data is None:
        # Leave the last readings in place behind the hint
        return [view.FieldUpdate(field=view.SENSOR_HINT, text=WAITING_FOR_DATA, hidden=False)]

    return [
        view.FieldUpdate(field=view.SENSOR_HINT, hidden=True),
        view.FieldUpdate(field=view.TEMP, text=format_measurement(data.temp, "°C")),
        view.FieldUpdate(field=view.HUMI, text=format_measurement(data.humi, "%")),
        view.FieldUpdate(field=view.SOIL, text=format_measurement(data.soil, "%", decimals=None)),
        view.FieldUpdate(field=view.LUX, text=format_measurement(data.lux, "lx")),
        view.FieldUpdate(field=view.WATER, text=format_switch(data.water)),
        view.FieldUpdate(field=view.LIGHT, text=format_switch(data.light)),
        view.FieldUpdate(field=view.FAN, text=format_switch(data.fan)),
        view.FieldUpdate(field=view.BUZZER, text=format_switch(data.buzzer)),
        view.FieldUpdate(field=view.DATA_AGE, text=format_age(data.age_ms)),
    ]


def render_ack(ack: Optional[CommandAck]) -> list[view.FieldUpdate]:
    if ack is None:
        return [view.FieldUpdate(field=view.ACK_CARD, text=NO_RECEIPT, success=False)]

    text = "\n".join([
        f"Target: {ack.target}",
        f"Action: {ack.action}",
        f"Result: {ack.result}",
        f"Latency: {format_age(ack.age_ms)}",
    ])
    return [view.FieldUpdate(field=view.ACK_CARD, text=text, success=ack.result == "ok")]


def render_alarm(alarm: Optional[AlarmSummary]) -> list[view.FieldUpdate]:
    if alarm is None:
        return [view.FieldUpdate(field=view.ALARM_STATUS, text=NO_ALARMS)]

    parts = [f"Triggered {alarm.count} times"]
    if alarm.reason:
        parts.append(f"Last reason: {alarm.reason}")
    if alarm.age_ms is not None:
        parts.append(f"Last triggered: {format_age(alarm.age_ms)}")
    if alarm.cooldown_ms:
        parts.append(f"Cooldown: {format_cooldown(alarm.cooldown_ms)}")
    if alarm.pulse_ms:
        parts.append(f"Buzzer pulse: {alarm.pulse_ms} ms")
    return [view.FieldUpdate(field=view.ALARM_STATUS, text="\n".join(parts))]


def threshold_text(value: Optional[float]) -> str:
    if value is None or math.isnan(value):
        return ""
    return format_number(value)


def render_threshold_inputs(thresholds: ThresholdSet) -> list[view.FieldUpdate]:
    return [
        view.FieldUpdate(field=view.THRESHOLD_TEMP, text=threshold_text(thresholds.temp)),
        view.FieldUpdate(field=view.THRESHOLD_HUMI, text=threshold_text(thresholds.humi)),
        view.FieldUpdate(field=view.THRESHOLD_SOIL, text=threshold_text(thresholds.soil)),
        view.FieldUpdate(field=view.THRESHOLD_LUX, text=threshold_text(thresholds.lux)),
    ]


def apply_section(snapshot: DeviceSnapshot, section: str, apply: Callable[[], Any]) -> bool:
    """Render and apply one snapshot section.

    A section that failed validation is skipped, and one whose rendering
    raises is recorded in ``snapshot.errors``; either way the other sections
    still go through.
    """
    if section not in snapshot.errors:
        try:
            apply()
            return True
        except Exception as e:
            snapshot.errors[section] = PartialDataError(section, f"{type(e).__name__}: {e}")
    logger.debug(f"Partial snapshot, {section} left as is: {snapshot.errors[section]}")
    return False
