from typing import Any, Callable, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from bridge_console.errors import PartialDataError


class BridgeModel(BaseModel):
    # The bridge speaks camelCase JSON
    model_config = ConfigDict(populate_by_name=True)


class WifiStatus(BridgeModel):
    connected: bool = False
    ip: Optional[str] = None


class SensorReading(BridgeModel):
    temp: Optional[float] = None
    humi: Optional[float] = None
    soil: Optional[int] = None
    lux: Optional[float] = None
    # Switch states are tri-state, see formatting.format_switch
    water: Any = None
    light: Any = None
    fan: Any = None
    buzzer: Any = None
    age_ms: Optional[int] = Field(None, alias="ageMs")


class CommandAck(BridgeModel):
    target: str = ""
    action: str = ""
    result: str = ""
    age_ms: Optional[int] = Field(None, alias="ageMs")


class ThresholdSet(BridgeModel):
    # None means the channel is disabled
    temp: Optional[float] = None
    humi: Optional[float] = None
    soil: Optional[float] = None
    lux: Optional[float] = None


class AlarmSummary(BridgeModel):
    count: int = 0
    reason: Optional[str] = None
    age_ms: Optional[int] = Field(None, alias="ageMs")
    cooldown_ms: Optional[int] = Field(None, alias="cooldownMs")
    pulse_ms: Optional[int] = Field(None, alias="pulseMs")


def _parse_status(raw: dict) -> dict:
    uptime = raw.get("uptimeSeconds")
    return {
        "wifi": WifiStatus.model_validate(raw.get("wifi") or {}),
        "stm32_reported_ip": raw.get("stm32ReportedIp"),
        "uptime_seconds": 0 if uptime is None else uptime,
    }


def _optional_section(key: str, model: type[BridgeModel], field: str) -> Callable[[dict], dict]:
    def parse(raw: dict) -> dict:
        value = raw.get(key)
        return {field: None if value is None else model.model_validate(value)}
    return parse


def _parse_thresholds(raw: dict) -> dict:
    return {"thresholds": ThresholdSet.model_validate(raw.get("thresholds") or {})}


SNAPSHOT_SECTIONS: dict[str, Callable[[dict], dict]] = {
    "status": _parse_status,
    "sensors": _optional_section("latestData", SensorReading, "latest_data"),
    "ack": _optional_section("latestAck", CommandAck, "latest_ack"),
    "thresholds": _parse_thresholds,
    "alarm": _optional_section("alarm", AlarmSummary, "alarm"),
}


class DeviceSnapshot(BridgeModel):
    wifi: WifiStatus = Field(default_factory=WifiStatus)
    stm32_reported_ip: Optional[str] = Field(None, alias="stm32ReportedIp")
    uptime_seconds: int = Field(0, alias="uptimeSeconds")
    latest_data: Optional[SensorReading] = Field(None, alias="latestData")
    latest_ack: Optional[CommandAck] = Field(None, alias="latestAck")
    thresholds: ThresholdSet = Field(default_factory=ThresholdSet)
    alarm: Optional[AlarmSummary] = None
    # Sections that failed validation, keyed by SNAPSHOT_SECTIONS name
    errors: dict[str, PartialDataError] = Field(default_factory=dict, exclude=True)

    model_config = ConfigDict(populate_by_name=True, arbitrary_types_allowed=True)

    @classmethod
    def from_bridge(cls, raw: Any) -> "DeviceSnapshot":
        """Validate a bridge document section by section.

        A malformed section is recorded in ``errors`` and left at its default
        instead of rejecting the whole document.
        """
        if not isinstance(raw, dict):
            error = PartialDataError("snapshot", f"expected an object, got {type(raw).__name__}")
            return cls(errors={section: error for section in SNAPSHOT_SECTIONS})

        values = {}
        errors = {}
        for section, parse in SNAPSHOT_SECTIONS.items():
            try:
                section_values = parse(raw)
                # Validate the scalar fields too, e.g. a non-string IP
                cls.model_validate(section_values)
            except (PydanticValidationError, TypeError, ValueError, AttributeError) as e:
                errors[section] = PartialDataError(section, str(e))
                continue
            values.update(section_values)
        return cls(**values, errors=errors)


class CommandRequest(BaseModel):
    target: str
    action: str
    time: Optional[Union[int, float]] = None


class CommandReceipt(BridgeModel):
    result: Optional[str] = None
    queued_id: Optional[int] = Field(None, alias="queuedId")


class ThresholdInputEvent(BaseModel):
    field: str
    value: str = ""


class FocusEvent(BaseModel):
    field: Optional[str] = None


class ActionChange(BaseModel):
    action: str
