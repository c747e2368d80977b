import asyncio

import httpx

from bridge_console.bridge_client import BridgeClient
from bridge_console.rendering import NO_ALARMS, NO_RECEIPT, WAITING_FOR_DATA
from bridge_console.synchronizer import StateSynchronizer
from bridge_console.view import (
    ACK_CARD,
    ALARM_STATUS,
    BRIDGE_IP,
    BUZZER,
    DATA_AGE,
    FAN,
    GLOBAL_ERROR,
    HUMI,
    LIGHT,
    LUX,
    SENSOR_HINT,
    SOIL,
    STM32_IP,
    TEMP,
    THRESHOLD_HUMI,
    THRESHOLD_INPUTS,
    THRESHOLD_TEMP,
    UPTIME,
    WATER,
    WIFI_STATUS,
)

from conftest import make_state


def make_synchronizer(bridge, view, guard):
    return StateSynchronizer(bridge.client(), view, guard)


def test_poll_renders_every_section(bridge, view, guard):
    sync = make_synchronizer(bridge, view, guard)

    asyncio.run(sync.poll())

    assert view.text(WIFI_STATUS) == "Connected"
    assert view.text(BRIDGE_IP) == "192.168.4.1"
    assert view.text(STM32_IP) == "192.168.4.2"
    assert view.text(UPTIME) == "1 h 2 min"
    assert view.field(SENSOR_HINT).hidden is True
    assert view.text(TEMP) == "24.6 °C"
    assert view.text(HUMI) == "51.0 %"
    assert view.text(SOIL) == "40 %"
    assert view.text(LUX) == "812.4 lx"
    assert view.text(WATER) == "OFF"
    assert view.text(LIGHT) == "ON"
    assert view.text(FAN) == "ON"
    assert view.text(BUZZER) == "OFF"
    assert view.text(DATA_AGE) == "1 s ago"
    assert view.text(ACK_CARD) == NO_RECEIPT
    assert view.field(ACK_CARD).success is False
    assert view.text(THRESHOLD_TEMP) == "30"
    assert view.text(ALARM_STATUS) == "Triggered 0 times\nCooldown: 15 s\nBuzzer pulse: 3000 ms"


def test_missing_latest_data_shows_waiting_hint(view, guard, bridge):
    sync = make_synchronizer(bridge, view, guard)

    sync.apply_snapshot(make_state(latestData=None))

    assert view.field(SENSOR_HINT).hidden is False
    assert view.text(SENSOR_HINT) == WAITING_FOR_DATA
    assert view.text(TEMP) == ""
    assert view.text(WATER) == ""


def test_missing_sensor_fields_fall_back_to_placeholder(view, guard, bridge):
    sync = make_synchronizer(bridge, view, guard)

    sync.apply_snapshot(make_state(latestData={"temp": 20.0}))

    assert view.text(TEMP) == "20.0 °C"
    assert view.text(HUMI) == "-- %"
    assert view.text(WATER) == "--"
    assert view.text(DATA_AGE) == "--"


def test_ok_ack_is_marked_successful(view, guard, bridge):
    sync = make_synchronizer(bridge, view, guard)

    sync.apply_snapshot(make_state(latestAck={"target": "fan", "action": "pulse", "result": "ok", "ageMs": 250}))

    card = view.field(ACK_CARD)
    assert card.success is True
    for expected in ("fan", "pulse", "ok", "250 ms"):
        assert expected in card.text


def test_failed_ack_replaces_previous_one(view, guard, bridge):
    sync = make_synchronizer(bridge, view, guard)
    sync.apply_snapshot(make_state(latestAck={"target": "fan", "action": "on", "result": "ok", "ageMs": 10}))

    sync.apply_snapshot(make_state(latestAck={"target": "water", "action": "off", "result": "busy", "ageMs": 4200}))

    card = view.field(ACK_CARD)
    assert card.success is False
    assert "water" in card.text
    assert "fan" not in card.text
    assert "4 s ago" in card.text


def test_alarm_block_lists_present_fields_in_order(view, guard, bridge):
    sync = make_synchronizer(bridge, view, guard)
    alarm = {"count": 3, "reason": "temp 31.2 > 30.0", "ageMs": 2500, "cooldownMs": 15000, "pulseMs": 3000}

    sync.apply_snapshot(make_state(alarm=alarm))

    assert view.text(ALARM_STATUS).split("\n") == [
        "Triggered 3 times",
        "Last reason: temp 31.2 > 30.0",
        "Last triggered: 2 s ago",
        "Cooldown: 15 s",
        "Buzzer pulse: 3000 ms",
    ]

    sync.apply_snapshot(make_state(alarm=None))
    assert view.text(ALARM_STATUS) == NO_ALARMS


def test_applying_same_snapshot_twice_is_idempotent(view, guard, bridge):
    sync = make_synchronizer(bridge, view, guard)
    state = make_state(latestAck={"target": "fan", "action": "pulse", "result": "ok", "ageMs": 250})

    sync.apply_snapshot(state)
    first = view.snapshot()
    sync.apply_snapshot(state)

    assert view.snapshot() == first


def test_malformed_section_only_degrades_itself(view, guard, bridge):
    sync = make_synchronizer(bridge, view, guard)
    sync.apply_snapshot(make_state())

    sync.apply_snapshot(make_state(
        latestData="garbage",
        uptimeSeconds=7200,
        latestAck={"target": "light", "action": "on", "result": "ok", "ageMs": 5},
    ))

    # Sensor card keeps the last good values
    assert view.text(TEMP) == "24.6 °C"
    assert view.text(UPTIME) == "2 h 0 min"
    assert "light" in view.text(ACK_CARD)


def test_non_object_snapshot_changes_nothing(view, guard, bridge):
    sync = make_synchronizer(bridge, view, guard)
    sync.apply_snapshot(make_state())
    before = view.snapshot()

    sync.apply_snapshot("not json object")

    assert view.snapshot() == before


def test_failed_poll_shows_transient_banner(bridge, view, guard, clock):
    bridge.overrides[("GET", "/api/state")] = httpx.Response(503)
    sync = make_synchronizer(bridge, view, guard)

    asyncio.run(sync.poll())

    banner = view.field(GLOBAL_ERROR)
    assert banner.hidden is False
    assert banner.text == "State refresh failed: STATE 503"

    clock.advance(4.0)
    assert view.field(GLOBAL_ERROR).hidden is False
    clock.advance(1.0)
    assert view.field(GLOBAL_ERROR).hidden is True


def test_unreachable_bridge_shows_banner(view, guard):
    def refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    sync = StateSynchronizer(BridgeClient("http://bridge.test", transport=httpx.MockTransport(refuse)), view, guard)

    asyncio.run(sync.poll())

    assert view.text(GLOBAL_ERROR) == "State refresh failed: connection refused"


def test_poll_does_not_clobber_focused_edit(bridge, view, guard):
    sync = make_synchronizer(bridge, view, guard)
    asyncio.run(sync.poll())
    guard.mark_dirty(THRESHOLD_HUMI, "45")

    bridge.state["thresholds"] = {"temp": 35.0, "humi": 70.0, "soil": None, "lux": 900.0}
    asyncio.run(sync.poll())

    assert [view.text(name) for name in THRESHOLD_INPUTS] == ["30", "45", "20", ""]

    guard.clear_dirty()
    asyncio.run(sync.poll())

    assert [view.text(name) for name in THRESHOLD_INPUTS] == ["35", "70", "", "900"]


def test_render_failure_only_skips_its_own_section(view, guard, bridge, monkeypatch):
    sync = make_synchronizer(bridge, view, guard)
    sync.apply_snapshot(make_state())

    def broken(data):
        raise OverflowError("int too large to convert to float")

    monkeypatch.setattr("bridge_console.synchronizer.render_sensors", broken)
    snapshot = sync.apply_snapshot(make_state(
        uptimeSeconds=7200,
        latestAck={"target": "fan", "action": "on", "result": "ok", "ageMs": 10},
        thresholds={"temp": 28.0, "humi": None, "soil": None, "lux": None},
    ))

    assert "sensors" in snapshot.errors
    assert view.text(TEMP) == "24.6 °C"
    assert view.text(UPTIME) == "2 h 0 min"
    assert "fan" in view.text(ACK_CARD)
    assert view.text(THRESHOLD_TEMP) == "28"
    assert view.text(ALARM_STATUS).startswith("Triggered 0 times")


def test_out_of_range_age_still_renders(view, guard, bridge):
    sync = make_synchronizer(bridge, view, guard)

    snapshot = sync.apply_snapshot(make_state(
        latestData={"temp": 20.0, "ageMs": 10 ** 400},
        latestAck={"target": "fan", "action": "on", "result": "ok", "ageMs": 10},
    ))

    assert snapshot.errors == {}
    assert view.text(DATA_AGE) == f"{10 ** 397} s ago"
    assert view.text(ACK_CARD).startswith("Target: fan")
    assert view.text(THRESHOLD_TEMP) == "30"
