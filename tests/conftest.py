import json
from urllib.parse import parse_qs

import httpx
import pytest

from bridge_console.bridge_client import BridgeClient
from bridge_console.thresholds import ThresholdEditGuard
from bridge_console.view import ViewModel


def make_state(**overrides):
    state = {
        "wifi": {"connected": True, "ip": "192.168.4.1"},
        "stm32ReportedIp": "192.168.4.2",
        "uptimeSeconds": 3725,
        "latestData": {
            "temp": 24.56,
            "humi": 51.0,
            "soil": 40,
            "lux": 812.4,
            "water": 0,
            "light": 1,
            "fan": True,
            "buzzer": False,
            "ageMs": 1500,
        },
        "latestAck": None,
        "thresholds": {"temp": 30.0, "humi": None, "soil": 20.0, "lux": None},
        "alarm": {"count": 0, "reason": None, "ageMs": None, "cooldownMs": 15000, "pulseMs": 3000},
    }
    state.update(overrides)
    return state


class FakeBridge:
    """In-memory stand-in for the bridge's HTTP API."""

    def __init__(self):
        self.state = make_state()
        self.messages: list[tuple[int, str]] = []
        self.last_message_id = 0
        self.requests: list[httpx.Request] = []
        # (method, path) -> httpx.Response overriding the normal handler
        self.overrides: dict[tuple[str, str], httpx.Response] = {}

    def add_message(self, line: str) -> int:
        self.last_message_id += 1
        self.messages.append((self.last_message_id, line))
        return self.last_message_id

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def client(self) -> BridgeClient:
        return BridgeClient("http://bridge.test", transport=self.transport())

    def requests_to(self, method: str, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == method and r.url.path == path]

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = (request.method, request.url.path)
        if key in self.overrides:
            return self.overrides[key]

        if key == ("GET", "/api/state"):
            return httpx.Response(200, json=self.state)
        if key == ("GET", "/api/messages"):
            after = int(parse_qs(request.url.query.decode()).get("after", ["0"])[0])
            body = "".join(f"{line}\n" for message_id, line in self.messages if message_id > after)
            return httpx.Response(
                200,
                text=body,
                headers={"X-Last-Message-Id": str(self.last_message_id)},
            )
        if key == ("POST", "/api/cmd"):
            payload = json.loads(request.content)
            queued_id = self.add_message(json.dumps({**payload, "type": "cmd"}))
            return httpx.Response(200, json={"result": "sent", "queuedId": queued_id})
        if key == ("GET", "/api/thresholds"):
            return httpx.Response(200, json={"ok": True, "thresholds": self.state["thresholds"], "alarm": self.state["alarm"]})
        if key == ("POST", "/api/thresholds"):
            self.state["thresholds"] = json.loads(request.content)
            return httpx.Response(200, json={"ok": True, "thresholds": self.state["thresholds"], "alarm": self.state["alarm"]})
        return httpx.Response(404, text="Not found")


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


@pytest.fixture
def bridge():
    return FakeBridge()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def view(clock):
    return ViewModel(banner_ttl=5.0, clock=clock)


@pytest.fixture
def guard(view):
    return ThresholdEditGuard(view)
