import json
import logging
import math
from collections import deque
from typing import Optional

from bridge_console.bridge_client import BridgeClient
from bridge_console.config import MESSAGE_BUFFER_SIZE
from bridge_console.errors import TransportError
from bridge_console.view import MESSAGE_LOG, FieldUpdate, ViewModel

logger = logging.getLogger(__name__)


def _reject_constant(name: str):
    raise ValueError(f"non-standard JSON constant {name}")


def _parse_cursor(header_cursor: Optional[str]) -> Optional[float]:
    if not header_cursor:
        return None
    try:
        value = float(header_cursor.strip())
    except ValueError:
        return None
    if not math.isfinite(value):
        return None
    return value


def display_line(line: str) -> str:
    """Pretty-print a JSON line; anything else is shown verbatim."""
    try:
        parsed = json.loads(line, parse_constant=_reject_constant)
    except (ValueError, RecursionError):
        return line
    return json.dumps(parsed, indent=2, ensure_ascii=False)


class MessageCursorStore:
    """Last-seen message id plus a bounded, oldest-first buffer of display lines."""

    def __init__(self, capacity: int = MESSAGE_BUFFER_SIZE):
        self.capacity = capacity
        self.cursor = 0
        # deque drops from the front once full, i.e. FIFO eviction
        self._buffer: deque[str] = deque(maxlen=capacity)

    @property
    def lines(self) -> list[str]:
        return list(self._buffer)

    @property
    def rendered(self) -> str:
        return "\n".join(self._buffer)

    def ingest(self, raw_body: str, header_cursor: Optional[str]):
        reported = _parse_cursor(header_cursor)
        if reported is not None and reported > self.cursor:
            self.cursor = int(reported) if reported.is_integer() else reported

        if not raw_body or not raw_body.strip():
            return

        for line in raw_body.split("\n"):
            line = line.strip()
            if line:
                self._buffer.append(display_line(line))


class MessagePoller:
    """Fetches log entries newer than the cursor and renders the buffer."""

    def __init__(self, client: BridgeClient, store: MessageCursorStore, view: ViewModel):
        self.client = client
        self.store = store
        self.view = view

    async def poll(self):
        try:
            body, header_cursor = await self.client.get_messages(after=self.store.cursor)
        except TransportError as e:
            self.view.show_error(f"Message refresh failed: {e.message}")
            return

        before = self.store.cursor
        self.store.ingest(body, header_cursor)
        if self.store.cursor != before:
            logger.debug(f"Message cursor advanced {before} -> {self.store.cursor}")
        self.view.apply([FieldUpdate(field=MESSAGE_LOG, text=self.store.rendered)])
