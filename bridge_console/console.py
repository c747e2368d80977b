import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

import httpx

from bridge_console.bridge_client import BridgeClient
from bridge_console.commands import DEFAULT_ACTION, CommandDispatcher
from bridge_console.config import ConsoleConfig
from bridge_console.messages import MessageCursorStore, MessagePoller
from bridge_console.scheduler import PeriodicTask, Scheduler
from bridge_console.synchronizer import StateSynchronizer
from bridge_console.thresholds import ThresholdEditGuard, ThresholdForm
from bridge_console.view import ViewModel

logger = logging.getLogger(__name__)

STATE_TASK = "state-poll"
MESSAGE_TASK = "message-poll"


@dataclass
class ConsoleState:
    """Client-side state shared by the poll loops and UI events."""
    view: ViewModel
    messages: MessageCursorStore
    guard: ThresholdEditGuard

    @classmethod
    def create(cls, config: ConsoleConfig, clock: Optional[Callable[[], float]] = None) -> "ConsoleState":
        view = ViewModel(banner_ttl=config.banner_ttl, clock=clock or time.monotonic)
        return cls(
            view=view,
            messages=MessageCursorStore(capacity=config.message_buffer_size),
            guard=ThresholdEditGuard(view),
        )


class BridgeConsole:
    """Wires the bridge client, the client state and the two poll loops."""

    def __init__(
        self,
        config: ConsoleConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        on_change: Optional[Callable[[ViewModel], Awaitable[None]]] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        self.config = config
        self.client = BridgeClient(config.bridge_url, timeout=config.request_timeout, transport=transport)
        self.state = ConsoleState.create(config, clock)
        self.on_change = on_change

        self.synchronizer = StateSynchronizer(self.client, self.state.view, self.state.guard)
        self.message_poller = MessagePoller(self.client, self.state.messages, self.state.view)
        self.dispatcher = CommandDispatcher(self.client, self.state.view)
        self.threshold_form = ThresholdForm(
            self.client, self.state.guard, self.state.view, notice_ttl=config.threshold_notice_ttl
        )
        self.scheduler = Scheduler(
            PeriodicTask(STATE_TASK, config.state_interval, self.poll_state),
            PeriodicTask(MESSAGE_TASK, config.message_interval, self.poll_messages),
        )
        self.dispatcher.select_action(DEFAULT_ACTION)

    @property
    def view(self) -> ViewModel:
        return self.state.view

    async def notify(self):
        if self.on_change is not None:
            await self.on_change(self.state.view)

    async def poll_state(self):
        await self.synchronizer.poll()
        await self.notify()

    async def poll_messages(self):
        await self.message_poller.poll()
        await self.notify()

    async def start(self):
        if self.config.scheduler_enabled:
            self.scheduler.start()
        logger.info(f"Bridge console started for {self.config.bridge_url}")

    async def stop(self):
        await self.scheduler.stop()
        await self.client.close()
        logger.info("Bridge console stopped")
