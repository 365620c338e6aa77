#!/usr/bin/python3

import asyncio

import msgspec

from ffprogress._status import StatusManager, status_handler
from ffprogress.models import messages
from ffprogress.output import BaseMessageHandler


class CollectingHandler(BaseMessageHandler):
    received: list[messages.BaseMessage] = msgspec.field(default_factory=list)

    async def handle_message(self, msg: messages.BaseMessage) -> None:
        self.received.append(msg)


def test_close_drains_queue():
    handler = CollectingHandler()

    async def _run() -> None:
        status = StatusManager()
        task = asyncio.create_task(status_handler([handler], status))
        status.queue.put_nowait(messages.StringMessage("first"))
        status.queue.put_nowait(messages.JobFinishedMessage())
        status.close()
        await asyncio.wait_for(task, timeout=0.5)

    asyncio.run(_run())
    assert handler.received == [messages.StringMessage("first"), messages.JobFinishedMessage()]


def test_close_wakes_idle_handler():
    async def _run() -> None:
        status = StatusManager()
        task = asyncio.create_task(status_handler([CollectingHandler()], status))
        # let the handler block on the empty queue first
        await asyncio.sleep(0.05)
        status.close()
        await asyncio.wait_for(task, timeout=0.5)

    asyncio.run(_run())
