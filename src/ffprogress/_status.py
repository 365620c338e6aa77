#!/usr/bin/python3

import asyncio
import dataclasses

from .models import messages
from .output import BaseMessageHandler


@dataclasses.dataclass
class StatusManager:
    # holds status messages, then None once the job will not produce any more
    queue: asyncio.Queue[messages.BaseMessage | None]

    def __init__(self):
        self.queue = asyncio.Queue()

    def close(self) -> None:
        self.queue.put_nowait(None)


async def status_handler(
    handlers: list[BaseMessageHandler],
    status: StatusManager,
) -> None:
    while True:
        message = await status.queue.get()
        if message is None:
            return
        for handler in handlers:
            await handler.handle_message(message)
