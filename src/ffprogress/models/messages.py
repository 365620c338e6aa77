#!/usr/bin/python3

import msgspec

from ..metrics import ProgressReport


class BaseMessage(msgspec.Struct, tag=True):
    pass


class StringMessage(BaseMessage, tag="string-message"):
    # other properly-typed message structs should be used over this
    text: str


class CommandMessage(BaseMessage, tag="command"):
    # the ffmpeg invocation being wrapped, echoed before it starts
    argv: list[str]


class DurationMessage(BaseMessage, tag="duration"):
    duration: str
    seconds: float


class ProgressMessage(BaseMessage, tag="progress"):
    time: str
    report: ProgressReport


class PromptMessage(BaseMessage, tag="prompt"):
    """
    ffmpeg is waiting for input on the terminal (e.g. "File 'out.mp4' already exists.
    Overwrite? [y/N]").  This needs to be shown to the user immediately.
    """

    text: str


class JobFinishedMessage(BaseMessage, tag="job-finished"):
    pass


class JobFailedMessage(BaseMessage, tag="job-failed"):
    reason: str

    exit_code: int | None = None
    signal: str | None = None

    output: list[str] = msgspec.field(default_factory=list)
    """
    Unrecognized diagnostic output received from ffmpeg, in order.  This usually contains the
    error that caused the failure.
    """
