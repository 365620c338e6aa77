#!/usr/bin/python3

import math
import sys

import colorama.ansi
import msgspec

from .models import messages as msgtypes
from .timecode import seconds_to_string


class BaseMessageHandler(msgspec.Struct):
    async def handle_message(self, msg: msgtypes.BaseMessage) -> None:
        raise NotImplementedError()


class JSONLMessageHandler(BaseMessageHandler, tag="jsonl"):
    # outputs messages as newline-delimited JSON
    # this is intended for applications that read this tool's standard output
    async def handle_message(self, msg: msgtypes.BaseMessage) -> None:
        print(msgspec.json.encode(msg).decode("utf8"), flush=True)


def _format_seconds(seconds: float) -> str:
    # whole seconds only; the speed can be infinite on the first report
    if not math.isfinite(seconds):
        return "N/A"
    return seconds_to_string(round(seconds))


def _format_speed(speed: float) -> str:
    if not math.isfinite(speed):
        return "N/A"
    return f"{speed:.1f}x"


class ProgressLineMessageHandler(BaseMessageHandler, tag="line"):
    # redraws a single status line in place; other messages are printed above it

    progress_visible: bool = False

    def _end_progress_line(self, file=None) -> None:
        if self.progress_visible:
            print(file=file)
            self.progress_visible = False

    async def handle_message(self, msg: msgtypes.BaseMessage) -> None:
        match msg:
            case msgtypes.ProgressMessage():
                report = msg.report
                print(
                    f"\r{colorama.ansi.clear_line()}"
                    f"progress={_format_seconds(report.current_seconds)}"
                    f"/{_format_seconds(report.total_seconds)} "
                    f"speed={_format_speed(report.speed)} "
                    f"elapsed={_format_seconds(report.elapsed_seconds)} "
                    f"eta={_format_seconds(report.eta)}",
                    end="",
                    flush=True,
                )
                self.progress_visible = True
            case msgtypes.StringMessage():
                self._end_progress_line()
                print(msg.text)
            case msgtypes.CommandMessage():
                self._end_progress_line()
                print("> " + " ".join(msg.argv))
            case msgtypes.PromptMessage():
                self._end_progress_line()
                print(msg.text, end="", file=sys.stderr, flush=True)
            case msgtypes.JobFinishedMessage():
                self._end_progress_line()
                print("ffmpeg process finished.")
            case msgtypes.JobFailedMessage():
                self._end_progress_line(file=sys.stderr)
                for text in msg.output:
                    print(text, end="", file=sys.stderr)
                print(f"ffmpeg process error: {msg.reason}", file=sys.stderr)
            case _:
                pass


CLIMessageHandlers = JSONLMessageHandler | ProgressLineMessageHandler
