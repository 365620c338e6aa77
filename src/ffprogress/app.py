#!/usr/bin/python3


import argparse
import asyncio
import importlib.metadata
import pathlib
import sys
import typing

import colorama
import msgspec

from ._status import StatusManager, status_handler
from .metrics import ProgressTimer
from .models import messages
from .output import BaseMessageHandler, CLIMessageHandlers
from .progress import AbnormalTermination, ProgressEvent, attach_process, attach_stream
from .timecode import parse_to_seconds

colorama.just_fix_windows_console()

_DESCRIPTION = """\
A progress monitor for FFmpeg operations.

Either run ffmpeg through this tool, passing ffmpeg's arguments after this tool's own options,
or pipe ffmpeg's diagnostic output into it.  ffmpeg writes progress to standard error, so it
must be redirected (2>&1) when piping.
"""

_EPILOG = """\
examples:
  # as drop-in replacement for ffmpeg:
  ffmpeg-progress -i input.mp4 -c:v libx264 output.mp4

  # pipe from ffmpeg output:
  ffmpeg -i input.mp4 -c:v libx264 output.mp4 2>&1 | ffmpeg-progress
"""

# options that take a value; all other options of this tool are flags
_VALUE_OPTIONS = ("--progress-style", "--ffmpeg-path")
_FLAG_OPTIONS = ("-h", "--help", "--version")

# ffmpeg asks before replacing an existing output file
_OVERWRITE_PROMPT = "Overwrite?"


def _split_argv(argv: list[str]) -> tuple[list[str], list[str]]:
    """
    Splits the command line into this tool's options and ffmpeg's arguments.

    Options are only recognized at the start of the command line, since ffmpeg's own options
    can't be told apart from ours otherwise.  A "--" ends the options explicitly.
    """
    own: list[str] = []
    rest = list(argv)
    while rest:
        arg = rest[0]
        if arg == "--":
            rest.pop(0)
            break
        name, _, _ = arg.partition("=")
        if arg in _FLAG_OPTIONS or (name in _VALUE_OPTIONS and "=" in arg):
            own.append(rest.pop(0))
        elif arg in _VALUE_OPTIONS:
            own.extend(rest[:2])
            del rest[:2]
        else:
            break
    return own, rest


def _version() -> str:
    try:
        return importlib.metadata.version("ffmpeg-progress")
    except importlib.metadata.PackageNotFoundError:
        return "unknown"


class _JobReporter:
    # translates parser callbacks into status messages

    def __init__(self, queue: asyncio.Queue):
        self.queue = queue
        self.timer = ProgressTimer()
        self.output: list[str] = []

    def on_chunk(self, chunk: bytes) -> None:
        # prompts may share a chunk with recognized output
        text = chunk.decode(errors="replace")
        if _OVERWRITE_PROMPT in text:
            self.queue.put_nowait(messages.PromptMessage(text))

    def on_data(self, chunk: bytes) -> None:
        text = chunk.decode(errors="replace")
        if _OVERWRITE_PROMPT not in text:
            self.output.append(text)

    def on_duration(self, duration: str) -> None:
        self.queue.put_nowait(messages.DurationMessage(duration, parse_to_seconds(duration)))

    def on_progress(self, event: ProgressEvent) -> None:
        self.queue.put_nowait(messages.ProgressMessage(event.time, self.timer.report(event)))


async def _run_wrapped(args: "ProgressCommand", queue: asyncio.Queue) -> bool:
    program = str(args.ffmpeg_path) if args.ffmpeg_path else "ffmpeg"
    queue.put_nowait(messages.CommandMessage([program, *args.ffmpeg_args]))

    reporter = _JobReporter(queue)
    try:
        # standard input stays attached to the terminal so ffmpeg prompts can be answered
        proc = await asyncio.create_subprocess_exec(
            program,
            *args.ffmpeg_args,
            stderr=asyncio.subprocess.PIPE,
        )
    except FileNotFoundError:
        queue.put_nowait(messages.JobFailedMessage(f"{program} not found"))
        return False
    reporter.timer.start()

    try:
        await attach_process(
            proc,
            on_stderr=reporter.on_data,
            on_chunk=reporter.on_chunk,
            on_duration=reporter.on_duration,
            on_progress=reporter.on_progress,
        )
    except AbnormalTermination as exc:
        queue.put_nowait(
            messages.JobFailedMessage(
                str(exc),
                exit_code=exc.code,
                signal=exc.signal,
                output=reporter.output,
            )
        )
        return False
    queue.put_nowait(messages.JobFinishedMessage())
    return True


async def _open_stdin() -> asyncio.StreamReader:
    loop = asyncio.get_running_loop()
    reader = asyncio.StreamReader()
    await loop.connect_read_pipe(lambda: asyncio.StreamReaderProtocol(reader), sys.stdin.buffer)
    return reader


async def _run_piped(queue: asyncio.Queue) -> bool:
    queue.put_nowait(messages.StringMessage("reading ffmpeg output from pipe..."))
    reporter = _JobReporter(queue)
    await attach_stream(
        await _open_stdin(),
        on_data=reporter.on_data,
        on_chunk=reporter.on_chunk,
        on_duration=reporter.on_duration,
        on_progress=reporter.on_progress,
    )
    queue.put_nowait(messages.StringMessage("end of ffmpeg output."))
    return True


async def _run(args: "ProgressCommand") -> bool:
    # prevent usage if we're running on an event loop that doesn't support the features we need
    if sys.platform == "win32" and isinstance(
        asyncio.get_running_loop(), asyncio.SelectorEventLoop
    ):
        raise RuntimeError(
            "Cannot use ffmpeg-progress with SelectorEventLoop as the "
            "running event loop on Windows as it does not support subprocesses"
        )

    status = StatusManager()

    # hold a reference to the output handler so it doesn't get GC'd until we're out of scope
    jobs = {asyncio.create_task(status_handler(args.handlers, status))}

    try:
        if args.ffmpeg_args:
            return await _run_wrapped(args, status.queue)
        return await _run_piped(status.queue)
    finally:
        status.close()
        await asyncio.gather(*jobs)


class ProgressCommand(msgspec.Struct, kw_only=True):
    ffmpeg_args: list[str] = msgspec.field(default_factory=list)
    ffmpeg_path: pathlib.Path | None = None
    handlers: list[BaseMessageHandler] = msgspec.field(default_factory=list)

    async def async_run(self) -> bool:
        return await _run(self)

    def run(self) -> bool:
        return asyncio.run(_run(self))


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="ffmpeg-progress",
        usage="%(prog)s [options] [--] [ffmpeg-args ...]",
        description=_DESCRIPTION,
        epilog=_EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {_version()}")
    parser.add_argument(
        "--progress-style",
        type=str,
        choices=[
            handler.tag
            for handler in msgspec.inspect.multi_type_info(typing.get_args(CLIMessageHandlers))
            if isinstance(handler, msgspec.inspect.StructType)
        ],
        default="line",
        help="Style to use for displaying progress results",
    )
    parser.add_argument(
        "--ffmpeg-path",
        type=pathlib.Path,
        help="Path to ffmpeg binary, if there isn't one you want to use in your PATH",
    )

    own_args, ffmpeg_args = _split_argv(sys.argv[1:] if argv is None else argv)
    args = parser.parse_args(own_args)

    handler = msgspec.convert({"type": args.progress_style}, CLIMessageHandlers)

    command = msgspec.convert({**vars(args), "ffmpeg_args": ffmpeg_args}, type=ProgressCommand)
    command.handlers.append(handler)
    if not command.run():
        sys.exit(1)


if __name__ == "__main__":
    main()
