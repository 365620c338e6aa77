#!/usr/bin/python3

import asyncio
import contextlib
import dataclasses
import pathlib
import re
import signal
from typing import Callable, Protocol

from .metadata import DURATION_RE
from .timecode import TIMECODE_PATTERN, parse_to_seconds

# number of bytes requested from a stream per read; chunks may be shorter
CHUNK_SIZE = 4096

# e.g. "frame=  240 fps= 60 q=28.0 size=     512kB time=00:00:04.00 bitrate=1048.6kbits/s speed=2.01x"
# ffmpeg separates successive reports with a carriage return, so they're matched line-by-line
PROGRESS_RE = re.compile(rf"frame=\s*\d+\s+fps=[^\r\n]*?\stime=({TIMECODE_PATTERN})\s")


class AbnormalTermination(RuntimeError):
    """
    Raised once a process finishes with a non-zero exit code or was killed by a signal.

    Callbacks invoked for output received before the exit are not undone.
    """

    def __init__(self, code: int | None, signal: str | None = None):
        super().__init__(f"ffmpeg exited abnormally, exit code: {code}, signal: {signal}")
        self.code = code
        self.signal = signal

    @classmethod
    def from_returncode(cls, returncode: int) -> "AbnormalTermination":
        # asyncio reports termination by signal N as a return code of -N
        if returncode < 0:
            try:
                return cls(None, signal.Signals(-returncode).name)
            except ValueError:
                return cls(None, str(-returncode))
        return cls(returncode)


@dataclasses.dataclass(frozen=True)
class ProgressEvent:
    """
    A single progress report recognized in ffmpeg output.

    ``total_seconds`` is 0 until a duration has been seen on the stream.
    """

    delta_seconds: float
    current_seconds: float
    total_seconds: float

    # raw time codes as written by ffmpeg
    time: str
    duration: str

    # requests termination of the job; output already in flight may still be delivered
    cancel: Callable[[], None]


class _ChunkReader(Protocol):
    async def read(self, n: int = -1) -> bytes: ...


class ProgressParser:
    """
    Incrementally recognizes duration declarations and progress lines in chunks of ffmpeg
    diagnostic output.

    Each chunk is matched on its own.  A line that is split across two chunks is not matched
    in either of them, so a progress report straddling a chunk boundary is skipped rather than
    reported with a truncated time.  Reports are frequent enough that this is not noticeable.
    """

    def __init__(
        self,
        cancel: Callable[[], None],
        on_data: Callable[[bytes], None] | None = None,
        on_duration: Callable[[str], None] | None = None,
        on_time: Callable[[str], None] | None = None,
        on_progress: Callable[[ProgressEvent], None] | None = None,
        on_chunk: Callable[[bytes], None] | None = None,
    ):
        self.cancel = cancel
        self.on_data = on_data
        self.on_duration = on_duration
        self.on_time = on_time
        self.on_progress = on_progress
        self.on_chunk = on_chunk

        self.duration = ""
        self.total_seconds = 0.0
        self.last_seconds = 0.0

    def feed(self, chunk: bytes) -> None:
        # every chunk, recognized or not; e.g. for prompts that share a chunk with a duration
        if self.on_chunk:
            self.on_chunk(chunk)

        text = chunk.decode(errors="replace")
        recognized = False

        for match in DURATION_RE.finditer(text):
            recognized = True
            self.duration = match.group(1)
            self.total_seconds = parse_to_seconds(self.duration)
            if self.on_duration:
                self.on_duration(self.duration)

        for match in PROGRESS_RE.finditer(text):
            recognized = True
            time = match.group(1)
            if self.on_time:
                self.on_time(time)
            current_seconds = parse_to_seconds(time)
            delta_seconds = current_seconds - self.last_seconds
            self.last_seconds = current_seconds
            if self.on_progress:
                self.on_progress(
                    ProgressEvent(
                        delta_seconds=delta_seconds,
                        current_seconds=current_seconds,
                        total_seconds=self.total_seconds,
                        time=time,
                        duration=self.duration,
                        cancel=self.cancel,
                    )
                )

        if not recognized and self.on_data:
            self.on_data(chunk)


async def _pump(reader: _ChunkReader, callback: Callable[[bytes], None]) -> None:
    while True:
        chunk = await reader.read(CHUNK_SIZE)
        if not chunk:
            return
        callback(chunk)


async def attach_process(
    proc: asyncio.subprocess.Process,
    *,
    on_stdout: Callable[[bytes], None] | None = None,
    on_stderr: Callable[[bytes], None] | None = None,
    on_chunk: Callable[[bytes], None] | None = None,
    on_duration: Callable[[str], None] | None = None,
    on_time: Callable[[str], None] | None = None,
    on_progress: Callable[[ProgressEvent], None] | None = None,
) -> None:
    """
    Reports progress of a running ffmpeg process until it exits.

    The process must have been started with ``stderr=asyncio.subprocess.PIPE``.  Standard
    output is passed through to ``on_stdout`` untouched if it is also piped.  Unrecognized
    diagnostic output is passed to ``on_stderr``; ``on_chunk`` receives all of it.

    Raises AbnormalTermination if the process does not exit successfully.
    """
    if not proc.stderr:
        raise ValueError("Process standard error must be piped to report progress")

    def cancel() -> None:
        # the process may have exited on its own already
        with contextlib.suppress(ProcessLookupError):
            proc.kill()

    parser = ProgressParser(
        cancel,
        on_data=on_stderr,
        on_duration=on_duration,
        on_time=on_time,
        on_progress=on_progress,
        on_chunk=on_chunk,
    )

    pumps = [_pump(proc.stderr, parser.feed)]
    if proc.stdout:
        # drain standard output even without a consumer so the process never blocks on it
        pumps.append(_pump(proc.stdout, on_stdout or (lambda chunk: None)))
    try:
        await asyncio.gather(*pumps)
    except BaseException:
        # kill ffmpeg if a callback raised or we were cancelled
        cancel()
        raise

    returncode = await proc.wait()
    if returncode != 0:
        raise AbnormalTermination.from_returncode(returncode)


async def attach_stream(
    reader: _ChunkReader,
    *,
    on_data: Callable[[bytes], None] | None = None,
    on_chunk: Callable[[bytes], None] | None = None,
    on_duration: Callable[[str], None] | None = None,
    on_time: Callable[[str], None] | None = None,
    on_progress: Callable[[ProgressEvent], None] | None = None,
) -> None:
    """
    Reports progress from a stream of ffmpeg diagnostic output until end of stream.

    This is used when ffmpeg runs elsewhere and its standard error is piped to us.  Cancelling
    stops reading after the chunk currently being processed.
    """
    cancelled = False

    def cancel() -> None:
        nonlocal cancelled
        cancelled = True

    parser = ProgressParser(
        cancel,
        on_data=on_data,
        on_duration=on_duration,
        on_time=on_time,
        on_progress=on_progress,
        on_chunk=on_chunk,
    )
    while not cancelled:
        chunk = await reader.read(CHUNK_SIZE)
        if not chunk:
            return
        parser.feed(chunk)


async def _run_ffmpeg(
    ffmpeg_path: str,
    *args: str,
    on_stderr: Callable[[bytes], None] | None,
    on_duration: Callable[[str], None] | None,
    on_time: Callable[[str], None] | None,
    on_progress: Callable[[ProgressEvent], None] | None,
) -> None:
    proc = await asyncio.create_subprocess_exec(
        ffmpeg_path,
        *args,
        stdin=asyncio.subprocess.DEVNULL,
        stderr=asyncio.subprocess.PIPE,
    )
    await attach_process(
        proc,
        on_stderr=on_stderr,
        on_duration=on_duration,
        on_time=on_time,
        on_progress=on_progress,
    )


async def convert_file(
    in_file: pathlib.Path | str,
    out_file: pathlib.Path | str,
    *,
    ffmpeg_path: str = "ffmpeg",
    on_stderr: Callable[[bytes], None] | None = None,
    on_duration: Callable[[str], None] | None = None,
    on_time: Callable[[str], None] | None = None,
    on_progress: Callable[[ProgressEvent], None] | None = None,
) -> None:
    """Converts a file with default ffmpeg settings, overwriting the output."""
    await _run_ffmpeg(
        ffmpeg_path,
        "-y",
        "-i",
        str(in_file),
        str(out_file),
        on_stderr=on_stderr,
        on_duration=on_duration,
        on_time=on_time,
        on_progress=on_progress,
    )


def rotation_filter(angle: int) -> str:
    """
    Returns the ffmpeg video filter rotating frames clockwise by the given angle in degrees.

    Quarter turns use lossless transposes; other angles use the rotate filter with the output
    enlarged to fit the rotated frame.
    """
    angle %= 360
    match angle:
        case 0:
            return "null"
        case 90:
            return "transpose=clock"
        case 180:
            return "hflip,vflip"
        case 270:
            return "transpose=cclock"
    radians = f"{angle}*PI/180"
    return f"rotate={radians}:ow=rotw({radians}):oh=roth({radians})"


async def rotate_video(
    in_file: pathlib.Path | str,
    out_file: pathlib.Path | str,
    angle: int,
    *,
    ffmpeg_path: str = "ffmpeg",
    on_stderr: Callable[[bytes], None] | None = None,
    on_duration: Callable[[str], None] | None = None,
    on_time: Callable[[str], None] | None = None,
    on_progress: Callable[[ProgressEvent], None] | None = None,
) -> None:
    """
    Rotates a video clockwise by ``angle`` degrees, overwriting the output.

    Rotation metadata on the input is applied by ffmpeg before the filter, so the output is
    rotated relative to how the input is displayed.  Audio is copied as-is.
    """
    await _run_ffmpeg(
        ffmpeg_path,
        "-y",
        "-i",
        str(in_file),
        "-vf",
        rotation_filter(angle),
        "-c:a",
        "copy",
        str(out_file),
        on_stderr=on_stderr,
        on_duration=on_duration,
        on_time=on_time,
        on_progress=on_progress,
    )
