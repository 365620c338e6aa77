#!/usr/bin/python3

import asyncio
import pathlib
import re

import msgspec

from .timecode import NOT_AVAILABLE, TIMECODE_PATTERN, parse_to_seconds

# e.g. "  Duration: 00:03:00.03, start: 0.000000, bitrate: 2234 kb/s"
# e.g. "  Duration: N/A, start: 0.000000, bitrate: N/A"
DURATION_RE = re.compile(rf"Duration: ({TIMECODE_PATTERN}|{re.escape(NOT_AVAILABLE)}),")

# stream headers may carry a container id and language tag ("Stream #0:0[0x1](und): ...")
_STREAM_PREFIX = r"Stream #\d+:\d+[\w\[\]\(\)]*"

# e.g. "Stream #0:0[0x1](und): Video: h264 (Baseline) (avc1 / 0x31637661), yuvj420p(pc, progressive), 4032x3024, 2045 kb/s, 29.73 fps, 600 tbr, 600 tbn (default)"
# e.g. "Stream #0:0[0x1](eng): Video: h264 (High) (avc1 / 0x31637661), yuv420p(tv, bt470bg/unknown/unknown, progressive), 1920x1080 [SAR 1:1 DAR 16:9], 3958 kb/s, 29.49 fps, 29.83 tbr, 11456 tbn (default)"
# e.g. "Stream #0:1: Video: flv1 (flv), yuv420p, 1080x1920, 200 kb/s, 60 fps, 60 tbr, 1k tbn"
_resolution_re = re.compile(rf"{_STREAM_PREFIX}: Video: .+ (\d+x\d+)[\s,]")

# e.g. "Stream #0:0: Audio: mp3 (mp3float), 44100 Hz, stereo, fltp, 128 kb/s"
_sample_rate_re = re.compile(rf"{_STREAM_PREFIX}: Audio: .+ (\d+) Hz")

_stream_line_re = re.compile(rf"{_STREAM_PREFIX}:")


class MetadataError(ValueError):
    """
    Base class for failures to extract metadata from ffmpeg diagnostic output.

    ``output`` holds the text that was being parsed, when the caller captured it.
    """

    def __init__(self, message: str, output: str | None = None):
        super().__init__(message)
        self.output = output


class MissingDuration(MetadataError):
    """Raised when the output has no "Duration:" declaration."""


class MissingResolution(MetadataError):
    """
    Raised when a video stream is listed but none of the video stream lines carry a
    resolution token.  This indicates an output dialect we don't understand yet.
    """


class MissingSampleRate(MetadataError):
    """Raised when an audio stream is listed without a sample rate."""


class InvalidSampleRate(MetadataError):
    """Raised when the audio sample rate is present but is not a positive integer."""


class VideoMetadata(msgspec.Struct, frozen=True, kw_only=True):
    duration: str
    """ Duration as written by ffmpeg, e.g. "00:03:00.03" or "N/A". """

    seconds: float
    """ Decoded duration; NaN if the duration is not available. """

    resolution: str | None = None
    """ Resolution of the first video stream, e.g. "4032x3024"; None for audio-only media. """

    audio_sample_rate: int | None = None
    """ Sample rate of the first audio stream, e.g. 44100; None for video-only media. """

    @property
    def dimensions(self) -> tuple[int, int] | None:
        if not self.resolution:
            return None
        width, height = self.resolution.split("x")
        return int(width), int(height)


def _has_stream(lines: list[str], kind: str) -> bool:
    return any(_stream_line_re.match(line) and f" {kind}: " in line for line in lines)


def _parse_resolution(lines: list[str]) -> str | None:
    if not _has_stream(lines, "Video"):
        return None
    for line in lines:
        match = _resolution_re.search(line)
        if match:
            return match.group(1)
    raise MissingResolution("Failed to find video resolution")


def _parse_audio_sample_rate(lines: list[str]) -> int | None:
    if not _has_stream(lines, "Audio"):
        return None
    for line in lines:
        match = _sample_rate_re.search(line)
        if match:
            break
    else:
        raise MissingSampleRate("Failed to find audio sample rate")
    sample_rate = int(match.group(1))
    if not sample_rate:
        raise InvalidSampleRate(f"Failed to parse audio sample rate: {match.group(1)!r}")
    return sample_rate


def parse_video_metadata(output: str) -> VideoMetadata:
    """
    Extracts the duration, resolution and audio sample rate from the text ffmpeg prints when
    reading an input file.

    Resolution and sample rate are only looked up when a stream of the matching kind is listed,
    so audio-only and video-only media parse without errors.
    """
    match = DURATION_RE.search(output)
    if not match:
        raise MissingDuration("Failed to find video duration")
    duration = match.group(1)

    lines = [line.strip() for line in output.splitlines()]
    lines = [line for line in lines if line]

    return VideoMetadata(
        duration=duration,
        seconds=parse_to_seconds(duration),
        resolution=_parse_resolution(lines),
        audio_sample_rate=_parse_audio_sample_rate(lines),
    )


async def scan_video(path: pathlib.Path | str, ffmpeg_path: str = "ffmpeg") -> VideoMetadata:
    """
    Runs ffmpeg against the file without an output and parses the stream listing.

    ffmpeg always exits unsuccessfully in this mode ("At least one output file must be
    specified"), so the exit code is only reported alongside a parse failure.
    """
    proc = await asyncio.create_subprocess_exec(
        ffmpeg_path,
        "-hide_banner",
        "-i",
        str(path),
        stdin=asyncio.subprocess.DEVNULL,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.STDOUT,
    )
    stdout, _ = await proc.communicate()
    output = stdout.decode(errors="replace")
    try:
        return parse_video_metadata(output)
    except MetadataError as exc:
        exc.output = output
        exc.add_note(f"ffmpeg exited with code {proc.returncode}")
        raise
