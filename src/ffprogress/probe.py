#!/usr/bin/python3

import asyncio
import math
import pathlib
import re
import tempfile

import msgspec

from .progress import AbnormalTermination

_image_resolution_re = re.compile(r"(\d+)x(\d+)")


class InvalidImageResolutionText(ValueError):
    """Raised when the `file` description of an image has no "<width>x<height>" token."""


class InvalidProbedDuration(ValueError):
    """Raised when ffprobe reports a duration that is missing, non-numeric or zero."""


class Resolution(msgspec.Struct, frozen=True):
    width: int
    height: int


def parse_image_resolution(text: str) -> Resolution:
    """
    Parses the pixel dimensions out of a `file` description, e.g.
    "frame.jpg: JPEG image data, JFIF standard 1.01, ..., precision 8, 848x480, components 3".

    The dimensions are the last comma-separated field that is exactly "<width>x<height>";
    earlier fields such as "density 1x1" are not dimensions.
    """
    for field in reversed(text.split(",")):
        match = _image_resolution_re.fullmatch(field.strip())
        if match:
            return Resolution(int(match.group(1)), int(match.group(2)))
    raise InvalidImageResolutionText(f"Failed to find image resolution in {text.strip()!r}")


async def _run(program: str, *args: str) -> str:
    proc = await asyncio.create_subprocess_exec(
        program,
        *args,
        stdin=asyncio.subprocess.DEVNULL,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.DEVNULL,
    )
    stdout, _ = await proc.communicate()
    if proc.returncode != 0:
        raise AbnormalTermination.from_returncode(proc.returncode)
    return stdout.decode(errors="replace")


async def get_video_resolution(
    path: pathlib.Path | str, ffmpeg_path: str = "ffmpeg", file_path: str = "file"
) -> Resolution:
    """
    Returns the displayed resolution of a video.

    Stream metadata reports the resolution before rotation is applied, so instead one frame is
    decoded to an image and the image is measured.
    """
    with tempfile.TemporaryDirectory() as tempdir:
        frame = pathlib.Path(tempdir) / "frame.jpg"
        await _run(
            ffmpeg_path,
            "-v",
            "error",
            "-y",
            "-i",
            str(path),
            "-frames:v",
            "1",
            str(frame),
        )
        return parse_image_resolution(await _run(file_path, str(frame)))


async def get_video_duration(path: pathlib.Path | str, ffprobe_path: str = "ffprobe") -> float:
    """Returns the container duration of a media file in seconds, as reported by ffprobe."""
    output = await _run(
        ffprobe_path,
        "-v",
        "error",
        "-show_entries",
        "format=duration",
        "-of",
        "default=noprint_wrappers=1:nokey=1",
        str(path),
    )
    try:
        duration = float(output.strip())
    except ValueError:
        raise InvalidProbedDuration(f"Failed to parse duration {output.strip()!r}") from None
    if not duration or math.isnan(duration):
        raise InvalidProbedDuration(f"Invalid duration {output.strip()!r}")
    return duration
