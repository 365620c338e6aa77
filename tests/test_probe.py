#!/usr/bin/python3

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from ffprogress.probe import (
    InvalidImageResolutionText,
    InvalidProbedDuration,
    Resolution,
    get_video_duration,
    get_video_resolution,
    parse_image_resolution,
)
from ffprogress.progress import AbnormalTermination

JPEG_DESCRIPTION = (
    "/tmp/tmpa1b2c3/frame.jpg: JPEG image data, JFIF standard 1.02, aspect ratio, "
    "density 1x1, segment length 16, baseline, precision 8, 848x480, components 3\n"
)


def _mock_proc(stdout: bytes, returncode: int = 0) -> MagicMock:
    proc = MagicMock(returncode=returncode)
    proc.communicate = AsyncMock(return_value=(stdout, None))
    return proc


@pytest.mark.parametrize(
    "text, expected",
    [
        (JPEG_DESCRIPTION, Resolution(848, 480)),
        ("frame.png: PNG image data, 480 x 848, 8-bit/color RGB, non-interlaced", None),
        ("frame.jpg: JPEG image data, baseline, precision 8, 480x848, components 3", Resolution(480, 848)),
        # the last dimension token wins
        ("a.jpg: JPEG image data, 320x240, Exif standard, 1920x1080, components 3", Resolution(1920, 1080)),
    ],
)
def test_parse_image_resolution(text: str, expected: Resolution | None):
    if expected is None:
        with pytest.raises(InvalidImageResolutionText):
            parse_image_resolution(text)
    else:
        assert parse_image_resolution(text) == expected


def test_parse_image_resolution_ignores_density():
    with pytest.raises(InvalidImageResolutionText):
        parse_image_resolution("a.jpg: JPEG image data, density 1x1, baseline")


@patch("ffprogress.probe.asyncio.create_subprocess_exec", new_callable=AsyncMock)
def test_get_video_resolution(mock_exec):
    mock_exec.side_effect = [_mock_proc(b""), _mock_proc(JPEG_DESCRIPTION.encode())]
    assert asyncio.run(get_video_resolution("in.mp4")) == Resolution(848, 480)

    ffmpeg_args = mock_exec.call_args_list[0][0]
    assert ffmpeg_args[0] == "ffmpeg"
    assert "-frames:v" in ffmpeg_args
    frame = ffmpeg_args[-1]

    file_args = mock_exec.call_args_list[1][0]
    assert file_args == ("file", frame)


@patch("ffprogress.probe.asyncio.create_subprocess_exec", new_callable=AsyncMock)
def test_get_video_resolution_ffmpeg_failure(mock_exec):
    mock_exec.return_value = _mock_proc(b"", returncode=1)
    with pytest.raises(AbnormalTermination):
        asyncio.run(get_video_resolution("in.mp4"))
    assert mock_exec.call_count == 1


@patch("ffprogress.probe.asyncio.create_subprocess_exec", new_callable=AsyncMock)
def test_get_video_duration(mock_exec):
    mock_exec.return_value = _mock_proc(b"23.400000\n")
    assert asyncio.run(get_video_duration("in.mp4")) == 23.4

    args = mock_exec.call_args[0]
    assert args[0] == "ffprobe"
    assert "format=duration" in args


@pytest.mark.parametrize("stdout", [b"", b"N/A\n", b"0.000000\n"])
@patch("ffprogress.probe.asyncio.create_subprocess_exec", new_callable=AsyncMock)
def test_get_video_duration_invalid(mock_exec, stdout: bytes):
    mock_exec.return_value = _mock_proc(stdout)
    with pytest.raises(InvalidProbedDuration):
        asyncio.run(get_video_duration("in.mp4"))
