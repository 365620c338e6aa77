#!/usr/bin/python3

import sys

import pytest

# stands in for an ffmpeg transcode: prints the input listing, a few progress reports, then
# exits with the code given as its first argument
FAKE_FFMPEG_SCRIPT = r"""
import sys
import time

sys.stderr.write(
    "Input #0, mov,mp4,m4a,3gp,3g2,mj2, from 'in.mp4':\n"
    "  Duration: 00:00:10.00, start: 0.000000, bitrate: 1015 kb/s\n"
)
sys.stderr.flush()
for frame, time_code in ((75, "00:00:02.50"), (150, "00:00:05.00"), (300, "00:00:10.00")):
    time.sleep(0.05)
    sys.stderr.write(
        f"frame={frame:5d} fps= 30 q=28.0 size=     256kB time={time_code} "
        "bitrate= 209.7kbits/s speed=1.01x    \r"
    )
    sys.stderr.flush()
sys.exit(int(sys.argv[1]) if len(sys.argv) > 1 else 0)
"""

# prints one progress report and then hangs until killed
HANGING_FFMPEG_SCRIPT = r"""
import sys
import time

sys.stderr.write("frame=   30 fps= 30 q=28.0 size=     256kB time=00:00:01.00 bitrate= 1.0kbits/s\r")
sys.stderr.flush()
time.sleep(60)
"""


@pytest.fixture
def fake_ffmpeg_argv() -> list[str]:
    return [sys.executable, "-c", FAKE_FFMPEG_SCRIPT]


@pytest.fixture
def hanging_ffmpeg_argv() -> list[str]:
    return [sys.executable, "-c", HANGING_FFMPEG_SCRIPT]


class ChunkedReader:
    """Stream reader returning a fixed sequence of chunks exactly as given."""

    def __init__(self, chunks: list[bytes]):
        self.chunks = list(chunks)
        self.reads = 0

    async def read(self, n: int = -1) -> bytes:
        self.reads += 1
        if not self.chunks:
            return b""
        return self.chunks.pop(0)


@pytest.fixture
def chunked_reader() -> type[ChunkedReader]:
    return ChunkedReader
