#!/usr/bin/python3

from .metadata import (
    InvalidSampleRate,
    MetadataError,
    MissingDuration,
    MissingResolution,
    MissingSampleRate,
    VideoMetadata,
    parse_video_metadata,
    scan_video,
)
from .metrics import ProgressReport, ProgressTimer, estimate_out_size, eta, speed
from .probe import (
    InvalidImageResolutionText,
    InvalidProbedDuration,
    Resolution,
    get_video_duration,
    get_video_resolution,
    parse_image_resolution,
)
from .progress import (
    AbnormalTermination,
    ProgressEvent,
    ProgressParser,
    attach_process,
    attach_stream,
    convert_file,
    rotate_video,
    rotation_filter,
)
from .timecode import NOT_AVAILABLE, parse_to_seconds, seconds_to_string
