"""Video metadata extraction via ffprobe."""

from __future__ import annotations

import concurrent.futures
import dataclasses
import json
import logging
import subprocess
from pathlib import Path

from runcompare.errors import SourceUnavailable
from runcompare.model.project import VideoSource

logger = logging.getLogger(__name__)


def probe(video_path: str) -> dict:
    """Run ffprobe and return parsed JSON output for all streams.

    Raises:
        FileNotFoundError: If video_path does not exist.
        RuntimeError: If ffprobe fails.
    """
    path = Path(video_path)
    if not path.exists():
        raise FileNotFoundError(f"Video file not found: {video_path}")

    try:
        result = subprocess.run(
            [
                "ffprobe",
                "-v", "quiet",
                "-print_format", "json",
                "-show_format",
                "-show_streams",
                str(path),
            ],
            capture_output=True,
            text=True,
            timeout=10,
        )
    except FileNotFoundError:
        raise RuntimeError(
            "ffprobe not found. Install FFmpeg: brew install ffmpeg (macOS) "
            "or sudo apt install ffmpeg (Linux)"
        )

    if result.returncode != 0:
        raise RuntimeError(f"ffprobe failed: {result.stderr.strip()}")

    try:
        data = json.loads(result.stdout)
    except json.JSONDecodeError as e:
        raise RuntimeError(f"ffprobe returned invalid JSON: {e}")

    return data


def get_video_stream(data: dict) -> dict:
    """Extract the first video stream from ffprobe data.

    Attached pictures (cover art) are not video tracks.

    Raises:
        RuntimeError: If no video stream found.
    """
    for stream in data.get("streams", []):
        if stream.get("codec_type") != "video":
            continue
        if stream.get("disposition", {}).get("attached_pic"):
            continue
        return stream
    raise RuntimeError("No video stream found in file")


def count_audio_streams(data: dict) -> int:
    return sum(1 for s in data.get("streams", []) if s.get("codec_type") == "audio")


def parse_rotation(stream: dict) -> int:
    """Return the clockwise display rotation of a video stream in degrees.

    Older muxers write a ``rotate`` tag (clockwise); newer ffprobe reports a
    display matrix whose ``rotation`` is counter-clockwise. Unparseable
    values are treated as 0.
    """
    raw = stream.get("tags", {}).get("rotate")
    if raw is not None:
        try:
            return int(round(float(raw))) % 360
        except (ValueError, TypeError):
            return 0

    for side_data in stream.get("side_data_list", []):
        if "rotation" in side_data:
            try:
                return int(round(-float(side_data["rotation"]))) % 360
            except (ValueError, TypeError):
                return 0
    return 0


def _parse_fps(stream: dict) -> float:
    # r_frame_rate looks like "24/1" or "30000/1001"
    for key in ("avg_frame_rate", "r_frame_rate"):
        try:
            num, den = stream.get(key, "0/1").split("/")
            if int(den) != 0 and int(num) > 0:
                return int(num) / int(den)
        except (ValueError, ZeroDivisionError):
            continue
    return 0.0


def _parse_duration(fmt: dict, stream: dict, fps: float) -> float:
    # Some containers omit format/stream duration
    for source in [fmt, stream]:
        raw = source.get("duration")
        if raw is not None:
            try:
                duration = float(raw)
                if duration > 0:
                    return duration
            except (ValueError, TypeError):
                pass

    if fps > 0:
        nb_frames = stream.get("nb_frames")
        if nb_frames is not None:
            try:
                return int(nb_frames) / fps
            except (ValueError, TypeError):
                pass

    # tags.DURATION is common in MKV/MTS containers ("HH:MM:SS.micro")
    for source in [stream, fmt]:
        tag_dur = source.get("tags", {}).get("DURATION")
        if tag_dur:
            try:
                parts = tag_dur.split(":")
                duration = float(parts[0]) * 3600 + float(parts[1]) * 60 + float(parts[2])
                if duration > 0:
                    return duration
            except (ValueError, IndexError):
                pass
    return 0.0


def extract_metadata(video_path: str) -> VideoSource:
    """Extract video metadata and return a populated VideoSource.

    Width and height are reported upright, i.e. swapped for 90/270 degree
    handheld captures.
    """
    data = probe(video_path)
    stream = get_video_stream(data)
    fmt = data.get("format", {})

    fps = _parse_fps(stream)
    rotation = parse_rotation(stream)
    width = int(stream.get("width", 0))
    height = int(stream.get("height", 0))
    if rotation in (90, 270):
        width, height = height, width

    return VideoSource(
        path=video_path,
        duration=_parse_duration(fmt, stream, fps),
        width=width,
        height=height,
        fps=round(fps, 3),
        rotation=rotation,
        has_audio=count_audio_streams(data) > 0,
    )


def resolve_source(source: VideoSource) -> VideoSource:
    """Probe *source* and return a copy carrying its real metadata.

    The caller-supplied offset and lap boundaries are kept.

    Raises:
        SourceUnavailable: If the file is missing, unreadable, or has no
            usable video track.
    """
    if not source.path:
        raise SourceUnavailable(source.path, "no path given")
    try:
        probed = extract_metadata(source.path)
    except FileNotFoundError:
        raise SourceUnavailable(source.path, "file not found")
    except (RuntimeError, subprocess.TimeoutExpired) as e:
        raise SourceUnavailable(source.path, str(e))

    if probed.duration <= 0:
        raise SourceUnavailable(source.path, "could not determine duration")
    if probed.width <= 0 or probed.height <= 0:
        raise SourceUnavailable(source.path, "video track has no frame size")

    logger.info(
        "Loaded %s (%.2fs, %dx%d, rotation %d, audio=%s)",
        source.path, probed.duration, probed.width, probed.height,
        probed.rotation, probed.has_audio,
    )
    return dataclasses.replace(
        probed,
        start_offset_ms=source.start_offset_ms,
        lap_boundaries_ms=tuple(source.lap_boundaries_ms),
    )


def resolve_sources(
    sources: list[VideoSource],
    max_workers: int = 4,
) -> list[VideoSource]:
    """Probe all sources concurrently, preserving order.

    Raises:
        SourceUnavailable: For the first source (in request order) that fails.
    """
    if max_workers <= 1 or len(sources) <= 1:
        return [resolve_source(s) for s in sources]

    with concurrent.futures.ThreadPoolExecutor(max_workers=max_workers) as executor:
        futures = [executor.submit(resolve_source, s) for s in sources]
        return [f.result() for f in futures]
