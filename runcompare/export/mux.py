"""Final mux: one video stream plus each source's audio as its own track."""

from __future__ import annotations

import logging
import os
import subprocess
from pathlib import Path

from moviepy.config import FFMPEG_BINARY

from runcompare.errors import EncodeFailed

logger = logging.getLogger(__name__)


def build_mux_command(
    video_path: Path,
    audio_paths: list[Path],
    output_path: Path,
    track_titles: list[str] | None = None,
) -> list[str]:
    cmd = [FFMPEG_BINARY, "-y", "-v", "error", "-i", str(video_path)]
    for audio in audio_paths:
        cmd += ["-i", str(audio)]

    cmd += ["-map", "0:v:0"]
    for i in range(len(audio_paths)):
        cmd += ["-map", f"{i + 1}:a:0"]

    # Tracks stay discrete: stream copy, no amix
    cmd += ["-c", "copy"]
    for i, title in enumerate(track_titles or []):
        if title:
            cmd += [f"-metadata:s:a:{i}", f"title={title}"]
    cmd += ["-movflags", "+faststart", str(output_path)]
    return cmd


def mux_tracks(
    video_path: Path,
    audio_paths: list[Path],
    output_path: Path,
    track_titles: list[str] | None = None,
) -> Path:
    """Write *output_path* from a silent video and zero or more audio files.

    Raises:
        EncodeFailed: If ffmpeg is missing or fails.
    """
    if not audio_paths:
        os.replace(video_path, output_path)
        return output_path

    cmd = build_mux_command(video_path, audio_paths, output_path, track_titles)
    logger.debug("Muxing: %s", " ".join(cmd))
    try:
        result = subprocess.run(cmd, capture_output=True, text=True)
    except FileNotFoundError:
        raise EncodeFailed(
            "ffmpeg not found. Install FFmpeg: brew install ffmpeg (macOS) "
            "or sudo apt install ffmpeg (Linux)"
        )

    if result.returncode != 0:
        raise EncodeFailed(f"ffmpeg mux failed: {result.stderr.strip()}")
    return output_path
