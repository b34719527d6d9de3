"""Shared test fixtures: synthetic run videos of different sizes and lengths."""

import os
import tempfile

import numpy as np
import pytest


@pytest.fixture(scope="session")
def tmp_video_dir():
    """Session-scoped temp directory for synthetic test videos."""
    with tempfile.TemporaryDirectory(prefix="runcompare_test_") as d:
        yield d


def _make_video(path: str, duration: float, fps: float, size: tuple[int, int], make_frame):
    """Helper to create a synthetic video using MoviePy."""
    from moviepy import VideoClip

    clip = VideoClip(make_frame, duration=duration).with_fps(fps)
    clip = clip.resized(size)
    clip.write_videofile(
        path,
        codec="libx264",
        audio=False,
        logger=None,
    )
    clip.close()


def _make_video_with_audio(
    path: str,
    duration: float,
    fps: float,
    size: tuple[int, int],
    make_frame,
    make_audio,
    audio_fps: int = 44100,
):
    """Helper to create a synthetic video with audio using MoviePy."""
    from moviepy import AudioClip, VideoClip

    video = VideoClip(make_frame, duration=duration).with_fps(fps)
    video = video.resized(size)
    audio = AudioClip(make_audio, duration=duration, fps=audio_fps)
    video = video.with_audio(audio)
    video.write_videofile(
        path,
        codec="libx264",
        audio_codec="aac",
        logger=None,
    )
    video.close()


def _solid(width: int, height: int, color):
    def make_frame(t):
        frame = np.zeros((height, width, 3), dtype=np.uint8)
        frame[:, :] = color
        return frame

    return make_frame


def _tone(freq: float):
    def make_audio(t):
        t = np.atleast_1d(np.asarray(t, dtype=float))
        audio = 0.3 * np.sin(2 * np.pi * freq * t)
        return np.column_stack([audio, audio])

    return make_audio


@pytest.fixture(scope="session")
def red_run_video(tmp_video_dir):
    """Red, silent. 3s @ 24fps, 160x120."""
    path = os.path.join(tmp_video_dir, "red_run.mp4")
    _make_video(path, duration=3.0, fps=24, size=(160, 120), make_frame=_solid(160, 120, [200, 40, 40]))
    return path


@pytest.fixture(scope="session")
def blue_run_video(tmp_video_dir):
    """Blue, silent, wider. 2s @ 24fps, 320x180."""
    path = os.path.join(tmp_video_dir, "blue_run.mp4")
    _make_video(path, duration=2.0, fps=24, size=(320, 180), make_frame=_solid(320, 180, [40, 60, 200]))
    return path


@pytest.fixture(scope="session")
def odd_length_video(tmp_video_dir):
    """Yellow, silent. 61 frames @ 30fps (2.0333s), 160x120."""
    path = os.path.join(tmp_video_dir, "odd_length.mp4")
    _make_video(path, duration=61 / 30, fps=30, size=(160, 120), make_frame=_solid(160, 120, [200, 200, 40]))
    return path


@pytest.fixture(scope="session")
def green_tone_video(tmp_video_dir):
    """Green with a 440 Hz tone. 2s @ 24fps, 160x120."""
    path = os.path.join(tmp_video_dir, "green_tone.mp4")
    _make_video_with_audio(
        path,
        duration=2.0,
        fps=24,
        size=(160, 120),
        make_frame=_solid(160, 120, [40, 200, 40]),
        make_audio=_tone(440.0),
    )
    return path


@pytest.fixture(scope="session")
def gray_tone_video(tmp_video_dir):
    """Gray with a 660 Hz tone. 3s @ 24fps, 160x120."""
    path = os.path.join(tmp_video_dir, "gray_tone.mp4")
    _make_video_with_audio(
        path,
        duration=3.0,
        fps=24,
        size=(160, 120),
        make_frame=_solid(160, 120, [120, 120, 120]),
        make_audio=_tone(660.0),
    )
    return path


@pytest.fixture
def fast_settings():
    """Settings tuned for quick test encodes."""
    from runcompare.config import Settings

    return Settings(output_fps=12.0, output_bitrate="500k", preset="ultrafast", max_workers=2)
