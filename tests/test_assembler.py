"""Integration tests for the MoviePy backend: real encodes of synthetic videos."""

import os
import threading
from dataclasses import replace
from unittest.mock import patch

import numpy as np
import pytest

from runcompare.compose.transform import compute_transform
from runcompare.errors import SourceUnavailable
from runcompare.export import pipeline
from runcompare.export.assembler import MoviePyBackend, _last_frame_time, _silence, orient_clip
from runcompare.export.ffprobe import count_audio_streams, extract_metadata, get_video_stream, probe
from runcompare.export.pipeline import export_comparison
from runcompare.model.project import (
    ExportRequest,
    Orientation,
    SourceLabel,
    SyncMode,
    VideoSource,
)
from runcompare.model.timeline import LayoutRect


def _request(paths, output, **kwargs):
    return ExportRequest(
        sources=[VideoSource(path=p) for p in paths],
        output_path=str(output),
        **kwargs,
    )


class TestExportComparison:
    def test_side_by_side(self, red_run_video, blue_run_video, fast_settings, tmp_path):
        output = tmp_path / "side.mp4"
        result = export_comparison(
            _request(
                [red_run_video, blue_run_video],
                output,
                labels=[SourceLabel(name="Anna", time="01:02.33"), SourceLabel(name="Ben")],
            ),
            settings=fast_settings,
        )
        assert result.success, result.error_message
        assert result.skipped_overlays == []

        meta = extract_metadata(str(output))
        assert get_video_stream(probe(str(output)))["codec_name"] == "h264"
        assert (meta.width, meta.height) == (374, 120)
        # Shorter source decides the length
        assert meta.duration == pytest.approx(2.0, abs=0.3)
        assert not meta.has_audio

    def test_stacked(self, red_run_video, blue_run_video, fast_settings, tmp_path):
        output = tmp_path / "stacked.mp4"
        result = export_comparison(
            _request([red_run_video, blue_run_video], output, orientation=Orientation.VERTICAL),
            settings=fast_settings,
        )
        assert result.success, result.error_message
        meta = extract_metadata(str(output))
        assert (meta.width, meta.height) == (160, 210)

    def test_left_and_right_halves_show_their_sources(
        self, red_run_video, blue_run_video, fast_settings, tmp_path
    ):
        from moviepy import VideoFileClip

        output = tmp_path / "colors.mp4"
        result = export_comparison(
            _request([red_run_video, blue_run_video], output), settings=fast_settings
        )
        assert result.success, result.error_message

        clip = VideoFileClip(str(output))
        try:
            frame = clip.get_frame(0.5).astype(int)
        finally:
            clip.close()
        left = frame[60, 80]
        right = frame[60, 260]
        assert left[0] > left[2]  # red
        assert right[2] > right[0]  # blue

    def test_lap_sync_pads_to_slowest(self, red_run_video, blue_run_video, fast_settings, tmp_path):
        output = tmp_path / "laps.mp4"
        request = ExportRequest(
            sources=[
                VideoSource(path=red_run_video, lap_boundaries_ms=(0, 1000, 2500)),
                VideoSource(path=blue_run_video, lap_boundaries_ms=(0, 1500, 2000)),
            ],
            output_path=str(output),
            sync_mode=SyncMode.LAPS,
        )
        result = export_comparison(request, settings=fast_settings)
        assert result.success, result.error_message
        assert result.segment_count == 2
        # 1.5s + 1.5s, with freeze frames covering the faster laps
        assert result.duration == pytest.approx(3.0)
        assert extract_metadata(str(output)).duration == pytest.approx(3.0, abs=0.3)

    def test_grid(self, red_run_video, blue_run_video, green_tone_video, gray_tone_video,
                  fast_settings, tmp_path):
        fast_settings.grid_canvas_width = 320
        fast_settings.grid_canvas_height = 240
        output = tmp_path / "grid.mp4"
        result = export_comparison(
            _request(
                [red_run_video, blue_run_video, green_tone_video, gray_tone_video],
                output,
                orientation=Orientation.GRID,
            ),
            settings=fast_settings,
        )
        assert result.success, result.error_message
        meta = extract_metadata(str(output))
        assert (meta.width, meta.height) == (320, 240)

    def test_audio_tracks_stay_discrete(self, green_tone_video, gray_tone_video,
                                        fast_settings, tmp_path):
        output = tmp_path / "audio.mp4"
        result = export_comparison(
            _request(
                [green_tone_video, gray_tone_video],
                output,
                labels=[SourceLabel(name="Anna"), SourceLabel(name="Ben")],
            ),
            settings=fast_settings,
        )
        assert result.success, result.error_message
        assert count_audio_streams(probe(str(output))) == 2

    def test_mixed_audio_and_silent_sources(self, red_run_video, green_tone_video,
                                            fast_settings, tmp_path):
        output = tmp_path / "mixed.mp4"
        result = export_comparison(
            _request([red_run_video, green_tone_video], output), settings=fast_settings
        )
        assert result.success, result.error_message
        assert count_audio_streams(probe(str(output))) == 1

    def test_repeat_export_is_stable(self, red_run_video, blue_run_video, fast_settings, tmp_path):
        sizes = []
        for name in ("first.mp4", "second.mp4"):
            result = export_comparison(
                _request([red_run_video, blue_run_video], tmp_path / name),
                settings=fast_settings,
            )
            assert result.success, result.error_message
            sizes.append(result.file_size_bytes)
        assert sizes[1] == pytest.approx(sizes[0], rel=0.01)

    def test_overwrites_existing_output(self, red_run_video, blue_run_video, fast_settings, tmp_path):
        output = tmp_path / "out.mp4"
        output.write_bytes(b"old")
        result = export_comparison(
            _request([red_run_video, blue_run_video], output), settings=fast_settings
        )
        assert result.success, result.error_message
        assert os.path.getsize(output) > 3
        assert [n for n in os.listdir(tmp_path) if n.startswith(".runcompare-")] == []

    def test_unreadable_source_fails(self, red_run_video, fast_settings, tmp_path):
        bad = tmp_path / "not_a_video.mp4"
        bad.write_text("this is not a video")
        result = export_comparison(
            _request([red_run_video, str(bad)], tmp_path / "out.mp4"), settings=fast_settings
        )
        assert not result.success
        assert "not_a_video.mp4" in result.error_message

    def test_cancel_mid_encode(self, red_run_video, blue_run_video, fast_settings, tmp_path):
        fast_settings.progress_interval_sec = 0.0
        output = tmp_path / "out.mp4"
        output.write_bytes(b"old")
        encoding = threading.Event()

        def on_progress(value):
            if value >= 0.2:
                encoding.set()

        result = export_comparison(
            _request([red_run_video, blue_run_video], output),
            settings=fast_settings,
            progress_callback=on_progress,
            cancel_flag=encoding.is_set,
        )
        assert encoding.is_set()
        assert result.cancelled
        assert not result.success
        assert output.read_bytes() == b"old"
        assert [n for n in os.listdir(tmp_path) if n.startswith(".runcompare-")] == []


class TestProbedDurationPastDecoderEnd:
    """ffprobe reports 61/30 s exactly; moviepy's decoder rounds to 2.03 s."""

    @pytest.fixture
    def exact_probe(self):
        real_resolve = pipeline.resolve_sources

        def resolve(sources, max_workers=4):
            resolved = real_resolve(sources, max_workers=max_workers)
            return [
                replace(s, duration=61 / 30) if s.path == sources[0].path else s
                for s in resolved
            ]

        with patch("runcompare.export.pipeline.resolve_sources", side_effect=resolve):
            yield

    def test_simple_sync_holds_last_frame(self, exact_probe, odd_length_video, red_run_video,
                                          fast_settings, tmp_path):
        output = tmp_path / "odd.mp4"
        result = export_comparison(
            _request([odd_length_video, red_run_video], output), settings=fast_settings
        )
        assert result.success, result.error_message
        assert result.duration == pytest.approx(2.033)
        assert extract_metadata(str(output)).duration == pytest.approx(2.033, abs=0.3)

    def test_lap_sync_to_end_of_file(self, exact_probe, odd_length_video, red_run_video,
                                     fast_settings, tmp_path):
        output = tmp_path / "odd_laps.mp4"
        request = ExportRequest(
            sources=[
                VideoSource(path=odd_length_video, lap_boundaries_ms=(0, 1000, 2033)),
                VideoSource(path=red_run_video, lap_boundaries_ms=(0, 1500, 2500)),
            ],
            output_path=str(output),
            sync_mode=SyncMode.LAPS,
        )
        result = export_comparison(request, settings=fast_settings)
        assert result.success, result.error_message
        assert result.segment_count == 2
        # max(1000, 1500) + max(1033, 1000)
        assert result.duration == pytest.approx(2.533)


class TestBackendHelpers:
    def test_last_frame_time_backs_off_one_frame(self, red_run_video):
        from moviepy import VideoFileClip

        clip = VideoFileClip(red_run_video, audio=False)
        try:
            source = VideoSource(path=red_run_video, fps=24.0)
            assert _last_frame_time(clip, source) == pytest.approx(clip.duration - 1 / 24)
            # Unknown frame rate falls back to 30 fps
            unknown = VideoSource(path=red_run_video, fps=0.0)
            assert _last_frame_time(clip, unknown) == pytest.approx(clip.duration - 1 / 30)
        finally:
            clip.close()

    def test_silence_shape(self):
        clip = _silence(0.5, 44100, 2)
        assert clip.duration == 0.5
        assert clip.get_frame(0.1).shape == (2,)
        assert np.all(clip.get_frame(np.array([0.0, 0.1, 0.2])) == 0)

    def test_orient_clip_leaves_upright_clip(self, red_run_video):
        from moviepy import VideoFileClip

        clip = VideoFileClip(red_run_video, audio=False)
        try:
            # Already decoded at the upright size
            transform = compute_transform((120, 160), 90, LayoutRect(0, 0, 160, 120))
            assert orient_clip(clip, transform) is clip
            transform = compute_transform((160, 120), 0, LayoutRect(0, 0, 160, 120))
            assert orient_clip(clip, transform) is clip
        finally:
            clip.close()

    def test_orient_clip_rotates_coded_frames(self, red_run_video):
        from moviepy import VideoFileClip

        clip = VideoFileClip(red_run_video, audio=False)
        try:
            transform = compute_transform((160, 120), 90, LayoutRect(0, 0, 120, 160))
            rotated = orient_clip(clip, transform)
            assert tuple(rotated.size) == (120, 160)
        finally:
            clip.close()

    def test_backend_name(self):
        assert MoviePyBackend().name == "moviepy"

    def test_open_missing_video_raises(self, tmp_path):
        from runcompare.export.assembler import _open_video

        with pytest.raises(SourceUnavailable):
            _open_video(str(tmp_path / "missing.mp4"))
