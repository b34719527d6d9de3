"""MoviePy export backend: lanes, freeze stills and overlays composited onto one canvas."""

from __future__ import annotations

import concurrent.futures
import logging
from pathlib import Path

import numpy as np
from moviepy import (
    AudioClip,
    AudioFileClip,
    CompositeVideoClip,
    ImageClip,
    VideoFileClip,
    concatenate_audioclips,
    concatenate_videoclips,
)
from PIL import Image

from runcompare.compose.transform import Transform
from runcompare.errors import Cancelled, EncodeFailed, OverlayRenderSkipped, SourceUnavailable
from runcompare.export.backend import ExportBackend
from runcompare.export.context import ExportContext
from runcompare.export.overlay_render import overlay_position, render_overlay
from runcompare.export.progress import EncodeLogger
from runcompare.model.project import VideoSource
from runcompare.model.timeline import Lane, PieceKind

logger = logging.getLogger(__name__)

AUDIO_BITRATE = "192k"


def _open_video(path: str) -> VideoFileClip:
    try:
        return VideoFileClip(path, audio=False)
    except (OSError, KeyError, ValueError) as e:
        raise SourceUnavailable(path, f"cannot decode video: {e}")


def _still_name(source_index: int, segment_index: int) -> str:
    return f"freeze_s{source_index}_seg{segment_index}.png"


def _silence(duration: float, fps: int, nchannels: int) -> AudioClip:
    def frame_function(t):
        if np.isscalar(t):
            return np.zeros(nchannels)
        return np.zeros((len(t), nchannels))

    return AudioClip(frame_function, duration=duration, fps=fps)


def _last_frame_time(clip, source: VideoSource) -> float:
    """Start time of the last whole frame the decoder can return."""
    return max(0.0, clip.duration - source.frame_duration_ms / 1000.0)


def orient_clip(clip, transform: Transform):
    """Rotate *clip* upright if the decoder left quarter-turned frames as coded."""
    coded = (transform.coded_width, transform.coded_height)
    if (
        transform.rotation in (90, 270)
        and tuple(clip.size) != transform.upright_size
        and tuple(clip.size) == coded
    ):
        # moviepy rotates counter-clockwise
        return clip.rotated(-transform.rotation)
    return clip


class MoviePyBackend(ExportBackend):
    name = "moviepy"

    def extract_stills(
        self,
        context: ExportContext,
        cancel_flag: callable | None = None,
    ) -> dict[tuple[int, int], Path]:
        """Save every freeze-frame still as a PNG in the work dir.

        Sources decode in parallel, one reader per source.

        Returns:
            Mapping of (source_index, segment_index) to the still's path.
        """
        jobs = [(lane, lane.freeze_pieces) for lane in context.lanes if lane.freeze_pieces]
        if not jobs:
            return {}

        def extract(lane: Lane, pieces) -> dict[tuple[int, int], Path]:
            source = context.sources[lane.source_index]
            stills = {}
            clip = _open_video(source.path)
            try:
                for piece in pieces:
                    if cancel_flag and cancel_flag():
                        raise Cancelled()
                    t = min(piece.source_start_ms / 1000.0, _last_frame_time(clip, source))
                    frame = clip.get_frame(t)
                    path = context.work_path(_still_name(lane.source_index, piece.segment_index))
                    Image.fromarray(np.asarray(frame, dtype=np.uint8)).save(path)
                    stills[(lane.source_index, piece.segment_index)] = path
            finally:
                clip.close()
            return stills

        workers = max(1, min(context.settings.resolved_max_workers, len(jobs)))
        results: dict[tuple[int, int], Path] = {}
        with concurrent.futures.ThreadPoolExecutor(max_workers=workers) as executor:
            futures = [executor.submit(extract, lane, pieces) for lane, pieces in jobs]
            for future in futures:
                results.update(future.result())
        return results

    def _lane_clip(self, context: ExportContext, lane: Lane, reader, stills):
        source = context.sources[lane.source_index]
        parts = []
        for piece in lane.pieces:
            duration = piece.duration_ms / 1000.0
            if piece.kind is PieceKind.SOURCE:
                start = piece.source_start_ms / 1000.0
                # ffmpeg reports duration to 1/100 s, ffprobe to the microsecond
                end = min(reader.duration, start + duration)
                if end > start:
                    parts.append(reader.subclipped(start, end))
                held = duration - max(0.0, end - start)
                if held > 1e-6:
                    frame = reader.get_frame(_last_frame_time(reader, source))
                    parts.append(ImageClip(frame).with_duration(held))
            else:
                still = stills[(lane.source_index, piece.segment_index)]
                parts.append(ImageClip(str(still)).with_duration(duration))

        clip = parts[0] if len(parts) == 1 else concatenate_videoclips(parts, method="chain")
        transform = context.transforms[lane.source_index]
        clip = orient_clip(clip, transform)
        clip = clip.resized(new_size=transform.output_size)
        return clip.with_position(transform.origin)

    def _overlay_clips(self, context: ExportContext) -> list:
        clips = []
        for spec in context.overlays:
            try:
                image = render_overlay(spec, context.settings.font_path)
                clip = (
                    ImageClip(image, transparent=True)
                    .with_start(spec.start_ms / 1000.0)
                    .with_duration(spec.duration_ms / 1000.0)
                    .with_position(overlay_position(spec))
                )
            except (OverlayRenderSkipped, OSError, ValueError) as e:
                logger.warning("Skipping overlay %s: %s", spec.name or spec.text, e)
                context.skipped_overlays.append(spec.name or spec.text)
                continue
            clips.append(clip)
        return clips

    def render_video(
        self,
        context: ExportContext,
        output_path: Path,
        progress_callback: callable | None = None,
        cancel_flag: callable | None = None,
    ) -> None:
        stills = self.extract_stills(context, cancel_flag)

        readers = []
        try:
            layers = []
            for lane in context.lanes:
                if cancel_flag and cancel_flag():
                    raise Cancelled()
                reader = _open_video(context.sources[lane.source_index].path)
                readers.append(reader)
                layers.append(self._lane_clip(context, lane, reader, stills))

            layers.extend(self._overlay_clips(context))
            final = CompositeVideoClip(
                layers,
                size=context.layout.canvas_size,
                bg_color=(0, 0, 0),
            ).with_duration(context.total_seconds)

            settings = context.settings
            logger.info(
                "Encoding %dx%d, %.2fs at %.1f fps to %s",
                *context.layout.canvas_size, context.total_seconds,
                settings.output_fps, output_path,
            )
            try:
                final.write_videofile(
                    str(output_path),
                    fps=settings.output_fps,
                    codec=settings.output_codec,
                    bitrate=settings.output_bitrate,
                    preset=settings.preset,
                    audio=False,
                    logger=EncodeLogger(progress_callback) if progress_callback else None,
                )
            except Cancelled:
                raise
            except (OSError, RuntimeError, ValueError) as e:
                raise EncodeFailed(f"Video encode failed: {e}")
        finally:
            for reader in readers:
                reader.close()

    def render_audio(
        self,
        context: ExportContext,
        source_index: int,
        output_path: Path,
        progress_callback: callable | None = None,
    ) -> bool:
        source = context.sources[source_index]
        try:
            audio = AudioFileClip(source.path)
        except (OSError, KeyError, ValueError) as e:
            logger.warning("No usable audio in %s: %s", source.path, e)
            return False

        try:
            fps = audio.fps or 44100
            nchannels = audio.nchannels or 2
            parts = []
            for piece in context.lanes[source_index].pieces:
                start = piece.source_start_ms / 1000.0
                duration = piece.duration_ms / 1000.0
                if piece.kind is PieceKind.FREEZE:
                    parts.append(_silence(duration, fps, nchannels))
                    continue
                # Audio can end a little before the video does
                end = min(start + duration, audio.duration)
                if end > start:
                    parts.append(audio.subclipped(start, end))
                missing = duration - max(0.0, end - start)
                if missing > 1e-6:
                    parts.append(_silence(missing, fps, nchannels))

            track = concatenate_audioclips(parts)
            try:
                track.write_audiofile(
                    str(output_path),
                    fps=fps,
                    codec=context.settings.audio_codec,
                    bitrate=AUDIO_BITRATE,
                    logger=EncodeLogger(progress_callback) if progress_callback else None,
                )
            except Cancelled:
                raise
            except (OSError, RuntimeError, ValueError) as e:
                raise EncodeFailed(f"Audio encode failed for {source.path}: {e}")
            return True
        finally:
            audio.close()
