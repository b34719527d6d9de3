"""Export pipeline: resolve, plan, lay out, pad, overlay, encode, mux.

``export_comparison`` is the only entry point callers need. It never
raises: every failure comes back as ``ExportResult(success=False)`` and
the destination file is only replaced once the new one is complete.
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path

from runcompare.compose.layout import compute_layout
from runcompare.compose.overlays import build_overlays
from runcompare.compose.padding import build_lanes
from runcompare.compose.segments import plan_segments
from runcompare.compose.transform import compute_transform
from runcompare.config import Settings
from runcompare.errors import Cancelled, EncodeFailed, SourceUnavailable
from runcompare.export.backend import ExportBackend
from runcompare.export.context import ExportContext
from runcompare.export.ffprobe import resolve_sources
from runcompare.export.mux import mux_tracks
from runcompare.export.progress import ProgressReporter
from runcompare.model.project import ExportRequest, ExportResult

logger = logging.getLogger(__name__)

# Share of overall progress given to each stage
PREPARE_END = 0.05
VIDEO_END = 0.90
AUDIO_END = 0.98


def validate_request(request: ExportRequest) -> None:
    """Raises ValueError for requests the engine cannot satisfy."""
    expected = request.orientation.source_count
    if len(request.sources) != expected:
        raise ValueError(
            f"{request.orientation.value} export needs {expected} sources, "
            f"got {len(request.sources)}"
        )
    if not request.output_path:
        raise ValueError("No output path given")
    if request.max_duration_ms is not None and request.max_duration_ms <= 0:
        raise ValueError("Max duration must be positive")


def prepare(context: ExportContext) -> None:
    """Run every platform-independent stage, filling in *context*."""
    request, settings = context.request, context.settings

    context.sources = resolve_sources(
        list(request.sources), max_workers=settings.resolved_max_workers
    )

    context.plan = plan_segments(context.sources, request.sync_mode, request.max_duration_ms)
    if not context.plan.segments:
        reason = f" ({context.plan.truncation.value})" if context.plan.truncated else ""
        raise ValueError(f"No segments to export{reason}")
    logger.info(
        "Planned %d segment(s), %d ms total%s",
        len(context.plan.segments),
        context.plan.total_ms,
        f", truncated: {context.plan.truncation.value}" if context.plan.truncated else "",
    )

    context.layout = compute_layout(
        [(s.width, s.height) for s in context.sources],
        request.orientation,
        max_long_edge=settings.max_long_edge,
        grid_canvas=(settings.grid_canvas_width, settings.grid_canvas_height),
    )
    context.transforms = [
        compute_transform(source.coded_size, source.rotation, rect)
        for source, rect in zip(context.sources, context.layout.rects)
    ]
    context.lanes = build_lanes(
        context.plan, len(context.sources), backoff_ms=settings.freeze_backoff_ms
    )
    context.overlays = build_overlays(request, context.plan, context.layout, settings)


def encode(
    context: ExportContext,
    backend: ExportBackend,
    reporter: ProgressReporter,
    cancel_flag: callable | None = None,
) -> Path:
    """Render video and audio into the work dir and mux them; return the muxed file."""
    video_path = context.work_path("video.mp4")
    backend.render_video(
        context,
        video_path,
        progress_callback=reporter.stage(PREPARE_END, VIDEO_END),
        cancel_flag=cancel_flag,
    )

    audio_paths: list[Path] = []
    titles: list[str] = []
    with_audio = [i for i, s in enumerate(context.sources) if s.has_audio]
    for n, index in enumerate(with_audio):
        reporter.check_cancel()
        step = (AUDIO_END - VIDEO_END) / len(with_audio)
        audio_path = context.work_path(f"audio_{index}.m4a")
        if backend.render_audio(
            context,
            index,
            audio_path,
            progress_callback=reporter.stage(VIDEO_END + n * step, VIDEO_END + (n + 1) * step),
        ):
            audio_paths.append(audio_path)
            label = context.request.label_for(index)
            titles.append(label.name if label and label.name else f"Source {index + 1}")

    reporter.check_cancel()
    return mux_tracks(video_path, audio_paths, context.work_path("final.mp4"), titles)


def export_comparison(
    request: ExportRequest,
    settings: Settings | None = None,
    progress_callback: callable | None = None,
    cancel_flag: callable | None = None,
    backend: ExportBackend | None = None,
) -> ExportResult:
    """Export a synchronized comparison video.

    Args:
        request: Sources, layout, sync mode, labels and output path.
        settings: Encoder and canvas settings (defaults if None).
        progress_callback: Optional callable(float) for progress (0-1).
        cancel_flag: Optional callable() -> bool; True stops the export.
        backend: Media backend (defaults to MoviePyBackend).

    Returns:
        An ExportResult; ``success`` is False on any failure or cancellation.
    """
    settings = settings or Settings()
    if backend is None:
        from runcompare.export.assembler import MoviePyBackend

        backend = MoviePyBackend()
    reporter = ProgressReporter(progress_callback, cancel_flag, settings.progress_interval_sec)

    try:
        validate_request(request)
        output_path = Path(request.output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        # Work dir next to the output so the final rename stays on one filesystem
        with tempfile.TemporaryDirectory(prefix=".runcompare-", dir=output_path.parent) as tmp:
            context = ExportContext(request=request, settings=settings, work_dir=Path(tmp))
            prepare(context)
            reporter.report(PREPARE_END)
            final = encode(context, backend, reporter, cancel_flag)
            reporter.check_cancel()
            os.replace(final, output_path)

        reporter.finish()
        size = output_path.stat().st_size
        logger.info("Exported %s (%d bytes, %.2fs)", output_path, size, context.total_seconds)
        return ExportResult(
            success=True,
            output_path=str(output_path),
            file_size_bytes=size,
            duration=context.total_seconds,
            segment_count=len(context.plan.segments),
            truncation=context.plan.truncation.value if context.plan.truncated else None,
            skipped_overlays=list(context.skipped_overlays),
        )
    except Cancelled:
        logger.info("Export to %s cancelled", request.output_path)
        return ExportResult.failure("Export cancelled", cancelled=True)
    except SourceUnavailable as e:
        logger.warning("%s", e)
        return ExportResult.failure(str(e))
    except EncodeFailed as e:
        logger.error("Encode failed: %s", e)
        return ExportResult.failure(str(e))
    except (ValueError, OSError) as e:
        logger.warning("Export failed: %s", e)
        return ExportResult.failure(str(e))
    except Exception as e:
        logger.exception("Unexpected export failure")
        return ExportResult.failure(f"Export failed: {e}")
