"""Abstract export backend: turns a planned ExportContext into media files."""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path

from runcompare.export.context import ExportContext


class ExportBackend(ABC):
    """One adapter per native media stack.

    Planning, layout, transforms, padding and overlay content are computed
    before a backend is involved; a backend only decodes, composites and
    encodes.
    """

    name: str = "base"

    @abstractmethod
    def render_video(
        self,
        context: ExportContext,
        output_path: Path,
        progress_callback: callable | None = None,
        cancel_flag: callable | None = None,
    ) -> None:
        """Composite every lane and overlay into a silent H.264 file.

        Args:
            context: Fully planned export state.
            output_path: Where to write the video-only file.
            progress_callback: Optional callable(float) for progress (0-1).
                It may raise ``Cancelled`` to abort the encode.
            cancel_flag: Optional callable() -> bool checked between
                decode steps.

        Raises:
            EncodeFailed: If the encoder rejects the job.
        """
        ...

    @abstractmethod
    def render_audio(
        self,
        context: ExportContext,
        source_index: int,
        output_path: Path,
        progress_callback: callable | None = None,
    ) -> bool:
        """Write one source's audio, aligned to its lane, as an AAC file.

        Returns:
            False if the source turned out to have no usable audio.
        """
        ...
