"""Exception types raised inside the export engine.

Only the export boundary (``runcompare.export.pipeline.export_comparison``)
converts these into an ``ExportResult``; everything below it raises.
"""


class ExportError(Exception):
    """Base class for export failures."""


class SourceUnavailable(ExportError):
    """A source file is missing, unreadable, or has no decodable video track."""

    def __init__(self, path: str, reason: str):
        super().__init__(f"Source unavailable: {path}: {reason}")
        self.path = path
        self.reason = reason


class EncodeFailed(ExportError):
    """The encoder or muxer rejected the job."""


class Cancelled(ExportError):
    """The caller asked the export to stop."""

    def __init__(self, message: str = "Export cancelled"):
        super().__init__(message)


class OverlayRenderSkipped(ExportError):
    """A single overlay could not be rendered. Never aborts an export."""
