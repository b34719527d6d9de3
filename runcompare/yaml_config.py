"""YAML export job files for batch/scripted usage."""

from __future__ import annotations

import warnings
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from runcompare.config import Settings
from runcompare.model.project import (
    ExportRequest,
    Orientation,
    SourceLabel,
    SyncMode,
    VideoSource,
)

KNOWN_TOP_KEYS = {"sources", "orientation", "sync", "max_duration", "output", "max_long_edge", "workers"}
KNOWN_OUTPUT_KEYS = {"path", "codec", "fps", "bitrate"}
KNOWN_SOURCE_KEYS = {"path", "start", "laps", "name", "category", "section", "time", "penalties"}


@dataclass
class SourceConfig:
    path: str
    start: float = 0.0
    laps: list[float] = field(default_factory=list)
    label: SourceLabel = field(default_factory=SourceLabel)


@dataclass
class ExportJobConfig:
    """Parsed export job. Unset fields stay None and fall back to the defaults."""

    sources: list[SourceConfig] = field(default_factory=list)
    orientation: Orientation | None = None
    sync_mode: SyncMode | None = None
    max_duration: float | None = None

    # Output
    output_path: str | None = None
    output_codec: str | None = None
    output_fps: float | None = None
    output_bitrate: str | None = None

    max_long_edge: int | None = None
    workers: int | None = None

    def to_request(self, output_path: str | None = None) -> ExportRequest:
        """Build the immutable ExportRequest (times converted to milliseconds)."""
        path = output_path or self.output_path
        if not path:
            raise ValueError("Export job has no output path")
        orientation = self.orientation or (
            Orientation.GRID if len(self.sources) == 4 else Orientation.HORIZONTAL
        )
        return ExportRequest(
            sources=tuple(
                VideoSource(
                    path=s.path,
                    start_offset_ms=_to_ms(s.start),
                    lap_boundaries_ms=tuple(_to_ms(t) for t in s.laps),
                )
                for s in self.sources
            ),
            output_path=path,
            orientation=orientation,
            sync_mode=self.sync_mode or SyncMode.SIMPLE,
            max_duration_ms=_to_ms(self.max_duration) if self.max_duration is not None else None,
            labels=tuple(s.label for s in self.sources),
        )


def _to_ms(seconds: float) -> int:
    return int(round(float(seconds) * 1000))


def _resolve(path: str, base_dir: Path) -> str:
    """Resolve *path* relative to *base_dir* (the YAML file's directory)."""
    p = Path(path).expanduser()
    if not p.is_absolute():
        p = base_dir / p
    return str(p.resolve())


def _warn_unknown_keys(keys: set[str], known: set[str], section: str) -> None:
    unknown = keys - known
    for key in sorted(unknown):
        warnings.warn(f"Unknown key '{key}' in {section} section of export job", stacklevel=3)


def _parse_enum(enum_cls, value, key: str):
    try:
        return enum_cls(str(value).lower())
    except ValueError:
        choices = ", ".join(e.value for e in enum_cls)
        raise ValueError(f"'{key}' must be one of: {choices} (got {value!r})")


def _parse_source(raw, base_dir: Path, index: int) -> SourceConfig:
    if isinstance(raw, str):
        # Shorthand: a bare path
        return SourceConfig(path=_resolve(raw, base_dir))
    if not isinstance(raw, dict):
        raise ValueError(f"source {index + 1} must be a path or mapping")
    _warn_unknown_keys(set(raw.keys()), KNOWN_SOURCE_KEYS, f"source {index + 1}")
    if "path" not in raw:
        raise ValueError(f"source {index + 1} has no 'path'")

    laps = raw.get("laps", [])
    if not isinstance(laps, list):
        raise ValueError(f"source {index + 1}: 'laps' must be a list of seconds")

    return SourceConfig(
        path=_resolve(str(raw["path"]), base_dir),
        start=float(raw.get("start", 0.0)),
        laps=[float(t) for t in laps],
        label=SourceLabel(
            name=str(raw.get("name") or ""),
            category=str(raw.get("category") or ""),
            section=raw.get("section"),
            time=str(raw.get("time") or ""),
            penalties=str(raw.get("penalties") or ""),
        ),
    )


def load_export_job(path: str | Path) -> ExportJobConfig:
    """Load a YAML export job file and return an ExportJobConfig."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Job file not found: {path}")

    raw = yaml.safe_load(path.read_text())
    if raw is None:
        # Empty YAML file
        return ExportJobConfig()
    if not isinstance(raw, dict):
        raise ValueError(f"Export job must be a YAML mapping, got {type(raw).__name__}")

    _warn_unknown_keys(set(raw.keys()), KNOWN_TOP_KEYS, "top-level")

    base_dir = path.resolve().parent
    cfg = ExportJobConfig()

    # --- sources ---
    if "sources" in raw:
        sources = raw["sources"]
        if not isinstance(sources, list):
            raise ValueError("'sources' must be a list")
        cfg.sources = [_parse_source(s, base_dir, i) for i, s in enumerate(sources)]

    if "orientation" in raw:
        cfg.orientation = _parse_enum(Orientation, raw["orientation"], "orientation")
    if "sync" in raw:
        cfg.sync_mode = _parse_enum(SyncMode, raw["sync"], "sync")
    if raw.get("max_duration") is not None:
        cfg.max_duration = float(raw["max_duration"])

    # --- output ---
    if "output" in raw:
        out = raw["output"]
        if isinstance(out, str):
            # Shorthand: output: "path.mp4"
            cfg.output_path = _resolve(out, base_dir)
        elif isinstance(out, dict):
            _warn_unknown_keys(set(out.keys()), KNOWN_OUTPUT_KEYS, "output")
            if out.get("path"):
                cfg.output_path = _resolve(str(out["path"]), base_dir)
            cfg.output_codec = out.get("codec")
            if "fps" in out:
                cfg.output_fps = float(out["fps"])
            cfg.output_bitrate = out.get("bitrate")
        else:
            raise ValueError("'output' must be a string or mapping")

    if "max_long_edge" in raw:
        cfg.max_long_edge = int(raw["max_long_edge"])
    if "workers" in raw:
        cfg.workers = int(raw["workers"])

    return cfg


def apply_config_to_settings(config: ExportJobConfig, settings: Settings | None = None) -> Settings:
    """Overlay non-None ExportJobConfig fields onto a Settings instance."""
    if settings is None:
        settings = Settings()

    field_map = {
        "output_codec": "output_codec",
        "output_fps": "output_fps",
        "output_bitrate": "output_bitrate",
        "max_long_edge": "max_long_edge",
        "workers": "max_workers",
    }

    for config_field, settings_field in field_map.items():
        value = getattr(config, config_field)
        if value is not None:
            setattr(settings, settings_field, value)

    return settings
