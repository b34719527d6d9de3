"""Settings dataclass with JSON persistence."""

import json
import os
from dataclasses import asdict, dataclass
from pathlib import Path

DEFAULT_CONFIG_DIR = Path.home() / ".runcompare"
DEFAULT_CONFIG_PATH = DEFAULT_CONFIG_DIR / "settings.json"


@dataclass
class Settings:
    # Canvas
    max_long_edge: int = 1920
    grid_canvas_width: int = 1920
    grid_canvas_height: int = 1080

    # Output
    output_codec: str = "libx264"
    audio_codec: str = "aac"
    output_fps: float = 30.0
    output_bitrate: str = "8M"
    preset: str = "medium"

    # Freeze frames are sampled this far before a segment's end
    freeze_backoff_ms: int = 5

    # Minimum seconds between progress reports
    progress_interval_sec: float = 0.25

    # Parallelism
    max_workers: int = 0  # 0 = auto (cpu_count)

    # Overlays
    name_font_size: int = 16
    info_font_size: int = 12
    lap_font_size: int = 18
    delta_font_size: int = 14
    font_path: str | None = None

    def save(self, path: Path | None = None) -> None:
        path = path or DEFAULT_CONFIG_PATH
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(asdict(self), indent=2))

    @classmethod
    def load(cls, path: Path | None = None) -> "Settings":
        path = path or DEFAULT_CONFIG_PATH
        if not path.exists():
            return cls()
        try:
            data = json.loads(path.read_text())
            return cls(**{k: v for k, v in data.items() if k in cls.__dataclass_fields__})
        except (json.JSONDecodeError, TypeError):
            return cls()

    @property
    def resolved_max_workers(self) -> int:
        if self.max_workers > 0:
            return self.max_workers
        return os.cpu_count() or 4
