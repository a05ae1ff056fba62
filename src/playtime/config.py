"""Settings loaded from ``config.yaml`` on top of built-in defaults."""

from __future__ import annotations

import dataclasses
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Optional

import yaml

from playtime.core.plan import PlanDefaults
from playtime.errors import PlaytimeError

DEFAULT_CONFIG_DIR = Path.home() / ".config" / "playtime"
CONFIG_FILE = "config.yaml"
CONFIG_ENV_VAR = "PLAYTIME_CONFIG"


@dataclass(frozen=True)
class Settings:
    """Application settings.  Every field has a usable default."""

    data_dir: Path = DEFAULT_CONFIG_DIR
    tick_interval_seconds: float = 1.0
    log_level: str = "WARNING"
    log_json: bool = False
    plan_defaults: PlanDefaults = field(default_factory=PlanDefaults)


def load_settings(path: Optional[Path] = None) -> Settings:
    """Load settings from *path*, ``$PLAYTIME_CONFIG`` or the default file.

    A missing file yields the defaults.  Unknown keys are ignored.
    """
    if path is None:
        env_path = os.environ.get(CONFIG_ENV_VAR)
        path = Path(env_path) if env_path else DEFAULT_CONFIG_DIR / CONFIG_FILE

    path = Path(path).expanduser()
    if not path.exists():
        return Settings()

    with open(path) as f:
        try:
            raw = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise PlaytimeError(f"Invalid configuration file {path}: {exc}") from exc

    if not isinstance(raw, Mapping):
        raise PlaytimeError(f"Configuration file {path} must contain a mapping")
    return settings_from_mapping(raw)


def settings_from_mapping(raw: Mapping[str, Any]) -> Settings:
    defaults = Settings()
    plan_raw = raw.get("plan_defaults") or {}
    known_plan_fields = {f.name for f in dataclasses.fields(PlanDefaults)}
    plan_defaults = dataclasses.replace(
        PlanDefaults(), **{k: v for k, v in plan_raw.items() if k in known_plan_fields}
    )

    data_dir = raw.get("data_dir")
    return Settings(
        data_dir=Path(data_dir).expanduser() if data_dir else defaults.data_dir,
        tick_interval_seconds=float(raw.get("tick_interval_seconds", defaults.tick_interval_seconds)),
        log_level=str(raw.get("log_level", defaults.log_level)),
        log_json=bool(raw.get("log_json", defaults.log_json)),
        plan_defaults=plan_defaults,
    )
