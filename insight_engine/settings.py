"""
Engine Settings — tunables that are not user data.

Loads configuration from config/insight_engine.yaml. Falls back to
hardcoded defaults if the file is missing or unreadable, so resolution
never fails.

User-editable configuration (capacity default, anomaly overrides,
narrative config) lives in the record store, not here.
"""

import logging
from dataclasses import dataclass, field, fields
from pathlib import Path

import yaml

from insight_engine import paths

logger = logging.getLogger(__name__)

# =============================================================================
# CONSTANTS
# =============================================================================

_DEFAULT_ADMIN_CODES = ("R0996", "R0997")
_DEFAULT_OOO_CODES = ("R0999",)
_DEFAULT_NON_TASK_CODES = ("R0996", "R0997", "R0999")
_DEFAULT_BUS_FACTOR_METRIC_MIN_HOURS = 10.0


@dataclass(frozen=True)
class NarrativeThresholds:
    """Trigger levels for narrative observations (independent of anomaly rules)."""

    firefighting_load: float = 0.10
    focus_score: float = 35
    meeting_pct: float = 0.15
    overtime_daily_hours: float = 8
    overtime_min_days: int = 3
    over_burn_delta: float = 0.30
    under_burn_delta: float = -0.50
    overloaded_factor: float = 1.15
    underloaded_factor: float = 0.60
    project_fragmentation_min_projects: int = 3


@dataclass(frozen=True)
class EngineSettings:
    """Resolved engine settings."""

    admin_project_codes: tuple[str, ...] = _DEFAULT_ADMIN_CODES
    ooo_project_codes: tuple[str, ...] = _DEFAULT_OOO_CODES
    non_task_project_codes: tuple[str, ...] = _DEFAULT_NON_TASK_CODES
    bus_factor_metric_min_hours: float = _DEFAULT_BUS_FACTOR_METRIC_MIN_HOURS
    narrative: NarrativeThresholds = field(default_factory=NarrativeThresholds)


def _load_config(config_path: Path) -> dict:
    """Load YAML config, return empty dict on failure."""
    if not config_path.exists():
        logger.warning("Engine settings not found at %s, using defaults", config_path)
        return {}
    try:
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
    except (yaml.YAMLError, OSError) as exc:
        logger.error("Failed to load engine settings: %s", exc)
        return {}
    if not isinstance(data, dict):
        logger.error("Engine settings at %s must be a mapping, using defaults", config_path)
        return {}
    return data


def _mapping(raw, section: str) -> dict:
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        logger.warning("Engine settings section %r must be a mapping, using defaults", section)
        return {}
    return raw


def _codes(raw, default: tuple[str, ...], name: str) -> tuple[str, ...]:
    if not raw:
        return default
    if not isinstance(raw, (list, tuple)):
        logger.warning("Engine setting %s must be a list of codes, using default", name)
        return default
    return tuple(str(c) for c in raw)


def _number(raw, convert: type, default, name: str):
    """Coerce one numeric setting; a bad value keeps the default."""
    try:
        return convert(raw)
    except (TypeError, ValueError):
        logger.warning("Engine setting %s=%r is not a number, using default %s", name, raw, default)
        return default


def load_settings(config_path: Path | None = None) -> EngineSettings:
    """Build EngineSettings from YAML, falling back field by field."""
    if config_path is None:
        config_path = paths.settings_path()

    config = _load_config(config_path)
    codes = _mapping(config.get("project_codes"), "project_codes")
    narrative_cfg = _mapping(config.get("narrative"), "narrative")

    defaults = NarrativeThresholds()
    narrative = NarrativeThresholds(
        **{
            f.name: _number(
                narrative_cfg[f.name], f.type, getattr(defaults, f.name), f"narrative.{f.name}"
            )
            for f in fields(NarrativeThresholds)
            if f.name in narrative_cfg
        }
    )

    return EngineSettings(
        admin_project_codes=_codes(codes.get("admin"), _DEFAULT_ADMIN_CODES, "project_codes.admin"),
        ooo_project_codes=_codes(
            codes.get("out_of_office"), _DEFAULT_OOO_CODES, "project_codes.out_of_office"
        ),
        non_task_project_codes=_codes(
            codes.get("non_task"), _DEFAULT_NON_TASK_CODES, "project_codes.non_task"
        ),
        bus_factor_metric_min_hours=_number(
            config.get("bus_factor_metric_min_hours", _DEFAULT_BUS_FACTOR_METRIC_MIN_HOURS),
            float,
            _DEFAULT_BUS_FACTOR_METRIC_MIN_HOURS,
            "bus_factor_metric_min_hours",
        ),
        narrative=narrative,
    )


_settings: EngineSettings | None = None


def get_settings() -> EngineSettings:
    """Process-wide settings, loaded once."""
    global _settings
    if _settings is None:
        _settings = load_settings()
    return _settings


def reload_settings() -> EngineSettings:
    """Reload settings from disk (call after editing the YAML file)."""
    global _settings
    _settings = load_settings()
    return _settings
