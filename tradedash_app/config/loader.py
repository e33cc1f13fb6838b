"""Configuration loader with 3-tier parameter precedence."""

from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Optional

import structlog
import yaml

from .defaults import (
    AccountParams,
    AppConfig,
    FeedParams,
    MovementParams,
    NotificationParams,
    PriceRange,
    StalenessParams,
    TradingParams,
    ValidationRanges,
    get_default_config,
)
from .validation import ConfigValidator

logger = structlog.get_logger(__name__)

_SECTIONS = {
    "feed": FeedParams,
    "staleness": StalenessParams,
    "movement": MovementParams,
    "trading": TradingParams,
    "accounts": AccountParams,
    "notifications": NotificationParams,
}


class ConfigurationError(ValueError):
    """Raised when merged configuration fails validation."""

    def __init__(self, errors: list):
        self.errors = errors
        details = "; ".join(f"{err.field}: {err.message} (got: {err.value})" for err in errors)
        super().__init__(f"Invalid configuration: {details}")


@dataclass(frozen=True)
class ConfigLoader:
    """Manages configuration loading with 3-tier precedence."""

    config_dir: Path
    defaults: AppConfig

    @classmethod
    def create(cls, config_dir: Optional[Path] = None) -> "ConfigLoader":
        """Create a ConfigLoader instance."""
        if config_dir is None:
            config_dir = Path(__file__).parent.parent.parent / "config"

        return cls(
            config_dir=Path(config_dir),
            defaults=get_default_config(),
        )

    def load_settings_file(self) -> dict[str, Any]:
        """Load deployment overrides from ``settings.yaml`` if present."""
        settings_file = self.config_dir / "settings.yaml"

        if not settings_file.exists():
            return {}

        with open(settings_file) as f:
            settings = yaml.safe_load(f) or {}

        return settings  # type: ignore[no-any-return]

    def merge_config(self, overrides: Optional[dict[str, Any]] = None) -> dict[str, Any]:
        """
        Merge configuration with 3-tier precedence.

        Priority order:
        1. Explicit overrides (highest priority)
        2. settings.yaml in the config directory
        3. Global defaults (lowest priority)
        """
        config = self._dataclass_to_dict(self.defaults)
        config = self._deep_merge(config, self.load_settings_file())

        if overrides:
            config = self._deep_merge(config, overrides)

        return config

    def load(self, overrides: Optional[dict[str, Any]] = None) -> AppConfig:
        """Merge, validate and build the typed configuration."""
        merged = self.merge_config(overrides)

        errors = ConfigValidator.validate_config(merged)
        if errors:
            raise ConfigurationError(errors)

        config = self._build(merged)
        logger.debug(
            "Configuration loaded",
            config_dir=str(self.config_dir),
            tier1_pct=config.movement.tier1_pct,
            tier2_pct=config.movement.tier2_pct,
            min_stake=config.trading.min_stake,
            max_stake=config.trading.max_stake,
        )
        return config

    def _build(self, merged: dict[str, Any]) -> AppConfig:
        sections: dict[str, Any] = {}
        for name, section_cls in _SECTIONS.items():
            sections[name] = self._build_section(section_cls, merged.get(name, {}))

        ranges = {
            category: PriceRange(**bounds)
            for category, bounds in merged.get("validation", {}).items()
        }
        sections["validation"] = ValidationRanges(**ranges)

        return AppConfig(**sections)

    def _build_section(self, section_cls: type, values: dict[str, Any]) -> Any:
        known = {f.name for f in fields(section_cls)}
        kwargs = {}
        for key, value in values.items():
            if key not in known:
                logger.warning("Ignoring unknown configuration key", section=section_cls.__name__, key=key)
                continue
            kwargs[key] = tuple(value) if isinstance(value, list) else value
        return section_cls(**kwargs)

    def _dataclass_to_dict(self, obj: Any) -> Any:
        """Convert nested dataclasses to dictionary."""
        if hasattr(obj, '__dataclass_fields__'):
            result = {}
            for field_name in obj.__dataclass_fields__:
                result[field_name] = self._dataclass_to_dict(getattr(obj, field_name))
            return result
        return obj

    def _deep_merge(self, base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
        """Deep merge two dictionaries."""
        result = base.copy()

        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._deep_merge(result[key], value)
            else:
                result[key] = value

        return result
