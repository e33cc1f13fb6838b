"""Configuration validation utilities."""

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class ValidationError:
    """Represents a configuration validation error."""
    field: str
    message: str
    value: Any


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


class ConfigValidator:
    """Validates configuration parameters."""

    @staticmethod
    def validate_movement_params(params: dict[str, Any]) -> list[ValidationError]:
        """Validate movement alert thresholds."""
        errors = []

        for name in ("tier1_pct", "tier2_pct"):
            if name in params:
                value = params[name]
                if not _is_number(value) or value <= 0:
                    errors.append(ValidationError(
                        field=f"movement.{name}",
                        message="Must be a positive number",
                        value=value
                    ))

        tier1 = params.get("tier1_pct")
        tier2 = params.get("tier2_pct")
        if _is_number(tier1) and _is_number(tier2) and tier2 < tier1:
            errors.append(ValidationError(
                field="movement.tier2_pct",
                message="Must be greater than or equal to tier1_pct",
                value=tier2
            ))

        if "max_alerts" in params:
            value = params["max_alerts"]
            if not isinstance(value, int) or value <= 0:
                errors.append(ValidationError(
                    field="movement.max_alerts",
                    message="Must be a positive integer",
                    value=value
                ))

        return errors

    @staticmethod
    def validate_trading_params(params: dict[str, Any]) -> list[ValidationError]:
        """Validate stake bounds, durations and the win-override probability."""
        errors = []

        min_stake = params.get("min_stake")
        max_stake = params.get("max_stake")
        for name, value in (("min_stake", min_stake), ("max_stake", max_stake)):
            if name in params and (not _is_number(value) or value <= 0):
                errors.append(ValidationError(
                    field=f"trading.{name}",
                    message="Must be a positive number",
                    value=value
                ))
        if _is_number(min_stake) and _is_number(max_stake) and max_stake < min_stake:
            errors.append(ValidationError(
                field="trading.max_stake",
                message="Must be greater than or equal to min_stake",
                value=max_stake
            ))

        if "allowed_durations" in params:
            value = params["allowed_durations"]
            if not all(isinstance(d, int) and d > 0 for d in value):
                errors.append(ValidationError(
                    field="trading.allowed_durations",
                    message="Must contain positive integers only",
                    value=value
                ))

        if "stochastic_win_probability" in params:
            value = params["stochastic_win_probability"]
            if not _is_number(value) or not 0.0 <= value <= 1.0:
                errors.append(ValidationError(
                    field="trading.stochastic_win_probability",
                    message="Must be a number between 0 and 1",
                    value=value
                ))

        return errors

    @staticmethod
    def validate_ranges(ranges: dict[str, Any]) -> list[ValidationError]:
        """Validate per-category price ranges."""
        errors = []

        for category, bounds in ranges.items():
            if not isinstance(bounds, dict):
                errors.append(ValidationError(
                    field=f"validation.{category}",
                    message="Must be a mapping with min_price and max_price",
                    value=bounds
                ))
                continue
            low = bounds.get("min_price")
            high = bounds.get("max_price")
            if not _is_number(low) or not _is_number(high) or low <= 0 or high <= low:
                errors.append(ValidationError(
                    field=f"validation.{category}",
                    message="Requires 0 < min_price < max_price",
                    value=bounds
                ))

        return errors

    @staticmethod
    def validate_staleness_params(params: dict[str, Any]) -> list[ValidationError]:
        errors = []

        delayed = params.get("delayed_after_seconds")
        expired = params.get("expired_after_seconds")
        if _is_number(delayed) and _is_number(expired) and expired <= delayed:
            errors.append(ValidationError(
                field="staleness.expired_after_seconds",
                message="Must be greater than delayed_after_seconds",
                value=expired
            ))

        return errors

    @staticmethod
    def validate_config(config: dict[str, Any]) -> list[ValidationError]:
        """Validate complete configuration."""
        errors = []

        if "movement" in config:
            errors.extend(ConfigValidator.validate_movement_params(config["movement"]))

        if "trading" in config:
            errors.extend(ConfigValidator.validate_trading_params(config["trading"]))

        if "validation" in config:
            errors.extend(ConfigValidator.validate_ranges(config["validation"]))

        if "staleness" in config:
            errors.extend(ConfigValidator.validate_staleness_params(config["staleness"]))

        return errors
