#!/usr/bin/env python3
"""Configuration validation script."""

import sys
from pathlib import Path

from tradedash_app.config.loader import ConfigLoader, ConfigurationError


def main() -> None:
    """Validate config/settings.yaml (or the directory given as argument)."""
    config_dir = Path(sys.argv[1]) if len(sys.argv) > 1 else None
    loader = ConfigLoader.create(config_dir)
    print(f"Validating configuration in {loader.config_dir}")

    try:
        config = loader.load()
    except ConfigurationError as e:
        print(f"Found {len(e.errors)} validation errors:")
        for error in e.errors:
            print(f"  {error.field}: {error.message} (value: {error.value})")
        sys.exit(1)

    print(f"Movement tiers: {config.movement.tier1_pct}% / {config.movement.tier2_pct}%")
    print(f"Stake bounds: {config.trading.min_stake:g} to {config.trading.max_stake:g}")
    print(f"Durations: {', '.join(str(d) for d in config.trading.allowed_durations)}")
    print("Configuration is valid")


if __name__ == "__main__":
    main()
