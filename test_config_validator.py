#!/usr/bin/env python3
"""
Test script to validate config.toml format.

Usage:
    python test_config_validator.py [config_file]

Examples:
    python test_config_validator.py                    # Uses default config.toml
    python test_config_validator.py config.toml        # Explicit path
"""

import sys
import logging

from llmcord.config.loader import get_config
from llmcord.config.validator import ConfigError


if __name__ == "__main__":
    # Setup logging to see validation messages
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s: %(message)s"
    )

    config_file = sys.argv[1] if len(sys.argv) > 1 else "config.toml"

    print(f"Validating config: {config_file}")
    print("-" * 70)

    try:
        config = get_config(config_file)
    except ConfigError as e:
        print("-" * 70)
        print(f"❌ Config validation FAILED: {e}")
        sys.exit(1)

    print("-" * 70)
    print("✅ Config validation PASSED")
    print(f"   Model: {config.model.path} ({config.model.architecture})")
    print(f"   Commands: {list(config.enabled_commands)}")
    sys.exit(0)
