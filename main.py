#!/usr/bin/env python3
"""Main entry point for adaptive-auth."""

import sys

from adaptive_auth.common.config import get_config, load_rules
from adaptive_auth.common.logging import configure_logging, get_logger

logger = get_logger("adaptive_auth.main")


def main():
    """Print the resolved configuration, or serve the API with `serve`."""
    config = get_config()
    configure_logging(config.log_level.value)
    rules = load_rules(config.resolved_rules_file) if config.resolved_rules_file.exists() else load_rules()
    logger.info(f"adaptive-auth initialized in {config.environment.value} mode")
    logger.info(f"Storage: {config.storage_backend.value}, delivery: {config.delivery_backend.value}")
    logger.info(f"Rules: {config.resolved_rules_file} (version {rules.version})")

    if len(sys.argv) > 1 and sys.argv[1] == "serve":
        import uvicorn

        uvicorn.run(
            "adaptive_auth.api.gateway:app",
            host=config.api_host,
            port=config.api_port,
            log_level=config.log_level.value.lower(),
        )


if __name__ == "__main__":
    main()
