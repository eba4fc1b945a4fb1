import logging

# Set up Python logging
logger = logging.getLogger("governance-oracle")
logger.setLevel(logging.INFO)  # LOG_LEVEL is validated and applied by set_log_level() at startup
logger.propagate = False  # Prevent duplicate logs through the root logger

# Configure logging handler/format only if no handlers present
if not logger.handlers:
    console_handler = logging.StreamHandler()
    formatter = logging.Formatter(
        fmt="%(asctime)s - [%(levelname)s] - %(name)s - %(funcName)s() - %(message)s"
    )
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)


def set_log_level(level: str) -> None:
    """Apply a level name (debug/info/warn/error) from configuration."""
    name = level.upper()
    if name == "WARN":
        name = "WARNING"
    logger.setLevel(name)
