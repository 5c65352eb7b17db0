import logging
import sys


def setup_logging(logger_name=None, level="INFO", log_file=None):
    """Configure logging to the console and optionally to a file.

    Args:
        logger_name: Logger to configure (default: root logger)
        level: Level name or number for the console handler
        log_file: Optional path for a DEBUG-level file handler

    Returns:
        logging.Logger: The configured logger
    """

    # Create formatter
    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    # Create logger
    logger = logging.getLogger(logger_name)
    logger.setLevel(logging.DEBUG)

    # Console handler
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    # File handler (DEBUG and above)
    if log_file is not None:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger


def get_logger(logger_name, level="INFO"):
    existing_logger = logging.getLogger(logger_name)
    if not existing_logger.handlers:  # Check if handlers already exist
        return setup_logging(logger_name, level=level)
    return existing_logger
