"""Logging configuration for the LabourLink client"""
import sys
from typing import Optional

from loguru import logger

from .config import AppConfig, get_config, get_project_root


def setup_logging(config: Optional[AppConfig] = None, log_to_file: bool = True):
    """Configure logging based on config settings"""
    config = config or get_config()
    log_config = config.logging

    # Remove default handler
    logger.remove()

    logger.add(
        sys.stderr,
        level=log_config.level,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
    )

    if not log_to_file:
        return logger

    log_path = get_project_root() / log_config.file
    log_path.parent.mkdir(parents=True, exist_ok=True)

    # Rotating file sink
    logger.add(
        log_path,
        level=log_config.level,
        format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}",
        rotation=f"{log_config.max_size_mb} MB",
        retention=log_config.backup_count,
        compression="zip"
    )

    return logger


def get_logger():
    """Get the configured logger instance"""
    return logger
