"""Utility modules for GeoBench."""

from geobench.utils.logger import logger, setup_logger

__all__ = ["logger", "setup_logger"]
