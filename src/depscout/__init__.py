"""depscout - dependency rule discovery and inference for AI coding assistants."""

from depscout.logging_config import configure_logging, get_logger

__version__ = "0.1.0"

__all__ = ["__version__", "configure_logging", "get_logger"]
