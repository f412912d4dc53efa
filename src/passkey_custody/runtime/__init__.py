from .runner import configure_logging, run

__all__ = ["configure_logging", "run"]
