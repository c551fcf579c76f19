"""Helpers shared by the server process, the CLI and the test suite."""

from gridmock.shared.logging_config import DEFAULT_FORMAT, configure_logging

__all__ = ["DEFAULT_FORMAT", "configure_logging"]
