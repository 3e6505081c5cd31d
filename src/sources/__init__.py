"""Activity data sources."""

from daylog.sources.screenpipe import ScreenpipeClient

__all__ = ["ScreenpipeClient"]
