"""Daily activity log and discussion prompts from recorded screen activity."""

__version__ = "0.1.0"
