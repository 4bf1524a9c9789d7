"""YouTube video analyzer: transcript fallback chain plus a single LLM analysis."""

__version__ = "1.2.0"
