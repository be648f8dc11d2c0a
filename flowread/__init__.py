"""flowread: streaming AI word/article analysis for a reading app."""

__version__ = "0.1.0"
