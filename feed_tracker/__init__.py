"""feed-tracker: RSS feed polling with content-hash change detection."""

__version__ = "0.1.0"
