"""HTTP query API over the feed store."""
