"""Long-running services."""

from feed_tracker.services.polling_service import PollingService

__all__ = ["PollingService"]
