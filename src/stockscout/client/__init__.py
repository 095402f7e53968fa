"""Async client for the Stock Scout API."""

from .dashboard import DashboardClient, DashboardClientError

__all__ = ["DashboardClient", "DashboardClientError"]
