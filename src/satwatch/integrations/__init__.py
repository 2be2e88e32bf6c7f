"""Outbound integrations fed by monitor events."""

from satwatch.integrations.dashboard import DashboardSync, endpoint_for

__all__ = ["DashboardSync", "endpoint_for"]
