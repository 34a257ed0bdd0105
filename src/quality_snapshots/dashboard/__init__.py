"""Dashboard payload: history averages plus auxiliary artifacts, cached on disk."""

from .aggregates import Averages, compute_averages, finite_mean
from .cache import DashboardCache, DashboardPayload, load_dashboard

__all__ = [
    "Averages",
    "compute_averages",
    "finite_mean",
    "DashboardCache",
    "DashboardPayload",
    "load_dashboard",
]
