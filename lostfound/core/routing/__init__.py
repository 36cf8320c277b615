"""Approver routing and load balancing for work requests."""

from .directory import Approver, ApproverDirectory, InMemoryApproverDirectory
from .engine import RoutingEngine, RoutingRecommendation
from .workload import WorkloadTracker

__all__ = [
    "Approver",
    "ApproverDirectory",
    "InMemoryApproverDirectory",
    "RoutingEngine",
    "RoutingRecommendation",
    "WorkloadTracker",
]
