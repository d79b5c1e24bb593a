"""Orchestrator package - queue, registry and reconciliation."""
from .core import UploadOrchestrator
from .queue import QueueState, UploadQueue
from .reconcile import ReconciliationTrigger
from .registry import ProgressEntry, ProgressRegistry

__all__ = [
    "UploadOrchestrator",
    "UploadQueue",
    "QueueState",
    "ReconciliationTrigger",
    "ProgressEntry",
    "ProgressRegistry",
]
