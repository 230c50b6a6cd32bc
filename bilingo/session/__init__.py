"""Realtime translation session: connection, reconciliation and sync."""

from .channel import ControlChannel
from .controller import TranslationSession
from .reconciler import DualStreamReconciler, ReconcileAction, Reconciliation
from .scheduler import AsyncioScheduler, Scheduler
from .supervisor import ConnectionSupervisor
from .synchronizer import SessionSynchronizer

__all__ = [
    "ControlChannel",
    "TranslationSession",
    "DualStreamReconciler",
    "ReconcileAction",
    "Reconciliation",
    "AsyncioScheduler",
    "Scheduler",
    "ConnectionSupervisor",
    "SessionSynchronizer",
]
