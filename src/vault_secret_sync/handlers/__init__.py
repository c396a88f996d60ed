"""Sync components: reconciliation engine, upsert executor, event listener."""

from .reconcile import ReconciliationEngine
from .upsert import TaskResult, UpsertExecutor
from .watch import EventListener

__all__ = ["EventListener", "ReconciliationEngine", "TaskResult", "UpsertExecutor"]
