"""Mini README: Persistence for cyclebudget.

The remote record store is an external HTTP service holding one record per
billing cycle. ``remote`` wraps it behind ``RemoteBudgetStore`` so the rest
of the application only deals with budgets and metrics.
"""

from .remote import CycleRecord, RemoteBudgetStore, StorageError

__all__ = ["CycleRecord", "RemoteBudgetStore", "StorageError"]
