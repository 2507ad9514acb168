"""Mini README: Application state for cyclebudget.

``store`` defines the immutable snapshot and its reducer, ``scheduler`` the
cancellable APScheduler jobs behind debounced saving, and ``controller``
the single owner that ties them to the remote record store.
"""

from .controller import BudgetController, build_controller
from .scheduler import DeferredTask
from .store import AppState, initial_state, reduce

__all__ = [
    "AppState",
    "BudgetController",
    "DeferredTask",
    "build_controller",
    "initial_state",
    "reduce",
]
