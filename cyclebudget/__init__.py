"""Mini README: Core package initializer for cyclebudget.

cyclebudget tracks household spending against category budgets for a
billing cycle that runs from the 25th of one month to the 25th of the next.
Subpackages split the work into pure budget arithmetic (``budgets``), the
application state and its timers (``state``), the remote record store
(``storage``) and the browser dashboard (``interface``).
"""

from .logging_utils import get_logger

__all__ = ["get_logger"]
