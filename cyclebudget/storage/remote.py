"""Mini README: HTTP client for the remote cycle record store.

Structure:
    * StorageError - raised for transport failures and unusable responses.
    * CycleRecord - one stored cycle: its key and budget list.
    * RemoteBudgetStore - reads and writes records under a namespace.

The store keeps one JSON record per billing cycle at
``{base_url}/{namespace}/data``. Reads return a list of records; writes PUT
``{cycle, budget, overview}`` and answer with a modification counter.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import httpx

from ..budgets.aggregator import Metrics
from ..budgets.models import Budget
from ..logging_utils import get_logger

LOGGER = get_logger(__name__)

MODIFIED_COUNT_FIELD = "modifiedCount"


class StorageError(RuntimeError):
    """The record store could not be reached or answered with unusable data."""


@dataclass(frozen=True, slots=True)
class CycleRecord:
    cycle: str
    budgets: Tuple[Budget, ...]

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "CycleRecord":
        try:
            entries = payload.get("budget") or []
            return cls(
                cycle=str(payload["cycle"]),
                budgets=tuple(Budget.from_dict(entry) for entry in entries),
            )
        except KeyError as error:
            raise ValueError(f"Cycle record is missing field {error}") from error
        except (TypeError, AttributeError) as error:
            raise ValueError(f"Cycle record is malformed: {payload!r}") from error


class RemoteBudgetStore:
    """Thin wrapper over ``httpx.Client`` for cycle records."""

    def __init__(
        self,
        base_url: str,
        namespace: str,
        *,
        timeout: float = 10.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.namespace = namespace
        self._client = httpx.Client(timeout=timeout, transport=transport)
        LOGGER.debug("Remote store configured at %s", self.resource_url)

    @property
    def resource_url(self) -> str:
        return f"{self.base_url}/{self.namespace}/data"

    def __enter__(self) -> "RemoteBudgetStore":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    def _request(self, method: str, **kwargs: Any) -> Any:
        try:
            response = self._client.request(method, self.resource_url, **kwargs)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPError as error:
            raise StorageError(f"{method} {self.resource_url} failed: {error}") from error
        except ValueError as error:
            raise StorageError(f"{method} {self.resource_url} returned invalid JSON") from error

    def _fetch_payload(self, cycle_key: Optional[str]) -> List[Any]:
        params = {"cycle": cycle_key} if cycle_key else None
        payload = self._request("GET", params=params)
        if not isinstance(payload, list):
            raise StorageError(f"Expected a list of cycle records, got {type(payload).__name__}")
        return payload

    @staticmethod
    def _parse(entry: Any) -> CycleRecord:
        try:
            return CycleRecord.from_dict(entry)
        except ValueError as error:
            raise StorageError(str(error)) from error

    def fetch_records(self, cycle_key: Optional[str] = None) -> List[CycleRecord]:
        """Return stored records, optionally asking the store to filter by cycle."""

        return [self._parse(entry) for entry in self._fetch_payload(cycle_key)]

    def load_cycle(self, cycle_key: str) -> Optional[Tuple[Budget, ...]]:
        """Budgets stored for ``cycle_key``, or ``None`` when nothing matches.

        Only the matching record is parsed, so a malformed record for another
        cycle does not break the load.
        """

        for entry in self._fetch_payload(cycle_key):
            if isinstance(entry, Mapping) and entry.get("cycle") == cycle_key:
                record = self._parse(entry)
                LOGGER.info("Loaded %s budgets for cycle %s", len(record.budgets), cycle_key)
                return record.budgets
        LOGGER.info("No stored record for cycle %s; keeping defaults", cycle_key)
        return None

    def save_cycle(
        self,
        cycle_key: str,
        budgets: Sequence[Budget],
        overview: Metrics,
    ) -> Optional[int]:
        """Write the cycle record and return the store's modification counter."""

        body: Dict[str, object] = {
            "cycle": cycle_key,
            "budget": [budget.as_dict() for budget in budgets],
            "overview": overview.as_dict(),
        }
        payload = self._request("PUT", json=body)
        modified = payload.get(MODIFIED_COUNT_FIELD) if isinstance(payload, dict) else None
        LOGGER.debug("Saved cycle %s (modified count: %s)", cycle_key, modified)
        return modified
