"""
Table Store Module

Abstract interface over the managed backend's table API plus two
implementations: in-memory (testing, local runs) and REST (the backend's
PostgREST dialect over httpx). Rows are plain JSON dictionaries; monetary
values travel as Decimal strings.
"""

from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Any
from datetime import datetime, timezone
from dataclasses import dataclass
import itertools
import json
import logging
import threading
import uuid

import httpx

logger = logging.getLogger("banking_panel.storage")


class BackendError(Exception):
    """Raised when the backend rejects or fails a table operation"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


@dataclass(frozen=True)
class Embed:
    """Embedded parent row, e.g. the owning profile of a bank detail"""
    alias: str        # key the parent row appears under
    table: str        # parent table
    foreign_key: str  # column on the child row holding the parent id


class TableStore(ABC):
    """Abstract interface for the backend's table API"""

    @abstractmethod
    def select(self, table: str, filters: Optional[Dict[str, Any]] = None,
               order_by: Optional[str] = None, descending: bool = False,
               embed: Optional[Embed] = None) -> List[Dict[str, Any]]:
        """Select rows matching equality filters"""
        pass

    @abstractmethod
    def insert(self, table: str, data: Dict[str, Any]) -> Dict[str, Any]:
        """Insert a row and return it as stored (with id and created_at)"""
        pass

    @abstractmethod
    def update(self, table: str, filters: Dict[str, Any],
               changes: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Update matching rows and return them"""
        pass

    @abstractmethod
    def delete(self, table: str, filters: Dict[str, Any]) -> int:
        """Delete matching rows and return how many were removed"""
        pass

    @abstractmethod
    def close(self) -> None:
        """Release connections"""
        pass

    def select_one(self, table: str, filters: Dict[str, Any],
                   embed: Optional[Embed] = None) -> Optional[Dict[str, Any]]:
        """Select a single row, None if nothing matches"""
        rows = self.select(table, filters, embed=embed)
        if not rows:
            return None
        if len(rows) > 1:
            raise BackendError(f"Expected a single row from {table}, got {len(rows)}")
        return rows[0]


def _normalize(data: Dict[str, Any]) -> Dict[str, Any]:
    """JSON round-trip so stored rows never alias caller objects"""
    return json.loads(json.dumps(data, default=str))


class InMemoryTableStore(TableStore):
    """In-memory table store for testing and local runs"""

    def __init__(self):
        self._data: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self._sequence: Dict[str, int] = {}
        self._counter = itertools.count()
        self._lock = threading.RLock()

    def _ensure_table(self, table: str) -> Dict[str, Dict[str, Any]]:
        if table not in self._data:
            self._data[table] = {}
        return self._data[table]

    @staticmethod
    def _matches(row: Dict[str, Any], filters: Dict[str, Any]) -> bool:
        normalized = _normalize(filters)
        for key, value in normalized.items():
            if row.get(key) != value:
                return False
        return True

    def select(self, table, filters=None, order_by=None, descending=False, embed=None):
        with self._lock:
            rows = [
                row for row in self._ensure_table(table).values()
                if self._matches(row, filters or {})
            ]
            # Insertion order breaks ties between equal sort keys
            if order_by:
                rows.sort(key=lambda r: (r.get(order_by) is not None, r.get(order_by) or "",
                                         self._sequence[r["id"]]),
                          reverse=descending)
            else:
                rows.sort(key=lambda r: self._sequence[r["id"]])

            results = []
            for row in rows:
                result = _normalize(row)
                if embed:
                    parent = self._ensure_table(embed.table).get(row.get(embed.foreign_key))
                    result[embed.alias] = _normalize(parent) if parent else None
                results.append(result)
            return results

    def insert(self, table, data):
        with self._lock:
            rows = self._ensure_table(table)
            row = _normalize(data)
            row.setdefault("id", str(uuid.uuid4()))
            row.setdefault("created_at", datetime.now(timezone.utc).isoformat())
            if row["id"] in rows:
                raise BackendError(
                    f'duplicate key value violates unique constraint "{table}_pkey"',
                    status_code=409
                )
            rows[row["id"]] = row
            self._sequence[row["id"]] = next(self._counter)
            return _normalize(row)

    def update(self, table, filters, changes):
        with self._lock:
            updated = []
            for row in self._ensure_table(table).values():
                if self._matches(row, filters):
                    row.update(_normalize(changes))
                    updated.append(_normalize(row))
            return updated

    def delete(self, table, filters):
        with self._lock:
            rows = self._ensure_table(table)
            doomed = [row_id for row_id, row in rows.items() if self._matches(row, filters)]
            for row_id in doomed:
                del rows[row_id]
                self._sequence.pop(row_id, None)
            return len(doomed)

    def count(self, table: str) -> int:
        """Count rows in a table"""
        with self._lock:
            return len(self._ensure_table(table))

    def close(self) -> None:
        """Close store (no-op for in-memory)"""
        pass


class RestTableStore(TableStore):
    """Table store backed by the managed backend's REST endpoint"""

    def __init__(self, base_url: str, service_key: str, timeout: float = 10.0,
                 transport: Optional[httpx.BaseTransport] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = httpx.Client(
            timeout=timeout,
            transport=transport,
            headers={
                "apikey": service_key,
                "Authorization": f"Bearer {service_key}",
                "Content-Type": "application/json",
            }
        )

    def _url(self, table: str) -> str:
        return f"{self.base_url}/rest/v1/{table}"

    @staticmethod
    def _filter_params(filters: Optional[Dict[str, Any]]) -> Dict[str, str]:
        params = {}
        for key, value in (filters or {}).items():
            if value is None:
                params[key] = "is.null"
            elif isinstance(value, bool):
                params[key] = f"eq.{str(value).lower()}"
            else:
                params[key] = f"eq.{value}"
        return params

    def _request(self, method: str, table: str, **kwargs) -> Any:
        try:
            response = self._client.request(method, self._url(table), **kwargs)
        except httpx.HTTPError as e:
            logger.error(f"Backend request {method} {table} failed: {e}")
            raise BackendError(f"Backend unavailable: {e}") from e

        if response.status_code >= 400:
            try:
                body = response.json()
                message = body.get("message") or body.get("error") or response.text
            except ValueError:
                message = response.text
            logger.warning(f"Backend returned {response.status_code} for {method} {table}: {message}")
            raise BackendError(message, status_code=response.status_code)

        if not response.content:
            return []
        return response.json()

    def select(self, table, filters=None, order_by=None, descending=False, embed=None):
        params = self._filter_params(filters)
        params["select"] = "*"
        if embed:
            params["select"] = f"*,{embed.alias}:{embed.foreign_key}(*)"
        if order_by:
            params["order"] = f"{order_by}.{'desc' if descending else 'asc'}"
        return self._request("GET", table, params=params)

    def insert(self, table, data):
        rows = self._request(
            "POST", table,
            content=json.dumps(data, default=str),
            headers={"Prefer": "return=representation"}
        )
        if not rows:
            raise BackendError(f"Insert into {table} returned no row")
        return rows[0]

    def update(self, table, filters, changes):
        return self._request(
            "PATCH", table,
            params=self._filter_params(filters),
            content=json.dumps(changes, default=str),
            headers={"Prefer": "return=representation"}
        )

    def delete(self, table, filters):
        rows = self._request(
            "DELETE", table,
            params=self._filter_params(filters),
            headers={"Prefer": "return=representation"}
        )
        return len(rows)

    def close(self) -> None:
        """Close the HTTP client"""
        self._client.close()
