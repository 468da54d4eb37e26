"""
Teleprompter Data API Client
============================
Async client for the remote REST CRUD endpoint that holds scripts,
alternatives, submissions, role lists and user history.

The endpoint takes ``action``/``table`` query parameters and answers with an
envelope ``{"success": bool, "data": ..., "error": str}``. The engine only
relies on four verbs: get, create, update and upsert.
"""

import json
import logging
from typing import Any, Dict, List, Optional, Protocol

import httpx

from .config import settings
from .errors import DataStoreError, DataStoreNotConfigured

logger = logging.getLogger(__name__)

# Logical table names (the campaign prefix is applied by the client)
SCRIPTS_TABLE = "script"
LIST_ID_CONFIG_TABLE = "list_id_config"
SPIEL_ALTS_TABLE = "spiel_alts"
OBJECTION_ALTS_TABLE = "objection_alts"
SUBMISSIONS_TABLE = "script_submissions"
USER_HISTORY_TABLE = "users"
APP_SETTINGS_TABLE = "app_settings"


class DataStore(Protocol):
    """The four verbs the engine needs from the remote collaborator"""

    async def get(
        self,
        table: str,
        where: Optional[Dict[str, Any]] = None,
        order_by: Optional[str] = None,
        order: str = "ASC",
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]: ...

    async def create(self, table: str, record: Dict[str, Any]) -> Any: ...

    async def update(self, table: str, record_id: Any, partial: Dict[str, Any]) -> None: ...

    async def upsert(self, table: str, record: Dict[str, Any]) -> Any: ...


def _extract_error(response: httpx.Response) -> str:
    """Pull a message out of an error response"""
    try:
        payload = response.json()
    except ValueError:
        return f"HTTP {response.status_code}"
    if isinstance(payload, dict):
        return payload.get("message") or payload.get("error") or f"HTTP {response.status_code}"
    return f"HTTP {response.status_code}"


class DataApiClient:
    """httpx implementation of DataStore"""

    def __init__(
        self,
        base_url: Optional[str] = None,
        table_prefix: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url if base_url is not None else settings.data_api_url
        self.table_prefix = table_prefix if table_prefix is not None else settings.table_prefix
        self.timeout = timeout or settings.data_api_timeout
        self._client = client

    @property
    def is_configured(self) -> bool:
        return bool(self.base_url)

    def table_name(self, table: str) -> str:
        if self.table_prefix and not table.startswith(self.table_prefix):
            return f"{self.table_prefix}{table}"
        return table

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def aclose(self):
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _request(
        self,
        method: str,
        action: str,
        table: str,
        params: Optional[Dict[str, str]] = None,
        body: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        if not self.is_configured:
            raise DataStoreNotConfigured("DATA_API_URL not set", table=table)

        full_table = self.table_name(table)
        query = {"action": action, "table": full_table, **(params or {})}

        try:
            response = await self._get_client().request(method, self.base_url, params=query, json=body)
        except httpx.RequestError as e:
            logger.error(f"[DataAPI] {action} {full_table} failed: {e}")
            raise DataStoreError(f"Unable to reach data API: {e}", table=full_table) from e

        if response.status_code >= 400:
            message = _extract_error(response)
            logger.error(f"[DataAPI] {action} {full_table} -> {response.status_code}: {message}")
            raise DataStoreError(message, table=full_table, status_code=response.status_code)

        try:
            payload = response.json()
        except ValueError as e:
            raise DataStoreError("Data API returned invalid JSON", table=full_table) from e

        if not payload.get("success"):
            message = payload.get("error") or payload.get("message") or f"{action} failed"
            logger.error(f"[DataAPI] {action} {full_table} rejected: {message}")
            raise DataStoreError(message, table=full_table, status_code=response.status_code)

        return payload

    async def get(self, table, where=None, order_by=None, order="ASC", limit=None):
        params = {}
        if where:
            params["where"] = json.dumps(where)
        if order_by:
            params["orderBy"] = json.dumps({order_by: order})
        if limit:
            params["limit"] = str(limit)

        payload = await self._request("GET", "select", table, params=params)
        return payload.get("data") or []

    async def create(self, table, record):
        payload = await self._request("POST", "insert", table, body={"data": record})
        data = payload.get("data")
        if isinstance(data, dict):
            return data.get("id") or data.get("insert_id")
        return data

    async def update(self, table, record_id, partial):
        await self._request("PUT", "update", table, params={"id": str(record_id)}, body={"data": partial})

    async def upsert(self, table, record):
        payload = await self._request("POST", "upsert", table, body={"data": record})
        # Some deployments wrap upserted_ids in data
        data = payload.get("data")
        ids = payload.get("upserted_ids") or (data.get("upserted_ids") if isinstance(data, dict) else None)
        if not ids:
            raise DataStoreError("No upserted ID returned from API", table=self.table_name(table))
        return ids[0]


# Shared client instance
_data_store: Optional[DataApiClient] = None


def get_data_store() -> DataApiClient:
    """Get or create the shared data API client"""
    global _data_store
    if _data_store is None:
        _data_store = DataApiClient()
    return _data_store


async def close_data_store():
    global _data_store
    if _data_store is not None:
        await _data_store.aclose()
        _data_store = None
