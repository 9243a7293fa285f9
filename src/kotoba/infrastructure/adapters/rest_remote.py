import json
import logging
import math
from typing import Any

import httpx

from kotoba.domain.constants import DEFAULT_REMOTE_TABLE, PULL_PAGE_SIZE, REQUEST_TIMEOUT
from kotoba.domain.errors import RemoteStoreError
from kotoba.domain.models import RemoteRow
from kotoba.domain.ports import RemoteStore


def _is_finite_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


class RestRemoteStore(RemoteStore):
    """Adapter for a PostgREST-style table (e.g. Supabase) over HTTP."""

    def __init__(
        self,
        url: str,
        api_key: str | None = None,
        table: str = DEFAULT_REMOTE_TABLE,
        timeout: float = REQUEST_TIMEOUT,
        client: httpx.AsyncClient | None = None,
        page_size: int = PULL_PAGE_SIZE,
    ):
        self.logger = logging.getLogger(__name__)
        self.url = url.rstrip("/")
        self.table = table
        self.timeout = timeout
        self._api_key = api_key
        self._client = client
        self.page_size = max(1, page_size)

    @property
    def endpoint(self) -> str:
        return f"{self.url}/rest/v1/{self.table}"

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["apikey"] = self._api_key
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def fetch_rows(self, user_id: str) -> list[RemoteRow]:
        """Pull every row for ``user_id``, paging until a short page comes back."""
        rows: list[RemoteRow] = []
        offset = 0
        while True:
            params = {
                "user_id": f"eq.{user_id}",
                "select": "*",
                "order": "item_id.asc",
                "limit": str(self.page_size),
                "offset": str(offset),
            }
            data = await self._request("GET", params=params)
            if not isinstance(data, list):
                raise RemoteStoreError(f"Expected a list of rows, got {type(data).__name__}")

            rows.extend(self._parse_row(raw, user_id) for raw in data if isinstance(raw, dict))
            if len(data) < self.page_size:
                break
            offset += len(data)

        self.logger.debug(f"[pull] {len(rows)} rows for user={user_id}")
        return rows

    async def upsert_rows(self, rows: list[RemoteRow]) -> None:
        if not rows:
            return
        body = [
            {
                "user_id": r.user_id,
                "item_id": r.item_id,
                "data": r.data,
                "last_seen_at": r.last_seen_at,
                "updated_at": r.updated_at,
            }
            for r in rows
        ]
        await self._request(
            "POST",
            params={"on_conflict": "user_id,item_id"},
            json=body,
            headers={"Prefer": "resolution=merge-duplicates,return=minimal"},
        )
        self.logger.debug(f"[push] upserted {len(rows)} rows")

    @staticmethod
    def _parse_row(raw: dict[str, Any], user_id: str) -> RemoteRow:
        """Decode a row; a bad ``data`` column becomes {} and is rejected at merge time."""
        data = raw.get("data")
        if isinstance(data, str):
            try:
                data = json.loads(data)
            except json.JSONDecodeError:
                data = {}
        if not isinstance(data, dict):
            data = {}

        last_seen = raw.get("last_seen_at")
        return RemoteRow(
            user_id=str(raw.get("user_id", user_id)),
            item_id=str(raw.get("item_id", "")),
            data=data,
            last_seen_at=int(last_seen) if _is_finite_number(last_seen) else 0,
            updated_at=raw.get("updated_at"),
        )

    async def _request(self, method: str, **kwargs) -> Any:
        headers = {**self._headers(), **kwargs.pop("headers", {})}
        try:
            resp = await self._get_client().request(
                method, self.endpoint, headers=headers, **kwargs
            )
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise RemoteStoreError(
                f"{method} {self.table} failed with HTTP {e.response.status_code}: "
                f"{e.response.text[:200]}"
            ) from e
        except httpx.HTTPError as e:
            raise RemoteStoreError(f"{method} {self.table} failed: {e}") from e

        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as e:
            raise RemoteStoreError(f"{method} {self.table} returned invalid JSON: {e}") from e
