from __future__ import annotations

from threading import Lock
from typing import Any, Callable, Dict, List, Optional, Tuple
from urllib.parse import urlencode

import httpx

from src.core.config import get_settings
from src.core.errors import DataSourceError
from src.core.retry import call_with_retry

SELECT_PAGE_SIZE = 1000


def in_filter(values: List[str]) -> str:
    quoted = ",".join('"' + value.replace('"', '\\"') + '"' for value in values)
    return f"in.({quoted})"


class SupabaseClient:
    _shared_client: httpx.Client | None = None
    _client_lock: Lock = Lock()

    def __init__(self) -> None:
        settings = get_settings()
        self.base_url = settings.supabase_url.rstrip("/") + "/rest/v1"
        self.api_key = settings.supabase_service_role_key or settings.supabase_anon_key
        if not self.api_key:
            raise ValueError("Supabase API key is required")
        self.retry_attempts = settings.survey_retry_attempts
        self.retry_initial_delay = settings.survey_retry_initial_delay_seconds
        self.retry_multiplier = settings.survey_retry_backoff_multiplier
        self._client = self._get_shared_client(settings.supabase_timeout_seconds)

    @classmethod
    def _get_shared_client(cls, timeout: float) -> httpx.Client:
        if cls._shared_client is not None:
            return cls._shared_client
        with cls._client_lock:
            if cls._shared_client is None:
                cls._shared_client = httpx.Client(
                    timeout=timeout,
                    limits=httpx.Limits(max_keepalive_connections=20, max_connections=100),
                )
        return cls._shared_client

    def select(
        self,
        table: str,
        select: str,
        filters: Optional[List[Tuple[str, str]]] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        order: Optional[str] = None,
        count: bool | str = False,
    ) -> Tuple[List[Dict[str, Any]], Optional[int]]:
        params: List[Tuple[str, str]] = [("select", select)]
        if filters:
            params.extend(filters)
        if limit is not None:
            params.append(("limit", str(limit)))
        if offset is not None:
            params.append(("offset", str(offset)))
        if order:
            params.append(("order", order))

        headers = self._auth_headers()
        if count:
            if count is True:
                headers["Prefer"] = "count=exact"
            elif isinstance(count, str):
                headers["Prefer"] = f"count={count}"

        url = f"{self.base_url}/{table}?{urlencode(params, doseq=True)}"
        response = self._send(
            f"select {table}", lambda: self._client.get(url, headers=headers)
        )
        total_count = None
        if count and "content-range" in response.headers:
            content_range = response.headers["content-range"]
            if "/" in content_range and not content_range.endswith("*"):
                total_count = int(content_range.split("/")[-1])
        return response.json(), total_count

    def select_all(
        self,
        table: str,
        select: str,
        filters: Optional[List[Tuple[str, str]]] = None,
        order: Optional[str] = None,
        page_size: int = SELECT_PAGE_SIZE,
    ) -> List[Dict[str, Any]]:
        """Page through every matching row; PostgREST caps a single response."""
        rows: List[Dict[str, Any]] = []
        offset = 0
        while True:
            page, _ = self.select(
                table=table,
                select=select,
                filters=filters,
                limit=page_size,
                offset=offset,
                order=order,
            )
            rows.extend(page)
            if len(page) < page_size:
                return rows
            offset += page_size

    def insert(
        self,
        table: str,
        payload: Dict[str, Any] | List[Dict[str, Any]],
        upsert: bool = False,
        on_conflict: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        params: List[Tuple[str, str]] = []
        if on_conflict:
            params.append(("on_conflict", on_conflict))
        url = f"{self.base_url}/{table}"
        if params:
            url = f"{url}?{urlencode(params, doseq=True)}"
        headers = self._auth_headers()
        headers["Content-Type"] = "application/json"
        headers["Prefer"] = "return=representation"
        if upsert:
            headers["Prefer"] = "resolution=merge-duplicates,return=representation"
        response = self._send(
            f"insert {table}", lambda: self._client.post(url, headers=headers, json=payload)
        )
        return self._rows(response)

    def update(
        self,
        table: str,
        payload: Dict[str, Any],
        filters: List[Tuple[str, str]],
    ) -> List[Dict[str, Any]]:
        params: List[Tuple[str, str]] = []
        if filters:
            params.extend(filters)
        url = f"{self.base_url}/{table}?{urlencode(params, doseq=True)}"
        headers = self._auth_headers()
        headers["Content-Type"] = "application/json"
        headers["Prefer"] = "return=representation"
        response = self._send(
            f"update {table}", lambda: self._client.patch(url, headers=headers, json=payload)
        )
        return self._rows(response)

    def delete(self, table: str, filters: List[Tuple[str, str]]) -> None:
        if not filters:
            raise ValueError("Refusing to delete without filters")
        url = f"{self.base_url}/{table}?{urlencode(filters, doseq=True)}"
        headers = self._auth_headers()
        headers["Prefer"] = "return=minimal"
        self._send(f"delete {table}", lambda: self._client.delete(url, headers=headers))

    def _auth_headers(self) -> Dict[str, str]:
        return {
            "apikey": self.api_key,
            "Authorization": f"Bearer {self.api_key}",
        }

    def _send(self, description: str, request: Callable[[], httpx.Response]) -> httpx.Response:
        def attempt() -> httpx.Response:
            response = request()
            response.raise_for_status()
            return response

        try:
            return call_with_retry(
                attempt,
                description=description,
                attempts=self.retry_attempts,
                initial_delay=self.retry_initial_delay,
                multiplier=self.retry_multiplier,
            )
        except httpx.HTTPStatusError as exc:
            raise DataSourceError(
                f"Store request failed: {description} (HTTP {exc.response.status_code})",
                details={"operation": description, "status": exc.response.status_code},
            ) from exc
        except httpx.HTTPError as exc:
            raise DataSourceError(
                f"Store unreachable: {description}",
                details={"operation": description},
            ) from exc

    @staticmethod
    def _rows(response: httpx.Response) -> List[Dict[str, Any]]:
        if not response.content:
            return []
        data = response.json()
        if isinstance(data, list):
            return data
        if isinstance(data, dict):
            return [data]
        return []
