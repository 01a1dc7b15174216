"""Sheet Store client for the spreadsheet web app backend.

The web app exposes a single URL: ``GET`` reads a sheet or lists sheet
names, ``POST`` with a JSON body appends, updates or deletes rows. Every
request is made exactly once; callers decide whether to retry.
"""

import json
from typing import Any, Protocol, cast

import httpx
import structlog

from agency_ledger.config import get_settings

logger = structlog.get_logger(__name__)

Row = list[Any]


class SheetStoreError(Exception):
    """Any failed Sheet Store call, with a human-readable message."""

    def __init__(self, message: str, status_code: int | None = None, details: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.details = details


class SheetStore(Protocol):
    """Row-oriented persistence addressed by sheet name and 1-based row."""

    async def read(self, sheet_name: str) -> list[Row]: ...

    async def append(self, sheet_name: str, rows: list[Row]) -> None: ...

    async def update(self, sheet_name: str, row_position: int, row_values: Row) -> None: ...

    async def delete(self, sheet_name: str, row_position: int) -> None: ...

    async def list_sheet_names(self) -> list[str]: ...


class AppsScriptSheetStore:
    """Async client for a spreadsheet web app deployment."""

    def __init__(self, url: str | None = None, timeout: float | None = None):
        settings = get_settings()
        self.url = url if url is not None else settings.sheet_store_url
        self._timeout = timeout if timeout is not None else settings.sheet_store_timeout
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self._timeout),
                follow_redirects=True,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "AppsScriptSheetStore":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    # === Transport ===

    async def _request(
        self,
        method: str,
        params: dict[str, Any] | None = None,
        body: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Make a single request and unwrap the web app's JSON envelope."""
        if not self.url:
            raise SheetStoreError("Sheet Store URL is not configured")

        client = await self._get_client()
        try:
            response = await client.request(
                method=method,
                url=self.url,
                params=params,
                # The web app parses the raw body; it must be sent as text/plain.
                content=json.dumps(body, ensure_ascii=False) if body is not None else None,
                headers={"Content-Type": "text/plain;charset=utf-8"} if body is not None else None,
            )
        except httpx.RequestError as e:
            raise SheetStoreError(f"Request failed: {e}") from e

        if response.status_code >= 400:
            raise SheetStoreError(
                f"HTTP {response.status_code}: {response.reason_phrase}",
                status_code=response.status_code,
                details={"raw": response.text[:500] if response.text else "empty response"},
            )

        try:
            data_raw = response.json()
        except ValueError as e:
            raise SheetStoreError(
                "Invalid Sheet Store response format",
                status_code=response.status_code,
                details={"raw": response.text[:500]},
            ) from e
        if not isinstance(data_raw, dict):
            raise SheetStoreError("Invalid Sheet Store response format")
        data = cast(dict[str, Any], data_raw)

        if data.get("error"):
            raise SheetStoreError(str(data["error"]), status_code=response.status_code, details=data)
        return data

    # === Reads ===

    async def read(self, sheet_name: str) -> list[Row]:
        """Read every row of a sheet, header included."""
        data = await self._request("GET", params={"action": "read", "sheet": sheet_name})
        rows = data.get("data") or []
        logger.debug("sheet_read", sheet=sheet_name, rows=len(rows))
        return [list(row) for row in rows]

    async def list_sheet_names(self) -> list[str]:
        data = await self._request("GET", params={"action": "sheets"})
        return [str(name) for name in data.get("sheets") or []]

    # === Writes ===

    async def append(self, sheet_name: str, rows: list[Row]) -> None:
        await self._request("POST", body={"action": "append", "sheet": sheet_name, "rows": rows})
        logger.info("sheet_rows_appended", sheet=sheet_name, rows=len(rows))

    async def update(self, sheet_name: str, row_position: int, row_values: Row) -> None:
        await self._request(
            "POST",
            body={
                "action": "update",
                "sheet": sheet_name,
                "rowIndex": row_position,
                "rowData": row_values,
            },
        )
        logger.info("sheet_row_updated", sheet=sheet_name, row=row_position)

    async def delete(self, sheet_name: str, row_position: int) -> None:
        await self._request(
            "POST", body={"action": "delete", "sheet": sheet_name, "rowIndex": row_position}
        )
        logger.info("sheet_row_deleted", sheet=sheet_name, row=row_position)
