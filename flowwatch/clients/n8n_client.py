"""Minimal client for the n8n public REST API (``/api/v1``)."""

from __future__ import annotations

import logging
from typing import Any, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from ..core.exceptions import RemoteApiError, RemoteTimeoutError
from ..schemas.remote import ExecutionPage, RemoteExecution, RemoteWorkflow, WorkflowListing

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"
# Safety bound for workflow listings; catalogs are small
MAX_WORKFLOW_PAGES = 100

ModelT = TypeVar("ModelT", bound=BaseModel)


class N8nClient:
    """Client bound to one provider's base URL and decrypted API key.

    Calls never retry; retry policy belongs to the caller.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout: float = 10.0,
        page_size: int = 100,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.page_size = page_size
        self._client = httpx.AsyncClient(
            base_url=f"{self.base_url}{API_PREFIX}",
            headers={
                "X-N8N-API-KEY": api_key,
                "Accept": "application/json",
            },
            timeout=timeout,
            transport=transport,
        )

    async def __aenter__(self) -> N8nClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        url = f"{self.base_url}{API_PREFIX}{path}"
        try:
            response = await self._client.get(path, params=params)
        except httpx.TimeoutException:
            raise RemoteTimeoutError(url, self.timeout) from None
        except httpx.HTTPError as e:
            raise RemoteApiError(0, f"connection failed: {e}", url=url) from e

        if response.is_error:
            message = response.reason_phrase or "request failed"
            try:
                body = response.json()
                if isinstance(body, dict) and body.get("message"):
                    message = str(body["message"])
            except ValueError:
                pass
            raise RemoteApiError(response.status_code, message, url=str(response.request.url))

        try:
            return response.json()
        except ValueError as e:
            raise RemoteApiError(response.status_code, f"invalid JSON body: {e}", url=url) from e

    def _parse(self, model: type[ModelT], payload: Any, path: str) -> ModelT:
        try:
            return model.model_validate(payload)
        except ValidationError as e:
            raise RemoteApiError(
                200,
                f"invalid {model.__name__} payload ({e.error_count()} errors)",
                url=f"{self.base_url}{API_PREFIX}{path}",
            ) from e

    def _parse_items(self, model: type[ModelT], body: Any, path: str) -> tuple[list[ModelT], int]:
        """Validate the ``data`` array of a listing; returns the items and how many were dropped."""
        if not isinstance(body, dict):
            raise RemoteApiError(200, "listing body is not an object", url=f"{self.base_url}{API_PREFIX}{path}")

        items: list[ModelT] = []
        dropped = 0
        for raw in body.get("data") or []:
            try:
                items.append(model.model_validate(raw))
            except ValidationError as e:
                dropped += 1
                logger.warning(
                    "Dropping malformed %s entry from %s%s (%d validation errors)",
                    model.__name__,
                    self.base_url,
                    path,
                    e.error_count(),
                )
        return items, dropped

    async def list_workflows(self) -> WorkflowListing:
        """List every workflow, following the remote cursor.

        The listing is marked incomplete when the page bound is reached or
        malformed entries were dropped.
        """
        workflows: list[RemoteWorkflow] = []
        complete = True
        cursor: str | None = None

        for _ in range(MAX_WORKFLOW_PAGES):
            params: dict[str, Any] = {"limit": self.page_size}
            if cursor:
                params["cursor"] = cursor

            body = await self._get("/workflows", params)
            items, dropped = self._parse_items(RemoteWorkflow, body, "/workflows")
            workflows.extend(items)
            if dropped:
                complete = False

            cursor = body.get("nextCursor")
            if not cursor:
                break
        else:
            logger.warning("Workflow listing for %s exceeded %d pages", self.base_url, MAX_WORKFLOW_PAGES)
            complete = False

        return WorkflowListing(items=workflows, complete=complete)

    async def get_workflow(self, remote_id: str) -> RemoteWorkflow:
        """Fetch one workflow with nodes, connections and tags."""
        path = f"/workflows/{remote_id}"
        return self._parse(RemoteWorkflow, await self._get(path), path)

    async def list_executions(
        self,
        limit: int = 100,
        cursor: str | None = None,
        include_data: bool = False,
    ) -> ExecutionPage:
        """Fetch one page of executions, newest first.

        Malformed entries are dropped; the sync engine sees them as
        missing from a data re-fetch and fetches them one by one.
        """
        params: dict[str, Any] = {"limit": limit}
        if cursor:
            params["cursor"] = cursor
        if include_data:
            params["includeData"] = "true"

        body = await self._get("/executions", params)
        items, _ = self._parse_items(RemoteExecution, body, "/executions")
        return ExecutionPage(items=items, next_cursor=body.get("nextCursor") or None)

    async def get_execution(self, remote_id: str) -> RemoteExecution:
        """Fetch one execution with its full payload."""
        path = f"/executions/{remote_id}"
        return self._parse(RemoteExecution, await self._get(path, {"includeData": "true"}), path)

    async def test_connection(self) -> bool:
        """Cheap reachability and credential check."""
        await self._get("/workflows", {"limit": 1})
        return True
