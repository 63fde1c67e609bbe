"""Resilient Data API Client: httpx-based metadata, CRUD and permission calls.

Invariants:
    - Rate limits (429): exponential backoff with jitter, respects Retry-After header
    - Transient errors (5xx, connection): max `max_retries` retries with exponential backoff
    - Client errors (4xx except 429): no retry; an envelope body is returned as
      ServiceResponse(succeeded=False), anything else raises DataServiceError
    - Timeouts raise DataServiceError immediately
    - Create is POST, update is PATCH, on distinct endpoints

Design Decisions:
    - One client implements SchemaService, DataService and PermissionService
      (all three talk to the same API with the same auth)
    - ±25% jitter on backoff
"""

import asyncio
import logging
import random

import httpx
from pydantic import ValidationError

from formbuilder.config import Settings, get_settings
from formbuilder.core.errors import DataServiceError, ErrorContext
from formbuilder.core.record_schema import TableSchema
from formbuilder.core.service_protocols import ReadQuery, ServiceResponse
from formbuilder.schemas.data_api import (
    ApiEnvelope,
    MetadataRequest,
    MetadataResponse,
    ReadRequest,
    SaveRequest,
    TablePermissions,
)

logger = logging.getLogger(__name__)

_RATE_LIMIT_STATUS = 429


class DataApiClient:
    """Wraps httpx.AsyncClient with retry logic, timeouts, and error mapping."""

    def __init__(
        self,
        base_url: str,
        *,
        token: str | None = None,
        max_retries: int = 3,
        base_delay_ms: int = 250,
        max_delay_ms: int = 10_000,
        timeout_seconds: float = 30.0,
        metadata_path: str = "/metadata",
        read_path: str = "/read",
        create_path: str = "/create",
        update_path: str = "/update",
        permissions_path: str = "/permissions",
        http_client: httpx.AsyncClient | None = None,
    ):
        headers = {"Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self.client = http_client or httpx.AsyncClient(
            base_url=base_url, timeout=timeout_seconds, headers=headers,
        )
        self.max_retries = max_retries
        self.base_delay_ms = base_delay_ms
        self.max_delay_ms = max_delay_ms
        self.paths = {
            "metadata": metadata_path,
            "read": read_path,
            "create": create_path,
            "update": update_path,
            "permissions": permissions_path,
        }

    @classmethod
    def from_settings(
        cls,
        settings: Settings | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> "DataApiClient":
        """Build a client from Settings (process-wide settings when omitted)."""
        settings = settings or get_settings()
        return cls(
            settings.api_base_url,
            token=settings.api_token,
            max_retries=settings.api_max_retries,
            base_delay_ms=settings.api_base_delay_ms,
            max_delay_ms=settings.api_max_delay_ms,
            timeout_seconds=settings.api_timeout_seconds,
            metadata_path=settings.metadata_path,
            read_path=settings.read_path,
            create_path=settings.create_path,
            update_path=settings.update_path,
            permissions_path=settings.permissions_path,
            http_client=http_client,
        )

    async def __aenter__(self) -> "DataApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self.client.aclose()

    # --- SchemaService ---------------------------------------------------------

    async def fetch_schema(self, table_name: str) -> TableSchema:
        """Fetch table metadata. Any failure raises DataServiceError."""
        ctx = ErrorContext(table_name=table_name, operation="metadata")
        body = MetadataRequest(
            method="table_metadata", parameters={"tableName": table_name},
        )
        envelope = await self._send("POST", self.paths["metadata"], body, ctx)
        if not envelope.succeeded:
            raise DataServiceError(
                envelope.friendly_message or "metadata request failed",
                "request_failed", context=ctx,
            )
        try:
            return MetadataResponse.model_validate(envelope.data).to_schema()
        except ValidationError as e:
            raise DataServiceError(
                f"malformed metadata for {table_name}: {e.error_count()} error(s)",
                "malformed_response", context=ctx,
            )

    # --- DataService -----------------------------------------------------------

    async def read(self, table_name: str, query: ReadQuery) -> ServiceResponse:
        ctx = ErrorContext(
            table_name=table_name, record_id=query.id, operation="read",
        )
        body = ReadRequest(
            table_name=table_name,
            fields=list(query.fields),
            page=query.page,
            max_results=query.max_results,
            id=query.id,
        )
        envelope = await self._send(
            "POST", self.paths["read"], body, ctx, extra=query.extra,
        )
        return envelope.to_service_response()

    async def create(
        self, table_name: str, fields: dict, parameters: dict,
    ) -> ServiceResponse:
        ctx = ErrorContext(table_name=table_name, operation="create")
        body = SaveRequest(table_name=table_name, fields=fields, parameters=parameters)
        envelope = await self._send("POST", self.paths["create"], body, ctx)
        return envelope.to_service_response()

    async def update(
        self, table_name: str, fields: dict, parameters: dict,
    ) -> ServiceResponse:
        ctx = ErrorContext(table_name=table_name, operation="update")
        body = SaveRequest(table_name=table_name, fields=fields, parameters=parameters)
        envelope = await self._send("PATCH", self.paths["update"], body, ctx)
        return envelope.to_service_response()

    # --- PermissionService -----------------------------------------------------

    async def get_table_permissions(self, table_name: str) -> TablePermissions:
        ctx = ErrorContext(table_name=table_name, operation="permissions")
        body = MetadataRequest(
            method="table_permissions", parameters={"tableName": table_name},
        )
        envelope = await self._send("POST", self.paths["permissions"], body, ctx)
        if not envelope.succeeded or not isinstance(envelope.data, dict):
            logger.warning(
                "Permission lookup failed, treating table as NONE",
                extra={"table_name": table_name},
            )
            return TablePermissions()
        return TablePermissions.model_validate(envelope.data)

    async def get_create_permission(self, table_name: str) -> str:
        return (await self.get_table_permissions(table_name)).create

    # --- Transport -------------------------------------------------------------

    async def _send(
        self, method: str, path: str, body, context: ErrorContext,
        extra: dict | None = None,
    ) -> ApiEnvelope:
        """Send one request with automatic retry on transient failures."""
        payload = body.model_dump(by_alias=True)
        if extra:
            payload.update(extra)
        for attempt in range(self.max_retries + 1):
            try:
                response = await self.client.request(method, path, json=payload)
            except httpx.TimeoutException:
                raise DataServiceError(
                    f"{method} {path} timed out", "timeout", context=context,
                )
            except httpx.TransportError as e:
                await self._handle_transient_error(e, attempt, context)
                continue

            if response.status_code == _RATE_LIMIT_STATUS:
                await self._handle_rate_limit(response, attempt, context)
                continue
            if response.status_code >= 500:
                await self._handle_transient_error(
                    f"HTTP {response.status_code}", attempt, context,
                    status_code=response.status_code,
                )
                continue

            envelope = self._parse_envelope(response, context)
            logger.debug(
                f"{method} {path} -> {response.status_code}",
                extra={
                    "table_name": context.table_name,
                    "status_code": response.status_code,
                    "attempt": attempt + 1,
                },
            )
            return envelope

        # Unreachable: the handlers raise on the final attempt.
        raise DataServiceError(
            f"{method} {path} exhausted retries", "connection_error", context=context,
        )

    def _parse_envelope(
        self, response: httpx.Response, context: ErrorContext,
    ) -> ApiEnvelope:
        """Parse the JSON envelope; 4xx without an envelope is a client error."""
        try:
            raw = response.json()
        except ValueError:
            raw = None
        if isinstance(raw, dict) and "succeeded" in raw:
            return ApiEnvelope.model_validate(raw)
        if response.is_success:
            raise DataServiceError(
                "response is not a data API envelope", "malformed_response",
                status_code=response.status_code, context=context,
            )
        raise DataServiceError(
            f"HTTP {response.status_code}", "client_error",
            status_code=response.status_code, context=context,
        )

    async def _handle_rate_limit(
        self, response: httpx.Response, attempt: int, context: ErrorContext,
    ) -> None:
        """Handle rate limit response with retry or raise."""
        retry_after_ms = self._extract_retry_after(response)
        if attempt >= self.max_retries:
            raise DataServiceError(
                "Rate limit exceeded after retries",
                "rate_limit",
                status_code=response.status_code,
                retry_after_ms=retry_after_ms,
                context=context,
            )
        delay = retry_after_ms or self._backoff(attempt)
        logger.warning(
            f"Rate limit hit, retry after {delay}ms (attempt {attempt + 1})",
            extra={"table_name": context.table_name, "attempt": attempt + 1},
        )
        await asyncio.sleep(delay / 1000)

    async def _handle_transient_error(
        self, e: object, attempt: int, context: ErrorContext,
        status_code: int | None = None,
    ) -> None:
        """Handle transient errors with retry or raise."""
        if attempt >= self.max_retries:
            raise DataServiceError(
                f"Transient failure after {self.max_retries} retries: {e}",
                "connection_error",
                status_code=status_code,
                context=context,
            )
        delay = self._backoff(attempt)
        logger.warning(
            f"Transient error, retry after {delay}ms: {e}",
            extra={"table_name": context.table_name, "attempt": attempt + 1},
        )
        await asyncio.sleep(delay / 1000)

    def _backoff(self, attempt: int) -> int:
        """Exponential backoff with ±25% jitter."""
        delay = min(self.max_delay_ms, (2 ** attempt) * self.base_delay_ms)
        return int(delay * random.uniform(0.75, 1.25))  # nosec B311

    def _extract_retry_after(self, response: httpx.Response) -> int | None:
        """Extract Retry-After header (returns milliseconds)."""
        val = response.headers.get("retry-after")
        if val and val.isdigit():
            return int(val) * 1000
        return None
