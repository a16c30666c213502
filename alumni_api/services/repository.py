from __future__ import annotations

import asyncio
import json
import logging
import random
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from functools import lru_cache
from typing import Any
from uuid import UUID

import asyncpg  # type: ignore[import-untyped]

from alumni_api.core.config import get_settings
from alumni_api.services.errors import (
    RepositoryConflictError,
    RepositoryNotFoundError,
    RepositoryUnavailableError,
)
from alumni_api.services.search import (
    INTEGER_TEXT_PATTERN,
    MISSING_SERIAL_NO,
    PROGRAM_PRIORITY,
    UNRANKED_PROGRAM,
    MatchMode,
    SearchQuery,
    project_public_fields,
)
from alumni_api.services.workflow import merge_update_fields, validate_update_request_transition

logger = logging.getLogger(__name__)

UPDATE_REQUEST_COLUMNS = """
  id::text as id,
  roll_number,
  old_data,
  new_data,
  status,
  submitted_at,
  reviewed_at,
  reviewed_by,
  notes
"""


def compute_retry_delay(*, attempt: int, base_seconds: float, max_seconds: float) -> float:
    if base_seconds <= 0:
        return 0.0
    multiplier = max(0, attempt - 1)
    delay = base_seconds * (2**multiplier)
    return min(delay, max_seconds)


class PostgresRepository:
    """Alumni documents and update requests stored in Postgres.

    Alumni records live in a `jsonb` document column keyed by `roll_number`, so
    approved edits can carry fields that are not part of the known record shape.
    """

    def __init__(
        self,
        database_url: str | None,
        min_pool_size: int,
        max_pool_size: int,
        command_timeout_seconds: float,
    ) -> None:
        self.database_url = database_url
        self.min_pool_size = min_pool_size
        self.max_pool_size = max_pool_size
        self.command_timeout_seconds = command_timeout_seconds
        self._pool: asyncpg.Pool | None = None

    async def connect(
        self,
        *,
        max_attempts: int,
        retry_base_seconds: float,
        retry_max_seconds: float,
    ) -> None:
        if not self.database_url:
            raise RepositoryUnavailableError("ALUMNI_DATABASE_URL is required")

        attempts = max(1, max_attempts)
        for attempt in range(1, attempts + 1):
            try:
                await self.ping()
                logger.info("store connected attempt=%s", attempt)
                return
            except RepositoryUnavailableError:
                if attempt >= attempts:
                    logger.error("store connection failed after %s attempts", attempts)
                    raise
                delay = compute_retry_delay(
                    attempt=attempt,
                    base_seconds=retry_base_seconds,
                    max_seconds=retry_max_seconds,
                )
                delay += random.uniform(0.0, delay * 0.1)
                logger.warning("store connection attempt=%s failed; retry in %.1fs", attempt, delay)
                await asyncio.sleep(delay)

    async def close(self) -> None:
        if self._pool is not None:
            await self._pool.close()
            self._pool = None

    async def ping(self) -> None:
        async with self._acquire() as conn:
            await conn.fetchval("select 1")

    async def search_alumni(self, query: SearchQuery) -> tuple[list[dict[str, Any]], int]:
        if query.is_empty:
            return [], 0

        conditions: list[str] = []
        params: list[Any] = []

        def bind(value: Any) -> str:
            params.append(value)
            return f"${len(params)}"

        for condition in query.conditions:
            alternatives: list[str] = []
            for name in condition.fields:
                field_sql = f"(a.document->>{bind(name)}::text)"
                if condition.mode is MatchMode.NUMBER:
                    alternatives.append(
                        f"(case when trim({field_sql}) ~ {bind(INTEGER_TEXT_PATTERN)} "
                        f"then trim({field_sql})::bigint = {bind(condition.value)}::bigint else false end)"
                    )
                else:
                    alternatives.append(f"{field_sql} ~* {bind(condition.pattern())}")
            conditions.append("(" + " or ".join(alternatives) + ")")

        where_sql = " and ".join(conditions)
        filter_params = list(params)

        serial_sql = "trim(a.document->>'serialNo')"
        order_by_sql = (
            f"coalesce(array_position({bind(list(PROGRAM_PRIORITY))}::text[], "
            f"upper(trim(a.document->>'programName'))), {bind(UNRANKED_PROGRAM)}) asc, "
            f"case when {serial_sql} ~ {bind(INTEGER_TEXT_PATTERN)} "
            f"then {serial_sql}::bigint else {bind(MISSING_SERIAL_NO)}::bigint end asc, "
            "coalesce(a.document->>'serialNo', '') collate \"C\" asc, "
            "a.roll_number collate \"C\" asc"
        )
        limit_token = bind(query.limit)
        offset_token = bind(query.skip)

        async with self._acquire() as conn:
            total_count = await conn.fetchval(
                f"""
                select count(*)
                from alumni a
                where {where_sql}
                """,
                *filter_params,
            )
            rows = await conn.fetch(
                f"""
                select a.document
                from alumni a
                where {where_sql}
                order by {order_by_sql}
                limit {limit_token}
                offset {offset_token}
                """,
                *params,
            )
        documents = [project_public_fields(self._coerce_json_dict(row["document"])) for row in rows]
        return documents, int(total_count or 0)

    async def create_update_request(
        self,
        *,
        roll_number: str,
        old_data: dict[str, Any],
        new_data: dict[str, Any],
    ) -> dict[str, Any]:
        async with self._acquire() as conn:
            async with conn.transaction():
                exists = await conn.fetchval(
                    """
                    select 1
                    from alumni
                    where roll_number = $1
                    """,
                    roll_number,
                )
                if not exists:
                    raise RepositoryNotFoundError("alumni record not found")

                row = await conn.fetchrow(
                    f"""
                    insert into update_requests (roll_number, old_data, new_data, status)
                    values ($1, $2::jsonb, $3::jsonb, 'pending')
                    returning {UPDATE_REQUEST_COLUMNS}
                    """,
                    roll_number,
                    json.dumps(old_data),
                    json.dumps(new_data),
                )
        return self._update_request_row_to_dict(row)

    async def get_update_request(self, *, request_id: str) -> dict[str, Any]:
        request_uuid = self._parse_request_id(request_id)
        async with self._acquire() as conn:
            row = await conn.fetchrow(
                f"""
                select {UPDATE_REQUEST_COLUMNS}
                from update_requests
                where id = $1::uuid
                """,
                request_uuid,
            )
        if not row:
            raise RepositoryNotFoundError("update request not found")
        return self._update_request_row_to_dict(row)

    async def list_update_requests(
        self,
        *,
        status: str | None,
        limit: int,
        offset: int,
    ) -> tuple[list[dict[str, Any]], int]:
        async with self._acquire() as conn:
            total_count = await conn.fetchval(
                """
                select count(*)
                from update_requests
                where ($1::text is null or status = $1::text)
                """,
                status,
            )
            rows = await conn.fetch(
                f"""
                select {UPDATE_REQUEST_COLUMNS}
                from update_requests
                where ($3::text is null or status = $3::text)
                order by submitted_at desc, id desc
                limit $1
                offset $2
                """,
                limit,
                offset,
                status,
            )
        return [self._update_request_row_to_dict(row) for row in rows], int(total_count or 0)

    async def approve_update_request(
        self,
        *,
        request_id: str,
        reviewer: str,
        notes: str | None,
    ) -> tuple[dict[str, Any], dict[str, Any]]:
        request_uuid = self._parse_request_id(request_id)
        async with self._acquire() as conn:
            async with conn.transaction():
                existing = await self._lock_update_request(conn=conn, request_uuid=request_uuid)
                validate_update_request_transition(from_status=existing["status"], to_status="approved")

                alumni_row = await conn.fetchrow(
                    """
                    select id, document
                    from alumni
                    where roll_number = $1
                    for update
                    """,
                    existing["roll_number"],
                )
                if not alumni_row:
                    raise RepositoryNotFoundError("alumni record not found")

                merged = merge_update_fields(
                    self._coerce_json_dict(alumni_row["document"]),
                    self._coerce_json_dict(existing["new_data"]),
                )
                # Record first, then status: both commit together.
                updated_document = await conn.fetchval(
                    """
                    update alumni
                    set document = $2::jsonb, updated_at = now()
                    where id = $1
                    returning document
                    """,
                    alumni_row["id"],
                    json.dumps(merged),
                )
                row = await self._finish_update_request(
                    conn=conn,
                    request_uuid=request_uuid,
                    status="approved",
                    reviewer=reviewer,
                    notes=notes,
                )
        return self._update_request_row_to_dict(row), self._coerce_json_dict(updated_document)

    async def reject_update_request(
        self,
        *,
        request_id: str,
        reviewer: str,
        notes: str | None,
    ) -> dict[str, Any]:
        request_uuid = self._parse_request_id(request_id)
        async with self._acquire() as conn:
            async with conn.transaction():
                existing = await self._lock_update_request(conn=conn, request_uuid=request_uuid)
                validate_update_request_transition(from_status=existing["status"], to_status="rejected")
                row = await self._finish_update_request(
                    conn=conn,
                    request_uuid=request_uuid,
                    status="rejected",
                    reviewer=reviewer,
                    notes=notes,
                )
        return self._update_request_row_to_dict(row)

    async def _lock_update_request(self, *, conn: asyncpg.Connection, request_uuid: UUID) -> asyncpg.Record:
        row = await conn.fetchrow(
            """
            select id, roll_number, new_data, status
            from update_requests
            where id = $1::uuid
            for update
            """,
            request_uuid,
        )
        if not row:
            raise RepositoryNotFoundError("update request not found")
        return row

    async def _finish_update_request(
        self,
        *,
        conn: asyncpg.Connection,
        request_uuid: UUID,
        status: str,
        reviewer: str,
        notes: str | None,
    ) -> asyncpg.Record:
        row = await conn.fetchrow(
            f"""
            update update_requests
            set
              status = $2,
              reviewed_at = now(),
              reviewed_by = $3,
              notes = $4
            where id = $1::uuid
              and status = 'pending'
            returning {UPDATE_REQUEST_COLUMNS}
            """,
            request_uuid,
            status,
            reviewer,
            notes,
        )
        if not row:
            raise RepositoryConflictError("update request already processed")
        return row

    @asynccontextmanager
    async def _acquire(self) -> AsyncIterator[asyncpg.Connection]:
        pool = await self._get_pool()
        try:
            async with pool.acquire() as conn:
                yield conn
        except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError, asyncio.TimeoutError) as exc:
            raise RepositoryUnavailableError("database unavailable") from exc

    async def _get_pool(self) -> asyncpg.Pool:
        if not self.database_url:
            raise RepositoryUnavailableError("ALUMNI_DATABASE_URL is required")

        if self._pool is not None:
            return self._pool

        try:
            self._pool = await asyncpg.create_pool(
                dsn=self.database_url,
                min_size=self.min_pool_size,
                max_size=self.max_pool_size,
                command_timeout=self.command_timeout_seconds,
            )
            return self._pool
        except Exception as exc:  # pragma: no cover - depends on environment
            raise RepositoryUnavailableError("database unavailable") from exc

    @staticmethod
    def _parse_request_id(request_id: str) -> UUID:
        try:
            return UUID(request_id)
        except (TypeError, ValueError) as exc:
            raise RepositoryNotFoundError("update request not found") from exc

    @classmethod
    def _update_request_row_to_dict(cls, row: asyncpg.Record) -> dict[str, Any]:
        return {
            "id": row["id"],
            "roll_number": row["roll_number"],
            "old_data": cls._coerce_json_dict(row["old_data"]),
            "new_data": cls._coerce_json_dict(row["new_data"]),
            "status": row["status"],
            "submitted_at": row["submitted_at"],
            "reviewed_at": row["reviewed_at"],
            "reviewed_by": row["reviewed_by"],
            "notes": row["notes"],
        }

    @staticmethod
    def _coerce_json_dict(value: Any) -> dict[str, Any]:
        if isinstance(value, str):
            try:
                value = json.loads(value)
            except json.JSONDecodeError:
                return {}
        if isinstance(value, dict):
            return value
        return {}


@lru_cache
def get_repository():
    settings = get_settings()
    if settings.store_backend == "memory":
        from alumni_api.services.store import InMemoryRepository

        return InMemoryRepository()
    return PostgresRepository(
        database_url=settings.database_url,
        min_pool_size=settings.database_pool_min_size,
        max_pool_size=settings.database_pool_max_size,
        command_timeout_seconds=settings.database_command_timeout_seconds,
    )
