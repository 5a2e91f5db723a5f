from dataclasses import asdict
from typing import Any

import psycopg
from psycopg import sql
from psycopg.rows import dict_row

from image_relay.database.connection import get_connection
from image_relay.records.base import BaseImageRecordStore
from image_relay.records.exceptions import RecordNotFoundError, RecordStoreError
from image_relay.records.models import (
    ImageRecord,
    ImageRecordFilter,
    NewImageRecord,
    validate_patch,
)

DEFAULT_PAGE_SIZE = 50

_COLUMNS = """
    id, url, filename, original_filename, upload_service, category, file_size,
    width, height, mime_type, alt_text, description, is_active, created_at, updated_at
"""


def _to_record(row: dict[str, Any]) -> ImageRecord:
    return ImageRecord(
        id=str(row["id"]),
        url=row["url"],
        filename=row["filename"],
        original_filename=row["original_filename"],
        upload_service=row["upload_service"],
        category=row["category"],
        file_size=row["file_size"],
        width=row["width"],
        height=row["height"],
        mime_type=row["mime_type"],
        alt_text=row["alt_text"],
        description=row["description"],
        is_active=row["is_active"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


class ImageRepository(BaseImageRecordStore):
    """Database operations for the uploaded_images table."""

    async def save(self, record: NewImageRecord) -> ImageRecord:
        fields = asdict(record)
        query = sql.SQL(
            "INSERT INTO uploaded_images ({columns}) VALUES ({values}) RETURNING "
            + _COLUMNS
        ).format(
            columns=sql.SQL(", ").join(sql.Identifier(name) for name in fields),
            values=sql.SQL(", ").join(sql.Placeholder() for _ in fields),
        )
        row = await self._fetch_one(query, tuple(fields.values()))
        if row is None:
            raise RecordStoreError("Insert into uploaded_images returned no row")
        return _to_record(row)

    async def update(self, record_id: str, patch: dict[str, object]) -> ImageRecord:
        changes = validate_patch(patch)
        assignments = [
            sql.SQL("{} = {}").format(sql.Identifier(name), sql.Placeholder())
            for name in changes
        ]
        assignments.append(sql.SQL("updated_at = NOW()"))
        query = sql.SQL(
            "UPDATE uploaded_images SET {assignments} WHERE id = %s RETURNING " + _COLUMNS
        ).format(assignments=sql.SQL(", ").join(assignments))
        row = await self._fetch_one(query, (*changes.values(), record_id))
        if row is None:
            raise RecordNotFoundError(f"Image record {record_id} not found")
        return _to_record(row)

    async def soft_delete(self, record_id: str) -> ImageRecord:
        row = await self._fetch_one(
            "UPDATE uploaded_images SET is_active = FALSE, updated_at = NOW() "
            "WHERE id = %s RETURNING " + _COLUMNS,
            (record_id,),
        )
        if row is None:
            raise RecordNotFoundError(f"Image record {record_id} not found")
        return _to_record(row)

    async def query(self, filters: ImageRecordFilter | None = None) -> list[ImageRecord]:
        f = filters or ImageRecordFilter()
        conditions = ["is_active"]
        params: list[object] = []
        if f.category:
            conditions.append("category = %s")
            params.append(f.category)
        if f.service:
            conditions.append("upload_service = %s")
            params.append(f.service)
        if f.search:
            conditions.append(
                "(filename ILIKE %s OR description ILIKE %s OR alt_text ILIKE %s)"
            )
            pattern = f"%{f.search}%"
            params.extend([pattern, pattern, pattern])

        query = (
            f"SELECT {_COLUMNS} FROM uploaded_images "
            f"WHERE {' AND '.join(conditions)} ORDER BY created_at DESC"
        )
        if f.limit is not None or f.offset:
            query += " LIMIT %s OFFSET %s"
            params.extend([f.limit if f.limit is not None else DEFAULT_PAGE_SIZE, f.offset or 0])

        try:
            async with get_connection() as conn:
                async with conn.cursor(row_factory=dict_row) as cur:
                    await cur.execute(query, params)
                    rows = await cur.fetchall()
        except psycopg.Error as exc:
            raise RecordStoreError(f"Failed to query image records: {exc}") from exc
        return [_to_record(row) for row in rows]

    async def get_by_url(self, url: str) -> ImageRecord | None:
        try:
            async with get_connection() as conn:
                async with conn.cursor(row_factory=dict_row) as cur:
                    await cur.execute(
                        f"SELECT {_COLUMNS} FROM uploaded_images "
                        "WHERE url = %s AND is_active LIMIT 1",
                        (url,),
                    )
                    row = await cur.fetchone()
        except psycopg.Error as exc:
            raise RecordStoreError(f"Failed to look up image by URL: {exc}") from exc
        return _to_record(row) if row is not None else None

    async def _fetch_one(
        self,
        query: sql.Composable | str,
        params: tuple[object, ...],
    ) -> dict[str, Any] | None:
        try:
            async with get_connection() as conn:
                async with conn.cursor(row_factory=dict_row) as cur:
                    await cur.execute(query, params)
                    row = await cur.fetchone()
                await conn.commit()
        except psycopg.Error as exc:
            raise RecordStoreError(f"uploaded_images write failed: {exc}") from exc
        return row
