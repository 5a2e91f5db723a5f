from typing import Any

import psycopg
from psycopg.rows import dict_row

from image_relay.database.connection import get_connection
from image_relay.health.base import BaseHealthStore
from image_relay.health.exceptions import HealthStoreError
from image_relay.health.models import ProviderHealthRecord

_COLUMNS = """
    service_name, is_active, total_uploads, successful_uploads,
    response_time, error_message, last_check
"""


def _to_record(row: dict[str, Any]) -> ProviderHealthRecord:
    return ProviderHealthRecord(
        service_name=row["service_name"],
        is_active=row["is_active"],
        total_uploads=row["total_uploads"],
        successful_uploads=row["successful_uploads"],
        last_response_time_ms=row["response_time"],
        last_error_message=row["error_message"],
        last_checked_at=row["last_check"],
    )


class HealthRepository(BaseHealthStore):
    """Provider health stored in the upload_service_status table."""

    async def get_all(self) -> list[ProviderHealthRecord]:
        return await self._fetch_all(
            f"SELECT {_COLUMNS} FROM upload_service_status ORDER BY service_name"
        )

    async def get_active_ranked_by_performance(self) -> list[ProviderHealthRecord]:
        return await self._fetch_all(
            f"""
            SELECT {_COLUMNS}
            FROM upload_service_status
            WHERE is_active
            ORDER BY
                CASE WHEN total_uploads = 0 THEN 0
                     ELSE successful_uploads::float / total_uploads END DESC,
                response_time ASC NULLS LAST,
                service_name
            """
        )

    async def record_outcome(
        self,
        service_name: str,
        success: bool,
        response_time_ms: float,
        error_message: str | None = None,
    ) -> ProviderHealthRecord:
        """Upsert one outcome in a single statement so concurrent writers never lose counts."""
        try:
            async with get_connection() as conn:
                async with conn.cursor(row_factory=dict_row) as cur:
                    await cur.execute(
                        f"""
                        INSERT INTO upload_service_status
                            (service_name, is_active, total_uploads, successful_uploads,
                             response_time, error_message, last_check, updated_at)
                        VALUES (%s, %s, 1, %s, %s, %s, NOW(), NOW())
                        ON CONFLICT (service_name) DO UPDATE SET
                            is_active = EXCLUDED.is_active,
                            total_uploads = upload_service_status.total_uploads + 1,
                            successful_uploads = upload_service_status.successful_uploads
                                + EXCLUDED.successful_uploads,
                            response_time = EXCLUDED.response_time,
                            error_message = EXCLUDED.error_message,
                            last_check = EXCLUDED.last_check,
                            updated_at = NOW()
                        RETURNING {_COLUMNS}
                        """,
                        (
                            service_name,
                            success,
                            1 if success else 0,
                            response_time_ms,
                            None if success else error_message,
                        ),
                    )
                    row = await cur.fetchone()
                await conn.commit()
        except psycopg.Error as exc:
            raise HealthStoreError(
                f"Failed to record outcome for {service_name}: {exc}"
            ) from exc

        if row is None:
            raise HealthStoreError(f"Upsert for {service_name} returned no row")
        return _to_record(row)

    async def _fetch_all(self, query: str) -> list[ProviderHealthRecord]:
        try:
            async with get_connection() as conn:
                async with conn.cursor(row_factory=dict_row) as cur:
                    await cur.execute(query)
                    rows = await cur.fetchall()
        except psycopg.Error as exc:
            raise HealthStoreError(f"Failed to read provider health: {exc}") from exc
        return [_to_record(row) for row in rows]
