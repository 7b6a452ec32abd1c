"""Run store for saving, retrieving, listing and deleting pipeline runs.

Wraps the low-level database with Pydantic schema serialization.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime

import aiosqlite

from fluxgate.schemas.history import RunQuery, RunRecord, RunSummary
from fluxgate.schemas.pipeline import EndpointScore, PipelineResult, StageResult

logger = logging.getLogger(__name__)

# Shortest run-id prefix accepted for lookups.
MIN_PREFIX = 4


def record_from_result(result: PipelineResult) -> RunRecord:
    """Convert a finished PipelineResult into a storable RunRecord."""
    return RunRecord(
        run_id=result.run_id,
        target=result.scope.target,
        scope_type=result.scope.type.value,
        started_at=datetime.fromisoformat(result.started_at),
        success=result.success,
        failed_stage=result.failed_stage,
        duration_seconds=result.duration_seconds,
        stages=list(result.stages),
        endpoint_scores=list(result.endpoint_scores),
    )


class RunStore:
    """Persistent run history backed by SQLite.

    All methods are async and operate on an aiosqlite connection
    initialized by database.init_db().
    """

    def __init__(self, db: aiosqlite.Connection) -> None:
        self._db = db

    async def save_run(self, record: RunRecord) -> None:
        """Save a run and its stage results in a single transaction."""
        await self._db.execute(
            """
            INSERT OR REPLACE INTO runs
                (run_id, target, scope_type, started_at, success,
                 failed_stage, duration_seconds, scores_json)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                record.run_id,
                record.target,
                record.scope_type,
                record.started_at.isoformat(),
                int(record.success),
                record.failed_stage,
                record.duration_seconds,
                json.dumps([s.model_dump(mode="json") for s in record.endpoint_scores]),
            ),
        )

        await self._db.execute(
            "DELETE FROM stage_results WHERE run_id = ?",
            (record.run_id,),
        )
        for stage in record.stages:
            await self._db.execute(
                """
                INSERT INTO stage_results
                    (run_id, name, status, duration_seconds, message,
                     details_json, error, traceback)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    record.run_id,
                    stage.name,
                    stage.status.value,
                    stage.duration_seconds,
                    stage.message,
                    json.dumps(stage.details),
                    stage.error,
                    stage.traceback,
                ),
            )

        await self._db.commit()
        logger.info("Saved run %s", record.run_id)

    async def resolve_run_id(self, prefix: str) -> str | None:
        """Full run ID for an exact ID or a unique prefix of at least 4 characters."""
        self._db.row_factory = aiosqlite.Row
        async with self._db.execute(
            "SELECT run_id FROM runs WHERE run_id = ?",
            (prefix,),
        ) as cursor:
            row = await cursor.fetchone()
        if row:
            return row["run_id"]
        if len(prefix) >= MIN_PREFIX:
            async with self._db.execute(
                "SELECT run_id FROM runs WHERE run_id LIKE ? LIMIT 2",
                (prefix + "%",),
            ) as cursor:
                rows = await cursor.fetchall()
            if len(rows) == 1:
                return rows[0]["run_id"]
        return None

    async def get_run(self, run_id: str) -> RunRecord | None:
        """Retrieve a full run by ID or unique prefix; None when absent or ambiguous."""
        full_id = await self.resolve_run_id(run_id)
        if not full_id:
            return None
        self._db.row_factory = aiosqlite.Row
        async with self._db.execute(
            "SELECT * FROM runs WHERE run_id = ?",
            (full_id,),
        ) as cursor:
            row = await cursor.fetchone()
        if not row:
            return None

        stages: list[StageResult] = []
        async with self._db.execute(
            "SELECT * FROM stage_results WHERE run_id = ? ORDER BY id",
            (full_id,),
        ) as cursor:
            async for srow in cursor:
                stages.append(StageResult(
                    name=srow["name"],
                    status=srow["status"],
                    duration_seconds=srow["duration_seconds"],
                    message=srow["message"],
                    details=json.loads(srow["details_json"]),
                    error=srow["error"],
                    traceback=srow["traceback"],
                ))

        return RunRecord(
            run_id=row["run_id"],
            target=row["target"],
            scope_type=row["scope_type"],
            started_at=datetime.fromisoformat(row["started_at"]),
            success=bool(row["success"]),
            failed_stage=row["failed_stage"],
            duration_seconds=row["duration_seconds"],
            stages=stages,
            endpoint_scores=[
                EndpointScore.model_validate(s) for s in json.loads(row["scores_json"])
            ],
        )

    async def list_runs(self, query: RunQuery) -> list[RunSummary]:
        """List runs matching ``query``, most recent first."""
        conditions: list[str] = []
        params: list[object] = []

        if query.target_filter:
            conditions.append("target LIKE ?")
            params.append(f"%{query.target_filter}%")
        if query.failed_only:
            conditions.append("success = 0")

        where = f"WHERE {' AND '.join(conditions)}" if conditions else ""
        sql = f"""
            SELECT runs.*,
                   (SELECT COUNT(*) FROM stage_results
                    WHERE stage_results.run_id = runs.run_id) AS stage_count
            FROM runs
            {where}
            ORDER BY started_at DESC
            LIMIT ? OFFSET ?
        """
        params.extend([query.limit, query.offset])

        self._db.row_factory = aiosqlite.Row
        summaries: list[RunSummary] = []
        async with self._db.execute(sql, params) as cursor:
            async for row in cursor:
                summaries.append(RunSummary(
                    run_id=row["run_id"],
                    target=row["target"],
                    scope_type=row["scope_type"],
                    started_at=datetime.fromisoformat(row["started_at"]),
                    success=bool(row["success"]),
                    failed_stage=row["failed_stage"],
                    duration_seconds=row["duration_seconds"],
                    stage_count=row["stage_count"],
                ))
        return summaries

    async def delete_run(self, run_id: str) -> bool:
        """Delete a run and its stage results; False when absent or ambiguous."""
        full_id = await self.resolve_run_id(run_id)
        if not full_id:
            return False
        cursor = await self._db.execute(
            "DELETE FROM runs WHERE run_id = ?",
            (full_id,),
        )
        await self._db.commit()
        deleted = cursor.rowcount > 0
        if deleted:
            logger.info("Deleted run %s", full_id)
        return deleted
