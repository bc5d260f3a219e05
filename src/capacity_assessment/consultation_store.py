"""Persistence for stakeholders, consultation sessions and their messages.

Records are appended to a JSONL log, one ``{"table": ..., ...}`` object per
line, and mirrored into Redis when a URL is configured. The log is the
source of truth for reads; updates are appended and applied in order.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional
from uuid import uuid4

import redis
from redis import Redis
from redis.exceptions import RedisError

from .analysis import CapacityAnalysis
from .sessions import StakeholderInfo, Turn, format_timestamp

logger = logging.getLogger(__name__)

STAKEHOLDERS = "stakeholders"
CONSULTATION_SESSIONS = "consultation_sessions"
CONVERSATION_MESSAGES = "conversation_messages"
PRIORITIES = "priorities"

STATUS_IN_PROGRESS = "in_progress"
STATUS_COMPLETED = "completed"


def _new_id(prefix: str) -> str:
    return "{}-{}-{}".format(
        prefix,
        datetime.now(timezone.utc).strftime("%Y%m%d%H%M%S"),
        uuid4().hex[:6],
    )


class ConsultationRepository:
    """Insert-and-fetch storage for consultation records."""

    def __init__(self, archive_path: Path, redis_url: Optional[str]) -> None:
        self._archive_path = archive_path
        self._archive_path.parent.mkdir(parents=True, exist_ok=True)
        self._redis_url = redis_url
        self._redis: Optional[Redis] = None

    @property
    def archive_path(self) -> Path:
        """Return the filesystem path for the JSONL archive."""

        return self._archive_path

    def _get_redis(self) -> Optional[Redis]:
        if not self._redis_url:
            return None
        if self._redis is None:
            try:
                self._redis = redis.from_url(  # type: ignore[call-overload]
                    self._redis_url,
                    decode_responses=True,
                )
            except RedisError as exc:  # pragma: no cover - network guarded
                logger.warning("Redis connection failed: %s", exc)
                self._redis = None
        return self._redis

    def save_stakeholder(self, info: StakeholderInfo) -> str:
        return self._insert(STAKEHOLDERS, "stk", info.to_dict())

    def save_consultation_session(
        self,
        *,
        stakeholder_id: str,
        consultation_type: str,
        started_at: datetime,
        status: str = STATUS_IN_PROGRESS,
    ) -> str:
        return self._insert(
            CONSULTATION_SESSIONS,
            "sess",
            {
                "stakeholder_id": stakeholder_id,
                "consultation_type": consultation_type,
                "status": status,
                "started_at": format_timestamp(started_at),
                "completed_at": None,
                "capacity_analysis": None,
            },
        )

    def complete_consultation_session(
        self,
        session_id: str,
        *,
        analysis: CapacityAnalysis,
        completed_at: datetime,
    ) -> None:
        """Mark a session completed and attach the final analysis."""

        self._update(
            CONSULTATION_SESSIONS,
            session_id,
            {
                "status": STATUS_COMPLETED,
                "completed_at": format_timestamp(completed_at),
                "capacity_analysis": analysis.to_dict(),
            },
        )

    def save_message(self, *, session_id: str, sequence: int, turn: Turn) -> str:
        record = turn.to_dict()
        record.update({"session_id": session_id, "sequence": sequence})
        return self._insert(CONVERSATION_MESSAGES, "msg", record)

    def save_priorities(
        self,
        session_id: str,
        analysis: CapacityAnalysis,
    ) -> List[str]:
        """Store the analysis gaps as ranked priorities for the session."""

        ids: List[str] = []
        for rank, gap in enumerate(analysis.gaps, start=1):
            record = gap.to_dict()
            record.update({"session_id": session_id, "rank": rank})
            ids.append(self._insert(PRIORITIES, "pri", record))
        return ids

    def get_consultation(self, session_id: str) -> Optional[Dict[str, Any]]:
        """Fetch a session together with its stakeholder, messages and priorities."""

        tables = self._load_tables()
        session = tables[CONSULTATION_SESSIONS].get(session_id)
        if session is None:
            return None
        result = dict(session)
        result["stakeholder"] = tables[STAKEHOLDERS].get(
            session.get("stakeholder_id", "")
        )
        result[CONVERSATION_MESSAGES] = sorted(
            (
                message
                for message in tables[CONVERSATION_MESSAGES].values()
                if message.get("session_id") == session_id
            ),
            key=lambda message: message.get("sequence", 0),
        )
        result[PRIORITIES] = sorted(
            (
                priority
                for priority in tables[PRIORITIES].values()
                if priority.get("session_id") == session_id
            ),
            key=lambda priority: priority.get("rank", 0),
        )
        return result

    def list_consultations(self, *, limit: int = 10) -> List[Dict[str, Any]]:
        """Return recent sessions, newest first, with stakeholder headline fields."""

        if limit < 1:
            raise ValueError(f"limit must be at least 1, got {limit}")
        tables = self._load_tables()
        summaries: List[Dict[str, Any]] = []
        for session in tables[CONSULTATION_SESSIONS].values():
            summary = dict(session)
            stakeholder = tables[STAKEHOLDERS].get(
                session.get("stakeholder_id", "")
            ) or {}
            summary["stakeholder"] = {
                key: stakeholder.get(key, "")
                for key in ("name", "role", "department")
            }
            summaries.append(summary)
        summaries.sort(key=lambda item: item.get("started_at") or "", reverse=True)
        return summaries[:limit]

    def _insert(self, table: str, prefix: str, fields: Dict[str, Any]) -> str:
        record_id = _new_id(prefix)
        record = {"id": record_id, **fields}
        self._append({"table": table, "op": "insert", "record": record})
        self._mirror(table, record)
        return record_id

    def _update(self, table: str, record_id: str, fields: Dict[str, Any]) -> None:
        self._append(
            {"table": table, "op": "update", "id": record_id, "fields": fields}
        )
        client = self._get_redis()
        if not client:
            return
        key = f"{table}:{record_id}"
        try:
            raw_value = client.get(key)
            current: Dict[str, Any] = {}
            if raw_value:
                try:
                    decoded = json.loads(str(raw_value))
                except json.JSONDecodeError:
                    decoded = {}
                if isinstance(decoded, dict):
                    current = decoded
            current.update(fields)
            client.set(key, json.dumps(current, ensure_ascii=False))
        except RedisError as exc:  # pragma: no cover - best effort path
            logger.warning("Redis persistence failed for %s: %s", key, exc)

    def _append(self, entry: Dict[str, Any]) -> None:
        with self._archive_path.open("a", encoding="utf-8") as handle:
            handle.write(json.dumps(entry, ensure_ascii=False) + "\n")

    def _mirror(self, table: str, record: Dict[str, Any]) -> None:
        client = self._get_redis()
        if not client:
            return
        key = f"{table}:{record['id']}"
        try:
            client.set(key, json.dumps(record, ensure_ascii=False))
            client.zadd(
                f"{table}:index",
                {record["id"]: datetime.now(timezone.utc).timestamp()},
            )
        except RedisError as exc:  # pragma: no cover - best effort
            logger.warning("Redis persistence failed for %s: %s", key, exc)

    def _iter_entries(self) -> Iterator[Dict[str, Any]]:
        if not self._archive_path.exists():
            return
        with self._archive_path.open("r", encoding="utf-8") as handle:
            for line_number, line in enumerate(handle, start=1):
                stripped = line.strip()
                if not stripped:
                    continue
                try:
                    entry = json.loads(stripped)
                except json.JSONDecodeError:
                    logger.warning(
                        "Skipping malformed line %s in %s",
                        line_number,
                        self._archive_path,
                    )
                    continue
                if isinstance(entry, dict):
                    yield entry

    def _load_tables(self) -> Dict[str, Dict[str, Dict[str, Any]]]:
        tables: Dict[str, Dict[str, Dict[str, Any]]] = {
            STAKEHOLDERS: {},
            CONSULTATION_SESSIONS: {},
            CONVERSATION_MESSAGES: {},
            PRIORITIES: {},
        }
        for entry in self._iter_entries():
            rows = tables.get(str(entry.get("table")))
            if rows is None:
                continue
            if entry.get("op") == "update":
                row = rows.get(str(entry.get("id")))
                fields = entry.get("fields")
                if row is not None and isinstance(fields, dict):
                    row.update(fields)
                continue
            record = entry.get("record")
            if isinstance(record, dict) and "id" in record:
                rows[str(record["id"])] = dict(record)
        return tables
