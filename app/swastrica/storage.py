"""Append-only audit persistence.

Records always land in a local JSON-lines file. When an S3 bucket is
configured each record is also written as its own object, so concurrent
writers never read-modify-write a shared key.
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any

from swastrica.config import Settings
from swastrica.errors import PersistenceError
from swastrica.schemas import AuditRecord


class AuditStore:
    def __init__(self, settings: Settings):
        self._settings = settings
        self._root = Path(settings.local_storage_dir)
        self._audit_file = self._root / "logs" / "audit.jsonl"

        self._s3 = None
        if settings.s3_bucket:
            try:
                import boto3  # type: ignore

                self._s3 = boto3.client("s3", region_name=settings.s3_region)
            except Exception:
                self._s3 = None

    @property
    def audit_file(self) -> Path:
        return self._audit_file

    def _s3_key(self, record: AuditRecord) -> str:
        day = record.timestamp.strftime("%Y/%m/%d")
        name = f"audit/{day}/{record.request_id}.json"
        prefix = self._settings.s3_prefix.strip("/")
        return f"{prefix}/{name}" if prefix else name

    @staticmethod
    def _serialize(record: AuditRecord) -> str:
        return json.dumps(record.model_dump(mode="json"), ensure_ascii=True, separators=(",", ":"), default=str)

    def _append_local(self, line: str) -> None:
        self._audit_file.parent.mkdir(parents=True, exist_ok=True)
        with self._audit_file.open("a", encoding="utf-8") as fp:
            fp.write(line + "\n")

    async def append(self, record: AuditRecord) -> None:
        line = self._serialize(record)
        try:
            self._append_local(line)
            if self._s3 is not None and self._settings.s3_bucket:
                await asyncio.to_thread(
                    self._s3.put_object,
                    Bucket=self._settings.s3_bucket,
                    Key=self._s3_key(record),
                    Body=line.encode("utf-8"),
                    ContentType="application/json",
                )
        except Exception as exc:
            raise PersistenceError(f"audit append failed for {record.request_id}: {exc}") from exc

    def read_records(self) -> list[dict[str, Any]]:
        if not self._audit_file.exists():
            return []
        rows: list[dict[str, Any]] = []
        for line in self._audit_file.read_text(encoding="utf-8").splitlines():
            if line.strip():
                rows.append(json.loads(line))
        return rows
