"""
In-memory store for diagnostic job data submitted by the client app.

Jobs are kept only for the lifetime of the process; there is no durable
storage behind this store. The application owns a single ``JobStore`` and
hands it to request handlers through a FastAPI dependency.
"""

from __future__ import annotations

import logging
import secrets
from datetime import datetime, timezone
from threading import Lock
from typing import Any, Dict, List, Optional

from .models import JobRecord
from .utils import epoch_millis

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _vehicle_field(data: Dict[str, Any], key: str) -> Optional[str]:
    vehicle = data.get("vehicleInfo")
    if not isinstance(vehicle, dict) or vehicle.get(key) is None:
        return None
    return str(vehicle[key])


class JobStore:
    """
    Thread-safe registry of job records.

    Thread Safety:
        Every read and write holds the store lock, and callers always receive
        copies, so a returned record cannot be mutated behind the store's back.
    """

    def __init__(self) -> None:
        self._jobs: Dict[str, JobRecord] = {}
        self._lock = Lock()

    def create(self, data: Dict[str, Any]) -> JobRecord:
        job_id = f"job-{epoch_millis()}-{secrets.token_hex(3)}"
        now = _now()
        record = JobRecord(id=job_id, created_at=now, updated_at=now, data=dict(data))
        with self._lock:
            self._jobs[job_id] = record
        logger.info(f"Saved job {job_id}")
        return record.model_copy(deep=True)

    def list(self, ro_number: Optional[str] = None, vin: Optional[str] = None) -> List[JobRecord]:
        """
        Jobs sorted by creation time (newest first).

        Args:
            ro_number: Only jobs whose ``vehicleInfo.roNumber`` equals this
            vin: Only jobs whose ``vehicleInfo.vin`` equals this (case-insensitive)
        """
        with self._lock:
            records = sorted(self._jobs.values(), key=lambda r: r.created_at, reverse=True)
            records = [record.model_copy(deep=True) for record in records]

        if ro_number is not None:
            records = [r for r in records if _vehicle_field(r.data, "roNumber") == ro_number]
        if vin is not None:
            records = [r for r in records if (_vehicle_field(r.data, "vin") or "").upper() == vin.upper()]
        return records

    def get(self, job_id: str) -> Optional[JobRecord]:
        with self._lock:
            record = self._jobs.get(job_id)
            return record.model_copy(deep=True) if record else None

    def update(self, job_id: str, changes: Dict[str, Any]) -> Optional[JobRecord]:
        """Shallow-merge ``changes`` into the job data; ``None`` if the job is unknown."""
        with self._lock:
            record = self._jobs.get(job_id)
            if record is None:
                return None
            record.data.update(changes)
            record.updated_at = _now()
            updated = record.model_copy(deep=True)
        logger.info(f"Updated job {job_id}")
        return updated

    def delete(self, job_id: str) -> bool:
        with self._lock:
            removed = self._jobs.pop(job_id, None) is not None
        if removed:
            logger.info(f"Deleted job {job_id}")
        return removed
