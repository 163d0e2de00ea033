from typing import Any

from pydantic import BaseModel, Field

from app.core.exceptions import ErrorKind
from app.services.results import BatchManifest


class FailedItemOut(BaseModel):
    item: Any
    reason: ErrorKind
    message: str | None = None

    model_config = {"from_attributes": True}


class BatchManifestOut(BaseModel):
    succeeded: list[Any]
    failed: list[FailedItemOut]
    success_count: int = Field(alias="successCount")
    failure_count: int = Field(alias="failureCount")
    cancelled: bool = False
    dry_run: bool = Field(default=False, alias="dryRun")

    model_config = {
        "from_attributes": True,
        "populate_by_name": True,
    }


class AutoAssignOut(BatchManifestOut):
    batch_id: str = Field(alias="batchId")


def manifest_out(manifest: BatchManifest, *, batch_id: str | None = None) -> BatchManifestOut:
    payload = {
        "succeeded": list(manifest.succeeded),
        "failed": [
            FailedItemOut(item=failure.item, reason=failure.reason, message=failure.message)
            for failure in manifest.failed
        ],
        "success_count": manifest.success_count,
        "failure_count": manifest.failure_count,
        "cancelled": manifest.cancelled,
        "dry_run": manifest.dry_run,
    }
    if batch_id is not None:
        return AutoAssignOut(batch_id=batch_id, **payload)
    return BatchManifestOut(**payload)
