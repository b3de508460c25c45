"""Resolution run report."""

from __future__ import annotations

from pathlib import Path

from pincode_map.common.fs import write_json
from pincode_map.geocode.resolver import ResolutionResult
from pincode_map.pipeline.ingest import IngestResult


def failure_ratio(result: ResolutionResult) -> float:
    if result.progress.total == 0:
        return 0.0
    return result.progress.failures / result.progress.total


def resolution_status(result: ResolutionResult, warn_ratio: float) -> str:
    if result.progress.failures == 0:
        return "success"
    if failure_ratio(result) > warn_ratio:
        return "degraded"
    return "partial"


def write_resolution_report(
    path: Path,
    *,
    run_id: str,
    batch_id: str | None,
    ingest: IngestResult,
    result: ResolutionResult,
    warn_ratio: float,
    cache_entries: int | None = None,
) -> Path:
    payload = {
        "run_id": run_id,
        "batch_id": batch_id,
        "status": resolution_status(result, warn_ratio),
        "failure_ratio": round(failure_ratio(result), 4),
        "ingest": ingest.to_report_dict(),
        "resolution": result.to_report_dict(),
        "cache_entries": cache_entries,
    }
    write_json(path, payload)
    return path
