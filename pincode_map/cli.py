"""CLI entrypoint for the pincode sales map pipeline."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
import time
from pathlib import Path

from pincode_map.common.config_loader import ConfigBundle, load_all_configs
from pincode_map.common.constants import EXIT_HARD_FAIL, EXIT_PARTIAL, EXIT_SUCCESS, STAGES
from pincode_map.common.errors import PincodeMapError
from pincode_map.common.fs import write_json
from pincode_map.common.ids import generate_run_id
from pincode_map.common.logging import build_logger, log_event, log_warning
from pincode_map.common.time_utils import elapsed_ms
from pincode_map.geocode.cache import CoordinateCache
from pincode_map.geocode.nominatim import Geocoder, NominatimGeocoder
from pincode_map.geocode.resolver import ResolutionResult
from pincode_map.geocode.session import ResolutionSession, ResolutionState
from pincode_map.geocode.storage import JsonFileStorage
from pincode_map.pipeline.aggregate import FilterState, HeatConfig, build_view, select_record
from pincode_map.pipeline.export import write_export_csv
from pincode_map.pipeline.ingest import IngestResult, load_resolved_records, load_sales_dataset
from pincode_map.pipeline.render import build_render_payload
from pincode_map.pipeline.reports import failure_ratio, write_resolution_report


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("command", choices=[*STAGES, "all"])
    parser.add_argument("--dataset", default="./datasets/pincode_sales.json")
    parser.add_argument("--run-id", default=None)
    parser.add_argument("--config-dir", default="./config")
    parser.add_argument("--overlay-config-dir", default=None)
    parser.add_argument("--data-dir", default="./data")
    parser.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARN", "ERROR"])
    parser.add_argument("--search", default="")
    parser.add_argument("--min-sales", default="")
    parser.add_argument("--max-sales", default="")
    parser.add_argument("--limit", default="all")
    parser.add_argument("--select", default=None, help="pincode to report as the selected point")
    return parser.parse_args(argv)


def build_cache(bundle: ConfigBundle, data_dir: Path) -> CoordinateCache:
    cache_cfg = bundle.settings["cache"]
    storage = JsonFileStorage(data_dir / "state" / cache_cfg["storage_filename"])
    return CoordinateCache(storage, storage_key=cache_cfg["storage_key"])


async def resolve_dataset(
    ingest: IngestResult,
    *,
    bundle: ConfigBundle,
    cache: CoordinateCache,
    geocoder: Geocoder,
    logger: logging.Logger,
) -> tuple[str | None, ResolutionResult | None]:
    session = ResolutionSession(
        cache=cache,
        seed_table=bundle.seed_table,
        geocoder=geocoder,
        delay_seconds=float(bundle.settings["resolution"]["delay_ms"]) / 1000,
    )
    last_processed = -1

    def _log_progress(state: ResolutionState) -> None:
        nonlocal last_processed
        if state.progress.processed == last_processed:
            return
        last_processed = state.progress.processed
        log_event(
            logger,
            f"processed {state.progress.processed} of {state.progress.total}",
            stage="resolve",
            batch_id=state.batch_id,
            event="RESOLVE_PROGRESS",
            status="ok",
            processed=state.progress.processed,
            total=state.progress.total,
            failures=state.progress.failures,
        )

    session.subscribe(_log_progress)
    session.start(ingest.records)
    result = await session.wait()
    return session.current_batch_id, result


def run_resolve(bundle: ConfigBundle, args: argparse.Namespace, data_dir: Path, run_id: str, logger: logging.Logger) -> bool:
    ingest = load_sales_dataset(Path(args.dataset))
    if ingest.rejected_rows:
        log_warning(
            logger,
            f"rejected {ingest.rejected_rows} malformed rows",
            stage="resolve",
            event="INGEST_REJECT",
            status="warning",
        )

    cache = build_cache(bundle, data_dir)
    geocoder = NominatimGeocoder.from_settings(bundle.settings)
    try:
        batch_id, result = asyncio.run(
            resolve_dataset(ingest, bundle=bundle, cache=cache, geocoder=geocoder, logger=logger)
        )
    finally:
        geocoder.close()
    if result is None:
        raise PincodeMapError("Resolution batch did not settle")

    output_cfg = bundle.settings["output"]
    write_json(
        data_dir / "out" / output_cfg["resolved_filename"],
        {"batch_id": batch_id, "records": [record.to_dict() for record in result.records]},
    )
    warn_ratio = float(bundle.settings["resolution"]["failure_warn_ratio"])
    write_resolution_report(
        data_dir / "out" / "reports" / output_cfg["report_filename"],
        run_id=run_id,
        batch_id=batch_id,
        ingest=ingest,
        result=result,
        warn_ratio=warn_ratio,
        cache_entries=len(cache),
    )

    if failure_ratio(result) > warn_ratio:
        log_warning(
            logger,
            f"{result.progress.failures} of {result.progress.total} pincodes could not be located",
            stage="resolve",
            batch_id=batch_id,
            event="RESOLVE_FAILURES_HIGH",
            status="warning",
            failures=result.progress.failures,
            total=result.progress.total,
        )
    return result.progress.failures > 0


def _filter_state(args: argparse.Namespace) -> FilterState:
    return FilterState.from_inputs(args.search, args.min_sales, args.max_sales, args.limit)


def run_view(bundle: ConfigBundle, args: argparse.Namespace, data_dir: Path) -> bool:
    output_cfg = bundle.settings["output"]
    records = load_resolved_records(data_dir / "out" / output_cfg["resolved_filename"])
    filter_state = _filter_state(args)
    view = build_view(records, filter_state, HeatConfig.from_settings(bundle.settings))

    display_cfg = bundle.settings["display"]
    payload = build_render_payload(
        view,
        filter_state,
        resolved_count=len(records),
        currency_symbol=display_cfg["currency_symbol"],
        top_n=int(display_cfg["top_n"]),
        limit_options=display_cfg["limit_options"],
    )
    selection = select_record(records, view.display_set, args.select)
    payload["selection"] = (
        None
        if selection is None
        else {**selection.record.to_dict(), "visible": selection.visible}
    )
    write_json(data_dir / "out" / output_cfg["view_filename"], payload)
    return False


def run_export(bundle: ConfigBundle, args: argparse.Namespace, data_dir: Path) -> bool:
    output_cfg = bundle.settings["output"]
    records = load_resolved_records(data_dir / "out" / output_cfg["resolved_filename"])
    view = build_view(records, _filter_state(args), HeatConfig.from_settings(bundle.settings))
    write_export_csv(data_dir / "out" / output_cfg["export_filename"], view.display_set)
    return False


def execute_stage(
    stage: str,
    bundle: ConfigBundle,
    args: argparse.Namespace,
    data_dir: Path,
    run_id: str,
    logger: logging.Logger,
) -> bool:
    if stage == "resolve":
        return run_resolve(bundle, args, data_dir, run_id, logger)
    if stage == "view":
        return run_view(bundle, args, data_dir)
    if stage == "export":
        return run_export(bundle, args, data_dir)
    raise ValueError(f"Unknown stage: {stage}")


def run_command(args: argparse.Namespace) -> int:
    run_id = args.run_id or generate_run_id()
    config_dir = Path(args.config_dir)
    overlay_config_dir = Path(args.overlay_config_dir) if args.overlay_config_dir else None
    data_dir = Path(args.data_dir)

    logger = build_logger(run_id, data_dir=data_dir, level=args.log_level)
    bundle = load_all_configs(config_dir, overlay_config_dir=overlay_config_dir)
    stages = STAGES if args.command == "all" else (args.command,)

    had_partial_failure = False

    for stage in stages:
        started_at = time.monotonic()
        log_event(logger, "stage start", run_id=run_id, stage=stage, event="STAGE_START", status="ok")
        try:
            had_partial_failure = execute_stage(stage, bundle, args, data_dir, run_id, logger) or had_partial_failure
        except PincodeMapError as exc:
            log_event(
                logger,
                f"stage failed: {exc}",
                run_id=run_id,
                stage=stage,
                event="STAGE_FAIL",
                status="error",
                error_code=exc.error_code,
            )
            return EXIT_HARD_FAIL
        except Exception:
            logger.exception(
                "unexpected stage failure",
                extra={
                    "run_id": run_id,
                    "stage": stage,
                    "event": "STAGE_FAIL",
                    "status": "error",
                    "error_code": "UNEXPECTED_ERROR",
                },
            )
            return EXIT_HARD_FAIL
        log_event(
            logger,
            "stage end",
            run_id=run_id,
            stage=stage,
            event="STAGE_END",
            status="ok",
            duration_ms=elapsed_ms(started_at),
        )

    if had_partial_failure:
        return EXIT_PARTIAL
    return EXIT_SUCCESS


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv or sys.argv[1:])
    try:
        return run_command(args)
    except PincodeMapError:
        return EXIT_HARD_FAIL
    except Exception:
        return EXIT_HARD_FAIL


if __name__ == "__main__":
    raise SystemExit(main())
