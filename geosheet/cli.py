"""CLI entrypoint for the spreadsheet geocoder."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from geosheet.auth.credentials import CredentialProvider
from geosheet.common.config_loader import load_config
from geosheet.common.constants import EXIT_HARD_FAIL, EXIT_PARTIAL, EXIT_SUCCESS
from geosheet.common.errors import PipelineError
from geosheet.common.ids import generate_run_id
from geosheet.common.logging import build_logger, log_event
from geosheet.common.models import STATUS_LOOKUP_FAILED, STATUS_NOT_FOUND, RowResult
from geosheet.geocode.client import GeocodingClient
from geosheet.pipeline.orchestrator import BatchOrchestrator
from geosheet.pipeline.reports import write_run_summary
from geosheet.sheets.gateway import SpreadsheetGateway, build_sheets_service


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--run-id", default=None)
    parser.add_argument("--config-dir", default="./config")
    parser.add_argument("--overlay-config-dir", default=None)
    parser.add_argument("--data-dir", default="./data")
    parser.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARN", "ERROR"])
    return parser.parse_args(argv)


class RunState:
    def __init__(self) -> None:
        self.stage = "config"
        self.results: list[RowResult] = []
        self.written_range: str | None = None


def execute_run(cfg: dict, state: RunState, run_id: str, logger: logging.Logger) -> None:
    def enter(stage: str) -> None:
        state.stage = stage
        log_event(logger, "stage start", run_id=run_id, stage=stage, event="STAGE_START", status="ok")

    enter("auth")
    provider = CredentialProvider.from_config(cfg["auth"], logger=logger)
    credentials = provider.acquire()

    enter("read")
    gateway = SpreadsheetGateway.from_config(cfg["spreadsheet"], build_sheets_service(credentials), logger=logger)
    rows = gateway.read_rows()

    enter("geocode")
    geocoder = GeocodingClient.from_config(cfg["geocoding"], logger=logger)
    try:
        orchestrator = BatchOrchestrator.from_config(cfg, geocoder, run_id=run_id, logger=logger)
        state.results = orchestrator.run_detailed(rows)
    finally:
        geocoder.close()

    enter("write")
    gateway.write_coordinates([result.coordinate for result in state.results])
    state.written_range = gateway.write_range(len(state.results))


def run_command(args: argparse.Namespace) -> int:
    run_id = args.run_id or generate_run_id()
    data_dir = Path(args.data_dir)
    overlay_config_dir = Path(args.overlay_config_dir) if args.overlay_config_dir else None

    logger = build_logger(run_id, data_dir=data_dir, level=args.log_level)
    state = RunState()
    try:
        cfg = load_config(Path(args.config_dir), overlay_config_dir=overlay_config_dir)
        execute_run(cfg, state, run_id, logger)
    except PipelineError as exc:
        log_event(
            logger,
            f"stage failed: {exc}",
            run_id=run_id,
            stage=state.stage,
            event="STAGE_FAIL",
            status="error",
            error_code=exc.error_code,
        )
        if state.results:
            write_run_summary(data_dir, run_id=run_id, results=state.results, written_range=None)
        return EXIT_HARD_FAIL
    except Exception:
        logger.exception(
            "unexpected failure",
            extra={"run_id": run_id, "stage": state.stage, "event": "STAGE_FAIL", "status": "error", "error_code": "UNEXPECTED_ERROR"},
        )
        return EXIT_HARD_FAIL

    write_run_summary(data_dir, run_id=run_id, results=state.results, written_range=state.written_range)
    log_event(
        logger,
        "run finished",
        run_id=run_id,
        stage="write",
        event="RUN_END",
        status="ok",
        rows_out=len(state.results),
    )
    if any(result.status in (STATUS_NOT_FOUND, STATUS_LOOKUP_FAILED) for result in state.results):
        return EXIT_PARTIAL
    return EXIT_SUCCESS


def main(argv: list[str] | None = None) -> int:
    args = parse_args(sys.argv[1:] if argv is None else argv)
    return run_command(args)


if __name__ == "__main__":
    raise SystemExit(main())
