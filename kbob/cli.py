"""CLI entrypoint for the KBOB materials cache."""

from __future__ import annotations

import argparse
import dataclasses
import json
import sys
from pathlib import Path

from kbob.api.handlers import ApiResponse
from kbob.common.config_loader import load_service_config
from kbob.common.constants import EXIT_HARD_FAIL, EXIT_INVALID_REQUEST, EXIT_SUCCESS
from kbob.common.errors import InvalidRequest, KbobError
from kbob.common.logging import build_logger, log_event, log_failure
from kbob.service import MaterialsService, build_service

COMMANDS = (
    "ingest",
    "last-ingestion",
    "group",
    "materials",
    "material",
    "search",
    "stats",
    "names",
    "compare",
    "test-link",
    "update-link",
    "check-version",
    "versions",
    "schedule",
)


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("command", choices=COMMANDS)
    parser.add_argument("value", nargs="?", default=None, help="group, uuid(s), query, metric or link")
    parser.add_argument("--page", default=None)
    parser.add_argument("--page-size", default=None)
    parser.add_argument("--language", default="de", choices=["de", "fr"])
    parser.add_argument("--metrics", default=None, help="comma-separated metrics for compare")
    parser.add_argument("--config-dir", default="./config")
    parser.add_argument("--overlay-config-dir", default=None)
    parser.add_argument("--snapshot-path", default=None)
    parser.add_argument("--log-dir", default=None)
    parser.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARN", "ERROR"])
    return parser.parse_args(argv)


def exit_code_for(response: ApiResponse) -> int:
    if response.status < 400:
        return EXIT_SUCCESS
    if response.status < 500:
        return EXIT_INVALID_REQUEST
    return EXIT_HARD_FAIL


def execute_command(args: argparse.Namespace, service: MaterialsService) -> ApiResponse:
    api = service.api
    if args.command == "ingest":
        return api.trigger_ingestion()
    if args.command == "last-ingestion":
        return api.last_ingestion()
    if args.command == "group":
        if not args.value:
            return ApiResponse(400, {"success": False, "error": "Group is required", "materials": []})
        return api.materials_by_group(args.value)
    if args.command == "materials":
        return api.all_materials(args.page, args.page_size)
    if args.command == "material":
        return api.material_by_uuid(args.value or "")
    if args.command == "search":
        return api.search(args.value, args.language)
    if args.command == "stats":
        return api.metric_stats(args.value)
    if args.command == "names":
        return api.names(args.language)
    if args.command == "compare":
        return api.compare(args.value, args.metrics, args.language)
    if args.command == "check-version":
        return api.check_new_version()
    if args.command == "versions":
        return api.versions()
    if args.command == "test-link":
        return api.test_link({"link": args.value})
    if args.command == "update-link":
        if not args.value:
            return ApiResponse(400, {"success": False, "error": "Link is required"})
        return ApiResponse(200, {"success": service.coordinator.update_source_link(args.value)})
    raise ValueError(f"Unknown command: {args.command}")


def run_command(args: argparse.Namespace, *, service: MaterialsService | None = None) -> int:
    logger = build_logger(args.log_level, Path(args.log_dir) if args.log_dir else None)
    if service is None:
        config = load_service_config(
            Path(args.config_dir),
            overlay_config_dir=Path(args.overlay_config_dir) if args.overlay_config_dir else None,
        )
        if args.snapshot_path:
            config = dataclasses.replace(
                config,
                ingestion=dataclasses.replace(config.ingestion, snapshot_path=Path(args.snapshot_path)),
            )
        service = build_service(config)

    try:
        if args.command == "schedule":
            log_event(logger, "scheduler start", component="cli", event="SCHEDULER_START", status="ok")
            try:
                service.scheduler.run_forever()
            except KeyboardInterrupt:
                log_event(logger, "scheduler stopped", component="cli", event="SCHEDULER_STOP", status="ok")
            return EXIT_SUCCESS

        response = execute_command(args, service)
    except InvalidRequest as exc:
        response = ApiResponse(400, {"success": False, "error": str(exc)})
    except KbobError as exc:
        log_failure(logger, "command failed", component="cli", event="COMMAND_FAIL", status="error", error_code=exc.error_code)
        response = ApiResponse(500, {"success": False, "error": "Command failed"})
    finally:
        service.close()

    sys.stdout.write(json.dumps(response.body, ensure_ascii=False, indent=2) + "\n")
    return exit_code_for(response)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv if argv is not None else sys.argv[1:])
    try:
        return run_command(args)
    except KbobError:
        return EXIT_HARD_FAIL
    except Exception:
        return EXIT_HARD_FAIL


if __name__ == "__main__":
    raise SystemExit(main())
