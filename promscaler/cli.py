"""
``promscaler`` command-line entry point.

Runs the controller in-process (default), inside a Ray actor (``--ray``),
or evaluates every autoscaler exactly once (``--once``).
"""

from __future__ import annotations

import argparse
import dataclasses
import json
import logging
import signal
import sys
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional

from promscaler.core.config import (
    ControllerSettings,
    build_controller_settings,
    get_controller_settings,
    load_settings_file,
)
from promscaler.core.utils import configure_runtime_logging, parse_log_level

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="promscaler", description="Prometheus-driven autoscaling controller")
    parser.add_argument("--config", help="controller settings YAML (overrides $PROMSCALER_CONFIG)")
    parser.add_argument("--manifest", help="YAML manifest listing the autoscalers")
    parser.add_argument("--state-path", help="directory for persisted autoscaler status")
    parser.add_argument("--workers", type=int, help="number of reconcile worker threads")
    parser.add_argument(
        "--log-level",
        choices=["debug", "info", "warn", "error"],
        help="log verbosity (default from settings)",
    )
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("--once", action="store_true", help="evaluate every autoscaler once and print statuses")
    mode.add_argument("--ray", action="store_true", help="host the controller inside a Ray actor")
    return parser


def resolve_settings(args: argparse.Namespace) -> ControllerSettings:
    if args.config:
        settings = build_controller_settings(load_settings_file(Path(args.config).expanduser()))
    else:
        settings = get_controller_settings()
    overrides: Dict[str, Any] = {}
    if args.manifest:
        overrides["manifest_path"] = args.manifest
    if args.state_path:
        overrides["state_path"] = args.state_path
    if args.workers is not None:
        if args.workers < 1:
            raise ValueError("--workers must be >= 1")
        overrides["workers"] = args.workers
    if args.log_level:
        overrides["log_level"] = args.log_level
    return dataclasses.replace(settings, **overrides) if overrides else settings


def _install_signal_handlers(stop: threading.Event) -> None:
    def _handle(signum, _frame) -> None:
        logger.info("Received signal=%s, shutting down", signum)
        stop.set()

    signal.signal(signal.SIGINT, _handle)
    signal.signal(signal.SIGTERM, _handle)


def run_once(settings: ControllerSettings) -> int:
    from promscaler.core.controllers import build_controller

    controller = build_controller(settings)
    results = controller.run_once()
    report: Dict[str, Any] = {}
    for key, result in results.items():
        entry: Dict[str, Any] = {"outcome": result.outcome if result else "Error"}
        if result is not None and result.decision is not None:
            entry["desired"] = result.decision.desired_count
            entry["reason"] = result.decision.reason
        try:
            entry["status"] = controller.source.get(key).status.to_dict()
        except Exception as exc:
            entry["error"] = str(exc)
        report[key] = entry
    json.dump(report, sys.stdout, indent=2, sort_keys=True)
    sys.stdout.write("\n")
    return 0 if all(result is not None for result in results.values()) else 1


def run_controller(settings: ControllerSettings, stop: threading.Event) -> int:
    from promscaler.core.controllers import build_controller

    controller = build_controller(settings)
    controller.start()
    try:
        while not stop.wait(1.0):
            pass
    finally:
        controller.stop()
    return 0


def run_in_ray(settings: ControllerSettings, args: argparse.Namespace, stop: threading.Event) -> int:
    import ray

    from promscaler.core.actors import ActorConfig, AutoscalerHead

    ray.init(ignore_reinit_error=True)
    head = AutoscalerHead(
        config=ActorConfig(
            name="promscaler-controller",
            workers=settings.workers,
            settings_path=args.config,
            manifest_path=settings.manifest_path,
            state_path=settings.state_path,
        )
    )
    head.start()
    try:
        while not stop.wait(1.0):
            pass
    finally:
        head.stop()
        ray.shutdown()
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        settings = resolve_settings(args)
    except ValueError as exc:
        print(f"promscaler: invalid configuration: {exc}", file=sys.stderr)
        return 2
    configure_runtime_logging(parse_log_level(settings.log_level))

    if not settings.manifest_path:
        print("promscaler: no manifest configured (use --manifest or controller.manifest_path)", file=sys.stderr)
        return 2

    if args.once:
        return run_once(settings)

    stop = threading.Event()
    _install_signal_handlers(stop)
    if args.ray:
        return run_in_ray(settings, args, stop)
    return run_controller(settings, stop)


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
