# -*- coding: utf-8 -*-
"""Command line entry point: ``python -m src.multirate.cli run ...``.

Exit codes: 0 run completed (and every comparison accepted), 1 validation
failure, 2 step failure, 3 configuration failure.
"""
from __future__ import annotations

import argparse
from dataclasses import replace
from typing import Optional, Sequence

from .config import MODES, RunConfig, load_config
from .debug import configure, dbg, enable
from .errors import ConfigurationFailure, StepFailure, ValidationFailure

EXIT_OK = 0
EXIT_VALIDATION = 1
EXIT_STEP = 2
EXIT_CONFIG = 3


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="multirate", description="multi-rate floating-body run with regression validation")
    sub = parser.add_subparsers(dest="command", required=True)
    run = sub.add_parser("run", help="run the floating-body case and validate its recorded series")
    run.add_argument("--config", help="JSON run configuration (defaults apply when omitted)")
    run.add_argument("--mode", choices=MODES, help="grow the reference database or test against it")
    run.add_argument("--db-dir", help="reference database directory")
    run.add_argument("--run-configuration", help="reference database key for this run")
    run.add_argument("--end-time", type=float, help="physical end time")
    run.add_argument("--coupling-start", type=float, help="physical time at which FSI coupling starts")
    run.add_argument("--no-coupling", action="store_true", help="run the fluid alone")
    run.add_argument("--debug", action="store_true", help="enable deep per-tick debug logging")
    run.add_argument("--log-level", default="INFO", help="log level for progress and reports (default: INFO)")
    return parser


def _apply_overrides(cfg: RunConfig, args: argparse.Namespace) -> RunConfig:
    if args.end_time is not None:
        cfg.scheduler = replace(cfg.scheduler, end_time=args.end_time)
    if args.coupling_start is not None:
        cfg.coupling = replace(cfg.coupling, start_time=args.coupling_start)
    if args.no_coupling:
        cfg.coupling = replace(cfg.coupling, enabled=False)
    if args.mode is not None:
        cfg.validation = replace(cfg.validation, mode=args.mode)
    if args.db_dir is not None:
        cfg.validation = replace(cfg.validation, database_dir=args.db_dir)
    if args.run_configuration is not None:
        cfg.validation = replace(cfg.validation, run_configuration=args.run_configuration)
    return cfg.validate()


def _run(args: argparse.Namespace) -> int:
    from .demo import run_demo

    log = dbg("cli")
    try:
        cfg = load_config(args.config) if args.config else RunConfig()
        cfg = _apply_overrides(cfg, args)
        summary, report = run_demo(cfg)
        for line in report.summary_lines():
            log.info(line)
        if report.mode == "test":
            report.raise_for_failures()
    except ConfigurationFailure as exc:
        log.error(f"configuration error: {exc}")
        return EXIT_CONFIG
    except StepFailure as exc:
        log.error(f"step failure: {exc}")
        return EXIT_STEP
    except ValidationFailure as exc:
        log.error(str(exc))
        return EXIT_VALIDATION
    log.info(f"run finished at t={summary.final_time:.9g} ({report.mode} mode, {len(report.results)} quantities)")
    return EXIT_OK


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure(args.log_level)
    if args.debug:
        enable(True)
    if args.command == "run":
        return _run(args)
    return EXIT_CONFIG  # pragma: no cover - argparse rejects unknown commands


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
