"""Command line interface for deployer package."""
from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from dataclasses import replace
from pathlib import Path
from typing import Mapping, Optional, Sequence, Tuple

from rich.logging import RichHandler

from . import __version__
from .cli_progress import BatchProgressDisplay, render_auth_report, render_configuration_summary
from .models import DeployConfig
from .orchestrator import PipelineError, PipelineOrchestrator

DEFAULT_LOG_DIR = Path.home() / ".cache" / "folder-deployer" / "logs"
RUN_LOG_NAME = "bulk-deploy.log"
ERROR_LOG_NAME = "bulk-deploy-errors.log"

# Environment variables overriding collaborator executables.
BIN_ENV_VARS = {
    "gh_bin": "DEPLOYER_GH_BIN",
    "vercel_bin": "DEPLOYER_VERCEL_BIN",
    "netlify_bin": "DEPLOYER_NETLIFY_BIN",
    "git_bin": "DEPLOYER_GIT_BIN",
}

_LOG_PATHS: Tuple[Optional[Path], Optional[Path]] = (None, None)


class CLIError(RuntimeError):
    """Raised when CLI validation/execution fails."""


def _get_log_paths() -> Tuple[Optional[Path], Optional[Path]]:
    """Return (run_log, error_log) configured by the last _setup_logging call."""
    return _LOG_PATHS


def _setup_logging(debug: bool, silent: bool, log_level: Optional[str]) -> str:
    """
    Configure logging.

    Run and error logs are always written under the log directory
    (DEPLOYER_LOG_DIR or ~/.cache/folder-deployer/logs). Console logging is
    off unless --debug or a log level (--log-level or LOG_LEVEL) is given;
    progress is printed by cli_progress instead. Returns a string describing the console mode.
    """
    global _LOG_PATHS

    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()

    logging.disable(logging.NOTSET)

    log_dir = Path(os.getenv("DEPLOYER_LOG_DIR") or DEFAULT_LOG_DIR)
    log_dir.mkdir(parents=True, exist_ok=True)
    run_log = log_dir / RUN_LOG_NAME
    error_log = log_dir / ERROR_LOG_NAME

    file_formatter = logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
    run_handler = logging.FileHandler(run_log, encoding="utf-8")
    run_handler.setLevel(logging.DEBUG if debug else logging.INFO)
    run_handler.setFormatter(file_formatter)
    error_handler = logging.FileHandler(error_log, encoding="utf-8")
    error_handler.setLevel(logging.ERROR)
    error_handler.setFormatter(file_formatter)
    root_logger.addHandler(run_handler)
    root_logger.addHandler(error_handler)
    _LOG_PATHS = (run_log, error_log)

    if silent or (not debug and not log_level):
        root_logger.setLevel(logging.INFO)
        return "silent"

    if debug:
        level = logging.DEBUG
    else:
        level = getattr(logging, log_level.upper(), logging.INFO)

    console_handler = RichHandler(
        rich_tracebacks=True,
        markup=False,
        show_time=False,
        show_path=False,
    )
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter("%(message)s"))
    root_logger.addHandler(console_handler)
    root_logger.setLevel(min(level, logging.INFO))
    return logging.getLevelName(level)


def _strip_optional_quotes(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in {"'", '"'}:
        return value[1:-1]
    return value


def _load_env_file(path: Path, override: bool = False) -> None:
    if not path.exists():
        raise CLIError(f"env file not found: {path}")
    if not path.is_file():
        raise CLIError(f"env path is not a file: {path}")

    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise CLIError(f"could not read env file {path}: {exc}") from exc

    for raw_line in content.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        if line.startswith("export "):
            line = line[len("export ") :].strip()
        if "=" not in line:
            continue

        key, value = line.split("=", 1)
        key = key.strip()
        if not key:
            continue

        value = _strip_optional_quotes(value.strip())
        if override or key not in os.environ:
            os.environ[key] = value


def _resolve_default_env_file() -> Optional[Path]:
    default_env = Path(".env")
    return default_env if default_env.exists() and default_env.is_file() else None


def _build_config(args: argparse.Namespace, environ: Mapping[str, str]) -> DeployConfig:
    """DeployConfig from CLI flags and DEPLOYER_* environment variables."""
    overrides = {}
    for field_name, env_name in BIN_ENV_VARS.items():
        value = environ.get(env_name)
        if value:
            overrides[field_name] = _strip_optional_quotes(value.strip())
    if args.done_dir:
        overrides["done_dir_name"] = args.done_dir
    if args.no_kill:
        overrides["kill_lingering"] = False
    return replace(DeployConfig(), **overrides)


async def _run_pipeline(root: Path, config: DeployConfig, repair: bool, skip_auth_check: bool) -> int:
    orchestrator = PipelineOrchestrator(root, config)

    if not skip_auth_check:
        render_auth_report(await orchestrator.check_auth())

    display = BatchProgressDisplay()
    display.attach(orchestrator)

    try:
        result = await (orchestrator.repair() if repair else orchestrator.run())
    except PipelineError as exc:
        raise CLIError(str(exc)) from exc

    if repair:
        # Nothing is relocated in repair mode.
        failed = any(report.failed_stages for report in result.reports)
        return 0 if result.errored == 0 and not failed else 1
    return 0 if result.all_success else 1


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="bulk-deploy",
        description=(
            "Publish every project folder under ROOT to GitHub, Vercel and Netlify, "
            "moving finished folders into the done directory."
        ),
    )
    parser.add_argument(
        "root",
        nargs="?",
        type=Path,
        default=None,
        help="Working root holding the project folders (default: current directory)",
    )
    parser.add_argument(
        "-d",
        "--done-dir",
        default=None,
        help=f"Name of the done directory inside ROOT (default: {DeployConfig.done_dir_name!r})",
    )
    parser.add_argument(
        "--repair",
        action="store_true",
        help="Re-attempt pending Vercel/Netlify deployments for folders in the done directory",
    )
    parser.add_argument(
        "-k",
        "--skip-auth-check",
        action="store_true",
        help="Do not check gh/vercel/netlify logins before starting",
    )
    parser.add_argument(
        "--no-kill",
        action="store_true",
        help="Never terminate lingering git processes that lock a folder",
    )
    parser.add_argument(
        "--env-file",
        type=Path,
        default=None,
        help="Load environment variables from this .env file",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logs")
    parser.add_argument("--silent", action="store_true", help="Only print progress, no logs")
    parser.add_argument(
        "--log-level",
        default=None,
        help="Explicit log level (DEBUG/INFO/WARNING/ERROR)",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"bulk-deploy {__version__}",
    )
    return parser


def run_cli(argv: Optional[Sequence[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    used_env_file = args.env_file or _resolve_default_env_file()
    if used_env_file is not None:
        try:
            _load_env_file(Path(used_env_file))
        except CLIError as exc:
            print(f"ERROR: {exc}", file=sys.stderr)
            return 1

    effective_log_mode = _setup_logging(
        debug=args.debug,
        silent=args.silent,
        log_level=args.log_level or os.getenv("LOG_LEVEL"),
    )

    root = Path(args.root).expanduser() if args.root is not None else Path.cwd()
    if not root.is_dir():
        print(f"ERROR: working root does not exist: {root}", file=sys.stderr)
        return 1
    root = root.resolve()

    config = _build_config(args, os.environ)
    run_log, _ = _get_log_paths()
    render_configuration_summary(
        {
            "Root": str(root),
            "Mode": "repair" if args.repair else "deploy",
            "Done Dir": config.done_dir_name,
            "Status File": config.status_file,
            "gh": config.gh_bin,
            "vercel": config.vercel_bin,
            "netlify": config.netlify_bin,
            "Kill Lingering": "yes" if config.kill_lingering else "no",
            "Env File": str(used_env_file) if used_env_file else "-",
            "Logging": effective_log_mode,
            "Log File": str(run_log) if run_log else "-",
        }
    )

    try:
        return asyncio.run(
            _run_pipeline(
                root=root,
                config=config,
                repair=args.repair,
                skip_auth_check=args.skip_auth_check,
            )
        )
    except CLIError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("Cancelled. Progress is saved; rerun to resume.", file=sys.stderr)
        return 130


def main() -> None:
    raise SystemExit(run_cli())


if __name__ == "__main__":
    main()
