# File: accessgen/cli.py
"""
accessgen - Command-Line Interface
===================================

Built on the standard-library ``argparse`` module.

Usage examples::

    # Generate from a live database
    accessgen -c accessgen.yaml -o app/db_access.py --conn postgresql://localhost/app

    # Read the URL from the environment, fall back to a second database
    accessgen -c accessgen.yaml -o out.py --conn '$DATABASE_URL' --conn sqlite:///dev.db

    # Skip generation in CI unless REGEN is set
    accessgen -c accessgen.yaml -o out.py --conn '$DATABASE_URL' --enable-var REGEN

    # Validate only (no database, no file output)
    accessgen -c accessgen.yaml --validate-only

Exit codes:
    0 - success (including a run skipped by --disable-var/--enable-var)
    1 - validation error
    2 - generation error (catalog or configuration mismatch)
    3 - write error
    4 - input/argument error
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List, NoReturn, Optional, Sequence

# ---------------------------------------------------------------------------
# Logger (configured in _setup_logging)
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("accessgen")


# ---------------------------------------------------------------------------
# Exit codes
# ---------------------------------------------------------------------------

EXIT_SUCCESS: int = 0
EXIT_VALIDATION_ERROR: int = 1
EXIT_GENERATION_ERROR: int = 2
EXIT_WRITE_ERROR: int = 3
EXIT_INPUT_ERROR: int = 4


# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------


def _setup_logging(verbosity: int) -> None:
    """
    Configure the root accessgen logger.

    Args:
        verbosity: 0 = WARNING, 1 = INFO, 2+ = DEBUG.
    """
    if verbosity >= 2:
        level = logging.DEBUG
    elif verbosity >= 1:
        level = logging.INFO
    else:
        level = logging.WARNING

    handler: logging.StreamHandler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)

    fmt: str = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
    formatter: logging.Formatter = logging.Formatter(fmt, datefmt="%H:%M:%S")
    handler.setFormatter(formatter)

    root_logger: logging.Logger = logging.getLogger("accessgen")
    root_logger.setLevel(level)
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.propagate = False


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------


def _build_parser() -> argparse.ArgumentParser:
    """Build and return the argument parser."""
    from accessgen import __version__

    parser: argparse.ArgumentParser = argparse.ArgumentParser(
        prog="accessgen",
        description=(
            "accessgen - typed data-access code generator.\n\n"
            "Introspects a live database and writes one Python module with a "
            "record class and get/list/insert/update/upsert/delete accessors "
            "per configured table."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  %(prog)s -c accessgen.yaml -o db_access.py --conn postgresql://localhost/app\n"
            "  %(prog)s -c accessgen.yaml -o db_access.py --conn '$DATABASE_URL'\n"
            "  %(prog)s -c accessgen.yaml --validate-only\n"
        ),
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"accessgen v{__version__}",
    )

    parser.add_argument(
        "-c", "--config",
        type=str,
        required=True,
        metavar="PATH",
        help="Path to the generation config (YAML or JSON).",
    )
    parser.add_argument(
        "-o", "--output",
        type=str,
        default=None,
        metavar="FILE",
        help="Generated module path. Required unless --validate-only or --dry-run is set.",
    )

    # --- Database ---
    db_group = parser.add_argument_group("database")
    db_group.add_argument(
        "--conn",
        dest="connection_strings",
        action="append",
        default=[],
        metavar="URL",
        help=(
            "Database URL to introspect; repeatable, tried in order. "
            "'$NAME' reads the URL from the environment and is skipped when unset."
        ),
    )
    db_group.add_argument(
        "--schema",
        type=str,
        default=None,
        metavar="NAME",
        help="Catalog schema to introspect (dialect default if omitted).",
    )

    # --- Gating ---
    gate_group = parser.add_argument_group("environment gating")
    gate_group.add_argument(
        "--disable-var",
        dest="disable_vars",
        action="append",
        default=[],
        metavar="NAME[=VALUE]",
        help="Skip generation when NAME is set (or equals VALUE). Repeatable.",
    )
    gate_group.add_argument(
        "--enable-var",
        dest="enable_vars",
        action="append",
        default=[],
        metavar="NAME[=VALUE]",
        help="Generate only when one of these patterns matches. Repeatable.",
    )

    # --- Modes ---
    mode_group = parser.add_argument_group("operation modes")
    mode_group.add_argument(
        "--validate-only",
        action="store_true",
        default=False,
        help="Only validate the config, without touching the database.",
    )
    mode_group.add_argument(
        "--dry-run",
        action="store_true",
        default=False,
        help="Run the full pipeline but print the module instead of writing it.",
    )

    # --- Verbosity ---
    verbosity_group = parser.add_argument_group("verbosity")
    verbosity_group.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (-v for INFO, -vv for DEBUG).",
    )
    verbosity_group.add_argument(
        "-q", "--quiet",
        action="store_true",
        default=False,
        help="Suppress all output except errors.",
    )

    return parser


# ---------------------------------------------------------------------------
# Generation
# ---------------------------------------------------------------------------


def _exit_code_for(failed_step: str) -> int:
    if failed_step in ("Load Config", "Validate Config"):
        return EXIT_VALIDATION_ERROR
    if failed_step == "Write Output":
        return EXIT_WRITE_ERROR
    return EXIT_GENERATION_ERROR


def _run_generation(args: argparse.Namespace, config_path: Path) -> int:
    """
    Run the generation pipeline.

    Returns the appropriate exit code.
    """
    from accessgen.config import GeneratorSettings
    from accessgen.errors import GenerationError
    from accessgen.generator import CodeGenerator, GenerationReport

    settings: GeneratorSettings = GeneratorSettings(
        config_file=config_path,
        output_file=Path(args.output).resolve() if args.output else None,
        connection_strings=args.connection_strings,
        schema_name=args.schema,
        disable_vars=args.disable_vars,
        enable_vars=args.enable_vars,
    )
    generator: CodeGenerator = CodeGenerator(
        settings,
        dry_run=args.dry_run,
        validate_only=args.validate_only,
    )

    if args.dry_run:
        logger.info("Dry-run mode: the module is printed, not written.")

    try:
        report: GenerationReport = generator.generate()
    except GenerationError as exc:
        failed: Optional[GenerationReport] = generator.report
        if failed is not None:
            print(failed.summary(), file=sys.stderr)
        logger.error("%s", exc)
        step: str = ""
        if failed is not None and failed.step_metrics:
            step = failed.step_metrics[-1].step_name
        return _exit_code_for(step)

    if report.skipped:
        logger.warning("Generation skipped by environment gating.")
    elif args.dry_run and not args.validate_only:
        print(generator.source, end="")

    if not args.quiet:
        print(report.summary(), file=sys.stderr)
    return EXIT_SUCCESS


# ---------------------------------------------------------------------------
# Main entry point
# ---------------------------------------------------------------------------


def cli_main(argv: Optional[Sequence[str]] = None) -> NoReturn:
    """
    Main CLI entry point.

    Can be called from ``__main__.py`` or directly for testing.

    Args:
        argv: Optional argument list (defaults to sys.argv[1:]).
    """
    parser: argparse.ArgumentParser = _build_parser()
    args: argparse.Namespace = parser.parse_args(argv)

    if args.quiet:
        verbosity: int = -1
    else:
        verbosity = args.verbose
    _setup_logging(verbosity)
    if args.quiet:
        logging.getLogger("accessgen").setLevel(logging.ERROR)

    config_path: Path = Path(args.config).resolve()
    if not config_path.is_file():
        logger.error("Config file not found: %s", config_path)
        sys.exit(EXIT_INPUT_ERROR)

    if not args.validate_only and not args.dry_run and args.output is None:
        logger.error(
            "Output file is required for generation. "
            "Use -o/--output, --dry-run or --validate-only."
        )
        parser.print_usage(sys.stderr)
        sys.exit(EXIT_INPUT_ERROR)

    logger.info("Config:  %s", config_path)
    logger.info("Output:  %s", args.output)

    exit_code: int = _run_generation(args, config_path)

    if exit_code == EXIT_SUCCESS:
        logger.info("Generation completed successfully.")
    else:
        logger.error("Generation failed with exit code %d.", exit_code)

    sys.exit(exit_code)


def main() -> None:
    """Console-script entry point."""
    cli_main()


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "cli_main",
    "main",
    "EXIT_SUCCESS",
    "EXIT_VALIDATION_ERROR",
    "EXIT_GENERATION_ERROR",
    "EXIT_WRITE_ERROR",
    "EXIT_INPUT_ERROR",
]

logger.debug("accessgen.cli loaded.")
