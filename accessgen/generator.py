# File: accessgen/generator.py
"""
accessgen - Generation Pipeline (Orchestrator)
===============================================

Connects every phase of a run:

    Gate → Config → Validation → Catalog → Metadata → Relationships → Emit → Write

``generate_source`` is the pure core (catalog + config in, module text out)
and is what tests drive with an in-memory catalog.  ``CodeGenerator`` wraps
it with the process-level concerns: the enable/disable variable gate, loading
the config file, connecting to the first reachable database, timing every
step and writing the output atomically.

Error handling strategy:
    - Every failure is fatal.  The failing step is recorded on the report and
      the ``GenerationError`` propagates to the caller unchanged.
    - Validation errors are raised as one ``ConfigurationError`` carrying the
      formatted validation report; warnings are logged and kept on the report.
    - Nothing is written unless every earlier step succeeded.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Mapping, Optional, TypeVar

from accessgen.catalog import CatalogIntrospector, connect_catalog
from accessgen.config import (
    CodegenConfig,
    GeneratorSettings,
    generation_enabled,
    load_config_file,
)
from accessgen.errors import ConfigurationError, GenerationError
from accessgen.metadata import build_registry, resolve_type_table
from accessgen.models import TableGenInfo, TableMeta
from accessgen.relationships import derive_generation_info
from accessgen.templates import TemplateGenerator
from accessgen.types import TypeTable
from accessgen.utils import Timer, count_lines, write_file
from accessgen.validators import ValidationResult, validate_full

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("accessgen.generator")

_T = TypeVar("_T")


# ---------------------------------------------------------------------------
# Generation report
# ---------------------------------------------------------------------------


@dataclass(frozen=False, slots=True)
class GenerationStepMetric:
    """Timing and outcome for a single pipeline step."""

    step_name: str = ""
    success: bool = True
    elapsed_seconds: float = 0.0
    detail: str = ""


@dataclass(frozen=False, slots=True)
class GenerationReport:
    """
    Report produced by ``CodeGenerator.generate()``.

    ``skipped`` is set when the variable gate turned generation off; such a
    run is still successful.
    """

    success: bool = False
    skipped: bool = False
    config_file: str = ""
    output_file: str = ""

    # Metrics
    total_tables: int = 0
    total_lines: int = 0
    total_bytes: int = 0
    total_elapsed_seconds: float = 0.0

    step_metrics: List[GenerationStepMetric] = field(default_factory=list)
    validation_warnings: List[str] = field(default_factory=list)
    error: str = ""

    def record(self, name: str, success: bool, elapsed: float, detail: str = "") -> None:
        self.step_metrics.append(GenerationStepMetric(
            step_name=name,
            success=success,
            elapsed_seconds=elapsed,
            detail=detail,
        ))

    def summary(self) -> str:
        """Return a human-readable summary string."""
        if self.skipped:
            status: str = "SKIPPED"
        else:
            status = "SUCCESS" if self.success else "FAILED"
        lines: List[str] = [
            "=" * 60,
            "  accessgen - Generation Report",
            "=" * 60,
            f"  Status:           {status}",
            f"  Config:           {self.config_file}",
            f"  Output:           {self.output_file or '(not written)'}",
            f"  Tables:           {self.total_tables}",
            f"  Lines:            {self.total_lines:,}",
            f"  Bytes:            {self.total_bytes:,}",
            f"  Total time:       {self.total_elapsed_seconds:.3f}s",
            "-" * 60,
        ]

        if self.step_metrics:
            lines.append("  Pipeline Steps:")
            for step in self.step_metrics:
                icon: str = "+" if step.success else "x"
                lines.append(
                    f"    {icon} {step.step_name:<22s} "
                    f"{step.elapsed_seconds:>7.3f}s  "
                    f"{step.detail}"
                )

        if self.validation_warnings:
            lines.append("-" * 60)
            lines.append(f"  Validation Warnings ({len(self.validation_warnings)}):")
            for warn in self.validation_warnings:
                lines.append(f"    ! {warn}")

        if self.error:
            lines.append("-" * 60)
            lines.append(f"  Error: {self.error}")

        lines.append("=" * 60)
        return "\n".join(lines)


# ---------------------------------------------------------------------------
# Pure core
# ---------------------------------------------------------------------------


def build_generation_info(
    catalog: CatalogIntrospector,
    config: CodegenConfig,
) -> Dict[str, TableGenInfo]:
    """Metadata and relationship phases, without emitting any text."""
    type_table: TypeTable = resolve_type_table(catalog, config)
    registry: Dict[str, TableMeta] = build_registry(catalog, config, type_table)
    return derive_generation_info(registry, config)


def generate_source(catalog: CatalogIntrospector, config: CodegenConfig) -> str:
    """
    Produce the generated module text for *config* against *catalog*.

    Raises:
        MetadataError: the catalog is missing a table or describes something
            unsupported.
        ConfigurationError: the config cannot be satisfied by the catalog.
    """
    infos: Dict[str, TableGenInfo] = build_generation_info(catalog, config)
    return TemplateGenerator(infos).generate_module()


# ---------------------------------------------------------------------------
# CodeGenerator - process-level orchestrator
# ---------------------------------------------------------------------------


class CodeGenerator:
    """
    Runs one generation from ``GeneratorSettings``.

    Usage::

        generator = CodeGenerator(settings)
        report = generator.generate()
        print(report.summary())

    A catalog can be injected for tests; otherwise the settings' connection
    strings are tried in order.
    """

    def __init__(
        self,
        settings: GeneratorSettings,
        *,
        catalog: Optional[CatalogIntrospector] = None,
        environ: Optional[Mapping[str, str]] = None,
        dry_run: bool = False,
        validate_only: bool = False,
    ) -> None:
        self._settings: GeneratorSettings = settings
        self._catalog: Optional[CatalogIntrospector] = catalog
        self._environ: Optional[Mapping[str, str]] = environ
        self._dry_run: bool = dry_run
        self._validate_only: bool = validate_only
        self.source: str = ""
        self.report: Optional[GenerationReport] = None

        logger.debug(
            "CodeGenerator initialised: config=%s, output=%s, dry_run=%s, validate_only=%s.",
            settings.config_file,
            settings.output_file,
            dry_run,
            validate_only,
        )

    # -----------------------------------------------------------------
    # Step runner
    # -----------------------------------------------------------------

    @staticmethod
    def _step(
        report: GenerationReport,
        name: str,
        action: Callable[[], _T],
        describe: Callable[[_T], str],
    ) -> _T:
        timer: Timer = Timer(name)
        try:
            with timer:
                value: _T = action()
        except GenerationError as exc:
            report.record(name, False, timer.elapsed, str(exc))
            report.error = str(exc)
            logger.error("%s failed: %s", name, exc)
            raise
        report.record(name, True, timer.elapsed, describe(value))
        return value

    # -----------------------------------------------------------------
    # Pipeline
    # -----------------------------------------------------------------

    def generate(self) -> GenerationReport:
        """
        Execute the pipeline.

        Raises:
            GenerationError: any step failed; the report is not returned.
        """
        settings: GeneratorSettings = self._settings
        report: GenerationReport = GenerationReport(config_file=str(settings.config_file))
        self.report = report
        start: float = time.perf_counter()

        if not generation_enabled(settings, self._environ):
            report.skipped = True
            report.success = True
            report.total_elapsed_seconds = time.perf_counter() - start
            return report

        config: CodegenConfig = self._step(
            report,
            "Load Config",
            lambda: load_config_file(settings.config_file),
            lambda c: f"{len(c.tables)} table(s)",
        )
        report.total_tables = len(config.tables)

        self._step(report, "Validate Config", lambda: self._validate(config, report), lambda r: r.summary())

        if self._validate_only:
            report.success = True
            report.total_elapsed_seconds = time.perf_counter() - start
            return report

        catalog: CatalogIntrospector = self._step(
            report,
            "Connect Catalog",
            self._open_catalog,
            lambda c: type(c).__name__,
        )
        type_table: TypeTable = self._step(
            report,
            "Resolve Types",
            lambda: resolve_type_table(catalog, config),
            lambda tt: f"{len(tt)} type(s)",
        )
        registry: Dict[str, TableMeta] = self._step(
            report,
            "Build Metadata",
            lambda: build_registry(catalog, config, type_table),
            lambda r: f"{len(r)} table(s)",
        )
        infos: Dict[str, TableGenInfo] = self._step(
            report,
            "Relationships",
            lambda: derive_generation_info(registry, config),
            lambda i: f"{sum(len(x.children) for x in i.values())} relationship(s)",
        )
        source: str = self._step(
            report,
            "Emit Module",
            lambda: TemplateGenerator(infos).generate_module(),
            lambda s: f"~{count_lines(s):,} lines",
        )
        self.source = source
        report.total_lines = count_lines(source)
        report.total_bytes = len(source.encode("utf-8"))

        if not self._dry_run:
            self._write(source, report)

        report.success = True
        report.total_elapsed_seconds = time.perf_counter() - start
        logger.info("Generation finished in %.3fs.", report.total_elapsed_seconds)
        return report

    # -----------------------------------------------------------------
    # Individual steps
    # -----------------------------------------------------------------

    def _validate(self, config: CodegenConfig, report: GenerationReport) -> ValidationResult:
        result: ValidationResult = validate_full(config)
        for warn in result.warnings:
            logger.warning("  %s", warn)
            report.validation_warnings.append(str(warn))
        if result.has_errors:
            raise ConfigurationError("invalid configuration\n" + result.format_report())
        return result

    def _open_catalog(self) -> CatalogIntrospector:
        if self._catalog is not None:
            return self._catalog
        return connect_catalog(self._settings.connection_strings, self._settings.schema_name)

    def _write(self, source: str, report: GenerationReport) -> None:
        output: Optional[Path] = self._settings.output_file
        if output is None:
            raise ConfigurationError("no output file given")
        timer: Timer = Timer("write")
        try:
            with timer:
                written: int = write_file(output, source)
        except OSError as exc:
            report.record("Write Output", False, timer.elapsed, str(exc))
            report.error = str(exc)
            raise GenerationError(f"could not write {output}: {exc}") from exc
        report.output_file = str(output)
        report.record("Write Output", True, timer.elapsed, f"{written:,} bytes to {output.name}")
        logger.info("Wrote %s (%d bytes).", output, written)


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "CodeGenerator",
    "GenerationReport",
    "GenerationStepMetric",
    "build_generation_info",
    "generate_source",
]

logger.debug("accessgen.generator loaded.")
