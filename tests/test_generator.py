"""
tests/test_generator.py
Tests for accessgen.generator: the pure ``generate_source`` core and the
``CodeGenerator`` pipeline (gating, validation, catalog, write, report).
"""

from __future__ import annotations

import ast
import pathlib
from typing import Any, Dict, List

import pytest
import yaml

from accessgen.config import CodegenConfig, GeneratorSettings, parse_config
from accessgen.errors import ConfigurationError, GenerationError, MetadataError
from accessgen.generator import CodeGenerator, GenerationReport, generate_source
from accessgen.templates import GENERATED_HEADER

from conftest import FakeCatalog

_FULL_PIPELINE: List[str] = [
    "Load Config",
    "Validate Config",
    "Connect Catalog",
    "Resolve Types",
    "Build Metadata",
    "Relationships",
    "Emit Module",
    "Write Output",
]


def _steps(report: GenerationReport) -> List[str]:
    return [s.step_name for s in report.step_metrics]


def _write_config(tmp_path: pathlib.Path, raw: Dict[str, Any]) -> pathlib.Path:
    path = tmp_path / "config.yaml"
    path.write_text(yaml.dump(raw), encoding="utf-8")
    return path


# ===========================================================================
# generate_source
# ===========================================================================


def test_generate_source_is_importable_python(
    shop_catalog: FakeCatalog, shop_config: CodegenConfig
) -> None:
    source = generate_source(shop_catalog, shop_config)
    assert source.startswith(GENERATED_HEADER)
    assert source.endswith("\n")
    ast.parse(source)


def test_generate_source_missing_table(shop_catalog: FakeCatalog) -> None:
    with pytest.raises(MetadataError, match="table 'users'"):
        generate_source(shop_catalog, parse_config({"tables": [{"name": "users"}]}))


# ===========================================================================
# CodeGenerator
# ===========================================================================


class TestCodeGenerator:

    def test_full_run_writes_module(
        self, shop_catalog: FakeCatalog, shop_config_path: pathlib.Path, tmp_path: pathlib.Path
    ) -> None:
        output = tmp_path / "out" / "db_access.py"
        settings = GeneratorSettings(config_file=shop_config_path, output_file=output)
        generator = CodeGenerator(settings, catalog=shop_catalog, environ={})
        report = generator.generate()

        assert report.success and not report.skipped
        assert _steps(report) == _FULL_PIPELINE
        assert all(s.success for s in report.step_metrics)
        assert report.total_tables == 5
        assert report.output_file == str(output)
        written = output.read_text(encoding="utf-8")
        assert written == generator.source
        assert report.total_bytes == len(written.encode("utf-8"))
        assert report.total_lines > 100
        assert "SUCCESS" in report.summary()

    def test_dry_run_writes_nothing(
        self, shop_catalog: FakeCatalog, shop_config_path: pathlib.Path, tmp_path: pathlib.Path
    ) -> None:
        output = tmp_path / "db_access.py"
        settings = GeneratorSettings(config_file=shop_config_path, output_file=output)
        generator = CodeGenerator(settings, catalog=shop_catalog, environ={}, dry_run=True)
        report = generator.generate()
        assert report.success
        assert _steps(report) == _FULL_PIPELINE[:-1]
        assert generator.source.startswith(GENERATED_HEADER)
        assert not output.exists()

    def test_validate_only_skips_the_catalog(
        self, shop_catalog: FakeCatalog, shop_config_path: pathlib.Path
    ) -> None:
        settings = GeneratorSettings(config_file=shop_config_path)
        report = CodeGenerator(
            settings, catalog=shop_catalog, environ={}, validate_only=True
        ).generate()
        assert report.success
        assert _steps(report) == ["Load Config", "Validate Config"]
        assert shop_catalog.calls == []

    def test_gated_run_is_skipped(
        self, shop_catalog: FakeCatalog, shop_config_path: pathlib.Path, tmp_path: pathlib.Path
    ) -> None:
        output = tmp_path / "db_access.py"
        settings = GeneratorSettings(
            config_file=shop_config_path,
            output_file=output,
            disable_vars=["SKIP_CODEGEN"],
        )
        report = CodeGenerator(settings, catalog=shop_catalog, environ={"SKIP_CODEGEN": "1"}).generate()
        assert report.skipped and report.success
        assert report.step_metrics == []
        assert "SKIPPED" in report.summary()
        assert not output.exists()

    def test_warnings_are_reported(self, tmp_path: pathlib.Path) -> None:
        settings = GeneratorSettings(config_file=_write_config(tmp_path, {"tables": []}))
        report = CodeGenerator(settings, environ={}, validate_only=True).generate()
        assert report.success
        assert len(report.validation_warnings) == 1
        assert "NO_TABLES" in report.validation_warnings[0]

    def test_validation_errors_stop_the_run(
        self, shop_catalog: FakeCatalog, tmp_path: pathlib.Path
    ) -> None:
        path = _write_config(tmp_path, {"tables": [{"name": "customers"}, {"name": "customers"}]})
        generator = CodeGenerator(GeneratorSettings(config_file=path), catalog=shop_catalog, environ={})
        with pytest.raises(ConfigurationError, match="DUPLICATE_TABLE_NAME"):
            generator.generate()
        report = generator.report
        assert report is not None and not report.success
        assert _steps(report) == ["Load Config", "Validate Config"]
        assert not report.step_metrics[-1].success
        assert "DUPLICATE_TABLE_NAME" in report.error
        assert shop_catalog.calls == []

    def test_catalog_failure_names_the_step(
        self, shop_catalog: FakeCatalog, tmp_path: pathlib.Path
    ) -> None:
        path = _write_config(tmp_path, {"tables": [{"name": "customers"}, {"name": "users"}]})
        generator = CodeGenerator(
            GeneratorSettings(config_file=path, output_file=tmp_path / "out.py"),
            catalog=shop_catalog,
            environ={},
        )
        with pytest.raises(MetadataError):
            generator.generate()
        assert generator.report is not None
        assert generator.report.step_metrics[-1].step_name == "Build Metadata"
        assert "FAILED" in generator.report.summary()
        assert not (tmp_path / "out.py").exists()

    def test_unreachable_database(self, shop_config_path: pathlib.Path) -> None:
        settings = GeneratorSettings(
            config_file=shop_config_path,
            connection_strings=["$ACCESSGEN_TEST_UNSET_URL"],
        )
        generator = CodeGenerator(settings, environ={}, dry_run=True)
        with pytest.raises(MetadataError, match="no connection string"):
            generator.generate()
        assert generator.report is not None
        assert generator.report.step_metrics[-1].step_name == "Connect Catalog"

    def test_write_failure(
        self, shop_catalog: FakeCatalog, shop_config_path: pathlib.Path, tmp_path: pathlib.Path
    ) -> None:
        blocker = tmp_path / "not_a_dir"
        blocker.write_text("", encoding="utf-8")
        settings = GeneratorSettings(config_file=shop_config_path, output_file=blocker / "out.py")
        generator = CodeGenerator(settings, catalog=shop_catalog, environ={})
        with pytest.raises(GenerationError, match="could not write"):
            generator.generate()
        assert generator.report is not None
        assert _steps(generator.report) == _FULL_PIPELINE
        assert not generator.report.step_metrics[-1].success

    def test_output_required_outside_dry_run(
        self, shop_catalog: FakeCatalog, shop_config_path: pathlib.Path
    ) -> None:
        generator = CodeGenerator(
            GeneratorSettings(config_file=shop_config_path), catalog=shop_catalog, environ={}
        )
        with pytest.raises(ConfigurationError, match="no output file"):
            generator.generate()
