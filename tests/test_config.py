"""Tests for config.py: .jacocov.yml parsing, validation, and exclusions."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Any

import yaml

from jacocov.config import (
    DEFAULT_EXCLUDES,
    CovConfig,
    JacocovConfig,
    _resolve_dict,
    _resolve_env_vars,
    build_excludes,
    load_config,
    validate_config,
)

if TYPE_CHECKING:
    import pytest


def _write_config(root: Path, data: dict[str, Any]) -> None:
    """Write .jacocov.yml with given data."""
    (root / ".jacocov.yml").write_text(yaml.dump(data), encoding="utf-8")


# ── _resolve_env_vars / _resolve_dict ─────────────────────────────────


class TestResolveEnvVars:
    def test_resolves_existing_var(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("MY_VAR", "hello")
        assert _resolve_env_vars("${MY_VAR}") == "hello"

    def test_missing_var_returns_empty(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("MISSING_VAR", raising=False)
        assert _resolve_env_vars("${MISSING_VAR}") == ""

    def test_no_vars_unchanged(self) -> None:
        assert _resolve_env_vars("plain text") == "plain text"

    def test_resolve_dict_nested(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("COV_DIR", "out")
        data = {"cov": {"coverage_dir": "${COV_DIR}/coverage", "excludes": ["${COV_DIR}/**", 3]}}

        assert _resolve_dict(data) == {
            "cov": {"coverage_dir": "out/coverage", "excludes": ["out/**", 3]}
        }


# ── load_config ───────────────────────────────────────────────────────


class TestLoadConfig:
    def test_defaults_without_file(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.delenv("TEST_TIMEOUT", raising=False)
        monkeypatch.delenv("TEST_REPORTER", raising=False)

        config = load_config(tmp_path)

        assert config.project_root == str(tmp_path.resolve())
        assert config.cov == CovConfig()
        assert config.raw == {}

    def test_reads_cov_section(self, tmp_path: Path) -> None:
        _write_config(
            tmp_path,
            {
                "cov": {
                    "coverage_dir": "reports/cov",
                    "excludes": ["lib/legacy/**"],
                    "test_files": "spec/**/*.js",
                    "test_timeout": 5000,
                    "reporter": "dot",
                    "require": ["should"],
                    "timeout": 300,
                }
            },
        )

        cov = load_config(tmp_path).cov

        assert cov.coverage_dir == "reports/cov"
        assert cov.excludes == ["lib/legacy/**"]
        assert cov.test_files == ["spec/**/*.js"]
        assert cov.test_timeout == 5000
        assert cov.reporter == "dot"
        assert cov.require == ["should"]
        assert cov.timeout == 300.0

    def test_env_fallbacks(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("TEST_TIMEOUT", "1234")
        monkeypatch.setenv("TEST_REPORTER", "tap")

        cov = load_config(tmp_path).cov

        assert cov.test_timeout == 1234
        assert cov.reporter == "tap"

    def test_file_overrides_env(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("TEST_REPORTER", "tap")
        _write_config(tmp_path, {"cov": {"reporter": "dot"}})

        assert load_config(tmp_path).cov.reporter == "dot"

    def test_non_mapping_file_ignored(self, tmp_path: Path) -> None:
        (tmp_path / ".jacocov.yml").write_text("- just\n- a list\n", encoding="utf-8")

        config = load_config(tmp_path)

        assert config.raw == {}
        assert config.cov.coverage_dir == "coverage"

    def test_non_mapping_cov_section_ignored(self, tmp_path: Path) -> None:
        _write_config(tmp_path, {"cov": "nope"})
        assert load_config(tmp_path).cov.tmp_dir == ".tmp"


# ── validate_config ───────────────────────────────────────────────────


class TestValidateConfig:
    def test_defaults_are_valid(self) -> None:
        assert validate_config(JacocovConfig(project_root=".")) == []

    def test_requires_lcov_format(self) -> None:
        config = JacocovConfig(project_root=".", cov=CovConfig(report_formats=["json"]))
        errors = validate_config(config)

        assert len(errors) == 1
        assert "lcov" in errors[0]

    def test_rejects_non_positive_numbers(self) -> None:
        config = JacocovConfig(project_root=".", cov=CovConfig(test_timeout=0, timeout=-1.0))
        errors = validate_config(config)

        assert any("test_timeout" in e for e in errors)
        assert any("cov.timeout" in e for e in errors)

    def test_rejects_empty_dirs(self) -> None:
        config = JacocovConfig(project_root=".", cov=CovConfig(coverage_dir="", tmp_dir=""))
        assert len(validate_config(config)) == 2


# ── build_excludes ────────────────────────────────────────────────────


class TestBuildExcludes:
    def test_defaults_only(self) -> None:
        assert build_excludes(DEFAULT_EXCLUDES) == ("examples/**", "mocks_*/**")

    def test_union_keeps_order(self) -> None:
        result = build_excludes(DEFAULT_EXCLUDES, ["lib/a/**"], "lib/b/**,lib/c/**")
        assert result == ("examples/**", "mocks_*/**", "lib/a/**", "lib/b/**", "lib/c/**")

    def test_removes_duplicates(self) -> None:
        result = build_excludes(DEFAULT_EXCLUDES, ["examples/**"], "mocks_*/**,lib/**,lib/**")
        assert result == ("examples/**", "mocks_*/**", "lib/**")

    def test_skips_blank_entries(self) -> None:
        assert build_excludes([], [], " , lib/** ,,") == ("lib/**",)

    def test_no_env_value(self) -> None:
        assert build_excludes([], ["a"], None) == ("a",)
