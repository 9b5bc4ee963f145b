"""Configuration parsing from ``.jacocov.yml`` and the environment."""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

import yaml

if TYPE_CHECKING:
    from collections.abc import Iterable

logger = logging.getLogger(__name__)

CONFIG_FILENAME = ".jacocov.yml"

_ENV_VAR_RE = re.compile(r"\$\{(\w+)\}")

# Environment variables read by the cov command
ENV_EXCLUDES = "COV_EXCLUDES"
ENV_TESTS = "TESTS"
ENV_TEST_TIMEOUT = "TEST_TIMEOUT"
ENV_TEST_REPORTER = "TEST_REPORTER"

DEFAULT_EXCLUDES = ("examples/**", "mocks_*/**")
"""Globs istanbul always ignores."""

_REQUIRED_REPORT_FORMAT = "lcov"


def _resolve_env_vars(value: str) -> str:
    """Replace ``${VAR_NAME}`` placeholders with environment variable values."""

    def _replace(match: re.Match[str]) -> str:
        var = match.group(1)
        resolved = os.environ.get(var)
        if resolved is None:
            logger.warning("Environment variable %s is not set (referenced in config)", var)
            return ""
        return resolved

    return _ENV_VAR_RE.sub(_replace, value)


def _resolve_dict(data: dict[str, Any]) -> dict[str, Any]:
    """Recursively resolve environment variables in a dictionary."""
    result: dict[str, Any] = {}
    for key, value in data.items():
        if isinstance(value, str):
            result[key] = _resolve_env_vars(value)
        elif isinstance(value, dict):
            result[key] = _resolve_dict(value)
        elif isinstance(value, list):
            result[key] = [
                _resolve_env_vars(item) if isinstance(item, str) else item for item in value
            ]
        else:
            result[key] = value
    return result


def _str_list(value: Any) -> list[str]:
    if isinstance(value, str):
        return [value]
    if isinstance(value, list):
        return [str(item) for item in value]
    return []


@dataclass
class CovConfig:
    """Settings for the ``cov`` command."""

    coverage_dir: str = "coverage"
    """Coverage output directory, relative to the project root."""

    tmp_dir: str = ".tmp"
    """Scratch directory exposed to tests as ``TMPDIR``; removed after the run."""

    node: str = "node"
    """Node.js executable."""

    istanbul_bin: str = "node_modules/istanbul/lib/cli.js"
    """Istanbul CLI script, relative to the project root."""

    mocha_bin: str = "node_modules/mocha/bin/_mocha"
    """Mocha runner script, relative to the project root."""

    excludes: list[str] = field(default_factory=list)
    """Extra coverage exclusion globs, added to the built-in defaults."""

    test_files: list[str] = field(default_factory=lambda: ["test/**/*.test.js"])
    """Test file globs passed to mocha."""

    test_timeout: int = 60000
    """Per-test mocha timeout in milliseconds."""

    reporter: str = "spec"
    """Mocha reporter name."""

    require: list[str] = field(default_factory=list)
    """Modules mocha preloads via ``--require``."""

    report_formats: list[str] = field(default_factory=lambda: ["text-summary", "json", "lcov"])
    """Istanbul report formats; must include ``lcov`` for the HTML summary."""

    timeout: float | None = None
    """Seconds to wait for each subprocess (None waits indefinitely)."""


@dataclass
class JacocovConfig:
    """Complete configuration from ``.jacocov.yml``."""

    project_root: str
    """Project root directory."""

    cov: CovConfig = field(default_factory=CovConfig)
    """Coverage command configuration."""

    raw: dict[str, Any] = field(default_factory=dict)
    """Raw parsed YAML for extension/debugging."""


def _parse_cov_config(raw: dict[str, Any]) -> CovConfig:
    """Parse the ``cov`` section, falling back to environment variables."""
    cov_raw = raw.get("cov", {})
    if not isinstance(cov_raw, dict):
        cov_raw = {}

    default = CovConfig()
    timeout_raw = cov_raw.get("timeout")

    return CovConfig(
        coverage_dir=str(cov_raw.get("coverage_dir", default.coverage_dir)),
        tmp_dir=str(cov_raw.get("tmp_dir", default.tmp_dir)),
        node=str(cov_raw.get("node", default.node)),
        istanbul_bin=str(cov_raw.get("istanbul_bin", default.istanbul_bin)),
        mocha_bin=str(cov_raw.get("mocha_bin", default.mocha_bin)),
        excludes=_str_list(cov_raw.get("excludes", [])),
        test_files=_str_list(cov_raw.get("test_files", default.test_files)),
        test_timeout=int(
            cov_raw.get("test_timeout", os.environ.get(ENV_TEST_TIMEOUT, default.test_timeout))
        ),
        reporter=str(cov_raw.get("reporter", os.environ.get(ENV_TEST_REPORTER, default.reporter))),
        require=_str_list(cov_raw.get("require", [])),
        report_formats=_str_list(cov_raw.get("report_formats", default.report_formats)),
        timeout=float(timeout_raw) if timeout_raw is not None else None,
    )


def load_config(root: str | Path) -> JacocovConfig:
    """Load and parse ``.jacocov.yml`` from *root*.

    Falls back to defaults and environment variables when the file is
    missing or incomplete.
    """
    root_path = Path(root).resolve()
    config_file = root_path / CONFIG_FILENAME

    raw: dict[str, Any] = {}
    if config_file.is_file():
        parsed = yaml.safe_load(config_file.read_text(encoding="utf-8"))
        if isinstance(parsed, dict):
            raw = _resolve_dict(parsed)
        else:
            logger.warning("Ignoring %s: top level is not a mapping", config_file)

    return JacocovConfig(project_root=str(root_path), cov=_parse_cov_config(raw), raw=raw)


def validate_config(config: JacocovConfig) -> list[str]:
    """Validate configuration values.

    Returns:
        List of error messages (empty if valid)
    """
    errors: list[str] = []
    cov = config.cov

    if not cov.coverage_dir:
        errors.append("cov.coverage_dir must not be empty")
    if not cov.tmp_dir:
        errors.append("cov.tmp_dir must not be empty")
    if cov.test_timeout <= 0:
        errors.append(f"cov.test_timeout must be positive (got: {cov.test_timeout})")
    if cov.timeout is not None and cov.timeout <= 0:
        errors.append(f"cov.timeout must be positive (got: {cov.timeout})")
    if _REQUIRED_REPORT_FORMAT not in cov.report_formats:
        errors.append(
            f"cov.report_formats must include '{_REQUIRED_REPORT_FORMAT}' "
            "(the JaCoCo summary is read from the lcov HTML report)"
        )

    return errors


def build_excludes(
    defaults: Iterable[str],
    flags: Iterable[str] = (),
    env_value: str | None = None,
) -> tuple[str, ...]:
    """Merge exclusion globs into an ordered, de-duplicated tuple.

    Args:
        defaults: Built-in and configured globs.
        flags: Globs given with ``-x`` on the command line.
        env_value: Comma-separated globs, typically ``$COV_EXCLUDES``.
    """
    env_globs = env_value.split(",") if env_value else []
    merged = (glob.strip() for glob in (*defaults, *flags, *env_globs))
    return tuple(dict.fromkeys(glob for glob in merged if glob))
