"""Configuration loader for the product export pipeline."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from .templating import DEFAULT_TEMPLATE

EXCEL_CELL_LIMIT = 32767
ENV_PREFIX = "DOMEGGOOK_EXPORT_"

_TRUE_VALUES = {"1", "true", "yes", "on", "y"}
_FALSE_VALUES = {"0", "false", "no", "off", "n", ""}


class ConfigError(ValueError):
    """Raised when a configuration value is missing or invalid."""


def _to_bool(key: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE_VALUES:
        return True
    if text in _FALSE_VALUES:
        return False
    raise ConfigError(f"{key}: expected a boolean, got {value!r}")


def _to_float(key: str, value: Any, *, minimum: Optional[float] = None) -> float:
    if isinstance(value, bool):
        raise ConfigError(f"{key}: expected a number, got {value!r}")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{key}: expected a number, got {value!r}") from None
    if minimum is not None and number < minimum:
        raise ConfigError(f"{key}: must be >= {minimum}, got {number}")
    return number


def _to_int(key: str, value: Any, *, minimum: int, maximum: Optional[int] = None) -> int:
    if isinstance(value, bool):
        raise ConfigError(f"{key}: expected an integer, got {value!r}")
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{key}: expected an integer, got {value!r}") from None
    if number < minimum or (maximum is not None and number > maximum):
        upper = f"..{maximum}" if maximum is not None else "+"
        raise ConfigError(f"{key}: must be in {minimum}{upper}, got {number}")
    return number


def _to_path(value: Any) -> Optional[Path]:
    if value is None or value == "":
        return None
    return Path(str(value)).expanduser()


@dataclass(frozen=True)
class PublishDefaults:
    """Fixed values for publish-only columns of the catalog workbook."""

    warranty_period: str = "1년"
    delivery_lead_time: str = "7일"
    return_shipping_cost: int = 5000
    bundle_shipping: str = "N"
    regional_surcharge: str = "N"
    tax_type: str = "과세"

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "PublishDefaults":
        data = dict(data or {})
        defaults = cls()
        return cls(
            warranty_period=str(data.get("warranty_period", defaults.warranty_period)),
            delivery_lead_time=str(data.get("delivery_lead_time", defaults.delivery_lead_time)),
            return_shipping_cost=_to_int(
                "publish_defaults.return_shipping_cost",
                data.get("return_shipping_cost", defaults.return_shipping_cost),
                minimum=0,
            ),
            bundle_shipping=str(data.get("bundle_shipping", defaults.bundle_shipping)),
            regional_surcharge=str(data.get("regional_surcharge", defaults.regional_surcharge)),
            tax_type=str(data.get("tax_type", defaults.tax_type)),
        )


@dataclass(frozen=True)
class ExportConfig:
    """Central configuration container for an export run."""

    profit_percent: float
    excel_path: Optional[Path] = None
    output_root: Optional[Path] = None
    headless: bool = False
    browser_executable: Optional[str] = None
    template_text: Optional[str] = None
    pacing_seconds: float = 1.0
    overflow_limit: int = EXCEL_CELL_LIMIT
    download_workers: int = 4
    download_timeout: float = 30.0
    run_dir_format: str = "크롤링결과_%Y-%m-%d"
    url_column: str = "url"
    state_db_path: Path = Path("database/domeggook_export.db")
    origin_reference_path: Optional[Path] = None
    publish_defaults: PublishDefaults = field(default_factory=PublishDefaults)

    DEFAULT_CONFIG_PATH = Path("config/domeggook_export.yaml")

    @property
    def template(self) -> str:
        """Template text to render, falling back to the built-in template."""
        return self.template_text if self.template_text else DEFAULT_TEMPLATE

    def resolve_output_root(self) -> Path:
        if self.output_root is not None:
            return self.output_root
        if self.excel_path is not None:
            return self.excel_path.parent
        return Path.cwd() / "output"

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], *, base_dir: Optional[Path] = None) -> "ExportConfig":
        """Build a configuration from a plain mapping.

        Args:
            data: Parsed configuration values
            base_dir: Directory that relative ``template_file`` paths resolve against

        Raises:
            ConfigError: If ``profit_percent`` is missing or any value is invalid
        """
        if data.get("profit_percent") is None:
            raise ConfigError("profit_percent: required, no default is assumed")

        template_text = data.get("template_text")
        template_file = _to_path(data.get("template_file"))
        if not template_text and template_file is not None:
            if not template_file.is_absolute() and base_dir is not None:
                template_file = base_dir / template_file
            try:
                template_text = template_file.read_text(encoding="utf-8")
            except OSError as exc:
                raise ConfigError(f"template_file: cannot read {template_file}: {exc}") from exc

        kwargs: Dict[str, Any] = {
            "profit_percent": _to_float("profit_percent", data["profit_percent"]),
            "excel_path": _to_path(data.get("excel_path")),
            "output_root": _to_path(data.get("output_root")),
            "headless": _to_bool("headless", data.get("headless", False)),
            "browser_executable": data.get("browser_executable") or None,
            "template_text": template_text or None,
            "pacing_seconds": _to_float("pacing_seconds", data.get("pacing_seconds", 1.0), minimum=0.0),
            "overflow_limit": _to_int(
                "overflow_limit",
                data.get("overflow_limit", EXCEL_CELL_LIMIT),
                minimum=1,
                maximum=EXCEL_CELL_LIMIT,
            ),
            "download_workers": _to_int("download_workers", data.get("download_workers", 4), minimum=1),
            "download_timeout": _to_float(
                "download_timeout", data.get("download_timeout", 30.0), minimum=0.1
            ),
            "run_dir_format": str(data.get("run_dir_format") or "크롤링결과_%Y-%m-%d"),
            "url_column": str(data.get("url_column") or "url"),
            "origin_reference_path": _to_path(data.get("origin_reference_path")),
            "publish_defaults": PublishDefaults.from_dict(data.get("publish_defaults")),
        }
        state_db_path = _to_path(data.get("state_db_path"))
        if state_db_path is not None:
            kwargs["state_db_path"] = state_db_path
        return cls(**kwargs)


def _read_yaml(path: Path) -> Dict[str, Any]:
    with open(path, "r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}
    if not isinstance(data, dict):
        raise ConfigError(f"{path}: top-level YAML value must be a mapping")
    return data


def _env_overrides(environ: Mapping[str, str]) -> Dict[str, Any]:
    keys = ("excel_path", "output_root", "headless", "profit_percent", "pacing_seconds")
    overrides: Dict[str, Any] = {}
    for key in keys:
        value = environ.get(ENV_PREFIX + key.upper())
        if value is not None:
            overrides[key] = value
    return overrides


def load_config(
    config_path: Optional[Path | str] = None,
    *,
    environ: Optional[Mapping[str, str]] = None,
    overrides: Optional[Mapping[str, Any]] = None,
) -> ExportConfig:
    """Load configuration from YAML, then environment, then explicit overrides.

    A missing file at the default location is not an error; a missing file
    that was named explicitly is.
    """
    explicit = config_path is not None
    path = Path(config_path) if config_path else ExportConfig.DEFAULT_CONFIG_PATH
    if not path.is_absolute():
        path = Path.cwd() / path

    data: Dict[str, Any] = {}
    if path.exists():
        data = _read_yaml(path)
    elif explicit:
        raise ConfigError(f"config: file not found: {path}")

    data.update(_env_overrides(os.environ if environ is None else environ))
    for key, value in (overrides or {}).items():
        if value is not None:
            data[key] = value

    return ExportConfig.from_dict(data, base_dir=path.parent)
