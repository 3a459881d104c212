"""
Configuration management for ExtentReports.
"""

import codecs
import os
from enum import Enum
from pathlib import Path
from typing import Optional, Dict, Any, Union, BinaryIO
from dataclasses import dataclass, fields

from extent_reports.core.errors import ConfigurationError

CONFIG_ENV_VAR = "EXTENT_REPORTS_CONFIG"
CONFIG_TABLE = "extent_reports"

ConfigSource = Union[str, Path, bytes, BinaryIO]

TEXT_FIELDS = (
    "document_title",
    "report_name",
    "report_headline",
    "date_time_format",
    "encoding",
    "css",
    "scripts",
)


class DisplayOrder(Enum):
    """Order in which top-level tests are handed to sinks."""
    OLDEST_FIRST = "oldest_first"
    NEWEST_FIRST = "newest_first"


class NetworkMode(Enum):
    """Packaging of report assets."""
    ONLINE = "online"    # single artifact, assets inlined
    OFFLINE = "offline"  # assets written beside the report


def _coerce_enum(enum_cls, value):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).lower())
    except ValueError:
        pass
    try:
        return enum_cls[str(value).upper()]
    except KeyError:
        choices = ", ".join(m.value for m in enum_cls)
        raise ConfigurationError(f"Invalid {enum_cls.__name__} {value!r}; expected one of: {choices}")


@dataclass
class ReportConfig:
    """Every option a report engine takes, with its default."""

    # Artifact of the default sink; None attaches nothing at construction
    path: Optional[Path] = None
    replace_existing: bool = True
    display_order: DisplayOrder = DisplayOrder.OLDEST_FIRST
    network_mode: NetworkMode = NetworkMode.ONLINE

    # Document customisation
    document_title: str = "ExtentReports"
    report_name: str = "Automation Report"
    report_headline: str = ""
    date_time_format: str = "%Y-%m-%d %H:%M:%S"
    encoding: str = "utf-8"
    css: str = ""
    scripts: str = ""

    def __post_init__(self):
        """Post-initialization processing."""
        if self.path is not None:
            if not isinstance(self.path, (str, os.PathLike)):
                raise ConfigurationError(f"path must be a string, got {self.path!r}")
            self.path = Path(self.path)
        self.display_order = _coerce_enum(DisplayOrder, self.display_order)
        self.network_mode = _coerce_enum(NetworkMode, self.network_mode)
        if not isinstance(self.replace_existing, bool):
            raise ConfigurationError(f"replace_existing must be a boolean, got {self.replace_existing!r}")
        for name in TEXT_FIELDS:
            value = getattr(self, name)
            if not isinstance(value, str):
                raise ConfigurationError(f"{name} must be a string, got {value!r}")
        try:
            codecs.lookup(self.encoding)
        except LookupError:
            raise ConfigurationError(f"Unknown encoding: {self.encoding!r}") from None

    @property
    def append(self) -> bool:
        return not self.replace_existing

    def apply_file(self, source: ConfigSource) -> "ReportConfig":
        """
        Override options from a TOML document.

        The document is read from ``[extent_reports]`` or
        ``[tool.extent_reports]``; unknown keys are ignored.

        Args:
            source: Path to a TOML file, raw bytes, or a binary stream

        Returns:
            This configuration, updated in place; left unchanged on error

        Raises:
            ConfigurationError: If the document cannot be read or holds invalid values
        """
        try:
            try:
                import tomllib  # Python 3.11+
            except ModuleNotFoundError:  # Python 3.8-3.10
                import tomli as tomllib

            if isinstance(source, (str, Path)):
                data = tomllib.loads(Path(source).read_text(encoding="utf-8"))
            elif isinstance(source, bytes):
                data = tomllib.loads(source.decode("utf-8"))
            else:
                data = tomllib.load(source)
        except Exception as e:
            raise ConfigurationError(f"Failed to read config: {source!r}: {e}") from e

        tool = data.get("tool", {})
        if not isinstance(tool, dict):
            raise ConfigurationError("[tool] must be a table")
        table = data.get(CONFIG_TABLE) or tool.get(CONFIG_TABLE, {})
        if not isinstance(table, dict):
            raise ConfigurationError(f"[{CONFIG_TABLE}] must be a table")

        known = {f.name for f in fields(self)}
        values = self.to_dict()
        values.update({key: value for key, value in table.items() if key in known and value is not None})
        validated = ReportConfig.from_dict(values)
        for f in fields(self):
            setattr(self, f.name, getattr(validated, f.name))
        return self

    @classmethod
    def from_file(cls, source: ConfigSource, **overrides) -> "ReportConfig":
        """Create a configuration from a TOML document, then apply keyword overrides."""
        config = cls().apply_file(source)
        for key, value in overrides.items():
            setattr(config, key, value)
        config.__post_init__()
        return config

    @staticmethod
    def default_file() -> Optional[Path]:
        """Config file named by the environment, if any."""
        env_path = os.environ.get(CONFIG_ENV_VAR)
        return Path(env_path).resolve() if env_path else None

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        return {
            "path": str(self.path) if self.path is not None else None,
            "replace_existing": self.replace_existing,
            "display_order": self.display_order.value,
            "network_mode": self.network_mode.value,
            "document_title": self.document_title,
            "report_name": self.report_name,
            "report_headline": self.report_headline,
            "date_time_format": self.date_time_format,
            "encoding": self.encoding,
            "css": self.css,
            "scripts": self.scripts,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ReportConfig":
        """Create configuration from dictionary."""
        data = dict(data)
        if isinstance(data.get("path"), str):
            data["path"] = Path(data["path"])
        return cls(**data)
