"""Configuration management for dvm.toml."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import tomli
import tomli_w

from dvm.constants import (
    CONFIG_FILENAME,
    DEFAULT_INDENT,
    DEFAULT_OUTPUT_DIR,
    DEFAULT_SHELL_DIR,
    DEFAULT_STORE_PATH,
)
from dvm.core.union import DecodeMode
from dvm.exceptions import ConfigNotFoundError, ConfigParseError, ConfigValidationError


@dataclass
class GenerateSettings:
    """The ``[generate]`` table.

    Example:
        [generate]
        output_dir = "~/.config/dvm"
        indent = 2
        decode_mode = "lenient"
    """

    output_dir: str = DEFAULT_OUTPUT_DIR
    indent: int = DEFAULT_INDENT
    decode_mode: DecodeMode = DecodeMode.LENIENT
    shell_dir: str = DEFAULT_SHELL_DIR

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "GenerateSettings":
        """Create settings from a TOML dict entry."""
        settings = cls()
        if "output_dir" in data:
            settings.output_dir = _require_str(data, "generate.output_dir")
        if "shell_dir" in data:
            settings.shell_dir = _require_str(data, "generate.shell_dir")
        if "indent" in data:
            indent = data["indent"]
            if not isinstance(indent, int) or isinstance(indent, bool) or not 1 <= indent <= 8:
                raise ConfigValidationError(
                    f"'generate.indent' must be an integer between 1 and 8, got {indent!r}"
                )
            settings.indent = indent
        if "decode_mode" in data:
            mode = data["decode_mode"]
            try:
                settings.decode_mode = DecodeMode(mode)
            except ValueError:
                raise ConfigValidationError(
                    f"'generate.decode_mode' must be 'lenient' or 'strict', got {mode!r}"
                )
        return settings

    def to_dict(self) -> dict[str, Any]:
        """Convert to a TOML-serializable dict."""
        return {
            "output_dir": self.output_dir,
            "indent": self.indent,
            "decode_mode": self.decode_mode.value,
            "shell_dir": self.shell_dir,
        }


def _require_str(data: dict[str, Any], dotted: str) -> str:
    value = data[dotted.rsplit(".", 1)[-1]]
    if not isinstance(value, str) or not value:
        raise ConfigValidationError(f"'{dotted}' must be a non-empty string")
    return value


@dataclass
class DvmConfig:
    """Configuration from dvm.toml."""

    path: Path | None = None
    store_path: str = DEFAULT_STORE_PATH
    generate: GenerateSettings = field(default_factory=GenerateSettings)

    @property
    def resolved_store_path(self) -> Path:
        return Path(self.store_path).expanduser()

    @property
    def resolved_output_dir(self) -> Path:
        return Path(self.generate.output_dir).expanduser()

    @classmethod
    def load(cls, path: Path) -> "DvmConfig":
        """Load configuration from dvm.toml.

        Args:
            path: Path to the dvm.toml file

        Returns:
            Parsed DvmConfig

        Raises:
            ConfigNotFoundError: If the file doesn't exist
            ConfigParseError: If the file cannot be parsed
            ConfigValidationError: If the configuration is invalid
        """
        if not path.exists():
            raise ConfigNotFoundError(f"Config file not found: {path}")

        try:
            with open(path, "rb") as f:
                data = tomli.load(f)
        except tomli.TOMLDecodeError as e:
            raise ConfigParseError(f"Failed to parse {path}: {e}")

        return cls._from_dict(path, data)

    @classmethod
    def _from_dict(cls, path: Path | None, data: dict[str, Any]) -> "DvmConfig":
        """Create a DvmConfig from a parsed TOML dict."""
        config = cls(path=path)

        store_data = data.get("store", {})
        if not isinstance(store_data, dict):
            raise ConfigValidationError(f"'store' must be a table, got {type(store_data).__name__}")
        if "path" in store_data:
            config.store_path = _require_str(store_data, "store.path")

        generate_data = data.get("generate", {})
        if not isinstance(generate_data, dict):
            raise ConfigValidationError(
                f"'generate' must be a table, got {type(generate_data).__name__}"
            )
        config.generate = GenerateSettings.from_dict(generate_data)
        return config

    def save(self, path: Path | None = None) -> None:
        """Save configuration to dvm.toml.

        Args:
            path: Target file (defaults to the path the config was loaded from)
        """
        target = path or self.path
        if target is None:
            raise ConfigValidationError("No path to save dvm.toml to")
        with open(target, "wb") as f:
            tomli_w.dump(self._to_dict(), f)
        self.path = target

    def _to_dict(self) -> dict[str, Any]:
        """Convert to a TOML-serializable dict."""
        return {
            "store": {"path": self.store_path},
            "generate": self.generate.to_dict(),
        }


def find_config(start_path: Path | None = None) -> Path | None:
    """Find dvm.toml by walking up the directory tree.

    Args:
        start_path: Starting directory (defaults to current working directory)

    Returns:
        Path to dvm.toml if found, None otherwise
    """
    if start_path is None:
        start_path = Path.cwd()

    current = start_path.resolve()

    while True:
        config_path = current / CONFIG_FILENAME
        if config_path.exists():
            return config_path

        parent = current.parent
        if parent == current:
            # Reached filesystem root
            return None
        current = parent


def load_config(start_path: Path | None = None) -> DvmConfig:
    """Load the nearest dvm.toml, or defaults when there is none.

    Raises:
        ConfigParseError: If a config file exists but cannot be parsed
        ConfigValidationError: If it contains invalid values
    """
    existing = find_config(start_path)
    if existing:
        return DvmConfig.load(existing)
    return DvmConfig()
