"""Configuration system for procview."""

from dataclasses import dataclass, field, fields, is_dataclass
from pathlib import Path

import tomlkit

from procview.models import SortDirection, SortKey


@dataclass
class SamplerConfig:
    """Background sampler configuration."""

    interval: float = 2.0  # Seconds between samples


@dataclass
class ViewConfig:
    """Initial view state and frame timing."""

    sort_key: str = "cpu"
    sort_direction: str = "descending"
    tree_view: bool = False
    # Follow the selected pid across refreshes instead of keeping the raw row index
    track_selection: bool = False
    refresh_interval: float = 0.25  # Seconds between frames

    @property
    def initial_sort_key(self) -> SortKey:
        return SortKey(self.sort_key)

    @property
    def initial_sort_direction(self) -> SortDirection:
        return SortDirection(self.sort_direction)


@dataclass
class LogConfig:
    """Log file configuration."""

    level: str = "INFO"
    max_bytes: int = 1024 * 1024  # Rotate after 1MB
    backup_count: int = 3


def _dataclass_to_table(obj: object) -> tomlkit.items.Table:
    """Convert a dataclass instance to a tomlkit Table."""
    table = tomlkit.table()
    for f in fields(obj):  # type: ignore[arg-type]
        value = getattr(obj, f.name)
        if is_dataclass(value) and not isinstance(value, type):
            table.add(f.name, _dataclass_to_table(value))
        else:
            table.add(f.name, value)
    return table


def _load_section(cls: type, data: dict) -> object:
    """Build a section dataclass, using its defaults for missing keys."""
    defaults = cls()
    values = {f.name: data.get(f.name, getattr(defaults, f.name)) for f in fields(cls)}
    return cls(**values)


@dataclass
class Config:
    """Main configuration container."""

    sampler: SamplerConfig = field(default_factory=SamplerConfig)
    view: ViewConfig = field(default_factory=ViewConfig)
    logging: LogConfig = field(default_factory=LogConfig)

    @property
    def config_dir(self) -> Path:
        """Configuration directory."""
        return Path.home() / ".config" / "procview"

    @property
    def config_path(self) -> Path:
        """Path to config file."""
        return self.config_dir / "config.toml"

    @property
    def state_dir(self) -> Path:
        """State directory for logs."""
        return Path.home() / ".local" / "state" / "procview"

    @property
    def log_path(self) -> Path:
        return self.state_dir / "procview.log"

    def validate(self) -> None:
        """Raise ValueError for values the dashboard cannot start with."""
        valid_keys = [k.value for k in SortKey]
        if self.view.sort_key not in valid_keys:
            raise ValueError(f"Unknown sort_key: {self.view.sort_key!r}. Valid keys: {valid_keys}")
        valid_directions = [d.value for d in SortDirection]
        if self.view.sort_direction not in valid_directions:
            raise ValueError(
                f"Unknown sort_direction: {self.view.sort_direction!r}. "
                f"Valid directions: {valid_directions}"
            )
        if self.sampler.interval <= 0:
            raise ValueError("sampler.interval must be positive")
        if self.view.refresh_interval <= 0:
            raise ValueError("view.refresh_interval must be positive")

    def save(self, path: Path | None = None) -> None:
        """Save config to TOML file."""
        path = path or self.config_path
        path.parent.mkdir(parents=True, exist_ok=True)

        doc = tomlkit.document()
        for name in ("sampler", "view", "logging"):
            doc.add(name, _dataclass_to_table(getattr(self, name)))
            doc.add(tomlkit.nl())

        path.write_text(tomlkit.dumps(doc))

    @classmethod
    def load(cls, path: Path | None = None) -> "Config":
        """Load config from TOML file, returning defaults for missing values."""
        defaults = cls()
        path = path or defaults.config_path
        if not path.exists():
            return defaults

        try:
            with open(path) as f:
                data = tomlkit.load(f).unwrap()
        except tomlkit.exceptions.TOMLKitError as e:
            raise ValueError(f"Failed to parse config file {path}: {e}") from e

        config = cls(
            sampler=_load_section(SamplerConfig, data.get("sampler", {})),
            view=_load_section(ViewConfig, data.get("view", {})),
            logging=_load_section(LogConfig, data.get("logging", {})),
        )
        try:
            config.validate()
        except ValueError as e:
            raise ValueError(f"Invalid config file {path}: {e}") from e
        return config
