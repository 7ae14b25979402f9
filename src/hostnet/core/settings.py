from __future__ import annotations

from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any

from hostnet.core.errors import ConfigError
from hostnet.utils.yaml import load_yaml

DEFAULT_SETTINGS_PATH = Path("/etc/hostnet/settings.yml")


@dataclass(frozen=True, slots=True)
class Settings:
    backup_dir: Path = Path("/var/lib/hostnet/backups")
    retention: int = 5
    connections_dir: Path = Path("/etc/NetworkManager/system-connections")
    agent_properties: Path = Path("/etc/cloudstack/agent/agent.properties")
    agent_service: str = "cloudstack-agent"
    log_file: Path = Path("/var/log/network_deploy.log")
    probe_attempts: int = 3
    probe_timeout: float = 2.0
    settle_delay: float = 20.0
    grace_delay: float = 5.0
    command_timeout: float = 60.0

    def with_overrides(self, **overrides: Any) -> Settings:
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})


_PATH_FIELDS = {"backup_dir", "connections_dir", "agent_properties", "log_file"}


def _coerce(name: str, value: Any, default: Any) -> Any:
    if name in _PATH_FIELDS:
        return Path(str(value))
    try:
        return type(default)(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid value for {name}: {value!r}") from exc


def load_settings(path: Path | None = None) -> Settings:
    if path is None:
        if not DEFAULT_SETTINGS_PATH.exists():
            return Settings()
        path = DEFAULT_SETTINGS_PATH
    if not path.exists():
        raise ConfigError(f"Settings file not found: {path}")

    data = load_yaml(path)
    defaults = Settings()
    known = {f.name for f in fields(Settings)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ConfigError(f"Unknown settings keys in {path}: {', '.join(unknown)}")

    values = {name: _coerce(name, value, getattr(defaults, name)) for name, value in data.items()}
    settings = replace(defaults, **values)
    if settings.retention < 1:
        raise ConfigError("retention must be at least 1")
    if settings.probe_attempts < 1 or settings.probe_timeout <= 0:
        raise ConfigError("probe_attempts must be >= 1 and probe_timeout > 0")
    return settings
