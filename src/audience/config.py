from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

WORKSPACES_DIR = Path("workspaces")
CURRENT_WORKSPACE_FILE = WORKSPACES_DIR / ".current"
WORKSPACE_FILENAME = "workspace.yaml"


@dataclass(frozen=True)
class StoreConfig:
    sqlite_path: Path


@dataclass(frozen=True)
class LoggingConfig:
    level: str = "INFO"
    file: Path | None = None


@dataclass(frozen=True)
class ContactsConfig:
    default_country: str | None = None


@dataclass(frozen=True)
class WorkspaceConfig:
    name: str
    store: StoreConfig
    logging: LoggingConfig
    contacts: ContactsConfig
    path: Path


class WorkspaceError(RuntimeError):
    pass


def ensure_workspaces_dir() -> None:
    WORKSPACES_DIR.mkdir(parents=True, exist_ok=True)


def set_current_workspace(name: str) -> None:
    ensure_workspaces_dir()
    CURRENT_WORKSPACE_FILE.write_text(f"{name}\n", encoding="utf-8")


def get_current_workspace_name() -> str:
    if not CURRENT_WORKSPACE_FILE.exists():
        raise WorkspaceError("No active workspace. Run `audience workspace use <name>`.")
    return CURRENT_WORKSPACE_FILE.read_text(encoding="utf-8").strip()


def workspace_path(name: str) -> Path:
    return WORKSPACES_DIR / name


def workspace_config_path(name: str) -> Path:
    return workspace_path(name) / WORKSPACE_FILENAME


def load_workspace(name: str | None = None) -> WorkspaceConfig:
    if name is None:
        name = get_current_workspace_name()
    return load_workspace_file(workspace_config_path(name), name)


def load_workspace_file(config_path: Path, name: str | None = None) -> WorkspaceConfig:
    if not config_path.exists():
        raise WorkspaceError(f"Workspace config not found: {config_path}")
    try:
        data = yaml.safe_load(config_path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise WorkspaceError(f"Invalid YAML in {config_path}: {exc}") from exc
    if not isinstance(data, dict):
        raise WorkspaceError(f"Workspace config must be a mapping: {config_path}")
    return WorkspaceConfig(
        name=name or data.get("workspace") or config_path.parent.name,
        store=_parse_store(data.get("store"), config_path),
        logging=_parse_logging(data.get("logging"), config_path),
        contacts=_parse_contacts(data.get("contacts")),
        path=config_path.parent,
    )


def write_workspace_config(name: str, default_country: str | None = None) -> Path:
    ensure_workspaces_dir()
    ws_dir = workspace_path(name)
    ws_dir.mkdir(parents=True, exist_ok=True)
    config = {
        "workspace": name,
        "store": {"sqlite_path": "./local.sqlite"},
        "logging": {"level": "INFO", "file": None},
        "contacts": {"default_country": default_country.upper() if default_country else None},
    }
    config_path = workspace_config_path(name)
    config_path.write_text(yaml.safe_dump(config, sort_keys=False), encoding="utf-8")
    return config_path


def _parse_store(store_data: Any, config_path: Path) -> StoreConfig:
    if not isinstance(store_data, dict):
        raise WorkspaceError("Invalid workspace store configuration.")
    sqlite_path_raw = store_data.get("sqlite_path")
    if not sqlite_path_raw:
        raise WorkspaceError("Workspace store.sqlite_path is required.")
    sqlite_path = _resolve_path(sqlite_path_raw, config_path)
    if sqlite_path is None:
        raise WorkspaceError("Workspace store.sqlite_path must be a string.")
    return StoreConfig(sqlite_path=sqlite_path)


def _parse_logging(logging_data: Any, config_path: Path) -> LoggingConfig:
    if logging_data is None:
        return LoggingConfig()
    if not isinstance(logging_data, dict):
        raise WorkspaceError("Workspace logging must be a mapping.")
    level = logging_data.get("level") or "INFO"
    if not isinstance(level, (str, int)):
        raise WorkspaceError("Workspace logging.level must be a level name or number.")
    file_raw = logging_data.get("file")
    log_file = _resolve_path(file_raw, config_path) if file_raw else None
    return LoggingConfig(level=str(level), file=log_file)


def _parse_contacts(contacts_data: Any) -> ContactsConfig:
    if contacts_data is None:
        return ContactsConfig()
    if not isinstance(contacts_data, dict):
        raise WorkspaceError("Workspace contacts must be a mapping.")
    default_country = contacts_data.get("default_country")
    if default_country is not None and (
        not isinstance(default_country, str) or len(default_country) != 2
    ):
        raise WorkspaceError("Workspace contacts.default_country must be a 2-letter ISO code.")
    return ContactsConfig(default_country=default_country.upper() if default_country else None)


def _resolve_path(raw: Any, config_path: Path) -> Path | None:
    if not isinstance(raw, str):
        return None
    raw_path = Path(raw)
    if raw_path.is_absolute():
        return raw_path
    # Relative to the workspace directory, unless already rooted at "workspaces/".
    workspace_dir = config_path.parent
    if raw_path.parts and raw_path.parts[0] == WORKSPACES_DIR.name:
        return (workspace_dir.parent.parent / raw_path).resolve()
    return (workspace_dir / raw_path).resolve()
