"""
Policy Infrastructure Repositories
===================================

Concrete configuration stores for business hours and SLA records.

- InMemoryConfigStore: dict-backed, for development and tests
- YAMLConfigStore: one YAML file, hot-reloaded with watchdog

Saving merges the patch into the existing record (or the defaults) and
replaces the whole record.
"""

import asyncio
import copy
import os
import tempfile
import threading
from pathlib import Path
from typing import Any, Dict, Optional, Type, TypeVar

import yaml
from pydantic import BaseModel, ValidationError
from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from src.business_hours.domain import ScheduleConfig
from src.core import RepositoryException, ValidationException
from src.policy.application.services import IScheduleConfigStore, ISLAConfigStore
from src.shared.infrastructure.logging import get_logger
from src.sla.domain import SLAConfig

logger = get_logger(__name__)

BUSINESS_HOURS_SECTION = "business_hours"
SLA_SECTION = "sla"

ConfigT = TypeVar("ConfigT", bound=BaseModel)


def _stored_key(model: Type[BaseModel], key: str) -> str:
    # Records are stored by alias; a patch may use either name
    field = model.model_fields.get(key)
    return field.alias if field is not None and field.alias else key


def merge_record(
    model: Type[ConfigT],
    existing: Optional[Dict[str, Any]],
    patch: Dict[str, Any]
) -> ConfigT:
    """
    Build the replacement record from the stored one and a patch.

    Raises:
        ValidationException: the merged record is invalid
    """
    base = dict(existing) if existing else model().model_dump(mode="json", by_alias=True)
    base.update({_stored_key(model, k): v for k, v in patch.items() if v is not None})
    try:
        return model.model_validate(base)
    except ValidationError as e:
        raise ValidationException(
            f"Invalid {model.__name__}",
            {"errors": e.errors(include_url=False, include_context=False, include_input=False)}
        ) from e


def parse_record(model: Type[ConfigT], record: Optional[Dict[str, Any]]) -> Optional[ConfigT]:
    """
    Validate a stored record.

    Raises:
        RepositoryException: the stored record is invalid
    """
    if record is None:
        return None
    try:
        return model.model_validate(record)
    except ValidationError as e:
        raise RepositoryException(
            f"Stored {model.__name__} is invalid",
            {"errors": e.errors(include_url=False, include_context=False, include_input=False)}
        ) from e


def _record_of(config: BaseModel) -> Dict[str, Any]:
    return config.model_dump(mode="json", by_alias=True)


class InMemoryConfigStore(IScheduleConfigStore, ISLAConfigStore):
    """Configuration records kept in a dict keyed by owner."""

    def __init__(self, records: Optional[Dict[str, Dict[str, Any]]] = None):
        self._records: Dict[str, Dict[str, Any]] = copy.deepcopy(records or {})

    async def load_schedule_config(self, owner_id: str) -> Optional[ScheduleConfig]:
        return parse_record(ScheduleConfig, self._records.get(owner_id, {}).get(BUSINESS_HOURS_SECTION))

    async def save_schedule_config(self, owner_id: str, patch: Dict[str, Any]) -> ScheduleConfig:
        owner = self._records.setdefault(owner_id, {})
        config = merge_record(ScheduleConfig, owner.get(BUSINESS_HOURS_SECTION), patch)
        owner[BUSINESS_HOURS_SECTION] = _record_of(config)
        return config

    async def load_sla_config(self, owner_id: str) -> Optional[SLAConfig]:
        return parse_record(SLAConfig, self._records.get(owner_id, {}).get(SLA_SECTION))

    async def save_sla_config(self, owner_id: str, patch: Dict[str, Any]) -> SLAConfig:
        owner = self._records.setdefault(owner_id, {})
        config = merge_record(SLAConfig, owner.get(SLA_SECTION), patch)
        owner[SLA_SECTION] = _record_of(config)
        return config


class ConfigFileHandler(FileSystemEventHandler):
    """Watchdog event handler for policy config file changes."""

    def __init__(self, store: "YAMLConfigStore", config_path: Path):
        self.store = store
        self.config_path = config_path
        super().__init__()

    def _matches(self, path: str) -> bool:
        return Path(path).resolve() == self.config_path.resolve()

    def on_modified(self, event):
        """Handle file modification event."""
        if event.is_directory:
            return
        if self._matches(event.src_path):
            logger.info("Config file changed", extra={"path": event.src_path})
            self.store.reload()

    def on_moved(self, event):
        """Atomic replacements arrive as a move onto the config path."""
        if event.is_directory:
            return
        if self._matches(event.dest_path):
            logger.info("Config file replaced", extra={"path": event.dest_path})
            self.store.reload()


class YAMLConfigStore(IScheduleConfigStore, ISLAConfigStore):
    """
    Thread-safe YAML-backed store with hot-reload support.

    File layout::

        owners:
          <owner_id>:
            business_hours: {is_enabled, timezone, auto_reply_message, schedule}
            sla: {name, first_response_minutes, resolution_minutes,
                  priority_multipliers, is_active}

    A missing file holds no records.
    """

    def __init__(self, path: Path):
        self._path = Path(path)
        self._lock = threading.Lock()
        self._data: Dict[str, Any] = self._load_from_file()
        self._observer = None

    @property
    def path(self) -> Path:
        return self._path

    def _load_from_file(self) -> Dict[str, Any]:
        """Load and parse YAML config file."""
        if not self._path.exists():
            logger.warning("Policy config file not found, no records loaded", extra={"path": str(self._path)})
            return {"owners": {}}

        with open(self._path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

        if not isinstance(data, dict) or not isinstance(data.get("owners", {}), dict):
            raise RepositoryException(
                "Policy config file must map 'owners' to records",
                {"path": str(self._path)}
            )
        data.setdefault("owners", {})
        return data

    def reload(self) -> bool:
        """Reload configuration from file."""
        try:
            new_data = self._load_from_file()
        except (OSError, yaml.YAMLError, RepositoryException) as e:
            logger.error("Failed to reload policy config", extra={"path": str(self._path), "error": str(e)})
            return False

        with self._lock:
            self._data = new_data
        logger.info("Policy configuration reloaded successfully")
        return True

    def _section(self, owner_id: str, section: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            record = (self._data["owners"].get(owner_id) or {}).get(section)
            return copy.deepcopy(record)

    def _write_file(self, data: Dict[str, Any]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=self._path.parent, prefix=".policy-", suffix=".yaml")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                yaml.safe_dump(data, f, allow_unicode=True, sort_keys=False)
            os.replace(tmp_path, self._path)
        except OSError:
            Path(tmp_path).unlink(missing_ok=True)
            raise

    def _save(self, owner_id: str, section: str, config: BaseModel) -> None:
        with self._lock:
            data = copy.deepcopy(self._data)
            owners = data.setdefault("owners", {})
            owner = owners.get(owner_id) or {}
            owner[section] = _record_of(config)
            owners[owner_id] = owner
            try:
                self._write_file(data)
            except OSError as e:
                raise RepositoryException(
                    "Failed to write policy config file",
                    {"path": str(self._path), "error": str(e)}
                ) from e
            self._data = data

    async def load_schedule_config(self, owner_id: str) -> Optional[ScheduleConfig]:
        return parse_record(ScheduleConfig, self._section(owner_id, BUSINESS_HOURS_SECTION))

    async def save_schedule_config(self, owner_id: str, patch: Dict[str, Any]) -> ScheduleConfig:
        config = merge_record(ScheduleConfig, self._section(owner_id, BUSINESS_HOURS_SECTION), patch)
        await asyncio.to_thread(self._save, owner_id, BUSINESS_HOURS_SECTION, config)
        return config

    async def load_sla_config(self, owner_id: str) -> Optional[SLAConfig]:
        return parse_record(SLAConfig, self._section(owner_id, SLA_SECTION))

    async def save_sla_config(self, owner_id: str, patch: Dict[str, Any]) -> SLAConfig:
        config = merge_record(SLAConfig, self._section(owner_id, SLA_SECTION), patch)
        await asyncio.to_thread(self._save, owner_id, SLA_SECTION, config)
        return config

    def start_watching(self) -> None:
        """
        Start watching the configuration file for changes.

        Skipped when the file does not exist or the platform cannot watch.
        """
        if self._observer is not None:
            return

        if not self._path.exists():
            logger.info(
                "Config file doesn't exist, skipping file watch",
                extra={"path": str(self._path)}
            )
            return

        try:
            self._observer = Observer()
            handler = ConfigFileHandler(self, self._path)
            self._observer.schedule(handler, str(self._path.parent.resolve()), recursive=False)
            self._observer.start()
            logger.info("Started watching config file", extra={"path": str(self._path)})
        except OSError as e:
            logger.warning("File watching not available, using static config", extra={"error": str(e)})
            self._observer = None

    def stop_watching(self) -> None:
        """Stop watching configuration file (safe to call even if not watching)."""
        if self._observer is not None:
            self._observer.stop()
            self._observer.join(timeout=5)
            self._observer = None

    @property
    def is_watching(self) -> bool:
        return self._observer is not None
