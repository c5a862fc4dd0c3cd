import json
import logging
import os
from typing import Any, List, Tuple

from jornada.domain.models.driver import Driver
from jornada.domain.models.settings import CompanySettings
from jornada.domain.repositories.driver_repository import DriverRepository
from jornada.infrastructure.mappers.jornada_mapper import JornadaMapper

logger = logging.getLogger(__name__)


class JsonDriverRepository(DriverRepository):
    """One driver per JSON file: {"driver": {...}, "settings": {...}, "events": [...]}."""

    def get(self, key: str) -> Tuple[Driver, CompanySettings]:
        """
        Raises:
            FileNotFoundError: If the file does not exist.
            ValueError: If the file is not valid JSON or misses the driver block.
        """
        if not os.path.exists(key):
            raise FileNotFoundError(f"File not found: {key}")

        with open(key, "r", encoding="utf-8") as f:
            try:
                data = json.load(f)
            except json.JSONDecodeError as e:
                raise ValueError(f"Invalid JSON in {key}: {e}")

        driver, settings = JornadaMapper.to_domain(data)
        logger.debug(f"Loaded driver {driver.id} with {len(driver.events)} events from {key}")
        return driver, settings

    def save(self, key: str, driver: Driver, settings: CompanySettings) -> None:
        """Rows of the existing file that could not be loaded are written back unchanged."""
        data = JornadaMapper.to_dict(driver, settings)
        unreadable = self._unreadable_rows(key)
        if unreadable:
            logger.info(f"Keeping {len(unreadable)} unreadable event rows in {key}")
            data["events"].extend(unreadable)
        tmp_path = f"{key}.tmp"
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
        os.replace(tmp_path, key)
        logger.debug(f"Saved driver {driver.id} to {key}")

    @staticmethod
    def _unreadable_rows(key: str) -> List[Any]:
        if not os.path.exists(key):
            return []
        with open(key, "r", encoding="utf-8") as f:
            try:
                data = json.load(f)
            except json.JSONDecodeError:
                return []
        if not isinstance(data, dict):
            return []
        _, rejected = JornadaMapper.split_events(data.get("events", []), data.get("driver") or {})
        return [raw for raw, _ in rejected]


def load_settings(path: str) -> CompanySettings:
    """Reads a standalone settings JSON file (hours for durations)."""
    if not os.path.exists(path):
        raise FileNotFoundError(f"File not found: {path}")
    with open(path, "r", encoding="utf-8") as f:
        return CompanySettings.from_dict(json.load(f))
