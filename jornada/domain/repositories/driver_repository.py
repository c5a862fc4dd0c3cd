from abc import ABC, abstractmethod
from typing import Tuple

from jornada.domain.models.driver import Driver
from jornada.domain.models.settings import CompanySettings


class DriverRepository(ABC):
    @abstractmethod
    def get(self, key: str) -> Tuple[Driver, CompanySettings]:
        """
        Loads a driver with its full event log and the settings used to
        evaluate it.

        Args:
            key: Storage key of the driver (a file path for file storage).

        Returns:
            (Driver, CompanySettings)
        """
        pass

    @abstractmethod
    def save(self, key: str, driver: Driver, settings: CompanySettings) -> None:
        """Persists the driver and its event log. One writer per driver."""
        pass
