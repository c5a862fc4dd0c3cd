from typing import List, Optional, Union

from jornada.domain.exceptions import DomainError
from .driver import Driver
from .entities import Entity, Vehicle
from .settings import CompanySettings
from .value_objects import Cnpj


class Company(Entity):
    """Owns the settings used to evaluate its drivers' workdays."""

    def __init__(self, name: str, cnpj: Union[Cnpj, str],
                 settings: Optional[CompanySettings] = None, id: Optional[str] = None):
        if not name or not name.strip():
            raise DomainError("Company name cannot be empty")
        super().__init__(id=id)
        self.name = name
        self.cnpj = cnpj if isinstance(cnpj, Cnpj) else Cnpj(cnpj)
        self.is_active = True
        self.settings = settings or CompanySettings.default()
        self._drivers: List[Driver] = []
        self._vehicles: List[Vehicle] = []

    @property
    def drivers(self):
        return tuple(self._drivers)

    @property
    def vehicles(self):
        return tuple(self._vehicles)

    def update_name(self, name: str):
        if not name or not name.strip():
            raise DomainError("Company name cannot be empty")
        self.name = name
        self._mark_updated()

    def update_settings(self, settings: CompanySettings):
        if settings is None:
            raise DomainError("Settings are required")
        self.settings = settings
        self._mark_updated()

    def activate(self):
        self.is_active = True
        self._mark_updated()

    def deactivate(self):
        self.is_active = False
        self._mark_updated()

    def add_driver(self, driver: Driver):
        if driver.company_id != self.id:
            raise DomainError(f"Driver {driver.id} belongs to another company")
        if any(d.cpf == driver.cpf for d in self._drivers):
            raise DomainError(f"Driver with CPF {driver.cpf} already exists in company")
        self._drivers.append(driver)
        self._mark_updated()

    def add_vehicle(self, vehicle: Vehicle):
        if vehicle.company_id != self.id:
            raise DomainError(f"Vehicle {vehicle.plate} belongs to another company")
        if any(v.plate == vehicle.plate for v in self._vehicles):
            raise DomainError(f"Vehicle with plate {vehicle.plate} already exists in company")
        self._vehicles.append(vehicle)
        self._mark_updated()
