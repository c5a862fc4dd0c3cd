import math
from dataclasses import dataclass
from enum import Enum

from jornada.domain.exceptions import DomainError

EARTH_RADIUS_KM = 6371.0


class EventType(Enum):
    SHIFT_START = "SHIFT_START"
    SHIFT_END = "SHIFT_END"
    MEAL_START = "MEAL_START"
    MEAL_END = "MEAL_END"
    REST_START = "REST_START"
    REST_END = "REST_END"
    DISPOSAL_START = "DISPOSAL_START"
    DISPOSAL_END = "DISPOSAL_END"
    INSPECTION_START = "INSPECTION_START"
    INSPECTION_END = "INSPECTION_END"

    @property
    def is_start(self) -> bool:
        return self.value.endswith("_START")

    @property
    def is_end(self) -> bool:
        return self.value.endswith("_END")

    @property
    def pair(self) -> "EventType":
        activity, edge = self.value.rsplit("_", 1)
        return EventType(f"{activity}_{'END' if edge == 'START' else 'START'}")

    @property
    def is_sub_activity(self) -> bool:
        return self not in (EventType.SHIFT_START, EventType.SHIFT_END)


class DriverState(Enum):
    OFF_SHIFT = "OFF_SHIFT"
    WORKING = "WORKING"
    MEAL = "MEAL"
    REST = "REST"
    DISPOSAL = "DISPOSAL"
    INSPECTION = "INSPECTION"


class DriverStatus(Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    SUSPENDED = "SUSPENDED"
    TERMINATED = "TERMINATED"


class EventSource(Enum):
    MOBILE_MANUAL = "MOBILE_MANUAL"
    MOBILE_AUTO = "MOBILE_AUTO"
    PORTAL = "PORTAL"


@dataclass(frozen=True)
class Location:
    latitude: float
    longitude: float
    accuracy_meters: int = 0

    def __post_init__(self):
        if not (-90 <= self.latitude <= 90):
            raise DomainError(f"Invalid latitude: {self.latitude}. Must be between -90 and 90.")
        if not (-180 <= self.longitude <= 180):
            raise DomainError(f"Invalid longitude: {self.longitude}. Must be between -180 and 180.")
        if self.accuracy_meters < 0:
            raise DomainError(f"Accuracy cannot be negative: {self.accuracy_meters}")

    def distance_to_km(self, other: "Location") -> float:
        """Great-circle distance (haversine) to another location, in km."""
        lat1 = math.radians(self.latitude)
        lat2 = math.radians(other.latitude)
        d_lat = math.radians(other.latitude - self.latitude)
        d_lon = math.radians(other.longitude - self.longitude)

        a = (math.sin(d_lat / 2) ** 2
             + math.cos(lat1) * math.cos(lat2) * math.sin(d_lon / 2) ** 2)
        c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
        return EARTH_RADIUS_KM * c

    def __str__(self):
        return f"({self.latitude:.6f}, {self.longitude:.6f}) ±{self.accuracy_meters}m"


def _mod11_digit(digits: str, weights) -> int:
    total = sum(int(d) * w for d, w in zip(digits, weights))
    remainder = total % 11
    return 0 if remainder < 2 else 11 - remainder


def _clean(value: str, punctuation: str) -> str:
    cleaned = value.strip()
    for ch in punctuation:
        cleaned = cleaned.replace(ch, "")
    return cleaned


@dataclass(frozen=True)
class Cpf:
    """Brazilian individual taxpayer number. Stores only the 11 digits."""
    value: str

    def __post_init__(self):
        if not self.value or not self.value.strip():
            raise DomainError("CPF cannot be empty")
        cleaned = _clean(self.value, ".- ")
        if not Cpf.is_valid(cleaned):
            raise DomainError(f"Invalid CPF: {self.value}")
        # frozen dataclass: normalise the stored value in place
        object.__setattr__(self, "value", cleaned)

    @staticmethod
    def is_valid(cpf: str) -> bool:
        if len(cpf) != 11 or not cpf.isdigit():
            return False
        if cpf == cpf[0] * 11:
            return False
        first = _mod11_digit(cpf[:9], range(10, 1, -1))
        if int(cpf[9]) != first:
            return False
        second = _mod11_digit(cpf[:10], range(11, 1, -1))
        return int(cpf[10]) == second

    @property
    def formatted(self) -> str:
        v = self.value
        return f"{v[:3]}.{v[3:6]}.{v[6:9]}-{v[9:]}"

    def __str__(self):
        return self.formatted


CNPJ_WEIGHTS_1 = [5, 4, 3, 2, 9, 8, 7, 6, 5, 4, 3, 2]
CNPJ_WEIGHTS_2 = [6, 5, 4, 3, 2, 9, 8, 7, 6, 5, 4, 3, 2]


@dataclass(frozen=True)
class Cnpj:
    """Brazilian company registration number. Stores only the 14 digits."""
    value: str

    def __post_init__(self):
        if not self.value or not self.value.strip():
            raise DomainError("CNPJ cannot be empty")
        cleaned = _clean(self.value, "./- ")
        if not Cnpj.is_valid(cleaned):
            raise DomainError(f"Invalid CNPJ: {self.value}")
        object.__setattr__(self, "value", cleaned)

    @staticmethod
    def is_valid(cnpj: str) -> bool:
        if len(cnpj) != 14 or not cnpj.isdigit():
            return False
        if cnpj == cnpj[0] * 14:
            return False
        if int(cnpj[12]) != _mod11_digit(cnpj[:12], CNPJ_WEIGHTS_1):
            return False
        return int(cnpj[13]) == _mod11_digit(cnpj[:13], CNPJ_WEIGHTS_2)

    @property
    def formatted(self) -> str:
        v = self.value
        return f"{v[:2]}.{v[2:5]}.{v[5:8]}/{v[8:12]}-{v[12:]}"

    def __str__(self):
        return self.formatted
