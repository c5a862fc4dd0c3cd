"""Tests for Location, Cpf and Cnpj."""
import os
import sys
import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from jornada.domain.exceptions import DomainError
from jornada.domain.models.value_objects import Cnpj, Cpf, EventType, Location


class TestLocation:

    def test_valid_location(self):
        loc = Location(-23.5505, -46.6333, 15)
        assert loc.latitude == -23.5505
        assert loc.accuracy_meters == 15

    @pytest.mark.parametrize("lat, lon", [(90.1, 0), (-90.1, 0), (0, 180.5), (0, -181)])
    def test_out_of_range_coordinates(self, lat, lon):
        with pytest.raises(DomainError):
            Location(lat, lon)

    def test_boundaries_accepted(self):
        Location(90, 180)
        Location(-90, -180)

    def test_negative_accuracy(self):
        with pytest.raises(DomainError):
            Location(0, 0, -1)

    def test_distance_to_self_is_zero(self):
        loc = Location(-23.5505, -46.6333)
        assert loc.distance_to_km(loc) == 0

    def test_distance_is_symmetric(self):
        sp = Location(-23.5505, -46.6333)
        rio = Location(-22.9068, -43.1729)
        assert sp.distance_to_km(rio) == pytest.approx(rio.distance_to_km(sp))

    def test_sao_paulo_rio_distance(self):
        """Roughly 360 km in a straight line."""
        sp = Location(-23.5505, -46.6333)
        rio = Location(-22.9068, -43.1729)
        assert 340 < sp.distance_to_km(rio) < 380

    def test_value_equality(self):
        assert Location(1, 2, 3) == Location(1, 2, 3)
        assert Location(1, 2, 3) != Location(1, 2, 4)


class TestCpf:

    def test_valid_cpf(self):
        assert Cpf("11144477735").value == "11144477735"

    def test_punctuation_is_stripped(self):
        cpf = Cpf("111.444.777-35")
        assert cpf.value == "11144477735"
        assert cpf.formatted == "111.444.777-35"
        assert str(cpf) == "111.444.777-35"

    @pytest.mark.parametrize("raw", [
        "11111111111",      # repeated digits pass mod-11 but are rejected
        "11144477736",      # wrong check digit
        "1114447773",       # too short
        "1114447773a",      # non digit
    ])
    def test_invalid_cpf(self, raw):
        with pytest.raises(DomainError):
            Cpf(raw)

    def test_empty_cpf(self):
        with pytest.raises(DomainError, match="empty"):
            Cpf("  ")

    def test_is_valid(self):
        assert Cpf.is_valid("52998224725")
        assert not Cpf.is_valid("00000000000")

    def test_equality_after_normalisation(self):
        assert Cpf("111.444.777-35") == Cpf("11144477735")

    def test_adjacent_transposition_detected(self):
        valid = "11144477735"
        swaps = [i for i in range(len(valid) - 1) if valid[i] != valid[i + 1]]
        assert swaps
        for i in swaps:
            swapped = valid[:i] + valid[i + 1] + valid[i] + valid[i + 2:]
            assert not Cpf.is_valid(swapped), swapped


class TestCnpj:

    def test_valid_cnpj(self):
        cnpj = Cnpj("11.222.333/0001-81")
        assert cnpj.value == "11222333000181"
        assert cnpj.formatted == "11.222.333/0001-81"

    def test_last_digit_altered(self):
        with pytest.raises(DomainError):
            Cnpj("11222333000182")

    def test_repeated_digits(self):
        assert not Cnpj.is_valid("11111111111111")

    def test_wrong_length(self):
        assert not Cnpj.is_valid("1122233300018")


class TestEventType:

    def test_start_and_end_flags(self):
        assert EventType.MEAL_START.is_start
        assert not EventType.MEAL_START.is_end
        assert EventType.SHIFT_END.is_end

    def test_sub_activity(self):
        assert EventType.REST_START.is_sub_activity
        assert not EventType.SHIFT_START.is_sub_activity

    def test_pair(self):
        assert EventType.MEAL_START.pair == EventType.MEAL_END
        assert EventType.INSPECTION_END.pair == EventType.INSPECTION_START
        assert all(t.pair.pair == t for t in EventType)
