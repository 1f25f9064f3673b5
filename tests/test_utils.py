"""Tests for utility functions."""

from custom_components.volt_load_manager.calculations.utils import (
    clamp,
    safe_float,
    soc_to_kwh,
    watts_to_kw,
)


def test_safe_float():
    """Test safe float conversion."""
    # Normal conversion
    assert safe_float("123.45") == 123.45
    assert safe_float(123) == 123.0

    # None handling
    assert safe_float(None) == 0.0
    assert safe_float(None, 5.0) == 5.0
    assert safe_float(None, None) is None

    # Invalid values
    assert safe_float("invalid") == 0.0
    assert safe_float("invalid", 10.0) == 10.0
    assert safe_float("") == 0.0
    assert safe_float([]) == 0.0

    # NaN never leaks through
    assert safe_float(float("nan"), 7.0) == 7.0
    assert safe_float("nan", None) is None


def test_clamp():
    """Test value clamping."""
    assert clamp(5, 0, 10) == 5
    assert clamp(-5, 0, 10) == 0
    assert clamp(15, 0, 10) == 10
    assert clamp(0, 0, 10) == 0
    assert clamp(10, 0, 10) == 10


def test_soc_to_kwh():
    """Test SOC to energy conversion."""
    assert soc_to_kwh(50, 10.0) == 5.0
    assert soc_to_kwh(0, 32.6) == 0.0
    assert soc_to_kwh(-20, 10.0) == -2.0


def test_watts_to_kw():
    """Test W to kW conversion."""
    assert watts_to_kw(1500) == 1.5
    assert watts_to_kw(0) == 0.0
