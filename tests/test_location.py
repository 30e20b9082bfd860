"""
Tests for the location provider.
"""

from location.provider import LocationProvider
from models.config import LocationConfig
from models.location import GpsFix


def test_no_fix_by_default():
    assert LocationProvider().last_fix() is None


def test_update_and_clear():
    provider = LocationProvider()
    fix = GpsFix(latitude=51.5, longitude=-0.12, accuracy=8.0, timestamp=100.0)

    provider.update(fix)
    assert provider.last_fix() == fix

    provider.clear()
    assert provider.last_fix() is None


def test_from_config_fixed_position():
    provider = LocationProvider.from_config(LocationConfig(latitude=52.37, longitude=4.89, accuracy=10.0))

    fix = provider.last_fix()
    assert (fix.latitude, fix.longitude, fix.accuracy) == (52.37, 4.89, 10.0)
    assert fix.timestamp is not None


def test_from_config_incomplete_position():
    assert LocationProvider.from_config(LocationConfig(latitude=52.37)).last_fix() is None
