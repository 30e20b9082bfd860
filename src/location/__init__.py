"""
Location module.
"""

from .provider import LocationProvider

__all__ = ['LocationProvider']
