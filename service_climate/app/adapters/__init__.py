"""
Adapters for external systems used by the climate service.
"""

from .climate_store import ClimateDataStore

__all__ = ["ClimateDataStore"]
