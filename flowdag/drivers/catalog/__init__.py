"""Data catalog drivers."""

from flowdag.drivers.catalog.memory import DataCatalog, DatasetDescriptor, InMemoryDataCatalog

__all__ = ["DataCatalog", "DatasetDescriptor", "InMemoryDataCatalog"]
