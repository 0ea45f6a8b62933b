"""In-memory data catalog.

The engine only passes dataset ids through the catalog; it never validates or
reads dataset contents.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Literal, Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field

from flowdag.kernel.logging import get_logger

logger = get_logger(__name__)

DatasetType = Literal["csv", "json", "parquet", "database", "api", "memory"]
FILE_TYPES = frozenset({"csv", "json", "parquet"})


class DatasetDescriptor(BaseModel):
    """Metadata for one dataset.

    ``schema`` is accepted as the input/export key for ``dataset_schema``.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str
    name: str
    type: DatasetType
    filepath: str | None = None
    connection: str | None = None
    dataset_schema: dict[str, Any] | None = Field(default=None, alias="schema")
    metadata: dict[str, Any] | None = None


@runtime_checkable
class DataCatalog(Protocol):
    """What the node executor needs from a catalog."""

    def get_entry(self, entry_id: str) -> DatasetDescriptor | None: ...


class InMemoryDataCatalog:
    """Dictionary-backed catalog.

    Examples
    --------
    >>> catalog = InMemoryDataCatalog()
    >>> catalog.add_entry(DatasetDescriptor(id="raw", name="Raw", type="csv", filepath="a.csv"))
    >>> catalog.get_entry("raw").filepath
    'a.csv'
    """

    def __init__(self, entries: Mapping[str, Any] | None = None) -> None:
        self._entries: dict[str, DatasetDescriptor] = {}
        if entries:
            self.load_from_config(entries)

    def add_entry(self, entry: DatasetDescriptor) -> None:
        self._entries[entry.id] = entry

    def get_entry(self, entry_id: str) -> DatasetDescriptor | None:
        return self._entries.get(entry_id)

    def list_entries(self) -> list[DatasetDescriptor]:
        return list(self._entries.values())

    def get_entries_by_type(self, dataset_type: DatasetType) -> list[DatasetDescriptor]:
        return [e for e in self._entries.values() if e.type == dataset_type]

    def remove_entry(self, entry_id: str) -> bool:
        return self._entries.pop(entry_id, None) is not None

    def update_entry(self, entry_id: str, **updates: Any) -> bool:
        """Merge ``updates`` into an existing entry; ``False`` when it does not exist."""
        entry = self._entries.get(entry_id)
        if entry is None:
            return False
        merged = {**entry.model_dump(by_alias=True), **updates}
        self._entries[entry_id] = DatasetDescriptor.model_validate(merged)
        return True

    def load_from_config(self, config: Mapping[str, Any]) -> None:
        """Add one entry per ``name -> settings`` item; the name becomes id and name."""
        for name, settings in config.items():
            data = {**dict(settings), "id": name}
            data.setdefault("name", name)
            self.add_entry(DatasetDescriptor.model_validate(data))
        logger.debug("Loaded {count} catalog entries", count=len(config))

    def export_to_config(self) -> dict[str, dict[str, Any]]:
        return {
            entry_id: entry.model_dump(by_alias=True, exclude={"id", "name"})
            for entry_id, entry in self._entries.items()
        }

    @staticmethod
    def validate_entry(entry: DatasetDescriptor) -> list[str]:
        """Problems with ``entry``; an empty list means it is valid."""
        errors: list[str] = []
        if not entry.id.strip():
            errors.append("ID is required")
        if not entry.name.strip():
            errors.append("Name is required")

        if entry.type in FILE_TYPES and not entry.filepath:
            errors.append("Filepath is required for file-based datasets")
        elif entry.type == "database" and not entry.connection:
            errors.append("Connection string is required for database datasets")
        elif entry.type == "api" and not entry.connection:
            errors.append("API endpoint is required for API datasets")
        return errors

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, entry_id: object) -> bool:
        return entry_id in self._entries
