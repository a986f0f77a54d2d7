"""
Input table descriptions
========================
Before a learner runs, the columns selected for learning are checked
against the description of the input table. Problems found here are
configuration defects: training must not start.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Sequence

from learnforge.errors import InvalidSettingsError

logger = logging.getLogger(__name__)


class ColumnType(str, Enum):
    DOUBLE = "double"
    INT = "int"
    LONG = "long"
    BOOLEAN = "boolean"
    STRING = "string"
    COLLECTION = "collection"
    IMAGE = "image"


# Column types that can be converted into network input
LEARNABLE_TYPES = (
    ColumnType.DOUBLE,
    ColumnType.INT,
    ColumnType.LONG,
    ColumnType.BOOLEAN,
    ColumnType.COLLECTION,
    ColumnType.IMAGE,
)


@dataclass(frozen=True)
class ColumnSpec:
    name: str
    type: ColumnType


@dataclass
class TableSpec:
    """
    Ordered column descriptions of an input table.

    Usage:
        >>> spec = TableSpec.from_dict({"x1": "double", "img": "image"})
        >>> spec.contains_image()
        True
    """
    columns: list[ColumnSpec] = field(default_factory=list)

    @classmethod
    def from_dict(cls, columns: dict[str, str]) -> TableSpec:
        return cls([ColumnSpec(name, ColumnType(t)) for name, t in columns.items()])

    @property
    def names(self) -> list[str]:
        return [c.name for c in self.columns]

    def column(self, name: str) -> Optional[ColumnSpec]:
        for c in self.columns:
            if c.name == name:
                return c
        return None

    def contains_image(self) -> bool:
        return any(c.type is ColumnType.IMAGE for c in self.columns)


def validate_column_selection(
    table_spec: TableSpec,
    selected_columns: Sequence[str],
) -> None:
    """
    Check that the selected columns exist and can be learned on.

    Raises
    ------
    InvalidSettingsError
        If nothing is selected, a column is missing from the table, a
        column is selected twice, or a column type cannot be learned on.
    """
    if not selected_columns:
        raise InvalidSettingsError(
            "No columns selected for learning. Please select at least one "
            "feature column."
        )

    seen = set()
    for name in selected_columns:
        if name in seen:
            raise InvalidSettingsError(f"Column '{name}' is selected twice")
        seen.add(name)

        column = table_spec.column(name)
        if column is None:
            raise InvalidSettingsError(
                f"Selected column '{name}' is not contained in the input "
                f"table. Available columns: {', '.join(table_spec.names)}"
            )
        if column.type not in LEARNABLE_TYPES:
            raise InvalidSettingsError(
                f"Column '{name}' has type '{column.type.value}' which is not "
                f"supported for learning. Supported types: "
                f"{', '.join(t.value for t in LEARNABLE_TYPES)}"
            )

    logger.debug(f"Column selection OK: {', '.join(selected_columns)}")


def name_type_list(
    selected_columns: Sequence[str],
    table_spec: TableSpec,
) -> list[tuple[str, str]]:
    """(name, type) pairs of the selected columns, in selection order."""
    return [
        (name, table_spec.column(name).type.value)
        for name in selected_columns
    ]
