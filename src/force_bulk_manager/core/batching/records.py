# -*- coding: utf-8 -*-

"""
Record containers submitted as batches.

Two record shapes travel through the same pipeline:

    - SObject: schema-free mapping of field name to value.
    - Typed records: any dataclass instance; its fields are the record fields.

Both are reduced to plain field maps by record_fields(), which is the only
thing the wire encoder ever sees.
"""

import dataclasses
import math
from collections.abc import Mapping
from typing import Any, Dict, Iterable, List

FieldMap = Dict[str, Any]

# Remote limit on records per batch
MAX_RECORDS_PER_BATCH = 10_000


class SObject(dict):
    """Schema-free record: field name -> value."""

    def __repr__(self):
        return f"SObject({dict.__repr__(self)})"


def record_fields(record) -> FieldMap:
    """
    Return the field map of a record.

    Mappings are copied as-is, so an explicit None is sent as a null value.
    Dataclass instances contribute every field that is not None; a field can
    be renamed on the wire with ``metadata={"api_name": "..."}``.

    Raises:
        TypeError: If the record is neither a mapping nor a dataclass instance.
    """
    if isinstance(record, Mapping):
        return dict(record)
    if dataclasses.is_dataclass(record) and not isinstance(record, type):
        fields = {}
        for f in dataclasses.fields(record):
            value = getattr(record, f.name)
            if value is None:
                continue
            fields[f.metadata.get("api_name", f.name)] = value
        return fields
    raise TypeError(
        f"Unsupported record type {type(record).__name__}; "
        "expected a mapping or a dataclass instance."
    )


class SObjectList(list):
    """Ordered collection of records, submitted together as one batch."""

    def field_maps(self) -> List[FieldMap]:
        return [record_fields(record) for record in self]

    @classmethod
    def of_ids(cls, ids: Iterable[str]) -> "SObjectList":
        """Build a container of ``{"Id": id}`` records, e.g. for deletes."""
        return cls(SObject(Id=record_id) for record_id in ids)


def chunk_records(records, max_records: int = MAX_RECORDS_PER_BATCH) -> List[SObjectList]:
    """
    Split a sequence of records into containers of at most max_records each,
    preserving order.

    Args:
        records: Sequence of records (mappings or dataclass instances).
        max_records (int): Maximum number of records per container.

    Returns:
        list[SObjectList]: Containers, in input order.
    """
    if max_records <= 0:
        raise ValueError("max_records must be a positive integer.")
    records = list(records)
    if not records:
        return []
    num_parts = math.ceil(len(records) / max_records)
    return [
        SObjectList(records[i * max_records:(i + 1) * max_records])
        for i in range(num_parts)
    ]
