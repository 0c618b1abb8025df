# -*- coding: utf-8 -*-

import polars as pl
from pathlib import Path

from ..batching.records import SObject, SObjectList
from .misc import read_jsonl


def _drop_nulls(row):
    return SObject((k, v) for k, v in row.items() if v is not None)


def read_records_jsonl(source_file, keep_nulls=False):
    """Read records from a JSONL file, one JSON object per line."""
    records = SObjectList()
    for i, item in enumerate(read_jsonl(source_file)):
        if not isinstance(item, dict):
            raise ValueError(f"Line {i} of {source_file} is not a JSON object.")
        records.append(SObject(item) if keep_nulls else _drop_nulls(item))
    return records


def read_records_tabular(source_file, keep_nulls=False, columns=None):
    """
    Read records from a CSV or PARQUET file. Empty cells are dropped unless
    keep_nulls is set, in which case they are sent as explicit nulls.
    """
    source_file = Path(source_file)
    if source_file.suffix == '.csv':
        # Keep every column as text; the remote side does its own type coercion
        df = pl.read_csv(source_file, infer_schema=False)
    elif source_file.suffix == '.parquet':
        df = pl.read_parquet(source_file)
    else:
        raise ValueError('Source file must be either CSV or PARQUET')

    if columns is not None:
        missing = [c for c in columns if c not in df.columns]
        if missing:
            raise KeyError(f"Columns {missing} not found in {source_file}.")
        df = df.select(columns)

    rows = df.to_dicts()
    if keep_nulls:
        return SObjectList(SObject(row) for row in rows)
    return SObjectList(_drop_nulls(row) for row in rows)


def read_records(source_file, keep_nulls=False, columns=None):
    """
    Read records from a JSONL, CSV or PARQUET file into an SObjectList,
    preserving file order.
    """
    source_file = Path(source_file)
    if not source_file.exists():
        raise FileNotFoundError(f"Source file not found: {source_file}")
    if source_file.suffix == '.jsonl':
        records = read_records_jsonl(source_file, keep_nulls=keep_nulls)
        if columns is not None:
            records = SObjectList(
                SObject((c, r[c]) for c in columns if c in r) for r in records
            )
        return records
    if source_file.suffix in ['.csv', '.parquet']:
        return read_records_tabular(source_file, keep_nulls=keep_nulls, columns=columns)
    raise ValueError("Source file must be a JSONL, CSV or PARQUET file.")
