"""
Entity records: per-subject research data keyed by polygon (tract) id.
"""

from pathlib import Path

import numpy as np
import pandas as pd
from loguru import logger

from . import config
from .errors import FetchError, KeyIntegrityError
from .keys import normalize_keys


def clean_cols(df):
    """Lower-case and strip column names."""
    df.columns = df.columns.astype(str).str.lower().str.strip()
    return df

#______________________________________________________________________________

def load_entities(source, key_field=config.ENTITY_KEY_FIELD, key=config.KEY_COL):
    """
    Read entity records and standardize their key column.
    Column names are lower-cased and stripped, the key field is renamed
    to `key` and normalized to strings. Rows without a key are dropped.
    CSV and Excel cells are read as text so ids keep their leading zeros.
    Args:
        source: CSV, Parquet or Excel path, or a DataFrame
        key_field: column holding the polygon id (string, any case)
        key: name given to the key column in the output (string)
    Returns:
        pandas DataFrame
    Raises:
        FetchError: if the file cannot be read or is of another type
        KeyIntegrityError: if the key field is absent
    """
    if isinstance(source, pd.DataFrame):
        records = source.copy()
    else:
        ext = Path(str(source)).suffix.lower()
        if ext not in (".csv", ".parquet", ".pq", ".xlsx", ".xls"):
            raise FetchError(f"Unsupported entity file type: {source}")
        try:
            if ext == ".csv":
                records = pd.read_csv(source, dtype=str)
            elif ext in (".parquet", ".pq"):
                records = pd.read_parquet(source)
            else:
                records = pd.read_excel(source, dtype=str)
        except (OSError, ValueError, ImportError) as exc:
            raise FetchError(f"Could not read entity records from {source}: {exc}") from exc

    records = clean_cols(records)
    field = key_field.lower().strip()
    if field not in records.columns:
        raise KeyIntegrityError(
            f"Entity records have no key field '{key_field}'. "
            f"Available columns: {records.columns.tolist()}"
        )
    records = records.rename(columns={field: key})
    records[key] = normalize_keys(records[key])

    no_key = records[key].isna()
    if no_key.any():
        logger.warning(f"Dropping {int(no_key.sum()):,} entity records without a key")
        records = records[~no_key]

    logger.info(f"Loaded {len(records):,} entity records")
    return records.reset_index(drop=True)

#______________________________________________________________________________

def summarize_entities(records, value_cols=(), stats=("mean",), key=config.KEY_COL):
    """
    Summarize entity records per key.
    Args:
        records: entity records with a key column (DataFrame)
        value_cols: numeric columns to summarize (list of strings)
        stats: pandas aggregation names, e.g. "mean", "median", "sum"
        key: key column (string)
    Returns:
        pandas DataFrame with one row per key: key, n_subjects and a
        "<stat>_<column>" column per requested statistic
    Raises:
        ValueError: if a value column does not exist
    """
    value_cols = list(value_cols)
    for col in [key] + value_cols:
        if col not in records.columns:
            raise ValueError(
                f"Column '{col}' not found in DataFrame. "
                f"Available columns: {records.columns.tolist()}"
            )

    # Non-numeric entries become NaN and drop out of the statistics
    if value_cols:
        values = records[value_cols].apply(pd.to_numeric, errors="coerce")
    else:
        values = pd.DataFrame(index=records.index)
    values[key] = normalize_keys(records[key])
    grouped = values.groupby(key, sort=True)

    summary = grouped.size().rename("n_subjects").to_frame()
    if value_cols:
        stat_frame = grouped[value_cols].agg(list(stats))
        stat_frame.columns = [f"{stat}_{col}" for col, stat in stat_frame.columns]
        summary = summary.join(stat_frame)

    return summary.reset_index()

#______________________________________________________________________________

def make_synthetic_entities(keys, n_subjects, seed=None, key=config.KEY_COL):
    """
    Generate synthetic research-subject records spread over `keys`.
    Each subject has an id, a key, an age, a binary outcome and a
    continuous score. The same seed gives the same records.
    """
    keys = list(keys)
    if not keys:
        raise ValueError("Need at least one key to assign subjects to")

    rng = np.random.default_rng(seed)
    return pd.DataFrame({
        "subject_id": [f"S{i:05d}" for i in range(1, n_subjects + 1)],
        key: pd.Series(rng.choice(keys, size=n_subjects), dtype="string"),
        "age": rng.integers(18, 90, size=n_subjects),
        "outcome": rng.binomial(1, 0.3, size=n_subjects),
        "score": rng.normal(50, 10, size=n_subjects).round(1),
    })
