"""Helpers for the string keys that tie points, polygons and tables together."""

import pandas as pd

from .errors import KeyIntegrityError


def normalize_keys(values):
    """
    Coerce identifiers to stripped strings.
    Whole-number floats lose their trailing ".0" (42101000100.0 becomes
    "42101000100"), and empty strings become missing.
    Args:
        values: identifiers (list, array or pandas Series)
    Returns:
        pandas Series with "string" dtype
    """
    keys = pd.Series(values, copy=True).astype("string").str.strip()
    keys = keys.str.replace(r"^(\d+)\.0$", r"\1", regex=True)
    return keys.replace("", pd.NA)


def check_unique(keys, table_name):
    """Raise KeyIntegrityError if `keys` holds missing or repeated values."""
    missing = int(keys.isna().sum())
    if missing:
        raise KeyIntegrityError(
            f"{missing} row(s) of the {table_name} table have no key"
        )

    repeated = keys[keys.duplicated()].unique().tolist()
    if repeated:
        raise KeyIntegrityError(
            f"Duplicate keys in the {table_name} table: {sorted(repeated)[:5]}"
        )
