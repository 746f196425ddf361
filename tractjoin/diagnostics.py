"""Run diagnostics and table summaries."""

from dataclasses import asdict, dataclass

import pandas as pd


@dataclass(frozen=True)
class RunSummary:
    """Counts collected over one pipeline run."""

    points_loaded: int
    points_dropped: int
    points_unmatched: int
    polygons: int
    polygons_without_points: int
    entity_keys_outside_polygons: int = 0

    def as_dict(self):
        return asdict(self)

#______________________________________________________________________________

def summarize_dataframe(df):
    """
    Summarizes a DataFrame/GeoDataFrame with column-level statistics.
    Args:
        df: a pandas DataFrame or geopandas GeoDataFrame to summarize
    Returns:
        DataFrame with one row per column of df:
            Type: column data type
            Missing: count of missing values
            Missing %: percent of missing values (0 for an empty table)
            Unique: count of unique values (not computed for geometry)
            min, max, mean: numeric columns only
    """
    geometry_col = getattr(df, "_geometry_column_name", None)
    total = len(df)

    summary = {}
    for col in df.columns:
        missing = int(df[col].isna().sum())
        summary[col] = {
            "Type": df[col].dtype,
            "Missing": missing,
            "Missing %": round(missing / total * 100, 2) if total else 0.0,
            "Unique": None if col == geometry_col else df[col].nunique(),
        }

    # Transpose so each row describes one column of df.
    summary_df = pd.DataFrame(summary).T

    numeric_cols = df.select_dtypes(include="number")
    if not numeric_cols.empty:
        summary_stats = numeric_cols.agg(["min", "max", "mean"]).T.round(2)
        summary_df = summary_df.join(summary_stats)

    return summary_df
