import math
from typing import Iterable

import numpy as np
import pandas as pd

from sales_dashboard.models.schemas import SalesRecordOut

YEARS = ["2022", "2023", "2024", "2025"]
YEAR_COLUMNS = [f"sales{year}" for year in YEARS]
RECORD_COLUMNS = ["id", "state", "city", "latitude", "longitude", *YEAR_COLUMNS, "total"]

GROWTH_MARKET_THRESHOLD = 10.0
EMERGING_MARKET_THRESHOLD = 50.0
HEATMAP_WEIGHT_DIVISOR = 1000

SORTABLE_FIELDS = set(RECORD_COLUMNS) | {"growthRate"}

EMPTY_METRICS = {
    "totalMarkets": 0,
    "totalSales2024": 0,
    "avgGrowthRate": 0.0,
    "marketPenetration": 0.0,
    "activeMarkets": 0,
    "growthMarkets": 0,
    "emergingMarkets": 0,
}


# ---------- FRAMES ----------

def records_frame(records: Iterable[SalesRecordOut | dict]) -> pd.DataFrame:
    payloads = [r.model_dump() if isinstance(r, SalesRecordOut) else dict(r) for r in records]
    if not payloads:
        return pd.DataFrame(columns=RECORD_COLUMNS)

    df = pd.DataFrame(payloads)
    for col in YEAR_COLUMNS + ["total"]:
        if col not in df.columns:
            df[col] = 0
        df[col] = pd.to_numeric(df[col], errors="coerce").fillna(0)
    return df


# ---------- GROWTH ----------

def growth_series(df: pd.DataFrame) -> pd.Series:
    """
    Percentage change 2022 -> 2025 per record.
    A zero 2022 base is defined as 0% growth everywhere.
    """
    base = df["sales2022"].astype(float)
    latest = df["sales2025"].astype(float)
    with np.errstate(divide="ignore", invalid="ignore"):
        rate = np.where(base != 0, (latest - base) / base * 100, 0.0)
    return pd.Series(rate, index=df.index, dtype=float)


def round_half_up(value: float) -> float:
    """One decimal, halves rounded up (0.25 -> 0.3, -0.25 -> -0.2)."""
    return math.floor(value * 10 + 0.5) / 10


def growth_rate(record: SalesRecordOut | dict) -> float:
    return float(growth_series(records_frame([record])).iloc[0])


# ---------- SUMMARY ----------

def summarize(records: Iterable[SalesRecordOut | dict]) -> dict:
    df = records_frame(records)
    if df.empty:
        return dict(EMPTY_METRICS)

    total_markets = len(df)
    growth = growth_series(df)

    finite = growth.replace([np.inf, -np.inf], np.nan).dropna()
    avg_growth = float(finite.mean()) if not finite.empty else 0.0

    active_markets = int((df["total"] > 0).sum())
    market_penetration = active_markets / total_markets * 100

    return {
        "totalMarkets": total_markets,
        "totalSales2024": int(df["sales2024"].sum()),
        "avgGrowthRate": round_half_up(avg_growth),
        "marketPenetration": round_half_up(market_penetration),
        "activeMarkets": active_markets,
        "growthMarkets": int((growth > GROWTH_MARKET_THRESHOLD).sum()),
        "emergingMarkets": int((growth > EMERGING_MARKET_THRESHOLD).sum()),
    }


# ---------- YEAR SELECTION ----------

def parse_years(years: Iterable[str] | None) -> list[str]:
    if not years:
        return list(YEARS)
    selected = []
    for year in years:
        key = str(year).strip()
        if key not in YEARS:
            raise ValueError(f"Unknown year '{key}'. Must be one of: {YEARS}")
        if key not in selected:
            selected.append(key)
    return selected


def build_map_points(
    records: Iterable[SalesRecordOut | dict],
    years: Iterable[str] | None = None,
) -> list[dict]:
    selected = parse_years(years)
    df = records_frame(records)
    if df.empty:
        return []

    sales = df[[f"sales{year}" for year in selected]].sum(axis=1).astype(int)
    growth = growth_series(df)

    # plain python scalars, numpy ints do not survive response validation
    return [
        {
            "id": int(row["id"]),
            "state": row["state"],
            "city": row["city"],
            "latitude": float(row["latitude"]),
            "longitude": float(row["longitude"]),
            "sales": int(sales[idx]),
            "weight": int(sales[idx]) / HEATMAP_WEIGHT_DIVISOR,
            "growthRate": round_half_up(float(growth[idx])),
        }
        for idx, row in df.iterrows()
    ]


# ---------- TABLE ----------

def filter_records(records: list[SalesRecordOut], search: str | None) -> list[SalesRecordOut]:
    term = (search or "").strip().lower()
    if not term:
        return records
    return [r for r in records if term in r.city.lower() or term in r.state.lower()]


def sort_records(
    records: list[SalesRecordOut],
    sort_by: str | None,
    descending: bool = False,
) -> list[SalesRecordOut]:
    if not sort_by:
        return records
    if sort_by not in SORTABLE_FIELDS:
        raise ValueError(f"Invalid sort_by. Must be one of: {sorted(SORTABLE_FIELDS)}")

    def _key(record: SalesRecordOut):
        if sort_by == "growthRate":
            return growth_rate(record)
        value = getattr(record, sort_by)
        return value.lower() if isinstance(value, str) else value

    return sorted(records, key=_key, reverse=descending)


# ---------- EXPORT ----------

def export_frame(records: Iterable[SalesRecordOut | dict]) -> pd.DataFrame:
    df = records_frame(records)
    columns = ["City", "State", *YEARS, "Total", "Growth Rate"]
    if df.empty:
        return pd.DataFrame(columns=columns)

    out = pd.DataFrame(
        {
            "City": df["city"],
            "State": df["state"],
            **{year: df[f"sales{year}"].astype(int) for year in YEARS},
            "Total": df["total"].astype(int),
            "Growth Rate": growth_series(df).map(lambda rate: f"{rate:.1f}%"),
        }
    )
    return out[columns]
