from typing import Sequence

from .datasets import Dataset

SKU_COLUMN = "SKU"


def _identifies_row(columns: Sequence[str], value: str, row: dict) -> bool:
    """True when the search named the row itself (by SKU or an exact key value)."""
    needle = value.strip().lower()
    return any(col == SKU_COLUMN or row.get(col, "").lower() == needle for col in columns)


def _single(dataset: Dataset, columns: Sequence[str], value: str, row: dict) -> str:
    # a search by key shows the whole row
    shown = list(row) if _identifies_row(columns, value, row) else list(columns)
    sku = row.get(SKU_COLUMN, "")
    lines = []
    for col in shown:
        cell = row.get(col, "")
        template = dataset.templates.get(col)
        if template and sku:
            lines.append(template.format(value=cell, sku=sku))
        else:
            lines.append(f"{col}: {cell}")
    return "\n".join(lines)


def _listing_column(dataset: Dataset, columns: Sequence[str]) -> str:
    first = columns[0] if columns else dataset.primary_column
    return dataset.primary_column if first == SKU_COLUMN else first


def format_results(
    dataset: Dataset,
    columns: Sequence[str],
    value: str,
    rows: Sequence[dict],
    max_listed: int = 10,
) -> str:
    if not rows:
        return f"No records found for '{value}' in {dataset.filename}."

    if len(rows) == 1:
        return _single(dataset, columns, value, rows[0])

    primary = _listing_column(dataset, columns)
    lines = [f"I found {len(rows)} records matching '{value}' in {dataset.filename}:"]
    for i, row in enumerate(rows[:max_listed], start=1):
        lines.append(f"{i}. {SKU_COLUMN}: {row.get(SKU_COLUMN, '-')}, {primary}: {row.get(primary, '-')}")
    if len(rows) > max_listed:
        lines.append(f"...and {len(rows) - max_listed} more.")
    lines.append("Which SKU did you mean? Reply with the SKU for full details.")
    return "\n".join(lines)
