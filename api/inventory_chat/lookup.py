import io
import logging
from typing import Sequence

import pandas as pd
from azure.core.exceptions import ResourceNotFoundError

from .errors import CsvParseError, DatasetNotFoundError, EmptyDatasetError, MissingColumnError

logger = logging.getLogger(__name__)


def _decode(data: bytes) -> str:
    try:
        return data.decode("utf-8-sig")
    except UnicodeDecodeError:
        return data.decode("latin-1")


def parse_csv(text: str, filename: str) -> pd.DataFrame:
    """Header-delimited CSV to a frame of stripped strings (no NaN conversion)."""
    try:
        df = pd.read_csv(
            io.StringIO(text),
            dtype=str,
            keep_default_na=False,
            skipinitialspace=True,
        )
    except (pd.errors.ParserError, pd.errors.EmptyDataError) as e:
        raise CsvParseError(f"CSV parsing failed for {filename}: {e}") from e
    df = df.fillna("")
    df.columns = [str(c).strip() for c in df.columns]
    for col in df.columns:
        df[col] = df[col].str.strip()
    return df


def matched_columns(headers: Sequence[str], columns: Sequence[str], filename: str) -> dict[str, str]:
    """Map file header -> requested column; exact spelling first, then ignoring case."""
    by_lower = {h.lower(): h for h in headers}
    present = {}
    for col in columns:
        header = col if col in headers else by_lower.get(col.lower())
        if header and header not in present:
            present[header] = col
    if not present:
        raise MissingColumnError(
            f"None of the columns {', '.join(repr(c) for c in columns)} found in {filename}."
        )
    return present


def filter_rows(df: pd.DataFrame, columns: Sequence[str], value: str) -> list[dict]:
    """Rows where any of ``columns`` contains ``value``, ignoring case."""
    if df.empty:
        return []
    needle = value.lower()
    mask = pd.Series(False, index=df.index)
    for col in columns:
        mask |= df[col].str.lower().str.contains(needle, regex=False).astype(bool)
    return df[mask].to_dict(orient="records")


class DatasetStore:
    def __init__(self, container_client):
        self._container = container_client

    async def _download(self, filename: str) -> bytes:
        blob = self._container.get_blob_client(filename)
        logger.info("Checking if %s exists in blob storage", filename)
        if not await blob.exists():
            raise DatasetNotFoundError(f"File {filename} not found.")
        try:
            stream = await blob.download_blob(max_concurrency=2)
            return await stream.readall()
        except ResourceNotFoundError:
            raise DatasetNotFoundError(f"File {filename} not found.") from None

    async def fetch_rows(self, filename: str, columns: Sequence[str], value: str) -> tuple[list[str], list[dict]]:
        """Download ``filename`` and return (columns searched, matching rows)."""
        text = _decode(await self._download(filename))
        if not text.strip():
            raise EmptyDatasetError(f"File {filename} is empty.")

        df = parse_csv(text, filename)
        renames = matched_columns(list(df.columns), columns, filename)
        df = df.rename(columns=renames)
        present = list(renames.values())
        rows = filter_rows(df, present, value)
        logger.info("Found %d matching records in %s (%d rows scanned)", len(rows), filename, len(df))
        return present, rows
