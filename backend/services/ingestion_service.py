"""Spreadsheet and CSV ingestion into flat records."""

from __future__ import annotations

import io
import zipfile
from pathlib import PurePath
from typing import Any, Optional

import pandas as pd

from backend.utils.config import Settings, get_settings
from backend.utils.logger import get_logger


logger = get_logger(__name__)


class TabularIngestionError(Exception):
    """Raised when an uploaded file cannot be turned into records."""


def _to_scalar(value: Any) -> Any:
    if value is None:
        return None
    if hasattr(value, "item"):
        value = value.item()
    if isinstance(value, float) and pd.isna(value):
        return None
    return value


class TabularIngestionService:
    """Reads the first sheet of an upload into an ordered list of row mappings."""

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self._settings = settings or get_settings()

    def _read_frame(self, suffix: str, content: bytes) -> pd.DataFrame:
        # Cells stay as written; typing happens at each read site.
        buffer = io.BytesIO(content)
        if suffix == ".csv":
            return pd.read_csv(
                buffer,
                dtype=str,
                keep_default_na=False,
                na_values=[""],
                skipinitialspace=True,
            )
        return pd.read_excel(
            buffer,
            sheet_name=0,
            dtype=object,
            keep_default_na=False,
            na_values=[""],
        )

    def parse(self, filename: str, content: bytes) -> list[dict[str, Any]]:
        suffix = PurePath(filename or "").suffix.lower()
        if suffix not in self._settings.upload_extensions:
            raise TabularIngestionError(
                f"Unsupported file type {suffix or '(none)'}; "
                f"expected one of {', '.join(self._settings.upload_extensions)}"
            )
        if not content:
            raise TabularIngestionError(f"{filename} is empty")

        try:
            frame = self._read_frame(suffix, content)
        except pd.errors.EmptyDataError as exc:
            raise TabularIngestionError(f"{filename} has no columns") from exc
        except (ValueError, zipfile.BadZipFile, UnicodeDecodeError) as exc:
            raise TabularIngestionError(f"Failed to read {filename}: {exc}") from exc

        if len(frame) > self._settings.max_upload_rows:
            raise TabularIngestionError(
                f"{filename} has {len(frame)} rows; the limit is {self._settings.max_upload_rows}"
            )

        frame.columns = [str(column).strip() for column in frame.columns]
        records = [
            {column: _to_scalar(value) for column, value in row.items()}
            for row in frame.astype(object).to_dict(orient="records")
        ]
        logger.info("Parsed %d rows from %s", len(records), filename)
        return records
