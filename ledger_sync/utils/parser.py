"""Decode order files into batches of raw rows.

CSV input is read lazily, one chunk of ``batch_size`` rows at a time, so
memory stays bounded by the batch size however large the file is.

Spreadsheets are loaded whole: the formats do not support incremental row
access in general. This is an accepted trade-off because spreadsheet
exports are orders of magnitude smaller than the CSV dumps; very large
exports should be converted to CSV before upload.
"""
import logging
import os
import re
import threading
from typing import Any, Dict, Iterable, Iterator, List

import pandas as pd

from ledger_sync.errors import FileDecodeError, UnsupportedFileError

logger = logging.getLogger(__name__)

CSV_EXTENSIONS = {".csv", ".txt"}
EXCEL_EXTENSIONS = {".xlsx", ".xls"}
ALLOWED_EXTENSIONS = CSV_EXTENSIONS | EXCEL_EXTENSIONS

RawRow = Dict[str, Any]

_WHITESPACE = re.compile(r"\s+")


def clean_header(name: Any) -> str:
    """Trim a column name and collapse inner whitespace runs to one space."""
    return _WHITESPACE.sub(" ", str(name).strip())


def file_kind(filename: str) -> str:
    ext = os.path.splitext(filename)[1].lower()
    if ext in CSV_EXTENSIONS:
        return "csv"
    if ext in EXCEL_EXTENSIONS:
        return "excel"
    raise UnsupportedFileError(
        f"Unsupported file type '{ext or filename}'. Only CSV, XLS and XLSX files are allowed"
    )


def _merge_duplicate_columns(df: pd.DataFrame) -> pd.DataFrame:
    # Headers that only differ in spacing clean to the same name; keep the
    # first non-blank value per row across them.
    merged = {}
    for name in df.columns.unique():
        block = df.loc[:, df.columns == name]
        if block.shape[1] == 1:
            merged[name] = block.iloc[:, 0]
        else:
            merged[name] = (
                block.replace(r"^\s*$", pd.NA, regex=True)
                .bfill(axis=1)
                .iloc[:, 0]
                .fillna("")
            )
    return pd.DataFrame(merged, index=df.index)


def _frame_rows(df: pd.DataFrame) -> List[RawRow]:
    df = df.where(pd.notnull(df), "")
    df.columns = [clean_header(col) for col in df.columns]
    if df.columns.has_duplicates:
        df = _merge_duplicate_columns(df)
    return df.to_dict(orient="records")


class CsvBatchReader:
    """Iterator over ``batch_size``-row batches of a CSV file.

    Opening the reader parses the header, so empty or unreadable files are
    rejected before any batch is produced. The next chunk is only decoded
    when the consumer asks for it.

    Rows with more fields than the header (typically an unquoted comma in
    the last column) are kept: the overflow is folded back into the last
    column. ``close`` waits for a chunk being decoded in another thread.
    """

    def __init__(self, path: str, batch_size: int, encoding: str = "utf-8-sig"):
        self.path = path
        self.batch_size = batch_size
        self.folded_rows = 0
        self._lock = threading.Lock()
        self._closed = False
        options = dict(dtype=str, keep_default_na=False, encoding=encoding, encoding_errors="replace")
        try:
            self.width = len(pd.read_csv(path, nrows=0, **options).columns)
            self._reader = pd.read_csv(
                path,
                chunksize=batch_size,
                engine="python",
                on_bad_lines=self._fold_extra_fields,
                **options,
            )
        except (pd.errors.EmptyDataError, pd.errors.ParserError, OSError) as e:
            raise FileDecodeError(f"Could not read CSV file {os.path.basename(path)}: {e}") from e

    def _fold_extra_fields(self, fields: List[str]) -> List[str]:
        self.folded_rows += 1
        logger.warning(
            "CSV row has extra fields, folding them into the last column",
            extra={"file_name": os.path.basename(self.path), "fields": len(fields), "expected": self.width},
        )
        return fields[: self.width - 1] + [",".join(fields[self.width - 1:])]

    def __iter__(self) -> Iterator[List[RawRow]]:
        return self

    def __next__(self) -> List[RawRow]:
        with self._lock:
            if self._closed:
                raise StopIteration
            try:
                chunk = next(self._reader)
            except (pd.errors.ParserError, UnicodeDecodeError, OSError) as e:
                raise FileDecodeError(f"CSV decoding failed in {os.path.basename(self.path)}: {e}") from e
        return _frame_rows(chunk)

    def close(self) -> None:
        with self._lock:
            self._closed = True
            self._reader.close()


def pick_sheet(sheet_names: List[str]) -> str:
    """Prefer the outstanding-orders sheet, else the first one."""
    for name in sheet_names:
        if "out" in str(name).lower():
            return name
    return sheet_names[0]


def read_excel_rows(path: str) -> List[RawRow]:
    try:
        with pd.ExcelFile(path) as workbook:
            if not workbook.sheet_names:
                raise FileDecodeError(f"Workbook {os.path.basename(path)} has no sheets")
            sheet = pick_sheet(workbook.sheet_names)
            df = workbook.parse(sheet, dtype=str, keep_default_na=False)
    except FileDecodeError:
        raise
    except Exception as e:
        # pandas / openpyxl / xlrd raise a wide range of types for corrupt files
        raise FileDecodeError(f"Could not read spreadsheet {os.path.basename(path)}: {e}") from e
    return _frame_rows(df)


def iter_row_batches(rows: Iterable[RawRow], batch_size: int) -> Iterator[List[RawRow]]:
    """Group any row iterable into lists of at most ``batch_size`` rows.

    Pulls from ``rows`` only while filling the current batch, so a lazy
    source is never read more than one batch ahead of its consumer.
    """
    batch: List[RawRow] = []
    for row in rows:
        batch.append({clean_header(key): value for key, value in row.items()})
        if len(batch) >= batch_size:
            yield batch
            batch = []
    if batch:
        yield batch
