"""
Loader for customer CSV exports.

Reads a local CSV file into raw rows (one dict per line, all values as
strings, empty cells as None). Validation happens in schemas.py.
"""

from pathlib import Path
from typing import Any, Dict, List, Union

import pandas as pd

from .log_config import get_logger

logger = get_logger(__name__)

FALLBACK_ENCODINGS = ("latin-1",)


class FetchError(Exception):
    """Error while reading the customer file."""
    pass


class UnsupportedFormatError(FetchError):
    """File format not supported."""
    pass


def _read_csv(path: Union[str, Path], encoding: str = "utf-8") -> pd.DataFrame:
    """
    Read a CSV file as strings, trying the given encoding first.

    Raises:
        FetchError: If no encoding can decode the file
    """
    encodings = [encoding] + [enc for enc in FALLBACK_ENCODINGS if enc != encoding]
    last_error = None

    for enc in encodings:
        try:
            return pd.read_csv(path, encoding=enc, dtype=str, keep_default_na=False, na_values=[""])
        except UnicodeDecodeError as e:
            logger.debug("CSV decode failed, trying next encoding", encoding=enc)
            last_error = e

    raise FetchError(f"Could not decode {path} with encodings {encodings}") from last_error


def fetch_rows(path: Union[str, Path], encoding: str = "utf-8") -> List[Dict[str, Any]]:
    """
    Load raw customer rows from a CSV file.

    Args:
        path: Path to a .csv file
        encoding: Encoding tried before the fallbacks

    Returns:
        List of row dicts keyed by column header

    Raises:
        UnsupportedFormatError: If the file is not a .csv file
        FetchError: If the file is missing or cannot be parsed
    """
    path = Path(path)

    if path.suffix.lower() != ".csv":
        raise UnsupportedFormatError(f"Unsupported file format: {path.name}. Expected .csv")

    if not path.is_file():
        raise FetchError(f"File not found: {path}")

    logger.debug("Reading customer file", path=str(path))

    try:
        df = _read_csv(path, encoding=encoding)
    except pd.errors.ParserError as e:
        raise FetchError(f"CSV parsing failed: {e}") from e
    except pd.errors.EmptyDataError:
        return []

    records = df.astype(object).where(pd.notna(df), None).to_dict(orient="records")
    logger.debug("Read records from file", path=str(path), records=len(records))
    return records
