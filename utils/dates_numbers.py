"""
Utilities for parsing and normalizing dates, numbers, and text
"""

import pandas as pd
import numpy as np
import re
from datetime import datetime, date
from typing import Any, Optional, Union
import logging

logger = logging.getLogger(__name__)

ISO_DATE_FORMAT = '%Y-%m-%d'
ARABIC_DIGITS = str.maketrans('٠١٢٣٤٥٦٧٨٩٫٬', '0123456789.,')


def parse_date(date_value: Union[str, datetime, date, None], dayfirst: bool = False) -> Optional[date]:
    """
    Parse date from various formats

    Args:
        date_value: Date value to parse
        dayfirst: Whether to interpret the first value as day (dd-mm-yyyy format)

    Returns:
        Parsed date or None if parsing fails
    """
    if date_value is None:
        return None

    if isinstance(date_value, datetime):
        return date_value.date()

    if isinstance(date_value, date):
        return date_value

    if isinstance(date_value, str):
        date_str = date_value.strip()

        if not date_str:
            return None

        parsed = pd.to_datetime(date_str, dayfirst=dayfirst, errors='coerce')
        if pd.notna(parsed):
            return parsed.date()

    logger.warning(f"Could not parse date: {date_value}")
    return None


def format_iso_date(date_value: Union[str, datetime, date, None]) -> Optional[str]:
    """Format a date as YYYY-MM-DD, the format documents store dates in"""
    parsed = parse_date(date_value)
    if parsed is None:
        return None
    return parsed.strftime(ISO_DATE_FORMAT)


def normalize_number(value: Any) -> Optional[float]:
    """
    Normalize numeric values, handling commas, percentages, and currency symbols

    Args:
        value: Value to normalize

    Returns:
        Normalized float value or None if parsing fails
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, (int, float, np.number)):
        result = float(value)
        return result if np.isfinite(result) else None

    if isinstance(value, str):
        clean_value = value.strip()

        if not clean_value:
            return None

        # Remove currency symbols and spaces
        clean_value = re.sub(r'(ر\.س|[$€£¥\s])', '', clean_value)

        # Arabic-Indic digits and separators
        clean_value = clean_value.translate(ARABIC_DIGITS)

        if clean_value.endswith('%'):
            clean_value = clean_value[:-1]

        # Thousands separators
        clean_value = clean_value.replace(',', '')

        try:
            result = float(clean_value)
        except ValueError:
            logger.debug(f"Could not parse number: {value!r}")
            return None

        return result if np.isfinite(result) else None

    logger.debug(f"Unexpected value type for number: {type(value)}")
    return None


def to_number(value: Any, default: float = 0.0) -> float:
    """Coerce a value to float, falling back to default for missing or bad input"""
    result = normalize_number(value)
    return default if result is None else result


def normalize_text(text: Any) -> str:
    """
    Normalize text by trimming and removing extra spaces

    Args:
        text: Text to normalize

    Returns:
        Normalized text, empty string for missing values
    """
    if text is None:
        return ""

    clean_text = str(text).strip()
    return re.sub(r'\s+', ' ', clean_text)


def contains_text(haystack: Any, needle: Any) -> bool:
    """Case-insensitive substring match; an empty needle always matches"""
    needle_text = normalize_text(needle).lower()
    if not needle_text:
        return True
    return needle_text in normalize_text(haystack).lower()


def validate_date_range(start_date: Optional[date], end_date: Optional[date]) -> bool:
    """
    Validate that date range is logical

    An open-ended range (either bound missing) is valid.
    """
    if start_date is None or end_date is None:
        return True

    return start_date <= end_date

