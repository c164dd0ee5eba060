"""
Date display helpers.
"""
from datetime import date
from typing import Optional

PERSIAN_DIGITS = str.maketrans('0123456789', '۰۱۲۳۴۵۶۷۸۹')


def to_persian_digits(text: str) -> str:
    return text.translate(PERSIAN_DIGITS)


def date_label(day: Optional[date] = None, fmt: str = '%Y/%m/%d', digits: str = 'persian') -> str:
    """
    Format a publication date for display.

    Args:
        day: Date to format; today if omitted
        fmt: strftime format
        digits: 'persian' for Eastern Arabic-Indic digits, anything else for ASCII

    Returns:
        Formatted date string
    """
    label = (day or date.today()).strftime(fmt)
    if digits == 'persian':
        return to_persian_digits(label)
    return label
