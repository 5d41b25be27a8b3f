"""Progress extraction from the lesson progress bar's inline style."""

import re
from decimal import Decimal, InvalidOperation
from typing import Optional

WIDTH_PERCENT_PATTERN = re.compile(
    r"width\s*:?\s*(\d+(?:\.\d+)?)\s*%",
    re.IGNORECASE,
)


def extract_width_percentage(style: Optional[str]) -> Optional[float]:
    """
    Parse ``width: NN%`` out of a style string.

    Returns the first width percentage found, or None when the input is
    empty, carries no width percentage, or the value falls outside
    [0, 100].

    >>> extract_width_percentage("height: 4px; width: 37.5%;")
    37.5
    >>> extract_width_percentage("margin: 3px") is None
    True
    """
    if not style:
        return None

    match = WIDTH_PERCENT_PATTERN.search(style)
    if not match:
        return None

    try:
        value = Decimal(match.group(1))
    except InvalidOperation:
        return None

    if value < 0 or value > 100:
        return None
    return float(value)
