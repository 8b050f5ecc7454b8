"""
ISBN helpers for scraped catalog data

For isbn related info, see https://isbn-information.com/
"""
from typing import Optional

ISBN13_WEIGHTS = [1, 3] * 6 + [1]
ISBN10_WEIGHTS = [10, 9, 8, 7, 6, 5, 4, 3, 2, 1]
VALID_PREFIX_ELEMENTS = ("978", "979")
VALIDATION_ERRORS = {
    "length": "Input is not of the correct length.",
    "invalid": "Input has invalid characters.",
    "13X": "ISBN 13 has invalid 'X' character",
    "prefix": "ISBN 13 starts with invalid Prefix Element {}",
    }


def strip_isbn(isbn: str) -> str:
    return isbn.replace("-", "").replace(" ", "").strip().upper()


def is_valid(isbn: str) -> bool:
    """
    Validates an ISBN 10 or 13

    Parameters
    ----------
    isbn : str
        An ISBN code (10 or 13), hyphens and spaces allowed

    Returns
    -------
    bool
        True if the check digit matches.

    Raises
    ------
    ValueError
        If isbn has invalid characters or is not of proper length

    """
    stripped = strip_isbn(isbn)
    if len(stripped) not in (10, 13):
        raise ValueError(VALIDATION_ERRORS["length"])
    if any(char not in "0123456789X" for char in stripped):
        raise ValueError(VALIDATION_ERRORS["invalid"])
    if len(stripped) == 13:
        if "X" in stripped:
            raise ValueError(VALIDATION_ERRORS["13X"])
        if stripped[:3] not in VALID_PREFIX_ELEMENTS:
            raise ValueError(VALIDATION_ERRORS["prefix"].format(stripped[:3]))
        return sum(w * int(c) for w, c in zip(ISBN13_WEIGHTS, stripped)) % 10 == 0
    if "X" in stripped[:-1]:
        raise ValueError(VALIDATION_ERRORS["invalid"])
    digits = [10 if c == "X" else int(c) for c in stripped]
    return sum(w * d for w, d in zip(ISBN10_WEIGHTS, digits)) % 11 == 0


def normalize_isbn(isbn: str) -> Optional[str]:
    """Return the bare ISBN if it is well formed and valid, else None."""
    try:
        if is_valid(isbn):
            return strip_isbn(isbn)
    except ValueError:
        pass
    return None
