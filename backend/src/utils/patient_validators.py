"""
Patient field normalization and validation utilities.

Provides centralized normalization logic for patient identifiers, names and
birth dates so that verification compares like with like everywhere.
"""

import re
from typing import Optional

from core.constants import MAX_PATIENT_ID_LENGTH, MAX_PATIENT_NAME_LENGTH

# Half-width and full-width (U+3000) whitespace, plus anything else str.split() treats as space
_WHITESPACE_RE = re.compile(r"[\s　]+")
_NON_DIGIT_RE = re.compile(r"\D")

# Full-width digits ０-９ map onto ASCII 0-9
_FULLWIDTH_DIGITS = str.maketrans("０１２３４５６７８９", "0123456789")


def normalize_name(name: Optional[str]) -> str:
    """
    Remove all whitespace from a name for comparison.

    "山田 太郎", "山田太郎" and "山田　太郎" (full-width space) all normalize to
    "山田太郎". Normalizing an already normalized name returns it unchanged.

    Args:
        name: Name as typed or stored (None is treated as empty)

    Returns:
        Name with every whitespace character removed
    """
    return _WHITESPACE_RE.sub("", name or "")


def normalize_birth_date(value: Optional[str]) -> str:
    """
    Reduce a birth date to its digits for comparison.

    "1990-04-01", "1990/04/01" and "19900401" all normalize to "19900401".

    Args:
        value: Birth date as typed or stored (None is treated as empty)

    Returns:
        Digits only
    """
    return _NON_DIGIT_RE.sub("", (value or "").translate(_FULLWIDTH_DIGITS))


def normalize_patient_id(value: str) -> str:
    """
    Normalize a clinic patient number typed on a phone keyboard.

    Folds full-width digits to ASCII and trims surrounding whitespace.

    Args:
        value: Patient number as typed

    Returns:
        Normalized patient number

    Raises:
        ValueError: If the result is empty or too long
    """
    v = (value or "").translate(_FULLWIDTH_DIGITS).strip()
    if not v:
        raise ValueError('診察券番号を入力してください')
    if len(v) > MAX_PATIENT_ID_LENGTH:
        raise ValueError('診察券番号が長すぎます')
    return v


def validate_patient_name(value: str) -> str:
    """
    Validate a display name for storage.

    Args:
        value: Name as typed

    Returns:
        Trimmed name

    Raises:
        ValueError: If the name is empty, too long or contains markup characters
    """
    v = (value or "").strip()
    if not v:
        raise ValueError('氏名を入力してください')
    if len(v) > MAX_PATIENT_NAME_LENGTH:
        raise ValueError('氏名が長すぎます')
    # Basic XSS prevention
    if '<' in v or '>' in v:
        raise ValueError('氏名に使用できない文字が含まれています')
    return v


def validate_birth_date_field(value: Optional[str]) -> Optional[str]:
    """
    Validate and canonicalize a birth date to YYYY-MM-DD.

    Args:
        value: Birth date string (YYYY-MM-DD, YYYY/MM/DD or YYYYMMDD) or None

    Returns:
        Canonical "YYYY-MM-DD" string, or None if not provided

    Raises:
        ValueError: If the value is not a real calendar date
    """
    if value is None or not value.strip():
        return None
    digits = normalize_birth_date(value)
    if len(digits) != 8:
        raise ValueError('生年月日は YYYY-MM-DD 形式で入力してください')
    from utils.datetime_utils import parse_date_string
    try:
        return parse_date_string(f"{digits[:4]}-{digits[4:6]}-{digits[6:]}").isoformat()
    except ValueError:
        raise ValueError('生年月日は YYYY-MM-DD 形式で入力してください')
