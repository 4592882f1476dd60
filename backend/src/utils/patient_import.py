"""
Parsing for the staff bulk patient registration format.

Each line is ``patientId, name``: comma separated, no header row, no quoting
or escaping, surrounding whitespace ignored. Blank lines are ignored. Lines
that do not have exactly two non-empty fields, or whose patient number or
name fails validation, are skipped. Patient numbers are normalized the same
way as in lookups, so full-width digits are stored as ASCII.
"""

from dataclasses import dataclass, field
from typing import Iterable, List, Tuple, Union

from utils.patient_validators import normalize_patient_id, validate_patient_name


@dataclass
class ParsedImport:
    """Result of parsing an import text."""

    rows: List[Tuple[str, str]] = field(default_factory=list)
    """Valid (patient_id, name) pairs in input order."""

    skipped_lines: List[int] = field(default_factory=list)
    """1-based line numbers of malformed or invalid, non-blank lines."""


def parse_patient_import(text: Union[str, Iterable[str]]) -> ParsedImport:
    """
    Parse bulk registration text into (patient_id, name) pairs.

    Args:
        text: Whole file contents or an iterable of lines

    Returns:
        ParsedImport with the valid rows and the skipped line numbers
    """
    lines = text.splitlines() if isinstance(text, str) else text
    result = ParsedImport()

    for line_number, raw_line in enumerate(lines, start=1):
        line = raw_line.strip()
        if not line:
            continue

        parts = [part.strip() for part in line.split(",")]
        if len(parts) != 2 or not parts[0] or not parts[1]:
            result.skipped_lines.append(line_number)
            continue

        try:
            patient_id = normalize_patient_id(parts[0])
            name = validate_patient_name(parts[1])
        except ValueError:
            result.skipped_lines.append(line_number)
            continue

        result.rows.append((patient_id, name))

    return result
