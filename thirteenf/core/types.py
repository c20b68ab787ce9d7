"""
Shared type aliases and type definitions.

Centralizes commonly used types for consistency across modules.
"""

from typing import Literal, TypeAlias

# Form types handled by the pipeline
FormType: TypeAlias = Literal["13F-HR", "13F-HR/A"]

THIRTEEN_F_FORMS: frozenset[str] = frozenset({"13F-HR", "13F-HR/A"})

# Quarter-over-quarter classification of a position
ChangeType: TypeAlias = Literal["NEW", "INCREASED", "DECREASED", "UNCHANGED", "EXITED"]

# CIK is always a 10-digit zero-padded string
CIK: TypeAlias = str

# Accession number format: XXXXXXXXXX-YY-NNNNNN
AccessionNumber: TypeAlias = str

# Nine-character alphanumeric security identifier, upper case
CUSIP: TypeAlias = str

# Quarter label, e.g. "24Q3"
QuarterLabel: TypeAlias = str

UNKNOWN_SECTOR = "Unknown"
