# settler/utils/constants.py
# Version: 0.1.0
# IDENTITY-PROTECTED -- DO NOT EDIT WITHOUT A KERNEL VERSION INCREMENT.
# The rationale strings below are part of the variance_id preimage. Changing a
# single character changes every downstream variance identifier and every
# summary_hash and manifest digest derived from them.
#
# Standard import pattern:
#   from settler.utils.constants import (
#       SCHEMA_VERSION,
#       MATCH_KEY_SEPARATOR,
#       ATTRIBUTE_SELECTOR_PREFIX,
#       RATIONALE_MISSING_RIGHT,
#       RATIONALE_MISSING_LEFT,
#       RATIONALE_AMOUNT_MISMATCH,
#       RATIONALE_FIELD_MISMATCH_TEMPLATE,
#       DETERMINISTIC_STATEMENT,
#   )


# ---------------------------------------------------------------------------
# WIRE FORMAT
# ---------------------------------------------------------------------------

SCHEMA_VERSION: str = "v1"

# Joins resolved selector values into a match key. Chosen to be unlikely to
# appear in identifiers; does not affect correctness, only collision resistance.
MATCH_KEY_SEPARATOR: str = "|"

# Joins the five fields of the variance identity preimage.
VARIANCE_ID_SEPARATOR: str = "|"

ATTRIBUTE_SELECTOR_PREFIX: str = "attributes."

# Signed 64-bit bounds for amount_minor_units. Values outside this range are
# rejected so that every implementation of the v1 format sees the same numbers.
MIN_AMOUNT_MINOR_UNITS: int = -(2 ** 63)
MAX_AMOUNT_MINOR_UNITS: int = 2 ** 63 - 1


# ---------------------------------------------------------------------------
# VARIANCE RATIONALES (hashed -- see header)
# ---------------------------------------------------------------------------

RATIONALE_MISSING_RIGHT: str = (
    "No matching record on right side for deterministic match key."
)
RATIONALE_MISSING_LEFT: str = (
    "No matching record on left side for deterministic match key."
)
RATIONALE_AMOUNT_MISMATCH: str = (
    "Amount delta exceeds tolerance after deterministic rounding."
)
# Formatted with the wire selector string, e.g. "attributes.invoice".
RATIONALE_FIELD_MISMATCH_TEMPLATE: str = "Field '{selector}' differs after canonicalization."


# ---------------------------------------------------------------------------
# EVIDENCE MANIFEST
# ---------------------------------------------------------------------------

DETERMINISTIC_STATEMENT: str = (
    "Deterministic output is achieved by stable ordering, explicit rounding, "
    "and explicit timezone handling; the kernel surfaces discrepancies and "
    "does not modify input data."
)

DEFAULT_LEFT_FILE_NAME:     str = "left.json"
DEFAULT_RIGHT_FILE_NAME:    str = "right.json"
DEFAULT_RULESET_FILE_NAME:  str = "ruleset.json"
DEFAULT_REPORT_FILE_NAME:   str = "variance.json"
DEFAULT_MANIFEST_FILE_NAME: str = "manifest.json"
DEFAULT_AUDIT_LOG_FILE_NAME: str = "audit_log.json"
DEFAULT_FAILURE_FILE_NAME:  str = "failure_record.json"
