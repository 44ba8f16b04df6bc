# settler/kernel/variance_builder.py
# Variance Builder -- the only constructor path for Variance records.
#
# variance_id = SHA-256( type | left_id | right_id | delta | rationale )
#   '|'       VARIANCE_ID_SEPARATOR
#   left_id   empty string when absent (same for right_id)
#   delta     base-10 integer, leading '-' when negative
#   encoding  UTF-8, digest rendered as 64 lowercase hex characters
#
# The identifier is a pure function of the observable content. Identical
# causes always produce identical ids across runs and across independent
# implementations, provided the rationale text is reproduced verbatim.

from __future__ import annotations

from hashlib import sha256
from typing import Optional

from settler.utils.constants import VARIANCE_ID_SEPARATOR
from .domain import Severity, Variance, VarianceType


def variance_id_preimage(
    variance_type:            VarianceType,
    left_record_id:           Optional[str],
    right_record_id:          Optional[str],
    amount_delta_minor_units: int,
    rationale:                str,
) -> str:
    """Return the exact string hashed into variance_id."""
    return VARIANCE_ID_SEPARATOR.join(
        (
            VarianceType(variance_type).value,
            left_record_id if left_record_id is not None else "",
            right_record_id if right_record_id is not None else "",
            str(amount_delta_minor_units),
            rationale,
        )
    )


def build_variance(
    variance_type:            VarianceType,
    severity:                 Severity,
    left_record_id:           Optional[str],
    right_record_id:          Optional[str],
    amount_delta_minor_units: int,
    rationale:                str,
) -> Variance:
    """
    Construct a Variance with its content-derived variance_id.

    Raises KernelValidationError (from Variance) if both record ids are
    absent or any field has the wrong type.
    """
    preimage = variance_id_preimage(
        variance_type,
        left_record_id,
        right_record_id,
        amount_delta_minor_units,
        rationale,
    )
    return Variance(
        variance_id=sha256(preimage.encode("utf-8")).hexdigest(),
        variance_type=VarianceType(variance_type),
        severity=Severity(severity),
        left_record_id=left_record_id,
        right_record_id=right_record_id,
        amount_delta_minor_units=amount_delta_minor_units,
        rationale=rationale,
    )
