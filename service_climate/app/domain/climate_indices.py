"""
Climate index codes served by the API.

The codes double as column names on ``climate_data``; anything used to
select a column must pass :func:`validate_index_code` first.
"""

from typing import Tuple

from shared.errors import ValidationError


PRECIPITATION_INDICES: Tuple[str, ...] = (
    "cdd", "cwd", "prcptot", "r10mm", "r20mm", "r95p", "r99p",
    "r95ptot", "r99ptot", "rx1day", "rx5day", "sdii",
)

TEMPERATURE_INDICES: Tuple[str, ...] = (
    "fd", "tn10p", "tn90p", "tnlt2", "tnn", "tnx",
    "tx10p", "tx90p", "txge30", "txgt50p", "txn", "txx",
)

DURATION_INDICES: Tuple[str, ...] = ("csdi", "wsdi", "txd_tnd")

CLIMATE_INDICES: Tuple[str, ...] = PRECIPITATION_INDICES + TEMPERATURE_INDICES + DURATION_INDICES

# Warmed first: drought, heatwaves, hot days, rainfall totals and extremes, frost, cold spells.
PRIORITY_INDICES: Tuple[str, ...] = (
    "cdd", "wsdi", "txge30", "prcptot", "rx1day", "fd", "r10mm", "csdi",
)

_VALID_CODES = frozenset(CLIMATE_INDICES)


def is_valid_index_code(code: str) -> bool:
    return code in _VALID_CODES


def validate_index_code(code: str) -> str:
    """Return ``code`` when it is a known index column, else raise ValidationError."""
    if not is_valid_index_code(code):
        raise ValidationError(
            "Invalid climate index",
            details={"index": code, "valid_indices": list(CLIMATE_INDICES)},
        )
    return code
