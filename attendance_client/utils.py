"""Small helpers shared across the attendance client."""

from decimal import ROUND_HALF_UP, Decimal
from typing import Optional


def round_half_up(value: float, digits: int = 0) -> float:
	"""Round the way people expect (2.5 -> 3), not banker's rounding."""
	quantum = Decimal(1).scaleb(-digits)
	return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def mask_token(token: Optional[str]) -> str:
	"""Shorten a bearer token for log output."""
	if not token:
		return "None"
	return f"{token[:8]}..." if len(token) > 8 else "***"
