"""
Rider earning rules.

A rider keeps 80% of the delivery cost when the parcel stays inside one
district and 30% when it crosses districts. Earnings are whole currency
units, rounded half up.
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

SAME_DISTRICT_RATE = Decimal("0.8")
CROSS_DISTRICT_RATE = Decimal("0.3")


def is_same_district(sender_district: Optional[str], receiver_district: Optional[str]) -> bool:
    """Case-insensitive district comparison."""
    return (sender_district or "").lower() == (receiver_district or "").lower()


def earning_rate(sender_district: Optional[str], receiver_district: Optional[str]) -> Decimal:
    if is_same_district(sender_district, receiver_district):
        return SAME_DISTRICT_RATE
    return CROSS_DISTRICT_RATE


def calculate_rider_earning(cost: float, sender_district: Optional[str], receiver_district: Optional[str]) -> int:
    """
    Compute the rider's share of a parcel's cost.
    
    Example:
        >>> calculate_rider_earning(1000, "Dhaka", "dhaka")
        800
        >>> calculate_rider_earning(1000, "Dhaka", "Khulna")
        300
    """
    amount = Decimal(str(cost)) * earning_rate(sender_district, receiver_district)
    return int(amount.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
