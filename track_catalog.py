"""Shared track catalog configuration.

The tracks are static offerings: the checkout flow reads them but never
changes them. Prices are whole rupees.
"""
from __future__ import annotations

from typing import Any, Dict, Optional

TRACKS: Dict[str, Dict[str, Any]] = {
    "brand-management": {
        "title": "Brand Management Immersion",
        "duration": "8 Weeks",
        "price": 14999,
    },
    "growth-marketing": {
        "title": "Growth Marketing Immersion",
        "duration": "8 Weeks",
        "price": 14999,
    },
    "product-management": {
        "title": "Product Management Immersion",
        "duration": "12 Weeks",
        "price": 24999,
    },
    "founders-office": {
        "title": "Founder's Office Immersion",
        "duration": "12 Weeks",
        "price": 29999,
    },
}

CURRENT_STATUSES = ("Student", "Fresher", "Professional", "Entrepreneur")


def get_track(key: str | None) -> Optional[Dict[str, Any]]:
    """Return a copy of the track entry (with its key) or None."""
    if not key or key not in TRACKS:
        return None
    data = dict(TRACKS[key])
    data["key"] = key
    return data


def format_price(amount: Any) -> str:
    """Format a rupee amount for display, e.g. 14999 -> '₹14,999'."""
    try:
        value = int(amount)
    except (TypeError, ValueError):
        return f"₹{amount}"
    return f"₹{value:,}"


__all__ = [
    "TRACKS",
    "CURRENT_STATUSES",
    "get_track",
    "format_price",
]
