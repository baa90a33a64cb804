"""Sector name normalization.

Providers label the same sector differently (``Financial Services`` vs
``Financials``) and fund categories arrive as free text. Allocation groups
by the canonical name so aliases never split one sector in two.
"""

from __future__ import annotations

UNKNOWN_SECTOR = "Other"

_ALIASES: dict[str, str] = {
    "financial services": "Financials",
    "financial": "Financials",
    "finance": "Financials",
    "banks": "Financials",
    "technology": "Technology",
    "information technology": "Technology",
    "tech": "Technology",
    "healthcare": "Healthcare",
    "health care": "Healthcare",
    "consumer cyclical": "Consumer Discretionary",
    "consumer discretionary": "Consumer Discretionary",
    "consumer defensive": "Consumer Staples",
    "consumer staples": "Consumer Staples",
    "communication services": "Communication Services",
    "telecommunications": "Communication Services",
    "basic materials": "Materials",
    "materials": "Materials",
    "industrials": "Industrials",
    "industrial": "Industrials",
    "energy": "Energy",
    "utilities": "Utilities",
    "real estate": "Real Estate",
    "reit": "Real Estate",
    "small blend": "Small Cap",
    "small value": "Small Cap",
    "small growth": "Small Cap",
    "small cap": "Small Cap",
    "commodities focused": "Commodities",
    "commodities broad basket": "Commodities",
    "commodities": "Commodities",
    "unknown": UNKNOWN_SECTOR,
    "other": UNKNOWN_SECTOR,
    "n/a": UNKNOWN_SECTOR,
}


def normalize_sector(sector: str | None) -> str:
    """Canonical name for *sector*; unrecognized names pass through trimmed."""
    if not sector or not sector.strip():
        return UNKNOWN_SECTOR
    cleaned = " ".join(sector.split())
    return _ALIASES.get(cleaned.lower(), cleaned)
