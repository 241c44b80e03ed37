"""
Construction trade knowledge base.

Each entry describes which trades must finish before a trade can start,
which trades cannot share the site with it, how long its material needs to
cure or dry before follow-on work, and whether it is weather sensitive or
gated by an inspection.
"""

from typing import Dict, List, Optional


class TradeDependency:
    def __init__(
        self,
        trade: str,
        depends_on: Optional[List[str]] = None,
        cannot_overlap_with: Optional[List[str]] = None,
        minimum_days_after: int = 0,
        weather_sensitive: bool = False,
        requires_inspection: bool = False,
    ):
        self.trade = trade
        self.depends_on = list(depends_on or [])
        self.cannot_overlap_with = list(cannot_overlap_with or [])
        # Curing or drying time before dependent trades may start
        self.minimum_days_after = minimum_days_after
        self.weather_sensitive = weather_sensitive
        self.requires_inspection = requires_inspection

    def __repr__(self):
        return f"TradeDependency({self.trade!r}, depends_on={self.depends_on!r})"


TRADE_DEPENDENCIES: Dict[str, TradeDependency] = {
    entry.trade: entry
    for entry in [
        TradeDependency(
            "foundation",
            depends_on=["demolition", "site_prep"],
            cannot_overlap_with=["framing", "electrical", "plumbing"],
            minimum_days_after=7,
            weather_sensitive=True,
            requires_inspection=True,
        ),
        TradeDependency(
            "framing",
            depends_on=["foundation"],
            cannot_overlap_with=["roofing", "siding"],
            weather_sensitive=True,
            requires_inspection=True,
        ),
        TradeDependency(
            "roofing",
            depends_on=["framing"],
            cannot_overlap_with=["electrical", "plumbing", "hvac"],
            weather_sensitive=True,
        ),
        TradeDependency(
            "electrical",
            depends_on=["framing"],
            cannot_overlap_with=["insulation", "drywall"],
            requires_inspection=True,
        ),
        TradeDependency(
            "plumbing",
            depends_on=["framing"],
            cannot_overlap_with=["insulation", "drywall"],
            requires_inspection=True,
        ),
        TradeDependency(
            "hvac",
            depends_on=["framing", "roofing"],
            cannot_overlap_with=["insulation", "drywall"],
            requires_inspection=True,
        ),
        TradeDependency(
            "insulation",
            depends_on=["electrical", "plumbing", "hvac"],
            cannot_overlap_with=["drywall"],
            requires_inspection=True,
        ),
        TradeDependency(
            "drywall",
            depends_on=["insulation"],
            cannot_overlap_with=["painting", "flooring"],
            minimum_days_after=2,
        ),
        TradeDependency(
            "painting",
            depends_on=["drywall"],
            cannot_overlap_with=["flooring", "installation"],
            minimum_days_after=2,
        ),
        TradeDependency(
            "flooring",
            depends_on=["painting"],
            cannot_overlap_with=["installation"],
        ),
        TradeDependency(
            "windows_doors",
            depends_on=["framing"],
            cannot_overlap_with=["siding", "insulation"],
            weather_sensitive=True,
        ),
        TradeDependency(
            "siding",
            depends_on=["windows_doors", "roofing"],
            cannot_overlap_with=["landscaping"],
            weather_sensitive=True,
        ),
        TradeDependency(
            "landscaping",
            depends_on=["siding", "concrete"],
            weather_sensitive=True,
        ),
        TradeDependency(
            "concrete",
            depends_on=["foundation"],
            cannot_overlap_with=["landscaping"],
            minimum_days_after=7,
            weather_sensitive=True,
        ),
        TradeDependency(
            "installation",
            depends_on=["flooring", "painting"],
        ),
        TradeDependency(
            "demolition",
            cannot_overlap_with=["foundation", "framing"],
            requires_inspection=True,
        ),
    ]
}

# Trades whose presence on site makes any concurrent work unsafe, and trades
# working overhead that endanger anyone below them at the same location.
SITE_CLEARING_TRADES = {"demolition"}
OVERHEAD_TRADES = {"roofing", "framing"}

INSPECTION_TRADE = "inspection"
WEATHER_ALERT_TRADE = "weather_alert"


def get_trade(trade: Optional[str]) -> Optional[TradeDependency]:
    if trade is None:
        return None
    return TRADE_DEPENDENCIES.get(trade)


def depends_on(dependent: Optional[str], predecessor: Optional[str]) -> bool:
    """Whether `dependent` lists `predecessor` among the trades it needs first."""
    entry = get_trade(dependent)
    return entry is not None and predecessor in entry.depends_on
