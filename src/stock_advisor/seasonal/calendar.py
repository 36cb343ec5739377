"""Static month-of-year reference data (index 0 = January)."""

from dataclasses import dataclass

MONTH_NAMES: tuple[str, ...] = (
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
)


@dataclass(frozen=True)
class MonthCharacteristic:
    """Qualitative profile of one calendar month."""

    month: int
    label: str
    historical_trend: str  # positive | neutral | negative | volatile
    risk_level: str  # low | medium | high
    key_factors: tuple[str, ...]
    sectors: tuple[str, ...]
    risk_factors: tuple[str, ...]
    opportunities: tuple[str, ...]

    @property
    def name(self) -> str:
        return MONTH_NAMES[self.month]

    def to_dict(self) -> dict:
        return {
            "month": self.month,
            "name": self.name,
            "label": self.label,
            "historical_trend": self.historical_trend,
            "risk_level": self.risk_level,
            "key_factors": list(self.key_factors),
            "sectors": list(self.sectors),
            "risk_factors": list(self.risk_factors),
            "opportunities": list(self.opportunities),
        }


MONTH_CHARACTERISTICS: tuple[MonthCharacteristic, ...] = (
    MonthCharacteristic(
        0, "January effect", "positive", "medium",
        ("January effect", "small-cap strength", "new money inflows"),
        ("small-cap", "growth", "emerging"),
        ("new-year volatility", "small-cap overheating", "thin liquidity"),
        ("ride the January effect", "small-cap momentum", "fresh capital inflows"),
    ),
    MonthCharacteristic(
        1, "Earnings season", "volatile", "high",
        ("Q4 earnings reports", "Valentine's spending", "short trading month"),
        ("retail", "consumer", "tech"),
        ("earnings surprises", "short trading month", "consumer spending swings"),
        ("earnings-surprise winners", "consumer names", "short-term trading"),
    ),
    MonthCharacteristic(
        2, "Quarter-end effect", "volatile", "high",
        ("quarter-end rebalancing", "tax settlement", "fund flows"),
        ("finance", "reits", "utilities"),
        ("quarter-end rebalancing", "tax selling", "rate moves"),
        ("rebalancing dislocations", "tax refund beneficiaries", "quarter-end effect"),
    ),
    MonthCharacteristic(
        3, "Spring rally", "positive", "low",
        ("April effect", "tax refunds", "corporate guidance"),
        ("growth", "tech", "consumer"),
        ("overheated earnings expectations", "guidance cuts", "spring volatility"),
        ("spring rally", "growth strength", "improving guidance"),
    ),
    MonthCharacteristic(
        4, "Sell in May", "negative", "medium",
        ("sell in May adage", "summer slowdown", "European holidays"),
        ("defensive", "utilities", "staples"),
        ("sell in May effect", "summer slowdown", "European holidays"),
        ("rotation into defensives", "dividend preference", "capital preservation"),
    ),
    MonthCharacteristic(
        5, "Start of summer", "neutral", "medium",
        ("FOMC meeting", "quarter end", "summer holiday prep"),
        ("value", "dividend", "defensive"),
        ("FOMC uncertainty", "quarter-end pressure", "summer lull"),
        ("value hunting", "buying undervalued names", "diversification"),
    ),
    MonthCharacteristic(
        6, "Earnings season", "positive", "medium",
        ("Q2 earnings", "summer consumption", "tech concentration"),
        ("tech", "consumer", "travel"),
        ("earnings pressure", "guidance risk", "summer volatility"),
        ("earnings improvement", "tech focus", "summer consumption"),
    ),
    MonthCharacteristic(
        7, "Summer holidays", "volatile", "high",
        ("low volume", "holiday effect", "Jackson Hole symposium"),
        ("large-cap", "stable", "dividend"),
        ("holiday illiquidity", "Jackson Hole risk", "August effect"),
        ("large-cap stability", "dividend income", "selective buying"),
    ),
    MonthCharacteristic(
        8, "Autumn begins", "negative", "high",
        ("return from holidays", "back to school", "historical weakness"),
        ("education", "back-to-school", "defensive"),
        ("September effect", "rising volatility", "quarter-end pressure"),
        ("buying the dip", "education names", "back-to-school effect"),
    ),
    MonthCharacteristic(
        9, "Earnings season", "volatile", "high",
        ("Q3 earnings", "Halloween effect", "year-end outlook"),
        ("tech", "finance", "industrial"),
        ("earnings season risk", "year-end outlook uncertainty", "October effect"),
        ("earnings improvement", "Q4 outlook", "positioning for year-end rally"),
    ),
    MonthCharacteristic(
        10, "Year-end rally begins", "positive", "medium",
        ("Thanksgiving", "Black Friday", "year-end rally"),
        ("retail", "consumer", "small-cap"),
        ("year-end settlement pressure", "fund rebalancing", "tax selling"),
        ("year-end rally", "consumer names", "small-cap revival"),
    ),
    MonthCharacteristic(
        11, "Santa rally", "positive", "low",
        ("Santa rally", "tax-loss selling", "year-end bonuses"),
        ("growth", "small-cap", "momentum"),
        ("year-end crowding", "tax-loss selling", "portfolio cleanup"),
        ("Santa rally", "growth strength", "year-end bonus flows"),
    ),
)

MONTHLY_STRATEGIES: tuple[str, ...] = (
    "January effect favors small caps. Consider adding growth exposure.",
    "Earnings season. Watch names with high surprise potential.",
    "Quarter-end effect. Institutional rebalancing may raise volatility.",
    "April effect begins. Historically a strong stretch for equities.",
    "Mind the sell-in-May adage. Consider defensive positioning.",
    "Entering the summer lull. A chance to find undervalued value names.",
    "Earnings season approaches. Check Q2 expectations.",
    "Summer holidays. Lower volume can widen price swings.",
    "Autumn begins. Expectations build for a rally into year end.",
    "Q3 earnings season. The year-end outlook matters now.",
    "Year-end settlement. Tax selling competes with the year-end rally.",
    "Santa rally season. Small caps and growth tend to be favored.",
)

DEFAULT_STRATEGY = "Monitor market conditions closely."


def get_month_characteristic(month: int) -> MonthCharacteristic:
    return MONTH_CHARACTERISTICS[month % 12]


def month_name(month: int) -> str:
    return MONTH_NAMES[month % 12]


def monthly_strategy(month: int, market_sentiment: str | None = None) -> str:
    """Strategy text for the month, adjusted for the prevailing market mood."""
    strategy = MONTHLY_STRATEGIES[month] if 0 <= month < 12 else DEFAULT_STRATEGY
    if market_sentiment == "negative":
        strategy += " Given the negative market mood, a conservative approach is warranted."
    elif market_sentiment == "positive":
        strategy += " Consider leaning into the positive market mood."
    return strategy
