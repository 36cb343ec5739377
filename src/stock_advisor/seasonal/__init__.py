"""Month-of-year reference data and the news-seasonal analyzer.

The analyzer lives in stock_advisor.seasonal.news_analyzer; it is not
re-exported here because it depends on the scoring package, which itself
reads month names from this one.
"""

from stock_advisor.seasonal.calendar import (
    MONTH_CHARACTERISTICS,
    MONTH_NAMES,
    MonthCharacteristic,
    get_month_characteristic,
    month_name,
    monthly_strategy,
)

__all__ = [
    "MONTH_CHARACTERISTICS",
    "MONTH_NAMES",
    "MonthCharacteristic",
    "get_month_characteristic",
    "month_name",
    "monthly_strategy",
]
