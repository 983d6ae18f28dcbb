"""
Country to currency resolution for orders and ledger entries.
"""

from types import MappingProxyType
from typing import Mapping, Optional

from backend.app.core.config import settings
from backend.app.models.locale_enums import Country, Currency

COUNTRY_CURRENCY: Mapping[Country, Currency] = MappingProxyType({
    Country.RWANDA: Currency.RWF,
    Country.DEMOCRATIC_REPUBLIC_OF_CONGO: Currency.CDF,
    Country.UNITED_STATES: Currency.USD,
    Country.CANADA: Currency.CAD,
    Country.UNITED_KINGDOM: Currency.GBP,
    Country.GERMANY: Currency.EUR,
    Country.FRANCE: Currency.EUR,
    Country.ITALY: Currency.EUR,
    Country.SPAIN: Currency.EUR,
    Country.NETHERLANDS: Currency.EUR,
    Country.BELGIUM: Currency.EUR,
    Country.KENYA: Currency.KES,
    Country.UGANDA: Currency.UGX,
    Country.TANZANIA: Currency.TZS,
    Country.NIGERIA: Currency.NGN,
    Country.SOUTH_AFRICA: Currency.ZAR,
    Country.EGYPT: Currency.EGP,
    Country.INDIA: Currency.INR,
    Country.JAPAN: Currency.JPY,
    Country.CHINA: Currency.CNY,
    Country.SINGAPORE: Currency.SGD,
    Country.UNITED_ARAB_EMIRATES: Currency.AED,
    Country.AUSTRALIA: Currency.AUD,
    Country.BRAZIL: Currency.BRL,
    Country.MEXICO: Currency.MXN,
})


def currency_for_country(country: Optional[Country]) -> str:
    """ISO 4217 code for ``country``; unmapped countries use ``settings.default_currency``."""
    if country is None:
        return settings.default_currency
    currency = COUNTRY_CURRENCY.get(Country(country))
    return currency.value if currency else settings.default_currency
