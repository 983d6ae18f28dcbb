"""
Country and currency enumerations.

Country values are ISO 3166-1 alpha-2 codes; they are also the leading
characters of every order and transaction number.
"""

import enum


class Country(str, enum.Enum):
    """Countries the store sells in."""
    # Africa
    RWANDA = "RW"
    DEMOCRATIC_REPUBLIC_OF_CONGO = "CD"
    KENYA = "KE"
    UGANDA = "UG"
    TANZANIA = "TZ"
    SOUTH_AFRICA = "ZA"
    NIGERIA = "NG"
    EGYPT = "EG"
    ETHIOPIA = "ET"
    GHANA = "GH"

    # North America
    UNITED_STATES = "US"
    CANADA = "CA"
    MEXICO = "MX"

    # Europe
    UNITED_KINGDOM = "GB"
    GERMANY = "DE"
    FRANCE = "FR"
    ITALY = "IT"
    SPAIN = "ES"
    NETHERLANDS = "NL"
    BELGIUM = "BE"

    # Asia
    CHINA = "CN"
    JAPAN = "JP"
    INDIA = "IN"
    SINGAPORE = "SG"

    # Middle East
    UNITED_ARAB_EMIRATES = "AE"

    # Oceania
    AUSTRALIA = "AU"

    # South America
    BRAZIL = "BR"


class Currency(str, enum.Enum):
    """ISO 4217 currency codes."""
    USD = "USD"
    EUR = "EUR"
    GBP = "GBP"
    JPY = "JPY"
    CNY = "CNY"
    AUD = "AUD"
    CAD = "CAD"
    INR = "INR"
    BRL = "BRL"
    MXN = "MXN"
    ZAR = "ZAR"
    SGD = "SGD"
    AED = "AED"
    NGN = "NGN"
    EGP = "EGP"
    KES = "KES"
    UGX = "UGX"
    TZS = "TZS"
    RWF = "RWF"
    CDF = "CDF"
