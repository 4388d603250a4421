"""Controlled values written into trial records."""

# Registries
REGISTRY_US = "CTG"
REGISTRY_EU_OLD = "EUCTR"
REGISTRY_EU_NEW = "CTIS"
REGISTRY_AGGREGATOR = "ICTRP"

ID_TYPE_TRIAL_REGISTRY = "Trial registry ID"
ID_TYPE_OTHER = "Other ID"

# Object dates
DATE_TYPE_CREATED = "Created"
DATE_TYPE_UPDATED = "Updated"

# Registry entry data object
O_TYPE_TRIAL_REGISTRY_ENTRY = "Trial registry entry"
O_CLASS_TEXT = "Text"
O_TITLE_REGISTRY_ENTRY = "Registry web page"
O_RESOURCE_TYPE_WEB_TEXT = "Web text"

# Titles
TITLE_TYPE_PUBLIC = "Public title"
TITLE_TYPE_SCIENTIFIC = "Scientific title"
TITLE_UNKNOWN = "Unknown title"

# Organisations
CONTRIBUTOR_TYPE_SPONSOR = "Sponsor"
CONTRIBUTOR_TYPE_STUDY_FUNDER = "Study funder"

# EU / EEA member states, as used in split-country ids
EU_COUNTRY_CODES = {
    "AT": "Austria",
    "BE": "Belgium",
    "BG": "Bulgaria",
    "CY": "Cyprus",
    "CZ": "Czechia",
    "DE": "Germany",
    "DK": "Denmark",
    "EE": "Estonia",
    "ES": "Spain",
    "FI": "Finland",
    "FR": "France",
    "GB": "United Kingdom",
    "GR": "Greece",
    "HR": "Croatia",
    "HU": "Hungary",
    "IE": "Ireland",
    "IS": "Iceland",
    "IT": "Italy",
    "LI": "Liechtenstein",
    "LT": "Lithuania",
    "LU": "Luxembourg",
    "LV": "Latvia",
    "MT": "Malta",
    "NL": "Netherlands",
    "NO": "Norway",
    "PL": "Poland",
    "PT": "Portugal",
    "RO": "Romania",
    "SE": "Sweden",
    "SI": "Slovenia",
    "SK": "Slovakia",
}


def country_name(code):
    if not code:
        return None
    return EU_COUNTRY_CODES.get(code.strip().upper())
