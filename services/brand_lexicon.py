# services/brand_lexicon.py
# ================================
# Static vocabularies for equipment text matching
# ================================
# Brands, fishing keywords and colour names used by the
# classifier and the regex extractors.

from typing import Optional

# Known fishing brands (lexicon order decides ties)
KNOWN_BRANDS = (
    "Rapala", "Mepps", "Savage Gear", "Abu Garcia", "Shimano", "Daiwa",
    "Berkley", "Strike King", "Storm", "Blue Fox", "Panther Martin",
    "Yo-Zuri", "Lucky Craft", "Megabass", "Deps", "Jackall", "Balzer",
    "Spro", "Fox Rage", "Westin", "Illex", "Gunki", "Salmo", "Dam",
    "Decathlon", "Caperlan", "Penn", "Okuma", "Mitchell", "Quantum",
)

# German / English tackle words that mark a receipt line as a product line
FISHING_KEYWORDS = (
    "wobbler", "spinner", "köder", "lure", "rute", "rod", "rolle", "reel",
    "schnur", "line", "haken", "hook", "bait",
)

# Keywords + lower-cased brand names
CANDIDATE_TOKENS = FISHING_KEYWORDS + tuple(b.lower() for b in KNOWN_BRANDS)

RECEIPT_COLORS = (
    "rot", "blau", "grün", "gelb", "schwarz", "weiß", "silber", "gold",
    "red", "blue", "green", "yellow", "black", "white", "silver",
    "orange", "pink", "chartreuse",
)

# Lure photos also carry pattern names printed on the packaging
LURE_COLORS = RECEIPT_COLORS + ("firetiger", "perch", "pike")


def match_brand(text: str) -> Optional[str]:
    """Return the first known brand contained in text (case-insensitive)."""
    lower = (text or "").lower()
    for brand in KNOWN_BRANDS:
        if brand.lower() in lower:
            return brand
    return None
