"""Keyword-based category suggestion for imported transactions."""

import re
import unicodedata
from enum import IntEnum


class DefaultCategory(IntEnum):
    """Category ids seeded by the application."""

    HOUSING = 7
    SHOPPING = 11
    BILLS = 12
    OTHER = 13
    FOOD = 18
    TRANSPORT = 19
    LEISURE = 20
    HEALTH = 21
    GROCERIES = 25


DEFAULT_CATEGORY_NAMES: dict[DefaultCategory, str] = {
    DefaultCategory.HOUSING: "Moradia",
    DefaultCategory.SHOPPING: "Compras",
    DefaultCategory.BILLS: "Contas",
    DefaultCategory.OTHER: "Outros",
    DefaultCategory.FOOD: "Alimentação",
    DefaultCategory.TRANSPORT: "Transporte",
    DefaultCategory.LEISURE: "Lazer",
    DefaultCategory.HEALTH: "Saúde",
    DefaultCategory.GROCERIES: "Mercado",
}


# Ordered keyword table: the first keyword contained in the description wins,
# so specific merchant names must come before the generic words they contain.
KNOWN_MERCHANT_CATEGORIES: list[tuple[str, int]] = [
    # Food - Delivery
    ("ifood", DefaultCategory.FOOD),
    ("uber eats", DefaultCategory.FOOD),
    ("rappi", DefaultCategory.FOOD),
    ("ze delivery", DefaultCategory.FOOD),

    # Shopping - Marketplaces (before "mercado" and "amazon prime")
    ("mercado livre", DefaultCategory.SHOPPING),
    ("mercadolivre", DefaultCategory.SHOPPING),
    ("amazon prime", DefaultCategory.LEISURE),
    ("amazon", DefaultCategory.SHOPPING),
    ("shein", DefaultCategory.SHOPPING),
    ("shopee", DefaultCategory.SHOPPING),
    ("aliexpress", DefaultCategory.SHOPPING),
    ("magazine luiza", DefaultCategory.SHOPPING),
    ("magalu", DefaultCategory.SHOPPING),
    ("americanas", DefaultCategory.SHOPPING),
    ("casas bahia", DefaultCategory.SHOPPING),

    # Groceries
    ("supermercado", DefaultCategory.GROCERIES),
    ("hortifruti", DefaultCategory.GROCERIES),
    ("atacadao", DefaultCategory.GROCERIES),
    ("assai", DefaultCategory.GROCERIES),
    ("carrefour", DefaultCategory.GROCERIES),
    ("pao de acucar", DefaultCategory.GROCERIES),
    ("mercado", DefaultCategory.GROCERIES),

    # Food - Restaurants
    ("restaurante", DefaultCategory.FOOD),
    ("padaria", DefaultCategory.FOOD),
    ("lanchonete", DefaultCategory.FOOD),
    ("pizzaria", DefaultCategory.FOOD),
    ("mcdonald", DefaultCategory.FOOD),
    ("burger king", DefaultCategory.FOOD),
    ("starbucks", DefaultCategory.FOOD),

    # Transport
    ("uber", DefaultCategory.TRANSPORT),
    ("99app", DefaultCategory.TRANSPORT),
    ("99 pop", DefaultCategory.TRANSPORT),
    ("99 taxi", DefaultCategory.TRANSPORT),
    ("cabify", DefaultCategory.TRANSPORT),
    ("taxi", DefaultCategory.TRANSPORT),
    ("combustivel", DefaultCategory.TRANSPORT),
    ("gasolina", DefaultCategory.TRANSPORT),
    ("auto posto", DefaultCategory.TRANSPORT),
    ("estacionamento", DefaultCategory.TRANSPORT),
    ("sem parar", DefaultCategory.TRANSPORT),
    ("pedagio", DefaultCategory.TRANSPORT),
    ("metro", DefaultCategory.TRANSPORT),
    ("onibus", DefaultCategory.TRANSPORT),

    # Health
    ("farmacia", DefaultCategory.HEALTH),
    ("drogaria", DefaultCategory.HEALTH),
    ("droga raia", DefaultCategory.HEALTH),
    ("drogasil", DefaultCategory.HEALTH),
    ("medico", DefaultCategory.HEALTH),
    ("hospital", DefaultCategory.HEALTH),
    ("clinica", DefaultCategory.HEALTH),
    ("laboratorio", DefaultCategory.HEALTH),
    ("dentista", DefaultCategory.HEALTH),

    # Leisure - Streaming and games
    ("netflix", DefaultCategory.LEISURE),
    ("spotify", DefaultCategory.LEISURE),
    ("disney", DefaultCategory.LEISURE),
    ("hbo", DefaultCategory.LEISURE),
    ("cinema", DefaultCategory.LEISURE),
    ("teatro", DefaultCategory.LEISURE),
    ("ingresso", DefaultCategory.LEISURE),
    ("steam", DefaultCategory.LEISURE),
    ("playstation", DefaultCategory.LEISURE),

    # Bills - Telecom (before the utilities, "internet" is a bill)
    ("internet", DefaultCategory.BILLS),
    ("telefone", DefaultCategory.BILLS),
    ("celular", DefaultCategory.BILLS),
    ("claro", DefaultCategory.BILLS),
    ("vivo fibra", DefaultCategory.BILLS),
    ("vivo movel", DefaultCategory.BILLS),
    ("telefonica", DefaultCategory.BILLS),
    ("tim celular", DefaultCategory.BILLS),
    ("oi fibra", DefaultCategory.BILLS),

    # Housing
    ("aluguel", DefaultCategory.HOUSING),
    ("condominio", DefaultCategory.HOUSING),
    ("energia", DefaultCategory.HOUSING),
    ("luz", DefaultCategory.HOUSING),
    ("agua", DefaultCategory.HOUSING),
    ("sabesp", DefaultCategory.HOUSING),
    ("enel", DefaultCategory.HOUSING),
    ("comgas", DefaultCategory.HOUSING),
    ("gas natural", DefaultCategory.HOUSING),
]


# Synonyms for the free-text category hint an extractor may provide
CATEGORY_HINT_SYNONYMS: dict[str, int] = {
    "alimentacao": DefaultCategory.FOOD,
    "food": DefaultCategory.FOOD,
    "restaurante": DefaultCategory.FOOD,
    "mercado": DefaultCategory.GROCERIES,
    "groceries": DefaultCategory.GROCERIES,
    "supermercado": DefaultCategory.GROCERIES,
    "transporte": DefaultCategory.TRANSPORT,
    "transport": DefaultCategory.TRANSPORT,
    "moradia": DefaultCategory.HOUSING,
    "casa": DefaultCategory.HOUSING,
    "housing": DefaultCategory.HOUSING,
    "saude": DefaultCategory.HEALTH,
    "health": DefaultCategory.HEALTH,
    "lazer": DefaultCategory.LEISURE,
    "entretenimento": DefaultCategory.LEISURE,
    "entertainment": DefaultCategory.LEISURE,
    "compras": DefaultCategory.SHOPPING,
    "shopping": DefaultCategory.SHOPPING,
    "contas": DefaultCategory.BILLS,
    "bills": DefaultCategory.BILLS,
    "outros": DefaultCategory.OTHER,
    "other": DefaultCategory.OTHER,
}


def _normalize(text: str) -> str:
    """Lower-case and strip accents ("Farmácia" -> "farmacia")."""
    decomposed = unicodedata.normalize("NFD", text.lower())
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


# Keywords this short only match as whole words ("agua" not in "aguardando")
SHORT_KEYWORD_LENGTH = 5

_KEYWORD_PATTERNS: list[tuple[re.Pattern[str], int]] = [
    (
        re.compile(rf"\b{re.escape(keyword)}\b" if len(keyword) <= SHORT_KEYWORD_LENGTH else re.escape(keyword)),
        category_id,
    )
    for keyword, category_id in KNOWN_MERCHANT_CATEGORIES
]


def _check_known_merchant(description: str) -> int | None:
    """Return the category of the first keyword found in the description."""
    desc_lower = _normalize(description)

    for pattern, category_id in _KEYWORD_PATTERNS:
        if pattern.search(desc_lower):
            return int(category_id)

    return None


def _map_category_hint(hint: str) -> int | None:
    """Map the extractor's free-text category hint to a category id."""
    if not hint:
        return None
    return CATEGORY_HINT_SYNONYMS.get(_normalize(hint).strip())


def suggest_category(
    description: str,
    hint: str | None = None,
    other_category_id: int = DefaultCategory.OTHER,
) -> int:
    """
    Suggest a category id for a transaction.

    Keywords in the description win over the extractor's hint. The result is
    never None: anything unmatched lands in the "Other" category.
    """
    if category_id := _check_known_merchant(description or ""):
        return category_id
    if hint and (category_id := _map_category_hint(hint)):
        return category_id
    return int(other_category_id)
