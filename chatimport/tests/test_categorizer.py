"""Tests for the keyword-based category suggestion."""

import pytest

from chatimport.services.categorizer import (
    KNOWN_MERCHANT_CATEGORIES,
    DefaultCategory,
    _check_known_merchant,
    _map_category_hint,
    suggest_category,
)


class TestKnownMerchants:
    """Test the ordered keyword table."""

    def test_food_delivery(self):
        """Delivery apps are food."""
        assert _check_known_merchant("IFOOD *PIZZARIA BELLA") == DefaultCategory.FOOD
        assert _check_known_merchant("UBER EATS") == DefaultCategory.FOOD

    def test_ride_hailing(self):
        """Ride-hailing is transport."""
        assert _check_known_merchant("UBER *TRIP HELP.UBER.COM") == DefaultCategory.TRANSPORT
        assert _check_known_merchant("99APP *CORRIDA") == DefaultCategory.TRANSPORT

    def test_specific_terms_precede_generic_ones(self):
        """Marketplaces win over the generic words they contain."""
        assert _check_known_merchant("MERCADO LIVRE") == DefaultCategory.SHOPPING
        assert _check_known_merchant("MERCADO DO ZE") == DefaultCategory.GROCERIES
        assert _check_known_merchant("AMAZON PRIME VIDEO") == DefaultCategory.LEISURE
        assert _check_known_merchant("AMAZON MARKETPLACE") == DefaultCategory.SHOPPING

    def test_accent_insensitive(self):
        """Accents in the description do not matter."""
        assert _check_known_merchant("Farmácia São João") == DefaultCategory.HEALTH
        assert _check_known_merchant("Condomínio Ed. Central") == DefaultCategory.HOUSING

    def test_no_false_positives_inside_words(self):
        """Short keywords do not match inside unrelated words."""
        assert _check_known_merchant("IMPOSTO DE RENDA") is None
        assert _check_known_merchant("GASTOS DIVERSOS") is None
        assert _check_known_merchant("ULTIMO PAGAMENTO") is None
        assert _check_known_merchant("AGUARDANDO COMPENSACAO") is None
        assert _check_known_merchant("SHOW AO VIVO") is None
        assert _check_known_merchant("LOJA METROPOLITANA") is None
        assert _check_known_merchant("DECLARO IMPOSTO") is None

    def test_short_keywords_match_whole_words(self):
        """Short keywords still match on their own."""
        assert _check_known_merchant("CONTA DE AGUA") == DefaultCategory.HOUSING
        assert _check_known_merchant("METRO SP") == DefaultCategory.TRANSPORT
        assert _check_known_merchant("CLARO S.A.") == DefaultCategory.BILLS
        assert _check_known_merchant("VIVO FIBRA") == DefaultCategory.BILLS

    def test_table_has_no_duplicate_keywords(self):
        """Each keyword appears once."""
        keywords = [keyword for keyword, _ in KNOWN_MERCHANT_CATEGORIES]
        assert len(keywords) == len(set(keywords))


class TestCategoryHint:
    """Test mapping of the extractor's category hint."""

    def test_maps_portuguese_and_english(self):
        """Hints in either language map to a category."""
        assert _map_category_hint("Alimentação") == DefaultCategory.FOOD
        assert _map_category_hint("transport") == DefaultCategory.TRANSPORT
        assert _map_category_hint(" Saúde ") == DefaultCategory.HEALTH

    def test_unknown_hint(self):
        """Unknown hints map to nothing."""
        assert _map_category_hint("crypto") is None
        assert _map_category_hint("") is None


class TestSuggestCategory:
    """Test the category suggestion entry point."""

    def test_keyword_beats_hint(self):
        """A description keyword wins over the hint."""
        assert suggest_category("NETFLIX.COM", hint="compras") == DefaultCategory.LEISURE

    def test_falls_back_to_hint(self):
        """The hint is used when no keyword matches."""
        assert suggest_category("LOJA XYZ", hint="compras") == DefaultCategory.SHOPPING

    def test_falls_back_to_other(self):
        """Unmatched descriptions land in Other."""
        assert suggest_category("LOJA XYZ") == DefaultCategory.OTHER
        assert suggest_category("LOJA XYZ", hint="misc") == DefaultCategory.OTHER

    def test_custom_other_category(self):
        """The fallback id is configurable."""
        assert suggest_category("LOJA XYZ", other_category_id=99) == 99

    @pytest.mark.parametrize("description", ["", "   ", "12345", "???", "a" * 500, "ção"])
    def test_always_returns_a_category(self, description):
        """Any description yields an integer category id."""
        result = suggest_category(description)
        assert isinstance(result, int)
        assert result > 0
