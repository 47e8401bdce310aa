"""
Unit tests for the country catalog.

Run: python3 -m pytest catalog/__tests__/test_catalog.py -v
"""

from catalog.catalog import CountryCatalog, ValidationResult, UNKNOWN_COUNTRY_CODE


class TestValidate:
    """Tests for CountryCatalog.validate()."""

    def setup_method(self):
        self.catalog = CountryCatalog()

    def test_alias_usa(self):
        """USA resolves through the alias table."""
        result = self.catalog.validate("USA")
        assert result == ValidationResult(is_valid=True, normalized_name="united states")

    def test_misspelling_suggests_closest_name(self):
        """Frnace is rejected with a suggestion."""
        result = self.catalog.validate("Frnace")
        assert result.is_valid is False
        assert result.normalized_name is None
        assert result.suggestion == "france"

    def test_direct_match_is_case_and_space_insensitive(self):
        result = self.catalog.validate("  United Kingdom ")
        assert result.is_valid is True
        assert result.normalized_name == "united kingdom"

    def test_more_aliases(self):
        assert self.catalog.validate("uk").normalized_name == "united kingdom"
        assert self.catalog.validate("UAE").normalized_name == "united arab emirates"

    def test_empty_input_is_invalid_without_suggestion(self):
        assert self.catalog.validate("") == ValidationResult(is_valid=False)
        assert self.catalog.validate("   ") == ValidationResult(is_valid=False)

    def test_gibberish_has_no_suggestion(self):
        result = self.catalog.validate("qqqqqqqqqqqq")
        assert result.is_valid is False
        assert result.suggestion is None

    def test_substring_suggestion_for_partial_name(self):
        """Inputs too far by edit distance fall back to substring containment."""
        catalog = CountryCatalog(country_codes={"papua new guinea": "PG", "guinea": "GN"}, aliases={})
        result = catalog.validate("papua new")
        assert result.is_valid is False
        assert result.suggestion == "papua new guinea"

    def test_short_input_gets_no_substring_suggestion(self):
        catalog = CountryCatalog(country_codes={"papua new guinea": "PG"}, aliases={})
        assert catalog.validate("pa").suggestion is None

    def test_ties_keep_alphabetically_first(self):
        catalog = CountryCatalog(country_codes={"mali": "ML", "bali": "XX"}, aliases={})
        assert catalog.validate("cali").suggestion == "bali"

    def test_error_message_includes_suggestion(self):
        result = self.catalog.validate("Frnace")
        assert result.error_message("Frnace") == (
            "'Frnace' is not a recognized country name. Did you mean 'france'?"
        )

    def test_error_message_without_suggestion(self):
        result = ValidationResult(is_valid=False)
        assert result.error_message("xyz") == "'xyz' is not a recognized country name"


class TestCatalogLists:
    """Tests for the master list and code lookup."""

    def test_all_valid_countries_sorted_and_lowercase(self):
        countries = CountryCatalog().all_valid_countries()
        assert countries == sorted(countries)
        assert all(name == name.lower() for name in countries)
        assert "france" in countries
        assert len(countries) > 190

    def test_all_valid_countries_returns_copy(self):
        catalog = CountryCatalog()
        catalog.all_valid_countries().clear()
        assert catalog.all_valid_countries()

    def test_country_code(self):
        catalog = CountryCatalog()
        assert catalog.country_code("France") == "FR"
        assert catalog.country_code("united kingdom") == "GB"
        assert catalog.country_code("atlantis") == UNKNOWN_COUNTRY_CODE
