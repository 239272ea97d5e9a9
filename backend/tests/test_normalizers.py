"""
Tests for listing normalization.
"""

from datetime import date

import pytest

from dealer_scrapers.base import VehicleListingCandidate
from dealer_scrapers.utils.normalizers import (
    clean_price,
    clean_text,
    extract_brand_model,
    extract_mileage,
    extract_year,
    guess_currency,
    normalize_candidate,
)


class TestCleanPrice:
    """Test price parsing."""

    @pytest.mark.parametrize("text,expected", [
        ("$ 25.500.000", 25500000),
        ("USD 18,500", 18500),
        ("$45.000.000.-", 45000000),
        ("U$S 12.900", 12900),
        ("1.234,56", 1234.56),
        ("1,234.56", 1234.56),
        ("$ 9.999,99", 9999.99),
        ("Precio: $ 31.000.000 (financiado)", 31000000),
    ])
    def test_formats(self, text, expected):
        assert clean_price(text) == expected

    @pytest.mark.parametrize("text", ["Consultar", "sin precio", "$", "", None])
    def test_no_digits(self, text):
        assert clean_price(text) is None

    def test_returns_float(self):
        assert isinstance(clean_price("$ 1.000"), float)


class TestExtractYear:
    """Test year extraction."""

    def test_year_in_text(self):
        assert extract_year("Modelo 2023, excelente") == 2023

    def test_no_year(self):
        assert extract_year("sin año") is None
        assert extract_year(None) is None

    def test_bounds(self):
        assert extract_year("Ford Falcon 1985") is None
        assert extract_year("Fiat 600 1990") == 1990
        assert extract_year("Concept 2039") == 2039
        assert extract_year("Concept 2040") is None

    def test_not_part_of_longer_number(self):
        assert extract_year("Código 120231") is None
        assert extract_year("Km 20150") is None

    def test_first_year_wins(self):
        assert extract_year("2018 / motor 2020") == 2018


class TestExtractMileage:
    """Test mileage extraction."""

    @pytest.mark.parametrize("text,expected", [
        ("45.000 km", 45000),
        ("120000 kms", 120000),
        ("80.000 kilómetros", 80000),
        ("Km: 35.500", 35500),
        ("2019 · 62,000 km · Córdoba", 62000),
    ])
    def test_formats(self, text, expected):
        assert extract_mileage(text) == expected

    def test_no_mileage(self):
        assert extract_mileage("0km disponible ya") == 0
        assert extract_mileage("Sin datos") is None
        assert extract_mileage(None) is None


class TestBrandModel:
    """Test brand/model extraction from titles."""

    def test_simple(self):
        assert extract_brand_model("Toyota Corolla XEI 2020") == ("Toyota", "Corolla XEI")

    def test_alias(self):
        assert extract_brand_model("VW Gol Trend - 2015") == ("Volkswagen", "Gol Trend")

    def test_hyphenated_brand(self):
        assert extract_brand_model("Mercedes-Benz Sprinter 415") == ("Mercedes-Benz", "Sprinter 415")

    def test_model_stops_at_year(self):
        assert extract_brand_model("Ford Ka 2018") == ("Ford", "Ka")

    def test_year_like_model_name(self):
        assert extract_brand_model("Peugeot 2008 Allure 1.6") == ("Peugeot", "2008 Allure")
        assert extract_brand_model("Peugeot 2008 2021") == ("Peugeot", "2008")

    def test_case_insensitive(self):
        assert extract_brand_model("PEUGEOT 208 Feline") == ("Peugeot", "208 Feline")

    def test_unlisted_brand_kept_as_none(self):
        assert extract_brand_model("Lada Niva 4x4") == (None, None)

    def test_brand_inside_word_ignored(self):
        assert extract_brand_model("Fordson tractor") == (None, None)


class TestCurrency:

    def test_usd(self):
        assert guess_currency("U$S 18.500") == "USD"
        assert guess_currency("USD 18,500") == "USD"

    def test_default(self):
        assert guess_currency("$ 25.500.000") == "ARS"
        assert guess_currency("$ 25.500.000", default="CLP") == "CLP"

    def test_no_text(self):
        assert guess_currency(None) is None


class TestNormalizeCandidate:
    """Test building normalized records."""

    def make(self, **kwargs):
        defaults = dict(dealer_name="Dealer A", source_url="https://dealer-a.test/auto/1/", raw_title="Toyota Corolla XEI 2020")
        defaults.update(kwargs)
        return VehicleListingCandidate(**defaults)

    def test_full_record(self):
        candidate = self.make(raw_price_text="$ 25.500.000", raw_details_text="45.000 km · Nafta")
        record = normalize_candidate(candidate, today=date(2025, 6, 1))

        assert record.title == "Toyota Corolla XEI 2020"
        assert record.price_amount == 25500000
        assert record.price_currency_guess == "ARS"
        assert record.price_text == "$ 25.500.000"
        assert record.year == 2020
        assert record.mileage_km == 45000
        assert record.brand == "Toyota"
        assert record.model == "Corolla XEI"
        assert record.age_years == 5
        assert record.price_per_km == round(25500000 / 45000, 2)
        assert record.source_url == "https://dealer-a.test/auto/1/"
        assert record.candidate is candidate

    def test_year_from_details(self):
        record = normalize_candidate(self.make(raw_title="Fiat Cronos", raw_details_text="2022 | 10.000 km"))
        assert record.year == 2022
        assert record.mileage_km == 10000

    def test_missing_fields_stay_none(self):
        record = normalize_candidate(self.make(raw_title="Auto usado"))
        assert record.price_amount is None
        assert record.price_currency_guess is None
        assert record.year is None
        assert record.brand is None
        assert record.age_years is None
        assert record.price_per_km is None

    def test_whitespace_collapsed(self):
        record = normalize_candidate(self.make(raw_title="  Ford\n  Ranger   XLT "))
        assert record.title == "Ford Ranger XLT"

    def test_no_title_raises(self):
        with pytest.raises(ValueError):
            normalize_candidate(self.make(raw_title="   "))

    def test_clean_text(self):
        assert clean_text("  a \n b ") == "a b"
        assert clean_text("   ") is None
