"""Unit tests for row validation."""

import json

from directory_app.importer.template import build_template_csv
from directory_app.importer.validator import (
    valid_results,
    validate_row,
    validate_rows,
    validate_text,
)
from tests.factories import make_row


class TestValidateRow:
    """Tests for the per-row field rules."""

    def test_complete_row_is_valid(self) -> None:
        result = validate_row(make_row(), 0)

        assert result.is_valid
        assert result.errors == ()
        assert result.row == 1

    def test_every_problem_is_reported(self) -> None:
        """A row with three problems carries exactly those three messages."""
        row = make_row(category="", email="not-an-email", website="www.x.com")

        result = validate_row(row, 4)

        assert not result.is_valid
        assert result.row == 5
        assert result.errors == (
            "Missing category",
            "Invalid email format",
            "Website must start with http:// or https://",
        )

    def test_missing_name_bad_email_and_bad_hours_give_three_errors(self) -> None:
        row = make_row(business_name="", email="not-an-email", hours_json="{bad")

        result = validate_row(row, 0)

        assert result.errors == (
            "Missing business_name",
            "Invalid email format",
            "Invalid hours_json format",
        )

    def test_whitespace_only_counts_as_missing(self) -> None:
        result = validate_row(make_row(city="   ", zip=""), 0)

        assert result.errors == ("Missing city", "Missing zip")

    def test_optional_fields_may_be_empty(self) -> None:
        result = validate_row(make_row(email="", website="", phone="", description=""), 0)

        assert result.is_valid

    def test_http_website_is_accepted(self) -> None:
        assert validate_row(make_row(website="http://acme.example"), 0).is_valid

    def test_unparsable_hours(self) -> None:
        result = validate_row(make_row(hours_json="{monday"), 0)

        assert result.errors == ("Invalid hours_json format",)

    def test_unparsable_services(self) -> None:
        result = validate_row(make_row(services_json="[{"), 0)

        assert result.errors == ("Invalid services_json format",)

    def test_hours_with_unknown_day(self) -> None:
        hours = json.dumps({"funday": {"open": "09:00"}})

        result = validate_row(make_row(hours_json=hours), 0)

        assert result.errors == ("hours_json: unknown day 'funday'",)

    def test_hours_must_be_an_object(self) -> None:
        result = validate_row(make_row(hours_json="[]"), 0)

        assert result.errors == ("hours_json must be an object keyed by day name",)

    def test_hours_closed_flag_must_be_boolean(self) -> None:
        hours = json.dumps({"sunday": {"closed": "yes"}})

        result = validate_row(make_row(hours_json=hours), 0)

        assert result.errors == ("hours_json: 'sunday.closed' must be true or false",)

    def test_services_must_be_an_array(self) -> None:
        result = validate_row(make_row(services_json='{"name": "Tow"}'), 0)

        assert result.errors == ("services_json must be an array",)

    def test_service_without_name_and_with_bad_price(self) -> None:
        services = json.dumps([{"name": "Tow", "price": "50"}, {"price": "lots"}])

        result = validate_row(make_row(services_json=services), 0)

        assert result.errors == (
            "services_json: entry 2 is missing a name",
            "services_json: entry 2 has a non-numeric price",
        )

    def test_service_name_alias_is_accepted(self) -> None:
        services = json.dumps([{"service_name": "Tow", "price": 50, "price_unit": "per trip"}])

        assert validate_row(make_row(services_json=services), 0).is_valid


class TestValidateRows:
    """Tests for validating a whole input."""

    def test_rows_are_numbered_from_one_in_input_order(self) -> None:
        """Row numbers follow input order so invalid rows can be located."""
        rows = [make_row(business_name=f"Biz {i}") for i in range(5)]
        rows[1] = make_row(business_name="")
        rows[4] = make_row(state="")

        results = validate_rows(rows)

        assert [r.row for r in results] == [1, 2, 3, 4, 5]
        assert [r.row for r in results if not r.is_valid] == [2, 5]
        assert [r.row for r in valid_results(results)] == [1, 3, 4]

    def test_empty_input(self) -> None:
        assert validate_rows([]) == []

    def test_validate_text_csv(self) -> None:
        text = (
            "business_name,category,address,city,state,zip\n"
            "Acme,RV,1 Main,Austin,TX,78701\n"
            ",RV,1 Main,Austin,TX,78701\n"
        )

        results = validate_text(text, "csv")

        assert [r.is_valid for r in results] == [True, False]
        assert results[1].errors == ("Missing business_name",)

    def test_validate_text_json(self) -> None:
        text = json.dumps([make_row().model_dump(), {"business_name": "Only a name"}])

        results = validate_text(text, "json")

        assert results[0].is_valid
        assert "Missing category" in results[1].errors

    def test_downloaded_template_validates(self) -> None:
        """The example row shipped in the template passes every rule."""
        results = validate_text(build_template_csv(), "csv")

        assert len(results) == 1
        assert results[0].is_valid, results[0].errors
        assert results[0].data.business_name == "Acme RV Rentals"
