from datetime import datetime, timezone

import pytest

from teleprompter.lead_context import LeadContext, parse_lead_params
from teleprompter.variables import (
    find_placeholders,
    normalize_label,
    render,
    resolve_placeholder,
    time_of_day,
)

NOON = datetime(2024, 3, 4, 12, 30)


class TestTimeOfDay:
    @pytest.mark.parametrize("hour,minute,expected", [
        (0, 0, "evening"),
        (4, 59, "evening"),
        (5, 0, "morning"),
        (11, 59, "morning"),
        (12, 0, "afternoon"),
        (16, 59, "afternoon"),
        (17, 0, "evening"),
        (23, 59, "evening"),
    ])
    def test_boundaries(self, hour, minute, expected):
        assert time_of_day(datetime(2024, 3, 4, hour, minute)) == expected

    def test_aware_datetime_is_converted(self):
        # 20:00 UTC in January is 12:00 in Los Angeles
        now = datetime(2024, 1, 15, 20, 0, tzinfo=timezone.utc)
        assert time_of_day(now, "America/Los_Angeles") == "afternoon"
        assert time_of_day(now, "UTC") == "evening"


class TestResolvePlaceholder:
    def test_mapping_table(self):
        context = LeadContext({"firstname": "Sam", "fullname": "Agent Smith", "address3": "CA"})

        assert resolve_placeholder("First Name", context) == "Sam"
        assert resolve_placeholder("Your Name", context) == "Agent Smith"
        assert resolve_placeholder("State", context) == "CA"

    def test_normalized_label(self):
        context = LeadContext({"policy_number": "P-42"})
        assert resolve_placeholder("Policy Number", context) == "P-42"

    def test_substring_match(self):
        context = LeadContext({"vendor_lead_code": "V9"})
        assert resolve_placeholder("Lead Code", context) == "V9"

    def test_customer_name_fallback(self):
        assert resolve_placeholder("Customer Name", LeadContext({"first_name": "Sam"})) == "Sam"

    def test_nothing_matches(self):
        assert resolve_placeholder("Favorite Color", LeadContext({"first_name": "Sam"})) == ""

    def test_normalize_label(self):
        assert normalize_label("Zip  Code") == "zip_code"


class TestRender:
    def test_first_name_scenario(self):
        context = parse_lead_params("first_name=Sam")
        rendered = render("Hi [First Name], calling about your account.", context, now=NOON)

        assert rendered == "Hi Sam, calling about your account."

    def test_daypart_token(self):
        text = render("Good [Morning/Afternoon/Evening], [Name]!", LeadContext({"first_name": "Sam"}), now=NOON)
        assert text == "Good afternoon, Sam!"

    def test_unresolved_token_left_intact(self):
        template = "Hi [First Name], is [Spouse Name] home?"
        rendered = render(template, LeadContext({"first_name": "Sam"}), now=NOON)

        assert rendered == "Hi Sam, is [Spouse Name] home?"

    def test_empty_context_is_identity(self):
        template = "Hi [First Name], this is [Your Name]."
        assert render(template, LeadContext(), now=NOON) == template

    def test_empty_template(self):
        assert render("", LeadContext({"first_name": "Sam"})) == ""

    def test_find_placeholders(self):
        assert find_placeholders("Hi [First Name], is [Spouse Name] home?") == ["First Name", "Spouse Name"]
        assert find_placeholders("") == []
