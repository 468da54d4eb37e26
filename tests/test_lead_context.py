from teleprompter.lead_context import (
    EMPTY_SENTINEL,
    LeadContext,
    LeadContextHolder,
    format_lead_display,
    get_user_id,
    is_unfilled,
    parse_lead_params,
)


class TestParseLeadParams:
    """Dialer query strings become an immutable lead snapshot."""

    def test_filled_fields_are_kept(self):
        context = parse_lead_params("?first_name=Sam&last_name=Jones&city=Fresno")

        assert dict(context) == {"first_name": "Sam", "last_name": "Jones", "city": "Fresno"}

    def test_placeholders_and_blanks_are_dropped(self):
        query = (
            "first_name=Sam"
            "&last_name=--A--last_name--B--"
            f"&list_id={EMPTY_SENTINEL}"
            "&email="
        )
        context = parse_lead_params(query)

        assert dict(context) == {"first_name": "Sam"}
        assert context.list_id is None

    def test_url_encoding_is_decoded(self):
        context = parse_lead_params("fullname=Agent%20Smith&address1=12+Main+St")

        assert context["fullname"] == "Agent Smith"
        assert context["address1"] == "12 Main St"

    def test_mapping_input(self):
        context = parse_lead_params({"first_name": "Ana", "phone_number": "--A--phone_number--B--"})

        assert dict(context) == {"first_name": "Ana"}

    def test_no_input_is_empty_context(self):
        assert len(parse_lead_params(None)) == 0
        assert len(parse_lead_params("")) == 0

    def test_list_id_property(self):
        assert parse_lead_params("list_id=1001").list_id == "1001"


class TestIsUnfilled:
    def test_values(self):
        assert is_unfilled(None)
        assert is_unfilled("")
        assert is_unfilled(EMPTY_SENTINEL)
        assert is_unfilled("--A--user--B--")
        assert not is_unfilled("007")
        assert not is_unfilled("A--B")


class TestGetUserId:
    def test_logged_in_user_wins(self):
        context = LeadContext({"user": "007"})
        assert get_user_id(context, logged_in_user="021") == "021"

    def test_dialer_fields_in_order(self):
        assert get_user_id(LeadContext({"user": "007", "user_code": "x"})) == "007"
        assert get_user_id(LeadContext({"user_code": "abc", "fullname": "Agent"})) == "abc"
        assert get_user_id(LeadContext({"fullname": "Agent Smith"})) == "Agent Smith"

    def test_unfilled_logged_in_user_is_ignored(self):
        context = LeadContext({"user": "007"})
        assert get_user_id(context, logged_in_user=EMPTY_SENTINEL) == "007"

    def test_no_user(self):
        assert get_user_id(LeadContext()) is None


class TestLeadDisplay:
    def test_summary(self):
        context = LeadContext({
            "first_name": "Sam",
            "last_name": "Jones",
            "phone_number": "5551234567",
            "city": "Fresno",
            "state": "CA",
        })
        assert format_lead_display(context) == "Sam Jones • 5551234567 • Fresno, CA"

    def test_partial(self):
        assert format_lead_display(LeadContext({"first_name": "Sam", "city": "Fresno"})) == "Sam"


class TestLeadContextHolder:
    def test_refresh_replaces_snapshot(self):
        holder = LeadContextHolder()
        assert not holder.in_dialer

        first = holder.context
        holder.refresh("first_name=Sam")

        assert holder.in_dialer
        assert holder.context["first_name"] == "Sam"
        assert len(first) == 0
