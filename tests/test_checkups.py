"""Tests for check-up package recommendation and reminder context."""

from datetime import date

from concierge.agents.side_effects import SideEffectExecutor
from concierge.tools.checkups import (
    HEALTH_CHECKUP_PLANS,
    HOME_SAMPLE_COLLECTION,
    format_member_names,
    format_plan,
    recommend_plan,
    reminder_context,
)

from tests.conftest import (
    TODAY,
    FakeTextGenerator,
    claim_response,
    claim_transport,
    make_claim_client,
)


class TestRecommendPlan:
    def test_oldest_member_decides(self):
        assert recommend_plan(["Vineet", "Aarav"], today=TODAY)["name"] == \
            "Comprehensive Health Check 40+"

    def test_younger_members_get_essential(self):
        assert recommend_plan(["Anjali", "Aarav"], today=TODAY)["name"] == \
            "Essential Health Check"

    def test_age_counted_from_birthday(self):
        # Vineet turns 40 on 02 Mar 2025
        assert recommend_plan(["Vineet"], today=date(2025, 3, 1))["min_age"] == 0
        assert recommend_plan(["Vineet"], today=date(2025, 3, 2))["min_age"] == 40

    def test_unknown_members_fall_back_to_first_plan(self):
        assert recommend_plan(["Nobody"], today=TODAY)["plan_id"] == "HC-ESSENTIAL"

    def test_no_plans(self):
        assert recommend_plan(["Vineet"], today=TODAY, plans=[]) is None

    def test_returns_a_copy(self):
        plan = recommend_plan(["Vineet"], today=TODAY)
        plan["name"] = "changed"
        assert HEALTH_CHECKUP_PLANS[1]["name"] == "Comprehensive Health Check 40+"


class TestFormatting:
    def test_member_names(self):
        assert format_member_names([]) == ""
        assert format_member_names(["Vineet"]) == "Vineet"
        assert format_member_names(["Vineet", "Anjali"]) == "Vineet and Anjali"
        assert format_member_names(["Vineet", "Anjali", "Aarav"]) == "Vineet, Anjali and Aarav"

    def test_plan_lists_tests(self):
        text = format_plan(HEALTH_CHECKUP_PLANS[0])
        assert text.startswith("*Essential Health Check*\n1. Complete Blood Count")
        assert format_plan(None) == ""

    def test_reminder_context(self):
        context = reminder_context({
            "selected_members": ["Vineet", "Anjali"],
            "recommended_package": "Essential Health Check",
            "preferred_date": "20 Oct 2026",
            "preferred_time": "9am",
        })
        assert context == {
            "customerName": "Vineet",
            "memberNames": "Vineet and Anjali",
            "packageName": "Essential Health Check",
            "date": "20 Oct 2026",
            "time": "9am",
        }
        assert reminder_context({})["memberNames"] == "you"


class TestPackageOffer:
    def test_offer_for_selected_members(self):
        transport, _ = claim_transport(claim_response())
        executor = SideEffectExecutor(FakeTextGenerator(), make_claim_client(transport))
        offer = executor.offer_package({"selected_members": ["Aarav"]}, TODAY)
        assert offer["recommended_package"] == "Essential Health Check"
        assert offer["collection_method"] == HOME_SAMPLE_COLLECTION
        assert [plan["plan_id"] for plan in offer["package_options"]] == ["HC-ESSENTIAL"]
