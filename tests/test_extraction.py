"""Tests for per-stage field extraction."""

from concierge.conversation.extraction import FIELD_MATCHERS, extract
from concierge.conversation.stages import ADMISSION_CLAIM_STAGES, HEALTH_CHECKUP_STAGES, StageId
from concierge.schemas.conversation_schema import ConversationState
from concierge.tools.hospitals import search_hospitals

from tests.conftest import TODAY


def _stage(stage_id: StageId):
    return ADMISSION_CLAIM_STAGES[stage_id]


class TestScope:
    def test_only_declared_fields_extracted(self):
        update = extract(
            _stage(StageId.IDENTIFY_PATIENT),
            "my wife, admission tomorrow, cost 20000",
            {},
            TODAY,
        )
        assert update == {"patient_relation": "Spouse"}

    def test_stage_without_fields_extracts_nothing(self):
        assert extract(_stage(StageId.GREETING), "yes, for my wife", {}, TODAY) == {}

    def test_blank_text_extracts_nothing(self):
        assert extract(_stage(StageId.COLLECT_ADMISSION_DETAILS), "   ", {}, TODAY) == {}

    def test_every_collected_field_has_a_matcher(self):
        for stage in [*ADMISSION_CLAIM_STAGES.values(), *HEALTH_CHECKUP_STAGES.values()]:
            for field_name in stage.collect_data:
                assert field_name in FIELD_MATCHERS


class TestRelation:
    def test_english(self):
        assert extract(_stage(StageId.IDENTIFY_PATIENT), "It's for my son", {}, TODAY) == \
            {"patient_relation": "Son"}

    def test_hinglish(self):
        assert extract(_stage(StageId.IDENTIFY_PATIENT), "meri patni ke liye", {}, TODAY) == \
            {"patient_relation": "Spouse"}

    def test_self(self):
        assert extract(_stage(StageId.IDENTIFY_PATIENT), "for myself", {}, TODAY) == \
            {"patient_relation": "Self"}

    def test_unknown_relation(self):
        assert extract(_stage(StageId.IDENTIFY_PATIENT), "not sure yet", {}, TODAY) == {}


class TestMedicalReason:
    def test_reason_and_location(self):
        update = extract(
            _stage(StageId.MEDICAL_REASON), "knee pain, a hospital near Andheri please", {}, TODAY
        )
        assert update["medical_reason"] == "knee pain, a hospital near Andheri please"
        assert update["location"] == "Andheri"

    def test_location_stopwords_skipped(self):
        update = extract(_stage(StageId.MEDICAL_REASON), "pain in the back", {}, TODAY)
        assert "location" not in update

    def test_reason_locked_once_hospitals_found(self):
        existing = {
            "medical_reason": "hand fracture",
            "hospital_search_results": search_hospitals("Orthopedics"),
        }
        update = extract(_stage(StageId.MEDICAL_REASON), "also some fever", existing, TODAY)
        assert "medical_reason" not in update

    def test_reason_replaceable_before_hospitals_found(self):
        update = extract(
            _stage(StageId.MEDICAL_REASON), "actually a fractured arm",
            {"medical_reason": "skin rash"}, TODAY,
        )
        assert update["medical_reason"] == "actually a fractured arm"

    def test_lock_follows_search_results(self):
        matcher = FIELD_MATCHERS["medical_reason"]
        assert not matcher.is_locked({})
        assert not matcher.is_locked({"medical_reason": "rash", "hospital_search_results": []})
        assert matcher.is_locked({"medical_reason": "rash", "hospital_search_results": [{}]})
        assert FIELD_MATCHERS["estimated_cost"].is_locked({"estimated_cost": "20000"})


class TestAdmissionDetails:
    def test_cost_date_and_time(self):
        update = extract(
            _stage(StageId.COLLECT_ADMISSION_DETAILS), "20000 tomorrow 10am", {}, TODAY
        )
        assert update == {
            "estimated_cost": "20000",
            "admission_date": "20 Oct 2026",
            "admission_time": "10am",
        }

    def test_cost_with_thousands_separators(self):
        update = extract(
            _stage(StageId.COLLECT_ADMISSION_DETAILS), "around Rs. 1,50,000", {}, TODAY
        )
        assert update["estimated_cost"] == "150000"

    def test_date_digits_are_not_a_cost(self):
        update = extract(
            _stage(StageId.COLLECT_ADMISSION_DETAILS), "admission on 25/10/2026", {}, TODAY
        )
        assert "estimated_cost" not in update
        assert update["admission_date"] == "25 Oct 2026"

    def test_short_numbers_are_not_a_cost(self):
        update = extract(_stage(StageId.COLLECT_ADMISSION_DETAILS), "maybe 500", {}, TODAY)
        assert "estimated_cost" not in update

    def test_first_cost_wins(self):
        existing = {"estimated_cost": "20000"}
        update = extract(_stage(StageId.COLLECT_ADMISSION_DETAILS), "25000", existing, TODAY)
        assert "estimated_cost" not in update

    def test_repeated_message_is_idempotent(self):
        stage = _stage(StageId.COLLECT_ADMISSION_DETAILS)
        first = extract(stage, "20000 on friday", {}, TODAY)
        second = extract(stage, "20000 on friday", first, TODAY)
        assert first["admission_date"] == "23 Oct 2026"
        assert "estimated_cost" not in second
        assert "admission_date" not in second


class TestConfirmation:
    def test_yes(self):
        assert extract(_stage(StageId.CONFIRM_ADMISSION), "yes, go ahead", {}, TODAY) == \
            {"admission_confirmed": True}

    def test_no_wins_over_yes(self):
        assert extract(_stage(StageId.CONFIRM_ADMISSION), "ok, but not now", {}, TODAY) == \
            {"admission_confirmed": False}

    def test_no_problem_is_not_a_refusal(self):
        assert extract(_stage(StageId.CONFIRM_ADMISSION), "sure, no problem", {}, TODAY) == \
            {"admission_confirmed": True}

    def test_undecided(self):
        assert extract(_stage(StageId.CONFIRM_ADMISSION), "hmm", {}, TODAY) == {}


class TestHospitalSelection:
    def test_selection_resolves_against_shown_candidates(self):
        existing = {"hospital_search_results": search_hospitals("Orthopedics")}
        update = extract(
            _stage(StageId.AWAIT_HOSPITAL_SELECTION), "Seven Star Hospital", existing, TODAY
        )
        assert update["selected_hospital"] == "Seven Star Multispeciality Hospital"
        assert update["selected_hospital_details"]["hospital_id"] == "HSP-1001"

    def test_generic_mention_kept_unresolved(self):
        existing = {"hospital_search_results": search_hospitals("Orthopedics")}
        update = extract(
            _stage(StageId.AWAIT_HOSPITAL_SELECTION), "I want a hospital", existing, TODAY
        )
        assert update == {"selected_hospital": "I want a hospital"}

    def test_no_candidates_no_selection(self):
        assert extract(_stage(StageId.SHOW_HOSPITALS), "show me the options", {}, TODAY) == {}


class TestConsultationPreferences:
    def test_weekday_and_hinglish_time(self):
        update = extract(
            _stage(StageId.COLLECT_CONSULTATION_PREFERENCES), "monday, dus baje shaam", {}, TODAY
        )
        assert update == {"consultation_date": "26 Oct 2026", "consultation_time": "10 baje shaam"}


def _checkup_stage(stage_id: StageId):
    return HEALTH_CHECKUP_STAGES[stage_id]


class TestMemberSelection:
    def test_relations_in_policy_order(self):
        update = extract(_checkup_stage(StageId.IDENTIFY_MEMBER), "my wife and me", {}, TODAY)
        assert update == {"selected_members": ["Vineet", "Anjali"]}

    def test_first_name(self):
        update = extract(_checkup_stage(StageId.IDENTIFY_MEMBER), "just Aarav", {}, TODAY)
        assert update == {"selected_members": ["Aarav"]}

    def test_whole_family(self):
        update = extract(_checkup_stage(StageId.IDENTIFY_MEMBER), "the whole family", {}, TODAY)
        assert update == {"selected_members": ["Vineet", "Anjali", "Aarav"]}

    def test_plain_yes_books_policyholder(self):
        update = extract(_checkup_stage(StageId.IDENTIFY_MEMBER), "yes", {}, TODAY)
        assert update == {"selected_members": ["Vineet"]}

    def test_unknown_member(self):
        assert extract(_checkup_stage(StageId.IDENTIFY_MEMBER), "my cousin", {}, TODAY) == {}


class TestPackageChoice:
    def test_accepting_selects_recommended_package(self):
        existing = {"recommended_package": "Essential Health Check"}
        update = extract(_checkup_stage(StageId.SHOW_PACKAGE_OPTIONS), "sure", existing, TODAY)
        assert update == {"package_accepted": True, "selected_package": "Essential Health Check"}

    def test_declining(self):
        existing = {"recommended_package": "Essential Health Check"}
        update = extract(_checkup_stage(StageId.SHOW_PACKAGE_OPTIONS), "no thanks", existing, TODAY)
        assert update == {"package_accepted": False}

    def test_scheduling_details(self):
        update = extract(
            _checkup_stage(StageId.COLLECT_SCHEDULING_DETAILS), "monday 8am", {}, TODAY
        )
        assert update == {"preferred_date": "26 Oct 2026", "preferred_time": "8am"}


class TestMonotonicity:
    def test_later_turn_never_clears_fields(self):
        state = ConversationState(conversation_id="c-1", customer_id="cust", intent_id="x")
        state.merge(extract(_stage(StageId.COLLECT_ADMISSION_DETAILS), "20000", {}, TODAY))
        state.merge(extract(
            _stage(StageId.COLLECT_ADMISSION_DETAILS), "tomorrow", state.collected_data, TODAY
        ))
        state.merge({"admission_time": None})
        assert state.collected_data == {"estimated_cost": "20000", "admission_date": "20 Oct 2026"}
