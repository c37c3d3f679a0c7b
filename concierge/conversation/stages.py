"""
Stage definitions for the concierge journeys.

Two stage tables live here: the hospital admission claim journey and the
health check-up booking journey. They share the opening and closing stage
ids, each with its own wording and transitions.

A stage is an immutable description of one step of a goal: which fields
must be known before its goal is met, which fields it tries to pull out
of the next user message, where each outcome edge leads, and the hint the
response builder turns into prose. The hint is also the deterministic
fallback text when text generation is unavailable, so every hint reads as
a complete message once its ``{placeholders}`` are filled.
"""

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Mapping


class StageId(str, Enum):
    """Every stage id used by any journey."""
    GREETING = "greeting"
    IDENTIFY_PATIENT = "identify_patient"
    MEDICAL_REASON = "medical_reason"
    SHOW_HOSPITALS = "show_hospitals"
    AWAIT_HOSPITAL_SELECTION = "await_hospital_selection"
    CONFIRM_ADMISSION = "confirm_admission"
    COLLECT_ADMISSION_DETAILS = "collect_admission_details"
    INITIATE_CLAIM = "initiate_claim"
    SCHEDULE_FOLLOWUPS = "schedule_followups"
    ADMISSION_CONFIRMED = "admission_confirmed"
    CLAIM_FAILED = "claim_failed"
    CLOSE_POLITELY = "close_politely"
    TELECONSULTATION_RESPONSE = "teleconsultation_response"
    COLLECT_CONSULTATION_PREFERENCES = "collect_consultation_preferences"
    CONFIRM_CONSULTATION = "confirm_consultation"
    IDENTIFY_MEMBER = "identify_member"
    SHOW_PACKAGE_OPTIONS = "show_package_options"
    COLLECT_SCHEDULING_DETAILS = "collect_scheduling_details"
    CONFIRM_APPOINTMENT = "confirm_appointment"
    SCHEDULE_REMINDERS = "schedule_reminders"
    TELECONSULTATION_CALL = "teleconsultation_call"
    END = "end"


class Edge(str, Enum):
    """Outcome labels a decision rule can produce."""
    YES = "yes"
    NO = "no"
    COLLECTED = "collected"
    COMPLETE = "complete"
    PARTIAL = "partial"
    SHOWN = "shown"
    SELECTED = "selected"
    SUCCESS = "success"
    FAILURE = "failure"
    RESTART = "restart"
    TELECONSULT = "teleconsult"
    END = "end"
    DEFAULT = "default"


class SideEffect(str, Enum):
    """Action performed when a conversation transitions into a stage."""
    NONE = "none"
    HOSPITAL_SEARCH = "hospital_search"
    CLAIM_SUBMISSION = "claim_submission"
    PACKAGE_LOOKUP = "package_lookup"
    FOLLOWUP_SCHEDULING = "followup_scheduling"


@dataclass(frozen=True)
class Stage:
    """Immutable definition of a single stage."""

    id: StageId
    required_data: tuple[str, ...] = ()
    collect_data: tuple[str, ...] = ()
    transitions: Mapping[Edge, StageId] = field(default_factory=dict)
    response_hint: str = ""
    side_effect: SideEffect = SideEffect.NONE

    def __post_init__(self) -> None:
        object.__setattr__(self, "transitions", MappingProxyType(dict(self.transitions)))

    def missing_required(self, collected: Mapping[str, object]) -> list[str]:
        """Return required fields not yet present in collected data."""
        return [name for name in self.required_data if collected.get(name) is None]


def _stage_table(*stages: Stage) -> Mapping[StageId, Stage]:
    return MappingProxyType({stage.id: stage for stage in stages})


ADMISSION_CLAIM_STAGES: Mapping[StageId, Stage] = _stage_table(
    # --- Opening ---
    Stage(
        id=StageId.GREETING,
        transitions={
            Edge.YES: StageId.IDENTIFY_PATIENT,
            Edge.NO: StageId.CLOSE_POLITELY,
            Edge.DEFAULT: StageId.IDENTIFY_PATIENT,
        },
        response_hint=(
            "Hello {first_name}, I'm here to help you plan a hospital admission "
            "and get your cashless claim started. Shall we begin?"
        ),
    ),

    # --- Patient and condition ---
    Stage(
        id=StageId.IDENTIFY_PATIENT,
        required_data=("patient_relation",),
        collect_data=("patient_relation",),
        transitions={Edge.COLLECTED: StageId.MEDICAL_REASON},
        response_hint=(
            "Who is the admission for? Is it for yourself, your spouse, "
            "your son or your daughter?"
        ),
    ),
    Stage(
        id=StageId.MEDICAL_REASON,
        required_data=("medical_reason",),
        collect_data=("medical_reason", "location"),
        transitions={Edge.COLLECTED: StageId.SHOW_HOSPITALS},
        response_hint=(
            "Could you tell me briefly what the medical issue is, "
            "and which area you would prefer the hospital to be in?"
        ),
    ),

    # --- Hospital selection ---
    Stage(
        id=StageId.SHOW_HOSPITALS,
        collect_data=("selected_hospital",),
        transitions={
            Edge.SHOWN: StageId.AWAIT_HOSPITAL_SELECTION,
            Edge.SELECTED: StageId.CONFIRM_ADMISSION,
        },
        response_hint=(
            "Here are network hospitals that treat {department} cases:\n"
            "{hospital_list}\nWhich one would you like to go with?"
        ),
        side_effect=SideEffect.HOSPITAL_SEARCH,
    ),
    Stage(
        id=StageId.AWAIT_HOSPITAL_SELECTION,
        required_data=("selected_hospital",),
        collect_data=("selected_hospital",),
        transitions={Edge.COLLECTED: StageId.CONFIRM_ADMISSION},
        response_hint=(
            "Please tell me the name of the hospital you would like to choose "
            "from the list:\n{hospital_list}"
        ),
    ),
    Stage(
        id=StageId.CONFIRM_ADMISSION,
        required_data=("admission_confirmed",),
        collect_data=("admission_confirmed",),
        transitions={
            Edge.YES: StageId.COLLECT_ADMISSION_DETAILS,
            Edge.NO: StageId.CLOSE_POLITELY,
        },
        response_hint=(
            "{selected_hospital} is a good choice. Shall I go ahead and "
            "plan the admission there?"
        ),
    ),

    # --- Admission details and claim ---
    Stage(
        id=StageId.COLLECT_ADMISSION_DETAILS,
        required_data=("estimated_cost", "admission_date"),
        collect_data=("estimated_cost", "admission_date", "admission_time"),
        transitions={
            Edge.COMPLETE: StageId.INITIATE_CLAIM,
            Edge.PARTIAL: StageId.COLLECT_ADMISSION_DETAILS,
        },
        response_hint="{admission_details_request}",
    ),
    Stage(
        id=StageId.INITIATE_CLAIM,
        transitions={
            Edge.SUCCESS: StageId.SCHEDULE_FOLLOWUPS,
            Edge.FAILURE: StageId.CLAIM_FAILED,
        },
        response_hint=(
            "I'm still working on your claim intimation. I'll message you "
            "as soon as it is confirmed."
        ),
        side_effect=SideEffect.CLAIM_SUBMISSION,
    ),
    Stage(
        id=StageId.SCHEDULE_FOLLOWUPS,
        transitions={Edge.COMPLETE: StageId.ADMISSION_CONFIRMED},
        response_hint=(
            "Your claim intimation {intimation_id} is registered. I'll keep "
            "sending you reminders before the admission."
        ),
    ),

    # --- Terminal and branch stages ---
    Stage(
        id=StageId.ADMISSION_CONFIRMED,
        transitions={
            Edge.RESTART: StageId.IDENTIFY_PATIENT,
            Edge.END: StageId.END,
        },
        response_hint=(
            "Everything is set for the admission at {selected_hospital}. "
            "Wishing a speedy recovery. Message me anytime if you need help."
        ),
    ),
    Stage(
        id=StageId.CLAIM_FAILED,
        transitions={
            Edge.RESTART: StageId.IDENTIFY_PATIENT,
            Edge.END: StageId.END,
        },
        response_hint=(
            "I'm sorry, the claim intimation could not be completed. Our team "
            "will reach out to you, or you can call {support_line}."
        ),
    ),
    Stage(
        id=StageId.CLOSE_POLITELY,
        transitions={
            Edge.RESTART: StageId.IDENTIFY_PATIENT,
            Edge.END: StageId.END,
        },
        response_hint=(
            "No problem at all, {first_name}. If you need help with a hospital "
            "admission later, just message me."
        ),
    ),

    # --- Teleconsultation branch ---
    Stage(
        id=StageId.TELECONSULTATION_RESPONSE,
        required_data=("teleconsultation_interest",),
        collect_data=("teleconsultation_interest",),
        transitions={
            Edge.YES: StageId.COLLECT_CONSULTATION_PREFERENCES,
            Edge.NO: StageId.CLOSE_POLITELY,
        },
        response_hint=(
            "Happy to help with a follow-up tele-consultation after the "
            "discharge. Shall I book one with a {department} doctor?"
        ),
    ),
    Stage(
        id=StageId.COLLECT_CONSULTATION_PREFERENCES,
        required_data=("consultation_date", "consultation_time"),
        collect_data=("consultation_date", "consultation_time"),
        transitions={Edge.COLLECTED: StageId.CONFIRM_CONSULTATION},
        response_hint=(
            "Which day and time would suit you for the tele-consultation?"
        ),
    ),
    Stage(
        id=StageId.CONFIRM_CONSULTATION,
        transitions={Edge.COMPLETE: StageId.END},
        response_hint=(
            "Your tele-consultation is booked for {consultation_date} at "
            "{consultation_time}. The doctor will call you then."
        ),
    ),
    Stage(
        id=StageId.END,
        transitions={
            Edge.RESTART: StageId.IDENTIFY_PATIENT,
            Edge.TELECONSULT: StageId.TELECONSULTATION_RESPONSE,
        },
        response_hint=(
            "Thank you, {first_name}. I'm here whenever you need help with "
            "a hospital admission."
        ),
    ),
)


HEALTH_CHECKUP_STAGES: Mapping[StageId, Stage] = _stage_table(
    Stage(
        id=StageId.GREETING,
        transitions={
            Edge.YES: StageId.IDENTIFY_MEMBER,
            Edge.NO: StageId.CLOSE_POLITELY,
            Edge.DEFAULT: StageId.IDENTIFY_MEMBER,
        },
        response_hint=(
            "Hi {first_name}! You and your family are entitled to a *free annual "
            "health check-up* under your policy. Would you like me to help you "
            "schedule it?"
        ),
    ),
    Stage(
        id=StageId.IDENTIFY_MEMBER,
        required_data=("selected_members",),
        collect_data=("selected_members",),
        transitions={
            Edge.COLLECTED: StageId.SHOW_PACKAGE_OPTIONS,
            Edge.NO: StageId.CLOSE_POLITELY,
        },
        response_hint="Who should the check-up be booked for? {member_choices}",
    ),
    Stage(
        id=StageId.SHOW_PACKAGE_OPTIONS,
        required_data=("package_accepted",),
        collect_data=("package_accepted",),
        transitions={
            Edge.YES: StageId.COLLECT_SCHEDULING_DETAILS,
            Edge.NO: StageId.CLOSE_POLITELY,
        },
        response_hint=(
            "Here is the package I'd recommend for {members}:\n{package_details}\n"
            "Shall I go ahead with it?"
        ),
        side_effect=SideEffect.PACKAGE_LOOKUP,
    ),
    Stage(
        id=StageId.COLLECT_SCHEDULING_DETAILS,
        required_data=("preferred_date", "preferred_time"),
        collect_data=("preferred_date", "preferred_time"),
        transitions={
            Edge.COMPLETE: StageId.CONFIRM_APPOINTMENT,
            Edge.PARTIAL: StageId.COLLECT_SCHEDULING_DETAILS,
        },
        response_hint="{scheduling_details_request}",
    ),
    Stage(
        id=StageId.CONFIRM_APPOINTMENT,
        transitions={Edge.COMPLETE: StageId.SCHEDULE_REMINDERS},
        response_hint=(
            "Done! The {recommended_package} for {members} is booked on "
            "*{preferred_date}* at *{preferred_time}* with {collection_method}. "
            "I'll send you the fasting instructions before the visit."
        ),
        side_effect=SideEffect.FOLLOWUP_SCHEDULING,
    ),
    Stage(
        id=StageId.SCHEDULE_REMINDERS,
        required_data=("teleconsultation_interest",),
        collect_data=("teleconsultation_interest",),
        transitions={
            Edge.YES: StageId.TELECONSULTATION_CALL,
            Edge.NO: StageId.CLOSE_POLITELY,
        },
        response_hint=(
            "You're all set, {first_name}. I'll keep you posted and share the "
            "reports as soon as they are ready."
        ),
    ),
    Stage(
        id=StageId.TELECONSULTATION_CALL,
        transitions={Edge.COMPLETE: StageId.END},
        response_hint=(
            "We have aligned a tele-consultation with our doctor. They will call "
            "you in a few minutes, so please keep your reports handy."
        ),
    ),
    Stage(
        id=StageId.CLOSE_POLITELY,
        transitions={
            Edge.RESTART: StageId.IDENTIFY_MEMBER,
            Edge.END: StageId.END,
        },
        response_hint=(
            "No problem, {first_name}. Your free health check-up stays available, "
            "so just message me whenever you'd like to book it."
        ),
    ),
    Stage(
        id=StageId.END,
        transitions={Edge.RESTART: StageId.IDENTIFY_MEMBER},
        response_hint=(
            "Thank you, {first_name}. I'm here whenever you need help with your "
            "health check-up."
        ),
    ),
)
