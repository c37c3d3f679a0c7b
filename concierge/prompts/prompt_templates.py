"""Dynamic prompt and message construction for each stage of a journey."""

from typing import Any, Mapping, Optional, Sequence

from concierge.config import settings
from concierge.conversation.stages import Stage, StageId
from concierge.prompts.system_prompts import HINDI_TONE_RULES
from concierge.schemas.conversation_schema import HistoryMessage, MessageDirection
from concierge.tools.checkups import format_member_names, format_plan
from concierge.tools.hospitals import format_hospital_list
from concierge.tools.policy import POLICY_PROFILE, PolicyProfile, find_insured_member
from concierge.utils import first_name

_HIDDEN_KEYS = {"hospital_search_results", "selected_hospital_details", "claim_error",
                "claim_error_payload", "followups_scheduled", "package_options"}


def _first(items: Optional[Sequence[Any]]) -> Any:
    return items[0] if items else None


class _BlankDefaults(dict):
    """format_map mapping that renders unknown placeholders as empty text."""

    def __missing__(self, key: str) -> str:
        return ""


def admission_details_request(collected: Mapping[str, Any]) -> str:
    """Ask only for whichever of cost and date is still missing."""
    has_cost = bool(collected.get("estimated_cost"))
    has_date = bool(collected.get("admission_date"))
    if has_date and not has_cost:
        return (f"Got it, admission on *{collected['admission_date']}*. What is the "
                "estimated cost of the treatment the hospital has quoted?")
    if has_cost and not has_date:
        return (f"Thanks, I've noted the estimated cost of Rs. {collected['estimated_cost']}. "
                "On which date (and roughly what time) is the admission planned?")
    return ("To start the cashless claim I need two details: the estimated cost of "
            "the treatment, and the planned admission date and time.")


def scheduling_details_request(collected: Mapping[str, Any]) -> str:
    """Ask only for whichever of date and time is still missing."""
    day = collected.get("preferred_date")
    hour = collected.get("preferred_time")
    if day and not hour:
        return (f"Got it, *{day}*. What time would suit you for the home sample "
                "collection?")
    if hour and not day:
        return f"Noted *{hour}*. On which date would you like the check-up?"
    return ("We do a home sample collection for the check-up. Which date and time "
            "would suit you?")


def member_choices(profile: PolicyProfile = POLICY_PROFILE) -> str:
    options = [f"{first_name(m['name'])} ({m['relationship'].lower()})"
               for m in profile["insured_members"]]
    return f"You can choose {', '.join(options)}, or the whole family."


def patient_label(collected: Mapping[str, Any], profile: PolicyProfile = POLICY_PROFILE) -> str:
    relation = collected.get("patient_relation")
    if not relation or relation == "Self":
        return "you"
    member = find_insured_member(relation, profile)
    if member and member["relationship"] == relation:
        return first_name(member["name"])
    return f"your {relation.lower()}"


def stage_values(
    collected: Mapping[str, Any],
    profile: PolicyProfile = POLICY_PROFILE,
) -> dict[str, Any]:
    """Values available to ``{placeholders}`` in stage hints."""
    values: dict[str, Any] = {
        key: value for key, value in collected.items()
        if isinstance(value, (str, int, float))
    }
    values.update(
        first_name=first_name(profile["policyholder"]),
        patient=patient_label(collected, profile),
        department=collected.get("department") or "specialist",
        hospital_list=format_hospital_list(collected.get("hospital_search_results") or []),
        admission_details_request=admission_details_request(collected),
        support_line=settings.concierge.support_line,
        members=format_member_names(collected.get("selected_members") or []) or "you",
        member_choices=member_choices(profile),
        package_details=format_plan(_first(collected.get("package_options"))),
        scheduling_details_request=scheduling_details_request(collected),
    )
    return values


def render_stage_fallback(
    stage: Stage,
    collected: Mapping[str, Any],
    profile: PolicyProfile = POLICY_PROFILE,
) -> str:
    """Deterministic reply for a stage, used when text generation fails."""
    return stage.response_hint.format_map(_BlankDefaults(stage_values(collected, profile))).strip()


def _collected_summary(collected: Mapping[str, Any]) -> list[str]:
    lines = []
    for key, value in collected.items():
        if key in _HIDDEN_KEYS or value in (None, ""):
            continue
        lines.append(f"  {key.replace('_', ' ')}: {value}")
    return lines


def build_stage_prompt(
    stage: Stage,
    collected: Mapping[str, Any],
    profile: PolicyProfile = POLICY_PROFILE,
    is_first_message: bool = False,
    language: str = "en",
    search_failed: bool = False,
    journey: str = "",
) -> str:
    """Build the user prompt for the reply at ``stage``."""
    parts: list[str] = [f"Journey: {journey}"] if journey else []
    parts += [
        f"Customer: {profile['policyholder']} ({profile['plan']} policy)",
        "Insured members: " + ", ".join(
            f"{m['name']} ({m['relationship']})" for m in profile["insured_members"]
        ),
    ]

    summary = _collected_summary(collected)
    if summary:
        parts.append("Information collected so far (do not ask for it again):")
        parts.extend(summary)

    if stage.id in (StageId.SHOW_HOSPITALS, StageId.AWAIT_HOSPITAL_SELECTION):
        parts.append("Network hospitals to present, exactly as listed:")
        parts.append(format_hospital_list(collected.get("hospital_search_results") or []))

    if stage.id == StageId.SHOW_PACKAGE_OPTIONS:
        parts.append("Health check-up package to present, exactly as listed:")
        parts.append(format_plan(_first(collected.get("package_options"))))

    if search_failed:
        parts.append(
            "No network hospital matched the request. Apologize briefly and ask the "
            "customer to describe the condition again, with a nearby area if they "
            "have one in mind."
        )

    parts.append(f"\nSTAGE GOAL ({stage.id.value}): "
                 f"{render_stage_fallback(stage, collected, profile)}")
    if is_first_message:
        parts.append("This is the first message of the conversation: greet the customer by first name.")
    if language == "hi":
        parts.append(HINDI_TONE_RULES.strip())
    parts.append("\nWrite the reply to the customer now.")
    return "\n".join(parts)


def format_history(history: Sequence[HistoryMessage]) -> str:
    lines = []
    for message in history:
        speaker = "Customer" if message.direction == MessageDirection.INBOUND else "You"
        lines.append(f"{speaker}: {message.text}")
    return "\n".join(lines)


def build_humanize_prompt(
    scripted: str,
    history: Sequence[HistoryMessage],
    customer_first_name: str,
) -> str:
    """Prompt asking for a warmer rewrite of a scripted follow-up."""
    parts = [f"You are sending a proactive follow-up message to {customer_first_name}."]
    if history:
        parts.append("Recent conversation:")
        parts.append(format_history(history))
    parts.append("Rewrite this scripted message naturally, keeping every fact unchanged:")
    parts.append(scripted)
    return "\n\n".join(parts)


def build_department_prompt(medical_reason: str, departments: Sequence[str]) -> str:
    return (
        f"Complaint: {medical_reason}\n"
        f"Departments: {', '.join(departments)}\n"
        "Department:"
    )


def build_no_results_message(collected: Mapping[str, Any]) -> str:
    location = collected.get("location")
    where = f" in {location}" if location else ""
    return (f"I couldn't find a network hospital{where} for that just yet. Could you "
            "describe the condition again in a few words? Mention a nearby area too "
            "if you have one in mind.")


def build_processing_message(profile: PolicyProfile = POLICY_PROFILE) -> str:
    """Interim reply returned while the claim is submitted in the background."""
    return (
        f"Thank you, {first_name(profile['policyholder'])}. I have all the information "
        "I need. I'm now initiating the cashless claim with the hospital and will "
        "let you know as soon as it's confirmed."
    )


def build_claim_confirmation_message(
    collected: Mapping[str, Any],
    intimation_id: str,
    request_id: Optional[str],
    profile: PolicyProfile = POLICY_PROFILE,
) -> str:
    hospital = collected.get("selected_hospital") or "the hospital"
    patient = patient_label(collected, profile)
    whose = "your" if patient == "you" else f"{patient}'s"
    lines = [
        f"Hi {first_name(profile['policyholder'])}! Great news, the claim has been "
        f"initiated for {whose} admission at *{hospital}*.",
        "",
        f"*Intimation ID:* {intimation_id}",
    ]
    if request_id:
        lines.append(f"*Request ID:* {request_id}")
    lines.extend([
        "",
        "Please use this intimation ID for all correspondence about this claim. "
        "The hospital has been notified.",
    ])
    return "\n".join(lines)


def build_claim_failure_message(profile: PolicyProfile = POLICY_PROFILE) -> str:
    return (
        f"I'm sorry, {first_name(profile['policyholder'])}. I couldn't complete the "
        "claim intimation right now. Our claims team has your details and will "
        f"reach out shortly, or you can call {settings.concierge.support_line}."
    )
