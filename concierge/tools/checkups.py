"""
Health check-up packages covered by the policy's annual check-up benefit.

The package is recommended from the age of the oldest member being
booked. Like the hospital catalog, the static list stands in for the
insurer's wellness partner service.
"""

import logging
from datetime import date, datetime
from typing import Any, Mapping, Optional, Sequence, TypedDict

from concierge.tools.policy import POLICY_PROFILE, InsuredMember, PolicyProfile
from concierge.utils import first_name

logger = logging.getLogger(__name__)

HOME_SAMPLE_COLLECTION = "home sample collection"


class CheckupPlan(TypedDict):
    plan_id: str
    name: str
    min_age: int
    tests: list[str]


HEALTH_CHECKUP_PLANS: list[CheckupPlan] = [
    {
        "plan_id": "HC-ESSENTIAL",
        "name": "Essential Health Check",
        "min_age": 0,
        "tests": [
            "Complete Blood Count",
            "Fasting Blood Sugar",
            "Lipid Profile",
            "Liver Function Test",
            "Kidney Function Test",
            "Urine Routine",
        ],
    },
    {
        "plan_id": "HC-COMPREHENSIVE-40",
        "name": "Comprehensive Health Check 40+",
        "min_age": 40,
        "tests": [
            "Complete Blood Count",
            "HbA1c",
            "Lipid Profile",
            "Liver Function Test",
            "Kidney Function Test",
            "Thyroid Profile (T3, T4, TSH)",
            "Vitamin D and B12",
            "ECG",
            "Urine Routine",
        ],
    },
]


def _age(member: InsuredMember, today: date) -> Optional[int]:
    try:
        born = datetime.strptime(member["dob"], "%d %b %Y").date()
    except ValueError:
        logger.warning("Unreadable date of birth for %s", member["name"])
        return None
    return today.year - born.year - ((today.month, today.day) < (born.month, born.day))


def selected_members(
    names: Sequence[str],
    profile: PolicyProfile = POLICY_PROFILE,
) -> list[InsuredMember]:
    wanted = {name.lower() for name in names}
    return [m for m in profile["insured_members"] if first_name(m["name"]).lower() in wanted]


def recommend_plan(
    names: Sequence[str],
    profile: PolicyProfile = POLICY_PROFILE,
    today: Optional[date] = None,
    plans: Sequence[CheckupPlan] = HEALTH_CHECKUP_PLANS,
) -> Optional[CheckupPlan]:
    """Pick the most thorough plan the oldest selected member qualifies for."""
    if not plans:
        return None
    today = today or date.today()
    ages = [age for age in (_age(m, today) for m in selected_members(names, profile))
            if age is not None]
    oldest = max(ages, default=0)
    eligible = [plan for plan in plans if plan["min_age"] <= oldest]
    best = max(eligible, key=lambda plan: plan["min_age"]) if eligible else plans[0]
    return dict(best)  # type: ignore[return-value]


def format_plan(plan: Optional[Mapping[str, Any]]) -> str:
    if not plan:
        return ""
    tests = "\n".join(f"{i}. {test}" for i, test in enumerate(plan["tests"], start=1))
    return f"*{plan['name']}*\n{tests}"


def format_member_names(names: Sequence[str]) -> str:
    names = list(names)
    if len(names) <= 1:
        return "".join(names)
    return ", ".join(names[:-1]) + " and " + names[-1]


def reminder_context(
    collected: Mapping[str, Any],
    profile: PolicyProfile = POLICY_PROFILE,
) -> dict[str, Any]:
    """Values for the ``{{placeholders}}`` of the check-up reminders."""
    return {
        "customerName": first_name(profile["policyholder"]),
        "memberNames": format_member_names(collected.get("selected_members") or []) or "you",
        "packageName": collected.get("recommended_package") or "health check-up",
        "date": collected.get("preferred_date") or "",
        "time": collected.get("preferred_time") or "",
    }
