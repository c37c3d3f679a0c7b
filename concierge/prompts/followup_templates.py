"""
Scripted follow-up messages keyed by the action that triggers them.

Templates use ``{{name}}`` placeholders filled from the action context
(``intimationId``, ``requestId``, ``customerName``, ``hospitalName``,
``date``, ``time`` for claims; ``memberNames`` and ``packageName`` for
check-ups). Newlines are stored escaped and turned into real line
breaks just before dispatch.
"""

from typing import Any, Mapping

from concierge.config import settings
from concierge.schemas.scheduling_schema import FollowUpMessage
from concierge.utils import fill_placeholders

_DELAY = settings.scheduling.default_delay_sec

CLAIM_INITIATED = "claim_initiated"
HOSPITAL_ADMISSION_SCHEDULED = "hospital_admission_scheduled"
HOSPITAL_RECOMMENDATIONS_SENT = "hospital_recommendations_sent"
APPOINTMENT_CONFIRMATION_NEEDED = "appointment_confirmation_needed"
HEALTH_CHECKUP_BOOKED = "health_checkup_booked"

FOLLOW_UP_TEMPLATES: dict[str, list[dict[str, Any]]] = {
    CLAIM_INITIATED: [
        {
            "text": (
                "Hi {{customerName}}, your cashless claim for the admission at "
                "*{{hospitalName}}* on *{{date}}* is registered.\\n\\n"
                "*Claim Number:* {{claim Number}}\\n*Request ID:* {{requestId}}"
            ),
            "delay_seconds": _DELAY,
        },
        {
            "text": (
                "Quick reminder for the admission day. Please carry:\\n"
                "- Aadhaar card\\n- Health insurance card\\n- Doctor's prescription\\n"
                "- Any previous medical reports\\n\\n"
                "Show intimation ID *{{intimationId}}* at the hospital's insurance desk."
            ),
            "delay_seconds": _DELAY,
        },
        {
            "text": (
                "Once the patient is discharged, would you like a follow-up "
                "tele-consultation with one of our doctors? Just reply yes and I'll set it up."
            ),
            "delay_seconds": _DELAY,
        },
    ],
    HOSPITAL_ADMISSION_SCHEDULED: [
        {
            "text": (
                "Hi {{customerName}},\\n\\nYour admission at *{{hospitalName}}* has been "
                "confirmed for *{{date}}*.\\n\\nYou should receive a confirmation call "
                "from the hospital shortly."
            ),
            "delay_seconds": _DELAY,
        },
        {
            "text": (
                "Quick reminder - please bring these documents for your admission:\\n\\n"
                "- Aadhaar card\\n- Insurance card\\n- ID proof\\n"
                "- Medical records (if any)\\n- Prescription from your doctor"
            ),
            "delay_seconds": _DELAY,
        },
    ],
    HOSPITAL_RECOMMENDATIONS_SENT: [
        {
            "text": (
                "Just checking in - did you get a chance to review the hospital "
                "options I sent? Let me know if you'd like details on any of them."
            ),
            "delay_seconds": _DELAY,
        },
    ],
    APPOINTMENT_CONFIRMATION_NEEDED: [
        {
            "text": (
                "Hi {{customerName}},\\n\\nI wanted to follow up on your admission "
                "planning. Have you decided which hospital works best for you?"
            ),
            "delay_seconds": _DELAY,
        },
    ],
    HEALTH_CHECKUP_BOOKED: [
        {
            "text": (
                "Kindly remember for the check-up on *{{date}}* at *{{time}}*:\\n"
                "- Fast for 12 hours before the sample collection\\n"
                "- Only plain water during the fast, no tea, coffee or juice\\n"
                "- No alcohol or smoking for 24 hours before"
            ),
            "delay_seconds": _DELAY,
        },
        {
            "text": (
                "Hello {{customerName}}, hope the health check-up went smoothly. "
                "Reports for {{memberNames}} will be ready within 12 hours, and you "
                "can track the sample status in the app."
            ),
            "delay_seconds": _DELAY,
        },
        {
            "text": (
                "Hello {{customerName}}, the {{packageName}} reports are ready! You can "
                "view and download them from *My Bookings* in the app.\\n\\n"
                "Would you like our in-house doctor to review them with you on a "
                "tele-consultation?"
            ),
            "delay_seconds": _DELAY,
        },
    ],
}


def get_followup_messages(action: str, context: Mapping[str, Any]) -> list[FollowUpMessage]:
    """Render the follow-up messages for an action with its context.

    Returns an empty list for unknown actions. Placeholders missing from
    the context are left in the text; the scheduling agent refuses them.
    """
    return [
        FollowUpMessage(
            text=fill_placeholders(template["text"], context),
            delay_seconds=template.get("delay_seconds"),
        )
        for template in FOLLOW_UP_TEMPLATES.get(action, [])
    ]
