"""
Per-stage extraction of collected data from free-text replies.

Each field has an independent matcher. A stage only runs the matchers for
the fields it declares in ``collect_data`` and only keeps keys the matcher
is allowed to produce, so the set of fields any stage can touch is visible
from the stage table alone.

Usage:
    update = extract(stage, "my wife", existing_data)
    # {"patient_relation": "Spouse"}
"""

import logging
import re
from dataclasses import dataclass
from datetime import date
from typing import Any, Callable, Mapping, Optional

from concierge.conversation.candidate_matcher import resolve_selection
from concierge.conversation.dates import extract_date, extract_time, strip_date_spans
from concierge.conversation.sentiment import yes_no
from concierge.conversation.stages import Stage
from concierge.tools.policy import POLICY_PROFILE
from concierge.utils import first_name

logger = logging.getLogger(__name__)

MatcherFn = Callable[[str, Mapping[str, Any], date], dict[str, Any]]

RELATION_KEYWORDS: tuple[tuple[re.Pattern, str], ...] = (
    (re.compile(r"\b(wife|husband|spouse|patni|pati)\b", re.IGNORECASE), "Spouse"),
    (re.compile(r"\b(son|beta)\b", re.IGNORECASE), "Son"),
    (re.compile(r"\b(daughter|beti)\b", re.IGNORECASE), "Daughter"),
    (re.compile(r"\b(father|dad|papa)\b", re.IGNORECASE), "Father"),
    (re.compile(r"\b(mother|mom|mummy|maa)\b", re.IGNORECASE), "Mother"),
    (re.compile(r"\b(myself|self|me|mujhe)\b", re.IGNORECASE), "Self"),
)

_WHOLE_FAMILY = re.compile(r"\b(all|everyone|everybody|whole family|entire family|all of us)\b",
                           re.IGNORECASE)
_LOCATION = re.compile(r"\b(?:in|at|near|around)\s+([a-z][a-z\-]+)", re.IGNORECASE)
_LOCATION_STOPWORDS = {"the", "a", "an", "my", "our", "home", "hospital", "pain", "least"}
_THOUSANDS_SEPARATOR = re.compile(r"(?<=\d),(?=\d)")
_AMOUNT = re.compile(r"\d{4,}")


@dataclass(frozen=True)
class FieldMatcher:
    """A matcher for one collected field.

    ``produces`` lists companion keys the matcher may write alongside its
    own field. ``first_answer_wins`` skips the matcher once the field is
    already set so repeated or later messages never overwrite it. With
    ``open_until`` the field stays replaceable until that other field is
    collected, then locks.
    """
    field: str
    match: MatcherFn
    produces: frozenset[str] = frozenset()
    first_answer_wins: bool = False
    open_until: Optional[str] = None

    @property
    def allowed_keys(self) -> frozenset[str]:
        return self.produces | {self.field}

    def is_locked(self, existing: Mapping[str, Any]) -> bool:
        if not self.first_answer_wins or existing.get(self.field) in (None, ""):
            return False
        return self.open_until is None or existing.get(self.open_until) not in (None, "", [])


def _match_relation(text: str, existing: Mapping[str, Any], today: date) -> dict[str, Any]:
    for pattern, relation in RELATION_KEYWORDS:
        if pattern.search(text):
            return {"patient_relation": relation}
    return {}


def _match_medical_reason(text: str, existing: Mapping[str, Any], today: date) -> dict[str, Any]:
    reason = text.strip()
    return {"medical_reason": reason} if reason else {}


def _match_location(text: str, existing: Mapping[str, Any], today: date) -> dict[str, Any]:
    for match in _LOCATION.finditer(text):
        word = match.group(1).lower()
        if word not in _LOCATION_STOPWORDS:
            return {"location": word.title()}
    return {}


def _match_selection(text: str, existing: Mapping[str, Any], today: date) -> dict[str, Any]:
    candidates = existing.get("hospital_search_results") or []
    return resolve_selection(text, candidates)


def _match_members(text: str, existing: Mapping[str, Any], today: date) -> dict[str, Any]:
    members = POLICY_PROFILE["insured_members"]
    names = [first_name(m["name"]) for m in members]
    if _WHOLE_FAMILY.search(text):
        return {"selected_members": names}

    relations = {relation for pattern, relation in RELATION_KEYWORDS if pattern.search(text)}
    lower = text.lower()
    chosen = [
        name for name, member in zip(names, members)
        if member["relationship"] in relations
        or re.search(rf"\b{re.escape(name.lower())}\b", lower)
    ]
    if not chosen and yes_no(text) is True:
        chosen = names[:1]
    return {"selected_members": chosen} if chosen else {}


def _match_package_choice(text: str, existing: Mapping[str, Any], today: date) -> dict[str, Any]:
    answer = yes_no(text)
    if answer is None:
        return {}
    update: dict[str, Any] = {"package_accepted": answer}
    if answer and existing.get("recommended_package"):
        update["selected_package"] = existing["recommended_package"]
    return update


def _yes_no_matcher(field_name: str) -> MatcherFn:
    def match(text: str, existing: Mapping[str, Any], today: date) -> dict[str, Any]:
        answer = yes_no(text)
        return {} if answer is None else {field_name: answer}
    return match


def _match_cost(text: str, existing: Mapping[str, Any], today: date) -> dict[str, Any]:
    cleaned = strip_date_spans(_THOUSANDS_SEPARATOR.sub("", text))
    match = _AMOUNT.search(cleaned)
    return {"estimated_cost": match.group(0)} if match else {}


def _date_matcher(field_name: str) -> MatcherFn:
    def match(text: str, existing: Mapping[str, Any], today: date) -> dict[str, Any]:
        found = extract_date(text, today)
        return {field_name: found} if found else {}
    return match


def _time_matcher(field_name: str) -> MatcherFn:
    def match(text: str, existing: Mapping[str, Any], today: date) -> dict[str, Any]:
        found = extract_time(text)
        return {field_name: found} if found else {}
    return match


FIELD_MATCHERS: dict[str, FieldMatcher] = {
    matcher.field: matcher
    for matcher in (
        FieldMatcher("patient_relation", _match_relation),
        FieldMatcher(
            "medical_reason",
            _match_medical_reason,
            first_answer_wins=True,
            open_until="hospital_search_results",
        ),
        FieldMatcher("location", _match_location),
        FieldMatcher(
            "selected_hospital",
            _match_selection,
            produces=frozenset({"selected_hospital_details"}),
        ),
        FieldMatcher("admission_confirmed", _yes_no_matcher("admission_confirmed")),
        FieldMatcher("estimated_cost", _match_cost, first_answer_wins=True),
        FieldMatcher("admission_date", _date_matcher("admission_date"), first_answer_wins=True),
        FieldMatcher("admission_time", _time_matcher("admission_time")),
        FieldMatcher(
            "teleconsultation_interest", _yes_no_matcher("teleconsultation_interest")
        ),
        FieldMatcher("consultation_date", _date_matcher("consultation_date")),
        FieldMatcher("consultation_time", _time_matcher("consultation_time")),
        FieldMatcher("selected_members", _match_members),
        FieldMatcher(
            "package_accepted",
            _match_package_choice,
            produces=frozenset({"selected_package"}),
        ),
        FieldMatcher("preferred_date", _date_matcher("preferred_date")),
        FieldMatcher("preferred_time", _time_matcher("preferred_time")),
    )
}


def extract(
    stage: Stage,
    text: str,
    existing: Mapping[str, Any],
    today: Optional[date] = None,
) -> dict[str, Any]:
    """Extract the fields a stage declares from one user message.

    Returns a partial update; it never contains keys outside the stage's
    declared fields and their companions.
    """
    if not text or not text.strip():
        return {}
    today = today or date.today()
    update: dict[str, Any] = {}

    for field_name in stage.collect_data:
        matcher = FIELD_MATCHERS.get(field_name)
        if matcher is None:
            logger.warning("No matcher registered for field '%s'", field_name)
            continue
        if matcher.is_locked(existing):
            continue
        result = matcher.match(text, existing, today)
        update.update({k: v for k, v in result.items() if k in matcher.allowed_keys})

    if update:
        logger.debug("Extracted at %s: %s", stage.id.value, sorted(update))
    return update
