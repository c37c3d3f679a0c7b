"""
Side effects attached to stages: hospital search, claim submission and
the health check-up package lookup.

The executor only computes collected-data updates. Deciding when to run a
side effect (once, on transition into the stage) and committing the
updates is the orchestrator's and the claim pipeline's job.
"""

import logging
from datetime import date
from typing import Any, Callable, Mapping, Optional, Protocol

from concierge.schemas.claim_schema import ClaimResult
from concierge.tools.checkups import HOME_SAMPLE_COLLECTION, recommend_plan
from concierge.tools.claims import ClaimSubmissionClient, MissingClaimDataError, build_claim_payload
from concierge.tools.hospitals import HospitalRecord, find_hospital, search_hospitals
from concierge.tools.policy import POLICY_PROFILE, PolicyProfile

logger = logging.getLogger(__name__)

SearchFn = Callable[..., list[HospitalRecord]]


class DepartmentClassifier(Protocol):
    async def classify_department(self, medical_reason: str) -> str:
        ...


class SideEffectExecutor:
    """Runs the external calls a stage declares and returns data updates."""

    def __init__(
        self,
        classifier: DepartmentClassifier,
        claim_client: ClaimSubmissionClient,
        profile: PolicyProfile = POLICY_PROFILE,
        search: SearchFn = search_hospitals,
    ) -> None:
        self._classifier = classifier
        self._claim_client = claim_client
        self._profile = profile
        self._search = search

    async def run_search(self, collected: Mapping[str, Any]) -> dict[str, Any]:
        """Classify the complaint and look up network hospitals.

        Returns an empty dict when there is nothing to search for or the
        search finds no hospital; the caller treats that as a soft failure.
        """
        reason = collected.get("medical_reason")
        if not reason:
            logger.info("Hospital search skipped: no medical reason collected")
            return {}

        department = await self._classifier.classify_department(str(reason))
        location = collected.get("location")
        results = self._search(department, location)
        if not results:
            logger.info("No hospitals for department=%s location=%s", department, location)
            return {}

        return {
            "hospital_search_results": results,
            "department": department,
            "search_location": location,
        }

    def offer_package(
        self,
        collected: Mapping[str, Any],
        today: Optional[date] = None,
    ) -> dict[str, Any]:
        """Recommend a check-up package for the members being booked."""
        plan = recommend_plan(collected.get("selected_members") or [], self._profile, today)
        if plan is None:
            logger.warning("No health check-up package available")
            return {}
        return {
            "package_options": [plan],
            "recommended_package": plan["name"],
            "collection_method": HOME_SAMPLE_COLLECTION,
        }

    @staticmethod
    def resolve_hospital(collected: Mapping[str, Any]) -> Optional[HospitalRecord]:
        details = collected.get("selected_hospital_details")
        if details:
            return details
        selected = collected.get("selected_hospital")
        return find_hospital(str(selected)) if selected else None

    async def submit_claim(
        self,
        collected: Mapping[str, Any],
        today: Optional[date] = None,
    ) -> tuple[ClaimResult, dict[str, Any]]:
        """Build and submit the claim; return the result and data updates."""
        try:
            payload = build_claim_payload(
                collected, self.resolve_hospital(collected), self._profile, today
            )
        except MissingClaimDataError as e:
            logger.error("Claim not submitted: %s", e)
            result = ClaimResult(success=False, attempts=0, error=e.to_payload())
            return result, {"claim_error": True, "claim_error_payload": result.error}

        result = await self._claim_client.submit(payload)
        if result.success:
            return result, {
                "intimation_id": result.intimation_id,
                "request_id": result.request_id,
                "claim_initiated": True,
            }
        return result, {"claim_error": True, "claim_error_payload": result.error}
