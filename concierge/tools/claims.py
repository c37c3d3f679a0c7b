"""
Cashless claim intimation: payload construction and HTTP submission.

Submission retries sequentially with a fixed delay, and only for the
transient set: timeouts, DNS failures, refused connections, 502/503/504
responses and bodies carrying a gateway-timeout marker. Every other error
is terminal on the first attempt.
"""

import asyncio
import logging
from datetime import date
from typing import Any, Awaitable, Callable, Mapping, Optional

import httpx

from concierge.config import settings
from concierge.conversation.dates import discharge_date, format_date_of_birth, to_claim_date
from concierge.schemas.claim_schema import ClaimResult
from concierge.tools.hospitals import HospitalRecord
from concierge.tools.policy import POLICY_PROFILE, PolicyProfile, find_insured_member

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = frozenset({502, 503, 504})
GATEWAY_TIMEOUT_MARKER = "504 gateway timeout"
ESTIMATED_STAY_DAYS = 2

STATIC_CLAIM_FIELDS: dict[str, Any] = {
    "benefitClaim": "false",
    "estimatedDays": str(ESTIMATED_STAY_DAYS),
    "hospitalStatus": "PRN Generated",
    "isCashlessPayment": "Not Chosen",
    "isCreatedFromClaimIntimation": "true",
    "isExcludedProvider": "false",
    "isExistingProvider": False,
    "isHospitalManualEntry": "No",
    "isPrePostClaim": False,
    "policyTypeForClaim": "Retail",
    "secondOpinion": "false",
    "source": "CONCIERGE",
    "subSource": "Chat",
    "typeOfClaim": "Cashless",
}

SleepFn = Callable[[float], Awaitable[None]]


class ClaimSubmissionError(Exception):
    """Terminal claim submission failure."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        body: Any = None,
        code: Optional[str] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.body = body
        self.code = code

    def to_payload(self) -> dict[str, Any]:
        """Error payload retained in collected data for diagnostics."""
        payload: dict[str, Any] = {"message": str(self), "type": type(self).__name__}
        if self.status_code is not None:
            payload["status"] = self.status_code
        if self.code is not None:
            payload["code"] = self.code
        if self.body is not None:
            payload["body"] = self.body
        return payload


class TransientClaimError(ClaimSubmissionError):
    """Claim submission failure that is worth retrying."""


class MissingClaimDataError(ClaimSubmissionError):
    """The conversation lacks data the claim payload needs."""


def build_claim_payload(
    collected: Mapping[str, Any],
    hospital: Optional[HospitalRecord],
    profile: PolicyProfile = POLICY_PROFILE,
    today: Optional[date] = None,
) -> dict[str, Any]:
    """Merge collected data, the policy profile and the chosen hospital.

    Raises:
        MissingClaimDataError: If the hospital or admission date cannot be resolved.
    """
    if hospital is None:
        raise MissingClaimDataError(
            f"Hospital not found: {collected.get('selected_hospital')!r}"
        )
    admission = to_claim_date(str(collected.get("admission_date") or ""), today)
    if admission is None:
        raise MissingClaimDataError(
            f"Unrecognized admission date: {collected.get('admission_date')!r}"
        )

    member = find_insured_member(collected.get("patient_relation"), profile)
    name_parts = member["name"].split() if member else []

    payload = dict(STATIC_CLAIM_FIELDS)
    payload.update({
        "policyNumber": profile["policy_number"],
        "memberFirstName": name_parts[0] if name_parts else "",
        "memberLastName": " ".join(name_parts[1:]),
        "memberDob": format_date_of_birth(member["dob"]) if member else "",
        "memberGender": member["gender"] if member else "",
        "memberRelation": member["relationship"] if member else "Self",
        "memberUHID": member["member_id"] if member else "",
        "mobileNumber": profile["mobile_number"],
        "emailId": profile["email"],
        "communicationAddress": profile["address"],
        "communicationCity": profile["city"],
        "communicationPincode": profile["pincode"],
        "dateOfAdmission": admission,
        "dateOfDischarge": discharge_date(admission, ESTIMATED_STAY_DAYS),
        "diagnosis": collected.get("medical_reason", ""),
        "illness": collected.get("medical_reason", ""),
        "estimatedCost": str(collected.get("estimated_cost", "")),
        "hospitalName": hospital["name"],
        "hospitalAddress": hospital["address"],
        "hospitalAddressLine2": hospital["city"],
        "hospitalCityTownVillage": hospital["city"],
        "hospitalDistrict": hospital["zone"],
        "hospitalState": hospital["state"],
        "hospitalPincode": hospital["pincode"],
        "hospitalCountry": "INDIA",
    })
    return payload


def _response_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text


def _classify_response(response: httpx.Response) -> ClaimSubmissionError:
    body = _response_body(response)
    message = f"Claim API returned HTTP {response.status_code}"
    if response.status_code in RETRYABLE_STATUS_CODES:
        return TransientClaimError(message, status_code=response.status_code, body=body)
    if isinstance(body, str) and GATEWAY_TIMEOUT_MARKER in body.lower():
        return TransientClaimError(message, status_code=response.status_code, body=body)
    return ClaimSubmissionError(message, status_code=response.status_code, body=body)


def _extract_ids(body: Any) -> tuple[Optional[str], Optional[str]]:
    if not isinstance(body, dict):
        return None, None
    data = body.get("data") if isinstance(body.get("data"), dict) else body
    intimation_id = data.get("intimationId")
    request_id = data.get("requestId")
    return (str(intimation_id) if intimation_id else None,
            str(request_id) if request_id else None)


class ClaimSubmissionClient:
    """
    HTTP client for the claim intimation endpoint.

    ``transport`` and ``sleep`` are injectable so tests can simulate the
    endpoint with ``httpx.MockTransport`` and skip the real retry delay.
    """

    def __init__(
        self,
        endpoint: str = settings.claims.endpoint,
        auth_token: str = settings.claims.auth_token,
        timeout: float = settings.claims.timeout_sec,
        max_attempts: int = settings.claims.max_attempts,
        retry_delay: float = settings.claims.retry_delay_sec,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")
        self.endpoint = endpoint
        self.auth_token = auth_token
        self.timeout = timeout
        self.max_attempts = max_attempts
        self.retry_delay = retry_delay
        self._transport = transport
        self._sleep = sleep

    def _headers(self) -> dict[str, str]:
        headers = {"accept-version": "2.0.0", "Content-Type": "application/json"}
        if self.auth_token:
            headers["Authorization"] = f"Bearer {self.auth_token}"
        return headers

    async def _post_once(self, payload: Mapping[str, Any]) -> Any:
        try:
            async with httpx.AsyncClient(transport=self._transport,
                                         timeout=self.timeout) as client:
                response = await client.post(self.endpoint, json=dict(payload),
                                             headers=self._headers())
        except httpx.TimeoutException as e:
            raise TransientClaimError(f"Claim API timed out: {e}", code="TIMEOUT") from e
        except httpx.ConnectError as e:
            raise TransientClaimError(f"Claim API unreachable: {e}", code="CONNECT") from e
        except httpx.HTTPError as e:
            raise ClaimSubmissionError(f"Claim API request failed: {e}") from e

        if response.is_error:
            raise _classify_response(response)
        return _response_body(response)

    async def submit(self, payload: Mapping[str, Any]) -> ClaimResult:
        """Submit a claim, retrying transient failures with a fixed delay.

        Never raises for API failures; the outcome is in the returned result.
        """
        last_error: Optional[ClaimSubmissionError] = None

        for attempt in range(1, self.max_attempts + 1):
            try:
                body = await self._post_once(payload)
            except TransientClaimError as e:
                last_error = e
                if attempt == self.max_attempts:
                    break
                logger.warning(
                    "Claim submission failed (attempt %d/%d): %s. Retrying in %.1fs",
                    attempt, self.max_attempts, e, self.retry_delay,
                )
                await self._sleep(self.retry_delay)
                continue
            except ClaimSubmissionError as e:
                logger.error("Claim submission failed permanently on attempt %d: %s",
                             attempt, e)
                return ClaimResult(success=False, attempts=attempt, error=e.to_payload())

            intimation_id, request_id = _extract_ids(body)
            if not intimation_id:
                error = ClaimSubmissionError("Claim API response has no intimation id",
                                             body=body)
                logger.error("%s", error)
                return ClaimResult(success=False, attempts=attempt, error=error.to_payload())

            logger.info("Claim intimated: %s (request %s) after %d attempt(s)",
                        intimation_id, request_id, attempt)
            return ClaimResult(
                success=True,
                intimation_id=intimation_id,
                request_id=request_id,
                attempts=attempt,
                response=body if isinstance(body, dict) else None,
            )

        logger.error("Claim submission gave up after %d attempts: %s",
                     self.max_attempts, last_error)
        return ClaimResult(
            success=False,
            attempts=self.max_attempts,
            error=last_error.to_payload() if last_error else {"message": "unknown error"},
        )
