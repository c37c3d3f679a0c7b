"""
Policy profile for the customer the concierge is serving.

In production this comes from the policy administration system; the
fixed record keeps claim payload construction deterministic.
"""

import logging
from typing import Optional, TypedDict

logger = logging.getLogger(__name__)


class InsuredMember(TypedDict):
    name: str
    relationship: str
    dob: str
    gender: str
    member_id: str


class PolicyProfile(TypedDict):
    """Fixed profile record merged into every claim payload."""

    policyholder: str
    policy_number: str
    plan: str
    mobile_number: str
    email: str
    address: str
    city: str
    pincode: str
    insured_members: list[InsuredMember]


POLICY_PROFILE: PolicyProfile = {
    "policyholder": "Vineet Sharma",
    "policy_number": "0239720175 00",
    "plan": "Medicare Premier",
    "mobile_number": "9830323302",
    "email": "vineet.sharma@example.com",
    "address": "B-402, Lakeview Residency, Andheri East",
    "city": "Mumbai",
    "pincode": "400069",
    "insured_members": [
        {
            "name": "Vineet Sharma",
            "relationship": "Self",
            "dob": "02 Mar 1985",
            "gender": "Male",
            "member_id": "UHID-7730021",
        },
        {
            "name": "Anjali Sharma",
            "relationship": "Spouse",
            "dob": "15 Jun 1988",
            "gender": "Female",
            "member_id": "UHID-7730022",
        },
        {
            "name": "Aarav Sharma",
            "relationship": "Son",
            "dob": "21 Nov 2014",
            "gender": "Male",
            "member_id": "UHID-7730023",
        },
    ],
}


def find_insured_member(
    relation: Optional[str],
    profile: PolicyProfile = POLICY_PROFILE,
) -> Optional[InsuredMember]:
    """Find the insured member by relationship, defaulting to the first member."""
    members = profile["insured_members"]
    if relation:
        for member in members:
            if member["relationship"].lower() == relation.lower():
                return member
        logger.info("No insured member with relationship %s, using first member", relation)
    return members[0] if members else None
