"""
Network hospital catalog and department/location search.

In production this would be backed by the insurer's provider network
service. The static catalog keeps the concierge runnable offline.
"""

import logging
from typing import Optional, TypedDict

from concierge.config import settings
from concierge.utils import normalize_text

logger = logging.getLogger(__name__)


class HospitalRecord(TypedDict):
    """A network hospital as shown to the user and sent with a claim."""

    hospital_id: str
    name: str
    address: str
    city: str
    zone: str
    state: str
    pincode: str
    network_type: str
    departments: list[str]


HOSPITAL_CATALOG: list[HospitalRecord] = [
    {
        "hospital_id": "HSP-1001",
        "name": "Seven Star Multispeciality Hospital",
        "address": "Plot 12, Link Road, Andheri West, Mumbai",
        "city": "Mumbai",
        "zone": "Andheri",
        "state": "Maharashtra",
        "pincode": "400053",
        "network_type": "Preferred",
        "departments": ["Orthopedics", "General Medicine", "General Surgery", "Cardiology"],
    },
    {
        "hospital_id": "HSP-1002",
        "name": "Lifeline Orthopaedic and Trauma Centre",
        "address": "24 SV Road, Goregaon West, Mumbai",
        "city": "Mumbai",
        "zone": "Goregaon",
        "state": "Maharashtra",
        "pincode": "400062",
        "network_type": "Valued",
        "departments": ["Orthopedics", "Physiotherapy"],
    },
    {
        "hospital_id": "HSP-1003",
        "name": "Sunrise Heart Institute",
        "address": "Hill Road, Bandra West, Mumbai",
        "city": "Mumbai",
        "zone": "Bandra",
        "state": "Maharashtra",
        "pincode": "400050",
        "network_type": "Preferred",
        "departments": ["Cardiology", "Cardiac Surgery", "General Medicine"],
    },
    {
        "hospital_id": "HSP-1004",
        "name": "City Care General Hospital",
        "address": "LBS Marg, Ghatkopar West, Mumbai",
        "city": "Mumbai",
        "zone": "Ghatkopar",
        "state": "Maharashtra",
        "pincode": "400086",
        "network_type": "Valued",
        "departments": ["General Medicine", "General Surgery", "Gastroenterology",
                        "Orthopedics"],
    },
    {
        "hospital_id": "HSP-1005",
        "name": "Apex Kidney and Urology Hospital",
        "address": "Station Road, Thane West, Thane",
        "city": "Thane",
        "zone": "Thane",
        "state": "Maharashtra",
        "pincode": "400601",
        "network_type": "Valued",
        "departments": ["Urology", "Nephrology"],
    },
    {
        "hospital_id": "HSP-1006",
        "name": "Motherhood Women and Child Hospital",
        "address": "Sector 17, Vashi, Navi Mumbai",
        "city": "Navi Mumbai",
        "zone": "Vashi",
        "state": "Maharashtra",
        "pincode": "400703",
        "network_type": "Preferred",
        "departments": ["Obstetrics and Gynaecology", "Paediatrics"],
    },
    {
        "hospital_id": "HSP-1007",
        "name": "NeuroSpine Super Speciality Hospital",
        "address": "Powai Lake Road, Powai, Mumbai",
        "city": "Mumbai",
        "zone": "Powai",
        "state": "Maharashtra",
        "pincode": "400076",
        "network_type": "Preferred",
        "departments": ["Neurology", "Neurosurgery", "Orthopedics"],
    },
    {
        "hospital_id": "HSP-1008",
        "name": "Green Valley Cancer Care",
        "address": "Sion Circle, Sion, Mumbai",
        "city": "Mumbai",
        "zone": "Sion",
        "state": "Maharashtra",
        "pincode": "400022",
        "network_type": "Valued",
        "departments": ["Oncology", "Radiation Oncology"],
    },
]

DEPARTMENTS: list[str] = sorted({dept for h in HOSPITAL_CATALOG for dept in h["departments"]})


def _department_matches(requested: str, offered: str) -> bool:
    requested, offered = requested.lower(), offered.lower()
    return requested in offered or offered in requested


def _location_matches(location: str, hospital: HospitalRecord) -> bool:
    needle = location.lower()
    return any(needle in hospital[key].lower() for key in ("city", "zone", "address"))


def search_hospitals(
    department: str,
    location: Optional[str] = None,
    limit: int = settings.search.top_n,
) -> list[HospitalRecord]:
    """Return up to ``limit`` network hospitals treating ``department``.

    A location narrows the results only when at least one hospital
    matches it; otherwise the department matches are returned unfiltered.
    """
    if not department or not department.strip():
        return []

    matches = [
        hospital for hospital in HOSPITAL_CATALOG
        if any(_department_matches(department, dept) for dept in hospital["departments"])
    ]
    if location:
        nearby = [hospital for hospital in matches if _location_matches(location, hospital)]
        if nearby:
            matches = nearby

    logger.info("Hospital search: department=%s location=%s -> %d results",
                department, location, len(matches))
    return [dict(hospital) for hospital in matches[:limit]]  # type: ignore[misc]


def find_hospital(name: str) -> Optional[HospitalRecord]:
    """Look up a catalog hospital by (partial) name."""
    needle = normalize_text(name)
    if not needle:
        return None
    for hospital in HOSPITAL_CATALOG:
        hay = normalize_text(hospital["name"])
        if needle == hay or needle in hay or hay in needle:
            return dict(hospital)  # type: ignore[return-value]
    return None


def format_hospital_list(hospitals: list[HospitalRecord]) -> str:
    """Numbered, one-line-per-hospital list for messages."""
    if not hospitals:
        return "No network hospitals found for that request."
    return "\n".join(
        f"{i}. {h['name']} - {h['address']} ({h['network_type']} network)"
        for i, h in enumerate(hospitals, start=1)
    )
