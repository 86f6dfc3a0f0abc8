"""Field extraction from free text: blood types, complaint categories, elder services, titles."""
from __future__ import annotations

import re
from typing import Optional

from assistlink.models.requests import BloodType, ComplaintCategory

_BLOOD_GROUP = r"(AB|A|B|O)"
_SIGN_PATTERN = re.compile(rf"(?<![A-Za-z]){_BLOOD_GROUP}([+-])(?![A-Za-z0-9+-])", re.IGNORECASE)
# "B +" with a space only counts next to blood vocabulary; "block B - the taps" is not a blood group.
_SPACED_SIGN_PATTERN = re.compile(rf"(?<![A-Za-z]){_BLOOD_GROUP}\s([+-])(?![A-Za-z0-9+-])", re.IGNORECASE)
_BLOOD_CONTEXT = re.compile(r"\b(?:blood|donors?|group|type)\b|खून|रक्त|రక్తం", re.IGNORECASE)
_WORD_PATTERN = re.compile(
    rf"\b{_BLOOD_GROUP}\s*[- ]?\s*(positive|negative|pos|neg|\+ve|-ve)\b", re.IGNORECASE
)
_HINDI_PATTERN = re.compile(r"(एबी|ए|बी|ओ)\s*(पॉजिटिव|नेगेटिव)")
_TELUGU_PATTERN = re.compile(r"(ఎబి|ఎ|బి|ఓ)\s*(పాజిటివ్|నెగటివ్)")

_HINDI_GROUPS = {"ए": "A", "बी": "B", "एबी": "AB", "ओ": "O"}
_TELUGU_GROUPS = {"ఎ": "A", "బి": "B", "ఎబి": "AB", "ఓ": "O"}
_POSITIVE_WORDS = {"positive", "pos", "+ve", "पॉजिटिव", "పాజిటివ్"}


def _blood_type(group: str, sign: str) -> BloodType:
    rh = "+" if sign.lower() in _POSITIVE_WORDS or sign == "+" else "-"
    return BloodType(f"{group.upper()}{rh}")


def extract_blood_type(text: str) -> Optional[BloodType]:
    """Find an ABO/Rh group written as ``O+``, ``AB negative``, ``B pos`` or in Hindi/Telugu."""
    match = _SIGN_PATTERN.search(text)
    if match is None and _BLOOD_CONTEXT.search(text):
        match = _SPACED_SIGN_PATTERN.search(text)
    if match:
        return _blood_type(match.group(1), match.group(2))
    match = _WORD_PATTERN.search(text)
    if match:
        return _blood_type(match.group(1), match.group(2))
    match = _HINDI_PATTERN.search(text)
    if match:
        return _blood_type(_HINDI_GROUPS[match.group(1)], match.group(2))
    match = _TELUGU_PATTERN.search(text)
    if match:
        return _blood_type(_TELUGU_GROUPS[match.group(1)], match.group(2))
    return None


# First match wins.
COMPLAINT_CATEGORY_RULES: tuple[tuple[re.Pattern[str], ComplaintCategory], ...] = (
    (re.compile(r"\b(street|light|road|pothole|footpath|sidewalk)s?\b", re.I), ComplaintCategory.ROAD_MAINTENANCE),
    (re.compile(r"\b(water|tap|leak|leaking|drainage|sewage|pipeline|pipe)s?\b", re.I), ComplaintCategory.WATER_SUPPLY),
    (re.compile(r"\b(sanitation|toilet|cleanliness)s?\b", re.I), ComplaintCategory.SANITATION),
    (re.compile(r"\b(electricity|power|current|transformer|wire)s?\b", re.I), ComplaintCategory.ELECTRICITY),
    (re.compile(r"\b(garbage|waste|trash|dump)s?\b", re.I), ComplaintCategory.WASTE_MANAGEMENT),
    (re.compile(r"\b(safety|theft|crime|harassment|accident|violence|danger)s?\b", re.I), ComplaintCategory.PUBLIC_SAFETY),
    (re.compile(r"\b(hospital|clinic|doctor)s?\b", re.I), ComplaintCategory.HEALTHCARE),
    (re.compile(r"\b(school|college|education)s?\b", re.I), ComplaintCategory.EDUCATION),
    (re.compile(r"\b(bus|train|transport|traffic)(es|s)?\b", re.I), ComplaintCategory.TRANSPORTATION),
    (re.compile(r"\b(building|bridge|construction|infrastructure)s?\b", re.I), ComplaintCategory.INFRASTRUCTURE),
)


def extract_complaint_category(text: str) -> ComplaintCategory:
    for pattern, category in COMPLAINT_CATEGORY_RULES:
        if pattern.search(text):
            return category
    return ComplaintCategory.OTHER


ELDER_SERVICE_RULES: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"\b(medicine|medicines|tablet|tablets|prescription|pharmacy)\b", re.I), "Medicine Delivery"),
    (re.compile(r"\b(grocery|groceries|vegetables?|milk|shopping)\b", re.I), "Grocery Shopping"),
    (re.compile(r"\b(appointment|checkup|clinic|hospital)\b", re.I), "Medical Appointment"),
    (re.compile(r"\b(house|household|clean|cleaning|cook|cooking|laundry)\b", re.I), "Household Help"),
    (re.compile(r"\b(lonely|company|companionship|talk)\b", re.I), "Companionship"),
)


def extract_elder_service(text: str) -> str:
    for pattern, service in ELDER_SERVICE_RULES:
        if pattern.search(text):
            return service
    return "Other"


_TITLE_RULES: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"street\s*lights?", re.I), "Street lights not working"),
    (re.compile(r"pothole|holes?\s+in\s+(the\s+)?road", re.I), "Potholes on road"),
    (re.compile(r"garbage|trash|waste", re.I), "Garbage accumulation issue"),
    (re.compile(r"water\s*leak|leaking|no\s*water|tap\s*water", re.I), "Water supply problem"),
    (re.compile(r"power\s*cut|electricity\s*outage|transformer|no\s*power", re.I), "Electricity outage issue"),
)

_CATEGORY_TITLES = {
    ComplaintCategory.ROAD_MAINTENANCE: "Road maintenance issue",
    ComplaintCategory.WATER_SUPPLY: "Water supply problem",
    ComplaintCategory.SANITATION: "Sanitation issue",
    ComplaintCategory.ELECTRICITY: "Electricity issue",
    ComplaintCategory.WASTE_MANAGEMENT: "Garbage accumulation issue",
    ComplaintCategory.PUBLIC_SAFETY: "Public safety concern",
    ComplaintCategory.HEALTHCARE: "Healthcare service issue",
    ComplaintCategory.EDUCATION: "Education facility issue",
    ComplaintCategory.TRANSPORTATION: "Transportation issue",
    ComplaintCategory.INFRASTRUCTURE: "Infrastructure issue",
    ComplaintCategory.OTHER: "Community complaint",
}


def build_complaint_title(text: str, category: ComplaintCategory) -> str:
    for pattern, title in _TITLE_RULES:
        if pattern.search(text):
            return title
    return _CATEGORY_TITLES[category]


_LOCATION_PATTERN = re.compile(r"\b(?:in|at|near)\s+([A-Z][A-Za-z]+(?:\s+[A-Z][A-Za-z]+){0,3})")


def extract_place(text: str) -> Optional[str]:
    """A capitalised place name following 'in', 'at' or 'near', if any."""
    match = _LOCATION_PATTERN.search(text)
    return match.group(1) if match else None
