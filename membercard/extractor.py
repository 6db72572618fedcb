"""
Best-effort recovery of account data from console or socket output captured
on the gaming site.

The result is a hint, not a fact: it only ever reaches storage through
sync_account, which validates and merges it like any other observation.
"""

import json
import logging
import re

from membercard.domain.accounts import ACCOUNT_FIELDS, FIELD_ALIASES

log = logging.getLogger("extractor")

CONSOLE_KEYWORDS = (
    "login customer_data",
    "customer_data",
    "member_data",
    "user_data",
    "login_data",
    "customer_req_info",
    "credit_push",
    "balance_update",
    "account_info",
    "user_info",
    "member_info",
    "mm_user",
    "available",
    "deposit",
    "withdrawal",
    "bet_credit",
    "acc_no",
    "bank_name",
)

JSON_OBJECT = re.compile(r"\{[^{}]*\}")
KEY_VALUE_PATTERNS = (
    re.compile(r"""["']?(\w+)["']?\s*:\s*"([^"]+)\""""),
    re.compile(r"""["']?(\w+)["']?\s*:\s*(-?\d+(?:\.\d+)?)\b"""),
    re.compile(r"(\w+)=([^,\s}&]+)"),
)
FIELD_PATTERNS = {
    "mm_user": re.compile(r"""(?:mm_user|username)["']?\s*[:=]\s*["']?([a-zA-Z0-9_]+)""", re.IGNORECASE),
    "available": re.compile(r"""(?:available|balance)["']?\s*[:=]\s*["']?([0-9][0-9.,]*)""", re.IGNORECASE),
    "acc_no": re.compile(r"""(?:acc_no)["']?\s*[:=]\s*["']?([0-9-]+)""", re.IGNORECASE),
    "bank_name": re.compile(r"""(?:bank_name)["']?\s*[:=]\s*["']?([^"',}\n]+)""", re.IGNORECASE),
}
CREDIT_PUSH = re.compile(r"credit_push\D*?(\d+(?:\.\d+)?)", re.IGNORECASE)
BALANCE_MENTION = re.compile(r"balance\D*?(\d+\.\d+)", re.IGNORECASE)

# points awarded per recognised field, out of 100
FIELD_WEIGHTS = {
    "mm_user": 30,
    "available": 25,
    "acc_no": 20,
    "first_name": 10,
    "bank_name": 10,
}
OTHER_FIELD_WEIGHT = 5
KEYWORD_BONUS = 10


class Candidate:
    def __init__(self, data: dict, confidence: float):
        self.data = data
        self.confidence = confidence

    def to_dict(self) -> dict:
        return {"data": self.data, "confidence": self.confidence}


def _known_field(key: str) -> str | None:
    field = FIELD_ALIASES.get(key, key)
    return field if field in ACCOUNT_FIELDS else None


def _number(value: str):
    try:
        return float(value.replace(",", ""))
    except ValueError:
        return None


def _from_json_objects(text: str) -> dict:
    extracted = {}
    for blob in JSON_OBJECT.findall(text):
        try:
            parsed = json.loads(blob)
        except ValueError:
            continue
        if not isinstance(parsed, dict):
            continue
        for key, value in parsed.items():
            field = _known_field(key)
            if field and value not in (None, ""):
                extracted[field] = value
        if not extracted.get("mm_user") and parsed.get("username"):
            extracted["mm_user"] = parsed["username"]
    return extracted


def _from_key_values(text: str) -> dict:
    extracted = {}
    for pattern in KEY_VALUE_PATTERNS:
        for key, value in pattern.findall(text):
            field = _known_field(key)
            if field and field not in extracted:
                number = _number(value) if field in ("available", "credit_limit", "bet_credit", "points") else None
                extracted[field] = number if number is not None else value.strip()
    return extracted


def _from_specific_patterns(text: str) -> dict:
    extracted = {}
    for field, pattern in FIELD_PATTERNS.items():
        match = pattern.search(text)
        if match:
            value = match.group(1).strip()
            extracted[field] = _number(value) if field == "available" else value

    if "available" not in extracted or extracted["available"] is None:
        match = CREDIT_PUSH.search(text) or BALANCE_MENTION.search(text)
        if match:
            extracted["available"] = float(match.group(1))
    return {k: v for k, v in extracted.items() if v is not None}


def confidence_for(data: dict, text: str) -> float:
    score = sum(FIELD_WEIGHTS.get(field, OTHER_FIELD_WEIGHT) for field in data)
    lowered = text.lower()
    if any(keyword in lowered for keyword in CONSOLE_KEYWORDS):
        score += KEYWORD_BONUS
    return round(min(score, 100) / 100, 2)


def extract_candidate(text) -> Candidate | None:
    """
    Pull whatever account fields can be recognised out of free text.

    Embedded JSON objects are trusted most, then key/value pairs, then
    field-specific patterns; earlier techniques win on overlapping fields.
    Returns None when nothing was recognised.
    """
    if not text or not isinstance(text, str):
        return None

    data = _from_specific_patterns(text)
    data.update(_from_key_values(text))
    data.update(_from_json_objects(text))
    if not data:
        log.debug("No account fields recognised in captured text")
        return None

    candidate = Candidate(data, confidence_for(data, text))
    log.info(f"Extracted {sorted(data)} with confidence {candidate.confidence}")
    return candidate
