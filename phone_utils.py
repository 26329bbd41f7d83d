"""
phone_utils.py
--------------
Turns sender addresses like 'whatsapp:+91 636 280 5484' into the 10-digit key
used for patient rows and registration sessions.
"""

import re

_SEPARATORS = re.compile(r"[\s\-\(\)]")


def normalize_phone_number(phone_number: str) -> str:
    if not phone_number:
        return ""
    cleaned = re.sub(r"^whatsapp:", "", phone_number.strip())
    cleaned = re.sub(r"^\+91", "", cleaned)
    cleaned = _SEPARATORS.sub("", cleaned)

    if cleaned.startswith("91") and len(cleaned) > 10:
        cleaned = cleaned[2:]
    if len(cleaned) > 10:
        cleaned = cleaned[-10:]
    return cleaned
