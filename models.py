"""
models.py
---------
Defines data models for patients, registration sessions, doctors and calendar events.
Uses Python dictionaries for simplicity, matching the rows the database and
calendar API hand back.
"""

from datetime import datetime
from typing import List, Dict, Optional

GENDERS = ("Male", "Female", "Other")
PRIORITIES = ("High", "Medium", "Low")
DOCTOR_STATUSES = ("active", "inactive")
DEFAULT_LANGUAGE = "English"

# Fields a registration session must collect; language is optional.
REQUIRED_PATIENT_FIELDS = ("name", "age", "gender", "disease")
SESSION_FIELDS = REQUIRED_PATIENT_FIELDS + ("language",)


def has_value(value) -> bool:
    """True for any collected answer, including an age of 0."""
    return value not in (None, "")


def normalize_gender(value) -> Optional[str]:
    """Maps free-text gender answers onto Male/Female/Other, or None."""
    if not value:
        return None
    text = str(value).strip().lower()
    if text in ("m", "male", "man", "boy"):
        return "Male"
    if text in ("f", "female", "woman", "girl"):
        return "Female"
    if text in ("other", "o", "non-binary", "nonbinary"):
        return "Other"
    return None


def normalize_priority(value) -> Optional[str]:
    if not value:
        return None
    text = str(value).strip().capitalize()
    return text if text in PRIORITIES else None


def create_patient_model(
    name: str,
    age: int,
    gender: str,
    disease: str,
    phone_number: str,
    priority: str,
    language: Optional[str] = None,
    id: Optional[str] = None,
    created_at: Optional[str] = None
) -> Dict:
    """
    Creates a patient data model with the specified attributes.

    Args:
        name (str): Patient's name.
        age (int): Patient's age in years.
        gender (str): One of Male, Female, Other.
        disease (str): Free-text description of the condition.
        phone_number (str): 10-digit normalised contact number.
        priority (str): Triage label, one of High, Medium, Low.
        language (str): Preferred language, English when omitted.
        id (str): Database identifier, None before insert.
        created_at (str): ISO timestamp, None before insert.

    Returns:
        dict: Structured patient data.
    """
    return {
        "id": id,
        "name": name,
        "age": age,
        "gender": gender,
        "disease": disease,
        "phone_number": phone_number,
        "language": language or DEFAULT_LANGUAGE,
        "priority": priority,
        "created_at": created_at
    }


def create_session_model(phone_number: str) -> Dict:
    """An empty registration session for a phone number."""
    session = {"phone_number": phone_number, "last_updated": datetime.now()}
    for field in SESSION_FIELDS:
        session[field] = None
    return session


def create_doctor_model(
    id: str,
    name: str,
    specialization: str,
    email: str,
    phone: str,
    status: str,
    created_at: Optional[str] = None
) -> Dict:
    return {
        "id": id,
        "name": name,
        "specialization": specialization,
        "email": email,
        "phone": phone,
        "status": status,
        "created_at": created_at
    }


def create_calendar_event_model(
    summary: str,
    start: Dict,
    end: Dict,
    description: Optional[str] = None,
    location: Optional[str] = None,
    attendees: Optional[List[Dict]] = None,
    id: Optional[str] = None
) -> Dict:
    """
    Creates a calendar event in the shape Google Calendar v3 accepts.

    Args:
        summary (str): Event title.
        start (dict): {"dateTime": ISO string, "timeZone": tz name}.
        end (dict): {"dateTime": ISO string, "timeZone": tz name}.
        description (str): Free-text body; carries the priority tag.
        location (str): Optional location.
        attendees (list): Optional attendee dicts.
        id (str): Event id assigned by the provider.

    Returns:
        dict: Event resource.
    """
    event = {
        "id": id,
        "summary": summary,
        "description": description,
        "start": start,
        "end": end,
        "location": location,
        "attendees": attendees or []
    }
    return event
