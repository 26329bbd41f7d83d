"""
openai_handler.py
-----------------
Handles OpenAI chat completion calls for the messaging assistant: intent
classification, patient detail extraction, spelling correction, triage,
disease explanations, calendar payloads and free chat.
"""

import json
from datetime import datetime
import logging
import re

from openai import OpenAI

from config import load_clean_config
from models import (
    GENDERS,
    PRIORITIES,
    SESSION_FIELDS,
    has_value,
    normalize_gender,
    normalize_priority,
)

logger = logging.getLogger(__name__)
config = load_clean_config()

INTENTS = [
    "register",
    "enquiry",
    "book appointment",
    "cancel appointment",
    "change language",
]
UNKNOWN_INTENT = "unknown"

MODEL = config["OPENAI_MODEL"]

# Initialize standard OpenAI client
try:
    client = OpenAI(api_key=config["OPENAI_API_KEY"] or None)
except Exception as e:
    logger.error(f"Failed to initialize standard OpenAI client: {e}")
    client = None

_FENCE_OPEN = re.compile(r"^\s*```(?:json)?\s*", re.IGNORECASE)
_FENCE_CLOSE = re.compile(r"\s*```\s*$")


class LLMError(Exception):
    """Raised when the model cannot be reached or returns something unusable."""


def strip_code_fences(text):
    """Removes a surrounding ```json ... ``` block if the model added one."""
    if text is None:
        return ""
    return _FENCE_CLOSE.sub("", _FENCE_OPEN.sub("", text)).strip()


def parse_json_reply(text):
    cleaned = strip_code_fences(text)
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError as json_err:
        logger.error(f"Failed to parse JSON reply: {json_err}. Content: {cleaned[:200]}")
        raise LLMError("Model reply was not valid JSON") from json_err


def _complete(messages, temperature=0.3, json_mode=False):
    if not client:
        logger.error("OpenAI client not initialized. Cannot process text.")
        raise LLMError("OpenAI client not initialized")

    kwargs = {"model": MODEL, "messages": messages, "temperature": temperature}
    if json_mode:
        kwargs["response_format"] = {"type": "json_object"}
    try:
        response = client.chat.completions.create(**kwargs)
    except Exception as e:
        logger.error(f"Error during OpenAI API call: {e}", exc_info=True)
        raise LLMError(str(e)) from e

    content = response.choices[0].message.content or ""
    logger.debug(f"Raw response from OpenAI: {content}")
    return content


def _complete_json(system_prompt, user_text, temperature=0.2):
    content = _complete(
        [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_text},
        ],
        temperature=temperature,
        json_mode=True,
    )
    data = parse_json_reply(content)
    if not isinstance(data, dict):
        logger.error(f"Expected a JSON object, got: {content[:200]}")
        raise LLMError("Model reply was not a JSON object")
    return data


def classify_intent(message: str) -> str:
    """Returns one of INTENTS, or 'unknown' when the model picks nothing valid."""
    if not message or not message.strip():
        return UNKNOWN_INTENT

    system_prompt = (
        "You classify WhatsApp/SMS messages sent to a hospital appointment assistant.\n"
        f"Choose exactly one intent from this list: {json.dumps(INTENTS)}.\n"
        "- register: the sender wants to sign up or is giving personal/medical details.\n"
        "- enquiry: the sender asks about their record, the hospital or a general question.\n"
        "- book appointment: the sender wants to schedule a visit.\n"
        "- cancel appointment: the sender wants to cancel an existing visit.\n"
        "- change language: the sender wants replies in another language.\n"
        'Respond ONLY with a JSON object: {"intent": "<one of the list>"}'
    )
    data = _complete_json(system_prompt, message, temperature=0)
    intent = str(data.get("intent", "")).strip().lower()
    if intent not in INTENTS:
        logger.warning(f"Model returned unsupported intent '{intent}'")
        return UNKNOWN_INTENT
    logger.info(f"Classified intent: {intent}")
    return intent


def _coerce_age(value):
    if value is None or value == "":
        return None
    try:
        age = int(float(str(value).strip()))
    except ValueError:
        match = re.search(r"\d+", str(value))
        if not match:
            return None
        age = int(match.group())
    if 0 <= age <= 130:
        return age
    return None


def _coerce_text(value):
    if value is None:
        return None
    text = str(value).strip()
    if not text or text.lower() in ("null", "none", "unknown", "n/a"):
        return None
    return text


def clean_patient_fields(data):
    """Validates extracted fields and drops anything unusable."""
    cleaned = {
        "name": _coerce_text(data.get("name")),
        "age": _coerce_age(data.get("age")),
        "gender": normalize_gender(data.get("gender")),
        "disease": _coerce_text(data.get("disease")),
        "language": _coerce_text(data.get("language")),
    }
    if cleaned["name"]:
        cleaned["name"] = cleaned["name"].title()
    if cleaned["language"]:
        cleaned["language"] = cleaned["language"].capitalize()
    return {field: value for field, value in cleaned.items() if value is not None}


def extract_patient_data(message: str, session: dict) -> dict:
    """
    Extracts the registration fields the session is still missing.

    Args:
        message: Latest inbound message text.
        session: Current registration session.

    Returns:
        dict: Only the newly found fields that the session did not have yet.
    """
    known = {field: session.get(field) for field in SESSION_FIELDS if has_value(session.get(field))}
    missing = [field for field in SESSION_FIELDS if not has_value(session.get(field))]
    if not missing:
        return {}

    system_prompt = (
        "You extract patient registration details from a chat message.\n"
        f"Already known: {json.dumps(known, default=str)}.\n"
        f"Find values only for these missing fields: {json.dumps(missing)}.\n"
        f"- gender must be one of {json.dumps(list(GENDERS))}.\n"
        "- age is a whole number of years.\n"
        "- disease is the symptom or condition in the patient's own words.\n"
        "- language is the preferred language name, e.g. English, Hindi, Tamil.\n"
        "Use null for anything not clearly stated. Never guess.\n"
        "Respond ONLY with a JSON object whose keys are the missing fields."
    )
    data = _complete_json(system_prompt, message)
    extracted = clean_patient_fields(data)
    result = {field: value for field, value in extracted.items() if field in missing}
    logger.info(f"Extracted fields: {sorted(result)}")
    return result


def correct_spelling(patient: dict) -> dict:
    """Corrects obvious misspellings in name, disease and language; returns a new dict."""
    fields = {field: patient.get(field) for field in ("name", "disease", "language") if patient.get(field)}
    if not fields:
        return dict(patient)

    system_prompt = (
        "Correct spelling mistakes in these patient registration fields. "
        "Keep the meaning, keep names recognisable, fix medical terms "
        "(e.g. 'hedache' -> 'headache') and language names (e.g. 'hinde' -> 'Hindi'). "
        "Respond ONLY with a JSON object with the same keys."
    )
    try:
        data = _complete_json(system_prompt, json.dumps(fields), temperature=0)
    except LLMError as e:
        logger.warning(f"Spelling correction skipped: {e}")
        return dict(patient)

    corrected = dict(patient)
    for field in fields:
        value = _coerce_text(data.get(field))
        if value:
            corrected[field] = value
    if corrected.get("name"):
        corrected["name"] = corrected["name"].title()
    logger.info("Applied spelling correction to patient fields")
    return corrected


def classify_priority(age, disease):
    system_prompt = (
        "You are a triage nurse. Given a patient's age and condition, "
        f"assign a priority from {json.dumps(list(PRIORITIES))}. "
        'Respond ONLY with a JSON object: {"priority": "High|Medium|Low"}'
    )
    data = _complete_json(system_prompt, json.dumps({"age": age, "disease": disease}), temperature=0)
    return normalize_priority(data.get("priority"))


def explain_disease(disease: str, language: str = "English") -> str:
    """Short, plain-language description of a condition. Not medical advice."""
    messages = [
        {"role": "system", "content": (
            "You are a caring hospital assistant. In at most three short sentences, "
            "explain the condition in plain words and suggest seeing a doctor. "
            "Do not diagnose or prescribe. Reply in English."
        )},
        {"role": "user", "content": disease},
    ]
    return _complete(messages, temperature=0.5).strip()


def build_calendar_event(message: str, patient: dict, timezone: str = "Asia/Kolkata", now=None) -> dict:
    """
    Asks the model to turn a booking request into a Google Calendar insert body.

    Returns:
        dict: {"summary", "description", "start": {...}, "end": {...}}
    """
    now = now or datetime.now()
    system_prompt = (
        "You turn appointment requests into Google Calendar events.\n"
        f"Current date and time: {now.strftime('%A %Y-%m-%d %H:%M')} ({timezone}).\n"
        "Resolve relative dates like 'tomorrow' or 'next Monday' from the current date.\n"
        "Appointments last 30 minutes unless the message says otherwise.\n"
        "Respond ONLY with a JSON object:\n"
        '{"summary": "...", "description": "...", '
        f'"start": {{"dateTime": "YYYY-MM-DDTHH:MM:SS", "timeZone": "{timezone}"}}, '
        f'"end": {{"dateTime": "YYYY-MM-DDTHH:MM:SS", "timeZone": "{timezone}"}}}}'
    )
    context = {
        "message": message,
        "patient": {key: patient.get(key) for key in ("name", "age", "gender", "disease")},
    }
    event = _complete_json(system_prompt, json.dumps(context, default=str))

    for boundary in ("start", "end"):
        value = event.get(boundary)
        if not isinstance(value, dict) or not value.get("dateTime"):
            logger.error(f"Calendar payload lacks {boundary}.dateTime: {event}")
            raise LLMError(f"Calendar payload lacks {boundary} time")
        value.setdefault("timeZone", timezone)
    event["summary"] = _coerce_text(event.get("summary")) or f"Appointment - {patient.get('name', 'Patient')}"
    event["description"] = _coerce_text(event.get("description")) or ""
    return event


def match_event_to_cancel(message: str, events: list):
    """Returns the id of the event the message asks to cancel, or None."""
    if not events:
        return None
    listing = [
        {
            "id": event.get("id"),
            "summary": event.get("summary"),
            "start": (event.get("start") or {}).get("dateTime"),
        }
        for event in events
    ]
    system_prompt = (
        "A patient wants to cancel an appointment. Pick the event from the list "
        "that best matches their message. If none matches clearly, use null.\n"
        f"Events: {json.dumps(listing)}\n"
        'Respond ONLY with a JSON object: {"eventId": "<id or null>"}'
    )
    data = _complete_json(system_prompt, message, temperature=0)
    event_id = data.get("eventId")
    valid_ids = {event.get("id") for event in events}
    if event_id not in valid_ids:
        logger.info(f"No calendar event matched cancellation request (got {event_id!r})")
        return None
    return event_id


def extract_language(message: str):
    system_prompt = (
        "The user wants to change the language of replies. "
        "Return the language they ask for as an English language name, e.g. Hindi, Tamil.\n"
        'Respond ONLY with a JSON object: {"language": "<name or null>"}'
    )
    data = _complete_json(system_prompt, message, temperature=0)
    language = _coerce_text(data.get("language"))
    return language.capitalize() if language else None


def build_chat_prompt(messages, calendar_events=None, language=None):
    system_prompt = (
        "You are a caring healthcare assistant for a hospital. You help patients and staff "
        "with appointments, calendar questions and general information. "
        "Keep replies short and never give a diagnosis."
    )
    if language and language.lower() not in ("english", "en"):
        system_prompt += f" Respond in {language}."
    if calendar_events:
        lines = [
            f"- {event.get('summary')} ({(event.get('start') or {}).get('dateTime')} to "
            f"{(event.get('end') or {}).get('dateTime')})"
            for event in calendar_events
        ]
        system_prompt += "\nCurrent calendar events:\n" + "\n".join(lines)
    return [{"role": "system", "content": system_prompt}] + [
        {"role": message["role"], "content": message["content"]} for message in messages
    ]


def chat(messages, calendar_events=None, language=None) -> str:
    """Free-form reply for a list of {'role', 'content'} messages."""
    prompt = build_chat_prompt(messages, calendar_events, language)
    return _complete(prompt, temperature=0.7).strip()
