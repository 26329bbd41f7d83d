"""
conversation.py
---------------
Turns one inbound WhatsApp/SMS message into one reply.

The sender's intent decides the branch: registration dialogue, enquiry,
appointment booking, cancellation, language change or free chat. Partial
registration details are carried between messages in the session store.
"""

import logging
import re

from dateutil import parser

import database
import openai_handler
import translation_handler
from calendar_handler import CalendarClient
from config import load_clean_config
from models import SESSION_FIELDS, create_patient_model
from phone_utils import normalize_phone_number
from priority import assign_priority
from sessions import SessionStore

logger = logging.getLogger(__name__)
config = load_clean_config()

APOLOGY = "Sorry, something went wrong. Please try again later."
EMPTY_MESSAGE_REPLY = "Sorry, I didn't understand your message. Please try again."
REGISTRATION_INVITE = (
    "Welcome! To register, please share your name, age, gender and the health issue "
    "you're facing. You can also tell us your preferred language."
)

FIELD_QUESTIONS = {
    "name": "your full name",
    "age": "your age",
    "gender": "your gender (Male, Female or Other)",
    "disease": "what symptoms or health issue you are experiencing",
}

_AGE_PATTERN = re.compile(r"\d+\s*(?:yrs?|years?|age)", re.IGNORECASE)
_GENDER_PATTERN = re.compile(r"\b(?:male|female|m|f)\b", re.IGNORECASE)
_DISEASE_PATTERN = re.compile(
    r"\b(?:headache|fever|pain|diabetes|heart|asthma|cancer|stroke|hypertension|pneumonia|"
    r"chest pain|breathing difficulty|severe pain|bleeding|unconscious|seizure|allergic reaction|"
    r"heart disease|cardiac|cold|cough|stomach ache|back pain|joint pain|skin rash|"
    r"eye problem|ear pain|dental issue)\b",
    re.IGNORECASE,
)
_GREETING_WORDS = ("hello", "hi", "hey", "start", "help")

session_store = SessionStore(
    ttl_seconds=config["SESSION_TTL_SECONDS"],
    sweep_interval=config["SESSION_SWEEP_INTERVAL"],
)

_calendar = None


def get_calendar():
    global _calendar
    if _calendar is None:
        _calendar = CalendarClient()
    return _calendar


def looks_like_patient_info(message):
    """Heuristic for messages carrying registration details."""
    return (
        message.count(",") >= 3
        or bool(_AGE_PATTERN.search(message))
        or bool(_GENDER_PATTERN.search(message))
        or bool(_DISEASE_PATTERN.search(message))
    )


def is_greeting(message):
    words = re.findall(r"[a-z]+", message.lower())
    return not looks_like_patient_info(message) and any(word in _GREETING_WORDS for word in words)


def session_in_progress(phone):
    return phone in session_store and session_store.has_progress(session_store.get(phone))


def format_event_time(date_time):
    try:
        moment = parser.isoparse(date_time)
    except (TypeError, ValueError):
        return str(date_time)
    return moment.strftime("%A, %d %B %Y at %I:%M %p")


def registration_prompt(missing):
    questions = [FIELD_QUESTIONS[field] for field in missing]
    if len(questions) == 1:
        asked = questions[0]
    else:
        asked = ", ".join(questions[:-1]) + " and " + questions[-1]
    return f"Thanks! To complete your registration, please tell me {asked}."


def handle_registration(message, phone, patient):
    if patient:
        return (
            f"You're already registered, {patient['name']}. "
            "You can book or cancel an appointment any time by sending a message.",
            patient["language"],
        )

    session = session_store.get(phone)
    extracted = openai_handler.extract_patient_data(message, session)
    session = session_store.update(phone, **extracted)

    if not session_store.is_complete(session):
        return registration_prompt(session_store.missing_fields(session)), session.get("language")

    details = openai_handler.correct_spelling({field: session[field] for field in SESSION_FIELDS})
    priority = assign_priority(details["age"], details["disease"], config["PRIORITY_STRATEGY"])
    record = create_patient_model(
        name=details["name"],
        age=details["age"],
        gender=details["gender"],
        disease=details["disease"],
        phone_number=phone,
        language=details.get("language"),
        priority=priority
    )

    if database.check_phone_exists(phone):
        logger.warning(f"Phone {phone} registered concurrently; skipping insert")
        session_store.clear(phone)
        return "You're already registered. How can I help you today?", record["language"]

    stored = database.insert_patient(record)
    session_store.clear(phone)

    try:
        explanation = openai_handler.explain_disease(stored["disease"], stored["language"])
    except openai_handler.LLMError as e:
        logger.warning(f"Disease explanation skipped: {e}")
        explanation = ""

    reply = (
        f"Thank you {stored['name']}, your registration is complete. "
        f"Your case has been marked {stored['priority']} priority."
    )
    if explanation:
        reply = f"{reply}\n\n{explanation}"
    return reply, stored["language"]


def handle_enquiry(message, phone, patient):
    if not patient:
        return REGISTRATION_INVITE, None
    return (
        f"Hello {patient['name']}! We have your record for {patient['disease']} "
        f"({patient['priority']} priority). Reply to book or cancel an appointment.",
        patient["language"],
    )


def handle_greeting(message, phone, patient):
    if patient:
        return f"Hello {patient['name']}! How may I help you today?", patient["language"]
    return REGISTRATION_INVITE, None


def handle_booking(message, phone, patient):
    if not patient:
        return "Please register before booking an appointment. " + REGISTRATION_INVITE, None

    event = openai_handler.build_calendar_event(message, patient, config["CALENDAR_TIMEZONE"])
    tag = f"{patient['priority']} priority - {patient['disease']}. Patient phone: {phone}."
    event["description"] = f"{tag} {event['description']}".strip()
    if patient["name"].lower() not in event["summary"].lower():
        event["summary"] = f"{event['summary']} - {patient['name']}"

    created = get_calendar().create_event(event)
    when = format_event_time(created["start"]["dateTime"])
    return f"Your appointment is confirmed for {when}.", patient["language"]


def handle_cancellation(message, phone, patient):
    language = patient["language"] if patient else None
    events = [
        event for event in get_calendar().list_events()
        if phone and phone in (event.get("description") or "")
    ]
    if not events:
        return "I couldn't find any upcoming appointments for your number.", language

    event_id = openai_handler.match_event_to_cancel(message, events)
    if event_id is None:
        listing = "\n".join(
            f"- {event['summary']} on {format_event_time(event['start'].get('dateTime'))}" for event in events
        )
        return f"Which appointment would you like to cancel?\n{listing}", language

    cancelled = next(event for event in events if event["id"] == event_id)
    get_calendar().delete_event(event_id)
    when = format_event_time(cancelled["start"].get("dateTime"))
    return f"Your appointment on {when} has been cancelled.", language


def handle_language_change(message, phone, patient):
    language = openai_handler.extract_language(message)
    if not language or not translation_handler.is_language_supported(language):
        supported = ", ".join(translation_handler.get_supported_languages())
        return f"Sorry, I can reply in these languages: {supported}.", patient["language"] if patient else None

    if patient:
        database.update_patient_language(phone, language)
    else:
        session_store.update(phone, language=language)
    return f"Done! I will reply in {language} from now on.", language


def handle_chat(message, phone, patient):
    if patient:
        context = (
            f"Patient: {patient['name']} ({patient['age']} years, {patient['gender']})\n"
            f"Condition: {patient['disease']}\n\n"
            f"User: {message}\n\n"
            "Respond as a caring healthcare assistant in under three sentences. "
            "Use the patient's name when appropriate. Provide support, not medical advice."
        )
        return openai_handler.chat([{"role": "user", "content": context}]), patient["language"]

    prompt = (
        f'New patient registration. Message: "{message}"\n'
        "Help complete registration naturally by asking for any missing name, age, gender, "
        "health issue or preferred language. Keep the reply under two sentences."
    )
    return openai_handler.chat([{"role": "user", "content": prompt}]), None


INTENT_HANDLERS = {
    "book appointment": handle_booking,
    "cancel appointment": handle_cancellation,
    "change language": handle_language_change,
    "enquiry": handle_enquiry,
}


def route_message(message, phone, intent, patient):
    """Picks the handler for a message. Returns (reply, language to translate into)."""
    wants_registration = intent == "register" or (
        patient is None
        and intent not in INTENT_HANDLERS
        and (looks_like_patient_info(message) or session_in_progress(phone))
    )
    if wants_registration:
        return handle_registration(message, phone, patient)
    if intent in INTENT_HANDLERS:
        return INTENT_HANDLERS[intent](message, phone, patient)
    if is_greeting(message):
        return handle_greeting(message, phone, patient)
    return handle_chat(message, phone, patient)


def handle_incoming_message(body, sender):
    """
    Produces the reply text for one inbound message.

    Args:
        body: Message text.
        sender: Sender address, e.g. 'whatsapp:+916362805484'.

    Returns:
        str: Reply to send back, translated to the patient's language when needed.
    """
    message = (body or "").strip()
    phone = normalize_phone_number(sender or "")
    if not message:
        return EMPTY_MESSAGE_REPLY

    logger.info(f"Inbound message from {phone}: '{message[:100]}'")
    try:
        patient = database.get_patient_by_phone(phone) if phone else None
        intent = openai_handler.classify_intent(message)
        reply, language = route_message(message, phone, intent, patient)
    except Exception as e:
        logger.error(f"Failed to handle message from {phone}: {e}", exc_info=True)
        return APOLOGY

    if language and translation_handler.is_translation_needed(language):
        reply = translation_handler.translate_for_patient(reply, language)
    logger.info(f"Replying to {phone} (intent={intent}): '{reply[:100]}'")
    return reply
