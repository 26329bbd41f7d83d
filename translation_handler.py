"""
translation_handler.py
----------------------
Translates outgoing replies into the patient's preferred language through
the Sarvam translate REST endpoint.
"""

import logging

import httpx

from config import load_clean_config

logger = logging.getLogger(__name__)
config = load_clean_config()

LANGUAGE_CODES = {
    "english": "en-IN",
    "hindi": "hi-IN",
    "bengali": "bn-IN",
    "tamil": "ta-IN",
    "telugu": "te-IN",
    "marathi": "mr-IN",
    "gujarati": "gu-IN",
    "kannada": "kn-IN",
    "malayalam": "ml-IN",
    "punjabi": "pa-IN",
    "odia": "od-IN",
    "oriya": "od-IN",
    "assamese": "as-IN",
    "en": "en-IN",
    "hi": "hi-IN",
    "bn": "bn-IN",
    "ta": "ta-IN",
    "te": "te-IN",
    "mr": "mr-IN",
    "gu": "gu-IN",
    "kn": "kn-IN",
    "ml": "ml-IN",
    "pa": "pa-IN",
    "or": "od-IN",
    "as": "as-IN",
}
ENGLISH_CODE = "en-IN"


def get_language_code(language):
    """Standard code for a language name or short code; English when unknown."""
    if not language:
        return ENGLISH_CODE
    return LANGUAGE_CODES.get(language.strip().lower(), ENGLISH_CODE)


def is_language_supported(language):
    return bool(language) and language.strip().lower() in LANGUAGE_CODES


def is_translation_needed(language):
    return get_language_code(language) != ENGLISH_CODE


def get_supported_languages():
    """Language names only, without the short codes."""
    return [name.capitalize() for name in LANGUAGE_CODES if len(name) > 2]


def _provider_error_message(response):
    try:
        payload = response.json()
    except ValueError:
        return response.text.strip() or f"HTTP {response.status_code}"
    if isinstance(payload, dict):
        error = payload.get("error")
        if isinstance(error, dict):
            return str(error.get("message") or error)
        if error:
            return str(error)
    return f"HTTP {response.status_code}"


def translate_text(text, target_language, source_language=None, speaker_gender="Male", timeout_seconds=20.0):
    """
    Translates text with Sarvam.

    Args:
        text: Text to translate.
        target_language: Language name or code to translate into.
        source_language: Language name or code of the input; auto-detected when None.
        speaker_gender: 'Male' or 'Female', used by the provider for phrasing.

    Returns:
        dict: success, translated_text, original_text, target_language and,
              on failure, error. The original text is returned untranslated
              when anything goes wrong.
    """
    if not is_translation_needed(target_language):
        return {
            "success": True,
            "translated_text": text,
            "original_text": text,
            "target_language": ENGLISH_CODE,
        }

    target_code = get_language_code(target_language)
    result = {
        "success": False,
        "translated_text": text,
        "original_text": text,
        "target_language": target_code,
    }
    if not config["SARVAM_API_KEY"]:
        logger.warning("SARVAM_API_KEY not set; sending reply untranslated")
        result["error"] = "Translation provider not configured"
        return result

    payload = {
        "input": text,
        "source_language_code": get_language_code(source_language) if source_language else "auto",
        "target_language_code": target_code,
        "speaker_gender": speaker_gender,
    }
    headers = {"api-subscription-key": config["SARVAM_API_KEY"], "Content-Type": "application/json"}

    try:
        with httpx.Client(timeout=httpx.Timeout(timeout_seconds, connect=8.0)) as client:
            response = client.post(config["SARVAM_API_URL"], headers=headers, json=payload)
    except httpx.HTTPError as e:
        logger.error(f"Translation request failed: {e}")
        result["error"] = str(e) or "Translation request failed"
        return result

    if response.status_code >= 400:
        result["error"] = _provider_error_message(response)
        logger.error(f"Translation provider returned {response.status_code}: {result['error']}")
        return result

    try:
        payload = response.json()
    except ValueError:
        payload = None
    if not isinstance(payload, dict):
        logger.error(f"Translation provider returned an unreadable body: {response.text[:200]}")
        result["error"] = "Translation provider returned an unreadable response"
        return result

    translated = payload.get("translated_text")
    result["success"] = True
    result["translated_text"] = translated or text
    logger.info(f"Translated {len(text)} characters to {target_code}")
    return result


def translate_for_patient(text, language, speaker_gender="Female"):
    """The text to send a patient: translated when possible, otherwise unchanged."""
    return translate_text(text, language, speaker_gender=speaker_gender)["translated_text"]
