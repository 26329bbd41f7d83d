"""
priority.py
-----------
Triage priority for newly registered patients.

The rule strategy scores age and disease keywords; the llm strategy asks the
model and falls back to the rule score when its answer is unusable.
"""

import logging

from models import normalize_priority

logger = logging.getLogger(__name__)

CRITICAL_KEYWORDS = (
    "chest pain", "breathing difficulty", "difficulty breathing", "unconscious",
    "seizure", "stroke", "heart attack", "heart disease", "heart problem",
    "cardiac", "bleeding", "allergic reaction",
)
SERIOUS_KEYWORDS = (
    "cancer", "pneumonia", "diabetes", "hypertension", "asthma",
    "severe pain", "high fever",
)

HIGH_THRESHOLD = 6
MEDIUM_THRESHOLD = 3


def disease_points(disease):
    text = (disease or "").lower()
    if not text.strip():
        return 0
    if any(keyword in text for keyword in CRITICAL_KEYWORDS):
        return 6
    if any(keyword in text for keyword in SERIOUS_KEYWORDS):
        return 3
    return 1


def age_points(age):
    if age is None:
        return 0
    if age >= 65:
        return 3
    if age >= 50:
        return 2
    if age <= 5:
        return 2
    return 0


def score_priority(age, disease):
    """Fixed point system over age and disease keywords."""
    score = disease_points(disease) + age_points(age)
    if score >= HIGH_THRESHOLD:
        return "High"
    if score >= MEDIUM_THRESHOLD:
        return "Medium"
    return "Low"


def assign_priority(age, disease, strategy="rules"):
    if strategy == "llm":
        from openai_handler import classify_priority, LLMError
        try:
            answer = normalize_priority(classify_priority(age, disease))
        except LLMError as e:
            logger.warning(f"LLM priority failed, using rule score: {e}")
            answer = None
        if answer:
            logger.info(f"LLM assigned priority {answer} for age={age}")
            return answer
    priority = score_priority(age, disease)
    logger.info(f"Rule-based priority {priority} for age={age}")
    return priority
