from __future__ import annotations

import pytest

import priority
from priority import assign_priority, score_priority


@pytest.mark.parametrize(
    ("age", "disease", "expected"),
    [
        (30, "severe chest pain since morning", "High"),
        (8, "Seizure", "High"),
        (70, "diabetes", "High"),
        (40, "asthma", "Medium"),
        (68, "cold and cough", "Medium"),
        (3, "mild fever", "Medium"),
        (25, "headache", "Low"),
        (52, "skin rash", "Medium"),
        (35, "", "Low"),
    ],
)
def test_score_priority(age, disease, expected):
    assert score_priority(age, disease) == expected


def test_assign_priority_uses_rules_by_default(llm):
    assert assign_priority(30, "chest pain") == "High"
    assert llm.calls == []


def test_assign_priority_llm_strategy_uses_model_answer(llm):
    llm.route("triage nurse", {"priority": "medium"})
    assert assign_priority(30, "chest pain", strategy="llm") == "Medium"


def test_assign_priority_llm_strategy_falls_back_on_invalid_answer(llm):
    llm.route("triage nurse", {"priority": "critical"})
    assert assign_priority(25, "headache", strategy="llm") == "Low"


def test_assign_priority_llm_strategy_falls_back_when_model_unavailable(monkeypatch):
    import openai_handler

    monkeypatch.setattr(openai_handler, "client", None)
    assert assign_priority(75, "pneumonia", strategy="llm") == "High"


def test_critical_keywords_outrank_serious_ones():
    assert priority.disease_points("bleeding after diabetes check") == 6
