from __future__ import annotations

import json
import sqlite3
import sys
from pathlib import Path
from types import SimpleNamespace

import pytest

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

import conversation  # noqa: E402
import database  # noqa: E402
import openai_handler  # noqa: E402
import translation_handler  # noqa: E402
from calendar_handler import CalendarClient  # noqa: E402
from sessions import SessionStore  # noqa: E402

SQLITE_SCHEMA = """
CREATE TABLE patients (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    age INTEGER NOT NULL,
    gender TEXT NOT NULL,
    disease TEXT NOT NULL,
    phone_number TEXT NOT NULL UNIQUE,
    language TEXT NOT NULL DEFAULT 'English',
    priority TEXT NOT NULL,
    created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
);
CREATE TABLE doctors (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    specialization TEXT,
    email TEXT,
    phone TEXT,
    status TEXT NOT NULL DEFAULT 'active',
    created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
);
"""


class FakeCompletions:
    """Answers chat.completions.create by matching a phrase in the system prompt."""

    def __init__(self):
        self.routes: list[tuple[str, object]] = []
        self.calls: list[dict] = []
        self.default = "Happy to help."

    def route(self, phrase, reply):
        self.routes.insert(0, (phrase, reply))

    def create(self, **kwargs):
        self.calls.append(kwargs)
        system = kwargs["messages"][0]["content"]
        content = self.default
        for phrase, reply in self.routes:
            if phrase in system:
                content = reply(kwargs) if callable(reply) else reply
                break
        if isinstance(content, Exception):
            raise content
        if isinstance(content, dict):
            content = json.dumps(content)
        return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])

    def prompts_containing(self, phrase):
        return [call for call in self.calls if phrase in call["messages"][0]["content"]]


class _Call:
    def __init__(self, fn):
        self._fn = fn

    def execute(self):
        return self._fn()


class FakeEventsResource:
    def __init__(self, service):
        self.service = service

    def list(self, **params):
        self.service.list_params.append(params)

        def run():
            items = sorted(self.service.store.values(), key=lambda e: e["start"].get("dateTime", ""))
            return {"items": [dict(item) for item in items]}

        return _Call(run)

    def insert(self, calendarId, body):
        def run():
            self.service.next_id += 1
            event = dict(body, id=f"evt{self.service.next_id}", htmlLink="https://calendar.test/evt")
            self.service.store[event["id"]] = event
            return dict(event)

        return _Call(run)

    def update(self, calendarId, eventId, body):
        def run():
            self.service.updates.append((eventId, body))
            event = dict(body, id=eventId)
            self.service.store[eventId] = event
            return dict(event)

        return _Call(run)

    def delete(self, calendarId, eventId):
        def run():
            self.service.deleted.append(eventId)
            self.service.store.pop(eventId, None)
            return ""

        return _Call(run)


class FakeCalendarListResource:
    def list(self):
        return _Call(lambda: {"items": [{"id": "primary", "summary": "Clinic"}]})


class FakeCalendarService:
    def __init__(self, events=None):
        self.store = {event["id"]: dict(event) for event in (events or [])}
        self.next_id = 0
        self.list_params: list[dict] = []
        self.updates: list[tuple[str, dict]] = []
        self.deleted: list[str] = []

    def events(self):
        return FakeEventsResource(self)

    def calendarList(self):
        return FakeCalendarListResource()


@pytest.fixture
def llm(monkeypatch):
    completions = FakeCompletions()
    fake_client = SimpleNamespace(chat=SimpleNamespace(completions=completions))
    monkeypatch.setattr(openai_handler, "client", fake_client)
    return completions


@pytest.fixture
def db_path(tmp_path, monkeypatch):
    path = tmp_path / "assistant-test.sqlite"
    conn = sqlite3.connect(path)
    conn.executescript(SQLITE_SCHEMA)
    conn.commit()
    conn.close()
    monkeypatch.setattr(database, "get_connection", lambda *args, **kwargs: sqlite3.connect(path))
    return path


@pytest.fixture
def calendar_service(monkeypatch):
    service = FakeCalendarService()
    monkeypatch.setattr(conversation, "_calendar", CalendarClient(service=service, calendar_id="primary"))
    return service


@pytest.fixture(autouse=True)
def fresh_sessions(monkeypatch):
    store = SessionStore(ttl_seconds=3600, sweep_interval=1800)
    monkeypatch.setattr(conversation, "session_store", store)
    return store


@pytest.fixture
def translations(monkeypatch):
    calls = []

    def fake_translate(text, language, speaker_gender="Female"):
        calls.append((text, language))
        return f"[{language}] {text}"

    monkeypatch.setattr(translation_handler, "translate_for_patient", fake_translate)
    return calls


@pytest.fixture
def seed_patient(db_path):
    def _seed(phone="6362805484", name="Asha Rao", age=34, gender="Female", disease="migraine",
              language="English", priority="Low", created_at="2026-01-01 10:00:00"):
        conn = sqlite3.connect(db_path)
        conn.execute(
            "INSERT INTO patients (name, age, gender, disease, phone_number, language, priority, created_at) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
            (name, age, gender, disease, phone, language, priority, created_at),
        )
        conn.commit()
        conn.close()

    return _seed


@pytest.fixture
def client(llm, db_path, calendar_service):
    from fastapi.testclient import TestClient

    import main

    with TestClient(main.app) as test_client:
        yield test_client
