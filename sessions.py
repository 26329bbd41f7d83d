"""
sessions.py
-----------
In-memory registration sessions keyed by normalised phone number.

A session collects patient fields across several inbound messages until
name, age, gender and disease are all known. Sessions live only in this
process and are reaped once idle for longer than the configured TTL.
"""

import logging
import threading
from datetime import datetime, timedelta

from models import REQUIRED_PATIENT_FIELDS, SESSION_FIELDS, create_session_model, has_value
from phone_utils import normalize_phone_number

logger = logging.getLogger(__name__)


class SessionStore:
    def __init__(self, ttl_seconds=3600, sweep_interval=1800, clock=datetime.now):
        self.ttl = timedelta(seconds=ttl_seconds)
        self.sweep_interval = timedelta(seconds=sweep_interval)
        self._clock = clock
        self._sessions = {}
        self._lock = threading.Lock()
        self._last_sweep = clock()

    def __len__(self):
        return len(self._sessions)

    def __contains__(self, phone_number):
        return normalize_phone_number(phone_number) in self._sessions

    def get(self, phone_number):
        """Returns the session for a phone number, creating an empty one if needed."""
        self._maybe_sweep()
        key = normalize_phone_number(phone_number)
        with self._lock:
            session = self._sessions.get(key)
            if session is None:
                session = create_session_model(key)
                session["last_updated"] = self._clock()
                self._sessions[key] = session
            return dict(session)

    def update(self, phone_number, **fields):
        """Merges the non-empty fields into the session and refreshes its timestamp."""
        key = normalize_phone_number(phone_number)
        with self._lock:
            session = self._sessions.get(key)
            if session is None:
                session = create_session_model(key)
                self._sessions[key] = session
            for field, value in fields.items():
                if field not in SESSION_FIELDS:
                    logger.warning(f"Ignoring unknown session field '{field}'")
                    continue
                if not has_value(value):
                    continue
                session[field] = value
            session["last_updated"] = self._clock()
            logger.info(f"Updated session for {key}: missing={self.missing_fields(session)}")
            return dict(session)

    def clear(self, phone_number):
        key = normalize_phone_number(phone_number)
        with self._lock:
            removed = self._sessions.pop(key, None)
        if removed is not None:
            logger.info(f"Cleared session for {key}")
        return removed is not None

    def cleanup(self, now=None):
        """Drops sessions idle longer than the TTL. Returns how many were removed."""
        now = now or self._clock()
        cutoff = now - self.ttl
        with self._lock:
            stale = [key for key, session in self._sessions.items() if session["last_updated"] < cutoff]
            for key in stale:
                del self._sessions[key]
            self._last_sweep = now
        for key in stale:
            logger.info(f"Reaped idle session for {key}")
        return len(stale)

    def _maybe_sweep(self):
        now = self._clock()
        if now - self._last_sweep >= self.sweep_interval:
            self.cleanup(now)

    @staticmethod
    def is_complete(session):
        return all(has_value(session.get(field)) for field in REQUIRED_PATIENT_FIELDS)

    @staticmethod
    def missing_fields(session):
        return [field for field in REQUIRED_PATIENT_FIELDS if not has_value(session.get(field))]

    @staticmethod
    def has_progress(session):
        return any(has_value(session.get(field)) for field in SESSION_FIELDS)
