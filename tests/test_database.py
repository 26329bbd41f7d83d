from __future__ import annotations

import sqlite3

import pytest

import database


def _patient(**overrides):
    record = {
        "name": "Ravi Kumar",
        "age": 42,
        "gender": "Male",
        "disease": "fever",
        "phone_number": "whatsapp:+91 98450 12345",
        "priority": "Medium",
    }
    record.update(overrides)
    return record


def test_insert_patient_normalizes_phone_and_defaults_language(db_path):
    stored = database.insert_patient(_patient())

    assert stored["id"]
    assert stored["phone_number"] == "9845012345"
    assert stored["language"] == "English"
    assert stored["created_at"]


def test_check_phone_exists_matches_any_format_of_same_number(db_path):
    assert database.check_phone_exists("9845012345") is False
    database.insert_patient(_patient())

    assert database.check_phone_exists("9845012345") is True
    assert database.check_phone_exists("+919845012345") is True
    assert database.check_phone_exists("9845099999") is False


def test_get_patient_by_phone_returns_none_for_unknown_number(db_path):
    assert database.get_patient_by_phone("9000000000") is None


def test_get_patient_by_phone_returns_patient_model(db_path, seed_patient):
    seed_patient(language="Hindi", priority="High")
    patient = database.get_patient_by_phone("whatsapp:+916362805484")

    assert patient["name"] == "Asha Rao"
    assert patient["age"] == 34
    assert patient["language"] == "Hindi"
    assert patient["priority"] == "High"
    assert isinstance(patient["id"], str)


def test_duplicate_insert_rolls_back_and_raises(db_path):
    database.insert_patient(_patient())
    with pytest.raises(database.DatabaseError):
        database.insert_patient(_patient(name="Someone Else"))

    conn = sqlite3.connect(db_path)
    count = conn.execute("SELECT COUNT(*) FROM patients").fetchone()[0]
    conn.close()
    assert count == 1


def test_update_patient_language(db_path, seed_patient):
    seed_patient()
    assert database.update_patient_language("6362805484", "Tamil") is True
    assert database.get_patient_by_phone("6362805484")["language"] == "Tamil"
    assert database.update_patient_language("9000000000", "Tamil") is False


def test_list_patients_and_doctors_are_newest_first(db_path, seed_patient):
    seed_patient(phone="1111111111", name="Older", created_at="2026-01-01 09:00:00")
    seed_patient(phone="2222222222", name="Newer", created_at="2026-02-01 09:00:00")
    conn = sqlite3.connect(db_path)
    conn.executemany(
        "INSERT INTO doctors (name, specialization, email, phone, status, created_at) VALUES (?, ?, ?, ?, ?, ?)",
        [
            ("Dr. Mehta", "Cardiology", "mehta@clinic.test", "111", "active", "2025-12-01 08:00:00"),
            ("Dr. Iyer", "Neurology", "iyer@clinic.test", "222", "inactive", "2026-03-01 08:00:00"),
        ],
    )
    conn.commit()
    conn.close()

    assert [p["name"] for p in database.list_patients()] == ["Newer", "Older"]
    doctors = database.list_doctors()
    assert [d["name"] for d in doctors] == ["Dr. Iyer", "Dr. Mehta"]
    assert doctors[0]["status"] == "inactive"
    assert isinstance(doctors[0]["id"], str)


def test_query_on_missing_table_raises_database_error(tmp_path, monkeypatch):
    empty = tmp_path / "empty.sqlite"
    monkeypatch.setattr(database, "get_connection", lambda *args, **kwargs: sqlite3.connect(empty))
    with pytest.raises(database.DatabaseError):
        database.list_patients()


def test_verify_database_access_reports_tables(db_path):
    results = database.verify_database_access()
    assert results["connection_success"] is True
    assert results["tables_exist"] is True
    assert results["errors"] == []


def test_verify_database_access_reports_connection_failure(monkeypatch):
    def refuse(*args, **kwargs):
        raise database.DatabaseError("server unreachable")

    monkeypatch.setattr(database, "get_connection", refuse)
    results = database.verify_database_access()
    assert results["connection_success"] is False
    assert "server unreachable" in results["errors"][0]


def test_build_connection_string_prefers_explicit_value(monkeypatch):
    monkeypatch.setitem(database.config, "DB_CONNECTION_STRING", "DSN=clinic")
    assert database.build_connection_string() == "DSN=clinic"
