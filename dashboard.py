"""
dashboard.py
------------
Read-only summary of doctors and patients, rendered as the HTML dashboard page.
"""

import html
import logging

import database

logger = logging.getLogger(__name__)

PRIORITY_ORDER = ("High", "Medium", "Low")


def dashboard_summary():
    doctors = database.list_doctors()
    patients = database.list_patients()
    by_priority = {priority: 0 for priority in PRIORITY_ORDER}
    for patient in patients:
        if patient["priority"] in by_priority:
            by_priority[patient["priority"]] += 1
    return {
        "doctors": doctors,
        "patients": patients,
        "total_doctors": len(doctors),
        "active_doctors": sum(1 for doctor in doctors if doctor["status"] == "active"),
        "total_patients": len(patients),
        "patients_by_priority": by_priority,
    }


def _table(headers, rows):
    head = "".join(f"<th>{html.escape(header)}</th>" for header in headers)
    body = "".join(
        "<tr>" + "".join(f"<td>{html.escape(str(value if value is not None else ''))}</td>" for value in row) + "</tr>"
        for row in rows
    )
    if not rows:
        body = f'<tr><td colspan="{len(headers)}">No records</td></tr>'
    return f"<table><thead><tr>{head}</tr></thead><tbody>{body}</tbody></table>"


def render_dashboard(summary):
    doctor_rows = [
        (d["name"], d["specialization"], d["email"], d["phone"], d["status"]) for d in summary["doctors"]
    ]
    patient_rows = [
        (p["name"], p["age"], p["gender"], p["disease"], p["phone_number"], p["language"], p["priority"], p["created_at"])
        for p in summary["patients"]
    ]
    counts = ", ".join(f"{name}: {count}" for name, count in summary["patients_by_priority"].items())
    return (
        "<html><head><title>Healthcare Dashboard</title></head><body>"
        "<h1>Healthcare Dashboard</h1>"
        f"<p>Doctors: {summary['total_doctors']} ({summary['active_doctors']} active)</p>"
        f"<p>Patients: {summary['total_patients']} ({html.escape(counts)})</p>"
        "<h2>Doctors</h2>"
        + _table(["Name", "Specialization", "Email", "Phone", "Status"], doctor_rows)
        + "<h2>Patients</h2>"
        + _table(["Name", "Age", "Gender", "Condition", "Phone", "Language", "Priority", "Registered"], patient_rows)
        + "</body></html>"
    )
