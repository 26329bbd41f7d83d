"""
database.py
-----------
Patient and doctor persistence over pyodbc with retrying connections and
explicit transaction handling.
"""

import logging
import time
from config import load_clean_config
from models import DEFAULT_LANGUAGE, create_patient_model
from phone_utils import normalize_phone_number

# Configure logging
logger = logging.getLogger(__name__)

# Load clean configuration
config = load_clean_config()

REQUIRED_TABLES = ("patients", "doctors")

PATIENT_COLUMNS = "id, name, age, gender, disease, phone_number, language, priority, created_at"
DOCTOR_COLUMNS = "id, name, specialization, email, phone, status, created_at"


class DatabaseError(Exception):
    """Raised when a query against the patients or doctors tables fails."""


def build_connection_string():
    if config["DB_CONNECTION_STRING"]:
        return config["DB_CONNECTION_STRING"]
    return (
        f"DRIVER={config['DB_DRIVER']};"
        f"SERVER={config['DB_SERVER']};"
        f"PORT={config['DB_PORT']};"
        f"DATABASE={config['DB_NAME']};"
        f"UID={config['DB_USER']};"
        f"PWD={config['DB_PASSWORD']}"
    )


def get_connection(max_retries=3, retry_delay=2):
    """
    Establishes and returns a connection to the database with retry logic.

    Args:
        max_retries: Maximum number of connection attempts
        retry_delay: Delay between retries in seconds

    Returns:
        pyodbc.Connection: Database connection with autocommit disabled

    Raises:
        DatabaseError: If connection fails after all retries
    """
    import pyodbc

    conn_str = build_connection_string()
    logger.info(f"Connecting to database: {config['DB_NAME']} on server {config['DB_SERVER']}")

    for attempt in range(max_retries):
        try:
            conn = pyodbc.connect(conn_str, autocommit=False)
            logger.info(f"Connected to database: {config['DB_NAME']} (Attempt {attempt+1}/{max_retries})")
            return conn
        except pyodbc.Error as e:
            logger.error(f"Database connection error (Attempt {attempt+1}/{max_retries}): {str(e)}")
            if attempt < max_retries - 1:
                logger.info(f"Retrying in {retry_delay} seconds...")
                time.sleep(retry_delay)
            else:
                logger.error("All connection attempts failed")
                raise DatabaseError(f"Could not connect to database: {e}") from e


def _rows_as_dicts(cursor, rows):
    columns = [column[0] for column in cursor.description]
    return [dict(zip(columns, row)) for row in rows]


def _format_timestamp(value):
    if value is None or isinstance(value, str):
        return value
    return value.isoformat()


def _patient_from_row(row):
    return create_patient_model(
        id=str(row["id"]),
        name=row["name"],
        age=row["age"],
        gender=row["gender"],
        disease=row["disease"],
        phone_number=row["phone_number"],
        language=row["language"],
        priority=row["priority"],
        created_at=_format_timestamp(row["created_at"])
    )


def execute_with_transaction(func, *args, **kwargs):
    """
    Execute a database function within a transaction with proper error handling.

    Args:
        func: The database function to execute, called as func(conn, *args, **kwargs)
        *args: Arguments to pass to the function
        **kwargs: Keyword arguments to pass to the function

    Returns:
        The result of the function call
    """
    conn = None
    try:
        conn = get_connection()
        result = func(conn, *args, **kwargs)
        conn.commit()
        logger.info("Transaction committed successfully")
        return result
    except Exception as e:
        logger.error(f"Transaction failed: {str(e)}")
        if conn:
            try:
                conn.rollback()
                logger.info("Transaction rolled back")
            except Exception as rollback_error:
                logger.error(f"Rollback failed: {str(rollback_error)}")
        if isinstance(e, DatabaseError):
            raise
        raise DatabaseError(str(e)) from e
    finally:
        if conn:
            conn.close()
            logger.debug("Database connection closed")


def execute_read(func, *args, **kwargs):
    """Runs a read-only query function on a fresh connection."""
    conn = get_connection()
    try:
        return func(conn, *args, **kwargs)
    except DatabaseError:
        raise
    except Exception as e:
        logger.error(f"Database error in {func.__name__}: {str(e)}")
        raise DatabaseError(str(e)) from e
    finally:
        conn.close()


def _check_phone_exists(conn, phone_number):
    cursor = conn.cursor()
    cursor.execute("SELECT phone_number FROM patients WHERE phone_number = ?", (phone_number,))
    return cursor.fetchone() is not None


def check_phone_exists(phone_number):
    """
    Checks whether a patient row already uses this phone number.

    Args:
        phone_number: Raw or normalised phone number

    Returns:
        bool: True if a matching patient exists
    """
    clean_phone = normalize_phone_number(phone_number)
    exists = execute_read(_check_phone_exists, clean_phone)
    logger.info(f"Phone {clean_phone} registered: {exists}")
    return exists


def _get_patient_by_phone(conn, phone_number):
    cursor = conn.cursor()
    cursor.execute(f"SELECT {PATIENT_COLUMNS} FROM patients WHERE phone_number = ?", (phone_number,))
    row = cursor.fetchone()
    if not row:
        return None
    return _patient_from_row(_rows_as_dicts(cursor, [row])[0])


def get_patient_by_phone(phone_number):
    """
    Retrieves patient details by phone number.

    Args:
        phone_number: Raw or normalised phone number

    Returns:
        dict: Patient details, or None if not found
    """
    clean_phone = normalize_phone_number(phone_number)
    patient = execute_read(_get_patient_by_phone, clean_phone)
    if patient is None:
        logger.info(f"No patient found with phone {clean_phone}")
    return patient


def _insert_patient_internal(conn, patient):
    cursor = conn.cursor()
    cursor.execute(
        """
        INSERT INTO patients (name, age, gender, disease, phone_number, language, priority)
        VALUES (?, ?, ?, ?, ?, ?, ?)
        """,
        (
            patient["name"],
            patient["age"],
            patient["gender"],
            patient["disease"],
            patient["phone_number"],
            patient["language"],
            patient["priority"],
        ),
    )
    if cursor.rowcount == 0:
        raise DatabaseError(f"Failed to insert patient {patient['phone_number']}")

    stored = _get_patient_by_phone(conn, patient["phone_number"])
    if stored is None:
        raise DatabaseError(f"Verification failed: patient {patient['phone_number']} not found after insert")
    return stored


def insert_patient(patient):
    """
    Inserts a newly registered patient.

    Args:
        patient: dict with name, age, gender, disease, phone_number, priority
                 and optional language

    Returns:
        dict: The stored patient row, including id and created_at
    """
    record = dict(patient)
    record["phone_number"] = normalize_phone_number(record["phone_number"])
    record["language"] = record.get("language") or DEFAULT_LANGUAGE
    stored = execute_with_transaction(_insert_patient_internal, record)
    logger.info(f"Inserted patient id={stored['id']} priority={stored['priority']}")
    return stored


def _update_patient_language(conn, phone_number, language):
    cursor = conn.cursor()
    cursor.execute("UPDATE patients SET language = ? WHERE phone_number = ?", (language, phone_number))
    return cursor.rowcount > 0


def update_patient_language(phone_number, language):
    clean_phone = normalize_phone_number(phone_number)
    updated = execute_with_transaction(_update_patient_language, clean_phone, language)
    logger.info(f"Language for {clean_phone} set to {language}: {updated}")
    return updated


def _list_patients(conn):
    cursor = conn.cursor()
    cursor.execute(f"SELECT {PATIENT_COLUMNS} FROM patients ORDER BY created_at DESC")
    return [_patient_from_row(row) for row in _rows_as_dicts(cursor, cursor.fetchall())]


def list_patients():
    patients = execute_read(_list_patients)
    logger.info(f"Retrieved {len(patients)} patients")
    return patients


def _list_doctors(conn):
    cursor = conn.cursor()
    cursor.execute(f"SELECT {DOCTOR_COLUMNS} FROM doctors ORDER BY created_at DESC")
    doctors = _rows_as_dicts(cursor, cursor.fetchall())
    for doctor in doctors:
        doctor["id"] = str(doctor["id"])
        doctor["created_at"] = _format_timestamp(doctor["created_at"])
    return doctors


def list_doctors():
    doctors = execute_read(_list_doctors)
    logger.info(f"Retrieved {len(doctors)} doctors")
    return doctors


def verify_database_access():
    """
    Verify database access and the presence of the tables the assistant uses.

    Returns:
        dict: Verification results
    """
    results = {
        "connection_success": False,
        "tables_exist": False,
        "errors": []
    }

    try:
        conn = get_connection(max_retries=1)
        results["connection_success"] = True
        try:
            cursor = conn.cursor()
            tables_exist = True
            for table in REQUIRED_TABLES:
                try:
                    cursor.execute(f"SELECT COUNT(*) FROM {table}")
                    cursor.fetchone()
                except Exception as e:
                    tables_exist = False
                    results["errors"].append(f"Table '{table}' is not accessible: {str(e)}")
            results["tables_exist"] = tables_exist
        finally:
            conn.close()
    except Exception as e:
        results["errors"].append(f"Connection error: {str(e)}")

    return results
