"""Constants for the teacher attendance client."""

from pathlib import Path

# Backend
DEFAULT_BACKEND_URL = "http://localhost:3000"
DEFAULT_REQUEST_TIMEOUT = 30  # seconds

ENDPOINT_LOGIN = "/api/auth/login"
ENDPOINT_CLASSES = "/api/classes"
ENDPOINT_CLASS = "/api/classes/{class_id}"
ENDPOINT_STUDENTS = "/api/students/{class_id}"
ENDPOINT_ATTENDANCE = "/api/attendance/{class_id}"
ENDPOINT_ANALYTICS = "/api/analytics/{class_id}"

DEFAULT_HEADERS = {
	"Accept": "application/json",
	"Content-Type": "application/json",
}

# Identity provider (Firebase Authentication REST API)
FIREBASE_SIGN_IN_URL = "https://identitytoolkit.googleapis.com/v1/accounts:signInWithPassword"
FIREBASE_REFRESH_URL = "https://securetoken.googleapis.com/v1/token"

# Persisted session state
DEFAULT_TOKEN_PATH = Path.home() / ".attendance_client" / "session.json"
TOKEN_STORAGE_KEY = "token"
IDENTITY_STORAGE_KEY = "identity"
STORAGE_VERSION = 1

# Configuration (environment variables)
CONF_BACKEND_URL = "ATTENDANCE_BACKEND_URL"
CONF_FIREBASE_API_KEY = "ATTENDANCE_FIREBASE_API_KEY"
CONF_TOKEN_PATH = "ATTENDANCE_TOKEN_PATH"
CONF_REQUEST_TIMEOUT = "ATTENDANCE_REQUEST_TIMEOUT"

# Class schedules run Monday to Saturday
WEEKDAYS = (
	"Monday",
	"Tuesday",
	"Wednesday",
	"Thursday",
	"Friday",
	"Saturday",
)

# Attendance marks start absent; the teacher confirms who is present
DEFAULT_ATTENDANCE_MARK = False
NEW_STUDENT_ATTENDANCE_MARK = True

# Messages surfaced to the user
MSG_FILL_ALL_FIELDS = "Please fill in all fields"
MSG_ROLL_NO_EXISTS = "Roll number already exists"
MSG_ROLL_NO_NOT_SEQUENTIAL = "Roll number must be the next sequential number"
MSG_ROLL_NO_INVALID = "Roll number must be a positive whole number"
