"""Constants and defaults.

Note: Keep constants here to avoid magic numbers spread across code.
"""

DEFAULT_SESSION_DAYS = 7
DEFAULT_ATTENDANCE_EDIT_WINDOW_DAYS = 7
DEFAULT_TREND_DAYS = 30
DEFAULT_UPCOMING_DAYS = 30
DEFAULT_MINIMUM_ATTENDANCE = 75
DEFAULT_TOTAL_SEMESTERS = 8
DEFAULT_EVENT_COLOR = "#007bff"

MIN_SEMESTER = 1
MAX_SEMESTER = 12

# Academic year rolls over in July (YYYY-YYYY starts in month 7).
ACADEMIC_YEAR_START_MONTH = 7

STUDENT_ID_ATTEMPTS = 10
