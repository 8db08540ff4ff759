"""College Attendance package.

Organized by feature modules (branches, subjects, timetables, attendance,
academic_calendar, ...) with a thin Flask controller layer on top of
service/repository layers.
"""

__version__ = "1.0.0"
