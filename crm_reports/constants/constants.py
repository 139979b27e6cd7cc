"""Constants for dashboard roles, report types, report statuses and form choices."""

from enum import Enum


class Role(str, Enum):
    """Enumeration of dashboard roles a principal can resolve to."""

    super_admin = "super_admin"
    admin = "admin"
    teacher = "teacher"
    counselor = "counselor"
    other = "other"


# Label written to dashboard_reports.role for each submitting role
ROLE_LABELS = {
    Role.super_admin: "Super Admin",
    Role.admin: "Admin",
    Role.teacher: "Teacher",
    Role.counselor: "Counselor",
    Role.other: "Other",
}

MODERATOR_ROLES = (Role.admin, Role.super_admin)


class ReportType(str, Enum):
    """Enumeration of report types."""

    class_report = "class"
    student_performance = "student_performance"
    case_progress = "case_progress"
    other = "other"


class ReportStatus(str, Enum):
    """Enumeration of report moderation statuses."""

    pending = "Pending"
    approved = "Approved"
    rejected = "Rejected"


class ProgressRating(str, Enum):
    """Ratings offered by the teacher forms."""

    excellent = "Excellent"
    good = "Good"
    average = "Average"
    poor = "Poor"


class CaseStage(str, Enum):
    """Stages offered by the counselor case progress form."""

    pending = "Pending"
    in_progress = "In Progress"
    completed = "Completed"


class HistoryScope(str, Enum):
    """Which reports the history table loads."""

    self = "self"
    all = "all"


# Value of an enumerated select before the user picks anything
PLACEHOLDER = " "
ALL = "All"

ACTIVE_CASE_STATUS = "In Progress"
CASH_OUT = "cash_out"

SUPER_ADMIN_ROLE_FILTERS = ["All", "Teacher", "Admin", "Super Admin", "Counselor"]
