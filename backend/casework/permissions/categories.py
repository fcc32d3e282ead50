# Overview: Permission category constants for grouping API key permissions.


class PermissionCategory:
    """API permission categories for organization and UI display."""
    CHECKINS = "CHECKINS"
    ALLOCATIONS = "ALLOCATIONS"
    FORUM = "FORUM"
    REPORTS = "REPORTS"
    CLIENTS = "CLIENTS"
