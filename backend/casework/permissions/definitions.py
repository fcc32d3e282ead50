# Overview: API key permission definitions organized by category.
# Each permission is defined as: (code, name, description, category)

from .categories import PermissionCategory


# -- CHECK-INS --

CHECKIN_PERMISSIONS = [
    (
        "read:checkin_data",
        "Read Check-ins",
        "Fetch individual check-ins and list check-ins",
        PermissionCategory.CHECKINS,
    ),
    (
        "create:checkin_note",
        "Create Check-in Notes",
        "Attach notes to an existing check-in",
        PermissionCategory.CHECKINS,
    ),
]


# -- ALLOCATIONS --

ALLOCATION_PERMISSIONS = [
    (
        "read:budget_allocations",
        "Read Budget Allocations",
        "List budget allocations with filters",
        PermissionCategory.ALLOCATIONS,
    ),
]


# -- FORUM --

FORUM_PERMISSIONS = [
    (
        "create:forum_post",
        "Create Forum Post",
        "Post a reply to an unlocked forum topic",
        PermissionCategory.FORUM,
    ),
    (
        "read:all_forum_posts",
        "Read All Forum Posts",
        "Page through every forum post",
        PermissionCategory.FORUM,
    ),
    (
        "read:recent_forum_posts",
        "Read Recent Forum Posts",
        "Fetch the most recent forum posts",
        PermissionCategory.FORUM,
    ),
]


# -- REPORTS --

REPORT_PERMISSIONS = [
    (
        "generate:reports",
        "Generate Reports",
        "Access the report endpoint (a scope permission is also required)",
        PermissionCategory.REPORTS,
    ),
    (
        "read:all_checkin_data",
        "All Check-in Data",
        "Check-in reports across every site",
        PermissionCategory.REPORTS,
    ),
    (
        "read:site_checkin_data",
        "Site Check-in Data",
        "Check-in reports limited to the key's associated site",
        PermissionCategory.REPORTS,
    ),
    (
        "read:all_allocation_data",
        "All Allocation Data",
        "Allocation reports across every budget",
        PermissionCategory.REPORTS,
    ),
    (
        "read:own_allocation_data",
        "Own Allocation Data",
        "Allocation reports limited to budgets owned by the key's associated user",
        PermissionCategory.REPORTS,
    ),
]


# -- CLIENTS --

CLIENT_PERMISSIONS = [
    (
        "read:client_data",
        "Read Client Data",
        "Fetch client profile details",
        PermissionCategory.CLIENTS,
    ),
]


PERMISSION_DEFINITIONS = (
    CHECKIN_PERMISSIONS
    + ALLOCATION_PERMISSIONS
    + FORUM_PERMISSIONS
    + REPORT_PERMISSIONS
    + CLIENT_PERMISSIONS
)
