# Overview: Staff role constants and role-set helpers used by permission logic.

KIOSK = "kiosk"
SITE_SUPERVISOR = "site_supervisor"
AZWK_STAFF = "azwk_staff"
OUTSIDE_STAFF = "outside_staff"
DIRECTOR = "director"
ADMINISTRATOR = "administrator"
FINANCE = "finance"

ALL_ROLES = (
    KIOSK,
    SITE_SUPERVISOR,
    AZWK_STAFF,
    OUTSIDE_STAFF,
    DIRECTOR,
    ADMINISTRATOR,
    FINANCE,
)

# Department slug that turns azwk_staff into a finance-dept actor
FINANCE_DEPT_SLUG = "finance"

# Roles an administrator may adopt through impersonation
IMPERSONATION_TARGET_ROLES = (ADMINISTRATOR, DIRECTOR, AZWK_STAFF, OUTSIDE_STAFF)

# Roles that cannot operate with an "all sites" view
SITE_REQUIRED_ROLES = (AZWK_STAFF, OUTSIDE_STAFF)

# Roles confined to their active site when reading check-ins
SITE_SCOPED_ROLES = (KIOSK, SITE_SUPERVISOR, AZWK_STAFF, OUTSIDE_STAFF)

# Roles allowed to manage budgets, vendors, and grants
BUDGET_MANAGER_ROLES = (DIRECTOR, ADMINISTRATOR)


def is_valid_role(role: str | None) -> bool:
    return role in ALL_ROLES
