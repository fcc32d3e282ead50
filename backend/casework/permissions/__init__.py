# Overview: Permission system package.
# Re-exports all public APIs for convenient imports.

from .categories import PermissionCategory
from .definitions import (
    PERMISSION_DEFINITIONS,
    CHECKIN_PERMISSIONS,
    ALLOCATION_PERMISSIONS,
    FORUM_PERMISSIONS,
    REPORT_PERMISSIONS,
    CLIENT_PERMISSIONS,
)
from .helpers import (
    get_all_permission_codes,
    get_permissions_by_category,
    validate_permission_code,
    normalize_permission_codes,
)
from .fields import (
    FieldGroup,
    FieldPermissions,
    FIELD_GROUP_COLUMNS,
    field_permissions,
    effective_field_permissions,
    permitted_groups,
    can_view_budget,
    can_add_allocation,
    can_delete_allocation,
)
from .scopes import ReportScope, report_scope

__all__ = [
    "PermissionCategory",
    "PERMISSION_DEFINITIONS",
    "CHECKIN_PERMISSIONS",
    "ALLOCATION_PERMISSIONS",
    "FORUM_PERMISSIONS",
    "REPORT_PERMISSIONS",
    "CLIENT_PERMISSIONS",
    "get_all_permission_codes",
    "get_permissions_by_category",
    "validate_permission_code",
    "normalize_permission_codes",
    "FieldGroup",
    "FieldPermissions",
    "FIELD_GROUP_COLUMNS",
    "field_permissions",
    "effective_field_permissions",
    "permitted_groups",
    "can_view_budget",
    "can_add_allocation",
    "can_delete_allocation",
    "ReportScope",
    "report_scope",
]
