# Overview: Utility functions for API permission lookups and validation.

from .definitions import PERMISSION_DEFINITIONS


def get_all_permission_codes():
    """Get list of all permission codes."""
    return [perm[0] for perm in PERMISSION_DEFINITIONS]


def get_permissions_by_category(category):
    """Get all permissions in a category."""
    return [perm for perm in PERMISSION_DEFINITIONS if perm[3] == category]


def validate_permission_code(code):
    """Check if a permission code is valid."""
    return code in get_all_permission_codes()


def normalize_permission_codes(codes) -> list[str]:
    """
    Strip, de-duplicate, and validate a list of codes.

    Raises ValueError naming the first unknown code.
    """
    cleaned: list[str] = []
    for code in codes or []:
        code = str(code).strip()
        if not code:
            continue
        if not validate_permission_code(code):
            raise ValueError(f"Unknown permission: {code}")
        if code not in cleaned:
            cleaned.append(code)
    return cleaned
