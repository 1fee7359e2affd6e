"""
Role-based access control matrix.
"""

SUPER_ADMIN = "super_admin"
WAREHOUSE_MANAGER = "warehouse_manager"
ROLES = (SUPER_ADMIN, WAREHOUSE_MANAGER)

PERMISSIONS: dict[str, set[str]] = {
    SUPER_ADMIN: {
        "warehouses:view",
        "warehouses:manage",
        "products:view",
        "products:manage",
        "stock:view",
        "stock:manage",
        "stock:transfer",
        "alerts:view",
        "alerts:manage",
        "users:view",
        "users:invite",
        "reports:view",
        "settings:manage",
    },
    WAREHOUSE_MANAGER: {
        "warehouses:view",
        "products:view",
        "products:manage",
        "stock:view",
        "stock:manage",
        "stock:transfer",
        "alerts:view",
        "alerts:manage",
        "reports:view",
    },
}


def has_permission(role: str | None, permission: str) -> bool:
    return permission in PERMISSIONS.get(role or "", set())


def can_access_all_warehouses(role: str | None) -> bool:
    return role == SUPER_ADMIN
