"""
Permission codes and role mappings.

Routes ask for a permission code, never a role name. Roles are the fixed
set admin / manager / cashier; each maps to the codes below.
"""

from .models.auth import ROLE_ADMIN, ROLE_CASHIER, ROLE_MANAGER


class PermissionCategory:
    INVENTORY = "INVENTORY"
    SALES = "SALES"
    CUSTOMERS = "CUSTOMERS"
    SYSTEM = "SYSTEM"


# (code, name, description, category)
PERMISSION_DEFINITIONS = [
    ("VIEW_PRODUCTS", "View Products", "Browse and look up products", PermissionCategory.INVENTORY),
    ("MANAGE_PRODUCTS", "Manage Products", "Create, edit and deactivate products", PermissionCategory.INVENTORY),
    ("ADJUST_INVENTORY", "Adjust Inventory", "Restock and correct stock levels", PermissionCategory.INVENTORY),
    ("VIEW_INVENTORY", "View Inventory", "View stock movements and low-stock alerts", PermissionCategory.INVENTORY),

    ("CREATE_SALE", "Create Sale", "Process cash and credit sales (POS access)", PermissionCategory.SALES),
    ("VIEW_DASHBOARD", "View Dashboard", "Today's totals and recent transactions", PermissionCategory.SALES),
    ("VIEW_SALES_REPORTS", "View Sales Reports", "Browse the full sales history", PermissionCategory.SALES),

    ("MANAGE_CUSTOMERS", "Manage Customers", "Create customers and view credit accounts", PermissionCategory.CUSTOMERS),
    ("EDIT_CUSTOMERS", "Edit Customers", "Edit customer details and credit limits", PermissionCategory.CUSTOMERS),
    ("RECORD_PAYMENT", "Record Payment", "Record payments against credit sales", PermissionCategory.CUSTOMERS),
    ("VIEW_PAYMENTS", "View Payments", "Browse all credit payments", PermissionCategory.CUSTOMERS),

    ("VIEW_AUDIT_LOG", "View Audit Log", "View the activity log", PermissionCategory.SYSTEM),
]

_CASHIER = [
    "VIEW_PRODUCTS",
    "CREATE_SALE",
    "VIEW_DASHBOARD",
    "MANAGE_CUSTOMERS",
    "RECORD_PAYMENT",
]

_MANAGER = _CASHIER + [
    "MANAGE_PRODUCTS",
    "ADJUST_INVENTORY",
    "VIEW_INVENTORY",
    "VIEW_SALES_REPORTS",
    "EDIT_CUSTOMERS",
    "VIEW_PAYMENTS",
    "VIEW_AUDIT_LOG",
]

DEFAULT_ROLE_PERMISSIONS = {
    ROLE_ADMIN: [code for code, _, _, _ in PERMISSION_DEFINITIONS],
    ROLE_MANAGER: _MANAGER,
    ROLE_CASHIER: _CASHIER,
}


def get_role_permissions(role: str) -> set[str]:
    return set(DEFAULT_ROLE_PERMISSIONS.get(role, ()))


def has_permission(role: str, permission_code: str) -> bool:
    return permission_code in get_role_permissions(role)
