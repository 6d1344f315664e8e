from components.user import models

RECORD_PAYMENTS = "record_payments"
EDIT_SALES = "edit_sales"
MANAGE_DEBTS = "manage_debts"
MANAGE_USERS = "manage_users"

PERMISSION_NAMES = (RECORD_PAYMENTS, EDIT_SALES, MANAGE_DEBTS, MANAGE_USERS)


def is_owner(user: models.User) -> bool:
    return user.role == models.UserRole.OWNER


def is_active(user: models.User) -> bool:
    return user.status != models.UserStatus.INACTIVE


def has_permission(user: models.User, permission: str) -> bool:
    """Owners hold every permission; workers only those granted to them."""
    if is_owner(user):
        return True
    return bool((user.permissions or {}).get(permission, False))
