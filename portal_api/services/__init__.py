"""Service layer modules."""

from portal_api.services.permission_service import (
    has_any_role,
    has_role,
    may_approve,
    roles_of,
    users_with_roles,
)

# Import service modules (not individual functions) for cleaner access
from portal_api.services import booking_service
from portal_api.services import slot_service
from portal_api.services import calendar_service
from portal_api.services import notification_service
from portal_api.services import consultation_service
from portal_api.services import project_service

__all__ = [
    # Permission service
    "roles_of",
    "has_role",
    "has_any_role",
    "users_with_roles",
    "may_approve",
    # Modules
    "booking_service",
    "slot_service",
    "calendar_service",
    "notification_service",
    "consultation_service",
    "project_service",
]
