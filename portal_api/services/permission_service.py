"""Role membership lookups used by the engines and admin route guards.

Roles are plain names in the roles table; a user holds a role through a
user_roles row. Soft-deleted users hold no roles.
"""

import uuid
from typing import Iterable

from sqlalchemy.orm import Session

from portal_api.db.enums import RoleName
from portal_api.db.models import Project, Role, User, UserRole


# =============================================================================
# Role Resolution
# =============================================================================

def roles_of(db: Session, user_id: uuid.UUID) -> set[str]:
    """Names of every role the user holds."""
    rows = (
        db.query(Role.name)
        .join(UserRole, UserRole.role_id == Role.id)
        .join(User, User.id == UserRole.user_id)
        .filter(UserRole.user_id == user_id, User.is_deleted.is_(False))
        .all()
    )
    return {name for (name,) in rows}


def has_role(db: Session, user_id: uuid.UUID, role_name: str) -> bool:
    return _value(role_name) in roles_of(db, user_id)


def has_any_role(db: Session, user_id: uuid.UUID, role_names: Iterable[str]) -> bool:
    return bool(roles_of(db, user_id) & {_value(r) for r in role_names})


def users_with_roles(db: Session, role_names: Iterable[str]) -> list[User]:
    """Active users holding any of the named roles, without duplicates."""
    names = [_value(r) for r in role_names]
    role_ids = [rid for (rid,) in db.query(Role.id).filter(Role.name.in_(names)).all()]
    if not role_ids:
        return []
    return (
        db.query(User)
        .join(UserRole, UserRole.user_id == User.id)
        .filter(UserRole.role_id.in_(role_ids), User.is_deleted.is_(False))
        .distinct()
        .order_by(User.email)
        .all()
    )


# =============================================================================
# Approval Gate
# =============================================================================

def is_valid_approver(db: Session, user_id: uuid.UUID) -> bool:
    """Approvers must be active Higher Management users."""
    return has_role(db, user_id, RoleName.HIGHER_MANAGEMENT.value)


def may_approve(db: Session, user_id: uuid.UUID, project: Project) -> bool:
    """
    True iff the user may record internal approval on the project's quote.

    Only the assigned approver qualifies, and only while still holding the
    Higher Management role.
    """
    approver_id = project.quote_assigned_approver_id
    if approver_id is None or approver_id != user_id:
        return False
    return is_valid_approver(db, user_id)


# =============================================================================
# Role Management (CLI / seeding)
# =============================================================================

def get_or_create_role(db: Session, name: str, description: str | None = None) -> Role:
    role = db.query(Role).filter(Role.name == name).first()
    if role:
        return role
    role = Role(name=name, description=description)
    db.add(role)
    db.flush()
    return role


def grant_role(db: Session, user: User, role_name: str) -> UserRole:
    """Give a user a role, creating the role if needed. Idempotent."""
    role = get_or_create_role(db, role_name)
    existing = db.query(UserRole).filter(
        UserRole.user_id == user.id,
        UserRole.role_id == role.id,
    ).first()
    if existing:
        return existing
    membership = UserRole(user_id=user.id, role_id=role.id)
    db.add(membership)
    db.flush()
    return membership


def _value(role) -> str:
    return role.value if isinstance(role, RoleName) else role
