from sqlalchemy import insert, select
from sqlalchemy.orm import Session

from backoffice.core.constants import Roles
from backoffice.core.logging_config import get_logger
from backoffice.models.associations import group_roles, role_permissions
from backoffice.models.group import Group
from backoffice.models.iam import Permission, Role

logger = get_logger(__name__)

PERMISSION_MATRIX = {
    "core.users": ["view", "create", "edit", "delete"],
    "core.roles": ["view", "create", "edit", "delete"],
    "groups.groups": ["view", "create", "edit", "delete", "manage_members"],
    "auditlog.logs": ["view", "cleanup"],
}

ROLE_PERMISSIONS = {
    Roles.ADMINISTRATOR: ["*"],
    Roles.MANAGER: ["core.users.view", "groups.groups.view", "groups.groups.edit", "groups.groups.manage_members"],
    Roles.STAFF: ["core.users.view", "groups.groups.view"],
    Roles.AUDITOR: ["auditlog.logs.view"],
    Roles.GUEST: [],
}


def seed_iam(db: Session) -> None:
    """
    Seed permissions and the well-known roles (idempotent).

    Super Admin gets no permission rows; it passes every check by name.
    """
    permissions_map = {}
    for prefix, actions in PERMISSION_MATRIX.items():
        for action in actions:
            name = f"{prefix}.{action}"
            existing = db.query(Permission).filter(Permission.name == name).first()
            if existing:
                logger.debug(f"Permission {name} already exists.")
                permissions_map[name] = existing
                continue

            perm = Permission(name=name, description=f"{action.replace('_', ' ').capitalize()} {prefix.split('.')[1]}")
            db.add(perm)
            db.flush()
            permissions_map[name] = perm
            logger.info(f"Permission {name} created.")

    for role_name in [Roles.SUPER_ADMIN, *ROLE_PERMISSIONS]:
        role = db.query(Role).filter(Role.name == role_name).first()
        if not role:
            role = Role(name=role_name)
            db.add(role)
            db.flush()
            logger.info(f"Role {role_name} created.")

            wanted = ROLE_PERMISSIONS.get(role_name, [])
            names = list(permissions_map) if wanted == ["*"] else wanted
            if names:
                db.execute(
                    insert(role_permissions),
                    [{"role_id": role.id, "permission_id": permissions_map[n].id} for n in names],
                )

    db.commit()


def ensure_guest_role_attached(db: Session) -> None:
    """Attach the Guest role to the Guest group, creating the group if needed"""
    guest_role = db.query(Role).filter(Role.name == Roles.GUEST).first()
    if not guest_role:
        logger.warning("Guest role not found, skipping role attachment")
        return

    guest_group = db.query(Group).filter(Group.name == "Guest").first()
    if not guest_group:
        guest_group = Group(name="Guest", description="Default group for new users")
        db.add(guest_group)
        db.flush()
        logger.info("Guest group created.")

    attached = db.execute(
        select(group_roles.c.role_id).where(
            group_roles.c.group_id == guest_group.id,
            group_roles.c.role_id == guest_role.id,
        )
    ).first()
    if not attached:
        db.execute(insert(group_roles).values(group_id=guest_group.id, role_id=guest_role.id))
        logger.info("Guest role attached to Guest group")

    db.commit()
