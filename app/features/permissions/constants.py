from enum import StrEnum

from app.features.permissions.models import PermissionScope


class PermissionName(StrEnum):
    # Global
    ACCESS_ADMIN_DASHBOARD = "access_admin_dashboard"
    CREATE_ORGANIZATION = "create_organization"
    ASSIGN_ORGANIZATION_OWNER = "assign_organization_owner"
    MANAGE_USER_GLOBAL_ROLES = "manage_user_global_roles"
    VIEW_PERMISSIONS = "view_permissions"
    VIEW_ADMIN_LOGS = "view_admin_logs"
    VIEW_USERS = "view_users"
    GLOBAL_MANAGE_BOOKINGS = "global_manage_bookings"

    # Organization
    UPDATE_ORGANIZATION = "update_organization"
    DELETE_OWN_ORGANIZATION = "delete_own_organization"
    MANAGE_ORGANIZATION_ROLES = "manage_organization_roles"
    ASSIGN_ORGANIZATION_ROLES = "assign_organization_roles"
    VIEW_ROLES = "view_roles"
    VIEW_TURF = "view_turf"
    MANAGE_TURFS = "manage_turfs"
    MANAGE_BOOKINGS = "manage_bookings"

    # Event
    MANAGE_EVENT = "manage_event"


PERMISSION_DEFINITIONS: dict[str, tuple[PermissionScope, str]] = {
    PermissionName.ACCESS_ADMIN_DASHBOARD: (PermissionScope.GLOBAL, "Open the platform admin dashboard."),
    PermissionName.CREATE_ORGANIZATION: (PermissionScope.GLOBAL, "Create organizations from approved requests."),
    PermissionName.ASSIGN_ORGANIZATION_OWNER: (PermissionScope.GLOBAL, "Nominate the owner of an organization."),
    PermissionName.MANAGE_USER_GLOBAL_ROLES: (PermissionScope.GLOBAL, "Create global roles and assign them to users."),
    PermissionName.VIEW_PERMISSIONS: (PermissionScope.GLOBAL, "Browse the permission catalog."),
    PermissionName.VIEW_ADMIN_LOGS: (PermissionScope.GLOBAL, "Read the admin action audit log."),
    PermissionName.VIEW_USERS: (PermissionScope.GLOBAL, "List platform users."),
    PermissionName.GLOBAL_MANAGE_BOOKINGS: (PermissionScope.GLOBAL, "Manage bookings of any organization."),
    PermissionName.UPDATE_ORGANIZATION: (PermissionScope.ORGANIZATION, "Edit organization details."),
    PermissionName.DELETE_OWN_ORGANIZATION: (PermissionScope.ORGANIZATION, "Delete the organization."),
    PermissionName.MANAGE_ORGANIZATION_ROLES: (PermissionScope.ORGANIZATION, "Create and edit organization roles."),
    PermissionName.ASSIGN_ORGANIZATION_ROLES: (PermissionScope.ORGANIZATION, "Assign organization roles to users."),
    PermissionName.VIEW_ROLES: (PermissionScope.ORGANIZATION, "List the organization's roles."),
    PermissionName.VIEW_TURF: (PermissionScope.ORGANIZATION, "View the organization's turfs."),
    PermissionName.MANAGE_TURFS: (PermissionScope.ORGANIZATION, "Create, edit and delete turfs and time slots."),
    PermissionName.MANAGE_BOOKINGS: (PermissionScope.ORGANIZATION, "Confirm and complete bookings for the organization's turfs."),
    PermissionName.MANAGE_EVENT: (PermissionScope.EVENT, "Manage an event's schedule and participants."),
}

# Default roles created by the system
ORGANIZATION_OWNER_ROLE = "Organization Owner"
PLATFORM_ADMIN_ROLE = "Admin"

# Path parameters that carry the scope instance id for permission gates
SCOPE_PATH_PARAMS: dict[PermissionScope, str] = {
    PermissionScope.ORGANIZATION: "organization_id",
    PermissionScope.EVENT: "event_id",
}
