class Roles:
    """
    Well-known role names.

    SUPER_ADMIN bypasses every permission check and can never be renamed,
    deleted or attached to a group.
    """
    SUPER_ADMIN = "Super Admin"
    ADMINISTRATOR = "Administrator"
    MANAGER = "Manager"
    STAFF = "Staff"
    AUDITOR = "Auditor"
    GUEST = "Guest"


# Named runtime settings read through SettingsService
LARGE_GROUP_THRESHOLD_KEY = "groups_large_group_threshold"
MEMBER_DATA_CHUNK_SIZE_KEY = "groups_member_data_chunk_size"
AUDIT_RETENTION_DAYS_KEY = "retention_days"
MEMBERS_PER_PAGE_KEY = "groups_members_per_page"
AVAILABLE_USERS_PER_PAGE_KEY = "groups_available_users_per_page"
MEMBERS_DEFAULT_SORT_KEY = "groups_members_default_sort"
MEMBERS_DEFAULT_SORT_DIRECTION_KEY = "groups_members_default_sort_direction"
