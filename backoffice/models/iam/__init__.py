from backoffice.models.iam.permission import Permission
from backoffice.models.iam.role import Role
