# Import all CRUD modules for easier access
from backoffice.crud.audit_log import audit_log
from backoffice.crud.group import group_crud
from backoffice.crud.membership import membership_crud
from backoffice.crud.iam import role_crud
