from crm_reports.constants.constants import MODERATOR_ROLES, Role
from crm_reports.schemas.reportSchema import Principal


def check_manager_role(principal: Principal) -> bool:
    """Check if the principal may moderate reports and see dashboard aggregates."""
    return principal.role in MODERATOR_ROLES


def check_role(principal: Principal, *roles: Role) -> bool:
    return principal.role in roles
