from gatekeeper.models.user import User, user_groups
from gatekeeper.models.group import Group
from gatekeeper.models.renewal_record import RenewalRecord

__all__ = [
    "User",
    "Group",
    "RenewalRecord",
    "user_groups",
]
