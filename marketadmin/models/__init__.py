from marketadmin.models.user import Role, User
from marketadmin.models.subscription import Subscription, SubscriptionStatus
from marketadmin.models.refund import Refund
from marketadmin.models.audit_log import AuditLog
from marketadmin.models.platform_setting import PlatformSetting
from marketadmin.models.api_key import ApiKey

__all__ = [
    "Role",
    "User",
    "Subscription",
    "SubscriptionStatus",
    "Refund",
    "AuditLog",
    "PlatformSetting",
    "ApiKey",
]
