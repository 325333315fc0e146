"""Platform settings sections and API key bodies."""

import re
from typing import Literal

from pydantic import BaseModel, Field, field_validator

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

ApiPermission = Literal[
    "read:blocks",
    "write:blocks",
    "read:users",
    "write:users",
    "read:subscriptions",
    "write:subscriptions",
]


class GeneralSettings(BaseModel):
    site_name: str = Field(default="SaaS Blocks", min_length=1, max_length=200)
    site_description: str = "Build beautiful SaaS applications with pre-built components"
    site_url: str = "https://saasblocks.com"
    admin_email: str = "admin@saasblocks.com"
    timezone: str = "UTC"
    language: str = "en"

    @field_validator("site_name")
    @classmethod
    def _site_name_required(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Site name is required")
        return v

    @field_validator("admin_email")
    @classmethod
    def _admin_email_format(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Admin email is required")
        if not EMAIL_RE.match(v):
            raise ValueError("Invalid admin email format")
        return v


class FeatureSettings(BaseModel):
    user_registration: bool = True
    email_verification: bool = True
    social_login: bool = True
    block_comments: bool = True
    block_ratings: bool = True
    public_blocks: bool = True


class EmailSettings(BaseModel):
    provider: str = "smtp"
    smtp_host: str = "smtp.gmail.com"
    smtp_port: int = Field(default=587, ge=1, le=65535)
    smtp_user: str = ""
    smtp_password: str = ""
    from_email: str = "noreply@saasblocks.com"
    from_name: str = "SaaS Blocks"


class SecuritySettings(BaseModel):
    session_timeout: int = Field(default=1440, ge=30, description="Minutes")
    max_login_attempts: int = Field(default=5, ge=1)
    password_min_length: int = Field(default=8, ge=6)
    require_strong_password: bool = True
    two_factor_auth: bool = False


class StorageSettings(BaseModel):
    provider: str = "local"
    max_file_size: int = Field(default=10, ge=1, le=100, description="MB")
    allowed_file_types: list[str] = Field(default_factory=lambda: ["jpg", "jpeg", "png", "gif", "svg", "webp"])
    s3_bucket: str = ""
    s3_region: str = "us-east-1"
    s3_access_key: str = ""
    s3_secret_key: str = ""


class NotificationSettings(BaseModel):
    email_notifications: bool = True
    new_user_signup: bool = True
    new_block_created: bool = True
    subscription_events: bool = True
    system_alerts: bool = True


class PlatformSettings(BaseModel):
    general: GeneralSettings = Field(default_factory=GeneralSettings)
    features: FeatureSettings = Field(default_factory=FeatureSettings)
    email: EmailSettings = Field(default_factory=EmailSettings)
    security: SecuritySettings = Field(default_factory=SecuritySettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    notifications: NotificationSettings = Field(default_factory=NotificationSettings)


class ApiKeyCreate(BaseModel):
    name: str = Field(max_length=100)
    permissions: list[ApiPermission] = Field(default_factory=list)


class ApiKeyUpdate(BaseModel):
    is_active: bool
