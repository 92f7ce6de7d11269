from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum
from typing import Any, Generic, TypeVar
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, model_validator
from pydantic import Field as PydanticField
from sqlalchemy import JSON, Column, Index, UniqueConstraint
from sqlmodel import Field, SQLModel

from propdash.domain.permissions import UserRole
from propdash.domain.state_machine import (
    AccessRequestStatus,
    PropertyStatus,
    TemplateStatus,
    UserStatus,
)


def now_utc() -> datetime:
    return datetime.now(UTC)


def as_utc(value: datetime | None) -> datetime | None:
    # SQLite hands back naive datetimes; every stored value is UTC.
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


class PropertyType(StrEnum):
    COMMERCIAL = "Commercial"
    RESIDENTIAL = "Residential"
    INDUSTRIAL = "Industrial"
    MIXED_USE = "Mixed Use"


class HeaderFieldType(StrEnum):
    TEXT = "text"
    DROPDOWN = "dropdown"


class MediaInputType(StrEnum):
    FILE = "file"
    EMBED = "embed"
    DOCUMENT = "document"


class SectionType(StrEnum):
    PRIORITY_REPAIR_PLANNING = "priority_repair_planning"
    DOCUMENTS = "documents"
    ADDITIONAL_INFORMATION = "additional_information"
    TEXT_FIELD = "text_field"
    MEDIA_FIELD = "media_field"


FIXED_SECTION_TYPES = (
    SectionType.PRIORITY_REPAIR_PLANNING,
    SectionType.DOCUMENTS,
    SectionType.ADDITIONAL_INFORMATION,
)
DYNAMIC_SECTION_TYPES = (SectionType.TEXT_FIELD, SectionType.MEDIA_FIELD)


class SectionMediaType(StrEnum):
    MEDIA = "media"
    EMBEDDED = "embedded"


class AccessDenialReason(StrEnum):
    NO_ACCESS = "NO_ACCESS"
    REVOKED = "REVOKED"
    EXPIRED = "EXPIRED"


class ReviewAction(StrEnum):
    APPROVED = "APPROVED"
    DECLINED = "DECLINED"


class EventRecord(SQLModel, table=True):
    __tablename__ = "events"

    event_id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    event_type: str = Field(index=True)
    tenant_id: str = Field(index=True)
    ts: datetime = Field(default_factory=now_utc, index=True)
    actor_id: str | None = Field(default=None, index=True)
    correlation_id: str | None = Field(default=None, index=True)
    payload: dict[str, Any] = Field(
        default_factory=dict,
        sa_column=Column(JSON, nullable=False),
    )


class AuditLog(SQLModel, table=True):
    __tablename__ = "audit_logs"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    tenant_id: str = Field(index=True)
    actor_id: str | None = Field(default=None, index=True)
    action: str = Field(index=True)
    resource: str
    method: str
    status_code: int
    ts: datetime = Field(default_factory=now_utc, index=True)
    detail: dict[str, Any] = Field(
        default_factory=dict,
        sa_column=Column(JSON, nullable=False),
    )


class Tenant(SQLModel, table=True):
    __tablename__ = "tenants"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    name: str = Field(index=True, unique=True)
    created_at: datetime = Field(default_factory=now_utc, index=True)


class User(SQLModel, table=True):
    __tablename__ = "users"
    __table_args__ = (UniqueConstraint("tenant_id", "email", name="uq_users_tenant_email"),)

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    tenant_id: str = Field(foreign_key="tenants.id", index=True)
    email: str = Field(index=True)
    first_name: str = ""
    last_name: str = ""
    password_hash: str
    role: UserRole = Field(default=UserRole.AUTHORIZED_VIEWER, index=True)
    status: UserStatus = Field(default=UserStatus.DEACTIVATED, index=True)
    timezone: str = "auto"
    auto_timezone: bool = True
    notification_preferences: dict[str, bool] = Field(
        default_factory=dict,
        sa_column=Column(JSON, nullable=False),
    )
    approved_at: datetime | None = None
    approved_by: str | None = None
    access_revoked_at: datetime | None = None
    access_revoked_by: str | None = None
    is_deleted: bool = Field(default=False, index=True)
    deleted_at: datetime | None = None
    created_at: datetime = Field(default_factory=now_utc, index=True)
    updated_at: datetime = Field(default_factory=now_utc)


class InspectionCriteria(SQLModel, table=True):
    __tablename__ = "inspection_criteria"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    tenant_id: str = Field(foreign_key="tenants.id", index=True)
    name: str = Field(index=True)
    description: str | None = None
    is_active: bool = Field(default=True, index=True)
    header_fields: list[dict[str, Any]] = Field(
        default_factory=list,
        sa_column=Column(JSON, nullable=False),
    )
    scoring_categories: list[dict[str, Any]] = Field(
        default_factory=list,
        sa_column=Column(JSON, nullable=False),
    )
    media_fields: list[dict[str, Any]] = Field(
        default_factory=list,
        sa_column=Column(JSON, nullable=False),
    )
    additional_notes_config: dict[str, Any] = Field(
        default_factory=dict,
        sa_column=Column(JSON, nullable=False),
    )
    repair_planning_config: dict[str, Any] = Field(
        default_factory=dict,
        sa_column=Column(JSON, nullable=False),
    )
    health_threshold_config: dict[str, Any] = Field(
        default_factory=dict,
        sa_column=Column(JSON, nullable=False),
    )
    created_by: str | None = None
    created_at: datetime = Field(default_factory=now_utc, index=True)
    updated_at: datetime = Field(default_factory=now_utc)


class DashboardTemplate(SQLModel, table=True):
    __tablename__ = "dashboard_templates"
    __table_args__ = (UniqueConstraint("tenant_id", "name", name="uq_dashboard_templates_tenant_name"),)

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    tenant_id: str = Field(foreign_key="tenants.id", index=True)
    name: str = Field(index=True)
    criteria_id: str = Field(foreign_key="inspection_criteria.id", index=True)
    status: TemplateStatus = Field(default=TemplateStatus.ACTIVE, index=True)
    sections: list[dict[str, Any]] = Field(
        default_factory=list,
        sa_column=Column(JSON, nullable=False),
    )
    created_by: str | None = None
    created_at: datetime = Field(default_factory=now_utc, index=True)
    updated_at: datetime = Field(default_factory=now_utc)


class Property(SQLModel, table=True):
    __tablename__ = "properties"
    __table_args__ = (Index("ix_properties_tenant_manager", "tenant_id", "property_manager_id"),)

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    tenant_id: str = Field(foreign_key="tenants.id", index=True)
    name: str = Field(index=True)
    address: str
    property_type: PropertyType
    status: PropertyStatus = Field(default=PropertyStatus.ACTIVE, index=True)
    next_inspection_date: datetime | None = None
    property_manager_id: str | None = Field(default=None, foreign_key="users.id")
    active_template_id: str | None = Field(default=None, foreign_key="dashboard_templates.id", index=True)
    created_by: str | None = None
    created_at: datetime = Field(default_factory=now_utc, index=True)
    updated_at: datetime = Field(default_factory=now_utc)


class PropertyDashboard(SQLModel, table=True):
    __tablename__ = "property_dashboards"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    tenant_id: str = Field(foreign_key="tenants.id", index=True)
    property_id: str = Field(foreign_key="properties.id", unique=True)
    template_id: str = Field(foreign_key="dashboard_templates.id", index=True)
    sections: list[dict[str, Any]] = Field(
        default_factory=list,
        sa_column=Column(JSON, nullable=False),
    )
    created_at: datetime = Field(default_factory=now_utc, index=True)


class PropertyAccess(SQLModel, table=True):
    __tablename__ = "property_access"
    __table_args__ = (UniqueConstraint("property_id", "user_id", name="uq_property_access_property_user"),)

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    tenant_id: str = Field(foreign_key="tenants.id", index=True)
    property_id: str = Field(foreign_key="properties.id", index=True)
    user_id: str = Field(foreign_key="users.id", index=True)
    granted_by: str | None = None
    granted_at: datetime = Field(default_factory=now_utc, index=True)
    expires_at: datetime | None = None
    revoked_at: datetime | None = None
    revoked_by: str | None = None


class PropertyAccessRequest(SQLModel, table=True):
    __tablename__ = "property_access_requests"
    __table_args__ = (
        UniqueConstraint("property_id", "requester_id", name="uq_property_access_requests_property_requester"),
    )

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    tenant_id: str = Field(foreign_key="tenants.id", index=True)
    property_id: str = Field(foreign_key="properties.id", index=True)
    requester_id: str = Field(foreign_key="users.id", index=True)
    status: AccessRequestStatus = Field(default=AccessRequestStatus.PENDING, index=True)
    message: str | None = None
    decline_reason: str | None = None
    reviewed_by: str | None = None
    reviewed_at: datetime | None = None
    expires_at: datetime | None = None
    created_at: datetime = Field(default_factory=now_utc, index=True)
    updated_at: datetime = Field(default_factory=now_utc)


class RoleNotificationDefaults(SQLModel, table=True):
    __tablename__ = "role_notification_defaults"

    tenant_id: str = Field(foreign_key="tenants.id", primary_key=True)
    defaults: dict[str, dict[str, bool]] = Field(
        default_factory=dict,
        sa_column=Column(JSON, nullable=False),
    )
    updated_by: str | None = None
    updated_at: datetime = Field(default_factory=now_utc)


class BrandingSettings(SQLModel, table=True):
    __tablename__ = "branding_settings"

    tenant_id: str = Field(foreign_key="tenants.id", primary_key=True)
    platform_name: str = "Property Inspection Dashboard"
    platform_logo_url: str | None = None
    signup_onboarding_image_url: str | None = None
    login_onboarding_image_url: str | None = None
    primary_color: str = "#1D4ED8"
    primary_color_label: str = "Primary"
    updated_by: str | None = None
    updated_at: datetime = Field(default_factory=now_utc)


class EventEnvelope(BaseModel):
    event_id: str = PydanticField(default_factory=lambda: str(uuid4()))
    event_type: str
    tenant_id: str
    ts: datetime = PydanticField(default_factory=now_utc)
    actor_id: str | None = None
    correlation_id: str | None = None
    payload: dict[str, Any]


DataT = TypeVar("DataT")


class PageMeta(BaseModel):
    total: int
    page: int
    limit: int
    total_pages: int
    has_next_page: bool
    has_prev_page: bool


class ApiResponse(BaseModel, Generic[DataT]):
    success: bool = True
    message: str
    data: DataT | None = None
    meta: PageMeta | None = None


class ORMReadModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# identity


class TenantCreate(BaseModel):
    name: str = PydanticField(min_length=1, max_length=255)


class TenantRead(ORMReadModel):
    id: str
    name: str
    created_at: datetime


class BootstrapAdminRequest(BaseModel):
    tenant_id: str
    email: str = PydanticField(min_length=3, max_length=255)
    password: str = PydanticField(min_length=8)
    first_name: str = PydanticField(default="", max_length=255)
    last_name: str = PydanticField(default="", max_length=255)


class RegisterRequest(BaseModel):
    tenant_id: str
    email: str = PydanticField(min_length=3, max_length=255)
    password: str = PydanticField(min_length=8)
    first_name: str = PydanticField(min_length=1, max_length=255)
    last_name: str = PydanticField(min_length=1, max_length=255)
    role: UserRole = UserRole.AUTHORIZED_VIEWER

    @model_validator(mode="after")
    def _no_self_service_admin(self) -> RegisterRequest:
        if self.role == UserRole.ADMIN:
            raise ValueError("role ADMIN cannot be self-registered")
        return self


class LoginRequest(BaseModel):
    tenant_id: str
    email: str
    password: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"


class UserRead(ORMReadModel):
    id: str
    tenant_id: str
    email: str
    first_name: str
    last_name: str
    role: UserRole
    status: UserStatus
    timezone: str
    auto_timezone: bool
    approved_at: datetime | None
    access_revoked_at: datetime | None
    created_at: datetime


class ProfileRead(UserRead):
    notification_preferences: dict[str, bool]


class UserStatusChange(BaseModel):
    status: UserStatus


# profile


class ProfileGeneralUpdate(BaseModel):
    first_name: str | None = PydanticField(default=None, min_length=1, max_length=255)
    last_name: str | None = PydanticField(default=None, min_length=1, max_length=255)


class PasswordChange(BaseModel):
    current_password: str = PydanticField(min_length=1)
    new_password: str = PydanticField(min_length=1)
    confirm_password: str = PydanticField(min_length=1)


class TimezoneUpdate(BaseModel):
    auto_timezone: bool
    timezone: str | None = None


# notification preferences, one record per role


class AdminNotificationPreferences(BaseModel):
    new_user_registration: bool = True
    due_inspection: bool = True
    new_inspection_report_update: bool = True


class PropertyManagerNotificationPreferences(BaseModel):
    new_property_dashboard_assigned: bool = True
    property_dashboard_access_request: bool = True
    property_dashboard_update: bool = True


class AuthorizedViewerNotificationPreferences(BaseModel):
    new_property_dashboard_invitation: bool = True
    access_request_update: bool = True
    property_dashboard_update: bool = True


class OperationalNotificationPreferences(BaseModel):
    new_inspection_assigned: bool = True
    due_inspection: bool = True
    incomplete_inspection_report: bool = True


NOTIFICATION_PREFERENCE_MODELS: dict[UserRole, type[BaseModel]] = {
    UserRole.ADMIN: AdminNotificationPreferences,
    UserRole.PROPERTY_MANAGER: PropertyManagerNotificationPreferences,
    UserRole.AUTHORIZED_VIEWER: AuthorizedViewerNotificationPreferences,
    UserRole.OPERATIONAL: OperationalNotificationPreferences,
}


class RoleNotificationDefaultsRead(BaseModel):
    property_manager: PropertyManagerNotificationPreferences
    authorized_viewer: AuthorizedViewerNotificationPreferences
    operational: OperationalNotificationPreferences
    updated_by: str | None = None
    updated_at: datetime | None = None


class RoleNotificationDefaultsUpdate(BaseModel):
    property_manager: dict[str, bool] | None = None
    authorized_viewer: dict[str, bool] | None = None
    operational: dict[str, bool] | None = None


# branding

HEX_COLOR_PATTERN = r"^#([0-9A-Fa-f]{3}|[0-9A-Fa-f]{6})$"


class BrandingRead(ORMReadModel):
    platform_name: str
    platform_logo_url: str | None
    signup_onboarding_image_url: str | None
    login_onboarding_image_url: str | None
    primary_color: str
    primary_color_label: str
    updated_by: str | None
    updated_at: datetime


class BrandingUpdate(BaseModel):
    platform_name: str | None = PydanticField(default=None, min_length=1, max_length=100)
    platform_logo_url: str | None = None
    signup_onboarding_image_url: str | None = None
    login_onboarding_image_url: str | None = None
    primary_color: str | None = PydanticField(default=None, pattern=HEX_COLOR_PATTERN)
    primary_color_label: str | None = PydanticField(default=None, min_length=1, max_length=50)


# inspection criteria


class HeaderField(BaseModel):
    key: str
    label: str
    type: HeaderFieldType
    placeholder: str | None = None
    required: bool = False
    options: list[str] | None = None
    is_system: bool
    order: int


class ScoringCategory(BaseModel):
    key: str
    label: str
    max_points: int
    is_system: bool
    order: int


class MediaField(BaseModel):
    key: str
    label: str
    type: MediaInputType
    placeholder: str | None = None
    accept: list[str] | None = None
    is_system: bool
    order: int


class AdditionalNotesConfig(BaseModel):
    label: str = "Additional Notes/Comments"
    placeholder: str = "Type Any Additional Notes/Comments"


class RepairPlanningConfig(BaseModel):
    statuses: list[str] = PydanticField(
        default_factory=lambda: ["Urgent", "Maintenance", "Replacement Planning"],
        min_length=1,
    )


class HealthTier(BaseModel):
    min_score: int = PydanticField(ge=0, le=100)
    max_score: int = PydanticField(ge=0, le=100)
    remaining_life_min_years: int = PydanticField(ge=0)
    remaining_life_max_years: int = PydanticField(ge=0)


def _default_tier(min_score: int, max_score: int, life_min: int, life_max: int) -> HealthTier:
    return HealthTier(
        min_score=min_score,
        max_score=max_score,
        remaining_life_min_years=life_min,
        remaining_life_max_years=life_max,
    )


class HealthThresholdConfig(BaseModel):
    good: HealthTier = PydanticField(default_factory=lambda: _default_tier(70, 100, 5, 7))
    fair: HealthTier = PydanticField(default_factory=lambda: _default_tier(30, 69, 3, 5))
    poor: HealthTier = PydanticField(default_factory=lambda: _default_tier(0, 29, 0, 2))


class HeaderFieldInit(BaseModel):
    key: str = PydanticField(min_length=1)
    label: str = PydanticField(min_length=1)
    placeholder: str | None = None
    required: bool = False
    is_dropdown: bool = False
    options: list[str] | None = None

    @model_validator(mode="after")
    def _dropdown_needs_options(self) -> HeaderFieldInit:
        if self.is_dropdown and not self.options:
            raise ValueError("Dropdown must have at least one option")
        return self


class ScoringCategoryInit(BaseModel):
    key: str = PydanticField(min_length=1)
    label: str = PydanticField(min_length=1)
    max_points: int = PydanticField(ge=1, le=100)


class MediaFieldInit(BaseModel):
    key: str = PydanticField(min_length=1)
    label: str = PydanticField(min_length=1)
    placeholder: str | None = None
    is_media_file: bool = False
    is_embedded: bool = False
    accept: list[str] | None = None


class InspectionCriteriaCreate(BaseModel):
    name: str = PydanticField(min_length=1, max_length=255)
    description: str | None = None
    header_fields: list[HeaderFieldInit] = PydanticField(min_length=1)
    scoring_categories: list[ScoringCategoryInit] = PydanticField(min_length=1)
    media_fields: list[MediaFieldInit] = PydanticField(min_length=1)
    additional_notes_config: AdditionalNotesConfig = PydanticField(default_factory=AdditionalNotesConfig)
    repair_planning_config: RepairPlanningConfig = PydanticField(default_factory=RepairPlanningConfig)
    health_threshold_config: HealthThresholdConfig = PydanticField(default_factory=HealthThresholdConfig)


class InspectionCriteriaUpdate(BaseModel):
    name: str | None = PydanticField(default=None, min_length=1, max_length=255)
    description: str | None = None
    is_active: bool | None = None


class InspectionCriteriaRead(ORMReadModel):
    id: str
    tenant_id: str
    name: str
    description: str | None
    is_active: bool
    header_fields: list[HeaderField]
    scoring_categories: list[ScoringCategory]
    media_fields: list[MediaField]
    additional_notes_config: AdditionalNotesConfig
    repair_planning_config: RepairPlanningConfig
    health_threshold_config: HealthThresholdConfig
    created_by: str | None
    created_at: datetime
    updated_at: datetime


class HeaderFieldAdd(BaseModel):
    label: str = PydanticField(min_length=1)
    placeholder: str | None = None
    required: bool = False
    is_dropdown: bool = False
    options: list[str] | None = None

    @model_validator(mode="after")
    def _dropdown_needs_options(self) -> HeaderFieldAdd:
        if self.is_dropdown and not self.options:
            raise ValueError("Dropdown must have at least one option")
        return self


class HeaderFieldUpdate(BaseModel):
    label: str | None = PydanticField(default=None, min_length=1)
    placeholder: str | None = None
    required: bool | None = None
    options: list[str] | None = PydanticField(default=None, min_length=1)


class ScoringCategoryAdd(BaseModel):
    label: str = PydanticField(min_length=1)
    max_points: int = PydanticField(ge=1, le=100)


class ScoringCategoryUpdate(BaseModel):
    label: str | None = PydanticField(default=None, min_length=1)
    max_points: int | None = PydanticField(default=None, ge=1, le=100)


class MediaFieldAdd(BaseModel):
    label: str = PydanticField(min_length=1)
    placeholder: str | None = None
    is_media_file: bool = False
    is_embedded: bool = False
    accept: list[str] | None = None


class MediaFieldUpdate(BaseModel):
    label: str | None = PydanticField(default=None, min_length=1)
    placeholder: str | None = None
    accept: list[str] | None = None


class AdditionalNotesConfigUpdate(BaseModel):
    label: str | None = PydanticField(default=None, min_length=1)
    placeholder: str | None = None


class RepairPlanningConfigUpdate(BaseModel):
    statuses: list[str] = PydanticField(min_length=1)


class HealthTierUpdate(BaseModel):
    min_score: int | None = PydanticField(default=None, ge=0, le=100)
    max_score: int | None = PydanticField(default=None, ge=0, le=100)
    remaining_life_min_years: int | None = PydanticField(default=None, ge=0)
    remaining_life_max_years: int | None = PydanticField(default=None, ge=0)


class HealthThresholdConfigUpdate(BaseModel):
    good: HealthTierUpdate | None = None
    fair: HealthTierUpdate | None = None
    poor: HealthTierUpdate | None = None


# dashboard templates


class TypographyStyle(BaseModel):
    font: str | None = None
    weight: str | None = None
    size: float | None = None
    align: str | None = None


class FillStyle(BaseModel):
    color: str | None = None
    opacity: float | None = PydanticField(default=None, ge=0, le=100)


class SizeStyle(BaseModel):
    width: float | None = None
    width_mode: str | None = None
    height: float | None = None
    height_mode: str | None = None


class LayoutStyle(BaseModel):
    align: str | None = None
    horizontal_padding: float | None = None
    vertical_padding: float | None = None


class SectionStyle(BaseModel):
    typography: TypographyStyle | None = None
    fill: FillStyle | None = None
    size: SizeStyle | None = None
    layout: LayoutStyle | None = None


class TemplateSection(BaseModel):
    order: int
    type: SectionType
    label: str
    is_dynamic: bool
    config: dict[str, Any] = PydanticField(default_factory=dict)
    style: dict[str, Any] = PydanticField(default_factory=dict)


class TemplateSectionInput(BaseModel):
    order: int = PydanticField(ge=1)
    type: SectionType
    label: str = PydanticField(min_length=1)
    is_dynamic: bool | None = None
    config: dict[str, Any] = PydanticField(default_factory=dict)
    style: SectionStyle | None = None

    @model_validator(mode="after")
    def _dynamic_flag_matches_type(self) -> TemplateSectionInput:
        expected = self.type in DYNAMIC_SECTION_TYPES
        if self.is_dynamic is None:
            self.is_dynamic = expected
        elif self.is_dynamic != expected:
            raise ValueError(f"section type {self.type} requires is_dynamic={expected}")
        return self


class DashboardTemplateCreate(BaseModel):
    name: str = PydanticField(min_length=1, max_length=255)
    criteria_id: str
    status: TemplateStatus = TemplateStatus.ACTIVE
    sections: list[TemplateSectionInput] = PydanticField(default_factory=list)


class DashboardTemplateUpdate(BaseModel):
    name: str | None = PydanticField(default=None, min_length=1, max_length=255)
    criteria_id: str | None = None
    status: TemplateStatus | None = None
    sections: list[TemplateSectionInput] | None = None


class DashboardTemplateRead(ORMReadModel):
    id: str
    tenant_id: str
    name: str
    criteria_id: str
    status: TemplateStatus
    sections: list[TemplateSection]
    property_count: int = 0
    created_by: str | None
    created_at: datetime
    updated_at: datetime


class TextFieldSectionAdd(BaseModel):
    label: str = PydanticField(min_length=1)
    placeholder: str | None = None


class MediaFieldSectionAdd(BaseModel):
    title: str = PydanticField(min_length=1)
    media_type: SectionMediaType = SectionMediaType.MEDIA
    embed_url: str | None = None

    @model_validator(mode="after")
    def _embedded_needs_url(self) -> MediaFieldSectionAdd:
        if self.media_type == SectionMediaType.EMBEDDED and not self.embed_url:
            raise ValueError("embed_url is required when media_type is embedded")
        return self


class SectionStyleUpdate(BaseModel):
    order: int = PydanticField(ge=1)
    style: SectionStyle


class SectionReorder(BaseModel):
    ordered_types: list[SectionType] = PydanticField(min_length=1)


class TemplateDuplicate(BaseModel):
    name: str = PydanticField(min_length=1, max_length=255)


# properties


class PropertyCreate(BaseModel):
    name: str = PydanticField(min_length=1, max_length=255)
    address: str = PydanticField(min_length=1)
    property_type: PropertyType
    property_manager_id: str | None = None
    template_id: str | None = None
    next_inspection_date: datetime | None = None


class PropertyUpdate(BaseModel):
    name: str | None = PydanticField(default=None, min_length=1, max_length=255)
    address: str | None = PydanticField(default=None, min_length=1)
    property_type: PropertyType | None = None
    status: PropertyStatus | None = None


class InspectionSchedule(BaseModel):
    scheduled_at: datetime


class PropertyManagerAssign(BaseModel):
    property_manager_id: str


class PropertyRead(ORMReadModel):
    id: str
    tenant_id: str
    name: str
    address: str
    property_type: PropertyType
    status: PropertyStatus
    next_inspection_date: datetime | None
    property_manager_id: str | None
    active_template_id: str | None
    created_by: str | None
    created_at: datetime
    updated_at: datetime


class PropertyDashboardRead(ORMReadModel):
    id: str
    property_id: str
    template_id: str
    sections: list[TemplateSection]
    created_at: datetime


class PropertyDetailRead(PropertyRead):
    dashboard: PropertyDashboardRead | None = None


# property access


class AccessRequestCreate(BaseModel):
    message: str | None = PydanticField(default=None, max_length=1000)


class AccessRequestReview(BaseModel):
    action: ReviewAction
    decline_reason: str | None = PydanticField(default=None, max_length=1000)
    expires_at: datetime | None = None


class DashboardShare(BaseModel):
    email_or_user_id: str = PydanticField(min_length=1)
    expires_at: datetime | None = None


class AccessRevoke(BaseModel):
    reason: str | None = PydanticField(default=None, max_length=1000)


class AccessExpirationUpdate(BaseModel):
    user_id: str
    expires_at: datetime | None = None


class AccessCheckRead(BaseModel):
    has_access: bool
    reason: AccessDenialReason | None = None


class PropertyAccessRead(ORMReadModel):
    id: str
    property_id: str
    user_id: str
    granted_by: str | None
    granted_at: datetime
    expires_at: datetime | None
    revoked_at: datetime | None
    revoked_by: str | None


class PropertyAccessRequestRead(ORMReadModel):
    id: str
    property_id: str
    requester_id: str
    status: AccessRequestStatus
    message: str | None
    decline_reason: str | None
    reviewed_by: str | None
    reviewed_at: datetime | None
    expires_at: datetime | None
    created_at: datetime
    updated_at: datetime
