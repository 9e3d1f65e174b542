"""
Pydantic Schemas for Request/Response Validation

Wire format follows the canteen web client: camelCase JSON keys mapped onto
snake_case attributes through field aliases.

Covers:
- Maintenance rule (targeting) and admin updates
- Candidate user identity
- System settings (maintenance, notifications, app version)
- Gate decisions and health checks
"""

from pydantic import BaseModel, Field, field_validator
from typing import Optional, List, Union, Any
from datetime import datetime
from enum import Enum


DEFAULT_MAINTENANCE_TITLE = "System Maintenance"
DEFAULT_MAINTENANCE_MESSAGE = (
    "We are currently performing system maintenance. Please check back later."
)


# =============================================================================
# ENUMS
# =============================================================================

class TargetingType(str, Enum):
    """Strategy deciding which users a maintenance rule applies to."""
    ALL = "all"
    SPECIFIC = "specific"
    DEPARTMENT = "department"
    YEAR = "year"
    YEAR_DEPARTMENT = "year_department"


class YearType(str, Enum):
    """How target years are read against a student's academic record."""
    CURRENT = "current"
    JOINING = "joining"
    PASSING = "passing"


class UserRole(str, Enum):
    STUDENT = "student"
    STAFF = "staff"
    ADMIN = "admin"
    SUPER_ADMIN = "super_admin"
    CANTEEN_OWNER = "canteen_owner"


class WireModel(BaseModel):
    """Base for models exchanged as camelCase JSON."""

    class Config:
        populate_by_name = True


# =============================================================================
# INPUT HELPERS
# =============================================================================

def split_free_text(value: Any) -> Any:
    """
    Turn comma-separated admin input into a clean list.

    Accepts a string ("CSE, ECE,") or a list; entries are trimmed,
    empties dropped and duplicates removed keeping first occurrence.
    """
    if value is None:
        return None
    if isinstance(value, str):
        value = value.split(",")
    if not isinstance(value, (list, tuple, set)):
        return value

    cleaned = []
    for item in value:
        text = str(item).strip()
        if text and text not in cleaned:
            cleaned.append(text)
    return cleaned


def lenient_list(value: Any) -> list[str]:
    """Best-effort list for stored or remote rules; anything unusable becomes empty."""
    cleaned = split_free_text(value)
    return cleaned if isinstance(cleaned, list) else []


def lenient_years(value: Any) -> list[int]:
    """Best-effort year list; entries that are not whole numbers are dropped."""
    years = []
    for item in lenient_list(value):
        try:
            year = int(item)
        except ValueError:
            continue
        if year not in years:
            years.append(year)
    return years


# =============================================================================
# MAINTENANCE RULE
# =============================================================================

class MaintenanceRule(WireModel):
    """
    The persisted maintenance rule as read by every client.

    Targeting values are kept as plain strings: a rule coming back from
    storage or the network may carry values this version does not know,
    and those must reach the evaluator rather than fail parsing.
    """
    is_active: bool = Field(False, alias="isActive")
    title: str = Field(DEFAULT_MAINTENANCE_TITLE)
    message: str = Field(DEFAULT_MAINTENANCE_MESSAGE)
    estimated_time: Optional[str] = Field(None, alias="estimatedTime")
    contact_info: Optional[str] = Field(None, alias="contactInfo")

    targeting_type: Optional[str] = Field(TargetingType.ALL.value, alias="targetingType")
    specific_users: List[str] = Field(default_factory=list, alias="specificUsers")
    target_departments: List[str] = Field(default_factory=list, alias="targetDepartments")
    target_years: List[int] = Field(default_factory=list, alias="targetYears")
    year_type: Optional[str] = Field(YearType.CURRENT.value, alias="yearType")

    last_updated_by: Optional[str] = Field(None, alias="lastUpdatedBy")
    last_updated_at: Optional[datetime] = Field(None, alias="lastUpdatedAt")

    @field_validator("is_active", mode="before")
    @classmethod
    def null_is_inactive(cls, v: Any) -> Any:
        return False if v is None else v

    @field_validator("title", mode="before")
    @classmethod
    def default_title(cls, v: Any) -> Any:
        return v or DEFAULT_MAINTENANCE_TITLE

    @field_validator("message", mode="before")
    @classmethod
    def default_message(cls, v: Any) -> Any:
        return v or DEFAULT_MAINTENANCE_MESSAGE

    # Read side: a bad entry in a list the active targeting ignores must not
    # reject the whole rule
    @field_validator("specific_users", "target_departments", mode="before")
    @classmethod
    def lenient_identifiers(cls, v: Any) -> list[str]:
        return lenient_list(v)

    @field_validator("target_years", mode="before")
    @classmethod
    def lenient_target_years(cls, v: Any) -> list[int]:
        return lenient_years(v)

    @field_validator("targeting_type", "year_type", mode="before")
    @classmethod
    def enum_to_value(cls, v: Any) -> Any:
        return v.value if isinstance(v, Enum) else v

    @field_validator("last_updated_by", mode="before")
    @classmethod
    def stringify_updated_by(cls, v: Any) -> Any:
        return str(v) if isinstance(v, int) else v


class MaintenanceRuleUpdate(WireModel):
    """
    Partial maintenance rule sent by the admin settings form.

    Only the fields present in the request are merged into the stored rule.
    """
    is_active: Optional[bool] = Field(None, alias="isActive")
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    message: Optional[str] = Field(None, min_length=1)
    estimated_time: Optional[str] = Field(None, alias="estimatedTime", max_length=200)
    contact_info: Optional[str] = Field(None, alias="contactInfo", max_length=200)

    targeting_type: Optional[TargetingType] = Field(None, alias="targetingType")
    specific_users: Optional[List[str]] = Field(None, alias="specificUsers")
    target_departments: Optional[List[str]] = Field(None, alias="targetDepartments")
    target_years: Optional[List[int]] = Field(None, alias="targetYears")
    year_type: Optional[YearType] = Field(None, alias="yearType")

    updated_by: Optional[str] = Field(None, alias="updatedBy")

    @field_validator("specific_users", "target_departments", mode="before")
    @classmethod
    def parse_free_text(cls, v: Any) -> Any:
        return split_free_text(v)

    @field_validator("target_years", mode="before")
    @classmethod
    def parse_years(cls, v: Any) -> Any:
        return split_free_text(v)

    @field_validator("target_years")
    @classmethod
    def validate_years(cls, v: Optional[List[int]]) -> Optional[List[int]]:
        if v is None:
            return v
        if any(year < 1 for year in v):
            raise ValueError("Target years must be positive numbers")
        return v

    @field_validator("updated_by", mode="before")
    @classmethod
    def stringify_updated_by(cls, v: Any) -> Any:
        return str(v) if isinstance(v, int) else v

    def changes(self) -> dict[str, Any]:
        """Fields supplied by the caller, ready to merge into the stored rule."""
        supplied = self.model_dump(exclude_unset=True, exclude={"updated_by"})
        changes = {}
        for key, value in supplied.items():
            if value is None:
                # Clearing free-text details is allowed, the rest keep their value
                if key in ("estimated_time", "contact_info"):
                    changes[key] = ""
                continue
            if isinstance(value, Enum):
                value = value.value
            changes[key] = value
        return changes


class MaintenanceNotice(WireModel):
    """What a blocked user is shown."""
    title: str
    message: str
    estimated_time: Optional[str] = Field(None, alias="estimatedTime")
    contact_info: Optional[str] = Field(None, alias="contactInfo")

    @classmethod
    def from_rule(cls, rule: MaintenanceRule) -> "MaintenanceNotice":
        return cls(
            title=rule.title or DEFAULT_MAINTENANCE_TITLE,
            message=rule.message or DEFAULT_MAINTENANCE_MESSAGE,
            estimated_time=rule.estimated_time or None,
            contact_info=rule.contact_info or None,
        )


# =============================================================================
# IDENTITY
# =============================================================================

class CandidateUser(WireModel):
    """
    Signed-in identity as supplied by the identity provider.

    Rebuilt on every evaluation and never stored by this service.
    """
    id: Optional[str] = None
    name: Optional[str] = None
    role: str
    register_number: Optional[str] = Field(None, alias="registerNumber")
    staff_id: Optional[str] = Field(None, alias="staffId")
    department: Optional[str] = None
    current_study_year: Optional[int] = Field(None, alias="currentStudyYear")
    joining_year: Optional[int] = Field(None, alias="joiningYear")
    passing_out_year: Optional[int] = Field(None, alias="passingOutYear")
    is_admin: bool = Field(False, alias="isAdmin")

    @field_validator("id", mode="before")
    @classmethod
    def stringify_id(cls, v: Any) -> Any:
        return str(v) if isinstance(v, int) else v

    @field_validator("current_study_year", "joining_year", "passing_out_year", mode="before")
    @classmethod
    def blank_year_is_missing(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @property
    def is_student(self) -> bool:
        return self.role.strip().lower() == UserRole.STUDENT.value


# =============================================================================
# SYSTEM SETTINGS
# =============================================================================

class NotificationSettings(WireModel):
    is_enabled: bool = Field(True, alias="isEnabled")
    last_updated_by: Optional[str] = Field(None, alias="lastUpdatedBy")
    last_updated_at: Optional[datetime] = Field(None, alias="lastUpdatedAt")


class AppVersionInfo(WireModel):
    version: str = "1.0.0"
    build_timestamp: int = Field(..., alias="buildTimestamp")
    last_updated_by: Optional[str] = Field(None, alias="lastUpdatedBy")
    last_updated_at: Optional[datetime] = Field(None, alias="lastUpdatedAt")


class SystemSettingsResponse(WireModel):
    """Full system settings record."""
    maintenance_mode: MaintenanceRule = Field(..., alias="maintenanceMode")
    notifications: NotificationSettings
    app_version: AppVersionInfo = Field(..., alias="appVersion")
    created_at: Optional[datetime] = Field(None, alias="createdAt")
    updated_at: Optional[datetime] = Field(None, alias="updatedAt")


class NotificationSettingsUpdate(WireModel):
    is_enabled: bool = Field(..., alias="isEnabled")


class AppVersionUpdate(WireModel):
    version: str = Field(..., min_length=1, max_length=50)
    build_timestamp: Optional[int] = Field(None, alias="buildTimestamp")


class SystemSettingsUpdate(WireModel):
    """Request body for replacing one or more settings sections."""
    maintenance_mode: Optional[MaintenanceRuleUpdate] = Field(None, alias="maintenanceMode")
    notifications: Optional[NotificationSettingsUpdate] = None
    app_version: Optional[AppVersionUpdate] = Field(None, alias="appVersion")
    updated_by: Optional[str] = Field(None, alias="updatedBy")

    @field_validator("updated_by", mode="before")
    @classmethod
    def stringify_updated_by(cls, v: Any) -> Any:
        return str(v) if isinstance(v, int) else v


# =============================================================================
# RESPONSE SCHEMAS
# =============================================================================

class MaintenanceUpdateResponse(WireModel):
    """Response after an admin maintenance update."""
    success: bool
    maintenance_mode: MaintenanceRule = Field(..., alias="maintenanceMode")


class UserMaintenanceCheck(WireModel):
    """Maintenance decision for one user."""
    user_id: str = Field(..., alias="userId")
    show_maintenance: bool = Field(..., alias="showMaintenance")
    reason: str
    maintenance_info: Optional[MaintenanceNotice] = Field(None, alias="maintenanceInfo")


class AppVersionResponse(WireModel):
    version: str
    build_timestamp: int = Field(..., alias="buildTimestamp")


class NotificationStatusResponse(WireModel):
    is_enabled: bool = Field(..., alias="isEnabled")


class MaintenanceBlockedResponse(BaseModel):
    """Body returned while a protected route is under maintenance."""
    success: bool = False
    error: str = "maintenance"
    maintenance: MaintenanceNotice


class ErrorResponse(BaseModel):
    """Standard error response."""
    success: bool = False
    error: str
    detail: Optional[Union[str, List[Any]]] = None


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    database: str
    cache: str
    identity: str
    maintenance_active: Optional[bool] = None
    timestamp: datetime
