"""
SQLAlchemy Database Models

A single SystemSettings row holds the system-wide switches owned by the
canteen back office:
- Maintenance mode and its targeting rule
- Notification master switch
- Published app version
"""

from sqlalchemy import Column, Integer, BigInteger, String, DateTime, Text, Boolean, JSON
from sqlalchemy.sql import func

from canteen_gate.database import Base
from canteen_gate.schemas import TargetingType, YearType


SETTINGS_ROW_ID = 1


class SystemSettings(Base):
    """
    System settings singleton (always row id 1).

    Targeting columns are plain strings so that a value written by a newer
    client never breaks reads; the evaluator decides what an unknown value
    means.
    """
    __tablename__ = "system_settings"

    id = Column(Integer, primary_key=True, default=SETTINGS_ROW_ID)

    # =========================================================================
    # MAINTENANCE MODE
    # =========================================================================
    maintenance_is_active = Column(Boolean, default=False, nullable=False)
    maintenance_title = Column(String(200), nullable=False)
    maintenance_message = Column(Text, nullable=False)
    maintenance_estimated_time = Column(String(200), nullable=True, default="")
    maintenance_contact_info = Column(String(200), nullable=True, default="")

    targeting_type = Column(String(32), nullable=False, default=TargetingType.ALL.value)
    specific_users = Column(JSON, nullable=False, default=list)
    target_departments = Column(JSON, nullable=False, default=list)
    target_years = Column(JSON, nullable=False, default=list)
    year_type = Column(String(32), nullable=False, default=YearType.CURRENT.value)

    maintenance_updated_by = Column(String(100), nullable=True)
    maintenance_updated_at = Column(DateTime(timezone=True), nullable=True)

    # =========================================================================
    # NOTIFICATIONS
    # =========================================================================
    notifications_enabled = Column(Boolean, default=True, nullable=False)
    notifications_updated_by = Column(String(100), nullable=True)
    notifications_updated_at = Column(DateTime(timezone=True), nullable=True)

    # =========================================================================
    # APP VERSION
    # =========================================================================
    app_version = Column(String(50), default="1.0.0", nullable=False)
    build_timestamp = Column(BigInteger, nullable=False)
    app_version_updated_by = Column(String(100), nullable=True)
    app_version_updated_at = Column(DateTime(timezone=True), nullable=True)

    # =========================================================================
    # TIMESTAMPS
    # =========================================================================
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        state = "ACTIVE" if self.maintenance_is_active else "inactive"
        return f"<SystemSettings maintenance={state} targeting={self.targeting_type}>"
