"""
Maintenance Rule Store

Durable single-record storage for the maintenance rule and the other
system settings. Reads go through the maintenance-status cache; every
write invalidates it.

Concurrent admin writes are not reconciled: the last write wins.
"""

import json
import logging
import time
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from canteen_gate.core.config import get_settings
from canteen_gate.models import SystemSettings, SETTINGS_ROW_ID
from canteen_gate.schemas import (
    AppVersionInfo,
    MaintenanceRule,
    MaintenanceRuleUpdate,
    NotificationSettings,
    SystemSettingsResponse,
    SystemSettingsUpdate,
    TargetingType,
    YearType,
)
from canteen_gate.services.cache import BaseStatusCache, MAINTENANCE_STATUS_KEY

logger = logging.getLogger(__name__)


# Rule attribute -> SystemSettings column
RULE_COLUMNS = {
    "is_active": "maintenance_is_active",
    "title": "maintenance_title",
    "message": "maintenance_message",
    "estimated_time": "maintenance_estimated_time",
    "contact_info": "maintenance_contact_info",
    "targeting_type": "targeting_type",
    "specific_users": "specific_users",
    "target_departments": "target_departments",
    "target_years": "target_years",
    "year_type": "year_type",
}


def _now() -> datetime:
    return datetime.now(timezone.utc)


def rule_from_row(row: SystemSettings) -> MaintenanceRule:
    """Build the wire rule from a settings row."""
    return MaintenanceRule(
        is_active=row.maintenance_is_active,
        title=row.maintenance_title,
        message=row.maintenance_message,
        estimated_time=row.maintenance_estimated_time,
        contact_info=row.maintenance_contact_info,
        targeting_type=row.targeting_type,
        specific_users=row.specific_users,
        target_departments=row.target_departments,
        target_years=row.target_years,
        year_type=row.year_type,
        last_updated_by=row.maintenance_updated_by,
        last_updated_at=row.maintenance_updated_at,
    )


def settings_from_row(row: SystemSettings) -> SystemSettingsResponse:
    return SystemSettingsResponse(
        maintenance_mode=rule_from_row(row),
        notifications=NotificationSettings(
            is_enabled=row.notifications_enabled,
            last_updated_by=row.notifications_updated_by,
            last_updated_at=row.notifications_updated_at,
        ),
        app_version=AppVersionInfo(
            version=row.app_version,
            build_timestamp=row.build_timestamp,
            last_updated_by=row.app_version_updated_by,
            last_updated_at=row.app_version_updated_at,
        ),
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


class MaintenanceRuleStore:
    """
    Read and replace operations on the settings singleton.

    Args:
        session: Database session for this unit of work
        cache: Maintenance-status cache; None disables caching
    """

    def __init__(self, session: AsyncSession, cache: Optional[BaseStatusCache] = None):
        self.session = session
        self.cache = cache
        self.settings = get_settings()

    # =========================================================================
    # ROW ACCESS
    # =========================================================================

    def default_row(self) -> SystemSettings:
        return SystemSettings(
            id=SETTINGS_ROW_ID,
            maintenance_is_active=False,
            maintenance_title=self.settings.default_maintenance_title,
            maintenance_message=self.settings.default_maintenance_message,
            maintenance_estimated_time="",
            maintenance_contact_info="",
            targeting_type=TargetingType.ALL.value,
            specific_users=[],
            target_departments=[],
            target_years=[],
            year_type=YearType.CURRENT.value,
            notifications_enabled=True,
            app_version="1.0.0",
            build_timestamp=int(time.time() * 1000),
        )

    async def _load_row(self) -> Optional[SystemSettings]:
        result = await self.session.execute(
            select(SystemSettings).where(SystemSettings.id == SETTINGS_ROW_ID)
        )
        return result.scalar_one_or_none()

    async def _load_or_create_row(self) -> SystemSettings:
        row = await self._load_row()
        if row is None:
            row = self.default_row()
            self.session.add(row)
            try:
                await self.session.flush()
            except IntegrityError:
                # Another request created the row first
                await self.session.rollback()
                logger.debug("System settings created concurrently, reloading")
                return await self._load_row()
            logger.info("Created default system settings")
        return row

    # =========================================================================
    # CACHE
    # =========================================================================

    async def _cached_rule(self) -> Optional[MaintenanceRule]:
        if self.cache is None:
            return None
        try:
            payload = await self.cache.get(MAINTENANCE_STATUS_KEY)
        except Exception as e:
            logger.warning(f"Status cache read failed, using database: {e}")
            return None
        if payload is None:
            return None
        try:
            return MaintenanceRule.model_validate_json(payload)
        except ValueError as e:
            logger.warning(f"Discarding malformed cached maintenance status: {e}")
            return None

    async def _cache_rule(self, rule: MaintenanceRule) -> None:
        if self.cache is None:
            return
        try:
            await self.cache.set(
                MAINTENANCE_STATUS_KEY,
                rule.model_dump_json(by_alias=True),
                self.settings.status_cache_ttl_seconds,
            )
        except Exception as e:
            logger.warning(f"Status cache write failed: {e}")

    async def invalidate_cache(self) -> None:
        if self.cache is None:
            return
        try:
            await self.cache.delete(MAINTENANCE_STATUS_KEY)
        except Exception as e:
            logger.warning(f"Status cache invalidation failed: {e}")

    # =========================================================================
    # MAINTENANCE RULE
    # =========================================================================

    async def get_rule(self) -> MaintenanceRule:
        """
        Current maintenance rule.

        Returns the default (inactive, targeting everyone) rule when nothing
        has been stored yet. Does not create the settings row.
        """
        cached = await self._cached_rule()
        if cached is not None:
            return cached

        row = await self._load_row()
        if row is None:
            rule = rule_from_row(self.default_row())
        else:
            rule = rule_from_row(row)

        await self._cache_rule(rule)
        return rule

    async def set_rule(
        self,
        update: MaintenanceRuleUpdate,
        updated_by: Optional[str] = None,
    ) -> MaintenanceRule:
        """
        Merge the supplied fields into the stored rule.

        Args:
            update: Partial rule; unset fields keep their stored value
            updated_by: Identity marker of the admin making the change

        Returns:
            MaintenanceRule: The full rule after the merge
        """
        row = await self._load_or_create_row()
        self._apply_rule_changes(row, update.changes(), updated_by or update.updated_by)

        await self.session.commit()
        await self.session.refresh(row)
        await self.invalidate_cache()

        rule = rule_from_row(row)
        logger.info(
            f"Maintenance mode {'ENABLED' if rule.is_active else 'DISABLED'} "
            f"(targeting={rule.targeting_type}) by user {rule.last_updated_by or 'unknown'}"
        )
        return rule

    def _apply_rule_changes(
        self,
        row: SystemSettings,
        changes: dict[str, Any],
        updated_by: Optional[str],
    ) -> None:
        for field, value in changes.items():
            setattr(row, RULE_COLUMNS[field], value)
        row.maintenance_updated_at = _now()
        if updated_by:
            row.maintenance_updated_by = updated_by

    # =========================================================================
    # SYSTEM SETTINGS
    # =========================================================================

    async def get_settings(self) -> SystemSettingsResponse:
        """Full settings record, created with defaults on first read."""
        row = await self._load_or_create_row()
        await self.session.commit()
        await self.session.refresh(row)
        return settings_from_row(row)

    async def update_settings(
        self,
        update: SystemSettingsUpdate,
        updated_by: Optional[str] = None,
    ) -> SystemSettingsResponse:
        """Merge any of the maintenance, notification and app version sections."""
        updated_by = updated_by or update.updated_by
        row = await self._load_or_create_row()
        now = _now()

        if update.maintenance_mode is not None:
            self._apply_rule_changes(
                row,
                update.maintenance_mode.changes(),
                updated_by or update.maintenance_mode.updated_by,
            )

        if update.notifications is not None:
            row.notifications_enabled = update.notifications.is_enabled
            row.notifications_updated_at = now
            if updated_by:
                row.notifications_updated_by = updated_by

        if update.app_version is not None:
            row.app_version = update.app_version.version
            row.build_timestamp = (
                update.app_version.build_timestamp or int(time.time() * 1000)
            )
            row.app_version_updated_at = now
            if updated_by:
                row.app_version_updated_by = updated_by

        await self.session.commit()
        await self.session.refresh(row)
        await self.invalidate_cache()

        logger.info(
            "System settings updated: "
            + json.dumps({
                "maintenanceMode": row.maintenance_is_active,
                "notifications": row.notifications_enabled,
                "updatedBy": updated_by or "unknown",
            })
        )
        return settings_from_row(row)

    async def get_app_version(self) -> AppVersionInfo:
        row = await self._load_row() or self.default_row()
        return AppVersionInfo(version=row.app_version, build_timestamp=row.build_timestamp)

    async def notifications_enabled(self) -> bool:
        row = await self._load_row()
        return True if row is None else row.notifications_enabled
