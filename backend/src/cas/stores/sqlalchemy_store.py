"""
SQLAlchemy-backed stores (PostgreSQL).

Each store wraps one ``AsyncSession``. Writes are single statements that
commit immediately:

- status and config changes are ``UPDATE ... RETURNING`` on one row, so
  concurrent writers serialize on the row lock and the last commit wins;
- catalog entries and grants are ``INSERT ... ON CONFLICT DO UPDATE`` keyed
  by their unique constraints, as are plugin API endpoints;
- communication records are plain inserts and are never updated.

Driver errors and timeouts become ``StoreUnavailableError``.
"""

import asyncio
import uuid
from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import Any, TypeVar

from sqlalchemy import func, or_, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.exceptions import PluginAlreadyExistsError, StoreUnavailableError
from ..core.logging import get_logger
from ..models.base import utcnow
from ..models.communication import PluginApiEndpoint, PluginCommunicationRecord
from ..models.permission import TYPE_WIDE_RESOURCE, PermissionDefinition, ResourceType, UserPermissionGrant
from ..models.plugin import PluginCategory, PluginRecord, PluginStatus
from ..schemas.communication import (
    CommunicationRecordCreate,
    CommunicationRecordResponse,
    CommunicationStats,
    PluginApiCreate,
    PluginApiResponse,
)
from ..schemas.permission import (
    PermissionDefinitionCreate,
    PermissionDefinitionResponse,
    PermissionGrantResponse,
)
from ..schemas.plugin import PluginResponse

logger = get_logger(__name__)

T = TypeVar("T")

DEFAULT_TIMEOUT_SECONDS = 5.0


def _stored_resource_id(resource_id: str | None) -> str:
    return TYPE_WIDE_RESOURCE if resource_id is None else resource_id


class _SessionStore:
    """Shared error translation and timeout handling."""

    def __init__(self, session: AsyncSession, timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS):
        self.session = session
        self.timeout_seconds = timeout_seconds

    async def _run(self, operation: str, work: Callable[[], Awaitable[T]]) -> T:
        try:
            async with asyncio.timeout(self.timeout_seconds):
                return await work()
        except (SQLAlchemyError, OSError, TimeoutError) as e:
            reason = str(e) or type(e).__name__
            logger.error(
                f"Store operation '{operation}' failed: {reason}",
                extra={"operation": operation, "error_type": type(e).__name__},
            )
            await self._rollback(operation)
            raise StoreUnavailableError(operation, reason) from e

    async def _rollback(self, operation: str) -> None:
        try:
            await self.session.rollback()
        except (SQLAlchemyError, OSError) as e:
            logger.warning(f"Rollback after failed '{operation}' also failed: {e}")


class SQLAlchemyPluginStore(_SessionStore):
    async def list_plugins(self, category: PluginCategory | None = None) -> list[PluginResponse]:
        async def work():
            stmt = select(PluginRecord).order_by(PluginRecord.id)
            if category is not None:
                stmt = stmt.where(PluginRecord.category == category.value)
            result = await self.session.execute(stmt)
            return [PluginResponse.model_validate(row) for row in result.scalars().all()]

        return await self._run("list_plugins", work)

    async def get_plugin(self, plugin_id: str) -> PluginResponse | None:
        async def work():
            stmt = (
                select(PluginRecord)
                .where(PluginRecord.id == plugin_id)
                .execution_options(populate_existing=True)
            )
            result = await self.session.execute(stmt)
            row = result.scalar_one_or_none()
            return PluginResponse.model_validate(row) if row is not None else None

        return await self._run("get_plugin", work)

    async def create_plugin(self, record: PluginResponse) -> PluginResponse:
        async def work():
            now = utcnow()
            stmt = (
                pg_insert(PluginRecord)
                .values(
                    id=record.id,
                    name=record.name,
                    version=record.version,
                    category=record.category.value,
                    is_system=record.category == PluginCategory.SYSTEM,
                    status=record.status.value,
                    description=record.description,
                    config=record.config,
                    created_at=now,
                    updated_at=now,
                )
                .on_conflict_do_nothing(index_elements=[PluginRecord.id])
                .returning(PluginRecord)
            )
            result = await self.session.execute(stmt)
            row = result.scalar_one_or_none()
            created = PluginResponse.model_validate(row) if row is not None else None
            await self.session.commit()
            return created

        created = await self._run("create_plugin", work)
        if created is None:
            raise PluginAlreadyExistsError(record.id)
        return created

    async def set_status(self, plugin_id: str, status: PluginStatus) -> PluginResponse | None:
        return await self._update("set_status", plugin_id, status=status.value)

    async def update_config(self, plugin_id: str, config: dict[str, Any]) -> PluginResponse | None:
        return await self._update("update_config", plugin_id, config=config)

    async def _update(self, operation: str, plugin_id: str, **values: Any) -> PluginResponse | None:
        async def work():
            stmt = (
                update(PluginRecord)
                .where(PluginRecord.id == plugin_id)
                .values(**values, updated_at=utcnow())
                .returning(PluginRecord)
            )
            result = await self.session.execute(stmt)
            row = result.scalar_one_or_none()
            updated = PluginResponse.model_validate(row) if row is not None else None
            await self.session.commit()
            return updated

        return await self._run(operation, work)


class SQLAlchemyPermissionStore(_SessionStore):
    async def upsert_definition(self, definition: PermissionDefinitionCreate) -> PermissionDefinitionResponse:
        async def work():
            stmt = pg_insert(PermissionDefinition).values(
                id=str(uuid.uuid4()),
                plugin_id=definition.plugin_id,
                permission_name=definition.permission_name,
                resource_type=definition.resource_type.value,
                resource_id=_stored_resource_id(definition.resource_id),
                description=definition.description,
                is_system_level=definition.is_system_level,
                created_at=utcnow(),
            )
            stmt = stmt.on_conflict_do_update(
                constraint="uq_plugin_permission_definition",
                set_={
                    "description": stmt.excluded.description,
                    "is_system_level": stmt.excluded.is_system_level,
                },
            ).returning(PermissionDefinition)
            result = await self.session.execute(stmt)
            stored = PermissionDefinitionResponse.model_validate(result.scalar_one())
            await self.session.commit()
            return stored

        return await self._run("upsert_definition", work)

    async def find_definitions(
        self, plugin_id: str, permission_name: str, resource_type: ResourceType
    ) -> list[PermissionDefinitionResponse]:
        async def work():
            stmt = select(PermissionDefinition).where(
                PermissionDefinition.plugin_id == plugin_id,
                PermissionDefinition.permission_name == permission_name,
                PermissionDefinition.resource_type == resource_type.value,
            )
            result = await self.session.execute(stmt)
            return [PermissionDefinitionResponse.model_validate(row) for row in result.scalars().all()]

        return await self._run("find_definitions", work)

    async def list_definitions(
        self, plugin_id: str, resource_type: ResourceType | None = None
    ) -> list[PermissionDefinitionResponse]:
        async def work():
            stmt = (
                select(PermissionDefinition)
                .where(PermissionDefinition.plugin_id == plugin_id)
                .order_by(
                    PermissionDefinition.permission_name,
                    PermissionDefinition.resource_type,
                    PermissionDefinition.resource_id,
                )
            )
            if resource_type is not None:
                stmt = stmt.where(PermissionDefinition.resource_type == resource_type.value)
            result = await self.session.execute(stmt)
            return [PermissionDefinitionResponse.model_validate(row) for row in result.scalars().all()]

        return await self._run("list_definitions", work)

    async def upsert_grant(
        self,
        *,
        user_id: str,
        plugin_id: str,
        permission_name: str,
        resource_type: ResourceType,
        resource_id: str | None,
        is_granted: bool,
        granted_by: str,
        granted_at: datetime,
    ) -> PermissionGrantResponse:
        async def work():
            stmt = pg_insert(UserPermissionGrant).values(
                id=str(uuid.uuid4()),
                user_id=user_id,
                plugin_id=plugin_id,
                permission_name=permission_name,
                resource_type=resource_type.value,
                resource_id=_stored_resource_id(resource_id),
                is_granted=is_granted,
                granted_by=granted_by,
                granted_at=granted_at,
            )
            stmt = stmt.on_conflict_do_update(
                constraint="uq_user_plugin_permission",
                set_={
                    "is_granted": stmt.excluded.is_granted,
                    "granted_by": stmt.excluded.granted_by,
                    "granted_at": stmt.excluded.granted_at,
                },
            ).returning(UserPermissionGrant)
            result = await self.session.execute(stmt)
            stored = PermissionGrantResponse.model_validate(result.scalar_one())
            await self.session.commit()
            return stored

        return await self._run("upsert_grant", work)

    async def find_grants(
        self,
        user_id: str,
        plugin_id: str,
        permission_name: str,
        resource_type: ResourceType,
        resource_id: str | None,
    ) -> list[PermissionGrantResponse]:
        async def work():
            stmt = select(UserPermissionGrant).where(
                UserPermissionGrant.user_id == user_id,
                UserPermissionGrant.plugin_id == plugin_id,
                UserPermissionGrant.permission_name == permission_name,
                UserPermissionGrant.resource_type == resource_type.value,
                UserPermissionGrant.resource_id.in_({TYPE_WIDE_RESOURCE, _stored_resource_id(resource_id)}),
            )
            result = await self.session.execute(stmt)
            return [PermissionGrantResponse.model_validate(row) for row in result.scalars().all()]

        return await self._run("find_grants", work)

    async def list_user_grants(self, user_id: str, plugin_id: str | None = None) -> list[PermissionGrantResponse]:
        async def work():
            stmt = (
                select(UserPermissionGrant)
                .where(UserPermissionGrant.user_id == user_id)
                .order_by(
                    UserPermissionGrant.plugin_id,
                    UserPermissionGrant.permission_name,
                    UserPermissionGrant.resource_type,
                    UserPermissionGrant.resource_id,
                )
            )
            if plugin_id is not None:
                stmt = stmt.where(UserPermissionGrant.plugin_id == plugin_id)
            result = await self.session.execute(stmt)
            return [PermissionGrantResponse.model_validate(row) for row in result.scalars().all()]

        return await self._run("list_user_grants", work)


class SQLAlchemyCommunicationStore(_SessionStore):
    async def upsert_api(self, endpoint: PluginApiCreate) -> PluginApiResponse:
        async def work():
            now = utcnow()
            stmt = pg_insert(PluginApiEndpoint).values(
                id=str(uuid.uuid4()),
                plugin_id=endpoint.plugin_id,
                api_path=endpoint.api_path,
                http_method=endpoint.http_method.value,
                description=endpoint.description,
                required_permissions=list(endpoint.required_permissions),
                is_public=endpoint.is_public,
                created_at=now,
                updated_at=now,
            )
            stmt = stmt.on_conflict_do_update(
                constraint="uq_plugin_api_endpoint",
                set_={
                    "description": stmt.excluded.description,
                    "required_permissions": stmt.excluded.required_permissions,
                    "is_public": stmt.excluded.is_public,
                    "updated_at": stmt.excluded.updated_at,
                },
            ).returning(PluginApiEndpoint)
            result = await self.session.execute(stmt)
            stored = PluginApiResponse.model_validate(result.scalar_one())
            await self.session.commit()
            return stored

        return await self._run("upsert_api", work)

    async def list_apis(self, plugin_id: str) -> list[PluginApiResponse]:
        async def work():
            stmt = (
                select(PluginApiEndpoint)
                .where(PluginApiEndpoint.plugin_id == plugin_id)
                .order_by(PluginApiEndpoint.http_method, PluginApiEndpoint.api_path)
            )
            result = await self.session.execute(stmt)
            return [PluginApiResponse.model_validate(row) for row in result.scalars().all()]

        return await self._run("list_apis", work)

    async def add_record(
        self, to_plugin_id: str, record: CommunicationRecordCreate, timestamp: datetime
    ) -> CommunicationRecordResponse:
        async def work():
            values = record.model_dump()
            values["http_method"] = record.http_method.value
            stmt = (
                pg_insert(PluginCommunicationRecord)
                .values(id=str(uuid.uuid4()), to_plugin_id=to_plugin_id, timestamp=timestamp, **values)
                .returning(PluginCommunicationRecord)
            )
            result = await self.session.execute(stmt)
            stored = CommunicationRecordResponse.model_validate(result.scalar_one())
            await self.session.commit()
            return stored

        return await self._run("add_communication_record", work)

    async def list_records(self, plugin_id: str, limit: int) -> list[CommunicationRecordResponse]:
        async def work():
            stmt = (
                select(PluginCommunicationRecord)
                .where(_involves(plugin_id))
                .order_by(PluginCommunicationRecord.timestamp.desc())
                .limit(limit)
            )
            result = await self.session.execute(stmt)
            return [CommunicationRecordResponse.model_validate(row) for row in result.scalars().all()]

        return await self._run("list_communication_records", work)

    async def stats(self, plugin_id: str | None = None) -> CommunicationStats:
        async def work():
            timing = PluginCommunicationRecord.execution_time_ms
            stmt = select(
                func.count(PluginCommunicationRecord.id),
                func.count(PluginCommunicationRecord.id).filter(PluginCommunicationRecord.success.is_(True)),
                func.avg(timing),
                func.max(timing),
                func.min(timing),
            )
            if plugin_id is not None:
                stmt = stmt.where(_involves(plugin_id))
            total, successful, avg_ms, max_ms, min_ms = (await self.session.execute(stmt)).one()
            return CommunicationStats(
                plugin_id=plugin_id,
                total_calls=total,
                successful_calls=successful,
                failed_calls=total - successful,
                avg_execution_time_ms=float(avg_ms) if avg_ms is not None else None,
                max_execution_time_ms=max_ms,
                min_execution_time_ms=min_ms,
            )

        return await self._run("communication_stats", work)


def _involves(plugin_id: str):
    return or_(
        PluginCommunicationRecord.from_plugin_id == plugin_id,
        PluginCommunicationRecord.to_plugin_id == plugin_id,
    )
