"""
Entity store: the only path between the lifecycle core and the database.

One store per entity type, bound to the caller's session:
  - create(**fields)  assigns id + timestamps, flushes
  - get(id)           entity or NotFoundError
  - update(id, **f)   merges, bumps updated_at, flushes (version checked)
  - list(**filters)   equality filters, newest first, later insertion first on ties

Stores never commit. Writes that must be serialized per entity run inside
``critical_section(session, key)``, which holds an in-process lock for the
key and commits (or rolls back) before releasing it. Rows also carry a
version counter so a stale write from another process fails instead of
overwriting.

Status columns are not writable here; see transition_authority.
"""

import asyncio
import logging
import weakref
from contextlib import asynccontextmanager
from typing import Any, Generic, Optional, TypeVar

from sqlalchemy import select
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError
from tenacity import (
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
    before_sleep_log,
)
import structlog

from marketplace.config import settings
from marketplace.exceptions import ConcurrencyError, NotFoundError, ValidationError
from marketplace.models import (
    AuditLog,
    Order,
    Quotation,
    Rfq,
    SampleRequest,
    Supplier,
    SupplierQuestion,
    User,
)
from marketplace.utils import new_id, utcnow

logger = structlog.get_logger()
_std_logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT")

_SERVER_FIELDS = ("pk", "id", "version_id", "created_at", "updated_at")


class KeyedLocks:
    """One asyncio.Lock per key, dropped once nobody holds or waits on it."""

    def __init__(self):
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = (
            weakref.WeakValueDictionary()
        )

    @asynccontextmanager
    async def hold(self, key: str):
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        async with lock:
            yield


entity_locks = KeyedLocks()


@asynccontextmanager
async def critical_section(session: AsyncSession, key: str):
    """Serialize check-then-write for ``key``; commit before the lock is released."""
    async with entity_locks.hold(key):
        try:
            yield
            await session.commit()
        except StaleDataError as exc:
            await session.rollback()
            logger.warning("stale_write_rejected", key=key)
            raise ConcurrencyError("entity", key) from exc
        except Exception:
            await session.rollback()
            raise


def _is_transient(exc: BaseException) -> bool:
    if isinstance(exc, OperationalError):
        return True
    return isinstance(exc, DBAPIError) and exc.connection_invalidated


_read_retry = retry(
    retry=retry_if_exception(_is_transient),
    stop=stop_after_attempt(settings.STORE_RETRY_ATTEMPTS),
    wait=wait_exponential(multiplier=0.1, min=0.1, max=2),
    before_sleep=before_sleep_log(_std_logger, logging.WARNING),
    reraise=True,
)


class EntityStore(Generic[ModelT]):
    model: type
    entity_type: str = "Entity"
    required: tuple[str, ...] = ()
    immutable: tuple[str, ...] = ()
    status_field: Optional[str] = "status"

    def __init__(self, session: AsyncSession):
        self.session = session

    def _columns(self) -> set[str]:
        return {c.key for c in self.model.__mapper__.column_attrs}

    def _check_known(self, fields: dict) -> None:
        unknown = sorted(set(fields) - self._columns())
        if unknown:
            raise ValidationError(
                f"Unknown {self.entity_type} field(s): {', '.join(unknown)}",
                field=unknown[0],
            )

    @_read_retry
    async def _execute(self, stmt):
        return await self.session.execute(stmt)

    async def create(self, **fields: Any) -> ModelT:
        self._check_known(fields)
        missing = [f for f in self.required if fields.get(f) in (None, "")]
        if missing:
            raise ValidationError(
                f"Missing required {self.entity_type} field(s): {', '.join(missing)}",
                field=missing[0],
            )

        now = utcnow()
        fields.pop("pk", None)
        fields.pop("version_id", None)
        if not fields.get("id"):
            fields["id"] = new_id()
        fields["created_at"] = now
        if "updated_at" in self._columns():
            fields["updated_at"] = now

        entity = self.model(**fields)
        self.session.add(entity)
        try:
            await self.session.flush()
        except IntegrityError as exc:
            raise ValidationError(
                f"{self.entity_type} violates a uniqueness or integrity rule",
                constraint=str(exc.orig),
            ) from exc

        logger.debug("entity_created", entity_type=self.entity_type, entity_id=entity.id)
        return entity

    async def get(self, entity_id: str, *, for_update: bool = False) -> ModelT:
        stmt = select(self.model).where(self.model.id == entity_id)
        if for_update:
            # Row lock where the backend has one; always re-read the row
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        result = await self._execute(stmt)
        entity = result.scalar_one_or_none()
        if entity is None:
            raise NotFoundError(self.entity_type, str(entity_id))
        return entity

    async def update(self, entity_id: str, **fields: Any) -> ModelT:
        self._check_known(fields)
        forbidden = [
            f for f in fields
            if f in _SERVER_FIELDS or f in self.immutable or f == self.status_field
        ]
        if forbidden:
            raise ValidationError(
                f"{self.entity_type} field(s) cannot be updated: {', '.join(forbidden)}",
                field=forbidden[0],
            )

        entity = await self.get(entity_id)
        for key, value in fields.items():
            setattr(entity, key, value)
        if hasattr(entity, "updated_at"):
            entity.updated_at = utcnow()

        try:
            await self.session.flush()
        except StaleDataError as exc:
            raise ConcurrencyError(self.entity_type, str(entity_id)) from exc
        except IntegrityError as exc:
            raise ValidationError(
                f"{self.entity_type} violates a uniqueness or integrity rule",
                constraint=str(exc.orig),
            ) from exc
        return entity

    async def list(self, **filters: Any) -> list[ModelT]:
        self._check_known(filters)
        stmt = select(self.model)
        for key, value in filters.items():
            column = getattr(self.model, key)
            if isinstance(value, (list, tuple, set, frozenset)):
                stmt = stmt.where(column.in_(list(value)))
            else:
                stmt = stmt.where(column == value)
        stmt = stmt.order_by(self.model.created_at.desc(), self.model.pk.desc())
        result = await self._execute(stmt)
        return list(result.scalars().all())

    async def find_one(self, **filters: Any) -> Optional[ModelT]:
        rows = await self.list(**filters)
        return rows[0] if rows else None


class UserStore(EntityStore[User]):
    model = User
    entity_type = "User"
    required = ("email", "name", "user_type")
    immutable = ("user_type",)
    status_field = "verification_status"


class SupplierStore(EntityStore[Supplier]):
    model = Supplier
    entity_type = "Supplier"
    required = ("id", "company_name")
    status_field = "verification_status"


class RfqStore(EntityStore[Rfq]):
    model = Rfq
    entity_type = "RFQ"
    required = (
        "buyer_id", "title", "category", "quantity", "unit",
        "target_price_cents", "expires_at",
    )
    immutable = ("buyer_id",)


class QuotationStore(EntityStore[Quotation]):
    model = Quotation
    entity_type = "Quotation"
    required = ("rfq_id", "supplier_id", "quoted_price_cents", "moq", "validity_days")
    immutable = ("rfq_id", "supplier_id", "total_value_cents")


class OrderStore(EntityStore[Order]):
    model = Order
    entity_type = "Order"
    required = (
        "rfq_id", "quotation_id", "buyer_id", "supplier_id",
        "order_value_cents", "quantity", "unit_price_cents", "expected_delivery",
        "payment_received_cents", "payment_pending_cents",
    )
    immutable = (
        "rfq_id", "quotation_id", "buyer_id", "supplier_id",
        "order_value_cents", "quantity", "unit_price_cents",
    )


class SampleRequestStore(EntityStore[SampleRequest]):
    model = SampleRequest
    entity_type = "SampleRequest"
    required = ("rfq_id", "quotation_id", "buyer_id", "supplier_id")
    immutable = ("rfq_id", "quotation_id", "buyer_id", "supplier_id")


class SupplierQuestionStore(EntityStore[SupplierQuestion]):
    model = SupplierQuestion
    entity_type = "SupplierQuestion"
    required = ("rfq_id", "supplier_id", "question")
    immutable = ("rfq_id", "supplier_id", "question")


class AuditLogStore(EntityStore[AuditLog]):
    model = AuditLog
    entity_type = "AuditLog"
    required = ("entity_type", "entity_id", "action", "after_status")
    status_field = None
