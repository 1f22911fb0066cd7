"""
Generic async repository over any model built on ``Base``.

Callers describe reads with a ``QuerySpec`` instead of handing SQL
expressions across the service boundary. Every read hides soft-deleted rows
unless the QuerySpec asks for them. Writes only flush; committing is the
caller's unit of work.
"""
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Generic, Optional, Sequence, TypeVar

from sqlalchemy import select, update, func, or_, inspect as sa_inspect
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from sqlalchemy.orm.exc import StaleDataError

from erp.core.database import Base, utc_now
from erp.error_handlers import (
    ResourceNotFoundError,
    ValidationFailureError,
    ConcurrencyConflictError,
)
from erp.logging_config import get_logger

logger = get_logger("repository")

ModelT = TypeVar("ModelT", bound=Base)

# Columns owned by the audit trail; never writable through update_partial()
PROTECTED_FIELDS = frozenset({
    "id", "created_at", "created_by", "updated_at", "updated_by",
    "is_deleted", "deleted_at", "deleted_by", "version",
})

OPERATORS = frozenset({
    "eq", "ne", "lt", "le", "gt", "ge", "ieq", "contains", "in", "between", "is_null",
})


@dataclass(frozen=True)
class FieldRef:
    """Compare against another column of the same row instead of a literal."""
    name: str


@dataclass(frozen=True)
class Predicate:
    field: str
    op: str
    value: Any = None


@dataclass(frozen=True)
class Ordering:
    field: str
    descending: bool = False


@dataclass
class QuerySpec:
    """
    Composable read description.

    Usage:
        spec = (
            QuerySpec()
            .where("category", "ieq", "Smartphone")
            .where("stock", "le", FieldRef("min_stock_level"))
            .order_by("created_at", descending=True)
            .page(1, 20)
        )
    """
    predicates: list[Predicate] = field(default_factory=list)
    searches: list[tuple[str, tuple[str, ...]]] = field(default_factory=list)
    includes: list[str] = field(default_factory=list)
    orderings: list[Ordering] = field(default_factory=list)
    offset: Optional[int] = None
    limit: Optional[int] = None
    include_deleted: bool = False

    def where(self, field_name: str, op: str, value: Any = None) -> "QuerySpec":
        if op not in OPERATORS:
            raise ValidationFailureError(f"Unsupported filter operator '{op}'", operator=op)
        self.predicates.append(Predicate(field_name, op, value))
        return self

    def search(self, text: Optional[str], *fields: str) -> "QuerySpec":
        """Case-insensitive substring match on any of ``fields``."""
        if text and text.strip():
            self.searches.append((text.strip(), fields))
        return self

    def include(self, *relations: str) -> "QuerySpec":
        self.includes.extend(relations)
        return self

    def order_by(self, field_name: str, descending: bool = False) -> "QuerySpec":
        self.orderings.append(Ordering(field_name, descending))
        return self

    def page(self, page: int, page_size: int) -> "QuerySpec":
        page = max(1, page)
        page_size = max(1, page_size)
        self.offset = (page - 1) * page_size
        self.limit = page_size
        return self

    def with_deleted(self) -> "QuerySpec":
        self.include_deleted = True
        return self


def _escape_like(text: str) -> str:
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class Repository(Generic[ModelT]):
    """CRUD, filtered reads and aggregates for one model."""

    model: type[ModelT]

    def __init__(self, session: AsyncSession, model: Optional[type[ModelT]] = None):
        self.session = session
        if model is not None:
            self.model = model
        self._mapper = sa_inspect(self.model)
        self._resource = self.model.__name__

    # ------------------------------------------------------------------
    # Query building
    # ------------------------------------------------------------------

    def _column(self, name: str):
        if name not in self._mapper.columns:
            raise ValidationFailureError(
                f"Unknown field '{name}' for {self._resource}",
                field=name,
            )
        return getattr(self.model, name)

    def _operand(self, value: Any):
        if isinstance(value, FieldRef):
            return self._column(value.name)
        return value

    def _condition(self, predicate: Predicate):
        column = self._column(predicate.field)
        op, value = predicate.op, predicate.value

        if op == "is_null":
            return column.is_(None) if value in (None, True) else column.is_not(None)
        if op == "between":
            low, high = value
            return column.between(self._operand(low), self._operand(high))
        if op == "in":
            return column.in_(list(value))
        if op == "ieq":
            return func.lower(column) == func.lower(self._operand(value))
        if op == "contains":
            return column.ilike(f"%{_escape_like(str(value))}%", escape="\\")

        operand = self._operand(value)
        return {
            "eq": lambda: column == operand,
            "ne": lambda: column != operand,
            "lt": lambda: column < operand,
            "le": lambda: column <= operand,
            "gt": lambda: column > operand,
            "ge": lambda: column >= operand,
        }[op]()

    def _filtered(self, stmt, spec: Optional[QuerySpec]):
        spec = spec or QuerySpec()
        if not spec.include_deleted:
            stmt = stmt.where(self.model.is_deleted.is_(False))
        for predicate in spec.predicates:
            stmt = stmt.where(self._condition(predicate))
        for text, fields in spec.searches:
            pattern = f"%{_escape_like(text)}%"
            stmt = stmt.where(or_(*(
                self._column(name).ilike(pattern, escape="\\") for name in fields
            )))
        return stmt

    def _select(self, spec: Optional[QuerySpec]):
        spec = spec or QuerySpec()
        stmt = self._filtered(select(self.model), spec)
        for relation in spec.includes:
            stmt = stmt.options(selectinload(getattr(self.model, relation)))
        for ordering in spec.orderings:
            column = self._column(ordering.field)
            stmt = stmt.order_by(column.desc() if ordering.descending else column.asc())
        # Stable insertion order as tiebreaker
        stmt = stmt.order_by(self.model.id.asc())
        if spec.offset is not None:
            stmt = stmt.offset(spec.offset)
        if spec.limit is not None:
            stmt = stmt.limit(spec.limit)
        return stmt

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_by_id(self, entity_id: int, include_deleted: bool = False) -> Optional[ModelT]:
        """Fetch one row; soft-deleted rows count as absent unless asked for."""
        stmt = select(self.model).where(self.model.id == entity_id)
        if not include_deleted:
            stmt = stmt.where(self.model.is_deleted.is_(False))
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_all(self, include_deleted: bool = False) -> list[ModelT]:
        spec = QuerySpec()
        if include_deleted:
            spec.with_deleted()
        return await self.find(spec)

    async def find(self, spec: Optional[QuerySpec] = None) -> list[ModelT]:
        result = await self.session.execute(self._select(spec))
        return list(result.scalars().all())

    async def count(self, spec: Optional[QuerySpec] = None) -> int:
        stmt = self._filtered(select(func.count(self.model.id)), spec)
        return (await self.session.execute(stmt)).scalar() or 0

    async def find_paged(self, spec: QuerySpec) -> tuple[list[ModelT], int]:
        """Items of the requested page plus the unpaged total."""
        total = await self.count(spec)
        items = await self.find(spec)
        return items, total

    async def get_paged(self, page: int, page_size: int) -> tuple[list[ModelT], int]:
        return await self.find_paged(QuerySpec().page(page, page_size))

    async def exists(self, entity_id: int) -> bool:
        stmt = select(self.model.id).where(
            self.model.id == entity_id,
            self.model.is_deleted.is_(False)
        )
        return (await self.session.execute(stmt)).first() is not None

    # ------------------------------------------------------------------
    # Aggregates
    # ------------------------------------------------------------------

    async def sum(self, field_name: str, spec: Optional[QuerySpec] = None) -> Decimal:
        stmt = self._filtered(select(func.sum(self._column(field_name))), spec)
        value = (await self.session.execute(stmt)).scalar()
        return Decimal(str(value)) if value is not None else Decimal("0")

    async def average(self, field_name: str, spec: Optional[QuerySpec] = None) -> Decimal:
        stmt = self._filtered(select(func.avg(self._column(field_name))), spec)
        value = (await self.session.execute(stmt)).scalar()
        return Decimal(str(value)) if value is not None else Decimal("0")

    async def distinct(self, field_name: str, spec: Optional[QuerySpec] = None) -> list[Any]:
        """Distinct non-empty values of a column, sorted."""
        column = self._column(field_name)
        stmt = self._filtered(select(column).distinct(), spec)
        stmt = stmt.where(column.is_not(None), column != "").order_by(column)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def _flush(self, entity: ModelT) -> None:
        # A failed flush expires the instance, so the id must be read first
        entity_id = entity.id
        try:
            await self.session.flush()
        except StaleDataError as exc:
            raise ConcurrencyConflictError(self._resource, entity_id) from exc

    async def create(self, entity: ModelT, actor: str) -> ModelT:
        entity.mark_created(actor)
        self.session.add(entity)
        await self._flush(entity)
        return entity

    async def update(self, entity: ModelT, actor: str) -> ModelT:
        """Flush changes made to a tracked entity."""
        state = sa_inspect(entity)
        if not state.persistent or entity.is_deleted:
            raise ResourceNotFoundError(self._resource, entity.id)
        entity.mark_updated(actor)
        await self._flush(entity)
        return entity

    async def update_partial(self, entity_id: int, fields: dict[str, Any], actor: str) -> ModelT:
        """
        UPDATE only the named columns (plus audit columns) in one statement.

        Bumps the row version for versioned models, so stale ORM copies held
        elsewhere fail their own flush.
        """
        for name in fields:
            if name in PROTECTED_FIELDS:
                raise ValidationFailureError(f"Field '{name}' cannot be updated", field=name)
            self._column(name)

        values = dict(fields)
        values["updated_at"] = utc_now()
        values["updated_by"] = actor
        version_col = self._mapper.version_id_col
        if version_col is not None:
            values[version_col.key] = version_col + 1

        stmt = (
            update(self.model)
            .where(self.model.id == entity_id, self.model.is_deleted.is_(False))
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        if result.rowcount == 0:
            raise ResourceNotFoundError(self._resource, entity_id)

        return await self.reload(entity_id)

    async def reload(self, entity_id: int) -> ModelT:
        """Re-read a row, overwriting whatever the identity map holds."""
        stmt = (
            select(self.model)
            .where(self.model.id == entity_id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        entity = result.scalar_one_or_none()
        if entity is None:
            raise ResourceNotFoundError(self._resource, entity_id)
        return entity

    async def delete(self, entity_id: int, actor: str, hard: bool = False) -> None:
        """Soft-delete by default; ``hard`` removes the row."""
        entity = await self.get_by_id(entity_id, include_deleted=hard)
        if entity is None:
            raise ResourceNotFoundError(self._resource, entity_id)

        if hard:
            await self.session.delete(entity)
            logger.info("%s %s hard-deleted by %s", self._resource, entity_id, actor)
        else:
            entity.mark_deleted(actor)
        await self._flush(entity)

    async def add_all(self, entities: Sequence[ModelT], actor: str) -> list[ModelT]:
        for entity in entities:
            entity.mark_created(actor)
            self.session.add(entity)
        await self.session.flush()
        return list(entities)
