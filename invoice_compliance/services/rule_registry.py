"""Rule-set repositories: in-memory and PostgreSQL-backed"""

import asyncio
import json
import re
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

from ..config import settings
from ..exceptions import RuleSetConfigurationError, UnknownRuleSetError
from ..models.rules import (
    CustomPredicate,
    RegexMatchPredicate,
    RuleSet,
    RuleSetKind,
    RuleSetSpec,
    RuleSetUpdate,
    ValidationRule,
)
from ..utils.database import db_manager
from ..utils.logging import logger
from .predicates import CUSTOM_PREDICATES
from .rule_sets import builtin_rule_sets


def generate_rule_set_id(name: str) -> str:
    """Slug id from a rule-set name: lowercase, non-alphanumerics collapsed to '_'."""
    slug = re.sub(r"[^a-z0-9]", "_", name.lower())
    slug = re.sub(r"_+", "_", slug)
    return slug.strip("_")


def validate_rule(rule: ValidationRule) -> List[str]:
    """Meta-validation of a single rule; returns the problems found."""
    errors = []
    if not rule.field or not rule.field.strip():
        errors.append("Field name is required")
    if not rule.error_message or not rule.error_message.strip():
        errors.append("Error message is required")
    if rule.weight < 1 or rule.weight > 10:
        errors.append("Weight must be between 1 and 10")

    predicate = rule.predicate
    if isinstance(predicate, CustomPredicate) and predicate.name not in CUSTOM_PREDICATES:
        errors.append(f"Unknown custom predicate '{predicate.name}'")
    if isinstance(predicate, RegexMatchPredicate):
        try:
            re.compile(predicate.pattern)
        except re.error as e:
            errors.append(f"Invalid pattern '{predicate.pattern}': {e}")
    return errors


def validate_rule_set_spec(spec: RuleSetSpec) -> Tuple[bool, List[str]]:
    """
    Meta-validation of a rule-set definition.

    Returns (is_valid, errors) with one entry per problem so callers can
    report every issue at once.
    """
    errors = []

    if not spec.name or not spec.name.strip():
        errors.append("Configuration name is required")
    if not spec.description or not spec.description.strip():
        errors.append("Configuration description is required")
    if spec.minimum_score < 0 or spec.minimum_score > 100:
        errors.append("Minimum score must be between 0 and 100")

    if not spec.rules:
        errors.append("At least one validation rule is required")
    else:
        for index, rule in enumerate(spec.rules):
            rule_errors = validate_rule(rule)
            if rule_errors:
                errors.append(f"Rule {index + 1}: {', '.join(rule_errors)}")

    return len(errors) == 0, errors


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _apply_update(current: RuleSet, changes: RuleSetUpdate) -> RuleSet:
    """Merge a partial update, bump the version and re-validate the result."""
    nullable = {"po_type", "registration_type"}
    updates = {
        name: getattr(changes, name)
        for name in changes.model_fields_set
        if getattr(changes, name) is not None or name in nullable
    }
    merged = current.model_copy(update=updates, deep=True)
    if changes.rules is not None:
        merged.rules = [rule.model_copy(deep=True) for rule in changes.rules]

    is_valid, errors = validate_rule_set_spec(merged)
    if not is_valid:
        raise RuleSetConfigurationError(errors)

    merged.version = current.version + 1
    merged.updated_at = _now()
    return merged


def _new_rule_set(spec: RuleSetSpec) -> RuleSet:
    is_valid, errors = validate_rule_set_spec(spec)
    if not is_valid:
        raise RuleSetConfigurationError(errors)

    rule_set_id = generate_rule_set_id(spec.name)
    if not rule_set_id:
        raise RuleSetConfigurationError(["Configuration name must contain letters or digits"])

    now = _now()
    return RuleSet(
        **spec.model_dump(),
        id=rule_set_id,
        version=1,
        is_active=True,
        created_at=now,
        updated_at=now,
    )


class RuleSetRepository(ABC):
    """Storage interface for rule sets. ``get`` and ``list`` see active sets only."""

    @abstractmethod
    async def get(self, rule_set_id: str) -> Optional[RuleSet]:
        ...

    @abstractmethod
    async def list(self, kind: Optional[RuleSetKind] = None) -> List[RuleSet]:
        ...

    @abstractmethod
    async def create(self, spec: RuleSetSpec) -> RuleSet:
        ...

    @abstractmethod
    async def update(self, rule_set_id: str, changes: RuleSetUpdate) -> Optional[RuleSet]:
        ...

    @abstractmethod
    async def soft_delete(self, rule_set_id: str) -> bool:
        ...

    @abstractmethod
    async def get_by_po_type(self, po_type: str) -> Optional[RuleSet]:
        ...


class InMemoryRuleSetRepository(RuleSetRepository):
    """Process-local repository seeded with the built-in rule sets"""

    def __init__(self, seed: Optional[List[RuleSet]] = None):
        initial = builtin_rule_sets() if seed is None else seed
        self._rule_sets: Dict[str, RuleSet] = {rs.id: rs for rs in initial}
        self._lock = asyncio.Lock()

    async def get(self, rule_set_id: str) -> Optional[RuleSet]:
        rule_set = self._rule_sets.get(rule_set_id)
        if rule_set is None or not rule_set.is_active:
            return None
        return rule_set.model_copy(deep=True)

    async def list(self, kind: Optional[RuleSetKind] = None) -> List[RuleSet]:
        return [
            rs.model_copy(deep=True)
            for rs in self._rule_sets.values()
            if rs.is_active and (kind is None or rs.kind == kind)
        ]

    async def create(self, spec: RuleSetSpec) -> RuleSet:
        async with self._lock:
            rule_set = _new_rule_set(spec)
            if rule_set.id in self._rule_sets:
                raise RuleSetConfigurationError([f"Rule set '{rule_set.id}' already exists"])
            self._rule_sets[rule_set.id] = rule_set

        logger.log_step("rule_set_created", {"rule_set_id": rule_set.id, "kind": rule_set.kind.value})
        return rule_set.model_copy(deep=True)

    async def update(self, rule_set_id: str, changes: RuleSetUpdate) -> Optional[RuleSet]:
        async with self._lock:
            current = self._rule_sets.get(rule_set_id)
            if current is None:
                return None
            updated = _apply_update(current, changes)
            self._rule_sets[rule_set_id] = updated

        logger.log_step("rule_set_updated", {"rule_set_id": rule_set_id, "version": updated.version})
        return updated.model_copy(deep=True)

    async def soft_delete(self, rule_set_id: str) -> bool:
        async with self._lock:
            current = self._rule_sets.get(rule_set_id)
            if current is None:
                return False
            current.is_active = False
            current.updated_at = _now()

        logger.log_step("rule_set_deactivated", {"rule_set_id": rule_set_id})
        return True

    async def get_by_po_type(self, po_type: str) -> Optional[RuleSet]:
        for rule_set in self._rule_sets.values():
            if rule_set.is_active and rule_set.po_type == po_type:
                return rule_set.model_copy(deep=True)
        return None


class PostgresRuleSetRepository(RuleSetRepository):
    """Rule sets stored as JSONB documents in ai_db_schema.rule_set_tbl"""

    TABLE = "ai_db_schema.rule_set_tbl"

    def __init__(self, database=None):
        self.db = database or db_manager
        self._initialized = False
        self._init_lock = asyncio.Lock()

    async def _ensure_table(self):
        if self._initialized:
            return
        async with self._init_lock:
            if self._initialized:
                return
            async with self.db.get_connection() as conn:
                await conn.execute("CREATE SCHEMA IF NOT EXISTS ai_db_schema")
                await conn.execute(f"""
                    CREATE TABLE IF NOT EXISTS {self.TABLE} (
                        id VARCHAR(255) PRIMARY KEY,
                        kind VARCHAR(50) NOT NULL,
                        po_type VARCHAR(255),
                        is_active BOOLEAN NOT NULL DEFAULT TRUE,
                        document JSONB NOT NULL,
                        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
                        updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
                    )
                """)
                for rule_set in builtin_rule_sets():
                    await conn.execute(
                        f"""
                        INSERT INTO {self.TABLE} (id, kind, po_type, is_active, document, created_at, updated_at)
                        VALUES ($1, $2, $3, $4, $5::jsonb, $6, $7)
                        ON CONFLICT (id) DO NOTHING
                        """,
                        *self._row_args(rule_set)
                    )
            self._initialized = True
            logger.log_step("rule_set_table_ready", {"table": self.TABLE})

    @staticmethod
    def _row_args(rule_set: RuleSet):
        return (
            rule_set.id,
            rule_set.kind.value,
            rule_set.po_type,
            rule_set.is_active,
            rule_set.model_dump_json(),
            rule_set.created_at,
            rule_set.updated_at,
        )

    @staticmethod
    def _from_row(row) -> RuleSet:
        document = row["document"]
        if isinstance(document, str):
            document = json.loads(document)
        return RuleSet.model_validate(document)

    async def _fetch(self, conn, rule_set_id: str, active_only: bool, for_update: bool = False):
        query = f"SELECT document FROM {self.TABLE} WHERE id = $1"
        if active_only:
            query += " AND is_active"
        if for_update:
            query += " FOR UPDATE"
        row = await conn.fetchrow(query, rule_set_id)
        return self._from_row(row) if row else None

    async def _write(self, conn, rule_set: RuleSet):
        await conn.execute(
            f"""
            UPDATE {self.TABLE}
            SET kind = $2, po_type = $3, is_active = $4, document = $5::jsonb,
                created_at = $6, updated_at = $7
            WHERE id = $1
            """,
            *self._row_args(rule_set)
        )

    async def get(self, rule_set_id: str) -> Optional[RuleSet]:
        await self._ensure_table()
        async with self.db.get_connection() as conn:
            return await self._fetch(conn, rule_set_id, active_only=True)

    async def list(self, kind: Optional[RuleSetKind] = None) -> List[RuleSet]:
        await self._ensure_table()
        query = f"SELECT document FROM {self.TABLE} WHERE is_active"
        args = []
        if kind is not None:
            query += " AND kind = $1"
            args.append(kind.value)
        query += " ORDER BY created_at, id"
        async with self.db.get_connection() as conn:
            rows = await conn.fetch(query, *args)
        return [self._from_row(row) for row in rows]

    async def create(self, spec: RuleSetSpec) -> RuleSet:
        await self._ensure_table()
        rule_set = _new_rule_set(spec)
        async with self.db.get_connection() as conn:
            status = await conn.execute(
                f"""
                INSERT INTO {self.TABLE} (id, kind, po_type, is_active, document, created_at, updated_at)
                VALUES ($1, $2, $3, $4, $5::jsonb, $6, $7)
                ON CONFLICT (id) DO NOTHING
                """,
                *self._row_args(rule_set)
            )
        # asyncpg returns the command tag, e.g. "INSERT 0 1"
        if status.endswith(" 0"):
            raise RuleSetConfigurationError([f"Rule set '{rule_set.id}' already exists"])

        logger.log_step("rule_set_created", {"rule_set_id": rule_set.id, "store": "postgres"})
        return rule_set

    async def update(self, rule_set_id: str, changes: RuleSetUpdate) -> Optional[RuleSet]:
        await self._ensure_table()
        async with self.db.get_connection() as conn:
            async with conn.transaction():
                current = await self._fetch(conn, rule_set_id, active_only=False, for_update=True)
                if current is None:
                    return None
                updated = _apply_update(current, changes)
                await self._write(conn, updated)

        logger.log_step("rule_set_updated", {
            "rule_set_id": rule_set_id, "version": updated.version, "store": "postgres"
        })
        return updated

    async def soft_delete(self, rule_set_id: str) -> bool:
        await self._ensure_table()
        async with self.db.get_connection() as conn:
            async with conn.transaction():
                current = await self._fetch(conn, rule_set_id, active_only=False, for_update=True)
                if current is None:
                    return False
                current.is_active = False
                current.updated_at = _now()
                await self._write(conn, current)

        logger.log_step("rule_set_deactivated", {"rule_set_id": rule_set_id, "store": "postgres"})
        return True

    async def get_by_po_type(self, po_type: str) -> Optional[RuleSet]:
        await self._ensure_table()
        async with self.db.get_connection() as conn:
            row = await conn.fetchrow(
                f"SELECT document FROM {self.TABLE} WHERE is_active AND po_type = $1 "
                "ORDER BY created_at LIMIT 1",
                po_type
            )
        return self._from_row(row) if row else None


async def resolve_rule_set(
    repository: RuleSetRepository,
    rule_set_id: str,
    kind: RuleSetKind
) -> RuleSet:
    """
    Active rule set of the given kind, ready for evaluation.

    Raises UnknownRuleSetError for unknown, inactive or wrong-kind ids and
    RuleSetConfigurationError for a set without rules.
    """
    rule_set = await repository.get(rule_set_id)
    if rule_set is None or rule_set.kind != kind:
        raise UnknownRuleSetError(rule_set_id, kind.value)
    if not rule_set.rules:
        raise RuleSetConfigurationError([f"Rule set '{rule_set_id}' has no rules"])
    return rule_set


def create_rule_set_repository(store: str) -> RuleSetRepository:
    """Repository for the configured store ("memory" or "postgres")."""
    if store == "postgres":
        return PostgresRuleSetRepository()
    if store != "memory":
        logger.log_error("unknown_rule_set_store", {"store": store, "fallback": "memory"})
    return InMemoryRuleSetRepository()


# Global rule-set repository instance
rule_set_repository = create_rule_set_repository(settings.RULE_SET_STORE)
