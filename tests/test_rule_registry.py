import unittest
from datetime import datetime, timezone
from unittest.mock import AsyncMock

from invoice_compliance.exceptions import RuleSetConfigurationError, UnknownRuleSetError
from invoice_compliance.models.rules import (
    CustomPredicate,
    RegexMatchPredicate,
    RuleSet,
    RuleSetKind,
    RuleSetSpec,
    RuleSetUpdate,
    ValidationRule,
)
from invoice_compliance.services.rule_registry import (
    InMemoryRuleSetRepository,
    PostgresRuleSetRepository,
    generate_rule_set_id,
    resolve_rule_set,
    validate_rule_set_spec,
)
from invoice_compliance.services.rule_sets import builtin_rule_sets


def spec(**overrides):
    values = {
        "name": "Construction Invoices",
        "description": "Invoices from construction subcontractors",
        "rules": [ValidationRule(field="invoice_number", error_message="Invoice number is required")],
    }
    values.update(overrides)
    return RuleSetSpec(**values)


class TestBuiltinRuleSets(unittest.TestCase):

    def test_builtin_catalogue(self):
        rule_sets = {rs.id: rs for rs in builtin_rule_sets()}

        self.assertEqual(len(rule_sets), 10)
        self.assertEqual(rule_sets["standard_bir_compliance"].minimum_score, 85)
        self.assertEqual(rule_sets["enhanced_bir_compliance"].minimum_score, 90)
        self.assertEqual(rule_sets["government_bir_compliance"].minimum_score, 95)
        self.assertEqual(rule_sets["official_bir_compliance"].minimum_score, 90)
        self.assertEqual(rule_sets["standard_invoice"].kind, RuleSetKind.COMPLETENESS)
        self.assertEqual(sum(rule.weight for rule in rule_sets["standard_bir_compliance"].rules), 77)

    def test_builtins_pass_meta_validation(self):
        for rule_set in builtin_rule_sets():
            is_valid, errors = validate_rule_set_spec(rule_set)
            self.assertTrue(is_valid, f"{rule_set.id}: {errors}")


class TestMetaValidation(unittest.TestCase):

    def test_valid_spec(self):
        self.assertEqual(validate_rule_set_spec(spec()), (True, []))

    def test_itemized_errors(self):
        is_valid, errors = validate_rule_set_spec(spec(name=" ", description="", minimum_score=120, rules=[]))

        self.assertFalse(is_valid)
        self.assertEqual(errors, [
            "Configuration name is required",
            "Configuration description is required",
            "Minimum score must be between 0 and 100",
            "At least one validation rule is required",
        ])

    def test_rule_errors_are_numbered(self):
        rules = [
            ValidationRule(field="invoice_number", error_message="Required"),
            ValidationRule(field="", error_message="", weight=11),
            ValidationRule(field="vendor_tin", error_message="Bad TIN", predicate=CustomPredicate(name="nope")),
            ValidationRule(field="po_number", error_message="Bad PO", predicate=RegexMatchPredicate(pattern="(")),
        ]
        is_valid, errors = validate_rule_set_spec(spec(rules=rules))

        self.assertFalse(is_valid)
        self.assertEqual(len(errors), 3)
        self.assertEqual(
            errors[0],
            "Rule 2: Field name is required, Error message is required, Weight must be between 1 and 10"
        )
        self.assertTrue(errors[1].startswith("Rule 3: Unknown custom predicate"))
        self.assertTrue(errors[2].startswith("Rule 4: Invalid pattern"))

    def test_generate_rule_set_id(self):
        self.assertEqual(generate_rule_set_id("Construction Invoices"), "construction_invoices")
        self.assertEqual(generate_rule_set_id("  PO -- Based (2024)!"), "po_based_2024")
        self.assertEqual(generate_rule_set_id("***"), "")


class TestInMemoryRuleSetRepository(unittest.IsolatedAsyncioTestCase):

    def setUp(self):
        self.repository = InMemoryRuleSetRepository()

    async def test_seeded_with_builtins(self):
        bir = await self.repository.list(RuleSetKind.BIR)
        completeness = await self.repository.list(RuleSetKind.COMPLETENESS)

        self.assertEqual(len(bir), 6)
        self.assertEqual(len(completeness), 4)
        self.assertIsNotNone(await self.repository.get("standard_invoice"))

    async def test_create_assigns_slug_id(self):
        created = await self.repository.create(spec(po_type="CONSTRUCTION"))

        self.assertEqual(created.id, "construction_invoices")
        self.assertEqual(created.version, 1)
        self.assertTrue(created.is_active)
        self.assertEqual((await self.repository.get_by_po_type("CONSTRUCTION")).id, created.id)

    async def test_create_rejects_invalid_spec(self):
        with self.assertRaises(RuleSetConfigurationError) as ctx:
            await self.repository.create(spec(rules=[]))
        self.assertEqual(ctx.exception.errors, ["At least one validation rule is required"])

    async def test_create_rejects_id_clash(self):
        with self.assertRaises(RuleSetConfigurationError) as ctx:
            await self.repository.create(spec(name="Standard Invoice"))
        self.assertEqual(ctx.exception.errors, ["Rule set 'standard_invoice' already exists"])

    async def test_returned_rule_sets_are_copies(self):
        rule_set = await self.repository.get("standard_invoice")
        rule_set.rules.clear()
        self.assertEqual(len((await self.repository.get("standard_invoice")).rules), 5)

    async def test_update_bumps_version(self):
        await self.repository.create(spec())
        updated = await self.repository.update(
            "construction_invoices",
            RuleSetUpdate(description="Updated description")
        )

        self.assertEqual(updated.version, 2)
        self.assertEqual(updated.description, "Updated description")
        self.assertEqual(updated.name, "Construction Invoices")
        self.assertEqual(len(updated.rules), 1)

    async def test_update_is_revalidated(self):
        with self.assertRaises(RuleSetConfigurationError):
            await self.repository.update("standard_invoice", RuleSetUpdate(rules=[]))
        self.assertEqual((await self.repository.get("standard_invoice")).version, 1)

    async def test_update_unknown_returns_none(self):
        self.assertIsNone(await self.repository.update("missing", RuleSetUpdate(name="x")))

    async def test_soft_delete_hides_but_keeps(self):
        self.assertTrue(await self.repository.soft_delete("purchase_order_based"))
        self.assertIsNone(await self.repository.get("purchase_order_based"))
        self.assertNotIn("purchase_order_based", [rs.id for rs in await self.repository.list()])

        restored = await self.repository.update("purchase_order_based", RuleSetUpdate(is_active=True))
        self.assertTrue(restored.is_active)
        self.assertFalse(await self.repository.soft_delete("missing"))

    async def test_resolve_rule_set(self):
        rule_set = await resolve_rule_set(self.repository, "standard_bir_compliance", RuleSetKind.BIR)
        self.assertEqual(rule_set.id, "standard_bir_compliance")

        with self.assertRaises(UnknownRuleSetError):
            await resolve_rule_set(self.repository, "standard_bir_compliance", RuleSetKind.COMPLETENESS)

    async def test_resolve_rejects_empty_rule_set(self):
        now = datetime.now(timezone.utc)
        empty = RuleSet(id="empty", name="Empty", description="No rules", rules=[], created_at=now, updated_at=now)
        repository = InMemoryRuleSetRepository(seed=[empty])

        with self.assertRaises(RuleSetConfigurationError):
            await resolve_rule_set(repository, "empty", RuleSetKind.COMPLETENESS)


class FakeConnection:
    """Minimal stand-in for an asyncpg connection"""

    def __init__(self, execute_result="INSERT 0 1"):
        self.execute = AsyncMock(return_value=execute_result)
        self.fetchrow = AsyncMock(return_value=None)
        self.fetch = AsyncMock(return_value=[])


class FakeDatabase:

    def __init__(self, connection):
        self.connection = connection

    def get_connection(self):
        connection = self.connection

        class _Context:
            async def __aenter__(self):
                return connection

            async def __aexit__(self, *exc):
                return False

        return _Context()


class TestPostgresRuleSetRepository(unittest.IsolatedAsyncioTestCase):

    async def test_create_detects_id_clash(self):
        connection = FakeConnection(execute_result="INSERT 0 0")
        repository = PostgresRuleSetRepository(database=FakeDatabase(connection))

        with self.assertRaises(RuleSetConfigurationError):
            await repository.create(spec())

    async def test_table_seeded_once(self):
        connection = FakeConnection()
        repository = PostgresRuleSetRepository(database=FakeDatabase(connection))

        await repository.get("standard_invoice")
        seeded_calls = connection.execute.await_count
        await repository.list()

        # schema + table + one insert per built-in
        self.assertEqual(seeded_calls, 2 + len(builtin_rule_sets()))
        self.assertEqual(connection.execute.await_count, seeded_calls)

    async def test_rows_decode_to_rule_sets(self):
        stored = builtin_rule_sets()[0]
        connection = FakeConnection()
        connection.fetchrow = AsyncMock(return_value={"document": stored.model_dump_json()})
        repository = PostgresRuleSetRepository(database=FakeDatabase(connection))

        rule_set = await repository.get(stored.id)
        self.assertEqual(rule_set.id, stored.id)
        self.assertEqual(rule_set.rules, stored.rules)


if __name__ == '__main__':
    unittest.main()
