import unittest
from datetime import date

from invoice_compliance.models.rules import (
    CustomPredicate,
    IsTruePredicate,
    MinLengthPredicate,
    NonEmptyStringPredicate,
    NotFutureDatePredicate,
    OneOfPredicate,
    PositiveNumberPredicate,
    RegexMatchPredicate,
    ValidationRule,
    ValidDatePredicate,
)
from invoice_compliance.services.predicates import evaluate_predicate, register_custom_predicate, tin_format


class TestTinFormat(unittest.TestCase):

    def test_accepts_dashed_and_plain_digits(self):
        self.assertTrue(tin_format("123-456-789-000"))
        self.assertTrue(tin_format("123456789"))
        self.assertTrue(tin_format("123456789000"))
        self.assertTrue(tin_format("123 456 789 000"))

    def test_rejects_malformed_values(self):
        self.assertFalse(tin_format("12-3456-789"))
        self.assertFalse(tin_format("12345678"))
        self.assertFalse(tin_format("1234567890123"))
        self.assertFalse(tin_format(""))
        self.assertFalse(tin_format(None))
        self.assertFalse(tin_format(123456789))


class TestEvaluatePredicate(unittest.TestCase):

    def test_missing_predicate_is_presence_check(self):
        self.assertTrue(evaluate_predicate(None, 0))
        self.assertTrue(evaluate_predicate(None, ""))
        self.assertFalse(evaluate_predicate(None, None))

    def test_non_empty_string(self):
        predicate = NonEmptyStringPredicate()
        self.assertTrue(evaluate_predicate(predicate, "INV-1"))
        self.assertFalse(evaluate_predicate(predicate, "   "))
        self.assertFalse(evaluate_predicate(predicate, 42))

    def test_min_length_ignores_surrounding_whitespace(self):
        predicate = MinLengthPredicate(length=5)
        self.assertTrue(evaluate_predicate(predicate, "GOV-1"))
        self.assertFalse(evaluate_predicate(predicate, "  G-1  "))

    def test_positive_number_excludes_booleans(self):
        predicate = PositiveNumberPredicate()
        self.assertTrue(evaluate_predicate(predicate, 0.01))
        self.assertFalse(evaluate_predicate(predicate, 0))
        self.assertFalse(evaluate_predicate(predicate, -5))
        self.assertFalse(evaluate_predicate(predicate, True))
        self.assertFalse(evaluate_predicate(predicate, "100"))

    def test_is_true_requires_real_boolean(self):
        predicate = IsTruePredicate()
        self.assertTrue(evaluate_predicate(predicate, True))
        self.assertFalse(evaluate_predicate(predicate, 1))
        self.assertFalse(evaluate_predicate(predicate, None))

    def test_regex_match_strips_whitespace_by_default(self):
        predicate = RegexMatchPredicate(pattern=r"\d{3}-\d{3}")
        self.assertTrue(evaluate_predicate(predicate, " 123 -456 "))
        strict = RegexMatchPredicate(pattern=r"\d{3}-\d{3}", strip_whitespace=False)
        self.assertFalse(evaluate_predicate(strict, " 123-456"))

    def test_one_of(self):
        predicate = OneOfPredicate(values=["vatable", "non_vat"])
        self.assertTrue(evaluate_predicate(predicate, "vatable"))
        self.assertFalse(evaluate_predicate(predicate, "VATABLE"))
        self.assertFalse(evaluate_predicate(predicate, None))

    def test_dates(self):
        today = date(2024, 6, 1)
        self.assertTrue(evaluate_predicate(ValidDatePredicate(), "2024-03-15"))
        self.assertTrue(evaluate_predicate(ValidDatePredicate(), "March 15, 2024"))
        self.assertFalse(evaluate_predicate(ValidDatePredicate(), "not a date"))
        self.assertTrue(evaluate_predicate(NotFutureDatePredicate(), "2024-06-01", today=today))
        self.assertFalse(evaluate_predicate(NotFutureDatePredicate(), "2024-06-02", today=today))

    def test_custom_predicate_lookup(self):
        register_custom_predicate("starts_with_inv", lambda value: str(value).startswith("INV"))
        self.assertTrue(evaluate_predicate(CustomPredicate(name="starts_with_inv"), "INV-9"))
        self.assertTrue(evaluate_predicate(CustomPredicate(name="tin_format"), "123456789"))
        with self.assertRaises(KeyError):
            evaluate_predicate(CustomPredicate(name="no_such_predicate"), "x")

    def test_rules_deserialize_predicates_by_kind(self):
        rule = ValidationRule.model_validate({
            "field": "po_number",
            "predicate": {"kind": "regex_match", "pattern": "PO-\\d+"},
            "errorMessage": "PO number is required",
        })
        self.assertIsInstance(rule.predicate, RegexMatchPredicate)
        self.assertEqual(rule.error_message, "PO number is required")
        self.assertTrue(evaluate_predicate(rule.predicate, "PO-77"))


if __name__ == '__main__':
    unittest.main()
