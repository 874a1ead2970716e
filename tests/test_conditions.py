"""Tests for ConditionEvaluator - the `when` guard grammar."""

import pytest

from blueprint_wizard.engine.conditions import Condition, ConditionEvaluator
from blueprint_wizard.engine.errors import ConditionSyntaxError, MalformedBlueprintError
from blueprint_wizard.engine.variables import VariableStore


@pytest.fixture
def evaluator(generic_document):
    return ConditionEvaluator(generic_document)


@pytest.fixture
def store(generic_document):
    return VariableStore(generic_document.variables)


class TestParse:
    def test_parses_equality(self):
        assert ConditionEvaluator.parse("sdk.language == 'node'") == Condition("sdk.language", "node")

    def test_tolerates_whitespace(self):
        assert ConditionEvaluator.parse("  sdk.language=='no_sdk'  ") == Condition("sdk.language", "no_sdk")

    def test_empty_literal(self):
        assert ConditionEvaluator.parse("x == ''") == Condition("x", "")

    @pytest.mark.parametrize("expression", [
        "sdk.language != 'node'",
        "sdk.language == node",
        'sdk.language == "node"',
        "sdk.language == 'node' and x == 'y'",
        "__import__('os').system('id') == 'x'",
        "",
    ])
    def test_rejects_everything_else(self, expression):
        with pytest.raises(ConditionSyntaxError):
            ConditionEvaluator.parse(expression)

    def test_syntax_error_is_malformed_blueprint(self):
        with pytest.raises(MalformedBlueprintError):
            ConditionEvaluator.parse("a > 'b'", step_id="s1")


class TestEvaluate:
    def test_unbound_path_is_false(self, evaluator, store):
        assert evaluator.evaluate("sdk.language == 'node'", store) is False

    def test_bound_path_matches(self, evaluator, store):
        store.bind("sdk.language", "node")

        assert evaluator.evaluate("sdk.language == 'node'", store) is True
        assert evaluator.evaluate("sdk.language == 'go'", store) is False

    def test_match_is_case_sensitive(self, evaluator, store):
        store.bind("sdk.language", "Node")

        assert evaluator.evaluate("sdk.language == 'node'", store) is False

    def test_unbound_declared_variable_is_false(self, evaluator, store):
        assert evaluator.evaluate("environment_id == 'env_1'", store) is False

    def test_bound_declared_variable(self, evaluator, store):
        store.bind("environment_id", "env_1")

        assert evaluator.evaluate("environment_id == 'env_1'", store) is True

    def test_static_document_field(self, evaluator, store):
        assert evaluator.evaluate("sdk.preferred_language == 'node'", store) is True

    def test_non_scalar_static_field_is_false(self, evaluator, store):
        assert evaluator.evaluate("sdk.framework_hints == 'node'", store) is False

    def test_unknown_path_never_raises(self, evaluator, store):
        assert evaluator.evaluate("nothing.here.at.all == 'x'", store) is False

    def test_unparseable_expression_is_false(self, evaluator, store):
        assert evaluator.evaluate("1 + 1 == 2", store) is False

    def test_accepts_parsed_condition(self, evaluator, store):
        store.bind("sdk.language", "go")

        assert evaluator.evaluate(Condition("sdk.language", "go"), store) is True

    def test_without_document(self):
        assert ConditionEvaluator().evaluate("a == 'b'", VariableStore()) is False
