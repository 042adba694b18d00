import copy
import sys
import unittest
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[1] / "src"))

from flowgraph.resolver.resolver import UNDEFINED, VariableResolver
from flowgraph.workflow.node import WorkflowNode


class ResolveVariablesTests(unittest.TestCase):
    def setUp(self):
        self.resolver = VariableResolver(strict_logging=False)

    def test_dotted_path(self):
        self.assertEqual(self.resolver.resolve_variables("{{user.name}}", {"user": {"name": "Ada"}}), "Ada")

    def test_missing_variable_is_left_unchanged(self):
        self.assertEqual(self.resolver.resolve_variables("{{missing}}", {}), "{{missing}}")
        self.assertEqual(self.resolver.resolve_variables("{{user.email}}", {"user": {}}), "{{user.email}}")

    def test_whitespace_inside_placeholder_is_trimmed(self):
        self.assertEqual(self.resolver.resolve_variables("Hi {{  name }}!", {"name": "Bo"}), "Hi Bo!")

    def test_unmatched_braces_are_untouched(self):
        self.assertEqual(self.resolver.resolve_variables("{{name", {"name": "x"}), "{{name")
        self.assertEqual(self.resolver.resolve_variables("name}}", {"name": "x"}), "name}}")

    def test_exact_key_wins_over_dotted_path(self):
        scope = {"user.name": "flat", "user": {"name": "nested"}}
        self.assertEqual(self.resolver.resolve_variables("{{user.name}}", scope), "flat")

    def test_scalar_rendering(self):
        scope = {"count": 3, "ratio": 2.0, "ok": True, "none": None, "tags": ["a", "b"], "obj": {"k": 1}}
        self.assertEqual(
            self.resolver.resolve_variables(
                "{{count}} {{ratio}} {{ok}} {{none}} {{tags}} {{obj}}", scope
            ),
            '3 2 true null ["a","b"] {"k":1}',
        )

    def test_array_index(self):
        scope = {"items": ["first", "second"], "name": "not a list"}
        self.assertEqual(self.resolver.resolve_variables("{{items[1]}}", scope), "second")
        self.assertEqual(self.resolver.resolve_variables("{{items[5]}}", scope), "{{items[5]}}")
        self.assertEqual(self.resolver.resolve_variables("{{name[0]}}", scope), "{{name[0]}}")

    def test_dotted_path_through_list(self):
        scope = {"order": {"lines": [{"sku": "A1"}]}}
        self.assertEqual(self.resolver.resolve_variables("{{order.lines.0.sku}}", scope), "A1")

    def test_dotted_path_with_hyphenated_key(self):
        scope = {"headers": {"content-type": "json", "x-retry count": 2}}
        self.assertEqual(self.resolver.resolve_variables("{{headers.content-type}}", scope), "json")
        self.assertEqual(self.resolver.resolve_variables("{{headers.x-retry count}}", scope), "2")
        self.assertTrue(self.resolver.validate_variables("{{headers.content-type}}", scope).valid)

    def test_arithmetic_precedence(self):
        self.assertEqual(self.resolver.resolve_variables("{{1 + 2 * 3}}", {}), "7")
        self.assertEqual(self.resolver.resolve_variables("{{(1 + 2) * 3}}", {}), "9")
        self.assertEqual(self.resolver.resolve_variables("{{7 / 2}}", {}), "3.5")
        self.assertEqual(self.resolver.resolve_variables("{{1.5 + 1.5}}", {}), "3")

    def test_arithmetic_with_numeric_variables(self):
        self.assertEqual(self.resolver.resolve_variables("{{x + 1}}", {"x": 4}), "5")

    def test_arithmetic_with_tiny_float_variable(self):
        self.assertEqual(
            self.resolver.resolve_variables("{{x * 2}}", {"x": 1e-7}, preserve_types=True), 2e-7
        )
        self.assertEqual(self.resolver.resolve_variables("{{price * qty}}", {"price": 2.5, "qty": 4}), "10")

    def test_arithmetic_with_non_numeric_variable_is_left_unchanged(self):
        self.assertEqual(self.resolver.resolve_variables("{{x + 1}}", {"x": "4"}), "{{x + 1}}")
        self.assertEqual(self.resolver.resolve_variables("{{flag + 1}}", {"flag": True}), "{{flag + 1}}")

    def test_code_is_never_executed(self):
        payloads = [
            "__import__('os').system('echo hi')",
            "(1).__class__",
            "1 + 2; 3",
            "2 ** 10",
        ]
        for payload in payloads:
            text = "{{" + payload + "}}"
            self.assertEqual(self.resolver.resolve_variables(text, {}), text)

    def test_division_by_zero_degrades_to_literal(self):
        diagnostics = []
        result = self.resolver.resolve_variables("{{1 / 0}}", {}, diagnostics=diagnostics)

        self.assertEqual(result, "{{1 / 0}}")
        self.assertEqual(len(diagnostics), 1)
        self.assertIn("Division by zero", diagnostics[0].reason)

    def test_nested_structures_are_resolved_without_mutation(self):
        config = {
            "url": "https://{{host}}/users/{{user.id}}",
            "headers": [{"X-Count": "{{count}}"}, "static"],
            "{{host}}": "keys stay verbatim",
            "timeout": 30,
            "enabled": False,
            "extra": None,
        }
        scope = {"host": "example.com", "user": {"id": 42}, "count": 2}
        config_before = copy.deepcopy(config)
        scope_before = copy.deepcopy(scope)

        resolved = self.resolver.resolve_variables(config, scope)

        self.assertEqual(
            resolved,
            {
                "url": "https://example.com/users/42",
                "headers": [{"X-Count": "2"}, "static"],
                "{{host}}": "keys stay verbatim",
                "timeout": 30,
                "enabled": False,
                "extra": None,
            },
        )
        self.assertEqual(config, config_before)
        self.assertEqual(scope, scope_before)
        self.assertIsNot(resolved["headers"], config["headers"])

    def test_tuples_become_lists(self):
        self.assertEqual(self.resolver.resolve_variables(("{{a}}", 1), {"a": "x"}), ["x", 1])

    def test_preserve_types_for_single_placeholder(self):
        scope = {"count": 3, "items": [1, 2]}
        self.assertEqual(self.resolver.resolve_variables("{{count}}", scope, preserve_types=True), 3)
        self.assertEqual(self.resolver.resolve_variables("{{items}}", scope, preserve_types=True), [1, 2])
        self.assertEqual(self.resolver.resolve_variables("{{2 * 3}}", scope, preserve_types=True), 6)
        self.assertEqual(
            self.resolver.resolve_variables("{{count}} items", scope, preserve_types=True), "3 items"
        )
        self.assertEqual(
            self.resolver.resolve_variables("{{count}}{{count}}", scope, preserve_types=True), "33"
        )
        self.assertEqual(
            self.resolver.resolve_variables("{{nope}}", scope, preserve_types=True), "{{nope}}"
        )

    def test_unknown_function_is_left_unchanged(self):
        self.assertEqual(self.resolver.resolve_variables("{{explode(1)}}", {}), "{{explode(1)}}")

    def test_function_names_are_case_insensitive(self):
        self.assertEqual(self.resolver.resolve_variables("{{UPPERCASE(name)}}", {"name": "ada"}), "ADA")

    def test_function_errors_degrade_to_literal(self):
        self.assertEqual(
            self.resolver.resolve_variables("{{substring(name, one)}}", {"name": "ada"}),
            "{{substring(name, one)}}",
        )

    def test_diagnostics_collect_every_unresolved_placeholder(self):
        diagnostics = []
        self.resolver.resolve_variables(
            {"a": "{{missing}}", "b": ["{{also.missing}}", "{{ok}}"]},
            {"ok": 1},
            diagnostics=diagnostics,
        )

        self.assertEqual([d.expression for d in diagnostics], ["missing", "also.missing"])
        self.assertEqual(diagnostics[0].placeholder, "{{missing}}")
        self.assertEqual(diagnostics[0].reason, "unresolved")

    def test_strict_logging_warns(self):
        resolver = VariableResolver(strict_logging=True)
        with self.assertLogs("flowgraph.resolver.resolver", level="WARNING") as logs:
            resolver.resolve_variables("{{missing}}", {})
        self.assertIn("{{missing}}", logs.output[0])

    def test_resolve_node_config_leaves_node_untouched(self):
        node = WorkflowNode(type="navigate", config={"url": "{{base}}/login"})

        resolved = self.resolver.resolve_node_config(node, {"base": "https://app"})

        self.assertEqual(resolved, {"url": "https://app/login"})
        self.assertEqual(node.config, {"url": "{{base}}/login"})


class EvaluateExpressionTests(unittest.TestCase):
    def setUp(self):
        self.resolver = VariableResolver(strict_logging=False)

    def test_exact_key_preserves_type(self):
        self.assertEqual(self.resolver.evaluate_expression("n", {"n": 5}), 5)
        self.assertIsNone(self.resolver.evaluate_expression("n", {"n": None}))

    def test_unresolved_returns_sentinel(self):
        self.assertIs(self.resolver.evaluate_expression("plain words", {}), UNDEFINED)
        self.assertIs(self.resolver.evaluate_expression("a.b", {"a": 1}), UNDEFINED)


class ReferenceTests(unittest.TestCase):
    def setUp(self):
        self.resolver = VariableResolver(strict_logging=False)

    def test_get_variable_references_dedupes_in_first_occurrence_order(self):
        text = "{{ b }} {{a}} {{b}} {{uppercase(a)}}"
        self.assertEqual(self.resolver.get_variable_references(text), ["b", "a", "uppercase(a)"])
        self.assertEqual(self.resolver.get_variable_references(42), [])

    def test_has_variables(self):
        self.assertTrue(self.resolver.has_variables("x {{y}}"))
        self.assertFalse(self.resolver.has_variables("x {y}"))
        self.assertFalse(self.resolver.has_variables(None))
        # Repeated calls do not depend on leftover regex state.
        self.assertTrue(self.resolver.has_variables("{{y}}"))
        self.assertTrue(self.resolver.has_variables("{{y}}"))

    def test_validate_variables_dotted_path(self):
        result = self.resolver.validate_variables("{{a.b}}", {"a": {"b": 1}})
        self.assertTrue(result.valid)
        self.assertEqual(result.missing_variables, [])
        self.assertEqual(result.referenced_variables, ["a.b"])

        result = self.resolver.validate_variables("{{a.b}}", {"a": {}})
        self.assertFalse(result.valid)
        self.assertEqual(result.missing_variables, ["a.b"])
        self.assertEqual(result.referenced_variables, ["a.b"])

    def test_validate_variables_does_not_check_index_or_function_forms(self):
        scope = {"items": [1], "name": "x"}
        result = self.resolver.validate_variables("{{items[0]}} {{uppercase(name)}} {{name}}", scope)

        self.assertEqual(result.missing_variables, ["items[0]", "uppercase(name)"])
        self.assertEqual(result.referenced_variables, ["items[0]", "uppercase(name)", "name"])


class BuiltinFunctionResolutionTests(unittest.TestCase):
    def setUp(self):
        self.resolver = VariableResolver(strict_logging=False)

    def resolve(self, text, scope=None):
        return self.resolver.resolve_variables(text, scope or {})

    def test_uuid_shape(self):
        value = self.resolve("{{uuid()}}")
        self.assertRegex(value, r"^[0-9a-f]{8}-[0-9a-f]{4}-4[0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$")

    def test_date_formats(self):
        self.assertRegex(self.resolve("{{date()}}"), r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\.\d{3}Z$")
        self.assertRegex(self.resolve("{{date(timestamp)}}"), r"^\d{13}$")
        self.assertRegex(self.resolve("{{date(year)}}"), r"^\d{4}$")
        self.assertTrue(1 <= int(self.resolve("{{date(month)}}")) <= 12)
        self.assertRegex(self.resolve("{{date(time)}}"), r"^\d{2}:\d{2}:\d{2}$")
        self.assertRegex(self.resolve("{{date(whatever)}}"), r"Z$")

    def test_random_ranges(self):
        for _ in range(50):
            self.assertTrue(0 <= float(self.resolve("{{random()}}")) < 1)
            self.assertIn(int(self.resolve("{{random(3)}}")), {0, 1, 2})
            self.assertIn(int(self.resolve("{{random(5, 6)}}")), {5, 6})

    def test_string_functions(self):
        scope = {"name": "  Ada Lovelace  ", "word": "banana", "greeting": "Hi {0}, meet {1}"}
        self.assertEqual(self.resolve("{{trim(name)}}", scope), "Ada Lovelace")
        self.assertEqual(self.resolve("{{lowercase(word)}}", scope), "banana")
        self.assertEqual(self.resolve("{{uppercase(literal)}}", scope), "LITERAL")
        self.assertEqual(self.resolve("{{substring(word, 1, 3)}}", scope), "an")
        self.assertEqual(self.resolve("{{substring(word, 4)}}", scope), "na")
        self.assertEqual(self.resolve("{{replace(word, a, o)}}", scope), "bonono")
        self.assertEqual(self.resolve("{{replace(word, .)}}", scope), "")
        self.assertEqual(self.resolve("{{format(greeting, word, Bob)}}", scope), "Hi banana, meet Bob")

    def test_length(self):
        scope = {"items": [1, 2, 3], "obj": {"a": 1, "b": 2}, "n": 5}
        self.assertEqual(self.resolve("{{length(items)}}", scope), "3")
        self.assertEqual(self.resolve("{{length(obj)}}", scope), "2")
        self.assertEqual(self.resolve("{{length(n)}}", scope), "0")
        self.assertEqual(self.resolve("{{length(abcd)}}", scope), "4")
        self.assertEqual(self.resolve("{{length()}}", scope), "0")


if __name__ == "__main__":
    unittest.main()
