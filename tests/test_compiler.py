import unittest
from unittest.mock import MagicMock

from formfilter.core.compiler import RuleCompiler
from formfilter.core.config import Config
from formfilter.core.overrides import OverrideStore


class TestRuleCompiler(unittest.TestCase):

    def setUp(self):
        self.config = Config()
        self.store = OverrideStore()
        self.compiler = RuleCompiler(self.config)

    def test_fields_default_to_required(self):
        rule_set = self.compiler.compile(["email", "name"], self.store)

        for name in ("email", "name"):
            self.assertEqual(rule_set.rules[name], {"required": True})
            self.assertEqual(rule_set.messages[name], {"required": "This field is required."})

    def test_optional_field_has_no_required_message(self):
        self.store.mark_optional({"nickname": {"required": False}})
        first = self.compiler.compile(["nickname"], self.store)
        self.store.mark_optional({"nickname": {"required": False}})
        second = self.compiler.compile(["nickname"], self.store)

        self.assertEqual(first.rules["nickname"], {"required": False})
        self.assertEqual(first.messages["nickname"], {})
        self.assertEqual(first, second)

    def test_pattern_rule_with_message(self):
        self.store.add_pattern({"zip": {"pattern": r"^\d{5}$", "message": "Five digits"}})

        rule_set = self.compiler.compile(["zip"], self.store)

        self.assertIs(rule_set.rules["zip"]["zip_pattern"], True)
        self.assertEqual(rule_set.messages["zip"]["zip_pattern"], "Five digits")

    def test_pattern_rule_default_message(self):
        self.store.add_pattern({"zip": {"pattern": r"^\d{5}$"}})

        rule_set = self.compiler.compile(["zip"], self.store)

        self.assertEqual(rule_set.messages["zip"]["zip_pattern"], "Invalid format")

    def test_pattern_is_registered_on_engine(self):
        engine = MagicMock()
        engine.optional.return_value = False
        self.store.add_pattern({"zip": {"pattern": r"^\d{5}$"}})

        self.compiler.compile(["zip"], self.store, engine)

        engine.add_method.assert_called_once()
        name, predicate, message = engine.add_method.call_args[0]
        self.assertEqual(name, "zip_pattern")
        self.assertEqual(message, "Invalid format")
        self.assertTrue(predicate("12345", object()))
        self.assertFalse(predicate("1234", object()))

    def test_pattern_predicate_passes_optional_elements(self):
        engine = MagicMock()
        engine.optional.return_value = True
        self.store.add_pattern({"zip": {"pattern": r"^\d{5}$"}})

        self.compiler.compile(["zip"], self.store, engine)

        predicate = engine.add_method.call_args[0][1]
        self.assertTrue(predicate("", object()))

    def test_recompiling_reregisters_same_method_name(self):
        engine = MagicMock()
        self.store.add_pattern({"zip": {"pattern": r"\d"}})

        self.compiler.compile(["zip"], self.store, engine)
        self.compiler.compile(["zip"], self.store, engine)

        names = [call[0][0] for call in engine.add_method.call_args_list]
        self.assertEqual(names, ["zip_pattern", "zip_pattern"])

    def test_min_length_default_message(self):
        self.store.add_min_length({"f": {"minLength": 5}})

        rule_set = self.compiler.compile(["f"], self.store)

        self.assertEqual(rule_set.rules["f"]["minlength"], 5)
        self.assertEqual(rule_set.messages["f"]["minlength"], "Please enter at least 5 characters.")

    def test_max_length_default_message(self):
        self.store.add_max_length({"f": {"maxLength": 10}})

        rule_set = self.compiler.compile(["f"], self.store)

        self.assertEqual(rule_set.rules["f"]["maxlength"], 10)
        self.assertEqual(rule_set.messages["f"]["maxlength"], "Please enter no more than 10 characters.")

    def test_custom_message_overrides_length_default(self):
        self.store.add_min_length({"f": {"minLength": 5}})
        self.store.add_messages({"f": {"messages": {"minlength": "X"}}})

        rule_set = self.compiler.compile(["f"], self.store)

        self.assertEqual(rule_set.messages["f"]["minlength"], "X")

    def test_zero_bound_is_treated_as_absent(self):
        self.store.add_min_length({"f": {"minLength": 0}})
        self.store.add_max_length({"f": {"maxLength": 0}})

        rule_set = self.compiler.compile(["f"], self.store)

        self.assertNotIn("minlength", rule_set.rules["f"])
        self.assertNotIn("maxlength", rule_set.rules["f"])

    def test_strict_bounds_keep_zero(self):
        self.config.set("strict_bounds", True)
        self.store.add_max_length({"f": {"maxLength": 0}})

        rule_set = self.compiler.compile(["f"], self.store)

        self.assertEqual(rule_set.rules["f"]["maxlength"], 0)
        self.assertEqual(rule_set.messages["f"]["maxlength"], "Please enter no more than 0 characters.")

    def test_overlay_can_replace_required_message(self):
        self.store.add_messages({"email": {"messages": {"required": "We need your email."}}})

        rule_set = self.compiler.compile(["email"], self.store)

        self.assertEqual(rule_set.messages["email"]["required"], "We need your email.")

    def test_overlay_adds_new_rule_names(self):
        self.store.add_messages({"email": {"messages": {"remote": "Already taken"}}})

        rule_set = self.compiler.compile(["email"], self.store)

        self.assertEqual(rule_set.messages["email"]["remote"], "Already taken")
        self.assertNotIn("remote", rule_set.rules["email"])

    def test_only_listed_fields_are_compiled(self):
        self.store.add_min_length({"c": {"minLength": 3}})

        rule_set = self.compiler.compile(["a", "b"], self.store)

        self.assertEqual(list(rule_set.rules), ["a", "b"])
        self.assertEqual(list(rule_set.messages), ["a", "b"])
        self.assertEqual(rule_set.rules["a"], {"required": True})

    def test_field_order_follows_field_list(self):
        self.store.add_min_length({"b": {"minLength": 1}, "a": {"minLength": 1}})

        rule_set = self.compiler.compile(["a", "c", "b"], self.store)

        self.assertEqual(list(rule_set.rules), ["a", "c", "b"])

    def test_min_length_with_custom_message_scenario(self):
        self.store.add_min_length({"email": {"minLength": 5}})
        self.store.add_messages({"email": {"messages": {"minlength": "Too short!"}}})

        rule_set = self.compiler.compile(["email"], self.store)

        self.assertEqual(rule_set.rules["email"]["minlength"], 5)
        self.assertEqual(rule_set.messages["email"]["minlength"], "Too short!")
        self.assertIs(rule_set.rules["email"]["required"], True)

    def test_configured_default_messages(self):
        self.config.set("messages.required", "Required.")
        self.config.set("messages.minlength", "At least {0}.")
        self.store.add_min_length({"f": {"minLength": 2}})

        rule_set = self.compiler.compile(["f"], self.store)

        self.assertEqual(rule_set.messages["f"], {"required": "Required.", "minlength": "At least 2."})

    def test_malformed_length_template_is_used_as_is(self):
        self.config.set("messages.minlength", "At least {n} characters.")
        self.store.add_min_length({"f": {"minLength": 2}})

        with self.assertLogs("formfilter.core.compiler", level="WARNING"):
            rule_set = self.compiler.compile(["f"], self.store)

        self.assertEqual(rule_set.messages["f"]["minlength"], "At least {n} characters.")

    def test_non_string_templates_are_coerced(self):
        self.config.set("messages.maxlength", 5)
        self.config.set("messages.required", 7)
        self.store.add_max_length({"f": {"maxLength": 3}})

        rule_set = self.compiler.compile(["f"], self.store)

        self.assertEqual(rule_set.messages["f"], {"required": "7", "maxlength": "5"})

    def test_as_dict_returns_independent_copy(self):
        rule_set = self.compiler.compile(["f"], self.store)

        copied = rule_set.as_dict()
        copied["rules"]["f"]["required"] = False

        self.assertIs(rule_set.rules["f"]["required"], True)


if __name__ == '__main__':
    unittest.main()
