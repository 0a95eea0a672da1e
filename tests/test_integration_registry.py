import unittest

from pydantic import BaseModel

from jarvisagent.tools.catalog import build_default_registry
from jarvisagent.tools.registry import IntegrationFunction, IntegrationRegistry


class _NoParams(BaseModel):
    pass


def _function(name: str, description: str = "Does a thing", category: str = "misc"):
    return IntegrationFunction(
        name=name,
        description=description,
        category=category,
        schema={"type": "object", "properties": {}, "required": []},
        params_model=_NoParams,
    )


class IntegrationRegistryTests(unittest.TestCase):
    def test_default_registry_lists_functions_in_registration_order(self):
        registry = build_default_registry()

        self.assertEqual(
            registry.names(),
            [
                "get_emails",
                "search_emails",
                "get_email",
                "send_email",
                "get_calendar_events",
                "get_today_events",
                "create_calendar_event",
                "update_calendar_event",
                "delete_calendar_event",
            ],
        )

    def test_register_rejects_duplicate_names(self):
        registry = IntegrationRegistry()
        registry.register(_function("ping"))

        with self.assertRaises(ValueError):
            registry.register(_function("ping", description="Another ping"))
        self.assertEqual(len(registry.list()), 1)

    def test_find_returns_none_for_unknown_name(self):
        registry = build_default_registry()

        self.assertIsNone(registry.find("drive_search"))
        self.assertEqual(registry.find("send_email").category, "gmail")

    def test_search_matches_name_description_and_category_case_insensitively(self):
        registry = build_default_registry()

        calendar_names = [fn.name for fn in registry.search("CALENDAR")]
        self.assertIn("create_calendar_event", calendar_names)
        self.assertIn("get_today_events", calendar_names)
        self.assertNotIn("send_email", calendar_names)

        email_names = [fn.name for fn in registry.search("email")]
        self.assertIn("send_email", email_names)

    def test_search_with_blank_query_yields_nothing(self):
        registry = build_default_registry()

        self.assertEqual(list(registry.search("")), [])
        self.assertEqual(list(registry.search("   ")), [])

    def test_tool_schema_uses_function_wrapper_shape(self):
        registry = build_default_registry()
        schema = registry.tool_schema()

        self.assertEqual(len(schema), len(registry.list()))
        send = next(row for row in schema if row["function"]["name"] == "send_email")
        self.assertEqual(send["type"], "function")
        self.assertEqual(
            sorted(send["function"]["parameters"]["required"]),
            ["body", "subject", "to"],
        )

    def test_required_fields_match_schema(self):
        registry = build_default_registry()

        self.assertEqual(registry.find("delete_calendar_event").required_fields(), ("event_id",))
        self.assertEqual(registry.find("get_emails").required_fields(), ())

    def test_schema_properties_and_required_fields_match_parameter_models(self):
        for function in build_default_registry().list():
            with self.subTest(function=function.name):
                fields = function.params_model.model_fields
                model_required = {
                    name for name, info in fields.items() if info.is_required()
                }
                self.assertEqual(set(function.required_fields()), model_required)
                self.assertEqual(set(function.schema["properties"]), set(fields))


if __name__ == "__main__":
    unittest.main()
