import unittest
from unittest import mock

from application.services.retrieval_service import RetrievalService
from domain.entities import Category, LoreContext, LoreResult
from domain.errors import NotInitializedError, UpstreamUnavailableError
from ui.tools.handlers import handle_lore_tool


def make_result(title="Sigmar", text="Sigmar is the patron god of the Empire.", relevance=0.87):
    return LoreResult(
        text=text,
        title=title,
        category=Category.DEITY,
        relevance=relevance,
        source_url="https://example.org/sigmar",
    )


class TestLoreSearchTool(unittest.TestCase):
    def setUp(self):
        self.service = mock.create_autospec(RetrievalService, instance=True)

    def test_renders_ranked_results(self):
        self.service.search.return_value = [make_result(), make_result("Ulric", "Ulric is the god of winter.", 0.5)]

        text = handle_lore_tool(self.service, "lore_search", {"query": "gods", "category": "deity"})

        self.assertIn("## Lore Search Results", text)
        self.assertIn('*Query: "gods" | Category: deity*', text)
        self.assertIn("### 1. Sigmar (deity)", text)
        self.assertIn("**Relevance:** 87%", text)
        self.assertIn("### 2. Ulric (deity)", text)
        self.service.search.assert_called_once_with("gods", limit=5, category=Category.DEITY)

    def test_limit_is_clamped(self):
        self.service.search.return_value = []
        handle_lore_tool(self.service, "lore_search", {"query": "gods", "limit": 50})
        self.assertEqual(self.service.search.call_args.kwargs["limit"], 10)

        handle_lore_tool(self.service, "lore_search", {"query": "gods", "limit": 0})
        self.assertEqual(self.service.search.call_args.kwargs["limit"], 1)

    def test_long_text_is_previewed(self):
        self.service.search.return_value = [make_result(text="a" * 800)]

        text = handle_lore_tool(self.service, "lore_search", {"query": "gods"})

        self.assertIn("a" * 500 + "...", text)
        self.assertNotIn("a" * 501, text)

    def test_no_results(self):
        self.service.search.return_value = []
        text = handle_lore_tool(self.service, "lore_search", {"query": "teapots"})
        self.assertTrue(text.startswith('No lore found for: "teapots"'))

    def test_unknown_category_is_rendered_as_error(self):
        text = handle_lore_tool(self.service, "lore_search", {"query": "gods", "category": "vehicle"})
        self.assertTrue(text.startswith("**Error:**"))
        self.service.search.assert_not_called()

    def test_missing_query_is_rendered_as_error(self):
        text = handle_lore_tool(self.service, "lore_search", {})
        self.assertEqual(text, "**Error:** Missing argument 'query'")
        self.service.search.assert_not_called()

    def test_internal_key_errors_are_not_reported_as_arguments(self):
        self.service.search.side_effect = KeyError(7)
        with self.assertRaises(KeyError):
            handle_lore_tool(self.service, "lore_search", {"query": "gods"})


class TestLoreLookupTool(unittest.TestCase):
    def setUp(self):
        self.service = mock.create_autospec(RetrievalService, instance=True)

    def test_found(self):
        self.service.lookup_entity.return_value = make_result(relevance=1.0)

        text = handle_lore_tool(self.service, "lore_lookup", {"name": "Sigmar"})

        self.assertTrue(text.startswith("## Sigmar\n**Type:** deity\n**Relevance:** 100%"))
        self.assertIn("*Source: https://example.org/sigmar*", text)
        self.service.lookup_entity.assert_called_once_with("Sigmar", None)

    def test_category_is_passed_through(self):
        self.service.lookup_entity.return_value = None
        handle_lore_tool(self.service, "lore_lookup", {"name": "Nuln", "category": "location"})
        self.service.lookup_entity.assert_called_once_with("Nuln", Category.LOCATION)

    def test_not_found(self):
        self.service.lookup_entity.return_value = None
        text = handle_lore_tool(self.service, "lore_lookup", {"name": "Nobody"})
        self.assertTrue(text.startswith('Entity not found: "Nobody"'))

    def test_engine_errors_are_rendered(self):
        self.service.lookup_entity.side_effect = NotInitializedError("Lore repository is uninitialized.")
        with self.assertLogs("ui.tools.handlers", level="ERROR"):
            text = handle_lore_tool(self.service, "lore_lookup", {"name": "Sigmar"})
        self.assertEqual(text, "**Error:** Lore repository is uninitialized.")


class TestLoreContextTool(unittest.TestCase):
    def setUp(self):
        self.service = mock.create_autospec(RetrievalService, instance=True)

    def test_renders_context_with_sources(self):
        self.service.get_context_for_situation.return_value = LoreContext(
            text="## Relevant Lore\n\n### Sigmar\nPatron god.\n\n",
            sources=["Sigmar", "Altdorf"],
        )

        text = handle_lore_tool(
            self.service,
            "lore_context",
            {"situation": "Entering the temple", "entities": ["Sigmar"], "maxLength": 1500},
        )

        self.assertTrue(text.startswith("## Relevant Lore"))
        self.assertTrue(text.endswith("---\n*Sources: Sigmar, Altdorf*"))
        self.service.get_context_for_situation.assert_called_once_with(
            "Entering the temple", ["Sigmar"], max_length=1500
        )

    def test_default_budget(self):
        self.service.get_context_for_situation.return_value = LoreContext.empty()

        text = handle_lore_tool(self.service, "lore_context", {"situation": "Quiet road"})

        self.assertTrue(text.startswith("No relevant lore found for this situation."))
        self.service.get_context_for_situation.assert_called_once_with("Quiet road", [], max_length=2000)

    def test_upstream_errors_are_rendered(self):
        self.service.get_context_for_situation.side_effect = UpstreamUnavailableError("Chroma is down")
        with self.assertLogs("ui.tools.handlers", level="ERROR"):
            text = handle_lore_tool(self.service, "lore_context", {"situation": "Anything"})
        self.assertEqual(text, "**Error:** Chroma is down")


class TestLoreStatusTool(unittest.TestCase):
    def setUp(self):
        self.service = mock.create_autospec(RetrievalService, instance=True)

    def test_online(self):
        self.service.is_ready.return_value = True
        self.service.document_count.return_value = 12345

        text = handle_lore_tool(self.service, "lore_status", None)

        self.assertIn("**Status:** Online", text)
        self.assertIn("**Documents:** 12,345", text)

    def test_not_available(self):
        self.service.is_ready.return_value = False

        text = handle_lore_tool(self.service, "lore_status", {})

        self.assertIn("**Status:** Not Available", text)
        self.service.document_count.assert_not_called()


class TestDispatch(unittest.TestCase):
    def test_unknown_tool(self):
        service = mock.create_autospec(RetrievalService, instance=True)
        self.assertEqual(handle_lore_tool(service, "lore_delete", {}), "**Error:** Unknown tool: lore_delete")


if __name__ == "__main__":
    unittest.main()
