import copy
import unittest

from cms_backend.entities import BANNER, BASICS, BLOG, FAQ, FOOTER
from cms_backend.translatable import (
    Localized,
    PlainString,
    canonicalize,
    merge_translations,
    parse_translatable,
    prepare_for_save,
    transform_array_by_language,
    transform_by_language,
)


class ParseTranslatableTests(unittest.TestCase):
    def test_string_is_plain(self):
        self.assertEqual(parse_translatable("Hola"), PlainString("Hola"))

    def test_partial_mapping_is_localized(self):
        self.assertEqual(
            parse_translatable({"es": "Hola", "fr": "Salut"}),
            Localized({"es": "Hola"}),
        )

    def test_unrecognized_shapes(self):
        self.assertIsNone(parse_translatable(42))
        self.assertIsNone(parse_translatable({"fr": "Salut"}))
        self.assertIsNone(parse_translatable({"en": 3}))
        self.assertIsNone(parse_translatable(["Hello"]))


class PrepareForSaveTests(unittest.TestCase):
    def test_string_fills_only_requested_language(self):
        prepared = prepare_for_save({"title": "Hola"}, "es", BANNER)
        self.assertEqual(prepared["title"], {"es": "Hola"})

    def test_mapping_gets_both_languages(self):
        prepared = prepare_for_save({"title": {"en": "Hello"}}, "es", BANNER)
        self.assertEqual(prepared["title"], {"en": "Hello", "es": ""})

    def test_absent_fields_stay_absent(self):
        prepared = prepare_for_save({"title": "Hi"}, "en", BANNER)
        self.assertNotIn("subtitle", prepared)
        self.assertNotIn("ctaButtonText", prepared)

    def test_opaque_fields_pass_through(self):
        payload = {"title": "Hi", "videoUrl": "https://v.test/1", "order": 3}
        prepared = prepare_for_save(payload, "en", BANNER)
        self.assertEqual(prepared["videoUrl"], "https://v.test/1")
        self.assertEqual(prepared["order"], 3)

    def test_malformed_value_left_untouched(self):
        prepared = prepare_for_save({"title": 12}, "en", BANNER)
        self.assertEqual(prepared["title"], 12)

    def test_nested_collection_items(self):
        payload = {
            "content": [
                {"title": "Pregunta", "description": {"es": "Respuesta"}},
                {"title": {"en": "Q"}},
            ]
        }
        prepared = prepare_for_save(payload, "es", FAQ)
        self.assertEqual(
            prepared["content"][0],
            {"title": {"es": "Pregunta"}, "description": {"en": "", "es": "Respuesta"}},
        )
        self.assertEqual(prepared["content"][1], {"title": {"en": "Q", "es": ""}})

    def test_footer_links_keep_opaque_sub_fields(self):
        payload = {"links": [{"title": "Home", "url": "/"}]}
        prepared = prepare_for_save(payload, "en", FOOTER)
        self.assertEqual(prepared["links"], [{"title": {"en": "Home"}, "url": "/"}])

    def test_does_not_mutate_input(self):
        payload = {"content": [{"title": "Q", "description": "A"}]}
        original = copy.deepcopy(payload)
        prepare_for_save(payload, "en", FAQ)
        self.assertEqual(payload, original)


class TransformByLanguageTests(unittest.TestCase):
    def test_round_trip_for_every_translatable_field(self):
        for schema in (BANNER, BLOG, BASICS, FOOTER):
            for field in schema.translatable:
                for language in ("en", "es"):
                    prepared = prepare_for_save({field: "texto"}, language, schema)
                    projected = transform_by_language(prepared, language, schema)
                    self.assertEqual(projected[field], "texto", (schema.name, field))

    def test_falls_back_to_english_when_requested_is_empty(self):
        entity = {"title": {"en": "hello", "es": ""}}
        self.assertEqual(transform_by_language(entity, "es", BANNER)["title"], "hello")

    def test_both_empty_is_omitted(self):
        entity = {"title": {"en": "", "es": ""}, "order": 1}
        projected = transform_by_language(entity, "es", BANNER)
        self.assertNotIn("title", projected)
        self.assertEqual(projected["order"], 1)

    def test_requested_language_wins(self):
        entity = {"title": {"en": "Hello", "es": "Hola"}}
        self.assertEqual(transform_by_language(entity, "es", BANNER)["title"], "Hola")

    def test_plain_strings_pass_through_and_projection_is_idempotent(self):
        entity = {"title": {"en": "Hello", "es": "Hola"}, "subtitle": "legacy"}
        once = transform_by_language(entity, "en", BANNER)
        self.assertEqual(once["subtitle"], "legacy")
        self.assertEqual(transform_by_language(once, "en", BANNER), once)

    def test_none_entity(self):
        self.assertIsNone(transform_by_language(None, "en", BANNER))

    def test_malformed_stored_value_is_kept(self):
        with self.assertLogs("cms_backend.translatable", level="WARNING"):
            projected = transform_by_language({"title": 7}, "en", BANNER)
        self.assertEqual(projected["title"], 7)

    def test_nested_collections_project_per_item(self):
        entity = {
            "content": [
                {"_id": "a", "title": {"en": "Q1", "es": "P1"}, "description": {"en": "A1", "es": ""}},
                {"_id": "b", "title": {"en": "", "es": ""}, "description": "legacy"},
            ]
        }
        projected = transform_by_language(entity, "es", FAQ)
        self.assertEqual(
            projected["content"],
            [
                {"_id": "a", "title": "P1", "description": "A1"},
                {"_id": "b", "description": "legacy"},
            ],
        )

    def test_blog_content_is_plain_translatable(self):
        entity = {"content": {"en": "<p>Body</p>", "es": "<p>Cuerpo</p>"}}
        self.assertEqual(
            transform_by_language(entity, "es", BLOG)["content"], "<p>Cuerpo</p>"
        )

    def test_does_not_mutate_input(self):
        entity = {
            "title": {"en": "Hello", "es": "Hola"},
            "links": [{"title": {"en": "Home", "es": "Inicio"}}],
        }
        original = copy.deepcopy(entity)
        transform_by_language(entity, "es", FOOTER)
        self.assertEqual(entity, original)


class TransformArrayTests(unittest.TestCase):
    def test_preserves_order_and_count(self):
        entities = [{"title": {"en": f"T{i}", "es": f"E{i}"}} for i in range(5)]
        projected = transform_array_by_language(entities, "es", BANNER)
        self.assertEqual([item["title"] for item in projected], [f"E{i}" for i in range(5)])

    def test_empty_and_invalid_inputs(self):
        self.assertEqual(transform_array_by_language([], "en", BANNER), [])
        self.assertEqual(transform_array_by_language(None, "en", BANNER), [])


class MergeTranslationsTests(unittest.TestCase):
    def test_string_update_keeps_other_language(self):
        stored = {"title": {"en": "Hello", "es": "Hola"}}
        merged = merge_translations(stored, {"title": "Hola de nuevo"}, "es", BANNER)
        self.assertEqual(merged["title"], {"en": "Hello", "es": "Hola de nuevo"})

    def test_partial_mapping_update_keeps_absent_keys(self):
        stored = {"title": {"en": "Hello", "es": "Hola"}}
        merged = merge_translations(stored, {"title": {"en": "Hi"}}, "es", BANNER)
        self.assertEqual(merged["title"], {"en": "Hi", "es": "Hola"})

    def test_legacy_string_is_treated_as_fallback_language(self):
        merged = merge_translations({"title": "Hello"}, {"title": "Hola"}, "es", BANNER)
        self.assertEqual(merged["title"], {"en": "Hello", "es": "Hola"})

    def test_collection_items_merge_by_id(self):
        stored = {
            "content": [
                {"_id": "a", "title": {"en": "Q", "es": ""}, "description": {"en": "A", "es": ""}},
                {"_id": "b", "title": {"en": "Q2", "es": ""}, "description": {"en": "A2", "es": ""}},
            ]
        }
        payload = {
            "content": [
                {"_id": "b", "title": "P2"},
                {"title": "Nueva", "description": "Respuesta"},
            ]
        }
        merged = merge_translations(stored, payload, "es", FAQ)
        self.assertEqual(
            merged["content"][0],
            {"_id": "b", "title": {"en": "Q2", "es": "P2"}, "description": {"en": "A2", "es": ""}},
        )
        self.assertEqual(
            merged["content"][1],
            {"title": {"es": "Nueva"}, "description": {"es": "Respuesta"}},
        )

    def test_does_not_mutate_stored(self):
        stored = {"title": {"en": "Hello", "es": "Hola"}}
        merge_translations(stored, {"title": "Hey"}, "en", BANNER)
        self.assertEqual(stored, {"title": {"en": "Hello", "es": "Hola"}})


class CanonicalizeTests(unittest.TestCase):
    def test_fills_missing_languages_and_item_ids(self):
        document = {
            "description": {"es": "Hola"},
            "content": [{"title": {"en": "Q"}, "description": {"es": "R"}}],
        }
        result = canonicalize(document, FAQ)
        self.assertEqual(result["description"], {"en": "", "es": "Hola"})
        item = result["content"][0]
        self.assertEqual(len(item["_id"]), 32)
        self.assertEqual(item["title"], {"en": "Q", "es": ""})
        self.assertEqual(item["description"], {"en": "", "es": "R"})
        self.assertNotIn("_id", document["content"][0])

    def test_keeps_existing_item_ids(self):
        result = canonicalize({"links": [{"_id": "x", "title": {"en": "Home"}}]}, FOOTER)
        self.assertEqual(result["links"][0]["_id"], "x")


if __name__ == "__main__":
    unittest.main()
