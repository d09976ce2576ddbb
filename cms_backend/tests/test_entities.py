import unittest

from cms_backend.entities import (
    BANNER,
    BLOG,
    FAQ,
    MENU,
    SETTINGS,
    WHAT_IS_QURAN,
    MEDIA,
    FieldKind,
    coerce_document,
    has_text,
    slugify,
    validate_document,
)
from cms_backend.errors import ValidationError
from cms_backend.languages import DEFAULT_LANGUAGES


class SchemaTests(unittest.TestCase):
    def test_field_kinds(self):
        self.assertIs(BANNER.kind_of("title"), FieldKind.TRANSLATABLE)
        self.assertIs(FAQ.kind_of("content"), FieldKind.COLLECTION)
        self.assertIs(BANNER.kind_of("videoUrl"), FieldKind.OPAQUE)
        self.assertIsNone(BANNER.kind_of("hacker"))

    def test_pick_drops_unknown_fields(self):
        picked = MENU.pick({"menuTitle": "Home", "linkUrl": "/", "_id": "x", "lang": "en"})
        self.assertEqual(picked, {"menuTitle": "Home", "linkUrl": "/"})

    def test_defaults_are_copied(self):
        first = SETTINGS.with_defaults({})
        first["socialMedia"]["facebook"] = "https://fb.test"
        self.assertEqual(SETTINGS.with_defaults({})["socialMedia"]["facebook"], "")


class HasTextTests(unittest.TestCase):
    def test_blank_values(self):
        self.assertFalse(has_text("  ", DEFAULT_LANGUAGES))
        self.assertFalse(has_text({"en": "", "es": " "}, DEFAULT_LANGUAGES))
        self.assertFalse(has_text(None, DEFAULT_LANGUAGES))

    def test_any_language_counts(self):
        self.assertTrue(has_text({"en": "", "es": "Hola"}, DEFAULT_LANGUAGES))
        self.assertTrue(has_text("Hello", DEFAULT_LANGUAGES))


class ValidateDocumentTests(unittest.TestCase):
    def test_required_translatable_field(self):
        with self.assertRaises(ValidationError) as ctx:
            validate_document({"title": {"en": "", "es": ""}}, BANNER, DEFAULT_LANGUAGES)
        self.assertIn("Banner title is required in at least one language", ctx.exception.messages)

    def test_partial_language_satisfies_required(self):
        validate_document({"title": {"en": "", "es": "Hola"}}, BANNER, DEFAULT_LANGUAGES)

    def test_collects_every_failure(self):
        document = {"menuTitle": {"en": "", "es": ""}, "linkUrl": " "}
        with self.assertRaises(ValidationError) as ctx:
            validate_document(document, MENU, DEFAULT_LANGUAGES)
        self.assertEqual(
            ctx.exception.messages,
            ["Menu title is required in at least one language", "Link URL is required"],
        )
        self.assertEqual(ctx.exception.status_code, 400)

    def test_malformed_translatable_value(self):
        with self.assertRaises(ValidationError) as ctx:
            validate_document({"title": 5}, BANNER, DEFAULT_LANGUAGES)
        self.assertIn("title must be text or an object keyed by language", ctx.exception.messages)

    def test_menu_cannot_parent_itself(self):
        document = {
            "_id": "a" * 32,
            "menuTitle": {"en": "Home", "es": ""},
            "linkUrl": "/",
            "parentMenuId": "a" * 32,
        }
        with self.assertRaises(ValidationError) as ctx:
            validate_document(document, MENU, DEFAULT_LANGUAGES)
        self.assertEqual(ctx.exception.messages, ["A menu item cannot be its own parent"])

    def test_faq_needs_content(self):
        with self.assertRaises(ValidationError) as ctx:
            validate_document({"content": []}, FAQ, DEFAULT_LANGUAGES)
        self.assertEqual(ctx.exception.messages, ["FAQ must have at least one content item"])

    def test_faq_items_need_title_and_description(self):
        document = {
            "content": [
                {"_id": "1", "title": {"en": "Q", "es": ""}, "description": {"en": "", "es": ""}}
            ]
        }
        with self.assertRaises(ValidationError) as ctx:
            validate_document(document, FAQ, DEFAULT_LANGUAGES)
        self.assertEqual(
            ctx.exception.messages,
            ["FAQ content description is required in at least one language"],
        )

    def test_blog_content_type(self):
        document = {"title": {"en": "Post", "es": ""}, "contentType": "Podcast"}
        with self.assertRaises(ValidationError) as ctx:
            validate_document(document, BLOG, DEFAULT_LANGUAGES)
        self.assertEqual(
            ctx.exception.messages, ["contentType must be one of Blog Post, Video"]
        )

    def test_page_requires_video(self):
        document = {
            "description1": {"en": "One", "es": ""},
            "description2": {"en": "Two", "es": ""},
            "description3": {"en": "Three", "es": ""},
        }
        with self.assertRaises(ValidationError) as ctx:
            validate_document(document, WHAT_IS_QURAN, DEFAULT_LANGUAGES)
        self.assertEqual(
            ctx.exception.messages,
            ["Video URL is required", "Video thumbnail is required"],
        )


class CoerceDocumentTests(unittest.TestCase):
    def test_casts_numeric_and_boolean_text(self):
        document = coerce_document({"order": "2", "isActive": "true"}, BANNER)
        self.assertEqual(document, {"order": 2, "isActive": True})
        self.assertEqual(
            coerce_document({"order": 3.0, "isActive": 0}, BANNER),
            {"order": 3, "isActive": False},
        )

    def test_wraps_single_tag(self):
        self.assertEqual(coerce_document({"tags": "news"}, MEDIA)["tags"], ["news"])

    def test_leaves_uncastable_values(self):
        document = {"order": "abc", "isActive": "maybe", "title": "x"}
        self.assertEqual(coerce_document(document, BANNER), document)

    def test_typed_fields_are_validated(self):
        document = {"title": {"en": "Hi", "es": ""}, "order": "abc", "isActive": "maybe"}
        with self.assertRaises(ValidationError) as ctx:
            validate_document(coerce_document(document, BANNER), BANNER, DEFAULT_LANGUAGES)
        self.assertEqual(
            ctx.exception.messages,
            ["order must be an integer", "isActive must be true or false"],
        )

    def test_booleans_are_not_integers(self):
        document = {"title": {"en": "Hi", "es": ""}, "order": True}
        with self.assertRaises(ValidationError) as ctx:
            validate_document(document, BANNER, DEFAULT_LANGUAGES)
        self.assertEqual(ctx.exception.messages, ["order must be an integer"])

    def test_list_fields_are_validated(self):
        document = {
            "title": {"en": "Hi", "es": ""},
            "contentType": "Video",
            "tags": {"a": 1},
        }
        with self.assertRaises(ValidationError) as ctx:
            validate_document(document, BLOG, DEFAULT_LANGUAGES)
        self.assertEqual(ctx.exception.messages, ["tags must be a list"])


class SlugTests(unittest.TestCase):
    def test_slugify(self):
        self.assertEqual(slugify("¿Qué es el Corán?"), "que-es-el-coran")
        self.assertEqual(slugify("  Hello,  World!  "), "hello-world")

    def test_blog_hook_fills_missing_slugs_per_language(self):
        document = {
            "title": {"en": "Hello World", "es": "Hola Mundo"},
            "slug": {"en": "custom", "es": ""},
        }
        for hook in BLOG.before_save:
            hook(document, DEFAULT_LANGUAGES)
        self.assertEqual(document["slug"], {"en": "custom", "es": "hola-mundo"})

    def test_blog_hook_leaves_empty_title_language_blank(self):
        document = {"title": {"en": "Only English", "es": ""}}
        for hook in BLOG.before_save:
            hook(document, DEFAULT_LANGUAGES)
        self.assertEqual(document["slug"], {"en": "only-english", "es": ""})


if __name__ == "__main__":
    unittest.main()
