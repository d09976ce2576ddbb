"""
Static field table for every content entity.

Each entity declares which of its fields are translatable (stored as a
mapping from language code to text), which are collections of items that
carry translatable sub-fields, and which are opaque values copied through
unchanged. The normalization layer and the routes are driven entirely by
these schemas.
"""

from __future__ import annotations

import copy
import re
import unicodedata
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Mapping, Optional

from cms_backend.errors import ValidationError
from cms_backend.languages import LanguageConfig


class FieldKind(str, Enum):
    TRANSLATABLE = "translatable"
    COLLECTION = "collection"
    OPAQUE = "opaque"


Validator = Callable[[dict, LanguageConfig], list[str]]
Hook = Callable[[dict, LanguageConfig], None]


@dataclass(frozen=True, eq=False)
class EntitySchema:
    name: str
    label: str
    collection: str
    translatable: tuple[str, ...] = ()
    # collection field -> translatable sub-fields of each item
    collections: Mapping[str, tuple[str, ...]] = field(default_factory=dict)
    opaque: tuple[str, ...] = ()
    # opaque fields with a JSON type; client strings like "2" or "true" are cast
    integers: tuple[str, ...] = ()
    booleans: tuple[str, ...] = ()
    lists: tuple[str, ...] = ()
    defaults: Mapping[str, Any] = field(default_factory=dict)
    # translatable field -> message when blank in every language
    required: Mapping[str, str] = field(default_factory=dict)
    # opaque field -> message when missing or empty
    required_opaque: Mapping[str, str] = field(default_factory=dict)
    unique: tuple[str, ...] = ()
    duplicate_message: str = "A document with the same unique value already exists"
    # query flag -> boolean field it filters on
    list_filters: Mapping[str, str] = field(default_factory=dict)
    default_sort: tuple[tuple[str, int], ...] = (("createdAt", -1),)
    before_save: tuple[Hook, ...] = ()
    validators: tuple[Validator, ...] = ()

    @property
    def fields(self) -> tuple[str, ...]:
        return self.translatable + tuple(self.collections) + self.opaque

    def kind_of(self, name: str) -> Optional[FieldKind]:
        if name in self.translatable:
            return FieldKind.TRANSLATABLE
        if name in self.collections:
            return FieldKind.COLLECTION
        if name in self.opaque:
            return FieldKind.OPAQUE
        return None

    def pick(self, payload: Mapping[str, Any]) -> dict:
        """Keep only the fields this entity knows about."""
        return {key: value for key, value in payload.items() if key in self.fields}

    def with_defaults(self, payload: Mapping[str, Any]) -> dict:
        document = copy.deepcopy(dict(self.defaults))
        document.update(payload)
        return document


def has_text(value: Any, config: LanguageConfig) -> bool:
    """True when a translatable value is non-blank in at least one language."""
    if isinstance(value, str):
        return bool(value.strip())
    if isinstance(value, Mapping):
        return any(
            isinstance(value.get(code), str) and value[code].strip()
            for code in config.supported
        )
    return False


def _is_canonical(value: Any, config: LanguageConfig) -> bool:
    return isinstance(value, Mapping) and all(
        isinstance(value.get(code), str) for code in config.supported
    )


_INTEGER_TEXT = re.compile(r"^[+-]?\d+$")
_TRUE_TEXT = ("true", "1", "yes")
_FALSE_TEXT = ("false", "0", "no")


def _is_integer(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _coerce_integer(value: Any) -> Any:
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and _INTEGER_TEXT.match(value.strip()):
        return int(value.strip())
    return value


def _coerce_boolean(value: Any) -> Any:
    if isinstance(value, str):
        text = value.strip().lower()
        if text in _TRUE_TEXT:
            return True
        if text in _FALSE_TEXT:
            return False
    if _is_integer(value) and value in (0, 1):
        return bool(value)
    return value


def coerce_document(document: Mapping[str, Any], schema: EntitySchema) -> dict:
    """Cast typed opaque fields; values that cannot be cast are left for validation."""
    coerced = dict(document)
    for name in schema.integers:
        if name in coerced:
            coerced[name] = _coerce_integer(coerced[name])
    for name in schema.booleans:
        if name in coerced:
            coerced[name] = _coerce_boolean(coerced[name])
    for name in schema.lists:
        if isinstance(coerced.get(name), str):
            coerced[name] = [coerced[name]]
    return coerced


def validate_document(
    document: Mapping[str, Any], schema: EntitySchema, config: LanguageConfig
) -> None:
    """Raise ``ValidationError`` listing every rule the document breaks."""
    errors: list[str] = []

    for name in schema.translatable:
        if name in document and document[name] is not None:
            if not _is_canonical(document[name], config):
                errors.append(f"{name} must be text or an object keyed by language")
    for name, message in schema.required.items():
        if not has_text(document.get(name), config):
            errors.append(message)

    for name, message in schema.required_opaque.items():
        value = document.get(name)
        if value is None or (isinstance(value, str) and not value.strip()):
            errors.append(message)

    for name in schema.integers:
        value = document.get(name)
        if value is not None and not _is_integer(value):
            errors.append(f"{name} must be an integer")
    for name in schema.booleans:
        value = document.get(name)
        if value is not None and not isinstance(value, bool):
            errors.append(f"{name} must be true or false")
    for name in schema.lists:
        value = document.get(name)
        if value is not None and not isinstance(value, list):
            errors.append(f"{name} must be a list")

    for name, sub_fields in schema.collections.items():
        items = document.get(name)
        if items is None:
            continue
        if not isinstance(items, list):
            errors.append(f"{name} must be a list")
            continue
        for index, item in enumerate(items):
            if not isinstance(item, Mapping):
                errors.append(f"{name}[{index}] must be an object")
                continue
            for sub in sub_fields:
                if sub in item and item[sub] is not None:
                    if not _is_canonical(item[sub], config):
                        errors.append(
                            f"{name}[{index}].{sub} must be text or an object keyed by language"
                        )

    for validator in schema.validators:
        errors.extend(validator(dict(document), config))

    if errors:
        raise ValidationError(errors)


def slugify(text: str) -> str:
    folded = unicodedata.normalize("NFKD", text).encode("ascii", "ignore").decode("ascii")
    return re.sub(r"[^a-z0-9]+", "-", folded.lower()).strip("-")


def _generate_blog_slugs(document: dict, config: LanguageConfig) -> None:
    title = document.get("title")
    if not isinstance(title, Mapping):
        return
    slug = document.get("slug")
    slug = dict(slug) if isinstance(slug, Mapping) else {}
    for code in config.supported:
        if not (slug.get(code) or "").strip() and (title.get(code) or "").strip():
            slug[code] = slugify(title[code])
        slug.setdefault(code, "")
    document["slug"] = slug


def _lowercase(name: str) -> Hook:
    def hook(document: dict, config: LanguageConfig) -> None:
        if isinstance(document.get(name), str):
            document[name] = document[name].strip().lower()

    return hook


def _check_content_type(document: dict, config: LanguageConfig) -> list[str]:
    if document.get("contentType") not in BLOG_CONTENT_TYPES:
        return [f"contentType must be one of {', '.join(BLOG_CONTENT_TYPES)}"]
    return []


def _check_menu_parent(document: dict, config: LanguageConfig) -> list[str]:
    parent = document.get("parentMenuId")
    if parent and document.get("_id") and parent == document["_id"]:
        return ["A menu item cannot be its own parent"]
    return []


def _check_faq_content(document: dict, config: LanguageConfig) -> list[str]:
    items = document.get("content")
    if not isinstance(items, list) or not items:
        return ["FAQ must have at least one content item"]
    errors = []
    for item in items:
        if not isinstance(item, Mapping):
            continue
        if not has_text(item.get("title"), config):
            errors.append("FAQ content title is required in at least one language")
        if not has_text(item.get("description"), config):
            errors.append("FAQ content description is required in at least one language")
    return errors


BLOG_CONTENT_TYPES = ("Blog Post", "Video")

BANNER = EntitySchema(
    name="banner",
    label="Banner",
    collection="banners",
    translatable=("title", "subtitle", "ctaButtonText"),
    opaque=(
        "desktopBackgroundImageUrl",
        "mobileBackgroundImageUrl",
        "backgroundImageUrl",
        "videoUrl",
        "ctaButtonLink",
        "order",
        "isActive",
    ),
    integers=("order",),
    booleans=("isActive",),
    defaults={"order": 0, "isActive": True},
    required={"title": "Banner title is required in at least one language"},
    list_filters={"activeOnly": "isActive"},
    default_sort=(("order", 1), ("createdAt", -1)),
)

MENU = EntitySchema(
    name="menu",
    label="Menu item",
    collection="menus",
    translatable=("menuTitle",),
    opaque=("linkUrl", "visibleOnSite", "openInNewTab", "order", "parentMenuId"),
    integers=("order",),
    booleans=("visibleOnSite", "openInNewTab"),
    defaults={
        "visibleOnSite": True,
        "openInNewTab": False,
        "order": 0,
        "parentMenuId": None,
    },
    required={"menuTitle": "Menu title is required in at least one language"},
    required_opaque={"linkUrl": "Link URL is required"},
    list_filters={"visibleOnly": "visibleOnSite"},
    default_sort=(("order", 1), ("createdAt", 1)),
    validators=(_check_menu_parent,),
)

BLOG = EntitySchema(
    name="blog",
    label="Blog post",
    collection="blogs",
    translatable=(
        "title",
        "excerpt",
        "slug",
        "content",
        "bottomLeftContent",
        "bottomRightContent",
    ),
    opaque=(
        "contentType",
        "featuredImageUrl",
        "published",
        "author",
        "tags",
        "views",
        "categoryId",
    ),
    integers=("views",),
    booleans=("published",),
    lists=("tags",),
    defaults={
        "contentType": "Blog Post",
        "published": False,
        "tags": [],
        "views": 0,
        "categoryId": None,
    },
    required={"title": "Blog title is required in at least one language"},
    unique=("slug.en", "slug.es"),
    duplicate_message="Slug already exists. Please use a different slug.",
    list_filters={"publishedOnly": "published"},
    before_save=(_generate_blog_slugs,),
    validators=(_check_content_type,),
)

FAQ = EntitySchema(
    name="faq",
    label="FAQ",
    collection="faqs",
    translatable=("description",),
    collections={"content": ("title", "description")},
    opaque=("published", "order"),
    integers=("order",),
    booleans=("published",),
    defaults={"published": True, "order": 0},
    list_filters={"publishedOnly": "published"},
    default_sort=(("order", 1), ("createdAt", -1)),
    validators=(_check_faq_content,),
)

FOOTER = EntitySchema(
    name="footer",
    label="Footer",
    collection="footers",
    translatable=("copyrightTitle", "description", "address", "additionalInfo"),
    collections={"links": ("title",), "quickLinks": ("title",)},
    opaque=("phone", "email", "socialMedia", "poweredBy", "followSections"),
    lists=("socialMedia",),
    defaults={"links": [], "quickLinks": [], "socialMedia": []},
    before_save=(_lowercase("email"),),
)

BASICS = EntitySchema(
    name="basics",
    label="Basics content",
    collection="basics",
    translatable=("introduction",),
    opaque=("published", "order"),
    integers=("order",),
    booleans=("published",),
    defaults={"published": True, "order": 0},
    required={"introduction": "Introduction is required in at least one language"},
    list_filters={"publishedOnly": "published"},
    default_sort=(("order", 1), ("createdAt", -1)),
)

_PAGE_DESCRIPTIONS = ("description1", "description2", "description3")


def _page_schema(name: str, label: str, collection: str) -> EntitySchema:
    return EntitySchema(
        name=name,
        label=label,
        collection=collection,
        translatable=_PAGE_DESCRIPTIONS,
        opaque=("videoUrl", "videoThumbnail", "published", "order"),
        integers=("order",),
        booleans=("published",),
        defaults={"published": True, "order": 0},
        required={
            description: "All three descriptions are required in at least one language"
            for description in _PAGE_DESCRIPTIONS
        },
        required_opaque={
            "videoUrl": "Video URL is required",
            "videoThumbnail": "Video thumbnail is required",
        },
        list_filters={"publishedOnly": "published"},
        default_sort=(("order", 1), ("createdAt", -1)),
    )


WHAT_IS_ISLAM = _page_schema("what-is-islam", "What Is Islam content", "what_is_islam")
WHAT_IS_QURAN = _page_schema("what-is-quran", "What Is Quran content", "what_is_quran")

SOCIAL_MEDIA_PLATFORMS = ("facebook", "twitter", "instagram", "linkedin", "youtube")

SETTINGS = EntitySchema(
    name="settings",
    label="Settings",
    collection="settings",
    opaque=(
        "siteName",
        "logoUrl",
        "faviconUrl",
        "contactEmail",
        "contactPhone",
        "socialMedia",
        "metaDescription",
        "metaKeywords",
        "address",
        "timezone",
        "language",
    ),
    defaults={
        "siteName": "",
        "logoUrl": "",
        "faviconUrl": "",
        "contactEmail": "",
        "contactPhone": "",
        "socialMedia": {platform: "" for platform in SOCIAL_MEDIA_PLATFORMS},
        "metaDescription": "",
        "metaKeywords": "",
        "address": "",
        "timezone": "UTC",
        "language": "en",
    },
    before_save=(_lowercase("contactEmail"),),
)

MEDIA = EntitySchema(
    name="media",
    label="Media file",
    collection="media",
    opaque=(
        "filename",
        "originalName",
        "fileType",
        "mimeType",
        "fileSize",
        "fileUrl",
        "storageKey",
        "description",
        "altText",
        "uploadedBy",
        "tags",
        "isActive",
    ),
    integers=("fileSize",),
    booleans=("isActive",),
    lists=("tags",),
    defaults={"description": "", "altText": "", "tags": [], "isActive": True},
)

USERS_COLLECTION = "users"

# Content entities served through the generic CRUD routes.
CONTENT_SCHEMAS = (BANNER, MENU, FAQ, BASICS, WHAT_IS_ISLAM, WHAT_IS_QURAN)

ENTITY_SCHEMAS: dict[str, EntitySchema] = {
    schema.name: schema
    for schema in CONTENT_SCHEMAS + (BLOG, FOOTER, SETTINGS, MEDIA)
}

UNIQUE_INDEXES: dict[str, tuple[str, ...]] = {
    schema.collection: schema.unique
    for schema in ENTITY_SCHEMAS.values()
    if schema.unique
}
UNIQUE_INDEXES[USERS_COLLECTION] = ("email",)

# Fields holding JSON arrays; equality filters on them match by membership.
ARRAY_PATHS: dict[str, tuple[str, ...]] = {
    schema.collection: schema.lists + tuple(schema.collections)
    for schema in ENTITY_SCHEMAS.values()
    if schema.lists or schema.collections
}
