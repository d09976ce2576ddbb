"""
Bilingual field normalization.

Translatable fields arrive from clients either flat (a bare string in the
request language, as legacy callers send them) or nested (a partial or
complete mapping of language code to text). They are persisted nested,
with every supported language present, and projected back to a single
string per request language with fallback to the default language.

All functions here are pure: they return new structures and never mutate
the documents passed in.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Sequence, Union

from cms_backend.entities import EntitySchema, FieldKind
from cms_backend.languages import DEFAULT_LANGUAGES, LanguageConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlainString:
    """Flat text, implicitly in whichever language the caller speaks."""

    value: str


@dataclass(frozen=True)
class Localized:
    """Text keyed by language code; may be partial."""

    values: Mapping[str, str]


TranslatableValue = Union[PlainString, Localized]


def parse_translatable(
    raw: Any, config: LanguageConfig = DEFAULT_LANGUAGES, *, strict: bool = True
) -> Optional[TranslatableValue]:
    """Classify a raw field value, or return None when it has neither shape.

    In strict mode (writes) a mapping must carry at least one supported
    language key with a text value. Stored documents are read leniently:
    any mapping is localized text, keeping only its string values.
    """
    if isinstance(raw, str):
        return PlainString(raw)
    if not isinstance(raw, Mapping):
        return None

    present = {code: raw[code] for code in config.supported if code in raw}
    if not strict:
        return Localized(
            {code: text for code, text in present.items() if isinstance(text, str)}
        )
    if not present:
        return None
    if not all(text is None or isinstance(text, str) for text in present.values()):
        return None
    return Localized({code: text or "" for code, text in present.items()})


def localize(value: TranslatableValue, language: str) -> Localized:
    if isinstance(value, PlainString):
        return Localized({language: value.value})
    return value


def _prepare_value(raw: Any, language: str, config: LanguageConfig) -> Any:
    value = parse_translatable(raw, config)
    if value is None:
        # Neither text nor a language mapping: entity validation rejects it.
        return raw
    if isinstance(value, PlainString):
        return {language: value.value}
    return {code: value.values.get(code, "") for code in config.supported}


def _prepare_items(
    items: Any, sub_fields: Sequence[str], language: str, config: LanguageConfig
) -> Any:
    if not isinstance(items, list):
        return items
    prepared = []
    for item in items:
        if not isinstance(item, Mapping):
            prepared.append(item)
            continue
        new_item = dict(item)
        for sub in sub_fields:
            if sub in new_item:
                new_item[sub] = _prepare_value(new_item[sub], language, config)
        prepared.append(new_item)
    return prepared


def prepare_for_save(
    payload: Mapping[str, Any],
    language: str,
    schema: EntitySchema,
    config: LanguageConfig = DEFAULT_LANGUAGES,
) -> dict:
    """Convert a write payload's translatable fields to the nested shape.

    A string becomes ``{language: text}`` only; a language mapping keeps
    every supported key, defaulting missing ones to ``""``. Absent fields
    stay absent and opaque fields pass through unchanged.
    """
    prepared = dict(payload)
    for name, raw in payload.items():
        kind = schema.kind_of(name)
        if kind is FieldKind.TRANSLATABLE:
            prepared[name] = _prepare_value(raw, language, config)
        elif kind is FieldKind.COLLECTION:
            prepared[name] = _prepare_items(
                raw, schema.collections[name], language, config
            )
    return prepared


def _merge_value(existing: Any, raw: Any, language: str, config: LanguageConfig) -> Any:
    value = parse_translatable(raw, config)
    if value is None:
        return raw
    if isinstance(existing, Mapping):
        merged = dict(existing)
    elif isinstance(existing, str):
        # Stored before bilingual support; treat as fallback-language text.
        merged = {config.fallback: existing}
    else:
        merged = {}
    merged.update(localize(value, language).values)
    return merged


def _merge_items(
    existing: Any,
    raw: Any,
    sub_fields: Sequence[str],
    language: str,
    config: LanguageConfig,
) -> Any:
    if not isinstance(raw, list):
        return raw
    stored_by_id = {}
    if isinstance(existing, list):
        stored_by_id = {
            item["_id"]: item
            for item in existing
            if isinstance(item, Mapping) and item.get("_id")
        }

    merged_items = []
    for item in raw:
        if not isinstance(item, Mapping):
            merged_items.append(item)
            continue
        base = stored_by_id.get(item.get("_id"), {})
        merged = dict(base)
        for key, value in item.items():
            if key in sub_fields:
                merged[key] = _merge_value(base.get(key), value, language, config)
            else:
                merged[key] = value
        merged_items.append(merged)
    return merged_items


def merge_translations(
    stored: Mapping[str, Any],
    payload: Mapping[str, Any],
    language: str,
    schema: EntitySchema,
    config: LanguageConfig = DEFAULT_LANGUAGES,
) -> dict:
    """Apply an update payload to a stored document.

    Translatable fields merge per language: a string overwrites only the
    request language, a mapping overwrites only the keys it carries.
    Collection items carrying a known ``_id`` merge into the stored item;
    the payload decides which items exist and in what order.
    """
    merged = dict(stored)
    for name, raw in payload.items():
        kind = schema.kind_of(name)
        if kind is FieldKind.TRANSLATABLE:
            merged[name] = _merge_value(stored.get(name), raw, language, config)
        elif kind is FieldKind.COLLECTION:
            merged[name] = _merge_items(
                stored.get(name), raw, schema.collections[name], language, config
            )
        else:
            merged[name] = raw
    return merged


def _complete_value(value: Any, config: LanguageConfig) -> Any:
    if not isinstance(value, Mapping):
        return value
    completed = {code: "" for code in config.supported}
    for code in config.supported:
        text = value.get(code)
        if isinstance(text, str):
            completed[code] = text
        elif text is not None:
            # Left as-is so validation can report it.
            return value
    return completed


def canonicalize(
    document: Mapping[str, Any],
    schema: EntitySchema,
    config: LanguageConfig = DEFAULT_LANGUAGES,
) -> dict:
    """Give every translatable mapping all supported languages and every
    collection item a stable ``_id``."""
    result = dict(document)
    for name in schema.translatable:
        if name in result:
            result[name] = _complete_value(result[name], config)
    for name, sub_fields in schema.collections.items():
        items = result.get(name)
        if not isinstance(items, list):
            continue
        completed = []
        for item in items:
            if isinstance(item, Mapping):
                item = dict(item)
                item.setdefault("_id", uuid.uuid4().hex)
                for sub in sub_fields:
                    if sub in item:
                        item[sub] = _complete_value(item[sub], config)
            completed.append(item)
        result[name] = completed
    return result


_OMIT = object()


def _project_value(
    raw: Any, language: str, config: LanguageConfig, where: str
) -> Any:
    value = parse_translatable(raw, config, strict=False)
    if value is None:
        if raw is not None:
            logger.warning(
                "Unexpected %s value for translatable field %s; passing through",
                type(raw).__name__,
                where,
            )
        return raw
    if isinstance(value, PlainString):
        return value.value
    text = value.values.get(language) or value.values.get(config.fallback)
    return text if text else _OMIT


def _project_into(
    target: dict, name: str, language: str, config: LanguageConfig, where: str
) -> None:
    projected = _project_value(target[name], language, config, where)
    if projected is _OMIT:
        del target[name]
    else:
        target[name] = projected


def transform_by_language(
    entity: Optional[Mapping[str, Any]],
    language: str,
    schema: EntitySchema,
    config: LanguageConfig = DEFAULT_LANGUAGES,
) -> Optional[dict]:
    """Collapse every translatable field to the text for ``language``.

    Falls back to the default language when the requested one is empty,
    and omits the field when both are. Plain strings pass through.
    """
    if entity is None:
        return None

    projected = dict(entity)
    for name in schema.translatable:
        if name in projected:
            _project_into(projected, name, language, config, f"{schema.name}.{name}")

    for name, sub_fields in schema.collections.items():
        items = projected.get(name)
        if not isinstance(items, list):
            continue
        new_items = []
        for item in items:
            if isinstance(item, Mapping):
                item = dict(item)
                for sub in sub_fields:
                    if sub in item:
                        _project_into(
                            item, sub, language, config, f"{schema.name}.{name}[].{sub}"
                        )
            new_items.append(item)
        projected[name] = new_items
    return projected


def transform_array_by_language(
    entities: Optional[Sequence[Mapping[str, Any]]],
    language: str,
    schema: EntitySchema,
    config: LanguageConfig = DEFAULT_LANGUAGES,
) -> list[dict]:
    if not isinstance(entities, (list, tuple)):
        return []
    return [transform_by_language(entity, language, schema, config) for entity in entities]
