"""
HTTP routes for the content-management API.
"""

from __future__ import annotations

import logging
import math
import re
import uuid
from typing import Any, Callable, Optional

from fastapi import (
    APIRouter,
    Body,
    Depends,
    File,
    Form,
    HTTPException,
    Query,
    Request,
    UploadFile,
)
from fastapi.responses import JSONResponse

from cms_backend.config import get_settings
from cms_backend.db import ID_PATTERN, DbClient, Sort
from cms_backend.dependencies import get_db_client, get_storage_client
from cms_backend.entities import (
    BLOG,
    CONTENT_SCHEMAS,
    FOOTER,
    MEDIA,
    SETTINGS,
    SOCIAL_MEDIA_PLATFORMS,
    EntitySchema,
    FieldKind,
    has_text,
)
from cms_backend.errors import NotFoundError, ValidationError
from cms_backend.languages import (
    LanguageConfig,
    get_language_config,
    get_request_language,
    resolve_write_language,
)
from cms_backend.schemas import (
    ItemResponse,
    ListResponse,
    LoginRequest,
    LoginResponse,
    PagedListResponse,
    UploadManyResponse,
    UserSummary,
)
from cms_backend.security import CurrentUser, create_access_token, require_user
from cms_backend.services import ContentService
from cms_backend.storage import StorageClient
from cms_backend import users

logger = logging.getLogger(__name__)

router = APIRouter()

ALL_LANGUAGES = "all"


def service_for(schema: EntitySchema) -> Callable[..., ContentService]:
    def dependency(
        db: DbClient = Depends(get_db_client),
        languages: LanguageConfig = Depends(get_language_config),
    ) -> ContentService:
        return ContentService(db, schema, languages)

    return dependency


def _item(data: Any, *, message: str | None = None, language: str | None = None):
    fields: dict[str, Any] = {"success": True, "data": data}
    if message:
        fields["message"] = message
    if language:
        fields["language"] = language
    return ItemResponse(**fields)


def _flag(value: Optional[str]) -> bool:
    return value == "true"


def _read_one(
    service: ContentService, document: dict, language: str, all_languages: bool
) -> ItemResponse:
    if all_languages:
        return _item(document, language=ALL_LANGUAGES)
    return _item(service.project(document, language), language=language)


def _read_many(
    service: ContentService, documents: list[dict], language: str, all_languages: bool
) -> tuple[list[dict], str]:
    if all_languages:
        return documents, ALL_LANGUAGES
    return service.project_many(documents, language), language


def _boolean_filters(schema: EntitySchema, request: Request) -> dict:
    return {
        field: True
        for flag, field in schema.list_filters.items()
        if _flag(request.query_params.get(flag))
    }


def _sort_spec(
    service: ContentService, sort_by: str, sort_order: str, language: Optional[str] = None
) -> Sort:
    """Sort translatable fields by their text in the request language, then the fallback."""
    direction = 1 if sort_order == "asc" else -1
    if service.schema.kind_of(sort_by) is FieldKind.TRANSLATABLE:
        fallback = service.languages.fallback
        return [((f"{sort_by}.{language or fallback}", f"{sort_by}.{fallback}"), direction)]
    return [(sort_by, direction)]


def build_content_router(schema: EntitySchema) -> APIRouter:
    """CRUD routes shared by every list-shaped bilingual entity."""
    entity_router = APIRouter(prefix=f"/{schema.name}", tags=[schema.name])
    get_service = service_for(schema)

    @entity_router.post(
        "/add",
        response_model=ItemResponse,
        status_code=201,
        response_model_exclude_unset=True,
    )
    def create_entity(
        payload: dict[str, Any] = Body(...),
        request_language: str = Depends(get_request_language),
        service: ContentService = Depends(get_service),
        user: CurrentUser = Depends(require_user),
    ):
        language = resolve_write_language(payload, request_language, service.languages)
        created = service.create(payload, language)
        return _item(created, message=f"{schema.label} created successfully")

    @entity_router.get("", response_model=ListResponse, response_model_exclude_unset=True)
    def list_entities(
        request: Request,
        all_languages: Optional[str] = Query(None, alias="allLanguages"),
        language: str = Depends(get_request_language),
        service: ContentService = Depends(get_service),
    ):
        documents = service.list(_boolean_filters(schema, request))
        data, served = _read_many(service, documents, language, _flag(all_languages))
        return ListResponse(success=True, count=len(data), data=data, language=served)

    @entity_router.get(
        "/{doc_id}", response_model=ItemResponse, response_model_exclude_unset=True
    )
    def get_entity(
        doc_id: str,
        all_languages: Optional[str] = Query(None, alias="allLanguages"),
        language: str = Depends(get_request_language),
        service: ContentService = Depends(get_service),
    ):
        return _read_one(service, service.get(doc_id), language, _flag(all_languages))

    @entity_router.put(
        "/{doc_id}", response_model=ItemResponse, response_model_exclude_unset=True
    )
    def update_entity(
        doc_id: str,
        payload: dict[str, Any] = Body(...),
        request_language: str = Depends(get_request_language),
        service: ContentService = Depends(get_service),
        user: CurrentUser = Depends(require_user),
    ):
        language = resolve_write_language(payload, request_language, service.languages)
        updated = service.update(doc_id, payload, language)
        return _item(updated, message=f"{schema.label} updated successfully")

    @entity_router.delete(
        "/{doc_id}", response_model=ItemResponse, response_model_exclude_unset=True
    )
    def delete_entity(
        doc_id: str,
        service: ContentService = Depends(get_service),
        user: CurrentUser = Depends(require_user),
    ):
        deleted = service.delete(doc_id)
        return _item(deleted, message=f"{schema.label} deleted successfully")

    return entity_router


for _schema in CONTENT_SCHEMAS:
    router.include_router(build_content_router(_schema))


# --- Blog -------------------------------------------------------------------

blog_router = APIRouter(prefix="/blog", tags=["blog"])
get_blog_service = service_for(BLOG)


@blog_router.post(
    "/add", response_model=ItemResponse, status_code=201, response_model_exclude_unset=True
)
def create_blog(
    payload: dict[str, Any] = Body(...),
    request_language: str = Depends(get_request_language),
    service: ContentService = Depends(get_blog_service),
    user: CurrentUser = Depends(require_user),
):
    if not has_text(payload.get("title"), service.languages):
        raise ValidationError("Blog title is required")
    language = resolve_write_language(payload, request_language, service.languages)
    created = service.create(payload, language)
    return _item(created, message="Blog post created successfully")


@blog_router.get("", response_model=PagedListResponse, response_model_exclude_unset=True)
def list_blogs(
    published_only: Optional[str] = Query(None, alias="publishedOnly"),
    content_type: Optional[str] = Query(None, alias="contentType"),
    author: Optional[str] = Query(None),
    tag: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    sort_by: str = Query("createdAt", alias="sortBy"),
    sort_order: str = Query("desc", alias="sortOrder", pattern="^(asc|desc)$"),
    all_languages: Optional[str] = Query(None, alias="allLanguages"),
    language: str = Depends(get_request_language),
    service: ContentService = Depends(get_blog_service),
):
    filters: dict[str, Any] = {}
    if _flag(published_only):
        filters["published"] = True
    if content_type:
        filters["contentType"] = content_type
    if author:
        filters["author"] = author
    if tag:
        filters["tags"] = tag

    documents = service.list(
        filters,
        sort=_sort_spec(service, sort_by, sort_order, language),
        skip=(page - 1) * limit,
        limit=limit,
        exclude=("content",),
    )
    total = service.count(filters)
    data, served = _read_many(service, documents, language, _flag(all_languages))
    return PagedListResponse(
        success=True,
        count=len(data),
        total=total,
        page=page,
        pages=math.ceil(total / limit),
        data=data,
        language=served,
    )


def _find_blog(service: ContentService, identifier: str) -> dict:
    if ID_PATTERN.match(identifier):
        return service.get(identifier)
    for code in service.languages.supported:
        found = service.find_one({f"slug.{code}": identifier})
        if found:
            return found
    # Posts saved before slugs were bilingual.
    found = service.find_one({"slug": identifier})
    if found is None:
        raise NotFoundError("Blog post not found")
    return found


@blog_router.get(
    "/{identifier}", response_model=ItemResponse, response_model_exclude_unset=True
)
def get_blog(
    identifier: str,
    all_languages: Optional[str] = Query(None, alias="allLanguages"),
    language: str = Depends(get_request_language),
    service: ContentService = Depends(get_blog_service),
):
    blog = _find_blog(service, identifier)
    blog["views"] = (blog.get("views") or 0) + 1
    blog = service.replace(blog["_id"], blog)
    return _read_one(service, blog, language, _flag(all_languages))


@blog_router.put("/{doc_id}", response_model=ItemResponse, response_model_exclude_unset=True)
def update_blog(
    doc_id: str,
    payload: dict[str, Any] = Body(...),
    request_language: str = Depends(get_request_language),
    service: ContentService = Depends(get_blog_service),
    user: CurrentUser = Depends(require_user),
):
    language = resolve_write_language(payload, request_language, service.languages)
    updated = service.update(doc_id, payload, language)
    return _item(updated, message="Blog post updated successfully")


@blog_router.delete(
    "/{doc_id}", response_model=ItemResponse, response_model_exclude_unset=True
)
def delete_blog(
    doc_id: str,
    service: ContentService = Depends(get_blog_service),
    user: CurrentUser = Depends(require_user),
):
    deleted = service.delete(doc_id)
    return _item(deleted, message="Blog post deleted successfully")


router.include_router(blog_router)


# --- Footer -----------------------------------------------------------------

footer_router = APIRouter(prefix="/footer", tags=["footer"])
get_footer_service = service_for(FOOTER)


@footer_router.post(
    "/add", response_model=ItemResponse, status_code=201, response_model_exclude_unset=True
)
def create_footer(
    payload: dict[str, Any] = Body(...),
    request_language: str = Depends(get_request_language),
    service: ContentService = Depends(get_footer_service),
    user: CurrentUser = Depends(require_user),
):
    if not has_text(payload.get("copyrightTitle"), service.languages):
        raise ValidationError("Copyright title is required")
    language = resolve_write_language(payload, request_language, service.languages)
    created = service.create(payload, language)
    return _item(created, message="Footer created successfully")


@footer_router.get("", response_model=ItemResponse, response_model_exclude_unset=True)
def get_footer(
    all_languages: Optional[str] = Query(None, alias="allLanguages"),
    language: str = Depends(get_request_language),
    service: ContentService = Depends(get_footer_service),
):
    footer = service.find_one()
    if footer is None:
        raise NotFoundError("Footer not found")
    return _read_one(service, footer, language, _flag(all_languages))


@footer_router.put("/{doc_id}", response_model=ItemResponse, response_model_exclude_unset=True)
def update_footer(
    doc_id: str,
    payload: dict[str, Any] = Body(...),
    request_language: str = Depends(get_request_language),
    service: ContentService = Depends(get_footer_service),
    user: CurrentUser = Depends(require_user),
):
    language = resolve_write_language(payload, request_language, service.languages)
    updated = service.update(doc_id, payload, language)
    return _item(updated, message="Footer updated successfully")


@footer_router.delete(
    "/{doc_id}", response_model=ItemResponse, response_model_exclude_unset=True
)
def delete_footer(
    doc_id: str,
    service: ContentService = Depends(get_footer_service),
    user: CurrentUser = Depends(require_user),
):
    deleted = service.delete(doc_id)
    return _item(deleted, message="Footer deleted successfully")


router.include_router(footer_router)


# --- Settings (single document) ---------------------------------------------

settings_router = APIRouter(prefix="/settings", tags=["settings"])
get_settings_service = service_for(SETTINGS)

GENERAL_SETTINGS = tuple(name for name in SETTINGS.opaque if name != "socialMedia")


def _current_settings(service: ContentService) -> dict:
    existing = service.find_one()
    if existing is not None:
        return existing
    return service.create({}, service.languages.fallback)


def _save_settings(
    service: ContentService,
    payload: dict[str, Any],
    *,
    general: bool = True,
    social: bool = True,
) -> dict:
    current = _current_settings(service)
    changes = {}
    if general:
        changes.update(
            {name: payload[name] for name in GENERAL_SETTINGS if name in payload}
        )
    social_media = payload.get("socialMedia")
    if social and isinstance(social_media, dict):
        merged = dict(current.get("socialMedia") or {})
        merged.update(
            {
                platform: social_media[platform]
                for platform in SOCIAL_MEDIA_PLATFORMS
                if platform in social_media
            }
        )
        changes["socialMedia"] = merged
    return service.update(current["_id"], changes, service.languages.fallback)


@settings_router.get("", response_model=ItemResponse, response_model_exclude_unset=True)
def get_site_settings(service: ContentService = Depends(get_settings_service)):
    return _item(_current_settings(service))


@settings_router.post("", response_model=ItemResponse, response_model_exclude_unset=True)
def save_site_settings(
    payload: dict[str, Any] = Body(...),
    service: ContentService = Depends(get_settings_service),
    user: CurrentUser = Depends(require_user),
):
    return _item(_save_settings(service, payload), message="Settings saved successfully")


@settings_router.put("", response_model=ItemResponse, response_model_exclude_unset=True)
def update_site_settings(
    payload: dict[str, Any] = Body(...),
    service: ContentService = Depends(get_settings_service),
    user: CurrentUser = Depends(require_user),
):
    return _item(
        _save_settings(service, payload), message="Settings updated successfully"
    )


@settings_router.put(
    "/general", response_model=ItemResponse, response_model_exclude_unset=True
)
def update_general_settings(
    payload: dict[str, Any] = Body(...),
    service: ContentService = Depends(get_settings_service),
    user: CurrentUser = Depends(require_user),
):
    saved = _save_settings(service, payload, social=False)
    return _item(saved, message="General settings updated successfully")


@settings_router.put(
    "/social-media", response_model=ItemResponse, response_model_exclude_unset=True
)
def update_social_media(
    payload: dict[str, Any] = Body(...),
    service: ContentService = Depends(get_settings_service),
    user: CurrentUser = Depends(require_user),
):
    if not payload.get("socialMedia"):
        raise ValidationError("Social media links are required")
    saved = _save_settings(service, payload, general=False)
    return _item(saved, message="Social media links updated successfully")


@settings_router.delete("", response_model=ItemResponse, response_model_exclude_unset=True)
def reset_site_settings(
    service: ContentService = Depends(get_settings_service),
    user: CurrentUser = Depends(require_user),
):
    current = service.find_one()
    if current is None:
        raise NotFoundError("Settings not found")
    reset = service.replace(current["_id"], SETTINGS.with_defaults({}))
    return _item(reset, message="Settings reset to default successfully")


router.include_router(settings_router)


# --- Media ------------------------------------------------------------------

media_router = APIRouter(prefix="/media", tags=["media"])
get_media_service = service_for(MEDIA)


def file_type_for(mime_type: str) -> str:
    if mime_type.startswith("image/"):
        return "image"
    if mime_type.startswith("video/"):
        return "video"
    if any(marker in mime_type for marker in ("pdf", "document", "text")):
        return "document"
    return "other"


def _parse_tags(tags: Any) -> list[str]:
    if tags is None or tags == "":
        return []
    if isinstance(tags, list):
        return [str(tag).strip() for tag in tags if str(tag).strip()]
    return [tag.strip() for tag in str(tags).split(",") if tag.strip()]


def _safe_filename(filename: str) -> str:
    return re.sub(r"[^A-Za-z0-9._-]+", "-", filename).strip("-") or "file"


async def _store_upload(
    upload: UploadFile,
    *,
    storage: StorageClient,
    service: ContentService,
    user: CurrentUser,
    description: str = "",
    alt_text: str = "",
    tags: Any = None,
) -> dict:
    data = await upload.read()
    mime_type = upload.content_type or "application/octet-stream"
    file_type = file_type_for(mime_type)
    original_name = upload.filename or "upload"
    filename = f"{uuid.uuid4().hex}-{_safe_filename(original_name)}"
    stored = storage.upload_bytes(data, f"media/{file_type}s/{filename}", mime_type)
    return service.create(
        {
            "filename": filename,
            "originalName": original_name,
            "fileType": file_type,
            "mimeType": mime_type,
            "fileSize": len(data),
            "fileUrl": stored.url,
            "storageKey": stored.key,
            "description": description or "",
            "altText": alt_text or "",
            "uploadedBy": user.user_id,
            "tags": _parse_tags(tags),
            "isActive": True,
        },
        service.languages.fallback,
    )


@media_router.post(
    "/upload", response_model=ItemResponse, status_code=201, response_model_exclude_unset=True
)
async def upload_media(
    file: Optional[UploadFile] = File(None),
    description: Optional[str] = Form(None),
    alt_text: Optional[str] = Form(None, alias="altText"),
    tags: Optional[str] = Form(None),
    storage: StorageClient = Depends(get_storage_client),
    service: ContentService = Depends(get_media_service),
    user: CurrentUser = Depends(require_user),
):
    if file is None:
        raise ValidationError("No file uploaded")
    media = await _store_upload(
        file,
        storage=storage,
        service=service,
        user=user,
        description=description or "",
        alt_text=alt_text or "",
        tags=tags,
    )
    return _item(media, message="File uploaded successfully")


@media_router.post(
    "/upload-multiple",
    response_model=UploadManyResponse,
    status_code=201,
    response_model_exclude_unset=True,
)
async def upload_many_media(
    files: Optional[list[UploadFile]] = File(None),
    storage: StorageClient = Depends(get_storage_client),
    service: ContentService = Depends(get_media_service),
    user: CurrentUser = Depends(require_user),
):
    if not files:
        raise ValidationError("No files uploaded")
    max_files = get_settings().max_upload_files
    if len(files) > max_files:
        raise ValidationError(f"At most {max_files} files can be uploaded at once")

    uploaded: list[dict] = []
    errors: list[dict] = []
    for upload in files:
        try:
            uploaded.append(
                await _store_upload(upload, storage=storage, service=service, user=user)
            )
        except Exception as exc:
            logger.exception("Error uploading file %s", upload.filename)
            errors.append({"filename": upload.filename, "error": str(exc)})

    if not uploaded:
        return JSONResponse(
            status_code=500,
            content={
                "success": False,
                "message": "Failed to upload any files",
                "errors": errors,
            },
        )

    fields: dict[str, Any] = {
        "success": True,
        "message": f"{len(uploaded)} file(s) uploaded successfully",
        "count": len(uploaded),
        "data": uploaded,
    }
    if errors:
        fields["errors"] = errors
    return UploadManyResponse(**fields)


@media_router.get("", response_model=PagedListResponse, response_model_exclude_unset=True)
def list_media(
    file_type: Optional[str] = Query(None, alias="fileType"),
    uploaded_by: Optional[str] = Query(None, alias="uploadedBy"),
    tag: Optional[str] = Query(None),
    is_active: Optional[str] = Query(None, alias="isActive"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    sort_by: str = Query("createdAt", alias="sortBy"),
    sort_order: str = Query("desc", alias="sortOrder", pattern="^(asc|desc)$"),
    service: ContentService = Depends(get_media_service),
):
    filters: dict[str, Any] = {}
    if file_type:
        filters["fileType"] = file_type
    if uploaded_by:
        filters["uploadedBy"] = uploaded_by
    if tag:
        filters["tags"] = tag
    if is_active is not None:
        filters["isActive"] = _flag(is_active)

    documents = service.list(
        filters,
        sort=_sort_spec(service, sort_by, sort_order),
        skip=(page - 1) * limit,
        limit=limit,
    )
    total = service.count(filters)
    return PagedListResponse(
        success=True,
        count=len(documents),
        total=total,
        page=page,
        pages=math.ceil(total / limit),
        data=documents,
    )


@media_router.get("/{doc_id}", response_model=ItemResponse, response_model_exclude_unset=True)
def get_media(doc_id: str, service: ContentService = Depends(get_media_service)):
    return _item(service.get(doc_id))


@media_router.put("/{doc_id}", response_model=ItemResponse, response_model_exclude_unset=True)
def update_media(
    doc_id: str,
    payload: dict[str, Any] = Body(...),
    service: ContentService = Depends(get_media_service),
    user: CurrentUser = Depends(require_user),
):
    changes = {
        name: payload[name]
        for name in ("description", "altText", "isActive")
        if name in payload
    }
    if "tags" in payload:
        changes["tags"] = _parse_tags(payload["tags"])
    updated = service.update(doc_id, changes, service.languages.fallback)
    return _item(updated, message="Media file updated successfully")


@media_router.delete(
    "/{doc_id}", response_model=ItemResponse, response_model_exclude_unset=True
)
def delete_media(
    doc_id: str,
    storage: StorageClient = Depends(get_storage_client),
    service: ContentService = Depends(get_media_service),
    user: CurrentUser = Depends(require_user),
):
    media = service.get(doc_id)
    if media.get("storageKey"):
        try:
            storage.delete(media["storageKey"])
        except Exception:
            logger.exception("Error deleting %s from storage", media["storageKey"])
    service.delete(doc_id)
    return _item(media, message="Media file deleted successfully")


router.include_router(media_router)


# --- Auth -------------------------------------------------------------------

auth_router = APIRouter(prefix="/auth", tags=["auth"])


@auth_router.post("/login", response_model=LoginResponse)
def login(payload: LoginRequest, db: DbClient = Depends(get_db_client)):
    if not payload.email or not payload.password:
        raise HTTPException(status_code=400, detail="Email and password are required")

    user = users.find_user(db, payload.email)
    if user is None:
        if not payload.name:
            raise HTTPException(
                status_code=400,
                detail="Invalid credentials or user not found. Please provide name to register.",
            )
        user = users.create_user(db, payload.name, payload.email, payload.password)
        message = "User created and logged in"
    elif not users.authenticate(user, payload.password):
        raise HTTPException(status_code=400, detail="Invalid credentials")
    else:
        message = "Login successful"

    token = create_access_token(user["_id"], user["email"])
    return LoginResponse(
        success=True,
        message=message,
        token=token,
        user=UserSummary(id=user["_id"], name=user.get("name"), email=user["email"]),
    )


router.include_router(auth_router)
