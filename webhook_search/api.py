"""
FastAPI application for the webhook search service.

Provides endpoints for:
- Capturing any request sent to a non-API path as a webhook entry
- Listing captured entries and searching them with compound filters
- Ad-hoc JSONPath evaluation and traffic statistics
- CRUD operations for saved filter presets
"""

import json
import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Union

from fastapi import FastAPI, HTTPException, Query, Request
from pydantic import BaseModel, Field

from .config import SearchConfig
from .engine import WebhookSearchEngine
from .jsonpath import is_supported
from .models import FilterSpec, SearchResult, WebhookEntry
from .storage import DuplicatePresetError, PresetStorage


logger = logging.getLogger(__name__)

CAPTURE_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"]


# Pydantic models for API requests/responses


class ValidationError(BaseModel):
    """Validation error details."""
    field: str
    message: str


class ValidationState(BaseModel):
    """Validation state for a filter."""
    is_valid: bool
    errors: List[ValidationError] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)


class FilterRequest(BaseModel):
    """Filter criteria; empty fields do not constrain the result."""
    search_text: str = ""
    method: str = ""
    path_substring: str = ""
    ip_substring: str = ""
    time_from: Optional[Union[int, float, str]] = Field(None, description="Epoch millis or ISO-8601")
    time_to: Optional[Union[int, float, str]] = Field(None, description="Epoch millis or ISO-8601")
    json_path_expr: str = ""


class SearchRequest(FilterRequest):
    """Search request with an option to return full entries."""
    include_entries: bool = False


class EntryOut(BaseModel):
    """A captured entry with its id."""
    id: int
    method: str
    path: str
    client_ip: str
    headers: Dict[str, str]
    payload: Any = None
    timestamp: str


class EntriesResponse(BaseModel):
    entries: List[EntryOut]
    total: int


class SearchResponse(BaseModel):
    """Response from the search endpoint."""
    ids: List[int]
    total_matches: int
    total_entries: int
    execution_time_ms: float
    cached: bool
    entries: Optional[List[EntryOut]] = None


class EntryCreate(BaseModel):
    """Request to submit an entry directly."""
    method: str = ""
    path: str = ""
    client_ip: str = ""
    headers: Dict[str, str] = Field(default_factory=dict)
    payload: Any = None
    timestamp: Optional[Union[int, float, str]] = None


class JsonPathRequest(BaseModel):
    value: Any = None
    expression: str


class JsonPathResponse(BaseModel):
    expression: str
    supported: bool
    result: Any = None


class PresetCreate(BaseModel):
    """Request to create a new filter preset."""
    name: str = Field(..., description="Preset name")
    filters: FilterRequest = Field(default_factory=FilterRequest)


class PresetUpdate(BaseModel):
    """Request to update a filter preset."""
    name: Optional[str] = None
    filters: Optional[FilterRequest] = None


class Preset(BaseModel):
    """A saved filter preset."""
    id: str
    name: str
    filters: Dict[str, Any]
    created_at: str
    updated_at: str


def validate_filters(filters: Dict[str, Any]) -> ValidationState:
    """Validate filter values before they are saved or applied.

    Args:
        filters: Filter fields keyed by snake_case names

    Returns:
        ValidationState with validation results
    """
    errors: List[ValidationError] = []
    warnings: List[str] = []

    for name in ("time_from", "time_to"):
        value = filters.get(name)
        if value in (None, ""):
            continue
        try:
            FilterSpec(**{name: value})
        except ValueError as e:
            errors.append(ValidationError(field=name, message=str(e)))

    expression = (filters.get("json_path_expr") or "").strip()
    if expression and not is_supported(expression):
        errors.append(
            ValidationError(
                field="json_path_expr",
                message="Only '$' and dot-chained paths like '$.a.b' are supported"
            )
        )

    if not errors:
        spec = FilterSpec.from_dict(filters)
        if spec.is_empty:
            warnings.append("Filter has no constraints and matches every entry")
        if (spec.time_from is not None and spec.time_to is not None
                and spec.time_from > spec.time_to):
            warnings.append("time_from is after time_to; the filter matches nothing")

    return ValidationState(is_valid=not errors, errors=errors, warnings=warnings)


def parse_payload(body: bytes) -> Any:
    """Decode a request body, wrapping non-JSON content.

    Args:
        body: Raw request body

    Returns:
        The decoded JSON value, None for an empty body, or
        {"anomaly_payload": text} when the body is not JSON
    """
    if not body:
        return None
    try:
        return json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError):
        return {"anomaly_payload": body.decode("utf-8", errors="replace")}


def entry_out(entry_id: int, entry: WebhookEntry) -> EntryOut:
    return EntryOut(id=entry_id, **entry.to_dict())


def create_app(
    engine: Optional[WebhookSearchEngine] = None,
    preset_storage: Optional[PresetStorage] = None,
    config: Optional[SearchConfig] = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        engine: Optional search engine instance (for testing)
        preset_storage: Optional PresetStorage instance (for testing)
        config: Optional settings used for anything not passed explicitly

    Returns:
        Configured FastAPI app
    """
    app = FastAPI(
        title="Webhook Search API",
        description="Captures webhook requests and searches them with indexed filters",
        version="1.0.0"
    )

    config = config or SearchConfig()
    engine = engine or WebhookSearchEngine(config)
    storage = preset_storage or PresetStorage(config.presets_path)
    app.state.engine = engine
    app.state.presets = storage

    def to_spec(filters: FilterRequest) -> FilterSpec:
        try:
            return FilterSpec.from_dict(filters.model_dump())
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))

    def to_response(result: SearchResult, include_entries: bool) -> SearchResponse:
        ids = result.sorted_ids()
        entries = None
        if include_entries:
            entries = [entry_out(i, engine.get_entry(i)) for i in ids]
        return SearchResponse(
            ids=ids,
            total_matches=result.total_matches,
            total_entries=result.total_entries,
            execution_time_ms=result.execution_time_ms,
            cached=result.cached,
            entries=entries,
        )

    def check_filters(filters: FilterRequest) -> None:
        validation = validate_filters(filters.model_dump())
        if not validation.is_valid:
            messages = "; ".join(f"{e.field}: {e.message}" for e in validation.errors)
            raise HTTPException(status_code=400, detail=f"Invalid filters: {messages}")

    def preset_not_found(preset_id: str) -> HTTPException:
        return HTTPException(status_code=404, detail=f"Preset '{preset_id}' not found")

    @contextmanager
    def preset_errors() -> Iterator[None]:
        """Map preset store errors onto HTTP status codes."""
        try:
            yield
        except DuplicatePresetError as e:
            raise HTTPException(status_code=409, detail=str(e))
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))

    # API Routes

    @app.get("/api/entries", response_model=EntriesResponse)
    async def list_entries(
        offset: int = Query(0, ge=0),
        limit: int = Query(100, ge=1, le=1000),
    ) -> EntriesResponse:
        """List captured entries in arrival order."""
        entries = engine.get_entries()
        page = [
            entry_out(i, entries[i])
            for i in range(offset, min(offset + limit, len(entries)))
        ]
        return EntriesResponse(entries=page, total=len(entries))

    @app.get("/api/entries/{entry_id}", response_model=EntryOut)
    async def get_entry(entry_id: int) -> EntryOut:
        """Get an entry by ID.

        Raises:
            HTTPException: If the entry does not exist
        """
        try:
            return entry_out(entry_id, engine.get_entry(entry_id))
        except KeyError:
            raise HTTPException(
                status_code=404,
                detail=f"Entry {entry_id} not found"
            )

    @app.post("/api/entries")
    async def submit_entry(request: EntryCreate) -> Dict[str, int]:
        """Submit an entry from an external transport."""
        entry_id = engine.submit_entry(request.model_dump())
        return {"id": entry_id}

    @app.post("/api/search", response_model=SearchResponse)
    async def search(request: SearchRequest) -> SearchResponse:
        """Apply a filter to the captured entries.

        Raises:
            HTTPException: If a time bound cannot be parsed
        """
        result = engine.apply_filters(to_spec(request))
        return to_response(result, request.include_entries)

    @app.post("/api/jsonpath", response_model=JsonPathResponse)
    async def jsonpath(request: JsonPathRequest) -> JsonPathResponse:
        """Evaluate a restricted JSONPath expression against a value."""
        return JsonPathResponse(
            expression=request.expression,
            supported=is_supported(request.expression),
            result=engine.evaluate_json_path(request.value, request.expression),
        )

    @app.get("/api/stats")
    async def stats() -> Dict[str, Any]:
        """Traffic and cache statistics."""
        return engine.stats()

    @app.get("/api/presets", response_model=List[Preset])
    async def list_presets() -> List[Preset]:
        """Get all saved presets."""
        return [Preset(**preset) for preset in storage.get_all()]

    @app.post("/api/presets", response_model=Preset)
    async def create_preset(request: PresetCreate) -> Preset:
        """Create a new filter preset.

        Raises:
            HTTPException: 400 if the filters are invalid, 409 if the name is taken
        """
        check_filters(request.filters)
        with preset_errors():
            return Preset(**storage.create(request.name, request.filters.model_dump()))

    @app.get("/api/presets/{preset_id}", response_model=Preset)
    async def get_preset(preset_id: str) -> Preset:
        """Get a preset by ID.

        Raises:
            HTTPException: If the preset is not found
        """
        preset = storage.get_by_id(preset_id)
        if preset is None:
            raise preset_not_found(preset_id)
        return Preset(**preset)

    @app.put("/api/presets/{preset_id}", response_model=Preset)
    async def update_preset(preset_id: str, request: PresetUpdate) -> Preset:
        """Rename a preset or replace its filters.

        Raises:
            HTTPException: 404 if the preset is not found, 400 for invalid
                filters, 409 if the new name is taken
        """
        filters = None
        if request.filters is not None:
            check_filters(request.filters)
            filters = request.filters.model_dump()

        with preset_errors():
            updated = storage.update(preset_id, name=request.name, filters=filters)
        if updated is None:
            raise preset_not_found(preset_id)
        return Preset(**updated)

    @app.delete("/api/presets/{preset_id}")
    async def delete_preset(preset_id: str) -> Dict[str, str]:
        """Delete a preset.

        Raises:
            HTTPException: If the preset is not found
        """
        if not storage.delete(preset_id):
            raise preset_not_found(preset_id)
        return {"message": f"Preset '{preset_id}' deleted successfully"}

    @app.post("/api/presets/{preset_id}/apply", response_model=SearchResponse)
    async def apply_preset(preset_id: str) -> SearchResponse:
        """Apply a saved preset to the captured entries."""
        with preset_errors():
            spec = storage.load_spec(preset_id)
        if spec is None:
            raise preset_not_found(preset_id)
        return to_response(engine.apply_filters(spec), include_entries=False)

    @app.get("/health")
    async def health_check() -> Dict[str, str]:
        """Health check endpoint."""
        return {"status": "healthy"}

    # Registered last so every route above takes precedence

    @app.api_route("/{full_path:path}", methods=CAPTURE_METHODS)
    async def capture_webhook(full_path: str, request: Request) -> Dict[str, Any]:
        """Capture any other request as a webhook entry."""
        body = await request.body()
        entry = WebhookEntry(
            method=request.method,
            path=request.url.path,
            client_ip=request.client.host if request.client else "",
            headers=dict(request.headers),
            payload=parse_payload(body),
        )
        entry_id = engine.submit_entry(entry)
        logger.info(f"Webhook received: {entry.method} {entry.path} from {entry.client_ip}")
        return {"status": "captured", "id": entry_id}

    return app
