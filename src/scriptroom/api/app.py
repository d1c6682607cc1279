"""FastAPI application exposing scenario editing, locking and history endpoints."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Iterator, List

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.exceptions import RequestValidationError
from pydantic import BaseModel, ConfigDict, Field
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.responses import JSONResponse

from ..chain import Line
from ..exceptions import PersistenceError, ScriptroomError
from ..journal import FileDeltaJournal, InMemoryDeltaJournal
from ..locks import FileLockTable, InMemoryLockTable
from ..logging import configure_logging
from ..persistence import FileScenarioStore, InMemoryScenarioStore
from ..service import Clock, ScenarioService, ScenarioView
from .settings import ScenarioApiSettings

logger = logging.getLogger(__name__)

INTERNAL_ERROR_MESSAGE = "Internal server error"


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class LineResource(_CamelModel):
    """A single line of a scenario."""

    line_id: int = Field(..., alias="lineId", description="Scenario-local line id.")
    next_line_id: int | None = Field(
        None, alias="nextLineId", description="Id of the following line, or null."
    )
    text: str = Field("", description="Line text, at most twenty words.")

    @classmethod
    def from_line(cls, line: Line) -> "LineResource":
        return cls(line_id=line.line_id, next_line_id=line.next_line_id, text=line.text)


class ScenarioCreateRequest(_CamelModel):
    """Request body for creating a scenario."""

    # Non-string titles fall back to the placeholder instead of failing.
    title: Any = Field(None, description="Optional scenario title.")


class ScenarioCreatedResponse(_CamelModel):
    id: int
    title: str
    content: List[LineResource]


class ScenarioDetailResponse(_CamelModel):
    """A scenario with its content in chain order."""

    id: int
    title: str
    status: str
    content: List[LineResource]

    @classmethod
    def from_view(cls, view: ScenarioView) -> "ScenarioDetailResponse":
        return cls(
            id=view.id,
            title=view.title,
            status=view.status,
            content=[LineResource.from_line(line) for line in view.content],
        )


class ScenarioSummary(_CamelModel):
    id: int
    title: str
    status: str
    last_modified: int = Field(
        ..., alias="lastModified", description="Unix time of the last change."
    )


class ScenarioListResponse(_CamelModel):
    scenarios: List[ScenarioSummary]


class StatusUpdateRequest(_CamelModel):
    status: Any = Field(None, description="New workflow status for the scenario.")


class UserRequest(_CamelModel):
    """Request body identifying the acting user."""

    user_id: int = Field(..., alias="userId", description="Acting user id.")


class LineUpdateRequest(UserRequest):
    new_text: List[str] = Field(
        ...,
        alias="newText",
        description="Replacement text; every entry is wrapped independently.",
    )


class CharacterLockRequest(UserRequest):
    character_name: Any = Field(None, alias="characterName")


class CharacterRenameRequest(UserRequest):
    old_name: Any = Field(None, alias="oldName")
    new_name: Any = Field(None, alias="newName")


class CheckpointRequest(_CamelModel):
    user_id: int | None = Field(None, alias="userId")


class MessageResponse(_CamelModel):
    message: str


class LockReleaseResponse(_CamelModel):
    message: str
    released: int = Field(..., ge=0, description="Number of line locks released.")


class DeltaListResponse(_CamelModel):
    deltas: List[dict[str, Any]] = Field(
        default_factory=list,
        description="Journal entries ordered by timestamp, oldest first.",
    )


class CheckpointResource(_CamelModel):
    id: int
    timestamp: int


def build_service(
    settings: ScenarioApiSettings, *, clock: Clock | None = None
) -> ScenarioService:
    """Create a service backed by the stores selected in ``settings``."""

    if settings.data_dir is None:
        return ScenarioService(
            store=InMemoryScenarioStore(),
            journal=InMemoryDeltaJournal(),
            locks=InMemoryLockTable(),
            clock=clock,
        )

    data_dir = settings.data_dir
    return ScenarioService(
        store=FileScenarioStore(data_dir),
        journal=FileDeltaJournal(data_dir / "deltas.json"),
        locks=FileLockTable(data_dir / "locks.json"),
        clock=clock,
    )


@contextmanager
def _service_errors(action: str) -> Iterator[None]:
    """Translate service errors into HTTP errors for ``action``."""

    try:
        yield
    except PersistenceError as exc:
        logger.exception("Failed to %s", action)
        raise HTTPException(status_code=500, detail=INTERNAL_ERROR_MESSAGE) from exc
    except ScriptroomError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.message) from exc


def _parse_since(value: str | None) -> float:
    if value is None:
        return 0
    try:
        parsed = float(value.strip() or 0)
    except ValueError:
        return 0
    if parsed != parsed or parsed in (float("inf"), float("-inf")):
        return 0
    return parsed


def create_app(
    service: ScenarioService | None = None,
    *,
    settings: ScenarioApiSettings | None = None,
    clock: Clock | None = None,
) -> FastAPI:
    """Create a FastAPI app exposing the scenario editing endpoints."""

    resolved_settings = settings or ScenarioApiSettings.from_env()
    configure_logging(resolved_settings.log_level)

    scenarios = service or build_service(resolved_settings, clock=clock)

    tags_metadata = [
        {
            "name": "Scenarios",
            "description": "Create, list, read and delete screenplay scenarios.",
        },
        {
            "name": "Lines",
            "description": (
                "Lock, rewrite and delete individual lines. Rewritten text is "
                "wrapped at twenty words per line."
            ),
        },
        {
            "name": "Characters",
            "description": "Lock and rename character names across a scenario.",
        },
        {
            "name": "History",
            "description": (
                "Read the change journal, create checkpoints and restore "
                "content as of a checkpoint."
            ),
        },
    ]

    app = FastAPI(
        title="Scriptroom Scenario API",
        version="0.1.0",
        description=(
            "HTTP API powering the collaborative screenplay editor. The service "
            "exposes line and character locks, line rewrites, the change "
            "journal and checkpoint restore."
        ),
        openapi_tags=tags_metadata,
    )

    @app.exception_handler(StarletteHTTPException)
    async def _http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={"message": str(exc.detail)},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def _validation_error(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        errors = exc.errors()
        if any(error.get("type") == "json_invalid" for error in errors):
            return JSONResponse(status_code=400, content={"error": "Invalid JSON body"})
        if any(error.get("loc", ("",))[0] == "path" for error in errors):
            return JSONResponse(
                status_code=404, content={"message": "Resource does not exist!"}
            )

        first = errors[0] if errors else {}
        location = ".".join(str(part) for part in first.get("loc", ())[1:])
        detail = first.get("msg", "Invalid request")
        message = f"{location}: {detail}" if location else str(detail)
        return JSONResponse(status_code=400, content={"message": message})

    # ServerErrorMiddleware re-raises after this response, and the server logs
    # the traceback.
    @app.exception_handler(Exception)
    async def _unexpected_error(request: Request, exc: Exception) -> JSONResponse:
        return JSONResponse(status_code=500, content={"message": INTERNAL_ERROR_MESSAGE})

    @app.post(
        "/api/scenarios",
        response_model=ScenarioCreatedResponse,
        tags=["Scenarios"],
    )
    def create_scenario(
        payload: ScenarioCreateRequest | None = None,
    ) -> ScenarioCreatedResponse:
        with _service_errors("create scenario"):
            record = scenarios.create_scenario(payload.title if payload else None)
        return ScenarioCreatedResponse(
            id=record.id,
            title=record.title,
            content=[LineResource.from_line(line) for line in record.lines],
        )

    @app.get(
        "/api/scenarios",
        response_model=ScenarioListResponse,
        tags=["Scenarios"],
    )
    def list_scenarios() -> ScenarioListResponse:
        with _service_errors("list scenarios"):
            records = scenarios.list_scenarios()
        return ScenarioListResponse(
            scenarios=[
                ScenarioSummary(
                    id=record.id,
                    title=record.title,
                    status=record.status,
                    last_modified=record.last_modified,
                )
                for record in records
            ]
        )

    @app.get(
        "/api/scenarios/{scenario_id}",
        response_model=ScenarioDetailResponse,
        tags=["Scenarios"],
    )
    def get_scenario(scenario_id: int) -> ScenarioDetailResponse:
        with _service_errors("load scenario"):
            view = scenarios.get_scenario(scenario_id)
        return ScenarioDetailResponse.from_view(view)

    @app.delete(
        "/api/scenarios/{scenario_id}",
        response_model=MessageResponse,
        tags=["Scenarios"],
    )
    def delete_scenario(scenario_id: int) -> MessageResponse:
        with _service_errors("delete scenario"):
            scenarios.delete_scenario(scenario_id)
        return MessageResponse(message="Scenario deleted successfully!")

    @app.put(
        "/api/scenarios/{scenario_id}/status",
        response_model=MessageResponse,
        tags=["Scenarios"],
    )
    def update_status(scenario_id: int, payload: StatusUpdateRequest) -> MessageResponse:
        with _service_errors("update scenario status"):
            scenarios.update_status(scenario_id, payload.status)
        return MessageResponse(message="Status updated successfully!")

    @app.post(
        "/api/scenarios/{scenario_id}/lines/{line_id}/lock",
        response_model=MessageResponse,
        tags=["Lines"],
    )
    def lock_line(scenario_id: int, line_id: int, payload: UserRequest) -> MessageResponse:
        with _service_errors("lock line"):
            scenarios.lock_line(scenario_id, line_id, payload.user_id)
        return MessageResponse(message="Line locked successfully!")

    @app.put(
        "/api/scenarios/{scenario_id}/lines/{line_id}",
        response_model=MessageResponse,
        tags=["Lines"],
    )
    def update_line(
        scenario_id: int, line_id: int, payload: LineUpdateRequest
    ) -> MessageResponse:
        with _service_errors("update line"):
            scenarios.update_line(scenario_id, line_id, payload.user_id, payload.new_text)
        return MessageResponse(message="Line updated successfully!")

    @app.delete(
        "/api/scenarios/{scenario_id}/lines/{line_id}",
        response_model=MessageResponse,
        tags=["Lines"],
    )
    def delete_line(
        scenario_id: int, line_id: int, payload: UserRequest
    ) -> MessageResponse:
        with _service_errors("delete line"):
            scenarios.delete_line(scenario_id, line_id, payload.user_id)
        return MessageResponse(message="Line deleted successfully!")

    @app.post(
        "/api/locks/release",
        response_model=LockReleaseResponse,
        tags=["Lines"],
    )
    def release_locks(payload: UserRequest) -> LockReleaseResponse:
        with _service_errors("release locks"):
            released = scenarios.release_locks(payload.user_id)
        return LockReleaseResponse(message="Locks released successfully!", released=released)

    @app.post(
        "/api/scenarios/{scenario_id}/characters/lock",
        response_model=MessageResponse,
        tags=["Characters"],
    )
    def lock_character(
        scenario_id: int, payload: CharacterLockRequest
    ) -> MessageResponse:
        with _service_errors("lock character name"):
            scenarios.lock_character(scenario_id, payload.character_name, payload.user_id)
        return MessageResponse(message="Character name locked successfully!")

    @app.post(
        "/api/scenarios/{scenario_id}/characters/update",
        response_model=MessageResponse,
        tags=["Characters"],
    )
    def rename_character(
        scenario_id: int, payload: CharacterRenameRequest
    ) -> MessageResponse:
        with _service_errors("rename character"):
            scenarios.rename_character(
                scenario_id, payload.old_name, payload.new_name, payload.user_id
            )
        return MessageResponse(message="Character name changed successfully!")

    @app.get(
        "/api/scenarios/{scenario_id}/deltas",
        response_model=DeltaListResponse,
        tags=["History"],
    )
    def list_deltas(
        scenario_id: int,
        since: str | None = Query(
            None, description="Only return changes newer than this Unix time."
        ),
    ) -> DeltaListResponse:
        with _service_errors("list deltas"):
            entries = scenarios.list_deltas(scenario_id, since=_parse_since(since))
        return DeltaListResponse(deltas=[entry.to_payload() for entry in entries])

    @app.post(
        "/api/scenarios/{scenario_id}/checkpoint",
        response_model=MessageResponse,
        tags=["History"],
    )
    def create_checkpoint(
        scenario_id: int, payload: CheckpointRequest | None = None
    ) -> MessageResponse:
        with _service_errors("create checkpoint"):
            checkpoint = scenarios.create_checkpoint(scenario_id)
        if payload is not None and payload.user_id is not None:
            logger.debug(
                "Checkpoint %s requested by user %s", checkpoint.id, payload.user_id
            )
        return MessageResponse(message="Checkpoint created successfully!")

    @app.get(
        "/api/scenarios/{scenario_id}/checkpoints",
        response_model=List[CheckpointResource],
        tags=["History"],
    )
    def list_checkpoints(scenario_id: int) -> List[CheckpointResource]:
        with _service_errors("list checkpoints"):
            checkpoints = scenarios.list_checkpoints(scenario_id)
        return [
            CheckpointResource(id=checkpoint.id, timestamp=checkpoint.timestamp)
            for checkpoint in checkpoints
        ]

    @app.get(
        "/api/scenarios/{scenario_id}/restore/{checkpoint_id}",
        response_model=ScenarioDetailResponse,
        tags=["History"],
    )
    def restore_checkpoint(
        scenario_id: int, checkpoint_id: int
    ) -> ScenarioDetailResponse:
        with _service_errors("restore checkpoint"):
            view = scenarios.restore_checkpoint(scenario_id, checkpoint_id)
        return ScenarioDetailResponse.from_view(view)

    return app


__all__ = ["build_service", "create_app"]
