"""
HTTP routes — a thin layer over the labeling engine.

Every request builds its own registry/session from the bridge; the server
keeps no per-user state. Engine errors map to HTTP statuses in the
exception handlers registered by create_app().
"""
import logging
from typing import List, Optional

from fastapi import Depends, FastAPI, File, HTTPException, Request, UploadFile
from fastapi.responses import JSONResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from annotator.api.uploads import read_text_upload
from annotator.config.settings import MAX_UPLOAD_BYTES
from annotator.labeling.errors import (
    InvalidLabelType,
    OffsetOutOfRange,
    PersistenceError,
    RecordNotFound,
    UnsupportedFileType,
    ValidationError,
)
from annotator.labeling.registry import LabelTypeRegistry
from annotator.labeling.renderer import LabelingSession
from annotator.labeling.search import find_matches
from annotator.models.api_io import (
    DocumentOut,
    LabelBatch,
    LabelCreate,
    LabelOut,
    LabelTypeCreate,
    LabelTypeOut,
    LabelTypePatch,
    RenderOut,
    SearchOut,
    SegmentOut,
)
from annotator.models.label import Confirmed, Label, Pending, utc_now_iso
from annotator.models.label_type import LabelTypeDraft, derive_key
from annotator.persistence.bridge import PersistenceBridge

logger = logging.getLogger(__name__)


def get_bridge(request: Request) -> PersistenceBridge:
    return request.app.state.bridge


async def _open_session(bridge: PersistenceBridge, file_id: int) -> LabelingSession:
    document = await bridge.load_file(file_id)
    registry = LabelTypeRegistry(bridge, document.project_id)
    await registry.list_types()
    labels = await bridge.load_labels(file_id)
    session = LabelingSession(bridge, registry)
    session.load(document, labels)
    return session


def _label_out(label: Label) -> LabelOut:
    return LabelOut(**label.to_dict())


def _register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(ValidationError)
    async def _validation_error(request: Request, exc: ValidationError):
        return JSONResponse(status_code=422, content=exc.to_dict())

    @app.exception_handler(InvalidLabelType)
    async def _invalid_type(request: Request, exc: InvalidLabelType):
        return JSONResponse(status_code=422, content={"detail": str(exc)})

    @app.exception_handler(OffsetOutOfRange)
    async def _out_of_range(request: Request, exc: OffsetOutOfRange):
        return JSONResponse(status_code=422, content={"detail": str(exc)})

    @app.exception_handler(UnsupportedFileType)
    async def _unsupported(request: Request, exc: UnsupportedFileType):
        return JSONResponse(
            status_code=415,
            content={"detail": "Unsupported file type. Please upload .txt, .csv, or .json files."},
        )

    @app.exception_handler(RecordNotFound)
    async def _not_found(request: Request, exc: RecordNotFound):
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(PersistenceError)
    async def _backend_failure(request: Request, exc: PersistenceError):
        logger.error("Backend failure on %s: %s", request.url.path, exc)
        return JSONResponse(status_code=502, content={"detail": str(exc)})


def create_app(bridge: Optional[PersistenceBridge] = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        bridge: Persistence backend. Defaults to a Redis bridge built from
                settings.
    """
    if bridge is None:
        from annotator.persistence.redis_bridge import build_redis_bridge

        bridge = build_redis_bridge()

    app = FastAPI(title="Text Annotator", version="0.1.0")
    app.state.bridge = bridge
    _register_error_handlers(app)

    # ------------------------------------------------------------------
    # Service
    # ------------------------------------------------------------------

    @app.get("/api/health")
    async def health():
        return {"status": "ok"}

    @app.get("/metrics")
    async def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    # ------------------------------------------------------------------
    # Label types
    # ------------------------------------------------------------------

    @app.get("/api/projects/{project_id}/label-types", response_model=List[LabelTypeOut])
    async def list_label_types(project_id: int, q: str = "", bridge: PersistenceBridge = Depends(get_bridge)):
        registry = LabelTypeRegistry(bridge, project_id)
        await registry.list_types()
        types = registry.search(q) if q else registry.types
        return [LabelTypeOut(**t.to_dict()) for t in types]

    @app.post("/api/projects/{project_id}/label-types", response_model=LabelTypeOut, status_code=201)
    async def create_label_type(
        project_id: int,
        body: LabelTypeCreate,
        bridge: PersistenceBridge = Depends(get_bridge),
    ):
        registry = LabelTypeRegistry(bridge, project_id)
        draft = LabelTypeDraft(
            key=body.key if body.key is not None else derive_key(body.name),
            name=body.name,
            color=body.color,
            hotkey=body.hotkey,
            description=body.description,
        )
        created = await registry.create_type(draft)
        return LabelTypeOut(**created.to_dict())

    @app.patch("/api/projects/{project_id}/label-types/{type_id}", response_model=LabelTypeOut)
    async def update_label_type(
        project_id: int,
        type_id: int,
        body: LabelTypePatch,
        bridge: PersistenceBridge = Depends(get_bridge),
    ):
        registry = LabelTypeRegistry(bridge, project_id)
        updated = await registry.update_type(type_id, body.changes())
        return LabelTypeOut(**updated.to_dict())

    @app.delete("/api/projects/{project_id}/label-types/{type_id}", status_code=204)
    async def delete_label_type(
        project_id: int,
        type_id: int,
        bridge: PersistenceBridge = Depends(get_bridge),
    ):
        registry = LabelTypeRegistry(bridge, project_id)
        await registry.list_types()
        if not registry.exists(type_id):
            raise RecordNotFound("label_type", type_id)
        await registry.delete_type(type_id)
        return Response(status_code=204)

    # ------------------------------------------------------------------
    # Files
    # ------------------------------------------------------------------

    @app.get("/api/projects/{project_id}/files", response_model=List[DocumentOut])
    async def list_files(project_id: int, bridge: PersistenceBridge = Depends(get_bridge)):
        return [DocumentOut(**d.to_dict()) for d in await bridge.list_files(project_id)]

    @app.post("/api/projects/{project_id}/files", response_model=DocumentOut, status_code=201)
    async def upload_file(
        project_id: int,
        file: UploadFile = File(...),
        bridge: PersistenceBridge = Depends(get_bridge),
    ):
        raw = await file.read()
        if len(raw) > MAX_UPLOAD_BYTES:
            raise HTTPException(status_code=413, detail="File too large")
        try:
            content = read_text_upload(file.filename or "", raw)
        except UnicodeDecodeError:
            logger.warning("Rejected upload '%s': not valid UTF-8", file.filename)
            raise HTTPException(status_code=400, detail="File is not valid UTF-8 text") from None

        document = await bridge.upload_file(project_id, file.filename, content)
        return DocumentOut(**document.to_dict())

    @app.get("/api/files/{file_id}", response_model=DocumentOut)
    async def get_file(file_id: int, bridge: PersistenceBridge = Depends(get_bridge)):
        document = await bridge.load_file(file_id)
        return DocumentOut(**document.to_dict())

    # ------------------------------------------------------------------
    # Labels
    # ------------------------------------------------------------------

    @app.get("/api/files/{file_id}/labels", response_model=List[LabelOut])
    async def list_labels(file_id: int, bridge: PersistenceBridge = Depends(get_bridge)):
        await bridge.load_file(file_id)
        return [_label_out(label) for label in await bridge.load_labels(file_id)]

    @app.post("/api/files/{file_id}/labels", response_model=LabelOut, status_code=201)
    async def create_label(
        file_id: int,
        body: LabelCreate,
        bridge: PersistenceBridge = Depends(get_bridge),
    ):
        session = await _open_session(bridge, file_id)
        label = await session.store.add_label(body.label_type_id, body.start_offset, body.end_offset)
        return _label_out(label)

    @app.put("/api/files/{file_id}/labels", response_model=List[LabelOut])
    async def save_labels(
        file_id: int,
        body: LabelBatch,
        bridge: PersistenceBridge = Depends(get_bridge),
    ):
        session = await _open_session(bridge, file_id)
        labels: List[Label] = []
        for item in body.labels:
            if not session.registry.exists(item.label_type_id):
                raise InvalidLabelType(item.label_type_id)
            session.store.check_span(item.start_offset, item.end_offset)
            labels.append(
                Label(
                    identity=Confirmed(item.id) if item.id is not None else Pending.new(),
                    file_id=file_id,
                    label_type_id=item.label_type_id,
                    start_offset=item.start_offset,
                    end_offset=item.end_offset,
                    value=item.value,
                    created_by=item.created_by,
                    created_at=item.created_at or utc_now_iso(),
                )
            )

        session.store.replace_all(labels)
        await session.save()
        return [_label_out(label) for label in session.labels]

    # ------------------------------------------------------------------
    # Rendering & search
    # ------------------------------------------------------------------

    @app.get("/api/files/{file_id}/segments", response_model=RenderOut)
    async def render_segments(file_id: int, html: bool = False, bridge: PersistenceBridge = Depends(get_bridge)):
        session = await _open_session(bridge, file_id)
        return RenderOut(
            file_id=file_id,
            segments=[SegmentOut(**segment.to_dict()) for segment in session.segments()],
            html=session.render_html() if html else None,
        )

    @app.get("/api/files/{file_id}/search", response_model=SearchOut)
    async def search_text(
        file_id: int,
        q: str,
        regex: bool = False,
        exact: bool = False,
        bridge: PersistenceBridge = Depends(get_bridge),
    ):
        document = await bridge.load_file(file_id)
        matches = find_matches(document.content, q, regex=regex, exact_match=exact)
        return SearchOut(query=q, matches=[[start, end] for start, end in matches])

    return app
