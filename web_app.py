import json
import mimetypes
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional, Union
from uuid import uuid4

from fastapi import APIRouter, FastAPI, File, Form, HTTPException, Request, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage

from polyclinic.config import load_settings, logger
from polyclinic.consult import ConsultChat
from polyclinic.council import MedicalCouncil
from polyclinic.errors import ConfigurationMissing, MissingInput, PolyclinicError, UnknownSpecialty
from polyclinic.gemini import GeminiAdapter
from polyclinic.models import AnalysisRequest, Attachment
from polyclinic.pipeline import AnalysisPipeline
from polyclinic.specialties import departments, get_specialty

MAX_UPLOAD_MB = 20


class AnalysisResponse(BaseModel):
    status: str = "success"
    department: str
    mode: str
    analysis: Union[Dict[str, Any], List[Any]]


class ConsultRequest(BaseModel):
    message: str
    thread_id: str | None = None
    department: str | None = None
    test: str | None = None
    analysis: Dict[str, Any] | None = None
    consensus: str | None = None


class ConsultHistoryRequest(BaseModel):
    thread_id: str


class ConsultResponse(BaseModel):
    thread_id: str
    messages: List[dict]
    answer: str | None = None


class ConsensusRequest(BaseModel):
    modern: Dict[str, Any]
    traditional: Dict[str, Any]


class TimelineRequest(BaseModel):
    current: Dict[str, Any]
    history: List[Dict[str, Any]] = []


class TextResponse(BaseModel):
    status: str = "success"
    text: str


def _serialize_messages(messages: List[BaseMessage]) -> List[dict]:
    serialized: List[dict] = []
    for message in messages:
        if isinstance(message, HumanMessage):
            role = "user"
        elif isinstance(message, AIMessage):
            role = "assistant"
        else:
            continue
        serialized.append({"role": role, "content": message.content})
    return serialized


def _services(request: Request):
    error = request.app.state.setup_error
    if error is not None:
        raise HTTPException(status_code=503, detail=error.user_message)
    return request.app.state.pipeline, request.app.state.consult


def _council(request: Request) -> MedicalCouncil:
    _services(request)
    return request.app.state.council


async def _run_council(operation, *args) -> TextResponse:
    try:
        text = await run_in_threadpool(operation, *args)
    except MissingInput as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    except PolyclinicError as exc:
        logger.error(f"{operation.__name__} failed: {exc}")
        raise HTTPException(status_code=502, detail=exc.user_message) from exc
    return TextResponse(text=text)


def _parse_fields(fields: str) -> Dict[str, Any]:
    try:
        parsed = json.loads(fields or "{}")
    except json.JSONDecodeError as exc:
        raise HTTPException(status_code=422, detail="fields must be a JSON object") from exc
    if not isinstance(parsed, dict):
        raise HTTPException(status_code=422, detail="fields must be a JSON object")
    return parsed


async def _read_attachments(files: Optional[List[UploadFile]]) -> List[Attachment]:
    attachments = []
    for file in files or []:
        data = await file.read()
        if not data:
            continue
        if len(data) > MAX_UPLOAD_MB * 1024 * 1024:
            raise HTTPException(status_code=413, detail=f"{file.filename} is larger than {MAX_UPLOAD_MB} MB")
        mime_type = file.content_type
        if not mime_type or mime_type == "application/octet-stream":
            mime_type = mimetypes.guess_type(file.filename or "")[0] or "application/octet-stream"
        attachments.append(Attachment(data=data, mime_type=mime_type))
    return attachments


router = APIRouter()


@router.get("/api/specialties")
async def list_specialties() -> Dict[str, List[dict]]:
    return {name: [row.describe() for row in rows] for name, rows in departments().items()}


@router.post("/api/analyze/{department}/{mode}", response_model=AnalysisResponse)
async def analyze(
    request: Request,
    department: str,
    mode: str,
    files: Optional[List[UploadFile]] = File(None),
    context: str = Form(""),
    fields: str = Form("{}"),
) -> AnalysisResponse:
    """Run one department analysis on the uploaded media and form fields"""
    pipeline, _ = _services(request)
    try:
        specialty = get_specialty(department, mode, pipeline.table)
    except UnknownSpecialty as exc:
        raise HTTPException(status_code=404, detail=exc.user_message) from exc

    analysis_request = AnalysisRequest(
        specialty=specialty.department,
        mode=specialty.mode,
        attachments=await _read_attachments(files),
        context=context,
        fields=_parse_fields(fields),
    )
    try:
        specialty.check_request(analysis_request)
    except MissingInput as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc

    try:
        analysis = await run_in_threadpool(pipeline.run, analysis_request)
    except ConfigurationMissing as exc:
        raise HTTPException(status_code=503, detail=exc.user_message) from exc
    except PolyclinicError as exc:
        logger.error(f"Analysis {specialty.department}/{specialty.mode} failed: {exc}")
        raise HTTPException(status_code=502, detail=exc.user_message) from exc

    return AnalysisResponse(department=specialty.department, mode=specialty.mode, analysis=analysis)


@router.post("/api/consult", response_model=ConsultResponse)
async def consult(request: Request, body: ConsultRequest) -> ConsultResponse:
    _, chat = _services(request)
    thread_id = body.thread_id or str(uuid4())
    if body.message.strip() == "":
        raise HTTPException(status_code=422, detail="message must not be empty")
    try:
        answer = await run_in_threadpool(
            chat.ask, thread_id, body.message, body.department, body.test, body.analysis, body.consensus
        )
        history = await run_in_threadpool(chat.history, thread_id)
    except PolyclinicError as exc:
        logger.error(f"Consult thread {thread_id} failed: {exc}")
        raise HTTPException(status_code=502, detail=exc.user_message) from exc

    return ConsultResponse(thread_id=thread_id, messages=_serialize_messages(history), answer=answer)


@router.post("/api/consult/history", response_model=ConsultResponse)
async def consult_history(request: Request, body: ConsultHistoryRequest) -> ConsultResponse:
    _, chat = _services(request)
    history = await run_in_threadpool(chat.history, body.thread_id)
    return ConsultResponse(thread_id=body.thread_id, messages=_serialize_messages(history))


@router.post("/api/intake/consensus", response_model=TextResponse)
async def consensus(request: Request, body: ConsensusRequest) -> TextResponse:
    """Board consensus between the modern and traditional intake opinions"""
    council = _council(request)
    return await _run_council(council.consensus, body.modern, body.traditional)


@router.post("/api/transcribe", response_model=TextResponse)
async def transcribe(request: Request, file: UploadFile = File(...)) -> TextResponse:
    council = _council(request)
    attachments = await _read_attachments([file])
    if not attachments:
        raise HTTPException(status_code=422, detail="The dictation file is empty")
    return await _run_council(council.transcribe, attachments[0])


@router.post("/api/timeline", response_model=TextResponse)
async def timeline(request: Request, body: TimelineRequest) -> TextResponse:
    council = _council(request)
    return await _run_council(council.timeline, body.current, body.history)


def create_app(pipeline: Optional[AnalysisPipeline] = None, consult_chat: Optional[ConsultChat] = None,
               council: Optional[MedicalCouncil] = None) -> FastAPI:
    """
    Build the API. Services not passed in are created once at startup from the environment.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if app.state.pipeline is None:
            try:
                settings = load_settings()
                adapter = GeminiAdapter.from_settings(settings)
                app.state.pipeline = AnalysisPipeline(adapter, settings.language, settings.temperature)
                app.state.consult = ConsultChat(adapter, settings.language, settings.temperature)
                app.state.council = MedicalCouncil(adapter, settings.language, settings.temperature)
            except ConfigurationMissing as exc:
                logger.error(f"Server started without AI configuration: {exc}")
                app.state.setup_error = exc
        logger.info("Server ready!")
        yield
        logger.info("Server shutting down...")

    app = FastAPI(title="Polyclinic AI", lifespan=lifespan)
    app.state.pipeline = pipeline
    app.state.consult = consult_chat
    app.state.council = council
    app.state.setup_error = None
    if pipeline is not None:
        if consult_chat is None:
            app.state.consult = ConsultChat(pipeline.adapter, pipeline.language, pipeline.temperature)
        if council is None:
            app.state.council = MedicalCouncil(pipeline.adapter, pipeline.language, pipeline.temperature)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
