# src/aclio/server/app.py

"""
HTTP backend for the Aclio clients.

Holds the LLM API key server-side and exposes the coach operations as JSON
endpoints under /api, plus one Server-Sent-Events chat stream.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse

from .. import __version__
from ..coach.service import ChatRequest, CoachService
from ..config import Settings, get_settings
from ..core.ports import LLMClient
from ..errors import AclioError
from ..goals.models import Goal, Step
from ..llm.client import OpenAICompatibleLLMClient
from .schemas import (
    DoItForMeResponse,
    ExpandStepResponse,
    ExtendGoalRequest,
    ExtendGoalResponse,
    GenerateQuestionsRequest,
    GenerateQuestionsResponse,
    GenerateStepsRequest,
    GenerateStepsResponse,
    HealthResponse,
    QuestionOut,
    ResourceOut,
    StepActionRequest,
    StepIn,
    StepOut,
    TalkRequest,
    TalkResponse,
)

logger = logging.getLogger(__name__)

API_KEY_MISSING = "API key not configured on server"


class ApiError(Exception):
    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message


def _step_from(step: StepIn, fallback_id: int = 1) -> Step:
    return Step(
        id=step.id if step.id is not None else fallback_id,
        title=step.title,
        description=step.description,
        duration=step.duration,
    )


def _sse(payload: dict) -> str:
    return f"data: {json.dumps(payload, ensure_ascii=False)}\n\n"


def create_app(settings: Settings | None = None, llm: LLMClient | None = None) -> FastAPI:
    settings = settings or get_settings()
    llm_injected = llm is not None
    llm_client: LLMClient = llm if llm is not None else OpenAICompatibleLLMClient(settings)
    coach = CoachService(llm_client)

    app = FastAPI(
        title="Aclio Backend",
        description="AI goal coaching: step plans, step help and chat.",
        version=__version__,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    app.state.settings = settings
    app.state.coach = coach

    if not settings.llm_configured and not llm_injected:
        logger.error("LLM API key is not set. Set ACLIO_LLM_API_KEY (or GROQ_API_KEY) in .env.")

    def require_llm() -> None:
        if not llm_injected and not settings.llm_configured:
            raise ApiError(500, API_KEY_MISSING)

    # ============ Error handlers ============

    @app.exception_handler(ApiError)
    async def _api_error(_: Request, exc: ApiError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    @app.exception_handler(AclioError)
    async def _aclio_error(request: Request, exc: AclioError) -> JSONResponse:
        logger.error("%s failed: %s", request.url.path, exc)
        return JSONResponse(status_code=500, content={"error": str(exc) or "AI service error"})

    @app.exception_handler(RequestValidationError)
    async def _validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        logger.info("Invalid request body for %s: %s", request.url.path, exc.errors())
        return JSONResponse(status_code=400, content={"error": "Invalid request body"})

    @app.exception_handler(Exception)
    async def _unexpected_error(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("%s failed unexpectedly.", request.url.path)
        return JSONResponse(status_code=500, content={"error": str(exc) or "Internal server error"})

    # ============ Endpoints ============

    @app.get("/api/health", response_model=HealthResponse)
    def health() -> HealthResponse:
        return HealthResponse(
            status="ok",
            timestamp=datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            api_key_configured=settings.llm_configured or llm_injected,
        )

    @app.post("/api/generate-steps", response_model=GenerateStepsResponse, response_model_exclude_none=True)
    def generate_steps(body: GenerateStepsRequest) -> GenerateStepsResponse:
        if not body.goal:
            raise ApiError(400, "Goal is required")
        require_llm()

        plan = coach.generate_steps(
            body.goal,
            profile=body.profile,
            location=body.location,
            additional_context=body.additional_context,
            categories=body.categories,
        )
        return GenerateStepsResponse(
            category=plan.category,
            steps=[
                StepOut(
                    id=s.id,
                    title=s.title,
                    description=s.description,
                    duration=s.duration,
                    map_search=plan.map_search.get(s.id),
                )
                for s in plan.steps
            ],
        )

    @app.post("/api/generate-questions", response_model=GenerateQuestionsResponse)
    def generate_questions(body: GenerateQuestionsRequest) -> GenerateQuestionsResponse:
        if not body.goal:
            raise ApiError(400, "Goal is required")
        require_llm()

        questions = coach.generate_questions(body.goal)
        return GenerateQuestionsResponse(
            questions=[QuestionOut(id=q.id, question=q.question, placeholder=q.placeholder) for q in questions],
        )

    @app.post("/api/expand-step", response_model=ExpandStepResponse)
    def expand_step(body: StepActionRequest) -> ExpandStepResponse:
        if body.step is None:
            raise ApiError(400, "Step is required")
        require_llm()

        expanded = coach.expand_step(body.resolved_goal_name(), _step_from(body.step))
        return ExpandStepResponse(
            detailed_guide=expanded.detailed_guide,
            resources=[ResourceOut(**r.to_dict()) for r in expanded.resources],
            tips=expanded.tips,
            search_query=expanded.search_query,
        )

    @app.post("/api/do-it-for-me", response_model=DoItForMeResponse)
    def do_it_for_me(body: StepActionRequest) -> DoItForMeResponse:
        if body.step is None:
            raise ApiError(400, "Step is required")
        require_llm()

        result = coach.do_it_for_me(body.resolved_goal_name(), _step_from(body.step), body.profile)
        return DoItForMeResponse(result=result)

    @app.post("/api/extend-goal", response_model=ExtendGoalResponse, response_model_exclude_none=True)
    def extend_goal(body: ExtendGoalRequest) -> ExtendGoalResponse:
        goal_name = body.goal_name or body.goal
        if not goal_name:
            raise ApiError(400, "Goal is required")
        if not body.extension or not body.extension.strip():
            raise ApiError(400, "Extension is required")
        require_llm()

        goal = Goal(
            name=goal_name,
            steps=[_step_from(s, i) for i, s in enumerate(body.steps, start=1)],
        )
        steps = coach.extend_goal(goal, body.extension.strip(), body.profile)
        return ExtendGoalResponse(
            steps=[StepOut(id=s.id, title=s.title, description=s.description, duration=s.duration) for s in steps],
        )

    def _chat_request(body: TalkRequest) -> ChatRequest:
        return ChatRequest(
            message=body.message or "",
            goal_name=body.goal_name,
            goal_category=body.goal_category,
            steps=[s.model_dump() for s in body.steps],
            completed_steps=list(body.completed_steps),
            chat_history=[{"role": m.role, "content": m.content} for m in body.chat_history],
            profile=body.profile,
        )

    @app.post("/api/talk-to-aclio", response_model=TalkResponse)
    def talk_to_aclio(body: TalkRequest) -> TalkResponse:
        if not body.message or not body.message.strip():
            raise ApiError(400, "Message is required")
        require_llm()

        return TalkResponse(response=coach.talk(_chat_request(body)))

    @app.post("/api/talk-to-aclio-stream")
    def talk_to_aclio_stream(body: TalkRequest) -> StreamingResponse:
        if not body.message or not body.message.strip():
            raise ApiError(400, "Message is required")
        require_llm()

        request = _chat_request(body)

        def events() -> Iterator[str]:
            try:
                for chunk in coach.stream_talk(request):
                    if chunk:
                        yield _sse({"text": chunk})
            except AclioError as e:
                logger.error("Chat stream failed: %s", e)
                yield _sse({"error": str(e) or "AI service error"})
                return
            except Exception as e:
                logger.exception("Chat stream failed.")
                yield _sse({"error": str(e) or "AI service error"})
                return
            yield _sse({"done": True})

        return StreamingResponse(
            events(),
            media_type="text/event-stream",
            headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
        )

    return app


def main() -> None:
    import uvicorn

    from ..logging_setup import setup_logging

    settings = get_settings()
    setup_logging(
        log_dir=settings.data_dir,
        console_level=getattr(logging, settings.log_level.upper(), logging.INFO),
    )
    logger.info(
        "Aclio backend on http://%s:%d (API key: %s)",
        settings.server_host,
        settings.server_port,
        "configured" if settings.llm_configured else "missing",
    )
    uvicorn.run(create_app(settings), host=settings.server_host, port=settings.server_port)


if __name__ == "__main__":
    main()
