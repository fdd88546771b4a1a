from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Union

from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import logging
from langchain_core.language_models.chat_models import BaseChatModel
from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError
from starlette.concurrency import run_in_threadpool
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.errors import ApiError, RateLimitError, UpstreamError, ValidationError
from app.rate_limit import ai_limiter, client_address, enforce_ai_limit, general_limiter
from auth.store import UserRepository, normalize_user_id, seed_default_store, verify_pin
from auth.tokens import TokenClaims, TokenIssuer
from companion.agent import CompanionAgent, FailureKind
from companion.core.prompt import MessageType, build_prompt
from config.settings import Settings, get_settings


logging.basicConfig(
    level=get_settings().log_level,
    format="[%(asctime)s] %(levelname)s - %(message)s",
)
logger = logging.getLogger("june")

LOGIN_PATH = "/api/auth/login"

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "SAMEORIGIN",
    "Referrer-Policy": "no-referrer",
}


class ChatTurn(BaseModel):
    role: str = Field(..., description="'user' or 'assistant'")
    content: str


class LoginRequest(BaseModel):
    name: Optional[str] = None
    pin: Optional[Union[str, int]] = None


class ChatRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    # Element shape is checked only when the turns are actually sent.
    messages: Optional[List[Any]] = Field(
        None, description="Current turn(s) to answer"
    )
    message_type: Optional[Any] = Field(
        MessageType.CONVERSATION.value,
        alias="messageType",
        description="'initial_greeting' or 'conversation'",
    )
    conversation_history: Optional[List[ChatTurn]] = Field(
        default_factory=list,
        alias="conversationHistory",
        description="Earlier turns, oldest first (frontend-managed)",
    )


router = APIRouter(prefix="/api")


@router.get("/health")
def health(request: Request) -> Dict[str, Any]:
    settings: Settings = request.app.state.settings
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "environment": settings.app_env,
        "usersCount": request.app.state.store.count(),
        "storageType": "localStorage (client-side)",
    }


@router.post("/auth/login")
async def login(payload: LoginRequest, request: Request) -> Dict[str, Any]:
    if not payload.name or payload.pin is None or payload.pin == "":
        raise ValidationError("Name and PIN are required")

    try:
        user_id = normalize_user_id(payload.name)
        logger.info("Login attempt for user: %s", user_id)

        store: UserRepository = request.app.state.store
        user = store.get(user_id)
        if user is None:
            logger.info("Login failed, unknown user: %s", user_id)
            raise ApiError("Invalid credentials", status_code=401)

        valid_pin = await run_in_threadpool(verify_pin, str(payload.pin), user.pin_hash)
        if not valid_pin:
            logger.info("Login failed, invalid PIN for: %s", user_id)
            raise ApiError("Invalid credentials", status_code=401)

        token = request.app.state.tokens.issue(user.id, user.display_name)
        logger.info("Login successful for: %s", user.id)
        return {"token": token, "user": {"id": user.id, "name": user.display_name}}
    except ApiError:
        raise
    except Exception as e:
        logger.exception("Login error: %s", e)
        raise ApiError("Internal server error", status_code=500)


@router.post("/ai/chat")
async def chat(
    request: Request,
    claims: TokenClaims = Depends(enforce_ai_limit),
) -> Dict[str, Any]:
    # Body is read only after the auth gate and AI limiter have passed.
    payload = await _read_chat_request(request)
    if payload.messages is None:
        raise ValidationError("Messages array is required")

    message_type = MessageType.parse(payload.message_type)
    history = [turn.model_dump() for turn in payload.conversation_history or []]
    plan = build_prompt(claims.name, message_type, len(history))
    if plan.turn_override is not None:
        current = [{"role": "user", "content": plan.turn_override}]
    else:
        current = _current_turns(payload.messages)

    try:
        logger.info(
            "AI request for %s: type=%s history_turns=%s",
            claims.user_id,
            message_type.value,
            len(history),
        )
        companion: CompanionAgent = request.app.state.companion
        result = await companion.complete(plan.system_prompt, history, current)
    except Exception as e:
        logger.exception("AI chat error: %s", e)
        raise UpstreamError("AI service error. Please try again.")

    if result.failure is FailureKind.RATE_LIMITED:
        raise RateLimitError("AI service rate limit exceeded. Please try again in a moment.")
    if not result.ok:
        raise UpstreamError("AI service error. Please try again.")

    logger.info("AI response generated for %s: %s chars", claims.user_id, len(result.text))
    return {"response": result.text}


async def _read_chat_request(request: Request) -> ChatRequest:
    try:
        body = await request.json()
    except ValueError:
        raise ValidationError("Request body must be valid JSON") from None
    try:
        return ChatRequest.model_validate(body)
    except PydanticValidationError as exc:
        logger.info("Rejected chat body: %s", [error.get("loc") for error in exc.errors()])
        raise ValidationError(_chat_field_message(exc.errors())) from None


def _current_turns(messages: List[Any]) -> List[Dict[str, Any]]:
    try:
        return [ChatTurn.model_validate(item).model_dump() for item in messages]
    except PydanticValidationError:
        raise ValidationError("Each message needs a role and content") from None


def _error_field(errors) -> str:
    if not errors:
        return ""
    return ".".join(str(part) for part in errors[0].get("loc", ()) if part != "body")


def _chat_field_message(errors) -> str:
    field = _error_field(errors)
    top = field.split(".", 1)[0]
    if not field or top == "messages":
        # A body that is not an object has no field location.
        return "Messages array is required"
    if top == "conversationHistory":
        return "conversationHistory must be an array of messages"
    return f"Invalid value for '{field}'"


def _error_response(status_code: int, body: Dict[str, Any], headers=None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=body, headers=headers)


def _validation_message(request: Request, exc: RequestValidationError) -> str:
    if request.url.path == LOGIN_PATH:
        return "Name and PIN are required"
    field = _error_field(exc.errors())
    return f"Invalid value for '{field}'" if field else "Invalid request body"


def _register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(ApiError)
    async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
        return _error_response(exc.status_code, {"error": exc.message}, exc.headers)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        # Only field locations; bodies can carry PINs.
        locations = [error.get("loc") for error in exc.errors()]
        logger.info("Rejected request body on %s: %s", request.url.path, locations)
        return _error_response(400, {"error": _validation_message(request, exc)})

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        # Wrong method on a known path is reported like an unknown route.
        if exc.status_code in (404, 405):
            path = request.url.path
            if request.url.query:
                path = f"{path}?{request.url.query}"
            logger.info("404 Not Found: %s %s", request.method, path)
            return _error_response(
                404,
                {"error": "Route not found", "path": path, "method": request.method},
            )
        return _error_response(exc.status_code, {"error": exc.detail}, getattr(exc, "headers", None))

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
        return _error_response(500, {"error": "Something went wrong"})


def create_app(
    settings: Optional[Settings] = None,
    store: Optional[UserRepository] = None,
    chat_model: Optional[BaseChatModel] = None,
) -> FastAPI:
    settings = settings or get_settings()

    app = FastAPI(title="June Backend API", version="1.0.0")
    app.state.settings = settings
    # Seeded before the app serves its first request.
    app.state.store = store if store is not None else seed_default_store(settings)
    app.state.tokens = TokenIssuer(
        settings.jwt_secret,
        ttl=timedelta(days=settings.jwt_expires_days),
        algorithm=settings.jwt_algorithm,
    )
    app.state.companion = CompanionAgent(settings, chat_model)
    app.state.general_limiter = general_limiter()
    app.state.ai_limiter = ai_limiter()

    @app.middleware("http")
    async def api_rate_limit(request: Request, call_next):
        headers: Dict[str, str] = {}
        if request.url.path.startswith("/api/"):
            key = client_address(request, settings.trust_proxy)
            try:
                headers = request.app.state.general_limiter.hit(key)
            except RateLimitError as exc:
                response = _error_response(exc.status_code, {"error": exc.message}, exc.headers)
                response.headers.update(SECURITY_HEADERS)
                return response

        try:
            response = await call_next(request)
        except Exception as exc:
            # Handled here, inside CORS, so browsers can read the error body.
            logger.exception("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
            response = _error_response(500, {"error": "Something went wrong"})
        for name, value in headers.items():
            # Route-specific limits take precedence.
            if name not in response.headers:
                response.headers[name] = value
        response.headers.update(SECURITY_HEADERS)
        return response

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_origin_regex=settings.cors_origin_regex or None,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    _register_error_handlers(app)
    app.include_router(router)

    logger.info(
        "June backend ready: env=%s model=%s key_set=%s",
        settings.app_env,
        settings.gemini_model,
        bool(settings.google_api_key),
    )
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=get_settings().port)
