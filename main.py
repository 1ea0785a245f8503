from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from contextlib import asynccontextmanager
from starlette.middleware.base import BaseHTTPMiddleware
import uvicorn
from dotenv import load_dotenv

# Load .env before settings are read
load_dotenv()

from app.agents.brain import Brain
from app.auth.service.auth_service import AuthService
from app.chat.api.route import chat_router
from app.chat.repository.memory_repository import MemoryRepository
from app.chat.service.memory import ConversationMemory
from app.chat.service.session_service import ChatRoom
from app.core.config import settings
from app.core.logger import get_logger, set_log_level
from app.llm.api.route import llm_router
from app.llm.service.llm_service import LLMService, create_provider
from app.tools.builtins.current_time import current_time_tool
from app.tools.entity.tool import ToolContext
from app.tools.service.registry import ToolRegistry
from pkg.redis.client import RedisClient
from pkg.redis.upstash_client import UpstashRedisClient

logger = get_logger("emo-robot")

SENSITIVE_MARKERS = ("KEY", "TOKEN", "SECRET", "PASSWORD")


def log_environment() -> None:
    """Print the effective configuration, masking sensitive values."""
    logger.info("=== Configuration Check ===")
    for name, value in settings.model_dump().items():
        if value in (None, ""):
            logger.debug(f"{name}: NOT SET")
        elif any(marker in name for marker in SENSITIVE_MARKERS):
            logger.info(f"{name}: ***MASKED*** (length: {len(str(value))})")
        else:
            logger.info(f"{name}: {value}")
    logger.info("===========================")


async def create_store():
    if settings.UPSTASH_REDIS_REST_URL and settings.UPSTASH_REDIS_REST_TOKEN:
        logger.info("Using Upstash Redis REST API...")
        store = UpstashRedisClient(logger, url=settings.UPSTASH_REDIS_REST_URL, token=settings.UPSTASH_REDIS_REST_TOKEN)
    else:
        logger.info(f"Using Redis at {settings.REDIS_HOST}:{settings.REDIS_PORT}")
        store = RedisClient(
            logger,
            host=settings.REDIS_HOST,
            port=settings.REDIS_PORT,
            password=settings.REDIS_PASSWORD,
            ssl=settings.REDIS_SSL,
        )
    try:
        if not await store.ping():
            raise ConnectionError("Store did not answer PING")
    except Exception:
        await store.async_close()
        raise
    return store


def create_tool_registry() -> ToolRegistry:
    registry = ToolRegistry()
    registry.register(current_time_tool)
    return registry


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager - ensures startup completes before accepting requests"""
    set_log_level(settings.LOG_LEVEL)
    logger.info(f"{settings.APP_NAME} starting up...")
    log_environment()

    app.state.admin_api_key = settings.ADMIN_API_KEY
    app.state.robot = None
    app.state.store = None
    app.state.llm_service = None
    app.state.tool_registry = None

    try:
        store = await create_store()
        app.state.store = store

        repository = MemoryRepository(store, settings.memory_storage_key)
        memory = ConversationMemory(repository, max_size=settings.MEMORY_MAX_SIZE)
        await memory.load()

        auth_service = AuthService(settings.USER_SECRETS, get_logger("AuthService"))

        registry = create_tool_registry()
        llm_service = LLMService(create_provider(settings), request_timeout_ms=settings.REQUEST_TIMEOUT_MS)
        brain = Brain(
            llm_service,
            registry,
            robot_name=settings.AI_ROBOT_NAME,
            tool_context=ToolContext(default_timezone=settings.DEFAULT_TIMEZONE),
            enable_tool_calling=settings.ENABLE_TOOL_CALLING,
        )
        room = ChatRoom(
            memory,
            auth_service,
            brain,
            robot_name=settings.AI_ROBOT_NAME,
            mode=settings.ROOM_MODE,
            max_message_length=settings.MAX_MESSAGE_LENGTH,
            rate_limit_ms=settings.RATE_LIMIT_MS,
            enable_commands=settings.ENABLE_COMMANDS,
        )

        app.state.tool_registry = registry
        app.state.llm_service = llm_service
        app.state.robot = room
        app.state.startup_complete = True
        app.state.startup_error = None
        logger.info("✓ Startup complete - application is ready!")

    except Exception as e:
        logger.error(f"✗ Startup failed: {e}", exc_info=True)
        logger.error("Application will start in degraded mode - check logs above")
        app.state.startup_complete = False
        app.state.startup_error = str(e)

    # Application is running
    yield

    logger.info(f"{settings.APP_NAME} shutting down...")
    if app.state.robot is not None:
        await app.state.robot.shutdown()
    if app.state.llm_service is not None:
        await app.state.llm_service.close()
    if app.state.store is not None:
        await app.state.store.async_close()


app = FastAPI(
    title=settings.APP_NAME,
    description="Single-room WebSocket chat with an LLM-backed robot",
    version="1.0.0",
    lifespan=lifespan
)


# Startup Check Middleware - ensures no requests processed before startup completes
class StartupCheckMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        # Allow health checks during startup
        if request.url.path in ["/health", "/", "/docs", "/openapi.json"]:
            return await call_next(request)

        if not getattr(request.app.state, "startup_complete", False):
            startup_error = getattr(request.app.state, "startup_error", None)
            return JSONResponse(
                status_code=503,
                content={
                    "status": False,
                    "message": f"Service initialization failed: {startup_error}" if startup_error
                    else "Service is starting up. Please retry in a few seconds."
                }
            )

        return await call_next(request)


app.add_middleware(StartupCheckMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # adjust in prod
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """Convert HTTPException to standardized error format"""
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "status": False,
            "message": exc.detail
        },
        headers=exc.headers
    )


# Routers
app.include_router(chat_router)
app.include_router(llm_router)


@app.get("/health")
async def health():
    """Health check that shows service status"""
    startup_complete = getattr(app.state, "startup_complete", False)
    startup_error = getattr(app.state, "startup_error", None)

    # Return 200 for platform health checks even when degraded
    if not startup_complete:
        return JSONResponse(
            status_code=200,
            content={
                "status": "starting" if startup_error is None else "degraded",
                "service": settings.APP_NAME,
                "message": startup_error or "Application is still starting up...",
                "startup_complete": False
            }
        )

    room = app.state.robot
    provider = app.state.llm_service.provider
    checks = {
        "store": "✓ connected" if app.state.store is not None else "✗ not_initialized",
        "room": f"✓ ready ({room.online_count} online)" if room is not None else "✗ not_ready",
        "provider": f"✓ {provider.name}" if provider.is_enabled() else f"✗ {provider.name} (missing credentials)",
    }
    all_healthy = all(v.startswith("✓") for v in checks.values())

    return {
        "status": "ok" if all_healthy else "degraded",
        "service": settings.APP_NAME,
        "checks": checks,
        "startup_complete": True
    }


@app.get("/", response_class=PlainTextResponse)
async def root():
    """Root endpoint - simple check that app is running"""
    return "EMO Robot Running."


if __name__ == "__main__":
    uvicorn.run("main:app", host=settings.HOST, port=settings.PORT, reload=settings.DEBUG)
