import logging
import weakref
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

# Load environment variables as early as possible
load_dotenv()

from .core.config import settings
from .database import engine, create_db_and_tables
from .exceptions import TelecareError, http_exception_handler, telecare_exception_handler
from .infrastructure.identity.jwt_identity_provider import JwtIdentityProvider
from .infrastructure.realtime.memory_room_registry import InMemoryRoomRegistry
from .middleware import ErrorHandlingMiddleware, LoggingMiddleware, SecurityMiddleware
from .routers import appointments_router, chat_router, chat_socket_router

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format=settings.LOG_FORMAT
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Starting {settings.APP_NAME}...")
    create_db_and_tables(app.state.engine)
    logger.info("Database initialized successfully")
    if not settings.secret_configured:
        logger.warning("JWT_SECRET_KEY is not configured; every authenticated call will be refused")
    yield
    logger.info(f"Shutting down {settings.APP_NAME}...")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    debug=settings.DEBUG,
    lifespan=lifespan,
    docs_url=("/docs" if settings.DOCS_ENABLED else None),
    redoc_url=("/redoc" if settings.DOCS_ENABLED else None),
    openapi_url=("/openapi.json" if settings.DOCS_ENABLED else None)
)

# Process-wide collaborators, injected into services per request or event
app.state.engine = engine
app.state.identity_provider = JwtIdentityProvider(
    settings.SECRET_KEY,
    algorithm=settings.ALGORITHM,
    expires_minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES,
)
app.state.rooms = InMemoryRoomRegistry(send_timeout=settings.WS_SEND_TIMEOUT_SECONDS)
# one send lock per conversation id, dropped once no send holds it
app.state.send_locks = weakref.WeakValueDictionary()

app.add_exception_handler(TelecareError, telecare_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)

app.add_middleware(ErrorHandlingMiddleware)
app.add_middleware(LoggingMiddleware)
app.add_middleware(SecurityMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins_list,
    allow_credentials=settings.CORS_ALLOW_CREDENTIALS,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(appointments_router.router)
app.include_router(chat_router.router)
app.include_router(chat_socket_router.router)


@app.get("/health")
def health():
    return {"status": "ok", "app": settings.APP_NAME, "version": settings.APP_VERSION}
