import logging
from contextlib import asynccontextmanager

import httpx
from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import settings
from .db import create_db_and_tables
from .dependencies import users_router_permission
from .exceptions import ExamVaultError
from .routers import admin_routers, auth, exam_routers, student_routers, upload_routers
from .schemas.user_schema import UserCreate, UserRead, UserUpdate
from .security import app_users, auth_backend
from .services.content_store import PinataContentStore
from .services.mail_service import Mailer, SMTPTransport, SMTPTransportPool
from .services.notification_service import ExamNotifier

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def build_notifier() -> ExamNotifier:
    mailer = None
    if settings.mail_enabled:
        pool = SMTPTransportPool(
            lambda: SMTPTransport(
                settings.EMAIL_HOST,
                settings.EMAIL_PORT,
                settings.EMAIL_USER,
                settings.EMAIL_PASS,
                healthcheck_seconds=settings.SMTP_HEALTHCHECK_SECONDS,
            ),
            size=settings.SMTP_POOL_SIZE,
        )
        mailer = Mailer(pool, settings.EMAIL_USER, settings.EMAIL_FROM_NAME, max_retries=settings.EMAIL_MAX_RETRIES)
    else:
        logger.warning("EMAIL_USER/EMAIL_PASS not set, notifications will only be logged")
    return ExamNotifier(mailer, settings.FRONTEND_URL)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # run once when app starts. Make DB and the outbound clients.
    await create_db_and_tables()
    client = httpx.AsyncClient()
    app.state.content_store = PinataContentStore(
        client,
        settings.PINATA_JWT,
        settings.PINATA_API_URL,
        settings.IPFS_GATEWAYS,
        timeout=settings.CONTENT_STORE_TIMEOUT,
    )
    app.state.notifier = build_notifier()
    yield
    app.state.notifier.close()
    await client.aclose()


app = FastAPI(lifespan=lifespan)


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,  # which sites can call this API
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ExamVaultError)
async def exam_vault_error_handler(request: Request, exc: ExamVaultError):
    if exc.status_code >= 500:
        logger.error("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc.message)
    body = {"detail": exc.message}
    index = getattr(exc, "index", None)
    if index is not None:
        body["question"] = index
    return JSONResponse(status_code=exc.status_code, content=body)


# Attach users router with small permission check. This router provides /users and /users/me
app.include_router(
    app_users.get_users_router(UserRead, UserUpdate),
    prefix="/users",
    tags=["users"],
    dependencies=[Depends(users_router_permission)],
)


app.include_router(upload_routers.router, prefix="/api")
app.include_router(admin_routers.router, prefix="/api")
app.include_router(exam_routers.router, prefix="/api")
app.include_router(student_routers.router, prefix="/api", tags=["Student"])

# Auth routers
app.include_router(app_users.get_auth_router(auth_backend), prefix="/auth/jwt", tags=["auth"])
app.include_router(auth.router)
app.include_router(app_users.get_register_router(UserRead, UserCreate), prefix="/auth", tags=["auth"])
app.include_router(app_users.get_verify_router(UserRead), prefix="/auth", tags=["auth"])
