import logging
import re

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.sessions import SessionMiddleware

# Application imports
from app.core.config import settings
from app.core.security import authenticate_admin
from app.db.base import Base
from app.api.v2.api import api_router
from app.db.session import async_engine

# SQLAdmin
from sqladmin.authentication import AuthenticationBackend
from app.admin import BackOfficeAdmin, ResourceAdmin, SkillAdmin

# --- Logging ---
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# --- FastAPI application ---
app = FastAPI(
    title="Skill Catalog API V2",
    openapi_url="/api/v2/openapi.json"
)


def _sanitize_origin(origin: str | None) -> str | None:
    if not origin:
        return None
    value = origin.strip()
    if not value:
        return None
    if not value.startswith("http"):
        value = f"https://{value}"
    return value.rstrip("/")


def _compile_origin_regex(patterns: set[str]) -> re.Pattern[str] | None:
    valid_patterns: list[str] = []
    for pattern in sorted(patterns):
        candidate = pattern.strip()
        if not candidate:
            continue

        try:
            re.compile(candidate)
        except re.error as exc:
            logger.warning("Ignoring invalid CORS regex: %s (%s)", candidate, exc)
            continue

        valid_patterns.append(candidate)

    if not valid_patterns:
        return None
    combined = "|".join(f"(?:{pattern})" for pattern in valid_patterns)
    return re.compile(combined)


def _build_cors_config() -> tuple[list[str], re.Pattern[str] | None]:
    origins = {_sanitize_origin(o) for o in settings.BACKEND_CORS_ORIGINS}
    allow_origins = sorted({origin for origin in origins if origin})
    allow_origin_regex = _compile_origin_regex(set(settings.BACKEND_CORS_ORIGIN_REGEXES))

    logger.info("CORS origins: %s", allow_origins)
    if allow_origin_regex is not None:
        logger.info("CORS regex: %s", allow_origin_regex.pattern)
    return allow_origins, allow_origin_regex


# --- Middlewares ---
app.add_middleware(SessionMiddleware, secret_key=settings.SECRET_KEY)

cors_origins, cors_regex = _build_cors_config()
cors_kwargs: dict[str, object] = {
    "allow_origins": cors_origins,
    "allow_credentials": True,
    "allow_methods": ["*"],
    "allow_headers": ["Authorization", "Content-Type", "X-Access-Token"],
}
if cors_regex is not None:
    cors_kwargs["allow_origin_regex"] = cors_regex

app.add_middleware(CORSMiddleware, **cors_kwargs)


# --- Back office ---
class AdminAuth(AuthenticationBackend):
    async def login(self, request: Request) -> bool:
        form = await request.form()
        username = form.get("username")
        password = form.get("password")

        if authenticate_admin(username, password):
            request.session.update({"token": "admin_logged_in", "user": username})
            return True
        logger.warning("Failed back-office login for %s", username)
        return False

    async def logout(self, request: Request) -> bool:
        request.session.clear()
        return True

    async def authenticate(self, request: Request) -> bool:
        return "token" in request.session


authentication_backend = AdminAuth(secret_key=settings.SECRET_KEY)
admin = BackOfficeAdmin(
    app,
    async_engine,
    authentication_backend=authentication_backend,
    base_url="/admin-ui",
    title="Skill Catalog",
)
admin.add_view(SkillAdmin)
admin.add_view(ResourceAdmin)
app.include_router(api_router, prefix="/api/v2")


# --- Startup ---
@app.on_event("startup")
async def startup():
    logger.info("Checking and creating database tables...")
    async with async_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables are ready.")

    if not settings.ADMIN_PASSWORD_HASH:
        logger.warning("ADMIN_PASSWORD_HASH is not set: admin login is disabled.")


# --- Root route ---
@app.get("/")
def read_root():
    return {"message": "Welcome to the Skill Catalog API V2!"}
