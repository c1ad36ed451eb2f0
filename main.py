import logging
import secrets
from contextlib import asynccontextmanager

import uvicorn
from fastapi import Depends, FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.openapi.docs import get_redoc_html, get_swagger_ui_html
from fastapi.openapi.utils import get_openapi
from fastapi.responses import JSONResponse
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from app.api.endpoints import auth, health, user
from app.core.config import settings
from app.core.exceptions import IdentityServiceError

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger("identity")


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.DATABASE_AUTO_CREATE:
        from app.db.base import Base
        from app.db.session import engine
        import app.models.users  # noqa: F401  register the table

        Base.metadata.create_all(bind=engine)
        logger.info("database tables ensured")
    if not (settings.PEOPLE_API_URL and settings.PEOPLE_API_KEY):
        logger.warning("PEOPLE_API_URL / PEOPLE_API_KEY not set, directory sync disabled")
    yield


# Define the FastAPI application instance
app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    docs_url=None,
    redoc_url=None,
    openapi_url = None,
    lifespan=lifespan,
)

# CORS middleware, credentials are needed for the session cookie
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(IdentityServiceError)
async def identity_error_handler(request: Request, exc: IdentityServiceError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_content())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    message = "Invalid request body"
    if errors:
        first = errors[0]
        field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        if field and first.get("type") != "json_invalid":
            message = f"Invalid {field}: {first.get('msg', 'invalid value')}"
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": message})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "Internal server error"},
    )


security = HTTPBasic()
def doc_auth(credentials: HTTPBasicCredentials = Depends(security)):
    if not settings.DOC_PASSWORD:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not Found")
    correct_password = secrets.compare_digest(credentials.password, settings.DOC_PASSWORD)
    if not (correct_password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect password",
            headers={"WWW-Authenticate": "Basic"},
        )
    return credentials.username

@app.get("/docs", include_in_schema=False)
async def get_swagger_documentation(username: str = Depends(doc_auth)):
    return get_swagger_ui_html(openapi_url="/openapi.json", title="docs")

@app.get("/redoc", include_in_schema=False)
async def get_redoc_documentation(username: str = Depends(doc_auth)):
    return get_redoc_html(openapi_url="/openapi.json", title="docs")

@app.get("/openapi.json", include_in_schema=False)
async def openapi(username: str = Depends(doc_auth)):
    return get_openapi(title=app.title, version=app.version, routes=app.routes)


# Include your API routers
app.include_router(health.router)

g_prefix = "/api"
app.include_router(auth.router, prefix=g_prefix + "/auth")
app.include_router(user.router, prefix=g_prefix + "/user")


if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host=settings.HOST,
        port=settings.PORT,
        ssl_keyfile=settings.SSL_KEY,
        ssl_certfile=settings.SSL_CERT,
        reload=settings.DEBUG
    )
