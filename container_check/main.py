# main.py
import logging
import os

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.openapi.utils import get_openapi
from fastapi.staticfiles import StaticFiles

from container_check import config
from container_check.database import init_db
from container_check.errors import InspectionError
from container_check.routers import (
    admin_router,
    auth_router,
    checker_router,
    checklist_router,
    security_router,
    users_router,
)
from container_check.utils import error_resp

logger = logging.getLogger("uvicorn.error")

app = FastAPI(
    title="Container Check API",
    version="1.0.0",
    description="Two-stage container inspection: Security checklist, then Checker verification",
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(auth_router.router)
app.include_router(checklist_router.router)
app.include_router(security_router.router)
app.include_router(checker_router.router)
app.include_router(admin_router.router)
app.include_router(users_router.router)

# Serve locally stored photos so the frontend can fetch them
os.makedirs(config.UPLOAD_DIR, exist_ok=True)
app.mount("/uploads", StaticFiles(directory=config.UPLOAD_DIR), name="uploads")


@app.on_event("startup")
def on_startup():
    init_db()


# Exception handlers to return uniform error shape
@app.exception_handler(InspectionError)
async def inspection_error_handler(request: Request, exc: InspectionError):
    logger.info("%s on %s %s: %s", exc.kind, request.method, request.url.path, exc.message)
    return error_resp(exc.message, exc.status_code, exc.to_dict())


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    # exc.detail may be a list of validation errors or a str
    if isinstance(exc.detail, str):
        return error_resp(exc.detail or "Error", exc.status_code, {})
    return error_resp("Invalid request", exc.status_code, {"errors": exc.detail})


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return error_resp("Invalid request", 422, {"errors": exc.errors()})


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled exception: %s", exc)
    return error_resp("Internal server error", 500, {})


@app.get("/")
def root():
    return {"message": "Container Check API is running"}


@app.get("/health")
def health_check():
    return {"status": "healthy"}


# -------------------------
# Custom OpenAPI (Bearer)
# -------------------------
def custom_openapi():
    if app.openapi_schema:
        return app.openapi_schema

    openapi_schema = get_openapi(
        title=app.title,
        version=app.version,
        description=getattr(app, "description", None),
        routes=app.routes,
    )

    openapi_schema.setdefault("components", {}).setdefault("securitySchemes", {})
    openapi_schema["components"]["securitySchemes"]["BearerAuth"] = {
        "type": "http",
        "scheme": "bearer",
        "bearerFormat": "JWT",
    }

    # require it on every operation so /docs shows the Authorize button
    for path, path_item in openapi_schema.get("paths", {}).items():
        for method, operation in path_item.items():
            if not isinstance(operation, dict):
                continue
            security = operation.setdefault("security", [])
            if {"BearerAuth": []} not in security:
                security.append({"BearerAuth": []})

    app.openapi_schema = openapi_schema
    return app.openapi_schema


app.openapi = custom_openapi
