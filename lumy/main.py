import uuid

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from lumy.api import download, health, info
from lumy.config.settings import config
from lumy.core.logging import setup_logging

setup_logging(config.logging)

app = FastAPI(
    title=config.api.title,
    version=config.api.version,
    docs_url="/docs" if config.api.debug else None,
    redoc_url=None
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.api.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Content-Disposition", "X-Request-ID"],
)


@app.middleware("http")
async def assign_request_id(request: Request, call_next):
    request.state.request_id = request.headers.get("x-request-id") or uuid.uuid4().hex[:12]
    response = await call_next(request)
    response.headers["X-Request-ID"] = request.state.request_id
    return response


# Routes
app.include_router(health.router, tags=["Health"])
app.include_router(info.router, tags=["Info"])
app.include_router(download.router, tags=["Download"])
