from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger

from subsearch.api.deps import build_services
from subsearch.api.routes import models, search
from subsearch.config import settings
from subsearch.errors import SubsearchError
from subsearch.models.schemas import ErrorResponse
from subsearch.services.logger import configure_logging

ERROR_STATUS = {
    "validation": 400,
    "rate_limit": 429,
    "timeout": 504,
    "auth": 502,
    "upstream": 502,
    "parse": 502,
    "llm": 502,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    configure_logging()
    app.state.services = build_services(settings)
    if settings.has_reddit_credentials:
        logger.info("subsearch services started with Reddit OAuth credentials")
    else:
        logger.warning("subsearch services started without Reddit credentials; using public endpoints")
    yield
    # Shutdown
    await app.state.services.aclose()
    logger.info("subsearch services stopped")


app = FastAPI(
    title="Subsearch",
    description="Reddit search with ranked results and cited answers",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(SubsearchError)
async def subsearch_error_handler(request: Request, exc: SubsearchError):
    status = ERROR_STATUS.get(exc.category, 500)
    if status >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.category}: {exc.message}")
    body = ErrorResponse(error=exc.category, detail=exc.message)
    return JSONResponse(status_code=status, content=body.model_dump())


# Routes
app.include_router(search.router)
app.include_router(models.router)


@app.get("/api/health")
async def health():
    return {"status": "ok", "service": "subsearch"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("subsearch.main:app", host="0.0.0.0", port=8000)
