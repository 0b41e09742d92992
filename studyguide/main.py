from contextlib import asynccontextmanager
import time

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from slowapi.errors import RateLimitExceeded
import structlog

from studyguide.config import VERSION
from studyguide.db import init_db
from studyguide.middleware.rate_limit import limiter, rate_limit_exceeded_handler
from studyguide.routers import quiz as quiz_router
from studyguide.routers import reviewers as reviewers_router
from studyguide.services.logging import configure_logging, log_api_request
from studyguide.services.monitoring import REQUEST_COUNT, REQUEST_DURATION, get_metrics, health_checker

configure_logging()
logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    logger.info("startup_complete", version=VERSION)
    yield


app = FastAPI(
    title="Study Guide Generator",
    description="Turns study material into reviewers and graded quizzes",
    version=VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Only the generation endpoints carry a limit
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)


@app.middleware("http")
async def track_requests(request: Request, call_next):
    log_api_request(request)
    start_time = time.time()

    response = await call_next(request)

    process_time = time.time() - start_time
    response.headers["X-Process-Time"] = str(process_time)

    # Route template keeps reviewer ids out of the label set
    route = request.scope.get("route")
    endpoint = getattr(route, "path", request.url.path)
    REQUEST_COUNT.labels(method=request.method, endpoint=endpoint, status=response.status_code).inc()
    REQUEST_DURATION.labels(method=request.method, endpoint=endpoint).observe(process_time)

    log_api_request(request, response, round(process_time, 4))
    return response


# ----------------- Health & Monitoring -----------------
@app.get("/health")
async def health_check():
    """Database and LLM checks plus process metrics"""
    return health_checker.get_health_status()


@app.get("/metrics")
async def metrics():
    """Prometheus exposition"""
    return get_metrics()


# ----------------- Routers -----------------
app.include_router(reviewers_router.router)
app.include_router(quiz_router.router)
