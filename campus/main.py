import uuid

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from campus.api.v1.admissions.router import router as admissions_router
from campus.api.v1.exams.router import router as exams_router
from campus.api.v1.fees.router import router as fees_router
from campus.api.v1.hostels.router import router as hostels_router
from campus.core.config import settings
from campus.core.logging import LogContext, configure_logging

REQUEST_ID_HEADER = "X-Request-ID"


def create_app() -> FastAPI:
    configure_logging(level=settings.log_level.upper(), json_output=settings.log_json)

    app = FastAPI(title="Campus Allocation Core")

    # CORS: allow frontend to call this API
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def bind_request_id(request: Request, call_next):
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        with LogContext.bind(request_id=request_id):
            response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response

    # Routers
    app.include_router(admissions_router)
    app.include_router(fees_router)
    app.include_router(exams_router)
    app.include_router(hostels_router)

    @app.get("/health", tags=["health"])
    async def health() -> dict:
        return {"status": "ok"}

    return app


app = create_app()
