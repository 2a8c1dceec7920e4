from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from feeledger.api.v1.accountant.router import router as accountant_router
from feeledger.api.v1.fees.router import router as fees_router
from feeledger.api.v1.students.router import router as students_router
from feeledger.core.config import settings
from feeledger.core.logging import configure_logging
from feeledger.db.session import init_models


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.auto_create_tables:
        await init_models()
    yield


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(title="Fee Ledger Backend", lifespan=lifespan)

    # CORS: allow frontend to call this API
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Routers
    app.include_router(students_router)
    app.include_router(fees_router)
    app.include_router(accountant_router)

    @app.get("/health", tags=["health"])
    async def health() -> dict:
        return {"status": "ok"}

    return app


app = create_app()
