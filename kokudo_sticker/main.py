from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api import router
from .config import settings
from .logging_setup import setup_logging
from .repository import RecordRepository, create_repository


def create_app(repository: Optional[RecordRepository] = None) -> FastAPI:
    logger = setup_logging()

    app = FastAPI(title="Kokudo Sticker Log API", version="1.0.0")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.repository = repository or create_repository()

    @app.on_event("startup")
    async def _startup():
        # StorageUnavailable is fatal: let it abort startup
        repo: RecordRepository = app.state.repository
        await repo.store.initialize()
        await repo.refresh()
        logger.info(f"Loaded {len(repo.records)} records (edit strategy: {repo.edit_strategy})")

    @app.on_event("shutdown")
    async def _shutdown():
        await app.state.repository.store.close()

    app.include_router(router)

    @app.get("/")
    async def index():
        return {
            "message": "Kokudo Sticker Log API",
            "docs": "/docs",
            "health": "/health",
            "records": {
                "list": {"method": "GET", "url": "/api/records?q="},
                "add": {"method": "POST", "url": "/api/records"},
                "edit": {"method": "PUT", "url": "/api/records/{id}"},
                "delete": {"method": "DELETE", "url": "/api/records/{id}"},
                "clear": {"method": "DELETE", "url": "/api/records"},
            },
            "stats": {"method": "GET", "url": "/api/stats"},
            "export": {"method": "GET", "url": "/api/export"},
            "import": {"method": "POST", "url": "/api/import"},
            "geocode": {"method": "GET", "url": "/api/geocode?q="},
            "photos": {"method": "POST", "url": "/api/photos"},
        }

    return app


def run() -> None:
    import uvicorn

    uvicorn.run(create_app(), host=settings.host, port=settings.port)


app = create_app()
