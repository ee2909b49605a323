from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from auth import router as auth_router
from core import settings
from core.db import Database, playground_database_url
from core.logging import configure_logging
from projects import router as projects_router
from query import router as query_router
from query.errors import QueryError


def create_app(
    database: Database | None = None,
    playground_database: Database | None = None,
) -> FastAPI:
    configure_logging(level=settings.log_level(), json_logs=settings.log_json())

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Pools are created lazily on first use.
        app.state.database = database or Database()
        app.state.playground_database = playground_database or Database(
            url_resolver=playground_database_url
        )
        try:
            yield
        finally:
            await app.state.playground_database.close()
            await app.state.database.close()

    app = FastAPI(title="SQL Playground API", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(QueryError)
    async def query_error_handler(_: Request, exc: QueryError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    app.include_router(query_router.router, tags=["query"])
    app.include_router(projects_router.router, tags=["projects"])
    app.include_router(auth_router.router, tags=["auth"])

    @app.get("/health")
    def health() -> dict:
        return {"status": "ok"}

    @app.get("/")
    def root() -> dict:
        return {"message": "sql-playground api"}

    return app


app = create_app()
