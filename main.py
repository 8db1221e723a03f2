"""
Knowledge Graph Memory API

Handles:
- Entities and relations (create, delete, open)
- Observations (append, delete)
- Search (lexical substring or vector similarity)
"""
import logging
from typing import Optional

from fastapi import FastAPI

from config import Settings, settings as default_settings
from knowledge_graph import routes as graph_routes
from knowledge_graph.manager import KnowledgeGraphManager, build_manager

logger = logging.getLogger(__name__)


def create_app(
    settings: Settings = default_settings,
    manager: Optional[KnowledgeGraphManager] = None,
) -> FastAPI:
    """
    Build the API. The manager is created at startup from settings unless one
    is passed in; either way the app owns its lifecycle.
    """
    app = FastAPI(
        title="Knowledge Graph Memory API",
        version="1.0.0",
        description="Entity/relation memory with lexical and vector search"
    )
    app.state.manager = manager

    # Manager lifecycle events
    @app.on_event("startup")
    async def startup():
        if app.state.manager is None:
            app.state.manager = build_manager(settings)
        await app.state.manager.start()

    @app.on_event("shutdown")
    async def shutdown():
        if app.state.manager is not None:
            await app.state.manager.close()

    app.include_router(graph_routes.router)

    @app.get("/")
    def root():
        return {
            "service": "kg-memory",
            "version": "1.0.0",
            "description": "Knowledge graph memory service"
        }

    @app.get("/health")
    def health():
        current = app.state.manager
        return {
            "status": "healthy" if current is not None else "starting",
            "service": "kg-memory",
            "search_mode": current.search_mode if current is not None else None,
        }

    return app


def run() -> None:
    import uvicorn

    logging.basicConfig(level=default_settings.LOG_LEVEL)
    uvicorn.run(create_app(), host=default_settings.HOST, port=default_settings.PORT)


if __name__ == "__main__":
    run()
