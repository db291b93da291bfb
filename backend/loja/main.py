"""
Loja Backend - FastAPI Application Entry Point
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from loja import __version__
from loja.routers import chat, config, editor, surfaces
from loja.services.broadcaster import SurfaceBroadcaster
from loja.services.chat_controller import ChatController
from loja.services.config_manager import ConfigManager
from loja.services.editor_host import PromptBroker, WorkspaceEditorHost

logger = logging.getLogger("loja")


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager - startup and shutdown logic"""
    config_manager = ConfigManager.get_instance()
    configure_logging(config_manager.get("logLevel", "INFO"))
    logger.info("[Backend] Starting Loja backend...")

    broadcaster = SurfaceBroadcaster()
    prompts = PromptBroker(broadcaster)
    host = WorkspaceEditorHost(config_manager, broadcaster, prompts)
    controller = ChatController(config_manager, host, broadcaster, prompts)

    app.state.config_manager = config_manager
    app.state.broadcaster = broadcaster
    app.state.host = host
    app.state.controller = controller
    logger.info(f"[Backend] Config file: {config_manager.config_file}")
    logger.info(f"[Backend] Active provider: {config_manager.active_provider()}")

    yield
    # Shutdown: let in-flight turns settle
    logger.info("[Backend] Shutting down Loja backend...")
    await controller.drain()


def create_app() -> FastAPI:
    app = FastAPI(
        title="Loja Backend",
        description="Context-aware chat assistant backend for the Loja editor plugin",
        version=__version__,
        lifespan=lifespan,
    )

    # CORS middleware for the editor plugin's webviews
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # plugin runs locally
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    app.include_router(surfaces.router, tags=["surfaces"])
    app.include_router(chat.router, prefix="/api/chat", tags=["chat"])
    app.include_router(editor.router, prefix="/api/editor", tags=["editor"])
    app.include_router(config.router, prefix="/api/config", tags=["config"])

    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {"status": "healthy", "service": "loja-backend"}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    server = ConfigManager.get_instance().get("server", {})
    uvicorn.run(app, host=server.get("host", "127.0.0.1"), port=server.get("port", 8000))
