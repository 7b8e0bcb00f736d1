"""Application entrypoint and FastAPI app factory for Shard.

Defines the `ShardApplication` which:

- Configures logging and CORS middleware
- Resolves the configuration file (``--config``, ``SHARD_CONFIG``, or the OS
  default location, created with defaults on first run)
- Boots the runtime during the app lifespan and shuts it down afterwards
- Runs either the HTTP control surface through uvicorn or headless until a
  shutdown signal arrives
"""

import argparse
import asyncio
import logging
import sys
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from . import __version__
from .api.routes import initialize_api, router, service_container
from .config.accessor import ensure_config_file
from .config.settings import Settings
from .core.runtime import Runtime


class ShardApplication:
    """Create and run the Shard runtime, with or without the HTTP surface.

    Args:
        settings: Process settings; read from the environment when omitted.
        config_path: Explicit configuration file (the ``--config`` flag).
    """

    def __init__(
        self, settings: Optional[Settings] = None, config_path: Optional[str] = None
    ):
        self.settings = settings or Settings()
        self.config_path = self.settings.resolve_config_path(config_path)
        self.runtime: Optional[Runtime] = None
        self.app: Optional[FastAPI] = None
        self._setup_logging(self.settings.log_level)
        self.logger = logging.getLogger(__name__)

    @staticmethod
    def _setup_logging(level: str) -> None:
        """Configure application logging."""
        logging.basicConfig(
            level=getattr(logging, level, logging.INFO),
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        )

    def create_runtime(self) -> Runtime:
        """Build the runtime from the configuration file.

        Raises:
            ConfigError: If the file cannot be read or parsed.
        """
        if ensure_config_file(self.config_path):
            self.logger.info(f"Created default configuration at {self.config_path}")
        self.runtime = Runtime.from_file(self.config_path)
        return self.runtime

    def _create_lifespan_manager(self):
        """Create an async lifespan manager that boots and stops the runtime."""

        @asynccontextmanager
        async def lifespan(app: FastAPI):
            self.logger.info("Starting Shard...")
            runtime = self.runtime or self.create_runtime()
            try:
                await runtime.boot()
                initialize_api(runtime)
                yield
            finally:
                self.logger.info("Shutting down Shard...")
                service_container.reset()
                await runtime.shutdown()

        return lifespan

    def _configure_middleware(self) -> None:
        self.app.add_middleware(
            CORSMiddleware,
            allow_origins=self.settings.cors_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    def _register_routes(self) -> None:
        """Register application routes including the root info route."""
        self.app.include_router(router)

        @self.app.get("/")
        async def root() -> Dict[str, Any]:
            return {
                "message": self.settings.app_name,
                "version": __version__,
                "status": "running",
            }

    def create_app(self) -> FastAPI:
        """Create and configure the FastAPI application instance."""
        self.app = FastAPI(
            title=self.settings.app_name,
            description="Pluggable chat-agent runtime",
            version=__version__,
            lifespan=self._create_lifespan_manager(),
        )

        self._configure_middleware()
        self._register_routes()

        return self.app

    def run(self) -> None:
        """Serve the HTTP control surface with uvicorn."""
        if not self.app:
            self.create_app()

        uvicorn.run(
            self.app,
            host=self.settings.api_host,
            port=self.settings.api_port,
            log_level="debug" if self.settings.debug else "info",
        )

    async def _serve_headless(self) -> None:
        runtime = self.runtime or self.create_runtime()
        try:
            await runtime.run_forever()
        finally:
            await runtime.shutdown()

    def run_headless(self) -> None:
        """Boot the runtime and block until SIGINT/SIGTERM."""
        asyncio.run(self._serve_headless())


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="shard", description="Run the Shard chat-agent runtime."
    )
    parser.add_argument(
        "-c", "--config", help="Path to config.toml (overrides SHARD_CONFIG)"
    )
    parser.add_argument(
        "--headless",
        action="store_true",
        help="Run without the HTTP control surface",
    )
    parser.add_argument(
        "-v", "--version", action="version", version=f"%(prog)s {__version__}"
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the ``shard`` command."""
    args = build_parser().parse_args(argv)
    logger = logging.getLogger(__name__)

    try:
        application = ShardApplication(config_path=args.config)
        application.create_runtime()
        if args.headless:
            application.run_headless()
        else:
            application.run()
    except KeyboardInterrupt:
        return 0
    except Exception as e:
        logger.critical(f"Fatal error: {e}", exc_info=True)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
