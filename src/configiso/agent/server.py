"""HTTP(S) server exposing built images."""

import logging
import ssl
from pathlib import Path
from typing import Optional
from urllib.parse import quote

from aiohttp import web

from configiso.errors import ServerError, ShutdownError
from configiso.models.config import ServiceConfig


logger = logging.getLogger(__name__)


# Served route prefix; image URLs handed to remote parties are built from it too.
IMAGES_PREFIX = "/images"


def image_url(base_url: str, image_name: str) -> str:
    """Return the URL under base_url at which the server exposes image_name."""
    return f"{base_url.rstrip('/')}{IMAGES_PREFIX}/{quote(image_name)}"


class MediaServer:
    """Read-only static file server for one images directory."""

    def __init__(
        self,
        images_dir: Path,
        host: str = "0.0.0.0",
        port: int = 8080,
        https_cert_file: Optional[str] = None,
        https_key_file: Optional[str] = None,
        shutdown_timeout: float = 30.0,
    ):
        """Initialize server."""
        self.images_dir = Path(images_dir)
        self.host = host
        self.port = port
        self.https_cert_file = https_cert_file
        self.https_key_file = https_key_file
        self.shutdown_timeout = shutdown_timeout
        self.app = web.Application()
        self.runner: Optional[web.AppRunner] = None
        self._setup_routes()

    @classmethod
    def from_config(cls, config: ServiceConfig) -> "MediaServer":
        """Build a server from service configuration."""
        server = config.server
        return cls(
            images_dir=Path(config.images_dir),
            host=server.host,
            port=server.port,
            https_cert_file=server.https_cert_file,
            https_key_file=server.https_key_file,
            shutdown_timeout=server.shutdown_timeout,
        )

    def _setup_routes(self):
        """Setup the static image route."""
        self.app.router.add_static(
            IMAGES_PREFIX,
            self.images_dir,
            show_index=False,
            follow_symlinks=False,
        )

    @property
    def tls_enabled(self) -> bool:
        return bool(self.https_cert_file and self.https_key_file)

    @property
    def bound_port(self) -> Optional[int]:
        """Port actually listened on, useful when configured with port 0."""
        if not self.runner or not self.runner.addresses:
            return None
        return self.runner.addresses[0][1]

    def _ssl_context(self) -> Optional[ssl.SSLContext]:
        if not self.tls_enabled:
            if self.https_cert_file or self.https_key_file:
                logger.warning("Only one of the HTTPS key and certificate is set, serving plain HTTP")
            return None
        context = ssl.create_default_context(ssl.Purpose.CLIENT_AUTH)
        try:
            context.load_cert_chain(self.https_cert_file, self.https_key_file)
        except (OSError, ssl.SSLError) as e:
            raise ServerError(f"Failed to load TLS certificate/key: {e}") from e
        return context

    async def start(self):
        """Start listening."""
        ssl_context = self._ssl_context()

        self.runner = web.AppRunner(self.app, shutdown_timeout=self.shutdown_timeout)
        await self.runner.setup()

        site = web.TCPSite(self.runner, self.host, self.port, ssl_context=ssl_context)
        scheme = "https" if ssl_context else "http"
        logger.info(f"Starting {scheme} handler on {self.host}:{self.port}...")
        try:
            await site.start()
        except OSError as e:
            await self.runner.cleanup()
            self.runner = None
            raise ServerError(f"Failed to listen on {self.host}:{self.port}: {e}") from e

        logger.info(f"Serving {self.images_dir} at {scheme}://{self.host}:{self.bound_port}{IMAGES_PREFIX}/")

    async def stop(self):
        """Stop accepting connections and drain in-flight requests.

        Requests still running after the shutdown timeout are cut off. If the
        graceful path fails, connections are closed unconditionally; failure
        of that raises ShutdownError.
        """
        if not self.runner:
            return

        runner, self.runner = self.runner, None
        try:
            await runner.cleanup()
        except Exception as e:
            logger.error(f"Shutdown failed: {e}")
            await self._force_close(runner)
        else:
            logger.info("Server terminated gracefully")

    async def _force_close(self, runner: web.AppRunner):
        try:
            server = runner.server
            if server is not None:
                await server.shutdown(0)
        except Exception as e:
            raise ShutdownError(f"Emergency shutdown failed: {e}") from e
        logger.warning("Server closed forcibly")
