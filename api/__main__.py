"""Command line interface for running the API server."""
import asyncio
import logging
import uvicorn

from config import settings_conf

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

class UvicornServer:
    """Wrapper for running uvicorn with proper lifecycle management."""

    def __init__(
        self,
        app_path: str = "api:app",
        host: str = settings_conf['api_host'],
        port: int = settings_conf['api_port']
    ):
        self.config = uvicorn.Config(
            app_path,
            host=host,
            port=port,
            log_level="info"
        )
        self.server = uvicorn.Server(self.config)

    async def run(self):
        """Run the server in a way that can be stopped."""
        await self.server.serve()

    async def stop(self):
        """Stop the server."""
        self.server.should_exit = True

async def main():
    """Run the API server. The app's lifespan opens and closes the database."""
    server = UvicornServer()
    logger.info(f"Starting API on {server.config.host}:{server.config.port}")
    try:
        await server.run()
    finally:
        await server.stop()
        logger.info("API stopped.")

if __name__ == "__main__":
    # Use uvloop if available for better performance
    try:
        import uvloop
        uvloop.install()
    except ImportError:
        pass

    asyncio.run(main())
