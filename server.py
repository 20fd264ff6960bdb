"""
depfinder MCP Server

This module initializes the FastMCP server and registers all available tools.
In HTTP mode a health endpoint reports the reader backend status.
"""

import os
import platform
import shutil
import sys
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastmcp import FastMCP
from starlette.requests import Request
from starlette.responses import JSONResponse

from depfinder_mcp import __version__
from depfinder_mcp.core.config import get_config
from depfinder_mcp.core.loader import PluginLoader
from depfinder_mcp.core.logging_config import get_logger, setup_logging

setup_logging()
logger = get_logger(__name__)


def _backend_status() -> dict:
    settings = get_config()
    objdump = shutil.which(settings.objdump_path)
    return {
        "elf_backend": settings.elf_backend,
        "objdump": {"status": "available", "path": objdump} if objdump else {"status": "unavailable"},
    }


@asynccontextmanager
async def server_lifespan(server: FastMCP) -> AsyncGenerator[None, None]:
    """Prepare the workspace and check the selected ELF backend."""
    logger.info("depfinder MCP server starting...")
    settings = get_config()

    try:
        settings.workspace.mkdir(parents=True, exist_ok=True)
        logger.info(f"Workspace ready: {settings.workspace}")
    except OSError as e:
        logger.error(f"Failed to create workspace: {e}")
        raise

    if settings.elf_backend == "objdump" and not shutil.which(settings.objdump_path):
        logger.warning(f"{settings.objdump_path} not found in PATH; ELF metadata reads will fail")

    logger.info("Server startup complete")
    yield
    logger.info("Server shutdown complete")


mcp = FastMCP(name="depfinder_mcp", lifespan=server_lifespan)

loader = PluginLoader()
tools_dir = os.path.join(os.path.dirname(__file__), "depfinder_mcp", "tools")
if not os.path.exists(tools_dir):
    # Running from a checkout rather than an installed tree
    tools_dir = os.path.join(os.getcwd(), "depfinder_mcp", "tools")

for plugin in loader.discover_plugins(tools_dir, "depfinder_mcp.tools"):
    try:
        plugin.register(mcp)
        logger.info(f"Registered plugin: {plugin.name}")
    except Exception as e:
        logger.error(f"Failed to register plugin {plugin.name}: {e}")


@mcp.custom_route("/health", methods=["GET"])
async def health(request: Request) -> JSONResponse:
    """Health check endpoint with backend status."""
    settings = get_config()
    status = _backend_status()
    healthy = settings.elf_backend != "objdump" or status["objdump"]["status"] == "available"
    return JSONResponse(
        {
            "status": "healthy" if healthy else "degraded",
            "service": "depfinder_mcp",
            "version": __version__,
            "python_version": sys.version,
            "platform": platform.system(),
            "workspace": str(settings.workspace),
            "workspace_exists": settings.workspace.exists(),
            "dependencies": status,
        }
    )


def main(transport: str | None = None) -> None:
    """Run the MCP server."""
    settings = get_config()
    transport = (transport or settings.mcp_transport).lower()

    if transport == "http":
        mcp.run(transport="http", host="0.0.0.0", port=8000)
    else:
        mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
