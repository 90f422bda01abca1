from __future__ import annotations

import logging

from fastmcp import FastMCP

from address_capture.app.container import build_container
from address_capture.app.logger import configure_logging
from address_capture.tools.address_tools import register_address_tools

configure_logging()
log = logging.getLogger(__name__)

mcp = FastMCP("address-capture")

try:
    _container = build_container()
    logging.getLogger().setLevel(_container.settings.log_level)
    register_address_tools(mcp, _container)
    log.info("Address tools registered successfully")
except Exception as e:
    log.error("Failed to register address tools: %s", e, exc_info=True)
    raise


def main() -> None:
    mcp.run(
        transport="http",
        host="127.0.0.1",
        port=3334,
        path="/mcp",
    )


if __name__ == "__main__":
    main()
