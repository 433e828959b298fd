"""API server entry point for python -m mediaslot.api"""
import logging

import uvicorn
from mediaslot.config import settings

if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    uvicorn.run(
        "mediaslot.api.app:app",
        host=settings.server.host,
        port=settings.server.port,
        reload=False,
    )
