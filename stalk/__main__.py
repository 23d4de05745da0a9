# stalk/__main__.py
"""Run the API server: ``python -m stalk``."""

import uvicorn

from .core.config import settings

if __name__ == "__main__":
    print(f"🚀 Starting {settings.app_name} on http://{settings.host}:{settings.port}")
    print(f"📚 API Docs: http://{settings.host}:{settings.port}/docs")

    uvicorn.run(
        "stalk.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )
