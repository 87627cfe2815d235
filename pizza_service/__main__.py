"""Run the API server: ``python -m pizza_service``."""

import uvicorn

from pizza_service.core.config import get_settings

if __name__ == "__main__":
    settings = get_settings()
    uvicorn.run(
        "pizza_service.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.is_development,
    )
