"""Application entrypoint: demo host API with the API console attached.
Run with: uvicorn main:app --reload
"""
from typing import Optional

from fastapi import FastAPI

from apiconsole.core.config import Settings, get_settings
from apiconsole.core.logging import configure_logging
from apiconsole.service import install_console
from controllers.auth import router as auth_router
from controllers.files import router as files_router
from controllers.ops import router as ops_router
from controllers.users import router as users_router

HOST_ROUTERS = (
    (auth_router, "/api"),
    (users_router, ""),
    (files_router, ""),
    (ops_router, ""),
)


def get_application(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.log_level)
    app = FastAPI(title=settings.app_name, version=settings.version, debug=settings.debug)

    @app.get("/", include_in_schema=False)
    async def home():
        return {"app": settings.app_name, "console": settings.console_prefix}

    console = install_console(app, settings)
    for router, prefix in HOST_ROUTERS:
        console.include_router(app, router, prefix=prefix)
    # picks up routes declared directly on the app (e.g. "/")
    console.discover(app)
    return app


app = get_application()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="127.0.0.1", port=8000, reload=True, log_level="info")
