"""orgchart HTTP API: FastAPI app factory."""

from __future__ import annotations

from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .. import __version__
from ..errors import ForbiddenError, UnauthorizedError
from ..team import Team


def create_app(cwd: Path | None = None, *, team: Team | None = None) -> FastAPI:
    app = FastAPI(title="orgchart", version=__version__)
    app.state.team = team or Team.from_workdir(cwd)

    @app.exception_handler(UnauthorizedError)
    async def unauthorized(request: Request, exc: UnauthorizedError) -> JSONResponse:
        return JSONResponse(exc.to_result(), status_code=401)

    @app.exception_handler(ForbiddenError)
    async def forbidden(request: Request, exc: ForbiddenError) -> JSONResponse:
        return JSONResponse(exc.to_result(), status_code=403)

    from .routes import router

    app.include_router(router)

    return app
