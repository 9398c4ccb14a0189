# pusnip/main.py

import logging
import secrets
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request, Security
from fastapi.responses import PlainTextResponse
from fastapi.security import APIKeyQuery
from starlette.exceptions import HTTPException as StarletteHTTPException

from pusnip.core.config import Config
from pusnip.services.pusnip_service import PusnipService

# --- SECURITY & DEPENDENCIES ---
api_key_query = APIKeyQuery(name="api_key", auto_error=False)


def api_key_matches(config: Config, key: Optional[str]) -> bool:
    if not config.api_key:
        return True
    if not key:
        return False
    return secrets.compare_digest(key.strip().encode(), config.api_key.encode())


def check_api_key(request: Request, key: Optional[str] = Security(api_key_query)):
    if not api_key_matches(request.app.state.config, key):
        raise HTTPException(status_code=403, detail="Forbidden")


def get_service(request: Request) -> PusnipService:
    return request.app.state.service


# --- ROUTES ---
router = APIRouter(dependencies=[Depends(check_api_key)])


@router.get("/push", response_class=PlainTextResponse)
async def push(
        ip: Optional[str] = None,
        name: Optional[str] = None,
        service: PusnipService = Depends(get_service),
):
    """Registers a client address under a mapped name and rebuilds the SNAT rules."""
    logging.info(f"GET /push?ip={ip}&name={name}")
    if not ip or not name:
        return PlainTextResponse('ERROR\nMissing "ip" or "name" query parameters.\n', status_code=400)

    pushed = await service.push_new_ip(ip, name)
    if pushed is not True:
        return PlainTextResponse(f"ERROR\n{pushed}", status_code=400)

    refreshed = await service.refresh()
    if refreshed is not True:
        return PlainTextResponse(f"ERROR\n{refreshed}", status_code=500)
    return PlainTextResponse("OK")


@router.get("/update", response_class=PlainTextResponse)
async def update(service: PusnipService = Depends(get_service)):
    """Rebuilds the SNAT rules from the current state."""
    logging.info("GET /update")
    refreshed = await service.refresh()
    if refreshed is not True:
        return PlainTextResponse(f"ERROR\n{refreshed}", status_code=500)
    return PlainTextResponse("OK")


async def http_error_handler(request: Request, exc: StarletteHTTPException):
    # Unknown paths and methods answer 404, but only to callers holding the key.
    if exc.status_code in (404, 405):
        if not api_key_matches(request.app.state.config, request.query_params.get("api_key")):
            return PlainTextResponse("Forbidden", status_code=403)
        return PlainTextResponse("Not Found", status_code=404)
    return PlainTextResponse(str(exc.detail), status_code=exc.status_code)


def create_app(config: Config, service: Optional[PusnipService] = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logging.info("Application startup...")
        app.state.service.check_stale_locks()
        yield
        logging.info("Application shutdown.")

    app = FastAPI(
        title="pusnip",
        version="1.0.0",
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.state.config = config
    app.state.service = service or PusnipService.from_config(config)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.include_router(router)
    return app


# --- MAIN ENTRY ---
def main():
    config = Config.from_env()
    app = create_app(config)
    logging.info(f"Try: http://localhost:{config.port}/push?ip=192.168.1.100&name=mydevice")
    uvicorn.run(app, host=config.host, port=config.port, log_level="info")


if __name__ == "__main__":
    main()
