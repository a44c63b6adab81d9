"""
Focals Quickstart Ability - HTTP service

Receives webhook callbacks from the North platform, tracks which users have
the ability enabled, and broadcasts end-to-end encrypted notifications to
them.  Routes:

- ``POST /trigger``  broadcast the quickstart packet to every enabled user
- ``GET  /enable``   verify a signed enable request and redirect onwards
- ``POST /action``   handle platform actions (validate / disable)
"""
import argparse
import hmac
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, Dict, List, Optional

# Load environment variables from the project's .env file
from dotenv import load_dotenv

project_root = Path(__file__).parent.parent.parent
env_path = project_root / ".env"
load_dotenv(dotenv_path=env_path)

from fastapi import FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, RedirectResponse
from starlette.exceptions import HTTPException

from apps.quickstart.actions import ActionDispatcher
from apps.quickstart.config import AppConfig
from apps.quickstart.enable import EnableRedirector
from apps.quickstart.exceptions import AuthorizationError, QuickstartError
from apps.quickstart.focals import FocalsClient
from apps.quickstart.notifications import NotificationTrigger
from apps.quickstart.users import UserStateStore

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger("quickstart")

# ============================================================
# Constants
# ============================================================

API_VERSION = "1.0.0"
SERVICE_NAME = "Focals Quickstart Ability"

_HTTP_ERROR_CODES = {
    400: "BAD_REQUEST",
    401: "UNAUTHORIZED",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    422: "VALIDATION_ERROR",
    500: "INTERNAL_SERVER_ERROR",
}


# ============================================================
# Error Handling - Consistent Error Format
# ============================================================

def _error_response(
    status: int,
    code: str,
    message: str,
    details: Optional[List[Dict[str, Any]]] = None,
) -> JSONResponse:
    """Create a standardized error JSONResponse."""
    body: Dict[str, Any] = {
        "error": {
            "code": code,
            "status": status,
            "message": message,
        }
    }
    if details is not None:
        body["error"]["details"] = details
    return JSONResponse(status_code=status, content=body)


def _check_shared_secret(provided: Optional[str], expected: str) -> None:
    """Raise AuthorizationError unless *provided* matches the configured secret."""
    if not provided:
        raise AuthorizationError("Did not provide shared secret")
    if not expected or not hmac.compare_digest(provided.encode(), expected.encode()):
        raise AuthorizationError("Invalid shared secret")


def _register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        code = _HTTP_ERROR_CODES.get(exc.status_code, "ERROR")
        return _error_response(exc.status_code, code, str(exc.detail))

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        details = []
        for err in exc.errors():
            field = ".".join(str(loc) for loc in err.get("loc", []))
            details.append({
                "field": field,
                "message": err.get("msg", ""),
                "type": err.get("type", ""),
            })
        return _error_response(422, "VALIDATION_ERROR", "Request validation failed", details)

    @app.exception_handler(QuickstartError)
    async def quickstart_exception_handler(request: Request, exc: QuickstartError):
        if exc.status_code >= 500:
            logger.error(f"{request.url.path} failed: {exc}", exc_info=exc)
            return _error_response(exc.status_code, exc.code, "An unexpected error occurred")
        logger.warning(f"{request.url.path} rejected: {exc}")
        return _error_response(exc.status_code, exc.code, str(exc))

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled exception: {exc}", exc_info=True)
        return _error_response(500, "INTERNAL_SERVER_ERROR", "An unexpected error occurred")


# ============================================================
# Application Setup
# ============================================================

def create_app(
    config: Optional[AppConfig] = None,
    store: Optional[UserStateStore] = None,
    focals: Optional[FocalsClient] = None,
) -> FastAPI:
    """Build the ability service.

    The store and platform client are created from *config* unless supplied.
    """
    config = config or AppConfig()
    store = store or UserStateStore()
    focals = focals or FocalsClient.from_config(config)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        for problem in config.validate():
            logger.warning(f"Configuration problem: {problem}")
        logger.info(f"{SERVICE_NAME} ready (integration={config.integration_id or '<unset>'})")
        yield
        logger.info("Closing platform client...")
        await focals.aclose()

    app = FastAPI(title=SERVICE_NAME, version=API_VERSION, lifespan=lifespan)
    app.state.config = config
    app.state.store = store
    app.state.focals = focals
    app.state.dispatcher = ActionDispatcher(store, focals.encryption)
    app.state.trigger = NotificationTrigger(
        store,
        keys=focals.keys,
        encryption=focals.encryption,
        publisher=focals.publisher,
        integration_id=focals.integration_id,
    )
    app.state.redirector = EnableRedirector(store, focals.signatures, focals.urls)

    _register_error_handlers(app)
    _register_routes(app)
    return app


# ============================================================
# Routes
# ============================================================

def _register_routes(app: FastAPI) -> None:
    @app.get("/")
    async def health():
        """Health check endpoint."""
        return {
            "status": "healthy",
            "service": SERVICE_NAME,
            "version": API_VERSION,
        }

    @app.post("/trigger")
    async def trigger(
        request: Request,
        shared_secret: Optional[str] = Query(None, alias="sharedSecret"),
    ):
        """Send the quickstart notification to every enabled user, end-to-end encrypted.

        Returns 200 once every user has been published to, 401 on a bad
        shared secret, and 500 if any key lookup, encryption or publish fails.
        """
        state = request.app.state
        _check_shared_secret(shared_secret, state.config.shared_secret)
        delivered = await state.trigger.broadcast()
        return {"status": "ok", "delivered": delivered}

    @app.get("/enable")
    async def enable(
        request: Request,
        signature: Optional[str] = Query(None),
        state: Optional[str] = Query(None),
        timestamp: Optional[str] = Query(None),
    ):
        """Verify the enable request signature and redirect to the platform.

        Always answers 302, to either the continuation URL or the
        ``invalid_state`` error URL.
        """
        url = request.app.state.redirector.resolve(signature, state, timestamp)
        return RedirectResponse(url, status_code=302)

    @app.post("/action")
    async def action(
        request: Request,
        shared_secret: Optional[str] = Query(None, alias="sharedSecret"),
    ):
        """Handle an action from the platform's abilities framework.

        200 when handled, 400 for an unrecognized type or an expired
        validation state, 401 on a bad shared secret, 500 otherwise.
        """
        state = request.app.state
        _check_shared_secret(shared_secret, state.config.shared_secret)

        try:
            payload = await request.json()
            logger.info(f"Got an action of type {payload.get('type') if isinstance(payload, dict) else '?'}")
            result = state.dispatcher.dispatch(payload)
        except Exception as e:
            logger.error(f"Failed to handle action: {e}", exc_info=True)
            return _error_response(500, "INTERNAL_SERVER_ERROR", "An unexpected error occurred")

        if not result.ok:
            return _error_response(result.status_code, _HTTP_ERROR_CODES[result.status_code], result.detail)
        return {"status": "ok"}


app = create_app()


# ============================================================
# Command line
# ============================================================

def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=f"Run the {SERVICE_NAME} service")
    parser.add_argument("--host", help="Interface to bind")
    parser.add_argument("--port", type=int, help="Port to listen on")
    parser.add_argument("--config", type=Path, help="JSON defaults file")
    parser.add_argument("--log-level", dest="log_level", help="Logging level")
    return parser.parse_args(argv)


def _app_for_args(args: argparse.Namespace) -> FastAPI:
    """The module ``app`` when nothing is overridden, otherwise a fresh one."""
    if args.host is None and args.port is None and args.log_level is None and args.config is None:
        return app
    config = AppConfig(
        overrides={"host": args.host, "port": args.port, "log_level": args.log_level},
        config_file=args.config,
    )
    return create_app(config)


def main(argv: Optional[List[str]] = None) -> None:
    import uvicorn

    service = _app_for_args(_parse_args(argv))
    config = service.state.config
    logging.getLogger().setLevel(config.log_level.upper())

    logger.info(f"HTTP server on port {config.port}")
    uvicorn.run(service, host=config.host, port=config.port, log_level=config.log_level)


# For direct execution
if __name__ == "__main__":
    main()
