from __future__ import annotations

import argparse
import logging
import sys
from typing import List, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.trustedhost import TrustedHostMiddleware

from chatrelay.backend import config, constants
from chatrelay.backend.errors import ConfigurationError, RelayError
from chatrelay.backend.middleware import RequestContextMiddleware
from chatrelay.backend.response import error_json
from chatrelay.backend.routers import chat, health
from chatrelay.backend.services import relay_service

logger = logging.getLogger(__name__)


def configure_logging(level: Optional[str] = None) -> None:
	logging.basicConfig(
		level=getattr(logging, level or config.log_level()),
		format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
		datefmt="%Y-%m-%d %H:%M:%S",
	)
	logging.getLogger("httpx").setLevel(logging.WARNING)


def create_app() -> FastAPI:
	app = FastAPI(
		title=constants.APP_NAME,
		version=constants.APP_VERSION,
	)
	_register_middleware(app)
	_register_handlers(app)
	_register_routers(app)
	return app


def _register_middleware(app: FastAPI) -> None:
	app.add_middleware(RequestContextMiddleware)
	app.add_middleware(
		CORSMiddleware,
		allow_origins=constants.DEFAULT_CORS_ALLOW_ORIGINS,
		allow_credentials=True,
		allow_methods=["*"],
		allow_headers=["*"],
	)
	app.add_middleware(
		TrustedHostMiddleware,
		allowed_hosts=constants.DEFAULT_TRUSTED_HOSTS,
	)


def _register_routers(app: FastAPI) -> None:
	app.include_router(chat.router)
	app.include_router(health.router)


def _register_handlers(app: FastAPI) -> None:
	@app.exception_handler(RelayError)
	async def handle_relay_error(request: Request, exc: RelayError) -> JSONResponse:
		logger.error("%s on %s: %s", exc.code, request.url.path, exc.message)
		evidence = exc.problems if isinstance(exc, ConfigurationError) else ()
		return error_json(exc.status_code, code=exc.code, message=exc.message, request=request, evidence=evidence)

	@app.exception_handler(StarletteHTTPException)
	async def handle_http_exception(request: Request, exc: StarletteHTTPException) -> JSONResponse:
		message = exc.detail if isinstance(exc.detail, str) else "Request failed."
		return error_json(exc.status_code, code=f"http_{exc.status_code}", message=message, request=request)

	@app.exception_handler(RequestValidationError)
	async def handle_request_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
		evidence = [
			f"{'.'.join(str(part) for part in issue.get('loc', ()))}: {issue.get('msg', 'invalid')}"
			for issue in exc.errors()
		]
		return error_json(
			422,
			code="validation_error",
			message="Request validation failed.",
			request=request,
			evidence=evidence,
		)

	@app.exception_handler(Exception)
	async def handle_unexpected_exception(request: Request, exc: Exception) -> JSONResponse:
		logger.exception("Unhandled error on %s %s", request.method, request.url.path)
		return error_json(500, code="internal_error", message="Internal server error.", request=request)


app = create_app()


def run(argv: Optional[List[str]] = None) -> int:
	parser = argparse.ArgumentParser(description="Serve the chat relay endpoint.")
	parser.add_argument("--host", default="127.0.0.1")
	parser.add_argument("--port", type=int, default=8000)
	parser.add_argument(
		"--log-level",
		type=str.upper,
		choices=["CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"],
		default=None,
		help="Overrides CHATRELAY_LOG_LEVEL.",
	)
	args = parser.parse_args(argv)

	level = args.log_level or config.log_level()
	configure_logging(level)
	try:
		relay_service.get_transport()
	except ConfigurationError as exc:
		logger.error("Refusing to serve: %s", exc.message)
		return 2

	import uvicorn

	uvicorn.run(app, host=args.host, port=args.port, log_level=level.lower())
	return 0


if __name__ == "__main__":
	sys.exit(run())
