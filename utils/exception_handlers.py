import logging
from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from typing import Any, Dict

from utils.errors import InvalidTransitionError, UploadValidationError
from utils.response import api_response

logger = logging.getLogger("api.errors")


def install_exception_handlers(app: FastAPI) -> None:
	@app.exception_handler(HTTPException)
	async def http_exception_handler(request: Request, exc: HTTPException):
		logger.warning(
			"http_exception",
			extra={"path": request.url.path, "method": request.method, "status_code": exc.status_code},
		)
		return api_response(data=None, message=str(exc.detail or "HTTP error"), status_code=exc.status_code)

	@app.exception_handler(UploadValidationError)
	async def upload_rejected_handler(request: Request, exc: UploadValidationError):
		return api_response(
			data={"kind": exc.kind.value},
			message=exc.message,
			status_code=status.HTTP_400_BAD_REQUEST,
		)

	@app.exception_handler(InvalidTransitionError)
	async def invalid_transition_handler(request: Request, exc: InvalidTransitionError):
		logger.warning(
			"invalid_transition",
			extra={"path": request.url.path, "method": request.method, "status_code": status.HTTP_409_CONFLICT, "error": exc.message},
		)
		return api_response(data=None, message=exc.message, status_code=status.HTTP_409_CONFLICT)

	@app.exception_handler(RequestValidationError)
	async def validation_exception_handler(request: Request, exc: RequestValidationError):
		errors = exc.errors()
		logger.warning(
			"validation_error",
			extra={"path": request.url.path, "method": request.method, "status_code": status.HTTP_422_UNPROCESSABLE_ENTITY},
		)
		content: Dict[str, Any] = {"errors": jsonable_encoder(errors)}
		return api_response(data=content, message="Validation error", status_code=status.HTTP_422_UNPROCESSABLE_ENTITY)

	@app.exception_handler(Exception)
	async def generic_exception_handler(request: Request, exc: Exception):
		# Do not expose internal details to clients
		logger.error(
			"unhandled_exception",
			exc_info=True,
			extra={"path": request.url.path, "method": request.method, "status_code": status.HTTP_500_INTERNAL_SERVER_ERROR},
		)
		return api_response(data=None, message="Internal server error", status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)
