import os
import json
import logging
from logging.handlers import TimedRotatingFileHandler
from datetime import datetime
from pathlib import Path
import contextvars
from typing import Optional
import hashlib

from fastapi import Request
from starlette.responses import Response

# Context variables for correlation and user identity
correlation_id_ctx: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar("correlation_id", default=None)
user_id_ctx: contextvars.ContextVar[Optional[int]] = contextvars.ContextVar("user_id", default=None)

# Structured fields passed via `extra=` that the formatter emits
EXTRA_FIELDS = (
	"path", "method", "status_code", "latency_ms", "client_host", "error",
	"doc_id", "analysis_id", "analysis_type", "status", "parse_status", "strategy",
	"file_name", "mime", "size_bytes", "kind", "chars", "clauses", "dropped", "analyses",
	"index", "prompt_chars", "reply_chars", "question_hash", "task", "content_type",
	"returned", "total", "offset", "limit", "keys", "declared_bytes", "stale_seconds",
)


class ContextFilter(logging.Filter):
	def filter(self, record: logging.LogRecord) -> bool:
		record.correlation_id = correlation_id_ctx.get()
		# An explicit user_id in `extra` wins over the request context
		if getattr(record, "user_id", None) is None:
			record.user_id = user_id_ctx.get()
		return True


class JsonFormatter(logging.Formatter):
	def format(self, record: logging.LogRecord) -> str:
		payload = {
			"timestamp": datetime.utcnow().strftime("%Y-%m-%dT%H:%M:%SZ"),
			"level": record.levelname,
			"logger": record.name,
			"message": record.getMessage(),
			"correlation_id": getattr(record, "correlation_id", None),
			"user_id": getattr(record, "user_id", None),
		}
		for key in EXTRA_FIELDS:
			val = getattr(record, key, None)
			if val is not None:
				payload[key] = val
		if record.exc_info:
			payload["exc_info"] = self.formatException(record.exc_info)
		return json.dumps(payload, ensure_ascii=False, default=str)


def _log_level() -> int:
	level_name = os.getenv("LOG_LEVEL", "INFO").upper()
	return getattr(logging, level_name, logging.INFO)


def _make_rotating_file_handler(path: Path, level: int) -> logging.Handler:
	path.parent.mkdir(parents=True, exist_ok=True)
	handler = TimedRotatingFileHandler(path, when="midnight", backupCount=int(os.getenv("LOG_BACKUP_COUNT", "7")), utc=True)
	handler.setLevel(level)
	handler.setFormatter(JsonFormatter())
	handler.addFilter(ContextFilter())
	return handler


def init_logging():
	"""Initialize application logging with console + rotating file handlers."""
	log_dir = Path(os.getenv("LOG_DIR", "logs"))
	level = _log_level()

	root = logging.getLogger()
	root.setLevel(level)

	# Remove existing handlers to avoid duplicates on reload
	for h in list(root.handlers):
		root.removeHandler(h)
		h.close()

	console = logging.StreamHandler()
	console.setLevel(level)
	console.setFormatter(JsonFormatter())
	console.addFilter(ContextFilter())
	root.addHandler(console)

	root.addHandler(_make_rotating_file_handler(log_dir / "app.log", level))
	root.addHandler(_make_rotating_file_handler(log_dir / "error.log", logging.ERROR))

	logging.getLogger(__name__).info("Logging initialized")


def install_request_logging(app):
	"""Attach request logging middleware to the FastAPI app."""
	from utils.jwt import owner_id_from_token

	logger = logging.getLogger("request")

	@app.middleware("http")
	async def _log_middleware(request: Request, call_next):
		corr = request.headers.get("X-Request-ID") or request.headers.get("X-Correlation-ID") or os.urandom(8).hex()
		correlation_id_ctx.set(corr)

		# Owner id for log enrichment only
		auth_header = request.headers.get("Authorization")
		user_id_ctx.set(None)
		if auth_header:
			raw = auth_header.split(" ", 1)[1] if " " in auth_header else auth_header
			user_id_ctx.set(owner_id_from_token(raw))

		start = datetime.utcnow()
		request_info = {
			"path": request.url.path,
			"method": request.method,
			"client_host": request.client.host if request.client else None,
		}
		try:
			response: Response = await call_next(request)
			latency_ms = int((datetime.utcnow() - start).total_seconds() * 1000)
			logger.info("request_completed", extra={**request_info, "status_code": response.status_code, "latency_ms": latency_ms})
			response.headers["X-Request-ID"] = corr
			return response
		except Exception:
			latency_ms = int((datetime.utcnow() - start).total_seconds() * 1000)
			logger.error("request_failed", exc_info=True, extra={**request_info, "status_code": 500, "latency_ms": latency_ms})
			raise
		finally:
			# Clear context to avoid bleeding into other requests
			correlation_id_ctx.set(None)
			user_id_ctx.set(None)


def init_worker_logging():
	"""Initialize logging for Celery workers with a dedicated rotating file."""
	log_dir = Path(os.getenv("LOG_DIR", "logs"))
	level = _log_level()

	logger = logging.getLogger("tasks")
	logger.setLevel(level)

	# Avoid duplicate handlers on worker autoreload
	for h in list(logger.handlers):
		logger.removeHandler(h)
		h.close()

	logger.addHandler(_make_rotating_file_handler(log_dir / "tasks.log", level))
	logger.propagate = True

	logger.info("Worker logging initialized")


def hash_text(text: str) -> str:
	return hashlib.sha256(text.encode("utf-8")).hexdigest()


_task_tokens: dict = {}


def bind_task_context(task_id: str) -> None:
	"""Tag worker logs with the task id, or keep the caller's correlation id for inline tasks."""
	_task_tokens[task_id] = correlation_id_ctx.set(correlation_id_ctx.get() or task_id)


def release_task_context(task_id: str) -> None:
	token = _task_tokens.pop(task_id, None)
	if token is not None:
		correlation_id_ctx.reset(token)
