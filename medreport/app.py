# --- imports (top of medreport/app.py) ---
import json
import logging
from datetime import datetime, timezone
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

# Resolve paths early so env vars are available before importing the app modules
BASE_DIR = Path(__file__).resolve().parent
ENV_PATH = BASE_DIR / ".env"

load_dotenv(ENV_PATH)

from slowapi.errors import RateLimitExceeded  # noqa: E402
from slowapi.middleware import SlowAPIMiddleware  # noqa: E402

from medreport.middleware.rate_limit import limiter, rate_limit_handler  # noqa: E402
from medreport.middleware.tracing import TraceIdFilter, TracingMiddleware  # noqa: E402
from medreport.routes import report_routes  # noqa: E402
from medreport.services.report_pipeline import get_interpreter  # noqa: E402
from medreport.utils.app import _env_list, _env_str  # noqa: E402
from medreport.utils.exceptions import (  # noqa: E402
    handle_http_exception,
    handle_unhandled_exception,
    handle_validation_exception,
)


# --- logging setup ---
class JsonFormatter(logging.Formatter):
    def format(self, record):  # type: ignore[override]
        message = record.msg if isinstance(record.msg, dict) else record.getMessage()
        payload = {
            "timestamp": datetime.now(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z"),
            "level": record.levelname,
            "function": record.funcName,
            "message": message,
            "trace_id": getattr(record, "trace_id", "") or None,
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


def configure_logging() -> logging.Logger:
    logger = logging.getLogger("medreport")
    logger.setLevel(_env_str("LOG_LEVEL", "INFO").upper())
    if not any(isinstance(h, logging.StreamHandler) for h in logger.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(JsonFormatter())
        handler.addFilter(TraceIdFilter())
        logger.addHandler(handler)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("uvicorn").setLevel(logging.INFO)
    return logger


logger = configure_logging()


def create_app() -> FastAPI:
    app = FastAPI(title="MedReport Simplifier", version="0.1.0")

    app.state.limiter = limiter
    app.add_middleware(SlowAPIMiddleware)
    app.add_middleware(TracingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=_env_list("CORS_ORIGINS", "http://localhost:3000,http://localhost:5173"),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(StarletteHTTPException, handle_http_exception)
    app.add_exception_handler(RequestValidationError, handle_validation_exception)
    app.add_exception_handler(RateLimitExceeded, rate_limit_handler)
    app.add_exception_handler(Exception, handle_unhandled_exception)

    app.include_router(report_routes.router)

    @app.on_event("startup")
    def _load_tables():
        # Fail fast on malformed tables instead of on the first request
        interpreter = get_interpreter()
        logger.info({
            "function": "startup",
            "terms": len(interpreter.catalog),
            "ranges": len(interpreter.ranges),
            "levels": list(interpreter.levels),
            "on_unmatched": interpreter.on_unmatched,
        })

    return app


app = create_app()
