"""Process-wide logging setup plus one-line JSON records for runs, phases and model calls."""
import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from marketgap.config import settings

LOG_DIR = Path(settings.log_dir)

# third-party loggers that stay at NOISY_LOG_LEVEL
QUIET_LOGGERS = (
    "uvicorn",
    "uvicorn.access",
    "fastapi",
    "sse_starlette.sse",
    "httpx",
    "httpcore",
    "openai._base_client",
    "playwright",
    "asyncio",
)


def _level(name: str, default: int) -> int:
    return getattr(logging, name.upper(), default)


def _configure() -> logging.Logger:
    LOG_DIR.mkdir(parents=True, exist_ok=True)
    logging.basicConfig(
        level=_level(settings.app_log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=[
            logging.FileHandler(LOG_DIR / "marketgap.log"),
            logging.StreamHandler(),
        ],
    )
    noisy = _level(settings.noisy_log_level, logging.WARNING)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(noisy)
    return logging.getLogger("marketgap")


logger = _configure()


def get_logger(name: str) -> logging.Logger:
    return logger.getChild(name)


def _json_line(kind: str, **fields: Any) -> None:
    record = {"timestamp": datetime.now(timezone.utc).isoformat(), **fields}
    logger.info("%s: %s", kind, json.dumps(record, default=str))


def log_llm_call(
    model: str,
    caller: str,
    input_tokens: int = 0,
    output_tokens: int = 0,
    duration_ms: int = 0,
    status: str = "success",
    error: Optional[str] = None,
) -> None:
    _json_line(
        "LLM_CALL",
        model=model,
        caller=caller,
        input_tokens=input_tokens,
        output_tokens=output_tokens,
        total_tokens=input_tokens + output_tokens,
        duration_ms=duration_ms,
        status=status,
        error=error,
    )


def log_phase(run_id: str, phase: str, status: str, data: Optional[dict[str, Any]] = None) -> None:
    _json_line("PHASE", run_id=run_id, phase=phase, status=status, data=data)


def log_event(event_type: str, message: str, **kwargs: Any) -> None:
    _json_line("EVENT", event_type=event_type, message=message, **kwargs)
