import contextvars
from contextlib import contextmanager
import uuid

request_id_var: contextvars.ContextVar[str | None] = contextvars.ContextVar("request_id", default=None)
run_id_var: contextvars.ContextVar[str | None] = contextvars.ContextVar("run_id", default=None)
stage_var: contextvars.ContextVar[str | None] = contextvars.ContextVar("stage", default=None)
page_number_var: contextvars.ContextVar[int | None] = contextvars.ContextVar("page_number", default=None)


def set_request_id(request_id: str) -> contextvars.Token:
    """Store the current request ID in a context variable."""
    return request_id_var.set(request_id)


def reset_request_id(token: contextvars.Token) -> None:
    """Reset the request ID context variable to a previous state."""
    request_id_var.reset(token)


def get_request_id() -> str | None:
    """Retrieve the current request ID from the context."""
    return request_id_var.get()


def get_run_id() -> str | None:
    """Retrieve the current run ID for logging."""
    return run_id_var.get()


def get_stage() -> str | None:
    """Retrieve the current run stage for logging."""
    return stage_var.get()


def get_page_number() -> int | None:
    return page_number_var.get()


def _normalize_id(value: uuid.UUID | str | None) -> str | None:
    if value is None:
        return None
    return str(value)


@contextmanager
def log_context(
    run_id: uuid.UUID | str | None = None,
    stage: str | None = None,
    page_number: int | None = None,
):
    """Temporarily scope run/stage/page context for structured logs."""
    tokens: list[tuple[contextvars.ContextVar, contextvars.Token]] = []
    if run_id is not None:
        tokens.append((run_id_var, run_id_var.set(_normalize_id(run_id))))
    if stage is not None:
        tokens.append((stage_var, stage_var.set(stage)))
    if page_number is not None:
        tokens.append((page_number_var, page_number_var.set(page_number)))
    try:
        yield
    finally:
        for var, token in reversed(tokens):
            var.reset(token)
