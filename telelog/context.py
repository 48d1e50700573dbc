# telelog/context.py
# Task-local metadata that handlers can pull in through a metadata provider.

from contextlib import contextmanager
from contextvars import ContextVar
from types import MappingProxyType
from typing import Any, Dict, Iterator, Mapping

_context_metadata: ContextVar[Mapping[str, Any]] = ContextVar(
    "telelog_context_metadata", default=MappingProxyType({})
)


def get_context_metadata() -> Dict[str, Any]:
    return dict(_context_metadata.get())


@contextmanager
def bind_metadata(**values: Any) -> Iterator[Dict[str, Any]]:
    """
    Adds metadata for the current task (or thread) for the duration of the block.

        with bind_metadata(request_id="abc123"):
            logger.info("Handling request")

    Nested blocks layer on top of each other; the outer values come back on exit.
    """
    merged = {**_context_metadata.get(), **values}
    token = _context_metadata.set(MappingProxyType(merged))
    try:
        yield dict(merged)
    finally:
        _context_metadata.reset(token)


def context_metadata_provider() -> Dict[str, Any]:
    # Signature matches TelegramLoggingHandler's metadata_provider.
    return get_context_metadata()
