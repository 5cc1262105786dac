# backend/asset_transforms/services/config_store.py
"""
Config propagation store.

Named transforms are published as config entries under
``imageTransforms.<uid>``; listeners registered for that prefix apply each
change to the database. Replaying the store re-applies every entry, which is
how a fresh environment picks up transforms defined elsewhere.
"""

import copy
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Protocol, Tuple

from ..enums import LogEmoji, LoggerName, LogSource
from .logger import get_service_logger

logger = get_service_logger(LoggerName.CONFIG_STORE, LogSource.CONFIG)


@dataclass(frozen=True)
class ConfigEvent:
    """A change to one config entry below a registered prefix."""

    path: str
    token: str
    old_value: Optional[Dict[str, Any]]
    new_value: Optional[Dict[str, Any]]


ConfigHandler = Callable[[ConfigEvent], None]


class ConfigStore(Protocol):
    def set(self, path: str, value: Dict[str, Any], message: Optional[str] = None) -> None: ...

    def remove(self, path: str, message: Optional[str] = None) -> None: ...

    def get(self, path: str) -> Optional[Dict[str, Any]]: ...

    def on_change(self, prefix: str, handler: ConfigHandler) -> None: ...

    def on_remove(self, prefix: str, handler: ConfigHandler) -> None: ...

    def replay(self) -> None: ...


class InMemoryConfigStore:
    """
    Path/value map with change listeners.

    Handlers run synchronously inside set()/remove(), so the write they
    trigger is visible as soon as the call returns. Handlers registered for
    a prefix receive the first path segment after it as the event token.
    """

    def __init__(self, initial: Optional[Dict[str, Dict[str, Any]]] = None):
        self._values: Dict[str, Dict[str, Any]] = dict(initial or {})
        self._change_handlers: List[Tuple[str, ConfigHandler]] = []
        self._remove_handlers: List[Tuple[str, ConfigHandler]] = []
        self._lock = threading.RLock()

    def set(self, path: str, value: Dict[str, Any], message: Optional[str] = None) -> None:
        with self._lock:
            old_value = self._values.get(path)
            new_value = copy.deepcopy(value)
            if old_value == new_value:
                return
            self._values[path] = new_value

        logger.debug(
            message or f"Config entry {path} updated",
            extra_context={"path": path},
            emoji=LogEmoji.UPDATE,
        )
        self._dispatch(self._change_handlers, path, old_value, new_value)

    def remove(self, path: str, message: Optional[str] = None) -> None:
        with self._lock:
            old_value = self._values.pop(path, None)
        if old_value is None:
            return

        logger.debug(
            message or f"Config entry {path} removed",
            extra_context={"path": path},
            emoji=LogEmoji.DELETE,
        )
        self._dispatch(self._remove_handlers, path, old_value, None)

    def get(self, path: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            value = self._values.get(path)
            return copy.deepcopy(value) if value is not None else None

    def on_change(self, prefix: str, handler: ConfigHandler) -> None:
        self._change_handlers.append((prefix, handler))

    def on_remove(self, prefix: str, handler: ConfigHandler) -> None:
        self._remove_handlers.append((prefix, handler))

    def replay(self) -> None:
        """Re-deliver every stored entry to the change handlers."""
        with self._lock:
            entries = sorted(self._values.items())
        for path, value in entries:
            self._dispatch(self._change_handlers, path, None, copy.deepcopy(value))

    def _dispatch(
        self,
        handlers: List[Tuple[str, ConfigHandler]],
        path: str,
        old_value: Optional[Dict[str, Any]],
        new_value: Optional[Dict[str, Any]],
    ) -> None:
        for prefix, handler in list(handlers):
            token = _match_prefix(prefix, path)
            if token is None:
                continue
            handler(ConfigEvent(path, token, old_value, new_value))


def _match_prefix(prefix: str, path: str) -> Optional[str]:
    """Return the segment following prefix in path, or None if it does not match."""
    if not path.startswith(f"{prefix}."):
        return None
    remainder = path[len(prefix) + 1 :]
    token = remainder.split(".", 1)[0]
    return token or None
