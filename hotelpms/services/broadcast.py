import logging
from typing import Any, Callable

logger = logging.getLogger(__name__)

Listener = Callable[[str, str, Any], None]

# Transports (e.g. a WebSocket fan-out) register here
_listeners: list[Listener] = []


def subscribe(listener: Listener) -> Callable[[], None]:
    """Register a listener; returns a function that unregisters it."""
    _listeners.append(listener)

    def _unsubscribe():
        if listener in _listeners:
            _listeners.remove(listener)

    return _unsubscribe


def broadcast(resource: str, event: str, payload: Any) -> None:
    """Fan a change out to every listener. Listener failures are logged, never raised."""
    logger.debug("broadcast %s.%s %s", resource, event, payload)
    for listener in list(_listeners):
        try:
            listener(resource, event, payload)
        except Exception:
            logger.exception("Broadcast listener failed for %s.%s", resource, event)
