"""Error-chain rendering and connection-error classification.

A failure is retryable when it looks like a connection problem. The test
is a substring heuristic: unwrap the error into its chain of causes,
render each layer as text, and look for "tcp" in any of them. It is
fragile (any message that happens to mention tcp qualifies) but callers
depend on it, so it stays behind `ConnectionErrorClassifier` where a
structural check can replace it without touching call sites.

httpx socket errors do not mention the protocol on their own, so the
transport layer is rendered the way a network operation error reads:
"dial tcp host:port: ...", "read tcp host:port: ..." and so on. TLS
handshake and certificate failures also surface as httpx.ConnectError;
they keep their plain message and are not retried.
"""

import ssl
from collections.abc import Iterator
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

import httpx

from shared.exceptions import TokenExchangeError

_NETWORK_OPERATIONS: tuple[tuple[type[httpx.TransportError], str], ...] = (
    (httpx.ConnectError, "dial"),
    (httpx.ConnectTimeout, "dial"),
    (httpx.ReadError, "read"),
    (httpx.ReadTimeout, "read"),
    (httpx.WriteError, "write"),
    (httpx.WriteTimeout, "write"),
)


def _causes(exc: BaseException) -> Iterator[BaseException]:
    seen: set[int] = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        yield current
        if current.__cause__ is not None:
            current = current.__cause__
        elif not current.__suppress_context__:
            current = current.__context__
        else:
            current = None


def _endpoint(exc: httpx.TransportError) -> str:
    try:
        url = exc.request.url
    except RuntimeError:
        # no request attached
        return ""
    port = url.port or (443 if url.scheme == "https" else 80)
    return f"{url.host}:{port}"


def _tls_failure(exc: BaseException) -> bool:
    return any(isinstance(layer, ssl.SSLError) for layer in _causes(exc))


def describe_layer(exc: BaseException) -> str:
    """Render one exception as a single line of text."""
    message = str(exc) or type(exc).__name__
    if _tls_failure(exc):
        return message
    for exc_type, operation in _NETWORK_OPERATIONS:
        if isinstance(exc, exc_type):
            endpoint = _endpoint(exc)
            target = f" {endpoint}" if endpoint else ""
            return f"{operation} tcp{target}: {message}"
    return message


@dataclass(frozen=True)
class ErrorChain:
    """Ordered layer texts of an error, outermost first."""

    layers: tuple[str, ...]

    @classmethod
    def from_exception(cls, exc: BaseException | None) -> "ErrorChain":
        if exc is None:
            return cls(())
        layers: list[str] = []
        for layer in _causes(exc):
            layers.append(describe_layer(layer))
            if isinstance(layer, TokenExchangeError):
                layers.extend(layer.wrapped)
        return cls(tuple(layers))

    def __iter__(self) -> Iterator[str]:
        return iter(self.layers)

    def __len__(self) -> int:
        return len(self.layers)

    def contains(self, needle: str) -> bool:
        return any(needle in layer for layer in self.layers)


@runtime_checkable
class ConnectionErrorClassifier(Protocol):
    def __call__(self, exc: BaseException | None) -> bool: ...


@dataclass(frozen=True)
class SubstringConnectionClassifier:
    """Retryable iff some layer of the error chain contains `needle`."""

    needle: str = "tcp"

    def __call__(self, exc: BaseException | None) -> bool:
        if exc is None:
            return False
        return ErrorChain.from_exception(exc).contains(self.needle)


default_classifier = SubstringConnectionClassifier()


def is_connection_error(exc: BaseException | None) -> bool:
    return default_classifier(exc)
