"""
JSON-RPC Peer.

This module provides a bidirectional JSON-RPC 2.0 endpoint over a pair of
byte streams, one message per line.

Key features:
- Notifications and blocking requests to the remote side
- Background reader thread routing incoming requests, notifications
  and responses
- Error responses for requests the handler rejects
- Malformed lines are logged and skipped
"""

import itertools
import json
import logging
import threading
from concurrent.futures import Future
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass
from typing import IO, Any, Protocol

logger = logging.getLogger(__name__)


class RpcError(Exception):
    """Base exception for RPC errors."""

    pass


class RpcTimeoutError(RpcError):
    """Raised when a request gets no response in time."""

    pass


class RemoteError(RpcError):
    """
    An error carried in a JSON-RPC error object.

    Raised from ``send_request`` when the remote answers with an error, and
    raised by handlers to answer a request with one.
    """

    PARSE_ERROR = -32700
    INVALID_REQUEST = -32600
    METHOD_NOT_FOUND = -32601
    INTERNAL_ERROR = -32603

    def __init__(self, code: int, message: str, data: Any = None):
        super().__init__(f"{message} ({code})")
        self.code = code
        self.message = message
        self.data = data

    @classmethod
    def invalid_request(cls, data: Any = None) -> "RemoteError":
        return cls(cls.INVALID_REQUEST, "Invalid request", data)

    @classmethod
    def from_json(cls, error: Any) -> "RemoteError":
        if not isinstance(error, dict):
            return cls(cls.INTERNAL_ERROR, str(error))
        return cls(
            error.get("code", cls.INTERNAL_ERROR),
            error.get("message", ""),
            error.get("data"),
        )

    def to_json(self) -> dict[str, Any]:
        error = {"code": self.code, "message": self.message}
        if self.data is not None:
            error["data"] = self.data
        return error


class Handler(Protocol):
    """Receives the messages the remote side sends."""

    def handle_notification(self, peer: "RpcPeer", method: str, params: Any) -> None: ...

    def handle_request(self, peer: "RpcPeer", method: str, params: Any) -> Any: ...


@dataclass
class RpcMessage:
    """
    One JSON-RPC message.

    Attributes:
        method: Method name (requests and notifications)
        params: Method parameters
        id: Request ID (requests and responses)
        result: Result data (successful responses)
        error: Error object (failed responses)
    """

    method: str | None = None
    params: Any = None
    id: Any = None
    result: Any = None
    error: Any = None

    @property
    def is_request(self) -> bool:
        return self.method is not None and self.id is not None

    @property
    def is_notification(self) -> bool:
        return self.method is not None and self.id is None

    @classmethod
    def from_jsonrpc(cls, data: dict[str, Any]) -> "RpcMessage":
        method = data.get("method")
        return cls(
            method=method if isinstance(method, str) else None,
            params=data.get("params"),
            id=data.get("id"),
            result=data.get("result"),
            error=data.get("error"),
        )


class RpcPeer:
    """
    JSON-RPC peer over line-framed streams.

    The reader thread calls the handler synchronously, so a slow handler
    delays the messages behind it.
    """

    def __init__(self, writer: IO[bytes], reader: IO[bytes], timeout: float = 30.0):
        """
        Initialize RpcPeer.

        Args:
            writer: Stream to the remote side
            reader: Stream from the remote side
            timeout: Seconds ``send_request`` waits for a response
        """
        self.timeout = timeout
        self._writer = writer
        self._reader = reader
        self._write_lock = threading.Lock()
        self._ids = itertools.count(1)
        self._pending: dict[int, Future] = {}
        self._pending_lock = threading.Lock()
        self._handler: Handler | None = None
        self._reader_thread: threading.Thread | None = None
        self._running = False

    def start(self, handler: Handler, name: str = "rpc-peer") -> None:
        """Start routing incoming messages to ``handler``."""
        if self._running:
            return
        self._handler = handler
        self._running = True
        self._reader_thread = threading.Thread(
            target=self._read_messages, name=name, daemon=True
        )
        self._reader_thread.start()

    def stop(self) -> None:
        """Stop the peer and fail all pending requests."""
        self._running = False
        self._fail_pending(RpcError("Peer stopped"))

    def join(self, timeout: float | None = None) -> None:
        if self._reader_thread is not None:
            self._reader_thread.join(timeout)

    def send_notification(self, method: str, params: Any = None) -> None:
        """
        Send a notification.

        Raises:
            RpcError: If the stream is closed
        """
        self._write({"jsonrpc": "2.0", "method": method, "params": params})

    def send_request(self, method: str, params: Any = None) -> Any:
        """
        Send a request and wait for its result.

        Returns:
            The response result

        Raises:
            RemoteError: If the remote answered with an error
            RpcTimeoutError: If no response arrived within the timeout
            RpcError: If the stream is closed
        """
        request_id = next(self._ids)
        future: Future = Future()
        with self._pending_lock:
            self._pending[request_id] = future

        try:
            self._write(
                {"jsonrpc": "2.0", "id": request_id, "method": method, "params": params}
            )
            return future.result(timeout=self.timeout)
        except FutureTimeoutError:
            raise RpcTimeoutError(
                f"Request {method!r} timed out after {self.timeout}s"
            ) from None
        finally:
            with self._pending_lock:
                self._pending.pop(request_id, None)

    def _write(self, message: dict[str, Any]) -> None:
        data = json.dumps(message, separators=(",", ":")).encode("utf-8") + b"\n"
        try:
            with self._write_lock:
                self._writer.write(data)
                self._writer.flush()
        except (OSError, ValueError) as e:
            raise RpcError(f"Failed to write message: {e}") from e

    def _read_messages(self) -> None:
        """Read lines from the remote side until EOF or stop."""
        try:
            for line in self._reader:
                if not self._running:
                    break
                if not line.strip():
                    continue

                try:
                    data = json.loads(line.decode("utf-8"))
                except (ValueError, RecursionError) as e:
                    logger.debug("Skipping malformed RPC line: %s", e)
                    continue
                if not isinstance(data, dict):
                    logger.debug("Skipping non-object RPC message")
                    continue

                self._route(RpcMessage.from_jsonrpc(data))
        except (OSError, ValueError) as e:
            logger.debug("RPC reader stopped: %s", e)
        finally:
            self._running = False
            self._fail_pending(RpcError("Connection closed"))

    def _route(self, message: RpcMessage) -> None:
        if message.is_request:
            self._handle_request(message)
        elif message.is_notification:
            try:
                self._handler.handle_notification(self, message.method, message.params)
            except Exception:
                logger.exception("Notification handler failed for %r", message.method)
        elif message.id is not None:
            self._resolve(message)
        else:
            logger.debug("Skipping RPC message without method or id")

    def _handle_request(self, message: RpcMessage) -> None:
        response: dict[str, Any] = {"jsonrpc": "2.0", "id": message.id}
        try:
            response["result"] = self._handler.handle_request(
                self, message.method, message.params
            )
        except RemoteError as e:
            response["error"] = e.to_json()
        except Exception as e:
            logger.exception("Request handler failed for %r", message.method)
            response["error"] = RemoteError(RemoteError.INTERNAL_ERROR, str(e)).to_json()

        try:
            self._write(response)
        except RpcError as e:
            logger.debug("Could not answer request %r: %s", message.id, e)

    def _resolve(self, message: RpcMessage) -> None:
        with self._pending_lock:
            future = self._pending.pop(message.id, None)
        if future is None:
            logger.debug("Response for unknown request id %r", message.id)
            return
        if message.error is not None:
            future.set_exception(RemoteError.from_json(message.error))
        else:
            future.set_result(message.result)

    def _fail_pending(self, error: Exception) -> None:
        with self._pending_lock:
            pending = list(self._pending.values())
            self._pending.clear()
        for future in pending:
            if not future.done():
                future.set_exception(error)
