"""
Host/Sandbox Channel.

A sandboxed plugin sees two standard streams. The host backs each one with
a file in a private directory and exchanges whole JSON objects over them,
one per line:

- ``stdin``: host writes, guest reads
- ``stdout``: guest writes, host reads

Messages are framed by newline, so a pipe carries any number of
sequential messages. A trailing remainder without a terminator is taken as
one message when it is read, which keeps guests that do not terminate
their output working.
"""

import json
import shutil
import tempfile
import threading
from pathlib import Path
from typing import Any

TERMINATOR = b"\n"


class ChannelDecodeError(Exception):
    """Raised when no well-formed message can be read from a pipe."""

    pass


class Pipe:
    """
    One direction of a virtual standard stream.

    Writers append to the backing file; the reader keeps its own offset,
    so bytes are delivered exactly once and in write order.
    """

    def __init__(self, path: Path):
        self.path = path
        self.path.touch()
        self._offset = 0
        self._buffer = b""
        self._lock = threading.Lock()

    def write(self, data: bytes) -> None:
        with self._lock, open(self.path, "ab") as f:
            f.write(data)
            f.flush()

    def read_available(self) -> bytes:
        """Return every byte written since the previous read."""
        with self._lock, open(self.path, "rb") as f:
            f.seek(self._offset)
            data = f.read()
            self._offset += len(data)
        return data

    def read_message(self) -> bytes | None:
        """
        Return the next framed message, without its terminator.

        Returns:
            Message bytes, or None if nothing is pending
        """
        self._buffer += self.read_available()
        while TERMINATOR in self._buffer:
            message, _, self._buffer = self._buffer.partition(TERMINATOR)
            if message.strip():
                return message
        if self._buffer.strip():
            message, self._buffer = self._buffer, b""
            return message
        self._buffer = b""
        return None


class PipePair:
    """The stdin/stdout pipes of one sandbox instance."""

    def __init__(self, directory: Path):
        self.directory = directory
        self.stdin = Pipe(directory / "stdin")
        self.stdout = Pipe(directory / "stdout")

    @classmethod
    def create(cls, prefix: str = "plughost-") -> "PipePair":
        return cls(Path(tempfile.mkdtemp(prefix=prefix)))

    def close(self) -> None:
        shutil.rmtree(self.directory, ignore_errors=True)


def write_object(pipe: Pipe, value: Any) -> None:
    """Serialize ``value`` as compact JSON and append it as one message."""
    data = json.dumps(value, separators=(",", ":"), default=str).encode("utf-8")
    pipe.write(data + TERMINATOR)


def read_object(pipe: Pipe) -> Any:
    """
    Read and decode the next message from a pipe.

    A malformed message is consumed before the error is raised, so it
    never blocks the messages behind it.

    Raises:
        ChannelDecodeError: If no message is pending or it is not valid JSON
    """
    message = pipe.read_message()
    if message is None:
        raise ChannelDecodeError(f"No message pending on {pipe.path.name}")
    try:
        return json.loads(message.decode("utf-8").strip())
    # ValueError also covers oversized integer literals.
    except (ValueError, RecursionError) as e:
        raise ChannelDecodeError(f"Malformed message on {pipe.path.name}: {e}") from e
