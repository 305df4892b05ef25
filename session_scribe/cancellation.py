"""
Cooperative cancellation shared by the transcription fan-out and the job client.

A token is a thread-safe flag. Child tokens are cancelled together with their
parent, so one signal handed to a top-level call reaches every segment worker
and the polling loop, while a child can also be cancelled on its own (for
example when one segment fails and its siblings must stop).

Blocking network calls cannot observe a flag, so ``run_cancellable`` runs them
on a helper thread: the caller is released as soon as the token is cancelled,
an optional abort hook tears down the connection and any late result is
discarded.
"""

import logging
import threading
from typing import Any, Callable, Dict, List, Optional

from .errors import OperationCancelledError

logger = logging.getLogger(__name__)


class CancellationToken:
    """Thread-safe cancellation flag that can be linked to a parent token."""

    def __init__(self, parent: Optional["CancellationToken"] = None):
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._children: List["CancellationToken"] = []
        self._callbacks: List[Callable[[], None]] = []
        self._parent = parent
        self.reason: Optional[str] = None

        if parent is not None:
            parent._link(self)

    @property
    def cancelled(self) -> bool:
        """True once the token (or one of its ancestors) was cancelled."""
        return self._event.is_set()

    def cancel(self, reason: str = "Operation was cancelled") -> None:
        """Cancel this token, run its callbacks and cancel every linked token."""
        with self._lock:
            if self._event.is_set():
                return
            self.reason = reason
            self._event.set()
            children = list(self._children)
            callbacks = list(self._callbacks)
            self._callbacks.clear()

        for callback in callbacks:
            self._run_callback(callback)

        for child in children:
            child.cancel(reason)

    def child(self) -> "CancellationToken":
        """Create a token that is cancelled whenever this one is."""
        return CancellationToken(parent=self)

    def close(self) -> None:
        """Detach from the parent so a long-lived parent does not keep finished children."""
        if self._parent is not None:
            self._parent._unlink(self)
            self._parent = None

    def register(self, callback: Callable[[], None]) -> Callable[[], None]:
        """
        Call ``callback`` once when the token is cancelled.

        Runs immediately if the token is already cancelled.

        Returns:
            A function that removes the registration
        """
        with self._lock:
            if not self._event.is_set():
                self._callbacks.append(callback)
                return lambda: self._unregister(callback)

        self._run_callback(callback)
        return lambda: None

    def raise_if_cancelled(self) -> None:
        """Raise OperationCancelledError if the token has been cancelled."""
        if self._event.is_set():
            raise OperationCancelledError(self.reason or "Operation was cancelled")

    def wait(self, seconds: float) -> None:
        """
        Sleep for ``seconds`` unless cancelled first.

        Raises:
            OperationCancelledError: If the token is cancelled before or during the wait
        """
        if self._event.wait(timeout=seconds):
            self.raise_if_cancelled()

    def _link(self, child: "CancellationToken") -> None:
        with self._lock:
            already_cancelled = self._event.is_set()
            if not already_cancelled:
                self._children.append(child)

        if already_cancelled:
            child.cancel(self.reason or "Operation was cancelled")

    def _unlink(self, child: "CancellationToken") -> None:
        with self._lock:
            if child in self._children:
                self._children.remove(child)

    def _unregister(self, callback: Callable[[], None]) -> None:
        with self._lock:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

    @staticmethod
    def _run_callback(callback: Callable[[], None]) -> None:
        # One failing abort hook must not stop cancellation reaching the others
        try:
            callback()
        except Exception as e:
            logger.warning(f"Cancellation callback {callback!r} failed: {e}")


def run_cancellable(
    cancel_token: CancellationToken,
    func: Callable[..., Any],
    *args,
    on_cancel: Optional[Callable[[], None]] = None,
    **kwargs,
) -> Any:
    """
    Run a blocking call so that cancelling ``cancel_token`` releases the caller at once.

    Args:
        cancel_token: Token observed while the call runs
        func: Blocking call, e.g. an HTTP request or SDK method
        on_cancel: Abort hook run on cancellation (close a response, a client, ...)

    Returns:
        Whatever ``func`` returns

    Raises:
        OperationCancelledError: If the token is cancelled before the call finishes.
            The call's own result or error is then discarded.
    """
    cancel_token.raise_if_cancelled()

    outcome: Dict[str, Any] = {}
    done = threading.Event()

    def target():
        try:
            outcome["result"] = func(*args, **kwargs)
        except BaseException as e:
            outcome["error"] = e
        finally:
            done.set()

    unregister = cancel_token.register(done.set)
    worker = threading.Thread(target=target, name=f"cancellable-{getattr(func, '__name__', 'call')}", daemon=True)
    worker.start()
    try:
        done.wait()
    finally:
        unregister()

    if cancel_token.cancelled:
        if on_cancel is not None:
            on_cancel()
        raise OperationCancelledError(cancel_token.reason or "Operation was cancelled")

    if "error" in outcome:
        raise outcome["error"]
    return outcome["result"]
