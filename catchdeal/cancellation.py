"""Cooperative cancellation token."""


class CancelToken:
    """
    Set once by a stop request; checked by the loop at each suspension point.

    The token never interrupts an in-flight await. Loops check ``cancelled``
    before each source, post, queue dequeue and delay tick.
    """

    def __init__(self) -> None:
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True
