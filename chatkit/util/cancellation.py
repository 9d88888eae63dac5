class CancellationToken:
    """
    Cooperative cancellation flag shared between a generation task and its adapter.

    Cancellation is advisory: consumers check `cancelled` between chunks, so one more
    buffered chunk may still arrive after `cancel()` is called.
    """

    def __init__(self):
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def __repr__(self):
        return f"<CancellationToken cancelled={self._cancelled}>"
