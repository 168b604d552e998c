class ElapsedTimeCounter:
    """Counts poll ticks for one job; frozen once polling for that job stops.

    Owned by the job state machine, which freezes it in the same step that
    stops the poller.
    """

    def __init__(self) -> None:
        self._value = 0
        self._frozen = False

    @property
    def value(self) -> int:
        return self._value

    @property
    def frozen(self) -> bool:
        return self._frozen

    def tick(self) -> int:
        if not self._frozen:
            self._value += 1
        return self._value

    def freeze(self) -> None:
        self._frozen = True
