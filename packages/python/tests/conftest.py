import pytest


class FakeTimer:
    """Stands in for threading.Timer; fires only when told to."""

    def __init__(self, interval, function):
        self.interval = interval
        self.function = function
        self.started = False
        self.cancelled = False
        self.daemon = False

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    def fire(self):
        if self.started and not self.cancelled:
            self.function()


class FakeTimers:
    def __init__(self):
        self.created: list[FakeTimer] = []

    def __call__(self, interval, function):
        timer = FakeTimer(interval, function)
        self.created.append(timer)
        return timer

    @property
    def live(self) -> list[FakeTimer]:
        return [t for t in self.created if t.started and not t.cancelled]

    def elapse(self):
        """Fire every timer still waiting, as if the quiet window passed."""
        for timer in self.live:
            timer.fire()


@pytest.fixture
def timers():
    return FakeTimers()
