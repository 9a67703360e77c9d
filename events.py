"""
Synchronous publish/subscribe channels.

Subscribers are plain callables, called in subscription order on the thread
that publishes. ``subscribe`` returns a function that removes the subscriber.
"""
import threading


class Channel:
    def __init__(self):
        self._subscribers = []
        self._lock = threading.Lock()

    def subscribe(self, callback):
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe():
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    def publish(self, value):
        with self._lock:
            subscribers = list(self._subscribers)
        for callback in subscribers:
            callback(value)

    def __len__(self):
        return len(self._subscribers)


class BehaviorChannel(Channel):
    """Channel that remembers its last value and replays it to new subscribers."""

    def __init__(self, initial=None):
        super().__init__()
        self._value = initial

    @property
    def value(self):
        return self._value

    def subscribe(self, callback):
        unsubscribe = super().subscribe(callback)
        callback(self._value)
        return unsubscribe

    def publish(self, value):
        self._value = value
        super().publish(value)
