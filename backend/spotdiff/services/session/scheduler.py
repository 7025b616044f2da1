class BackgroundScheduler:
    """Runs deferred work on Socket.IO background tasks.

    Using the Socket.IO helpers keeps timers cooperative under eventlet/gevent
    and plain threads under the threading async mode.
    """

    def __init__(self, socketio, poll_interval=1.0):
        self.socketio = socketio
        self.poll_interval = poll_interval

    def spawn(self, fn, *args, **kwargs):
        return self.socketio.start_background_task(fn, *args, **kwargs)

    def call_later(self, delay, fn, *args, cancelled=None):
        """Run ``fn(*args)`` after ``delay`` seconds.

        The wait sleeps in ``poll_interval`` steps; when ``cancelled()`` turns
        true the task ends at the next step without calling ``fn``.
        """
        def _runner():
            remaining = delay
            while remaining > 0:
                if cancelled is not None and cancelled():
                    return
                step = min(self.poll_interval, remaining)
                self.socketio.sleep(step)
                remaining -= step
            if cancelled is not None and cancelled():
                return
            fn(*args)

        return self.spawn(_runner)
