"""
Debounced autosave for lesson drafts.
One trailing-edge timer per key; scheduling again cancels the pending one.
"""

import logging
import threading

logger = logging.getLogger(__name__)


class AutoSaver:
    def __init__(self, delay_seconds=2.0):
        self.delay_seconds = delay_seconds
        self._timers = {}
        self._pending = {}
        self._lock = threading.Lock()

    def schedule(self, key, fn, *args):
        with self._lock:
            timer = self._timers.pop(key, None)
            if timer:
                timer.cancel()

            timer = threading.Timer(self.delay_seconds, self._run, args=(key,))
            timer.daemon = True
            self._timers[key] = timer
            self._pending[key] = (fn, args)
            timer.start()

    def _run(self, key):
        with self._lock:
            self._timers.pop(key, None)
            job = self._pending.pop(key, None)

        if job is None:
            return

        fn, args = job
        try:
            fn(*args)
        except Exception as e:
            logger.warning(f"Autosave for {key} failed, keeping buffered copy: {str(e)}")

    def flush(self, key):
        """Run a pending save immediately. Returns False when nothing was pending."""
        with self._lock:
            timer = self._timers.pop(key, None)
            if timer:
                timer.cancel()
            if key not in self._pending:
                return False

        self._run(key)
        return True

    def is_pending(self, key):
        with self._lock:
            return key in self._pending

    def cancel_all(self):
        with self._lock:
            for timer in self._timers.values():
                timer.cancel()
            self._timers.clear()
            self._pending.clear()
