import logging
import threading

from flask import current_app

logger = logging.getLogger(__name__)


def run_in_background(fn, *args, **kwargs):
    """
    Fire-and-forget: run fn(*args, **kwargs) in its own app context.

    With TASKS_ASYNC on, the call happens on a daemon thread and the request
    returns immediately. With it off (tests, CLI) it runs inline. Either way a
    failing task is logged and never reaches the caller.
    """
    app = current_app._get_current_object()
    if app.config.get("TASKS_ASYNC", True):
        threading.Thread(
            target=_run,
            args=(app, fn, args, kwargs),
            name=f"task-{fn.__name__}",
            daemon=True,
        ).start()
    else:
        _run(app, fn, args, kwargs)


def _run(app, fn, args, kwargs):
    with app.app_context():
        try:
            fn(*args, **kwargs)
        except Exception:
            logger.exception("Background task %s failed", fn.__name__)
