# utils/crashlog.py
import os, sys, faulthandler, datetime, traceback

_fault_file = None

def log_dir() -> str:
    d = os.path.join(os.getcwd(), "logs")
    os.makedirs(d, exist_ok=True)
    return d

def _new_log_path(prefix: str) -> str:
    stamp = datetime.datetime.now().strftime("%Y%m%d-%H%M%S")
    return os.path.join(log_dir(), f"{prefix}-{stamp}.txt")

def _write_report(prefix: str, title: str, exc: BaseException) -> str:
    path = _new_log_path(prefix)
    with open(path, "w", encoding="utf-8") as out:
        out.write(f"[{title}] {type(exc).__name__}: {exc}\n")
        out.writelines(traceback.format_exception(type(exc), exc, exc.__traceback__))
    return path

def setup_crashlog():
    """Dump native faults and uncaught exceptions into logs/ before exiting."""
    global _fault_file
    if _fault_file is None:
        try:
            _fault_file = open(_new_log_path("native"), "w", encoding="utf-8")
            faulthandler.enable(_fault_file)
        except OSError:
            _fault_file = None

    def _hook(exc_type, exc, tb):
        try:
            _write_report("crash", "Uncaught exception", exc.with_traceback(tb))
        finally:
            sys.__excepthook__(exc_type, exc, tb)
    sys.excepthook = _hook

def log_exception(title: str, exc: BaseException) -> str:
    return _write_report("error", title, exc)
