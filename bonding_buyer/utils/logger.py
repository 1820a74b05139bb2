from __future__ import annotations
import logging
from logging.handlers import RotatingFileHandler
import os, functools, time
from pathlib import Path

_PACKAGE = "bonding_buyer"
_DEFAULT_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
_MAX_BYTES = int(os.getenv("LOG_MAX_BYTES", "1048576"))
_BACKUP_COUNT = int(os.getenv("LOG_BACKUP_COUNT", "3"))
_MAX_ARG_REPR = 160

class _LoggerManager:
    """
    Console handler on the package logger plus one rotating file per module.
    The host process's root logger is left alone.
    """

    def __init__(self) -> None:
        self._configured = False
        self._module_handlers: dict[str, logging.Handler] = {}
        # empty LOG_DIR -> console only
        self._log_dir = os.getenv("LOG_DIR", "./logs")
        self._level = getattr(logging, _DEFAULT_LEVEL, logging.INFO)

    def _ensure(self) -> None:
        if self._configured:
            return

        pkg = logging.getLogger(_PACKAGE)
        pkg.setLevel(self._level)
        pkg.propagate = False
        if not pkg.handlers:
            sh = logging.StreamHandler()
            sh.setLevel(self._level)
            sh.setFormatter(logging.Formatter(
                fmt="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S"
            ))
            pkg.addHandler(sh)

        if self._log_dir:
            try:
                Path(self._log_dir).mkdir(parents=True, exist_ok=True)
            except OSError as e:
                pkg.warning(f"LOG_DIR {self._log_dir} unusable, console only: {e}")
                self._log_dir = ""
        self._configured = True

    def _file_handler(self, name: str) -> logging.Handler:
        short = name[len(_PACKAGE) + 1:] if name.startswith(_PACKAGE + ".") else name
        file_path = os.path.join(self._log_dir, f"{short.replace('.', '_') or _PACKAGE}.log")
        fh = RotatingFileHandler(file_path, maxBytes=_MAX_BYTES, backupCount=_BACKUP_COUNT, encoding="utf-8")
        fh.setLevel(self._level)
        fh.setFormatter(logging.Formatter(
            fmt="%(asctime)s | %(levelname)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S"
        ))
        return fh

    def setup_logger(self, name: str) -> logging.Logger:
        self._ensure()
        # modules run as __main__ still log under the package
        if not name.startswith(_PACKAGE):
            name = f"{_PACKAGE}.{name}"
        logger = logging.getLogger(name)

        if self._log_dir and name not in self._module_handlers:
            try:
                fh = self._file_handler(name)
            except OSError as e:
                logging.getLogger(_PACKAGE).warning(f"No file log for {name}: {e}")
            else:
                self._module_handlers[name] = fh
                logger.addHandler(fh)

        return logger

logger_manager = _LoggerManager()

def _short_repr(value) -> str:
    text = repr(value)
    if len(text) > _MAX_ARG_REPR:
        return text[:_MAX_ARG_REPR] + "…"
    return text

def log_function(func):
    """
    Debug-log entry, exit and duration of ``func``.

    Pipeline errors (anything carrying a ``kind``) are expected outcomes and
    are logged as one warning line; other exceptions get a traceback. Both
    are re-raised.
    """
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        logger = logger_manager.setup_logger(func.__module__)
        if logger.isEnabledFor(logging.DEBUG):
            # bound methods: skip self
            shown = args[1:] if args and hasattr(args[0], func.__name__) else args
            logger.debug(
                f"→ {func.__qualname__} args=({', '.join(_short_repr(a) for a in shown)}) "
                f"kwargs={ {k: _short_repr(v) for k, v in kwargs.items()} }"
            )
        t0 = time.time()
        try:
            result = func(*args, **kwargs)
            logger.debug(f"← {func.__qualname__} ({(time.time()-t0)*1000:.1f} ms)")
            return result
        except Exception as e:
            if hasattr(e, "kind"):
                logger.warning(f"✗ {func.__qualname__}: {e}")
            else:
                logger.exception(f"✗ {func.__qualname__}: {e}")
            raise
    return wrapper
