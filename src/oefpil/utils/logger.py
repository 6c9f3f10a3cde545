#########################################################################################
##
##                                  LOGGER MANAGEMENT
##                                  (utils/logger.py)
##
##         Singleton that owns the package logger hierarchy. The package stays
##         silent until the caller enables console output or configures logging.
##
#########################################################################################

# IMPORTS ===============================================================================

import logging


# CLASS =================================================================================

class LoggerManager:
    """Singleton manager for the ``oefpil`` logger hierarchy.

    All modules obtain their logger through :meth:`get_logger`, so every
    logger lives below the package root ``"oefpil"``.  A ``NullHandler`` is
    attached to the root on first use; call :meth:`enable_console` to see
    the output on ``stderr``.

    Example
    -------
    .. code-block:: python

        from oefpil import LoggerManager

        LoggerManager().enable_console("DEBUG")   # per-iteration trace
    """

    ROOT = "oefpil"
    FORMAT = "%(asctime)s | %(levelname)-7s | %(name)s | %(message)s"

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialized = False
        return cls._instance


    def __init__(self):
        if self._initialized:
            return

        self._root = logging.getLogger(self.ROOT)
        self._root.addHandler(logging.NullHandler())
        self._console = None
        self._initialized = True


    def get_logger(self, name: str) -> logging.Logger:
        """Return the logger for *name*, nested under the package root."""
        if name == self.ROOT or name.startswith(self.ROOT + "."):
            return logging.getLogger(name)
        if name == "__main__":
            return logging.getLogger(f"{self.ROOT}.main")
        return logging.getLogger(f"{self.ROOT}.{name}")


    def set_level(self, level) -> None:
        """Set the level of the package root logger (name or numeric level)."""
        if isinstance(level, str):
            level = logging.getLevelName(level.upper())
        self._root.setLevel(level)


    def enable_console(self, level="INFO") -> logging.Handler:
        """Attach a single ``StreamHandler`` to the package root logger."""
        if self._console is None:
            self._console = logging.StreamHandler()
            self._console.setFormatter(logging.Formatter(self.FORMAT))
            self._root.addHandler(self._console)
        self.set_level(level)
        self._console.setLevel(self._root.level)
        return self._console


    def disable_console(self) -> None:
        """Remove the console handler added by :meth:`enable_console`."""
        if self._console is not None:
            self._root.removeHandler(self._console)
            self._console = None
