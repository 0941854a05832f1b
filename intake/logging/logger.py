import logging
import sys

# Third-party loggers that flood stdout at INFO while parsing PDFs or calling the blob store.
_NOISY_LOGGERS = ("pdfminer", "httpx", "httpcore")


def _with_context(message: str, context: dict[str, object]) -> str:
    if not context:
        return message
    pairs = " ".join(f"{key}={value}" for key, value in context.items() if value is not None)
    return f"{message} [{pairs}]" if pairs else message


class Log:
    """Process-wide logging facade for the intake service.

    Keyword arguments are appended to the line as ``key=value`` context, e.g.
    ``Log.info("Document stored", tenant=tenant_id, document=document_id)``.
    """

    _logger: logging.Logger = logging.getLogger("intake")

    @classmethod
    def configure(cls, log_level: str) -> None:
        """Attach a stdout handler once and apply the level."""
        cls._logger.setLevel(log_level.upper())
        if not cls._logger.handlers:
            handler = logging.StreamHandler(sys.stdout)
            handler.setFormatter(
                logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")
            )
            cls._logger.addHandler(handler)
            cls._logger.propagate = False
        for name in _NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    @classmethod
    def info(cls, message: str, **context: object) -> None:
        cls._logger.info(_with_context(message, context))

    @classmethod
    def error(cls, message: str, **context: object) -> None:
        cls._logger.error(_with_context(message, context))

    @classmethod
    def exception(cls, message: str, **context: object) -> None:
        """Log at error level with the active exception's traceback."""
        cls._logger.exception(_with_context(message, context))

    @classmethod
    def warning(cls, message: str, **context: object) -> None:
        cls._logger.warning(_with_context(message, context))

    @classmethod
    def debug(cls, message: str, **context: object) -> None:
        cls._logger.debug(_with_context(message, context))
