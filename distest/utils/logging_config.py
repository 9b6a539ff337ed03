import logging
import logging.config
import os
from pathlib import Path

# Loggers that keep their own handlers instead of propagating to root.
_NAMED_LOGGERS = {
    "distest": "DEBUG",
    "store": "INFO",
    "transport": "INFO",
    "uvicorn": "INFO",
}


def _prune_backups(log_dir: Path, base_name: str, backup_count: int) -> None:
    stale = sorted(
        log_dir.glob(f"{base_name}.*"),
        key=lambda path: path.stat().st_mtime,
        reverse=True,
    )[max(backup_count, 0) :]
    for path in stale:
        try:
            path.unlink()
        except OSError:
            continue


def _rotating(filename: Path, level: str, max_bytes: int, backup_count: int) -> dict:
    return {
        "class": "logging.handlers.RotatingFileHandler",
        "formatter": "default",
        "filename": str(filename),
        "maxBytes": max_bytes,
        "backupCount": backup_count,
        "level": level,
        "encoding": "utf8",
    }


def setup_logging():
    """
    Configures logging for the estimation node.
    Records go to the console, 'node.log' and, from WARNING up, 'problems.log'
    inside LOG_DIR.
    """
    log_dir = Path(os.getenv("LOG_DIR", "logs"))
    log_dir.mkdir(parents=True, exist_ok=True)
    max_bytes = int(os.getenv("LOG_MAX_BYTES", str(2 * 1024 * 1024)))
    backup_count = int(os.getenv("LOG_BACKUP_COUNT", "3"))
    for base_name in ("node.log", "problems.log"):
        _prune_backups(log_dir, base_name, backup_count)

    handler_names = ["console", "node_file", "problem_file"]
    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "default": {
                    "format": "%(asctime)s %(levelname)s [%(name)s] %(message)s",
                },
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "default",
                    "level": "INFO",
                },
                "node_file": _rotating(
                    log_dir / "node.log", "DEBUG", max_bytes, backup_count
                ),
                "problem_file": _rotating(
                    log_dir / "problems.log", "WARNING", max_bytes, backup_count
                ),
            },
            "root": {"handlers": handler_names, "level": "INFO"},
            "loggers": {
                name: {"handlers": handler_names, "level": level, "propagate": False}
                for name, level in _NAMED_LOGGERS.items()
            },
        }
    )
    logging.getLogger("distest").info("Logging configured in %s", log_dir)
