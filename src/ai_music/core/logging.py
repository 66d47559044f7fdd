"""
AI Music Logging Configuration
Structured logging setup with file rotation for provider and storage operations
"""

import logging
import logging.handlers
import sys
from pathlib import Path
from typing import Any, Optional

import structlog
from pythonjsonlogger import jsonlogger

from .config import get_settings


def setup_logging() -> logging.Logger:
    """Set up structured logging for the AI music library"""
    settings = get_settings()

    log_dir = Path(settings.LOG_FILE_PATH).parent
    log_dir.mkdir(parents=True, exist_ok=True)

    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper()),
        format=settings.LOG_FORMAT,
        handlers=[]
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.INFO)

    if settings.is_development:
        console_formatter = logging.Formatter(
            '\033[92m%(asctime)s\033[0m - '
            '\033[94m%(name)s\033[0m - '
            '\033[%(levelno)s;1m%(levelname)s\033[0m - '
            '%(message)s',
            datefmt='%H:%M:%S'
        )
    else:
        console_formatter = jsonlogger.JsonFormatter(
            '%(asctime)s %(name)s %(levelname)s %(message)s'
        )

    console_handler.setFormatter(console_formatter)
    root_logger.addHandler(console_handler)

    file_handler = logging.handlers.RotatingFileHandler(
        settings.LOG_FILE_PATH,
        maxBytes=settings.LOG_MAX_SIZE,
        backupCount=settings.LOG_BACKUP_COUNT,
        encoding='utf-8'
    )
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(jsonlogger.JsonFormatter(
        '%(asctime)s %(name)s %(levelname)s %(pathname)s %(lineno)d %(funcName)s %(message)s'
    ))
    root_logger.addHandler(file_handler)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer() if not settings.is_development
            else structlog.dev.ConsoleRenderer()
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)

    logging.getLogger("ai_music.providers").setLevel(logging.DEBUG)
    logging.getLogger("ai_music.storage").setLevel(logging.INFO)

    logger = logging.getLogger("ai_music")
    logger.info(f"Logging configured - Level: {settings.LOG_LEVEL}")

    return logger


class ProviderLogger:
    """Specialized logger for external provider calls"""

    def __init__(self):
        self.logger = structlog.get_logger("ai_music.providers")

    def log_job_submitted(
        self,
        provider: str,
        job_id: str,
        operation: str = "generate",
        **kwargs: Any
    ) -> None:
        """Log a job accepted by a provider"""
        self.logger.info(
            "Provider job submitted",
            provider=provider,
            job_id=job_id,
            operation=operation,
            **kwargs
        )

    def log_status_checked(
        self,
        provider: str,
        job_id: str,
        raw_status: Optional[str],
        status: str
    ) -> None:
        """Log a status poll and how the provider vocabulary was normalized"""
        self.logger.debug(
            "Provider status checked",
            provider=provider,
            job_id=job_id,
            raw_status=raw_status,
            status=status
        )

    def log_provider_error(
        self,
        provider: str,
        operation: str,
        error: str,
        job_id: str = None,
        **kwargs: Any
    ) -> None:
        """Log a provider rejection or transport failure"""
        self.logger.error(
            "Provider call failed",
            provider=provider,
            operation=operation,
            error=error,
            job_id=job_id,
            **kwargs
        )

    def log_cancellation(self, provider: str, job_id: str, outcome: str) -> None:
        """Log a cancellation request"""
        self.logger.info(
            "Provider cancellation requested",
            provider=provider,
            job_id=job_id,
            outcome=outcome
        )


class StorageLogger:
    """Specialized logger for local file operations"""

    def __init__(self):
        self.logger = structlog.get_logger("ai_music.storage")

    def log_file_saved(self, local_path: str, size_bytes: int, source_url: str = None) -> None:
        """Log a downloaded artifact written to disk"""
        self.logger.info(
            "File saved",
            local_path=local_path,
            size_bytes=size_bytes,
            source_url=source_url
        )

    def log_file_deleted(self, local_path: str) -> None:
        """Log a file removed from disk"""
        self.logger.info("File deleted", local_path=local_path)

    def log_cleanup_completed(self, deleted: int, days_old: int) -> None:
        """Log an age-based cleanup sweep"""
        self.logger.info(
            "Storage cleanup completed",
            deleted_files=deleted,
            days_old=days_old
        )

    def log_storage_error(self, operation: str, error: str, local_path: str = None) -> None:
        """Log a storage failure"""
        self.logger.error(
            "Storage operation failed",
            operation=operation,
            error=error,
            local_path=local_path
        )


class WorkflowLogger:
    """Logger for multi-step music workflows"""

    def __init__(self):
        self.logger = structlog.get_logger("ai_music.workflow")

    def log_processing_start(self, operation: str, music_id: str = None, **kwargs: Any) -> None:
        self.logger.info("Workflow step started", operation=operation, music_id=music_id, **kwargs)

    def log_processing_complete(
        self,
        operation: str,
        duration_ms: float,
        music_id: str = None,
        **kwargs: Any
    ) -> None:
        self.logger.info(
            "Workflow step completed",
            operation=operation,
            duration_ms=duration_ms,
            music_id=music_id,
            **kwargs
        )

    def log_processing_error(self, operation: str, error: str, music_id: str = None, **kwargs: Any) -> None:
        self.logger.error(
            "Workflow step failed",
            operation=operation,
            error=error,
            music_id=music_id,
            **kwargs
        )


class PerformanceLogger:
    """Logger for performance monitoring"""

    def __init__(self):
        self.logger = structlog.get_logger("ai_music.performance")

    def log_database_query(
        self,
        query: str,
        duration_ms: float,
        rows_affected: int = None
    ) -> None:
        """Log database query performance"""
        self.logger.debug(
            "Database query",
            query=query[:100] + "..." if len(query) > 100 else query,
            duration_ms=duration_ms,
            rows_affected=rows_affected
        )

    def log_subprocess_completed(
        self,
        command: str,
        duration_ms: float,
        returncode: int
    ) -> None:
        """Log an external process run"""
        self.logger.debug(
            "Subprocess completed",
            command=command,
            duration_ms=duration_ms,
            returncode=returncode
        )


# Create global logger instances
provider_logger = ProviderLogger()
storage_logger = StorageLogger()
performance_logger = PerformanceLogger()
workflow_logger = WorkflowLogger()

__all__ = [
    "setup_logging",
    "ProviderLogger",
    "StorageLogger",
    "PerformanceLogger",
    "WorkflowLogger",
    "provider_logger",
    "storage_logger",
    "performance_logger",
    "workflow_logger"
]
