# app/core/logging.py
import logging
import logging.config

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def setup_logging(level: str = "INFO") -> None:
    """
    进程级日志初始化（create_app 调用，可重复调用）：

    - storefront.* 业务日志 → stdout，级别取 LOG_LEVEL
    - sqlalchemy.engine 仅在 DEBUG 时打 SQL
    - 不关闭已有 logger（uvicorn / pytest 自带的保持原样）
    """
    lvl = (level or "INFO").upper()
    sql_level = "INFO" if lvl == "DEBUG" else "WARNING"

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {"plain": {"format": LOG_FORMAT}},
            "handlers": {
                "stdout": {
                    "class": "logging.StreamHandler",
                    "stream": "ext://sys.stdout",
                    "formatter": "plain",
                }
            },
            "loggers": {
                "storefront": {"level": lvl, "handlers": ["stdout"], "propagate": True},
                "sqlalchemy.engine": {"level": sql_level},
            },
        }
    )
