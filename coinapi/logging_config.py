import logging.config
import sys


def setup_logging(log_level: str = "INFO", sql_log_level: str = "WARNING"):
    """로깅 설정

    coinapi.services 로거는 원장/정산 이벤트를 한 줄 형식으로 남기고,
    sqlalchemy.engine 과 AWS SDK 로거는 별도 레벨로 소음을 줄입니다.
    """
    log_level = log_level.upper()
    sql_log_level = sql_log_level.upper()

    LOGGING_CONFIG = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "detailed": {
                "format": "%(asctime)s | %(levelname)-8s | %(name)s\n%(pathname)s:%(lineno)d\n%(message)s",
            },
            "simple": {
                "format": "%(asctime)s | %(levelname)-8s | %(name)-20s | %(message)s",
            },
            "service": {
                "format": "%(asctime)s | %(levelname)-8s | %(name)s:%(funcName)s | %(message)s",
            },
        },
        "handlers": {
            "console": {
                "formatter": "simple",
                "class": "logging.StreamHandler",
                "stream": sys.stdout,
            },
            "service_console": {
                "formatter": "service",
                "class": "logging.StreamHandler",
                "stream": sys.stdout,
            },
            "error_console": {
                "formatter": "detailed",
                "class": "logging.StreamHandler",
                "stream": sys.stderr,
                "level": "WARNING",
            },
        },
        "loggers": {
            "": {  # root logger
                "handlers": ["console", "error_console"],
                "level": log_level,
                "propagate": True,
            },
            "coinapi": {
                "handlers": ["console", "error_console"],
                "level": log_level,
                "propagate": False,
            },
            "coinapi.services": {
                "handlers": ["service_console", "error_console"],
                "level": log_level,
                "propagate": False,
            },
            "sqlalchemy.engine": {
                "handlers": ["console"],
                "level": sql_log_level,
                "propagate": False,
            },
            "mangum": {
                "handlers": ["console", "error_console"],
                "level": log_level,
                "propagate": False,
            },
            "botocore": {"level": "WARNING"},
            "boto3": {"level": "WARNING"},
        },
    }
    logging.config.dictConfig(LOGGING_CONFIG)
