"""
로깅 설정 (loguru)
"""
import sys

from loguru import logger

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
)


def setup_logging(level: str = "INFO", log_dir: str = "logs") -> None:
    """콘솔 + 일별 파일 로그"""
    logger.remove()
    logger.add(sys.stderr, format=CONSOLE_FORMAT, level=level)
    logger.add(
        f"{log_dir}/club_{{time:YYYY-MM-DD}}.log",
        rotation="1 day",
        retention="30 days",
        level="DEBUG"
    )
