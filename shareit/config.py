import logging
import os

from dotenv import load_dotenv

load_dotenv()

DATABASE_URL: str = os.getenv("POSTGRES_URI", "")
SQL_ECHO = os.getenv("SQL_ECHO", "false").lower() == "true"
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

USER_ID_HEADER = os.getenv("USER_ID_HEADER", "X-Sharer-User-Id")


def setup_logging(level: str = LOG_LEVEL) -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
