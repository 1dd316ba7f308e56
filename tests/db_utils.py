from __future__ import annotations

from pathlib import Path

from alembic import command
from alembic.config import Config


def sqlite_url(directory: Path, name: str = "cashclose.db") -> str:
    return f"sqlite+pysqlite:///{directory / name}"


def migrate(database_url: str, revision: str = "head") -> None:
    config = Config("alembic.ini")
    config.attributes["configure_logger"] = False
    config.set_main_option("sqlalchemy.url", database_url)
    command.upgrade(config, revision)
