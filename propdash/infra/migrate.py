from __future__ import annotations

from alembic import command
from alembic.config import Config

from propdash.infra.logging_config import configure_logging


def run_upgrade_head(config_path: str = "alembic.ini") -> None:
    config = Config(config_path)
    command.upgrade(config, "head")


if __name__ == "__main__":
    configure_logging()
    run_upgrade_head()
