from __future__ import annotations

import logging

from sqlalchemy.engine import Engine

from authcore.infrastructure.db.engine import Base
from authcore.infrastructure.db.models import accounts, devices  # noqa: F401  (register tables)


logger = logging.getLogger(__name__)


def create_schema(engine: Engine) -> None:
    Base.metadata.create_all(engine)
    logger.info("db_schema: ensured tables=%s", ",".join(sorted(Base.metadata.tables)))
