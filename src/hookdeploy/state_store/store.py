"""AppConfigStore - persisted application configs."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any

from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from hookdeploy.config import ApplicationConfig
from hookdeploy.state_store.database import Database
from hookdeploy.state_store.exceptions import AppConfigNotFoundError, StateStoreError
from hookdeploy.state_store.models import AppConfigRecord

logger = logging.getLogger(__name__)


class AppConfigStore:
    """Stores application configs as JSON documents in SQLite.

    Queries are mappings of field name to value. Only ``name`` is indexed;
    other keys are matched against the stored document.
    """

    def __init__(self, db_path: str = "hookdeploy.db") -> None:
        """Open the store, creating the database and tables if needed.

        Args:
            db_path: Path to the SQLite file, or ":memory:".
        """
        self._db = Database(db_path)
        self._db.create_tables()

    def close(self) -> None:
        self._db.close()

    def find(self, query: Mapping[str, Any] | None = None) -> list[ApplicationConfig]:
        """Configs matching ``query``, in insertion order.

        Raises:
            StateStoreError: If a stored document no longer validates.
        """
        query = dict(query or {})
        stmt = select(AppConfigRecord).order_by(AppConfigRecord.id)
        if "name" in query:
            stmt = stmt.where(AppConfigRecord.name == query.pop("name"))

        with self._db.get_session() as session:
            records = session.execute(stmt).scalars().all()

        found = []
        for record in records:
            if any(record.config.get(key) != value for key, value in query.items()):
                continue
            found.append(self._to_config(record))
        return found

    def get(self, name: str) -> ApplicationConfig:
        """Config stored under ``name``.

        Raises:
            AppConfigNotFoundError: If there is none.
        """
        configs = self.find({"name": name})
        if not configs:
            raise AppConfigNotFoundError(f"App config '{name}' not found")
        return configs[0]

    def update(
        self,
        query: Mapping[str, Any],
        config: ApplicationConfig,
        upsert: bool = False,
    ) -> None:
        """Replace matching configs wholesale with ``config``.

        Args:
            query: Records to replace; must name the app when upserting.
            config: New config document.
            upsert: Insert ``config`` when nothing matches.

        Raises:
            AppConfigNotFoundError: If nothing matches and ``upsert`` is False.
            StateStoreError: If the write fails.
        """
        names = [app.name for app in self.find(query)]
        document = config.model_dump(mode="json")

        with self._db.get_session() as session:
            try:
                if names:
                    records = session.execute(
                        select(AppConfigRecord).where(AppConfigRecord.name.in_(names))
                    ).scalars()
                    for record in records:
                        record.name = config.name
                        record.config = document
                elif upsert:
                    session.add(AppConfigRecord(name=config.name, config=document))
                else:
                    raise AppConfigNotFoundError(f"No app config matches {dict(query)}")
                session.commit()
            except SQLAlchemyError as e:
                session.rollback()
                raise StateStoreError(f"Could not store app config '{config.name}': {e}") from e
        logger.debug("Stored app config %s", config.name)

    def delete(self, name: str) -> None:
        """Delete the config stored under ``name``.

        Raises:
            AppConfigNotFoundError: If there is none.
        """
        with self._db.get_session() as session:
            record = session.execute(
                select(AppConfigRecord).where(AppConfigRecord.name == name)
            ).scalar_one_or_none()
            if record is None:
                raise AppConfigNotFoundError(f"App config '{name}' not found")
            session.delete(record)
            session.commit()

    def seed(self, apps: Iterable[ApplicationConfig]) -> int:
        """Insert ``apps`` if the store is empty.

        Returns:
            Number of configs inserted.
        """
        if self.find():
            return 0
        count = 0
        for app in apps:
            self.update({"name": app.name}, app, upsert=True)
            count += 1
        if count:
            logger.info("Seeded %d app config(s) into the store", count)
        return count

    @staticmethod
    def _to_config(record: AppConfigRecord) -> ApplicationConfig:
        try:
            return ApplicationConfig.model_validate({**record.config, "name": record.name})
        except ValidationError as e:
            raise StateStoreError(f"Stored app config '{record.name}' is invalid: {e}") from e
