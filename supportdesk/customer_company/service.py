"""
Customer company records.

The table name, key column and mapped columns all come from
``settings.customer_company``; attribute names (``CustomerID``,
``CustomerCompanyName``, ...) are what callers pass in and get back.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Mapping

from sqlalchemy import Column, DateTime, Integer, MetaData, String, Table, func, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from supportdesk.core.config import CustomerCompanyMapEntry, CustomerCompanySettings, settings

logger = logging.getLogger(__name__)

MAX_LIST_ROWS = 50000
MAX_SEARCH_PARTS = 6


class CustomerCompanyService:
    def __init__(self, config: CustomerCompanySettings) -> None:
        self.config = config
        self.metadata = MetaData()
        self.table = self._build_table()

        for name in [config.key, config.valid_column, *config.list_fields, *config.search_fields]:
            if name not in self.table.c:
                raise ValueError(f"customer company column {name} is not mapped")

    def _build_table(self) -> Table:
        cfg = self.config
        columns = []
        for entry in cfg.map:
            col_type = Integer if entry.type == "int" else String(200)
            columns.append(
                Column(
                    entry.column,
                    col_type,
                    primary_key=entry.column == cfg.key,
                    nullable=not entry.required,
                )
            )
        if cfg.key not in {e.column for e in cfg.map}:
            columns.append(Column(cfg.key, String(150), primary_key=True))

        if not cfg.foreign_db:
            columns += [
                Column("create_time", DateTime(timezone=True), nullable=False),
                Column("create_by", Integer, nullable=False),
                Column("change_time", DateTime(timezone=True), nullable=False),
                Column("change_by", Integer, nullable=False),
            ]
        return Table(cfg.table, self.metadata, *columns)

    @property
    def _key(self):
        return self.table.c[self.config.key]

    @staticmethod
    def _value(entry: CustomerCompanyMapEntry, data: Mapping[str, Any]) -> Any:
        value = data.get(entry.attribute)
        if entry.type == "int":
            return None if value in (None, "") else int(value)
        return value

    def _values(self, data: Mapping[str, Any]) -> Dict[str, Any]:
        return {entry.column: self._value(entry, data) for entry in self.config.map}

    # -----------------------
    # CRUD
    # -----------------------

    async def add(self, session: AsyncSession, *, data: Mapping[str, Any], user_id: int) -> str | None:
        customer_id = data.get("CustomerID")
        for name, value in (("CustomerID", customer_id), ("UserID", user_id)):
            if not value:
                logger.error("Need %s!", name)
                return None

        try:
            values = self._values(data)
        except (TypeError, ValueError) as e:
            logger.error("CustomerCompany: invalid data for '%s': %s", customer_id, e)
            return None

        if not self.config.foreign_db:
            now = datetime.now(timezone.utc)
            values.update(create_time=now, create_by=user_id, change_time=now, change_by=user_id)

        try:
            await session.execute(self.table.insert().values(**values))
            await session.commit()
        except SQLAlchemyError as e:
            await session.rollback()
            logger.error("CustomerCompany: could not add '%s': %s", customer_id, e)
            return None

        logger.info(
            "CustomerCompany: '%s/%s' created successfully (%s)!",
            data.get("CustomerCompanyName"),
            customer_id,
            user_id,
        )
        return customer_id

    async def get(self, session: AsyncSession, *, customer_id: str) -> Dict[str, Any] | None:
        if not customer_id:
            logger.error("Need CustomerID!")
            return None

        res = await session.execute(
            select(self.table).where(func.lower(self._key) == func.lower(customer_id))
        )
        row = res.mappings().first()
        if row is None:
            return {}

        data = {entry.attribute: row[entry.column] for entry in self.config.map}
        if not self.config.foreign_db:
            data["ChangeTime"] = row["change_time"]
            data["CreateTime"] = row["create_time"]
        return data

    async def update(self, session: AsyncSession, *, data: Mapping[str, Any], user_id: int) -> bool | None:
        for entry in self.config.map:
            if entry.required and data.get(entry.attribute) in (None, ""):
                logger.error("Need %s!", entry.attribute)
                return None
        if not user_id:
            logger.error("Need UserID!")
            return None

        # the key itself may change; CustomerCompanyID carries the old one
        old_id = data.get("CustomerCompanyID") or data.get("CustomerID")

        try:
            values = self._values(data)
        except (TypeError, ValueError) as e:
            logger.error("CustomerCompany: invalid data for '%s': %s", old_id, e)
            return None

        if not self.config.foreign_db:
            values.update(change_time=datetime.now(timezone.utc), change_by=user_id)

        try:
            res = await session.execute(
                update(self.table).where(func.lower(self._key) == func.lower(old_id)).values(**values)
            )
            await session.commit()
        except SQLAlchemyError as e:
            await session.rollback()
            logger.error("CustomerCompany: could not update '%s': %s", old_id, e)
            return None

        if res.rowcount == 0:
            logger.error("CustomerCompany: no such customer company '%s'!", old_id)
            return None

        logger.info(
            "CustomerCompany: '%s/%s' updated successfully (%s)!",
            data.get("CustomerCompanyName"),
            data.get("CustomerID"),
            user_id,
        )
        return True

    def _search_pattern(self, part: str) -> str:
        pattern = f"{self.config.search_prefix}{part}{self.config.search_suffix}"
        return pattern.replace("*", "%").replace("%%", "%")

    async def list(
        self,
        session: AsyncSession,
        *,
        search: str | None = None,
        valid: bool = True,
        limit: int | None = None,
    ) -> Dict[str, str]:
        """Map of customer id to a display string built from ``list_fields``."""
        cfg = self.config
        list_columns = [self.table.c[name] for name in cfg.list_fields]
        stmt = select(self._key, *list_columns)

        if valid:
            stmt = stmt.where(self.table.c[cfg.valid_column].in_(cfg.valid_ids))

        if search:
            search_columns = [self.table.c[name] for name in cfg.search_fields] or [self._key]
            for part in search.split("+", MAX_SEARCH_PARTS - 1):
                pattern = self._search_pattern(part)
                stmt = stmt.where(
                    or_(*[func.lower(col).like(func.lower(pattern)) for col in search_columns])
                )

        stmt = stmt.order_by(self._key.asc()).limit(limit or cfg.search_list_limit or MAX_LIST_ROWS)

        res = await session.execute(stmt)
        return {
            row[0]: " ".join(str(v) for v in row[1:] if v not in (None, ""))
            for row in res.all()
        }


customer_company_service = CustomerCompanyService(settings.customer_company)
