"""
Table Discoverer

Enumerates the tables a project exposes through its REST interface:
- a table-metadata RPC function, when the project has one installed
- the OpenAPI document served at the REST root
- probing a fixed list of common table names as a last resort

Discovery fails softly: an unreachable project yields an empty list.
"""

import logging
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from mockly.core.scanner import ScanContext
from mockly.reporting.models import ColumnDescriptor, TableDescriptor
from mockly.scanners.accessibility import is_success, probe_tables

RESERVED_PREFIX = "_"


def parse_openapi_schema(schema: Dict[str, Any]) -> List[TableDescriptor]:
    """
    Extract tables from a PostgREST OpenAPI document.

    Each entry of ``definitions`` is a table (names starting with an
    underscore are internal and skipped); each of its properties becomes a
    column. Nullability is not reliably exposed here, so it defaults to True.
    """
    tables: List[TableDescriptor] = []
    definitions = schema.get("definitions") or {}
    if not isinstance(definitions, dict):
        return tables

    for table_name, table_schema in definitions.items():
        if table_name.startswith(RESERVED_PREFIX):
            continue

        properties = {}
        if isinstance(table_schema, dict):
            properties = table_schema.get("properties") or {}

        columns = [
            ColumnDescriptor(
                name=column_name,
                type=_column_type(column_def),
                is_nullable=True,
            )
            for column_name, column_def in properties.items()
        ]

        tables.append(
            TableDescriptor(
                name=table_name,
                schema_name="public",
                rls_enabled=False,
                columns=columns,
            )
        )

    return tables


def _column_type(column_def: Any) -> str:
    if isinstance(column_def, dict) and column_def.get("type"):
        return str(column_def["type"])
    return "unknown"


class TableDiscoverer:
    """Finds the tables of a project, first successful strategy wins."""

    name = "discovery"

    def __init__(self, context: ScanContext):
        self.context = context
        self.config = context.config
        self.logger = logging.getLogger(f"mockly.{self.name}")

    async def discover(self) -> List[TableDescriptor]:
        """
        Discover tables using the RPC function, then the OpenAPI schema,
        then the common-table probe.

        Returns:
            Discovered tables (possibly empty)
        """
        tables = await self._fetch_from_rpc()
        if tables is not None:
            self.logger.info(f"Discovered {len(tables)} tables via RPC")
            return tables

        tables = await self._fetch_from_schema()
        if tables is not None:
            self.logger.info(f"Discovered {len(tables)} tables via OpenAPI schema")
            return tables

        self.logger.warning("Table listing unavailable, probing common table names")
        tables = await self._probe_common_tables()
        self.logger.info(f"Found {len(tables)} accessible common tables")
        return tables

    async def _fetch_from_rpc(self) -> Optional[List[TableDescriptor]]:
        """Call the table-metadata RPC function. None means "try the next strategy"."""
        connection = self.context.connection
        url = f"{connection.rest_url}/rpc/{self.config.scanner.rpc_function}"

        try:
            async with self.context.get_session().get(
                url, headers=connection.headers, **self.context.request_options()
            ) as response:
                if not is_success(response.status):
                    self.logger.debug(f"RPC discovery returned HTTP {response.status}")
                    return None
                body = await response.json(content_type=None)
        except Exception as e:
            self.logger.debug(f"RPC discovery failed: {e}")
            return None

        if not isinstance(body, list):
            self.logger.debug("RPC discovery returned an unexpected body")
            return None

        try:
            return [TableDescriptor.model_validate(item) for item in body]
        except ValidationError as e:
            self.logger.debug(f"RPC discovery returned malformed tables: {e}")
            return None

    async def _fetch_from_schema(self) -> Optional[List[TableDescriptor]]:
        """Read the OpenAPI document served at the REST root."""
        connection = self.context.connection

        try:
            async with self.context.get_session().get(
                f"{connection.rest_url}/",
                headers=connection.headers,
                **self.context.request_options(),
            ) as response:
                if not is_success(response.status):
                    self.logger.warning(f"Schema endpoint returned HTTP {response.status}")
                    return None
                schema = await response.json(content_type=None)
        except Exception as e:
            self.logger.warning(f"Failed to fetch schema: {e}")
            return None

        if not isinstance(schema, dict):
            self.logger.warning("Schema endpoint returned an unexpected document")
            return None

        return parse_openapi_schema(schema)

    async def _probe_common_tables(self) -> List[TableDescriptor]:
        """Treat every common table name that answers with data as discovered."""
        names = list(self.config.scanner.common_tables)
        results = await probe_tables(self.context, names)

        return [
            TableDescriptor(name=name, schema_name="public", rls_enabled=False, columns=[])
            for name, result in zip(names, results)
            if result.accessible
        ]


async def discover_tables(context: ScanContext) -> List[TableDescriptor]:
    """Convenience wrapper around :class:`TableDiscoverer`."""
    return await TableDiscoverer(context).discover()
