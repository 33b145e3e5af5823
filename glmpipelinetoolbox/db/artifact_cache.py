"""Key-value cache of small tables, keyed by subject, session, run, and table name.

The cache mirrors filesystem state for large cohorts. It is never authoritative:
callers compare against the filesystem and rewrite entries that disagree.
"""
import re
from abc import ABC
from abc import abstractmethod
from contextlib import closing
from io import StringIO
from sqlite3 import connect as sqlite_connect

from attrs import define
from pandas import DataFrame
from pandas import read_json

from glmpipelinetoolbox.standalone_utilities.timestamping import now
from glmpipelinetoolbox.standalone_utilities.log_formats import colorized_logger

logger = colorized_logger(__name__)

NO_RUN = -1


@define(frozen=True)
class CacheKey:
    subject_id: str
    session: str
    run_number: int | None
    table_name: str


def serialize_payload(payload: DataFrame) -> str:
    return payload.to_json(orient='split')


def deserialize_payload(text: str) -> DataFrame:
    return read_json(StringIO(text), orient='split', dtype=False, convert_dates=False)


class ArtifactCache(ABC):
    """Interface for the persistent artifact cache."""

    @abstractmethod
    def create_table(self, table_name: str, overwrite: bool = False) -> None:
        pass

    @abstractmethod
    def read(self, key: CacheKey) -> DataFrame | None:
        pass

    @abstractmethod
    def write(self, key: CacheKey, payload: DataFrame, delete_existing: bool = True) -> None:
        pass


class SQLArtifactCache(ArtifactCache):
    """Shared SQL for the cache backends. One physical table per logical table name."""
    placeholder: str = '?'
    known_tables: set[str]

    def __init__(self):
        self.known_tables = set()

    @abstractmethod
    def _execute(self, statements: list[tuple[str, tuple]]) -> list[tuple]:
        """Run the statements in one transaction, returning the rows of the last one."""

    @staticmethod
    def physical_table_name(table_name: str) -> str:
        sanitized = re.sub(r'[^A-Za-z0-9_]', '_', table_name).lower()
        return f'cache_{sanitized}'

    def _create_statement(self, table: str) -> str:
        return f'''
        CREATE TABLE IF NOT EXISTS {table} (
            subject_id TEXT NOT NULL,
            session TEXT NOT NULL,
            run_number INTEGER NOT NULL,
            payload TEXT NOT NULL,
            updated TEXT NOT NULL
        )'''

    def create_table(self, table_name: str, overwrite: bool = False) -> None:
        table = self.physical_table_name(table_name)
        statements = []
        if overwrite:
            logger.info('Overwriting cache table %s.', table)
            statements.append((f'DROP TABLE IF EXISTS {table}', ()))
        statements.append((self._create_statement(table), ()))
        self._execute(statements)
        self.known_tables.add(table)

    def _ensure_table(self, table_name: str) -> str:
        table = self.physical_table_name(table_name)
        if table not in self.known_tables:
            self.create_table(table_name)
        return table

    def _key_condition(self) -> str:
        p = self.placeholder
        return f'subject_id={p} AND session={p} AND run_number={p}'

    @staticmethod
    def _key_values(key: CacheKey) -> tuple:
        run_number = NO_RUN if key.run_number is None else int(key.run_number)
        return (key.subject_id, key.session, run_number)

    def read(self, key: CacheKey) -> DataFrame | None:
        table = self._ensure_table(key.table_name)
        query = f'''
        SELECT payload FROM {table}
        WHERE {self._key_condition()}
        ORDER BY updated DESC
        LIMIT 1'''
        rows = self._execute([(query, self._key_values(key))])
        if len(rows) == 0:
            return None
        return deserialize_payload(rows[0][0])

    def write(self, key: CacheKey, payload: DataFrame, delete_existing: bool = True) -> None:
        table = self._ensure_table(key.table_name)
        p = self.placeholder
        statements = []
        if delete_existing:
            statements.append((f'DELETE FROM {table} WHERE {self._key_condition()}', self._key_values(key)))
        insert = f'INSERT INTO {table} (subject_id, session, run_number, payload, updated) VALUES ({p}, {p}, {p}, {p}, {p})'
        values = self._key_values(key) + (serialize_payload(payload), now().isoformat())
        statements.append((insert, values))
        self._execute(statements)


class SQLiteArtifactCache(SQLArtifactCache):
    """Artifact cache in a local SQLite file."""
    database_file: str

    def __init__(self, database_file: str):
        super().__init__()
        self.database_file = database_file

    def _execute(self, statements: list[tuple[str, tuple]]) -> list[tuple]:
        rows: list[tuple] = []
        with closing(sqlite_connect(self.database_file)) as connection:
            with connection:
                cursor = connection.cursor()
                for statement, parameters in statements:
                    cursor.execute(statement, parameters)
                    rows = cursor.fetchall() if cursor.description is not None else []
        return rows
