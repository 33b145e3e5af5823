"""Artifact cache in a shared Postgres database."""
from glmpipelinetoolbox.db.artifact_cache import SQLArtifactCache
from glmpipelinetoolbox.db.database_connection import DBCursor


class PostgresArtifactCache(SQLArtifactCache):
    """Cache tables live in the database named by the credentials."""
    placeholder = '%s'
    database_config_file: str | None

    def __init__(self, database_config_file: str | None = None):
        super().__init__()
        self.database_config_file = database_config_file

    def _execute(self, statements: list[tuple[str, tuple]]) -> list[tuple]:
        rows: list[tuple] = []
        with DBCursor(database_config_file=self.database_config_file) as cursor:
            for statement, parameters in statements:
                cursor.execute(statement, parameters)
                rows = list(cursor.fetchall()) if cursor.description is not None else []
        return rows
