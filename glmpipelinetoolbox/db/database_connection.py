"""
A context manager for accessing the Postgres database backing the artifact
cache, from inside library functions.
"""
from traceback import print_exception

try:
    from psycopg import connect
except ModuleNotFoundError as e:
    from glmpipelinetoolbox.standalone_utilities.module_load_error import SuggestExtrasException
    SuggestExtrasException(e, 'postgres')
from psycopg import connect  # pylint: disable=ungrouped-imports
from psycopg import Connection as PsycopgConnection
from psycopg import Cursor as PsycopgCursor
from psycopg import Error as PsycopgError
from psycopg import OperationalError

from glmpipelinetoolbox.db.credentials import DBCredentials
from glmpipelinetoolbox.db.credentials import get_credentials_from_environment
from glmpipelinetoolbox.db.credentials import retrieve_credentials_from_file
from glmpipelinetoolbox.standalone_utilities.log_formats import colorized_logger

logger = colorized_logger(__name__)


class ConnectionProvider:
    """Simple wrapper of a database connection."""
    connection: PsycopgConnection

    def __init__(self, connection: PsycopgConnection):
        self.connection = connection

    def get_connection(self) -> PsycopgConnection:
        return self.connection

    def is_connected(self):
        try:
            connection = self.connection
            return connection is not None
        except AttributeError:
            return False


class DBConnection(ConnectionProvider):
    """
    Provides a psycopg Postgres database connection. Takes care of connecting and disconnecting.
    """
    autocommit: bool

    def __init__(self,
        database_config_file: str | None = None,
        autocommit: bool=True,
    ):
        if database_config_file is not None:
            credentials = retrieve_credentials_from_file(database_config_file)
        else:
            credentials = get_credentials_from_environment()
        try:
            super().__init__(self.make_connection(credentials))
        except PsycopgError as exception:
            message = 'Failed to connect to database: %s, %s'
            logger.error(message, credentials.endpoint, credentials.database)
            raise exception
        self.autocommit = autocommit

    @staticmethod
    def make_connection(credentials: DBCredentials) -> PsycopgConnection:
        return connect(
            dbname=credentials.database,
            host=credentials.endpoint,
            user=credentials.user,
            password=credentials.password,
        )

    def __enter__(self):
        return self.get_connection()

    def wrap_up_connection(self):
        if self.is_connected():
            if self.autocommit:
                try:
                    self.get_connection().commit()
                except OperationalError as error:
                    logger.warning('Connection was possibly interrupted. Stack trace:')
                    print_exception(type(error), error, error.__traceback__)
            self.get_connection().close()

    def __exit__(self, exception_type, exception_value, traceback):
        self.wrap_up_connection()


class DBCursor(DBConnection):
    """Context manager for shortcutting right to provision of a cursor."""
    cursor: PsycopgCursor

    def get_cursor(self) -> PsycopgCursor:
        return self.cursor

    def set_cursor(self, cursor: PsycopgCursor) -> None:
        self.cursor = cursor

    def __enter__(self):
        self.set_cursor(self.get_connection().cursor())
        return self.get_cursor()

    def __exit__(self, exception_type, exception_value, traceback):
        if self.is_connected():
            self.get_cursor().close()
        self.wrap_up_connection()
