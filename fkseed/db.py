from __future__ import annotations

import logging

import psycopg2
from psycopg2 import sql
from psycopg2.extensions import connection as Psycopg2Connection

from .config import PostgresCreds
from .errors import ConnectionFailedError

logger = logging.getLogger(__name__)


def create_pg_connection(creds: PostgresCreds) -> Psycopg2Connection:
    """
    Create a PostgreSQL connection using psycopg2.

    The connection runs in autocommit mode: every INSERT is its own
    transaction, so one failed statement does not abort the ones after it.
    """
    try:
        conn = psycopg2.connect(creds.dsn())
    except psycopg2.OperationalError as e:
        raise ConnectionFailedError(f"Could not connect to {creds.host}:{creds.port}/{creds.dbname}: {e}") from e

    conn.autocommit = True

    if creds.schema:
        with conn.cursor() as cur:
            cur.execute(
                sql.SQL("SET search_path TO {}").format(
                    sql.Identifier(creds.schema)
                )
            )

    logger.info("Connected to %s:%s/%s", creds.host, creds.port, creds.dbname)
    return conn


def close_connection(conn) -> None:
    if conn is None or conn.closed:
        return
    try:
        conn.close()
    except psycopg2.Error as e:
        logger.warning("Error while disconnecting: %s", e)
