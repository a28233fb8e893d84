"""Open a connection with the configured settings and run the liveness probe.

Usage:
    bin/check-connection.py                       # config/sqlutil.yml
    bin/check-connection.py --config other.yml
    bin/check-connection.py --name data/app.db    # override the database name
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(REPO_ROOT))

from sqlalchemy.exc import SQLAlchemyError

from sqlutil.config import AppConfig, configure_logging
from sqlutil.db.connection import LIVENESS_QUERY, SQLContext
from sqlutil.errors import DatabaseConnectionError
from sqlutil.tasks.host import ThreadPoolHost


def main() -> int:
    parser = argparse.ArgumentParser(description="Check the configured database connection")
    parser.add_argument("--config", type=Path, default=None, help="YAML config file")
    parser.add_argument("--name", default=None, help="Override the database name")
    args = parser.parse_args()

    config = AppConfig.from_yaml(args.config)
    configure_logging(config)

    host = ThreadPoolHost(max_workers=config.worker_threads)
    context = SQLContext.from_config(config, host)
    if args.name:
        context.set_attribute("name", args.name)

    print(f"Engine:  {context.profile.kind.value}")
    print(f"Address: {context.connection_address()}")
    try:
        conn = context.get_connection()
        conn.exec_driver_sql(LIVENESS_QUERY).close()
    except (DatabaseConnectionError, SQLAlchemyError) as e:
        print(f"FAILED:  {e}")
        return 1
    finally:
        context.close()
        host.shutdown()

    print("OK")
    return 0


if __name__ == "__main__":
    sys.exit(main())
