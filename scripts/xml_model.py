#!/usr/bin/env python3
"""
Export the model to an XML file, or load one into an empty database.

Usage:
    python -m scripts.xml_model export model.xml
    python -m scripts.xml_model import model.xml
"""

import argparse
import sys

from activitymgr import ActivityMgrException, Database, ModelManager
from activitymgr.logging_config import get_logger, setup_logging

logger = get_logger("scripts.xml_model")


def main() -> int:
    parser = argparse.ArgumentParser(description="XML import / export of the ActivityMgr model")
    parser.add_argument("action", choices=["export", "import"])
    parser.add_argument("file", help="XML file to write or read")
    parser.add_argument("--database-url", default=None, help="Overrides ACTIVITYMGR_DATABASE_URL")
    args = parser.parse_args()

    setup_logging()
    database = Database(args.database_url)
    manager = ModelManager(database)
    try:
        if args.action == "export":
            with open(args.file, "wb") as out:
                manager.export_to_xml(out)
        else:
            if not manager.tables_exist():
                manager.create_tables()
            with open(args.file, "rb") as source:
                manager.import_from_xml(source)
    except ActivityMgrException as e:
        logger.error(f"{args.action} failed: {e.message}")
        return 1
    finally:
        database.dispose()

    logger.info(f"{args.action} of '{args.file}' done")
    return 0


if __name__ == "__main__":
    sys.exit(main())
