#!/usr/bin/env python3
"""Alembic bootstrap for databases created via Base.metadata.create_all().

When every table of the schema is present but alembic_version is missing,
stamp the baseline revision so later upgrades apply on top of it. A
partially created schema is reported and left alone.
"""

from __future__ import annotations

import os
import subprocess

from sqlalchemy import inspect

from app.database import Base, engine
from app import models  # noqa: F401  (registers tables on Base.metadata)


BASELINE_REVISION = os.getenv("ALEMBIC_BASELINE_REVISION", "001")


def main() -> int:
    inspector = inspect(engine)
    expected = sorted(Base.metadata.tables)
    present = [table for table in expected if inspector.has_table(table)]

    if inspector.has_table("alembic_version") or not present:
        print("Alembic bootstrap check: no baseline stamp required")
        return 0

    missing = sorted(set(expected) - set(present))
    if missing:
        print(
            "Schema exists without alembic_version but is incomplete; "
            f"missing tables: {', '.join(missing)}. Not stamping."
        )
        return 1

    print(f"Existing schema detected without alembic_version. Stamping baseline: {BASELINE_REVISION}")
    subprocess.run(["alembic", "stamp", BASELINE_REVISION], check=True)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
