from __future__ import annotations

import argparse
import asyncio

from fieldcopilot.core.logging import configure_logging
from fieldcopilot.persistence.db import dispose_engine, session_scope
from fieldcopilot.services.search_index import reindex_jobs_for_tenant


async def _run_reindex(tenant_id: str) -> None:
    # Rebuild lexical search content for every job in the tenant.
    try:
        async with session_scope() as session:
            count = await reindex_jobs_for_tenant(session, tenant_id)
    finally:
        await dispose_engine()
    print(f"tenant_id={tenant_id}")
    print(f"jobs_reindexed={count}")


def main() -> None:
    parser = argparse.ArgumentParser(description="Rebuild the job search index for a tenant")
    parser.add_argument("--tenant", required=True)
    args = parser.parse_args()
    configure_logging()
    asyncio.run(_run_reindex(args.tenant))


if __name__ == "__main__":
    main()
