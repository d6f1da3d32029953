# Fichier: backend/scripts/reverify_catalog.py
"""Re-verify every active resource of the catalog.

Usage::

    python -m scripts.reverify_catalog [--batch-size 50] [--only-unverified]

Runs the explicit verification path (``bulk_verify``), so resources whose URL
stopped answering are demoted and the affected skill statistics refreshed.
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[1]))
from app.db.base import Base  # noqa: F401 - loads every model
from app.db.session import SessionLocal
from app.models.catalog.resource_model import Resource
from app.services.catalog_admin_service import CatalogAdminService
from app.services.url_verifier import UrlVerifier

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


async def reverify(batch_size: int, only_unverified: bool) -> tuple[int, int]:
    verified = unverified = 0
    with SessionLocal() as db:
        query = db.query(Resource.id).filter(
            Resource.is_active.is_(True),
            Resource.deleted_at.is_(None),
        )
        if only_unverified:
            query = query.filter(Resource.verified.is_(False))
        resource_ids = [row.id for row in query.order_by(Resource.id.asc())]
        logger.info("Re-verifying %s resources", len(resource_ids))

        service = CatalogAdminService(db=db, verifier=UrlVerifier.from_settings())
        for start in range(0, len(resource_ids), batch_size):
            batch = resource_ids[start : start + batch_size]
            items = await service.bulk_verify(batch)
            for item in items:
                if item.decision.verified:
                    verified += 1
                else:
                    unverified += 1
                    logger.warning("Resource %s unverified: %s", item.resource_id, item.decision.error)
    return verified, unverified


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--batch-size", type=int, default=50)
    parser.add_argument("--only-unverified", action="store_true")
    args = parser.parse_args(argv)

    verified, unverified = asyncio.run(reverify(max(1, args.batch_size), args.only_unverified))
    logger.info("Re-verification done: %s verified, %s unverified.", verified, unverified)
    return 0


if __name__ == "__main__":
    sys.exit(main())
