# Fichier: backend/scripts/seed_catalog.py
"""Seed the catalog with sample skills and resources.

Usage::

    python -m scripts.seed_catalog [--clear] [--trust-seed-urls]

Everything goes through :class:`CatalogAdminService` so verification and
skill statistics behave exactly as they do for admin API calls. Skills whose
name already exists and resources whose URL already exists are skipped.
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from sqlalchemy.orm import Session

sys.path.append(str(Path(__file__).resolve().parents[1]))
from app.db.base import Base  # noqa: F401 - loads every model
from app.db.session import SessionLocal, sync_engine
from app.models.catalog.bookmark_model import Bookmark
from app.models.catalog.resource_model import Resource
from app.models.catalog.skill_model import Skill, skill_resources
from app.schemas.catalog.resource_schema import ResourceCreate
from app.schemas.catalog.skill_schema import SkillCreate
from app.services.catalog_admin_service import CatalogAdminService
from app.services.catalog_errors import CatalogError
from app.services.url_verifier import UrlVerifier

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

SEED_FILE = Path(__file__).resolve().parent.parent / "app" / "data" / "catalog_seed.json"


def clear_catalog(db: Session) -> None:
    logger.info("Clearing existing catalog data...")
    db.query(Bookmark).delete()
    db.execute(skill_resources.delete())
    db.query(Resource).delete()
    db.query(Skill).delete()
    db.commit()


def seed_skills(service: CatalogAdminService, skills: list[dict]) -> dict[str, Skill]:
    by_name: dict[str, Skill] = {}
    for raw in skills:
        try:
            skill = service.create_skill(SkillCreate(**raw))
            logger.info("Created skill '%s'", skill.name)
        except CatalogError as exc:
            if exc.code != "skill_name_taken":
                raise
            skill = service.db.query(Skill).filter(Skill.name == raw["name"]).one()
            logger.info("Skill '%s' already present", skill.name)
        by_name[skill.name] = skill
    return by_name


def seed_resources(
    service: CatalogAdminService,
    resources: dict[str, list[dict]],
    skills: dict[str, Skill],
    *,
    trust_seed_urls: bool,
) -> tuple[int, int]:
    created = unverified = 0
    for skill_name, items in resources.items():
        skill = skills.get(skill_name)
        if skill is None:
            logger.warning("No skill named '%s'; skipping %s resources", skill_name, len(items))
            continue

        for raw in items:
            payload = ResourceCreate(skill_id=skill.id, verified=trust_seed_urls or None, **raw)
            try:
                mutation = service.create_resource(payload)
            except CatalogError as exc:
                if exc.code != "resource_url_taken":
                    raise
                logger.info("Resource '%s' already present", raw["url"])
                continue
            created += 1
            if not mutation.resource.verified:
                unverified += 1
    return created, unverified


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--clear", action="store_true", help="delete the existing catalog first")
    parser.add_argument(
        "--trust-seed-urls",
        action="store_true",
        help="mark seeded resources verified even when the probe fails",
    )
    args = parser.parse_args(argv)

    if not SEED_FILE.exists():
        logger.error("Seed file not found: %s", SEED_FILE)
        return 1
    data = json.loads(SEED_FILE.read_text(encoding="utf-8"))

    Base.metadata.create_all(bind=sync_engine)
    with SessionLocal() as db:
        if args.clear:
            clear_catalog(db)

        service = CatalogAdminService(db=db, verifier=UrlVerifier.from_settings())
        skills = seed_skills(service, data.get("skills", []))
        created, unverified = seed_resources(
            service,
            data.get("resources", {}),
            skills,
            trust_seed_urls=args.trust_seed_urls,
        )

    logger.info(
        "Seeding done: %s skills, %s new resources (%s unverified).",
        len(skills),
        created,
        unverified,
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
