"""
Image Extraction Migration

Moves embedded base64 images out of large documents into companion
images documents, leaving a placeholder behind:

- appearance pass: cm_appearance -> cm_images
- entity pass: cm_tasks / cm_auctions / cm_lotteries / cm_products -> <key>_images

Both passes are idempotent. A non-empty companion document means the pass
already ran; `force` re-runs it and merges into what is already there.
Works directly on the engine, callers must flush the read cache afterwards.
"""

import json
import logging
from typing import Any, Iterable, Optional

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from storekv.common.utils import serialize_value, size_kb
from storekv.domain.kv_store import APPEARANCE_KEY, IMAGES_KEY
from storekv.domain.migration import (
    AppearanceMigrationResult,
    EntityMigrationResult,
    MigrationReason,
    MigrationStatus,
)
from storekv.repositories.sqlalchemy.statements import (
    insert_if_absent,
    read_raw,
    update_value,
    upsert,
)
from storekv.services.image_rules import (
    ENTITY_COLLECTIONS,
    EntityCollection,
    embedded_fields,
    extract_appearance_images,
    extract_entity_images,
)

logger = logging.getLogger(__name__)


def _sessions(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


def _parse_images(raw: Optional[str]) -> dict[str, Any]:
    """Existing images document, unreadable content counts as empty"""
    if raw is None:
        return {}
    try:
        parsed = json.loads(raw)
    except ValueError:
        return {}
    return parsed if isinstance(parsed, dict) else {}


async def run_appearance_migration(
    engine: AsyncEngine, force: bool = False
) -> AppearanceMigrationResult:
    """
    Extract embedded images from the appearance document.

    Args:
        engine: Engine of the relational backend
        force: Re-run even if the images document is already populated

    Returns:
        AppearanceMigrationResult

    Raises:
        Exception: Any failure while persisting; the transaction is rolled back first
    """
    sessions = _sessions(engine)
    async with sessions() as session:
        images_raw = await read_raw(session, IMAGES_KEY)
        appearance_raw = await read_raw(session, APPEARANCE_KEY)

    existing_images = _parse_images(images_raw)
    if images_raw is not None and not force:
        if existing_images:
            logger.info(f"{IMAGES_KEY} already exists and is non-empty, skipping")
            return AppearanceMigrationResult(skipped=True, reason=MigrationReason.ALREADY_DONE)
        logger.info(f"{IMAGES_KEY} exists but is empty, re-running migration")

    if appearance_raw is None:
        logger.info(f"No {APPEARANCE_KEY} found, creating empty {IMAGES_KEY} stub")
        async with sessions.begin() as session:
            await session.execute(insert_if_absent(session, IMAGES_KEY, "{}"))
        return AppearanceMigrationResult(skipped=True, reason=MigrationReason.NO_SOURCE)

    try:
        appearance = json.loads(appearance_raw)
    except ValueError:
        logger.warning(f"{APPEARANCE_KEY} is not valid JSON, skipping")
        return AppearanceMigrationResult(skipped=True, reason=MigrationReason.PARSE_ERROR)
    if not isinstance(appearance, dict):
        logger.warning(f"{APPEARANCE_KEY} is not an object, skipping")
        return AppearanceMigrationResult(skipped=True, reason=MigrationReason.PARSE_ERROR)

    rewritten, images, moved = extract_appearance_images(appearance)

    if not moved:
        logger.info(f"No base64 images found in {APPEARANCE_KEY}")
        # Marks the migration as done for the next run
        async with sessions.begin() as session:
            await session.execute(upsert(session, IMAGES_KEY, serialize_value(existing_images)))
        return AppearanceMigrationResult(
            skipped=False,
            moved=[],
            saved_kb=0,
            reason=MigrationReason.NO_IMAGES_FOUND,
        )

    for label, key in zip(moved, images):
        logger.info(f"Extracting {label}: {size_kb(len(images[key]))}KB")
    saved_kb = size_kb(sum(len(value) for value in images.values() if isinstance(value, str)))

    try:
        async with sessions.begin() as session:
            await session.execute(
                upsert(session, IMAGES_KEY, serialize_value({**existing_images, **images}))
            )
            await session.execute(update_value(APPEARANCE_KEY, serialize_value(rewritten)))
    except Exception as e:
        logger.error(f"Appearance migration transaction failed: {e}")
        raise

    logger.info(f"Moved {len(moved)} images ({saved_kb}KB) to {IMAGES_KEY}")
    return AppearanceMigrationResult(skipped=False, moved=moved, saved_kb=saved_kb)


async def _migrate_collection(
    sessions: async_sessionmaker[AsyncSession],
    collection: EntityCollection,
    force: bool,
) -> EntityMigrationResult:
    async with sessions() as session:
        images_raw = await read_raw(session, collection.images_key)
        source_raw = await read_raw(session, collection.key)

    existing_images = _parse_images(images_raw)
    if images_raw is not None and not force and existing_images:
        return EntityMigrationResult(
            key=collection.key, skipped=True, reason=MigrationReason.ALREADY_DONE
        )

    if source_raw is None:
        return EntityMigrationResult(key=collection.key, skipped=True, reason=MigrationReason.NO_DATA)
    try:
        records = json.loads(source_raw)
    except ValueError:
        return EntityMigrationResult(
            key=collection.key, skipped=True, reason=MigrationReason.PARSE_ERROR
        )
    if not isinstance(records, list):
        return EntityMigrationResult(key=collection.key, skipped=True, reason=MigrationReason.NOT_ARRAY)

    rewritten, images, moved = extract_entity_images(records, collection, reserved=existing_images)

    if not images:
        async with sessions.begin() as session:
            await session.execute(
                upsert(session, collection.images_key, serialize_value(existing_images))
            )
        return EntityMigrationResult(key=collection.key, skipped=False, moved=0, saved_kb=0)

    saved_kb = size_kb(sum(len(value) for value in images.values()))
    async with sessions.begin() as session:
        await session.execute(
            upsert(
                session,
                collection.images_key,
                serialize_value({**existing_images, **images}),
            )
        )
        await session.execute(update_value(collection.key, serialize_value(rewritten)))

    logger.info(f"Moved {moved} images ({saved_kb}KB) from {collection.key}")
    return EntityMigrationResult(
        key=collection.key, skipped=False, moved=moved, saved_kb=saved_kb
    )


async def run_entity_migration(
    engine: AsyncEngine,
    force: bool = False,
    collections: Iterable[EntityCollection] = ENTITY_COLLECTIONS,
) -> list[EntityMigrationResult]:
    """
    Extract embedded images from every entity collection.

    Collections are processed independently; a failure is reported in that
    collection's result and the remaining collections still run.
    """
    sessions = _sessions(engine)
    results = []
    for collection in collections:
        try:
            results.append(await _migrate_collection(sessions, collection, force))
        except Exception as e:
            logger.error(f"Entity migration failed for {collection.key}: {e}", exc_info=True)
            results.append(EntityMigrationResult(key=collection.key, error=str(e)))
    return results


async def get_migration_status(engine: AsyncEngine) -> MigrationStatus:
    """Inspect the appearance migration without changing anything"""
    async with _sessions(engine)() as session:
        appearance_raw = await read_raw(session, APPEARANCE_KEY)
        images_raw = await read_raw(session, IMAGES_KEY)

    images = _parse_images(images_raw)
    appearance: Any = {}
    if appearance_raw is not None:
        try:
            appearance = json.loads(appearance_raw)
        except ValueError:
            appearance = {}
    still_embedded = embedded_fields(appearance)

    if images_raw is None:
        status = "not_started"
    elif not images:
        status = "empty_stub"
    elif still_embedded:
        status = "partial"
    else:
        status = "done"

    return MigrationStatus(
        status=status,
        appearance_kb=size_kb(len(appearance_raw)) if appearance_raw is not None else None,
        images_kb=size_kb(len(images_raw)) if images_raw is not None else None,
        image_keys=list(images),
        embedded_fields=still_embedded,
        needs_migration=status != "done",
    )
