"""
Test entity collection image extraction migration
"""

import json

import pytest
from sqlalchemy import text

from storekv.domain.migration import MigrationReason
from storekv.repositories.sqlalchemy import statements
from storekv.services.image_rules import (
    ENTITY_COLLECTIONS,
    PLACEHOLDER,
    EntityCollection,
    extract_entity_images,
)
from storekv.services.migration import run_entity_migration

IMG_A = "data:image/png;base64," + "A" * 1024
IMG_B = "data:image/png;base64," + "B" * 1024

PRODUCTS = next(c for c in ENTITY_COLLECTIONS if c.key == "cm_products")
TASKS = next(c for c in ENTITY_COLLECTIONS if c.key == "cm_tasks")


def _dump(value) -> str:
    return json.dumps(value, separators=(",", ":"))


def _by_key(results):
    return {result.key: result for result in results}


@pytest.mark.asyncio
async def test_products_images_array(async_engine, seed, read_direct):
    await seed(async_engine, cm_products=_dump([{"id": "p1", "images": [IMG_A, "plainUrl.jpg"]}]))

    results = _by_key(await run_entity_migration(async_engine, collections=[PRODUCTS]))

    assert results["cm_products"].moved == 1
    assert results["cm_products"].skipped is False
    assert json.loads(await read_direct(async_engine, "cm_products_images")) == {"p1_0": IMG_A}
    assert json.loads(await read_direct(async_engine, "cm_products")) == [
        {"id": "p1", "images": [f"{PLACEHOLDER}:p1_0", "plainUrl.jpg"]}
    ]


@pytest.mark.asyncio
async def test_single_image_collections(async_engine, seed, read_direct):
    await seed(
        async_engine,
        cm_tasks=_dump(
            [
                {"id": 1, "image": IMG_A, "title": "Follow"},
                {"id": 2, "image": "https://cdn.example.com/t.png"},
                {"title": "no id", "image": IMG_B},
            ]
        ),
        cm_auctions=_dump([{"id": "a1", "image": IMG_B}]),
    )

    results = _by_key(await run_entity_migration(async_engine))

    assert results["cm_tasks"].moved == 1
    assert results["cm_auctions"].moved == 1
    assert results["cm_lotteries"].reason == MigrationReason.NO_DATA
    assert results["cm_products"].reason == MigrationReason.NO_DATA

    assert json.loads(await read_direct(async_engine, "cm_tasks_images")) == {"1": IMG_A}
    assert json.loads(await read_direct(async_engine, "cm_tasks")) == [
        {"id": 1, "image": PLACEHOLDER, "title": "Follow"},
        {"id": 2, "image": "https://cdn.example.com/t.png"},
        {"title": "no id", "image": IMG_B},
    ]
    assert await read_direct(async_engine, "cm_lotteries_images") is None


@pytest.mark.asyncio
async def test_legacy_product_image_field(async_engine, seed, read_direct):
    await seed(async_engine, cm_products=_dump([{"id": "p2", "image": IMG_B}]))

    await run_entity_migration(async_engine, collections=[PRODUCTS])

    assert json.loads(await read_direct(async_engine, "cm_products_images")) == {"p2_0": IMG_B}
    assert json.loads(await read_direct(async_engine, "cm_products")) == [
        {"id": "p2", "image": f"{PLACEHOLDER}:p2_0", "images": [f"{PLACEHOLDER}:p2_0"]}
    ]


@pytest.mark.asyncio
async def test_rerun_is_skipped(async_engine, seed, read_direct):
    await seed(async_engine, cm_tasks=_dump([{"id": 1, "image": IMG_A}]))
    await run_entity_migration(async_engine, collections=[TASKS])
    before = await read_direct(async_engine, "cm_tasks")

    results = _by_key(await run_entity_migration(async_engine, collections=[TASKS]))

    assert results["cm_tasks"].skipped is True
    assert results["cm_tasks"].reason == MigrationReason.ALREADY_DONE
    assert await read_direct(async_engine, "cm_tasks") == before


@pytest.mark.asyncio
async def test_collection_without_payloads_writes_empty_companion(async_engine, seed, read_direct):
    await seed(async_engine, cm_tasks=_dump([{"id": 1, "image": "https://cdn.example.com/t.png"}]))

    results = _by_key(await run_entity_migration(async_engine, collections=[TASKS]))

    assert results["cm_tasks"].moved == 0
    assert await read_direct(async_engine, "cm_tasks_images") == "{}"


@pytest.mark.asyncio
async def test_non_array_and_unparseable_sources(async_engine, seed, read_direct):
    await seed(async_engine, cm_tasks=_dump({"id": 1}), cm_auctions="[ broken")

    results = _by_key(await run_entity_migration(async_engine))

    assert results["cm_tasks"].reason == MigrationReason.NOT_ARRAY
    assert results["cm_auctions"].reason == MigrationReason.PARSE_ERROR
    assert await read_direct(async_engine, "cm_tasks") == _dump({"id": 1})
    assert await read_direct(async_engine, "cm_tasks_images") is None


@pytest.mark.asyncio
async def test_failure_in_one_collection_does_not_stop_the_others(
    async_engine, seed, read_direct, monkeypatch
):
    await seed(
        async_engine,
        cm_tasks=_dump([{"id": 1, "image": IMG_A}]),
        cm_auctions=_dump([{"id": "a1", "image": IMG_B}]),
    )
    original_update = statements.update_value

    def failing_for_tasks(key, value):
        if key == "cm_tasks":
            return text("UPDATE kv_missing SET value = 'x'")
        return original_update(key, value)

    monkeypatch.setattr("storekv.services.migration.update_value", failing_for_tasks)

    results = _by_key(await run_entity_migration(async_engine))

    assert results["cm_tasks"].error
    assert await read_direct(async_engine, "cm_tasks_images") is None
    assert json.loads(await read_direct(async_engine, "cm_tasks")) == [{"id": 1, "image": IMG_A}]
    assert results["cm_auctions"].moved == 1
    assert results["cm_auctions"].error is None


def test_extraction_conserves_every_payload():
    collection = EntityCollection("cm_products", "cm_products_images", "images", multiple=True)
    records = [
        {"id": "p1", "images": [IMG_A, IMG_B, "https://cdn.example.com/p.png"]},
        {"id": "p2", "images": []},
        {"id": "p3", "image": IMG_A},
        "not a record",
    ]

    rewritten, images, moved = extract_entity_images(records, collection)

    assert len(rewritten) == len(records)
    assert rewritten[3] == "not a record"
    assert rewritten[1] == {"id": "p2", "images": []}
    assert sorted(images) == ["p1_0", "p1_1", "p3_0"]
    assert moved == 3
    for image_key, payload in images.items():
        record_id, idx = image_key.rsplit("_", 1)
        source = next(r for r in records if isinstance(r, dict) and r["id"] == record_id)
        original = source.get("images") or [source["image"]]
        assert original[int(idx)] == payload
    # Input records are not mutated
    assert records[0]["images"][0] == IMG_A


@pytest.mark.asyncio
async def test_repeated_ids_never_overwrite_a_stored_payload(async_engine, seed, read_direct):
    await seed(
        async_engine,
        cm_tasks=_dump([{"id": 1, "image": IMG_A}, {"id": 1, "image": IMG_B}]),
    )

    results = _by_key(await run_entity_migration(async_engine, collections=[TASKS]))

    assert results["cm_tasks"].moved == 1
    assert json.loads(await read_direct(async_engine, "cm_tasks_images")) == {"1": IMG_A}
    assert json.loads(await read_direct(async_engine, "cm_tasks")) == [
        {"id": 1, "image": PLACEHOLDER},
        {"id": 1, "image": IMG_B},
    ]


@pytest.mark.asyncio
async def test_forced_run_keeps_previously_stored_keys(async_engine, seed, read_direct):
    await seed(
        async_engine,
        cm_tasks_images=_dump({"1": IMG_A}),
        cm_tasks=_dump([{"id": 1, "image": IMG_B}, {"id": 2, "image": IMG_B}]),
    )

    results = _by_key(await run_entity_migration(async_engine, force=True, collections=[TASKS]))

    assert results["cm_tasks"].moved == 1
    assert json.loads(await read_direct(async_engine, "cm_tasks_images")) == {"1": IMG_A, "2": IMG_B}
    assert json.loads(await read_direct(async_engine, "cm_tasks")) == [
        {"id": 1, "image": IMG_B},
        {"id": 2, "image": PLACEHOLDER},
    ]


def test_moved_counts_each_extracted_entry():
    records = [
        {"id": "p1", "images": [IMG_A, IMG_B]},
        {"id": "p1", "images": [IMG_B]},
        {"id": "p2", "images": [IMG_A]},
    ]

    rewritten, images, moved = extract_entity_images(records, PRODUCTS)

    assert moved == 3
    assert images == {"p1_0": IMG_A, "p1_1": IMG_B, "p2_0": IMG_A}
    assert rewritten[1] == {"id": "p1", "images": [IMG_B]}
