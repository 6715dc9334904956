import asyncio
from unittest.mock import MagicMock, patch

import pytest
from pymongo.errors import DuplicateKeyError, OperationFailure, ServerSelectionTimeoutError

from proverbs.core.errors import AggregationFallbackUsed, InvalidArgument, StorageError
from proverbs.repositories import MongoRatingsRepository, aggregate_ratings


VOTES = [
    ("p1", "s1", 5), ("p1", "s2", 4), ("p1", "s3", 4), ("p1", "s4", 1),
    ("p2", "s1", 3), ("p2", "s5", 2),
    ("p3", "s2", 5),
]


async def seed(repository, votes=VOTES):
    for item_id, session_id, value in votes:
        await repository.upsert_rating(item_id, session_id, value)


@pytest.mark.asyncio
async def test_upsert_keeps_one_document_per_pair(mongo_repository, mongo_collection, clock):
    first_at = clock.now
    first = await mongo_repository.upsert_rating("p1", "s1", 4)
    clock.advance(seconds=30)
    last = await mongo_repository.upsert_rating("p1", "s1", 2)

    assert mongo_collection.count_documents({"item_id": "p1", "session_id": "s1"}) == 1
    assert last.id == first.id
    assert last.value == 2
    assert last.created_at == first_at
    assert last.updated_at == clock.now

@pytest.mark.asyncio
async def test_invalid_value_never_reaches_the_collection(mongo_repository, mongo_collection):
    with pytest.raises(InvalidArgument):
        await mongo_repository.upsert_rating("p1", "s1", 9)

    assert mongo_collection.count_documents({}) == 0

@pytest.mark.asyncio
async def test_server_and_manual_aggregation_agree(mongo_collection, clock):
    server = MongoRatingsRepository(mongo_collection, server_aggregate=True, clock=clock)
    manual = MongoRatingsRepository(mongo_collection, server_aggregate=False, clock=clock)
    await seed(server)

    ids = ["p1", "p2", "p3", "p4"]
    from_server = {s.item_id: s for s in await server.get_rating_stats(ids)}
    from_manual = {s.item_id: s for s in await manual.get_rating_stats(ids)}

    assert set(from_server) == set(from_manual) == {"p1", "p2", "p3"}
    for item_id, expected_average, expected_votes in [("p1", 14 / 4, 4), ("p2", 2.5, 2), ("p3", 5.0, 1)]:
        assert from_server[item_id].total_votes == from_manual[item_id].total_votes == expected_votes
        assert from_server[item_id].average_rating == pytest.approx(expected_average, rel=1e-9)
        assert from_manual[item_id].average_rating == pytest.approx(expected_average, rel=1e-9)

@pytest.mark.asyncio
async def test_falls_back_when_server_aggregate_is_unavailable(mongo_repository, mongo_collection):
    await seed(mongo_repository)

    with patch.object(mongo_collection, "aggregate", side_effect=OperationFailure("no such command")):
        with pytest.warns(AggregationFallbackUsed):
            stats = await mongo_repository.get_rating_stats(["p1", "p2"])

    by_item = {s.item_id: s for s in stats}
    assert by_item["p1"].average_rating == pytest.approx(3.5, rel=1e-9)
    assert by_item["p1"].total_votes == 4
    assert by_item["p2"].average_rating == pytest.approx(2.5, rel=1e-9)

@pytest.mark.asyncio
async def test_connection_failure_is_a_storage_error():
    collection = MagicMock()
    collection.aggregate.side_effect = ServerSelectionTimeoutError("no servers")
    collection.find_one_and_update.side_effect = ServerSelectionTimeoutError("no servers")
    repository = MongoRatingsRepository(collection)

    with pytest.raises(StorageError):
        await repository.get_rating_stats(["p1"])
    with pytest.raises(StorageError):
        await repository.upsert_rating("p1", "s1", 3)

@pytest.mark.asyncio
async def test_empty_stats_request_skips_the_collection():
    collection = MagicMock()
    repository = MongoRatingsRepository(collection)

    assert await repository.get_rating_stats(set()) == []
    assert collection.method_calls == []

@pytest.mark.asyncio
async def test_user_ratings_and_single_lookup(mongo_repository):
    await seed(mongo_repository)

    mine = await mongo_repository.get_user_ratings("s1")
    assert sorted((r.item_id, r.value) for r in mine) == [("p1", 5), ("p2", 3)]

    assert (await mongo_repository.get_rating("p3", "s2")).value == 5
    assert await mongo_repository.get_rating("p3", "s1") is None

def test_aggregate_ratings_matches_arithmetic_mean():
    rows = [("a", 1), ("b", 5), ("a", 2), ("a", 2)]

    stats = {s.item_id: s for s in aggregate_ratings(rows)}

    assert stats["a"].average_rating == pytest.approx(5 / 3, rel=1e-9)
    assert stats["a"].total_votes == 3
    assert stats["b"].average_rating == 5.0
    assert aggregate_ratings([]) == []

@pytest.mark.asyncio
async def test_concurrent_votes_for_one_pair_leave_one_document(mongo_repository, mongo_collection):
    values = [3, 5, 1, 4]

    results = await asyncio.gather(*(mongo_repository.upsert_rating("p1", "s1", v) for v in values))

    assert [r.value for r in results] == values
    assert len({r.id for r in results}) == 1
    assert mongo_collection.count_documents({}) == 1
    assert (await mongo_repository.get_rating("p1", "s1")).value == values[-1]

@pytest.mark.asyncio
async def test_lost_insert_race_is_retried_as_an_update(mongo_repository, mongo_collection, clock):
    real_find_one_and_update = mongo_collection.find_one_and_update
    calls = []

    def other_session_wins_first(*args, **kwargs):
        calls.append(args)
        if len(calls) == 1:
            mongo_collection.insert_one(
                {"item_id": "p1", "session_id": "s1", "value": 1, "created_at": clock.now, "updated_at": clock.now}
            )
            raise DuplicateKeyError("E11000 duplicate key error")
        return real_find_one_and_update(*args, **kwargs)

    with patch.object(mongo_collection, "find_one_and_update", side_effect=other_session_wins_first):
        rating = await mongo_repository.upsert_rating("p1", "s1", 4)

    assert len(calls) == 2
    assert rating.value == 4
    assert mongo_collection.count_documents({}) == 1
    assert mongo_collection.find_one({})["value"] == 4

@pytest.mark.asyncio
async def test_second_duplicate_key_error_is_a_storage_error():
    collection = MagicMock()
    collection.find_one_and_update.side_effect = DuplicateKeyError("E11000 duplicate key error")
    repository = MongoRatingsRepository(collection)

    with pytest.raises(StorageError):
        await repository.upsert_rating("p1", "s1", 3)
    assert collection.find_one_and_update.call_count == 2
