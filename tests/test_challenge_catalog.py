"""
Tests for the Redis-cached challenge catalog.
"""

from unittest.mock import MagicMock

import pytest

from fitquest.core.exceptions import NotFoundError
from fitquest.services.challenge_catalog import ChallengeCatalog


@pytest.fixture
def redis_client():
    client = MagicMock(name="redis")
    client.get.return_value = None
    return client


def test_miss_reads_store_and_caches(store, make_challenge, redis_client):
    challenge = make_challenge()
    catalog = ChallengeCatalog(store, redis_client, ttl_seconds=120)

    assert catalog.get("challenge-1") == challenge

    key, ttl, payload = redis_client.setex.call_args.args
    assert key == "challenge_catalog:challenge-1"
    assert ttl == 120
    assert '"Spring Steps"' in payload


def test_hit_skips_the_store(make_challenge, redis_client):
    challenge = make_challenge()
    redis_client.get.return_value = challenge.model_dump_json().encode()
    store = MagicMock(name="store")
    catalog = ChallengeCatalog(store, redis_client, ttl_seconds=120)

    assert catalog.find("challenge-1") == challenge
    store.get_challenge.assert_not_called()


def test_cache_errors_fall_back_to_store(store, make_challenge, redis_client):
    challenge = make_challenge()
    redis_client.get.side_effect = ConnectionError("redis gone")
    redis_client.setex.side_effect = ConnectionError("redis gone")
    catalog = ChallengeCatalog(store, redis_client, ttl_seconds=120)

    assert catalog.get("challenge-1") == challenge


def test_missing_challenge(store, redis_client):
    catalog = ChallengeCatalog(store, redis_client, ttl_seconds=120)

    assert catalog.find("missing") is None
    with pytest.raises(NotFoundError):
        catalog.get("missing")
    redis_client.setex.assert_not_called()


def test_invalidate_deletes_key(store, redis_client):
    ChallengeCatalog(store, redis_client, ttl_seconds=120).invalidate("challenge-1")

    redis_client.delete.assert_called_once_with("challenge_catalog:challenge-1")


def test_zero_ttl_disables_caching(store, make_challenge, redis_client):
    make_challenge()
    catalog = ChallengeCatalog(store, redis_client, ttl_seconds=0)

    catalog.get("challenge-1")

    redis_client.setex.assert_not_called()
