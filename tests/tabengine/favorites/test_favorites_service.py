"""Behavioral tests for :class:`tabengine.services.favorites_service.FavoriteStore`."""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime

import pytest
from hypothesis import given, settings as hypothesis_settings, strategies as st

from tabengine.engine import TabAnalyticsEngine, open_engine
from tabengine.errors import InvalidArgumentError, NotFoundError, StorageFailure
from tabengine.schemas.favorites import FavoriteRef
from tabengine.settings import AppSettings
from tabengine.storage import FAVORITES_KEY, TAGS_KEY, InMemoryKeyValueStore
from tests.tabengine.support import BASE_TIME, FlakyStore, FrozenClock


def _usage_by_tag(engine: TabAnalyticsEngine) -> dict[str, int]:
    return {tag.canonical_name: tag.usage_count for tag in engine.tags.list()}


def _expected_usage(engine: TabAnalyticsEngine) -> dict[str, int]:
    return {
        tag.canonical_name: sum(1 for fav in engine.favorites.list() if fav.has_tag(tag.canonical_name))
        for tag in engine.tags.list()
    }


@pytest.mark.asyncio
async def test_upsert_deduplicates_tags_case_insensitively(engine: TabAnalyticsEngine) -> None:
    record = await engine.favorites.upsert({"url": "https://a.com", "title": "A"}, ["work", "Work"])

    assert record.tag_names == ("work",)
    tag = engine.tags.find("work")
    assert tag is not None
    assert tag.usage_count == 1


@pytest.mark.asyncio
async def test_track_visit_ignores_non_favorites(engine: TabAnalyticsEngine) -> None:
    result = await engine.favorites.track_visit("https://never-favorited.com")

    assert result is None
    assert engine.favorites.is_favorite("https://never-favorited.com") is False
    assert engine.favorites.list() == []


@pytest.mark.asyncio
async def test_upsert_same_url_keeps_identity_and_merges_tags(
    engine: TabAnalyticsEngine, clock: FrozenClock
) -> None:
    first = await engine.favorites.upsert(
        FavoriteRef(url="https://a.com", title="A"), ["Work"], priority=3
    )
    clock.advance(days=2)

    second = await engine.favorites.upsert(
        {"url": "HTTPS://A.COM:443/", "title": "A renamed"}, ["work", "news"], priority=5
    )

    assert len(engine.favorites.list()) == 1
    assert second.id == first.id
    assert second.created_at == BASE_TIME
    assert second.priority == 5
    assert second.title == "A renamed"
    assert second.tag_names == ("Work", "news")
    assert _usage_by_tag(engine) == {"Work": 1, "news": 1}


@pytest.mark.asyncio
async def test_upsert_without_priority_keeps_stored_priority(engine: TabAnalyticsEngine) -> None:
    created = await engine.favorites.upsert({"url": "https://a.com", "title": "A"})
    assert created.priority == 3
    await engine.favorites.set_priority(created.id, 5)

    again = await engine.favorites.upsert({"url": "https://a.com", "title": "A"}, ["work"])

    assert again.priority == 5
    with pytest.raises(InvalidArgumentError):
        await engine.favorites.upsert({"url": "https://a.com", "title": "A"}, priority=6)
    assert engine.favorites.get(created.id).priority == 5


@pytest.mark.asyncio
async def test_upsert_is_idempotent_for_identical_input(engine: TabAnalyticsEngine) -> None:
    ref = {"url": "https://a.com", "title": "A"}
    first = await engine.favorites.upsert(ref, ["work"])
    second = await engine.favorites.upsert(ref, ["work"])

    assert first == second
    assert engine.tags.find("work").usage_count == 1


@pytest.mark.asyncio
async def test_new_tags_reuse_registry_casing(engine: TabAnalyticsEngine) -> None:
    await engine.favorites.upsert({"url": "https://a.com", "title": "A"}, ["Work"])
    record = await engine.favorites.upsert({"url": "https://b.com", "title": "B"}, ["WORK"])

    assert record.tag_names == ("Work",)
    assert len(engine.tags.list()) == 1
    assert engine.tags.find("work").usage_count == 2


@pytest.mark.asyncio
async def test_upsert_rejects_invalid_input(engine: TabAnalyticsEngine) -> None:
    with pytest.raises(InvalidArgumentError):
        await engine.favorites.upsert({"url": "   ", "title": "Blank"})
    with pytest.raises(InvalidArgumentError):
        await engine.favorites.upsert({"url": "https://a.com", "title": "A"}, ["   "])
    with pytest.raises(InvalidArgumentError):
        await engine.favorites.upsert({"url": "https://a.com", "title": "A"}, priority=0)

    assert engine.favorites.list() == []
    assert engine.tags.list() == []


@pytest.mark.asyncio
async def test_remove_is_idempotent_and_keeps_zero_count_tags(engine: TabAnalyticsEngine) -> None:
    record = await engine.favorites.upsert({"url": "https://a.com", "title": "A"}, ["work"])

    assert await engine.favorites.remove(record.id) is True
    assert await engine.favorites.remove(record.id) is False
    assert engine.favorites.list() == []
    tag = engine.tags.find("work")
    assert tag is not None
    assert tag.usage_count == 0


@pytest.mark.asyncio
async def test_remove_by_url_matches_normalized_url(engine: TabAnalyticsEngine) -> None:
    await engine.favorites.upsert({"url": "https://a.com/page", "title": "A"})

    assert await engine.favorites.remove_by_url("  HTTPS://A.com/page ") is True
    assert await engine.favorites.remove_by_url("https://a.com/page") is False


@pytest.mark.asyncio
async def test_set_tags_replaces_tag_set(engine: TabAnalyticsEngine) -> None:
    record = await engine.favorites.upsert({"url": "https://a.com", "title": "A"}, ["work", "news"])

    updated = await engine.favorites.set_tags(record.id, ["Reading"])

    assert updated.tag_names == ("Reading",)
    assert _usage_by_tag(engine) == {"work": 0, "news": 0, "Reading": 1}


@pytest.mark.asyncio
async def test_set_tags_on_missing_favorite_creates_nothing(engine: TabAnalyticsEngine) -> None:
    with pytest.raises(NotFoundError):
        await engine.favorites.set_tags("missing", ["fresh"])

    assert engine.tags.find("fresh") is None


@pytest.mark.asyncio
async def test_set_priority_validates_before_lookup(engine: TabAnalyticsEngine) -> None:
    with pytest.raises(InvalidArgumentError):
        await engine.favorites.set_priority("missing", 9)
    with pytest.raises(InvalidArgumentError):
        await engine.favorites.set_priority("missing", True)
    with pytest.raises(NotFoundError):
        await engine.favorites.set_priority("missing", 4)

    record = await engine.favorites.upsert({"url": "https://a.com", "title": "A"})
    updated = await engine.favorites.set_priority(record.id, 5)
    assert updated.priority == 5
    assert engine.favorites.get(record.id).priority == 5


@pytest.mark.asyncio
async def test_track_visit_updates_usage(engine: TabAnalyticsEngine, clock: FrozenClock) -> None:
    await engine.favorites.upsert({"url": "https://a.com", "title": "A"})
    clock.advance(hours=3)

    await engine.favorites.track_visit("https://a.com/")
    visited = await engine.favorites.track_visit("https://A.com")

    assert visited.usage.visit_count == 2
    assert visited.usage.last_accessed_at == clock()


@pytest.mark.asyncio
async def test_toggle_flips_membership(engine: TabAnalyticsEngine) -> None:
    ref = FavoriteRef(url="https://a.com", title="A")

    assert await engine.favorites.toggle(ref, ["work"]) is True
    assert engine.favorites.is_favorite("https://a.com")
    assert await engine.favorites.toggle(ref) is False
    assert not engine.favorites.is_favorite("https://a.com")
    assert engine.tags.find("work").usage_count == 0


@pytest.mark.asyncio
async def test_filter_by_tags_matches_any_tag(engine: TabAnalyticsEngine) -> None:
    a = await engine.favorites.upsert({"url": "https://a.com", "title": "A"}, ["work"])
    b = await engine.favorites.upsert({"url": "https://b.com", "title": "B"}, ["news"])
    await engine.favorites.upsert({"url": "https://c.com", "title": "C"})

    assert engine.favorites.filter_by_tags(["WORK", "news"]) == [a, b]
    assert engine.favorites.filter_by_tags(["work"]) == [a]
    assert len(engine.favorites.filter_by_tags([])) == 3


@pytest.mark.asyncio
async def test_by_score_orders_by_priority_when_unvisited(engine: TabAnalyticsEngine) -> None:
    await engine.favorites.upsert({"url": "https://low.com", "title": "Low"}, priority=1)
    await engine.favorites.upsert({"url": "https://high.com", "title": "High"}, priority=5)
    await engine.favorites.upsert({"url": "https://mid.com", "title": "Mid"}, priority=3)

    assert [fav.title for fav in engine.favorites.by_score()] == ["High", "Mid", "Low"]


@pytest.mark.asyncio
async def test_persisted_shape_uses_wire_names(
    engine: TabAnalyticsEngine, memory_store: InMemoryKeyValueStore
) -> None:
    await engine.favorites.upsert({"url": "https://a.com", "title": "A"}, ["work"])
    await engine.favorites.track_visit("https://a.com")

    (payload,) = await memory_store.get(FAVORITES_KEY)
    assert payload["normalizedUrl"] == "https://a.com"
    assert payload["tagNames"] == ["work"]
    assert payload["usage"]["visitCount"] == 1
    assert payload["createdAt"].startswith("2024-06-01T12:00:00")
    assert isinstance(payload["usage"]["lastAccessedAt"], str)

    (tag_payload,) = await memory_store.get(TAGS_KEY)
    assert tag_payload["canonicalName"] == "work"
    assert tag_payload["usageCount"] == 1


@pytest.mark.asyncio
async def test_reload_hydrates_aware_datetimes(
    engine: TabAnalyticsEngine,
    memory_store: InMemoryKeyValueStore,
    settings: AppSettings,
    clock: FrozenClock,
) -> None:
    created = await engine.favorites.upsert({"url": "https://a.com", "title": "A"}, ["work"])
    await engine.favorites.track_visit("https://a.com")

    reloaded = await open_engine(memory_store, settings=settings, clock=clock)
    record = reloaded.favorites.get(created.id)

    assert record.created_at == BASE_TIME
    assert record.created_at.tzinfo is not None
    assert record.usage.last_accessed_at == clock()
    assert reloaded.tags.find("work").usage_count == 1


@pytest.mark.asyncio
async def test_storage_failure_leaves_favorites_unchanged(
    settings: AppSettings, clock: FrozenClock
) -> None:
    store = FlakyStore()
    engine = await open_engine(store, settings=settings, clock=clock)
    existing = await engine.favorites.upsert({"url": "https://a.com", "title": "A"})
    store.fail_set_keys.add(FAVORITES_KEY)

    with pytest.raises(StorageFailure) as excinfo:
        await engine.favorites.upsert({"url": "https://b.com", "title": "B"})
    with pytest.raises(StorageFailure):
        await engine.favorites.set_priority(existing.id, 5)

    assert isinstance(excinfo.value.__cause__, ConnectionError)
    assert excinfo.value.key == FAVORITES_KEY
    assert engine.favorites.list() == [existing]
    assert not engine.favorites.is_favorite("https://b.com")


@pytest.mark.asyncio
async def test_concurrent_upserts_keep_counts_exact(engine: TabAnalyticsEngine) -> None:
    await asyncio.gather(
        *(
            engine.favorites.upsert({"url": f"https://site{index}.com", "title": f"S{index}"}, ["shared"])
            for index in range(10)
        )
    )

    assert len(engine.favorites.list()) == 10
    assert engine.tags.find("shared").usage_count == 10
    assert len(engine.tags.list()) == 1


@pytest.mark.asyncio
async def test_legacy_payload_is_reconciled_on_load(settings: AppSettings, clock: FrozenClock) -> None:
    store = InMemoryKeyValueStore(
        {
            FAVORITES_KEY: [
                {
                    "id": "legacy-1",
                    "url": "https://old.com",
                    "title": "Old",
                    "tags": ["Reading", "reading"],
                    "favicon": "https://old.com/favicon.ico",
                    "dateAdded": "2024-01-01T00:00:00",
                    "priority": 2,
                },
                {"id": "", "title": "corrupt"},
            ],
            TAGS_KEY: [{"id": "t-1", "name": "Stale", "color": "#000000", "count": 7}],
        }
    )

    engine = await open_engine(store, settings=settings, clock=clock)

    (record,) = engine.favorites.list()
    assert record.normalized_url == "https://old.com"
    assert record.tag_names == ("Reading",)
    assert record.favicon_ref == "https://old.com/favicon.ico"
    assert record.created_at == datetime(2024, 1, 1, tzinfo=UTC)
    assert _usage_by_tag(engine) == {"Stale": 0, "Reading": 1}


@pytest.mark.asyncio
async def test_raw_stored_urls_are_normalized_and_merged(
    settings: AppSettings, clock: FrozenClock
) -> None:
    store = InMemoryKeyValueStore(
        {
            FAVORITES_KEY: [
                {
                    "id": "legacy-1",
                    "url": "https://Old.com/",
                    "title": "Old",
                    "tags": ["Reading"],
                    "dateAdded": "2024-02-01T00:00:00Z",
                    "priority": 2,
                    "usage": {"visitCount": 3},
                },
                {
                    "id": "legacy-2",
                    "url": "HTTPS://old.com:443",
                    "title": "Old again",
                    "tags": ["reading", "Archive"],
                    "dateAdded": "2024-01-01T00:00:00Z",
                    "priority": 4,
                    "usage": {"visitCount": 2, "lastAccess": "2024-05-01T00:00:00Z"},
                },
            ]
        }
    )

    engine = await open_engine(store, settings=settings, clock=clock)

    (record,) = engine.favorites.list()
    assert record.id == "legacy-1"
    assert record.normalized_url == "https://old.com"
    assert record.tag_names == ("Reading", "Archive")
    assert record.priority == 4
    assert record.usage.visit_count == 5
    assert record.usage.last_accessed_at == datetime(2024, 5, 1, tzinfo=UTC)
    assert record.created_at == datetime(2024, 1, 1, tzinfo=UTC)
    assert engine.favorites.is_favorite("https://Old.com/")

    await engine.favorites.upsert({"url": "https://Old.com/", "title": "Old"}, ["news"])

    assert len(engine.favorites.list()) == 1
    assert _usage_by_tag(engine) == {"Reading": 1, "Archive": 1, "news": 1}
    (payload,) = await store.get(FAVORITES_KEY)
    assert payload["normalizedUrl"] == "https://old.com"


@pytest.mark.asyncio
async def test_reads_before_load_raise(memory_store: InMemoryKeyValueStore, settings: AppSettings) -> None:
    engine = TabAnalyticsEngine(memory_store, settings=settings)

    with pytest.raises(RuntimeError):
        engine.favorites.list()
    with pytest.raises(RuntimeError):
        await engine.favorites.upsert({"url": "https://a.com", "title": "A"})


_URLS = ["https://a.com", "https://b.com", "https://c.com"]
_TAGS = ["alpha", "Alpha", "beta", "gamma"]

_operations = st.lists(
    st.one_of(
        st.tuples(
            st.just("upsert"),
            st.sampled_from(_URLS),
            st.lists(st.sampled_from(_TAGS), max_size=3),
        ),
        st.tuples(
            st.just("set_tags"),
            st.sampled_from(_URLS),
            st.lists(st.sampled_from(_TAGS), max_size=3),
        ),
        st.tuples(st.just("remove"), st.sampled_from(_URLS), st.just([])),
    ),
    max_size=12,
)


@hypothesis_settings(max_examples=40, deadline=None)
@given(operations=_operations)
def test_tag_counts_match_favorites_after_any_sequence(operations) -> None:
    async def scenario() -> None:
        engine = await open_engine(
            InMemoryKeyValueStore(), settings=AppSettings(_env_file=None), clock=FrozenClock()
        )
        for action, url, tags in operations:
            if action == "upsert":
                await engine.favorites.upsert({"url": url, "title": url}, tags)
            elif action == "set_tags":
                current = engine.favorites.get_by_url(url)
                if current is not None:
                    await engine.favorites.set_tags(current.id, tags)
            else:
                await engine.favorites.remove_by_url(url)
            assert _usage_by_tag(engine) == _expected_usage(engine)

    asyncio.run(scenario())
