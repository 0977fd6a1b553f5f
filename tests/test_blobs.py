import asyncio

import pytest

from docvault.blobs import BlobLifecycleManager, ReleaseToken


def recording_manager(default_ttl: float = 60):
    released = []
    manager = BlobLifecycleManager(
        default_ttl=default_ttl,
        on_release=lambda handle, reason: released.append((handle.local_address, reason)),
    )
    return manager, released


def test_release_token_is_single_use():
    token = ReleaseToken()
    assert token.consume() is True
    assert token.consume() is False


def test_create_requires_running_loop():
    manager = BlobLifecycleManager()
    with pytest.raises(RuntimeError):
        manager.create(b"data", "text/plain")


@pytest.mark.asyncio
async def test_create_wraps_payload_in_handle():
    manager, _ = recording_manager()
    handle = manager.create(b"\x89PNG", "image/png", ttl=5)

    assert handle.local_address.startswith("blob:docvault/")
    assert handle.source_content_type == "image/png"
    assert handle.size == 4
    assert handle.ttl == 5
    assert manager.is_live(handle)
    assert manager.read(handle) == b"\x89PNG"
    manager.close()


@pytest.mark.asyncio
async def test_each_create_gets_a_distinct_address():
    manager, _ = recording_manager()
    first = manager.create(b"a", "text/plain")
    second = manager.create(b"a", "text/plain")
    assert first.local_address != second.local_address
    assert manager.live_count == 2
    manager.close()


@pytest.mark.asyncio
async def test_rejects_non_positive_ttl():
    manager, _ = recording_manager()
    with pytest.raises(ValueError):
        manager.create(b"a", "text/plain", ttl=0)


@pytest.mark.asyncio
async def test_release_twice_is_a_noop():
    manager, released = recording_manager()
    handle = manager.create(b"data", "text/plain")

    manager.release(handle)
    manager.release(handle)

    assert released == [(handle.local_address, "teardown")]
    assert not manager.is_live(handle)
    with pytest.raises(KeyError):
        manager.read(handle)


@pytest.mark.asyncio
async def test_release_unknown_handle_is_a_noop():
    manager, released = recording_manager()
    other, _ = recording_manager()
    foreign = other.create(b"data", "text/plain")

    manager.release(foreign)
    manager.release(None)

    assert released == []
    assert other.is_live(foreign)
    other.close()


@pytest.mark.asyncio
async def test_timer_releases_handle():
    manager, released = recording_manager()
    handle = manager.create(b"data", "text/plain", ttl=0.01)

    await asyncio.sleep(0.05)

    assert not manager.is_live(handle)
    assert released == [(handle.local_address, "timer")]


@pytest.mark.asyncio
async def test_teardown_first_cancels_timer():
    manager, released = recording_manager()
    handle = manager.create(b"data", "text/plain", ttl=0.02)

    manager.release(handle)
    await asyncio.sleep(0.06)

    assert released == [(handle.local_address, "teardown")]


@pytest.mark.asyncio
async def test_teardown_after_timer_is_a_noop():
    manager, released = recording_manager()
    handle = manager.create(b"data", "text/plain", ttl=0.01)

    await asyncio.sleep(0.05)
    manager.release(handle)

    assert released == [(handle.local_address, "timer")]


@pytest.mark.asyncio
async def test_close_releases_everything_once():
    manager, released = recording_manager()
    handles = [manager.create(b"x", "text/plain") for _ in range(3)]

    manager.close()
    manager.close()

    assert manager.live_count == 0
    assert sorted(address for address, _ in released) == sorted(h.local_address for h in handles)
