"""Tests for the per-key lock registry."""

import asyncio

import pytest

from otp_verifier.services.locks import KeyedLock


@pytest.mark.asyncio
async def test_same_key_is_serialised():
    locks = KeyedLock()
    order: list[str] = []
    first_inside = asyncio.Event()

    async def first():
        async with locks.hold("a@x.com"):
            first_inside.set()
            await asyncio.sleep(0.05)
            order.append("first")

    async def second():
        await first_inside.wait()
        async with locks.hold("a@x.com"):
            order.append("second")

    await asyncio.gather(first(), second())
    assert order == ["first", "second"]


@pytest.mark.asyncio
async def test_different_keys_do_not_block_each_other():
    locks = KeyedLock()
    release = asyncio.Event()

    async def holder():
        async with locks.hold("a@x.com"):
            await release.wait()

    task = asyncio.create_task(holder())
    await asyncio.sleep(0)

    async with locks.hold("b@x.com"):
        release.set()

    await asyncio.wait_for(task, timeout=1)


@pytest.mark.asyncio
async def test_registry_is_emptied_after_release():
    locks = KeyedLock()
    async with locks.hold("a@x.com"):
        assert len(locks) == 1
    assert len(locks) == 0


@pytest.mark.asyncio
async def test_lock_released_when_body_raises():
    locks = KeyedLock()
    with pytest.raises(RuntimeError):
        async with locks.hold("a@x.com"):
            raise RuntimeError("boom")
    assert len(locks) == 0
    async with locks.hold("a@x.com"):
        pass
