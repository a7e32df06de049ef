"""Unit tests for memory.py - The in-memory control plane."""

import pytest

from client import AlreadyExistsError, NotFoundError
from conftest import FINALIZER, Widget
from resources import ObjectMeta, ResourceKey


@pytest.mark.asyncio
class TestInMemoryClient:
    """Tests for InMemoryClient."""

    async def test_create_and_get(self, client, widget):
        created = await client.create(widget)
        assert created.model_dump() == widget.model_dump()
        assert isinstance(created, Widget)
        assert client.keys() == [ResourceKey("test", "widget-1")]

    async def test_get_returns_independent_copies(self, client, widget):
        await client.create(widget)
        first = await client.get(widget.key)
        first.spec["size"] = 3
        second = await client.get(widget.key)
        assert second.spec == {}

    async def test_create_twice(self, client, widget):
        await client.create(widget)
        with pytest.raises(AlreadyExistsError):
            await client.create(widget)

    async def test_get_missing(self, client):
        with pytest.raises(NotFoundError) as exc_info:
            await client.get(ResourceKey("test", "missing"))
        assert "test/missing" in str(exc_info.value)

    async def test_delete_without_finalizers(self, client, widget):
        await client.create(widget)
        await client.delete(widget.key)
        assert not client.exists(widget.key)

    async def test_delete_with_finalizers(self, client, widget):
        widget.metadata.finalizers.append(FINALIZER)
        await client.create(widget)

        await client.delete(widget.key)

        stored = await client.get(widget.key)
        assert stored.is_deleting()
        assert stored.metadata.finalizers == [FINALIZER]

    async def test_delete_missing(self, client):
        with pytest.raises(NotFoundError):
            await client.delete(ResourceKey("test", "missing"))

    async def test_replace_spec_bumps_generation(self, client, widget):
        await client.create(widget)
        await client.replace_spec(widget.key, {"size": 4})
        stored = await client.get(widget.key)
        assert stored.spec == {"size": 4}
        assert stored.metadata.generation == 2

    async def test_patches_are_recorded(self, client, widget):
        await client.create(widget)
        base = await client.get(widget.key)
        instance = base.deep_copy()
        instance.status.observed["size"] = 1

        await client.patch_spec_and_metadata(instance, base)
        await client.patch_status(instance, base)

        assert client.patches == [("status", widget.key, {"status": {"observed": {"size": 1}}})]
        assert (await client.get(widget.key)).status.observed == {"size": 1}

    async def test_patch_missing(self, client, widget):
        with pytest.raises(NotFoundError):
            await client.patch_status(widget, widget.deep_copy())

    async def test_last_finalizer_removal_deletes(self, client, widget):
        widget.metadata.finalizers.append(FINALIZER)
        await client.create(widget)
        await client.delete(widget.key)
        base = await client.get(widget.key)
        instance = base.deep_copy()
        instance.metadata.finalizers.clear()

        await client.patch_spec_and_metadata(instance, base)

        assert not client.exists(widget.key)

    async def test_finalizer_removal_without_deletion_keeps_object(self, client):
        widget = Widget(metadata=ObjectMeta(name="kept", finalizers=[FINALIZER]))
        await client.create(widget)
        base = await client.get(widget.key)
        instance = base.deep_copy()
        instance.metadata.finalizers.clear()

        await client.patch_spec_and_metadata(instance, base)

        assert client.exists(widget.key)
