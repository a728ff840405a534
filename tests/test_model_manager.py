"""Tests for the chat-facing model manager operations."""

import pytest

from core.exceptions import (
    ModelDisabledError,
    ModelNotFoundError,
    ModelUnavailableError,
    ModelValidationError,
)
from core.interfaces import ModelStatus


@pytest.mark.asyncio
async def test_validate(manager, make_model):
    await make_model("ok")
    await make_model("disabled", is_enabled=False)
    await make_model("pulling", status=ModelStatus.DOWNLOADING)

    assert (await manager.validate("ok")).name == "ok"
    with pytest.raises(ModelNotFoundError):
        await manager.validate("missing")
    with pytest.raises(ModelDisabledError):
        await manager.validate("disabled")
    with pytest.raises(ModelUnavailableError):
        await manager.validate("pulling")


@pytest.mark.asyncio
async def test_get_default(manager, make_model):
    with pytest.raises(ModelNotFoundError):
        await manager.get_default()

    model = await make_model("llama3:8b")
    await manager.set_default(model.id)

    assert (await manager.get_default()).id == model.id


@pytest.mark.asyncio
async def test_disabled_default_is_not_served(manager, make_model):
    model = await make_model("llama3:8b")
    await manager.set_default(model.id)
    await manager.update_model(model.id, is_enabled=False)

    with pytest.raises(ModelNotFoundError):
        await manager.get_default()


@pytest.mark.asyncio
async def test_mark_used(manager, make_model):
    await make_model("llama3:8b")

    assert await manager.mark_used("llama3:8b") is True
    assert await manager.mark_used("missing") is False


@pytest.mark.asyncio
async def test_update_model_unset_default(manager, make_model):
    model = await make_model("llama3:8b")
    await manager.set_default(model.id)

    updated = await manager.update_model(model.id, is_default=False)

    assert updated.is_default is False


@pytest.mark.asyncio
async def test_update_model_requires_fields(manager, make_model):
    model = await make_model("llama3:8b")
    with pytest.raises(ModelValidationError):
        await manager.update_model(model.id)


@pytest.mark.asyncio
async def test_rejected_default_discards_other_changes(manager, make_model):
    model = await make_model("llama3:8b", status=ModelStatus.ERROR)

    with pytest.raises(ModelValidationError):
        await manager.update_model(model.id, display_name="Renamed", is_default=True)

    unchanged = await manager.get_model(model.id)
    assert unchanged.display_name == "llama3:8b"
    assert unchanged.is_default is False


@pytest.mark.asyncio
async def test_update_model_with_default_in_one_call(manager, make_model):
    first = await make_model("llama3:8b")
    second = await make_model("mistral:7b")
    await manager.set_default(first.id)

    updated = await manager.update_model(second.id, display_name="Mistral", is_default=True)

    assert updated.display_name == "Mistral"
    assert updated.is_default is True
    assert (await manager.get_model(first.id)).is_default is False


@pytest.mark.asyncio
async def test_soft_delete_downloading_model_rejected(manager, make_model):
    model = await make_model("llama3:8b", status=ModelStatus.DOWNLOADING)
    with pytest.raises(ModelValidationError):
        await manager.soft_delete(model.id)
