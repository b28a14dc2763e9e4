"""Unit tests for ImageIntake on the image queue."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, patch

import pytest
from pydantic import ValidationError

from sheetqueue.core.models.app import AppConfig
from sheetqueue.core.pipeline.images import ImageIntake
from sheetqueue.core.pipeline.models import ImageUpload
from sheetqueue.core.queue import work_queue as work_queue_module
from sheetqueue.core.queue.registry import QueueRegistry
from sheetqueue.core.types.status import JobStatus

pytestmark = pytest.mark.unit


def _image(name: str = 'diagram.png') -> ImageUpload:
    return ImageUpload(
        user_id='u1', worksheet_id='w1', filename=name, content=b'\x89PNG...'
    )


def test_image_requires_content() -> None:
    with pytest.raises(ValidationError):
        ImageUpload(user_id='u1', worksheet_id='w1', filename='a.png', content=b'')


@pytest.mark.asyncio(loop_scope='function')
async def test_submit_returns_uploaded_url() -> None:
    registry = QueueRegistry(AppConfig(log_queue_activity=False))
    upload = AsyncMock(return_value='https://cdn.example/diagram.png')
    intake = ImageIntake(registry, upload)

    handle = intake.submit(_image())

    assert handle.queue_name == 'image'
    assert handle.label == 'image:w1/diagram.png'
    assert await handle == 'https://cdn.example/diagram.png'
    upload.assert_awaited_once_with(_image())


@pytest.mark.asyncio(loop_scope='function')
async def test_image_queue_is_bounded() -> None:
    registry = QueueRegistry(AppConfig(log_queue_activity=False))
    release = asyncio.Event()

    async def upload(image: ImageUpload) -> str:
        await release.wait()
        return image.filename

    intake = ImageIntake(registry, upload)
    handles = [intake.submit(_image(f'{i}.png')) for i in range(7)]

    assert registry.image.pending == 5
    assert registry.image.size == 2

    release.set()
    assert [await h for h in handles] == [f'{i}.png' for i in range(7)]


@pytest.mark.asyncio(loop_scope='function')
async def test_detached_upload_failure_is_logged() -> None:
    registry = QueueRegistry(AppConfig(log_queue_activity=False))
    intake = ImageIntake(registry, AsyncMock(side_effect=ConnectionError('storage down')))

    with patch.object(work_queue_module.logger, 'error') as error:
        handle = intake.submit_detached(_image())
        await registry.image.on_idle()
        await asyncio.sleep(0)

    assert handle.status == JobStatus.FAILED
    error.assert_called_once()
    assert 'storage down' in error.call_args[0][0]
