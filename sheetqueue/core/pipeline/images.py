# sheetqueue/core/pipeline/images.py
from __future__ import annotations
from functools import partial
from typing import Awaitable, Callable
from sheetqueue.core.logging import get_logger
from sheetqueue.core.models.queues import QueueName
from sheetqueue.core.pipeline.models import ImageUpload
from sheetqueue.core.queue.handle import JobHandle
from sheetqueue.core.queue.registry import QueueRegistry

logger = get_logger('images')

UploadFn = Callable[[ImageUpload], Awaitable[str]]


class ImageIntake:
    """Runs user image uploads on the image queue.

    The image queue has no deadline of its own; uploads are bounded by the
    storage client's timeout.
    """

    def __init__(self, registry: QueueRegistry, upload: UploadFn) -> None:
        self.registry = registry
        self._upload = upload

    def submit(self, image: ImageUpload) -> JobHandle[str]:
        """Queue an upload; await the handle for the stored image URL."""
        return self.registry.submit(
            QueueName.IMAGE, partial(self._run, image), label=_label(image)
        )

    def submit_detached(self, image: ImageUpload) -> JobHandle[str]:
        """Queue an upload nobody waits for; failures are only logged."""
        return self.registry.submit_detached(
            QueueName.IMAGE, partial(self._run, image), label=_label(image)
        )

    async def _run(self, image: ImageUpload) -> str:
        url = await self._upload(image)
        logger.info(
            f'Uploaded {image.filename} ({len(image.content)} bytes) '
            f'for worksheet {image.worksheet_id}'
        )
        return url


def _label(image: ImageUpload) -> str:
    return f'image:{image.worksheet_id}/{image.filename}'
