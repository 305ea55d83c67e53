"""Chunk transfer to and from a blob store with retries and bounded concurrency."""

from __future__ import annotations

import asyncio
import logging
import random
from typing import Callable, Dict, Iterable, List, Optional, Sequence

import aiohttp

from .common.constants import MAX_CONCURRENT_DOWNLOADS, MAX_CONCURRENT_UPLOADS
from .common.types import Chunk, UploadResult
from .config import Config, RetryPolicy
from .stores import BlobStore, create_store
from .utils import (
    DownloadError,
    PermanentStoreError,
    TransientStoreError,
    UploadError,
)


logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]

TRANSIENT_ERRORS = (TransientStoreError, aiohttp.ClientError, asyncio.TimeoutError)


class Transport:
    """Moves ciphertext blobs between this process and a blob store."""

    def __init__(
        self,
        store: BlobStore,
        retry_policy: Optional[RetryPolicy] = None,
        max_concurrency: int = MAX_CONCURRENT_UPLOADS,
        max_download_concurrency: int = MAX_CONCURRENT_DOWNLOADS,
    ) -> None:
        if max_concurrency < 1 or max_download_concurrency < 1:
            raise ValueError("Concurrency limits must be at least 1.")
        self.store = store
        self.retry_policy = retry_policy or RetryPolicy()
        self.max_concurrency = max_concurrency
        self.max_download_concurrency = max_download_concurrency

    @classmethod
    def from_config(cls, config: Config) -> "Transport":
        """
        Build a transport from loaded configuration.

        Args:
            config: Config instance.

        Returns:
            Transport bound to the configured blob store.
        """
        return cls(
            create_store(config),
            retry_policy=config.retry_policy,
            max_concurrency=config.concurrent_uploads,
            max_download_concurrency=config.concurrent_downloads,
        )

    async def __aenter__(self) -> "Transport":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def close(self) -> None:
        await self.store.close()

    def _backoff(self, attempt: int) -> float:
        delay = self.retry_policy.delay_for(attempt)
        return delay + random.uniform(0, self.retry_policy.jitter * delay)

    async def upload(self, data: bytes, name: str = "chunk.bin") -> str:
        """
        Upload a blob, retrying transient failures with exponential backoff.

        Args:
            data: Blob bytes.
            name: Name passed to the store.

        Returns:
            URL of the stored blob.

        Raises:
            UploadError: If the failure is permanent or retries run out.
        """
        policy = self.retry_policy
        loop = asyncio.get_running_loop()
        started = loop.time()
        last_exc: Optional[BaseException] = None

        for attempt in range(1, policy.max_attempts + 1):
            try:
                return await self.store.put(data, name)
            except PermanentStoreError as exc:
                logger.error("Upload of %s failed permanently: %s", name, exc)
                raise UploadError(f"Failed to upload {name}: {exc}") from exc
            except TRANSIENT_ERRORS as exc:
                last_exc = exc
                if attempt >= policy.max_attempts:
                    break
                delay = self._backoff(attempt)
                if loop.time() - started + delay > policy.max_elapsed:
                    logger.warning(
                        "Upload of %s out of retry time after %s attempts", name, attempt
                    )
                    break
                logger.warning(
                    "Upload attempt %s/%s for %s failed: %s (retrying in %.2fs)",
                    attempt,
                    policy.max_attempts,
                    name,
                    exc,
                    delay,
                )
                await asyncio.sleep(delay)
            except Exception as exc:
                raise UploadError(f"Unexpected error uploading {name}.") from exc

        raise UploadError(
            f"Failed to upload {name} after {attempt} attempts: {last_exc}"
        ) from last_exc

    async def upload_chunks(
        self,
        chunks: Iterable[Chunk],
        progress_callback: Optional[ProgressCallback] = None,
    ) -> List[UploadResult]:
        """
        Upload chunks concurrently with a semaphore.

        A failed chunk does not stop its siblings; the failure is captured in
        its result.

        Args:
            chunks: Chunks to upload.
            progress_callback: Optional callback(done, total).

        Returns:
            One result per chunk, sorted by chunk index.
        """
        semaphore = asyncio.Semaphore(self.max_concurrency)
        items = list(chunks)
        total = len(items)
        results: List[UploadResult] = []

        async def _upload(chunk: Chunk) -> None:
            async with semaphore:
                try:
                    url = await self.upload(chunk.ciphertext, chunk.name)
                    result = UploadResult(index=chunk.index, url=url)
                except UploadError as exc:
                    logger.warning("Chunk %s was not uploaded: %s", chunk.index, exc)
                    result = UploadResult(index=chunk.index, error=exc)
                results.append(result)
                if progress_callback:
                    progress_callback(len(results), total)

        tasks = [asyncio.create_task(_upload(chunk)) for chunk in items]
        await asyncio.gather(*tasks)
        return sorted(results, key=lambda item: item.index)

    async def download(self, url: str) -> bytes:
        """
        Download a blob with a single request.

        Args:
            url: Blob URL.

        Returns:
            Blob bytes.

        Raises:
            DownloadError: On any failure, naming the URL.
        """
        try:
            return await self.store.get(url)
        except Exception as exc:
            raise DownloadError(f"Failed to download chunk from {url}: {exc}") from exc

    async def download_many(
        self,
        urls: Sequence[str],
        progress_callback: Optional[ProgressCallback] = None,
    ) -> List[bytes]:
        """
        Download blobs concurrently, returned in the order of urls.

        Args:
            urls: Blob URLs.
            progress_callback: Optional callback(done, total).

        Returns:
            Blob bytes in input order.
        """
        semaphore = asyncio.Semaphore(self.max_download_concurrency)
        results: Dict[int, bytes] = {}
        total = len(urls)

        async def _download(index: int, url: str) -> None:
            async with semaphore:
                results[index] = await self.download(url)
                if progress_callback:
                    progress_callback(len(results), total)

        tasks = [asyncio.create_task(_download(i, url)) for i, url in enumerate(urls)]
        try:
            await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise
        return [results[index] for index in range(total)]
