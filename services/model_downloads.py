"""Background model downloads with progress tracking."""

import asyncio
import logging
from contextlib import aclosing
from dataclasses import dataclass

from core.events import MODEL_DOWNLOAD_COMPLETED, MODEL_DOWNLOAD_FAILED, emit
from core.exceptions import ModelError, ModelNotFoundError, ModelValidationError
from core.interfaces import IDatabaseAdapter, IRemoteGateway, ModelEntity, ModelStatus

from .model_state import ModelStateMachine
from .model_sync import ModelSynchronizer, generate_display_name

logger = logging.getLogger(__name__)

DEFAULT_DOWNLOAD_TIMEOUT = 30 * 60


@dataclass
class DownloadTicket:
    """Acknowledgement returned as soon as a download has been scheduled."""

    id: str
    name: str
    status: str
    message: str


@dataclass
class DownloadStatus:
    model: ModelEntity
    progress: float | None  # Percent; None unless the model is downloading


class ProgressTracker:
    """Latest download percentage per model id.

    Writers serialise on a lock and swap in a new mapping, so readers
    always see a consistent snapshot without waiting.
    """

    def __init__(self):
        self._progress: dict[str, float] = {}
        self._lock = asyncio.Lock()

    async def set(self, model_id: str, percentage: float) -> None:
        async with self._lock:
            updated = dict(self._progress)
            updated[model_id] = percentage
            self._progress = updated

    async def clear(self, model_id: str) -> None:
        async with self._lock:
            if model_id in self._progress:
                updated = dict(self._progress)
                del updated[model_id]
                self._progress = updated

    def get(self, model_id: str) -> float | None:
        return self._progress.get(model_id)

    def snapshot(self) -> dict[str, float]:
        return self._progress


class DownloadOrchestrator:
    """Runs model pulls as asyncio tasks, one per model id.

    ``download()`` only records the model as ``downloading`` and schedules
    the pull; the outcome is visible through ``get_download_status()`` and
    the download events.
    """

    def __init__(
        self,
        db: IDatabaseAdapter,
        gateway: IRemoteGateway,
        state_machine: ModelStateMachine,
        synchronizer: ModelSynchronizer,
        timeout: float = DEFAULT_DOWNLOAD_TIMEOUT,
    ):
        """Initialize the orchestrator.

        Args:
            db: Catalog database.
            gateway: Inference server the models are pulled from.
            state_machine: Applies the status changes.
            synchronizer: Run after a successful pull to pick up metadata.
            timeout: Deadline for one pull, in seconds.
        """
        self._db = db
        self._gateway = gateway
        self._state = state_machine
        self._synchronizer = synchronizer
        self._timeout = timeout
        self._progress = ProgressTracker()
        self._tasks: dict[str, asyncio.Task] = {}
        self._start_lock = asyncio.Lock()

    @property
    def progress(self) -> ProgressTracker:
        return self._progress

    def is_running(self, model_id: str) -> bool:
        task = self._tasks.get(model_id)
        return task is not None and not task.done()

    def active_downloads(self) -> list[str]:
        """Return ids of models with a pull in flight."""
        return [model_id for model_id, task in self._tasks.items() if not task.done()]

    async def download(
        self,
        name: str,
        display_name: str | None = None,
        description: str | None = None,
    ) -> DownloadTicket:
        """Schedule a pull of ``name`` and return immediately.

        A model already in the catalog with another status (installing, error,
        removed) keeps its id and goes back to ``downloading``.

        Raises:
            ModelValidationError: If the model is already installed, is being
                downloaded, or its status cannot move to ``downloading``.
        """
        name = name.strip()
        if not name:
            raise ModelValidationError("Model name is required")

        async with self._start_lock:
            async with self._db.session() as scope:
                existing = await scope.models.get_by_name(name)
                if existing is not None:
                    if existing.status == ModelStatus.AVAILABLE:
                        raise ModelValidationError(f"Model {name} is already installed")
                    if self.is_running(existing.id):
                        raise ModelValidationError(f"Model {name} is already being downloaded")

                    model = await self._state.apply(scope.models, existing.id, ModelStatus.DOWNLOADING)
                    overrides = {}
                    if display_name:
                        overrides["display_name"] = display_name
                    if description:
                        overrides["description"] = description
                    if overrides:
                        model = await scope.models.update_fields(model.id, **overrides)
                else:
                    model = await scope.models.create(
                        ModelEntity(
                            id="",
                            name=name,
                            display_name=display_name or generate_display_name(name),
                            description=description or f"Model: {name}",
                            status=ModelStatus.DOWNLOADING,
                            is_enabled=True,
                        )
                    )

            await self._progress.clear(model.id)
            task = asyncio.create_task(self._run(model.id, name), name=f"model-download:{name}")
            self._tasks[model.id] = task
            task.add_done_callback(lambda t, model_id=model.id: self._forget(model_id, t))

        # Let the task start, so a cancel that follows still marks the model errored
        await asyncio.sleep(0)
        logger.info("Download scheduled for model %s (%s)", name, model.id)
        return DownloadTicket(
            id=model.id,
            name=name,
            status=ModelStatus.DOWNLOADING,
            message="Model download started",
        )

    def _forget(self, model_id: str, task: asyncio.Task) -> None:
        if self._tasks.get(model_id) is task:
            del self._tasks[model_id]

    async def _run(self, model_id: str, name: str) -> None:
        error: str | None
        try:
            async with asyncio.timeout(self._timeout):
                error = await self._consume(model_id, name)
        except TimeoutError:
            error = f"Download did not finish within {self._timeout:g} seconds"
        except asyncio.CancelledError:
            logger.info("Download of %s cancelled", name)
            await self._progress.clear(model_id)
            await self._fail(model_id, name, "Download cancelled")
            raise
        except Exception as e:
            logger.exception("Download of %s failed", name)
            error = str(e) or type(e).__name__

        await self._progress.clear(model_id)
        if error:
            await self._fail(model_id, name, error)
        else:
            await self._complete(model_id, name)

    async def _consume(self, model_id: str, name: str) -> str | None:
        """Drain the pull stream. Returns the error message, if any."""
        async with aclosing(self._gateway.pull(name)) as stream:
            async for event in stream:
                if event.error:
                    return event.error
                percentage = event.percentage
                if percentage is not None:
                    await self._progress.set(model_id, percentage)
                    logger.debug("Download %s: %s %.1f%%", name, event.status, percentage)
        return None

    async def _fail(self, model_id: str, name: str, error: str) -> None:
        logger.error("Model download failed for %s: %s", name, error)
        try:
            await self._state.transition(model_id, ModelStatus.ERROR)
        except ModelError:
            logger.exception("Failed to mark model %s as errored", name)
        await emit(MODEL_DOWNLOAD_FAILED, model_id=model_id, name=name, error=error)

    async def _complete(self, model_id: str, name: str) -> None:
        try:
            await self._state.transition(model_id, ModelStatus.AVAILABLE)
        except ModelError:
            logger.exception("Failed to mark model %s as available", name)
            return
        logger.info("Model download completed: %s", name)

        await self._describe(model_id, name)
        try:
            await self._synchronizer.sync()
        except ModelError:
            logger.exception("Failed to sync models after downloading %s", name)

        await emit(MODEL_DOWNLOAD_COMPLETED, model_id=model_id, name=name)

    async def _describe(self, model_id: str, name: str) -> None:
        """Replace the generated description with one naming the parameter size."""
        try:
            details = await self._gateway.inspect(name)
            if not details.parameter_size:
                return
            async with self._db.session() as scope:
                model = await scope.models.get(model_id)
                if model is not None and model.description == f"Model: {name}":
                    await scope.models.update_fields(
                        model_id, description=f"{name} - {details.parameter_size} parameters"
                    )
        except ModelError as e:
            logger.warning("Could not get info for downloaded model %s: %s", name, e)

    async def cancel(self, model_id: str) -> bool:
        """Cancel an in-flight download. The model ends up ``error``.

        Returns:
            False if no download is running for the model.
        """
        task = self._tasks.get(model_id)
        if task is None or task.done():
            return False
        task.cancel()
        await asyncio.wait([task])
        return True

    async def wait(self, model_id: str) -> None:
        """Wait until the background pull for a model has finished."""
        task = self._tasks.get(model_id)
        if task is not None:
            await asyncio.wait([task])

    async def get_download_status(self, model_id: str) -> DownloadStatus:
        """Get the model row plus its progress while downloading.

        Raises:
            ModelNotFoundError: If the model does not exist.
        """
        async with self._db.session() as scope:
            model = await scope.models.get(model_id)
        if model is None:
            raise ModelNotFoundError(f"Model not found: {model_id}")

        progress = None
        if model.status == ModelStatus.DOWNLOADING:
            progress = self._progress.get(model_id) or 0.0
        return DownloadStatus(model=model, progress=progress)

    async def shutdown(self) -> None:
        """Cancel all running downloads and wait for them to wind down."""
        tasks = [task for task in self._tasks.values() if not task.done()]
        if not tasks:
            return
        logger.info("Cancelling %d running download(s)", len(tasks))
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
