"""
Background text-generation worker used by the chat assistant.

A ``ModelWorker`` is an explicitly owned handle: the caller creates it,
starts it, sends it requests and terminates it. Internally one thread reads
an inbox queue, so model loads and generations run one at a time and at most
one load is ever in flight for a worker.

Every request gets a generated id and an entry in a pending table holding a
``Future`` and a timeout timer. The entry is removed exactly once, by
whichever happens first: the reply, the timeout, or ``terminate()``.

Loading walks an ordered list of providers (GPU first, then CPU by default);
the first provider that loads wins. If none loads the worker reports
``ModelStatus.FAILED`` and the assistant answers with heuristics instead.
"""
from __future__ import annotations

import logging
import queue
import threading
import time
import uuid
from concurrent.futures import Future
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from app.utils.settings import AssistantSettings

logger = logging.getLogger(__name__)

# requests
INITIALIZE_MODEL = "INITIALIZE_MODEL"
GENERATE_TEXT = "GENERATE_TEXT"
# replies
MODEL_READY = "MODEL_READY"
PROGRESS = "PROGRESS"
TEXT_GENERATED = "TEXT_GENERATED"
ERROR = "ERROR"

Generator = Callable[..., Any]


class ModelStatus(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    LOADED = "loaded"
    FAILED = "failed"


@dataclass(frozen=True)
class Progress:
    status: str
    progress: int


class WorkerError(RuntimeError):
    pass


class WorkerTimeout(WorkerError):
    pass


class ProviderUnavailable(RuntimeError):
    pass


@dataclass
class TransformersProvider:
    """Loads a Hugging Face text-generation pipeline on one device."""
    name: str
    model_id: str
    device: str

    @property
    def label(self) -> str:
        return f"{self.model_id} ({self.name})"

    def load(self) -> Generator:
        try:
            from transformers import pipeline
        except ImportError as exc:
            raise ProviderUnavailable("transformers is not installed (pip install '.[llm]')") from exc

        try:
            generator = pipeline("text-generation", model=self.model_id, device=self.device)
            # a short generation proves the device actually works
            generator("Hello", max_new_tokens=5)
        except Exception as exc:  # torch and transformers raise many types for a bad device
            raise ProviderUnavailable(f"{self.label}: {exc}") from exc
        return generator


def providers_from_settings(settings: AssistantSettings) -> List[TransformersProvider]:
    return [
        TransformersProvider(name=p.get("name", p["device"]), model_id=settings.model_id, device=p["device"])
        for p in settings.providers
    ]


@dataclass
class _Pending:
    future: Future
    timer: threading.Timer


class ModelWorker:
    def __init__(
        self,
        providers: Sequence[Any],
        request_timeout_s: float = 60.0,
        generation_defaults: Optional[Dict[str, Any]] = None,
        load_delay_s: float = 0.0,
    ):
        self.providers = list(providers)
        self.request_timeout_s = request_timeout_s
        self.generation_defaults = dict(generation_defaults or {})
        self.load_delay_s = load_delay_s

        self.status = ModelStatus.IDLE
        self.model_name = ""
        self.progress: Optional[Progress] = None

        self._lock = threading.Lock()
        self._pending: Dict[str, _Pending] = {}
        self._inbox: "queue.Queue[Optional[dict]]" = queue.Queue()
        self._thread: Optional[threading.Thread] = None

    @classmethod
    def from_settings(cls, settings: AssistantSettings) -> "ModelWorker":
        return cls(
            providers_from_settings(settings),
            request_timeout_s=settings.request_timeout_s,
            generation_defaults=settings.generation,
            load_delay_s=settings.load_delay_s,
        )

    # ---- lifecycle ----
    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> "ModelWorker":
        with self._lock:
            if self._thread is not None and self._thread.is_alive():
                return self
            self._inbox = queue.Queue()
            self._thread = threading.Thread(
                target=self._run, args=(self._inbox,), name="model-worker", daemon=True
            )
            self._thread.start()
        return self

    def terminate(self, join_timeout: float = 5.0) -> None:
        """Stop the thread and fail whatever is still waiting for a reply."""
        with self._lock:
            thread, inbox = self._thread, self._inbox
            self._thread = None
            # replies from the old thread are ignored from here on
            self._inbox = queue.Queue()
            pending = list(self._pending.values())
            self._pending.clear()

        for entry in pending:
            entry.timer.cancel()
            entry.future.set_exception(WorkerError("Worker terminated"))

        if thread is not None:
            inbox.put(None)
            thread.join(join_timeout)

        self.status = ModelStatus.IDLE
        self.model_name = ""
        self.progress = None

    def __enter__(self) -> "ModelWorker":
        return self.start()

    def __exit__(self, *exc) -> None:
        self.terminate()

    # ---- requests ----
    def submit(self, kind: str, payload: Optional[dict] = None, timeout: Optional[float] = None) -> Tuple[str, Future]:
        if not self.running:
            raise WorkerError("Worker not started")
        request_id = uuid.uuid4().hex
        future: Future = Future()
        timer = threading.Timer(timeout or self.request_timeout_s, self._expire, args=(request_id,))
        timer.daemon = True
        with self._lock:
            self._pending[request_id] = _Pending(future, timer)
            inbox = self._inbox
        timer.start()
        inbox.put({"id": request_id, "type": kind, "payload": payload or {}})
        return request_id, future

    def request(self, kind: str, payload: Optional[dict] = None, timeout: Optional[float] = None) -> Any:
        _, future = self.submit(kind, payload, timeout)
        return future.result()

    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)

    def load_async(self) -> Future:
        """Start the worker if needed and queue a model load without waiting."""
        self.start()
        if self.status is not ModelStatus.LOADED:
            self.status = ModelStatus.LOADING
        _, future = self.submit(INITIALIZE_MODEL)
        return future

    def initialize(self, timeout: Optional[float] = None) -> dict:
        self.start()
        return self.request(INITIALIZE_MODEL, timeout=timeout)

    def generate(self, prompt: str, options: Optional[dict] = None, timeout: Optional[float] = None) -> Any:
        if self.status is not ModelStatus.LOADED:
            raise WorkerError("Model not loaded")
        return self.request(GENERATE_TEXT, {"prompt": prompt, "options": options or {}}, timeout)

    def retry(self) -> Future:
        self.terminate()
        return self.load_async()

    # ---- pending table ----
    def _take(self, request_id: str) -> Optional[_Pending]:
        with self._lock:
            entry = self._pending.pop(request_id, None)
        if entry is not None:
            entry.timer.cancel()
        return entry

    def _expire(self, request_id: str) -> None:
        entry = self._take(request_id)
        if entry is not None:
            logger.warning("Worker request %s timed out", request_id)
            entry.future.set_exception(WorkerTimeout("Worker request timeout"))

    def _resolve(self, request_id: str, value: Any) -> None:
        entry = self._take(request_id)
        if entry is not None:
            entry.future.set_result(value)

    def _reject(self, request_id: str, error: Exception) -> None:
        entry = self._take(request_id)
        if entry is not None:
            entry.future.set_exception(error)

    # ---- replies (called on the worker thread) ----
    def _post(self, inbox: queue.Queue, request_id: str, kind: str, payload: dict) -> None:
        if inbox is not self._inbox:
            return

        if kind == PROGRESS:
            self.status = ModelStatus.LOADING
            self.progress = Progress(payload["status"], payload["progress"])
        elif kind == MODEL_READY:
            self.status = ModelStatus.LOADED
            self.model_name = payload["model_name"]
            self.progress = Progress("Model ready!", 100)
            self._resolve(request_id, payload)
        elif kind == TEXT_GENERATED:
            self._resolve(request_id, payload["result"])
        elif kind == ERROR:
            if payload.get("request") == INITIALIZE_MODEL:
                self.status = ModelStatus.FAILED
                self.progress = Progress("Model loading failed", 0)
            self._reject(request_id, WorkerError(payload["error"]))

    # ---- worker thread ----
    def _run(self, inbox: queue.Queue) -> None:
        generator: Optional[Generator] = None
        loaded_name = ""
        while True:
            message = inbox.get()
            if message is None:
                break
            request_id, kind, payload = message["id"], message["type"], message["payload"]
            try:
                if kind == INITIALIZE_MODEL:
                    if generator is None:
                        generator, loaded_name = self._load(inbox, request_id)
                    self._post(inbox, request_id, MODEL_READY, {"success": True, "model_name": loaded_name})
                elif kind == GENERATE_TEXT:
                    if generator is None:
                        raise WorkerError("Model not initialized")
                    options = {**self.generation_defaults, **(payload.get("options") or {})}
                    logger.debug("Generating text (%d prompt chars)", len(payload["prompt"]))
                    result = generator(payload["prompt"], **options)
                    self._post(inbox, request_id, TEXT_GENERATED, {"result": result})
                else:
                    raise WorkerError(f"Unknown message type: {kind}")
            except Exception as exc:
                logger.error("Worker error handling %s: %s", kind, exc)
                self._post(inbox, request_id, ERROR, {"error": str(exc), "request": kind})

    def _load(self, inbox: queue.Queue, request_id: str) -> Tuple[Generator, str]:
        if self.load_delay_s:
            time.sleep(self.load_delay_s)
        self._post(inbox, request_id, PROGRESS, {"status": "Starting model initialization...", "progress": 0})

        errors = []
        for i, provider in enumerate(self.providers):
            step = 25 if i == 0 else 50
            self._post(inbox, request_id, PROGRESS, {"status": f"Loading {provider.label}...", "progress": step})
            try:
                generator = provider.load()
            except ProviderUnavailable as exc:
                logger.warning("Provider %s unavailable, trying next: %s", provider.label, exc)
                errors.append(str(exc))
                continue
            logger.info("Loaded text-generation model %s", provider.label)
            self._post(inbox, request_id, PROGRESS, {"status": f"Model loaded on {provider.name}", "progress": 90})
            return generator, provider.label

        raise WorkerError("No model provider could be loaded: " + "; ".join(errors or ["none configured"]))
