import threading

import pytest

from app.utils.model_worker import (
    GENERATE_TEXT,
    INITIALIZE_MODEL,
    ModelStatus,
    ModelWorker,
    ProviderUnavailable,
    TransformersProvider,
    WorkerError,
    WorkerTimeout,
    providers_from_settings,
)
from app.utils.settings import AssistantSettings


class FakeProvider:
    def __init__(self, name, generator=None, error=None):
        self.name = name
        self.label = f"fake ({name})"
        self.generator = generator
        self.error = error
        self.calls = 0

    def load(self):
        self.calls += 1
        if self.error:
            raise ProviderUnavailable(self.error)
        return self.generator


class RecordingGenerator:
    def __init__(self, text="The slope tells you how fast y grows."):
        self.text = text
        self.calls = []

    def __call__(self, prompt, **options):
        self.calls.append((prompt, options))
        return [{"generated_text": self.text}]


class BlockingGenerator:
    def __init__(self):
        self.release = threading.Event()

    def __call__(self, prompt, **options):
        self.release.wait(5)
        return [{"generated_text": "late reply"}]


@pytest.fixture
def worker_factory():
    workers = []

    def make(*providers, **kwargs):
        w = ModelWorker(providers, **kwargs)
        workers.append(w)
        return w.start()

    yield make
    for w in workers:
        w.terminate(join_timeout=1.0)


def test_first_loadable_provider_wins(worker_factory):
    gpu = FakeProvider("gpu", error="no CUDA device")
    cpu = FakeProvider("cpu", generator=RecordingGenerator())
    spare = FakeProvider("spare", generator=RecordingGenerator())
    worker = worker_factory(gpu, cpu, spare)

    reply = worker.initialize()

    assert reply == {"success": True, "model_name": "fake (cpu)"}
    assert worker.status is ModelStatus.LOADED
    assert worker.model_name == "fake (cpu)"
    assert worker.progress.progress == 100
    assert (gpu.calls, cpu.calls, spare.calls) == (1, 1, 0)
    assert worker.pending_count() == 0


def test_all_providers_failing_marks_worker_failed(worker_factory):
    worker = worker_factory(FakeProvider("gpu", error="no GPU"), FakeProvider("cpu", error="out of memory"))

    with pytest.raises(WorkerError, match="no GPU.*out of memory"):
        worker.initialize()

    assert worker.status is ModelStatus.FAILED
    assert worker.pending_count() == 0
    with pytest.raises(WorkerError, match="Model not loaded"):
        worker.generate("hi")


def test_second_initialize_does_not_reload(worker_factory):
    cpu = FakeProvider("cpu", generator=RecordingGenerator())
    worker = worker_factory(cpu)

    worker.initialize()
    again = worker.initialize()

    assert again["model_name"] == "fake (cpu)"
    assert cpu.calls == 1


def test_load_async_resolves_in_background(worker_factory):
    worker = worker_factory(FakeProvider("cpu", generator=RecordingGenerator()))
    future = worker.load_async()
    assert future.result(timeout=5)["success"] is True
    assert worker.status is ModelStatus.LOADED


def test_generate_merges_default_and_request_options(worker_factory):
    gen = RecordingGenerator()
    worker = worker_factory(
        FakeProvider("cpu", generator=gen),
        generation_defaults={"max_new_tokens": 150, "temperature": 0.7},
    )
    worker.initialize()

    result = worker.generate("Explain R²", {"temperature": 0.1})

    assert result == [{"generated_text": gen.text}]
    prompt, options = gen.calls[-1]
    assert prompt == "Explain R²"
    assert options == {"max_new_tokens": 150, "temperature": 0.1}
    assert worker.pending_count() == 0


def test_generate_before_load_is_rejected(worker_factory):
    worker = worker_factory(FakeProvider("cpu", generator=RecordingGenerator()))
    with pytest.raises(WorkerError, match="Model not loaded"):
        worker.generate("hi")


def test_generation_request_without_model_is_an_error_reply(worker_factory):
    worker = worker_factory(FakeProvider("cpu", generator=RecordingGenerator()))
    with pytest.raises(WorkerError, match="Model not initialized"):
        worker.request(GENERATE_TEXT, {"prompt": "hi"})
    # a failed generation is not a failed load
    assert worker.status is ModelStatus.IDLE


def test_unknown_message_type(worker_factory):
    worker = worker_factory()
    with pytest.raises(WorkerError, match="Unknown message type: PING"):
        worker.request("PING")
    assert worker.pending_count() == 0


def test_timeout_removes_pending_entry(worker_factory):
    gen = BlockingGenerator()
    worker = worker_factory(FakeProvider("cpu", generator=gen))
    worker.initialize()

    with pytest.raises(WorkerTimeout):
        worker.generate("slow", timeout=0.05)
    assert worker.pending_count() == 0

    # the late reply finds no entry and is dropped
    gen.release.set()


def test_terminate_fails_outstanding_requests(worker_factory):
    gen = BlockingGenerator()
    worker = worker_factory(FakeProvider("cpu", generator=gen))
    worker.initialize()

    _, future = worker.submit(GENERATE_TEXT, {"prompt": "slow"})
    assert worker.pending_count() == 1

    worker.terminate(join_timeout=0.1)
    gen.release.set()

    assert isinstance(future.exception(timeout=1), WorkerError)
    assert worker.pending_count() == 0
    assert worker.status is ModelStatus.IDLE
    assert not worker.running


def test_submit_requires_a_started_worker():
    worker = ModelWorker([FakeProvider("cpu", generator=RecordingGenerator())])
    with pytest.raises(WorkerError, match="not started"):
        worker.submit(INITIALIZE_MODEL)


def test_retry_after_failure(worker_factory):
    cpu = FakeProvider("cpu", error="download failed")
    worker = worker_factory(cpu)
    with pytest.raises(WorkerError):
        worker.initialize()
    assert worker.status is ModelStatus.FAILED

    cpu.error = None
    cpu.generator = RecordingGenerator()
    assert worker.retry().result(timeout=5)["success"] is True
    assert worker.status is ModelStatus.LOADED
    assert cpu.calls == 2


def test_context_manager_lifecycle():
    with ModelWorker([FakeProvider("cpu", generator=RecordingGenerator())]) as worker:
        assert worker.running
        worker.initialize()
    assert not worker.running
    assert worker.status is ModelStatus.IDLE


def test_providers_from_settings_keep_order():
    settings = AssistantSettings(model_id="org/tiny", providers=[{"name": "GPU", "device": "cuda"}, {"device": "cpu"}])
    providers = providers_from_settings(settings)

    assert [p.device for p in providers] == ["cuda", "cpu"]
    assert providers[1].name == "cpu"
    assert providers[0].label == "org/tiny (GPU)"
    assert all(isinstance(p, TransformersProvider) for p in providers)
