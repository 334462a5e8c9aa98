"""
Tests for the crop workflow: end-to-end runs with a scripted detector.
"""

import io
import zipfile

import pytest

import ai.gemini_provider as gemini_provider
from ai.gemini_provider import GeminiProvider
from core.exceptions import RunStateError, UpstreamError
from core.workflow import EMPTY_RESULT_MESSAGE, CropWorkflow, WorkflowCallbacks, WorkflowConfig
from core.workflow_state import Run, RunStatus

from conftest import ScriptedDetector, regions_json

QUESTION_1 = ("Question 1", (100, 50, 250, 950))
QUESTION_2 = ("Question 2", (260, 50, 400, 950))


class Recorder:
    """Collects every published Run."""

    def __init__(self):
        self.transitions = []
        self.progress = []
        self.runs = []

    def on_transition(self, run: Run):
        self.transitions.append(run.status)
        self.runs.append(run)

    def on_progress(self, run: Run):
        self.progress.append(run.progress)
        self.runs.append(run)

    def callbacks(self) -> WorkflowCallbacks:
        return WorkflowCallbacks(on_transition=self.on_transition, on_progress=self.on_progress)


def make_workflow(detector, recorder=None, config=None) -> CropWorkflow:
    return CropWorkflow(
        detector_factory=lambda: detector,
        config=config,
        callbacks=recorder.callbacks() if recorder else None,
    )


@pytest.fixture
def square_png(image_bytes):
    return image_bytes("PNG", size=(1000, 1000), color=(255, 255, 255))


# ==================== End-to-end ====================

async def test_single_page_two_regions(square_png):
    detector = ScriptedDetector([regions_json(QUESTION_1, QUESTION_2)])
    workflow = make_workflow(detector)

    await workflow.load_document(square_png, "exam.png")
    run = await workflow.process("every question")

    assert run.status == RunStatus.SUCCESS
    assert run.progress == 100
    assert run.error is None
    assert [c.label for c in run.crops] == ["Question 1", "Question 2"]
    assert (run.crops[0].width, run.crops[0].height) == (930, 180)
    assert (run.crops[1].width, run.crops[1].height) == (930, 170)


async def test_empty_detection_is_an_error(square_png):
    workflow = make_workflow(ScriptedDetector(["[]"]))

    await workflow.load_document(square_png, "exam.png")
    run = await workflow.process("every question")

    assert run.status == RunStatus.ERROR
    assert run.error == EMPTY_RESULT_MESSAGE
    assert run.error_kind == "EmptyResultError"
    assert run.crops == ()


async def test_multi_page_labels_carry_page_number(pdf_bytes):
    detector = ScriptedDetector([regions_json(QUESTION_1), "[]"])
    workflow = make_workflow(detector)

    await workflow.load_document(pdf_bytes(2), "exam.pdf")
    run = await workflow.process("every question")

    assert run.status == RunStatus.SUCCESS
    assert [c.label for c in run.crops] == ["Page 1 - Question 1"]
    assert run.crops[0].page_index == 0
    assert [index for index, _ in detector.calls] == [0, 1]


async def test_missing_api_key_fails_without_request(square_png, monkeypatch):
    def fail_client(*args, **kwargs):
        raise AssertionError("client built without an API key")

    monkeypatch.setattr(gemini_provider.genai, "Client", fail_client)
    workflow = make_workflow(GeminiProvider(api_key=""))

    await workflow.load_document(square_png, "exam.png")
    run = await workflow.process("every question")

    assert run.status == RunStatus.ERROR
    assert run.error_kind == "MissingAPIKeyError"
    assert run.crops == ()


async def test_single_page_label_is_unchanged(square_png):
    workflow = make_workflow(ScriptedDetector([regions_json(("Câu 1", (100, 50, 250, 950)))]))

    await workflow.load_document(square_png, "de-thi.png")
    run = await workflow.process("tất cả câu hỏi")

    assert run.crops[0].label == "Câu 1"


async def test_custom_multi_page_label(pdf_bytes):
    config = WorkflowConfig(multi_page_label="p{page}: {label}")
    workflow = make_workflow(ScriptedDetector(["[]", regions_json(QUESTION_1)]), config=config)

    await workflow.load_document(pdf_bytes(2), "exam.pdf")
    run = await workflow.process("every question")

    assert [c.label for c in run.crops] == ["p2: Question 1"]
    assert run.crops[0].page_index == 1


# ==================== Progress and transitions ====================

async def test_transitions_and_progress_single_page(square_png):
    recorder = Recorder()
    workflow = make_workflow(ScriptedDetector([regions_json(QUESTION_1)]), recorder)

    await workflow.load_document(square_png, "exam.png")
    await workflow.process("every question")

    assert recorder.transitions == [
        RunStatus.UPLOADING,
        RunStatus.IDLE,
        RunStatus.PROCESSING,
        RunStatus.SUCCESS,
    ]
    assert recorder.progress == [20, 60, 100]


async def test_progress_two_pages_is_monotonic(pdf_bytes):
    recorder = Recorder()
    workflow = make_workflow(ScriptedDetector([regions_json(QUESTION_1), regions_json(QUESTION_2)]), recorder)

    await workflow.load_document(pdf_bytes(2), "exam.pdf")
    await workflow.process("every question")

    processing = [r.progress for r in recorder.runs if r.run_id == workflow.run.run_id]
    assert processing == [5, 10, 30, 50, 60, 80, 100, 100]
    assert processing == sorted(processing)


async def test_progress_rounds_half_up(pdf_bytes):
    recorder = Recorder()
    workflow = make_workflow(ScriptedDetector(["[]", "[]", regions_json(QUESTION_1)]), recorder)

    await workflow.load_document(pdf_bytes(3), "exam.pdf")
    await workflow.process("every question")

    # 33.33 per page: 6.67, 20, 33.33, 40, 53.33, 66.67, 73.33, 86.67, 100
    assert recorder.progress == [7, 20, 33, 40, 53, 67, 73, 87, 100]


async def test_async_callbacks_are_awaited(square_png):
    seen = []

    async def on_transition(run):
        seen.append(run.status)

    workflow = CropWorkflow(
        detector_factory=lambda: ScriptedDetector([regions_json(QUESTION_1)]),
        callbacks=WorkflowCallbacks(on_transition=on_transition),
    )

    await workflow.load_document(square_png, "exam.png")
    await workflow.process("every question")

    assert seen[-1] == RunStatus.SUCCESS


async def test_detector_is_built_per_run(square_png):
    built = []

    def factory():
        detector = ScriptedDetector([regions_json(QUESTION_1)])
        built.append(detector)
        return detector

    workflow = CropWorkflow(detector_factory=factory)
    await workflow.load_document(square_png, "exam.png")
    await workflow.process("every question")
    await workflow.process("every question")

    assert len(built) == 2


# ==================== Failures ====================

async def test_upstream_error_discards_partial_crops(pdf_bytes):
    detector = ScriptedDetector([regions_json(QUESTION_1), UpstreamError("service unavailable")])
    workflow = make_workflow(detector)

    await workflow.load_document(pdf_bytes(2), "exam.pdf")
    run = await workflow.process("every question")

    assert run.status == RunStatus.ERROR
    assert run.error == "service unavailable"
    assert run.error_kind == "UpstreamError"
    assert run.crops == ()


async def test_schema_error_fails_run(square_png):
    workflow = make_workflow(ScriptedDetector(['[{"label": "Q"}]']))

    await workflow.load_document(square_png, "exam.png")
    run = await workflow.process("every question")

    assert run.status == RunStatus.ERROR
    assert run.error_kind == "SchemaError"


async def test_degenerate_region_is_skipped(square_png):
    inverted = ("Broken", (400, 900, 300, 100))
    workflow = make_workflow(ScriptedDetector([regions_json(inverted, QUESTION_1)]))

    await workflow.load_document(square_png, "exam.png")
    run = await workflow.process("every question")

    assert run.status == RunStatus.SUCCESS
    assert [c.label for c in run.crops] == ["Question 1"]


async def test_only_degenerate_regions_is_empty_result(square_png):
    workflow = make_workflow(ScriptedDetector([regions_json(("Broken", (400, 900, 300, 100)))]))

    await workflow.load_document(square_png, "exam.png")
    run = await workflow.process("every question")

    assert run.error_kind == "EmptyResultError"


async def test_unexpected_exception_sets_error_and_propagates(square_png):
    workflow = make_workflow(ScriptedDetector([RuntimeError("bug")]))
    await workflow.load_document(square_png, "exam.png")

    with pytest.raises(RuntimeError):
        await workflow.process("every question")

    assert workflow.run.status == RunStatus.ERROR
    assert workflow.run.error_kind == "RuntimeError"


async def test_unreadable_upload_is_error_run():
    recorder = Recorder()
    workflow = make_workflow(ScriptedDetector([]), recorder)

    run = await workflow.load_document(b"plain text, not a document", "notes.txt")

    assert run.status == RunStatus.ERROR
    assert run.error_kind == "UnsupportedFormatError"
    assert recorder.transitions == [RunStatus.UPLOADING, RunStatus.ERROR]
    assert workflow.pages == ()


# ==================== Guards ====================

async def test_process_without_document():
    workflow = make_workflow(ScriptedDetector([]))

    with pytest.raises(RunStateError):
        await workflow.process("every question")


@pytest.mark.parametrize("instruction", ["", "   "])
async def test_process_with_blank_instruction(square_png, instruction):
    detector = ScriptedDetector([])
    workflow = make_workflow(detector)
    await workflow.load_document(square_png, "exam.png")

    with pytest.raises(RunStateError):
        await workflow.process(instruction)

    assert detector.calls == []
    assert workflow.run.status == RunStatus.IDLE


class HookedDetector(ScriptedDetector):
    """Runs a coroutine before answering, to act while a run is in flight."""

    def __init__(self, responses, hook):
        super().__init__(responses)
        self.hook = hook

    async def _request_detection(self, page, instruction):
        await self.hook()
        return await super()._request_detection(page, instruction)


async def test_second_process_while_processing_is_rejected(square_png):
    rejected = []

    async def hook():
        with pytest.raises(RunStateError):
            await workflow.process("again")
        rejected.append(True)

    workflow = make_workflow(HookedDetector([regions_json(QUESTION_1)], hook))
    await workflow.load_document(square_png, "exam.png")
    run = await workflow.process("every question")

    assert rejected == [True]
    assert run.status == RunStatus.SUCCESS


async def test_reset_during_run_drops_its_results(square_png):
    recorder = Recorder()

    async def hook():
        await workflow.reset()

    workflow = make_workflow(HookedDetector([regions_json(QUESTION_1)], hook), recorder)
    await workflow.load_document(square_png, "exam.png")
    run = await workflow.process("every question")

    assert run.status == RunStatus.IDLE
    assert run.crops == ()
    assert RunStatus.SUCCESS not in recorder.transitions
    assert workflow.pages == ()


async def test_new_upload_during_run_wins(square_png, image_bytes):
    other = image_bytes("PNG", size=(300, 200))

    async def hook():
        await workflow.load_document(other, "other.png")

    workflow = make_workflow(HookedDetector([regions_json(QUESTION_1)], hook))
    await workflow.load_document(square_png, "exam.png")
    run = await workflow.process("every question")

    assert run.status == RunStatus.IDLE
    assert run.filename == "other.png"
    assert workflow.pages[0].width == 300


# ==================== Archive and reset ====================

async def test_build_archive_from_run(square_png):
    workflow = make_workflow(ScriptedDetector([regions_json(QUESTION_1, QUESTION_2)]))
    await workflow.load_document(square_png, "exam.png")
    run = await workflow.process("every question")

    with zipfile.ZipFile(io.BytesIO(workflow.build_archive())) as zf:
        assert zf.namelist() == ["question_1_1.jpg", "question_2_2.jpg"]
        assert zf.read("question_1_1.jpg") == run.crops[0].image_bytes


async def test_reprocess_replaces_results(square_png):
    detector = ScriptedDetector([regions_json(QUESTION_1, QUESTION_2), regions_json(QUESTION_2)])
    workflow = make_workflow(detector)
    await workflow.load_document(square_png, "exam.png")

    first = await workflow.process("every question")
    second = await workflow.process("only question 2")

    assert len(first.crops) == 2
    assert [c.label for c in second.crops] == ["Question 2"]
    assert second.run_id > first.run_id
    assert second.instruction == "only question 2"


async def test_reset_clears_everything(square_png):
    workflow = make_workflow(ScriptedDetector([regions_json(QUESTION_1)]))
    await workflow.load_document(square_png, "exam.png")
    await workflow.process("every question")

    run = await workflow.reset()

    assert run.status == RunStatus.IDLE
    assert run.crops == ()
    assert run.filename is None
    assert workflow.pages == ()


async def test_slightly_inverted_region_is_skipped(square_png):
    slightly_inverted = ("Broken", (500, 100, 490, 800))
    workflow = make_workflow(ScriptedDetector([regions_json(slightly_inverted, QUESTION_1)]))

    await workflow.load_document(square_png, "exam.png")
    run = await workflow.process("every question")

    assert [c.label for c in run.crops] == ["Question 1"]
