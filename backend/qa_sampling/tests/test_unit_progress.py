from qa_sampling import models, schemas
from qa_sampling.services.unit_progress import compute_unit_progress


def _item(**reviews):
    return {"reviews": {role: {"completed": done} for role, done in reviews.items()}}


def test_scenario_trainer_and_iqa_counts():
    items = [
        _item(Trainer=True, IQA=True),
        _item(Trainer=True),
        _item(),
    ]
    progress = compute_unit_progress(items)
    assert progress == schemas.UnitProgress(pending_trainer_map=1, pending_iqa_map=1, iqa_checked=1, total=3)


def test_item_without_reviews_is_only_pending_trainer():
    progress = compute_unit_progress([{"reviews": {}}])
    assert progress.pending_trainer_map == 1
    assert progress.pending_iqa_map == 0


def test_iqa_completion_without_trainer_is_never_pending_iqa():
    progress = compute_unit_progress([_item(Trainer=False, IQA=False), _item(IQA=True)])
    assert progress.pending_iqa_map == 0
    assert progress.pending_trainer_map == 2
    assert progress.iqa_checked == 1


def test_repeated_calls_are_identical():
    items = [_item(Trainer=True), _item(Trainer=True, IQA=True), _item(Employer=True)]
    assert compute_unit_progress(items) == compute_unit_progress(items)


def test_pending_trainer_only_moves_on_trainer_completion():
    items = [_item(), _item()]
    baseline = compute_unit_progress(items).pending_trainer_map

    for role in ("IQA", "LIQA", "EQA", "Employer", "Learner", "Admin"):
        items[0]["reviews"][role] = {"completed": True}
        assert compute_unit_progress(items).pending_trainer_map == baseline

    items[0]["reviews"]["Trainer"] = {"completed": True}
    assert compute_unit_progress(items).pending_trainer_map == baseline - 1


def test_accepts_orm_rows_and_schemas():
    evidence = models.EvidenceItem(title="E1", unit_code="U1")
    evidence.reviews = [
        models.EvidenceReview(role="Trainer", completed=True, comment="ok"),
        models.EvidenceReview(role="IQA", completed=False, comment=""),
    ]
    schema_item = schemas.EvidenceItemOut(
        assignment_id="00000000-0000-0000-0000-000000000001",
        sampled_unit_id="00000000-0000-0000-0000-000000000002",
        unit_code="U1",
        title="E2",
        reviews={"Trainer": schemas.ReviewEntry(completed=True), "IQA": schemas.ReviewEntry(completed=True)},
    )
    progress = compute_unit_progress([evidence, schema_item])
    assert progress == schemas.UnitProgress(pending_trainer_map=0, pending_iqa_map=1, iqa_checked=1, total=2)


def test_inconsistent_input_does_not_raise():
    junk = [None, 42, "text", {"reviews": "broken"}, {"reviews": [{"role": 7}, None]}, {"reviews": {"Trainer": None}}]
    progress = compute_unit_progress(junk)
    assert progress.total == 6
    assert progress.pending_trainer_map == 6
    assert progress.pending_iqa_map == 0
    assert compute_unit_progress(None) == schemas.UnitProgress()
    assert compute_unit_progress(12) == schemas.UnitProgress()
