import pytest

from gearshare.errors import ValidationError
from gearshare.services.condition_diff import ConditionDiff, normalize_checklist


def test_screen_damaged_at_return_is_degraded():
    report = ConditionDiff.diff(
        [{"item": "Screen", "status": "good"}],
        [{"item": "Screen", "status": "damaged"}],
    )

    assert report.has_degraded
    assert {"item": "Screen", "from": "good", "to": "damaged"} in report.as_dict()["degraded_items"]


def test_item_only_present_at_return_is_not_flagged():
    report = ConditionDiff.diff(
        [{"item": "Screen", "status": "good"}],
        [{"item": "Screen", "status": "good"}, {"item": "Tripod", "status": "damaged"}],
    )

    assert not report.has_degraded
    assert report.degraded_items == ()


def test_improvement_and_equal_condition_are_not_degradation():
    report = ConditionDiff.diff(
        [{"item": "Lens", "status": "fair"}, {"item": "Body", "status": "good"}],
        [{"item": "Lens", "status": "good"}, {"item": "Body", "status": "good"}],
    )

    assert not report.has_degraded


def test_degradations_keep_return_order():
    report = ConditionDiff.diff(
        [{"item": "A", "status": "good"}, {"item": "B", "status": "good"}],
        [{"item": "B", "status": "fair"}, {"item": "A", "status": "damaged"}],
    )

    assert [item.item for item in report.degraded_items] == ["B", "A"]


def test_summarize_counts_every_status():
    assert ConditionDiff.summarize(
        [{"item": "A", "status": "good"}, {"item": "B", "status": "damaged"}, {"item": "C", "status": "good"}]
    ) == {"good": 2, "fair": 0, "damaged": 1}


@pytest.mark.parametrize(
    "checklist",
    [
        [{"item": "", "status": "good"}],
        [{"item": "Lens", "status": "broken"}],
        [{"item": "Lens", "status": "good"}, {"item": "Lens", "status": "fair"}],
    ],
)
def test_invalid_checklists_are_rejected(checklist):
    with pytest.raises(ValidationError):
        normalize_checklist(checklist)


def test_normalize_trims_and_lowercases():
    assert normalize_checklist([{"item": " Lens ", "status": "GOOD", "notes": ""}]) == [
        {"item": "Lens", "status": "good", "notes": None}
    ]


def test_diff_accepts_mixed_case_statuses():
    report = ConditionDiff.diff(
        [{"item": "Lens", "status": "Good"}],
        [{"item": "Lens", "status": " DAMAGED "}],
    )

    assert [item.as_dict() for item in report.degraded_items] == [{"item": "Lens", "from": "good", "to": "damaged"}]


def test_diff_rejects_unknown_status():
    with pytest.raises(ValidationError):
        ConditionDiff.diff([{"item": "Lens", "status": "good"}], [{"item": "Lens", "status": "shattered"}])
