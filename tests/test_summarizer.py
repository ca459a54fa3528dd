from builders import assessment, control

from risk_rollup.domain.bands import RiskBand
from risk_rollup.domain.dots import DotColor
from risk_rollup.engine.summarizer import StepSummarizer, is_training_recommendation


def test_worst_band_across_assessments():
    summary = StepSummarizer().summarize(
        [
            assessment("a1", existing="LOW"),
            assessment("a2", existing="HIGH"),
            assessment("a3", existing="MEDIUM"),
        ]
    )
    assert summary.current_rank == 5
    assert summary.worst_existing_band == RiskBand.HIGH
    assert summary.is_high_risk


def test_no_assessments_is_gray():
    summary = StepSummarizer().summarize([])
    assert summary.dot == DotColor.GRAY
    assert summary.worst_existing_band is None
    assert summary.worst_predicted_band is None


def test_high_without_predicted_score_is_red():
    summary = StepSummarizer().summarize([assessment("a1", existing="HIGH")])
    assert summary.dot == DotColor.RED


def test_very_high_mitigated_to_very_low_is_orange():
    summary = StepSummarizer().summarize([assessment("a1", existing="VERY_HIGH", new="VERY_LOW")])
    assert summary.current_rank == 6
    assert summary.predicted_rank == 1
    assert summary.dot == DotColor.ORANGE


def test_predicted_worst_comes_from_any_assessment():
    summary = StepSummarizer().summarize(
        [
            assessment("a1", existing="HIGH", new="LOW"),
            assessment("a2", existing="MEDIUM", new="MEDIUM_PLUS"),
        ]
    )
    assert summary.worst_predicted_band == RiskBand.MEDIUM_PLUS
    assert summary.dot == DotColor.RED


def test_training_only_counts_additional_controls():
    existing_only = StepSummarizer().summarize(
        [assessment("a1", existing="HIGH", controls=[control("c1", phase="EXISTING", type="TRAINING")])]
    )
    assert not existing_only.has_training_recommendation

    additional = StepSummarizer().summarize(
        [assessment("a1", existing="HIGH", controls=[control("c1", type="TRAINING", category_id="cat-admin")])]
    )
    assert additional.training_fixable


def test_training_fixable_needs_high_risk():
    summary = StepSummarizer().summarize(
        [assessment("a1", existing="MEDIUM", controls=[control("c1", type="TRAINING")])]
    )
    assert summary.has_training_recommendation
    assert not summary.training_fixable


def test_training_heuristic_is_a_substring_match():
    assert is_training_recommendation("TRAINING", "")
    assert is_training_recommendation("ADMIN", "Operator Training on LOTO")
    # known false positive and false negative of the description match
    assert is_training_recommendation("OTHER", "Restrain the load before lifting")
    assert not is_training_recommendation("ADMIN", "Toolbox talk on pinch points")


def test_blank_keyword_never_matches_a_description():
    guard = control("c1", type="OTHER", description="Fit a guard", category_id="cat-eng")
    summary = StepSummarizer(training_keyword="").summarize([assessment("a1", existing="HIGH", controls=[guard])])
    assert not summary.has_training_recommendation
    assert not summary.training_fixable
    assert not is_training_recommendation("OTHER", "Fit a guard", "  ")
    assert is_training_recommendation("TRAINING", "Fit a guard", "")
