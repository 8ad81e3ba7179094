"""Manual presentation checks attested by an operator."""

from collections.abc import Sequence

from game_qc_runner.models.check import Check
from game_qc_runner.release.models import ManualValidation

MANUAL_CHECKS: Sequence[tuple[str, str, str]] = (
    ("MANUAL_NO_AUTOPLAY", "no_autoplay", "Audio or video started without a user gesture"),
    ("MANUAL_NO_WHITE_SCREEN", "no_white_screen", "A blank frame was shown"),
    ("MANUAL_GESTURE_OK", "gesture_ok", "Touch gesture did not work"),
)


def evaluate_manual(manual: ManualValidation) -> Sequence[Check]:
    """Turn operator attestations into blocker checks."""
    return [
        Check(
            id=check_id,
            severity="blocker",
            ok=getattr(manual, field_name),
            message=None if getattr(manual, field_name) else failure,
        )
        for check_id, field_name, failure in MANUAL_CHECKS
    ]
