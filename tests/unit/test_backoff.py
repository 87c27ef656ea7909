from __future__ import annotations

from datetime import timedelta

import pytest

from appeal_automation.application.services.backoff import compute_retry_delay


@pytest.mark.parametrize(
    ("attempt", "seconds"),
    [(1, 5), (2, 10), (3, 20), (4, 40), (6, 160), (7, 300), (20, 300)],
)
def test_retry_delay_grows_exponentially_up_to_cap(attempt: int, seconds: int) -> None:
    assert compute_retry_delay(attempt) == timedelta(seconds=seconds)


def test_retry_delay_rejects_non_positive_attempt() -> None:
    with pytest.raises(ValueError):
        compute_retry_delay(0)
