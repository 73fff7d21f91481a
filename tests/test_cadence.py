"""
Tests for the cadence table
"""

import pytest

from somiti.cadence import (
    InstallmentType, INTERVAL_DAYS, interval_days, require_installment_type
)
from somiti.errors import InvalidCadenceError, ValidationError


class TestIntervalDays:
    """Label to interval lookup"""

    @pytest.mark.parametrize("label,days", [
        ("daily", 1),
        ("weekly", 7),
        ("biweekly", 15),
        ("monthly", 30),
        ("semiannual", 180),
    ])
    def test_fixed_intervals(self, label, days):
        assert interval_days(label) == days

    @pytest.mark.parametrize("label,days", [
        ("দৈনিক", 1),
        ("সাপ্তাহিক", 7),
        ("পাক্ষিক", 15),
        ("মাসিক", 30),
        ("৬-মাসিক", 180),
    ])
    def test_bengali_labels(self, label, days):
        assert interval_days(label) == days

    def test_labels_are_case_and_space_insensitive(self):
        assert interval_days("  Monthly ") == 30
        assert interval_days("WEEKLY") == 7

    @pytest.mark.parametrize("label", ["yearly", "", None, 30, "month"])
    def test_unknown_label_gives_zero(self, label):
        assert interval_days(label) == 0

    def test_enum_members_resolve(self):
        assert interval_days(InstallmentType.BIWEEKLY) == 15
        assert InstallmentType.SEMIANNUAL.interval_days == 180

    def test_monthly_is_flat_thirty_days(self):
        assert INTERVAL_DAYS[InstallmentType.MONTHLY] == 30


class TestRequireInstallmentType:

    def test_returns_enum(self):
        assert require_installment_type("daily") is InstallmentType.DAILY

    def test_unknown_raises(self):
        with pytest.raises(InvalidCadenceError) as exc_info:
            require_installment_type("quarterly")
        assert exc_info.value.installment_type == "quarterly"

    def test_invalid_cadence_is_a_validation_error(self):
        with pytest.raises(ValidationError):
            require_installment_type("fortnight-ish")
