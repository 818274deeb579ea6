import pytest

from petdealz.errors import PolicyViolation
from petdealz.policy import PhoneNumberPolicy


@pytest.fixture
def policy():
    return PhoneNumberPolicy()


@pytest.mark.parametrize(
    "description",
    [
        "call 5551234567",
        "5551234567",
        "text me at 555123456789 anytime",
        "call5551234567now",
    ],
)
def test_rejects_runs_of_ten_or_more_digits(policy, description):
    violation = policy.validate(description)
    assert isinstance(violation, PolicyViolation)
    assert violation.rule == "no-phone-numbers"
    assert "Phone numbers" in violation.message


@pytest.mark.parametrize(
    "description",
    [
        "friendly",
        "",
        "born 2024, 3 siblings, 555-123-4567",
        "microchip 123456789",
    ],
)
def test_allows_text_without_long_digit_runs(policy, description):
    assert policy.validate(description) is None
