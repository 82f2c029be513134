"""Unit tests for auth/biometrics.py -- the PIN-backed unlock prompt."""

import pytest

from auth.biometrics import PinBiometrics, hash_pin, verify_pin


@pytest.fixture(scope="module")
def pin_hash() -> str:
    return hash_pin("2468")


class TestPinBiometrics:
    def test_unavailable_without_hash(self):
        prompt_calls = []
        bio = PinBiometrics("", prompt=prompt_calls.append)
        assert bio.is_available() is False
        result = bio.evaluate("unlock")
        assert (result.success, result.reason) == (False, "unavailable")
        assert prompt_calls == []

    def test_correct_pin_succeeds(self, pin_hash):
        bio = PinBiometrics(pin_hash, prompt=lambda msg: "2468")
        assert bio.evaluate("unlock").success is True

    def test_wrong_pin_fails(self, pin_hash):
        result = PinBiometrics(pin_hash, prompt=lambda msg: "0000").evaluate("unlock")
        assert (result.success, result.reason) == (False, "mismatch")

    @pytest.mark.parametrize("exc", [EOFError, KeyboardInterrupt])
    def test_dismissed_prompt_is_cancellation(self, pin_hash, exc):
        def prompt(msg):
            raise exc

        result = PinBiometrics(pin_hash, prompt=prompt).evaluate("unlock")
        assert (result.success, result.reason) == (False, "cancelled")

    def test_prompt_shows_reason(self, pin_hash):
        seen = []
        PinBiometrics(pin_hash, prompt=lambda msg: seen.append(msg) or "2468").evaluate("Open receipts")
        assert seen[0].startswith("Open receipts")


def test_verify_pin_with_malformed_hash():
    assert verify_pin("2468", "not-a-bcrypt-hash") is False
