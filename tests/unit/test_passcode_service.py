"""
Unit tests for PasscodeService.

Tests passcode issuance, delivery, verification outcomes and the
attempt limit under concurrent verification.
"""

from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace

import pytest

from rideauth.services import AuthFailure, PasscodeService


class TestRequestPasscode:
    """Tests for passcode requests."""

    @pytest.mark.unit
    def test_request_sends_sms(self, passcode_service, gateway, test_config):
        result = passcode_service.request_passcode(test_config["test_phone"])

        assert result.success is True
        assert result.phone == test_config["test_phone"]
        assert result.code is None
        assert len(gateway.sent) == 1

        to, message = gateway.sent[0]
        assert to == test_config["test_phone"]
        assert message == f"Your OTP code is {gateway.last_code}. It expires in 5 minutes."

    @pytest.mark.unit
    def test_request_stores_record(self, passcode_service, passcode_store, gateway, clock, test_config):
        passcode_service.request_passcode(test_config["test_phone"])

        record = passcode_store.get(test_config["test_phone"])

        assert record.code == gateway.last_code
        assert record.attempts == 0
        assert record.expires_at == clock() + test_config["ttl_seconds"]

    @pytest.mark.unit
    def test_request_normalizes_phone(self, passcode_service, passcode_store):
        result = passcode_service.request_passcode("+94 77 123 4567")

        assert result.phone == "+94771234567"
        assert passcode_store.get("+94771234567") is not None

    @pytest.mark.unit
    def test_request_creates_unverified_user(self, passcode_service, user_store, test_config):
        passcode_service.request_passcode(test_config["test_phone"])

        user = user_store.get_by_phone(test_config["test_phone"])

        assert user is not None
        assert user.is_verified is False

    @pytest.mark.unit
    @pytest.mark.parametrize("phone", ["", "0771234567", "+0771234567", "+94abc", "+1234"])
    def test_request_invalid_phone(self, passcode_service, gateway, phone):
        result = passcode_service.request_passcode(phone)

        assert result.success is False
        assert result.reason == AuthFailure.VALIDATION_ERROR
        assert gateway.sent == []

    @pytest.mark.unit
    def test_gateway_failure_keeps_record(self, passcode_service, passcode_store, gateway, test_config):
        gateway.fail_with = "provider down"

        result = passcode_service.request_passcode(test_config["test_phone"])

        assert result.success is False
        assert result.reason == AuthFailure.GATEWAY_FAILURE
        assert result.error == "provider down"
        assert result.code is None
        assert passcode_store.get(test_config["test_phone"]) is not None

    @pytest.mark.unit
    def test_generated_codes_are_six_digits(self, passcode_service):
        codes = [passcode_service.generate_code() for _ in range(50)]

        assert all(len(code) == 6 and code.isdigit() for code in codes)

    @pytest.mark.unit
    def test_expose_code(self, passcode_store, user_store, gateway, otp_config, clock, test_config):
        service = PasscodeService(
            passcode_store, user_store, gateway, replace(otp_config, expose_code=True), clock
        )

        result = service.request_passcode(test_config["test_phone"])

        assert result.code == gateway.last_code


class TestVerifyPasscode:
    """Tests for passcode verification."""

    @pytest.mark.unit
    def test_verify_success_consumes_record(self, passcode_service, passcode_store, fixed_code, test_config):
        passcode_service.request_passcode(test_config["test_phone"])

        result = passcode_service.verify_passcode(test_config["test_phone"], fixed_code)

        assert result.success is True
        assert passcode_store.get(test_config["test_phone"]) is None

        again = passcode_service.verify_passcode(test_config["test_phone"], fixed_code)
        assert again.reason == AuthFailure.NOT_FOUND

    @pytest.mark.unit
    def test_verify_without_request(self, passcode_service, test_config):
        result = passcode_service.verify_passcode(test_config["test_phone"], "123456")

        assert result.success is False
        assert result.reason == AuthFailure.NOT_FOUND
        assert result.message == "OTP not found. Please request a new OTP."

    @pytest.mark.unit
    def test_wrong_code_counts_down(self, passcode_service, passcode_store, fixed_code, test_config):
        passcode_service.request_passcode(test_config["test_phone"])

        remaining = []
        for _ in range(test_config["max_attempts"] - 1):
            result = passcode_service.verify_passcode(test_config["test_phone"], "000000")
            assert result.reason == AuthFailure.INVALID_CODE
            assert result.message == "Invalid OTP"
            remaining.append(result.attempts_remaining)

        assert remaining == [4, 3, 2, 1]
        assert passcode_store.get(test_config["test_phone"]).attempts == 4

        final = passcode_service.verify_passcode(test_config["test_phone"], "000000")
        assert final.reason == AuthFailure.TOO_MANY_ATTEMPTS
        assert final.attempts_remaining is None
        assert passcode_store.get(test_config["test_phone"]) is None

    @pytest.mark.unit
    def test_correct_code_after_lockout(self, passcode_service, fixed_code, test_config):
        """Once the limit is hit, even the right code needs a new request."""
        passcode_service.request_passcode(test_config["test_phone"])
        for _ in range(test_config["max_attempts"]):
            passcode_service.verify_passcode(test_config["test_phone"], "000000")

        result = passcode_service.verify_passcode(test_config["test_phone"], fixed_code)

        assert result.reason == AuthFailure.NOT_FOUND

    @pytest.mark.unit
    def test_correct_code_after_some_failures(self, passcode_service, fixed_code, test_config):
        passcode_service.request_passcode(test_config["test_phone"])
        passcode_service.verify_passcode(test_config["test_phone"], "000000")
        passcode_service.verify_passcode(test_config["test_phone"], "111111")

        assert passcode_service.verify_passcode(test_config["test_phone"], fixed_code).success is True

    @pytest.mark.unit
    def test_expired_code(self, passcode_service, passcode_store, fixed_code, clock, test_config):
        passcode_service.request_passcode(test_config["test_phone"])

        clock.advance(test_config["ttl_seconds"])
        result = passcode_service.verify_passcode(test_config["test_phone"], fixed_code)

        assert result.reason == AuthFailure.EXPIRED
        assert passcode_store.get(test_config["test_phone"]) is None

    @pytest.mark.unit
    def test_expiry_checked_before_code(self, passcode_service, fixed_code, clock, test_config):
        passcode_service.request_passcode(test_config["test_phone"])

        clock.advance(test_config["ttl_seconds"] + 1)

        assert passcode_service.verify_passcode(test_config["test_phone"], "000000").reason == AuthFailure.EXPIRED

    @pytest.mark.unit
    def test_just_before_expiry(self, passcode_service, fixed_code, clock, test_config):
        passcode_service.request_passcode(test_config["test_phone"])

        clock.advance(test_config["ttl_seconds"] - 1)

        assert passcode_service.verify_passcode(test_config["test_phone"], fixed_code).success is True

    @pytest.mark.unit
    def test_new_request_invalidates_previous_code(self, passcode_service, passcode_store, gateway, test_config):
        passcode_service.request_passcode(test_config["test_phone"])
        first = gateway.last_code
        passcode_service.verify_passcode(test_config["test_phone"], "x")

        passcode_service.request_passcode(test_config["test_phone"])
        second = gateway.last_code
        assert passcode_store.get(test_config["test_phone"]).attempts == 0

        if first != second:
            stale = passcode_service.verify_passcode(test_config["test_phone"], first)
            assert stale.reason == AuthFailure.INVALID_CODE
        assert passcode_service.verify_passcode(test_config["test_phone"], second).success is True

    @pytest.mark.unit
    def test_codes_are_per_phone(self, passcode_service, gateway, test_config):
        passcode_service.request_passcode(test_config["test_phone"])
        code = gateway.last_code

        result = passcode_service.verify_passcode(test_config["other_phone"], code)

        assert result.reason == AuthFailure.NOT_FOUND

    @pytest.mark.unit
    def test_verify_missing_code(self, passcode_service, test_config):
        result = passcode_service.verify_passcode(test_config["test_phone"], "")
        assert result.reason == AuthFailure.VALIDATION_ERROR

    @pytest.mark.unit
    def test_verify_accepts_formatted_phone(self, passcode_service, fixed_code):
        passcode_service.request_passcode("+94771234567")

        assert passcode_service.verify_passcode("+94 77-123-4567", fixed_code).success is True

    @pytest.mark.unit
    @pytest.mark.slow
    def test_concurrent_wrong_codes_respect_limit(self, passcode_service, fixed_code, test_config):
        """Parallel wrong guesses never get more than max_attempts tries."""
        phone = test_config["test_phone"]
        passcode_service.request_passcode(phone)

        with ThreadPoolExecutor(max_workers=10) as pool:
            results = list(pool.map(lambda _: passcode_service.verify_passcode(phone, "000000"), range(20)))

        reasons = Counter(r.reason for r in results)
        assert reasons[AuthFailure.INVALID_CODE] == test_config["max_attempts"] - 1
        assert reasons[AuthFailure.TOO_MANY_ATTEMPTS] == 1
        assert reasons[AuthFailure.NOT_FOUND] == 20 - test_config["max_attempts"]

        remaining = sorted(r.attempts_remaining for r in results if r.reason == AuthFailure.INVALID_CODE)
        assert remaining == [1, 2, 3, 4]

    @pytest.mark.unit
    @pytest.mark.slow
    def test_concurrent_correct_code_succeeds_once(self, passcode_service, fixed_code, test_config):
        phone = test_config["test_phone"]
        passcode_service.request_passcode(phone)

        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(lambda _: passcode_service.verify_passcode(phone, fixed_code), range(8)))

        assert sum(1 for r in results if r.success) == 1


class TestPurgeExpired:
    """Tests for the expired passcode purge."""

    @pytest.mark.unit
    def test_purge_expired(self, passcode_service, passcode_store, clock, test_config):
        passcode_service.request_passcode(test_config["test_phone"])
        clock.advance(60)
        passcode_service.request_passcode(test_config["other_phone"])

        clock.advance(test_config["ttl_seconds"] - 30)
        removed = passcode_service.purge_expired()

        assert removed == 1
        assert passcode_store.get(test_config["test_phone"]) is None
        assert passcode_store.get(test_config["other_phone"]) is not None
