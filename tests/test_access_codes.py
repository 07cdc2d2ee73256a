import json
import pytest
import re
from datetime import datetime, timezone

from parkpass.domain.access_codes import (
    LegacyToken,
    PinCode,
    QrPayload,
    build_qr_payload,
    generate_pin,
    is_pin,
    new_qr_token,
    parse_scan_code,
    random_pin,
)
from parkpass.domain.exceptions import InvalidSelection


class TestQrPayload:
    def test_payload_round_trip(self):
        issued_at = datetime(2030, 1, 7, 2, 0, tzinfo=timezone.utc)
        raw = build_qr_payload("booking-1", "spot-9", issued_at)
        parsed = parse_scan_code(raw)
        assert parsed == QrPayload(booking_id="booking-1", spot_id="spot-9", timestamp=issued_at.isoformat())

    def test_payload_keys(self):
        data = json.loads(build_qr_payload("b", "s", datetime(2030, 1, 7, tzinfo=timezone.utc)))
        assert set(data) == {"type", "bookingId", "spotId", "timestamp"}
        assert data["type"] == "parking_verification"

    def test_token_format(self):
        assert re.fullmatch(r"PK-[0-9A-F]{12}", new_qr_token())
        assert new_qr_token() != new_qr_token()


class TestPin:
    def test_pin_is_stable(self):
        assert generate_pin("booking-1", "spot-1") == generate_pin("booking-1", "spot-1")

    def test_pin_is_always_four_digits(self):
        for i in range(200):
            pin = generate_pin(f"booking-{i}", f"spot-{i % 7}")
            assert is_pin(pin)
            assert 1000 <= int(pin) <= 9999

    def test_random_pin(self):
        for _ in range(50):
            assert 1000 <= int(random_pin()) <= 9999

    def test_is_pin(self):
        assert is_pin("0042")
        assert not is_pin("123")
        assert not is_pin("12345")
        assert not is_pin("12a4")


class TestParseScanCode:
    def test_pin(self):
        assert parse_scan_code(" 4821 ") == PinCode(pin="4821")

    def test_legacy_token(self):
        assert parse_scan_code("PK-ABCDEF123456") == LegacyToken(token="PK-ABCDEF123456")

    def test_empty_code(self):
        with pytest.raises(InvalidSelection):
            parse_scan_code("  ")

    @pytest.mark.parametrize("raw", [
        "{not json",
        '{"type": "something_else", "bookingId": "b"}',
        '{"type": "parking_verification"}',
        '{"type": "parking_verification", "bookingId": ""}',
        '{"type": "parking_verification", "bookingId": "b"}',
        '{"type": "parking_verification", "bookingId": "b", "spotId": ""}',
    ])
    def test_invalid_qr(self, raw):
        with pytest.raises(InvalidSelection, match="Invalid QR format"):
            parse_scan_code(raw)

    def test_payload_without_spot_is_rejected(self):
        with pytest.raises(InvalidSelection, match="missing spotId"):
            parse_scan_code('{"type":"parking_verification","bookingId":"b"}')
