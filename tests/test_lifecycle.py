import pytest

from parkpass.domain.common import BookingStatus
from parkpass.domain.exceptions import InvalidTransition
from parkpass.domain.lifecycle import CAPACITY_DELTA, TRANSITIONS, BookingAction, next_status, scan_action


class TestTransitions:
    """The booking state machine."""

    @pytest.mark.parametrize("current, action, expected", [
        (BookingStatus.PENDING, BookingAction.VERIFY, BookingStatus.CONFIRMED),
        (BookingStatus.PENDING, BookingAction.REJECT, BookingStatus.CANCELLED),
        (BookingStatus.PENDING, BookingAction.CANCEL, BookingStatus.CANCELLED),
        (BookingStatus.CONFIRMED, BookingAction.CANCEL, BookingStatus.CANCELLED),
        (BookingStatus.CONFIRMED, BookingAction.ENTER, BookingStatus.ACTIVE),
        (BookingStatus.ACTIVE, BookingAction.EXIT, BookingStatus.COMPLETED),
    ])
    def test_allowed(self, current, action, expected):
        assert next_status(current, action) == expected

    @pytest.mark.parametrize("current, action", [
        (BookingStatus.PENDING, BookingAction.ENTER),
        (BookingStatus.CONFIRMED, BookingAction.VERIFY),
        (BookingStatus.ACTIVE, BookingAction.CANCEL),
        (BookingStatus.COMPLETED, BookingAction.EXIT),
        (BookingStatus.CANCELLED, BookingAction.VERIFY),
    ])
    def test_forbidden(self, current, action):
        with pytest.raises(InvalidTransition) as exc_info:
            next_status(current, action)
        assert exc_info.value.current == current.value
        assert exc_info.value.action == action.value

    def test_accepts_plain_strings(self):
        assert next_status("active", "exit") == BookingStatus.COMPLETED

    def test_terminal_states_allow_nothing(self):
        assert not [key for key in TRANSITIONS if key[0] in (BookingStatus.COMPLETED, BookingStatus.CANCELLED)]


class TestScanAction:
    def test_scan_moves_through_the_gate(self):
        assert scan_action(BookingStatus.CONFIRMED) == BookingAction.ENTER
        assert scan_action(BookingStatus.ACTIVE) == BookingAction.EXIT

    def test_finished_bookings_need_no_action(self):
        assert scan_action(BookingStatus.COMPLETED) is None
        assert scan_action(BookingStatus.CANCELLED) is None

    def test_pending_booking_cannot_be_scanned(self):
        with pytest.raises(InvalidTransition, match="scan"):
            scan_action(BookingStatus.PENDING)


def test_only_gate_actions_move_capacity():
    assert CAPACITY_DELTA == {BookingAction.ENTER: -1, BookingAction.EXIT: 1}
