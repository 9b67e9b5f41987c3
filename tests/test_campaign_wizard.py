import pytest

from crm.core.errors import ValidationFailed
from crm.services import campaign_wizard as wizard
from crm.services.campaign_wizard import DEFAULT_MESSAGES, WizardState


def _at(step, **kw):
    return WizardState(step=step, **kw)


class TestNavigation:
    def test_guards(self):
        assert not wizard.can_proceed(_at("event"))
        assert wizard.can_proceed(_at("event", event_id=1))
        assert not wizard.can_proceed(_at("participants", event_id=1))
        assert wizard.can_proceed(_at("participants", event_id=1, selected_participant_ids=[3]))
        assert wizard.can_proceed(_at("type"))
        assert not wizard.can_proceed(_at("message", message="   "))
        assert not wizard.can_proceed(_at("message", send_whatsapp=False, send_email=False))
        assert wizard.can_proceed(_at("message", send_whatsapp=False, send_email=True))

    def test_next_is_blocked_by_guard(self):
        state = wizard.initial_state()
        assert wizard.next_step(state).step == "event"
        state = wizard.select_event(state, 10)
        assert wizard.next_step(state).step == "participants"

    def test_prev_and_bounds(self):
        assert wizard.prev_step(_at("event")).step == "event"
        assert wizard.prev_step(_at("message")).step == "type"
        assert wizard.next_step(_at("review")).step == "review"

    def test_go_to_step(self):
        state = _at("participants", event_id=1)
        assert wizard.go_to_step(state, "event").step == "event"
        # guarda atual falha: não avança
        assert wizard.go_to_step(state, "message").step == "participants"
        state = wizard.toggle_participant(state, 5)
        assert wizard.go_to_step(state, "message").step == "message"
        assert wizard.go_to_step(state, "inexistente").step == "participants"


class TestEditing:
    def test_changing_event_clears_selection(self):
        state = _at("participants", event_id=1, selected_participant_ids=[1, 2])
        assert wizard.select_event(state, 1).selected_participant_ids == [1, 2]
        assert wizard.select_event(state, 2).selected_participant_ids == []

    def test_toggle_and_select_all(self):
        state = wizard.toggle_participant(_at("participants", event_id=1), 4)
        assert state.selected_participant_ids == [4]
        assert wizard.toggle_participant(state, 4).selected_participant_ids == []

        state = wizard.select_all(state, [4, 5, 6])
        assert state.selected_participant_ids == [4, 5, 6]
        assert wizard.select_all(state, [4, 5, 6]).selected_participant_ids == []

    def test_type_swaps_untouched_default_message(self):
        state = wizard.set_campaign_type(wizard.initial_state(), "rsvp")
        assert state.message == DEFAULT_MESSAGES["rsvp"]

    def test_type_keeps_custom_message(self):
        state = wizard.update_fields(wizard.initial_state(), message="Oi {nome}, até já")
        assert wizard.set_campaign_type(state, "feedback").message == "Oi {nome}, até já"

    def test_update_ignores_unknown_keys(self):
        state = wizard.update_fields(wizard.initial_state(), step="review", event_id=9, campaign_name="Aviso")
        assert state.step == "event"
        assert state.event_id is None
        assert state.campaign_name == "Aviso"

    def test_update_can_clear_optional_fields(self):
        state = wizard.update_fields(wizard.initial_state(), send_mode="scheduled", scheduled_at="2031-01-01T10:00:00Z")
        assert state.scheduled_at is not None
        state = wizard.update_fields(state, scheduled_at=None)
        assert state.scheduled_at is None
        assert state.send_mode == "scheduled"

    def test_update_rejects_invalid_values(self):
        with pytest.raises(ValidationFailed) as exc:
            wizard.update_fields(wizard.initial_state(), send_mode="later")
        assert exc.value.details == {"field": "send_mode"}
        with pytest.raises(ValidationFailed):
            wizard.update_fields(wizard.initial_state(), message=None)

    def test_reset_after_send_opens_history(self):
        state = _at("review", event_id=1, selected_participant_ids=[1], campaign_name="X")
        reset = wizard.reset_after_send(state)
        assert reset == wizard.initial_state(tab="history")

    def test_default_campaign_name(self):
        assert wizard.default_campaign_name(wizard.initial_state(), "Live de Março") == "Aviso - Live de Março"
        state = wizard.set_campaign_type(wizard.initial_state(), "checkin")
        assert wizard.default_campaign_name(state, "Imersão") == "Check-in - Imersão"
        state = wizard.update_fields(state, campaign_name="  Minha campanha ")
        assert wizard.default_campaign_name(state, "Imersão") == "Minha campanha"
