from crm.services.achievements import ACHIEVEMENTS, AchievementTracker


class TestAchievementTracker:
    def test_starts_with_first_steps(self):
        tracker = AchievementTracker()
        assert tracker.unlocked == ["first_steps"]
        assert tracker.pending_notification is None
        assert tracker.total_count == len(ACHIEVEMENTS) == 9

    def test_unlock_sets_last_as_pending(self):
        tracker = AchievementTracker()
        newly = tracker.evaluate({"accountName": "Acme", "enableAI": True}, {1})
        assert newly == ["company_setup", "ai_enabled"]
        assert tracker.pending_notification == "ai_enabled"

    def test_unlocked_set_only_grows(self):
        tracker = AchievementTracker()
        tracker.evaluate({"productName": "Mentoria"}, {1, 2})
        assert tracker.evaluate({}, set()) == []
        assert "first_product" in tracker.unlocked

    def test_client_needs_name_and_phone(self):
        tracker = AchievementTracker()
        tracker.evaluate({"clientName": "Eva"}, set())
        assert "first_client" not in tracker.unlocked
        tracker.evaluate({"clientName": "Eva", "clientPhone": "11999998888"}, set())
        assert "first_client" in tracker.unlocked

    def test_team_builder_ignores_blank_invites(self):
        tracker = AchievementTracker()
        tracker.evaluate({"inviteEmails": "   "}, set())
        assert "team_builder" not in tracker.unlocked

    def test_complete_setup_and_speed_runner(self):
        tracker = AchievementTracker()
        tracker.evaluate({}, {1, 2, 3, 4, 5})
        assert "complete_setup" not in tracker.unlocked
        tracker.evaluate({}, {1, 2, 3, 4, 5, 6})
        assert "complete_setup" in tracker.unlocked
        assert "speed_runner" not in tracker.unlocked

    def test_dismiss_and_state_round_trip(self):
        tracker = AchievementTracker()
        tracker.evaluate({"eventTitle": "Live", "eventDate": "2030-01-01"}, set())
        assert tracker.pending_notification == "first_event"
        tracker.dismiss()
        restored = AchievementTracker.from_state(tracker.to_state())
        assert restored.unlocked == ["first_steps", "first_event"]
        assert restored.pending_notification is None

    def test_from_state_drops_unknown_ids(self):
        restored = AchievementTracker.from_state({"unlocked": ["first_steps", "fantasma"]})
        assert restored.unlocked == ["first_steps"]

    def test_summary(self):
        summary = AchievementTracker().summary()
        assert len(summary) == 9
        assert [a["id"] for a in summary if a["unlocked"]] == ["first_steps"]
