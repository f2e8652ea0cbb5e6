"""Tests for tutorials, contextual hints and command help."""

import random
from datetime import timedelta

from voice_navigation.services.guidance import GuidanceService, SkillLevel, default_tutorials


def _finish_basic_tutorial(guidance: GuidanceService, user_id: str):
    guidance.start_tutorial(user_id, "basic_voice_navigation")
    guidance.process_tutorial_step(user_id, "hello")
    guidance.process_tutorial_step(user_id, "go to dashboard")
    return guidance.process_tutorial_step(user_id, "help")


class TestTutorials:
    def test_beginner_tutorials(self, guidance):
        ids = [t.id for t in guidance.get_available_tutorials("new-user")]
        assert ids == ["basic_voice_navigation", "marketplace_browsing"]

    def test_start_unknown_tutorial(self, guidance):
        result = guidance.start_tutorial("u1", "juggling")
        assert not result.success
        assert result.message == "Tutorial not found."

    def test_prerequisites_are_enforced(self, guidance):
        result = guidance.start_tutorial("u1", "artisan_tools")
        assert not result.success
        assert result.message == "Please complete Basic Voice Navigation first."

    def test_step_without_patterns_accepts_anything(self, guidance):
        guidance.start_tutorial("u1", "basic_voice_navigation")
        result = guidance.process_tutorial_step("u1", "hello there")
        assert result.success
        assert result.step_index == 1

    def test_wrong_command_gives_seeded_hint(self):
        guidance = GuidanceService(rng=random.Random(7))
        guidance.start_tutorial("u1", "basic_voice_navigation")
        guidance.process_tutorial_step("u1", "hello")

        result = guidance.process_tutorial_step("u1", "open the shop")

        pool = default_tutorials()[0].steps[1].hints["en-US"]
        expected = random.Random(7).choice(pool)
        assert not result.success
        assert result.hint == expected
        assert result.message == expected
        assert guidance.get_progress("u1").hints_shown == ["basic_voice_navigation:first_navigation"]

    def test_same_seed_same_hints(self):
        hints = []
        for _ in range(2):
            guidance = GuidanceService(rng=random.Random(3))
            guidance.start_tutorial("u1", "basic_voice_navigation")
            guidance.process_tutorial_step("u1", "hello")
            hints.append([guidance.process_tutorial_step("u1", "nope").hint for _ in range(4)])
        assert hints[0] == hints[1]

    def test_completion_raises_skill(self, guidance):
        result = _finish_basic_tutorial(guidance, "u1")
        progress = guidance.get_progress("u1")

        assert result.completed
        assert progress.completed_tutorials == ["basic_voice_navigation"]
        assert progress.skill_level == SkillLevel.INTERMEDIATE
        assert progress.current_tutorial is None
        assert "go to dashboard" in progress.commands_learned

    def test_repeating_a_tutorial_counts_once(self, guidance):
        for _ in range(3):
            result = _finish_basic_tutorial(guidance, "u1")
            assert result.completed

        progress = guidance.get_progress("u1")
        assert progress.completed_tutorials == ["basic_voice_navigation"]
        assert progress.skill_level == SkillLevel.INTERMEDIATE

    def test_intermediate_tutorials_unlock(self, guidance):
        _finish_basic_tutorial(guidance, "u1")
        ids = [t.id for t in guidance.get_available_tutorials("u1")]
        assert "artisan_tools" in ids
        assert "basic_voice_navigation" not in ids

    def test_no_active_tutorial(self, guidance):
        result = guidance.process_tutorial_step("u1", "help")
        assert not result.success
        assert result.tutorial_id is None

    def test_hindi_messages(self, guidance):
        result = guidance.start_tutorial("u1", "basic_voice_navigation", "hi-IN")
        assert result.message.startswith("बुनियादी वॉयस नेवीगेशन")

    def test_skill_thresholds(self):
        assert GuidanceService.calculate_skill_level(0) == SkillLevel.BEGINNER
        assert GuidanceService.calculate_skill_level(2) == SkillLevel.INTERMEDIATE
        assert GuidanceService.calculate_skill_level(3) == SkillLevel.ADVANCED


class TestHints:
    def test_page_load_hints_by_priority(self, guidance):
        hints = guidance.get_contextual_hints("u1", "page_load", "s1")
        assert [h["id"] for h in hints] == ["first_visit", "navigation_shortcut", "language_switch"]

    def test_frequency_rules(self, guidance):
        guidance.get_contextual_hints("u1", "page_load", "s1")
        assert guidance.get_contextual_hints("u1", "page_load", "s1") == []

        # once-hints stay hidden, session-hints come back in a new session
        hints = guidance.get_contextual_hints("u1", "page_load", "s2")
        assert [h["id"] for h in hints] == ["navigation_shortcut"]

    def test_always_hints_repeat(self, guidance):
        for _ in range(3):
            hints = guidance.get_contextual_hints("u1", "low_confidence", "s1")
            assert [h["id"] for h in hints] == ["speech_not_recognized"]

    def test_session_hint_state_is_bounded(self):
        guidance = GuidanceService(rng=random.Random(42), max_sessions=1)
        guidance.get_contextual_hints("u1", "page_load", "s1")
        guidance.get_contextual_hints("u1", "page_load", "s2")

        # s1 was evicted, so its session-scoped hints show again
        hints = guidance.get_contextual_hints("u1", "page_load", "s1")
        assert [h["id"] for h in hints] == ["navigation_shortcut"]

    def test_idle_session_hints_expire(self, guidance):
        guidance.get_contextual_hints("u1", "page_load", "s1")
        guidance._session_hints["u1:s1"].last_used -= timedelta(hours=1)

        assert guidance.cleanup_expired() == 1
        hints = guidance.get_contextual_hints("u1", "page_load", "s1")
        assert [h["id"] for h in hints] == ["navigation_shortcut"]

    def test_minimal_frequency_limits_hints(self):
        guidance = GuidanceService(hint_frequency="minimal")
        assert len(guidance.get_contextual_hints("u1", "page_load")) == 1


class TestHelp:
    def test_topic_search(self, guidance):
        help_data = guidance.get_help("microphone problem")
        assert [t["id"] for t in help_data["topics"]] == ["troubleshooting"]
        assert help_data["tips"]

    def test_unknown_query_lists_all_topics(self, guidance):
        help_data = guidance.get_help("xyzzy")
        assert len(help_data["topics"]) > 1

    def test_suggestions_for_page(self, guidance):
        suggestions = guidance.get_command_suggestions(current_page="/dashboard")
        assert len(suggestions) == 5
        assert "create product" in suggestions

    def test_suggestions_for_error(self, guidance):
        assert guidance.get_command_suggestions(error_type="network_error") == ["go back", "help"]
        assert guidance.get_command_suggestions(error_type="network_error", language="hi-IN") == ["वापस जाओ", "मदद"]

    def test_suggestions_for_input(self, guidance):
        suggestions = guidance.get_command_suggestions(user_input="show me trends")
        assert suggestions[0] == "show trends"
