"""Tests for deliberation data models and roster construction."""

import pytest

from council_chamber.deliberation import Citation, DeliberationSession, SessionStateError, TranscriptEntry
from council_chamber.roster import ACCENTS, agent_name, build_roster


def make_entry(content: str = "Point.", author_id: str = "1") -> TranscriptEntry:
    return TranscriptEntry(author_id=author_id, author_name=f"INSTANCE_{int(author_id):02d}", content=content)


class TestDeliberationSession:
    """Tests for DeliberationSession lifecycle rules."""

    def test_refined_topic_set_once(self):
        session = DeliberationSession(raw_topic="t", council_size=2)
        session.set_refined_topic("Objective")
        with pytest.raises(SessionStateError):
            session.set_refined_topic("Again")

    def test_record_turn_requires_refined_topic(self):
        session = DeliberationSession(raw_topic="t", council_size=2)
        with pytest.raises(SessionStateError):
            session.record_turn(make_entry())

    def test_transcript_and_counter_move_together(self):
        session = DeliberationSession(raw_topic="t", council_size=2)
        session.set_refined_topic("Objective")
        session.record_turn(make_entry("A."))
        session.record_turn(make_entry("B.", "2"))

        assert session.turn_count == 2
        assert len(session.transcript) == 2
        assert [e.content for e in session.history()] == ["A.", "B."]

    def test_history_is_a_snapshot(self):
        session = DeliberationSession(raw_topic="t", council_size=2)
        session.set_refined_topic("Objective")
        history = session.history()
        session.record_turn(make_entry())
        assert history == ()

    def test_verdict_set_once_and_closes_transcript(self):
        session = DeliberationSession(raw_topic="t", council_size=2)
        session.set_refined_topic("Objective")
        session.set_verdict("Done.", "pro")

        assert session.verdict_model == "pro"
        with pytest.raises(SessionStateError):
            session.set_verdict("Again.")
        with pytest.raises(SessionStateError):
            session.record_turn(make_entry())

    def test_to_dict(self):
        session = DeliberationSession(raw_topic="t", council_size=2)
        data = session.to_dict()
        assert data["raw_topic"] == "t"
        assert data["transcript"] == []
        assert data["session_id"] == session.session_id


class TestTranscriptEntry:
    """Tests for TranscriptEntry serialization."""

    def test_is_frozen(self):
        entry = make_entry()
        with pytest.raises(AttributeError):
            entry.content = "changed"

    def test_to_dict_omits_empty_optionals(self):
        data = make_entry().to_dict()
        assert set(data) == {"author_id", "author_name", "content", "timestamp", "failed"}

    def test_to_dict_includes_citations(self):
        entry = TranscriptEntry(
            author_id="1",
            author_name="INSTANCE_01",
            content="See source.",
            citations=(Citation(uri="https://example.com", title="Example"),),
            model="model-a",
        )
        data = entry.to_dict()
        assert data["citations"] == [{"uri": "https://example.com", "title": "Example"}]
        assert data["model"] == "model-a"


class TestRoster:
    """Tests for build_roster."""

    def test_default_roster(self):
        roster = build_roster()
        assert len(roster) == 20
        assert [a.id for a in roster[:3]] == ["1", "2", "3"]
        assert roster[0].name == "INSTANCE_01"
        assert roster[19].name == "INSTANCE_20"

    def test_accents_cycle(self):
        roster = build_roster(size=len(ACCENTS) + 1)
        assert roster[len(ACCENTS)].accent == ACCENTS[0]

    def test_shared_starting_model(self):
        assert {a.model for a in build_roster(size=4, model="m")} == {"m"}

    def test_agent_name(self):
        assert agent_name(8) == "INSTANCE_09"
