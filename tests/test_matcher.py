"""
Tests for the Equivalence Matcher — finding where migration resumes

These tests validate:
- Revisions after the latest equivalence are returned oldest first
- Migration markers stand in when the database knows nothing
- The walk stops early at already-migrated revisions
"""

import pytest

from moesync.core.revision import Revision
from moesync.equivalence.db import EquivalenceDb
from moesync.equivalence.matcher import SOURCE_DATABASE, SOURCE_MARKER, EquivalenceMatcher


@pytest.fixture
def repos(moe_factory):
    internal = moe_factory.add_repository("internal", "internal")
    for i in range(1, 5):
        internal.commit(f"r{i}", {"a.txt": str(i)})
    public = moe_factory.add_repository("public", "public")
    public.commit("p1", {"a.txt": "1"})
    public.commit("p2", {"a.txt": "2"}, description="Sync\nMOE_MIGRATED_REVID=r2")
    return internal, public


def ids(revisions):
    return [r.rev_id for r in revisions]


class TestMatch:

    def test_from_database(self, repos):
        internal, public = repos
        db = EquivalenceDb()
        db.record_equivalence(Revision("r2", "internal"), Revision("p2", "public"))

        match = EquivalenceMatcher(db).match(internal, public)

        assert match.source == SOURCE_DATABASE
        assert ids(match.revisions) == ["r3", "r4"]
        assert match.from_baseline == Revision("r2", "internal")
        assert match.to_baseline == Revision("p2", "public")
        assert not match.up_to_date

    def test_database_uses_latest(self, repos):
        internal, public = repos
        db = EquivalenceDb()
        db.record_equivalence(Revision("r3", "internal"), Revision("p2", "public"))
        db.record_equivalence(Revision("r1", "internal"), Revision("p1", "public"))

        match = EquivalenceMatcher(db).match(internal, public)

        assert ids(match.revisions) == ["r4"]

    def test_from_markers(self, repos):
        internal, public = repos
        match = EquivalenceMatcher(EquivalenceDb()).match(internal, public)

        assert match.source == SOURCE_MARKER
        assert match.equivalence == (Revision("r2", "internal"), Revision("p2", "public"))
        assert ids(match.revisions) == ["r3", "r4"]

    def test_no_equivalence_takes_whole_history(self, moe_factory):
        internal = moe_factory.add_repository("internal", "internal")
        internal.commit("r1", {"a": "1"})
        internal.commit("r2", {"a": "2"})
        public = moe_factory.add_repository("public", "public")
        public.commit("p1", {"a": "x"})

        match = EquivalenceMatcher(EquivalenceDb()).match(internal, public)

        assert match.equivalence is None
        assert ids(match.revisions) == ["r1", "r2"]

    def test_up_to_date(self, repos):
        internal, public = repos
        db = EquivalenceDb()
        db.record_equivalence(Revision("r4", "internal"), Revision("p2", "public"))
        assert EquivalenceMatcher(db).match(internal, public).up_to_date

    def test_stops_at_migrated_revision(self, repos):
        internal, public = repos
        db = EquivalenceDb()
        db.record_equivalence(Revision("r1", "internal"), Revision("p1", "public"))
        db.note_migration(Revision("r3", "internal"), Revision("p9", "public"))

        match = EquivalenceMatcher(db).match(internal, public)

        assert ids(match.revisions) == ["r4"]

    def test_marker_scan_limit(self, repos):
        internal, public = repos
        public.commit("p3", {"a.txt": "3"})
        matcher = EquivalenceMatcher(EquivalenceDb(), marker_scan_limit=1)
        assert matcher.equivalence_from_markers(internal, public) is None

    def test_marker_from_other_repository_skipped(self, repos):
        internal, public = repos
        public.commit("p3", {"a.txt": "x"}, description="Mirror\nMOE_MIGRATED_REVID=abc123")

        match = EquivalenceMatcher(EquivalenceDb()).match(internal, public)

        assert match.equivalence == (Revision("r2", "internal"), Revision("p2", "public"))
        assert ids(match.revisions) == ["r3", "r4"]
