"""
Tests for VerificationService (post-migration sum check).
"""

from __future__ import annotations

import pytest

from cardviews.adapters.memory_store import InMemoryUserStore
from cardviews.components.view_analytics import (
    AnalyticsMigrationService,
    MigrationAbortedError,
    StoreError,
    VerificationService,
    create_verification_service,
)


class BrokenReadStore(InMemoryUserStore):
    def read_analytics(self, user_id):
        if user_id == "broken":
            raise StoreError("disk on fire")
        return super().read_analytics(user_id)


class TestVerify:
    def test_all_consistent_after_migration(self, memory_store, clock) -> None:
        AnalyticsMigrationService(memory_store, clock).run()

        entries = VerificationService(memory_store).verify()

        assert [e.user_id for e in entries] == ["alice", "bob"]
        assert all(e.consistent for e in entries)
        alice = entries[0]
        assert (alice.observed_sum, alice.total_views) == (10, 10)

    def test_records_without_analytics_excluded(self, memory_store) -> None:
        entries = VerificationService(memory_store).verify()
        assert "carol" not in {e.user_id for e in entries}

    def test_unmigrated_record_with_views_inconsistent(self, memory_store) -> None:
        entries = {e.user_id: e for e in VerificationService(memory_store).verify()}

        alice = entries["alice"]
        assert alice.consistent is False
        assert alice.has_daily_views is False
        assert alice.observed_sum == 0
        assert alice.total_views == 10

    def test_drifted_record_reported(self) -> None:
        store = InMemoryUserStore(
            {"u1": {"analytics": {"totalViews": 5, "dailyViews": {"2024-01-01": 2}}}}
        )
        (entry,) = VerificationService(store).verify()

        assert entry.consistent is False
        assert entry.observed_sum == 2
        assert entry.total_views == 5

    def test_zero_views_without_daily_views_consistent(self) -> None:
        store = InMemoryUserStore({"u1": {"analytics": {"totalViews": 0}}})
        (entry,) = VerificationService(store).verify()
        assert entry.consistent is True
        assert entry.has_daily_views is False

    def test_does_not_mutate(self, memory_store, sample_documents) -> None:
        VerificationService(memory_store).verify()

        assert memory_store.writes == []
        for uid in sample_documents:
            assert memory_store.get_document(uid) == sample_documents[uid]

    def test_read_failure_reported_not_raised(self) -> None:
        store = BrokenReadStore(
            {
                "broken": {"analytics": {"totalViews": 1}},
                "fine": {"analytics": {"totalViews": 1, "dailyViews": {"2024-01-01": 1}}},
            }
        )
        entries = VerificationService(store).verify()

        assert [e.user_id for e in entries] == ["broken", "fine"]
        assert entries[0].consistent is False
        assert entries[0].error == "disk on fire"
        assert entries[1].consistent is True

    def test_enumeration_failure_aborts(self) -> None:
        class Unreachable(InMemoryUserStore):
            def list_all_users(self):
                raise OSError("no route to host")

        with pytest.raises(MigrationAbortedError):
            VerificationService(Unreachable()).verify()

    @pytest.mark.parametrize("total", [3.5, -5])
    def test_invalid_total_reported_not_truncated(self, total) -> None:
        store = InMemoryUserStore(
            {"u1": {"analytics": {"totalViews": total, "dailyViews": {"2024-01-07": 3}}}}
        )
        (entry,) = VerificationService(store).verify()

        assert entry.consistent is False
        assert "totalViews" in (entry.error or "")

    def test_fractional_daily_count_reported(self) -> None:
        store = InMemoryUserStore(
            {"u1": {"analytics": {"totalViews": 3, "dailyViews": {"2024-01-07": 2.5}}}}
        )
        (entry,) = VerificationService(store).verify()

        assert entry.consistent is False
        assert entry.error is not None


class TestVerifyUser:
    def test_single_user(self, memory_store) -> None:
        entry = VerificationService(memory_store).verify_user("bob")
        assert entry is not None
        assert entry.consistent is True
        assert entry.observed_sum == 2

    def test_user_without_analytics(self, memory_store) -> None:
        assert VerificationService(memory_store).verify_user("carol") is None

    def test_unknown_user(self, memory_store) -> None:
        entry = VerificationService(memory_store).verify_user("nobody")
        assert entry is not None
        assert entry.consistent is False
        assert "nobody" in (entry.error or "")


class TestFactory:
    def test_create_verification_service(self, memory_store) -> None:
        service = create_verification_service(memory_store)

        assert isinstance(service, VerificationService)
        assert service.verify_user("bob") is not None
