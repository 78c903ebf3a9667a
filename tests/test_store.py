"""
tests/test_store.py
====================
Document Store + Repository Tests

Test categories:
    1. Document CRUD (set / merge / get / update / delete)
    2. Queries (filters, ordering, limit)
    3. Knowledge + admin rules
    4. Users and team approval
    5. Report visibility and deletion rules

Every test runs against a fresh in-memory SQLite database.
"""

import json
import os
import sys
import unittest
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

# Ensure project root is on sys.path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from callsense.audit.knowledge import convert_pdf_to_knowledge
from callsense.models import (
    CallAnalysis,
    CompanyKnowledge,
    User,
    UserRole,
    UserStatus,
)
from callsense.store import repository
from callsense.store.database import create_db_engine
from callsense.store.document_store import DocumentNotFound, DocumentStore


def _store() -> DocumentStore:
    return DocumentStore(create_db_engine("sqlite://"))


def _user(user_id: str, role: UserRole = UserRole.RESPONDER, status: UserStatus = UserStatus.VERIFIED) -> User:
    return User(id=user_id, email=f"{user_id}@example.com", name=user_id.title(), role=role, status=status)


def _report(report_id: str, agent_id: str, minutes_ago: int = 0, **overrides) -> CallAnalysis:
    created = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc) - timedelta(minutes=minutes_ago)
    values = dict(
        id=report_id,
        uploadDate=created.date().isoformat(),
        agentId=agent_id,
        agentName=agent_id.title(),
        duration="03:00",
        conversionScore=50,
        summary="ok",
        createdAt=created,
    )
    values.update(overrides)
    return CallAnalysis(**values)


# ===================================================================
# 1. CRUD
# ===================================================================

class TestDocumentCrud(unittest.TestCase):

    def setUp(self):
        self.store = _store()

    def test_set_and_get(self):
        self.store.set("things", "a", {"name": "alpha", "n": 1})
        self.assertEqual(self.store.get("things", "a"), {"name": "alpha", "n": 1})

    def test_get_missing_is_none(self):
        self.assertIsNone(self.store.get("things", "nope"))

    def test_set_replaces_without_merge(self):
        self.store.set("things", "a", {"name": "alpha", "n": 1})
        self.store.set("things", "a", {"n": 2})
        self.assertEqual(self.store.get("things", "a"), {"n": 2})

    def test_set_merge_keeps_other_keys(self):
        self.store.set("things", "a", {"name": "alpha", "n": 1})
        self.store.set("things", "a", {"n": 2}, merge=True)
        self.assertEqual(self.store.get("things", "a"), {"name": "alpha", "n": 2})

    def test_collections_are_separate(self):
        self.store.set("left", "a", {"side": "left"})
        self.store.set("right", "a", {"side": "right"})
        self.assertEqual(self.store.get("left", "a")["side"], "left")
        self.assertEqual(self.store.get("right", "a")["side"], "right")

    def test_update_existing(self):
        self.store.set("things", "a", {"name": "alpha"})
        self.store.update("things", "a", {"flag": True})
        self.assertEqual(self.store.get("things", "a"), {"name": "alpha", "flag": True})

    def test_update_missing_raises(self):
        with self.assertRaises(DocumentNotFound):
            self.store.update("things", "ghost", {"flag": True})

    def test_delete(self):
        self.store.set("things", "a", {"name": "alpha"})
        self.assertTrue(self.store.delete("things", "a"))
        self.assertFalse(self.store.delete("things", "a"))
        self.assertIsNone(self.store.get("things", "a"))

    def test_returned_body_is_a_copy(self):
        self.store.set("things", "a", {"name": "alpha"})
        body = self.store.get("things", "a")
        body["name"] = "changed"
        self.assertEqual(self.store.get("things", "a")["name"], "alpha")


# ===================================================================
# 2. Queries
# ===================================================================

class TestDocumentQuery(unittest.TestCase):

    def setUp(self):
        self.store = _store()
        self.store.set("calls", "c1", {"agent": "asha", "at": "2026-01-02"})
        self.store.set("calls", "c2", {"agent": "ravi", "at": "2026-01-03"})
        self.store.set("calls", "c3", {"agent": "asha", "at": "2026-01-01"})
        self.store.set("calls", "c4", {"agent": "asha"})

    def test_filter(self):
        ids = {doc_id for doc_id, _ in self.store.query("calls", where={"agent": "asha"})}
        self.assertEqual(ids, {"c1", "c3", "c4"})

    def test_order_ascending_missing_first(self):
        ids = [doc_id for doc_id, _ in self.store.query("calls", order_by="at")]
        self.assertEqual(ids, ["c4", "c3", "c1", "c2"])

    def test_order_descending_with_limit(self):
        ids = [doc_id for doc_id, _ in self.store.query("calls", order_by="at", descending=True, limit=2)]
        self.assertEqual(ids, ["c2", "c1"])

    def test_unknown_collection_is_empty(self):
        self.assertEqual(self.store.query("nothing"), [])


# ===================================================================
# 3. Knowledge
# ===================================================================

class TestKnowledgeRepository(unittest.TestCase):

    def setUp(self):
        self.store = _store()

    def test_no_knowledge_yet(self):
        self.assertIsNone(repository.get_company_knowledge(self.store))
        self.assertEqual(repository.get_admin_rules(self.store), "")

    def _extract(self, reply: dict) -> CompanyKnowledge:
        client = MagicMock()
        client.chat.completions.create.return_value.choices[0].message.content = json.dumps(reply)
        return convert_pdf_to_knowledge(b"%PDF-1.4 plans", "plans.pdf", client=client)

    def test_save_knowledge_keeps_admin_rules(self):
        repository.save_admin_rules(self.store, "Never promise results.")
        knowledge = self._extract({"pricing": {"monthly": 3999}, "faq": ["Is it online?"]})
        repository.save_company_knowledge(self.store, knowledge, "plans.pdf")

        stored = repository.get_company_knowledge(self.store)
        self.assertEqual(stored.pricing, {"monthly": 3999})
        self.assertEqual(stored.extra["faq"], ["Is it online?"])
        self.assertEqual(stored.fileName, "plans.pdf")
        self.assertTrue(stored.uploadedAt)
        self.assertEqual(repository.get_admin_rules(self.store), "Never promise results.")

    def test_rules_from_pdf_replace_stored_rules(self):
        repository.save_admin_rules(self.store, "Never promise results.")
        knowledge = self._extract({"rules": ["Quote list price only."]})
        repository.save_company_knowledge(self.store, knowledge, "plans.pdf")
        self.assertEqual(repository.get_admin_rules(self.store), "Quote list price only.")

    def test_file_name_defaults_to_unknown(self):
        repository.save_company_knowledge(self.store, CompanyKnowledge(id="k1"))
        self.assertEqual(repository.get_company_knowledge(self.store).fileName, "Unknown")

    def test_list_rules_joined(self):
        self.store.set(repository.SETTINGS, repository.KNOWLEDGE_DOC_ID, {"rules": ["One", "Two"]})
        self.assertEqual(repository.get_admin_rules(self.store), "One\nTwo")

    def test_knowledge_files_newest_first(self):
        first = repository.add_knowledge_base_file(self.store, "a.pdf", "QUFB")
        self.store.update(repository.KNOWLEDGE_FILES, first.id, {"uploadedAt": "2026-01-01T00:00:00+00:00"})
        second = repository.add_knowledge_base_file(self.store, "b.pdf", "QkJC")

        files = repository.list_knowledge_base_files(self.store)
        self.assertEqual([f.fileName for f in files], ["b.pdf", "a.pdf"])
        self.assertEqual(files[0].url, "QkJC")

        self.assertTrue(repository.remove_knowledge_base_file(self.store, second.id))
        self.assertEqual(len(repository.list_knowledge_base_files(self.store)), 1)

    def test_responder_feedback(self):
        repository.save_responder_feedback(self.store, "asha", "Slow down on pricing.")
        repository.save_responder_feedback(self.store, "ravi", "Great close.")
        feedback = repository.list_responder_feedback(self.store, "asha")
        self.assertEqual(len(feedback), 1)
        self.assertEqual(feedback[0].feedbackText, "Slow down on pricing.")


# ===================================================================
# 4. Users
# ===================================================================

class TestUserRepository(unittest.TestCase):

    def setUp(self):
        self.store = _store()
        repository.save_user(self.store, _user("boss", UserRole.ADMIN))
        repository.save_user(self.store, _user("asha", status=UserStatus.UNVERIFIED))
        repository.save_user(self.store, _user("ravi"))

    def test_round_trip(self):
        user = repository.get_user(self.store, "asha")
        self.assertEqual(user.email, "asha@example.com")
        self.assertEqual(user.role, UserRole.RESPONDER)
        self.assertEqual(user.status, UserStatus.UNVERIFIED)

    def test_pending_responders(self):
        pending = repository.list_unverified_responders(self.store)
        self.assertEqual([u.id for u in pending], ["asha"])

    def test_list_by_role(self):
        self.assertEqual({u.id for u in repository.list_users(self.store, UserRole.RESPONDER)}, {"asha", "ravi"})
        self.assertEqual(len(repository.list_users(self.store)), 3)

    def test_verify(self):
        repository.verify_user(self.store, "asha")
        self.assertEqual(repository.get_user(self.store, "asha").status, UserStatus.VERIFIED)
        self.assertEqual(repository.list_unverified_responders(self.store), [])

    def test_verify_unknown_user(self):
        with self.assertRaises(DocumentNotFound):
            repository.verify_user(self.store, "ghost")

    def test_reject_removes_profile(self):
        self.assertTrue(repository.reject_user(self.store, "asha"))
        self.assertIsNone(repository.get_user(self.store, "asha"))


# ===================================================================
# 5. Reports
# ===================================================================

class TestReportRepository(unittest.TestCase):

    def setUp(self):
        self.store = _store()
        self.admin = _user("boss", UserRole.ADMIN)
        self.asha = _user("asha")
        self.ravi = _user("ravi")
        repository.save_report(self.store, _report("r1", "asha", minutes_ago=30))
        repository.save_report(self.store, _report("r2", "ravi", minutes_ago=20))
        repository.save_report(self.store, _report("r3", "asha", minutes_ago=10))

    def test_admin_sees_all_newest_first(self):
        ids = [r.id for r in repository.list_reports(self.store, self.admin)]
        self.assertEqual(ids, ["r3", "r2", "r1"])

    def test_responder_sees_own(self):
        ids = [r.id for r in repository.list_reports(self.store, self.asha)]
        self.assertEqual(ids, ["r3", "r1"])

    def test_report_round_trip(self):
        report = repository.get_report(self.store, "r2")
        self.assertEqual(report.agentName, "Ravi")
        self.assertEqual(report.createdAt, datetime(2026, 3, 1, 11, 40, tzinfo=timezone.utc))
        self.assertEqual(report.compliance["dmVerified"], False)

    def test_can_view(self):
        report = repository.get_report(self.store, "r2")
        self.assertTrue(repository.can_view_report(self.admin, report))
        self.assertTrue(repository.can_view_report(self.ravi, report))
        self.assertFalse(repository.can_view_report(self.asha, report))

    def test_responder_delete_hides_only(self):
        self.assertTrue(repository.delete_report(self.store, self.asha, "r1"))

        self.assertEqual([r.id for r in repository.list_reports(self.store, self.asha)], ["r3"])
        self.assertIn("r1", [r.id for r in repository.list_reports(self.store, self.admin)])
        self.assertTrue(repository.get_report(self.store, "r1").deletedByResponder)
        self.assertFalse(repository.can_view_report(self.asha, repository.get_report(self.store, "r1")))

    def test_responder_cannot_delete_others(self):
        self.assertFalse(repository.delete_report(self.store, self.asha, "r2"))
        self.assertFalse(repository.get_report(self.store, "r2").deletedByResponder)

    def test_admin_delete_is_permanent(self):
        self.assertTrue(repository.delete_report(self.store, self.admin, "r2"))
        self.assertIsNone(repository.get_report(self.store, "r2"))
        self.assertFalse(repository.delete_report(self.store, self.admin, "r2"))

    def test_legacy_document_defaults(self):
        self.store.set(repository.REPORTS, "old", {"uploadDate": "02/15/2026", "sentiment": None})
        report = repository.get_report(self.store, "old")
        self.assertEqual(report.agentName, "Unknown Agent")
        self.assertEqual(report.sentiment, {"client": "Neutral", "responder": "Professional"})
        self.assertEqual(report.createdAt.date().isoformat(), "2026-02-15")
        self.assertEqual(report.feedback.strengths, [])


if __name__ == "__main__":
    unittest.main()
