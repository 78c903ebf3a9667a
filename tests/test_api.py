"""
tests/test_api.py
==================
HTTP API Tests — FastAPI routes end to end (inference mocked)

Test categories:
    1. Auth routes and session cookie / bearer token
    2. Call analysis upload and error mapping
    3. Report listing, viewing and deletion by role
    4. Knowledge rules and PDF upload
    5. Team approval, feedback and dashboard
    6. Mentor, live sessions and the inference proxy

Every test gets a fresh in-memory store through a dependency override.
"""

import base64
import os
import sys
import unittest
from unittest.mock import patch

from fastapi.testclient import TestClient

# Ensure project root is on sys.path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from callsense import auth
from callsense.api.app import app
from callsense.api.deps import get_store
from callsense.audit.media import MediaValidationError
from callsense.audit.pipeline import AnalysisError
from callsense.audit.report_validator import ReportVerificationError
from callsense.genai_client import QuotaExceededError
from callsense.live import copilot
from callsense.models import CallAnalysis, CompanyKnowledge, UserRole
from callsense.store import repository
from callsense.store.database import create_db_engine
from callsense.store.document_store import DocumentStore


def _fake_report(report_id="rep-1", score=82) -> CallAnalysis:
    report = CallAnalysis(
        id=report_id,
        uploadDate="2026-03-01",
        agentId="",
        agentName="ignored",
        duration="02:05",
        conversionScore=score,
        summary="Solid call.",
        clientName="Meera",
        sentiment={"client": "Positive", "responder": "Professional"},
    )
    report.metrics["productKnowledgeScore"] = 90
    return report


class ApiTestCase(unittest.TestCase):
    """Base: fresh store, one admin and one verified responder."""

    def setUp(self):
        self.store = DocumentStore(create_db_engine("sqlite://"))
        app.dependency_overrides[get_store] = lambda: self.store
        self.client = TestClient(app)

        admin = auth.sign_up(self.store, "boss@example.com", "secret1", "Priya Nair", UserRole.ADMIN)
        self.admin = admin.user
        self.admin_headers = {"Authorization": f"Bearer {admin.token}"}

        self.responder, self.responder_headers = self._responder("asha@example.com", "Asha Patel")

    def tearDown(self):
        app.dependency_overrides.clear()

    def _responder(self, email, name):
        user = auth.sign_up(self.store, email, "secret1", name, UserRole.RESPONDER).user
        repository.verify_user(self.store, user.id)
        token = auth.sign_in(self.store, email, "secret1", UserRole.RESPONDER).token
        return user, {"Authorization": f"Bearer {token}"}

    def _save_report(self, report_id, agent, score=50, sentiment="Neutral"):
        report = _fake_report(report_id, score)
        report.agentId = agent.id
        report.agentName = agent.name
        report.sentiment = {"client": sentiment, "responder": "Professional"}
        repository.save_report(self.store, report)
        return report


# ===================================================================
# 1. Auth
# ===================================================================

class TestAuthRoutes(ApiTestCase):

    def test_health(self):
        self.assertEqual(self.client.get("/api/health").json(), {"status": "ok"})

    def test_responder_signup_pending(self):
        resp = self.client.post("/api/auth/signup", json={
            "email": "new@example.com", "password": "secret1", "fullName": "Nikhil", "role": "RESPONDER",
        })
        self.assertEqual(resp.status_code, 201)
        body = resp.json()
        self.assertIsNone(body["token"])
        self.assertEqual(body["user"]["status"], "UNVERIFIED")
        self.assertEqual(body["message"], auth.PENDING_APPROVAL_SIGNUP_MESSAGE)

        resp = self.client.post("/api/auth/signin", json={
            "email": "new@example.com", "password": "secret1", "role": "RESPONDER",
        })
        self.assertEqual(resp.status_code, 403)
        self.assertEqual(resp.json()["detail"], "Account pending admin approval.")

    def test_admin_signup_sets_cookie(self):
        resp = self.client.post("/api/auth/signup", json={
            "email": "owner@example.com", "password": "secret1", "fullName": "Owner", "role": "ADMIN",
        })
        self.assertEqual(resp.status_code, 201)
        token = resp.json()["token"]
        self.assertEqual(resp.cookies.get("token"), token)

        me = self.client.get("/api/auth/me", cookies={"token": token})
        self.assertEqual(me.json()["email"], "owner@example.com")

    def test_duplicate_signup(self):
        resp = self.client.post("/api/auth/signup", json={
            "email": "boss@example.com", "password": "secret1", "fullName": "Copy", "role": "ADMIN",
        })
        self.assertEqual(resp.status_code, 409)

    def test_signin_wrong_password(self):
        resp = self.client.post("/api/auth/signin", json={
            "email": "boss@example.com", "password": "wrong1", "role": "ADMIN",
        })
        self.assertEqual(resp.status_code, 401)
        self.assertEqual(resp.json()["detail"], "Email or password is incorrect")

    def test_me_requires_session(self):
        self.assertEqual(self.client.get("/api/auth/me").status_code, 401)
        self.assertEqual(self.client.get("/api/auth/me", headers=self.responder_headers).json()["name"], "Asha Patel")

    def test_signout_ends_session(self):
        self.client.post("/api/auth/signout", headers=self.responder_headers)
        self.assertEqual(self.client.get("/api/auth/me", headers=self.responder_headers).status_code, 401)


# ===================================================================
# 2. Analyze
# ===================================================================

_FORM = {
    "clientName": "Meera",
    "clientPhone": "+91 98765 43210",
    "clientConcern": "Weight loss",
    "leadType": "OLD_LEAD",
    "relationshipType": "LEAD",
}


class TestAnalyzeRoute(ApiTestCase):

    def _upload(self, form=None, filename="call.mp3"):
        return self.client.post(
            "/api/reports/analyze",
            files={"file": (filename, b"ID3 fake audio", "audio/mpeg")},
            data=form if form is not None else _FORM,
            headers=self.responder_headers,
        )

    @patch("callsense.api.routes.reports.analyze_call")
    def test_report_saved_for_uploader(self, mock_analyze):
        def fake(audio, filename, agent_name, details, knowledge, instructions, on_status, content_type):
            on_status("Detecting speech & behavioral cues...")
            on_status("Auditing against knowledge base...")
            return _fake_report()

        mock_analyze.side_effect = fake
        resp = self._upload()

        self.assertEqual(resp.status_code, 201)
        body = resp.json()
        self.assertEqual(body["report"]["agentId"], self.responder.id)
        self.assertEqual(body["report"]["agentName"], "Asha Patel")
        self.assertEqual(body["gauges"][0], {"label": "Plan Accuracy", "score": 90, "color": "#20b384"})
        self.assertEqual(body["status"], [
            "Gathering context...",
            "Uploading and preparing media...",
            "Detecting speech & behavioral cues...",
            "Auditing against knowledge base...",
        ])

        args = mock_analyze.call_args.args
        self.assertEqual(args[1], "call.mp3")
        self.assertEqual(args[2], "Asha Patel")
        self.assertEqual(args[3].lead_type.value, "OLD_LEAD")
        self.assertIsNone(args[4])
        self.assertEqual(args[5], "")
        self.assertEqual(args[7], "audio/mpeg")

        stored = repository.get_report(self.store, "rep-1")
        self.assertEqual(stored.agentId, self.responder.id)

    @patch("callsense.api.routes.reports.analyze_call")
    def test_knowledge_and_text_rules_passed(self, mock_analyze):
        knowledge.rules = None
        repository.save_company_knowledge(self.store, knowledge, "plans.pdf")
        repository.save_admin_rules(self.store, "Always mention refunds.")
        mock_analyze.return_value = _fake_report()

        self._upload()

        args = mock_analyze.call_args.args
        self.assertEqual(args[4].pricing, {"monthly": 3999})
        self.assertEqual(args[5], "Always mention refunds.")

    @patch("callsense.api.routes.reports.analyze_call")
    def test_missing_client_details(self, mock_analyze):
        resp = self._upload(form=dict(_FORM, clientPhone=""))
        self.assertEqual(resp.status_code, 422)
        self.assertIn("Name, Number, Concern", resp.json()["detail"])
        mock_analyze.assert_not_called()

    @patch("callsense.api.routes.reports.analyze_call")
    def test_error_mapping(self, mock_analyze):
        cases = [
            (MediaValidationError("Unsupported format."), 422),
            (QuotaExceededError("429"), 429),
            (AnalysisError("No conversation detected."), 502),
            (ReportVerificationError("Audit", "missing fields: summary"), 502),
            (RuntimeError("disk full"), 500),
        ]
        for error, status in cases:
            with self.subTest(error=type(error).__name__):
                mock_analyze.side_effect = error
                resp = self._upload()
                self.assertEqual(resp.status_code, status)

        self.assertEqual(repository.list_reports(self.store, self.admin), [])

    def test_requires_sign_in(self):
        resp = self.client.post(
            "/api/reports/analyze",
            files={"file": ("call.mp3", b"x", "audio/mpeg")},
            data=_FORM,
        )
        self.assertEqual(resp.status_code, 401)


# ===================================================================
# 3. Reports
# ===================================================================

class TestReportRoutes(ApiTestCase):

    def setUp(self):
        super().setUp()
        self.other, self.other_headers = self._responder("ravi@example.com", "Ravi Kumar")
        self._save_report("mine", self.responder)
        self._save_report("theirs", self.other)

    def test_list_by_role(self):
        mine = self.client.get("/api/reports", headers=self.responder_headers).json()
        self.assertEqual([r["id"] for r in mine], ["mine"])
        every = self.client.get("/api/reports", headers=self.admin_headers).json()
        self.assertEqual({r["id"] for r in every}, {"mine", "theirs"})

    def test_view_other_responders_report_hidden(self):
        self.assertEqual(self.client.get("/api/reports/theirs", headers=self.responder_headers).status_code, 404)
        view = self.client.get("/api/reports/theirs", headers=self.admin_headers).json()
        self.assertEqual(len(view["compliance"]), 5)
        self.assertIn("leadStrength", view)

    def test_responder_delete_then_admin_still_sees(self):
        resp = self.client.delete("/api/reports/mine", headers=self.responder_headers)
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(self.client.get("/api/reports", headers=self.responder_headers).json(), [])
        self.assertEqual(self.client.get("/api/reports/mine", headers=self.admin_headers).status_code, 200)

    def test_admin_delete(self):
        self.assertEqual(self.client.delete("/api/reports/theirs", headers=self.admin_headers).status_code, 200)
        self.assertEqual(self.client.get("/api/reports/theirs", headers=self.admin_headers).status_code, 404)
        self.assertEqual(self.client.delete("/api/reports/theirs", headers=self.admin_headers).status_code, 404)


# ===================================================================
# 4. Knowledge
# ===================================================================

class TestKnowledgeRoutes(ApiTestCase):

    def test_rules_admin_only(self):
        resp = self.client.put("/api/knowledge/rules", json={"rules": "Be kind."}, headers=self.responder_headers)
        self.assertEqual(resp.status_code, 403)

        resp = self.client.put("/api/knowledge/rules", json={"rules": "Be kind."}, headers=self.admin_headers)
        self.assertEqual(resp.status_code, 200)
        rules = self.client.get("/api/knowledge/rules", headers=self.responder_headers).json()
        self.assertEqual(rules, {"rules": "Be kind."})

    def test_no_knowledge_yet(self):
        self.assertIsNone(self.client.get("/api/knowledge", headers=self.admin_headers).json())

    @patch("callsense.api.routes.knowledge.convert_pdf_to_knowledge")
    def test_pdf_upload(self, mock_convert):
        mock_convert.return_value = CompanyKnowledge(id="k1", pricing={"quarterly": 9999}, fileName="plans.pdf")
        resp = self.client.post(
            "/api/knowledge/files",
            files={"file": ("plans.pdf", b"%PDF-1.4", "application/pdf")},
            headers=self.admin_headers,
        )
        self.assertEqual(resp.status_code, 201)
        file_id = resp.json()["id"]

        knowledge = self.client.get("/api/knowledge", headers=self.responder_headers).json()
        self.assertEqual(knowledge["pricing"], {"quarterly": 9999})
        self.assertEqual(knowledge["fileName"], "plans.pdf")

        files = self.client.get("/api/knowledge/files", headers=self.admin_headers).json()
        self.assertEqual([f["fileName"] for f in files], ["plans.pdf"])
        self.assertNotIn("url", files[0])
        stored = repository.list_knowledge_base_files(self.store)[0]
        self.assertEqual(base64.b64decode(stored.url), b"%PDF-1.4")

        self.assertEqual(self.client.delete(f"/api/knowledge/files/{file_id}", headers=self.admin_headers).status_code, 200)
        self.assertEqual(self.client.delete(f"/api/knowledge/files/{file_id}", headers=self.admin_headers).status_code, 404)

    def test_non_pdf_rejected(self):
        resp = self.client.post(
            "/api/knowledge/files",
            files={"file": ("notes.txt", b"hello", "text/plain")},
            headers=self.admin_headers,
        )
        self.assertEqual(resp.status_code, 422)

    @patch("callsense.api.routes.knowledge.convert_pdf_to_knowledge")
    def test_extraction_failure(self, mock_convert):
        mock_convert.side_effect = RuntimeError("bad pdf")
        resp = self.client.post(
            "/api/knowledge/files",
            files={"file": ("plans.pdf", b"%PDF", "application/pdf")},
            headers=self.admin_headers,
        )
        self.assertEqual(resp.status_code, 500)
        self.assertEqual(resp.json()["detail"], "Failed to process PDF.")
        self.assertEqual(repository.list_knowledge_base_files(self.store), [])


# ===================================================================
# 5. Team + dashboard
# ===================================================================

class TestTeamRoutes(ApiTestCase):

    def test_approval_flow(self):
        pending = auth.sign_up(self.store, "new@example.com", "secret1", "Nikhil", UserRole.RESPONDER).user

        queue = self.client.get("/api/team/pending", headers=self.admin_headers).json()
        self.assertEqual([u["id"] for u in queue], [pending.id])
        self.assertEqual(self.client.get("/api/team/pending", headers=self.responder_headers).status_code, 403)

        self.assertEqual(self.client.post(f"/api/team/{pending.id}/verify", headers=self.admin_headers).status_code, 200)
        self.assertEqual(self.client.get("/api/team/pending", headers=self.admin_headers).json(), [])

        self.assertEqual(self.client.post("/api/team/ghost/verify", headers=self.admin_headers).status_code, 404)

    def test_reject(self):
        pending = auth.sign_up(self.store, "new@example.com", "secret1", "Nikhil", UserRole.RESPONDER).user
        self.assertEqual(self.client.delete(f"/api/team/{pending.id}", headers=self.admin_headers).status_code, 200)
        self.assertIsNone(repository.get_user(self.store, pending.id))

    def test_feedback(self):
        resp = self.client.post(
            f"/api/team/{self.responder.id}/feedback",
            json={"feedbackText": "  Ask for the budget earlier.  "},
            headers=self.admin_headers,
        )
        self.assertEqual(resp.status_code, 201)

        mine = self.client.get("/api/feedback", headers=self.responder_headers).json()
        self.assertEqual([f["feedbackText"] for f in mine], ["Ask for the budget earlier."])

    def test_dashboard_responder(self):
        self._save_report("a", self.responder, 80, "Positive")
        body = self.client.get(
            "/api/dashboard", params={"timeFilter": "All", "sentiment": "Positive"}, headers=self.responder_headers,
        ).json()
        self.assertEqual(body["metrics"], {"total": 1, "positive": 1, "neutral": 0, "negative": 0})
        self.assertEqual(body["agentsBySentiment"], [{"id": self.responder.id, "name": "Asha Patel", "count": 1}])
        self.assertNotIn("agentStats", body)

    def test_dashboard_admin(self):
        other, _ = self._responder("ravi@example.com", "Ravi Kumar")
        self._save_report("a", self.responder, 80, "Positive")
        self._save_report("b", self.responder, 71, "Negative")
        self._save_report("c", other, 90, "Neutral")

        body = self.client.get("/api/dashboard", headers=self.admin_headers).json()
        self.assertEqual(body["metrics"]["total"], 3)
        self.assertEqual(body["chart"], [{"name": "Ravi", "score": 90}, {"name": "Asha", "score": 76}])
        self.assertEqual(len(body["agentStats"][1]["reports"]), 2)

        drill = self.client.get(
            f"/api/dashboard/agents/{self.responder.id}/reports",
            params={"sentiment": "Negative"},
            headers=self.admin_headers,
        ).json()
        self.assertEqual([r["id"] for r in drill], ["b"])


# ===================================================================
# 6. Mentor, live copilot, proxy
# ===================================================================

class TestAssistRoutes(ApiTestCase):

    @patch("callsense.api.routes.assist.ask_mentor", return_value="- Offer the trial.")
    def test_mentor(self, mock_mentor):
        resp = self.client.post("/api/mentor", json={"question": "How do I close?"}, headers=self.responder_headers)
        self.assertEqual(resp.json(), {"answer": "- Offer the trial."})
        mock_mentor.assert_called_once_with("How do I close?")

    @patch("callsense.live.copilot.genai_client.generate")
    @patch("callsense.live.copilot.prepare_live_context", return_value="CARD")
    def test_live_session_lifecycle(self, mock_context, mock_generate):
        repository.add_knowledge_base_file(self.store, "plans.pdf", "UEs=")
        repository.save_admin_rules(self.store, "Mention refunds.")
        mock_generate.return_value = '{"transcript": "Hello", "suggestion": "[Open] Greet warmly"}'

        resp = self.client.post("/api/live/sessions", json={"sampleRate": 16000}, headers=self.responder_headers)
        self.assertEqual(resp.status_code, 201)
        session_id = resp.json()["id"]
        self.assertEqual(resp.json()["battlecard"], "CARD")
        self.assertEqual(resp.json()["sendInterval"], 5.0)
        mock_context.assert_called_once_with(["UEs="], "Mention refunds.")

        pcm = base64.b64encode(b"\x00\x00" * 160).decode()
        resp = self.client.post(f"/api/live/sessions/{session_id}/audio", json={"pcm": pcm}, headers=self.responder_headers)
        body = resp.json()
        self.assertTrue(body["flushed"])
        self.assertEqual(body["transcript"][0]["text"], "Hello")
        self.assertEqual(body["suggestions"][0]["reviewTag"], "Open")

        # another user cannot see the session
        self.assertEqual(self.client.get(f"/api/live/sessions/{session_id}", headers=self.admin_headers).status_code, 404)

        self.assertEqual(self.client.delete(f"/api/live/sessions/{session_id}", headers=self.responder_headers).status_code, 200)
        self.assertIsNone(copilot.sessions.get(session_id))

    @patch("callsense.live.copilot.prepare_live_context", return_value="CARD")
    def test_live_audio_validation(self, _context):
        session_id = self.client.post("/api/live/sessions", json={}, headers=self.responder_headers).json()["id"]
        url = f"/api/live/sessions/{session_id}/audio"
        self.assertEqual(self.client.post(url, json={}, headers=self.responder_headers).status_code, 422)
        self.assertEqual(self.client.post(url, json={"pcm": "!!"}, headers=self.responder_headers).status_code, 422)
        odd = base64.b64encode(b"\x00\x00\x00").decode()
        self.assertEqual(self.client.post(url, json={"pcm": odd}, headers=self.responder_headers).status_code, 422)
        copilot.sessions.stop(session_id)

    def test_proxy_missing_fields(self):
        resp = self.client.post("/api/generate", json={"model": "m"})
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json(), {"error": "Missing model or contents"})

    @patch("callsense.api.routes.assist.genai_client.generate_raw")
    def test_proxy_success(self, mock_raw):
        mock_raw.return_value = ("hi", {"id": "resp-1"})
        resp = self.client.post("/api/generate", json={
            "model": "gemini-2.5-flash",
            "contents": {"parts": [{"text": "say hi"}]},
            "config": {"temperature": 0.2},
        })
        self.assertEqual(resp.json(), {"text": "hi", "raw": {"id": "resp-1"}})
        self.assertEqual(mock_raw.call_args.kwargs, {"model": "gemini-2.5-flash", "temperature": 0.2})

    @patch("callsense.api.routes.assist.genai_client.generate_raw")
    def test_proxy_failure(self, mock_raw):
        mock_raw.side_effect = RuntimeError("upstream 503")
        resp = self.client.post("/api/generate", json={"model": "m", "contents": "hi"})
        self.assertEqual(resp.status_code, 500)
        self.assertEqual(resp.json(), {"error": "Inference request failed", "details": "upstream 503"})

    def test_proxy_bad_contents(self):
        resp = self.client.post("/api/generate", json={"model": "m", "contents": {"nope": 1}})
        self.assertEqual(resp.status_code, 500)
        self.assertEqual(resp.json()["error"], "Inference request failed")


if __name__ == "__main__":
    unittest.main()
