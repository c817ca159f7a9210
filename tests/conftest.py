import os
import shutil
import tempfile
import importlib
import pytest
import requests
from fastapi.testclient import TestClient
import sys

# Ensure project root is on sys.path
PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
	sys.path.insert(0, PROJECT_ROOT)

# Must be set before the Celery app is imported
os.environ["CELERY_TASK_ALWAYS_EAGER"] = "1"
os.environ["JWT_SECRET"] = "test_secret"
os.environ["GEMINI_API_KEY"] = "test-key"

_BASE_DIR = tempfile.mkdtemp(prefix="lda_tests_")
os.environ["STATE_DIR"] = os.path.join(_BASE_DIR, "state")
os.environ["UPLOAD_DIR"] = os.path.join(_BASE_DIR, "uploads")
os.environ["LOG_DIR"] = os.path.join(_BASE_DIR, "logs")

PDF = "application/pdf"
DOCX = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"

CONTRACT_TEXT = (
	"SERVICES AGREEMENT\n"
	"The Client shall pay all invoices within 30 days.\n"
	"Either party may terminate with 30 days notice."
)


@pytest.fixture(scope="session")
def temp_dirs():
	yield {
		"base": _BASE_DIR,
		"state": os.environ["STATE_DIR"],
		"uploads": os.environ["UPLOAD_DIR"],
		"logs": os.environ["LOG_DIR"],
	}
	shutil.rmtree(_BASE_DIR, ignore_errors=True)


@pytest.fixture(scope="session")
def app_client(temp_dirs):
	import main as main_module
	importlib.reload(main_module)
	return TestClient(main_module.app)


@pytest.fixture(autouse=True)
def reset_state(temp_dirs):
	# Each test starts from an empty store and upload directory
	for path in (temp_dirs["state"], temp_dirs["uploads"]):
		shutil.rmtree(path, ignore_errors=True)
		os.makedirs(path, exist_ok=True)
	yield


@pytest.fixture
def fake_extractor(monkeypatch):
	"""Replace the real PDF/DOCX extraction with a canned text."""
	calls = []

	def _extract(data, content_type):
		calls.append((data, content_type))
		return CONTRACT_TEXT

	monkeypatch.setattr("services.ingestion.extract_text", _extract)
	return calls


class FakeResponse:
	"""Minimal stand-in for requests.Response."""

	def __init__(self, payload=None, status_code=200, json_error=None):
		self.payload = payload
		self.status_code = status_code
		self.json_error = json_error

	def raise_for_status(self):
		if self.status_code >= 400:
			raise requests.exceptions.HTTPError(f"{self.status_code} Client Error")

	def json(self):
		if self.json_error:
			raise self.json_error
		return self.payload


class FakeSession:
	def __init__(self, response=None, error=None):
		self.response = response
		self.error = error
		self.calls = []

	def post(self, url, **kwargs):
		self.calls.append((url, kwargs))
		if self.error:
			raise self.error
		return self.response


class FakeGateway:
	"""Stands in for GeminiGateway: returns queued replies or raises queued errors."""

	def __init__(self, *replies):
		self.replies = list(replies)
		self.prompts = []

	def invoke(self, prompt):
		self.prompts.append(prompt)
		reply = self.replies.pop(0) if self.replies else "ok"
		if isinstance(reply, Exception):
			raise reply
		return reply


@pytest.fixture
def fake_gateway(monkeypatch):
	"""Route every AnalysisPipeline built during the test to one FakeGateway."""
	gateway = FakeGateway()
	monkeypatch.setattr("services.analysis.GeminiGateway", lambda: gateway)
	return gateway


def auth_headers(owner_id: int = 1) -> dict:
	from utils.jwt import create_access_token
	return {"Authorization": f"Bearer {create_access_token(owner_id)}"}
