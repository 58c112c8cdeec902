import json

import pytest

from app.adapters.ms365 import DriveFile, GraphClient, mail
from app.adapters.storage import EMPLOYEES, REVIEWS
from app.adapters.storage.onedrive import OneDriveStore, normalize_document
from app.core.exceptions import NotFoundError, StorageConflictError, StorageError
from app.schemas.auth import Account
from app.services.identity import IdentityOutcome, resolve_identity


class FakeResponse:
    def __init__(self, status_code, payload=None, content=None):
        self.status_code = status_code
        self._payload = payload or {}
        self.content = content if content is not None else json.dumps(self._payload).encode()
        self.reason = {200: "OK", 202: "Accepted", 404: "Not Found", 412: "Precondition Failed",
                       500: "Internal Server Error"}.get(status_code, "")

    @property
    def ok(self):
        return self.status_code < 400

    def json(self):
        return self._payload


class FakeGraphSession:
    """A requests.Session that serves one drive item, honouring If-Match."""

    def __init__(self, document=None):
        self.body = json.dumps(document).encode() if document is not None else None
        self.version = 1
        self.calls = []
        self.fail_next_put = False

    @property
    def etag(self):
        return f'"{{ITEM}},{self.version}"'

    def request(self, method, url, headers=None, timeout=None, **kwargs):
        self.calls.append((method, url, headers))
        assert headers["Authorization"] == "Bearer app-token"
        if url.endswith("/sendMail"):
            return FakeResponse(202)
        if method == "GET" and url.endswith(":"):
            if self.body is None:
                return FakeResponse(404)
            return FakeResponse(200, {"id": "ITEM", "eTag": self.etag})
        if method == "GET" and url.endswith(":/content"):
            return FakeResponse(200, content=self.body)
        if method == "PUT" and url.endswith(":/content"):
            if self.fail_next_put:
                self.fail_next_put = False
                return FakeResponse(500)
            if_match = headers.get("If-Match")
            if if_match and if_match != self.etag:
                return FakeResponse(412)
            self.body = kwargs["data"]
            self.version += 1
            return FakeResponse(200, {"id": "ITEM", "eTag": self.etag})
        return FakeResponse(404)

    def overwrite_elsewhere(self, document):
        """Another browser session saves the file."""
        self.body = json.dumps(document).encode()
        self.version += 1

    def stored(self):
        return json.loads(self.body)


def make_store(session):
    client = GraphClient(lambda: "app-token", base_url="https://graph.test/v1.0", session=session)
    return OneDriveStore(DriveFile(client, "performance-review/db.json", owner="owner@example.com"))


ERIN = {"id": "EMP-3", "name": "Erin", "email": "erin@example.com", "role": "employee"}


def test_missing_file_is_created_empty():
    session = FakeGraphSession()
    store = make_store(session)
    assert store.read(EMPLOYEES) == {}
    assert session.stored() == {"employees": {}, "reviews": {}}
    assert "users/owner%40example.com/drive/root:/performance-review/db.json:" in session.calls[0][1]


def test_bootstrap_admin_on_drive_gets_fixed_id():
    store = make_store(FakeGraphSession())
    result = resolve_identity(store, Account(email="alice@example.com", name="Alice"))
    assert result.outcome == IdentityOutcome.BOOTSTRAP_ADMIN
    assert result.employee.id == "HR001"


def test_writes_rewrite_the_whole_document_with_if_match():
    session = FakeGraphSession({"employees": {"erin@example_com": ERIN}, "reviews": {}})
    store = make_store(session)

    store.update(EMPLOYEES, "erin@example_com", {"name": "Erin E."})
    store.write(REVIEWS, "REV-1", {"id": "REV-1", "employeeEmail": "erin@example.com"})

    document = session.stored()
    assert document["employees"]["erin@example_com"]["name"] == "Erin E."
    assert document["employees"]["erin@example_com"]["email"] == "erin@example.com"
    assert list(document["reviews"]) == ["REV-1"]

    puts = [headers for method, _, headers in session.calls if method == "PUT"]
    assert all("If-Match" in headers for headers in puts)


def test_update_of_missing_record_leaves_file_untouched():
    session = FakeGraphSession({"employees": {"erin@example_com": ERIN}, "reviews": {}})
    store = make_store(session)
    with pytest.raises(NotFoundError):
        store.update(EMPLOYEES, "ghost@example_com", {"name": "Ghost"})
    assert list(session.stored()["employees"]) == ["erin@example_com"]
    assert not [call for call in session.calls if call[0] == "PUT"]


def test_concurrent_overwrite_is_a_conflict_then_reloads():
    session = FakeGraphSession({"employees": {"erin@example_com": ERIN}, "reviews": {}})
    store = make_store(session)
    store.read(EMPLOYEES)

    session.overwrite_elsewhere({"employees": {"erin@example_com": {**ERIN, "name": "Other"}}, "reviews": {}})
    with pytest.raises(StorageConflictError) as exc:
        store.update(EMPLOYEES, "erin@example_com", {"position": "Lead"})
    assert exc.value.status_code == 409

    # The other session's write survives and is visible after the conflict
    assert store.get(EMPLOYEES, "erin@example_com")["name"] == "Other"
    store.update(EMPLOYEES, "erin@example_com", {"position": "Lead"})
    assert session.stored()["employees"]["erin@example_com"] == {**ERIN, "name": "Other", "position": "Lead"}


def test_failed_save_keeps_cached_document():
    session = FakeGraphSession({"employees": {"erin@example_com": ERIN}, "reviews": {}})
    store = make_store(session)
    session.fail_next_put = True
    with pytest.raises(StorageError):
        store.remove(EMPLOYEES, "erin@example_com")
    assert store.get(EMPLOYEES, "erin@example_com") is not None


def test_legacy_array_document_is_rekeyed():
    document = normalize_document({
        "employees": [{"id": "HR001", "email": "Alice.Admin@Example.com", "role": "hr"}],
        "reviews": [{"id": "REV-1", "employeeEmail": "erin@example.com"}],
    })
    assert list(document["employees"]) == ["alice_admin@example_com"]
    assert list(document["reviews"]) == ["REV-1"]


def test_reload_picks_up_external_changes():
    session = FakeGraphSession({"employees": {}, "reviews": {}})
    store = make_store(session)
    assert store.read(EMPLOYEES) == {}
    session.overwrite_elsewhere({"employees": {"erin@example_com": ERIN}, "reviews": {}})
    store.reload()
    assert list(store.read(EMPLOYEES)) == ["erin@example_com"]


def test_send_mail_posts_to_sender_mailbox():
    session = FakeGraphSession()
    client = GraphClient(lambda: "app-token", base_url="https://graph.test/v1.0", session=session)
    mail.send_message(client, "hr@example.com", "nina@example.com", "Welcome", "<p>Hi</p>")
    method, url, _ = session.calls[-1]
    assert method == "POST"
    assert url == "https://graph.test/v1.0/users/hr%40example.com/sendMail"
    message = mail.build_message("nina@example.com", "Welcome", "<p>Hi</p>")
    assert message["saveToSentItems"] is True
    assert message["message"]["toRecipients"][0]["emailAddress"]["address"] == "nina@example.com"
