import pytest

requests = pytest.importorskip("requests")

from src.agency_crm.client.api import CRMClient, CRMClientError, check_seats


class FakeResponse:
    def __init__(self, status_code=200, body=None):
        self.status_code = status_code
        self.ok = 200 <= status_code < 400
        self._body = body
        self.content = b"x" if body is not None else b""
        self.text = str(body)

    def json(self):
        if self._body is None:
            raise ValueError("no body")
        return self._body


class FakeSession:
    def __init__(self, responses):
        self.headers = {}
        self.responses = list(responses)
        self.calls = []

    def request(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def test_client_sends_bearer_token_and_json():
    session = FakeSession([FakeResponse(201, {"id": "job-1", "status": "pending"})])
    client = CRMClient(base_url="https://crm.example.com/", token="abc", session=session)

    job = client.create_import_job("leads.csv", 12)

    assert job["id"] == "job-1"
    assert session.headers["Authorization"] == "Bearer abc"
    method, url, kwargs = session.calls[0]
    assert (method, url) == ("POST", "https://crm.example.com/imports")
    assert kwargs["json"] == {"filename": "leads.csv", "total_rows": 12}
    assert kwargs["timeout"] == CRMClient.DEFAULT_TIMEOUT


def test_error_status_raises_with_detail():
    session = FakeSession([FakeResponse(409, {"detail": "Import job is already succeeded"})])
    client = CRMClient(base_url="https://crm.example.com", token="abc", session=session)

    with pytest.raises(CRMClientError) as excinfo:
        client.send_import_batch("job-1", [{"email": "a@example.com"}], offset=0)

    assert excinfo.value.status_code == 409
    assert "already succeeded" in str(excinfo.value)


def test_connection_errors_are_wrapped():
    session = FakeSession([requests.exceptions.ConnectionError("refused")])
    client = CRMClient(base_url="https://crm.example.com", token="abc", session=session)

    with pytest.raises(CRMClientError) as excinfo:
        client.get_import_job("job-1")

    assert excinfo.value.status_code is None


def test_check_seats_uses_shared_arithmetic():
    session = FakeSession(
        [
            FakeResponse(
                200,
                {
                    "total_seats": 5,
                    "active_members": 3,
                    "pending_invitations": 1,
                    "available_seats": 1,
                    "can_invite_more": True,
                },
            )
        ]
    )
    client = CRMClient(base_url="https://crm.example.com", token="abc", session=session)

    usage = check_seats(client, requested=2)

    assert usage.available_seats == 1
    assert usage.can_invite(2) is False
