import httpx

from worker import tasks


class _Response:
    def __init__(self, payload, status_code=200):
        self._payload = payload
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            request = httpx.Request("POST", "http://api/v1")
            raise httpx.HTTPStatusError("boom", request=request, response=httpx.Response(self.status_code, request=request))

    def json(self):
        return self._payload


def test_tasks_skip_without_admin_token(monkeypatch):
    monkeypatch.delenv("INTERNAL_ADMIN_TOKEN", raising=False)

    def _unexpected(*args, **kwargs):
        raise AssertionError("no request expected")

    monkeypatch.setattr(tasks.httpx, "post", _unexpected)
    result = tasks.sweep_expired_invitations()
    assert result["status"] == "skipped"


def test_sweep_task_calls_internal_endpoint(monkeypatch):
    calls = []
    monkeypatch.setenv("INTERNAL_ADMIN_TOKEN", "secret")
    monkeypatch.setenv("FINANCE_API_BASE_URL", "http://finance-api/v1/")

    def _post(url, headers, timeout):
        calls.append((url, headers))
        return _Response({"expired": 3})

    monkeypatch.setattr(tasks.httpx, "post", _post)
    result = tasks.sweep_expired_invitations()

    assert result == {"job": "invitation_expiry_sweep", "status": "ok", "result": {"expired": 3}}
    assert calls == [("http://finance-api/v1/admin/invitations/sweep", {"X-Internal-Admin-Token": "secret"})]


def test_budget_task_reports_http_errors(monkeypatch):
    monkeypatch.setenv("INTERNAL_ADMIN_TOKEN", "secret")
    monkeypatch.setattr(tasks.httpx, "post", lambda *args, **kwargs: _Response({}, status_code=503))

    result = tasks.evaluate_budget_alerts()
    assert result["job"] == "budget_alerts"
    assert result["status"] == "error"
