from medreport.middleware.rate_limit import SIMPLIFY_RATE_LIMIT


def _limit_count():
    return int(SIMPLIFY_RATE_LIMIT.split("/")[0])


def test_simplify_is_rate_limited(client):
    payload = {"text": "WBC: 6.1"}
    for _ in range(_limit_count()):
        assert client.post("/api/simplify", json=payload).status_code == 200
    r = client.post("/api/simplify", json=payload)
    assert r.status_code == 429
    j = r.json()
    assert j["code"] == "TOO_MANY_REQUESTS"
    assert "trace_id" in j
    assert int(r.headers["Retry-After"]) >= 1


def test_read_endpoints_are_not_limited(client):
    for _ in range(_limit_count() + 5):
        assert client.get("/api/health").status_code == 200
