import time

from fastapi import FastAPI, Depends, Request
from fastapi.testclient import TestClient

from hoopshop.utils.rate_limit import optional_rate_limit, rate_limit_health_info


def _make_app(times=2, seconds=60):
    app = FastAPI()

    @app.post("/checkout", dependencies=[Depends(optional_rate_limit(times, seconds))])
    def checkout():
        return {"ok": True}

    @app.post("/confirm", dependencies=[Depends(optional_rate_limit(times, seconds))])
    def confirm():
        return {"ok": True}

    @app.get("/rl_info")
    def rl_info(request: Request):
        return rate_limit_health_info(request)

    return app


def test_rate_limit_fallback_blocks_after_limit(monkeypatch):
    monkeypatch.setenv("LOCAL_RATE_LIMIT_FALLBACK", "1")
    client = TestClient(_make_app(times=2, seconds=60))

    assert client.post("/checkout").status_code == 200
    assert client.post("/checkout").status_code == 200
    assert client.post("/checkout").status_code == 429


def test_rate_limit_is_per_path_and_session(monkeypatch):
    monkeypatch.setenv("LOCAL_RATE_LIMIT_FALLBACK", "1")
    client = TestClient(_make_app(times=2, seconds=60))
    client.cookies.set("sb_access", "some-session")

    assert client.post("/checkout").status_code == 200
    assert client.post("/checkout").status_code == 200
    assert client.post("/checkout").status_code == 429

    # /confirm a son propre compteur
    assert client.post("/confirm").status_code == 200
    assert client.post("/confirm").status_code == 200
    assert client.post("/confirm").status_code == 429


def test_rate_limit_resets_after_window(monkeypatch):
    monkeypatch.setenv("LOCAL_RATE_LIMIT_FALLBACK", "1")
    client = TestClient(_make_app(times=1, seconds=1))

    assert client.post("/checkout").status_code == 200
    assert client.post("/checkout").status_code == 429
    time.sleep(1.1)
    assert client.post("/checkout").status_code == 200


def test_rate_limit_disabled_flag_bypasses_limit(monkeypatch):
    monkeypatch.delenv("LOCAL_RATE_LIMIT_FALLBACK", raising=False)
    app = _make_app(times=1, seconds=60)
    app.state.rate_limit_enabled = False
    client = TestClient(app)

    for _ in range(3):
        assert client.post("/checkout").status_code == 200


def test_rate_limit_without_redis_lets_requests_through(monkeypatch):
    # fastapi-limiter non initialisé: l'erreur est journalisée, pas de 429
    monkeypatch.delenv("LOCAL_RATE_LIMIT_FALLBACK", raising=False)
    client = TestClient(_make_app(times=1, seconds=60))

    assert client.post("/checkout").status_code == 200
    assert client.post("/checkout").status_code == 200


def test_rate_limit_health_info(monkeypatch):
    from fastapi_limiter import FastAPILimiter

    app = _make_app()
    app.state.rate_limit_enabled = True
    client = TestClient(app)

    monkeypatch.setattr(FastAPILimiter, "redis", None, raising=False)
    info = client.get("/rl_info").json()
    assert info == {"enabled": True, "ready": False, "backend": None}

    monkeypatch.setattr(FastAPILimiter, "redis", object(), raising=False)
    info = client.get("/rl_info").json()
    assert info["ready"] is True
    assert info["backend"] == "redis"
