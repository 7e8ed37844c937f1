import json

import pytest
from fastapi.testclient import TestClient

from sitelens.app import app, get_scan_options
from sitelens.baselines import BASELINES
from sitelens.config import ScanSettings
from sitelens.fetching import FetchResponse

SHOP_URL = "https://shop.example.com/"


@pytest.fixture
def client(shop_site):
    app.dependency_overrides[get_scan_options] = lambda: {
        "fetch": shop_site,
        "settings": ScanSettings(),
    }
    yield TestClient(app)
    app.dependency_overrides.clear()


def _events(body):
    return [json.loads(line[len("data: "):]) for line in body.splitlines() if line.startswith("data: ")]


def test_healthcheck(client):
    response = client.get("/healthz")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_site_type_catalogue(client):
    types = client.get("/api/site-types").json()
    assert len(types) == len(BASELINES)
    assert {"site_type", "description", "base_score", "industry"} <= set(types[0])


def test_scan_returns_report(client):
    response = client.post("/api/scan", json={"url": SHOP_URL})
    assert response.status_code == 200
    report = response.json()
    assert report["title"] == "Mug Shop"
    assert report["site_type"] == "ecommerce-standard"


def test_policy_rejection_maps_to_451(client, shop_site):
    shop_site.pages["https://shop.example.com/robots.txt"] = "User-agent: *\nDisallow: /\n"
    response = client.post("/api/scan", json={"url": SHOP_URL})
    assert response.status_code == 451
    assert response.json()["detail"]["reason"] == "robots"


def test_non_ethical_scan_through_api(client, shop_site):
    shop_site.pages["https://shop.example.com/robots.txt"] = "User-agent: *\nDisallow: /\n"
    response = client.post("/api/scan", json={"url": SHOP_URL, "ethical_mode": False})
    assert response.status_code == 200
    assert response.json()["scraping_policy"]["scraping_prohibited"] is True


def test_unknown_site_type_maps_to_400(client):
    response = client.post("/api/scan", json={"url": SHOP_URL, "site_type": "casino"})
    assert response.status_code == 400
    assert response.json()["detail"]["error"] == "UnknownSiteType"


def test_private_address_maps_to_400(client):
    response = client.post("/api/scan", json={"url": "http://127.0.0.1/"})
    assert response.status_code == 400
    assert response.json()["detail"]["issues"]


def test_invalid_url_is_a_validation_error(client):
    assert client.post("/api/scan", json={"url": "not a url"}).status_code == 422


def test_fetch_failure_maps_to_502(client, shop_site):
    shop_site.pages[SHOP_URL] = FetchResponse(SHOP_URL, 503, {}, "down")
    response = client.post("/api/scan", json={"url": SHOP_URL})
    assert response.status_code == 502
    assert response.json()["detail"]["status_code"] == 503


def test_stream_emits_progress_then_report(client):
    response = client.get("/api/scan/stream", params={"url": SHOP_URL})
    assert response.status_code == 200
    events = _events(response.text)

    assert events[0]["type"] == "phase"
    assert events[-1]["type"] == "report"
    assert events[-1]["progress"] == 100
    assert events[-1]["report"]["title"] == "Mug Shop"


def test_stream_reports_errors(client):
    response = client.get("/api/scan/stream", params={"url": SHOP_URL, "site_type": "casino"})
    events = _events(response.text)
    assert events == [
        {
            "type": "error",
            "status": 400,
            "error": "UnknownSiteType",
            "message": "Unknown site type: 'casino'",
            "timestamp": events[0]["timestamp"],
        }
    ]
