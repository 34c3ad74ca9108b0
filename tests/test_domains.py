"""
Route tests for the /domains blueprint.
"""

from __future__ import annotations

from conftest import make_report_xml

from dmarcdesk import db
from dmarcdesk.models import Domain, Report
from dmarcdesk.reports.fetcher import store_report
from dmarcdesk.reports.parser import parse_dmarc_attachment
from dmarcdesk.sources import SourceType


def _post(client, payload):
    return client.post("/domains/", json=payload)


def _domain(app, fqdn: str) -> Domain | None:
    with app.app_context():
        domain = db.session.execute(db.select(Domain).where(Domain.fqdn == fqdn)).scalars().first()
        if domain is not None:
            db.session.expunge(domain)
        return domain


def test_list_domains(user_client):
    response = user_client.get("/domains/")
    assert response.status_code == 200
    body = response.get_json()
    assert body["more"] is False
    assert body["domains"][0]["fqdn"] == "example.com"
    assert body["domains"][0]["description"] == "Main domain"


def test_list_requires_authentication(client):
    assert client.get("/domains/").status_code == 401


def test_add_domain_normalises_name(app, admin_client):
    response = _post(admin_client, {"action": "add", "fqdn": " Example.ORG. ", "description": "Second"})
    assert response.status_code == 200
    assert response.get_json()["domain"]["fqdn"] == "example.org"
    assert _domain(app, "example.org").description == "Second"


def test_add_invalid_domain(admin_client):
    response = _post(admin_client, {"action": "add", "fqdn": "not a domain"})
    assert response.status_code == 400
    assert response.get_json()["message"] == "Incorrect domain name"


def test_add_existing_domain(admin_client):
    response = _post(admin_client, {"action": "add", "fqdn": "example.com"})
    assert response.status_code == 400
    assert response.get_json()["message"] == "The domain already exists"


def test_non_admin_cannot_modify(manager_client):
    assert _post(manager_client, {"action": "add", "fqdn": "example.org"}).status_code == 403


def test_update_domain(app, admin_client):
    response = _post(admin_client, {"action": "update", "fqdn": "example.com", "active": False})
    assert response.status_code == 200
    assert response.get_json()["domain"]["active"] is False
    assert _domain(app, "example.com").active is False


def test_update_missing_domain(admin_client):
    response = _post(admin_client, {"action": "update", "fqdn": "missing.org"})
    assert response.status_code == 400
    assert response.get_json()["message"] == "The domain does not exist"


def test_delete_domain_with_reports_needs_force(app, admin_client):
    with app.app_context():
        store_report(parse_dmarc_attachment("r.xml", make_report_xml()), SourceType.UPLOADED_FILE)

    refused = _post(admin_client, {"action": "delete", "fqdn": "example.com"})
    assert refused.status_code == 400
    assert _domain(app, "example.com") is not None

    forced = _post(admin_client, {"action": "delete", "fqdn": "example.com", "force": True})
    assert forced.status_code == 200
    assert _domain(app, "example.com") is None
    with app.app_context():
        assert db.session.execute(db.select(db.func.count(Report.id))).scalar() == 0


def test_unknown_action(admin_client):
    response = _post(admin_client, {"action": "rename", "fqdn": "example.com"})
    assert response.status_code == 400
    assert response.get_json()["message"].startswith("Unknown action")
