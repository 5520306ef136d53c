"""Tests for the project endpoints."""

import pytest
from httpx import AsyncClient

from conftest import auth_headers, make_user


async def _create(client: AsyncClient, enquiry, user) -> dict:
    response = await client.post(
        "/projects",
        json={"enquiryId": str(enquiry.id), "quoteAmount": 48000, "services": ["Patent", "Search"]},
        headers=auth_headers(user),
    )
    assert response.status_code == 201, response.text
    return response.json()["data"]


@pytest.mark.asyncio
async def test_projects_require_role(client: AsyncClient, db):
    outsider = make_user(db, "Outsider")

    assert (await client.get("/projects")).status_code == 401
    assert (await client.get("/projects", headers=auth_headers(outsider))).status_code == 403


@pytest.mark.asyncio
async def test_create_project(client: AsyncClient, enquiry, project_manager):
    project = await _create(client, enquiry, project_manager)

    assert project["projectName"] == "Patent Filing - Project"
    assert project["services"] == ["Patent", "Search"]
    assert project["currentStage"] == "Draft Quote"
    assert project["quote"]["amount"] == 48000
    assert project["quote"]["currency"] == "INR"
    assert project["quote"]["draftBy"] == str(project_manager.id)
    assert project["projectManager"] == str(project_manager.id)

    duplicate = await client.post(
        "/projects", json={"enquiryId": str(enquiry.id)}, headers=auth_headers(project_manager)
    )
    assert duplicate.status_code == 400
    assert duplicate.json()["message"] == "A project already exists for this enquiry"


@pytest.mark.asyncio
async def test_approval_flow_over_http(client: AsyncClient, enquiry, project_manager, approver, sender):
    project = await _create(client, enquiry, project_manager)
    url = f"/projects/{project['id']}"

    sent = await client.put(
        url,
        json={"currentStage": "Internal Approval", "quote": {"assignedApprover": str(approver.id)}},
        headers=auth_headers(project_manager),
    )
    assert sent.status_code == 200
    assert sent.json()["data"]["quote"]["assignedApproverName"] == "Harish Higher"
    assert [e["to"] for e in sender.sent] == [approver.email]

    blocked = await client.put(
        url, json={"currentStage": "Quote Sent"}, headers=auth_headers(project_manager)
    )
    assert blocked.status_code == 403
    assert blocked.json()["message"] == "Only the assigned approver can approve this quote"

    approved = await client.put(url, json={"currentStage": "Quote Sent"}, headers=auth_headers(approver))
    assert approved.status_code == 200
    quote = approved.json()["data"]["quote"]
    assert quote["internalApprovedBy"] == str(approver.id)
    assert quote["internalApprovalDate"] is not None
    assert quote["sentBy"] == str(approver.id)


@pytest.mark.asyncio
async def test_update_rejects_unknown_stage(client: AsyncClient, enquiry, project_manager):
    project = await _create(client, enquiry, project_manager)

    response = await client.put(
        f"/projects/{project['id']}",
        json={"currentStage": "Shipped"},
        headers=auth_headers(project_manager),
    )
    assert response.status_code == 400
    assert response.json()["errors"][0]["field"] == "currentStage"


@pytest.mark.asyncio
async def test_list_and_delete(client: AsyncClient, enquiry, superuser):
    project = await _create(client, enquiry, superuser)
    headers = auth_headers(superuser)

    listing = await client.get("/projects", params={"search": "asha@client"}, headers=headers)
    data = listing.json()["data"]
    assert data["total"] == 1
    assert data["items"][0]["quoteAmount"] == 48000

    deleted = await client.delete(f"/projects/{project['id']}", headers=headers)
    assert deleted.status_code == 200
    assert (await client.get(f"/projects/{project['id']}", headers=headers)).status_code == 404


@pytest.mark.asyncio
async def test_higher_management_can_read(client: AsyncClient, enquiry, project_manager, approver):
    project = await _create(client, enquiry, project_manager)

    response = await client.get(f"/projects/{project['id']}", headers=auth_headers(approver))
    assert response.status_code == 200
    assert response.json()["data"]["clientEmail"] == "asha@client.io"
