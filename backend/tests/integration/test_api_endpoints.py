"""HTTP-level tests: authentication, access mapping and the answering flow."""
from httpx import AsyncClient
from jose import jwt

from tests.conftest import auth_headers_for, create_assignment, create_template

API = "/api/v1"


class TestAuthentication:

    async def test_health(self, client: AsyncClient):
        response = await client.get("/health")
        assert response.status_code == 200

    async def test_missing_token(self, client: AsyncClient, graph):
        response = await client.get(f"{API}/templates/{graph.template.id}")

        assert response.status_code == 401
        assert response.headers["www-authenticate"] == "Bearer"
        assert response.json()["error"] == "AuthenticationError"

    async def test_forged_token(self, client: AsyncClient, graph):
        token = jwt.encode({"sub": str(graph.owner.id)}, "not-the-secret", algorithm="HS256")
        response = await client.get(
            f"{API}/templates/{graph.template.id}", headers={"Authorization": f"Bearer {token}"}
        )
        assert response.status_code == 401


class TestTemplateEndpoints:

    async def test_owner_reads_template(self, client: AsyncClient, graph):
        response = await client.get(f"{API}/templates/{graph.template.id}", headers=graph.headers())

        assert response.status_code == 200
        assert response.json()["slug"] == graph.template.slug

    async def test_non_member_gets_permission_error(self, client: AsyncClient, graph):
        response = await client.get(
            f"{API}/templates/{graph.template.id}", headers=graph.headers(graph.outsider, org_id=graph.org.id)
        )

        assert response.status_code == 403
        body = response.json()
        assert body["error"] == "NotOrganizationMemberError"
        assert body["organization_id"] == graph.org.id

    async def test_unlinked_organization_gets_permission_error(self, client: AsyncClient, graph):
        response = await client.get(f"{API}/templates/{graph.template.id}", headers=graph.headers(graph.outsider))

        assert response.status_code == 403
        assert response.json()["error"] == "ResourceNotLinkedError"

    async def test_missing_template(self, client: AsyncClient, graph):
        response = await client.get(f"{API}/templates/999", headers=graph.headers())

        assert response.status_code == 404
        assert response.json() == {"detail": "Template not found", "error": "NotFoundError"}

    async def test_ambiguous_organization(self, client: AsyncClient, graph):
        headers = auth_headers_for(
            graph.owner.id, orgs=[{"org_id": graph.org.id, "roles": ["OWNER"]}, {"org_id": 77, "roles": ["OWNER"]}]
        )
        response = await client.get(f"{API}/templates/", headers=headers)

        assert response.status_code == 400
        assert response.json()["field"] == "org_id"

    async def test_full_template(self, client: AsyncClient, graph):
        response = await client.get(f"{API}/templates/{graph.template.id}/full", headers=graph.headers())

        assert response.status_code == 200
        sections = response.json()["sections"]
        assert [q["question"]["type"] for q in sections[0]["questions"]] == [
            "SCALE",
            "TEXT",
            "SINGLE_CHOICE",
            "BOOLEAN",
        ]
        assert [o["value"] for o in sections[0]["questions"][2]["question"]["options"]] == ["low", "mid", "high"]

    async def test_section_questions(self, client: AsyncClient, graph):
        response = await client.get(f"{API}/sections/{graph.section.id}/questions", headers=graph.headers())

        assert response.status_code == 200
        assert [q["id"] for q in response.json()] == [link.id for link in graph.links]

    async def test_create_template(self, client: AsyncClient, graph):
        response = await client.post(
            f"{API}/templates/", json={"name": "Pulse check"}, headers=graph.headers(org_id=graph.org.id)
        )

        assert response.status_code == 201
        assert response.json()["state"] == "DRAFT"
        assert response.json()["created_by_organization_id"] == graph.org.id

    async def test_link_update_is_checked_against_the_links_template(self, client: AsyncClient, db_session, graph):
        own = await create_template(db_session, graph.other_org, slug="globex-template")
        link = graph.links[0]

        response = await client.patch(
            f"{API}/template-questions/{link.id}",
            json={"template_id": own.id, "order": 42},
            headers=graph.headers(graph.outsider),
        )

        assert response.status_code == 403
        assert response.json()["error"] == "ResourceNotLinkedError"
        await db_session.refresh(link)
        assert link.order == 0

    async def test_link_create_is_checked_against_the_sections_template(self, client: AsyncClient, db_session, graph):
        own = await create_template(db_session, graph.other_org, slug="globex-template")

        response = await client.post(
            f"{API}/template-questions",
            json={"template_id": own.id, "section_id": graph.section.id, "question_id": graph.scale.id},
            headers=graph.headers(graph.outsider),
        )

        assert response.status_code == 403
        listed = await client.get(f"{API}/sections/{graph.section.id}/questions", headers=graph.headers())
        assert len(listed.json()) == 4

    async def test_section_update_ignores_body_template(self, client: AsyncClient, db_session, graph):
        own = await create_template(db_session, graph.other_org, slug="globex-template")

        response = await client.patch(
            f"{API}/sections/{graph.section.id}",
            json={"template_id": own.id, "title": "Taken over"},
            headers=graph.headers(graph.outsider),
        )

        assert response.status_code == 403

    async def test_unknown_link(self, client: AsyncClient, graph):
        response = await client.patch(
            f"{API}/template-questions/999", json={"order": 1}, headers=graph.headers()
        )
        assert response.status_code == 404


class TestSessionFlow:

    async def test_schedule_assign_answer_and_track(self, client: AsyncClient, graph):
        headers = graph.headers(org_id=graph.org.id)
        created = await client.post(
            f"{API}/sessions/",
            json={
                "organization_id": graph.org.id,
                "template_id": graph.template.id,
                "name": "Quarterly review",
                "start_at": "2024-01-01T00:00:00Z",
                "end_at": "2024-01-02T00:00:00Z",
            },
            headers=headers,
        )
        assert created.status_code == 201
        session_id = created.json()["id"]
        assert created.json()["state"] == "SCHEDULED"

        assigned = await client.post(
            f"{API}/assignments",
            json={"session_id": session_id, "respondent_user_id": graph.respondent.id},
            headers=headers,
        )
        assert assigned.status_code == 201
        assignment = assigned.json()
        assert assignment["subject_user_id"] == graph.respondent.id

        duplicate = await client.post(
            f"{API}/assignments",
            json={"session_id": session_id, "respondent_user_id": graph.respondent.id},
            headers=headers,
        )
        assert duplicate.status_code == 409
        assert duplicate.json()["error"] == "AlreadyAssignedError"

        answer = {
            "assignment_id": assignment["id"],
            "session_id": session_id,
            "template_question_id": graph.links[0].id,
        }
        rejected = await client.post(f"{API}/responses", json={**answer, "scale_value": 9}, headers=headers)
        assert rejected.status_code == 400
        assert rejected.json()["field"] == "scale_value"

        saved = await client.post(f"{API}/responses", json={**answer, "scale_value": 3}, headers=headers)
        assert saved.status_code == 200
        assert saved.json()["scale_value"] == 3

        progress = await client.get(f"{API}/progress/assignments/{assignment['id']}", headers=headers)
        assert progress.status_code == 200
        assert progress.json()["total"] == 4
        assert progress.json()["answered"] == 1
        assert progress.json()["percent"] == 25
        assert progress.json()["status"] == "IN_PROGRESS"

    async def test_illegal_transition_and_closed_session(self, client: AsyncClient, db_session, graph):
        headers = graph.headers(org_id=graph.org.id)
        assignment = await create_assignment(db_session, graph.session, graph.respondent)
        url = f"{API}/sessions/{graph.session.id}"

        illegal = await client.patch(url, json={"state": "COMPLETED"}, headers=headers)
        assert illegal.status_code == 409
        assert illegal.json()["from"] == "SCHEDULED"
        assert illegal.json()["to"] == "COMPLETED"

        assert (await client.patch(url, json={"state": "IN_PROGRESS"}, headers=headers)).status_code == 200
        assert (await client.patch(url, json={"state": "COMPLETED"}, headers=headers)).status_code == 200

        late = await client.post(
            f"{API}/responses",
            json={
                "assignment_id": assignment.id,
                "session_id": graph.session.id,
                "template_question_id": graph.links[1].id,
                "text_value": "Too late",
            },
            headers=headers,
        )
        assert late.status_code == 409
        assert late.json()["error"] == "SessionNotAcceptingResponsesError"

    async def test_session_of_other_organization(self, client: AsyncClient, graph):
        response = await client.get(f"{API}/sessions/{graph.session.id}", headers=graph.headers(graph.outsider))

        assert response.status_code == 403
        assert response.json()["error"] == "ResourceNotLinkedError"

    async def test_missing_session(self, client: AsyncClient, graph):
        response = await client.get(f"{API}/sessions/999", headers=graph.headers())
        assert response.status_code == 404

    async def test_bulk_fan_out(self, client: AsyncClient, graph):
        headers = graph.headers(org_id=graph.org.id)
        payload = {
            "session_id": graph.session.id,
            "perspective": "PEER",
            "respondent_user_id": graph.owner.id,
            "subject_user_ids": [graph.respondent.id, graph.peer.id, graph.peer.id],
        }
        first = await client.post(f"{API}/assignments/bulk", json=payload, headers=headers)
        second = await client.post(f"{API}/assignments/bulk", json=payload, headers=headers)

        assert first.json() == {"created": 2}
        assert second.json() == {"created": 0}

        listed = await client.get(f"{API}/sessions/{graph.session.id}/assignments", headers=headers)
        assert {a["respondent"]["id"] for a in listed.json()} == {graph.owner.id}

    async def test_respondent_views(self, client: AsyncClient, graph):
        headers = graph.headers(graph.respondent)
        joined = await client.post(f"{API}/sessions/{graph.session.id}/self-assignment", headers=headers)
        assert joined.status_code == 200
        assert joined.json()["perspective"] == "SELF"

        mine = await client.get(f"{API}/sessions/me", headers=headers)
        assert mine.status_code == 200
        assert [s["id"] for s in mine.json()["items"]] == [graph.session.id]
        assert mine.json()["items"][0]["perspectives"] == ["SELF"]

        questions = await client.get(
            f"{API}/sessions/{graph.session.id}/questions", params={"perspective": "SELF"}, headers=headers
        )
        assert questions.status_code == 200
        assert len(questions.json()["sections"][0]["questions"]) == 4

        progress = await client.get(f"{API}/progress/sessions/{graph.session.id}/me", headers=headers)
        assert progress.json()["status"] == "NOT_STARTED"
        assert progress.json()["assignments"] == 1

    async def test_bulk_responses_keep_items_before_failure(self, client: AsyncClient, db_session, graph):
        headers = graph.headers(org_id=graph.org.id)
        assignment = await create_assignment(db_session, graph.session, graph.respondent)
        base = {"assignment_id": assignment.id, "session_id": graph.session.id}
        payload = {
            "items": [
                {**base, "template_question_id": graph.links[0].id, "scale_value": 4},
                {**base, "template_question_id": graph.links[2].id, "option_value": "extreme"},
            ]
        }
        response = await client.post(f"{API}/responses/bulk", json=payload, headers=headers)
        assert response.status_code == 400
        assert response.json()["index"] == 1

        listed = await client.get(f"{API}/sessions/{graph.session.id}/responses", headers=headers)
        assert listed.json()["total"] == 1
