from tests.conftest import COURSE_PAYLOAD, bearer


async def test_create_course_with_nested_topics(course):
    assert course["_id"]
    assert course["title"] == "Python from Scratch"
    assert course["enrollmentCount"] == 0
    assert course["totalLessons"] == 2
    assert course["freeLessons"] == 1
    assert course["premiumLessons"] == 1
    assert course["totalDuration"] == 25
    topic = course["topics"][0]
    assert topic["order"] == 0
    assert [st["title"] for st in topic["subTopics"]] == ["Installing Python", "The REPL"]


async def test_mutations_require_admin(client, user_token):
    resp = await client.post("/api/courses", json=COURSE_PAYLOAD, headers=bearer(user_token))
    assert resp.status_code == 403
    resp = await client.post("/api/courses", json=COURSE_PAYLOAD)
    assert resp.status_code == 401


async def test_course_validation(client, admin_token):
    payload = {**COURSE_PAYLOAD, "title": "ab", "premiumPrice": -1, "level": "Expert"}
    resp = await client.post("/api/courses", json=payload, headers=bearer(admin_token))
    assert resp.status_code == 400
    body = resp.json()
    assert body["message"] == "Validation failed"
    assert {"title", "premiumPrice", "level"} <= {e["field"] for e in body["errors"]}


async def test_list_filters_and_paginates(client, admin_token, course):
    other = {
        **COURSE_PAYLOAD,
        "title": "Docker Deep Dive",
        "description": "Images, containers and compose files.",
        "category": "DevOps",
        "level": "Advanced",
        "topics": [],
    }
    draft = {**COURSE_PAYLOAD, "title": "Unreleased draft", "isPublished": False, "topics": []}
    for payload in (other, draft):
        resp = await client.post("/api/courses", json=payload, headers=bearer(admin_token))
        assert resp.status_code == 201

    resp = await client.get("/api/courses")
    body = resp.json()
    assert body["pagination"] == {"page": 1, "limit": 10, "total": 2, "pages": 1}
    assert {c["title"] for c in body["data"]} == {"Python from Scratch", "Docker Deep Dive"}

    resp = await client.get("/api/courses", params={"category": "DevOps"})
    assert [c["title"] for c in resp.json()["data"]] == ["Docker Deep Dive"]

    resp = await client.get("/api/courses", params={"search": "PYTHON"})
    assert [c["title"] for c in resp.json()["data"]] == ["Python from Scratch"]

    resp = await client.get("/api/courses", params={"sortBy": "title", "sortOrder": "asc", "limit": 1, "page": 2})
    body = resp.json()
    assert [c["title"] for c in body["data"]] == ["Python from Scratch"]
    assert body["pagination"]["pages"] == 2


async def test_draft_visible_to_admin_only(client, admin_token, user_token):
    draft = {**COURSE_PAYLOAD, "title": "Secret draft", "isPublished": False}
    created = (await client.post("/api/courses", json=draft, headers=bearer(admin_token))).json()["data"]

    assert (await client.get(f"/api/courses/{created['_id']}")).status_code == 404
    assert (await client.get(f"/api/courses/{created['_id']}", headers=bearer(user_token))).status_code == 404
    assert (await client.get(f"/api/courses/{created['_id']}", headers=bearer(admin_token))).status_code == 200


async def test_get_missing_course(client):
    resp = await client.get("/api/courses/9999")
    assert resp.status_code == 404
    assert resp.json() == {"success": False, "message": "Course not found"}


async def test_update_course(client, admin_token, course):
    resp = await client.put(
        f"/api/courses/{course['_id']}",
        json={"title": "Python, Properly", "premiumPrice": 1500},
        headers=bearer(admin_token),
    )
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["title"] == "Python, Properly"
    assert data["premiumPrice"] == 1500
    assert data["totalLessons"] == 2

    resp = await client.put(
        f"/api/courses/{course['_id']}",
        json={"topics": [{"title": "Only topic", "subTopics": []}]},
        headers=bearer(admin_token),
    )
    data = resp.json()["data"]
    assert [t["title"] for t in data["topics"]] == ["Only topic"]
    assert data["totalLessons"] == 0


async def test_delete_course(client, admin_token, course):
    resp = await client.delete(f"/api/courses/{course['_id']}", headers=bearer(admin_token))
    assert resp.status_code == 200
    assert (await client.get(f"/api/courses/{course['_id']}")).status_code == 404
    resp = await client.delete(f"/api/courses/{course['_id']}", headers=bearer(admin_token))
    assert resp.status_code == 404


async def test_topic_and_sub_topic_editing(client, admin_token, course):
    cid = course["_id"]
    resp = await client.post(
        f"/api/topics/{cid}",
        json={"title": "Functions", "description": "def and return"},
        headers=bearer(admin_token),
    )
    assert resp.status_code == 201
    topic = resp.json()["data"]
    assert topic["order"] == 1

    resp = await client.put(f"/api/topics/{cid}/{topic['_id']}", json={"title": "Functions 101"}, headers=bearer(admin_token))
    assert resp.json()["data"]["title"] == "Functions 101"

    resp = await client.post(
        f"/api/subtopics/{cid}/{topic['_id']}",
        json={"title": "Arguments", "videoContent": "Positional and keyword arguments."},
        headers=bearer(admin_token),
    )
    assert resp.status_code == 201
    sub_topic = resp.json()["data"]
    assert sub_topic["order"] == 0
    assert sub_topic["duration"] == 15

    resp = await client.put(
        f"/api/subtopics/{cid}/{topic['_id']}/{sub_topic['_id']}",
        json={"tier": "premium"},
        headers=bearer(admin_token),
    )
    assert resp.json()["data"]["tier"] == "premium"

    detail = (await client.get(f"/api/courses/{cid}")).json()["data"]
    assert detail["totalLessons"] == 3
    assert detail["premiumLessons"] == 2

    resp = await client.delete(f"/api/subtopics/{cid}/{topic['_id']}/{sub_topic['_id']}", headers=bearer(admin_token))
    assert resp.status_code == 200
    resp = await client.delete(f"/api/topics/{cid}/{topic['_id']}", headers=bearer(admin_token))
    assert resp.status_code == 200
    detail = (await client.get(f"/api/courses/{cid}")).json()["data"]
    assert len(detail["topics"]) == 1
    assert detail["totalLessons"] == 2


async def test_topic_of_other_course_is_not_found(client, admin_token, course):
    other = {**COURSE_PAYLOAD, "title": "Another course"}
    other_id = (await client.post("/api/courses", json=other, headers=bearer(admin_token))).json()["data"]["_id"]
    topic_id = course["topics"][0]["_id"]
    resp = await client.put(f"/api/topics/{other_id}/{topic_id}", json={"title": "Hijacked"}, headers=bearer(admin_token))
    assert resp.status_code == 404


async def test_course_stats(client, admin_token, user_token, course):
    resp = await client.get("/api/courses/stats", headers=bearer(user_token))
    assert resp.status_code == 403
    resp = await client.get("/api/courses/stats", headers=bearer(admin_token))
    data = resp.json()["data"]
    assert data["totalCourses"] == 1
    assert data["publishedCourses"] == 1
    assert data["categoryStats"] == [{"_id": "Programming", "count": 1}]
