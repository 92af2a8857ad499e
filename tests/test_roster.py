from httpx import AsyncClient


async def test_departments_and_classes(client: AsyncClient, staff, headers) -> None:
    admin = headers["admin"]

    dept = await client.post(
        "/api/v1/roster/departments", json={"code": "eee", "name": "Electrical"}, headers=admin
    )
    assert dept.status_code == 201
    assert dept.json()["code"] == "EEE"

    duplicate = await client.post(
        "/api/v1/roster/departments", json={"code": "EEE", "name": "Electrical Again"}, headers=admin
    )
    assert duplicate.status_code == 409

    cls = await client.post(
        "/api/v1/roster/classes", json={"department_id": dept.json()["id"], "name": "I-A"}, headers=admin
    )
    assert cls.status_code == 201
    again = await client.post(
        "/api/v1/roster/classes", json={"department_id": dept.json()["id"], "name": "I-A"}, headers=admin
    )
    assert again.status_code == 409

    viewer = await client.post(
        "/api/v1/roster/departments", json={"code": "X", "name": "X"}, headers=headers["viewer"]
    )
    assert viewer.status_code == 403


async def test_create_student(client: AsyncClient, roster, headers) -> None:
    admin = headers["admin"]

    created = await client.post(
        "/api/v1/roster/students",
        json={
            "name": "Hari",
            "class_id": str(roster.cse3),
            "register_no": "cse3a03",
            "gender": "MALE",
            "admission_type": "CENTAC",
        },
        headers=admin,
    )
    assert created.status_code == 201, created.text
    body = created.json()
    assert body["register_no"] == "CSE3A03"
    assert body["department_id"] == str(roster.cse)
    assert body["class_name"] == "III-A"

    duplicate = await client.post(
        "/api/v1/roster/students",
        json={"name": "Hari", "class_id": str(roster.cse3), "register_no": "CSE3A03", "gender": "MALE"},
        headers=admin,
    )
    assert duplicate.status_code == 409


async def test_student_listing_filters(client: AsyncClient, roster, headers) -> None:
    admin = headers["admin"]

    by_search = await client.get("/api/v1/roster/students", params={"search": "chi"}, headers=admin)
    assert [s["name"] for s in by_search.json()] == ["Chitra"]

    by_mentor = await client.get("/api/v1/roster/students", params={"mentor": "Dr. Priya"}, headers=admin)
    assert [s["name"] for s in by_mentor.json()] == ["Chitra"]

    in_mba = await client.get("/api/v1/roster/students", params={"department_id": str(roster.mba)}, headers=admin)
    assert [s["register_no"] for s in in_mba.json()] == ["MBA101", "MBA102"]


async def test_teacher_sees_only_own_class(client: AsyncClient, roster, headers) -> None:
    teacher = headers["teacher"]

    listed = await client.get("/api/v1/roster/students", headers=teacher)
    assert [s["name"] for s in listed.json()] == ["Arun", "Bala", "Chitra"]

    other = await client.get(f"/api/v1/roster/students/{roster.deepa}", headers=teacher)
    assert other.status_code == 403
