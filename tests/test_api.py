import pytest

PDF = b"%PDF-1.4 tiny"

UPLOAD_FORM = {
    "title": "Midterm Exam",
    "type": "exam",
    "department_id": "comp-sci",
    "course_id": "cs101",
    "lecturer_id": "lec001",
    "year": "2024",
}


@pytest.fixture
def user(client):
    body = {"name": "Ada Lovelace", "email": "ada@example.com", "department": "comp-sci", "password": "secret1"}
    assert client.post("/auth/register", json=body).status_code == 201
    response = client.post("/auth/login", json={"email": "ada@example.com", "password": "secret1"})
    assert response.status_code == 200
    return response.json()["user"]


def upload(client, file_name="midterm.pdf", **overrides):
    form = dict(UPLOAD_FORM, **overrides)
    return client.post("/resources", data=form, files={"file": (file_name, PDF, "application/pdf")})


def test_root(client):
    assert client.get("/").json() == {"message": "Academic Resource Hub API"}


def test_store_status(client):
    body = client.get("/test").json()
    assert body["store"] == "memory"
    assert "departments" in body["collections"]


def test_register_hides_credentials(client):
    body = {"name": "Ada", "email": "ada@example.com", "department": "comp-sci", "password": "secret1"}
    response = client.post("/auth/register", json=body)
    assert response.status_code == 201
    user = response.json()["user"]
    assert user["email"] == "ada@example.com"
    assert "password_hash" not in user
    assert "password_salt" not in user


def test_register_errors(client):
    body = {"name": "Ada", "email": "ada@example.com", "department": "comp-sci", "password": "123"}
    response = client.post("/auth/register", json=body)
    assert response.status_code == 400
    assert response.json()["detail"] == "Password must be at least 6 characters long"


def test_login_and_me(client, user):
    assert client.get("/auth/me").json()["id"] == user["id"]
    client.post("/auth/logout")
    assert client.get("/auth/me").status_code == 401


def test_bad_login_is_unauthorized(client, user):
    response = client.post("/auth/login", json={"email": "ada@example.com", "password": "wrong!!"})
    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid credentials"


def test_reference_data(client):
    assert len(client.get("/departments").json()) == 10
    codes = [c["code"] for c in client.get("/departments/physics/courses").json()]
    assert codes == ["PHYS101", "PHYS201"]
    assert client.get("/departments/literature/lecturers").json() == []


def test_upload_requires_login(client):
    assert upload(client).status_code == 401


def test_upload_download_delete(client, user):
    response = upload(client)
    assert response.status_code == 201
    resource = response.json()
    assert "file_data" not in resource
    assert resource["uploaded_by"] == user["id"]

    download = client.get(f"/resources/{resource['id']}/download")
    assert download.status_code == 200
    assert download.content == PDF
    assert download.headers["content-type"] == "application/pdf"
    assert 'filename="midterm.pdf"' in download.headers["content-disposition"]

    detail = client.get(f"/resources/{resource['id']}").json()
    assert detail["resource"]["downloads"] == 1
    assert detail["department"] == "Computer Science"
    assert detail["can_delete"] is True

    assert client.delete(f"/resources/{resource['id']}").status_code == 200
    assert client.get(f"/resources/{resource['id']}").status_code == 404


def test_upload_rejects_wrong_type(client, user):
    response = client.post("/resources", data=UPLOAD_FORM, files={"file": ("x.exe", b"MZ", "application/x-msdownload")})
    assert response.status_code == 400


def test_missing_resource(client):
    assert client.get("/resources/nope/download").status_code == 404


def test_search_and_history(client, user):
    upload(client)
    upload(client, file_name="thermo.pdf", title="Thermodynamics Notes", type="notes")

    body = client.get("/search", params={"q": "midterm"}).json()
    assert body["count"] == 1
    assert body["results"][0]["title"] == "Midterm Exam"
    assert "file_data" not in body["results"][0]

    body = client.get("/search", params={"type": "notes"}).json()
    assert [r["title"] for r in body["results"]] == ["Thermodynamics Notes"]

    history = client.get("/search/history").json()
    assert [h["query"] for h in history] == ["", "midterm"]
    assert history[0]["filters"] == {"type": "notes"}

    client.delete("/search/history")
    assert client.get("/search/history").json() == []


def test_plain_listing_is_not_recorded(client):
    client.get("/search")
    assert client.get("/search/history").json() == []


def test_advanced_search(client, user):
    upload(client)
    body = client.post("/search/advanced", json={"query": "exam", "lecturer": "lec001", "file_type": "pdf"}).json()
    assert body["count"] == 1
    response = client.post("/search/advanced", json={"colour": "blue"})
    assert response.status_code == 422
    response = client.post("/search/advanced", json={"date_from": 1700000000})
    assert response.status_code == 422


def test_suggestions(client):
    assert client.get("/search/suggestions", params={"q": "physics"}).json() == [
        "Physics",
        "PHYS101 - General Physics I",
    ]


def test_browse_flow(client, user):
    upload(client)
    root = client.get("/browse").json()
    assert root["level"] == "root"
    assert len(root["departments"]) == 10

    view = client.post("/browse/departments/comp-sci").json()
    assert view["level"] == "department"
    assert view["courses"][0]["resource_count"] == 1

    view = client.post("/browse/courses/cs101").json()
    assert view["level"] == "course"
    assert len(view["resources"]) == 1
    assert "file_data" not in view["resources"][0]

    view = client.post("/browse/lecturer", json={"lecturer": "lec002"}).json()
    assert view["resources"] == []
    assert view["is_empty"] is True

    crumbs = client.get("/browse/breadcrumb").json()
    assert [c["label"] for c in crumbs] == ["All Departments", "Computer Science", "CS101"]

    assert client.post("/browse/reset").json()["level"] == "root"


def test_browse_apply_filters(client):
    view = client.post("/browse/filters", json={"department": "physics", "course": "", "lecturer": None}).json()
    assert view["level"] == "department"
    options = client.get("/browse/filters").json()
    assert len(options["courses"]) == 2


def test_stats_and_export(client, user):
    upload(client)
    stats = client.get("/stats").json()
    assert stats["total_users"] == 1
    assert stats["my_uploads"] == 1

    export = client.get("/export").json()
    assert export["version"] == "1.0"
    assert len(export["resources"]) == 1


def test_clear_reseeds_reference_data(client, user):
    upload(client)
    assert client.post("/admin/clear").json() == {"ok": True}
    assert client.get("/stats").json()["total_resources"] == 0
    assert len(client.get("/departments").json()) == 10
