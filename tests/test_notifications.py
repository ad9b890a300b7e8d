from src.models.aviso import Aviso
from src.services.notifications import notify_user

URL = "/api/v1/notifications"


def test_user_sees_own_and_general_announcements(client, db, make_user, auth_headers):
    ana = make_user("ana@example.com")
    bia = make_user("bia@example.com")
    notify_user(db, ana.id, "Inscrição transferida", "Sua inscrição foi transferida.")
    notify_user(db, bia.id, "Você recebeu uma inscrição", "A inscrição agora é sua.")
    db.add(Aviso(title="Largada", content="A largada será às 7h.", target_audience="all", status="published"))
    db.add(Aviso(title="Rascunho", content="...", target_audience="all", status="draft"))
    db.commit()

    titles = {item["title"] for item in client.get(URL, headers=auth_headers(ana)).json()}

    assert titles == {"Inscrição transferida", "Largada"}


def test_mark_as_read_is_idempotent(client, db, make_user, auth_headers):
    ana = make_user("ana@example.com")
    aviso = notify_user(db, ana.id, "Inscrição transferida", "Sua inscrição foi transferida.")
    db.commit()

    for _ in range(2):
        response = client.post(f"{URL}/{aviso.id}/read", headers=auth_headers(ana))
        assert response.status_code == 200

    [item] = client.get(URL, headers=auth_headers(ana)).json()
    assert item["read"] is True


def test_cannot_mark_someone_elses_announcement(client, db, make_user, auth_headers):
    ana = make_user("ana@example.com")
    bia = make_user("bia@example.com")
    aviso = notify_user(db, ana.id, "Inscrição transferida", "Sua inscrição foi transferida.")
    db.commit()

    response = client.post(f"{URL}/{aviso.id}/read", headers=auth_headers(bia))

    assert response.status_code == 404
    assert response.json()["success"] is False
