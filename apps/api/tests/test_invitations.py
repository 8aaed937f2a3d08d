from datetime import datetime, timedelta

import pytest
from sqlalchemy.orm import Session

from app.core.errors import EmailMismatch, Expired, InvalidState
from app.models.entities import FamilyMember, Invitation, InvitationStatusEnum, User, utcnow
from app.services import invitations
from app.services.access import get_member
from app.services.membership import create_family


def _as(email):
    return {"X-Dev-User": email}


OWNER = "owner@example.com"
T0 = datetime(2024, 1, 1, 12, 0, 0)


def _seed(db):
    owner = User(email=OWNER, full_name="Owner", default_currency="VND")
    invitee = User(email="b@example.com", full_name="B", default_currency="VND")
    db.add_all([owner, invitee])
    db.flush()
    family = create_family(db, owner, name="Household")
    db.commit()
    return owner, invitee, family


def _create_family(client):
    return client.post("/v1/families", json={"name": "Household"}, headers=_as(OWNER)).json()


def _invite(client, family_id, email, role="member", inviter=OWNER):
    return client.post(
        "/v1/invitations",
        json={"family_id": family_id, "email": email, "role": role},
        headers=_as(inviter),
    )


def test_expired_invitation_cannot_be_accepted(db_session):
    owner, invitee, family = _seed(db_session)
    invitation = invitations.invite(db_session, owner, family.id, "B@Example.com", now=T0)
    db_session.commit()
    assert invitation.invitee_email == "b@example.com"
    assert invitation.expires_at == T0 + timedelta(days=7)

    later = T0 + timedelta(days=8)
    with pytest.raises(Expired):
        invitations.accept(db_session, invitation.token, invitee, now=later)
    db_session.rollback()

    db_session.refresh(invitation)
    assert invitation.status == InvitationStatusEnum.pending
    assert invitations.effective_status(invitation, later) == InvitationStatusEnum.expired
    assert get_member(db_session, family.id, invitee.id) is None


def test_sweep_persists_expiry_idempotently(db_session):
    owner, invitee, family = _seed(db_session)
    stale = invitations.invite(db_session, owner, family.id, invitee.email, now=T0)
    fresh = invitations.invite(db_session, owner, family.id, "c@example.com", now=T0 + timedelta(days=5))
    db_session.commit()

    now = T0 + timedelta(days=8)
    assert invitations.sweep_expired(db_session, now=now) == 1
    db_session.commit()
    assert invitations.sweep_expired(db_session, now=now) == 0
    db_session.commit()

    db_session.refresh(stale)
    db_session.refresh(fresh)
    assert stale.status == InvitationStatusEnum.expired
    assert fresh.status == InvitationStatusEnum.pending

    with pytest.raises(Expired):
        invitations.accept(db_session, stale.token, invitee, now=now)


def test_reinvite_after_expiry_retires_the_stale_row(db_session):
    owner, invitee, family = _seed(db_session)
    stale = invitations.invite(db_session, owner, family.id, invitee.email, now=T0)
    db_session.commit()

    fresh = invitations.invite(db_session, owner, family.id, invitee.email, now=T0 + timedelta(days=10))
    db_session.commit()
    db_session.refresh(stale)

    assert stale.status == InvitationStatusEnum.expired
    assert fresh.status == InvitationStatusEnum.pending
    assert fresh.token != stale.token


def test_accept_is_bound_to_invitee_email(db_session):
    owner, _, family = _seed(db_session)
    other = User(email="other@example.com", full_name="Other")
    db_session.add(other)
    db_session.commit()
    invitation = invitations.invite(db_session, owner, family.id, "b@example.com", now=T0)
    db_session.commit()

    with pytest.raises(EmailMismatch):
        invitations.accept(db_session, invitation.token, other, now=T0 + timedelta(hours=1))
    db_session.rollback()
    db_session.refresh(invitation)
    assert invitation.status == InvitationStatusEnum.pending


def test_losing_concurrent_accept_sees_invalid_state(db_session):
    owner, invitee, family = _seed(db_session)
    invitation = invitations.invite(db_session, owner, family.id, invitee.email, now=T0)
    db_session.commit()
    now = T0 + timedelta(hours=1)

    # Loaded as PENDING before the other session wins the race.
    stale_view = invitations.get_by_token(db_session, invitation.token)
    assert stale_view.status == InvitationStatusEnum.pending

    with Session(bind=db_session.get_bind()) as winner_db:
        winner = winner_db.get(User, invitee.id)
        invitations.accept(winner_db, invitation.token, winner, now=now)
        winner_db.commit()

    with pytest.raises(InvalidState):
        invitations.accept(db_session, invitation.token, invitee, now=now)
    db_session.rollback()

    members = db_session.query(FamilyMember).filter_by(family_id=family.id, user_id=invitee.id).all()
    assert len(members) == 1


def test_invite_accept_flow(client, emitter):
    family = _create_family(client)
    created = _invite(client, family["id"], "kid@example.com", role="admin")
    assert created.status_code == 201
    body = created.json()
    assert body["status"] == "pending"
    assert body["role"] == "admin"
    assert body["inviter_email"] == OWNER
    assert len(body["token"]) >= 43

    received = client.get("/v1/invitations/received", headers=_as("kid@example.com"))
    assert [item["token"] for item in received.json()] == [body["token"]]
    assert client.get("/v1/me", headers=_as("kid@example.com")).json()["pending_invitations"] == 1

    preview = client.get(f"/v1/invitations/{body['token']}", headers=_as("kid@example.com"))
    assert preview.status_code == 200
    assert preview.json()["family_name"] == "Household"
    assert "token" not in preview.json()

    accepted = client.post(f"/v1/invitations/{body['token']}/accept", headers=_as("kid@example.com"))
    assert accepted.status_code == 200
    assert accepted.json()["status"] == "accepted"
    assert accepted.json()["responded_at"] is not None

    again = client.post(f"/v1/invitations/{body['token']}/accept", headers=_as("kid@example.com"))
    assert again.status_code == 409
    assert again.json()["kind"] == "invalid_state"

    members = client.get(f"/v1/families/{family['id']}/members", headers=_as("kid@example.com")).json()["items"]
    assert {item["email"]: item["role"] for item in members} == {OWNER: "owner", "kid@example.com": "admin"}
    assert emitter.subjects() == ["invitation.created", "invitation.accepted"]


def test_invite_guards(client):
    family = _create_family(client)
    family_id = family["id"]

    assert _invite(client, family_id, "kid@example.com").status_code == 201
    duplicate = _invite(client, family_id, "KID@example.com")
    assert duplicate.status_code == 409
    assert duplicate.json()["kind"] == "duplicate_pending"

    yourself = _invite(client, family_id, OWNER)
    assert yourself.status_code == 422
    assert yourself.json()["kind"] == "validation"

    assert _invite(client, family_id, "not-an-email").status_code == 422

    token = client.get("/v1/invitations/received", headers=_as("kid@example.com")).json()[0]["token"]
    client.post(f"/v1/invitations/{token}/accept", headers=_as("kid@example.com"))

    already = _invite(client, family_id, "kid@example.com")
    assert already.status_code == 409
    assert already.json()["kind"] == "already_member"

    by_member = _invite(client, family_id, "friend@example.com", inviter="kid@example.com")
    assert by_member.status_code == 403
    assert by_member.json()["kind"] == "forbidden"

    unknown_family = _invite(client, 999, "friend@example.com")
    assert unknown_family.status_code == 404


def test_admin_cannot_invite_owner(client):
    family = _create_family(client)
    invitation = _invite(client, family["id"], "admin@example.com", role="admin").json()
    client.post(f"/v1/invitations/{invitation['token']}/accept", headers=_as("admin@example.com"))

    response = _invite(client, family["id"], "boss@example.com", role="owner", inviter="admin@example.com")
    assert response.status_code == 403
    assert response.json()["detail"] == "cannot invite with a role above your own"


def test_accept_with_wrong_account_is_rejected(client):
    family = _create_family(client)
    token = _invite(client, family["id"], "kid@example.com").json()["token"]

    response = client.post(f"/v1/invitations/{token}/accept", headers=_as("intruder@example.com"))
    assert response.status_code == 403
    assert response.json()["kind"] == "email_mismatch"

    members = client.get(f"/v1/families/{family['id']}/members", headers=_as(OWNER)).json()["items"]
    assert [item["email"] for item in members] == [OWNER]


def test_unknown_token(client):
    response = client.post("/v1/invitations/does-not-exist/accept", headers=_as(OWNER))
    assert response.status_code == 404
    assert response.json()["kind"] == "invalid_token"


def test_expired_invitation_over_http(client, db_session):
    family = _create_family(client)
    token = _invite(client, family["id"], "kid@example.com").json()["token"]
    invitation = db_session.query(Invitation).filter_by(token=token).one()
    invitation.expires_at = utcnow() - timedelta(days=1)
    db_session.commit()

    accepted = client.post(f"/v1/invitations/{token}/accept", headers=_as("kid@example.com"))
    assert accepted.status_code == 410
    assert accepted.json()["kind"] == "expired"

    preview = client.get(f"/v1/invitations/{token}", headers=_as("kid@example.com"))
    assert preview.json()["status"] == "expired"
    assert client.get("/v1/invitations/received", headers=_as("kid@example.com")).json() == []

    swept = client.post("/v1/admin/invitations/sweep", headers={"X-Internal-Admin-Token": "test-admin-token"})
    assert swept.status_code == 200
    assert swept.json() == {"expired": 1}

    after_sweep = client.post(f"/v1/invitations/{token}/accept", headers=_as("kid@example.com"))
    assert after_sweep.status_code == 410
    assert after_sweep.json()["kind"] == "expired"


def test_decline_then_accept_is_invalid(client):
    family = _create_family(client)
    token = _invite(client, family["id"], "kid@example.com").json()["token"]

    declined = client.post(f"/v1/invitations/{token}/decline", headers=_as("kid@example.com"))
    assert declined.status_code == 200
    assert declined.json()["status"] == "declined"

    accepted = client.post(f"/v1/invitations/{token}/accept", headers=_as("kid@example.com"))
    assert accepted.status_code == 409
    assert accepted.json()["kind"] == "invalid_state"


def test_revoke_and_resend(client):
    family = _create_family(client)
    first = _invite(client, family["id"], "kid@example.com").json()

    by_stranger = client.post(f"/v1/invitations/{first['id']}/revoke", headers=_as("stranger@example.com"))
    assert by_stranger.status_code == 403

    resent = client.post(f"/v1/invitations/{first['id']}/resend", headers=_as(OWNER))
    assert resent.status_code == 201
    second = resent.json()
    assert second["token"] != first["token"]
    assert second["status"] == "pending"

    old = client.get(f"/v1/invitations/{first['token']}", headers=_as(OWNER))
    assert old.json()["status"] == "revoked"

    revoked = client.post(f"/v1/invitations/{second['id']}/revoke", headers=_as(OWNER))
    assert revoked.status_code == 200
    assert revoked.json()["status"] == "revoked"

    twice = client.post(f"/v1/invitations/{second['id']}/revoke", headers=_as(OWNER))
    assert twice.status_code == 409

    accept_revoked = client.post(f"/v1/invitations/{second['token']}/accept", headers=_as("kid@example.com"))
    assert accept_revoked.status_code == 409

    listed = client.get(f"/v1/invitations?family_id={family['id']}", headers=_as(OWNER))
    assert [item["status"] for item in listed.json()["items"]] == ["revoked", "revoked"]
    assert client.get(f"/v1/invitations?family_id={family['id']}", headers=_as("kid@example.com")).status_code == 403


def test_expired_invitation_fails_the_same_way_before_and_after_sweep(db_session):
    owner, invitee, family = _seed(db_session)
    invitation = invitations.invite(db_session, owner, family.id, invitee.email, now=T0)
    db_session.commit()
    later = T0 + timedelta(days=8)

    with pytest.raises(Expired):
        invitations.accept(db_session, invitation.token, invitee, now=later)
    db_session.rollback()

    assert invitations.sweep_expired(db_session, now=later) == 1
    db_session.commit()
    db_session.refresh(invitation)
    assert invitation.status == InvitationStatusEnum.expired

    with pytest.raises(Expired):
        invitations.accept(db_session, invitation.token, invitee, now=later)
    db_session.rollback()
    with pytest.raises(Expired):
        invitations.decline(db_session, invitation.token, invitee, now=later)
    db_session.rollback()
    with pytest.raises(Expired):
        invitations.revoke(db_session, owner, invitation.id, now=later)
