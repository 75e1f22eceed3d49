"""Tests for the public display endpoints."""

from collections.abc import Callable

from fastapi import status
from fastapi.testclient import TestClient

from stream_raffle.models import Entry, RaffleSession, User

API = "/api/v1"


def test_status_without_session(client: TestClient) -> None:
    r = client.get(f"{API}/status")
    assert r.status_code == status.HTTP_200_OK
    body = r.json()
    assert body["has_active_session"] is False
    assert body["session_id"] is None


def test_leaderboard(
    client: TestClient,
    active_session: RaffleSession,
    make_user: Callable[..., User],
    make_entry: Callable[..., Entry],
) -> None:
    make_entry(active_session, make_user(), name="one")
    make_entry(active_session, make_user(), name="two")

    r = client.get(f"{API}/leaderboard")
    body = r.json()
    assert body["total_entries"] == 2
    assert [row["chance"] for row in body["entries"]] == ["50%", "50%"]


def test_winner_endpoint(
    client: TestClient,
    active_session: RaffleSession,
    make_entry: Callable[..., Entry],
) -> None:
    assert client.get(f"{API}/winner").status_code == status.HTTP_404_NOT_FOUND

    entry = make_entry(active_session, name="champ", is_winner=True)
    r = client.get(f"{API}/winner")
    assert r.status_code == status.HTTP_200_OK
    assert r.json()["id"] == entry.id


def test_user_weight(
    client: TestClient,
    active_session: RaffleSession,
    make_user: Callable[..., User],
    make_entry: Callable[..., Entry],
) -> None:
    user = make_user(is_subscriber=True, sub_months=6, total_cheer_bits=200, total_gifted_subs=3, carry_over_weight=1)
    make_entry(active_session, user)

    r = client.get(f"{API}/users/{user.external_id}/weight")
    assert r.status_code == status.HTTP_200_OK
    body = r.json()
    assert body["breakdown"]["total_weight"] == 22.0
    assert body["breakdown"]["current_weight"] == 21.0
    assert body["chance"] == "100%"

    assert client.get(f"{API}/users/missing/weight").status_code == status.HTTP_404_NOT_FOUND


def test_submit_entry(
    client: TestClient,
    active_session: RaffleSession,
    make_user: Callable[..., User],
) -> None:
    user = make_user(is_follower=False)

    r = client.post(f"{API}/entries", json={"external_user_id": user.external_id})
    assert r.status_code == status.HTTP_403_FORBIDDEN
    assert r.json()["detail"]["code"] == "NOT_FOLLOWING"

    r = client.post(f"{API}/entries", json={"name": "Walk-in", "link": "https://soundcloud.com/x/y"})
    assert r.status_code == status.HTTP_201_CREATED
    assert r.json()["user_id"] is None

    r = client.post(f"{API}/entries", json={"name": "Bad", "link": "https://example.org/x"})
    assert r.status_code == status.HTTP_400_BAD_REQUEST
