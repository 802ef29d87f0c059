# mypy: ignore-errors
# tests/v1/test_reactions.py
"""Tests for reaction toggling."""

from datetime import timedelta

from fastapi import status

from campus_pulse.db.time import utcnow


def _react(client, post_id, reaction, headers):
    return client.post(
        f"/api/v1/pulse/{post_id}/react",
        json={"type": reaction},
        headers=headers,
    )


def test_first_reaction_creates(client, bob_headers, make_post) -> None:
    """Reacting once makes the reaction active."""
    post_id = make_post()
    response = _react(client, post_id, "fire", bob_headers)
    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {
        "active": "fire",
        "counts": {"fire": 1, "skull": 0, "heart": 0},
    }


def test_same_reaction_twice_toggles_off(client, bob_headers, make_post) -> None:
    """The same type again removes the reaction and never goes negative."""
    post_id = make_post()
    _react(client, post_id, "heart", bob_headers)
    response = _react(client, post_id, "heart", bob_headers)
    assert response.json() == {
        "active": None,
        "counts": {"fire": 0, "skull": 0, "heart": 0},
    }


def test_switching_reaction_replaces(client, bob_headers, make_post) -> None:
    """fire then skull leaves only skull."""
    post_id = make_post()
    _react(client, post_id, "fire", bob_headers)
    response = _react(client, post_id, "skull", bob_headers)
    assert response.json() == {
        "active": "skull",
        "counts": {"fire": 0, "skull": 1, "heart": 0},
    }


def test_counts_aggregate_viewers(client, bob_headers, carol_headers, alice_headers, make_post):
    """Counts sum over viewers, one slot each."""
    post_id = make_post(author_id="alice")
    _react(client, post_id, "fire", bob_headers)
    _react(client, post_id, "fire", carol_headers)
    response = _react(client, post_id, "heart", alice_headers)
    assert response.json()["counts"] == {"fire": 2, "skull": 0, "heart": 1}


def test_react_unknown_type(client, bob_headers, make_post) -> None:
    """Only fire, skull and heart are accepted."""
    post_id = make_post()
    response = _react(client, post_id, "clown", bob_headers)
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


def test_react_expired_post(client, bob_headers, make_post) -> None:
    """Expired posts reject reactions with 404."""
    post_id = make_post(now=utcnow() - timedelta(hours=25))
    response = _react(client, post_id, "fire", bob_headers)
    assert response.status_code == status.HTTP_404_NOT_FOUND


def test_react_deleted_post(client, alice_headers, bob_headers, make_post) -> None:
    """Deleted posts reject reactions with 404."""
    post_id = make_post(author_id="alice")
    client.delete(f"/api/v1/pulse/{post_id}", headers=alice_headers)
    response = _react(client, post_id, "fire", bob_headers)
    assert response.status_code == status.HTTP_404_NOT_FOUND


def test_reaction_shows_in_feed(client, bob_headers, make_post) -> None:
    """The viewer's own reaction is annotated on the feed item."""
    post_id = make_post()
    _react(client, post_id, "skull", bob_headers)
    response = client.get("/api/v1/pulse/", headers=bob_headers)
    item = response.json()["items"][0]
    assert item["id"] == post_id
    assert item["viewer_reaction"] == "skull"
    assert item["reactions"]["skull"] == 1
