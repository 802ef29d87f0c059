# mypy: ignore-errors
# tests/utils/test_pseudonym.py
"""Tests for anonymous author pseudonyms."""

from campus_pulse.utils.pseudonym import pseudonym_for


def test_stable_for_same_post() -> None:
    assert pseudonym_for("post-1", "alice") == pseudonym_for("post-1", "alice")


def test_does_not_contain_author_id() -> None:
    assert "alice" not in pseudonym_for("post-1", "alice").lower()


def test_varies_across_posts() -> None:
    names = {pseudonym_for(f"post-{index}", "alice") for index in range(20)}
    assert len(names) > 1


def test_depends_on_secret() -> None:
    names = {pseudonym_for("post-1", "alice", secret=f"key-{index}") for index in range(20)}
    assert len(names) > 1
