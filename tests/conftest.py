"""Shared fixtures: a two-table schema and a store with a controllable clock."""

import pytest

from erd_core import Bookmark, Column, Position, Relationship, SchemaDocument, SchemaStore, Table


class FakeClock:
    """Monotonic clock the tests advance by hand."""

    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture(name="sample_document")
def users_posts_document() -> SchemaDocument:
    """users(id, email) and posts(id, user_id) with posts.user_id -> users.id."""
    users = Table(
        id="users",
        name="users",
        position=Position(x=0, y=0),
        columns=[
            Column(id="u_id", name="id", type="INT", is_pk=True),
            Column(id="u_email", name="email"),
        ],
    )
    posts = Table(
        id="posts",
        name="posts",
        position=Position(x=400, y=0),
        columns=[
            Column(id="p_id", name="id", type="INT", is_pk=True),
            Column(id="p_user", name="user_id", type="INT"),
        ],
    )
    relationship = Relationship(id="r1", from_table="posts", from_col="p_user", to_table="users", to_col="u_id")
    return SchemaDocument(tables=[users, posts], relationships=[relationship])


@pytest.fixture
def bookmarked_document(sample_document: SchemaDocument) -> SchemaDocument:
    """The sample schema plus bookmark b1 below the tables, with users as a member."""
    document = sample_document.model_copy(deep=True)
    document.bookmarks.append(Bookmark(id="b1", name="Accounts", x=0, y=300, width=400, height=300))
    document.tables[0].bookmark_id = "b1"
    return document


@pytest.fixture
def store(sample_document: SchemaDocument, clock: FakeClock) -> SchemaStore:
    return SchemaStore(sample_document, clock=clock)
