"""Mutation handlers: validation, conflicts and feed invalidation."""
import pytest

from conftest import FEED_KEY, T0, make_post, make_user
from postfeed.errors import AuthenticationError, ConflictError, NotFoundError, ValidationError
from postfeed.models import Follow, Like
from postfeed.store import PostStore


@pytest.mark.asyncio
async def test_add_post_is_visible_on_next_read(feed, mutations, cache, alice):
    assert await feed.get_feed() == []

    created = await mutations.add_post(alice, "hello", img_url="https://img/1.png")
    posts = await feed.get_feed()

    assert [p.post_id for p in posts] == [created.post_id]
    assert posts[0].img_url == "https://img/1.png"
    assert posts[0].tags == []
    assert posts[0].author == alice
    assert cache.count("delete") == 1


@pytest.mark.asyncio
async def test_add_post_assigns_server_timestamps(mutations, alice):
    created = await mutations.add_post(alice, "hello", tags=["x", "y"])

    assert created.created_at == created.updated_at
    assert created.created_at.tzinfo is not None
    assert created.tags == ["x", "y"]
    assert created.likes == [] and created.comments == []
    assert created.author_id == alice.user_id


@pytest.mark.asyncio
async def test_comment_is_visible_on_next_read(feed, mutations, db_session, alice, bob):
    post = await make_post(db_session, alice.user_id, "hello")
    await feed.get_feed()

    comment = await mutations.comment_post(bob, post.post_id, "nice")
    posts = await feed.get_feed()

    assert comment.username == "bob"
    assert comment.post_id == post.post_id
    assert [(c.username, c.content) for c in posts[0].comments] == [("bob", "nice")]


@pytest.mark.asyncio
async def test_like_is_visible_on_next_read(feed, mutations, db_session, alice, bob):
    post = await make_post(db_session, alice.user_id, "hello")
    await feed.get_feed()

    like = await mutations.like_post(bob, post.post_id)
    posts = await feed.get_feed()

    assert like.username == "bob"
    assert [l.username for l in posts[0].likes] == ["bob"]


@pytest.mark.asyncio
async def test_second_like_is_rejected(mutations, cache, db_session, alice, bob):
    post = await make_post(db_session, alice.user_id, "hello")

    await mutations.like_post(bob, post.post_id)
    with pytest.raises(ConflictError, match="already liked"):
        await mutations.like_post(bob, post.post_id)

    assert cache.count("delete") == 1


@pytest.mark.asyncio
async def test_like_and_comment_on_missing_post(feed, mutations, cache, db_session, alice, bob):
    await make_post(db_session, alice.user_id, "hello")
    await feed.get_feed()

    with pytest.raises(NotFoundError):
        await mutations.like_post(bob, "missing")
    with pytest.raises(NotFoundError):
        await mutations.comment_post(bob, "missing", "hi")

    assert FEED_KEY in cache.entries
    assert cache.count("delete") == 0


@pytest.mark.asyncio
@pytest.mark.parametrize("content", ["", "   ", None])
async def test_blank_content_rejected_before_store(mutations, cache, store, alice, content, monkeypatch):
    async def must_not_run(*args, **kwargs):
        raise AssertionError("store must not be touched")

    monkeypatch.setattr(store, "insert_post", must_not_run)

    with pytest.raises(ValidationError):
        await mutations.add_post(alice, content)
    with pytest.raises(ValidationError):
        await mutations.comment_post(alice, "some-post", content)
    assert cache.calls == []


@pytest.mark.asyncio
async def test_mutations_require_principal(mutations, cache):
    with pytest.raises(AuthenticationError):
        await mutations.add_post(None, "hello")
    with pytest.raises(AuthenticationError):
        await mutations.like_post(None, "some-post")
    with pytest.raises(AuthenticationError):
        await mutations.follow_user(None, "someone")
    assert cache.calls == []


@pytest.mark.asyncio
async def test_follow_does_not_invalidate_feed(feed, mutations, cache, db_session, alice, bob):
    await make_post(db_session, alice.user_id, "hello")
    await feed.get_feed()
    snapshot = cache.entries[FEED_KEY][0]

    follow = await mutations.follow_user(bob, alice.user_id)
    await feed.get_feed()

    assert follow.follower_id == bob.user_id
    assert follow.following_id == alice.user_id
    assert cache.count("delete") == 0
    assert cache.entries[FEED_KEY][0] == snapshot


@pytest.mark.asyncio
async def test_second_follow_is_rejected(mutations, alice, bob):
    await mutations.follow_user(bob, alice.user_id)

    with pytest.raises(ConflictError, match="already following"):
        await mutations.follow_user(bob, alice.user_id)


@pytest.mark.asyncio
async def test_follow_validation(mutations, alice):
    with pytest.raises(ValidationError):
        await mutations.follow_user(alice, "")
    with pytest.raises(ValidationError, match="yourself"):
        await mutations.follow_user(alice, alice.user_id)
    with pytest.raises(NotFoundError):
        await mutations.follow_user(alice, "no-such-user")


@pytest.mark.asyncio
async def test_racing_like_hits_unique_constraint(store, session_factory, db_session, alice, bob, monkeypatch):
    post = await make_post(db_session, alice.user_id, "hello")
    await store.append_like_if_absent(post.post_id, Like(username="bob", created_at=T0, updated_at=T0))

    async with session_factory() as other_session:
        racing = PostStore(other_session)

        # Pretend the existence check ran before the first insert committed
        async def not_yet(*args):
            return False

        monkeypatch.setattr(racing, "_like_exists", not_yet)

        with pytest.raises(ConflictError, match="already liked"):
            await racing.append_like_if_absent(
                post.post_id, Like(username="bob", created_at=T0, updated_at=T0)
            )


@pytest.mark.asyncio
async def test_racing_follow_hits_unique_constraint(store, session_factory, alice, bob, monkeypatch):
    def edge():
        return Follow(
            following_id=alice.user_id,
            follower_id=bob.user_id,
            created_at=T0,
            updated_at=T0,
        )

    await store.insert_follow_if_absent(edge())

    async with session_factory() as other_session:
        racing = PostStore(other_session)

        async def not_yet(*args):
            return False

        monkeypatch.setattr(racing, "_follow_exists", not_yet)

        with pytest.raises(ConflictError, match="already following"):
            await racing.insert_follow_if_absent(edge())


@pytest.mark.asyncio
async def test_invalidation_happens_after_commit(mutations, feed, db_session, alice, monkeypatch):
    session_state: list[tuple[bool, int]] = []
    original = feed.invalidate_feed

    async def record_then_invalidate(reason="unspecified"):
        session_state.append((db_session.in_transaction(), len(db_session.new)))
        await original(reason=reason)

    monkeypatch.setattr(feed, "invalidate_feed", record_then_invalidate)

    await mutations.add_post(alice, "committed first")

    assert session_state == [(False, 0)]


@pytest.mark.asyncio
async def test_commenter_name_comes_from_principal(mutations, db_session, alice):
    carol = await make_user(db_session, "carol")
    post = await make_post(db_session, alice.user_id, "hello")

    comment = await mutations.comment_post(carol, post.post_id, "hey")

    assert comment.username == "carol"
