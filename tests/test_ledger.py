"""Tests for the ledger writer: follows, likes, comments and their reversals."""
from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest

from tests.conftest import TestSession, seed_user, seed_post
from src.db.repository import Repository, StoreError
from src.db.social_tables import ActivityRow
from src.db.tables import PostRow
from src.db.user_tables import NotificationRow
from src.models import ActivityType
from src.services.counters import LikeCounter
from src.services.feed import FeedReader
from src.services.ledger import LedgerWriter


async def _rows(*criteria):
    async with TestSession() as session:
        return await Repository(session).find_many(
            ActivityRow, *criteria, order_by=(ActivityRow.created_at.asc(),),
        )


async def _inbox(user_id):
    async with TestSession() as session:
        return await Repository(session).find_many(
            NotificationRow, NotificationRow.user_id == user_id,
            order_by=(NotificationRow.id.asc(),),
        )


# ── Follow / Unfollow ────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_follow_then_unfollow():
    alice, bob = await seed_user("alice"), await seed_user("bob")
    async with TestSession() as session:
        ledger = LedgerWriter(session)
        followed = await ledger.record_follow(alice, bob.id)
        assert followed.message == "Followed Successfully"
        assert followed.data["type"] == "FOLLOW_USER"
        assert followed.data["active"] is True

        unfollowed = await ledger.record_unfollow(alice, bob.id)
        assert unfollowed.message == "Unfollowed Successfully"

    follow, unfollow = await _rows()
    assert follow.type == ActivityType.FOLLOW_USER
    assert follow.active is False
    assert unfollow.type == ActivityType.UNFOLLOW_USER
    assert unfollow.active is True
    assert unfollow.reverses_id == follow.id
    # Unfollow starts its own correlation
    assert unfollow.activity_ref != follow.activity_ref

    async with TestSession() as session:
        feed = FeedReader(session)
        assert (await feed.is_following(alice.id, bob.id)).data is False
        assert (await feed.get_following(alice.id)).data == []


@pytest.mark.asyncio
async def test_unfollow_without_follow_is_noop():
    alice, bob = await seed_user("alice"), await seed_user("bob")
    async with TestSession() as session:
        result = await LedgerWriter(session).record_unfollow(alice, bob.id)
    assert result.envelope() == {"message": "Nothing to unfollow"}
    assert await _rows() == []


@pytest.mark.asyncio
async def test_follow_is_recorded_without_inbox_delivery():
    alice, bob = await seed_user("alice"), await seed_user("bob")
    async with TestSession() as session:
        await LedgerWriter(session).record_follow(alice, bob.id)
        notes = await FeedReader(session).get_notifications(bob.id)
    assert await _inbox(bob.id) == []
    assert [n["type"] for n in notes.data] == ["FOLLOW_USER"]


@pytest.mark.asyncio
async def test_follow_refusals():
    alice, bob = await seed_user("alice"), await seed_user("bob")
    async with TestSession() as session:
        ledger = LedgerWriter(session)
        assert (await ledger.record_follow(alice, alice.id)).message == "Cannot follow yourself"
        assert (await ledger.record_follow(alice, "ghost")).message == "User does not exist"
        await ledger.record_follow(alice, bob.id)
        again = await ledger.record_follow(alice, bob.id)
    assert again.message == "Already following"
    assert len(await _rows()) == 1


@pytest.mark.asyncio
async def test_refollow_after_unfollow():
    alice, bob = await seed_user("alice"), await seed_user("bob")
    async with TestSession() as session:
        ledger = LedgerWriter(session)
        await ledger.record_follow(alice, bob.id)
        await ledger.record_unfollow(alice, bob.id)
        result = await ledger.record_follow(alice, bob.id)
        assert result.message == "Followed Successfully"
        assert (await FeedReader(session).is_following(alice.id, bob.id)).data is True
    kinds = [r.type for r in await _rows()]
    assert kinds == [ActivityType.FOLLOW_USER, ActivityType.UNFOLLOW_USER, ActivityType.FOLLOW_USER]


@pytest.mark.asyncio
async def test_follow_store_failure_is_reported():
    alice, bob = await seed_user("alice"), await seed_user("bob")
    async with TestSession() as session:
        ledger = LedgerWriter(session)
        with patch.object(ledger.repo, "create", AsyncMock(side_effect=StoreError("create failed"))):
            result = await ledger.record_follow(alice, bob.id)
    assert result.message == "Follow failed"
    assert "create failed" in result.error
    assert result.data is None


# ── Likes ─────────────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_like_counts_and_notifies():
    alice, bob = await seed_user("alice"), await seed_user("bob")
    post = await seed_post(bob)
    async with TestSession() as session:
        result = await LedgerWriter(session).record_like(alice, post.id)
        assert result.message == "Liked Successfully"
        assert result.data["likes_count"] == 1
        assert result.data["post_ref"] == post.post_ref
        assert result.data["creator_image"] == "https://img.test/p.jpg"
        assert (await FeedReader(session).is_liked(alice.id, post.id)).data is True
    inbox = await _inbox(bob.id)
    assert [n.activity_id for n in inbox] == [result.data["id"]]


@pytest.mark.asyncio
async def test_like_missing_post():
    alice = await seed_user("alice")
    async with TestSession() as session:
        result = await LedgerWriter(session).record_like(alice, "ghost")
    assert result.message == "Post does not exist"
    assert await _rows() == []


@pytest.mark.asyncio
async def test_owner_like_is_not_delivered():
    bob = await seed_user("bob")
    post = await seed_post(bob)
    async with TestSession() as session:
        result = await LedgerWriter(session).record_like(bob, post.id)
    assert result.message == "Liked Successfully"
    assert await _inbox(bob.id) == []


@pytest.mark.asyncio
async def test_repeat_likes_are_not_deduplicated():
    alice, bob = await seed_user("alice"), await seed_user("bob")
    post = await seed_post(bob)
    async with TestSession() as session:
        ledger = LedgerWriter(session)
        await ledger.record_like(alice, post.id)
        await ledger.record_like(alice, post.id)
        assert await LikeCounter(ledger.repo).drift(post.id) == 0
        reread = await ledger.repo.find_one(PostRow, PostRow.id == post.id)
    assert reread.like_count == 2
    assert len(await _rows(ActivityRow.type == ActivityType.LIKE_POST)) == 2


@pytest.mark.asyncio
async def test_unlike_reuses_correlation():
    alice, bob = await seed_user("alice"), await seed_user("bob")
    post = await seed_post(bob)
    async with TestSession() as session:
        ledger = LedgerWriter(session)
        liked = await ledger.record_like(alice, post.id)
        removed = await ledger.record_unlike(liked.data["id"], alice)
        assert removed.message == "Like removed Successfully"
        assert removed.data["likes_count"] == 0
        assert (await FeedReader(session).is_liked(alice.id, post.id)).data is False

    like, unlike = await _rows()
    assert like.active is False
    assert unlike.type == ActivityType.REMOVE_LIKE_POST
    assert unlike.activity_ref == like.activity_ref
    assert unlike.reverses_id == like.id
    # Reversals are never delivered
    assert len(await _inbox(bob.id)) == 1


@pytest.mark.asyncio
async def test_counter_matches_likes_minus_unlikes():
    bob = await seed_user("bob")
    post = await seed_post(bob)
    likers = [await seed_user(f"fan{i}") for i in range(4)]
    async with TestSession() as session:
        ledger = LedgerWriter(session)
        likes = [await ledger.record_like(u, post.id) for u in likers]
        for u, like in list(zip(likers, likes))[:3]:
            await ledger.record_unlike(like.data["id"], u)
        counter = LikeCounter(ledger.repo)
        assert await counter.count_active_likes(post.id) == 1
        assert await counter.drift(post.id) == 0


@pytest.mark.asyncio
async def test_unlike_refusals():
    alice, bob = await seed_user("alice"), await seed_user("bob")
    post = await seed_post(bob)
    async with TestSession() as session:
        ledger = LedgerWriter(session)
        liked = await ledger.record_like(alice, post.id)
        like_id = liked.data["id"]
        assert (await ledger.record_unlike("ghost", alice)).message == "Like does not exist"
        assert (await ledger.record_unlike(like_id, bob)).message == "Not permitted to remove this like"
        await ledger.record_unlike(like_id, alice)
        assert (await ledger.record_unlike(like_id, alice)).message == "Like already removed"
        assert await LikeCounter(ledger.repo).drift(post.id) == 0


@pytest.mark.asyncio
async def test_failed_like_record_compensates_counter():
    alice, bob = await seed_user("alice"), await seed_user("bob")
    post = await seed_post(bob)
    async with TestSession() as session:
        ledger = LedgerWriter(session)
        with patch.object(ledger.notifier, "create_activity", AsyncMock(return_value=None)):
            result = await ledger.record_like(alice, post.id)
        assert result.message == "Like failed"
        assert result.error
        reread = await ledger.repo.find_one(PostRow, PostRow.id == post.id)
        assert reread.like_count == 0
        assert await LikeCounter(ledger.repo).drift(post.id) == 0
    assert await _inbox(bob.id) == []


@pytest.mark.asyncio
async def test_failed_decrement_restores_like():
    alice, bob = await seed_user("alice"), await seed_user("bob")
    post = await seed_post(bob)
    async with TestSession() as session:
        ledger = LedgerWriter(session)
        liked = await ledger.record_like(alice, post.id)
        with patch.object(ledger.counter, "decrement", AsyncMock(side_effect=StoreError("increment failed"))):
            result = await ledger.record_unlike(liked.data["id"], alice)
        assert result.message == "Like remove failed"
        assert (await FeedReader(session).is_liked(alice.id, post.id)).data is True
        assert await LikeCounter(ledger.repo).drift(post.id) == 0
    assert len(await _rows(ActivityRow.type == ActivityType.REMOVE_LIKE_POST)) == 0


# ── Comments ──────────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_comment_and_uncomment():
    alice, bob = await seed_user("alice"), await seed_user("bob")
    post = await seed_post(bob)
    async with TestSession() as session:
        ledger = LedgerWriter(session)
        commented = await ledger.record_comment(alice, post.id, "great shot")
        assert commented.message == "Commented Successfully"
        assert commented.data["message"] == "great shot"
        removed = await ledger.record_uncomment(commented.data["id"], alice)
        assert removed.message == "Comment Deleted Successfully"
        assert (await FeedReader(session).get_comments(post.id)).data == []

    comment, uncomment = await _rows()
    assert comment.active is False
    assert uncomment.type == ActivityType.REMOVE_COMMENT_POST
    assert uncomment.activity_ref == comment.activity_ref
    assert uncomment.reverses_id == comment.id
    assert uncomment.message is None
    assert len(await _inbox(bob.id)) == 1


@pytest.mark.asyncio
async def test_comment_missing_post():
    alice = await seed_user("alice")
    async with TestSession() as session:
        result = await LedgerWriter(session).record_comment(alice, "ghost", "hello")
    assert result.message == "Post does not exist"


@pytest.mark.asyncio
async def test_post_owner_may_remove_comment():
    alice, bob, carol = await seed_user("alice"), await seed_user("bob"), await seed_user("carol")
    post = await seed_post(bob)
    async with TestSession() as session:
        ledger = LedgerWriter(session)
        commented = await ledger.record_comment(alice, post.id, "first")
        denied = await ledger.record_uncomment(commented.data["id"], carol)
        assert denied.message == "Not permitted to remove this comment"
        allowed = await ledger.record_uncomment(commented.data["id"], bob)
        assert allowed.message == "Comment Deleted Successfully"
        assert allowed.data["actor_id"] == bob.id
        again = await ledger.record_uncomment(commented.data["id"], alice)
    assert again.message == "Comment already removed"


@pytest.mark.asyncio
async def test_uncomment_rejects_other_types():
    alice, bob = await seed_user("alice"), await seed_user("bob")
    post = await seed_post(bob)
    async with TestSession() as session:
        ledger = LedgerWriter(session)
        liked = await ledger.record_like(alice, post.id)
        result = await ledger.record_uncomment(liked.data["id"], alice)
    assert result.message == "Comment does not exist"


@pytest.mark.asyncio
async def test_comment_edit():
    alice, bob = await seed_user("alice"), await seed_user("bob")
    post = await seed_post(bob)
    async with TestSession() as session:
        ledger = LedgerWriter(session)
        commented = await ledger.record_comment(alice, post.id, "nice")
        cid = commented.data["id"]
        edited = await ledger.record_comment_edit(cid, alice, "very nice")
        assert edited.message == "Comment updated successfully"
        assert edited.data["message"] == "very nice"
        assert edited.data["activity_ref"] == commented.data["activity_ref"]
        # Only the author may edit
        assert (await ledger.record_comment_edit(cid, bob, "mine")).message == "Comment does not exist"
        assert (await ledger.record_comment_edit(cid, alice, "  ")).error == "message is empty"


# ── Scenarios ─────────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_like_and_comment_notify_owner_in_order():
    alice, bob = await seed_user("alice"), await seed_user("bob")
    post = await seed_post(bob)
    async with TestSession() as session:
        ledger = LedgerWriter(session)
        liked = await ledger.record_like(alice, post.id)
        commented = await ledger.record_comment(alice, post.id, "wow")
        await ledger.record_unlike(liked.data["id"], alice)

        notes = await FeedReader(session).get_notifications(bob.id)
        assert [n["type"] for n in notes.data] == ["COMMENT_POST", "LIKE_POST"]
        inbox = await FeedReader(session).get_inbox(bob.id)
    assert [n["id"] for n in inbox.data] == [liked.data["id"], commented.data["id"]]


@pytest.mark.asyncio
async def test_activity_feed_shows_reversals():
    bob, carol = await seed_user("bob"), await seed_user("carol")
    async with TestSession() as session:
        ledger = LedgerWriter(session)
        await ledger.record_follow(bob, carol.id)
        await ledger.record_unfollow(bob, carol.id)
        feed = await FeedReader(session).get_activity_feed(bob.id)
        notes = await FeedReader(session).get_notifications(carol.id)
    assert [a["type"] for a in feed.data] == ["UNFOLLOW_USER", "FOLLOW_USER"]
    assert feed.data[1]["active"] is False
    # The deactivated follow stays in carol's history; the unfollow never does
    assert [n["type"] for n in notes.data] == ["FOLLOW_USER"]


@pytest.mark.asyncio
async def test_record_post_create_is_silent():
    bob = await seed_user("bob")
    post = await seed_post(bob)
    async with TestSession() as session:
        row = await LedgerWriter(session).record_post_create(bob, post)
        notes = await FeedReader(session).get_notifications(bob.id)
    assert row.type == ActivityType.CREATE_POST
    assert row.post_id == post.id
    assert notes.data == []
    assert await _inbox(bob.id) == []


@pytest.mark.asyncio
async def test_missing_actor_image_stored_as_null_everywhere():
    alice, bob = await seed_user("alice"), await seed_user("bob")
    post = await seed_post(bob)
    async with TestSession() as session:
        ledger = LedgerWriter(session)
        followed = await ledger.record_follow(alice, bob.id)
        liked = await ledger.record_like(alice, post.id)
        commented = await ledger.record_comment(alice, post.id, "hi")
        unliked = await ledger.record_unlike(liked.data["id"], alice)
    images = {r.data["type"]: r.data["user_image"] for r in (followed, liked, commented, unliked)}
    assert images == {
        "FOLLOW_USER": None, "LIKE_POST": None, "COMMENT_POST": None, "REMOVE_LIKE_POST": None,
    }
