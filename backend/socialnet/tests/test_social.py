from unittest import IsolatedAsyncioTestCase

from socialnet.core import AlreadyExists, InvalidOperation, NotFound
from socialnet.core.social import follow, follow_counts, list_followers, list_following, unfollow
from socialnet.store import Kind, MemoryStore

from .factories import make_user


# Fails the second half of a follow link
class FailingFollowersStore(MemoryStore):
    async def add_to_set(self, kind, record_id, field, value):
        if field == "followers":
            raise RuntimeError("store went away")
        return await super().add_to_set(kind, record_id, field, value)


class FollowTest(IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.store = MemoryStore()
        self.u1 = (await make_user(self.store))["id"]
        self.u2 = (await make_user(self.store))["id"]

    async def user(self, user_id):
        return await self.store.get(Kind.USER, user_id)

    async def test_follow_is_symmetric(self):
        await follow(self.store, self.u1, self.u2)
        u1, u2 = await self.user(self.u1), await self.user(self.u2)
        self.assertEqual(u1["following"], [self.u2])
        self.assertEqual(u2["followers"], [self.u1])
        self.assertEqual(follow_counts(u2), (1, 0))
        self.assertEqual(follow_counts(u1), (0, 1))

    async def test_unfollow_clears_both_sides(self):
        await follow(self.store, self.u1, self.u2)
        await unfollow(self.store, self.u1, self.u2)
        u1, u2 = await self.user(self.u1), await self.user(self.u2)
        self.assertNotIn(self.u2, u1["following"])
        self.assertNotIn(self.u1, u2["followers"])

    async def test_cannot_follow_self(self):
        with self.assertRaises(InvalidOperation):
            await follow(self.store, self.u1, self.u1)
        self.assertEqual((await self.user(self.u1))["following"], [])

    async def test_follow_twice_already_exists(self):
        await follow(self.store, self.u1, self.u2)
        with self.assertRaises(AlreadyExists):
            await follow(self.store, self.u1, self.u2)
        self.assertEqual((await self.user(self.u2))["followers"], [self.u1])

    async def test_follow_missing_user(self):
        with self.assertRaises(NotFound):
            await follow(self.store, self.u1, 999)
        with self.assertRaises(NotFound):
            await follow(self.store, 999, self.u1)
        self.assertEqual((await self.user(self.u1))["followers"], [])

    async def test_unfollow_when_not_following(self):
        await follow(self.store, self.u2, self.u1)
        with self.assertRaises(InvalidOperation):
            await unfollow(self.store, self.u1, self.u2)
        u1, u2 = await self.user(self.u1), await self.user(self.u2)
        self.assertEqual(u1["following"], [])
        self.assertEqual(u1["followers"], [self.u2])
        self.assertEqual(u2["following"], [self.u1])

    async def test_half_applied_follow_is_rolled_back(self):
        store = FailingFollowersStore()
        a = (await make_user(store))["id"]
        b = (await make_user(store))["id"]

        with self.assertRaises(RuntimeError):
            await follow(store, a, b)

        self.assertEqual((await store.get(Kind.USER, a))["following"], [])
        self.assertEqual((await store.get(Kind.USER, b))["followers"], [])

    async def test_listings_are_summaries(self):
        u3 = (await make_user(self.store, bio="hello", profile_picture="/uploads/u3.png"))["id"]
        await follow(self.store, self.u1, self.u2)
        await follow(self.store, u3, self.u2)

        followers = await list_followers(self.store, self.u2)
        self.assertEqual([f["id"] for f in followers], [self.u1, u3])
        self.assertEqual(followers[1]["profile_picture"], "/uploads/u3.png")
        self.assertNotIn("email", followers[0])

        following = await list_following(self.store, u3)
        self.assertEqual([f["id"] for f in following], [self.u2])

    async def test_listing_missing_user(self):
        with self.assertRaises(NotFound):
            await list_followers(self.store, 999)
        with self.assertRaises(NotFound):
            await list_following(self.store, 999)
