from unittest import IsolatedAsyncioTestCase

from socialnet.core import AlreadyExists, InvalidOperation, NotFound
from socialnet.core.content import create_post
from socialnet.core.social import follow
from socialnet.core.users import PROFILE_POSTS, find_by_email, get_profile, list_users, register_user, update_profile
from socialnet.store import MemoryStore

from .factories import fake


class UserTest(IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.store = MemoryStore()
        self.me = await register_user(self.store, "Ada", " Ada@Example.com ", "hash")
        self.other = await register_user(self.store, fake.first_name(), fake.unique.email(), "hash")

    async def test_register_normalizes_email(self):
        self.assertEqual(self.me["email"], "ada@example.com")
        found = await find_by_email(self.store, "ADA@example.com")
        self.assertEqual(found["id"], self.me["id"])
        with self.assertRaises(AlreadyExists):
            await register_user(self.store, "Ada Two", "ada@example.com", "hash")

    async def test_profile_counts_are_derived(self):
        await follow(self.store, self.other["id"], self.me["id"])
        for i in range(PROFILE_POSTS + 2):
            await create_post(self.store, self.me["id"], f"post {i}")

        profile = await get_profile(self.store, self.me["id"])

        self.assertEqual(profile["user"]["follower_count"], 1)
        self.assertEqual(profile["user"]["following_count"], 0)
        self.assertEqual([f["id"] for f in profile["user"]["followers"]], [self.other["id"]])
        self.assertNotIn("password_hash", profile["user"])
        self.assertEqual(len(profile["posts"]), PROFILE_POSTS)
        self.assertEqual(profile["posts"][0]["content"], f"post {PROFILE_POSTS + 1}")

        with self.assertRaises(NotFound):
            await get_profile(self.store, 999)

    async def test_update_profile(self):
        user = await update_profile(self.store, self.me["id"], name="  Ada L  ", bio="math")
        self.assertEqual((user["name"], user["bio"]), ("Ada L", "math"))
        with self.assertRaises(InvalidOperation):
            await update_profile(self.store, self.me["id"], name="A")
        with self.assertRaises(InvalidOperation):
            await update_profile(self.store, self.me["id"], bio="b" * 201)

    async def test_list_users_skips_viewer(self):
        users = (await list_users(self.store, self.me["id"])).items
        self.assertEqual([u["id"] for u in users], [self.other["id"]])

    async def test_list_users_pages(self):
        extra = [await register_user(self.store, fake.first_name(), fake.unique.email(), "hash") for _ in range(3)]
        page = await list_users(self.store, self.me["id"], page=1, limit=2)
        self.assertEqual([u["id"] for u in page.items], [extra[2]["id"], extra[1]["id"]])
        self.assertEqual((page.total, page.total_pages), (4, 2))
        last = await list_users(self.store, self.me["id"], page=2, limit=2)
        self.assertEqual([u["id"] for u in last.items], [extra[0]["id"], self.other["id"]])
