"""
Tests for relationship declaration, population, integrity and cascades.
"""

import pytest
from bson import ObjectId

from docweave import FieldBuilder, RelationshipKind
from docweave.core.exceptions import (
    ConfigurationError,
    ForeignKeyViolationError,
    RelationshipError,
)
from docweave.models import ModelRegistry
from docweave.relationships import RelationshipDescriptor, RelationshipRegistry


@pytest.fixture
def courses(client):
    students = client.model("Student", collection_name="students")
    students.add_field(FieldBuilder("name").type(str).required())

    enrollments = client.model("Enrollment", collection_name="enrollments")
    enrollments.add_field(FieldBuilder("student_id").type("objectId").required())
    enrollments.add_field(FieldBuilder("course_id").type("objectId").required())

    courses = client.model("Course", collection_name="courses")
    courses.add_field(FieldBuilder("title").type(str).alias("t").required())

    students.add_relationship(
        "courses",
        RelationshipKind.MANY_TO_MANY,
        "Course",
        "student_id",
        through="Enrollment",
        cascade=True,
    )
    return students, enrollments, courses


class TestRelationshipDescriptor:
    """Tests for RelationshipDescriptor."""

    def test_many_to_many_needs_junction(self):
        with pytest.raises(RelationshipError):
            RelationshipDescriptor(RelationshipKind.MANY_TO_MANY, "Course", "student_id")

    def test_junction_target_key_default(self):
        descriptor = RelationshipDescriptor(
            RelationshipKind.MANY_TO_MANY, "Course", "student_id", through="Enrollment"
        )
        assert descriptor.junction_target_key == "course_id"
        assert descriptor.to_dict()["through"] == "Enrollment"

    def test_unresolvable_model(self):
        descriptor = RelationshipDescriptor(RelationshipKind.ONE_TO_ONE, "Ghost", "ghost_id")

        with pytest.raises(RelationshipError):
            descriptor.resolve_related(None)
        with pytest.raises(RelationshipError):
            descriptor.resolve_related(ModelRegistry())

    def test_registry_filters(self):
        registry = RelationshipRegistry()
        registry.register("a", RelationshipDescriptor(RelationshipKind.ONE_TO_ONE, "A", "a_id"))
        registry.register(
            "b", RelationshipDescriptor(RelationshipKind.ONE_TO_MANY, "B", "host_id", cascade=True)
        )

        assert [name for name, _ in registry.cascading()] == ["b"]
        assert [name for name, _ in registry.of_kind(RelationshipKind.ONE_TO_ONE)] == ["a"]
        assert "a" in registry and len(registry) == 2


class TestDeclaration:
    """Tests for relationship declaration on a model."""

    def test_relationship_named_like_field_is_rejected(self, client):
        comments = client.model("Comment", collection_name="comments")
        comments.add_field(FieldBuilder("user").type("objectId").required())

        with pytest.raises(ConfigurationError):
            comments.add_relationship("user", RelationshipKind.ONE_TO_ONE, "User", "user")

        assert "user" not in comments.relationships
        assert comments.fields.get("user").is_persisted

    def test_field_named_like_relationship_is_rejected(self, client):
        comments = client.model("Comment", collection_name="comments")
        comments.add_relationship("author", RelationshipKind.ONE_TO_ONE, "User", "userId")

        with pytest.raises(ConfigurationError):
            comments.add_field(FieldBuilder("author").type(str))

    def test_duplicate_relationship_is_rejected(self, post_model):
        with pytest.raises(ConfigurationError):
            post_model.add_relationship("author", RelationshipKind.ONE_TO_ONE, "User", "userId")


class TestBuildStages:
    """Tests for population pipeline stages."""

    def test_one_to_many_stages(self, user_model, post_model):
        stages = user_model.resolver.build_stages(["posts"])

        assert stages == [
            {"$lookup": {
                "from": "posts",
                "localField": "_id",
                "foreignField": "userId",
                "as": "posts",
            }},
            {"$addFields": {"posts": {"$ifNull": ["$posts", []]}}},
        ]

    def test_unknown_and_many_to_many_are_skipped(self, courses):
        students, _, _ = courses
        assert students.resolver.build_stages(["courses", "nothing"]) == []


class TestPopulation:
    """End-to-end population."""

    @pytest.mark.asyncio
    async def test_one_to_many(self, user_model, post_model):
        user_id = await user_model.save({"email": "ada@example.com"})
        await post_model.save({"title": "First", "userId": user_id})
        await post_model.save({"title": "Second", "userId": user_id})

        user = await user_model.find_by_id(user_id, populate=["posts"])

        assert [post["title"] for post in user["posts"]] == ["First", "Second"]
        assert all(post["userId"] == user_id for post in user["posts"])

    @pytest.mark.asyncio
    async def test_one_to_many_without_matches_is_empty_list(self, user_model, post_model):
        user_id = await user_model.save({"email": "ada@example.com"})

        user = await user_model.find_by_id(user_id, populate=["posts"])

        assert user["posts"] == []

    @pytest.mark.asyncio
    async def test_one_to_one(self, user_model, post_model):
        user_id = await user_model.save({"email": "ada@example.com", "name": "Ada"})
        post_id = await post_model.save({"title": "First", "userId": user_id})

        post = await post_model.find_by_id(post_id, populate=["author"])

        assert post["author"]["_id"] == user_id
        assert post["author"]["name"] == "Ada"

    @pytest.mark.asyncio
    async def test_one_to_one_missing_target_is_none(self, user_model, post_model):
        user_id = await user_model.save({"email": "ada@example.com"})
        post_id = await post_model.save({"title": "Orphan", "userId": user_id})
        await user_model.collection.delete_many({})

        post = await post_model.find_by_id(post_id, populate=["author"])

        assert post["author"] is None

    @pytest.mark.asyncio
    async def test_many_to_many_through_junction(self, courses):
        students, enrollments, course_model = courses
        ada = await students.save({"name": "Ada"})
        bob = await students.save({"name": "Bob"})
        maths = await course_model.save({"title": "Maths"})
        music = await course_model.save({"title": "Music"})
        await enrollments.save({"student_id": ada, "course_id": maths})
        await enrollments.save({"student_id": ada, "course_id": music})

        found = await students.find(populate=["courses"], sort={"name": 1})

        by_name = {student["name"]: student for student in found}
        assert [course["title"] for course in by_name["Ada"]["courses"]] == ["Maths", "Music"]
        assert by_name["Bob"]["courses"] == []
        assert bob == by_name["Bob"]["_id"]

    @pytest.mark.asyncio
    async def test_populate_with_query_builder(self, user_model, post_model):
        user_id = await user_model.save({"email": "ada@example.com"})
        await post_model.save({"title": "First", "userId": user_id})

        users = await (
            user_model.query()
            .where("email", "equal", "ada@example.com")
            .populate("posts")
            .execute()
        )

        assert len(users) == 1
        assert users[0]["posts"][0]["title"] == "First"


class TestIntegrity:
    """Referential integrity and cascades."""

    @pytest.mark.asyncio
    async def test_missing_reference_rejected(self, user_model, post_model):
        with pytest.raises(ForeignKeyViolationError) as exc_info:
            await post_model.save({"title": "Orphan", "userId": ObjectId()})

        assert exc_info.value.field == "userId"
        assert await post_model.count() == 0

    @pytest.mark.asyncio
    async def test_string_reference_is_coerced(self, user_model, post_model):
        user_id = await user_model.save({"email": "ada@example.com"})

        assert await post_model.save({"title": "First", "userId": str(user_id)})

    @pytest.mark.asyncio
    async def test_many_to_many_cascade_removes_junction_rows(self, courses):
        students, enrollments, course_model = courses
        ada = await students.save({"name": "Ada"})
        maths = await course_model.save({"title": "Maths"})
        await enrollments.save({"student_id": ada, "course_id": maths})

        await students.delete_by_id(ada)

        assert await enrollments.count() == 0
        assert await course_model.count() == 1
