"""
Shared fixtures.

End-to-end tests run against mongomock-motor, an in-memory stand-in for
motor. It does not implement ``collMod``, so validator pushes are switched
off there and covered separately with mocks.
"""

import pytest
from mongomock_motor import AsyncMongoMockClient

from docweave import DocumentClient, EngineConfig, FieldBuilder, RelationshipKind
from docweave.core.config import SchemaSettings, StoreSettings


@pytest.fixture
def mongo_client():
    return AsyncMongoMockClient()


@pytest.fixture
def engine_config():
    return EngineConfig(
        store=StoreSettings(database="docweave_test"),
        schema_sync=SchemaSettings(push_validator=False),
    )


@pytest.fixture
def client(mongo_client, engine_config):
    return DocumentClient(engine_config, client=mongo_client)


@pytest.fixture
def user_model(client):
    users = client.model("User", collection_name="users")
    users.add_field(FieldBuilder("email").type(str).required().unique())
    users.add_field(FieldBuilder("name").type(str))
    return users


@pytest.fixture
def post_model(client, user_model):
    posts = client.model("Post", collection_name="posts")
    posts.add_field(FieldBuilder("title").type(str).required())
    posts.add_field(FieldBuilder("userId").type("objectId").required())
    posts.add_relationship("author", RelationshipKind.ONE_TO_ONE, "User", "userId")
    user_model.add_relationship("posts", RelationshipKind.ONE_TO_MANY, "Post", "userId", cascade=True)
    return posts
