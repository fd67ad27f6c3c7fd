"""
Tests for the operator vocabulary, QueryBuilder and AggregationBuilder.
"""

import re
from unittest.mock import AsyncMock, MagicMock

import pytest
from bson import ObjectId
from pymongo.errors import OperationFailure

from docweave.core.exceptions import (
    AggregationError,
    CountError,
    ExplainError,
    QueryBuildError,
    QueryExecutionError,
)
from docweave.fields import FieldBuilder
from docweave.models import Model, ModelRegistry
from docweave.query import (
    AggregationBuilder,
    Operator,
    QueryBuilder,
    compile_condition,
    parse_operator,
    to_store_operator,
)
from docweave.relationships import RelationshipKind


def make_collection(name, documents=None):
    collection = MagicMock()
    collection.name = name
    cursor = MagicMock()
    cursor.to_list = AsyncMock(return_value=documents or [])
    collection.find = MagicMock(return_value=cursor)
    collection.aggregate = MagicMock(return_value=cursor)
    collection.count_documents = AsyncMock(return_value=0)
    collection.explain = AsyncMock(return_value={"queryPlanner": {}})
    return collection


@pytest.fixture
def registry():
    return ModelRegistry()


@pytest.fixture
def articles(registry):
    model = Model("Article", collection=make_collection("articles"), registry=registry)
    model.add_field(FieldBuilder("title").type(str).alias("t"))
    model.add_field(FieldBuilder("views").type(int))
    model.add_field(FieldBuilder("authorId").type("objectId"))
    registry.register(model)
    return model


@pytest.fixture
def authors(registry):
    model = Model("Author", collection=make_collection("authors"), registry=registry)
    model.add_field(FieldBuilder("name").type(str).alias("n"))
    registry.register(model)
    return model


class TestOperators:
    """Tests for operator parsing and compilation."""

    @pytest.mark.parametrize(
        "spelling,expected",
        [
            ("equal", "$eq"),
            ("notEqual", "$ne"),
            ("not_equal", "$ne"),
            ("greaterThan", "$gt"),
            ("greater_than_or_equal", "$gte"),
            ("lessThan", "$lt"),
            ("lessThanOrEqual", "$lte"),
            ("in", "$in"),
            ("notIn", "$nin"),
            ("exists", "$exists"),
            ("regex", "$regex"),
            ("text", "$text"),
            ("$gt", "$gt"),
        ],
    )
    def test_spellings(self, spelling, expected):
        assert to_store_operator(spelling) == expected

    def test_unknown_operator(self):
        with pytest.raises(QueryBuildError):
            parse_operator("approximately")

    def test_compile_condition(self):
        assert compile_condition(Operator.IN, ("a", "b")) == {"$in": ["a", "b"]}
        assert compile_condition("exists", 1) == {"$exists": True}
        assert compile_condition("regex", re.compile("^a")) == {"$regex": "^a"}

    def test_in_requires_list(self):
        with pytest.raises(QueryBuildError):
            compile_condition("in", "a")


class TestQueryBuilder:
    """Tests for filter, option and pipeline compilation."""

    def test_where_merges_operators_and_aliases(self, articles):
        query = (
            articles.query()
            .where("views", "greaterThan", 18)
            .where("views", "lessThan", 65)
            .where("title", "equal", "Hello")
        )

        assert query.build_filter() == {
            "views": {"$gt": 18, "$lt": 65},
            "t": {"$eq": "Hello"},
        }

    def test_where_id_coerces_string(self, articles):
        oid = ObjectId()
        assert articles.query().where_id(str(oid)).build_filter() == {"_id": oid}
        assert articles.query().where("_id", "in", [str(oid)]).build_filter() == {
            "_id": {"$in": [oid]}
        }

    def test_logical_composition(self, articles):
        sub = articles.query().where("title", "equal", "a")
        query = articles.query().or_(sub, {"views": {"$gte": 10}}).not_("views", "equal", 3)

        assert query.build_filter() == {
            "$or": [{"t": {"$eq": "a"}}, {"views": {"$gte": 10}}],
            "views": {"$not": {"$eq": 3}},
        }

    def test_nor_and_and(self, articles):
        query = articles.query().and_({"views": 1}).nor({"title": "x"})
        assert query.build_filter() == {"$and": [{"views": 1}], "$nor": [{"t": "x"}]}

    def test_combinators_need_filters(self, articles):
        with pytest.raises(QueryBuildError):
            articles.query().or_()

    def test_text(self, articles):
        assert articles.query().where("", "text", "mongo").build_filter() == {
            "$text": {"$search": "mongo"}
        }

    def test_paginate(self, articles):
        options = articles.query().paginate(2, 10).build_options()
        assert options == {"skip": 10, "limit": 10}

    @pytest.mark.parametrize("page,size", [(0, 10), (1, 0)])
    def test_paginate_rejects_non_positive(self, articles, page, size):
        with pytest.raises(QueryBuildError):
            articles.query().paginate(page, size)

    def test_sort_and_select(self, articles):
        options = (
            articles.query()
            .sort_by("title", "desc")
            .sort_by({"views": 1})
            .select("title", "views")
            .build_options()
        )

        assert options["sort"] == [("t", -1), ("views", 1)]
        assert options["projection"] == {"t": 1, "views": 1}

    def test_invalid_sort_direction(self, articles):
        with pytest.raises(QueryBuildError):
            articles.query().sort_by("title", "sideways")

    def test_default_filters_apply(self, articles):
        articles.add_default_filter({"deleted_at": None})

        assert articles.query().build_filter() == {"deleted_at": None}
        assert articles.query({"deleted_at": {"$ne": None}}).build_filter() == {
            "deleted_at": {"$ne": None}
        }

    def test_pipeline_order_with_population(self, articles, authors):
        articles.add_relationship("author", RelationshipKind.ONE_TO_ONE, "Author", "authorId")

        pipeline = (
            articles.query()
            .where("views", "greaterThan", 1)
            .populate("author")
            .add_fields({"score": {"$multiply": ["$views", 2]}})
            .sort_by("views", -1)
            .skip(5)
            .limit(5)
            .select("title")
            .build_pipeline()
        )

        assert pipeline == [
            {"$match": {"views": {"$gt": 1}}},
            {"$lookup": {
                "from": "authors",
                "localField": "authorId",
                "foreignField": "_id",
                "as": "author",
            }},
            {"$unwind": {"path": "$author", "preserveNullAndEmptyArrays": True}},
            {"$addFields": {"score": {"$multiply": ["$views", 2]}}},
            {"$sort": {"views": -1}},
            {"$skip": 5},
            {"$limit": 5},
            {"$project": {"t": 1, "author": 1}},
        ]

    @pytest.mark.asyncio
    async def test_execute_plain_find(self, articles):
        articles.collection.find.return_value.to_list = AsyncMock(
            return_value=[{"_id": 1, "t": "Hello", "views": 3}]
        )

        documents = await articles.query().where("views", "equal", 3).limit(1).execute()

        assert documents == [{"_id": 1, "title": "Hello", "views": 3}]
        articles.collection.find.assert_called_once_with(
            {"views": {"$eq": 3}}, session=None, limit=1
        )
        articles.collection.aggregate.assert_not_called()

    @pytest.mark.asyncio
    async def test_execute_with_stages_runs_pipeline(self, articles):
        await articles.query().group({"_id": "$t", "n": {"$sum": 1}}).execute()

        articles.collection.find.assert_not_called()
        pipeline = articles.collection.aggregate.call_args.args[0]
        assert pipeline == [{"$match": {}}, {"$group": {"_id": "$t", "n": {"$sum": 1}}}]

    @pytest.mark.asyncio
    async def test_first(self, articles):
        articles.collection.find.return_value.to_list = AsyncMock(return_value=[])
        assert await articles.query().first() is None

    @pytest.mark.asyncio
    async def test_count_passes_filter(self, articles):
        articles.collection.count_documents = AsyncMock(return_value=7)

        assert await articles.query().where("title", "equal", "x").count() == 7
        articles.collection.count_documents.assert_awaited_once_with(
            {"t": {"$eq": "x"}}, session=None
        )

    @pytest.mark.asyncio
    async def test_count_error(self, articles):
        articles.collection.count_documents = AsyncMock(side_effect=OperationFailure("boom"))

        with pytest.raises(CountError) as exc_info:
            await articles.query().where("views", "equal", 1).count()
        assert exc_info.value.filter == {"views": {"$eq": 1}}

    @pytest.mark.asyncio
    async def test_explain_passes_options(self, articles):
        plan = await articles.query().sort_by("views").limit(3).explain()

        assert plan == {"queryPlanner": {}}
        articles.collection.explain.assert_awaited_once_with(
            {}, sort=[("views", 1)], limit=3
        )

    @pytest.mark.asyncio
    async def test_explain_error(self, articles):
        articles.collection.explain = AsyncMock(side_effect=OperationFailure("boom"))

        with pytest.raises(ExplainError):
            await articles.query().explain()

    @pytest.mark.asyncio
    async def test_find_failure_is_wrapped(self, articles):
        articles.collection.find.return_value.to_list = AsyncMock(
            side_effect=OperationFailure("boom")
        )

        with pytest.raises(QueryExecutionError) as exc_info:
            await articles.find({"views": 1})
        assert exc_info.value.operation == "find"
        assert exc_info.value.filter == {"views": 1}


class TestAggregationBuilder:
    """Tests for AggregationBuilder."""

    def test_all_stages(self, articles):
        builder = (
            AggregationBuilder(articles)
            .match({"title": "x"})
            .group({"_id": "$views"})
            .sort({"_id": -1})
            .project({"_id": 1})
            .lookup("authors", "authorId", "_id", "author")
            .unwind("author", preserve_null_and_empty_arrays=True)
            .add_fields({"a": 1})
            .replace_root("$author")
            .facet({"all": [{"$match": {}}]})
            .bucket("$views", [0, 10, 100], default="other")
            .graph_lookup("authors", "$authorId", "mentorId", "_id", "mentors", max_depth=2)
            .merge("article_stats", when_matched="replace")
            .redact({"$cond": [True, "$$KEEP", "$$PRUNE"]})
            .count("total")
            .skip(1)
            .limit(2)
        )

        operators = [next(iter(stage)) for stage in builder.pipeline]
        assert operators == [
            "$match", "$group", "$sort", "$project", "$lookup", "$unwind",
            "$addFields", "$replaceRoot", "$facet", "$bucket", "$graphLookup",
            "$merge", "$redact", "$count", "$skip", "$limit",
        ]
        assert builder.pipeline[0] == {"$match": {"t": "x"}}
        assert builder.pipeline[5] == {
            "$unwind": {"path": "$author", "preserveNullAndEmptyArrays": True}
        }
        assert builder.pipeline[10]["$graphLookup"]["maxDepth"] == 2
        assert builder.pipeline[11] == {"$merge": {"into": "article_stats", "whenMatched": "replace"}}

    @pytest.mark.asyncio
    async def test_empty_pipeline_raises(self, articles):
        with pytest.raises(AggregationError):
            await articles.aggregate().execute()
        with pytest.raises(AggregationError):
            await articles.run_pipeline([])

    @pytest.mark.asyncio
    async def test_store_failure_is_wrapped(self, articles):
        articles.collection.aggregate.return_value.to_list = AsyncMock(
            side_effect=OperationFailure("bad stage")
        )

        with pytest.raises(AggregationError) as exc_info:
            await articles.aggregate().match({}).execute()
        assert exc_info.value.pipeline == [{"$match": {}}]

    def test_query_builder_repr(self, articles):
        assert "Article" in repr(QueryBuilder(articles))


class TestQueriesEndToEnd:
    """Queries against mongomock-motor."""

    @pytest.fixture
    def readings(self, client):
        model = client.model("Reading", collection_name="readings")
        model.add_field(FieldBuilder("seq").type(int).alias("s").required())
        model.add_field(FieldBuilder("sensor").type(str))
        return model

    @pytest.mark.asyncio
    async def test_paginate_sorted(self, readings):
        for seq in range(25, 0, -1):
            await readings.save({"seq": seq, "sensor": "a"})

        page = await readings.query().sort_by("seq").paginate(2, 10).execute()

        assert [doc["seq"] for doc in page] == list(range(11, 21))

    @pytest.mark.asyncio
    async def test_operators_and_count(self, readings):
        for seq in range(1, 6):
            await readings.save({"seq": seq, "sensor": "a" if seq % 2 else "b"})

        query = readings.query().where("seq", "greaterThanOrEqual", 2).where("sensor", "in", ["a"])

        assert [doc["seq"] for doc in await query.sort_by("seq").execute()] == [3, 5]
        assert await readings.query().where("sensor", "notEqual", "a").count() == 2

    @pytest.mark.asyncio
    async def test_group_and_sort(self, client):
        orders = client.model("Order", collection_name="orders")
        orders.add_field(FieldBuilder("product").type(str))
        orders.add_field(FieldBuilder("quantity").type(int))
        orders.add_field(FieldBuilder("price").type(int))
        for product, quantity, price in [("pen", 10, 2), ("ink", 1, 50), ("pen", 5, 2)]:
            await orders.save({"product": product, "quantity": quantity, "price": price})

        totals = await (
            orders.aggregate()
            .group({"_id": "$product", "total": {"$sum": {"$multiply": ["$quantity", "$price"]}}})
            .sort({"total": -1})
            .execute()
        )

        assert totals == [{"_id": "ink", "total": 50}, {"_id": "pen", "total": 30}]
