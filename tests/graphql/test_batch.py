"""
Integration tests for the batch resolver
"""

import pytest

from entitygraph.errors import ConflictError, ContextError, NotFoundError, ValidationError
from entitygraph.graphql.resolvers.batch import parse_step, substitute_refs

ANONYMOUS_BATCH = """
mutation ($collection: JSON!) {
    OrgUnit { batch(collection: $collection) { id initials name } }
}
"""

ENTITY_BATCH = """
mutation ($id: UUID, $collection: JSON!) {
    OrgUnit(id: $id) { batch(collection: $collection) { id name } }
}
"""

PERSON_BY_NAME = """
query ($where: JSON) {
    Person(where: $where) { id belongs_to { id } supervisor { id } }
}
"""


def original_error(result):
    assert result.errors, "expected the batch to fail"
    return result.errors[0].original_error


class TestSubstitution:
    """Tests for reference substitution."""

    def test_nested_values(self):
        refs = {"unit": "u-1", "boss": "p-1"}
        payload = {"name": "unit", "belongs_to": "unit", "supervisor": {"set": ["boss", "x"]}}

        assert substitute_refs(payload, refs) == {
            "name": "u-1",
            "belongs_to": "u-1",
            "supervisor": {"set": ["p-1", "x"]},
        }

    def test_only_whole_strings(self):
        assert substitute_refs({"name": "unit 2", "n": 3}, {"unit": "u-1"}) == {
            "name": "unit 2",
            "n": 3,
        }

    def test_step_id_is_substituted(self):
        step = parse_step(0, {"op": "DELETE", "type": "Person", "id": "p"}, {"p": "p-1"})

        assert step.id == "p-1"

    @pytest.mark.parametrize(
        "raw",
        [
            {"op": "CREATE", "type": "Person"},
            {"op": "CLONE", "type": "Person"},
            {"op": "UPDATE", "type": "Person", "id": "p-1"},
            {"op": "DELETE", "type": "Person", "id": "p-1", "with": {}},
            {"op": "UPDATE", "type": "Person", "id": "p-1", "with": {}, "ref": "x"},
        ],
    )
    def test_shape_violations(self, raw):
        with pytest.raises(ValidationError, match=f'step 3 with op "{raw["op"]}" must have'):
            parse_step(3, raw, {})

    def test_unknown_op(self):
        with pytest.raises(ValidationError, match='invalid operation "MERGE" in step 0'):
            parse_step(0, {"op": "MERGE", "type": "Person"}, {})

    def test_step_must_be_object(self):
        with pytest.raises(ValidationError, match="step 1 is not an object"):
            parse_step(1, ["CREATE"], {})


class TestAnonymousBatch:
    """Tests for batches run in an anonymous context."""

    @pytest.mark.asyncio
    async def test_reference_to_created_entity(self, demo, execute):
        _engine, schema = demo
        collection = [
            {"op": "CREATE", "type": "OrgUnit", "ref": "unit", "with": {"initials": "NU"}},
            {"op": "CREATE", "type": "Person", "with": {"name": "Nina", "belongs_to": "unit"}},
        ]

        result = await execute(schema, ANONYMOUS_BATCH, {"collection": collection})

        assert result.errors is None
        unit = result.data["OrgUnit"]["batch"]
        assert unit["initials"] == "NU"
        person = await execute(schema, PERSON_BY_NAME, {"where": {"name": "Nina"}})
        assert person.data["Person"]["belongs_to"] == {"id": unit["id"]}

    @pytest.mark.asyncio
    async def test_root_step_is_returned(self, demo, seeded, execute):
        _engine, schema = demo
        collection = [
            {"op": "CREATE", "type": "OrgUnit", "with": {"initials": "A1"}},
            {"op": "CREATE", "type": "OrgUnit", "root": True, "with": {"initials": "A2"}},
        ]

        result = await execute(schema, ANONYMOUS_BATCH, {"collection": collection})

        assert result.data["OrgUnit"]["batch"]["initials"] == "A2"

    @pytest.mark.asyncio
    async def test_no_matching_step_is_null(self, demo, seeded, execute):
        _engine, schema = demo
        collection = [
            {"op": "UPDATE", "type": "Person", "id": seeded["BEN"], "with": {"name": "Bernd"}}
        ]

        result = await execute(schema, ANONYMOUS_BATCH, {"collection": collection})

        assert result.errors is None
        assert result.data == {"OrgUnit": {"batch": None}}

    @pytest.mark.asyncio
    async def test_clone_reference(self, demo, seeded, execute):
        _engine, schema = demo
        collection = [
            {"op": "CLONE", "type": "Person", "id": seeded["RSE"], "ref": "twin"},
            {"op": "UPDATE", "type": "Person", "id": "twin", "with": {"name": "Twin"}},
            {"op": "UPDATE", "type": "Person", "id": seeded["BEN"], "with": {"supervisor": "twin"}},
        ]

        result = await execute(schema, ANONYMOUS_BATCH, {"collection": collection})

        assert result.errors is None
        twin = await execute(schema, PERSON_BY_NAME, {"where": {"name": "Twin"}})
        ben = await execute(schema, PERSON_BY_NAME, {"where": {"name": "Bernd Endras"}})
        assert ben.data["Person"]["supervisor"] == {"id": twin.data["Person"]["id"]}

    @pytest.mark.asyncio
    async def test_given_id_is_checked(self, demo, seeded, execute):
        _engine, schema = demo
        collection = [{"op": "CREATE", "type": "OrgUnit", "id": seeded["XT"], "with": {}}]

        result = await execute(schema, ANONYMOUS_BATCH, {"collection": collection})

        assert isinstance(original_error(result), ConflictError)


class TestEntityBatch:
    """Tests for batches run on an existing entity."""

    @pytest.mark.asyncio
    async def test_returns_refetched_entity(self, demo, seeded, execute):
        _engine, schema = demo
        collection = [
            {"op": "UPDATE", "type": "OrgUnit", "id": seeded["XT"], "with": {"name": "XT Labs"}}
        ]

        result = await execute(
            schema, ENTITY_BATCH, {"id": seeded["XT"], "collection": collection}
        )

        assert result.errors is None
        assert result.data["OrgUnit"]["batch"] == {"id": seeded["XT"], "name": "XT Labs"}

    @pytest.mark.asyncio
    async def test_deleted_entity_is_null(self, demo, seeded, execute):
        _engine, schema = demo
        collection = [{"op": "DELETE", "type": "OrgUnit", "id": seeded["XIS"]}]

        result = await execute(
            schema, ENTITY_BATCH, {"id": seeded["XIS"], "collection": collection}
        )

        assert result.errors is None
        assert result.data == {"OrgUnit": {"batch": None}}


class TestFailures:
    """Tests for batches that fail as a whole."""

    @pytest.mark.asyncio
    async def test_duplicate_reference(self, demo, execute):
        _engine, schema = demo
        collection = [
            {"op": "CREATE", "type": "OrgUnit", "ref": "u", "with": {"initials": "D1"}},
            {"op": "CREATE", "type": "OrgUnit", "ref": "u", "with": {"initials": "D2"}},
        ]

        result = await execute(schema, ANONYMOUS_BATCH, {"collection": collection})

        assert isinstance(original_error(result), ConflictError)
        assert 'reference "u" already exists' in result.errors[0].message

    @pytest.mark.asyncio
    async def test_earlier_steps_are_rolled_back(self, demo, execute):
        _engine, schema = demo
        collection = [
            {"op": "CREATE", "type": "Person", "with": {"name": "Rolled Back"}},
            {"op": "UPDATE", "type": "Person", "id": "missing", "with": {}},
        ]

        result = await execute(schema, ANONYMOUS_BATCH, {"collection": collection})

        assert isinstance(original_error(result), NotFoundError)
        person = await execute(schema, PERSON_BY_NAME, {"where": {"name": "Rolled Back"}})
        assert person.data == {"Person": None}

    @pytest.mark.asyncio
    async def test_invalid_step_shape(self, demo, execute):
        _engine, schema = demo
        collection = [{"op": "UPDATE", "type": "Person", "id": "x"}]

        result = await execute(schema, ANONYMOUS_BATCH, {"collection": collection})

        assert isinstance(original_error(result), ValidationError)
        assert "must have the structure" in result.errors[0].message

    @pytest.mark.asyncio
    async def test_unknown_type(self, demo, execute):
        _engine, schema = demo
        collection = [{"op": "CREATE", "type": "Robot", "with": {}}]

        result = await execute(schema, ANONYMOUS_BATCH, {"collection": collection})

        assert isinstance(original_error(result), ValidationError)
        assert 'unknown entity type "Robot"' in result.errors[0].message

    @pytest.mark.asyncio
    async def test_collection_must_be_list(self, demo, execute):
        _engine, schema = demo

        result = await execute(schema, ANONYMOUS_BATCH, {"collection": {"op": "CREATE"}})

        assert isinstance(original_error(result), ValidationError)

    @pytest.mark.asyncio
    async def test_requires_mutation(self, demo, execute):
        _engine, schema = demo

        result = await execute(schema, "{ OrgUnit { batch(collection: []) { id } } }")

        assert isinstance(original_error(result), ContextError)
