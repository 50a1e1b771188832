"""
Integration tests for the create, clone, update and delete resolvers
"""

import pytest

from entitygraph.errors import (
    CardinalityError,
    ConflictError,
    ContextError,
    FieldTypeError,
    NotFoundError,
    UnknownFieldError,
    ValidationError,
)

FIXED_ID = "6d1f3a52-3c0e-4b8e-9d5a-2f7e1c4b9a10"

CREATE_PERSON = """
mutation ($with: JSON) {
    Person { create(with: $with) { id initials name role } }
}
"""

CREATE_PERSON_WITH_ID = """
mutation ($id: UUID, $with: JSON) {
    Person { create(id: $id, with: $with) { id } }
}
"""

GET_PERSON = """
query ($id: UUID) {
    Person(id: $id) { id initials name role supervisor { initials } belongs_to { initials } }
}
"""


def original_error(result):
    assert result.errors, "expected the operation to fail"
    return result.errors[0].original_error


class TestCreate:
    """Tests for creating entities from an anonymous context."""

    @pytest.mark.asyncio
    async def test_round_trip(self, demo, execute):
        _engine, schema = demo

        created = await execute(
            schema, CREATE_PERSON, {"with": {"name": "Jane Doe", "role": "EMPLOYEE"}}
        )
        assert created.errors is None
        person = created.data["Person"]["create"]
        assert person["name"] == "Jane Doe"
        assert person["initials"] is None

        fetched = await execute(schema, GET_PERSON, {"id": person["id"]})

        assert fetched.errors is None
        assert fetched.data["Person"] == {
            "id": person["id"],
            "initials": None,
            "name": "Jane Doe",
            "role": "EMPLOYEE",
            "supervisor": None,
            "belongs_to": None,
        }

    @pytest.mark.asyncio
    async def test_with_relations(self, demo, seeded, execute):
        _engine, schema = demo

        created = await execute(
            schema,
            CREATE_PERSON,
            {"with": {"initials": "JD", "supervisor": seeded["RSE"], "belongs_to": seeded["XT"]}},
        )
        assert created.errors is None

        fetched = await execute(schema, GET_PERSON, {"id": created.data["Person"]["create"]["id"]})

        assert fetched.data["Person"]["supervisor"] == {"initials": "RSE"}
        assert fetched.data["Person"]["belongs_to"] == {"initials": "XT"}

    @pytest.mark.asyncio
    async def test_with_given_id(self, demo, execute):
        _engine, schema = demo

        result = await execute(
            schema, CREATE_PERSON_WITH_ID, {"id": FIXED_ID, "with": {"name": "Fixed"}}
        )

        assert result.errors is None
        assert result.data == {"Person": {"create": {"id": FIXED_ID}}}

    @pytest.mark.asyncio
    async def test_id_generator(self, seeded, make_engine, execute):
        _engine, schema = make_engine(id_generator=lambda: FIXED_ID)

        result = await execute(schema, CREATE_PERSON, {"with": {"name": "Generated"}})

        assert result.errors is None
        assert result.data["Person"]["create"]["id"] == FIXED_ID

    @pytest.mark.asyncio
    async def test_existing_id_conflicts(self, demo, seeded, execute):
        _engine, schema = demo

        result = await execute(schema, CREATE_PERSON_WITH_ID, {"id": seeded["BEN"], "with": {}})

        assert isinstance(original_error(result), ConflictError)
        assert f"entity Person#{seeded['BEN']} already exists" in result.errors[0].message

    @pytest.mark.asyncio
    async def test_unknown_field(self, demo, execute):
        _engine, schema = demo

        result = await execute(schema, CREATE_PERSON, {"with": {"salary": 1}})

        assert isinstance(original_error(result), UnknownFieldError)

    @pytest.mark.asyncio
    async def test_invalid_enum_value(self, demo, execute):
        _engine, schema = demo

        result = await execute(schema, CREATE_PERSON, {"with": {"role": "BOSS"}})

        assert isinstance(original_error(result), ValidationError)
        assert 'enumeration "PersonRole"' in result.errors[0].message

    @pytest.mark.asyncio
    async def test_non_string_enum_value(self, demo, execute):
        _engine, schema = demo

        result = await execute(schema, CREATE_PERSON, {"with": {"role": 3}})

        assert isinstance(original_error(result), FieldTypeError)

    @pytest.mark.asyncio
    async def test_missing_related_entity(self, demo, execute):
        _engine, schema = demo

        result = await execute(schema, CREATE_PERSON, {"with": {"supervisor": FIXED_ID}})

        assert isinstance(original_error(result), NotFoundError)

    @pytest.mark.asyncio
    async def test_failed_create_is_rolled_back(self, demo, execute):
        _engine, schema = demo

        await execute(
            schema, CREATE_PERSON_WITH_ID, {"id": FIXED_ID, "with": {"supervisor": [FIXED_ID]}}
        )
        fetched = await execute(schema, GET_PERSON, {"id": FIXED_ID})

        assert fetched.data == {"Person": None}

    @pytest.mark.asyncio
    async def test_requires_anonymous_context(self, demo, seeded, execute):
        _engine, schema = demo

        result = await execute(
            schema,
            "mutation ($id: UUID) { Person(id: $id) { create { id } } }",
            {"id": seeded["BEN"]},
        )

        assert isinstance(original_error(result), ContextError)
        assert "only allowed in anonymous Person context" in result.errors[0].message

    @pytest.mark.asyncio
    async def test_requires_mutation(self, demo, execute):
        _engine, schema = demo

        result = await execute(schema, "{ Person { create { id } } }")

        assert isinstance(original_error(result), ContextError)
        assert 'only allowed under "mutation" operation' in result.errors[0].message

    @pytest.mark.asyncio
    async def test_created_entity_is_searchable(self, demo, execute):
        _engine, schema = demo

        created = await execute(schema, CREATE_PERSON, {"with": {"name": "Acme"}})
        oid = created.data["Person"]["create"]["id"]

        found = await execute(schema, '{ Persons(fts: "name:Acme") { id } }')
        assert found.data == {"Persons": [{"id": oid}]}

        deleted = await execute(
            schema, "mutation ($id: UUID) { Person(id: $id) { delete } }", {"id": oid}
        )
        assert deleted.errors is None

        found = await execute(schema, '{ Persons(fts: "name:Acme") { id } }')
        assert found.data == {"Persons": []}


class TestClone:
    """Tests for cloning entities."""

    CLONE = """
    mutation ($id: UUID) {
        Person(id: $id) {
            clone { id initials name role supervisor { id } belongs_to { id } }
        }
    }
    """

    @pytest.mark.asyncio
    async def test_copies_attributes_only(self, demo, seeded, execute):
        _engine, schema = demo

        result = await execute(schema, self.CLONE, {"id": seeded["BEN"]})

        assert result.errors is None
        clone = result.data["Person"]["clone"]
        assert clone["id"] != seeded["BEN"]
        assert clone["initials"] == "BEN"
        assert clone["name"] == "Bernd Endras"
        assert clone["role"] == "EMPLOYEE"
        assert clone["supervisor"] is None
        assert clone["belongs_to"] is None

    @pytest.mark.asyncio
    async def test_members_are_not_copied(self, demo, seeded, execute):
        _engine, schema = demo

        result = await execute(
            schema,
            "mutation ($id: UUID) { OrgUnit(id: $id) { clone { name members { id } } } }",
            {"id": seeded["XT"]},
        )

        assert result.errors is None
        assert result.data["OrgUnit"]["clone"]["members"] == []

    @pytest.mark.asyncio
    async def test_clone_is_indexed(self, demo, seeded, execute):
        engine, schema = demo

        result = await execute(schema, self.CLONE, {"id": seeded["CGU"]})

        assert result.errors is None
        assert len(engine.fts.search("Person", "name:gutzeit")) == 2

    @pytest.mark.asyncio
    async def test_requires_existing_entity(self, demo, execute):
        _engine, schema = demo

        result = await execute(schema, "mutation { Person { clone { id } } }")

        assert isinstance(original_error(result), ContextError)


class TestUpdate:
    """Tests for updating attributes and relations."""

    UPDATE = """
    mutation ($id: UUID, $with: JSON!, $hc: String) {
        Person(id: $id) { update(with: $with, hc: $hc) { name role supervisor { initials } } }
    }
    """

    @pytest.mark.asyncio
    async def test_attributes_and_relations(self, demo, seeded, execute):
        _engine, schema = demo

        result = await execute(
            schema,
            self.UPDATE,
            {"id": seeded["BEN"], "with": {"role": "MANAGER", "supervisor": seeded["HZ"]}},
        )

        assert result.errors is None
        assert result.data["Person"]["update"] == {
            "name": "Bernd Endras",
            "role": "MANAGER",
            "supervisor": {"initials": "HZ"},
        }

    @pytest.mark.asyncio
    async def test_null_clears_relation(self, demo, seeded, execute):
        _engine, schema = demo

        result = await execute(
            schema, self.UPDATE, {"id": seeded["BEN"], "with": {"supervisor": None}}
        )

        assert result.errors is None
        assert result.data["Person"]["update"]["supervisor"] is None

    @pytest.mark.asyncio
    async def test_one_relation_rejects_two_ids(self, demo, seeded, execute):
        _engine, schema = demo

        result = await execute(
            schema,
            self.UPDATE,
            {"id": seeded["BEN"], "with": {"supervisor": [seeded["HZ"], seeded["JS"]]}},
        )

        assert isinstance(original_error(result), CardinalityError)

    @pytest.mark.asyncio
    async def test_add_and_del_members(self, demo, seeded, execute):
        _engine, schema = demo

        result = await execute(
            schema,
            """
            mutation ($id: UUID, $with: JSON!) {
                OrgUnit(id: $id) { update(with: $with) { members { initials } } }
            }
            """,
            {
                "id": seeded["MSG"],
                "with": {"members": {"del": [seeded["JS"]], "add": [seeded["FST"]]}},
            },
        )

        assert result.errors is None
        members = sorted(row["initials"] for row in result.data["OrgUnit"]["update"]["members"])
        assert members == ["FST", "HZ"]

    @pytest.mark.asyncio
    async def test_matching_hash_code(self, demo, seeded, execute):
        _engine, schema = demo
        current = await execute(
            schema, "query ($id: UUID) { Person(id: $id) { hc } }", {"id": seeded["BEN"]}
        )
        hc = current.data["Person"]["hc"]

        result = await execute(
            schema, self.UPDATE, {"id": seeded["BEN"], "with": {"name": "B. Endras"}, "hc": hc}
        )

        assert result.errors is None
        assert result.data["Person"]["update"]["name"] == "B. Endras"

    @pytest.mark.asyncio
    async def test_stale_hash_code(self, demo, seeded, execute):
        _engine, schema = demo

        result = await execute(
            schema, self.UPDATE, {"id": seeded["BEN"], "with": {"name": "X"}, "hc": "0" * 40}
        )

        assert isinstance(original_error(result), ConflictError)
        fetched = await execute(schema, GET_PERSON, {"id": seeded["BEN"]})
        assert fetched.data["Person"]["name"] == "Bernd Endras"

    @pytest.mark.asyncio
    async def test_hash_code_changes_with_content(self, demo, seeded, execute):
        query = "query ($id: UUID) { Person(id: $id) { hc } }"
        _engine, schema = demo
        before = await execute(schema, query, {"id": seeded["BEN"]})

        await execute(schema, self.UPDATE, {"id": seeded["BEN"], "with": {"name": "B. Endras"}})
        after = await execute(schema, query, {"id": seeded["BEN"]})

        assert len(before.data["Person"]["hc"]) == 40
        assert before.data["Person"]["hc"] != after.data["Person"]["hc"]

    @pytest.mark.asyncio
    async def test_update_reindexes(self, demo, seeded, execute):
        engine, schema = demo

        await execute(schema, self.UPDATE, {"id": seeded["BEN"], "with": {"name": "Zed Zulu"}})

        assert engine.fts.search("Person", "zulu") == [seeded["BEN"]]
        assert seeded["BEN"] not in engine.fts.search("Person", "bernd")

    @pytest.mark.asyncio
    async def test_requires_existing_entity(self, demo, execute):
        _engine, schema = demo

        result = await execute(schema, 'mutation { Person { update(with: {name: "x"}) { id } } }')

        assert isinstance(original_error(result), ContextError)


class TestDelete:
    """Tests for deleting entities."""

    DELETE = "mutation ($id: UUID) { Person(id: $id) { delete } }"

    @pytest.mark.asyncio
    async def test_returns_id(self, demo, seeded, execute):
        _engine, schema = demo

        result = await execute(schema, self.DELETE, {"id": seeded["FST"]})

        assert result.errors is None
        assert result.data == {"Person": {"delete": seeded["FST"]}}
        fetched = await execute(schema, GET_PERSON, {"id": seeded["FST"]})
        assert fetched.data == {"Person": None}

    @pytest.mark.asyncio
    async def test_removes_from_index(self, demo, seeded, execute):
        engine, schema = demo

        await execute(schema, self.DELETE, {"id": seeded["FST"]})

        assert engine.fts.search("Person", "initials:fst") == []

    @pytest.mark.asyncio
    async def test_requires_existing_entity(self, demo, execute):
        _engine, schema = demo

        result = await execute(schema, "mutation { Person { delete } }")

        assert isinstance(original_error(result), ContextError)
