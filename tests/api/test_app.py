"""
Tests for the HTTP transport
"""

import httpx
import pytest
import pytest_asyncio

from entitygraph import __version__
from entitygraph.api import create_app
from entitygraph.middleware import operation_from_query


@pytest_asyncio.fixture
async def client(demo):
    engine, schema = demo
    app = create_app(engine, schema)
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


class TestEndpoints:
    """Tests for /health and /graphql."""

    @pytest.mark.asyncio
    async def test_health(self, client):
        response = await client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "version": __version__}

    @pytest.mark.asyncio
    async def test_query(self, client, seeded):
        response = await client.post(
            "/graphql",
            json={
                "query": "query Unit($id: UUID) { OrgUnit(id: $id) { initials } }",
                "variables": {"id": seeded["XT"]},
                "operationName": "Unit",
            },
        )

        assert response.status_code == 200
        assert response.json() == {"data": {"OrgUnit": {"initials": "XT"}}}

    @pytest.mark.asyncio
    async def test_mutation_is_committed(self, client):
        created = await client.post(
            "/graphql",
            json={"query": 'mutation { OrgUnit { create(with: {initials: "NEW"}) { id } } }'},
        )
        oid = created.json()["data"]["OrgUnit"]["create"]["id"]

        fetched = await client.post(
            "/graphql",
            json={
                "query": "query ($id: UUID) { OrgUnit(id: $id) { initials } }",
                "variables": {"id": oid},
            },
        )

        assert fetched.json()["data"] == {"OrgUnit": {"initials": "NEW"}}

    @pytest.mark.asyncio
    async def test_errors_roll_back(self, client):
        collection = [
            {"op": "CREATE", "type": "OrgUnit", "with": {"initials": "GONE"}},
            {"op": "DELETE", "type": "OrgUnit", "id": "missing"},
        ]

        failed = await client.post(
            "/graphql",
            json={
                "query": "mutation ($c: JSON!) { OrgUnit { batch(collection: $c) { id } } }",
                "variables": {"c": collection},
            },
        )
        fetched = await client.post(
            "/graphql", json={"query": '{ OrgUnits(where: {initials: "GONE"}) { id } }'}
        )

        assert failed.status_code == 200
        assert "no such entity OrgUnit#missing" in failed.json()["errors"][0]["message"]
        assert fetched.json() == {"data": {"OrgUnits": []}}

    @pytest.mark.asyncio
    async def test_request_error(self, client):
        response = await client.post("/graphql", json={"query": "{ Nope }"})

        assert response.status_code == 400
        assert response.json()["data"] is None
        assert "Nope" in response.json()["errors"][0]["message"]


class TestOperationName:
    """Tests for the operation label used in log context."""

    @pytest.mark.parametrize(
        "query,expected",
        [
            ("query Units { OrgUnits { id } }", "Units"),
            ("mutation AddUnit { OrgUnit { create { id } } }", "mutation:AddUnit"),
            ("{ OrgUnits { id } }", "unnamed_operation"),
            ("query IntrospectionQuery { __schema { types { name } } }", "__introspection"),
        ],
    )
    def test_operation_from_query(self, query, expected):
        assert operation_from_query(query) == expected
