"""Tests for UserDatasourceFactory and Firestore client construction."""

import json

import httpx
import pytest

from datalayer.core.config import Settings
from datalayer.domain.enums import DataSourceType
from datalayer.infrastructure.factories import user_datasource_factory
from datalayer.infrastructure.factories.user_datasource_factory import UserDatasourceFactory
from datalayer.infrastructure.firebase import client as firebase_client
from datalayer.infrastructure.firebase._rest_client import FirestoreRESTClient
from datalayer.infrastructure.firebase.client import (
    create_firestore_client,
    load_service_account,
)
from datalayer.infrastructure.firebase.repositories.user_datasource_firestore import (
    FirestoreUserDatasource,
)
from datalayer.infrastructure.rest.user_datasource_rest import RestUserDatasource

SERVICE_ACCOUNT = {"type": "service_account", "project_id": "demo-project"}


class StaticCredentials:
    valid = True
    token = "test-access-token"


@pytest.fixture
async def http_client():
    client = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(200)))
    yield client
    await client.aclose()


@pytest.mark.asyncio
async def test_create_rest_from_settings(http_client) -> None:
    settings = Settings(
        rest_api_base_url="https://api.example.com/v1/",
        rest_api_key="secret",
        cache_max_size=50,
        retry_max_attempts=5,
    )
    ds = UserDatasourceFactory.create_rest(settings=settings, http_client=http_client)
    assert isinstance(ds, RestUserDatasource)
    assert ds.users_url == "https://api.example.com/v1/users"
    assert ds.cache.max_size == 50
    assert ds._errors.default_policy.max_attempts == 5
    assert ds._headers["Authorization"] == "Bearer secret"
    await ds.close()


@pytest.mark.asyncio
async def test_create_rest_explicit_arguments_win(http_client) -> None:
    settings = Settings(rest_api_base_url="https://ignored.example.com")
    ds = UserDatasourceFactory.create_rest(
        "https://api.example.com",
        users_endpoint="/accounts/",
        settings=settings,
        http_client=http_client,
    )
    assert ds.users_url == "https://api.example.com/accounts"
    await ds.close()


def test_create_rest_requires_base_url() -> None:
    with pytest.raises(ValueError, match="base_url"):
        UserDatasourceFactory.create_rest(settings=Settings())


@pytest.mark.asyncio
async def test_create_dispatches_on_type(http_client) -> None:
    ds = UserDatasourceFactory.create(
        "rest", Settings(), base_url="https://api.example.com", http_client=http_client
    )
    assert isinstance(ds, RestUserDatasource)
    await ds.close()

    client = FirestoreRESTClient("demo-project", StaticCredentials(), http_client=http_client)
    ds = UserDatasourceFactory.create(DataSourceType.FIRESTORE, Settings(), client=client)
    assert isinstance(ds, FirestoreUserDatasource)
    await ds.close()


def test_create_unknown_type() -> None:
    with pytest.raises(ValueError):
        UserDatasourceFactory.create("mongo", Settings())


def test_create_from_settings_requires_type() -> None:
    with pytest.raises(ValueError, match="DATASOURCE_TYPE"):
        UserDatasourceFactory.create_from_settings(Settings())


@pytest.mark.asyncio
async def test_create_from_settings_rest() -> None:
    settings = Settings(datasource_type="rest", rest_api_base_url="https://api.example.com")
    ds = UserDatasourceFactory.create_from_settings(settings)
    assert isinstance(ds, RestUserDatasource)
    await ds.close()


@pytest.mark.asyncio
async def test_create_firestore_builds_and_owns_client(monkeypatch, http_client) -> None:
    built = FirestoreRESTClient("demo-project", StaticCredentials(), http_client=http_client)
    calls = []

    def _fake_create(settings, *, http_client=None):
        calls.append(settings)
        return built

    monkeypatch.setattr(user_datasource_factory, "create_firestore_client", _fake_create)
    settings = Settings(
        datasource_type="firestore",
        firebase_service_account_key=json.dumps(SERVICE_ACCOUNT),
        firestore_users_collection="people",
    )
    ds = UserDatasourceFactory.create_from_settings(settings)
    assert isinstance(ds, FirestoreUserDatasource)
    assert calls == [settings]
    assert ds._owns_client
    assert ds._coll.id == "people"
    await ds.close()


def test_load_service_account_from_key() -> None:
    settings = Settings(firebase_service_account_key=json.dumps(SERVICE_ACCOUNT))
    assert load_service_account(settings) == SERVICE_ACCOUNT


def test_load_service_account_from_path(tmp_path) -> None:
    path = tmp_path / "key.json"
    path.write_text(json.dumps(SERVICE_ACCOUNT), encoding="utf-8")
    settings = Settings(firebase_service_account_path=str(path))
    assert load_service_account(settings) == SERVICE_ACCOUNT


def test_load_service_account_errors(tmp_path) -> None:
    assert load_service_account(Settings()) is None
    with pytest.raises(ValueError, match="not valid JSON"):
        load_service_account(Settings(firebase_service_account_key="{broken"))
    with pytest.raises(ValueError, match="file not found"):
        load_service_account(
            Settings(firebase_service_account_path=str(tmp_path / "missing.json"))
        )


@pytest.mark.asyncio
async def test_create_firestore_client(monkeypatch) -> None:
    monkeypatch.setattr(firebase_client, "_get_credentials", lambda key: StaticCredentials())
    client = create_firestore_client(
        Settings(firebase_service_account_key=json.dumps(SERVICE_ACCOUNT))
    )
    assert client.project_id == "demo-project"
    await client.aclose()


def test_create_firestore_client_requires_credentials_and_project() -> None:
    with pytest.raises(ValueError, match="FIREBASE_SERVICE_ACCOUNT"):
        create_firestore_client(Settings())
    with pytest.raises(ValueError, match="project_id"):
        create_firestore_client(
            Settings(firebase_service_account_key=json.dumps({"type": "service_account"}))
        )
