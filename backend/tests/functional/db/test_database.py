# backend/tests/functional/db/test_database.py
from unittest.mock import AsyncMock, MagicMock

import pytest
from pytest_mock import MockerFixture

from newsletter_access.core.config import settings
from newsletter_access.db import database

pytestmark = pytest.mark.asyncio


async def test_connect_without_url_fails(mocker: MockerFixture):
    mocker.patch.object(settings, "MONGODB_URL", None)
    mocker.patch.object(database, "_db", None)
    assert await database.connect_to_mongo() is False
    assert database.get_database() is None


async def test_connect_and_close(mocker: MockerFixture):
    mocker.patch.object(settings, "MONGODB_URL", "mongodb://localhost:27017")
    mocker.patch.object(database, "_db", None)
    mock_client = MagicMock()
    mock_client.admin.command = AsyncMock(return_value={"ok": 1})
    mock_db = MagicMock()
    mock_client.__getitem__.return_value = mock_db
    client_cls = mocker.patch.object(database.motor.motor_asyncio, "AsyncIOMotorClient", return_value=mock_client)

    try:
        assert await database.connect_to_mongo() is True
        assert database.get_database() is mock_db
        client_cls.assert_called_once()
        mock_client.admin.command.assert_awaited_once_with('ping')

        # Second call reuses the open connection
        assert await database.connect_to_mongo() is True
        client_cls.assert_called_once()
    finally:
        await database.close_mongo_connection()

    mock_client.close.assert_called_once()
    assert database.get_database() is None


async def test_connect_ping_failure(mocker: MockerFixture):
    mocker.patch.object(settings, "MONGODB_URL", "mongodb://localhost:27017")
    mocker.patch.object(database, "_db", None)
    mock_client = MagicMock()
    mock_client.admin.command = AsyncMock(side_effect=ConnectionError("timeout"))
    mocker.patch.object(database.motor.motor_asyncio, "AsyncIOMotorClient", return_value=mock_client)

    assert await database.connect_to_mongo() is False
    assert database.get_database() is None

