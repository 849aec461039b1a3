"""Shared fixtures for criteria tests."""

from __future__ import annotations

import pytest
from hashids import Hashids

from cqrs_ddd_criteria.codec import SurrogateIdCodec
from cqrs_ddd_criteria.compiler import CriteriaCompiler
from cqrs_ddd_criteria.fields import SearchableFields
from cqrs_ddd_criteria.settings import CriteriaSettings


@pytest.fixture
def settings() -> CriteriaSettings:
    return CriteriaSettings(id_codec_salt="test-salt")


@pytest.fixture
def codec(settings: CriteriaSettings) -> SurrogateIdCodec:
    return SurrogateIdCodec.from_settings(settings)


@pytest.fixture
def foreign_token(settings: CriteriaSettings) -> str:
    """Well-formed token carrying two ids, which the codec never accepts."""
    return Hashids(
        salt=settings.id_codec_salt,
        min_length=settings.id_codec_min_length,
        alphabet=settings.id_codec_alphabet,
    ).encode(1, 2)


@pytest.fixture
def compiler(settings: CriteriaSettings, codec: SurrogateIdCodec) -> CriteriaCompiler:
    return CriteriaCompiler(settings, codec)


@pytest.fixture
def user_fields() -> SearchableFields:
    return SearchableFields({"name": "like", "status": "in", "role_id": "="})


@pytest.fixture
def rich_fields() -> SearchableFields:
    return SearchableFields(
        {
            "id": "=",
            "name": ["like", "=", "ilike"],
            "email": ["ilike", "="],
            "status": ["in", "=", "not_in"],
            "age": ["=", ">=", "<=", "between", "not_between"],
            "role_id": ["=", "in"],
            "created_at": ["date_between"],
            "roles.name": ["like", "="],
        }
    )


@pytest.fixture
def users() -> list[dict]:
    return [
        {
            "id": 1,
            "name": "Senior Developer Ann",
            "email": "ann@example.com",
            "status": "active",
            "age": 41,
            "role_id": 77,
            "created_at": "2024-03-01",
            "roles": [{"name": "admin"}, {"name": "dev"}],
        },
        {
            "id": 2,
            "name": "Junior Developer Bob",
            "email": "bob@example.com",
            "status": "pending",
            "age": 23,
            "role_id": 12,
            "created_at": "2024-07-15",
            "roles": [{"name": "dev"}],
        },
        {
            "id": 3,
            "name": "Carol Manager",
            "email": "carol@example.org",
            "status": "active",
            "age": 35,
            "role_id": 77,
            "created_at": "2023-11-30",
            "roles": [],
        },
        {
            "id": 4,
            "name": "Dave",
            "email": None,
            "status": "banned",
            "age": 58,
            "role_id": 3,
            "created_at": "2025-01-02",
            "roles": [{"name": "ops"}],
        },
    ]
