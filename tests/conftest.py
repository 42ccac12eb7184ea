"""Shared fixtures: every test starts from fresh process-wide singletons."""

import os

import pytest

from runtime_helpers.config.settings import ENV_PREFIX, reset_settings
from runtime_helpers.mapping.member_cache import reset_member_cache
from runtime_helpers.mapping.type_converter import reset_type_converter


@pytest.fixture(autouse=True)
def fresh_singletons(monkeypatch):
    for name in list(os.environ):
        if name.startswith(ENV_PREFIX):
            monkeypatch.delenv(name)
    reset_settings()
    reset_member_cache()
    reset_type_converter()
    yield
    reset_settings()
    reset_member_cache()
    reset_type_converter()
