"""Tests for the table creation script."""

from __future__ import annotations

import sys
from pathlib import Path

import boto3
import pytest
from moto import mock_aws

# Make scripts/ importable
sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "scripts"))

from create_tables import create_tables, seed_reference_data  # noqa: E402

from contactflow.persistence.dynamodb_backend import DynamoDBEnumLookup  # noqa: E402


@pytest.fixture
def ddb():
    with mock_aws():
        yield boto3.resource("dynamodb", region_name="us-east-1")


class TestCreateTables:
    def test_creates_both_tables(self, ddb):
        create_tables(ddb, suffix="-test")
        client = boto3.client("dynamodb", region_name="us-east-1")
        assert sorted(client.list_tables()["TableNames"]) == [
            "contactflow-contacts-test",
            "contactflow-reference-data-test",
        ]

    def test_idempotent_skips_existing(self, ddb):
        create_tables(ddb, suffix="-test")
        create_tables(ddb, suffix="-test")  # should not raise
        client = boto3.client("dynamodb", region_name="us-east-1")
        assert len(client.list_tables()["TableNames"]) == 2


class TestSeedReferenceData:
    def test_seeds_all_choices(self, ddb):
        create_tables(ddb, suffix="-test")
        seed_reference_data(ddb, suffix="-test")
        resp = ddb.Table("contactflow-reference-data-test").scan()
        assert resp["Count"] == 6

    def test_enum_lookup_reads_seeded_choices(self, ddb):
        create_tables(ddb, suffix="-test")
        seed_reference_data(ddb, suffix="-test")
        lookup = DynamoDBEnumLookup(table_suffix="-test", region="us-east-1")
        assert lookup.choices("access_modifier") == {1: "Public", 2: "Protected", 3: "Private"}
