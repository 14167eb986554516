"""DynamoDB backends: contact repository, uniqueness claims and enum lookup."""

from __future__ import annotations

import json
import logging
import uuid
from decimal import Decimal
from typing import Any

import boto3
from boto3.dynamodb.types import TypeSerializer
from botocore.exceptions import ClientError

from contactflow.core.exceptions import BusinessIdClaimedError, RepositoryError
from contactflow.core.protocols import ICacheBackend
from contactflow.models.contact import ContactRecord, CreatedContact, UniquenessResult

logger = logging.getLogger(__name__)

_serializer = TypeSerializer()


def _decode_decimals(item: dict[str, Any]) -> dict[str, Any]:
    """Convert Decimal values in a DynamoDB item to int/float."""
    out: dict[str, Any] = {}
    for k, v in item.items():
        if isinstance(v, Decimal):
            out[k] = int(v) if v == int(v) else float(v)
        elif isinstance(v, dict):
            out[k] = _decode_decimals(v)
        else:
            out[k] = v
    return out


def _marshal(item: dict[str, Any]) -> dict[str, Any]:
    return {k: _serializer.serialize(v) for k, v in item.items() if v is not None}


def _claim_key(business_id: str) -> dict[str, str]:
    # Claims are case-insensitive: "ACME-1" and "acme-1" collide.
    return {"PK": f"BUSINESSID#{business_id.lower()}", "SK": "CLAIM"}


class _DynamoDBBase:
    def __init__(self, table_suffix: str = "", region: str = "us-east-1",
                 endpoint_url: str | None = None) -> None:
        self._table_suffix = table_suffix
        self._region = region
        self._endpoint_url = endpoint_url
        kwargs: dict = {"region_name": region}
        if endpoint_url:
            kwargs["endpoint_url"] = endpoint_url
        self._ddb = boto3.resource("dynamodb", **kwargs)
        self._client = boto3.client("dynamodb", **kwargs)

    def _table_name(self, base: str) -> str:
        return f"{base}{self._table_suffix}"

    def _table(self, base: str):
        return self._ddb.Table(self._table_name(base))


class DynamoDBContactRepository(_DynamoDBBase):
    """Production IContactRepository and IUniquenessChecker.

    A contact is written together with a ``BUSINESSID#<id>`` claim item in a
    single ``TransactWriteItems`` call guarded by ``attribute_not_exists``,
    so two concurrent creates can never both own one business id.
    """

    def __init__(self, table_suffix: str = "", region: str = "us-east-1",
                 endpoint_url: str | None = None,
                 contacts_table: str = "contactflow-contacts") -> None:
        super().__init__(table_suffix, region, endpoint_url)
        self._contacts_table = contacts_table

    def check(self, business_id: str) -> UniquenessResult:
        try:
            resp = self._table(self._contacts_table).get_item(Key=_claim_key(business_id))
        except ClientError as exc:
            raise RepositoryError(f"Uniqueness check failed for {business_id!r}: {exc}") from exc
        item = resp.get("Item")
        if item is None:
            return UniquenessResult(unique=True)
        return UniquenessResult(unique=False, existing_contact_id=item.get("contact_id"))

    def create(self, record: ContactRecord) -> CreatedContact:
        contact_id = f"ct-{uuid.uuid4().hex[:12]}"
        table = self._table_name(self._contacts_table)
        profile = {
            "PK": f"CONTACT#{contact_id}",
            "SK": "PROFILE",
            "contact_id": contact_id,
            **record.model_dump(mode="json", exclude={"social_profiles"}),
            "social_profiles": {k.value: v for k, v in record.social_profiles.items()} or None,
        }
        claim = {
            **_claim_key(record.business_id),
            "business_id": record.business_id,
            "contact_id": contact_id,
            "account_id": record.account_id,
        }
        try:
            self._client.transact_write_items(
                TransactItems=[
                    {"Put": {
                        "TableName": table,
                        "Item": _marshal(claim),
                        "ConditionExpression": "attribute_not_exists(PK)",
                    }},
                    {"Put": {
                        "TableName": table,
                        "Item": _marshal(profile),
                        "ConditionExpression": "attribute_not_exists(PK)",
                    }},
                ]
            )
        except ClientError as exc:
            code = exc.response.get("Error", {}).get("Code", "")
            if code == "TransactionCanceledException":
                existing = self.check(record.business_id).existing_contact_id
                raise BusinessIdClaimedError(record.business_id, existing) from exc
            raise RepositoryError(f"Contact create failed: {exc}") from exc

        logger.info("Created contact %s for account %s", contact_id, record.account_id)
        return CreatedContact(contact_id=contact_id, business_id=record.business_id)

    def set_primary(self, account_id: str, contact_id: str) -> None:
        try:
            self._table(self._contacts_table).put_item(
                Item={"PK": f"ACCOUNT#{account_id}", "SK": "PRIMARY", "contact_id": contact_id}
            )
        except ClientError as exc:
            raise RepositoryError(
                f"Setting primary contact failed for account {account_id!r}: {exc}"
            ) from exc

    def get_contact(self, contact_id: str) -> dict[str, Any] | None:
        resp = self._table(self._contacts_table).get_item(
            Key={"PK": f"CONTACT#{contact_id}", "SK": "PROFILE"}
        )
        item = resp.get("Item")
        return _decode_decimals(item) if item else None


class DynamoDBEnumLookup(_DynamoDBBase):
    """Production IEnumLookup reading ``ENUM#<name>`` items, cached in Redis."""

    CACHE_TTL = 300  # 5 minutes

    def __init__(self, table_suffix: str = "", region: str = "us-east-1",
                 endpoint_url: str | None = None,
                 reference_table: str = "contactflow-reference-data",
                 cache: ICacheBackend | None = None) -> None:
        super().__init__(table_suffix, region, endpoint_url)
        self._reference_table = reference_table
        self._cache = cache

    def choices(self, enum_name: str) -> dict[int, str]:
        cache_key = f"enum:{enum_name}"

        if self._cache is not None:
            cached = self._cache.get(cache_key)
            if cached is not None:
                return {int(k): v for k, v in json.loads(cached).items()}

        try:
            resp = self._table(self._reference_table).query(
                KeyConditionExpression="PK = :pk",
                ExpressionAttributeValues={":pk": f"ENUM#{enum_name}"},
            )
        except ClientError as exc:
            raise RepositoryError(f"Enum lookup failed for {enum_name!r}: {exc}") from exc

        choices = {
            int(item["value"]): item["label"]
            for item in (_decode_decimals(i) for i in resp.get("Items", []))
        }

        if self._cache is not None and choices:
            self._cache.setex(cache_key, self.CACHE_TTL, json.dumps(choices))

        return choices

    def is_valid(self, enum_name: str, value: int) -> bool:
        return value in self.choices(enum_name)
