"""DynamoDB persistence backend - single-table design.

Item layout:
    pk  = PK#<ENTITY>#<id>          sk = SK#<ENTITY>
                                    user sessions use the token as <id>
    gsi1_pk / gsi1_sk               lookup by email, user or status
    gsi2_pk / gsi2_sk               secondary per-user or per-IP lookup

Reads go straight to the table. Writes are expressed as
TransactWriteItems operations: inside a transaction they are buffered
and flushed together on commit, outside one they are executed
immediately. Transaction state is kept per thread, so one instance can
serve concurrent requests. The per-user active OTP pointer item is
written with a condition on the previous session id, so two concurrent
sends for the same user cannot both succeed. Point lookups on OTP and
user sessions use strongly consistent reads.
"""

import json
import logging
import os
import threading
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

import boto3
from boto3.dynamodb.conditions import Attr, Key
from boto3.dynamodb.types import TypeSerializer
from botocore.exceptions import ClientError

from adaptive_auth.common.constants import DataConstants
from adaptive_auth.common.exceptions import ConcurrencyConflictError, PersistenceError
from adaptive_auth.data.schemas import (
    AnomalyRecord,
    LoginAttempt,
    OtpSession,
    SecurityEvent,
    User,
    UserBehaviorBaseline,
    UserSession,
)
from adaptive_auth.persistence.base import (
    AnomalyRepository,
    BaselineRepository,
    LoginAttemptRepository,
    OtpSessionRepository,
    SecurityEventRepository,
    UnitOfWork,
    UserRepository,
    UserSessionRepository,
)

logger = logging.getLogger(__name__)

_serializer = TypeSerializer()


def _to_attributes(data: Dict[str, Any]) -> Dict[str, Any]:
    """JSON-mode dump with floats as Decimal, as DynamoDB requires."""
    return json.loads(json.dumps(data), parse_float=Decimal)


def _from_attributes(item: Dict[str, Any]) -> Dict[str, Any]:
    """Convert Decimal values back to int/float."""
    def convert(value):
        if isinstance(value, Decimal):
            return int(value) if value == value.to_integral_value() else float(value)
        if isinstance(value, list):
            return [convert(v) for v in value]
        if isinstance(value, dict):
            return {k: convert(v) for k, v in value.items()}
        return value
    return {k: convert(v) for k, v in item.items()}


def _key(entity_type: str, primary_id: str) -> Dict[str, str]:
    return {"pk": f"PK#{entity_type}#{primary_id}", "sk": f"SK#{entity_type}"}


class _DynamoRepository:
    entity_type = ""

    def __init__(self, uow: "DynamoDBUnitOfWork"):
        self._uow = uow

    @property
    def _table(self):
        return self._uow.table

    def _build_item(
        self, primary_id: str, data: Dict[str, Any],
        gsi_keys: Optional[Dict[str, tuple]] = None
    ) -> Dict[str, Any]:
        """Build a table item.

        Args:
            primary_id: Entity identifier
            data: Core data fields (JSON-mode model dump)
            gsi_keys: GSI key pairs {gsi1: (pk, sk), gsi2: (pk, sk)}
        """
        item = {
            **_key(self.entity_type, primary_id),
            "entity_type": self.entity_type,
            **_to_attributes(data),
        }
        if gsi_keys:
            if "gsi1" in gsi_keys:
                item["gsi1_pk"], item["gsi1_sk"] = gsi_keys["gsi1"]
            if "gsi2" in gsi_keys:
                item["gsi2_pk"], item["gsi2_sk"] = gsi_keys["gsi2"]
        return item

    def _put(self, item: Dict[str, Any]) -> None:
        self._uow.submit([self._uow.put_op(item)])

    def _get(self, primary_id: str, consistent: bool = False) -> Optional[Dict[str, Any]]:
        kwargs: Dict[str, Any] = {"Key": _key(self.entity_type, primary_id)}
        if consistent:
            kwargs["ConsistentRead"] = True
        try:
            resp = self._table.get_item(**kwargs)
        except ClientError as e:
            logger.error(f"get {self.entity_type} failed: {e}")
            raise PersistenceError(str(e), operation=f"get_{self.entity_type.lower()}") from e
        item = resp.get("Item")
        return _from_attributes(item) if item else None

    def _query(
        self, index: str, pk_value: str, sk_from: Optional[str] = None,
        sk_to: Optional[str] = None, limit: Optional[int] = None,
        newest_first: bool = False,
    ) -> List[Dict[str, Any]]:
        """Query a GSI, following pagination."""
        prefix = index.split("-")[0].replace("_pk", "")
        condition = Key(f"{prefix}_pk").eq(pk_value)
        if sk_from is not None and sk_to is not None:
            condition = condition & Key(f"{prefix}_sk").between(sk_from, sk_to)
        elif sk_from is not None:
            condition = condition & Key(f"{prefix}_sk").gte(sk_from)

        kwargs: Dict[str, Any] = {
            "IndexName": f"{index}-index",
            "KeyConditionExpression": condition,
            "ScanIndexForward": not newest_first,
        }
        if limit:
            kwargs["Limit"] = limit

        items: List[Dict[str, Any]] = []
        try:
            while True:
                response = self._table.query(**kwargs)
                items.extend(response.get("Items", []))
                last_key = response.get("LastEvaluatedKey")
                if not last_key or (limit and len(items) >= limit):
                    break
                kwargs["ExclusiveStartKey"] = last_key
        except ClientError as e:
            logger.error(f"Query failed ({index}): {e}")
            raise PersistenceError(str(e), operation=f"query_{index}") from e
        return [_from_attributes(i) for i in items]

    def _scan(self, filter_expression) -> List[Dict[str, Any]]:
        kwargs: Dict[str, Any] = {"FilterExpression": filter_expression}
        items: List[Dict[str, Any]] = []
        try:
            while True:
                response = self._table.scan(**kwargs)
                items.extend(response.get("Items", []))
                last_key = response.get("LastEvaluatedKey")
                if not last_key:
                    break
                kwargs["ExclusiveStartKey"] = last_key
        except ClientError as e:
            logger.error(f"Scan failed ({self.entity_type}): {e}")
            raise PersistenceError(str(e), operation=f"scan_{self.entity_type.lower()}") from e
        return [_from_attributes(i) for i in items]


# ========== USERS ==========

class DynamoDBUserRepository(_DynamoRepository, UserRepository):
    entity_type = "USER"

    def get(self, user_id: str) -> Optional[User]:
        item = self._get(user_id)
        return User.model_validate(item) if item else None

    def get_by_email(self, email: str) -> Optional[User]:
        items = self._query("gsi1_pk-gsi1_sk", f"EMAIL#{email.strip().lower()}", limit=1)
        return User.model_validate(items[0]) if items else None

    def add(self, user: User) -> None:
        email = user.email.strip().lower()
        data = user.model_dump(mode="json")
        data["email"] = email
        self._put(self._build_item(
            user.user_id, data, {"gsi1": (f"EMAIL#{email}", "USER")}
        ))


# ========== LOGIN ATTEMPTS ==========

class DynamoDBLoginAttemptRepository(_DynamoRepository, LoginAttemptRepository):
    entity_type = "ATTEMPT"

    def add(self, attempt: LoginAttempt) -> None:
        ts = attempt.attempted_at.isoformat()
        gsi_keys = {"gsi2": (f"ATTEMPT_IP#{attempt.ip_address}", ts)}
        if attempt.user_id:
            gsi_keys["gsi1"] = (f"ATTEMPT_USER#{attempt.user_id}", ts)
        self._put(self._build_item(attempt.attempt_id, attempt.model_dump(mode="json"), gsi_keys))

    def get(self, attempt_id: str) -> Optional[LoginAttempt]:
        item = self._get(attempt_id)
        return LoginAttempt.model_validate(item) if item else None

    def count_by_user_since(self, user_id: str, since: datetime) -> int:
        return len(self._query("gsi1_pk-gsi1_sk", f"ATTEMPT_USER#{user_id}", sk_from=since.isoformat()))

    def count_failed_by_ip_since(self, ip_address: str, since: datetime) -> int:
        items = self._query("gsi2_pk-gsi2_sk", f"ATTEMPT_IP#{ip_address}", sk_from=since.isoformat())
        return sum(1 for i in items if not i.get("is_successful"))


# ========== BASELINES ==========

class DynamoDBBaselineRepository(_DynamoRepository, BaselineRepository):
    entity_type = "BASELINE"

    def get(self, user_id: str) -> Optional[UserBehaviorBaseline]:
        item = self._get(user_id)
        return UserBehaviorBaseline.model_validate(item) if item else None

    def save(self, baseline: UserBehaviorBaseline) -> None:
        self._put(self._build_item(baseline.user_id, baseline.model_dump(mode="json")))


# ========== ANOMALIES ==========

class DynamoDBAnomalyRepository(_DynamoRepository, AnomalyRepository):
    entity_type = "ANOMALY"

    def _item(self, record: AnomalyRecord) -> Dict[str, Any]:
        ts = record.detected_at.isoformat()
        gsi_keys = {"gsi1": (f"ANOMALY_STATUS#{record.status.value}", ts)}
        if record.user_id:
            gsi_keys["gsi2"] = (f"ANOMALY_USER#{record.user_id}", ts)
        return self._build_item(record.anomaly_id, record.model_dump(mode="json"), gsi_keys)

    def add(self, record: AnomalyRecord) -> None:
        self._put(self._item(record))

    def get(self, anomaly_id: str) -> Optional[AnomalyRecord]:
        item = self._get(anomaly_id)
        return AnomalyRecord.model_validate(item) if item else None

    def update(self, record: AnomalyRecord) -> None:
        self._put(self._item(record))

    def list_unresolved(self, limit: int) -> List[AnomalyRecord]:
        items = self._query("gsi1_pk-gsi1_sk", "ANOMALY_STATUS#Pending", limit=limit, newest_first=True)
        return [AnomalyRecord.model_validate(i) for i in items[:limit]]

    def list_detected_between(self, start: datetime, end: datetime) -> List[AnomalyRecord]:
        records = []
        for status in ("Pending", "Resolved"):
            items = self._query(
                "gsi1_pk-gsi1_sk", f"ANOMALY_STATUS#{status}",
                sk_from=start.isoformat(), sk_to=end.isoformat(),
            )
            records.extend(AnomalyRecord.model_validate(i) for i in items)
        return records


# ========== OTP SESSIONS ==========

class DynamoDBOtpSessionRepository(_DynamoRepository, OtpSessionRepository):
    entity_type = "OTP"
    pointer_type = "OTP_ACTIVE"

    def _item(self, session: OtpSession) -> Dict[str, Any]:
        return self._build_item(
            session.session_id, session.model_dump(mode="json"),
            {"gsi1": (f"OTP_USER#{session.user_id}", session.created_at.isoformat())},
        )

    def get(self, session_id: str) -> Optional[OtpSession]:
        item = self._get(session_id, consistent=True)
        return OtpSession.model_validate(item) if item else None

    def replace_active_for_user(self, session: OtpSession) -> int:
        pointer_key = _key(self.pointer_type, session.user_id)
        try:
            resp = self._table.get_item(Key=pointer_key, ConsistentRead=True)
        except ClientError as e:
            logger.error(f"get OTP pointer failed: {e}")
            raise PersistenceError(str(e), operation="replace_active_otp") from e
        previous = (resp.get("Item") or {}).get("session_id")

        pointer = {
            **pointer_key,
            "entity_type": self.pointer_type,
            "user_id": session.user_id,
            "session_id": session.session_id,
        }
        if previous:
            condition = {
                "ConditionExpression": "session_id = :prev",
                "ExpressionAttributeValues": {":prev": _serializer.serialize(previous)},
            }
        else:
            condition = {"ConditionExpression": "attribute_not_exists(pk)"}

        ops = [self._uow.put_op(pointer, **condition), self._uow.put_op(self._item(session))]
        if previous:
            ops.append(self._uow.delete_op(_key(self.entity_type, previous)))
        self._uow.submit(ops)
        return 1 if previous else 0

    def update(self, session: OtpSession) -> None:
        self._put(self._item(session))

    def _delete_with_pointer(self, session_id: str, user_id: str) -> None:
        ops = [self._uow.delete_op(_key(self.entity_type, session_id))]
        ops.append(self._uow.delete_op(
            _key(self.pointer_type, user_id),
            ConditionExpression="attribute_not_exists(pk) OR session_id = :sid",
            ExpressionAttributeValues={":sid": _serializer.serialize(session_id)},
        ))
        try:
            self._uow.submit(ops)
        except ConcurrencyConflictError:
            # Pointer moved to a newer session; drop only this item
            self._uow.submit(ops[:1])

    def delete(self, session: OtpSession) -> None:
        self._delete_with_pointer(session.session_id, session.user_id)

    def delete_expired(self, now: datetime) -> int:
        items = self._scan(Attr("entity_type").eq(self.entity_type) & Attr("expires_at").lt(now.isoformat()))
        for item in items:
            self._delete_with_pointer(item["session_id"], item["user_id"])
        return len(items)


# ========== USER SESSIONS ==========

class DynamoDBUserSessionRepository(_DynamoRepository, UserSessionRepository):
    entity_type = "USESSION"

    def _item(self, session: UserSession) -> Dict[str, Any]:
        # Keyed by token so validation right after creation reads its own write
        return self._build_item(
            session.token, session.model_dump(mode="json"),
            {"gsi2": (f"USESSION_USER#{session.user_id}", session.created_at.isoformat())},
        )

    def add(self, session: UserSession) -> None:
        self._put(self._item(session))

    def get_by_token(self, token: str) -> Optional[UserSession]:
        item = self._get(token, consistent=True)
        return UserSession.model_validate(item) if item else None

    def update(self, session: UserSession) -> None:
        self._put(self._item(session))

    def list_active_for_user(self, user_id: str) -> List[UserSession]:
        items = self._query("gsi2_pk-gsi2_sk", f"USESSION_USER#{user_id}")
        return [UserSession.model_validate(i) for i in items if i.get("is_active")]

    def list_active(self) -> List[UserSession]:
        items = self._scan(Attr("entity_type").eq(self.entity_type) & Attr("is_active").eq(True))
        return [UserSession.model_validate(i) for i in items]


# ========== SECURITY EVENTS ==========

class DynamoDBSecurityEventRepository(_DynamoRepository, SecurityEventRepository):
    entity_type = "SECEVENT"

    def add(self, event: SecurityEvent) -> None:
        self._put(self._build_item(
            event.event_id, event.model_dump(mode="json"),
            {"gsi1": (f"SECEVENT_USER#{event.user_id}", event.created_at.isoformat())},
        ))

    def list_for_user(self, user_id: str) -> List[SecurityEvent]:
        items = self._query("gsi1_pk-gsi1_sk", f"SECEVENT_USER#{user_id}")
        return [SecurityEvent.model_validate(i) for i in items]


class DynamoDBUnitOfWork(UnitOfWork):
    """Unit of work backed by one DynamoDB table."""

    DEFAULT_REGION = "us-east-1"

    def __init__(
        self,
        table_name: Optional[str] = None,
        region: Optional[str] = None,
        aws_profile: Optional[str] = None,
    ):
        self.table_name = table_name or os.environ.get("AUTH_DYNAMODB_TABLE")
        if not self.table_name:
            raise ValueError("AUTH_DYNAMODB_TABLE required")

        self.region = region or os.environ.get("AWS_DEFAULT_REGION", self.DEFAULT_REGION)

        if aws_profile:
            session = boto3.Session(profile_name=aws_profile)
            self.dynamodb = session.resource("dynamodb", region_name=self.region)
        else:
            self.dynamodb = boto3.resource("dynamodb", region_name=self.region)

        self.table = self.dynamodb.Table(self.table_name)
        # Transaction state is per thread: one instance serves concurrent requests
        self._local = threading.local()

        self.users = DynamoDBUserRepository(self)
        self.login_attempts = DynamoDBLoginAttemptRepository(self)
        self.baselines = DynamoDBBaselineRepository(self)
        self.anomalies = DynamoDBAnomalyRepository(self)
        self.otp_sessions = DynamoDBOtpSessionRepository(self)
        self.user_sessions = DynamoDBUserSessionRepository(self)
        self.security_events = DynamoDBSecurityEventRepository(self)
        logger.info(f"DynamoDB initialized: {self.table_name} ({self.region})")

    @property
    def client(self):
        return self.dynamodb.meta.client

    # ========== WRITE OPERATIONS ==========

    def put_op(self, item: Dict[str, Any], **condition: Any) -> Dict[str, Any]:
        put = {
            "TableName": self.table_name,
            "Item": {k: _serializer.serialize(v) for k, v in item.items()},
            **condition,
        }
        return {"Put": put}

    def delete_op(self, key: Dict[str, Any], **condition: Any) -> Dict[str, Any]:
        delete = {
            "TableName": self.table_name,
            "Key": {k: _serializer.serialize(v) for k, v in key.items()},
            **condition,
        }
        return {"Delete": delete}

    def submit(self, ops: List[Dict[str, Any]]) -> None:
        """Buffer inside a transaction, execute immediately otherwise."""
        if self.in_transaction:
            self._local.pending.extend(ops)
        else:
            self._execute(ops)

    def _execute(self, ops: List[Dict[str, Any]]) -> None:
        if not ops:
            return
        if len(ops) > DataConstants.TRANSACT_MAX_ITEMS:
            raise PersistenceError(
                f"Transaction has {len(ops)} writes, limit is {DataConstants.TRANSACT_MAX_ITEMS}",
                operation="transact_write_items",
            )
        try:
            self.client.transact_write_items(TransactItems=ops)
        except ClientError as e:
            error = e.response.get("Error", {})
            reasons = [r.get("Code") for r in e.response.get("CancellationReasons", [])]
            if error.get("Code") == "TransactionCanceledException" and "ConditionalCheckFailed" in reasons:
                logger.warning(f"Conditional write lost a race: {reasons}")
                raise ConcurrencyConflictError(
                    "Concurrent update detected", operation="transact_write_items",
                    details={"reasons": reasons},
                ) from e
            logger.error(f"transact_write_items failed: {e}")
            raise PersistenceError(str(e), operation="transact_write_items") from e

    # ========== TRANSACTIONS ==========

    @property
    def _depth(self) -> int:
        return getattr(self._local, "depth", 0)

    @property
    def in_transaction(self) -> bool:
        return self._depth > 0

    def begin(self) -> None:
        if self._depth == 0:
            self._local.pending = []
        self._local.depth = self._depth + 1

    def commit(self) -> None:
        if self._depth == 0:
            return
        self._local.depth -= 1
        if self._local.depth == 0:
            ops, self._local.pending = self._local.pending, []
            self._execute(ops)

    def rollback(self) -> None:
        pending = getattr(self._local, "pending", [])
        if self._depth:
            logger.debug(f"Discarding {len(pending)} buffered writes")
        self._local.pending = []
        self._local.depth = 0

    def health_check(self) -> bool:
        try:
            self.table.table_status
            return True
        except ClientError as e:
            logger.error(f"Health check failed: {e}")
            return False
