# MongoDB 저장소 테스트
# - 실제 MongoDB 없이 Beanie 문서 클래스를 mock 으로 바꿔서 확인합니다
# - 복합 연산: 두 update_one 이 같은 세션(트랜잭션)으로 실행되는지
# - 코드 소모 조건 ({"consumed_at": None}) 과 실패 시 사용자 문서를 건드리지 않는지
import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from bson import ObjectId
from pymongo.errors import DuplicateKeyError

from goquote.models.otp import OtpPurpose
from goquote.models.user import utcnow
from goquote.repositories.mongo_store import MongoCredentialStore

USER_ID = str(ObjectId())
OTP_ID = str(ObjectId())


class FakeSession:
    """with_transaction 이 콜백을 바로 실행하는 motor 세션 대역"""

    def __init__(self):
        self.transactions = 0

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        return False

    async def with_transaction(self, callback):
        self.transactions += 1
        return await callback(self)


class FakeClient:
    def __init__(self):
        self.session = FakeSession()

    async def start_session(self):
        return self.session


def _result(modified=1, matched=1):
    return SimpleNamespace(modified_count=modified, matched_count=matched)


@pytest.fixture
def documents():
    with patch("goquote.repositories.mongo_store.UserDocument") as user_cls, \
         patch("goquote.repositories.mongo_store.OtpCodeDocument") as otp_cls:
        users = MagicMock()
        users.update_one = AsyncMock(return_value=_result())
        otps = MagicMock()
        otps.update_one = AsyncMock(return_value=_result())
        user_cls.get_motor_collection.return_value = users
        otp_cls.get_motor_collection.return_value = otps
        yield SimpleNamespace(user_cls=user_cls, otp_cls=otp_cls, users=users, otps=otps)


@pytest.fixture
def client():
    return FakeClient()


@pytest.fixture
def mongo_store(client):
    return MongoCredentialStore(client)


def test_verify_email_runs_both_writes_in_one_session(mongo_store, client, documents):
    now = utcnow()
    assert asyncio.run(mongo_store.verify_email_with_otp(USER_ID, OTP_ID, now)) is True

    session = client.session
    assert session.transactions == 1
    documents.otps.update_one.assert_awaited_once_with(
        {"_id": ObjectId(OTP_ID), "consumed_at": None},
        {"$set": {"consumed_at": now}},
        session=session,
    )
    documents.users.update_one.assert_awaited_once_with(
        {"_id": ObjectId(USER_ID)},
        {"$set": {"is_email_verified": True, "updated_at": now}},
        session=session,
    )

def test_verify_email_with_used_code_leaves_user_untouched(mongo_store, documents):
    # 이미 소모된 코드: 조건부 update 가 아무 문서도 바꾸지 못함
    documents.otps.update_one.return_value = _result(modified=0, matched=0)
    assert asyncio.run(mongo_store.verify_email_with_otp(USER_ID, OTP_ID, utcnow())) is False
    documents.users.update_one.assert_not_awaited()

def test_verify_email_missing_user_aborts_transaction(mongo_store, client, documents):
    documents.users.update_one.return_value = _result(modified=0, matched=0)
    with pytest.raises(LookupError):
        asyncio.run(mongo_store.verify_email_with_otp(USER_ID, OTP_ID, utcnow()))
    # 코드 소모도 같은 세션이었으므로 트랜잭션과 함께 취소됨
    assert documents.otps.update_one.await_args.kwargs["session"] is client.session

def test_reset_password_runs_both_writes_in_one_session(mongo_store, client, documents):
    now = utcnow()
    assert asyncio.run(mongo_store.reset_password_with_otp(USER_ID, "new-password1", OTP_ID, now)) is True

    session = client.session
    assert documents.otps.update_one.await_args.kwargs["session"] is session
    user_filter, update = documents.users.update_one.await_args.args
    assert user_filter == {"_id": ObjectId(USER_ID)}
    fields = update["$set"]
    assert fields["is_email_verified"] is True
    assert fields["updated_at"] == now
    assert mongo_store.pwd_context.verify("new-password1", fields["password_hash"])
    assert documents.users.update_one.await_args.kwargs["session"] is session

def test_reset_password_with_used_code_keeps_old_password(mongo_store, documents):
    documents.otps.update_one.return_value = _result(modified=0, matched=0)
    assert asyncio.run(mongo_store.reset_password_with_otp(USER_ID, "new-password1", OTP_ID, utcnow())) is False
    documents.users.update_one.assert_not_awaited()

def test_reset_password_missing_user_raises(mongo_store, documents):
    documents.users.update_one.return_value = _result(modified=0, matched=0)
    with pytest.raises(LookupError):
        asyncio.run(mongo_store.reset_password_with_otp(USER_ID, "new-password1", OTP_ID, utcnow()))

def test_consume_otp_outside_transaction(mongo_store, client, documents):
    now = utcnow()
    assert asyncio.run(mongo_store.consume_otp(OTP_ID, now)) is True
    documents.otps.update_one.assert_awaited_once_with(
        {"_id": ObjectId(OTP_ID), "consumed_at": None},
        {"$set": {"consumed_at": now}},
        session=None,
    )
    assert client.session.transactions == 0

def test_consume_otp_twice_reports_false(mongo_store, documents):
    documents.otps.update_one.side_effect = [_result(), _result(modified=0, matched=0)]
    now = utcnow()
    assert asyncio.run(mongo_store.consume_otp(OTP_ID, now)) is True
    assert asyncio.run(mongo_store.consume_otp(OTP_ID, now)) is False

def test_malformed_ids_never_reach_the_database(mongo_store, documents):
    assert asyncio.run(mongo_store.consume_otp("not-an-object-id", utcnow())) is False
    assert asyncio.run(mongo_store.get_user("not-an-object-id")) is None
    assert asyncio.run(mongo_store.find_latest_otp("not-an-object-id", "h", utcnow())) is None
    documents.otps.update_one.assert_not_awaited()
    documents.user_cls.get.assert_not_called()
    documents.otp_cls.find.assert_not_called()

def test_create_user_duplicate_key_returns_none(mongo_store, documents):
    # find_one 통과 후 동시 가입이 먼저 insert 한 경우
    documents.user_cls.find_one = AsyncMock(return_value=None)
    documents.user_cls.return_value.insert = AsyncMock(side_effect=DuplicateKeyError("E11000 duplicate key"))

    assert asyncio.run(mongo_store.create_user("Jane Doe", " Jane@X.com", "password1")) is None
    kwargs = documents.user_cls.call_args.kwargs
    assert kwargs["email"] == "jane@x.com"
    assert kwargs["password_hash"] != "password1"
    documents.user_cls.return_value.insert.assert_awaited_once()

def test_create_user_existing_email_skips_insert(mongo_store, documents):
    documents.user_cls.find_one = AsyncMock(return_value=MagicMock())
    assert asyncio.run(mongo_store.create_user("Jane Doe", "jane@x.com", "password1")) is None
    documents.user_cls.assert_not_called()

def test_find_latest_otp_sorts_newest_first(mongo_store, documents):
    otp_cls = documents.otp_cls
    otp_cls.expires_at.__gt__.return_value = "expires_at > now"
    otp_cls.created_at.__neg__.return_value = "-created_at"
    latest = MagicMock()
    query = otp_cls.find.return_value
    query.sort.return_value.first_or_none = AsyncMock(return_value=latest)

    result = asyncio.run(mongo_store.find_latest_otp(USER_ID, "h", utcnow(), OtpPurpose.PASSWORD_RESET))

    assert result is latest.to_domain.return_value
    query.sort.assert_called_once_with("-created_at")
    # user_id, code_hash, consumed_at, expires_at + purpose
    assert len(otp_cls.find.call_args.args) == 5

def test_find_latest_otp_without_purpose_filter(mongo_store, documents):
    otp_cls = documents.otp_cls
    otp_cls.expires_at.__gt__.return_value = "expires_at > now"
    otp_cls.find.return_value.sort.return_value.first_or_none = AsyncMock(return_value=None)

    assert asyncio.run(mongo_store.find_latest_otp(USER_ID, "h", utcnow())) is None
    assert len(otp_cls.find.call_args.args) == 4
