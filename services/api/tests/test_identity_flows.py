from datetime import datetime, timedelta, timezone
from typing import Any
from uuid import uuid4

import pytest
from sqlalchemy import create_engine, func, select, update
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session, sessionmaker

from hazel_api.core.config import get_settings
from hazel_api.core.security import TokenKind, issue_refresh_token, validate_token
from hazel_api.models.enums import TokenScope, WorkspaceRole
from hazel_api.models.project import Project, Task, TaskAssignment
from hazel_api.models.user import User, UserToken
from hazel_api.models.workspace import Workspace, WorkspaceMembership
from hazel_api.services import identity as identity_service
from hazel_api.services.errors import (
    AlreadyVerifiedError,
    DuplicateUserError,
    FailedOperationError,
    InvalidCredentialsError,
    InvalidTokenError,
    NotFoundError,
    UnverifiedUserError,
    WeakPasswordError,
)
from hazel_api.services.identity import (
    PasswordPolicy,
    create_session,
    delete_user,
    refresh_session,
    register_user,
    resend_verification,
    revoke_session,
    update_profile,
    verify_user,
)
from hazel_api.services.mailer import MailAddress
from hazel_api.services.patches import UserPatch
from hazel_api.services.workspaces import add_member, create_workspace

POLICY = PasswordPolicy(min_length=8, max_length=20)
PASSWORD = "Passw0rd!"


class RecordingMailer:
    """记录投递请求而不真正发送邮件。"""

    def __init__(self) -> None:
        self.sent: list[tuple[list[MailAddress], str, dict[str, Any]]] = []

    def send(self, recipients: list[MailAddress], template_id: str, data: dict[str, Any]) -> bool:
        self.sent.append((list(recipients), template_id, dict(data)))
        return True

    def codes_for(self, email: str) -> list[str]:
        return [
            data["code"]
            for recipients, template_id, data in self.sent
            if template_id == "verify_email" and any(r.email == email for r in recipients)
        ]


@pytest.fixture(autouse=True)
def _auth_settings(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("HAZEL_AUTH_JWT_SECRET", "identity-test-secret-key-at-least-32-bytes")
    monkeypatch.setenv("HAZEL_AUTH_PASSWORD_HASH_ITERATIONS", "1000")
    monkeypatch.delenv("HAZEL_AUTH_REFRESH_ROTATION", raising=False)
    monkeypatch.delenv("HAZEL_AUTH_OTP_INVALIDATE_PREVIOUS", raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def db_session() -> Session:
    engine = create_engine("sqlite+pysqlite:///:memory:", future=True)
    for table in (
        User.__table__,
        UserToken.__table__,
        Workspace.__table__,
        WorkspaceMembership.__table__,
        Project.__table__,
        Task.__table__,
        TaskAssignment.__table__,
    ):
        table.create(engine)
    local_session = sessionmaker(bind=engine, autoflush=False, autocommit=False, class_=Session)
    db = local_session()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def mailer() -> RecordingMailer:
    return RecordingMailer()


def _register(db: Session, mailer: RecordingMailer, email: str = "alice@example.com") -> User:
    return register_user(db, name="Alice", email=email, password=PASSWORD, mailer=mailer, password_policy=POLICY)


def _register_verified(db: Session, mailer: RecordingMailer, email: str = "alice@example.com") -> User:
    _register(db, mailer, email)
    return verify_user(db, email=email, code=mailer.codes_for(email)[-1], mailer=mailer)


def _token_count(db: Session, scope: str) -> int:
    return db.execute(select(func.count()).select_from(UserToken).where(UserToken.scope == scope)).scalar_one()


def test_register_creates_unverified_user_and_sends_code(db_session: Session, mailer: RecordingMailer):
    user = _register(db_session, mailer, "Alice@Example.com ")

    assert user.verified is False
    assert user.email == "alice@example.com", "邮箱应标准化为小写"
    assert user.password_hash != PASSWORD
    assert _token_count(db_session, TokenScope.VERIFICATION) == 1

    recipients, template_id, data = mailer.sent[0]
    assert template_id == "verify_email"
    assert recipients[0].email == "alice@example.com"
    assert len(data["code"]) == 6 and data["code"].isdigit()
    assert data["expires_in_minutes"] == 15


def test_register_duplicate_email_is_rejected(db_session: Session, mailer: RecordingMailer):
    _register(db_session, mailer)
    with pytest.raises(DuplicateUserError) as exc:
        _register(db_session, mailer, "ALICE@example.com")
    assert exc.value.status_code == 409
    assert db_session.execute(select(func.count()).select_from(User)).scalar_one() == 1


def test_identical_codes_for_different_users_both_verify(
    db_session: Session,
    mailer: RecordingMailer,
    monkeypatch: pytest.MonkeyPatch,
):
    monkeypatch.setattr(identity_service, "generate_otp", lambda: "123456")
    _register(db_session, mailer, "alice@example.com")
    _register(db_session, mailer, "bob@example.com")
    assert _token_count(db_session, TokenScope.VERIFICATION) == 2

    alice = verify_user(db_session, email="alice@example.com", code="123456", mailer=mailer)
    assert alice.verified is True
    assert _token_count(db_session, TokenScope.VERIFICATION) == 1, "他人相同的验证码应保留"

    bob = verify_user(db_session, email="bob@example.com", code="123456", mailer=mailer)
    assert bob.verified is True
    assert _token_count(db_session, TokenScope.VERIFICATION) == 0


def test_resend_may_repeat_a_pending_code(
    db_session: Session,
    mailer: RecordingMailer,
    monkeypatch: pytest.MonkeyPatch,
):
    monkeypatch.setattr(identity_service, "generate_otp", lambda: "654321")
    _register(db_session, mailer)
    resend_verification(db_session, email="alice@example.com", mailer=mailer)

    assert mailer.codes_for("alice@example.com") == ["654321", "654321"]
    user = verify_user(db_session, email="alice@example.com", code="654321", mailer=mailer)
    assert user.verified is True


def test_register_leaves_no_user_when_code_insert_fails(
    db_session: Session,
    mailer: RecordingMailer,
    monkeypatch: pytest.MonkeyPatch,
):
    original_put_token = identity_service.put_token
    failing = {"on": True}

    def flaky_put_token(db: Session, **kwargs: Any):
        if failing["on"]:
            raise OperationalError("INSERT INTO user_tokens", {}, Exception("disk I/O error"))
        return original_put_token(db, **kwargs)

    monkeypatch.setattr(identity_service, "put_token", flaky_put_token)

    with pytest.raises(FailedOperationError) as exc:
        _register(db_session, mailer)
    assert exc.value.status_code == 500
    assert db_session.execute(select(func.count()).select_from(User)).scalar_one() == 0
    assert mailer.sent == [], "提交失败时不应投递验证邮件"

    # 失败后重试注册应成功，而不是返回邮箱已存在。
    failing["on"] = False
    user = _register(db_session, mailer)
    assert user.verified is False
    assert _token_count(db_session, TokenScope.VERIFICATION) == 1


@pytest.mark.parametrize("password", ["short7!", "x" * 21])
def test_register_enforces_password_policy(db_session: Session, mailer: RecordingMailer, password: str):
    with pytest.raises(WeakPasswordError):
        register_user(
            db_session,
            name="Alice",
            email="alice@example.com",
            password=password,
            mailer=mailer,
            password_policy=POLICY,
        )
    assert mailer.sent == []


def test_verification_code_is_single_use(db_session: Session, mailer: RecordingMailer):
    _register(db_session, mailer)
    code = mailer.codes_for("alice@example.com")[0]

    user = verify_user(db_session, email="alice@example.com", code=code, mailer=mailer)
    assert user.verified is True
    assert mailer.sent[-1][1] == "welcome_email"
    assert _token_count(db_session, TokenScope.VERIFICATION) == 0

    with pytest.raises(InvalidTokenError) as exc:
        verify_user(db_session, email="alice@example.com", code=code, mailer=mailer)
    assert exc.value.status_code == 400


def test_verify_rejects_wrong_code_and_wrong_email(db_session: Session, mailer: RecordingMailer):
    _register(db_session, mailer)
    code = mailer.codes_for("alice@example.com")[0]
    wrong = f"{(int(code) + 1) % 1_000_000:06d}"

    with pytest.raises(InvalidTokenError):
        verify_user(db_session, email="alice@example.com", code=wrong, mailer=mailer)
    with pytest.raises(InvalidTokenError):
        verify_user(db_session, email="bob@example.com", code=code, mailer=mailer)


def test_verify_rejects_expired_code(db_session: Session, mailer: RecordingMailer):
    _register(db_session, mailer)
    code = mailer.codes_for("alice@example.com")[0]
    db_session.execute(update(UserToken).values(expires_at=datetime.now(timezone.utc) - timedelta(seconds=1)))
    db_session.commit()

    with pytest.raises(InvalidTokenError):
        verify_user(db_session, email="alice@example.com", code=code, mailer=mailer)


def test_refresh_token_cannot_be_used_as_verification_code(db_session: Session, mailer: RecordingMailer):
    _register_verified(db_session, mailer)
    session = create_session(db_session, email="alice@example.com", password=PASSWORD)

    with pytest.raises(InvalidTokenError):
        verify_user(db_session, email="alice@example.com", code=session.refresh_token, mailer=mailer)


def test_resend_issues_new_code_and_keeps_previous(db_session: Session, mailer: RecordingMailer):
    _register(db_session, mailer)
    resend_verification(db_session, email="alice@example.com", mailer=mailer)

    codes = mailer.codes_for("alice@example.com")
    assert len(codes) == 2
    assert _token_count(db_session, TokenScope.VERIFICATION) == 2
    verify_user(db_session, email="alice@example.com", code=codes[0], mailer=mailer)


def test_resend_can_invalidate_previous_codes(
    db_session: Session,
    mailer: RecordingMailer,
    monkeypatch: pytest.MonkeyPatch,
):
    monkeypatch.setenv("HAZEL_AUTH_OTP_INVALIDATE_PREVIOUS", "true")
    get_settings.cache_clear()
    _register(db_session, mailer)
    resend_verification(db_session, email="alice@example.com", mailer=mailer)

    first, second = mailer.codes_for("alice@example.com")
    assert _token_count(db_session, TokenScope.VERIFICATION) == 1
    if first != second:
        with pytest.raises(InvalidTokenError):
            verify_user(db_session, email="alice@example.com", code=first, mailer=mailer)
    assert verify_user(db_session, email="alice@example.com", code=second, mailer=mailer).verified


def test_resend_for_verified_or_unknown_user(db_session: Session, mailer: RecordingMailer):
    _register_verified(db_session, mailer)
    sent_before = len(mailer.sent)

    with pytest.raises(AlreadyVerifiedError) as exc:
        resend_verification(db_session, email="alice@example.com", mailer=mailer)
    assert exc.value.status_code == 422
    assert len(mailer.sent) == sent_before
    assert _token_count(db_session, TokenScope.VERIFICATION) == 0

    with pytest.raises(NotFoundError):
        resend_verification(db_session, email="nobody@example.com", mailer=mailer)


def test_login_rejects_unverified_user(db_session: Session, mailer: RecordingMailer):
    _register(db_session, mailer)
    with pytest.raises(UnverifiedUserError):
        create_session(db_session, email="alice@example.com", password=PASSWORD)


def test_login_does_not_distinguish_unknown_email_from_wrong_password(db_session: Session, mailer: RecordingMailer):
    _register_verified(db_session, mailer)

    with pytest.raises(InvalidCredentialsError) as unknown:
        create_session(db_session, email="nobody@example.com", password=PASSWORD)
    with pytest.raises(InvalidCredentialsError) as wrong:
        create_session(db_session, email="alice@example.com", password="Wrong-pass1")
    assert unknown.value.message == wrong.value.message
    assert unknown.value.status_code == wrong.value.status_code == 401


def test_login_and_refresh_issue_access_token(db_session: Session, mailer: RecordingMailer):
    user = _register_verified(db_session, mailer)
    session = create_session(db_session, email="alice@example.com", password=PASSWORD)
    assert session.user.id == user.id
    assert _token_count(db_session, TokenScope.AUTHENTICATION) == 1

    grant = refresh_session(db_session, refresh_token=session.refresh_token)
    claims = validate_token(grant.access_token, TokenKind.ACCESS)
    assert claims.subject == user.id
    assert grant.refresh_token is None

    # 刷新令牌在过期前可重复使用。
    refresh_session(db_session, refresh_token=session.refresh_token)
    assert _token_count(db_session, TokenScope.AUTHENTICATION) == 1


def test_refresh_rejects_access_token(db_session: Session, mailer: RecordingMailer):
    _register_verified(db_session, mailer)
    session = create_session(db_session, email="alice@example.com", password=PASSWORD)
    grant = refresh_session(db_session, refresh_token=session.refresh_token)

    with pytest.raises(InvalidTokenError):
        refresh_session(db_session, refresh_token=grant.access_token)


def test_refresh_rejects_signed_but_unknown_token(db_session: Session, mailer: RecordingMailer):
    user = _register_verified(db_session, mailer)
    stray, _ = issue_refresh_token(user.id, user.email)

    with pytest.raises(InvalidTokenError):
        refresh_session(db_session, refresh_token=stray)


def test_refresh_rejects_expired_record(db_session: Session, mailer: RecordingMailer):
    _register_verified(db_session, mailer)
    session = create_session(db_session, email="alice@example.com", password=PASSWORD)
    db_session.execute(update(UserToken).values(expires_at=datetime.now(timezone.utc) - timedelta(seconds=1)))
    db_session.commit()

    with pytest.raises(InvalidTokenError):
        refresh_session(db_session, refresh_token=session.refresh_token)


def test_revoked_session_cannot_refresh(db_session: Session, mailer: RecordingMailer):
    _register_verified(db_session, mailer)
    session = create_session(db_session, email="alice@example.com", password=PASSWORD)

    assert revoke_session(db_session, refresh_token=session.refresh_token) is True
    assert revoke_session(db_session, refresh_token=session.refresh_token) is False
    with pytest.raises(InvalidTokenError):
        refresh_session(db_session, refresh_token=session.refresh_token)


def test_refresh_rotation_replaces_record(
    db_session: Session,
    mailer: RecordingMailer,
    monkeypatch: pytest.MonkeyPatch,
):
    monkeypatch.setenv("HAZEL_AUTH_REFRESH_ROTATION", "true")
    get_settings.cache_clear()
    _register_verified(db_session, mailer)
    session = create_session(db_session, email="alice@example.com", password=PASSWORD)

    grant = refresh_session(db_session, refresh_token=session.refresh_token)
    assert grant.refresh_token and grant.refresh_token != session.refresh_token
    assert _token_count(db_session, TokenScope.AUTHENTICATION) == 1

    with pytest.raises(InvalidTokenError):
        refresh_session(db_session, refresh_token=session.refresh_token)
    refresh_session(db_session, refresh_token=grant.refresh_token)


def test_update_profile_applies_only_present_fields(db_session: Session, mailer: RecordingMailer):
    user = _register_verified(db_session, mailer)
    original_hash = user.password_hash

    updated = update_profile(
        db_session,
        user_id=user.id,
        patch=UserPatch(profile_photo="https://cdn.example.com/a.png"),
        password_policy=POLICY,
    )
    assert updated.name == "Alice"
    assert updated.profile_photo == "https://cdn.example.com/a.png"
    assert updated.password_hash == original_hash

    renamed = update_profile(db_session, user_id=user.id, patch=UserPatch(name="Alice Chen"), password_policy=POLICY)
    assert renamed.profile_photo == "https://cdn.example.com/a.png", "未携带的字段应保持不变"

    cleared = update_profile(db_session, user_id=user.id, patch=UserPatch(profile_photo=None), password_policy=POLICY)
    assert cleared.profile_photo is None
    assert cleared.name == "Alice Chen"


def test_update_profile_keeps_hash_for_same_password(db_session: Session, mailer: RecordingMailer):
    user = _register_verified(db_session, mailer)
    original_hash = user.password_hash

    same = update_profile(db_session, user_id=user.id, patch=UserPatch(password=PASSWORD), password_policy=POLICY)
    assert same.password_hash == original_hash

    changed = update_profile(db_session, user_id=user.id, patch=UserPatch(password="N3w-Passw0rd"), password_policy=POLICY)
    assert changed.password_hash != original_hash
    create_session(db_session, email="alice@example.com", password="N3w-Passw0rd")


def test_update_profile_rejects_weak_password(db_session: Session, mailer: RecordingMailer):
    user = _register_verified(db_session, mailer)
    with pytest.raises(WeakPasswordError):
        update_profile(db_session, user_id=user.id, patch=UserPatch(password="1234567"), password_policy=POLICY)


def test_delete_user_cascades_credentials_memberships_and_owned_workspaces(
    db_session: Session,
    mailer: RecordingMailer,
):
    alice = _register_verified(db_session, mailer)
    bob = _register_verified(db_session, mailer, "bob@example.com")
    create_session(db_session, email="alice@example.com", password=PASSWORD)
    owned = create_workspace(db_session, name="Alice WS", description=None, owner_id=alice.id)
    add_member(db_session, workspace_id=owned.id, user_id=bob.id, role=WorkspaceRole.MEMBER)
    joined = create_workspace(db_session, name="Bob WS", description=None, owner_id=bob.id)
    add_member(db_session, workspace_id=joined.id, user_id=alice.id, role=WorkspaceRole.MEMBER)
    alice_id = alice.id

    delete_user(db_session, user_id=alice_id)

    assert db_session.get(User, alice_id) is None
    assert db_session.execute(select(UserToken).where(UserToken.user_id == alice_id)).first() is None
    assert db_session.execute(
        select(WorkspaceMembership).where(WorkspaceMembership.user_id == alice_id)
    ).first() is None
    assert db_session.get(Workspace, owned.id) is None, "被删除用户拥有的工作空间应一并删除"
    assert db_session.get(Workspace, joined.id) is not None

    with pytest.raises(NotFoundError):
        delete_user(db_session, user_id=uuid4())
