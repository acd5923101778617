import logging
import threading

import pytest

from hazel_api.services.mailer import (
    VERIFY_EMAIL_TEMPLATE,
    WELCOME_EMAIL_TEMPLATE,
    MailAddress,
    MailDispatcher,
    RenderedMail,
    SmtpTransport,
    render_template,
)


class _FakeTransport:
    """记录投递内容，可按收件人模拟失败。"""

    def __init__(self, *, failing: set[str] | None = None) -> None:
        self.delivered: list[tuple[str, RenderedMail]] = []
        self.failing = failing or set()

    def deliver(self, recipient: MailAddress, mail: RenderedMail) -> None:
        if recipient.email in self.failing:
            raise ConnectionError("smtp unreachable")
        self.delivered.append((recipient.email, mail))


ALICE = MailAddress(name="Alice", email="alice@example.com")
BOB = MailAddress(name="Bob", email="bob@example.com")


def test_render_verify_template_contains_code_and_escapes_name():
    mail = render_template(
        VERIFY_EMAIL_TEMPLATE,
        MailAddress(name="<Alice>", email="alice@example.com"),
        {"code": "042917", "expires_in_minutes": 15},
    )
    assert "042917" in mail.html_body
    assert "042917" in mail.text_body
    assert "&lt;Alice&gt;" in mail.html_body
    assert "15 minutes" in mail.text_body


def test_render_unknown_template_raises():
    with pytest.raises(ValueError):
        render_template("missing", ALICE, {})


def test_failed_delivery_is_counted_and_logged(caplog: pytest.LogCaptureFixture):
    transport = _FakeTransport(failing={"bob@example.com"})
    dispatcher = MailDispatcher(transport, max_queue_size=10)

    assert dispatcher.send([ALICE, BOB], WELCOME_EMAIL_TEMPLATE, {}) is True
    with caplog.at_level(logging.ERROR, logger="hazel_api.services.mailer"):
        dispatcher.drain()

    assert [email for email, _ in transport.delivered] == ["alice@example.com"]
    assert dispatcher.sent_count == 1
    assert dispatcher.failed_count == 1
    assert "bob@example.com" not in caplog.text, "日志中的邮箱应脱敏"
    assert "bo***@example.com" in caplog.text


def test_full_queue_drops_without_blocking():
    transport = _FakeTransport()
    dispatcher = MailDispatcher(transport, max_queue_size=1)

    assert dispatcher.send([ALICE], WELCOME_EMAIL_TEMPLATE, {}) is True
    assert dispatcher.send([BOB], WELCOME_EMAIL_TEMPLATE, {}) is False
    assert dispatcher.dropped_count == 1

    dispatcher.drain()
    assert [email for email, _ in transport.delivered] == ["alice@example.com"]


def test_background_worker_delivers_and_stops():
    transport = _FakeTransport()
    dispatcher = MailDispatcher(transport, max_queue_size=10)
    dispatcher.start()
    assert dispatcher.running

    dispatcher.send([ALICE], VERIFY_EMAIL_TEMPLATE, {"code": "123456"})
    dispatcher.stop(timeout=5.0)

    assert not dispatcher.running
    assert dispatcher.sent_count == 1
    assert transport.delivered[0][1].subject == "Verify your Hazel account"


def test_counters_are_exact_under_concurrent_senders():
    transport = _FakeTransport(failing={"bob@example.com"})
    dispatcher = MailDispatcher(transport, max_queue_size=50)
    dispatcher.start()

    def submit() -> None:
        for _ in range(100):
            dispatcher.send([ALICE, BOB], WELCOME_EMAIL_TEMPLATE, {})

    senders = [threading.Thread(target=submit) for _ in range(8)]
    for sender in senders:
        sender.start()
    for sender in senders:
        sender.join()
    dispatcher.stop(timeout=10.0)

    stats = dispatcher.stats()
    accepted = 8 * 100 - stats["dropped"]
    assert stats["sent"] == accepted, "每个受理的任务恰好成功投递一次"
    assert stats["failed"] == accepted
    assert len(transport.delivered) == accepted


def test_unconfigured_transport_logs_instead_of_sending(caplog: pytest.LogCaptureFixture):
    transport = SmtpTransport(host=None, sender_email="no-reply@hazel.local")
    assert not transport.is_configured

    with caplog.at_level(logging.INFO, logger="hazel_api.services.mailer"):
        transport.deliver(ALICE, render_template(WELCOME_EMAIL_TEMPLATE, ALICE, {}))
    assert "mail dev mode" in caplog.text
