"""邮件投递服务。

请求路径只负责把邮件任务放入有界队列，由后台线程异步投递：
投递失败只记录日志与计数，不重试，也不影响调用方；队列已满时丢弃新任务。
"""

from __future__ import annotations

from dataclasses import dataclass, field
import html
import logging
import queue
import smtplib
import ssl
import threading
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Any, Protocol

from hazel_api.core.config import Settings
from hazel_api.logging_setup import redact_email

logger = logging.getLogger(__name__)

VERIFY_EMAIL_TEMPLATE = "verify_email"
WELCOME_EMAIL_TEMPLATE = "welcome_email"


@dataclass(frozen=True)
class MailAddress:
    """收件人。"""

    name: str
    email: str


@dataclass(frozen=True)
class MailJob:
    """待投递的邮件任务。"""

    recipients: tuple[MailAddress, ...]
    template_id: str
    data: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class RenderedMail:
    subject: str
    html_body: str
    text_body: str


class Mailer(Protocol):
    """邮件协作方接口：尽力投递，不阻塞调用方。"""

    def send(self, recipients: list[MailAddress], template_id: str, data: dict[str, Any]) -> bool: ...


def render_template(template_id: str, recipient: MailAddress, data: dict[str, Any]) -> RenderedMail:
    """按模板标识渲染邮件内容。"""
    name = html.escape(recipient.name or recipient.email)
    if template_id == VERIFY_EMAIL_TEMPLATE:
        code = html.escape(str(data.get("code", "")))
        minutes = int(data.get("expires_in_minutes", 15))
        return RenderedMail(
            subject="Verify your Hazel account",
            html_body=(
                f"<p>Hi {name},</p>"
                f"<p>Your verification code is <strong>{code}</strong>.</p>"
                f"<p>The code expires in {minutes} minutes.</p>"
            ),
            text_body=f"Hi {recipient.name},\n\nYour verification code is {data.get('code', '')}.\n"
            f"The code expires in {minutes} minutes.\n",
        )
    if template_id == WELCOME_EMAIL_TEMPLATE:
        return RenderedMail(
            subject="Welcome to Hazel",
            html_body=f"<p>Hi {name},</p><p>Your email has been verified. Welcome aboard!</p>",
            text_body=f"Hi {recipient.name},\n\nYour email has been verified. Welcome aboard!\n",
        )
    raise ValueError(f"unknown mail template: {template_id}")


class SmtpTransport:
    """SMTP 投递通道，未配置主机时仅记录日志（开发模式）。"""

    def __init__(
        self,
        *,
        host: str | None,
        port: int = 587,
        username: str | None = None,
        password: str | None = None,
        use_tls: bool = True,
        sender_email: str,
        sender_name: str = "Hazel",
        timeout: float = 30.0,
    ) -> None:
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.sender_email = sender_email
        self.sender_name = sender_name
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings: Settings) -> "SmtpTransport":
        return cls(
            host=settings.mail_host,
            port=settings.mail_port,
            username=settings.mail_username,
            password=settings.mail_password,
            use_tls=settings.mail_use_tls,
            sender_email=settings.mail_sender_email,
            sender_name=settings.mail_sender_name,
            timeout=settings.mail_timeout_seconds,
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.host)

    def deliver(self, recipient: MailAddress, mail: RenderedMail) -> None:
        """投递单封邮件，失败时抛出异常由调用方记录。"""
        if not self.is_configured:
            logger.info("mail dev mode: to=%s subject=%s", redact_email(recipient.email), mail.subject)
            return

        msg = MIMEMultipart("alternative")
        msg["Subject"] = mail.subject
        msg["From"] = f"{self.sender_name} <{self.sender_email}>"
        msg["To"] = recipient.email
        msg.attach(MIMEText(mail.text_body, "plain"))
        msg.attach(MIMEText(mail.html_body, "html"))

        context = ssl.create_default_context()
        if self.use_tls:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
                server.starttls(context=context)
                if self.username and self.password:
                    server.login(self.username, self.password)
                server.sendmail(self.sender_email, recipient.email, msg.as_string())
        else:
            with smtplib.SMTP_SSL(self.host, self.port, context=context, timeout=self.timeout) as server:
                if self.username and self.password:
                    server.login(self.username, self.password)
                server.sendmail(self.sender_email, recipient.email, msg.as_string())


class MailDispatcher:
    """基于有界队列与后台线程的邮件分发器。"""

    _STOP = object()

    def __init__(self, transport: SmtpTransport, *, max_queue_size: int = 1000) -> None:
        self.transport = transport
        self._queue: queue.Queue[Any] = queue.Queue(maxsize=max_queue_size)
        self._thread: threading.Thread | None = None
        self._lock = threading.Lock()
        # stop() 持有 _lock 等待线程退出，计数器使用独立的锁。
        self._stats_lock = threading.Lock()
        self.sent_count = 0
        self.failed_count = 0
        self.dropped_count = 0

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _count(self, name: str) -> None:
        with self._stats_lock:
            setattr(self, name, getattr(self, name) + 1)

    def stats(self) -> dict[str, int]:
        """返回投递计数快照。"""
        with self._stats_lock:
            return {"sent": self.sent_count, "failed": self.failed_count, "dropped": self.dropped_count}

    def start(self) -> None:
        """启动后台投递线程（重复调用无副作用）。"""
        with self._lock:
            if self.running:
                return
            self._thread = threading.Thread(target=self._run, name="hazel-mailer", daemon=True)
            self._thread.start()

    def stop(self, timeout: float = 5.0) -> None:
        """投递完队列中已有任务后停止线程。"""
        with self._lock:
            thread = self._thread
            if thread is None:
                return
            self._queue.put(self._STOP)
            thread.join(timeout)
            if thread.is_alive():
                logger.warning("mail worker did not stop within %.1fs", timeout)
            self._thread = None

    def send(self, recipients: list[MailAddress], template_id: str, data: dict[str, Any]) -> bool:
        """提交邮件任务，不等待投递结果；队列已满时丢弃并返回 False。"""
        job = MailJob(recipients=tuple(recipients), template_id=template_id, data=dict(data))
        try:
            self._queue.put_nowait(job)
        except queue.Full:
            self._count("dropped_count")
            logger.error("mail queue full, dropped %s job for %d recipient(s)", template_id, len(recipients))
            return False
        return True

    def drain(self) -> None:
        """在当前线程同步处理队列中的全部任务（用于关闭前或测试）。"""
        while True:
            try:
                item = self._queue.get_nowait()
            except queue.Empty:
                return
            try:
                if item is not self._STOP:
                    self.process(item)
            finally:
                self._queue.task_done()

    def _run(self) -> None:
        while True:
            item = self._queue.get()
            try:
                if item is self._STOP:
                    return
                self.process(item)
            finally:
                self._queue.task_done()

    def process(self, job: MailJob) -> None:
        """逐个收件人渲染并投递，异常只记录不外抛。"""
        for recipient in job.recipients:
            try:
                rendered = render_template(job.template_id, recipient, job.data)
                self.transport.deliver(recipient, rendered)
            except Exception:
                self._count("failed_count")
                logger.exception(
                    "failed to send %s email to %s",
                    job.template_id,
                    redact_email(recipient.email),
                )
                continue
            self._count("sent_count")
