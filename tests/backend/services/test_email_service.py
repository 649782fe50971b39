import asyncio

import aiosmtplib
import pytest

from backend.core import config
from backend.services import email_service


@pytest.fixture
def smtp_configured(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config, 'SMTP_HOST', 'smtp.example.edu')
    monkeypatch.setattr(config, 'SMTP_USER', 'mailer')
    monkeypatch.setattr(config, 'SMTP_PASSWORD', 'hunter2')


def test_build_reset_url_embeds_raw_token(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config, 'FRONTEND_URL', 'https://portal.example.edu/')

    assert email_service.build_reset_url('abc123') == 'https://portal.example.edu/reset-password/abc123'


def test_send_email_skips_when_not_configured(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config, 'SMTP_USER', '')

    async def fail_send(*_args, **_kwargs):
        raise AssertionError('should not send')

    monkeypatch.setattr(email_service.aiosmtplib, 'send', fail_send)

    assert asyncio.run(email_service.send_email('a@x.com', 'Hi', 'Body')) is False


def test_send_password_reset_email_sends_link(monkeypatch: pytest.MonkeyPatch, smtp_configured) -> None:
    sent = []

    async def fake_send(message, **kwargs):
        sent.append((message, kwargs))

    monkeypatch.setattr(email_service.aiosmtplib, 'send', fake_send)

    result = asyncio.run(
        email_service.send_password_reset_email('a@x.com', 'https://portal/reset-password/abc', 'teacher')
    )

    assert result is True
    message, kwargs = sent[0]
    assert message['To'] == 'a@x.com'
    assert message['Subject'] == 'Password Reset Request'
    assert 'https://portal/reset-password/abc' in message.get_content()
    assert 'teacher account' in message.get_content()
    assert kwargs['hostname'] == 'smtp.example.edu'


def test_send_email_reports_smtp_failure(monkeypatch: pytest.MonkeyPatch, smtp_configured) -> None:
    async def broken_send(*_args, **_kwargs):
        raise aiosmtplib.SMTPException('connection refused')

    monkeypatch.setattr(email_service.aiosmtplib, 'send', broken_send)

    assert asyncio.run(email_service.send_email('a@x.com', 'Hi', 'Body')) is False
