import smtplib

import pytest

from pathfinder.core import config
from pathfinder.core.errors import MailDeliveryError
from pathfinder.services import mailer as mailer_module
from pathfinder.services.mailer import SUBJECT, LoggingMailer, SmtpMailer, build_mailer


class FakeSmtp:
    instances: list['FakeSmtp'] = []

    def __init__(self, host, port, timeout=None):
        self.host = host
        self.port = port
        self.calls = []
        FakeSmtp.instances.append(self)

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        return False

    def starttls(self, context=None):
        self.calls.append('starttls')

    def login(self, username, password):
        self.calls.append(('login', username))

    def send_message(self, message):
        self.calls.append(('send', message['To'], message['Subject']))


def test_build_message_contains_code() -> None:
    transport = SmtpMailer('smtp.example.edu', from_email='noreply@bowiestate.edu')

    message = transport.build_message('jdoe@bowiestate.edu', '482913')

    assert message['Subject'] == SUBJECT
    assert message['From'] == 'noreply@bowiestate.edu'
    assert message['To'] == 'jdoe@bowiestate.edu'
    assert '482913' in message.get_content()


def test_smtp_send_uses_tls_and_login(monkeypatch) -> None:
    FakeSmtp.instances = []
    monkeypatch.setattr(mailer_module.smtplib, 'SMTP', FakeSmtp)
    transport = SmtpMailer('smtp.example.edu', 587, username='mailer', password='secret')

    transport.send('jdoe@bowiestate.edu', '482913')

    server = FakeSmtp.instances[0]
    assert (server.host, server.port) == ('smtp.example.edu', 587)
    assert server.calls == ['starttls', ('login', 'mailer'), ('send', 'jdoe@bowiestate.edu', SUBJECT)]


def test_smtp_failure_raises_mail_delivery_error(monkeypatch) -> None:
    def refuse(*args, **kwargs):
        raise smtplib.SMTPConnectError(421, 'unavailable')

    monkeypatch.setattr(mailer_module.smtplib, 'SMTP', refuse)

    with pytest.raises(MailDeliveryError):
        SmtpMailer('smtp.example.edu').send('jdoe@bowiestate.edu', '482913')


def test_logging_mailer_logs_code(caplog) -> None:
    with caplog.at_level('INFO', logger='pathfinder.services.mailer'):
        LoggingMailer().send('jdoe@bowiestate.edu', '482913')

    assert '482913' in caplog.text


def test_build_mailer_picks_transport(monkeypatch) -> None:
    monkeypatch.setattr(config, 'SMTP_HOST', '')
    assert isinstance(build_mailer(), LoggingMailer)

    monkeypatch.setattr(config, 'SMTP_HOST', 'smtp.example.edu')
    assert isinstance(build_mailer(), SmtpMailer)
