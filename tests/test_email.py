"""Tests for :mod:`services.email`."""
import smtplib
from datetime import timedelta
from unittest import mock, TestCase

from services.email import (
    SMTPEmailDispatcher,
    describe_duration,
    password_reset_message,
    verification_message,
)
from services.exceptions import EmailDispatchError


class TestMessages(TestCase):

    def test_verification_message_contains_link(self):
        subject, body = verification_message("https://x/verify-email?token=abc")
        self.assertIn("Verify", subject)
        self.assertIn("https://x/verify-email?token=abc", body)
        self.assertIn("24 hours", body)

    def test_reset_message_contains_link(self):
        subject, body = password_reset_message("https://x/reset-password?token=abc")
        self.assertIn("Reset", subject)
        self.assertIn("https://x/reset-password?token=abc", body)
        self.assertIn("1 hour", body)

    def test_expiry_follows_ttl(self):
        _, body = verification_message("https://x", timedelta(hours=48))
        self.assertIn("expire in 48 hours", body)
        _, body = password_reset_message("https://x", timedelta(minutes=15))
        self.assertIn("expire in 15 minutes", body)

    def test_describe_duration(self):
        self.assertEqual(describe_duration(timedelta(hours=1)), "1 hour")
        self.assertEqual(describe_duration(timedelta(minutes=90)), "90 minutes")
        self.assertEqual(describe_duration(timedelta(minutes=1)), "1 minute")
        self.assertEqual(describe_duration(timedelta(seconds=5)), "1 minute")


class TestSMTPEmailDispatcher(TestCase):

    def setUp(self):
        self.dispatcher = SMTPEmailDispatcher(
            host="smtp.example.com", port=587, sender="noreply@example.com",
            username="mailer", password="pw", use_tls=True, timeout=5,
        )

    @mock.patch("services.email.smtplib.SMTP")
    def test_send_uses_tls_and_login(self, mock_smtp):
        conn = mock_smtp.return_value.__enter__.return_value
        self.dispatcher.send("user@example.com", "Hello", "Body")

        mock_smtp.assert_called_once_with("smtp.example.com", 587, timeout=5)
        conn.starttls.assert_called_once()
        conn.login.assert_called_once_with("mailer", "pw")
        message = conn.send_message.call_args[0][0]
        self.assertEqual(message["To"], "user@example.com")
        self.assertEqual(message["From"], "noreply@example.com")
        self.assertEqual(message["Subject"], "Hello")
        self.assertIn("Body", message.get_content())

    @mock.patch("services.email.smtplib.SMTP")
    def test_anonymous_relay_skips_login(self, mock_smtp):
        dispatcher = SMTPEmailDispatcher(host="relay", port=25, sender="a@b.c", use_tls=False)
        conn = mock_smtp.return_value.__enter__.return_value
        dispatcher.send("user@example.com", "Hello", "Body")
        conn.starttls.assert_not_called()
        conn.login.assert_not_called()
        conn.send_message.assert_called_once()

    @mock.patch("services.email.smtplib.SMTP")
    def test_smtp_errors_become_dispatch_errors(self, mock_smtp):
        mock_smtp.side_effect = smtplib.SMTPConnectError(421, b"busy")
        with self.assertRaises(EmailDispatchError):
            self.dispatcher.send("user@example.com", "Hello", "Body")

    @mock.patch("services.email.smtplib.SMTP")
    def test_network_errors_become_dispatch_errors(self, mock_smtp):
        mock_smtp.side_effect = ConnectionRefusedError()
        with self.assertRaises(EmailDispatchError):
            self.dispatcher.send("user@example.com", "Hello", "Body")

    def test_from_config(self):
        config = {
            "SMTP_HOST": "h", "SMTP_PORT": 2525, "MAIL_FROM": "f@x.com",
            "SMTP_USER": None, "SMTP_PASSWORD": None,
            "SMTP_USE_TLS": False, "SMTP_TIMEOUT_SECONDS": 3.0,
        }
        dispatcher = SMTPEmailDispatcher.from_config(config)
        self.assertEqual(dispatcher._host, "h")
        self.assertEqual(dispatcher._port, 2525)
        self.assertFalse(dispatcher._use_tls)
