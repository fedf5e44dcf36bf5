import smtplib
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from utils.logger import get_logger

# Setup logger
logger = get_logger(__name__)


class EmailAlertSink:
    """
    Delivers security alerts over SMTP.

    Delivery is best-effort: failures are logged and reported as ``False``,
    never raised, so callers can fire alerts without guarding them.
    """

    def __init__(self, server: str, port: int, username: str, password: str,
                 sender: str, recipient: str, use_tls: bool = True,
                 timeout: float = 10, env: str = "development"):
        self.server = server
        self.port = port
        self.username = username
        self.password = password
        self.sender = sender
        self.recipient = recipient or sender
        self.use_tls = use_tls
        self.timeout = timeout
        self.env = env

    @classmethod
    def from_settings(cls, settings):
        return cls(
            server=settings.MAIL_SERVER,
            port=settings.MAIL_PORT,
            username=settings.MAIL_USERNAME,
            password=settings.MAIL_PASSWORD,
            sender=settings.MAIL_FROM,
            recipient=settings.alert_recipient,
            use_tls=settings.MAIL_USE_TLS,
            timeout=settings.MAIL_TIMEOUT_SECONDS,
            env=settings.ENV
        )

    def send(self, subject: str, body: str) -> bool:
        # Skip email sending in test environment
        if self.env == "testing":
            logger.info(
                "[TEST MODE] Alert email skipped",
                extra={"recipient": self.recipient, "subject": subject}
            )
            return True

        # No SMTP account configured: the alert only goes to the log
        if not self.username or not self.password:
            logger.warning(
                "Security alert (SMTP not configured)",
                extra={"subject": subject, "body": body}
            )
            return True

        logger.debug(
            "Attempting to send alert email",
            extra={"recipient": self.recipient, "subject": subject}
        )

        message = MIMEMultipart("alternative")
        message["Subject"] = subject
        message["From"] = self.sender
        message["To"] = self.recipient
        message.attach(MIMEText(body, "plain", "utf-8"))

        try:
            with self._connect() as server:
                server.login(self.username, self.password)
                server.sendmail(self.sender, self.recipient, message.as_string())

            logger.info(
                "Alert email sent successfully",
                extra={"recipient": self.recipient, "subject": subject}
            )
            return True

        except (smtplib.SMTPException, OSError) as e:
            logger.error(
                f"Failed to send alert email: {str(e)}",
                extra={
                    "recipient": self.recipient,
                    "subject": subject,
                    "error": str(e),
                    "error_type": type(e).__name__
                },
                exc_info=True
            )
            return False

    def _connect(self) -> smtplib.SMTP:
        server = smtplib.SMTP(self.server, self.port, timeout=self.timeout)
        if self.use_tls:
            try:
                server.starttls()  # Upgrade to secure connection
            except (smtplib.SMTPException, OSError):
                server.close()
                raise
        return server
