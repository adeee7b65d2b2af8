# send_test_email.py
"""
Check the SMTP settings by sending one order-status email.

    python send_test_email.py you@example.com
"""
import sys

from app.core.email_client import send_email
from app.services.notification_service import ORDER_STATUS_MESSAGES


def main(argv: list[str]) -> int:
    if len(argv) != 2:
        print("usage: python send_test_email.py <recipient>")
        return 2

    recipient = argv[1]
    print(f"Sending test email to {recipient}...")

    send_email(
        to_email=recipient,
        subject="[Verdant] Order PO-TEST-000000 update",
        text_body=ORDER_STATUS_MESSAGES["shipped"],
        html_body=f"<p>{ORDER_STATUS_MESSAGES['shipped']}</p><p><b>Tracking:</b> TEST-123</p>",
    )

    print("If no errors: email sent! Check your inbox.")
    return 0


if __name__ == "__main__":
    sys.exit(main(sys.argv))
