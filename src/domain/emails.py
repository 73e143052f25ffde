"""
Verification email content.
"""

from datetime import datetime, timezone
from html import escape

SIGNUP_SUBJECT = "Verify Your TalkDrove Account"
DEVICE_SUBJECT = "Verify New Device Login - TalkDrove"

_LAYOUT = """<!DOCTYPE html>
<html>
<head><meta charset="UTF-8"></head>
<body style="margin: 0; padding: 0; background-color: #f4f4f4; font-family: Arial, sans-serif;">
  <table role="presentation" style="width: 600px; margin: 40px auto; background-color: white; border-radius: 8px;">
    <tr><td style="padding: 30px 40px 20px; background-color: #ff9800; border-radius: 8px 8px 0 0;">
      <h1 style="margin: 0; font-size: 24px; color: white;">{title}</h1>
    </td></tr>
    <tr><td style="padding: 20px 40px; color: #555555;">
      <p>{intro}</p>
      <div style="background-color: #f8f9fa; border-radius: 6px; padding: 20px; text-align: center;">
        <span style="font-family: 'Courier New', monospace; font-size: 32px; font-weight: bold; letter-spacing: 5px; color: #2196F3;">{code}</span>
      </div>
      {details}
      <p style="font-size: 14px;">This code will expire in {minutes} minutes for security purposes.</p>
      <p style="font-size: 14px;">If you didn't request this code, you can safely ignore this email.</p>
    </td></tr>
    <tr><td style="padding: 20px 40px 40px; text-align: center; border-top: 1px solid #eeeeee; font-size: 12px; color: #999999;">
      This is an automated message from TalkDrove Security. Please do not reply to this email.
      <br>&copy; {year} TalkDrove. All rights reserved.
    </td></tr>
  </table>
</body>
</html>
"""


def signup_email(code: str, ttl_minutes: int = 30) -> str:
    return _LAYOUT.format(
        title="Verify Your TalkDrove Account!",
        intro="Thanks for signing up for TalkDrove! Please use the verification code "
        "below to complete your registration:",
        code=escape(code),
        details="",
        minutes=ttl_minutes,
        year=datetime.now(timezone.utc).year,
    )


def device_email(code: str, location: str, ttl_minutes: int = 30) -> str:
    now = datetime.now(timezone.utc)
    details = (
        '<p style="font-size: 14px;">'
        f"Location: {escape(location)}<br>Time: {now:%Y-%m-%d %H:%M} UTC</p>"
        '<p style="font-size: 14px;"><strong>Wasn\'t you?</strong> '
        "Change your password immediately and contact our support team.</p>"
    )
    return _LAYOUT.format(
        title="New Device Login Detected",
        intro="We detected a login attempt from a new device. For your security, "
        "please verify this login using the code below:",
        code=escape(code),
        details=details,
        minutes=ttl_minutes,
        year=now.year,
    )
