# Notification email templates. Each renderer returns (subject, html, text).
from html import escape
from typing import Any, Dict, List, Optional, Tuple

from toeic_api.core import config

SUBJECT_SUFFIX = f" - {config.APP_NAME}"

SECURITY_ALERT_SUBJECTS = {
    "login": "New sign-in to your account",
    "password_change": "Your password was changed",
    "email_change": "Your email address was changed",
    "suspicious_activity": "Suspicious activity on your account",
}

MAINTENANCE_SUBJECTS = {
    "scheduled": "Scheduled maintenance",
    "emergency": "Emergency maintenance",
    "completed": "Maintenance completed",
}

ACTIVITY_REPORT_SUBJECTS = {
    "weekly": "Your weekly study report",
    "monthly": "Your monthly study report",
    "yearly": "Your year in review",
}

ANNOUNCEMENT_SUBJECTS = {
    "new_feature": "New feature",
    "major_update": "Major update",
    "beta_release": "Beta release",
}

ACTIVITY_LABELS = [
    ("practiceSessions", "Practice sessions"),
    ("questionsAnswered", "Questions answered"),
    ("averageScore", "Average score"),
    ("studyMinutes", "Study minutes"),
    ("wordsLearned", "Words learned"),
    ("streakDays", "Day streak"),
]


def _layout(greeting: str, body_html: str, action_url: Optional[str] = None, action_label: str = "Open ChatTOEIC") -> str:
    button = ""
    if action_url:
        button = f"""
    <p style="margin:16px 0;">
      <a href="{escape(action_url)}" style="display:inline-block;padding:12px 18px;text-decoration:none;border-radius:8px;border:1px solid #3b82f6;">
        {escape(action_label)}
      </a>
    </p>"""
    return f"""<!doctype html><html><body style="font-family:system-ui,Segoe UI,Arial,sans-serif;">
  <div style="max-width:560px;margin:0 auto;padding:24px;">
    <h2 style="margin:0 0 12px 0;">{escape(greeting)}</h2>
    {body_html}{button}
    <hr style="border:none;border-top:1px solid #eee;margin:24px 0;">
    <p style="color:#666;font-size:12px;margin:0;">
      You are receiving this email because you have a {escape(config.APP_NAME)} account.
    </p>
  </div>
</body></html>"""


def _greeting(user_name: Optional[str]) -> str:
    return f"Hello, {user_name}" if user_name else "Hello"


def render_security_alert(user_name: Optional[str], alert_type: str, details: Optional[Dict[str, Any]] = None) -> Tuple[str, str, str]:
    details = details or {}
    title = SECURITY_ALERT_SUBJECTS[alert_type]
    rows = [
        (label, details.get(key))
        for key, label in (("time", "Time"), ("location", "Location"), ("ipAddress", "IP address"), ("userAgent", "Device"))
        if details.get(key)
    ]
    table = "".join(f"<li><strong>{escape(label)}:</strong> {escape(str(value))}</li>" for label, value in rows)
    body = f"""<p>{escape(title)}.</p>
    {f'<ul>{table}</ul>' if table else ''}
    <p>If this was not you, change your password right away.</p>"""
    text = f"{title}.\n" + "".join(f"{label}: {value}\n" for label, value in rows) + "If this was not you, change your password right away."
    action_url = details.get("actionUrl") or f"{config.FRONTEND_URL}/settings/security"
    return title + SUBJECT_SUFFIX, _layout(_greeting(user_name), body, action_url, "Review account security"), text


def render_maintenance(
    user_name: Optional[str],
    maintenance_type: str,
    start_time: str,
    end_time: Optional[str] = None,
    description: Optional[str] = None,
) -> Tuple[str, str, str]:
    title = MAINTENANCE_SUBJECTS[maintenance_type]
    if maintenance_type == "completed":
        window = f"Maintenance that started at {start_time} is complete. All services are available again."
    elif end_time:
        window = f"The service will be unavailable from {start_time} to {end_time}."
    else:
        window = f"The service will be unavailable from {start_time}."
    body = f"<p>{escape(window)}</p>"
    if description:
        body += f"\n    <p>{escape(description)}</p>"
    text = window + (f"\n{description}" if description else "")
    return title + SUBJECT_SUFFIX, _layout(_greeting(user_name), body), text


def render_activity_report(user_name: Optional[str], report_type: str, activity_data: Dict[str, Any]) -> Tuple[str, str, str]:
    title = ACTIVITY_REPORT_SUBJECTS[report_type]
    rows = [(label, activity_data[key]) for key, label in ACTIVITY_LABELS if activity_data.get(key) is not None]
    table = "".join(
        f'<tr><td style="padding:4px 12px 4px 0;">{escape(label)}</td><td><strong>{escape(str(value))}</strong></td></tr>'
        for label, value in rows
    )
    body = f"""<p>Here is your {escape(report_type)} progress.</p>
    <table>{table}</table>"""
    text = f"Here is your {report_type} progress.\n" + "".join(f"{label}: {value}\n" for label, value in rows)
    return title + SUBJECT_SUFFIX, _layout(_greeting(user_name), body, f"{config.FRONTEND_URL}/dashboard", "View dashboard"), text


def render_feature_announcement(
    user_name: Optional[str],
    announcement_type: str,
    title: str,
    features: List[Dict[str, Any]],
) -> Tuple[str, str, str]:
    items = []
    text_items = []
    for feature in features:
        name = str(feature.get("name", ""))
        description = str(feature.get("description", ""))
        benefits = "".join(f"<li>{escape(str(b))}</li>" for b in feature.get("benefits") or [])
        items.append(
            f"<li><strong>{escape(name)}</strong>: {escape(description)}"
            + (f"<ul>{benefits}</ul>" if benefits else "")
            + "</li>"
        )
        text_items.append(f"- {name}: {description}")
    body = f"""<p><strong>{escape(title)}</strong></p>
    <ul>{''.join(items)}</ul>"""
    subject = f"{ANNOUNCEMENT_SUBJECTS[announcement_type]}: {title}"
    text = title + "\n" + "\n".join(text_items)
    return subject + SUBJECT_SUFFIX, _layout(_greeting(user_name), body, config.FRONTEND_URL, "Try it now"), text


# Account emails

def render_verification_code(user_name: Optional[str], code: str, expires_minutes: int) -> Tuple[str, str, str]:
    body = f"""<p>Enter this code to verify your email address:</p>
    <p style="font-size:28px;letter-spacing:6px;font-weight:bold;margin:16px 0;">{escape(code)}</p>
    <p>The code expires in {expires_minutes} minutes. If you did not create an account, ignore this email.</p>"""
    text = (
        f"Your verification code is {code}.\n"
        f"The code expires in {expires_minutes} minutes. If you did not create an account, ignore this email."
    )
    return "Verify your email address" + SUBJECT_SUFFIX, _layout(_greeting(user_name), body), text


def render_welcome(user_name: Optional[str]) -> Tuple[str, str, str]:
    body = f"""<p>Your email address is verified. You can start practicing for the TOEIC now.</p>
    <p>Questions? Reply to this email and we will help.</p>"""
    text = "Your email address is verified. You can start practicing for the TOEIC now."
    return f"Welcome to {config.APP_NAME}", _layout(_greeting(user_name), body, config.FRONTEND_URL, "Start studying"), text


def render_password_reset(user_name: Optional[str], reset_url: str, expires_minutes: int) -> Tuple[str, str, str]:
    body = f"""<p>We received a request to reset your password.</p>
    <p>The link expires in {expires_minutes} minutes and can be used once. If you did not ask for this, ignore this email; your password stays the same.</p>"""
    text = (
        "We received a request to reset your password.\n"
        f"Open this link within {expires_minutes} minutes: {reset_url}\n"
        "If you did not ask for this, ignore this email."
    )
    return "Reset your password" + SUBJECT_SUFFIX, _layout(_greeting(user_name), body, reset_url, "Reset password"), text
