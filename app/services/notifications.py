import logging
import os
import smtplib
from email.message import EmailMessage
from typing import Any

from app.core.errors import DependencyError
from app.services.durations import format_clock, format_total_hours

logger = logging.getLogger(__name__)


def _smtp_settings() -> dict[str, Any]:
    return {
        "host": os.getenv("SMTP_HOST"),
        "port": int(os.getenv("SMTP_PORT", "587")),
        "username": os.getenv("SMTP_USERNAME"),
        "password": os.getenv("SMTP_PASSWORD"),
        "tls": os.getenv("SMTP_TLS", "1").strip().lower() not in {"0", "false", "no", "off"},
        "mail_from": os.getenv("MAIL_FROM") or os.getenv("SMTP_USERNAME"),
    }


def build_entry_notification(entry) -> dict[str, Any]:
    """Snapshot of an entry taken inside the request, so delivery never touches the DB."""
    company = entry.company
    crew_chief = entry.crew_chief
    return {
        "entry_id": entry.id,
        "unique_id": entry.unique_id,
        "job_id": entry.job_id,
        "job_type": entry.job_type,
        "entry_date": entry.entry_date.isoformat(),
        "company_name": company.name if company is not None else None,
        "company_email": company.email if company is not None else None,
        "email_enabled": bool(company.email_enabled) if company is not None else False,
        "crew_chief_name": crew_chief.name if crew_chief is not None else None,
        "time_entries": [
            {"time_in": format_clock(iv.time_in), "time_out": format_clock(iv.time_out)}
            for iv in entry.intervals
        ],
    }


def format_entry_email(payload: dict[str, Any]) -> tuple[str, str]:
    intervals = payload.get("time_entries") or []
    lines = "\n".join(
        f"    {i}. Time In: {iv['time_in']} | Time Out: {iv['time_out']}"
        for i, iv in enumerate(intervals, start=1)
    )

    subject = f"New Timesheet Entry - {payload['job_id']} - {payload['entry_date']}"
    body = (
        "New Timesheet Entry Submitted\n"
        "==============================\n"
        "\n"
        f"Entry ID: {payload['unique_id']}\n"
        f"Job ID: {payload['job_id']}\n"
        f"Job Type: {payload.get('job_type') or '-'}\n"
        f"Date: {payload['entry_date']}\n"
        "\n"
        f"Crew Chief: {payload.get('crew_chief_name')}\n"
        f"Company: {payload.get('company_name')}\n"
        "\n"
        "Time Entries:\n"
        f"{lines}\n"
        "\n"
        f"Total Hours: {format_total_hours(intervals)}\n"
        "\n"
        "---\n"
        "This is an automated notification from the Timesheet Management System."
    )
    return subject, body


def send_entry_email(payload: dict[str, Any]) -> bool:
    """Returns False when the message was skipped. Raises DependencyError on transport failure."""
    if not payload.get("email_enabled") or not payload.get("company_email"):
        logger.info(
            "Email notifications disabled for company",
            extra={"company_name": payload.get("company_name"), "unique_id": payload.get("unique_id")},
        )
        return False

    smtp = _smtp_settings()
    if not smtp["host"] or not smtp["mail_from"]:
        logger.info("SMTP not configured; skipping notification", extra={"unique_id": payload.get("unique_id")})
        return False

    subject, body = format_entry_email(payload)
    msg = EmailMessage()
    msg["Subject"] = subject
    msg["From"] = smtp["mail_from"]
    msg["To"] = payload["company_email"]
    msg.set_content(body)

    try:
        with smtplib.SMTP(smtp["host"], smtp["port"], timeout=30) as s:
            if smtp["tls"]:
                s.starttls()
            if smtp["username"] and smtp["password"]:
                s.login(smtp["username"], smtp["password"])
            s.send_message(msg)
    except (smtplib.SMTPException, OSError) as exc:
        raise DependencyError("Email delivery failed") from exc

    logger.info(
        "Notification email sent",
        extra={"to": payload["company_email"], "unique_id": payload.get("unique_id")},
    )
    return True


def dispatch_entry_notification(payload: dict[str, Any]) -> None:
    # Runs after the response; failures are logged and never reach the caller.
    try:
        send_entry_email(payload)
    except Exception:
        logger.exception(
            "Failed to send notification email",
            extra={"unique_id": payload.get("unique_id"), "job_id": payload.get("job_id")},
        )
