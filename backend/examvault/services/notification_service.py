"""
E-mail notifications for institutes and students.

Review notifications carry the content handle of an approved exam but never
its key.
"""

import logging
from datetime import datetime
from html import escape
from typing import Optional

from .mail_service import Mailer

logger = logging.getLogger(__name__)


def exam_review_template(
    institute_name: str,
    exam_name: str,
    status: str,
    feedback: Optional[str] = None,
    handle: Optional[str] = None,
) -> str:
    color = "#0F766E" if status == "approved" else "#991B1B"
    parts = [
        '<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">',
        "<h1>Exam Review Complete</h1>",
        f'<p style="color: {color}; font-weight: 600;">{escape(status.upper())}</p>',
        f"<p>Dear {escape(institute_name or 'Institute')},</p>",
        f"<p>Your exam request for <strong>{escape(exam_name)}</strong> has been reviewed and {escape(status)}.</p>",
    ]
    if feedback:
        parts.append(f"<p><strong>Reviewer Feedback:</strong><br>{escape(feedback)}</p>")
    if status == "approved":
        parts.append(
            "<h3>Exam Access Details</h3>"
            f'<p>IPFS Hash: <code style="word-break: break-all;">{escape(handle or "")}</code></p>'
            "<p>The encryption key will be provided through a secure channel.</p>"
        )
    else:
        parts.append("<p>Please review the feedback above and submit a new request after making the necessary adjustments.</p>")
    parts.append("</div>")
    return "\n".join(parts)


def exam_result_template(
    student_name: str,
    exam_name: str,
    score: float,
    correct_answers: int,
    total_questions: int,
    submitted_at: Optional[datetime],
    dashboard_url: str,
) -> str:
    submitted = submitted_at.strftime("%B %d, %Y %I:%M %p UTC") if submitted_at else "N/A"
    return "\n".join([
        '<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">',
        "<h1>Exam Results Available</h1>",
        f"<p>Dear {escape(student_name or 'Student')},</p>",
        f"<p>Results for <strong>{escape(exam_name)}</strong> have been released.</p>",
        f"<p>Score: <strong>{score:.2f}%</strong> ({correct_answers} of {total_questions} correct)</p>",
        f"<p>Submitted: {escape(submitted)}</p>",
        f'<p><a href="{escape(dashboard_url, quote=True)}">View your results</a></p>',
        "</div>",
    ])


class ExamNotifier:
    def __init__(self, mailer: Optional[Mailer], frontend_url: str = ""):
        self.mailer = mailer
        self.frontend_url = frontend_url.rstrip("/")

    async def _send(self, to: str, subject: str, html: str):
        if self.mailer is None:
            logger.info("Mail is not configured, skipping '%s' to %s", subject, to)
            return
        await self.mailer.send(to, subject, html)

    async def notify_review(
        self,
        to: str,
        institute_name: str,
        exam_name: str,
        status: str,
        feedback: Optional[str] = None,
        handle: Optional[str] = None,
    ):
        html = exam_review_template(institute_name, exam_name, status, feedback, handle)
        await self._send(to, "Exam Review Update", html)

    async def notify_result(
        self,
        to: str,
        student_name: str,
        exam_name: str,
        session_id,
        score: float,
        correct_answers: int,
        total_questions: int,
        submitted_at: Optional[datetime],
    ):
        dashboard_url = f"{self.frontend_url}/student/results/{session_id}"
        html = exam_result_template(
            student_name, exam_name, score, correct_answers, total_questions, submitted_at, dashboard_url
        )
        await self._send(to, f"Exam Results Available - {exam_name}", html)

    def close(self):
        if self.mailer is not None:
            self.mailer.close()
