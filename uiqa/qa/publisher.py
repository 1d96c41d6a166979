"""Publish a run report: PR comment, commit status, Jira echo.

The PR comment is the primary deliverable and is overwritten in place on
every run (keyed by ``REPORT_MARKER``). The Jira comment is best-effort: a
failure there is logged and never undoes the GitHub side.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from ..exceptions import IntegrationError
from ..integrations.github_client import GitHubClient
from ..integrations.jira_client import JiraClient
from .models import RunReport
from .report import REPORT_MARKER, commit_status_for, render_jira_comment, render_pr_comment

logger = logging.getLogger(__name__)


@dataclass
class PublishOutcome:
    comment_id: int
    state: str
    description: str
    jira_commented: bool = False


class ReportPublisher:

    def __init__(self, github: GitHubClient, jira: Optional[JiraClient] = None):
        self.github = github
        self.jira = jira

    async def publish(
        self,
        report: RunReport,
        pr_number: int,
        head_sha: str,
        pr_url: str = "",
    ) -> PublishOutcome:
        body = render_pr_comment(report)
        comment_id = await self.github.post_or_update_comment(pr_number, body, REPORT_MARKER)
        logger.info(f"publish: report comment {comment_id} on PR #{pr_number}")

        state, description = commit_status_for(report)
        await self.github.set_commit_status(head_sha, state, description)

        outcome = PublishOutcome(comment_id=comment_id, state=state, description=description)
        if report.ticket_key and self.jira is not None:
            outcome.jira_commented = await self._echo_to_jira(report, pr_url)
        else:
            logger.info("publish: no Jira ticket key, skipping Jira comment")
        return outcome

    async def _echo_to_jira(self, report: RunReport, pr_url: str) -> bool:
        text = render_jira_comment(report, pr_url)
        logger.info(f"publish: posting results to Jira {report.ticket_key} ({len(text)} chars)")
        try:
            await self.jira.add_comment(report.ticket_key, text)
        except IntegrationError as e:
            logger.error(f"Failed to post comment to Jira ticket {report.ticket_key}: {e}")
            if e.details:
                logger.error(f"Jira API response: {e.details}")
            return False
        logger.info(f"publish: posted results to Jira ticket {report.ticket_key}")
        return True
