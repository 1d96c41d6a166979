"""Mode orchestration: detect, request and analyze.

Each mode is one short-lived invocation. Configuration is validated before
any network call; partial failures (one ticket, one design URL, one
screenshot) are logged and skipped; an empty required set ends the run
informationally rather than failing it.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import urlsplit

from . import settings
from .ai.base import AICollaborator
from .ai.factory import create_collaborator
from .config import ActionConfig
from .exceptions import FigmaClientError, GitHubClientError, JiraClientError
from .integrations.figma_cache import FigmaCache
from .integrations.figma_client import FigmaClient
from .integrations.github_client import GitHubClient, PullRequestInfo
from .integrations.image_utils import media_type_for
from .integrations.jira_client import JiraClient, normalize_base_url
from .integrations.links import (
    extract_ticket_key_from_url,
    find_ticket_urls,
    parse_design_url,
    validate_design_links,
)
from .qa.aggregator import compare_all
from .qa.annotator import annotate, save_annotation
from .qa.matcher import match_screenshots
from .qa.models import DesignReference, PairComparison, RunReport, ScreenshotCandidate
from .qa.publisher import ReportPublisher
from .qa.report import (
    REQUEST_MARKER,
    pending_status_description,
    render_screenshot_request,
)
from .qa.screenshots import select_screenshot_comment

logger = logging.getLogger(__name__)


@dataclass
class ModeResult:
    outputs: Dict[str, str] = field(default_factory=dict)
    skipped: Optional[str] = None  # Reason for an informational early exit


# ---------------------------------------------------------------------------
# Action outputs and event payload
# ---------------------------------------------------------------------------


def write_outputs(outputs: Dict[str, str], output_path: Optional[str]) -> None:
    """Append ``name=value`` lines to the GITHUB_OUTPUT file (heredoc for multi-line values)."""
    for name, value in outputs.items():
        logger.info(f"output {name}={value if len(value) < 500 else value[:500] + '...'}")
    if not output_path:
        return
    with open(output_path, "a", encoding="utf-8") as f:
        for name, value in outputs.items():
            if "\n" in value:
                delimiter = f"ghadelimiter_{uuid.uuid4().hex}"
                f.write(f"{name}<<{delimiter}\n{value}\n{delimiter}\n")
            else:
                f.write(f"{name}={value}\n")


def load_event_payload(event_path: Optional[str]) -> Dict[str, Any]:
    if not event_path or not os.path.exists(event_path):
        return {}
    try:
        with open(event_path, encoding="utf-8") as f:
            payload = json.load(f)
    except (OSError, ValueError) as e:
        logger.warning(f"Could not read event payload {event_path}: {e}")
        return {}
    return payload if isinstance(payload, dict) else {}


def pr_number_from(config: ActionConfig, payload: Dict[str, Any]) -> Optional[int]:
    if config.pr_number:
        return config.pr_number
    for key in ("pull_request", "issue"):
        number = (payload.get(key) or {}).get("number")
        if isinstance(number, int):
            return number
    return None


def pr_from_payload(payload: Dict[str, Any], number: int) -> Optional[PullRequestInfo]:
    pr = payload.get("pull_request") or {}
    sha = (pr.get("head") or {}).get("sha")
    if pr.get("number") != number or not sha:
        return None
    return PullRequestInfo(
        number=number,
        title=pr.get("title") or "",
        body=pr.get("body") or "",
        head_sha=sha,
        html_url=pr.get("html_url") or "",
    )


# ---------------------------------------------------------------------------
# Runner
# ---------------------------------------------------------------------------


class ModeRunner:
    """Runs one mode against injected or config-built clients.

    Clients passed in are used as-is; missing ones are built from
    ``config`` on first use and closed by ``close()``.
    """

    def __init__(
        self,
        config: ActionConfig,
        github: Optional[GitHubClient] = None,
        jira: Optional[JiraClient] = None,
        figma: Optional[FigmaClient] = None,
        collaborator: Optional[AICollaborator] = None,
    ):
        self.config = config
        self._github = github
        self._jira = jira
        self._figma = figma
        self._collaborator = collaborator
        self._owned: List[Any] = []
        self._payload: Optional[Dict[str, Any]] = None

    # --- clients ---

    @property
    def github(self) -> GitHubClient:
        if self._github is None:
            self._github = GitHubClient(
                token=self.config.github_token,
                repository=self.config.github_repository,
                api_url=self.config.github_api_url,
            )
            self._owned.append(self._github)
        return self._github

    @property
    def jira(self) -> JiraClient:
        if self._jira is None:
            self._jira = JiraClient(
                base_url=self.config.jira_base_url,
                email=self.config.jira_email,
                api_token=self.config.jira_api_token,
            )
            self._owned.append(self._jira)
        return self._jira

    @property
    def figma(self) -> FigmaClient:
        if self._figma is None:
            self._figma = FigmaClient(
                token=self.config.figma_access_token,
                cache=None if self.config.figma_mock_mode else FigmaCache(),
                mock_mode=self.config.figma_mock_mode,
                design_hosts=self.config.design_hosts,
            )
            self._owned.append(self._figma)
        return self._figma

    @property
    def collaborator(self) -> AICollaborator:
        if self._collaborator is None:
            self._collaborator = create_collaborator(self.config)
            self._owned.append(self._collaborator)
        return self._collaborator

    async def close(self) -> None:
        for client in self._owned:
            await client.close()
        self._owned = []

    @property
    def payload(self) -> Dict[str, Any]:
        if self._payload is None:
            self._payload = load_event_payload(self.config.event_path)
        return self._payload

    @property
    def ticket_hosts(self) -> List[str]:
        hosts = list(self.config.ticket_hosts)
        if self.config.jira_base_url:
            host = urlsplit(normalize_base_url(self.config.jira_base_url)).hostname
            if host:
                hosts.append(host)
        return hosts

    # --- shared steps ---

    def _require_pr_number(self) -> int:
        number = pr_number_from(self.config, self.payload)
        if number is None:
            raise GitHubClientError(
                "Could not determine the PR number (set pr_number or run on a "
                "pull_request / issue_comment event)"
            )
        return number

    async def _pull_request(self, number: int, prefer_payload: bool = True) -> PullRequestInfo:
        if prefer_payload:
            pr = pr_from_payload(self.payload, number)
            if pr is not None:
                return pr
        return await self.github.get_pull_request(number)

    async def discover_design_links(self, pr_body: str) -> Tuple[List[str], str]:
        """Ticket URLs in the PR body -> ticket text -> validated design links.

        Returns the deduplicated links and the first ticket key seen ("" if none).
        """
        links: List[str] = []
        ticket_key = ""
        for ticket_url in find_ticket_urls(pr_body, self.ticket_hosts):
            key = extract_ticket_key_from_url(ticket_url)
            if not key:
                logger.warning(f"No ticket key in {ticket_url}")
                continue
            ticket_key = ticket_key or key
            try:
                ticket = await self.jira.get_ticket_content(key)
            except JiraClientError as e:
                logger.warning(f"Error fetching Jira ticket {key}: {e}")
                continue
            logger.info(f"=== JIRA TICKET CONTENT START ({key}) ===\n{ticket.full_text}")
            logger.info("=== JIRA TICKET CONTENT END ===")

            extraction = await self.collaborator.extract_design_links(ticket.full_text)
            valid = validate_design_links(extraction.links, self.config.design_hosts)
            logger.info(
                f"{key}: {len(valid)}/{len(extraction.links)} valid design link(s), "
                f"confidence={extraction.confidence}"
            )
            links.extend(valid)

        return list(dict.fromkeys(links)), ticket_key

    async def resolve_designs(self, links: List[str]) -> List[DesignReference]:
        designs: List[DesignReference] = []
        for i, url in enumerate(links):
            if i > 0 and not self.config.figma_mock_mode and settings.FIGMA_REQUEST_DELAY > 0:
                await asyncio.sleep(settings.FIGMA_REQUEST_DELAY)
            info = parse_design_url(url, self.config.design_hosts)
            try:
                images = await self.figma.resolve_design_url(url)
            except FigmaClientError as e:
                logger.warning(f"Error fetching Figma images from {url}: {e}")
                continue
            for image in images:
                designs.append(DesignReference(
                    source_url=url,
                    file_key=info.file_key if info else "",
                    node_id=image.node_id,
                    data=image.data,
                    media_type=media_type_for(image.data, image.image_url or ""),
                ))
        return designs

    async def download_screenshots(self, urls: List[str], comment_id: int) -> List[ScreenshotCandidate]:
        screenshots: List[ScreenshotCandidate] = []
        for url in urls:
            try:
                data = await self.github.download_image(url)
            except GitHubClientError as e:
                logger.warning(f"Could not download screenshot {url}: {e}")
                continue
            screenshots.append(ScreenshotCandidate(
                source_url=url,
                data=data,
                media_type=media_type_for(data, url),
                comment_id=comment_id,
            ))
        return screenshots

    def _annotate(self, pc: PairComparison, index: int) -> None:
        if not pc.result.issues:
            return
        try:
            pc.annotation = annotate(pc.screenshot.data, pc.result.issues)
        except (OSError, ValueError) as e:
            logger.warning(f"Could not annotate screenshot {pc.screenshot.source_url}: {e}")
            return
        if self.config.annotations_dir and pc.annotation.has_annotations:
            try:
                save_annotation(pc.annotation, self.config.annotations_dir, f"comparison-{index}.png")
            except OSError as e:
                logger.warning(f"Could not write annotated screenshot: {e}")

    # --- modes ---

    async def run(self) -> ModeResult:
        self.config.validate_for_mode()
        logger.info(f"Running UI QA Agent in {self.config.mode} mode")
        handler = {
            "detect": self.detect,
            "request": self.request,
            "analyze": self.analyze,
        }[self.config.mode]
        result = await handler()
        write_outputs(result.outputs, self.config.output_path)
        if result.skipped:
            logger.info(result.skipped)
        return result

    async def detect(self) -> ModeResult:
        number = self._require_pr_number()
        pr = await self._pull_request(number)
        logger.info(f"Scanning PR #{number} description for Jira links...")

        links, ticket_key = await self.discover_design_links(pr.body)
        outputs = {
            "has_design_links": "true" if links else "false",
            "design_links": json.dumps(links),
            "ticket": ticket_key,
        }
        if links and pr.head_sha:
            await self.github.set_commit_status(pr.head_sha, "pending", pending_status_description(len(links)))
        logger.info(f"detect: {len(links)} design link(s), ticket={ticket_key or '-'}")
        return ModeResult(outputs=outputs)

    async def request(self) -> ModeResult:
        links = self.config.figma_links
        if not links:
            return ModeResult(skipped="No Figma links provided, skipping screenshot request")
        number = self._require_pr_number()
        logger.info(f"Requesting screenshots for {len(links)} Figma design(s)...")
        comment_id = await self.github.post_or_update_comment(
            number, render_screenshot_request(links), REQUEST_MARKER,
        )
        logger.info(f"Posted screenshot request comment: {comment_id}")
        return ModeResult(outputs={"comment_id": str(comment_id)})

    async def analyze(self) -> ModeResult:
        number = self._require_pr_number()
        pr = await self._pull_request(number, prefer_payload=False)
        logger.info(f"Analyzing screenshots on PR #{number}...")

        links, ticket_key = await self.discover_design_links(pr.body)
        if not links:
            return ModeResult(skipped="No Figma links found, skipping analysis")

        comment = select_screenshot_comment(await self.github.list_comments(number), self.config.comment_id)
        if comment is None:
            return ModeResult(skipped="No screenshots found in comment(s)")
        logger.info(f"Using {len(comment.image_urls)} screenshot(s) from comment {comment.id}")

        screenshots = await self.download_screenshots(comment.image_urls, comment.id)
        if not screenshots:
            return ModeResult(skipped="Could not download any screenshots")

        designs = await self.resolve_designs(links)
        if not designs:
            logger.warning("Could not fetch any Figma images")
            return ModeResult(skipped="No Figma images resolved, skipping analysis")
        logger.info(f"Comparing {len(screenshots)} screenshot(s) against {len(designs)} design image(s)")

        matching = await match_screenshots(
            self.collaborator,
            [s.image for s in screenshots],
            [d.image for d in designs],
        )
        pairs = [
            (
                designs[m.design_index].image,
                screenshots[m.screenshot_index].image,
                "Comparing implementation screenshot against Figma design from "
                f"{designs[m.design_index].source_url} (node {designs[m.design_index].node_id})",
            )
            for m in matching.matches
        ]
        results = await compare_all(self.collaborator, pairs)

        report = RunReport(
            comparisons=[
                PairComparison(
                    match=m,
                    design=designs[m.design_index],
                    screenshot=screenshots[m.screenshot_index],
                    result=result,
                )
                for m, result in zip(matching.matches, results)
            ],
            unmatched_screenshots=[screenshots[i] for i in matching.unmatched_screenshots],
            unmatched_designs=[designs[i] for i in matching.unmatched_designs],
            ticket_key=ticket_key or None,
        )
        for i, pc in enumerate(report.comparisons, start=1):
            self._annotate(pc, i)

        pr_url = pr.html_url or f"https://github.com/{self.config.github_repository}/pull/{number}"
        outcome = await ReportPublisher(self.github, self.jira).publish(
            report, number, pr.head_sha, pr_url,
        )
        return ModeResult(outputs={
            "result": json.dumps([pc.as_dict() for pc in report.comparisons]),
            "status": outcome.state,
        })


async def run_mode(config: ActionConfig, **clients: Any) -> ModeResult:
    runner = ModeRunner(config, **clients)
    try:
        return await runner.run()
    finally:
        await runner.close()
