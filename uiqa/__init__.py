"""UI QA bot package.

Links Jira tickets, Figma designs and GitHub pull requests, then asks a
vision-capable model to compare implementation screenshots with the designs.

Subpackages:
- integrations: REST clients (Jira, Figma, GitHub) and link extractors
- ai: AI collaborator interface, prompts and provider adapters
- qa: Matching, comparison aggregation, annotation and report publishing
"""

__version__ = "0.3.0"
