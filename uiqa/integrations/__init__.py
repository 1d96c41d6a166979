"""REST clients for Jira, Figma and GitHub, plus link extraction and image helpers."""
