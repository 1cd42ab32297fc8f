"""Frontmatter utilities for vault markdown documents."""

from __future__ import annotations


def parse_frontmatter(content: str) -> tuple[dict[str, str], str]:
    """Parse YAML-style frontmatter from markdown content.

    Returns (fields_dict, body_text).
    If no frontmatter is found, returns ({}, full_content).
    """
    if not content.startswith("---"):
        return {}, content

    parts = content.split("---", 2)
    if len(parts) < 3:
        return {}, content

    meta: dict[str, str] = {}
    for line in parts[1].strip().split("\n"):
        if ":" in line:
            key, _, value = line.partition(":")
            meta[key.strip()] = value.strip()

    # Only the newline that terminates the closing delimiter belongs to the header.
    body = parts[2][1:] if parts[2].startswith("\n") else parts[2]
    return meta, body.strip()


def build_frontmatter(fields: dict[str, str], body: str = "") -> str:
    """Build a markdown document with frontmatter.

    Values must be single-line; the body is written verbatim after the header.
    """
    lines = ["---"]
    for key, value in fields.items():
        lines.append(f"{key}: {value}")
    lines.append("---")
    if body:
        lines.append(body)
    return "\n".join(lines)
