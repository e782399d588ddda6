"""Report contract and the prompts that ask the model to honor it."""

from typing import Optional

REQUIRED_REPORT_HEADINGS = (
    "# Paper",
    "## 1. Key Problems and Challenges",
    "## 2. How This Paper Solves Them",
    "## 3. Related Work and Key Differences",
    "## 4. Future Directions",
    "## References",
)

REQUIRED_QUESTION_HEADINGS = REQUIRED_REPORT_HEADINGS[1:5]

RELATED_WORK_HEADING = "## 3. Related Work and Key Differences"
REFERENCES_HEADING = "## References"

REPORT_TEMPLATE = "\n\n".join(
    [f"{REQUIRED_REPORT_HEADINGS[0]}\n{REQUIRED_REPORT_HEADINGS[1]}", *REQUIRED_REPORT_HEADINGS[2:]]
) + "\n"


def build_system_prompt() -> str:
    return """You are a deep research agent focused on academic paper analysis.

Use tools intentionally and keep the report grounded in cited sources.

Workflow:
1. Start from the provided seed paper URL.
2. Create a report skeleton first with the required headings.
3. Iterate: read report draft -> identify gaps -> search related work -> extract evidence -> write updated report.
4. Stop naturally when no more tool calls are needed.

Hard requirements for the final report:
- Answer these four questions:
  1) Key problems/challenges in the seed paper
  2) How the seed paper solves them
  3) How related work solves similar problems and key differences
  4) Future directions the seed paper does not explore
- Include a References section with valid source URLs.
- Use inline numeric citations like [1], [2], ... and map them in References.

Write concise, factual prose. Preserve provenance and avoid unsupported claims."""


def build_user_prompt(seed_url: str, report_path: str, sources_path: Optional[str] = None) -> str:
    sources_instruction = (
        f"If you maintain a provenance map, write it to `{sources_path}` in JSON format."
        if sources_path else ""
    )
    return f"""Seed paper URL: {seed_url}

Work only through the tool interface.

Primary artifact path:
- report markdown: `{report_path}`
{sources_instruction}

Required report template:
```markdown
{REPORT_TEMPLATE.strip()}
```

Execution instructions:
1. First call `write` to create the initial template at `{report_path}`.
2. Use `web_search` and `extract_source` to gather evidence.
3. Re-read and fully rewrite the report with `write` as needed.
4. Ensure references are traceable URLs and inline citations are consistent.
5. Finish when the report is complete and no more tools are needed."""
