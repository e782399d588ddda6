"""Markdown report to standalone HTML page."""

import html
import markdown

DEFAULT_STYLES = """
:root {
  color-scheme: light;
  font-family: ui-sans-serif, system-ui, -apple-system, Segoe UI, Roboto, Helvetica, Arial, sans-serif;
}
body { margin: 0; padding: 2rem; background: #f6f8fb; color: #1f2937; }
main {
  max-width: 900px; margin: 0 auto; padding: 2rem;
  background: #ffffff; border: 1px solid #e5e7eb; border-radius: 12px;
}
h1, h2, h3, h4, h5, h6 { color: #0f172a; }
pre { background: #0f172a; color: #e2e8f0; padding: 1rem; overflow: auto; border-radius: 8px; }
code {
  font-family: ui-monospace, SFMono-Regular, Menlo, Consolas, "Liberation Mono", monospace;
  background: #eef2ff; padding: 0.1rem 0.3rem; border-radius: 4px;
}
pre code { background: transparent; padding: 0; }
a { color: #1d4ed8; text-decoration: none; }
a:hover { text-decoration: underline; }
blockquote { margin: 0; padding: 0.5rem 1rem; border-left: 3px solid #94a3b8; background: #f8fafc; }
"""


def render_markdown(md: str) -> str:
    converter = markdown.Markdown(extensions=["tables", "fenced_code", "sane_lists"])
    # Raw HTML from the model is escaped, not passed through
    converter.preprocessors.deregister("html_block")
    converter.inlinePatterns.deregister("html")
    return converter.convert(md.replace("\r\n", "\n"))


def render_report_html(md: str, title: str = "Deep Research Report", styles: str = DEFAULT_STYLES) -> str:
    body = render_markdown(md)
    return f"""<!doctype html>
<html lang="en">
<head>
  <meta charset="utf-8" />
  <meta name="viewport" content="width=device-width, initial-scale=1" />
  <title>{html.escape(title)}</title>
  <style>
{styles}
  </style>
</head>
<body>
  <main>
{body}
  </main>
</body>
</html>
"""
