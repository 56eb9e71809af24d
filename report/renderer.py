"""
Report renderer: turn a ScoringResult into a ranked table.
Text, Markdown, CSV and JSON are built in-process; HTML uses the Jinja2 template in report/templates.
"""

import csv
import io
import json
import os
from typing import Any, Dict, List, Optional
from jinja2 import Environment, FileSystemLoader, select_autoescape
from scoring.engine import ScoringResult

FORMATS = ('text', 'md', 'csv', 'json', 'html')
TEMPLATE_DIR = os.path.join(os.path.dirname(__file__), 'templates')


def _format_score(value: float) -> str:
    return f"{value:.2f}"


def _rows(result: ScoringResult, debug: bool) -> List[Dict[str, Any]]:
    rows = []
    for rank, item in enumerate(result.items, start=1):
        row = {
            'rank': rank,
            'url': item.url,
            'title': item.title,
            'project': item.project_path,
            'score': item.score,
        }
        if debug:
            row['signals'] = result.breakdown(item)
        rows.append(row)
    return rows


def _signal_names(result: ScoringResult) -> List[str]:
    return list(result.contributions.keys())


def render_text(result: ScoringResult, debug: bool = False) -> str:
    """Render an aligned plain-text table: url, score and optionally one column per signal."""
    header = ['url', 'score']
    if debug:
        header += _signal_names(result)
    table = [header]
    for row in _rows(result, debug):
        line = [row['url'], _format_score(row['score'])]
        if debug:
            line += [_format_score(v) for v in row['signals'].values()]
        table.append(line)
    widths = [max(len(r[i]) for r in table) for i in range(len(header))]
    return "\n".join(" ".join(cell.ljust(widths[i]) for i, cell in enumerate(r)).rstrip() for r in table)


def render_markdown(result: ScoringResult, debug: bool = False) -> str:
    header = ['#', 'URL', 'Score']
    if debug:
        header += _signal_names(result)
    md = ["| " + " | ".join(header) + " |", "|" + "---|" * len(header)]
    for row in _rows(result, debug):
        cells = [str(row['rank']), row['url'], _format_score(row['score'])]
        if debug:
            cells += [_format_score(v) for v in row['signals'].values()]
        md.append("| " + " | ".join(cells) + " |")
    return "\n".join(md)


def render_csv(result: ScoringResult, debug: bool = False) -> str:
    output = io.StringIO()
    writer = csv.writer(output)
    header = ['rank', 'url', 'title', 'project', 'score']
    if debug:
        header += _signal_names(result)
    writer.writerow(header)
    for row in _rows(result, debug):
        line = [row['rank'], row['url'], row['title'], row['project'], row['score']]
        if debug:
            line += list(row['signals'].values())
        writer.writerow(line)
    return output.getvalue()


def render_json(result: ScoringResult, debug: bool = False) -> str:
    return json.dumps(_rows(result, debug), indent=2, ensure_ascii=False)


def render_html(result: ScoringResult, debug: bool = False, generated_at: Optional[str] = None, user: Optional[str] = None) -> str:
    env = Environment(loader=FileSystemLoader(TEMPLATE_DIR), autoescape=select_autoescape(['html', 'xml', 'j2']))
    tmpl = env.get_template('ranking.html.j2')
    return tmpl.render(
        rows=_rows(result, debug),
        signals=_signal_names(result) if debug else [],
        generated_at=generated_at,
        user=user,
        format_score=_format_score,
    )


def render(result: ScoringResult, fmt: str = 'text', debug: bool = False, generated_at: Optional[str] = None, user: Optional[str] = None) -> str:
    """Main render function. Unknown formats fall back to the text table."""
    fmt_l = (fmt or 'text').lower()
    if fmt_l in ('md', 'markdown'):
        return render_markdown(result, debug)
    if fmt_l == 'csv':
        return render_csv(result, debug)
    if fmt_l == 'json':
        return render_json(result, debug)
    if fmt_l in ('html', 'htm'):
        return render_html(result, debug, generated_at=generated_at, user=user)
    return render_text(result, debug)
