from __future__ import annotations

import datetime as _dt
import logging
from pathlib import Path
from typing import Any, Dict, Mapping

from jinja2 import Template

logger = logging.getLogger(__name__)

# Key order of the plain-text report.
REPORT_KEYS = (
    "invocation",
    "timestamp",
    "operator",
    "input",
    "min_depth",
    "min_frac",
    "min_qual",
    "with_reference",
    "allow_missing",
    "missing_char",
    "gap_char",
    "num_samples",
    "sample_names",
    "num_sites",
    "num_bases",
)

_TXT_TEMPLATE = Template(
    """{% for key, value in items %}{{ key }}\t{{ value }}
{% endfor %}"""
)

_REPORT_TEMPLATE = Template(
    """<!doctype html>
<html lang="en">
<head>
  <meta charset="utf-8">
  <title>snpcore report: {{ prefix }}</title>
  <style>
    body { font-family: Arial, Helvetica, sans-serif; margin: 24px; }
    code { background: #f6f8fa; padding: 2px 4px; border-radius: 4px; }
    table { border-collapse: collapse; margin-top: 0.6em; }
    th, td { border: 1px solid #ddd; padding: 8px; }
    th { background: #f2f2f2; text-align: left; }
    .grid { display: grid; grid-template-columns: 1fr 1fr; gap: 16px; }
    .card { border: 1px solid #ddd; border-radius: 8px; padding: 12px; }
    .small { color: #666; font-size: 0.9em; }
    img { max-width: 100%; height: auto; border: 1px solid #eee; border-radius: 6px; }
  </style>
</head>
<body>

<h1>snpcore report</h1>
<p class="small">Generated: {{ generated_at }}</p>

<h2>Run summary</h2>
<div class="grid">
  <div class="card">
    <h3>Input</h3>
    <table>
      <tr><th>VCF</th><td><code>{{ s.input }}</code></td></tr>
      <tr><th>Samples</th><td>{{ s.num_samples }}</td></tr>
      <tr><th>Records seen</th><td>{{ s.records_seen }}</td></tr>
    </table>
  </div>
  <div class="card">
    <h3>Thresholds</h3>
    <table>
      <tr><th>Min depth</th><td>{{ s.min_depth }}</td></tr>
      <tr><th>Min allele fraction</th><td>{{ s.min_frac }}</td></tr>
      <tr><th>Min site QUAL</th><td>{{ s.min_qual }}</td></tr>
      <tr><th>Reference row</th><td>{{ s.with_reference }}</td></tr>
      <tr><th>Substitute missing calls</th><td>{{ s.allow_missing }}</td></tr>
    </table>
  </div>
</div>

<h2>Core genome</h2>
<table>
  <tr><th>Core sites</th><td>{{ s.num_sites }}</td></tr>
  <tr><th>Core bases</th><td>{{ s.num_bases }}</td></tr>
</table>

<h2>Skipped records</h2>
<table>
  {% for reason, n in s.skipped.items() %}
  <tr><th>{{ reason }}</th><td>{{ n }}</td></tr>
  {% endfor %}
</table>

<h2>Samples</h2>
<p>{% for name in s.sample_names %}<code>{{ name }}</code> {% endfor %}</p>

<h2>Plots</h2>
<div class="grid">
  <div class="card">
    <h3>Skip reasons</h3>
    <img src="{{ plots.skip_reasons }}" alt="skip reasons">
  </div>
  <div class="card">
    <h3>Core site positions</h3>
    <img src="{{ plots.site_positions }}" alt="core site positions">
  </div>
</div>

<h2>Outputs</h2>
<ul>
  {% for name in outputs %}
  <li><code>{{ name }}</code></li>
  {% endfor %}
</ul>

<hr>
<p class="small">snpcore {{ version }}</p>
</body>
</html>"""
)


def _format_value(value: Any) -> str:
    if isinstance(value, (list, tuple)):
        return ",".join(str(v) for v in value)
    return str(value)


def write_report_txt(path: str | Path, summary: Mapping[str, Any]) -> Path:
    """Write the key/value run report."""
    items = [(key, _format_value(summary.get(key, ""))) for key in REPORT_KEYS]
    path = Path(path)
    path.write_text(_TXT_TEMPLATE.render(items=items), encoding="utf-8")
    return path


def render_report(
    *,
    outdir: str | Path,
    prefix: str,
    version: str,
    summary: Dict[str, Any],
    plots: Dict[str, str],
    outputs: Dict[str, str],
) -> Path:
    outdir = Path(outdir)
    outdir.mkdir(parents=True, exist_ok=True)

    html = _REPORT_TEMPLATE.render(
        generated_at=_dt.datetime.now().isoformat(timespec="seconds"),
        version=version,
        prefix=prefix,
        s=summary,
        plots=plots,
        outputs=sorted(outputs.values()),
    )

    out_path = outdir / "report.html"
    out_path.write_text(html, encoding="utf-8")
    return out_path
