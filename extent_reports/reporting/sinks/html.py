"""
HTML report sink.
"""

import json
import shutil
from pathlib import Path
from typing import Any, Dict

import jinja2

from extent_reports.core.config import NetworkMode
from extent_reports.reporting.models import STATUS_PRIORITY
from extent_reports.reporting.serialization import DATA_ISLAND_ID
from extent_reports.reporting.sinks.base import DocumentSink

TEMPLATES_DIR = Path(__file__).resolve().parent.parent / "templates"
ASSETS_DIR = Path(__file__).resolve().parent.parent / "assets"
OFFLINE_ASSETS = {
    "css": ("extent.css", Path("extentreports") / "css" / "extent.css"),
    "js": ("extent.js", Path("extentreports") / "js" / "extent.js"),
}

_JINJA2_ENV_CACHE: Dict[str, jinja2.Environment] = {}


def _environment(template_dir: Path) -> jinja2.Environment:
    """Jinja environment, cached per template directory."""
    key = str(template_dir)
    if key not in _JINJA2_ENV_CACHE:
        _JINJA2_ENV_CACHE[key] = jinja2.Environment(
            loader=jinja2.FileSystemLoader(key),
            autoescape=True,
            trim_blocks=True,
            lstrip_blocks=True,
        )
    return _JINJA2_ENV_CACHE[key]


class HTMLSink(DocumentSink):
    """
    Renders a standalone HTML document.

    The artifact document is embedded as a JSON data island so that
    HTMLImporter can read the report back in append mode. In OFFLINE
    network mode the stylesheet and script are written beside the report.
    """

    format_name = "html"
    extensions = (".html", ".htm")
    template_name = "report.html.j2"

    def create_importer(self):
        from extent_reports.reporting.importers import HTMLImporter
        return HTMLImporter(self.logger)

    def render(self) -> str:
        template = _environment(TEMPLATES_DIR).get_template(self.template_name)
        return template.render(**self._context())

    def _context(self) -> Dict[str, Any]:
        tests = self.ordered_tests()
        counts = {status.value: 0 for status in STATUS_PRIORITY}
        for test in tests:
            counts[test.status.value] += 1

        # No raw "<" inside the script element: "</script" and "<!--" both change how it is parsed
        data_json = json.dumps(self.document()).replace("<", "\\u003c")

        offline = self.config.network_mode == NetworkMode.OFFLINE
        return {
            "config": self.config,
            "tests": tests,
            "counts": {k: v for k, v in counts.items() if v},
            "total": len(tests),
            "system_info": self._system_info,
            "runner_output": self._runner_output,
            "date_format": self.config.date_time_format,
            "offline": offline,
            "css_href": OFFLINE_ASSETS["css"][1].as_posix(),
            "js_href": OFFLINE_ASSETS["js"][1].as_posix(),
            "inline_css": "" if offline else (ASSETS_DIR / "extent.css").read_text(encoding="utf-8"),
            "inline_js": "" if offline else (ASSETS_DIR / "extent.js").read_text(encoding="utf-8"),
            "data_island_id": DATA_ISLAND_ID,
            "data_json": data_json,
        }

    def _write(self) -> None:
        if self.config.network_mode == NetworkMode.OFFLINE:
            self._write_assets()
        html_content = self.render()
        with open(self.path, 'w', encoding=self.config.encoding) as f:
            f.write(html_content)

    def _write_assets(self) -> None:
        for source_name, relative in OFFLINE_ASSETS.values():
            target = self.path.parent / relative
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(ASSETS_DIR / source_name, target)
