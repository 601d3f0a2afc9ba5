"""
Reveal runtime for sandboxed slide documents.

Slides are rendered as standalone HTML documents in a sandboxed frame. The
runtime script injected here listens for reveal messages posted by the
player (see MessageRevealSink) and toggles the "active" class on
[data-reveal] elements.
"""

import logging
import re
from typing import List

from ..models import SlideRecord

logger = logging.getLogger(__name__)

SLIDE_WIDTH = 1280
SLIDE_HEIGHT = 720

REVEAL_RUNTIME_SCRIPT = """
<script>
(function () {
  var revealedIds = new Set();

  function reset() {
    revealedIds.clear();
    document.querySelectorAll("[data-reveal]").forEach(function (el) {
      el.classList.remove("active", "no-transition");
    });
  }

  function reveal(id, immediate) {
    if (revealedIds.has(id)) return;
    revealedIds.add(id);
    var el = document.querySelector("[data-reveal='" + id + "']");
    if (!el) return;
    if (immediate) el.classList.add("no-transition");
    el.classList.add("active");
  }

  window.addEventListener("message", function (e) {
    var msg = e.data;
    if (!msg || !msg.type) return;

    if (msg.type === "RESET") {
      reset();
    } else if (msg.type === "REVEAL_IMMEDIATE") {
      reveal(msg.id, true);
    } else if (msg.type === "REVEAL") {
      reveal(msg.id, false);
    } else if (msg.type === "REVEAL_MULTIPLE") {
      (msg.ids || []).forEach(function (id) { reveal(id, false); });
    }
  });
})();
</script>
"""

_DOCUMENT_TEMPLATE = """<!DOCTYPE html>
<html>
<head>
  <meta charset="UTF-8">
  <meta name="viewport" content="width={width}, height={height}">
  <style>
    * {{ box-sizing: border-box; margin: 0; padding: 0; }}
    html, body {{ width: {width}px; height: {height}px; overflow: hidden; }}
    .no-transition {{ transition: none !important; }}
  </style>
</head>
{body}
</html>"""

_REVEAL_ATTR_RE = re.compile(r"""data-reveal\s*=\s*(?:'([^']*)'|"([^"]*)"|\\"([^"\\]*)\\")""")


def inject_reveal_runtime(html: str) -> str:
    """Wrap a slide fragment into a full document and add the reveal runtime."""
    document = html
    if '<html' not in document.lower():
        if '<body' not in document.lower():
            document = f'<body>\n{document}\n</body>'
        document = _DOCUMENT_TEMPLATE.format(width=SLIDE_WIDTH, height=SLIDE_HEIGHT, body=document)
    elif '<!doctype' not in document.lower():
        document = '<!DOCTYPE html>\n' + document

    if '</body>' in document:
        return document.replace('</body>', f'{REVEAL_RUNTIME_SCRIPT}</body>', 1)
    return document + REVEAL_RUNTIME_SCRIPT


def extract_reveal_ids(html: str) -> List[str]:
    """Distinct data-reveal anchors in document order."""
    ids: List[str] = []
    for match in _REVEAL_ATTR_RE.finditer(html):
        reveal_id = next(group for group in match.groups() if group is not None)
        if reveal_id and reveal_id not in ids:
            ids.append(reveal_id)
    return ids


def reconcile_reveal_data(record: SlideRecord) -> SlideRecord:
    """
    Align revealData with the anchors present in the slide html.

    Ids without an anchor are dropped, anchors missing from revealData are
    appended in document order, and r1 is moved first when present.
    """
    anchors = extract_reveal_ids(record.html)
    if not anchors:
        return record

    ordered = [reveal_id for reveal_id in record.reveal_data if reveal_id in anchors]
    ordered = list(dict.fromkeys(ordered))
    ordered += [reveal_id for reveal_id in anchors if reveal_id not in ordered]
    if "r1" in ordered and ordered[0] != "r1":
        ordered.remove("r1")
        ordered.insert(0, "r1")

    if ordered != record.reveal_data:
        logger.warning(
            f"Slide {record.slide_id}: revealData {record.reveal_data} does not match "
            f"html anchors, using {ordered}"
        )
        return record.model_copy(update={"reveal_data": ordered})
    return record
