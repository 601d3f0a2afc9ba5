"""
Prompts for course-layout and slide generation.

The output rules are repeated at the end of every slide request: models
follow trailing instructions more reliably than ones buried in a long
system prompt.
"""

import json
from typing import Optional

from .models import Chapter


COURSE_LAYOUT_PROMPT = """You are an expert course architect for a video course generator.

Design a complete course outline for the topic given by the user.

Return ONLY a JSON object with this structure:
{
  "courseId": "short-slug-id",
  "courseName": "Complete Course Name",
  "courseDescription": "2-3 sentences describing what students will learn",
  "level": "Beginner | Intermediate | Advanced",
  "totalChapters": 8,
  "chapters": [
    {
      "chapterId": "unique-chapter-slug",
      "chapterTitle": "Descriptive Chapter Title",
      "subContent": ["Specific point 1", "Specific point 2", "Specific point 3"]
    }
  ]
}

Rules:
- Chapters follow a logical progression from fundamentals to advanced topics
- Each chapter has 1-5 specific subContent points
- No markdown, no code fences, no explanations
"""


SLIDE_SYSTEM_PROMPT = """You are an instructional designer creating narrated video slides.

For the chapter given by the user, produce one slide per subContent point.

Return ONLY a JSON array:
[
  {
    "slideId": "chapter-slug-01",
    "slideIndex": 1,
    "html": "<body>...</body>",
    "narration": {"fullText": "Spoken narration for the slide"},
    "revealData": ["r1", "r2", "r3"]
  }
]

Canvas:
- Exactly 1280px x 720px, nothing may overflow or scroll
- Self-contained <body> with inline styles, dark background, light text

Progressive reveal:
- Every element that appears during narration carries class='reveal' and data-reveal='rN'
- r1 is the slide heading and is shown first
- revealData lists every data-reveal id exactly once, in the order the narration mentions them
- Write the narration so each reveal id matches the sentence that introduces it
"""


SLIDE_OUTPUT_RULES = """
OUTPUT RULES (mandatory):
1. Use SINGLE QUOTES for every HTML attribute: style='color: white', never style="color: white"
2. Escape any double quote inside a JSON string as \\"
3. Every data-reveal id in the html appears in revealData, and r1 comes first
4. Return ONLY the JSON array, no markdown fences, no commentary
"""


def build_chapter_request(chapter: Chapter, course_name: Optional[str] = None) -> str:
    """User message for one chapter's slide generation call."""
    payload = {
        "chapterId": chapter.chapter_id,
        "chapterTitle": chapter.chapter_title,
        "subContent": chapter.sub_content,
    }
    if course_name:
        payload["courseName"] = course_name
    return json.dumps(payload, ensure_ascii=False) + "\n" + SLIDE_OUTPUT_RULES
