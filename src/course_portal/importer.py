"""Smart import of pasted or file-based MCQ text into draft questions."""
import json
import re
from pathlib import Path

from course_portal.models import DraftQuestion

EXPECTED_CHOICES = 4
MAX_CHOICES = 6
LETTERS = "ABCDEF"

HEADER_RE = re.compile(r"^\s*(?:Q\s*)?\d+\s*[).:\-]\s+", re.IGNORECASE)
CHOICE_RES = [
    re.compile(r"^\(?[A-Da-d]\)?[.)\-:]\s*(.+)$"),  # A) A. A- A:
    re.compile(r"^[•\-]\s*\(?[A-Da-d]\)?[.)\-:]\s*(.+)$"),  # - A) ...
]
ANSWER_RE = re.compile(r"^(?:ans|answer)\s*[:\-]\s*([A-Da-d])\s*$", re.IGNORECASE)
INLINE_RE = re.compile(r"\(A\).*\(B\).*\(C\).*\(D\)", re.IGNORECASE)
INLINE_SPLIT_RE = re.compile(r"\(\s*[A-D]\s*\)\s*", re.IGNORECASE)


def read_file_content(file_path: str) -> str:
    path = Path(file_path)
    suffix = path.suffix.lower()

    if suffix in (".txt", ".md"):
        return path.read_text()
    elif suffix == ".json":
        data = json.loads(path.read_text())
        if isinstance(data, list):
            return "\n".join(str(item) for item in data)
        return json.dumps(data, indent=2) if isinstance(data, dict) else str(data)
    elif suffix in (".yaml", ".yml"):
        import yaml
        data = yaml.safe_load(path.read_text())
        if isinstance(data, list):
            return "\n".join(str(item) for item in data)
        return str(data)
    elif suffix == ".pdf":
        from PyPDF2 import PdfReader
        reader = PdfReader(file_path)
        return "\n".join(page.extract_text() or "" for page in reader.pages)
    elif suffix == ".docx":
        from docx import Document
        doc = Document(file_path)
        return "\n".join(p.text for p in doc.paragraphs)
    elif suffix in (".html", ".htm"):
        from bs4 import BeautifulSoup
        html = path.read_text()
        return BeautifulSoup(html, "html.parser").get_text("\n")
    else:
        # Try reading as plain text
        return path.read_text()


def _normalize(line: str) -> str:
    return line.replace("\u00a0", " ").strip()


def _choice_text(line: str) -> str | None:
    for rx in CHOICE_RES:
        m = rx.match(line)
        if m:
            return m.group(1).strip()
    return None


def _needs_review(text: str, choices: list[str]) -> bool:
    n = len(choices)
    return not text or n < 2 or n > MAX_CHOICES or n != EXPECTED_CHOICES


def parse_mcq_text(raw: str) -> list[DraftQuestion]:
    """Parse pasted MCQ text into drafts, one pass, never raising.

    Recognised lines: question headers (``1)``, ``2.``, ``Q3:``), labelled
    choices (``A)``, ``b.``, ``- C:``), answer markers (``Answer: B``) and the
    single-line ``(A) .. (B) .. (C) .. (D) ..`` form. Anything else continues
    the question stem, or the last choice once choices have started.
    """
    lines = [_normalize(l) for l in raw.splitlines()]
    lines = [l for l in lines if l]

    drafts: list[DraftQuestion] = []
    stem: list[str] = []
    choices: list[str] = []
    correct: int | None = None

    def flush():
        nonlocal stem, choices, correct
        if not stem and not choices:
            return
        text = " ".join(stem).strip()
        drafts.append(DraftQuestion(
            question=text,
            choices=choices[:MAX_CHOICES],
            needs_review=_needs_review(text, choices),
            detected_correct=correct,
        ))
        stem, choices, correct = [], [], None

    for line in lines:
        header = HEADER_RE.match(line)
        if header and (stem or choices):
            flush()

        ans = ANSWER_RE.match(line)
        if ans:
            correct = "ABCD".index(ans.group(1).upper())
            continue

        if INLINE_RE.search(line):
            parts = [p.strip() for p in INLINE_SPLIT_RE.split(line)]
            parts = [p for p in parts if p]
            if INLINE_SPLIT_RE.match(line) and len(parts) >= 4:
                choices.extend(parts[:4])
                continue
            if len(parts) >= 5:
                if not stem:
                    stem.append(HEADER_RE.sub("", parts[0], count=1))
                choices.extend(parts[1:5])
                continue

        choice = _choice_text(line)
        if choice is not None:
            choices.append(choice)
            continue

        if choices:
            choices[-1] = f"{choices[-1]} {line}".strip()
        elif header:
            stem.append(line[header.end():])
        else:
            stem.append(line)

    flush()
    return [d for d in drafts if d.question or d.choices]


def letter_from_index(i: int | None) -> str:
    if i is None or not 0 <= i < len(LETTERS):
        return "?"
    return LETTERS[i]
