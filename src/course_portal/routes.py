"""Addressable locations for portal pages.

Quiz filters travel in the query string so a session can be shared or
resumed: ``parse_quiz_url(build_quiz_url(f)) == f.normalized()``.
"""
from urllib.parse import parse_qs, urlencode, urlsplit

from course_portal.quiz import DEFAULT_COUNT, GROUPS, QuizFilters, clamp_count

QUIZ_PATH = "/mcq"
HISTORY_PATH = "/mcq/history"


def _csv(values: list[str]) -> str:
    return ",".join(v for v in values if v)


def _split(value: str | None) -> list[str]:
    return [v for v in (value or "").split(",") if v]


def build_quiz_url(filters: QuizFilters) -> str:
    f = filters.normalized()
    params = {"course": f.course_id, "group": f.group}
    if f.group in ("lectures", "mixed") and f.lecture_ids:
        params["lectures"] = _csv(f.lecture_ids)
    if f.group in ("formatives", "mixed") and f.formative_ids:
        params["formatives"] = _csv(f.formative_ids)
    if f.group != "all" and f.include_general:
        params["general"] = "1"
    params["count"] = str(f.count)
    params["shuffle"] = "1" if f.shuffle else "0"
    params["mode"] = f.mode
    return f"{QUIZ_PATH}?{urlencode(params)}"


def _query(url: str) -> dict[str, str]:
    parsed = parse_qs(urlsplit(url).query, keep_blank_values=True)
    return {k: v[-1] for k, v in parsed.items()}


def parse_quiz_url(url: str) -> QuizFilters:
    """Read filters back out of a quiz URL. Missing or bad values get defaults."""
    q = _query(url)
    group = q.get("group", "all")
    filters = QuizFilters(
        course_id=q.get("course", ""),
        group=group if group in GROUPS else "all",
        lecture_ids=_split(q.get("lectures")),
        formative_ids=_split(q.get("formatives")),
        include_general=q.get("general") == "1",
        count=clamp_count(q.get("count", DEFAULT_COUNT)),
        shuffle=q.get("shuffle") != "0",
        mode="exam" if q.get("mode") == "exam" else "practice",
    )
    return filters.normalized()


def course_url(course_id: str, lecture: str | None = None) -> str:
    url = f"/courses/{course_id}"
    if lecture:
        url += "?" + urlencode({"lecture": lecture})
    return url


def parse_course_url(url: str) -> tuple[str, str | None]:
    """Return ``(course_id, open lecture key or None)``."""
    parts = urlsplit(url)
    segments = [s for s in parts.path.split("/") if s]
    if len(segments) != 2 or segments[0] != "courses":
        raise ValueError(f"Not a course URL: {url}")
    lecture = _query(url).get("lecture") or None
    return segments[1], lecture


def quiz_url(quiz_id: str) -> str:
    return f"{QUIZ_PATH}/quiz/{quiz_id}"


def results_url(quiz_id: str) -> str:
    return f"{QUIZ_PATH}/results/{quiz_id}"


def history_url() -> str:
    return HISTORY_PATH
