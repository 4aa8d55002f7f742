"""Interactive CLI application."""
import logging
from pathlib import Path

from rich.console import Console
from rich.panel import Panel
from rich.prompt import Prompt
from rich.table import Table

from course_portal import attempts, courses, lectures, questions, resources
from course_portal.auth import get_session, sign_in, sign_out, sign_up
from course_portal.config import CONFIG_NAME, Settings, load_settings, write_default_config
from course_portal.dashboard import (
    get_course_tiles, get_quiz_summary, get_recent_favorites, get_score_color, get_score_label,
)
from course_portal.db import init_db
from course_portal.errors import DeleteStatus, NotAuthorizedError, PortalError
from course_portal.favorites import FavoritesStore
from course_portal.importer import letter_from_index, parse_mcq_text, read_file_content
from course_portal.logging import configure_logger
from course_portal.models import FavoriteResource
from course_portal.profiles import get_my_profile, is_moderator, require_moderator, update_display_name
from course_portal.quiz import (
    COUNT_OPTIONS, EmptySelection, IncompleteQuiz, QuizFilters, QuizSession,
    persist_attempt, select_questions, selection_label,
)
from course_portal.routes import build_quiz_url, course_url, quiz_url, results_url
from course_portal.seed import is_seeded, seed_default_courses

console = Console()
logger = logging.getLogger(__name__)

EXIT_WORDS = ("q", "menu")
SPARK = "▁▂▃▄▅▆▇█"


class SessionExitRequested(Exception):
    """User typed 'q' or 'menu' inside a quiz."""


def session_prompt(prompt: str, **kwargs) -> str:
    answer = Prompt.ask(prompt, **kwargs)
    if answer.strip().lower() in EXIT_WORDS:
        raise SessionExitRequested()
    return answer


def session_int_prompt(prompt: str, choices: list[str] | None = None, **kwargs) -> int:
    while True:
        raw = session_prompt(prompt, **kwargs).strip()
        if raw.isdigit() and (choices is None or raw in choices):
            return int(raw)
        console.print("[red]Please enter one of the listed numbers.[/red]")


def ask_yes(prompt: str) -> bool:
    return Prompt.ask(prompt, choices=["y", "n"], default="n") == "y"


def pick(items: list, label, title: str):
    """Print a numbered list and return the chosen item, or None."""
    if not items:
        console.print(f"[yellow]No {title.lower()} available.[/yellow]")
        return None
    for i, item in enumerate(items, 1):
        console.print(f"  [cyan]{i:>2}[/cyan]) {label(item)}")
    raw = Prompt.ask(f"{title} number (blank to cancel)", default="").strip()
    if not raw:
        return None
    if not raw.isdigit() or not 1 <= int(raw) <= len(items):
        console.print("[red]No such entry.[/red]")
        return None
    return items[int(raw) - 1]


def grouping_label(lecture) -> str:
    if lecture.is_formative:
        return f"Formative {lecture.sort_key}"
    return lecture.title


def current_user(settings: Settings):
    session = get_session(settings.session_path)
    return session, get_my_profile(settings.db_path, session)


def favorites_store(settings: Settings) -> FavoritesStore:
    return FavoritesStore(settings.favorites_path, limit=settings.favorites_limit)


def show_welcome():
    console.print(Panel(
        "[bold]Course Portal[/bold]\n[dim]Lectures, resources and MCQ practice[/dim]",
        title="Welcome", border_style="blue",
    ))


def show_menu(profile=None):
    console.print("\n[bold]Commands:[/bold]")
    commands = [
        ("dashboard", "Courses and quiz progress"),
        ("courses", "Browse a course's lectures and resources"),
        ("quiz", "Practice or exam quiz"),
        ("resume", "Saved quizzes you can come back to"),
        ("history", "Past quiz attempts"),
        ("results", "Review a submitted quiz"),
        ("favorites", "Saved resources"),
        ("settings", "Profile and configuration"),
    ]
    if profile is None:
        commands += [("login", "Sign in"), ("signup", "Create an account")]
    else:
        commands.append(("logout", "Sign out"))
    if profile is not None and is_moderator(profile.role):
        commands.append(("admin", "Manage courses, lectures, questions and uploads"))
    commands.append(("quit", "Exit"))
    for cmd, desc in commands:
        console.print(f"  [cyan]{cmd:<14}[/cyan] {desc}")


# Accounts

def cmd_login(settings: Settings):
    email = Prompt.ask("Email")
    password = Prompt.ask("Password", password=True)
    session = sign_in(settings.db_path, settings.session_path, email, password)
    console.print(f"[green]Signed in as {session.email}.[/green]")


def cmd_signup(settings: Settings):
    email = Prompt.ask("Email")
    name = Prompt.ask("Display name", default="")
    password = Prompt.ask("Password", password=True)
    confirm = Prompt.ask("Confirm password", password=True)
    sign_up(settings.db_path, email, password, confirm, name)
    sign_in(settings.db_path, settings.session_path, email, password)
    console.print("[green]Account created. You are signed in.[/green]")


def cmd_logout(settings: Settings):
    sign_out(settings.session_path)
    console.print("[dim]Signed out.[/dim]")


# Dashboard and browsing

def cmd_dashboard(settings: Settings):
    session, profile = current_user(settings)
    name = (profile.full_name if profile else None) or (session.email if session else "guest")
    console.print(Panel(f"[bold]Hello, {name}[/bold]", title="Dashboard", border_style="blue"))

    for group in get_course_tiles(settings.db_path):
        table = Table(title=group["label"])
        table.add_column("Code", style="cyan")
        table.add_column("Course")
        table.add_column("Resources", justify="right")
        table.add_column("Questions", justify="right")
        for c in group["courses"]:
            table.add_row(c["code"], c["name"], str(c["resources"]), str(c["questions"]))
        console.print(table)

    if session:
        stats = get_quiz_summary(settings.db_path, session.user_id)
        color = get_score_color(stats["avg"])
        console.print(
            f"\n  Quizzes: [bold]{stats['count']}[/bold]  |  "
            f"Last: [bold]{stats['last']}%[/bold]  |  Best: [bold]{stats['best']}%[/bold]  |  "
            f"Average: [{color}]{stats['avg']}% {get_score_label(stats['avg'])}[/{color}]  |  "
            f"Open: [bold]{stats['open']}[/bold]"
        )

    recent = get_recent_favorites(favorites_store(settings))
    if recent:
        console.print("\n[bold]Recent favorites:[/bold]")
        for fav in recent:
            console.print(f"  ★ {fav.title} [dim]({fav.course_code or ''} · {fav.lecture_title or 'General'})[/dim]")


def _favorite_from(resource, course, titles: dict) -> FavoriteResource:
    key = resource.lecture_id or resources.GENERAL_KEY
    return FavoriteResource(
        id=resource.id, title=resource.title, type=resource.type,
        description=resource.description, storage_path=resource.storage_path,
        external_url=resource.external_url, course_id=course.id, course_code=course.code,
        course_name=course.name, lecture_key=key, lecture_title=titles.get(key, "General"),
    )


def open_resource(settings: Settings, resource) -> str:
    url = resources.open_resource(settings.storage_dir, settings.secret_key, resource, settings.signed_url_ttl)
    store = favorites_store(settings)
    if store.is_favorite(resource.id):
        store.update_meta(
            resource.id, title=resource.title, type=resource.type, description=resource.description,
            storage_path=resource.storage_path, external_url=resource.external_url,
        )
    console.print(f"[green]Open:[/green] {url}")
    return url


def course_browser(settings: Settings, course, lecture_key: str | None = None):
    store = favorites_store(settings)
    lecs, forms = lectures.list_groupings(settings.db_path, course.id)
    titles = {l.id: grouping_label(l) for l in lecs + forms}
    titles[resources.GENERAL_KEY] = "General"
    query, type_ = "", resources.ALL_TYPES

    while True:
        items = resources.list_resources(settings.db_path, course.id)
        options = resources.type_options(items)
        shown = resources.filter_resources(items, query, type_)
        if lecture_key:
            shown = [r for r in shown if (r.lecture_id or resources.GENERAL_KEY) == lecture_key]

        console.print(Panel(
            f"[bold]{course.code}[/bold] {course.name}\n[dim]{course_url(course.id, lecture_key)}[/dim]",
            border_style="blue",
        ))
        counts = {k: len(v) for k, v in resources.group_by_lecture(items).items()}
        for key, title in titles.items():
            if counts.get(key):
                marker = " ←" if key == lecture_key else ""
                console.print(f"  [cyan]{title}[/cyan] ({counts[key]}){marker}")

        table = Table(title="Resources")
        table.add_column("#", justify="right")
        table.add_column("Lecture")
        table.add_column("Title")
        table.add_column("Type")
        table.add_column("★")
        for i, r in enumerate(shown, 1):
            star = "★" if store.is_favorite(r.id) else ""
            table.add_row(str(i), titles.get(r.lecture_id or resources.GENERAL_KEY, "General"), r.title, r.type, star)
        console.print(table)
        console.print("[dim]o N open · s N star · f search · t type · l lecture · back[/dim]")

        action = Prompt.ask("Action", default="back").strip().lower()
        cmd, _, arg = action.partition(" ")
        if cmd in ("back", "b", ""):
            return
        if cmd == "f":
            query = Prompt.ask("Search", default="")
        elif cmd == "t":
            type_ = Prompt.ask("Type", choices=options, default=resources.ALL_TYPES)
        elif cmd == "l":
            chosen = pick(lecs + forms, grouping_label, "Lecture")
            lecture_key = chosen.id if chosen else None
        elif cmd in ("o", "s") and arg.isdigit() and 1 <= int(arg) <= len(shown):
            r = shown[int(arg) - 1]
            if cmd == "o":
                open_resource(settings, r)
            else:
                added = store.toggle(_favorite_from(r, course, titles))
                console.print("[green]Added to favorites.[/green]" if added else "[dim]Removed from favorites.[/dim]")
        else:
            console.print("[red]Unknown action.[/red]")


def cmd_courses(settings: Settings):
    course = pick(courses.list_courses(settings.db_path), lambda c: f"{c.code} - {c.name}", "Course")
    if course:
        course_browser(settings, course)


# Quiz

def choose_filters(settings: Settings) -> tuple[QuizFilters, str] | None:
    course = pick(courses.list_courses(settings.db_path), lambda c: f"{c.code} - {c.name}", "Course")
    if course is None:
        return None
    lecs, forms = lectures.list_groupings(settings.db_path, course.id)
    filters = QuizFilters(course_id=course.id, count=settings.default_quiz_count)
    filters.group = Prompt.ask("Scope", choices=["all", "lectures", "formatives", "mixed"], default="all")
    if filters.group in ("lectures", "mixed"):
        filters.lecture_ids = _pick_many(lecs, "Lectures")
    if filters.group in ("formatives", "mixed"):
        filters.formative_ids = _pick_many(forms, "Formatives")
    if filters.group != "all":
        filters.include_general = ask_yes("Include general questions?")
    filters.mode = Prompt.ask("Mode", choices=["practice", "exam"], default="practice")
    counts = [str(n) for n in COUNT_OPTIONS]
    default_count = str(filters.count) if str(filters.count) in counts else "50"
    filters.count = int(Prompt.ask("Questions", choices=counts, default=default_count))
    filters.shuffle = Prompt.ask("Order", choices=["shuffle", "fixed"], default="shuffle") == "shuffle"
    if not filters.can_start():
        console.print("[yellow]Choose at least one lecture or formative.[/yellow]")
        return None
    return filters, selection_label(filters, lecs + forms)


def _pick_many(items: list, title: str) -> list[str]:
    if not items:
        console.print(f"[yellow]No {title.lower()} in this course.[/yellow]")
        return []
    for i, item in enumerate(items, 1):
        console.print(f"  [cyan]{i:>2}[/cyan]) {grouping_label(item)}")
    raw = Prompt.ask(f"{title} (comma-separated numbers)", default="")
    chosen = []
    for part in raw.split(","):
        part = part.strip()
        if part.isdigit() and 1 <= int(part) <= len(items):
            item_id = items[int(part) - 1].id
            if item_id not in chosen:
                chosen.append(item_id)
    return chosen


def show_question(question, position: str, selected: int | None, reveal: bool):
    lines = [f"[bold]{question.question_text}[/bold]\n"]
    for i, choice in enumerate(question.choices):
        mark = "›" if selected == i else " "
        style = ""
        if reveal and i == question.correct_index:
            style = "green"
        elif reveal and selected == i:
            style = "red"
        text = f"{mark} {i + 1}) {choice}"
        lines.append(f"[{style}]{text}[/{style}]" if style else text)
    if reveal and question.explanation:
        lines.append(f"\n[dim]{question.explanation}[/dim]")
    console.print(Panel("\n".join(lines), title=f"Question {position}", border_style="cyan"))


def run_quiz_session(session: QuizSession):
    """Answer loop for an in-memory quiz; returns the result once submitted."""
    console.print(f"\n[bold]Quiz[/bold] - {len(session.questions)} questions ({session.mode})\n")
    while not session.submitted:
        q = session.current
        show_question(q, session.progress, session.answers.get(q.id), session.is_revealed(q.id))
        raw = session_prompt(
            f"Answer 1-{len(q.choices)}, n/p to move, s to submit, q to quit"
        ).strip().lower()
        if raw.isdigit():
            try:
                session.choose(int(raw) - 1)
            except PortalError as e:
                console.print(f"[red]{e}[/red]")
                continue
            if session.mode == "practice":
                correct = session.answers[q.id] == q.correct_index
                console.print("[green]Correct![/green]" if correct else
                              f"[red]Incorrect.[/red] Answer: [green]{q.correct_index + 1}[/green]")
                if q.explanation:
                    console.print(f"[dim]{q.explanation}[/dim]")
            session.next()
        elif raw == "n":
            session.next()
        elif raw == "p":
            session.previous()
        elif raw == "s":
            try:
                return session.submit()
            except IncompleteQuiz as e:
                console.print(f"[yellow]{e}[/yellow]")
        else:
            console.print("[red]Unknown input.[/red]")
    return session.result


def show_score(correct: int, total: int, pct: int):
    color = get_score_color(pct)
    console.print(f"[bold]Score: {correct}/{total} ([{color}]{pct}%[/{color}])[/bold]\n")


def show_review(session: QuizSession):
    """Every question with the chosen and correct answers marked."""
    total = len(session.questions)
    for i, q in enumerate(session.questions, 1):
        show_question(q, f"{i}/{total}", session.answers.get(q.id), session.is_revealed(q.id))


def cmd_quiz(settings: Settings):
    chosen = choose_filters(settings)
    if chosen is None:
        return
    filters, label = chosen
    try:
        picked = select_questions(settings.db_path, filters)
    except EmptySelection as e:
        console.print(f"[yellow]{e}[/yellow]")
        return
    console.print(f"[dim]Link: {build_quiz_url(filters)} · {label}[/dim]")
    session = QuizSession(picked, mode=filters.mode)
    try:
        result = run_quiz_session(session)
    except SessionExitRequested:
        console.print("[dim]Quiz abandoned.[/dim]")
        return
    show_score(result.correct_count, result.total, result.score)
    show_review(session)
    auth, _ = current_user(settings)
    if auth is None:
        console.print("[dim]Sign in to keep a history of your attempts.[/dim]")
        return
    quiz_id = persist_attempt(settings.db_path, auth.user_id, filters, session, label)
    if quiz_id:
        console.print(f"[dim]Saved: {results_url(quiz_id)}[/dim]")


def run_persisted_quiz(settings: Settings, quiz_id: str):
    loaded = attempts.load_quiz(settings.db_path, quiz_id)
    if isinstance(loaded, attempts.Redirect):
        console.print("[dim]This quiz is already submitted.[/dim]")
        return show_results(settings, quiz_id)
    practice = loaded.attempt.mode == "practice"
    index = 0
    total = len(loaded.questions)
    console.print(f"[dim]{quiz_url(quiz_id)}[/dim]")
    while True:
        q = loaded.questions[index]
        selected = loaded.answers.get(q.id)
        show_question(q, f"{index + 1}/{total}", selected, practice and selected is not None)
        raw = session_prompt(
            f"Answer 1-{len(q.choices)}, n/p to move, s to submit, q to save and leave"
        ).strip().lower()
        if raw.isdigit():
            try:
                answer = attempts.record_answer(settings.db_path, quiz_id, q, int(raw) - 1)
            except PortalError as e:
                console.print(f"[red]{e}[/red]")
                continue
            loaded.answers[q.id] = answer.selected_index
            if practice:
                console.print("[green]Correct![/green]" if answer.is_correct else
                              f"[red]Incorrect.[/red] Answer: [green]{q.correct_index + 1}[/green]")
            index = min(index + 1, total - 1)
        elif raw == "n":
            index = min(index + 1, total - 1)
        elif raw == "p":
            index = max(index - 1, 0)
        elif raw == "s":
            missing = loaded.missing_count
            if missing:
                if not ask_yes(f"{missing} question(s) unanswered. Submit anyway?"):
                    continue
                attempts.mark_unanswered(settings.db_path, quiz_id)
            attempt = attempts.submit_quiz(settings.db_path, quiz_id)
            show_score(attempt.correct_count, attempt.total_questions, attempt.score)
            return show_results(settings, quiz_id)
        else:
            console.print("[red]Unknown input.[/red]")


def cmd_resume(settings: Settings):
    auth, _ = current_user(settings)
    if auth is None:
        console.print("[yellow]Sign in to use saved quizzes.[/yellow]")
        return
    open_quizzes = attempts.list_open_quizzes(settings.db_path, auth.user_id)
    choice = None
    if open_quizzes:
        choice = pick(
            open_quizzes,
            lambda a: f"{a.course_code} · {a.selection or 'Whole course'} · {a.mode} · {a.started_at[:16]}",
            "Quiz",
        )
    if choice is None:
        if not ask_yes("Start a new saved quiz?"):
            return
        chosen = choose_filters(settings)
        if chosen is None:
            return
        filters, label = chosen
        try:
            quiz_id = attempts.create_quiz(settings.db_path, auth.user_id, filters, label)
        except EmptySelection as e:
            console.print(f"[yellow]{e}[/yellow]")
            return
    else:
        quiz_id = choice.id
    try:
        run_persisted_quiz(settings, quiz_id)
    except SessionExitRequested:
        console.print("[dim]Progress saved. Use 'resume' to continue.[/dim]")


def show_results(settings: Settings, quiz_id: str, view: str = "all"):
    while True:
        attempt, items = attempts.get_results(settings.db_path, quiz_id, view)
        console.print(Panel(
            f"{attempt.course_code} {attempt.course_name}\n{attempt.selection or 'Whole course'} · {attempt.mode}",
            title=f"Results: {attempt.score}%", border_style=get_score_color(attempt.score),
        ))
        table = Table(title=f"{view.title()} questions")
        table.add_column("Question")
        table.add_column("Your answer")
        table.add_column("Correct")
        for it in items:
            yours = "-" if it.is_unanswered else letter_from_index(it.selected_index)
            style = "green" if it.is_correct else "red"
            table.add_row(it.question.question_text, f"[{style}]{yours}[/{style}]",
                          letter_from_index(it.question.correct_index))
        console.print(table)
        view = Prompt.ask("View", choices=["all", "wrong", "unanswered", "back"], default="back")
        if view == "back":
            return


def sparkline(values: list[int]) -> str:
    return "".join(SPARK[min(v, 100) * (len(SPARK) - 1) // 100] for v in values)


def cmd_history(settings: Settings):
    auth, _ = current_user(settings)
    if auth is None:
        console.print("[yellow]Sign in to see your history.[/yellow]")
        return
    course_id = None
    if ask_yes("Filter by course?"):
        course = pick(courses.list_courses(settings.db_path), lambda c: f"{c.code} - {c.name}", "Course")
        course_id = course.id if course else None
    rows = attempts.list_history(settings.db_path, auth.user_id, course_id)
    if not rows:
        console.print("[dim]No submitted quizzes yet.[/dim]")
        return
    stats = attempts.history_stats(rows)
    table = Table(title="Quiz history")
    table.add_column("#", justify="right")
    table.add_column("Date")
    table.add_column("Course")
    table.add_column("Scope")
    table.add_column("Mode")
    table.add_column("Score", justify="right")
    for i, a in enumerate(rows, 1):
        color = get_score_color(a.score)
        table.add_row(str(i), (a.started_at or "")[:16], a.course_code or "", a.lecture_title or a.selection or "",
                      a.mode, f"[{color}]{a.score}%[/{color}]")
    console.print(table)
    series = [s for _, s in attempts.score_series(rows)]
    console.print(f"  Last: [bold]{stats['last']}%[/bold]  Best: [bold]{stats['best']}%[/bold]  "
                  f"Average: [bold]{stats['avg']}%[/bold]  Trend: {sparkline(series)}")
    raw = Prompt.ask("Open attempt number (blank to go back)", default="").strip()
    if raw.isdigit() and 1 <= int(raw) <= len(rows):
        show_results(settings, rows[int(raw) - 1].id)


def cmd_results(settings: Settings):
    quiz_id = Prompt.ask("Quiz id").strip()
    if quiz_id:
        show_results(settings, quiz_id)


def cmd_favorites(settings: Settings):
    store = favorites_store(settings)
    while True:
        items = store.read()
        if not items:
            console.print("[dim]No favorites yet. Star resources from a course page.[/dim]")
            return
        table = Table(title=f"Favorites ({len(items)})")
        table.add_column("#", justify="right")
        table.add_column("Title")
        table.add_column("Course")
        table.add_column("Lecture")
        table.add_column("Saved")
        for i, f in enumerate(items, 1):
            table.add_row(str(i), f.title, f.course_code or "", f.lecture_title or "", f.saved_at[:10])
        console.print(table)
        console.print("[dim]g N go to lecture · r N remove · clear · back[/dim]")
        cmd, _, arg = Prompt.ask("Action", default="back").strip().lower().partition(" ")
        if cmd in ("back", "b", ""):
            return
        if cmd == "clear":
            if ask_yes("Remove all favorites?"):
                store.clear()
        elif cmd in ("g", "r") and arg.isdigit() and 1 <= int(arg) <= len(items):
            fav = items[int(arg) - 1]
            if cmd == "r":
                store.remove(fav.id)
                continue
            course = courses.get_course(settings.db_path, fav.course_id) if fav.course_id else None
            if course is None:
                console.print("[red]That course no longer exists.[/red]")
                continue
            course_browser(settings, course, fav.lecture_key)
        else:
            console.print("[red]Unknown action.[/red]")


def cmd_settings(settings: Settings):
    auth, profile = current_user(settings)
    table = Table(title="Settings", show_header=False)
    table.add_column("Key", style="cyan")
    table.add_column("Value")
    if auth:
        table.add_row("Email", auth.email)
        table.add_row("Name", (profile.full_name if profile else None) or "-")
        table.add_row("Role", profile.role if profile else "-")
    table.add_row("Home", str(settings.home))
    table.add_row("Database", settings.db_path)
    table.add_row("Logs", str(settings.log_dir))
    console.print(table)
    action = Prompt.ask("Action", choices=["name", "config", "back"], default="back")
    if action == "name":
        if auth is None:
            console.print("[yellow]Sign in first.[/yellow]")
            return
        update_display_name(settings.db_path, auth.user_id, Prompt.ask("Display name"))
        console.print("[green]Saved.[/green]")
    elif action == "config":
        path = write_default_config(Path(settings.home) / CONFIG_NAME)
        console.print(f"[green]Wrote {path}[/green]")


# Administration

def admin_courses(settings: Settings):
    while True:
        items = courses.list_courses(settings.db_path)
        table = Table(title="Courses")
        table.add_column("#", justify="right")
        table.add_column("Code", style="cyan")
        table.add_column("Name")
        table.add_column("Semester", justify="right")
        for i, c in enumerate(items, 1):
            table.add_row(str(i), c.code, c.name, str(c.semester or ""))
        console.print(table)
        cmd, _, arg = Prompt.ask("a add · defaults · x N delete · back", default="back").strip().lower().partition(" ")
        if cmd in ("back", "b", ""):
            return
        if cmd == "a":
            course = courses.add_course(
                settings.db_path, Prompt.ask("Code"), Prompt.ask("Name"),
                Prompt.ask("Semester", default=""), Prompt.ask("Description", default=""),
            )
            console.print(f"[green]Added {course.code}.[/green]")
        elif cmd == "defaults":
            added = seed_default_courses(settings.db_path)
            console.print(f"[green]Added {added} default course(s).[/green]")
        elif cmd == "x" and arg.isdigit() and 1 <= int(arg) <= len(items):
            course = items[int(arg) - 1]
            if ask_yes(f"Delete {course.code} and everything in it?"):
                courses.delete_course(settings.db_path, course.id)
                console.print("[green]Deleted.[/green]")
        else:
            console.print("[red]Unknown action.[/red]")


def _grouping_by_key(lecs: list, forms: list, key: str):
    """Resolve 'L2' / 'F1' style keys from the admin lecture table."""
    key = key.strip().upper()
    pool = lecs if key.startswith("L") else forms if key.startswith("F") else None
    if pool is None or not key[1:].isdigit() or not 1 <= int(key[1:]) <= len(pool):
        return None, None, None
    index = int(key[1:]) - 1
    return pool, index, pool[index]


def admin_lectures(settings: Settings):
    course = pick(courses.list_courses(settings.db_path), lambda c: f"{c.code} - {c.name}", "Course")
    if course is None:
        return
    while True:
        lecs, forms = lectures.list_groupings(settings.db_path, course.id)
        table = Table(title=f"{course.code} groupings")
        table.add_column("Key", style="cyan")
        table.add_column("Title")
        table.add_column("Order", justify="right")
        for i, l in enumerate(lecs, 1):
            table.add_row(f"L{i}", l.title, str(l.order_index))
        for i, f in enumerate(forms, 1):
            table.add_row(f"F{i}", grouping_label(f), str(f.sort_key))
        console.print(table)
        action = Prompt.ask(
            "al add lecture · af add formative · seed N · e KEY edit · u KEY up · x KEY delete · back",
            default="back",
        ).strip()
        cmd, _, arg = action.partition(" ")
        cmd = cmd.lower()
        next_lecture, next_formative = lectures.next_numbers(settings.db_path, course.id)
        if cmd in ("back", "b", ""):
            return
        if cmd == "al":
            lectures.add_lecture(
                settings.db_path, course.id, Prompt.ask("Lecture number", default=str(next_lecture)),
                Prompt.ask("Topic", default=""), Prompt.ask("Custom title", default=""),
            )
        elif cmd == "af":
            lectures.add_formative(settings.db_path, course.id, Prompt.ask("Formative number", default=str(next_formative)))
        elif cmd == "seed":
            added = lectures.seed_lectures(settings.db_path, course.id, arg or Prompt.ask("How many lectures", default="10"))
            console.print(f"[green]Added {added} lecture(s).[/green]")
        elif cmd in ("e", "u", "x"):
            pool, index, item = _grouping_by_key(lecs, forms, arg)
            if item is None:
                console.print("[red]Unknown key.[/red]")
                continue
            if cmd == "e":
                number = Prompt.ask("Number", default=str(item.sort_key))
                title = "" if item.is_formative else Prompt.ask("Title", default=item.title)
                lectures.update_grouping(settings.db_path, item, number, title)
            elif cmd == "u":
                if not lectures.move_up(settings.db_path, pool, index):
                    console.print("[dim]Already first.[/dim]")
            elif ask_yes(f"Delete {grouping_label(item)}? Its content becomes general."):
                lectures.delete_grouping(settings.db_path, item.id)
        else:
            console.print("[red]Unknown action.[/red]")


def _question_form(settings: Settings, course_id: str, existing=None) -> dict:
    lecs, forms = lectures.list_groupings(settings.db_path, course_id)
    text = Prompt.ask("Question", default=existing.question_text if existing else "")
    old = existing.choices if existing else []
    choices = []
    for i in range(questions.MAX_CHOICES):
        default = old[i] if i < len(old) else ""
        value = Prompt.ask(f"Choice {letter_from_index(i)} (blank to stop)", default=default)
        if not value.strip():
            break
        choices.append(value)
    letter = Prompt.ask("Correct letter", default=letter_from_index(existing.correct_index) if existing else "A")
    lecture = pick(lecs + forms, grouping_label, "Lecture") if ask_yes("Attach to a lecture?") else None
    explanation = Prompt.ask("Explanation", default=(existing.explanation or "") if existing else "")
    return {
        "text": text,
        "choices": choices,
        "correct_index": max(0, "ABCDEF".find(letter.strip().upper()[:1] or "A")),
        "lecture_id": lecture.id if lecture else None,
        "explanation": explanation,
    }


def admin_questions(settings: Settings, profile):
    course = pick(courses.list_courses(settings.db_path), lambda c: f"{c.code} - {c.name}", "Course")
    if course is None:
        return
    query, show_archived = "", False
    while True:
        items = questions.list_questions(settings.db_path, course.id, query=query, show_archived=show_archived)
        table = Table(title=f"{course.code} questions ({len(items)})")
        table.add_column("#", justify="right")
        table.add_column("Question")
        table.add_column("Answer")
        table.add_column("State")
        for i, q in enumerate(items, 1):
            table.add_row(str(i), q.question_text, letter_from_index(q.correct_index),
                          "[dim]archived[/dim]" if q.is_archived else "")
        console.print(table)
        cmd, _, arg = Prompt.ask(
            "a add · e N edit · ar N archive/restore · x N delete · f search · archived · back", default="back",
        ).strip().lower().partition(" ")
        if cmd in ("back", "b", ""):
            return
        if cmd == "a":
            form = _question_form(settings, course.id)
            questions.add_question(settings.db_path, course.id, form["text"], form["choices"], form["correct_index"],
                                   form["lecture_id"], form["explanation"], created_by=profile.id)
            console.print("[green]Question added.[/green]")
        elif cmd == "f":
            query = Prompt.ask("Search", default="")
        elif cmd == "archived":
            show_archived = not show_archived
        elif cmd in ("e", "ar", "x") and arg.isdigit() and 1 <= int(arg) <= len(items):
            q = items[int(arg) - 1]
            if cmd == "e":
                form = _question_form(settings, course.id, q)
                questions.update_question(settings.db_path, q, form["text"], form["choices"], form["correct_index"],
                                          form["lecture_id"], form["explanation"])
                console.print("[green]Saved.[/green]")
            elif cmd == "ar":
                questions.set_archived(settings.db_path, q.id, not q.is_archived)
            elif ask_yes("Delete this question?"):
                outcome = questions.delete_question(settings.db_path, q.id)
                if outcome.status == DeleteStatus.DELETED:
                    console.print("[green]Deleted.[/green]")
                elif outcome.status == DeleteStatus.ARCHIVED:
                    console.print(f"[yellow]{outcome.reason}[/yellow]")
                else:
                    console.print(f"[red]Delete failed: {outcome.reason}[/red]")
        else:
            console.print("[red]Unknown action.[/red]")


def _read_pasted_text() -> str:
    console.print("[dim]Paste the questions. Finish with a line containing only END.[/dim]")
    lines = []
    while True:
        line = Prompt.ask("", default="")
        if line.strip() == "END":
            return "\n".join(lines)
        lines.append(line)


def admin_import(settings: Settings, profile):
    course = pick(courses.list_courses(settings.db_path), lambda c: f"{c.code} - {c.name}", "Course")
    if course is None:
        return
    lecs, forms = lectures.list_groupings(settings.db_path, course.id)
    lecture = pick(lecs + forms, grouping_label, "Lecture") if ask_yes("Attach to a lecture?") else None
    file_path = Prompt.ask("File path (blank to paste)", default="").strip()
    if file_path:
        if not Path(file_path).exists():
            console.print(f"[red]File not found: {file_path}[/red]")
            return
        raw = read_file_content(file_path)
    else:
        raw = _read_pasted_text()
    drafts = parse_mcq_text(raw)
    if not drafts:
        console.print("[yellow]No questions found in that text.[/yellow]")
        return

    kept = []
    for i, d in enumerate(drafts, 1):
        flag = " [yellow]needs review[/yellow]" if d.needs_review else ""
        body = "\n".join(f"{letter_from_index(j)}) {c}" for j, c in enumerate(d.choices))
        console.print(Panel(f"[bold]{d.question or '(no question text)'}[/bold]\n{body}",
                            title=f"Draft {i}/{len(drafts)}{flag}", border_style="cyan"))
        answer = Prompt.ask("Correct letter (skip to drop)", default=letter_from_index(d.detected_correct)).strip().upper()
        if answer in ("SKIP", "?", ""):
            continue
        index = "ABCDEF".find(answer[:1])
        if not 0 <= index < len(d.choices):
            console.print("[red]Not one of the choices; dropped.[/red]")
            continue
        d.detected_correct = index
        kept.append(d)
    if not kept:
        console.print("[dim]Nothing to save.[/dim]")
        return
    added = questions.insert_drafts(settings.db_path, course.id, lecture.id if lecture else None, kept, profile.id)
    console.print(f"[green]Saved {added} question(s).[/green]")


def admin_upload(settings: Settings, profile):
    course = pick(courses.list_courses(settings.db_path), lambda c: f"{c.code} - {c.name}", "Course")
    if course is None:
        return
    groupings = lectures.ensure_general_lecture(settings.db_path, course.id)
    lecture = pick(groupings, grouping_label, "Lecture")
    if lecture is None:
        console.print("[yellow]A lecture is required.[/yellow]")
        return
    title = Prompt.ask("Title")
    type_ = Prompt.ask("Type", default="slides")
    description = Prompt.ask("Description", default="")
    file_path = Prompt.ask("File path (blank for a link)", default="").strip()
    file_name = file_data = None
    external_url = ""
    if file_path:
        path = Path(file_path)
        if not path.is_file():
            console.print(f"[red]File not found: {file_path}[/red]")
            return
        file_name, file_data = path.name, path.read_bytes()
    else:
        external_url = Prompt.ask("External URL")
    resource = resources.add_resource(
        settings.db_path, settings.storage_dir, course_id=course.id, lecture_id=lecture.id,
        title=title, type_=type_, uploader_id=profile.id, description=description,
        file_name=file_name, file_data=file_data, external_url=external_url,
    )
    console.print(f"[green]Uploaded {resource.title}.[/green]")


def cmd_admin(settings: Settings):
    _, profile = current_user(settings)
    try:
        profile = require_moderator(profile)
    except NotAuthorizedError as e:
        console.print(f"[red]{e}[/red]")
        return
    choice = Prompt.ask("Admin", choices=["courses", "lectures", "questions", "import", "upload", "back"],
                        default="back")
    if choice == "courses":
        admin_courses(settings)
    elif choice == "lectures":
        admin_lectures(settings)
    elif choice == "questions":
        admin_questions(settings, profile)
    elif choice == "import":
        admin_import(settings, profile)
    elif choice == "upload":
        admin_upload(settings, profile)


COMMANDS = {
    "login": cmd_login,
    "signup": cmd_signup,
    "logout": cmd_logout,
    "dashboard": cmd_dashboard,
    "courses": cmd_courses,
    "quiz": cmd_quiz,
    "resume": cmd_resume,
    "history": cmd_history,
    "results": cmd_results,
    "favorites": cmd_favorites,
    "settings": cmd_settings,
    "admin": cmd_admin,
}


def main():
    settings = load_settings()
    configure_logger("course_portal", log_dir=settings.log_dir, level=settings.log_level)
    init_db(settings.db_path)
    if not is_seeded(settings.db_path):
        console.print("[dim]Setting up for first use...[/dim]")
        seed_default_courses(settings.db_path)

    show_welcome()

    while True:
        _, profile = current_user(settings)
        show_menu(profile)
        choice = Prompt.ask("\n[bold]>[/bold]", default="dashboard").strip().lower()
        if choice in ("quit", "exit", "q"):
            console.print("[dim]Good luck with your studies![/dim]")
            break
        command = COMMANDS.get(choice)
        if command is None:
            console.print("[red]Unknown command. Try again.[/red]")
            continue
        try:
            command(settings)
        except KeyboardInterrupt:
            console.print("\n[dim]Use 'quit' to exit.[/dim]")
        except PortalError as e:
            console.print(f"[red]{e}[/red]")
        except Exception as e:
            logger.exception("command %s failed", choice)
            console.print(f"[red]Error: {e}[/red]")


if __name__ == "__main__":
    main()
