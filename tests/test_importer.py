# tests/test_importer.py
from course_portal.importer import letter_from_index, parse_mcq_text, read_file_content


def test_read_txt_file(tmp_path):
    f = tmp_path / "notes.txt"
    f.write_text("1) What is X?\nA) one")
    content = read_file_content(str(f))
    assert "What is X?" in content

def test_read_md_file(tmp_path):
    f = tmp_path / "notes.md"
    f.write_text("# Pharmacology\n\nQ1: Which drug?")
    content = read_file_content(str(f))
    assert "Which drug?" in content

def test_read_json_list_file(tmp_path):
    f = tmp_path / "questions.json"
    f.write_text('["1) What is X?", "A) one", "B) two"]')
    content = read_file_content(str(f))
    assert content.splitlines() == ["1) What is X?", "A) one", "B) two"]

def test_read_yaml_file(tmp_path):
    f = tmp_path / "questions.yaml"
    f.write_text("- 1) What is X?\n- A) one\n")
    content = read_file_content(str(f))
    assert content.splitlines() == ["1) What is X?", "A) one"]

def test_read_html_file(tmp_path):
    f = tmp_path / "page.html"
    f.write_text("<html><body><p>1) What is X?</p><p>A) one</p></body></html>")
    content = read_file_content(str(f))
    assert "What is X?" in content
    assert "<p>" not in content

def test_parse_single_question():
    drafts = parse_mcq_text("1) What is X?\nA) one\nB) two\nC) three\nD) four\nAnswer: C")
    assert len(drafts) == 1
    d = drafts[0]
    assert d.question == "What is X?"
    assert d.choices == ["one", "two", "three", "four"]
    assert d.detected_correct == 2
    assert d.needs_review is False

def test_two_choices_need_review():
    drafts = parse_mcq_text("1) True or false?\nA) true\nB) false\nAns: A")
    assert len(drafts) == 1
    assert drafts[0].needs_review is True
    assert drafts[0].detected_correct == 0

def test_multiple_questions_and_label_styles():
    raw = """
    Q1: First?
    a. alpha
    b. beta
    c. gamma
    d. delta
    answer - b

    2. Second?
    - A: one
    - B: two
    - C: three
    - D: four
    """
    drafts = parse_mcq_text(raw)
    assert [d.question for d in drafts] == ["First?", "Second?"]
    assert drafts[0].choices == ["alpha", "beta", "gamma", "delta"]
    assert drafts[0].detected_correct == 1
    assert drafts[1].choices == ["one", "two", "three", "four"]
    assert drafts[1].detected_correct is None

def test_continuation_lines_join():
    raw = "1) A long stem\nthat wraps\nA) first part\nsecond part\nB) b\nC) c\nD) d"
    d = parse_mcq_text(raw)[0]
    assert d.question == "A long stem that wraps"
    assert d.choices[0] == "first part second part"

def test_inline_choice_form():
    d = parse_mcq_text("3) Pick one (A) red (B) green (C) blue (D) black")[0]
    assert d.question == "Pick one"
    assert d.choices == ["red", "green", "blue", "black"]
    assert not d.needs_review

def test_inline_choices_under_own_stem():
    drafts = parse_mcq_text("1) Pick one\n(A) red (B) green (C) blue (D) black\nAnswer: B")
    assert len(drafts) == 1
    d = drafts[0]
    assert d.question == "Pick one"
    assert d.choices == ["red", "green", "blue", "black"]
    assert d.detected_correct == 1
    assert not d.needs_review

def test_non_breaking_spaces_are_normalised():
    d = parse_mcq_text("1)\u00a0Spaced?\u00a0\nA)\u00a0x\nB) y\nC) z\nD) w")[0]
    assert d.question == "Spaced?"
    assert d.choices[0] == "x"

def test_more_than_six_choices_are_capped_and_flagged():
    raw = "1) Many?\n" + "\n".join(f"{l}) {l.lower()}" for l in "ABCDABCD")
    d = parse_mcq_text(raw)[0]
    assert len(d.choices) == 6
    assert d.needs_review

def test_choices_without_stem_need_review():
    d = parse_mcq_text("A) x\nB) y\nC) z\nD) w")[0]
    assert d.question == ""
    assert d.needs_review

def test_empty_input():
    assert parse_mcq_text("") == []
    assert parse_mcq_text("\n  \n") == []

def test_letter_from_index():
    assert letter_from_index(0) == "A"
    assert letter_from_index(5) == "F"
    assert letter_from_index(6) == "?"
    assert letter_from_index(None) == "?"
