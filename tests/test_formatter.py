from __future__ import annotations

import clipster


def test_format_entry_connectors():
    assert clipster.format_entry("a.ts", "", False) == "┣ a.ts\n"
    assert clipster.format_entry("b.ts", "┃ ", True) == "┃ ┗ b.ts\n"


def test_format_header():
    assert clipster.format_header("proj", "/work/proj/src") == "proj\nPath: /work/proj/src\n"


def test_format_file_header():
    assert clipster.format_file_header("/work/a.py") == "File: /work/a.py\n"


def test_number_lines_right_aligns_numbers():
    content = "\n".join(f"line {n}" for n in range(1, 11))

    numbered = clipster.number_lines(content).splitlines()

    assert numbered[0] == " 1 | line 1"
    assert numbered[-1] == "10 | line 10"


def test_number_lines_empty_content():
    assert clipster.number_lines("") == ""


def test_creation_summary_message():
    summary = clipster.CreationSummary(files_created=2, folders_created=1)
    assert summary.message() == "Created 2 file(s) and 1 folder(s)."

    summary.errors = 3
    assert summary.message() == (
        "Created 2 file(s) and 1 folder(s). 3 item(s) could not be created due to errors."
    )


def test_render_budget_latch_trips_once():
    budget = clipster.RenderBudget(max_bytes=10, max_files=1)

    assert not budget.would_exceed(10)
    budget.consume(10)
    assert budget.would_exceed(0)
    assert budget.trip()
    assert not budget.trip()
    assert budget.limit_reached
