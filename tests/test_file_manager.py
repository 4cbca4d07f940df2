import os

import pytest

from orchestration.models import Chapter, Project
from storage.file_manager import FileManager


@pytest.mark.asyncio
async def test_load_directory_orders_chapters_and_reads_headings(tmp_path):
    book = tmp_path / "Lighthouse Book"
    book.mkdir()
    (book / "02_storm.md").write_text("# The Storm\n\nRain hit the glass.", "utf-8")
    (book / "01_arrival.txt").write_text("She came by ferry.\r\n", "utf-8")
    (book / "notes.json").write_text("{}", "utf-8")

    project = await FileManager(str(tmp_path / "out")).load_project(str(book))

    assert project.title == "Lighthouse Book"
    assert [c.id for c in project.chapters] == ["01_arrival", "02_storm"]
    assert project.chapters[0].title == "01 arrival"
    assert project.chapters[1].title == "The Storm"
    assert project.chapters[1].text == "Rain hit the glass."
    assert project.get_chapter("02_storm") is project.chapters[1]
    assert project.get_chapter("missing") is None


@pytest.mark.asyncio
async def test_load_single_file_uses_stem_as_title(tmp_path):
    chapter = tmp_path / "draft-one.txt"
    chapter.write_text("Opening line.", "utf-8")

    project = await FileManager(str(tmp_path / "out")).load_project(str(chapter))

    assert project.title == "draft-one"
    assert len(project.chapters) == 1
    assert project.chapters[0].title == "draft one"
    assert project.text == "# draft one\n\nOpening line."


@pytest.mark.asyncio
async def test_save_report_writes_under_sanitized_project_dir(tmp_path):
    files = FileManager(str(tmp_path))
    project = Project(title="My Book: Vol 1")

    path = await files.save_report(project, "report body")

    assert path == os.path.join(str(tmp_path), "My_Book__Vol_1", "pipeline_report.txt")
    with open(path, encoding="utf-8") as f:
        assert f.read() == "report body"
    assert files.cache_path_for(project) == os.path.join(
        str(tmp_path), "My_Book__Vol_1", "pipeline_cache.json"
    )

    partial = await files.save_report(project, "partial", "pipeline_report.partial.txt")
    assert partial.endswith("pipeline_report.partial.txt")


@pytest.mark.asyncio
async def test_planner_chat_round_trip_and_missing_file(tmp_path):
    files = FileManager(str(tmp_path))
    assert await files.load_chat("keeper") == []

    history = [
        {"role": "user", "content": "A lighthouse book"},
        {"role": "assistant", "content": "Which century?"},
    ]
    path = await files.save_chat("keeper", history)

    assert path == files.chat_path_for("keeper")
    assert await files.load_chat("keeper") == history


@pytest.mark.asyncio
async def test_saved_chapters_load_back_as_a_project(tmp_path):
    files = FileManager(str(tmp_path))
    project = Project(
        title="The Keeper",
        chapters=[Chapter("01_chapter", "Arrival", "She came by ferry.")],
    )

    await files.save_chapter(project, project.chapters[0])
    loaded = await files.load_project(files.chapters_dir_for(project))

    assert [(c.id, c.title, c.text) for c in loaded.chapters] == [
        ("01_chapter", "Arrival", "She came by ferry.")
    ]
