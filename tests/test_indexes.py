import pytest

from notemirror.core.indexes import (
    IndexGenerator,
    display_name,
    render_category_index,
    render_root_index,
)
from notemirror.core.models import CategorySummary, IndexEntry

STAMP = "Jan 5, 2024, 3:00 AM EST"


def test_display_name_strips_markdown_extension():
    assert display_name("Plans.md") == "Plans"
    assert display_name("notes.txt") == "notes.txt"


def test_category_index_sorted_with_latest_date():
    body = render_category_index(
        "Project",
        [
            IndexEntry(name="zeta.md", date="2024-01-03"),
            IndexEntry(name="Alpha.md", date="2024-02-01"),
            IndexEntry(name="beta.md", date="2023-12-31"),
        ],
    )

    assert body == (
        "# Index – Project Notes\n"
        "\n"
        "_Last updated: 2024-02-01_\n"
        "\n"
        "- [Alpha](./Alpha.md) — 2024-02-01\n"
        "- [beta](./beta.md) — 2023-12-31\n"
        "- [zeta](./zeta.md) — 2024-01-03\n"
    )


def test_root_index_links_categories_and_root_bucket():
    body = render_root_index(
        [
            CategorySummary(name="Work/Project", path="Work/Project", last_updated="2024-02-01"),
            CategorySummary(name="Root Notes", path="", last_updated="2024-01-01"),
        ]
    )

    assert body == (
        "# Notes Index\n"
        "\n"
        "- [Root Notes](./index.md) — last updated 2024-01-01\n"
        "- [Work/Project](./Work/Project/index.md) — last updated 2024-02-01\n"
    )


@pytest.mark.asyncio
async def test_write_category_index_appends_footer(tmp_path):
    generator = IndexGenerator(tmp_path)

    path = await generator.write_category_index(
        tmp_path, "Ideas", [IndexEntry(name="a.md", date="2024-01-01")], STAMP
    )

    text = path.read_text(encoding="utf-8")
    assert text.startswith("# Index – Ideas Notes\n")
    assert text.endswith(f"\n---\n_Backup generated automatically at {STAMP}_\n")


@pytest.mark.asyncio
async def test_unchanged_index_keeps_previous_footer(tmp_path):
    generator = IndexGenerator(tmp_path)
    categories = [CategorySummary(name="Ideas", path="Ideas", last_updated="2024-01-01")]

    path = await generator.write_root_index(categories, STAMP)
    first = path.read_text(encoding="utf-8")
    await generator.write_root_index(categories, "Jan 6, 2024, 3:00 AM EST")

    assert path.read_text(encoding="utf-8") == first


@pytest.mark.asyncio
async def test_changed_index_is_rewritten(tmp_path):
    generator = IndexGenerator(tmp_path)

    path = await generator.write_root_index(
        [CategorySummary(name="Ideas", path="Ideas", last_updated="2024-01-01")], STAMP
    )
    later = "Jan 6, 2024, 3:00 AM EST"
    await generator.write_root_index(
        [CategorySummary(name="Ideas", path="Ideas", last_updated="2024-01-06")], later
    )

    text = path.read_text(encoding="utf-8")
    assert "last updated 2024-01-06" in text
    assert later in text
