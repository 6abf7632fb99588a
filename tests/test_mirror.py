import pytest

from notemirror.core.exceptions import MirrorPathError
from notemirror.sources.notes.mirror import MirrorWriter


@pytest.mark.asyncio
async def test_write_note_creates_nested_folders(tmp_path):
    writer = MirrorWriter(tmp_path)

    await writer.ensure_folder("Work/Project")
    path = await writer.write_note("Work/Project", "B.md", "beta\n\n\n")

    assert path == tmp_path.resolve() / "Work" / "Project" / "B.md"
    assert path.read_text(encoding="utf-8") == "beta\n"


@pytest.mark.asyncio
async def test_root_level_note(tmp_path):
    writer = MirrorWriter(tmp_path)

    path = await writer.write_note("", "A.md", "alpha")

    assert path.parent == tmp_path.resolve()
    assert path.read_text(encoding="utf-8") == "alpha\n"


@pytest.mark.asyncio
async def test_write_overwrites_existing_content(tmp_path):
    writer = MirrorWriter(tmp_path)
    await writer.write_note("", "A.md", "first")

    path = await writer.write_note("", "A.md", "second")

    assert path.read_text(encoding="utf-8") == "second\n"


@pytest.mark.parametrize(
    "folder_path, name",
    [
        ("..", "escape.md"),
        ("Work/../..", "escape.md"),
        ("", "../escape.md"),
        (".git", "config"),
        (".git/hooks", "post-commit"),
    ],
)
def test_resolve_rejects_paths_outside_mirror(tmp_path, folder_path, name):
    writer = MirrorWriter(tmp_path / "mirror")

    with pytest.raises(MirrorPathError):
        writer.resolve(folder_path, name)


def test_resolve_root_folder(tmp_path):
    writer = MirrorWriter(tmp_path)

    assert writer.resolve("") == tmp_path.resolve()
