import os

import pytest

from fatimacmd.lcappclear import (
    clear_app_links,
    clear_backup_files,
    find_backup_files,
    main,
    stale_revision_dirs,
)


def _touch(path):
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "w") as fh:
        fh.write("x")


def _revision_layout(home):
    app = os.path.join(home, "app")
    rev = os.path.join(app, "revision", "mypgm")
    old = os.path.join(rev, "2023.01.01-00.00_R001")
    new = os.path.join(rev, "2023.02.01-00.00_R002")
    _touch(os.path.join(old, "mypgm"))
    _touch(os.path.join(new, "mypgm"))
    os.symlink(os.path.relpath(new, app), os.path.join(app, "mypgm"))
    return app, old, new


def test_find_backup_files(tmp_path):
    app = str(tmp_path / "app")
    _touch(os.path.join(app, "a.backup"))
    _touch(os.path.join(app, "keep.txt"))
    _touch(os.path.join(app, "sub", "b.old"))
    assert find_backup_files(app) == [
        os.path.join(app, "a.backup"),
        os.path.join(app, "sub", "b.old"),
    ]


def test_clear_backup_files_removes_only_backups(tmp_path, capsys):
    app = str(tmp_path / "app")
    _touch(os.path.join(app, "a.backup"))
    _touch(os.path.join(app, "keep.txt"))
    removed = clear_backup_files(app)
    assert removed == [os.path.join(app, "a.backup")]
    assert not os.path.exists(os.path.join(app, "a.backup"))
    assert os.path.exists(os.path.join(app, "keep.txt"))
    assert f"removed : {removed[0]}" in capsys.readouterr().out


def test_stale_revision_dirs(tmp_path):
    app, old, new = _revision_layout(str(tmp_path))
    stale = stale_revision_dirs(os.path.join(app, "mypgm"))
    assert stale == [os.path.realpath(old)]


def test_stale_revision_dirs_dangling_link(tmp_path):
    link = str(tmp_path / "dangling")
    os.symlink(str(tmp_path / "nowhere"), link)
    with pytest.raises(FileNotFoundError):
        stale_revision_dirs(link)


def test_clear_app_links_keeps_linked_revision(tmp_path):
    app, old, new = _revision_layout(str(tmp_path))
    removed = clear_app_links(app)
    assert removed == [os.path.realpath(old)]
    assert not os.path.exists(old)
    assert os.path.exists(os.path.join(new, "mypgm"))


def test_clear_app_links_missing_dir(tmp_path, capsys):
    assert clear_app_links(str(tmp_path / "none")) == []
    assert "fail to read dir" in capsys.readouterr().out


def test_main_clears_everything(tmp_path, monkeypatch):
    monkeypatch.setenv("FATIMA_HOME", str(tmp_path))
    app, old, new = _revision_layout(str(tmp_path))
    _touch(os.path.join(app, "conf.old"))
    assert main([]) == 0
    assert not os.path.exists(old)
    assert not os.path.exists(os.path.join(app, "conf.old"))
    assert os.path.exists(new)


def test_main_help(capsys):
    assert main(["-h"]) == 0
    assert "clear fatima app directories" in capsys.readouterr().out