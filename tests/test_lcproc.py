import io
import json
import os
import subprocess
from datetime import datetime
from unittest import mock

import pytest

from fatimacmd import lcproc
from fatimacmd.lcproc import (
    Deployment,
    DeploymentBuild,
    DeploymentBuildGit,
    Revision,
    copy_to_dest,
    create_revision_app,
    create_revision_tag,
    find_version,
    get_current_revision,
    get_revisions,
    get_trimmed_message,
    is_app_exist,
    is_exist_revision,
    is_pid_exist,
    is_ro_program,
    link_revision,
    read_pid_from_file,
    read_revision,
    revision_path,
    select_source_files,
)

SAMPLE_DEPLOYMENT = {
    "process": "mypgm",
    "process_type": "GENERAL",
    "build": {
        "git": {"branch": "main", "commit": "abc123", "message": "fix bug\nmore detail"},
        "time": "2023-09-12 15:21:00",
        "user": "builder",
    },
}


def _make_revision(home, proc, tag, deployment=None):
    path = os.path.join(revision_path(str(home), proc), tag)
    os.makedirs(path)
    if deployment is not None:
        with open(os.path.join(path, "deployment.json"), "w", encoding="utf-8") as fh:
            json.dump(deployment, fh)
    return path


def _link(home, proc, rev_dir):
    app_dir = os.path.join(str(home), "app")
    os.symlink(os.path.relpath(rev_dir, app_dir), os.path.join(app_dir, proc))


def test_trimmed_message_short_unchanged():
    assert get_trimmed_message("hello") == "hello"


def test_trimmed_message_first_line_and_leading_spaces():
    assert get_trimmed_message("   first line\r\nsecond") == "first line"


def test_trimmed_message_long_is_cut():
    msg = "x" * 50
    result = get_trimmed_message(msg)
    assert result == "x" * 32 + "..."


def test_trimmed_message_counts_characters_not_bytes():
    msg = "가" * 40
    result = get_trimmed_message(msg)
    assert result == "가" * 32 + "..."


def test_is_ro_program():
    assert is_ro_program("JUNO")
    assert is_ro_program("saturn")
    assert not is_ro_program("mypgm")


def test_revision_path_layout(tmp_path):
    assert revision_path(str(tmp_path), "mypgm") == os.path.join(
        str(tmp_path), "app", "revision", "mypgm"
    )


def test_create_revision_tag_format():
    assert create_revision_tag(datetime(2018, 8, 14, 8, 35)) == "2018.08.14-08.35_R001"


def test_deployment_from_dict():
    dep = Deployment.from_dict(SAMPLE_DEPLOYMENT)
    assert dep.process == "mypgm"
    assert dep.has_build_info()
    assert dep.build.has_git()
    assert dep.build.git.has_message()
    assert dep.build.build_user == "builder"
    assert str(dep.build.git) == "Branch=[main], Commit=[abc123]"


def test_deployment_from_dict_empty():
    dep = Deployment.from_dict({})
    assert not dep.has_build_info()
    assert not dep.build.has_git()


def test_deployment_from_dict_bad_type():
    with pytest.raises(ValueError):
        Deployment.from_dict({"process": 3})


def test_build_summary_with_git():
    rev = Revision(
        create_dtime="2023-09-12 15:21:00",
        deployment=DeploymentBuild(
            git=DeploymentBuildGit(branch="main", commit="abc123", message="fix bug\nmore"),
            build_user="builder",
        ),
    )
    parts = rev.build_summary().split(" | ")
    assert parts[0] == "2023-09-12 15:21:00"
    assert parts[1].strip() == "builder"
    assert len(parts[1]) == 10
    assert parts[2].strip() == "main"
    assert parts[3] == "abc123"
    assert parts[4] == "fix bug"


def test_build_summary_without_git():
    rev = Revision(create_dtime="2023-09-12 15:21:00",
                   deployment=DeploymentBuild(build_user="builder"))
    parts = rev.build_summary().split(" | ")
    assert len(parts) == 2


def test_relative_path():
    rev = Revision(dir=os.path.join("/home", "app", "revision", "mypgm", "t_R001"))
    assert rev.relative_path() == os.path.join("revision", "mypgm", "t_R001")


def test_get_revisions_sorted_descending(tmp_path):
    _make_revision(tmp_path, "mypgm", "2023.01.01-00.00_R001", SAMPLE_DEPLOYMENT)
    _make_revision(tmp_path, "mypgm", "2023.01.02-00.00_R010")
    _make_revision(tmp_path, "mypgm", "2023.01.03-00.00_R002")
    os.makedirs(os.path.join(revision_path(str(tmp_path), "mypgm"), "junk"))
    revisions = get_revisions(revision_path(str(tmp_path), "mypgm"))
    assert [r.revision for r in revisions] == ["R010", "R002", "R001"]
    assert [r.number for r in revisions] == [10, 2, 1]
    assert revisions[2].deployment.build_user == "builder"


def test_read_revision_sets_create_dtime(tmp_path):
    path = _make_revision(tmp_path, "mypgm", "t_R001", SAMPLE_DEPLOYMENT)
    rev = read_revision(Revision(dir=path, revision="R001", number=1))
    datetime.strptime(rev.create_dtime, "%Y-%m-%d %H:%M:%S")
    assert rev.deployment.git.commit == "abc123"


def test_read_revision_missing_dir_returns_unchanged(tmp_path):
    rev = Revision(dir=str(tmp_path / "none"), revision="R001", number=1)
    assert read_revision(rev) == rev


def test_is_exist_revision(tmp_path):
    assert is_exist_revision(str(tmp_path))
    assert not is_exist_revision(str(tmp_path / "missing"))


def test_current_revision_and_link_roundtrip(tmp_path):
    r1 = _make_revision(tmp_path, "mypgm", "t_R001")
    r2 = _make_revision(tmp_path, "mypgm", "t_R002")
    _link(tmp_path, "mypgm", r1)
    assert get_current_revision(str(tmp_path), "mypgm") == 1
    link_revision(str(tmp_path), "mypgm", Revision(dir=r2, revision="R002", number=2))
    assert get_current_revision(str(tmp_path), "mypgm") == 2
    assert not os.path.isabs(os.readlink(os.path.join(str(tmp_path), "app", "mypgm")))


def test_current_revision_not_symlink(tmp_path):
    os.makedirs(os.path.join(str(tmp_path), "app", "mypgm"))
    with pytest.raises(ValueError):
        get_current_revision(str(tmp_path), "mypgm")


def test_current_revision_missing(tmp_path):
    with pytest.raises(OSError):
        get_current_revision(str(tmp_path), "mypgm")


def test_find_version():
    revisions = [Revision(revision="R002", number=2), Revision(revision="R001", number=1)]
    assert find_version(revisions, "R001").number == 1
    assert find_version(revisions, "R009") is None


def test_read_pid_from_file(tmp_path):
    proc_dir = os.path.join(str(tmp_path), "app", "mypgm", "proc")
    os.makedirs(proc_dir)
    pid_file = os.path.join(proc_dir, "mypgm.pid")
    with open(pid_file, "w") as fh:
        fh.write("4321\n")
    assert read_pid_from_file(str(tmp_path), "mypgm") == 4321
    with open(pid_file, "w") as fh:
        fh.write("abc")
    assert read_pid_from_file(str(tmp_path), "mypgm") == 0
    assert read_pid_from_file(str(tmp_path), "other") == 0


def test_is_pid_exist_parses_ps_output():
    out = "  PID TTY          TIME CMD\n 4321 pts/0    00:00:00 bash\n 99 pts/0 ps\n"
    done = subprocess.CompletedProcess(args=[], returncode=0, stdout=out)
    with mock.patch("fatimacmd.lcproc.subprocess.run", return_value=done):
        assert is_pid_exist(4321)
        assert is_pid_exist(99)
        assert not is_pid_exist(5555)


def test_is_pid_exist_true_when_ps_fails():
    with mock.patch("fatimacmd.lcproc.subprocess.run", side_effect=OSError("no ps")):
        assert is_pid_exist(5555)


def test_is_app_exist(tmp_path):
    assert not is_app_exist(str(tmp_path), "mypgm")
    os.makedirs(revision_path(str(tmp_path), "mypgm"))
    assert is_app_exist(str(tmp_path), "mypgm")


def test_create_revision_app(tmp_path):
    rev = create_revision_app(str(tmp_path), "newpgm")
    assert os.path.isdir(rev.dir)
    assert rev.revision == "R001"
    assert rev.number == 1
    assert rev.use
    assert rev.dir.endswith("_R001")


def _populate_app(tmp_path):
    app = os.path.join(str(tmp_path), "app", "mypgm")
    os.makedirs(os.path.join(app, "subdir"))
    for name in ("mypgm", "mypgm.properties", "other.xml", "readme.txt"):
        with open(os.path.join(app, name), "w") as fh:
            fh.write(name)
    return app


def test_select_source_files(tmp_path):
    app = _populate_app(tmp_path)
    selected = [os.path.basename(p) for p in select_source_files(app, "mypgm")]
    assert selected == ["mypgm", "mypgm.properties", "other.xml"]


def test_copy_to_dest_renames(tmp_path):
    _populate_app(tmp_path)
    target = tmp_path / "target"
    target.mkdir()
    copied = copy_to_dest(str(tmp_path), "mypgm", "newpgm", str(target))
    assert sorted(os.path.basename(p) for p in copied) == [
        "newpgm", "newpgm.properties", "other.xml"
    ]
    assert (target / "newpgm.properties").read_text() == "mypgm.properties"


def test_copy_to_dest_without_sources(tmp_path):
    os.makedirs(os.path.join(str(tmp_path), "app", "mypgm"))
    with pytest.raises(FileNotFoundError):
        copy_to_dest(str(tmp_path), "mypgm", "newpgm", str(tmp_path))


def test_main_rejects_ro_program(capsys):
    assert lcproc.main(["juno", "version"]) == 0
    assert "not permitted ro programs" in capsys.readouterr().out


def test_main_short_args_prints_usage(capsys):
    lcproc.main(["mypgm"])
    assert capsys.readouterr().out.startswith("usage: lcproc")


def test_main_version_listing(tmp_path, monkeypatch, capsys):
    r1 = _make_revision(tmp_path, "mypgm", "t_R001")
    _make_revision(tmp_path, "mypgm", "t_R002")
    _link(tmp_path, "mypgm", r1)
    monkeypatch.setenv("FATIMA_HOME", str(tmp_path))
    lcproc.main(["mypgm", "version"])
    lines = capsys.readouterr().out.splitlines()
    assert lines[0] == "mypgm revisions..."
    assert lines[1].startswith("R002     ")
    assert lines[2].startswith("R001 [O] ")


def test_main_version_change(tmp_path, monkeypatch):
    r1 = _make_revision(tmp_path, "mypgm", "t_R001")
    _make_revision(tmp_path, "mypgm", "t_R002")
    _link(tmp_path, "mypgm", r1)
    monkeypatch.setenv("FATIMA_HOME", str(tmp_path))
    monkeypatch.setattr("sys.stdin", io.StringIO("y\n"))
    lcproc.main(["mypgm", "version", "r002"])
    assert get_current_revision(str(tmp_path), "mypgm") == 2


def test_main_version_change_declined(tmp_path, monkeypatch):
    r1 = _make_revision(tmp_path, "mypgm", "t_R001")
    _make_revision(tmp_path, "mypgm", "t_R002")
    _link(tmp_path, "mypgm", r1)
    monkeypatch.setenv("FATIMA_HOME", str(tmp_path))
    monkeypatch.setattr("sys.stdin", io.StringIO("n\n"))
    lcproc.main(["mypgm", "version", "R002"])
    assert get_current_revision(str(tmp_path), "mypgm") == 1


def test_main_dup(tmp_path, monkeypatch):
    _populate_app(tmp_path)
    monkeypatch.setenv("FATIMA_HOME", str(tmp_path))
    lcproc.main(["mypgm", "dup", "newpgm"])
    new_link = os.path.join(str(tmp_path), "app", "newpgm")
    assert os.path.islink(new_link)
    assert os.path.isfile(os.path.join(new_link, "newpgm"))
    assert get_current_revision(str(tmp_path), "newpgm") == 1