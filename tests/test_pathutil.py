import pytest

from fatimacmd.pathutil import check_file_exist, ensure_directory, remove_last_slash


@pytest.mark.parametrize(
    "url",
    ["http://127.0.0.1:9190", "http://127.0.0.1:9190/", "http://127.0.0.1:9190//"],
)
def test_clean_path(url):
    assert remove_last_slash(url) == "http://127.0.0.1:9190"


def test_ensure_directory_creates(tmp_path):
    target = tmp_path / "a" / "b"
    ensure_directory(str(target), True)
    assert target.is_dir()


def test_ensure_directory_no_force_leaves_missing(tmp_path):
    target = tmp_path / "missing"
    ensure_directory(str(target), False)
    assert not target.exists()


def test_ensure_directory_file_in_the_way(tmp_path):
    target = tmp_path / "file"
    target.write_text("x")
    with pytest.raises(FileExistsError, match="path exist as file"):
        ensure_directory(str(target), True)


def test_check_file_exist_missing(tmp_path):
    with pytest.raises(FileNotFoundError, match="not exist file"):
        check_file_exist(str(tmp_path / "nope"))


def test_check_file_exist_directory(tmp_path):
    with pytest.raises(IsADirectoryError, match="exist but it is directory"):
        check_file_exist(str(tmp_path))


def test_check_file_exist_regular_file(tmp_path):
    target = tmp_path / "f.txt"
    target.write_text("data")
    assert check_file_exist(str(target)) is None
    assert target.read_text() == "data"