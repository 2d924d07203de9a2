import platform

from fortio import version


def test_short_is_dev_by_default():
    assert version.short() == "dev"


def test_long_starts_with_short():
    assert version.long().startswith(version.short() + " ")


def test_long_holds_build_info():
    assert version.long().split()[1] == "unknown"


def test_long_ends_with_runtime_version():
    assert version.long().endswith(platform.python_version())


def test_long_first_word_is_short_version():
    assert version.long().split()[0] == "dev"