import pytest

from compressor_service.tempfiles import FileTemporaryResource, MemoryTemporaryResource


@pytest.fixture(params=["memory", "file"])
def resource(request, tmp_path):
    if request.param == "memory":
        res = MemoryTemporaryResource()
    else:
        res = FileTemporaryResource("run-1", base_dir=tmp_path)
    yield res
    res.close()


def test_write_read_release(resource):
    handle = resource.acquire("item.raw")
    resource.write(handle, b"payload")
    assert resource.read(handle) == b"payload"
    assert resource.outstanding == 1

    resource.release(handle)
    resource.release(handle)
    resource.release(None)
    assert resource.outstanding == 0
    with pytest.raises(KeyError):
        resource.read(handle)


def test_same_label_gets_distinct_handles(resource):
    a = resource.acquire("1.raw")
    b = resource.acquire("1.raw")
    assert a.key != b.key
    resource.write(a, b"a")
    resource.write(b, b"b")
    assert resource.read(a) == b"a"


def test_scope_releases_on_exception(resource):
    with pytest.raises(RuntimeError):
        with resource.scope("x") as handle:
            resource.write(handle, b"data")
            raise RuntimeError("boom")
    assert resource.outstanding == 0


def test_file_resource_uses_private_directory(tmp_path):
    res = FileTemporaryResource("run/../42", base_dir=tmp_path)
    handle = res.acquire("../../escape")
    path = res.path_for(handle)
    assert path.parent == res.directory
    assert res.directory.parent == tmp_path
    assert path.exists()

    res.release(handle)
    assert not path.exists()
    res.acquire("left-behind")
    res.close()
    assert not res.directory.exists()
    assert res.outstanding == 0
