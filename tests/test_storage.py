"""Tests for the compressor, blob store and templates repo."""

import json
import tarfile

import pytest

from bosh_micro.blobstore import BlobChecksumError, BlobNotFoundError, LocalBlobstore
from bosh_micro.compressor import Compressor
from bosh_micro.release.release import Job
from bosh_micro.templatescompiler.templates_repo import TemplateRecord, TemplatesRepo, TemplatesRepoError


class TestCompressor:
    def test_round_trips_a_directory(self, tmp_path):
        source = tmp_path / "source"
        (source / "bin").mkdir(parents=True)
        (source / "bin" / "cpi").write_text("#!/bin/sh\n")
        (source / "bin" / "cpi").chmod(0o755)
        (source / "config.yml").write_text("a: 1\n")
        compressor = Compressor(temp_root=str(tmp_path))

        tarball = compressor.compress_files_in_dir(str(source))
        compressor.decompress_file_to_dir(tarball, str(tmp_path / "dest"))

        assert (tmp_path / "dest" / "config.yml").read_text() == "a: 1\n"
        assert (tmp_path / "dest" / "bin" / "cpi").stat().st_mode & 0o111
        compressor.cleanup_tarball(tarball)
        assert not (tmp_path / tarball).exists()

    def test_members_are_relative(self, tmp_path):
        (tmp_path / "source").mkdir()
        (tmp_path / "source" / "file").write_text("x")

        tarball = Compressor(temp_root=str(tmp_path)).compress_files_in_dir(str(tmp_path / "source"))

        with tarfile.open(tarball) as tar:
            assert tar.getnames() == ["file"]

    def test_rejects_members_escaping_destination(self, tmp_path, make_tgz):
        tarball = make_tgz(tmp_path / "evil.tgz", {"../escaped": "x"})

        with pytest.raises(tarfile.TarError):
            Compressor().decompress_file_to_dir(str(tarball), str(tmp_path / "dest"))
        assert not (tmp_path / "escaped").exists()

    def test_cleanup_missing_tarball_is_noop(self, tmp_path):
        Compressor().cleanup_tarball(str(tmp_path / "missing.tgz"))


class TestLocalBlobstore:
    def test_create_and_get(self, tmp_path):
        source = tmp_path / "artifact"
        source.write_text("contents")
        blobstore = LocalBlobstore(tmp_path / "blobs")

        blob_id, sha1 = blobstore.create(str(source))

        assert sha1 == "4a756ca07e9487f482465a99e8286abc86ba4dc7"
        assert blobstore.get(blob_id, sha1).read_text() == "contents"

    def test_get_verifies_sha1(self, tmp_path):
        source = tmp_path / "artifact"
        source.write_text("contents")
        blobstore = LocalBlobstore(tmp_path / "blobs")
        blob_id, _ = blobstore.create(str(source))

        with pytest.raises(BlobChecksumError):
            blobstore.get(blob_id, "wrong")

    def test_get_unknown(self, tmp_path):
        with pytest.raises(BlobNotFoundError):
            LocalBlobstore(tmp_path).get("nope", "sha1")

    def test_delete(self, tmp_path):
        source = tmp_path / "artifact"
        source.write_text("contents")
        blobstore = LocalBlobstore(tmp_path / "blobs")
        blob_id, sha1 = blobstore.create(str(source))

        blobstore.delete(blob_id)

        with pytest.raises(BlobNotFoundError):
            blobstore.get(blob_id, sha1)


class TestTemplatesRepo:
    def test_save_and_find(self, tmp_path):
        repo = TemplatesRepo(tmp_path / "templates.json")
        job = Job(name="cpi", fingerprint="fp-1")

        repo.save(job, TemplateRecord("blob-1", "sha1-1"))

        assert repo.find(job) == TemplateRecord("blob-1", "sha1-1")
        assert json.loads((tmp_path / "templates.json").read_text()) == {
            "cpi:fp-1": {"blob_id": "blob-1", "blob_sha1": "sha1-1"},
        }

    def test_keyed_by_fingerprint(self, tmp_path):
        repo = TemplatesRepo(tmp_path / "templates.json")
        repo.save(Job(name="cpi", fingerprint="fp-1"), TemplateRecord("blob-1", "sha1-1"))

        assert repo.find(Job(name="cpi", fingerprint="fp-2")) is None

    @pytest.mark.parametrize("record", [TemplateRecord("", "sha1"), TemplateRecord("blob", "")])
    def test_rejects_incomplete_records(self, tmp_path, record):
        repo = TemplatesRepo(tmp_path / "templates.json")

        with pytest.raises(TemplatesRepoError, match="record is incomplete"):
            repo.save(Job(name="cpi"), record)
        assert not (tmp_path / "templates.json").exists()

    def test_corrupt_index(self, tmp_path):
        (tmp_path / "templates.json").write_text("{")

        with pytest.raises(TemplatesRepoError, match="Reading templates index"):
            TemplatesRepo(tmp_path / "templates.json").find(Job(name="cpi"))
