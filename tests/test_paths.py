import os

import pytest

from fakes import FakeFilesystem
from mcp_safezone.errors import DenialKind
from mcp_safezone.outcome import Allowed, Denied
from mcp_safezone.paths import PathCanonicalizer, PathValidator
from mcp_safezone.zones import ContainmentMode, ZoneRegistry


@pytest.fixture
def base(tmp_path):
    return tmp_path.resolve()


def _validator(safe_roots, restricted=(), filesystem=None):
    canonicalizer = PathCanonicalizer(filesystem)
    registry = ZoneRegistry.build(
        [str(r) for r in safe_roots],
        restricted,
        ContainmentMode.RECURSIVE,
        canonicalizer.resolve,
    )
    return PathValidator(registry, canonicalizer)


class TestPathCanonicalizer:
    def test_existing_path(self, base):
        target = base / "a.txt"
        target.write_text("x")
        assert PathCanonicalizer().resolve(str(target)) == str(target)

    def test_missing_tail_is_appended(self, base):
        resolved = PathCanonicalizer().resolve(str(base / "new" / "dir" / "file.txt"))
        assert resolved == str(base / "new" / "dir" / "file.txt")

    def test_missing_tail_with_traversal(self, base):
        (base / "safe").mkdir()
        path = str(base / "safe") + "/missing/../../escape.txt"
        assert PathCanonicalizer().resolve(path) == str(base / "escape.txt")

    def test_traversal_back_onto_symlink_is_followed(self, base):
        outside = base / "outside"
        outside.mkdir()
        safe = base / "safe"
        safe.mkdir()
        (safe / "link").symlink_to(outside)

        path = str(safe) + "/missing/../link/pwned.txt"
        assert PathCanonicalizer().resolve(path) == str(outside / "pwned.txt")

    def test_symlinked_ancestor_is_followed(self, base):
        outside = base / "outside"
        outside.mkdir()
        safe = base / "safe"
        safe.mkdir()
        (safe / "link").symlink_to(outside)

        resolved = PathCanonicalizer().resolve(str(safe / "link" / "new.txt"))
        assert resolved == str(outside / "new.txt")

    def test_parent_of_symlink_follows_the_link(self, base):
        inner = base / "elsewhere" / "inner"
        inner.mkdir(parents=True)
        safe = base / "safe"
        safe.mkdir()
        (safe / "l").symlink_to(inner)

        resolved = PathCanonicalizer().resolve(str(safe / "l") + "/../x.txt")
        assert resolved == str(base / "elsewhere" / "x.txt")

    def test_relative_path_uses_working_directory(self, base, monkeypatch):
        monkeypatch.chdir(base)
        assert PathCanonicalizer().resolve("sub/f.txt") == str(base / "sub" / "f.txt")

    def test_tilde_expansion(self, base, monkeypatch):
        monkeypatch.setenv("HOME", str(base))
        assert PathCanonicalizer().resolve("~/notes.txt") == str(base / "notes.txt")

    def test_symlink_loop_is_not_treated_as_missing(self, base):
        a, b = base / "a", base / "b"
        a.symlink_to(b)
        b.symlink_to(a)
        with pytest.raises(OSError) as excinfo:
            PathCanonicalizer().resolve(str(a / "file"))
        assert not isinstance(excinfo.value, FileNotFoundError)

    def test_permission_error_propagates(self):
        fs = FakeFilesystem(
            existing=["/repo/private"],
            errors={"/repo/private": PermissionError(13, "Permission denied")},
        )
        with pytest.raises(PermissionError):
            PathCanonicalizer(fs).resolve("/repo/private/file")

    def test_walk_up_is_bounded_by_depth(self):
        fs = FakeFilesystem()
        assert PathCanonicalizer(fs).resolve("/a/b/c/d") == "/a/b/c/d"
        assert fs.calls == ["/a/b/c/d", "/a/b/c", "/a/b", "/a", "/"]


class TestPathValidator:
    def test_new_file_in_safe_zone_allowed(self, base):
        validator = _validator([base])
        outcome = validator.check(str(base / "fresh.txt"))
        assert outcome == Allowed(str(base / "fresh.txt"))

    def test_symlink_escape_denied(self, base):
        outside = base / "outside"
        outside.mkdir()
        (outside / "secret.txt").write_text("s")
        safe = base / "safe"
        safe.mkdir()
        (safe / "link").symlink_to(outside)

        outcome = _validator([safe]).check(str(safe / "link" / "secret.txt"))
        assert isinstance(outcome, Denied)
        assert outcome.kind is DenialKind.PATH_DENIED
        assert "not within configured safe zones" in outcome.reason

    def test_traversal_through_missing_dir_onto_symlink_denied(self, base):
        outside = base / "outside"
        outside.mkdir()
        safe = base / "safe"
        safe.mkdir()
        (safe / "link").symlink_to(outside)

        outcome = _validator([safe]).check(str(safe) + "/missing/../link/pwned.txt")
        assert isinstance(outcome, Denied)
        assert f"resolved to {outside / 'pwned.txt'}" in outcome.reason

    def test_symlink_into_safe_zone_allowed(self, base):
        safe = base / "safe"
        safe.mkdir()
        alias = base / "alias"
        alias.symlink_to(safe)

        outcome = _validator([safe]).check(str(alias / "file.txt"))
        assert outcome == Allowed(str(safe / "file.txt"))

    @pytest.mark.parametrize("path", ["", "   ", "/repo/a\x00b"])
    def test_empty_or_null_path_denied(self, path):
        validator = _validator(["/repo"], filesystem=FakeFilesystem(existing=["/repo"]))
        outcome = validator.check(path)
        assert isinstance(outcome, Denied)
        assert outcome.kind is DenialKind.PATH_DENIED

    def test_resolution_error_is_a_denial(self):
        fs = FakeFilesystem(
            existing=["/repo/private"],
            errors={"/repo/private": PermissionError(13, "Permission denied")},
        )
        outcome = _validator(["/repo"], filesystem=fs).check("/repo/private/key")
        assert isinstance(outcome, Denied)
        assert "could not be resolved" in outcome.reason
        assert "Permission denied" in outcome.reason

    def test_restricted_zone_denied_with_pattern(self):
        fs = FakeFilesystem(existing=["/repo"])
        outcome = _validator(["/repo"], ["**/.ssh"], filesystem=fs).check(
            "/repo/.ssh/id_ed25519"
        )
        assert isinstance(outcome, Denied)
        assert "restricted zone **/.ssh" in outcome.reason
        assert outcome.event.pattern == "**/.ssh"

    def test_report_for_restricted_path(self):
        fs = FakeFilesystem(existing=["/repo"])
        report = _validator(["/repo"], ["**/*.pem"], filesystem=fs).report(
            "/repo/certs/site.pem"
        )
        assert not report.allowed
        assert report.resolved_path == "/repo/certs/site.pem"
        assert report.matched_safe_zone == "/repo"
        assert report.matched_restricted_zone == "**/*.pem"

    def test_report_for_allowed_path(self):
        fs = FakeFilesystem(existing=["/repo"])
        report = _validator(["/repo"], filesystem=fs).report("/repo/src/app.py")
        assert report.allowed
        assert report.reason == "Path is within a safe zone and not restricted."
        assert report.matched_restricted_zone is None

    def test_report_for_unresolvable_path(self):
        fs = FakeFilesystem(
            existing=["/repo/x"],
            errors={"/repo/x": PermissionError(13, "Permission denied")},
        )
        report = _validator(["/repo"], filesystem=fs).report("/repo/x/y")
        assert not report.allowed
        assert report.resolved_path is None


@pytest.mark.skipif(os.geteuid() == 0, reason="root ignores directory permissions")
def test_unreadable_directory_denied(base):
    locked = base / "locked"
    locked.mkdir()
    (locked / "inner").mkdir()
    locked.chmod(0)
    try:
        outcome = _validator([base]).check(str(locked / "inner" / "file.txt"))
    finally:
        locked.chmod(0o755)
    assert isinstance(outcome, Denied)
